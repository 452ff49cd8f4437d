from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_delivery, render_summary


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for querying the SechaLog client portal.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _iso_day(value: Optional[datetime]) -> Optional[str]:
    return value.date().isoformat() if value else None


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Portal API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("summary")
def summary_command(
    ctx: typer.Context,
    client_id: int = typer.Argument(..., help="Client identifier."),
    date_from: Optional[datetime] = typer.Option(
        None, "--from", formats=["%Y-%m-%d"], help="First day included."
    ),
    date_to: Optional[datetime] = typer.Option(
        None, "--to", formats=["%Y-%m-%d"], help="Last day included."
    ),
    parcel: Optional[str] = typer.Option(None, "--parcel", help="Exact parcel name."),
    operation_type: Optional[str] = typer.Option(
        None, "--type", help="Operation type: entry or exit."
    ),
    product_id: Optional[int] = typer.Option(None, "--product", help="Product id, 0 for all."),
    search: Optional[str] = typer.Option(None, "--search", help="Parcel or driver name fragment."),
) -> None:
    """Show aggregated delivery statistics."""
    state = _get_state(ctx)
    payload = state.client.get_summary(
        client_id,
        {
            "date_from": _iso_day(date_from),
            "date_to": _iso_day(date_to),
            "parcel": parcel,
            "operation_type": operation_type,
            "product_id": product_id,
            "search": search,
        },
    )
    render_summary(payload)


@app.command("assign-parcel")
def assign_parcel_command(
    ctx: typer.Context,
    client_id: int = typer.Argument(..., help="Client identifier."),
    delivery_id: int = typer.Argument(..., help="Delivery to reassign."),
    parcel_name: str = typer.Argument("", help="New parcel name; empty means Autres."),
) -> None:
    """Move a delivery to another parcel."""
    state = _get_state(ctx)
    payload = state.client.assign_parcel(client_id, delivery_id, parcel_name)
    typer.secho("Parcel updated.", fg=typer.colors.GREEN)
    render_delivery(payload)


@app.command("set-surface")
def set_surface_command(
    ctx: typer.Context,
    client_id: int = typer.Argument(..., help="Client identifier."),
    parcel_id: int = typer.Argument(..., help="Parcel identifier."),
    name: str = typer.Argument(..., help="Parcel name."),
    hectares: float = typer.Argument(..., min=0, help="Surface in hectares."),
) -> None:
    """Rename a parcel and set its surface area."""
    state = _get_state(ctx)
    parcels = state.client.update_parcels(
        client_id,
        [{"id": parcel_id, "name": name, "surface_hectares": hectares}],
    )
    for parcel in parcels:
        typer.secho(
            f"{parcel.get('name')}: {parcel.get('surface_hectares')} ha",
            fg=typer.colors.GREEN,
        )
