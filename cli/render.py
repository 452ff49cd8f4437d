from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _tonnes(kg: Optional[float]) -> str:
    return f"{(kg or 0) / 1000:.1f} t"


def _optional(value: Optional[float], fmt: str, unit: str) -> str:
    if value is None:
        return "N/A"
    return f"{value:{fmt}} {unit}"


def render_summary(payload: Dict[str, Any]) -> None:
    echo_heading("Summary")
    totals = payload.get("totals") or {}
    echo_key_values(
        [
            ("client_id", payload.get("client_id")),
            ("period", f"{payload.get('date_from')} -> {payload.get('date_to')}"),
            ("deliveries", totals.get("count", 0)),
            ("dry_weight", _tonnes(totals.get("total_dry_weight_kg"))),
            ("gross_weight", _tonnes(totals.get("total_gross_weight_kg"))),
            ("entries", _tonnes(totals.get("total_entries_kg"))),
            ("exits", _tonnes(totals.get("total_exits_kg"))),
            ("balance", _tonnes(totals.get("balance_kg"))),
            ("humidity", _optional(totals.get("weighted_avg_humidity_percent"), ".1f", "%")),
            ("yield", _optional(payload.get("yield_tonnes_per_hectare"), ".2f", "t/ha")),
            ("surface", _optional(payload.get("surface_hectares"), ".1f", "ha")),
        ]
    )

    per_parcel = payload.get("per_parcel") or {}
    typer.echo()
    echo_heading("Parcels")
    if per_parcel:
        for name, stats in per_parcel.items():
            typer.echo(
                f"  - {name}: {stats.get('delivery_count')} deliveries, "
                f"{_tonnes(stats.get('total_dry_weight_kg'))} dry, "
                f"yield {_optional(stats.get('yield_tonnes_per_hectare'), '.2f', 't/ha')}"
            )
    else:
        typer.echo("No deliveries in range.")


def render_delivery(payload: Dict[str, Any]) -> None:
    echo_heading("Delivery")
    echo_key_values(
        [
            ("id", payload.get("id")),
            ("date", payload.get("date")),
            ("operation_type", payload.get("operation_type")),
            ("parcel_name", payload.get("parcel_name")),
            ("dry_weight_kg", payload.get("dry_weight_kg")),
        ]
    )
