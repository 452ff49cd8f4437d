from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import List, Sequence

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from app.api import delivery_query, get_service
from models.records import product_name
from services.aggregator import DailyPoint
from services.portal import DeliveryQuery, PortalService


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))
templates.env.filters["tonnes"] = lambda kg: f"{(kg or 0) / 1000:.1f}"
templates.env.filters["product"] = product_name


@dataclass
class StockChart:
    """Polyline coordinates for the cumulative stock chart, in SVG units."""

    width: int
    height: int
    entries: str
    exits: str
    net: str
    zero_y: float
    max_tonnes: float
    min_tonnes: float
    first_day: date | None
    last_day: date | None


def build_stock_chart(
    series: Sequence[DailyPoint], width: int = 640, height: int = 240
) -> StockChart | None:
    if not series:
        return None

    values = [
        value / 1000
        for point in series
        for value in (point.cumulative_entries_kg, point.cumulative_exits_kg, point.net_stock_kg)
    ]
    top = max(max(values), 0.0)
    bottom = min(min(values), 0.0)
    span = (top - bottom) or 1.0
    step = width / (len(series) - 1) if len(series) > 1 else 0.0

    def y(tonnes: float) -> float:
        return round(height - (tonnes - bottom) / span * height, 2)

    def line(attribute: str) -> str:
        points: List[str] = []
        for index, point in enumerate(series):
            x = round(index * step if len(series) > 1 else width / 2, 2)
            points.append(f"{x},{y(getattr(point, attribute) / 1000)}")
        return " ".join(points)

    return StockChart(
        width=width,
        height=height,
        entries=line("cumulative_entries_kg"),
        exits=line("cumulative_exits_kg"),
        net=line("net_stock_kg"),
        zero_y=y(0.0),
        max_tonnes=top,
        min_tonnes=bottom,
        first_day=series[0].date,
        last_day=series[-1].date,
    )


router = APIRouter(include_in_schema=False)


@router.get("/ui/clients/{client_id}", name="ui_dashboard", response_class=HTMLResponse)
async def ui_dashboard(
    request: Request,
    client_id: int,
    query: DeliveryQuery = Depends(delivery_query),
    service: PortalService = Depends(get_service),
) -> HTMLResponse:
    try:
        client = service.get_profile(client_id)
        result = service.build_summary(client_id, query)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return templates.TemplateResponse(
        request,
        "ui/dashboard.html",
        {
            "client": client,
            "result": result,
            "query": query,
            "chart": build_stock_chart(result.summary.series),
        },
    )
