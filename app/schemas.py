"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from models.records import OperationType, product_name
from services.portal import PortalSummary


class DeliveryOut(BaseModel):
    """A single weighing event as shown in the delivery history."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    date: datetime
    operation_type: OperationType
    parcel_name: Optional[str] = None
    product_id: Optional[int] = None
    driver_name: Optional[str] = None
    dry_weight_kg: Optional[float] = None
    gross_weight_kg: Optional[float] = None
    humidity_percent: Optional[float] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def product(self) -> str:
        return product_name(self.product_id)


class ParcelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    surface_hectares: Optional[float] = None
    active: bool
    last_modified: Optional[datetime] = None


class ClientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    street: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    full_address: str = ""


class TotalsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    count: int = Field(..., ge=0)
    total_dry_weight_kg: float
    total_gross_weight_kg: float
    total_entries_kg: float
    total_exits_kg: float
    balance_kg: float
    weighted_avg_humidity_percent: float


class ParcelStatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    delivery_count: int = Field(..., ge=0)
    total_dry_weight_kg: float
    total_gross_weight_kg: float
    entry_dry_weight_kg: float
    avg_humidity_percent: Optional[float] = None
    surface_hectares: Optional[float] = None
    yield_tonnes_per_hectare: Optional[float] = None


class DailyPointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    daily_entries_kg: float
    daily_exits_kg: float
    cumulative_entries_kg: float
    cumulative_exits_kg: float
    net_stock_kg: float = Field(..., description="May be negative when exits exceed entries.")
    daily_weighted_avg_humidity_percent: Optional[float] = None


class ProductOut(BaseModel):
    id: int
    name: str


class SummaryResponse(BaseModel):
    """Aggregated statistics for one client and filter selection."""

    client_id: int
    date_from: date
    date_to: date
    totals: TotalsOut
    yield_tonnes_per_hectare: Optional[float] = Field(
        default=None, description="Null when no surface area or no entries are available."
    )
    surface_hectares: float
    per_parcel: Dict[str, ParcelStatsOut] = Field(default_factory=dict)
    series: List[DailyPointOut] = Field(default_factory=list)
    monthly_activity: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    available_products: List[ProductOut] = Field(default_factory=list)
    recent_deliveries: List[DeliveryOut] = Field(default_factory=list)

    @classmethod
    def from_portal(cls, result: PortalSummary) -> "SummaryResponse":
        summary = result.summary
        return cls(
            client_id=result.client_id,
            date_from=result.date_from,
            date_to=result.date_to,
            totals=TotalsOut.model_validate(summary.totals),
            yield_tonnes_per_hectare=summary.yield_tonnes_per_hectare,
            surface_hectares=summary.surface_hectares,
            per_parcel={
                name: ParcelStatsOut.model_validate(stats)
                for name, stats in summary.per_parcel.items()
            },
            series=[DailyPointOut.model_validate(point) for point in summary.series],
            monthly_activity=summary.monthly_activity,
            available_products=[
                ProductOut(id=product_id, name=product_name(product_id))
                for product_id in result.available_products
            ],
            recent_deliveries=[
                DeliveryOut.model_validate(delivery) for delivery in result.recent_deliveries
            ],
        )


class ParcelAssignment(BaseModel):
    """Inline edit of a delivery's parcel; blank assigns the Other bucket."""

    parcel_name: Optional[str] = Field(default=None, max_length=120)


class ParcelSurfaceUpdate(BaseModel):
    id: int
    name: str = Field(..., min_length=1, max_length=120)
    surface_hectares: float = Field(..., ge=0)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    street: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
