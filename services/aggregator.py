"""Aggregation logic for delivery records.

Every method is a pure pass over in-memory snapshots supplied by the caller:
no I/O, no shared state, no caching. Missing fields on individual records
degrade that record's contribution (0 for sums, excluded from averages);
only structurally invalid input raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence

from models.records import OTHER_PARCEL, Delivery, OperationType, Parcel

KG_PER_TONNE = 1000.0


class InvalidInputError(TypeError):
    """Raised when the engine receives something that is not a list of records."""


@dataclass
class Totals:
    count: int = 0
    total_dry_weight_kg: float = 0.0
    total_gross_weight_kg: float = 0.0
    total_entries_kg: float = 0.0
    total_exits_kg: float = 0.0
    balance_kg: float = 0.0
    weighted_avg_humidity_percent: float = 0.0


@dataclass
class ParcelStats:
    delivery_count: int = 0
    total_dry_weight_kg: float = 0.0
    total_gross_weight_kg: float = 0.0
    entry_dry_weight_kg: float = 0.0
    # Unweighted mean, unlike Totals.weighted_avg_humidity_percent.
    avg_humidity_percent: Optional[float] = None
    surface_hectares: Optional[float] = None
    yield_tonnes_per_hectare: Optional[float] = None


@dataclass
class DailyPoint:
    date: date
    daily_entries_kg: float
    daily_exits_kg: float
    cumulative_entries_kg: float
    cumulative_exits_kg: float
    net_stock_kg: float
    daily_weighted_avg_humidity_percent: Optional[float] = None


@dataclass
class DeliverySummary:
    """Everything the dashboard needs for one filtered snapshot."""

    totals: Totals
    yield_tonnes_per_hectare: Optional[float]
    surface_hectares: float
    per_parcel: Dict[str, ParcelStats] = field(default_factory=dict)
    series: List[DailyPoint] = field(default_factory=list)
    monthly_activity: Dict[str, Dict[str, int]] = field(default_factory=dict)


class _HumidityAccumulator:
    """Running sums for the gross-weight-weighted humidity average."""

    __slots__ = ("weighted", "weight")

    def __init__(self) -> None:
        self.weighted = 0.0
        self.weight = 0.0

    def add(self, delivery: Delivery) -> None:
        if delivery.humidity_percent is None or delivery.gross_weight_kg is None:
            return
        self.weighted += delivery.humidity_percent * delivery.gross_weight_kg
        self.weight += delivery.gross_weight_kg

    def average(self) -> Optional[float]:
        if self.weight <= 0:
            return None
        return self.weighted / self.weight


def _require_records(value: object, record_type: type, label: str) -> list:
    if not isinstance(value, (list, tuple)):
        raise InvalidInputError(
            f"{label} must be a list of {record_type.__name__} records, "
            f"got {type(value).__name__}."
        )
    for index, item in enumerate(value):
        if not isinstance(item, record_type):
            raise InvalidInputError(
                f"{label}[{index}] is a {type(item).__name__}, "
                f"expected {record_type.__name__}."
            )
    return list(value)


def _dry(delivery: Delivery) -> float:
    return delivery.dry_weight_kg or 0.0


def _counts_toward_yield(delivery: Delivery) -> bool:
    # Entries recorded without any parcel never feed a yield, even under Autres.
    return delivery.operation_type == OperationType.entry and bool(
        (delivery.parcel_name or "").strip()
    )


class DeliveryAggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def __init__(
        self,
        other_aliases: Iterable[str] = (),
        tz: tzinfo = timezone.utc,
    ) -> None:
        aliases = {OTHER_PARCEL, *other_aliases}
        self._other_aliases = frozenset(alias.strip().casefold() for alias in aliases)
        self.tz = tz

    def normalize_parcel_name(self, name: Optional[str]) -> str:
        """Fold blank names and every spelling of the Other bucket onto one key."""
        candidate = (name or "").strip()
        if not candidate or candidate.casefold() in self._other_aliases:
            return OTHER_PARCEL
        return candidate

    def compute_totals(self, deliveries: Sequence[Delivery]) -> Totals:
        records = self._active(deliveries)
        totals = Totals(count=len(records))
        humidity = _HumidityAccumulator()

        for delivery in records:
            dry = _dry(delivery)
            totals.total_dry_weight_kg += dry
            totals.total_gross_weight_kg += delivery.gross_weight_kg or 0.0
            if delivery.operation_type == OperationType.entry:
                totals.total_entries_kg += dry
            elif delivery.operation_type == OperationType.exit:
                totals.total_exits_kg += dry
            humidity.add(delivery)

        totals.balance_kg = totals.total_entries_kg - totals.total_exits_kg
        totals.weighted_avg_humidity_percent = humidity.average() or 0.0
        return totals

    def surface_by_parcel(self, parcels: Sequence[Parcel]) -> Dict[str, float]:
        """Surface of active parcels with a positive area, keyed by normalized name."""
        records = _require_records(parcels, Parcel, "parcels")
        surfaces: Dict[str, float] = {}
        for parcel in records:
            if not parcel.active or not parcel.surface_hectares or parcel.surface_hectares <= 0:
                continue
            key = self.normalize_parcel_name(parcel.name)
            surfaces[key] = surfaces.get(key, 0.0) + parcel.surface_hectares
        return surfaces

    def compute_yield(
        self, deliveries: Sequence[Delivery], parcels: Sequence[Parcel]
    ) -> Optional[float]:
        """Dry tonnes of entries per hectare of managed surface, or None."""
        records = self._active(deliveries)
        surfaces = self.surface_by_parcel(parcels)

        entry_dry_kg = sum(
            _dry(delivery)
            for delivery in records
            if _counts_toward_yield(delivery)
            and self.normalize_parcel_name(delivery.parcel_name) in surfaces
        )
        total_surface = sum(surfaces.values())

        if total_surface <= 0 or entry_dry_kg <= 0:
            return None
        return (entry_dry_kg / KG_PER_TONNE) / total_surface

    def compute_per_parcel_breakdown(
        self, deliveries: Sequence[Delivery], parcels: Sequence[Parcel]
    ) -> Dict[str, ParcelStats]:
        records = self._active(deliveries)
        surfaces = self.surface_by_parcel(parcels)

        breakdown: Dict[str, ParcelStats] = {}
        humidity_sums: Dict[str, float] = {}
        humidity_counts: Dict[str, int] = {}
        yield_entries: Dict[str, float] = {}

        for delivery in records:
            key = self.normalize_parcel_name(delivery.parcel_name)
            stats = breakdown.setdefault(key, ParcelStats())
            dry = _dry(delivery)
            stats.delivery_count += 1
            stats.total_dry_weight_kg += dry
            stats.total_gross_weight_kg += delivery.gross_weight_kg or 0.0
            if delivery.operation_type == OperationType.entry:
                stats.entry_dry_weight_kg += dry
            if _counts_toward_yield(delivery):
                yield_entries[key] = yield_entries.get(key, 0.0) + dry
            if delivery.humidity_percent is not None:
                humidity_sums[key] = humidity_sums.get(key, 0.0) + delivery.humidity_percent
                humidity_counts[key] = humidity_counts.get(key, 0) + 1

        for key, stats in breakdown.items():
            if humidity_counts.get(key):
                stats.avg_humidity_percent = humidity_sums[key] / humidity_counts[key]
            surface = surfaces.get(key)
            stats.surface_hectares = surface
            if surface and yield_entries.get(key, 0.0) > 0:
                stats.yield_tonnes_per_hectare = (yield_entries[key] / KG_PER_TONNE) / surface

        return dict(sorted(breakdown.items()))

    def compute_cumulative_series(self, deliveries: Sequence[Delivery]) -> List[DailyPoint]:
        """One point per calendar day present, ascending, with running totals."""
        records = self._active(deliveries)

        entries: Dict[date, float] = {}
        exits: Dict[date, float] = {}
        humidity: Dict[date, _HumidityAccumulator] = {}

        for delivery in records:
            day = self.local_day(delivery.date)
            entries.setdefault(day, 0.0)
            exits.setdefault(day, 0.0)
            if delivery.operation_type == OperationType.entry:
                entries[day] += _dry(delivery)
            elif delivery.operation_type == OperationType.exit:
                exits[day] += _dry(delivery)
            humidity.setdefault(day, _HumidityAccumulator()).add(delivery)

        series: List[DailyPoint] = []
        cumulative_entries = 0.0
        cumulative_exits = 0.0
        for day in sorted(entries):
            cumulative_entries += entries[day]
            cumulative_exits += exits[day]
            series.append(
                DailyPoint(
                    date=day,
                    daily_entries_kg=entries[day],
                    daily_exits_kg=exits[day],
                    cumulative_entries_kg=cumulative_entries,
                    cumulative_exits_kg=cumulative_exits,
                    net_stock_kg=cumulative_entries - cumulative_exits,
                    daily_weighted_avg_humidity_percent=humidity[day].average(),
                )
            )
        return series

    def compute_monthly_activity(
        self, deliveries: Sequence[Delivery]
    ) -> Dict[str, Dict[str, int]]:
        """Delivery counts per parcel and ``YYYY-MM`` month, zero-filled."""
        records = self._active(deliveries)
        months = sorted({self.local_day(d.date).strftime("%Y-%m") for d in records})

        activity: Dict[str, Dict[str, int]] = {}
        for delivery in records:
            key = self.normalize_parcel_name(delivery.parcel_name)
            row = activity.setdefault(key, dict.fromkeys(months, 0))
            row[self.local_day(delivery.date).strftime("%Y-%m")] += 1
        return dict(sorted(activity.items()))

    def available_products(self, deliveries: Sequence[Delivery]) -> List[int]:
        records = self._active(deliveries)
        return sorted({d.product_id for d in records if d.product_id})

    def summarize(
        self, deliveries: Sequence[Delivery], parcels: Sequence[Parcel]
    ) -> DeliverySummary:
        records = self._active(deliveries)
        return DeliverySummary(
            totals=self.compute_totals(records),
            yield_tonnes_per_hectare=self.compute_yield(records, parcels),
            surface_hectares=sum(self.surface_by_parcel(parcels).values()),
            per_parcel=self.compute_per_parcel_breakdown(records, parcels),
            series=self.compute_cumulative_series(records),
            monthly_activity=self.compute_monthly_activity(records),
        )

    def local_day(self, moment: datetime) -> date:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz).date()

    @staticmethod
    def _active(deliveries: Sequence[Delivery]) -> List[Delivery]:
        records = _require_records(deliveries, Delivery, "deliveries")
        return [delivery for delivery in records if not delivery.voided]
