"""Coordinates record store reads and writes with delivery aggregation."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from functools import lru_cache
from typing import Any, Iterable, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from datastore.record_store import (
    DeliveryFilters,
    ParcelUpdate,
    RecordStore,
    build_default_store,
)
from models.records import OTHER_PARCEL, Client, Delivery, OperationType, Parcel
from services.aggregator import DeliveryAggregator, DeliverySummary
from settings import Settings, get_settings

logger = logging.getLogger("sechalog.portal")


@dataclass(frozen=True)
class DeliveryQuery:
    """Filters chosen on the dashboard; ``product_id`` 0 means all products."""

    date_from: Optional[date] = None
    date_to: Optional[date] = None
    parcel_name: Optional[str] = None
    operation_type: Optional[OperationType] = None
    product_id: Optional[int] = None
    search: Optional[str] = None


@dataclass
class PortalSummary:
    client_id: int
    date_from: date
    date_to: date
    summary: DeliverySummary
    available_products: List[int] = field(default_factory=list)
    recent_deliveries: List[Delivery] = field(default_factory=list)


def season_start(today: date, start_month: int = 8) -> date:
    """First day of the drying season containing ``today``."""
    year = today.year if today.month >= start_month else today.year - 1
    return date(year, start_month, 1)


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown display timezone, using UTC", extra={"reason": name})
        return timezone.utc


def _matches_search(delivery: Delivery, term: str) -> bool:
    needle = term.casefold()
    return any(
        value and needle in value.casefold()
        for value in (delivery.parcel_name, delivery.driver_name)
    )


class PortalService:
    """Read, filter and summarize one client's deliveries; forward edits."""

    def __init__(
        self,
        store: RecordStore,
        aggregator: DeliveryAggregator,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.aggregator = aggregator
        self.settings = settings or get_settings()

    def default_date_range(self, today: date) -> Tuple[date, date]:
        return season_start(today, self.settings.season_start_month), today

    def list_deliveries(
        self, client_id: int, query: DeliveryQuery, today: Optional[date] = None
    ) -> List[Delivery]:
        in_window, _ = self._fetch_window(client_id, query, today)
        return self._apply_client_filters(in_window, query)

    def build_summary(
        self, client_id: int, query: DeliveryQuery, today: Optional[date] = None
    ) -> PortalSummary:
        start_time = time.perf_counter()
        in_window, (date_from, date_to) = self._fetch_window(client_id, query, today)
        deliveries = self._apply_client_filters(in_window, query)
        parcels = self.store.fetch_parcels(client_id, active_only=True)

        summary = self.aggregator.summarize(deliveries, parcels)
        result = PortalSummary(
            client_id=client_id,
            date_from=date_from,
            date_to=date_to,
            summary=summary,
            available_products=self.aggregator.available_products(in_window),
            recent_deliveries=deliveries[: self.settings.recent_limit],
        )
        logger.info(
            "Built delivery summary",
            extra={
                "client_id": client_id,
                "record_count": len(deliveries),
                "elapsed_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return result

    def assign_parcel(self, client_id: int, delivery_id: int, parcel_name: Optional[str]) -> Delivery:
        """Reassign a delivery to a parcel; a blank name means the Other bucket."""
        name = (parcel_name or "").strip() or OTHER_PARCEL
        delivery = self.store.update_delivery_parcel(client_id, delivery_id, name)
        logger.info(
            "Delivery parcel reassigned",
            extra={"client_id": client_id, "delivery_id": delivery_id, "parcel_name": name},
        )
        return delivery

    def update_parcel_surfaces(
        self, client_id: int, updates: Iterable[ParcelUpdate]
    ) -> List[Parcel]:
        pending = list(updates)
        for update in pending:
            if not update.name.strip():
                raise ValueError(f"Parcel {update.id} needs a name.")
            if update.surface_hectares < 0:
                raise ValueError(f"Parcel {update.id} surface cannot be negative.")
        parcels = self.store.update_parcels(client_id, pending)
        logger.info(
            "Parcels updated",
            extra={"client_id": client_id, "record_count": len(parcels)},
        )
        return parcels

    def list_parcels(self, client_id: int, active_only: bool = True) -> List[Parcel]:
        self.store.get_client(client_id)
        return self.store.fetch_parcels(client_id, active_only=active_only)

    def get_profile(self, client_id: int) -> Client:
        return self.store.get_client(client_id)

    def update_profile(self, client_id: int, changes: Mapping[str, Any]) -> Client:
        for required in ("name", "email"):
            if required in changes and not str(changes[required] or "").strip():
                raise ValueError(f"Profile {required} cannot be empty.")
        client = self.store.update_client(client_id, changes)
        logger.info("Profile updated", extra={"client_id": client_id})
        return client

    def _fetch_window(
        self, client_id: int, query: DeliveryQuery, today: Optional[date]
    ) -> Tuple[List[Delivery], Tuple[date, date]]:
        self.store.get_client(client_id)
        date_from, date_to = self._date_range(query, today)
        filters = DeliveryFilters(
            date_from=date_from,
            date_to=date_to,
            parcel_name=query.parcel_name or None,
            operation_type=query.operation_type,
            tz=self.aggregator.tz,
        )
        return self.store.fetch_deliveries(client_id, filters), (date_from, date_to)

    def _date_range(self, query: DeliveryQuery, today: Optional[date]) -> Tuple[date, date]:
        date_to = query.date_to or today or datetime.now(self.aggregator.tz).date()
        date_from = query.date_from or self.default_date_range(date_to)[0]
        if date_from > date_to:
            raise ValueError("date_from must not be after date_to.")
        return date_from, date_to

    @staticmethod
    def _apply_client_filters(
        deliveries: List[Delivery], query: DeliveryQuery
    ) -> List[Delivery]:
        filtered = deliveries
        term = (query.search or "").strip()
        if term:
            filtered = [delivery for delivery in filtered if _matches_search(delivery, term)]
        if query.product_id:
            filtered = [
                delivery for delivery in filtered if delivery.product_id == query.product_id
            ]
        return filtered


@lru_cache
def build_default_service() -> PortalService:
    """Factory that wires the service with the default record store."""
    settings = get_settings()
    aggregator = DeliveryAggregator(
        other_aliases=settings.other_labels,
        tz=resolve_timezone(settings.display_timezone),
    )
    return PortalService(store=build_default_store(), aggregator=aggregator, settings=settings)
