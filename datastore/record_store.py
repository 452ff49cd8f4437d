from __future__ import annotations

import json
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timezone, tzinfo
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from pydantic import TypeAdapter

from models.records import Client, Delivery, OperationType, Parcel
from settings import get_settings


@dataclass(frozen=True)
class DeliveryFilters:
    """Server-side filters; date bounds are inclusive calendar days in ``tz``."""

    date_from: Optional[date] = None
    date_to: Optional[date] = None
    parcel_name: Optional[str] = None
    operation_type: Optional[OperationType] = None
    product_id: Optional[int] = None
    tz: tzinfo = timezone.utc


@dataclass(frozen=True)
class ParcelUpdate:
    id: int
    name: str
    surface_hectares: float


class RecordStore(Protocol):
    def fetch_deliveries(self, client_id: int, filters: DeliveryFilters) -> List[Delivery]: ...

    def fetch_parcels(self, client_id: int, active_only: bool = True) -> List[Parcel]: ...

    def get_client(self, client_id: int) -> Client: ...

    def update_delivery_parcel(
        self, client_id: int, delivery_id: int, parcel_name: str
    ) -> Delivery: ...

    def update_parcels(self, client_id: int, updates: Iterable[ParcelUpdate]) -> List[Parcel]: ...

    def update_client(self, client_id: int, changes: Mapping[str, Any]) -> Client: ...


_CLIENT_EDITABLE_FIELDS = frozenset({"name", "email", "street", "postal_code", "city", "phone"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


_CLIENTS = TypeAdapter(List[Client])
_PARCELS = TypeAdapter(List[Parcel])
_DELIVERIES = TypeAdapter(List[Delivery])


def _name_key(name: str) -> str:
    return name.strip().casefold()


class InMemoryRecordStore:
    """Client-scoped record store kept in memory, optionally mirrored to JSON."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._clients: Dict[int, Client] = {}
        self._parcels: Dict[int, Parcel] = {}
        self._deliveries: Dict[int, Delivery] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def add_client(self, client: Client) -> None:
        with self._lock:
            self._clients[client.id] = replace(client)
            self._persist()

    def add_parcel(self, parcel: Parcel) -> None:
        with self._lock:
            self._parcels[parcel.id] = replace(parcel)
            self._persist()

    def add_delivery(self, delivery: Delivery) -> None:
        with self._lock:
            self._deliveries[delivery.id] = replace(delivery, date=_as_utc(delivery.date))
            self._persist()

    def fetch_deliveries(
        self,
        client_id: int,
        filters: Optional[DeliveryFilters] = None,
        include_voided: bool = False,
    ) -> List[Delivery]:
        filters = filters or DeliveryFilters()
        start = (
            datetime.combine(filters.date_from, time.min, tzinfo=filters.tz)
            if filters.date_from
            else None
        )
        end = (
            datetime.combine(filters.date_to, time.max, tzinfo=filters.tz)
            if filters.date_to
            else None
        )

        with self._lock:
            matches = [
                replace(delivery)
                for delivery in self._deliveries.values()
                if delivery.client_id == client_id
                and (include_voided or not delivery.voided)
                and (start is None or delivery.date >= start)
                and (end is None or delivery.date <= end)
                and (filters.parcel_name is None or delivery.parcel_name == filters.parcel_name)
                and (
                    filters.operation_type is None
                    or delivery.operation_type == filters.operation_type
                )
                and (filters.product_id is None or delivery.product_id == filters.product_id)
            ]
        return sorted(matches, key=lambda delivery: delivery.date, reverse=True)

    def fetch_parcels(self, client_id: int, active_only: bool = True) -> List[Parcel]:
        with self._lock:
            parcels = [
                replace(parcel)
                for parcel in self._parcels.values()
                if parcel.client_id == client_id and (parcel.active or not active_only)
            ]
        return sorted(parcels, key=lambda parcel: parcel.name)

    def get_client(self, client_id: int) -> Client:
        with self._lock:
            client = self._clients.get(client_id)
            if client is None:
                raise KeyError(f"Client {client_id!r} not found.")
            return replace(client)

    def update_delivery_parcel(
        self, client_id: int, delivery_id: int, parcel_name: str
    ) -> Delivery:
        with self._lock:
            delivery = self._deliveries.get(delivery_id)
            if delivery is None:
                raise KeyError(f"Delivery {delivery_id!r} not found.")
            if delivery.client_id != client_id:
                raise PermissionError(
                    f"Delivery {delivery_id!r} does not belong to client {client_id!r}."
                )
            delivery.parcel_name = parcel_name
            self._persist()
            return replace(delivery)

    def update_parcels(self, client_id: int, updates: Iterable[ParcelUpdate]) -> List[Parcel]:
        pending = list(updates)
        with self._lock:
            if client_id not in self._clients:
                raise KeyError(f"Client {client_id!r} not found.")
            for update in pending:
                parcel = self._parcels.get(update.id)
                if parcel is None or parcel.client_id != client_id:
                    raise PermissionError(
                        f"Parcel {update.id!r} does not belong to client {client_id!r}."
                    )

            names = {
                parcel.id: _name_key(parcel.name)
                for parcel in self._parcels.values()
                if parcel.client_id == client_id
            }
            names.update((update.id, _name_key(update.name)) for update in pending)
            for update in pending:
                key = names[update.id]
                if any(other == key for pid, other in names.items() if pid != update.id):
                    raise ValueError(
                        f"Parcel name {update.name.strip()!r} is already used "
                        f"by client {client_id!r}."
                    )

            modified_at = _utcnow()
            updated: List[Parcel] = []
            for update in pending:
                parcel = self._parcels[update.id]
                parcel.name = update.name
                parcel.surface_hectares = update.surface_hectares
                parcel.active = True
                parcel.last_modified = modified_at
                updated.append(replace(parcel))
            self._persist()
            return updated

    def update_client(self, client_id: int, changes: Mapping[str, Any]) -> Client:
        unknown = sorted(set(changes) - _CLIENT_EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(unknown)}")
        with self._lock:
            client = self._clients.get(client_id)
            if client is None:
                raise KeyError(f"Client {client_id!r} not found.")
            for key, value in changes.items():
                setattr(client, key, value)
            client.last_modified = _utcnow()
            self._persist()
            return replace(client)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            "clients": _CLIENTS.dump_python(list(self._clients.values()), mode="json"),
            "parcels": _PARCELS.dump_python(list(self._parcels.values()), mode="json"),
            "deliveries": _DELIVERIES.dump_python(list(self._deliveries.values()), mode="json"),
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for client in _CLIENTS.validate_python(data.get("clients", [])):
            self._clients[client.id] = client
        for parcel in _PARCELS.validate_python(data.get("parcels", [])):
            self._parcels[parcel.id] = parcel
        for delivery in _DELIVERIES.validate_python(data.get("deliveries", [])):
            self._deliveries[delivery.id] = replace(delivery, date=_as_utc(delivery.date))


@lru_cache
def build_default_store(path: Optional[str] = None) -> InMemoryRecordStore:
    settings = get_settings()
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return InMemoryRecordStore(persistence_path=persistence)
