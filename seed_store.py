"""Populate the record store with a demo client, parcels and deliveries."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from datastore.record_store import InMemoryRecordStore
from models.records import Client, Delivery, OperationType, Parcel
from settings import get_settings

DEMO_CLIENT_ID = 1


def seed(store: InMemoryRecordStore, start: datetime) -> None:
    store.add_client(
        Client(
            id=DEMO_CLIENT_ID,
            name="EARL des Trois Chênes",
            email="contact@troischenes.example",
            street="12 rue du Moulin",
            postal_code="67000",
            city="Strasbourg",
        )
    )
    store.add_parcel(Parcel(id=1, client_id=DEMO_CLIENT_ID, name="Nord", surface_hectares=12.5))
    store.add_parcel(Parcel(id=2, client_id=DEMO_CLIENT_ID, name="Sud", surface_hectares=8.0))
    store.add_parcel(Parcel(id=3, client_id=DEMO_CLIENT_ID, name="Étang", active=False))

    rows = [
        (0, OperationType.entry, "Nord", 24_500, 29_100, 31.5, "Marc"),
        (0, OperationType.entry, "Sud", 18_200, 21_000, 28.0, "Julie"),
        (2, OperationType.entry, "Nord", 26_000, 31_300, 33.2, "Marc"),
        (3, OperationType.entry, None, 9_800, 11_200, 27.4, "Julie"),
        (9, OperationType.exit, "Nord", 15_000, 15_300, None, "Transports Klein"),
        (14, OperationType.exit, "Sud", 12_000, 12_150, 15.0, "Transports Klein"),
    ]
    for index, (offset, kind, parcel, dry, gross, humidity, driver) in enumerate(rows, start=1):
        store.add_delivery(
            Delivery(
                id=index,
                client_id=DEMO_CLIENT_ID,
                date=start + timedelta(days=offset, hours=8 + index),
                operation_type=kind,
                parcel_name=parcel,
                product_id=1,
                driver_name=driver,
                dry_weight_kg=dry,
                gross_weight_kg=gross,
                humidity_percent=humidity,
            )
        )


def main(store_path: Path | None = None) -> Path:
    target = store_path or Path(get_settings().store_path or "./tmp/sechalog.json")
    season = datetime.now(timezone.utc).replace(month=9, day=20, hour=0, minute=0, second=0, microsecond=0)
    if season > datetime.now(timezone.utc):
        season = season.replace(year=season.year - 1)
    seed(InMemoryRecordStore(persistence_path=target), season)
    return target


if __name__ == "__main__":  # pragma: no cover - manual helper
    created_path = main()
    print(f"Record store seeded in {created_path}")
