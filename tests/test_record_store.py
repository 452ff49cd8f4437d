"""Unit tests for the in-memory record store implementation."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from datastore.record_store import DeliveryFilters, InMemoryRecordStore, ParcelUpdate
from models.records import Client, Delivery, OperationType, Parcel


def _populate(store: InMemoryRecordStore) -> None:
    store.add_client(Client(id=1, name="Ferme Nord", email="nord@example.com"))
    store.add_client(Client(id=2, name="Ferme Sud", email="sud@example.com"))
    store.add_parcel(Parcel(id=10, client_id=1, name="North", surface_hectares=2.0))
    store.add_parcel(Parcel(id=11, client_id=1, name="Old", surface_hectares=1.0, active=False))
    store.add_parcel(Parcel(id=20, client_id=2, name="South", surface_hectares=3.0))
    store.add_delivery(
        Delivery(
            id=100,
            client_id=1,
            date=datetime(2024, 9, 1, 0, 0, tzinfo=timezone.utc),
            operation_type=OperationType.entry,
            parcel_name="North",
            product_id=1,
            dry_weight_kg=1000,
        )
    )
    store.add_delivery(
        Delivery(
            id=101,
            client_id=1,
            date=datetime(2024, 9, 3, 23, 59, 59, tzinfo=timezone.utc),
            operation_type=OperationType.exit,
            parcel_name="North",
            product_id=2,
            dry_weight_kg=400,
        )
    )
    store.add_delivery(
        Delivery(
            id=102,
            client_id=1,
            date=datetime(2024, 9, 2, tzinfo=timezone.utc),
            operation_type=OperationType.entry,
            dry_weight_kg=50,
            voided=True,
        )
    )
    store.add_delivery(
        Delivery(
            id=200,
            client_id=2,
            date=datetime(2024, 9, 2, tzinfo=timezone.utc),
            operation_type=OperationType.entry,
            parcel_name="South",
        )
    )


@pytest.fixture()
def store() -> InMemoryRecordStore:
    store = InMemoryRecordStore()
    _populate(store)
    return store


def test_fetch_deliveries_is_client_scoped_newest_first(store: InMemoryRecordStore) -> None:
    deliveries = store.fetch_deliveries(1, DeliveryFilters())

    assert [delivery.id for delivery in deliveries] == [101, 100]


def test_fetch_deliveries_can_include_voided(store: InMemoryRecordStore) -> None:
    deliveries = store.fetch_deliveries(1, DeliveryFilters(), include_voided=True)

    assert [delivery.id for delivery in deliveries] == [101, 102, 100]


def test_date_bounds_are_inclusive_days(store: InMemoryRecordStore) -> None:
    filters = DeliveryFilters(date_from=date(2024, 9, 1), date_to=date(2024, 9, 3))
    assert {d.id for d in store.fetch_deliveries(1, filters)} == {100, 101}

    filters = DeliveryFilters(date_from=date(2024, 9, 2), date_to=date(2024, 9, 2))
    assert store.fetch_deliveries(1, filters) == []


def test_fetch_deliveries_applies_field_filters(store: InMemoryRecordStore) -> None:
    exits = store.fetch_deliveries(1, DeliveryFilters(operation_type=OperationType.exit))
    by_product = store.fetch_deliveries(1, DeliveryFilters(product_id=1))
    by_parcel = store.fetch_deliveries(1, DeliveryFilters(parcel_name="Elsewhere"))

    assert [d.id for d in exits] == [101]
    assert [d.id for d in by_product] == [100]
    assert by_parcel == []


def test_fetched_records_are_copies(store: InMemoryRecordStore) -> None:
    fetched = store.fetch_deliveries(1, DeliveryFilters())[0]
    fetched.dry_weight_kg = 999_999

    assert store.fetch_deliveries(1, DeliveryFilters())[0].dry_weight_kg == 400


def test_fetch_parcels_active_only(store: InMemoryRecordStore) -> None:
    assert [p.name for p in store.fetch_parcels(1)] == ["North"]
    assert [p.name for p in store.fetch_parcels(1, active_only=False)] == ["North", "Old"]


def test_get_client_missing_raises_key_error(store: InMemoryRecordStore) -> None:
    with pytest.raises(KeyError):
        store.get_client(99)


def test_update_delivery_parcel_checks_ownership(store: InMemoryRecordStore) -> None:
    updated = store.update_delivery_parcel(1, 100, "South field")
    assert updated.parcel_name == "South field"

    with pytest.raises(PermissionError):
        store.update_delivery_parcel(2, 100, "Stolen")
    with pytest.raises(KeyError):
        store.update_delivery_parcel(1, 404, "Nowhere")


def test_update_parcels_reactivates_and_stamps(store: InMemoryRecordStore) -> None:
    updated = store.update_parcels(1, [ParcelUpdate(id=11, name="Old", surface_hectares=4.5)])

    assert updated[0].active is True
    assert updated[0].surface_hectares == 4.5
    assert updated[0].last_modified is not None
    assert [p.name for p in store.fetch_parcels(1)] == ["North", "Old"]


def test_update_parcels_rejects_foreign_parcel_atomically(store: InMemoryRecordStore) -> None:
    with pytest.raises(PermissionError):
        store.update_parcels(
            1,
            [
                ParcelUpdate(id=10, name="North", surface_hectares=9.0),
                ParcelUpdate(id=20, name="South", surface_hectares=9.0),
            ],
        )

    assert store.fetch_parcels(1)[0].surface_hectares == 2.0


def test_update_client_rejects_unknown_fields(store: InMemoryRecordStore) -> None:
    with pytest.raises(ValueError):
        store.update_client(1, {"id": 5})

    client = store.update_client(1, {"city": "Colmar"})
    assert client.city == "Colmar"
    assert client.last_modified is not None


def test_persists_to_disk_and_reloads(tmp_path) -> None:
    path = tmp_path / "store.json"
    store = InMemoryRecordStore(persistence_path=path)
    _populate(store)
    store.update_delivery_parcel(1, 100, "Renamed")

    payload = json.loads(path.read_text())
    assert {row["id"] for row in payload["deliveries"]} == {100, 101, 102, 200}

    reloaded = InMemoryRecordStore(persistence_path=path)
    deliveries = reloaded.fetch_deliveries(1, DeliveryFilters())
    assert [d.id for d in deliveries] == [101, 100]
    assert deliveries[1].parcel_name == "Renamed"
    assert deliveries[1].operation_type is OperationType.entry
    assert deliveries[1].date == datetime(2024, 9, 1, tzinfo=timezone.utc)
    assert reloaded.get_client(2).name == "Ferme Sud"


def test_loads_original_operation_spellings(tmp_path) -> None:
    path = tmp_path / "store.json"
    path.write_text(
        json.dumps(
            {
                "clients": [{"id": 1, "name": "Ferme", "email": "f@example.com"}],
                "parcels": [],
                "deliveries": [
                    {
                        "id": 1,
                        "client_id": 1,
                        "date": "2024-09-01T08:00:00Z",
                        "operation_type": "sortie",
                    }
                ],
            }
        )
    )

    store = InMemoryRecordStore(persistence_path=path)

    assert store.fetch_deliveries(1)[0].operation_type is OperationType.exit


def test_date_bounds_follow_filter_timezone(store: InMemoryRecordStore) -> None:
    day = date(2024, 9, 4)
    paris = ZoneInfo("Europe/Paris")

    local = store.fetch_deliveries(1, DeliveryFilters(date_from=day, date_to=day, tz=paris))
    utc = store.fetch_deliveries(1, DeliveryFilters(date_from=day, date_to=day))

    # 23:59:59 UTC on the 3rd is already the 4th in Paris.
    assert [d.id for d in local] == [101]
    assert utc == []


def test_update_parcels_rejects_names_already_in_use(store: InMemoryRecordStore) -> None:
    with pytest.raises(ValueError):
        store.update_parcels(1, [ParcelUpdate(id=11, name=" north ", surface_hectares=1.0)])
    with pytest.raises(ValueError):
        store.update_parcels(
            1,
            [
                ParcelUpdate(id=10, name="East", surface_hectares=2.0),
                ParcelUpdate(id=11, name="EAST", surface_hectares=1.0),
            ],
        )

    parcels = store.fetch_parcels(1, active_only=False)
    assert [(p.name, p.surface_hectares) for p in parcels] == [("North", 2.0), ("Old", 1.0)]


def test_update_parcels_allows_swaps_and_other_clients_names(store: InMemoryRecordStore) -> None:
    swapped = store.update_parcels(
        1,
        [
            ParcelUpdate(id=10, name="Old", surface_hectares=2.0),
            ParcelUpdate(id=11, name="North", surface_hectares=1.0),
        ],
    )
    assert [p.name for p in swapped] == ["Old", "North"]

    renamed = store.update_parcels(1, [ParcelUpdate(id=10, name="South", surface_hectares=2.0)])
    assert renamed[0].name == "South"


def test_persisted_file_is_plain_json(tmp_path) -> None:
    path = tmp_path / "store.json"
    store = InMemoryRecordStore(persistence_path=path)
    _populate(store)

    payload = json.loads(path.read_text())
    row = next(item for item in payload["deliveries"] if item["id"] == 101)

    assert row["operation_type"] == "exit"
    assert row["date"] == "2024-09-03T23:59:59Z"
    assert row["voided"] is False
