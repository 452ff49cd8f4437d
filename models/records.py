"""Domain records read from the record store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated, Optional

from pydantic import BeforeValidator

OTHER_PARCEL = "Autres"

PRODUCT_NAMES = {
    1: "Corn",
    2: "Wheat",
    3: "Barley",
    4: "Soybean",
    5: "Sunflower",
    6: "Rapeseed",
}

_STORAGE_SPELLINGS = {
    "entree": "entry",
    "entrée": "entry",
    "sortie": "exit",
}


class OperationType(str, Enum):
    """Direction of a weighing: material received or shipped out."""

    entry = "entry"
    exit = "exit"

    @classmethod
    def parse(cls, value: str | OperationType) -> OperationType:
        if isinstance(value, cls):
            return value
        candidate = str(value).strip().lower()
        candidate = _STORAGE_SPELLINGS.get(candidate, candidate)
        try:
            return cls(candidate)
        except ValueError as exc:
            raise ValueError(f"Unknown operation type {value!r}.") from exc


@dataclass(slots=True)
class Delivery:
    """One weighing event for a client."""

    id: int
    client_id: int
    date: datetime
    operation_type: Annotated[OperationType, BeforeValidator(OperationType.parse)]
    parcel_name: Optional[str] = None
    product_id: Optional[int] = None
    driver_name: Optional[str] = None
    dry_weight_kg: Optional[float] = None
    gross_weight_kg: Optional[float] = None
    humidity_percent: Optional[float] = None
    voided: bool = False


@dataclass(slots=True)
class Parcel:
    """A named land unit; its surface is the yield denominator."""

    id: int
    client_id: int
    name: str
    surface_hectares: Optional[float] = None
    active: bool = True
    last_modified: Optional[datetime] = None


@dataclass(slots=True)
class Client:
    id: int
    name: str
    email: str
    street: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    last_modified: Optional[datetime] = None

    @property
    def full_address(self) -> str:
        locality = " ".join(part for part in (self.postal_code, self.city) if part)
        return ", ".join(part for part in (self.street, locality) if part)


def product_name(product_id: Optional[int]) -> str:
    if not product_id:
        return "N/A"
    return PRODUCT_NAMES.get(product_id, f"Product {product_id}")
