"""Value types shared by the flows and the persistence backends."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from litestar_expresso.enums import SubjectKind

_NON_DIGITS = re.compile(r"\D")

CUBIC_CM_PER_M3 = Decimal(1_000_000)


def normalize_cep(value: str) -> str:
    """Strip formatting from a CEP, keeping its 8 digits."""
    return _NON_DIGITS.sub("", value or "")[:8]


@dataclass(frozen=True)
class Address:
    name: str = ""
    document: str = ""
    phone: str = ""
    email: str = ""
    cep: str = ""
    street: str = ""
    number: str = ""
    complement: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""

    def __post_init__(self) -> None:
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            object.__setattr__(self, name, (value or "").strip())
        object.__setattr__(self, "cep", normalize_cep(self.cep))
        object.__setattr__(self, "state", self.state.upper())

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> Address:
        """Build an address from a loose dict, ignoring unknown keys."""
        data = data or {}
        return cls(
            **{
                key: str(data[key])
                for key in cls.__dataclass_fields__
                if data.get(key) is not None
            }
        )

    def as_dict(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


@dataclass(frozen=True)
class PackageInfo:
    """Physical package attributes. Weight in kg, dimensions in cm."""

    weight: Decimal
    length: Decimal = Decimal(0)
    width: Decimal = Decimal(0)
    height: Decimal = Decimal(0)
    format: str = "box"

    @property
    def volume_m3(self) -> Decimal:
        return (self.length * self.width * self.height) / CUBIC_CM_PER_M3

    def cubic_weight(self, kg_per_m3: Decimal) -> Decimal:
        """Cubage weight for a table's cubic-meter kg equivalent."""
        return self.volume_m3 * kg_per_m3

    def billable_weight(self, kg_per_m3: Decimal | None = None) -> Decimal:
        if not kg_per_m3:
            return self.weight
        return max(self.weight, self.cubic_weight(kg_per_m3))


@dataclass(frozen=True)
class Quote:
    """A priced quote, computed before checkout and promoted to a shipment."""

    sender: Address
    recipient: Address
    package: PackageInfo
    price: Decimal
    service_option: str = "standard"
    pickup_option: str = "dropoff"
    document_data: dict[str, Any] = field(default_factory=dict)

    def billable_weight(self, kg_per_m3: Decimal | None = None) -> Decimal:
        return self.package.billable_weight(kg_per_m3)


@dataclass(frozen=True)
class HistoryEntry:
    """Append-only status history row."""

    subject_kind: SubjectKind
    subject_id: str
    status: str
    motorista_id: str | None = None
    description: str = ""
    observations: str | None = None
    occurrence_data: dict[str, Any] | None = None
    is_alert: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass(frozen=True)
class OccurrenceRecord:
    """Structured occurrence row, optionally referencing uploaded evidence."""

    subject_kind: SubjectKind
    subject_id: str
    occurrence_type: str
    motorista_id: str | None = None
    description: str = ""
    observations: str | None = None
    target_status: str | None = None
    file_url: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass(frozen=True)
class VolumeUpdate:
    """Conditional status change for one volume."""

    volume_id: str
    expected_status: str
    new_status: str
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VolumeSpec:
    """Volume declared at B2B order submission."""

    weight: Decimal
    recipient: Address
    eti_code: str | None = None
