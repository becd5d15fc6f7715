"""
Booking Domain Models (``travel_modules.booking.models``).

Responsibility
--------------
Enums and frozen dataclass value objects for bookings: the request used to
create one, the explicit patch used to edit one, the filter used to list
them and the DTO returned to callers.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal``.
* ``BookingPatch`` enumerates every field an edit may touch.  Computed
  financial fields are absent on purpose: they are recomputed, never set.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from travel_modules.booking.details import ServiceDetails, ServiceType

__all__ = [
    "BookingFilter",
    "BookingInfo",
    "BookingPatch",
    "BookingStatus",
    "CreateBookingRequest",
    "ServiceType",
    "SupplierLineInfo",
    "SupplierLineRequest",
]


class BookingStatus(str, Enum):
    """Booking lifecycle states."""

    DRAFT = "draft"
    CONFIRMED = "confirmed"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    REFUND = "refund"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.CANCELLED, BookingStatus.REFUND)


@dataclass(frozen=True)
class SupplierLineRequest:
    """An additional supplier sharing the cost of a booking."""

    supplier_id: UUID
    cost_amount: Decimal
    cost_currency: str
    service_type: ServiceType | None = None
    sale_amount: Decimal | None = None
    sale_currency: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class CreateBookingRequest:
    """Raw inputs for a new booking."""

    customer_id: UUID
    supplier_id: UUID
    service_type: ServiceType
    sale_amount: Decimal
    sale_currency: str
    cost_amount: Decimal
    cost_currency: str
    is_local_tax_zone: bool = True
    vat_applicable: bool = True
    booking_agent_id: UUID | None = None
    customer_service_id: UUID | None = None
    # Percentages of gross profit; None falls back to assignment or employee default
    agent_commission_rate: Decimal | None = None
    cs_commission_rate: Decimal | None = None
    service_details: ServiceDetails | dict | None = None
    travel_date: date | None = None
    return_date: date | None = None
    notes: str | None = None
    as_draft: bool = False
    supplier_lines: tuple[SupplierLineRequest, ...] = ()


_UNSET = object()


@dataclass(frozen=True)
class BookingPatch:
    """
    Explicit set of fields a booking edit may change.

    Every field defaults to ``UNSET`` meaning "leave as is".  Setting a
    financial input triggers a full recompute of the computed fields.
    """

    UNSET = _UNSET

    supplier_id: UUID | object = _UNSET
    sale_amount: Decimal | object = _UNSET
    sale_currency: str | object = _UNSET
    cost_amount: Decimal | object = _UNSET
    cost_currency: str | object = _UNSET
    is_local_tax_zone: bool | object = _UNSET
    vat_applicable: bool | object = _UNSET
    booking_agent_id: UUID | None | object = _UNSET
    customer_service_id: UUID | None | object = _UNSET
    agent_commission_rate: Decimal | None | object = _UNSET
    cs_commission_rate: Decimal | None | object = _UNSET
    service_details: ServiceDetails | dict | None | object = _UNSET
    travel_date: date | None | object = _UNSET
    return_date: date | None | object = _UNSET
    notes: str | None | object = _UNSET

    FINANCIAL_FIELDS = frozenset(
        {
            "sale_amount",
            "sale_currency",
            "cost_amount",
            "cost_currency",
            "is_local_tax_zone",
            "vat_applicable",
            "booking_agent_id",
            "customer_service_id",
            "agent_commission_rate",
            "cs_commission_rate",
        }
    )

    def changes(self) -> dict[str, object]:
        """Fields explicitly set on this patch."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not _UNSET
        }

    @property
    def touches_financials(self) -> bool:
        return bool(self.FINANCIAL_FIELDS & self.changes().keys())


@dataclass(frozen=True)
class BookingFilter:
    status: BookingStatus | None = None
    service_type: ServiceType | None = None
    customer_id: UUID | None = None
    supplier_id: UUID | None = None
    travel_from: date | None = None
    travel_to: date | None = None


@dataclass(frozen=True)
class BookingInfo:
    """Snapshot of a booking with its computed financials."""

    id: UUID
    booking_number: str
    status: BookingStatus
    service_type: ServiceType
    customer_id: UUID
    supplier_id: UUID
    sale_amount: Decimal
    sale_currency: str
    sale_in_base: Decimal
    cost_amount: Decimal
    cost_currency: str
    cost_in_base: Decimal
    is_local_tax_zone: bool
    vat_applicable: bool
    net_before_vat: Decimal
    vat_amount: Decimal
    total_with_vat: Decimal
    gross_profit: Decimal
    booking_agent_id: UUID | None
    customer_service_id: UUID | None
    agent_commission_rate: Decimal
    cs_commission_rate: Decimal
    agent_commission_amount: Decimal
    cs_commission_amount: Decimal
    total_commission: Decimal
    net_profit: Decimal
    service_details: ServiceDetails
    travel_date: date | None
    return_date: date | None
    notes: str | None
    refund_of_id: UUID | None




@dataclass(frozen=True)
class SupplierLineInfo:
    id: UUID
    booking_id: UUID
    supplier_id: UUID
    service_type: ServiceType
    cost_amount: Decimal
    cost_currency: str
    cost_in_base: Decimal
    sale_amount: Decimal
    sale_currency: str | None
    sale_in_base: Decimal
    description: str | None
