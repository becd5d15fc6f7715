"""
Cash Management Domain Models (``travel_modules.cash.models``).

Frozen value objects for bank accounts, cash registers and supplier
payments, plus the payment method enum shared with receipts.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from travel_kernel.exceptions import InvalidEnumValueError


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK = "bank"
    CARD = "card"
    CHEQUE = "cheque"

    @classmethod
    def parse(cls, value: object) -> "PaymentMethod":
        """
        Raises:
            InvalidEnumValueError: If ``value`` names no payment method.
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text.lower() == member.value or text.upper() == member.name:
                return member
        raise InvalidEnumValueError("payment_method", value, [m.name for m in cls])


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class BankAccountInfo:
    id: UUID
    name: str
    bank_name: str | None
    account_number: str | None
    currency: str
    balance: Decimal
    ledger_account_code: str | None
    is_active: bool


@dataclass(frozen=True)
class CashRegisterInfo:
    id: UUID
    name: str
    location: str | None
    currency: str
    balance: Decimal
    is_active: bool


@dataclass(frozen=True)
class PaymentRequest:
    """A payment made to a supplier."""

    supplier_id: UUID
    amount: Decimal
    currency: str
    payment_method: PaymentMethod | str
    bank_account_id: UUID | None = None
    cash_register_id: UUID | None = None
    booking_id: UUID | None = None
    reference: str | None = None
    payment_date: date | None = None
    status: PaymentStatus = PaymentStatus.COMPLETED
    notes: str | None = None


_UNSET = object()


@dataclass(frozen=True)
class PaymentPatch:
    """Fields a payment edit may change; ``UNSET`` leaves a field alone."""

    UNSET = _UNSET

    amount: Decimal | object = _UNSET
    currency: str | object = _UNSET
    payment_method: PaymentMethod | str | object = _UNSET
    bank_account_id: UUID | None | object = _UNSET
    cash_register_id: UUID | None | object = _UNSET
    reference: str | None | object = _UNSET
    payment_date: date | object = _UNSET
    status: PaymentStatus | object = _UNSET
    notes: str | None | object = _UNSET

    def changes(self) -> dict[str, object]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not _UNSET
        }


@dataclass(frozen=True)
class PaymentInfo:
    id: UUID
    payment_number: str
    supplier_id: UUID
    amount: Decimal
    currency: str
    amount_in_base: Decimal
    payment_method: PaymentMethod
    bank_account_id: UUID | None
    cash_register_id: UUID | None
    booking_id: UUID | None
    reference: str | None
    payment_date: date
    status: PaymentStatus
    journal_entry_id: UUID | None
    notes: str | None
