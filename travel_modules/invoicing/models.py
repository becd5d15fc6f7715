"""
Invoicing Domain Models (``travel_modules.invoicing.models``).

Responsibility
--------------
Invoice and receipt value objects, their status enums and the pure status
derivation used by the ledger propagation engine.

Invariants enforced
-------------------
* An invoice's payment status is a pure function of its total and the sum
  of its non-cancelled receipts (``derive_invoice_status``).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from travel_kernel.domain.money import MONEY_EPSILON, ZERO, money_equal
from travel_modules.cash.models import PaymentMethod


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class ReceiptStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MatchingStatus(str, Enum):
    NOT_MATCHED = "not_matched"
    MATCHED = "matched"


def derive_invoice_status(
    total_amount: Decimal,
    total_paid: Decimal,
    epsilon: Decimal = MONEY_EPSILON,
) -> InvoiceStatus:
    """
    Payment status from totals alone.

    PAID when the paid amount is within ``epsilon`` of the total or above
    it, PARTIALLY_PAID when something but not enough was paid, UNPAID
    otherwise.
    """
    if money_equal(total_amount, total_paid, epsilon) or total_paid >= total_amount:
        return InvoiceStatus.PAID
    if total_paid > ZERO:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.UNPAID


@dataclass(frozen=True)
class InvoiceInfo:
    id: UUID
    invoice_number: str
    booking_id: UUID
    customer_id: UUID
    currency: str
    subtotal: Decimal
    vat_amount: Decimal
    total_amount: Decimal
    status: InvoiceStatus
    issue_date: date
    due_date: date | None
    paid_date: date | None
    credit_note_number: str | None
    credit_note_amount: Decimal | None
    notes: str | None


@dataclass(frozen=True)
class ReceiptRequest:
    """Money received from a customer, optionally against an invoice."""

    customer_id: UUID
    amount: Decimal
    currency: str
    payment_method: PaymentMethod | str
    invoice_id: UUID | None = None
    bank_account_id: UUID | None = None
    cash_register_id: UUID | None = None
    reference: str | None = None
    receipt_date: date | None = None
    notes: str | None = None


_UNSET = object()


@dataclass(frozen=True)
class ReceiptPatch:
    """Fields a receipt edit may change; ``UNSET`` leaves a field alone."""

    UNSET = _UNSET

    amount: Decimal | object = _UNSET
    currency: str | object = _UNSET
    payment_method: PaymentMethod | str | object = _UNSET
    invoice_id: UUID | None | object = _UNSET
    bank_account_id: UUID | None | object = _UNSET
    cash_register_id: UUID | None | object = _UNSET
    reference: str | None | object = _UNSET
    receipt_date: date | object = _UNSET
    status: ReceiptStatus | object = _UNSET
    notes: str | None | object = _UNSET

    def changes(self) -> dict[str, object]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not _UNSET
        }


@dataclass(frozen=True)
class ReceiptInfo:
    id: UUID
    receipt_number: str
    customer_id: UUID
    invoice_id: UUID | None
    amount: Decimal
    currency: str
    amount_in_base: Decimal
    payment_method: PaymentMethod
    bank_account_id: UUID | None
    cash_register_id: UUID | None
    reference: str | None
    receipt_date: date
    status: ReceiptStatus
    matching_status: MatchingStatus
    matched_amount: Decimal
    journal_entry_id: UUID | None
    notes: str | None
