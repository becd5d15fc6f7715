"""
Invoicing ORM Models (``travel_modules.invoicing.orm``).

Invoices reference exactly one booking (unique ``booking_id``).  Receipts
reference an invoice optionally; unmatched receipts are customer credit.
Neither table is ever purged by cancellation: a cancelled invoice keeps
its row and records the credit note issued against it.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from travel_kernel.db.base import TrackedBase
from travel_modules.cash.models import PaymentMethod
from travel_modules.invoicing.models import (
    InvoiceInfo,
    InvoiceStatus,
    MatchingStatus,
    ReceiptInfo,
    ReceiptStatus,
)


class InvoiceModel(TrackedBase):
    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        UniqueConstraint("booking_id", name="uq_invoices_booking_id"),
        Index("idx_invoices_customer_id", "customer_id"),
        Index("idx_invoices_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(40), nullable=False)
    booking_id: Mapped[UUID] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(ForeignKey("parties.id"), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    vat_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(String(20), nullable=False)
    issue_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    paid_date: Mapped[date | None] = mapped_column(nullable=True)
    credit_note_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    credit_note_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> InvoiceInfo:
        return InvoiceInfo(
            id=self.id,
            invoice_number=self.invoice_number,
            booking_id=self.booking_id,
            customer_id=self.customer_id,
            currency=self.currency,
            subtotal=self.subtotal,
            vat_amount=self.vat_amount,
            total_amount=self.total_amount,
            status=InvoiceStatus(self.status),
            issue_date=self.issue_date,
            due_date=self.due_date,
            paid_date=self.paid_date,
            credit_note_number=self.credit_note_number,
            credit_note_amount=self.credit_note_amount,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} {self.total_amount} ({self.status})>"


class ReceiptModel(TrackedBase):
    __tablename__ = "receipts"

    __table_args__ = (
        UniqueConstraint("receipt_number", name="uq_receipts_receipt_number"),
        Index("idx_receipts_invoice_id", "invoice_id"),
        Index("idx_receipts_customer_id", "customer_id"),
    )

    receipt_number: Mapped[str] = mapped_column(String(40), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(ForeignKey("parties.id"), nullable=False)
    invoice_id: Mapped[UUID | None] = mapped_column(ForeignKey("invoices.id"), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    amount_in_base: Mapped[Decimal] = mapped_column(nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)
    bank_account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("bank_accounts.id"), nullable=True
    )
    cash_register_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("cash_registers.id"), nullable=True
    )
    # Signed amount actually moved on the bank account / cash register, in its currency
    holder_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    receipt_date: Mapped[date] = mapped_column(nullable=False)
    status: Mapped[ReceiptStatus] = mapped_column(String(20), nullable=False)
    matching_status: Mapped[MatchingStatus] = mapped_column(String(20), nullable=False)
    matched_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    journal_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> ReceiptInfo:
        return ReceiptInfo(
            id=self.id,
            receipt_number=self.receipt_number,
            customer_id=self.customer_id,
            invoice_id=self.invoice_id,
            amount=self.amount,
            currency=self.currency,
            amount_in_base=self.amount_in_base,
            payment_method=PaymentMethod(self.payment_method),
            bank_account_id=self.bank_account_id,
            cash_register_id=self.cash_register_id,
            reference=self.reference,
            receipt_date=self.receipt_date,
            status=ReceiptStatus(self.status),
            matching_status=MatchingStatus(self.matching_status),
            matched_amount=self.matched_amount,
            journal_entry_id=self.journal_entry_id,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<ReceiptModel {self.receipt_number} {self.amount} {self.currency}>"
