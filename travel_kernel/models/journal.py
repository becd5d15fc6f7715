"""
Module: travel_kernel.models.journal
Responsibility: ORM persistence for two-sided journal entries.
Architecture position: Kernel > Models.  May import from db/base.py only.
Invariants enforced:
    - entry_number is unique and sequential (``JE-000001``).
    - An entry moves DRAFT -> POSTED exactly once.  A POSTED entry is never
      updated or deleted (ORM listeners in db/immutability.py plus
      JournalLedger guards); corrections are new entries whose
      ``reversal_of_id`` points at the entry they compensate.
    - amount is strictly positive.
Audit relevance:
    ``transaction_type``, ``booking_id`` and ``source_id`` tie every entry
    back to the business event that produced it.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from travel_kernel.db.base import TrackedBase, UUIDString


class JournalEntryStatus(str, Enum):
    DRAFT = "draft"
    POSTED = "posted"


class TransactionType(str, Enum):
    """Business event that produced a journal entry."""

    MANUAL = "manual"
    BOOKING_COST = "booking_cost"
    COMMISSION_AGENT = "commission_agent"
    COMMISSION_CS = "commission_cs"
    INVOICE_REVENUE = "invoice_revenue"
    INVOICE_VAT = "invoice_vat"
    RECEIPT = "receipt"
    SUPPLIER_PAYMENT = "supplier_payment"
    REVERSAL = "reversal"


class JournalEntry(TrackedBase):
    """A single debit/credit pair."""

    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint("entry_number", name="uq_journal_entry_number"),
        UniqueConstraint("reversal_of_id", name="uq_journal_reversal_of"),
        CheckConstraint("amount > 0", name="ck_journal_amount_positive"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_booking", "booking_id"),
        Index("idx_journal_source", "source_id"),
    )

    entry_number: Mapped[str] = mapped_column(String(30), nullable=False)

    entry_date: Mapped[date] = mapped_column(nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False)

    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    debit_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    credit_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(20),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    posted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(40),
        default=TransactionType.MANUAL,
        nullable=False,
    )

    # Business links (module tables are not FK targets from the kernel)
    booking_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} {self.amount} {self.status}>"
