"""
Cash Management ORM Models (``travel_modules.cash.orm``).

Bank accounts and cash registers hold a running ``balance`` in their own
currency.  Only the ledger propagation engine writes that balance, as a
side effect of receipts and supplier payments.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from travel_kernel.db.base import TrackedBase
from travel_modules.cash.models import (
    BankAccountInfo,
    CashRegisterInfo,
    PaymentInfo,
    PaymentMethod,
    PaymentStatus,
)


class BankAccountModel(TrackedBase):
    __tablename__ = "bank_accounts"

    __table_args__ = (
        UniqueConstraint("account_number", name="uq_bank_accounts_account_number"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    # Chart account mirroring this bank account; None uses the currency default
    ledger_account_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self) -> BankAccountInfo:
        return BankAccountInfo(
            id=self.id,
            name=self.name,
            bank_name=self.bank_name,
            account_number=self.account_number,
            currency=self.currency,
            balance=self.balance,
            ledger_account_code=self.ledger_account_code,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<BankAccountModel {self.name} {self.balance} {self.currency}>"


class CashRegisterModel(TrackedBase):
    __tablename__ = "cash_registers"

    __table_args__ = (
        UniqueConstraint("name", "currency", name="uq_cash_registers_name_currency"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self) -> CashRegisterInfo:
        return CashRegisterInfo(
            id=self.id,
            name=self.name,
            location=self.location,
            currency=self.currency,
            balance=self.balance,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<CashRegisterModel {self.name} {self.balance} {self.currency}>"


class PaymentModel(TrackedBase):
    """Payment made to a supplier."""

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("payment_number", name="uq_payments_payment_number"),
        Index("idx_payments_supplier_id", "supplier_id"),
        Index("idx_payments_bank_account_id", "bank_account_id"),
    )

    payment_number: Mapped[str] = mapped_column(String(40), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("parties.id"), nullable=False)
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
    booking_id: Mapped[UUID | None] = mapped_column(ForeignKey("bookings.id"), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_date: Mapped[date] = mapped_column(nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(String(20), nullable=False)
    journal_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> PaymentInfo:
        return PaymentInfo(
            id=self.id,
            payment_number=self.payment_number,
            supplier_id=self.supplier_id,
            amount=self.amount,
            currency=self.currency,
            amount_in_base=self.amount_in_base,
            payment_method=PaymentMethod(self.payment_method),
            bank_account_id=self.bank_account_id,
            cash_register_id=self.cash_register_id,
            booking_id=self.booking_id,
            reference=self.reference,
            payment_date=self.payment_date,
            status=PaymentStatus(self.status),
            journal_entry_id=self.journal_entry_id,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<PaymentModel {self.payment_number} {self.amount} {self.currency}>"
