"""
Module: travel_kernel.models.account
Responsibility: ORM persistence for the chart of accounts.
Architecture position: Kernel > Models.  May import from db/base.py only.
Invariants enforced:
    - Account.code is unique.
    - Balances change only through JournalLedger.post(): the debit side
      gains ``balance`` and ``debit_balance``, the credit side loses
      ``balance`` and gains ``credit_balance``.  ``balance`` is therefore
      ``debit_balance - credit_balance``.
    - The tree is held by ``parent_id`` on the child; there is no
      back-pointer collection.
Failure modes:
    - AccountNotFoundError when a posting references a missing account.
    - AccountHasDependentsError when deleting an account with children or
      journal entries.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from travel_kernel.db.base import TrackedBase, UUIDString


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class Account(TrackedBase):
    """Chart of accounts node."""

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_parent", "parent_id"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    # Currency restriction (null = any currency)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Signed running balance: debits minus credits
    balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    debit_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    credit_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"
