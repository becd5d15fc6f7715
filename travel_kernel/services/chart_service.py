"""
ChartService -- chart of accounts maintenance.

Responsibility:
    Creates accounts, resolves them by code, seeds a chart from
    configuration and refuses to delete accounts that still matter
    (children or journal history).

Invariants enforced:
    - Account codes are unique (checked here and by uq_account_code).
    - An account with children or journal entries is never deleted.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from travel_kernel.exceptions import (
    AccountHasDependentsError,
    AccountNotFoundError,
    DuplicateAccountCodeError,
)
from travel_kernel.logging_config import get_logger
from travel_kernel.models.account import Account, AccountType
from travel_kernel.models.journal import JournalEntry
from travel_kernel.services.base import BaseService

logger = get_logger("services.chart")


@dataclass(frozen=True)
class AccountInfo:
    id: UUID
    code: str
    name: str
    account_type: AccountType
    parent_id: UUID | None
    currency: str | None
    is_active: bool
    balance: Decimal
    debit_balance: Decimal
    credit_balance: Decimal


@dataclass(frozen=True)
class AccountSeed:
    """One line of a chart definition; ``parent_code`` must appear earlier."""

    code: str
    name: str
    account_type: AccountType
    parent_code: str | None = None
    currency: str | None = None


class ChartService(BaseService[Account]):
    """Chart of accounts operations."""

    def __init__(self, session: Session):
        super().__init__(session)

    @staticmethod
    def to_dto(account: Account) -> AccountInfo:
        return AccountInfo(
            id=account.id,
            code=account.code,
            name=account.name,
            account_type=AccountType(account.account_type),
            parent_id=account.parent_id,
            currency=account.currency,
            is_active=account.is_active,
            balance=account.balance,
            debit_balance=account.debit_balance,
            credit_balance=account.credit_balance,
        )

    def _find_model(self, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def get_model_by_code(self, code: str) -> Account:
        """
        Raises:
            AccountNotFoundError: If no account has this code.
        """
        account = self._find_model(code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def get_by_code(self, code: str) -> AccountInfo:
        return self.to_dto(self.get_model_by_code(code))

    def get_by_id(self, account_id: UUID) -> AccountInfo:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return self.to_dto(account)

    def children_of(self, account_id: UUID) -> list[AccountInfo]:
        stmt = select(Account).where(Account.parent_id == account_id).order_by(Account.code)
        return [self.to_dto(a) for a in self.session.scalars(stmt)]

    def create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType,
        actor_id: UUID,
        *,
        parent_code: str | None = None,
        currency: str | None = None,
    ) -> AccountInfo:
        """
        Create an account, optionally under a parent.

        Raises:
            DuplicateAccountCodeError: If the code is taken.
            AccountNotFoundError: If ``parent_code`` does not exist.
        """
        if self._find_model(code) is not None:
            raise DuplicateAccountCodeError(code)
        parent = self.get_model_by_code(parent_code) if parent_code else None
        account = Account(
            code=code,
            name=name,
            account_type=account_type,
            parent_id=parent.id if parent else None,
            currency=currency,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()
        logger.info(
            "account_created",
            extra={"account_code": code, "account_type": account_type.value},
        )
        return self.to_dto(account)

    def seed_chart(self, seeds: Iterable[AccountSeed], actor_id: UUID) -> int:
        """
        Create every account in ``seeds`` that does not exist yet.

        Returns:
            Number of accounts created.  Re-seeding an existing chart
            creates nothing.
        """
        created = 0
        for seed in seeds:
            if self._find_model(seed.code) is not None:
                continue
            self.create_account(
                seed.code,
                seed.name,
                seed.account_type,
                actor_id,
                parent_code=seed.parent_code,
                currency=seed.currency,
            )
            created += 1
        logger.info("chart_seeded", extra={"accounts_created": created})
        return created

    def delete_account(self, code: str) -> None:
        """
        Delete a leaf account that has never been used.

        Raises:
            AccountNotFoundError: If the code does not exist.
            AccountHasDependentsError: If the account has children or any
                journal entry references it.
        """
        account = self.get_model_by_code(code)
        has_children = self.session.scalar(
            select(func.count()).select_from(Account).where(Account.parent_id == account.id)
        )
        if has_children:
            raise AccountHasDependentsError(code, "account has sub-accounts")
        has_entries = self.session.scalar(
            select(func.count())
            .select_from(JournalEntry)
            .where(
                or_(
                    JournalEntry.debit_account_id == account.id,
                    JournalEntry.credit_account_id == account.id,
                )
            )
        )
        if has_entries:
            raise AccountHasDependentsError(code, "account has journal entries")
        self.session.delete(account)
        self.session.flush()
        logger.info("account_deleted", extra={"account_code": code})
