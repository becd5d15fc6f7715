"""
JournalLedger -- double-entry posting primitives.

Responsibility:
    Creates draft journal entries, posts them against account balances,
    deletes drafts and reverses posted entries with compensating entries.

Architecture position:
    Kernel > Services.  Called by the module posting helpers and the ledger
    propagation engine; the only writer of account balances.

Invariants enforced:
    - Posting is one atomic block: debit.balance += amount,
      debit.debit_balance += amount, credit.balance -= amount,
      credit.credit_balance += amount, status -> POSTED, posted_at -> now.
    - An entry is posted exactly once (AlreadyPostedError on the second
      call, with balances untouched).
    - Posted entries are never edited or deleted; ``reverse()`` posts a new
      entry with the sides swapped and ``reversal_of_id`` set.  Each entry
      can be reversed at most once.
    - The entry row and both account rows are locked FOR UPDATE, accounts
      in id order, before balances are read.

Failure modes:
    - JournalEntryNotFoundError / AccountNotFoundError for missing rows.
    - InvalidAmountError for a non-positive amount, ValidationError when
      both sides are the same account.
    - AlreadyPostedError, PostedEntryDeletionError, EntryNotPostedError,
      EntryAlreadyReversedError for state conflicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from travel_kernel.domain.clock import Clock, SystemClock
from travel_kernel.domain.money import round_money, to_decimal
from travel_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyPostedError,
    EntryAlreadyReversedError,
    EntryNotPostedError,
    InvalidAmountError,
    JournalEntryNotFoundError,
    PostedEntryDeletionError,
    ValidationError,
)
from travel_kernel.logging_config import get_logger
from travel_kernel.models.account import Account
from travel_kernel.models.journal import JournalEntry, JournalEntryStatus, TransactionType
from travel_kernel.services.base import BaseService
from travel_kernel.services.chart_service import AccountInfo, ChartService
from travel_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal")


@dataclass(frozen=True)
class JournalEntryInfo:
    """Immutable DTO for a journal entry."""

    id: UUID
    entry_number: str
    entry_date: date
    description: str
    reference: str | None
    debit_account_id: UUID
    credit_account_id: UUID
    amount: Decimal
    status: JournalEntryStatus
    posted_at: datetime | None
    transaction_type: TransactionType
    booking_id: UUID | None
    source_id: UUID | None
    reversal_of_id: UUID | None

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED


@dataclass(frozen=True)
class PostedEntry:
    """Result of a post: the entry plus both accounts after the update."""

    entry: JournalEntryInfo
    debit_account: AccountInfo
    credit_account: AccountInfo


class JournalLedger(BaseService[JournalEntry]):
    """Create, post, delete and reverse journal entries."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
        number_prefix: str = "JE",
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequences = sequences or SequenceService(session)
        self._number_prefix = number_prefix

    @staticmethod
    def to_dto(entry: JournalEntry) -> JournalEntryInfo:
        return JournalEntryInfo(
            id=entry.id,
            entry_number=entry.entry_number,
            entry_date=entry.entry_date,
            description=entry.description,
            reference=entry.reference,
            debit_account_id=entry.debit_account_id,
            credit_account_id=entry.credit_account_id,
            amount=entry.amount,
            status=JournalEntryStatus(entry.status),
            posted_at=entry.posted_at,
            transaction_type=TransactionType(entry.transaction_type),
            booking_id=entry.booking_id,
            source_id=entry.source_id,
            reversal_of_id=entry.reversal_of_id,
        )

    # -- reads ---------------------------------------------------------------

    def _get_model(self, entry_id: UUID) -> JournalEntry:
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise JournalEntryNotFoundError(str(entry_id))
        return entry

    def get_entry(self, entry_id: UUID) -> JournalEntryInfo:
        return self.to_dto(self._get_model(entry_id))

    def list_entries(
        self,
        *,
        booking_id: UUID | None = None,
        source_id: UUID | None = None,
        status: JournalEntryStatus | None = None,
        transaction_type: TransactionType | None = None,
    ) -> list[JournalEntryInfo]:
        stmt = select(JournalEntry).order_by(JournalEntry.entry_number)
        if booking_id is not None:
            stmt = stmt.where(JournalEntry.booking_id == booking_id)
        if source_id is not None:
            stmt = stmt.where(JournalEntry.source_id == source_id)
        if status is not None:
            stmt = stmt.where(JournalEntry.status == status)
        if transaction_type is not None:
            stmt = stmt.where(JournalEntry.transaction_type == transaction_type)
        return [self.to_dto(e) for e in self.session.scalars(stmt)]

    def reversal_of(self, entry_id: UUID) -> JournalEntryInfo | None:
        """The entry that reversed ``entry_id``, if any."""
        reversal = self.session.execute(
            select(JournalEntry).where(JournalEntry.reversal_of_id == entry_id)
        ).scalar_one_or_none()
        return self.to_dto(reversal) if reversal else None

    def subtree_balance(self, account_id: UUID) -> Decimal:
        """Sum of ``balance`` over an account and all of its descendants."""
        if self.session.get(Account, account_id) is None:
            raise AccountNotFoundError(str(account_id))
        tree = (
            select(Account.id)
            .where(Account.id == account_id)
            .cte(name="account_tree", recursive=True)
        )
        tree = tree.union_all(select(Account.id).where(Account.parent_id == tree.c.id))
        total = self.session.scalar(
            select(func.coalesce(func.sum(Account.balance), 0)).where(
                Account.id.in_(select(tree.c.id))
            )
        )
        return round_money(Decimal(str(total)))

    # -- writes --------------------------------------------------------------

    def create_entry(
        self,
        debit_account_id: UUID,
        credit_account_id: UUID,
        amount: object,
        description: str,
        actor_id: UUID,
        *,
        transaction_type: TransactionType = TransactionType.MANUAL,
        reference: str | None = None,
        booking_id: UUID | None = None,
        source_id: UUID | None = None,
        entry_date: date | None = None,
        reversal_of_id: UUID | None = None,
    ) -> JournalEntryInfo:
        """
        Create a DRAFT entry.  Balances are untouched until ``post()``.

        Raises:
            InvalidAmountError: If amount is not a positive number.
            ValidationError: If debit and credit accounts are the same.
            AccountNotFoundError: If either account does not exist.
        """
        value = round_money(to_decimal(amount))
        if value <= 0:
            raise InvalidAmountError("amount", amount, "must be greater than zero")
        if debit_account_id == credit_account_id:
            raise ValidationError("Debit and credit account must differ")
        for account_id in (debit_account_id, credit_account_id):
            if self.session.get(Account, account_id) is None:
                raise AccountNotFoundError(str(account_id))

        entry = JournalEntry(
            entry_number=self._sequences.next_number(self._number_prefix),
            entry_date=entry_date or self._clock.today(),
            description=description,
            reference=reference,
            debit_account_id=debit_account_id,
            credit_account_id=credit_account_id,
            amount=value,
            status=JournalEntryStatus.DRAFT,
            transaction_type=transaction_type,
            booking_id=booking_id,
            source_id=source_id,
            reversal_of_id=reversal_of_id,
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self.session.flush()
        logger.debug(
            "journal_entry_created",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "amount": str(value),
                "transaction_type": transaction_type.value,
            },
        )
        return self.to_dto(entry)

    def _lock_accounts(self, *account_ids: UUID) -> dict[UUID, Account]:
        locked: dict[UUID, Account] = {}
        for account_id in sorted(set(account_ids), key=str):
            account = self.lock_row(Account, account_id)
            if account is None:
                raise AccountNotFoundError(str(account_id))
            locked[account_id] = account
        return locked

    def post(self, entry_id: UUID, actor_id: UUID) -> PostedEntry:
        """
        Apply a DRAFT entry to both account balances and mark it POSTED.

        Raises:
            JournalEntryNotFoundError: If the entry does not exist.
            AlreadyPostedError: If the entry is already posted.
        """
        with self.atomic():
            entry = self.lock_row(JournalEntry, entry_id)
            if entry is None:
                raise JournalEntryNotFoundError(str(entry_id))
            if entry.status == JournalEntryStatus.POSTED:
                logger.warning(
                    "journal_entry_already_posted",
                    extra={"entry_id": str(entry_id), "entry_number": entry.entry_number},
                )
                raise AlreadyPostedError(str(entry_id), entry.entry_number)

            accounts = self._lock_accounts(entry.debit_account_id, entry.credit_account_id)
            debit = accounts[entry.debit_account_id]
            credit = accounts[entry.credit_account_id]
            amount = entry.amount

            debit.balance = debit.balance + amount
            debit.debit_balance = debit.debit_balance + amount
            debit.updated_by_id = actor_id
            credit.balance = credit.balance - amount
            credit.credit_balance = credit.credit_balance + amount
            credit.updated_by_id = actor_id

            entry.status = JournalEntryStatus.POSTED
            entry.posted_at = self._clock.now()
            entry.updated_by_id = actor_id
            self.session.flush()

        logger.info(
            "journal_entry_posted",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "amount": str(amount),
                "debit_account": debit.code,
                "credit_account": credit.code,
            },
        )
        return PostedEntry(
            entry=self.to_dto(entry),
            debit_account=ChartService.to_dto(debit),
            credit_account=ChartService.to_dto(credit),
        )

    def create_and_post(
        self,
        debit_account_id: UUID,
        credit_account_id: UUID,
        amount: object,
        description: str,
        actor_id: UUID,
        **kwargs,
    ) -> PostedEntry:
        """``create_entry`` followed by ``post`` in one atomic block."""
        with self.atomic():
            draft = self.create_entry(
                debit_account_id, credit_account_id, amount, description, actor_id, **kwargs
            )
            return self.post(draft.id, actor_id)

    def delete_entry(self, entry_id: UUID) -> None:
        """
        Delete a DRAFT entry.

        Raises:
            JournalEntryNotFoundError: If the entry does not exist.
            PostedEntryDeletionError: If the entry is posted.
        """
        entry = self._get_model(entry_id)
        if entry.status == JournalEntryStatus.POSTED:
            raise PostedEntryDeletionError(str(entry_id), entry.entry_number)
        self.session.delete(entry)
        self.session.flush()
        logger.info(
            "journal_entry_deleted",
            extra={"entry_id": str(entry_id), "entry_number": entry.entry_number},
        )

    def reverse(self, entry_id: UUID, actor_id: UUID, reason: str | None = None) -> PostedEntry:
        """
        Post a compensating entry with debit and credit swapped.

        Raises:
            JournalEntryNotFoundError: If the entry does not exist.
            EntryNotPostedError: If the entry is still a draft.
            EntryAlreadyReversedError: If the entry was reversed before.
        """
        with self.atomic():
            original = self.lock_row(JournalEntry, entry_id)
            if original is None:
                raise JournalEntryNotFoundError(str(entry_id))
            if original.status != JournalEntryStatus.POSTED:
                raise EntryNotPostedError(str(entry_id), JournalEntryStatus(original.status).value)
            existing = self.reversal_of(entry_id)
            if existing is not None:
                raise EntryAlreadyReversedError(str(entry_id), str(existing.id))

            description = f"Reversal of {original.entry_number}"
            if reason:
                description = f"{description}: {reason}"
            posted = self.create_and_post(
                original.credit_account_id,
                original.debit_account_id,
                original.amount,
                description,
                actor_id,
                transaction_type=TransactionType.REVERSAL,
                reference=original.entry_number,
                booking_id=original.booking_id,
                source_id=original.source_id,
                reversal_of_id=original.id,
            )

        logger.info(
            "journal_entry_reversed",
            extra={
                "entry_id": str(entry_id),
                "reversal_id": str(posted.entry.id),
                "reason": reason,
            },
        )
        return posted
