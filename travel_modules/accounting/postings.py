"""
Automatic ledger postings (``travel_modules.accounting.postings``).

Responsibility
--------------
Maps business events to balanced debit/credit pairs and hands them to the
``JournalLedger``:

=====================  ===========================  =========================
Event                  Debit                        Credit
=====================  ===========================  =========================
booking cost           cost of service (by type)    supplier payables
supplier line cost     cost of service (by type)    supplier payables
agent / CS commission  commission expense           commissions payable
invoice revenue        accounts receivable          revenue (by type)
invoice VAT            accounts receivable          VAT payable
customer receipt       cash on hand / bank          accounts receivable
supplier payment       supplier payables            cash on hand / bank
=====================  ===========================  =========================

With ``auto_post`` off the entries stay DRAFT for review.  Zero amounts
produce no entry.

Failure modes
-------------
* AccountNotFoundError when a configured account code is missing from the
  chart (the chart was not seeded).
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from travel_config.schema import AccountingConfig
from travel_kernel.domain.money import ZERO
from travel_kernel.logging_config import get_logger
from travel_kernel.models.journal import JournalEntry, TransactionType
from travel_kernel.services.chart_service import ChartService
from travel_kernel.services.journal_ledger import JournalEntryInfo, JournalLedger
from travel_modules.booking.details import ServiceType
from travel_modules.booking.orm import BookingSupplierLineModel

logger = get_logger("modules.accounting.postings")

BOOKING_TRANSACTION_TYPES = frozenset(
    {
        TransactionType.BOOKING_COST,
        TransactionType.COMMISSION_AGENT,
        TransactionType.COMMISSION_CS,
        TransactionType.INVOICE_REVENUE,
        TransactionType.INVOICE_VAT,
    }
)

COST_TRANSACTION_TYPES = frozenset(
    {
        TransactionType.BOOKING_COST,
        TransactionType.COMMISSION_AGENT,
        TransactionType.COMMISSION_CS,
    }
)


class LedgerPostings:
    """Builds journal entries for back-office events."""

    def __init__(
        self,
        session: Session,
        journal: JournalLedger,
        chart: ChartService,
        config: AccountingConfig,
    ):
        self.session = session
        self._journal = journal
        self._chart = chart
        self._config = config

    def _account_id(self, code: str) -> UUID:
        return self._chart.get_model_by_code(code).id

    def _record(
        self,
        debit_code: str,
        credit_code: str,
        amount: Decimal,
        description: str,
        actor_id: UUID,
        **kwargs,
    ) -> JournalEntryInfo | None:
        if amount <= 0:
            return None
        debit_id = self._account_id(debit_code)
        credit_id = self._account_id(credit_code)
        if self._config.auto_post:
            return self._journal.create_and_post(
                debit_id, credit_id, amount, description, actor_id, **kwargs
            ).entry
        return self._journal.create_entry(
            debit_id, credit_id, amount, description, actor_id, **kwargs
        )

    # -- account resolution --------------------------------------------------

    def cash_account_code(
        self,
        *,
        bank_currency: str | None = None,
        bank_ledger_code: str | None = None,
    ) -> str:
        """
        Ledger account for money held: the bank's own account code, the
        default bank account for its currency, or cash on hand.
        """
        if bank_ledger_code:
            return bank_ledger_code
        if bank_currency is not None:
            return self._config.bank_account(bank_currency)
        return self._config.account_for_role("cash_on_hand")

    # -- bookings ------------------------------------------------------------

    def post_booking_cost(self, booking, actor_id: UUID) -> list[JournalEntryInfo]:
        """
        Dr cost of service / Cr supplier payables: one entry for the main
        supplier's share of ``cost_in_base`` and one per additional
        supplier line.
        """
        payables = self._config.account_for_role("supplier_payables")
        lines = self.session.scalars(
            select(BookingSupplierLineModel)
            .where(BookingSupplierLineModel.booking_id == booking.id)
            .order_by(BookingSupplierLineModel.position)
        ).all()
        main_cost = booking.cost_in_base - sum((line.cost_in_base for line in lines), ZERO)

        posted = []
        main = self._record(
            self._config.cost_account(ServiceType(booking.service_type).name),
            payables,
            main_cost,
            f"Cost of {booking.booking_number}",
            actor_id,
            transaction_type=TransactionType.BOOKING_COST,
            reference=booking.booking_number,
            booking_id=booking.id,
        )
        if main is not None:
            posted.append(main)
        for line in lines:
            entry = self._record(
                self._config.cost_account(ServiceType(line.service_type).name),
                payables,
                line.cost_in_base,
                f"Cost of {booking.booking_number} line {line.position}",
                actor_id,
                transaction_type=TransactionType.BOOKING_COST,
                reference=booking.booking_number,
                booking_id=booking.id,
                source_id=line.id,
            )
            if entry is not None:
                posted.append(entry)
        return posted

    def post_commissions(self, booking, actor_id: UUID) -> list[JournalEntryInfo]:
        """Dr commission expense / Cr commissions payable, one entry per earner."""
        expense = self._config.account_for_role("commission_expense")
        payable = self._config.account_for_role("commission_payable")
        posted = []
        for amount, transaction_type, label, party_id in (
            (
                booking.agent_commission_amount,
                TransactionType.COMMISSION_AGENT,
                "Agent",
                booking.booking_agent_id,
            ),
            (
                booking.cs_commission_amount,
                TransactionType.COMMISSION_CS,
                "Customer service",
                booking.customer_service_id,
            ),
        ):
            if party_id is None:
                continue
            entry = self._record(
                expense,
                payable,
                amount,
                f"{label} commission on {booking.booking_number}",
                actor_id,
                transaction_type=transaction_type,
                reference=booking.booking_number,
                booking_id=booking.id,
                source_id=party_id,
            )
            if entry is not None:
                posted.append(entry)
        return posted

    def post_booking(self, booking, actor_id: UUID) -> list[JournalEntryInfo]:
        """Cost and commission entries for a confirmed booking."""
        posted = self.post_booking_cost(booking, actor_id)
        posted.extend(self.post_commissions(booking, actor_id))
        return posted

    # -- invoices ------------------------------------------------------------

    def post_invoice_revenue(self, invoice, booking, actor_id: UUID) -> list[JournalEntryInfo]:
        """Dr receivables / Cr revenue for the subtotal, Dr receivables / Cr VAT payable."""
        receivables = self._config.account_for_role("receivables")
        service_type = ServiceType(booking.service_type)
        posted = []
        revenue = self._record(
            receivables,
            self._config.revenue_account(service_type.name),
            invoice.subtotal,
            f"Revenue {invoice.invoice_number}",
            actor_id,
            transaction_type=TransactionType.INVOICE_REVENUE,
            reference=invoice.invoice_number,
            booking_id=booking.id,
            source_id=invoice.id,
        )
        if revenue is not None:
            posted.append(revenue)
        vat = self._record(
            receivables,
            self._config.account_for_role("vat_payable"),
            invoice.vat_amount,
            f"VAT {invoice.invoice_number}",
            actor_id,
            transaction_type=TransactionType.INVOICE_VAT,
            reference=invoice.invoice_number,
            booking_id=booking.id,
            source_id=invoice.id,
        )
        if vat is not None:
            posted.append(vat)
        return posted

    # -- cash movements ------------------------------------------------------

    def post_receipt(
        self,
        receipt,
        cash_code: str,
        actor_id: UUID,
        booking_id: UUID | None = None,
    ) -> JournalEntryInfo | None:
        """Dr cash or bank / Cr receivables for the base-currency amount."""
        return self._record(
            cash_code,
            self._config.account_for_role("receivables"),
            receipt.amount_in_base,
            f"Receipt {receipt.receipt_number}",
            actor_id,
            transaction_type=TransactionType.RECEIPT,
            reference=receipt.receipt_number,
            booking_id=booking_id,
            source_id=receipt.id,
        )

    def post_supplier_payment(
        self, payment, cash_code: str, actor_id: UUID
    ) -> JournalEntryInfo | None:
        """Dr supplier payables / Cr cash or bank for the base-currency amount."""
        return self._record(
            self._config.account_for_role("supplier_payables"),
            cash_code,
            payment.amount_in_base,
            f"Payment {payment.payment_number}",
            actor_id,
            transaction_type=TransactionType.SUPPLIER_PAYMENT,
            reference=payment.payment_number,
            booking_id=payment.booking_id,
            source_id=payment.id,
        )

    # -- compensation --------------------------------------------------------

    def undo_entry(
        self, entry_id: UUID, actor_id: UUID, reason: str | None = None
    ) -> JournalEntryInfo | None:
        """
        Cancel the ledger effect of one entry: drafts are deleted, posted
        entries get a compensating reversal.  Already reversed entries are
        left alone.
        """
        entry = self._journal.get_entry(entry_id)
        if not entry.is_posted:
            self._journal.delete_entry(entry_id)
            return None
        if self._journal.reversal_of(entry_id) is not None:
            return None
        return self._journal.reverse(entry_id, actor_id, reason).entry

    def reverse_booking_entries(
        self,
        booking_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        transaction_types: frozenset[TransactionType] = BOOKING_TRANSACTION_TYPES,
    ) -> list[JournalEntryInfo]:
        """
        Undo every booking or invoice entry recorded for ``booking_id``.

        Receipt and payment entries are excluded; those follow their own
        documents.

        Returns:
            The reversal entries posted.
        """
        stmt = (
            select(JournalEntry.id)
            .where(
                JournalEntry.booking_id == booking_id,
                JournalEntry.transaction_type.in_([t.value for t in transaction_types]),
            )
            .order_by(JournalEntry.entry_number)
        )
        reversals = []
        for entry_id in list(self.session.scalars(stmt)):
            reversal = self.undo_entry(entry_id, actor_id, reason)
            if reversal is not None:
                reversals.append(reversal)
        logger.info(
            "booking_entries_reversed",
            extra={"booking_id": str(booking_id), "reversal_count": len(reversals)},
        )
        return reversals
