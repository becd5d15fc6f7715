"""
InvoiceService -- raise invoices from bookings and read them back.

Responsibility:
    One invoice per booking, priced from the booking's computed snapshot
    and posted to the ledger (revenue and VAT).  Payment status changes
    are driven by receipts through the ledger propagation engine; this
    service only derives them.

Invariants enforced:
    - At most one invoice per booking (checked here and by
      uq_invoices_booking_id).
    - subtotal = booking.net_before_vat, vat = total - subtotal,
      total = booking.total_with_vat, currency = base currency.
    - Invoices are issued UNPAID; issuing one confirms a DRAFT booking
      and posts its cost and commission entries.
    - Cancelled or refunded bookings are never invoiced.

Failure modes:
    - BookingNotFoundError, InvoiceNotFoundError for missing rows.
    - InvoiceAlreadyExistsError for a second invoice on a booking.
    - BookingNotEditableError for terminal bookings.
    - AccessDeniedError when a scope is given and excludes the invoice.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from travel_config.schema import BackOfficeConfig
from travel_kernel.domain.access import AccessScope
from travel_kernel.domain.clock import Clock, SystemClock
from travel_kernel.domain.money import ZERO, round_money
from travel_kernel.exceptions import (
    AccessDeniedError,
    BookingNotEditableError,
    BookingNotFoundError,
    InvoiceAlreadyExistsError,
    InvoiceNotFoundError,
)
from travel_kernel.logging_config import LogContext, get_logger
from travel_kernel.models.journal import TransactionType
from travel_kernel.services.base import BaseService
from travel_kernel.services.sequence_service import SequenceService
from travel_modules.accounting.postings import LedgerPostings
from travel_modules.booking.models import BookingStatus
from travel_modules.booking.orm import BookingModel
from travel_modules.invoicing.models import (
    InvoiceInfo,
    InvoiceStatus,
    ReceiptStatus,
    derive_invoice_status,
)
from travel_modules.invoicing.orm import InvoiceModel, ReceiptModel

logger = get_logger("modules.invoicing.service")

INVOICE_TRANSACTION_TYPES = frozenset(
    {TransactionType.INVOICE_REVENUE, TransactionType.INVOICE_VAT}
)

_OVERDUE_CANDIDATES = (InvoiceStatus.UNPAID.value, InvoiceStatus.PARTIALLY_PAID.value)


def total_paid(session: Session, invoice_id: UUID) -> Decimal:
    """Sum of base-currency amounts of the invoice's non-cancelled receipts."""
    total = session.scalar(
        select(func.coalesce(func.sum(ReceiptModel.amount_in_base), 0)).where(
            ReceiptModel.invoice_id == invoice_id,
            ReceiptModel.status != ReceiptStatus.CANCELLED.value,
        )
    )
    return round_money(Decimal(str(total)))


def invoice_amounts(booking: BookingModel) -> tuple[Decimal, Decimal, Decimal]:
    """(subtotal, vat, total) an invoice for ``booking`` carries."""
    subtotal = round_money(booking.net_before_vat)
    total = round_money(booking.total_with_vat)
    return subtotal, total - subtotal, total


class InvoiceService(BaseService[InvoiceModel]):
    """Invoice issuing and lookups."""

    def __init__(
        self,
        session: Session,
        config: BackOfficeConfig,
        postings: LedgerPostings,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
    ):
        super().__init__(session)
        self._config = config
        self._postings = postings
        self._clock = clock or SystemClock()
        self._sequences = sequences or SequenceService(session)

    # -- reads ---------------------------------------------------------------

    def get_model(self, invoice_id: UUID) -> InvoiceModel:
        invoice = self.session.get(InvoiceModel, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def get_invoice(self, invoice_id: UUID, scope: AccessScope | None = None) -> InvoiceInfo:
        """
        Raises:
            InvoiceNotFoundError: If the invoice does not exist.
            AccessDeniedError: If ``scope`` excludes it.
        """
        invoice = self.get_model(invoice_id)
        if scope is not None and not scope.allows(invoice.id):
            raise AccessDeniedError("invoice", str(invoice_id), "not assigned to this customer")
        return invoice.to_dto()

    def find_for_booking(self, booking_id: UUID) -> InvoiceModel | None:
        return self.session.execute(
            select(InvoiceModel).where(InvoiceModel.booking_id == booking_id)
        ).scalar_one_or_none()

    def list_invoices(
        self,
        *,
        scope: AccessScope | None = None,
        status: InvoiceStatus | None = None,
        customer_id: UUID | None = None,
    ) -> list[InvoiceInfo]:
        stmt = select(InvoiceModel).order_by(InvoiceModel.invoice_number)
        if scope is not None:
            stmt = scope.apply(stmt, InvoiceModel.id)
        if status is not None:
            stmt = stmt.where(InvoiceModel.status == status.value)
        if customer_id is not None:
            stmt = stmt.where(InvoiceModel.customer_id == customer_id)
        return [i.to_dto() for i in self.session.scalars(stmt)]

    def total_paid(self, invoice_id: UUID) -> Decimal:
        self.get_model(invoice_id)
        return total_paid(self.session, invoice_id)

    def outstanding_balance(self, invoice_id: UUID) -> Decimal:
        """What is still owed: total less receipts, never below zero."""
        invoice = self.get_model(invoice_id)
        remaining = invoice.total_amount - total_paid(self.session, invoice_id)
        return max(round_money(remaining), ZERO)

    # -- writes --------------------------------------------------------------

    def create_invoice(
        self,
        booking_id: UUID,
        actor_id: UUID,
        *,
        issue_date: date | None = None,
        due_date: date | None = None,
        notes: str | None = None,
    ) -> InvoiceInfo:
        """
        Issue the invoice for a booking and post revenue and VAT.

        Raises:
            BookingNotFoundError: If the booking does not exist.
            BookingNotEditableError: If the booking is cancelled or refunded.
            InvoiceAlreadyExistsError: If the booking is already invoiced.
        """
        with self.atomic():
            booking = self.lock_row(BookingModel, booking_id)
            if booking is None:
                raise BookingNotFoundError(str(booking_id))
            status = BookingStatus(booking.status)
            if status.is_terminal:
                raise BookingNotEditableError(str(booking_id), status.value)
            existing = self.find_for_booking(booking_id)
            if existing is not None:
                raise InvoiceAlreadyExistsError(str(booking_id), existing.invoice_number)

            issued = issue_date or self._clock.today()
            subtotal, vat, total = invoice_amounts(booking)
            invoice = InvoiceModel(
                invoice_number=self._sequences.next_number(
                    self._config.numbering.invoice_prefix, year=issued.year
                ),
                booking_id=booking.id,
                customer_id=booking.customer_id,
                currency=self._config.base_currency,
                subtotal=subtotal,
                vat_amount=vat,
                total_amount=total,
                status=InvoiceStatus.UNPAID,
                issue_date=issued,
                due_date=due_date or issued + timedelta(days=self._config.invoice_due_days),
                notes=notes,
                created_by_id=actor_id,
            )
            self.session.add(invoice)
            self.session.flush()

            if status is BookingStatus.DRAFT:
                booking.status = BookingStatus.CONFIRMED
                booking.updated_by_id = actor_id
                self._postings.post_booking(booking, actor_id)

            self._postings.post_invoice_revenue(invoice, booking, actor_id)
            self.session.flush()

        with LogContext.bind(invoice_id=str(invoice.id), booking_id=str(booking.id)):
            logger.info(
                "invoice_created",
                extra={
                    "invoice_number": invoice.invoice_number,
                    "total_amount": str(total),
                    "vat_amount": str(vat),
                },
            )
        return invoice.to_dto()

    def refresh_from_booking(self, booking: BookingModel, actor_id: UUID) -> InvoiceInfo | None:
        """
        Re-price the booking's invoice after its financials changed.

        The old revenue and VAT entries are reversed and new ones posted.
        The caller guarantees no receipts are held against the invoice.
        """
        invoice = self.find_for_booking(booking.id)
        if invoice is None or invoice.status == InvoiceStatus.CANCELLED:
            return None
        self.lock_row(InvoiceModel, invoice.id)
        subtotal, vat, total = invoice_amounts(booking)
        if (subtotal, vat, total) == (
            invoice.subtotal,
            invoice.vat_amount,
            invoice.total_amount,
        ):
            return invoice.to_dto()

        self._postings.reverse_booking_entries(
            booking.id,
            actor_id,
            reason="invoice re-priced",
            transaction_types=INVOICE_TRANSACTION_TYPES,
        )
        invoice.subtotal = subtotal
        invoice.vat_amount = vat
        invoice.total_amount = total
        invoice.status = derive_invoice_status(
            total, total_paid(self.session, invoice.id), self._config.tax.money_epsilon
        )
        invoice.updated_by_id = actor_id
        self.session.flush()
        self._postings.post_invoice_revenue(invoice, booking, actor_id)
        logger.info(
            "invoice_repriced",
            extra={
                "invoice_id": str(invoice.id),
                "total_amount": str(total),
            },
        )
        return invoice.to_dto()

    def mark_overdue(self, actor_id: UUID, as_of: date | None = None) -> list[InvoiceInfo]:
        """
        Flag UNPAID and PARTIALLY_PAID invoices whose due date has passed.

        The next receipt on such an invoice re-derives its status from the
        amounts, which clears OVERDUE.
        """
        cutoff = as_of or self._clock.today()
        stmt = select(InvoiceModel).where(
            InvoiceModel.status.in_(_OVERDUE_CANDIDATES),
            InvoiceModel.due_date.is_not(None),
            InvoiceModel.due_date < cutoff,
        )
        flagged = []
        for invoice in self.session.scalars(stmt):
            invoice.status = InvoiceStatus.OVERDUE
            invoice.updated_by_id = actor_id
            flagged.append(invoice)
        self.session.flush()
        logger.info(
            "invoices_marked_overdue",
            extra={"as_of": cutoff, "invoice_count": len(flagged)},
        )
        return [i.to_dto() for i in flagged]
