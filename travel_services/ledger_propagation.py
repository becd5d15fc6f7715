"""
LedgerPropagationEngine -- keeps money, documents and statuses consistent.

Responsibility:
    Every write that moves money runs here: customer receipts, supplier
    payments and booking cancellation with refund.  Each one updates the
    document, the cash position (bank account or cash register), the
    journal and the dependent statuses in a single atomic block.

Architecture position:
    Services layer.  Composes the invoicing, cash, booking and accounting
    modules with the kernel journal and currency services.

Invariants enforced:
    - Invoice payment status is recomputed from scratch after every
      receipt change: paid = sum of ``amount_in_base`` over receipts that
      are not CANCELLED, then ``derive_invoice_status``.  Running it twice
      changes nothing.  CANCELLED invoices are never recomputed.
    - Invoice PAID forces its booking to COMPLETE; an invoice leaving PAID
      moves a COMPLETE booking back to CONFIRMED.  CANCELLED and REFUND
      bookings are never touched.
    - Edits are reverse-then-reapply: the old cash effect and journal entry
      are undone in full, then the new ones applied.  The cash effect is
      undone from the delta stored on the document, so a rate change in
      between never leaves a balance off.
    - Cancellation keeps the original booking row (status CANCELLED), adds
      a REFUND booking with negated amounts and negated copies of its
      supplier lines, cancels the invoice (recording
      a credit note when it was PAID) and reverses the booking's journal
      entries.  Invoices and receipts are never deleted by it.
    - Rows are locked (SELECT ... FOR UPDATE) before they are read for an
      update; every operation runs inside ``atomic()`` so a failure leaves
      no partial state.

Failure modes:
    - ValidationError subclasses (InvalidAmountError, OverpaymentError,
      ReceiptCustomerMismatchError, PartyTypeMismatchError,
      InvalidEnumValueError) for bad input.
    - NotFoundError subclasses for missing rows.
    - ConflictError subclasses (InvoiceCancelledError,
      InvoiceAlreadyPaidError, BookingAlreadyCancelledError,
      BookingNotEditableError) for invalid state transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from travel_config.schema import BackOfficeConfig
from travel_kernel.domain.clock import Clock, SystemClock
from travel_kernel.domain.currency import RateTable, normalize_code
from travel_kernel.domain.money import round_money, to_decimal
from travel_kernel.exceptions import (
    BankAccountNotFoundError,
    BookingAlreadyCancelledError,
    BookingNotEditableError,
    BookingNotFoundError,
    CashRegisterNotFoundError,
    InvalidAmountError,
    InvoiceAlreadyPaidError,
    InvoiceCancelledError,
    InvoiceNotFoundError,
    OverpaymentError,
    PaymentNotFoundError,
    ReceiptCustomerMismatchError,
    ReceiptNotFoundError,
)
from travel_kernel.logging_config import LogContext, get_logger
from travel_kernel.models.party import PartyType
from travel_kernel.services.base import BaseService
from travel_kernel.services.currency_service import CurrencyService
from travel_kernel.services.journal_ledger import JournalEntryInfo
from travel_kernel.services.party_service import PartyService
from travel_kernel.services.sequence_service import SequenceService
from travel_modules.accounting.postings import LedgerPostings
from travel_modules.booking.models import BookingInfo, BookingStatus
from travel_modules.booking.orm import BookingModel, BookingSupplierLineModel
from travel_modules.cash.models import (
    PaymentInfo,
    PaymentMethod,
    PaymentPatch,
    PaymentRequest,
    PaymentStatus,
)
from travel_modules.cash.orm import BankAccountModel, CashRegisterModel, PaymentModel
from travel_modules.invoicing.models import (
    InvoiceInfo,
    InvoiceStatus,
    MatchingStatus,
    ReceiptInfo,
    ReceiptPatch,
    ReceiptRequest,
    ReceiptStatus,
    derive_invoice_status,
)
from travel_modules.invoicing.orm import InvoiceModel, ReceiptModel
from travel_modules.invoicing.service import total_paid

logger = get_logger("services.ledger_propagation")

# (model, row id) of the bank account or cash register a document moves
CashHolder = tuple[type[BankAccountModel] | type[CashRegisterModel], UUID]


@dataclass(frozen=True)
class CancellationResult:
    """Outcome of ``cancel_booking``."""

    booking: BookingInfo
    refund_booking: BookingInfo
    invoice: InvoiceInfo | None
    credit_note_number: str | None
    credit_note_amount: Decimal | None
    reversals: tuple[JournalEntryInfo, ...]


class LedgerPropagationEngine(BaseService[InvoiceModel]):
    """Atomic propagation of receipts, payments and cancellations."""

    def __init__(
        self,
        session: Session,
        config: BackOfficeConfig,
        currency: CurrencyService,
        postings: LedgerPostings,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
    ):
        super().__init__(session)
        self._config = config
        self._currency = currency
        self._postings = postings
        self._clock = clock or SystemClock()
        self._sequences = sequences or SequenceService(session)
        self._parties = PartyService(session)

    @property
    def _epsilon(self) -> Decimal:
        return self._config.tax.money_epsilon

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _positive_amount(value: object) -> Decimal:
        amount = round_money(to_decimal(value, "amount"))
        if amount <= 0:
            raise InvalidAmountError("amount", value, "must be greater than zero")
        return amount

    def _check_bank_account(self, bank_account_id: UUID | None) -> BankAccountModel | None:
        if bank_account_id is None:
            return None
        bank = self.session.get(BankAccountModel, bank_account_id)
        if bank is None:
            raise BankAccountNotFoundError(str(bank_account_id))
        return bank

    def _check_cash_register(self, register_id: UUID | None) -> CashRegisterModel | None:
        if register_id is None:
            return None
        register = self.session.get(CashRegisterModel, register_id)
        if register is None:
            raise CashRegisterNotFoundError(str(register_id))
        return register

    def _lock_holder(self, holder: CashHolder) -> BankAccountModel | CashRegisterModel:
        model, row_id = holder
        row = self.lock_row(model, row_id)
        if row is None:
            if model is BankAccountModel:
                raise BankAccountNotFoundError(str(row_id))
            raise CashRegisterNotFoundError(str(row_id))
        return row

    def _move_balance(
        self, row: BankAccountModel | CashRegisterModel, delta: Decimal, actor_id: UUID
    ) -> None:
        row.balance = row.balance + delta
        row.updated_by_id = actor_id
        logger.debug(
            "cash_balance_adjusted",
            extra={
                "holder": row.__tablename__,
                "holder_id": str(row.id),
                "delta": str(delta),
                "currency": row.currency,
            },
        )

    def _apply_cash(
        self,
        document: ReceiptModel | PaymentModel,
        holder: CashHolder | None,
        sign: int,
        rates: RateTable,
        actor_id: UUID,
    ) -> None:
        """
        Move the holder's balance by the document amount and record the
        delta on ``document.holder_amount``.
        """
        document.holder_amount = None
        if holder is None:
            return
        row = self._lock_holder(holder)
        delta = sign * round_money(rates.convert(document.amount, document.currency, row.currency))
        self._move_balance(row, delta, actor_id)
        document.holder_amount = delta

    def _undo_cash(
        self,
        document: ReceiptModel | PaymentModel,
        holder: CashHolder | None,
        actor_id: UUID,
    ) -> None:
        """Take back exactly the delta ``_apply_cash`` recorded."""
        if holder is None or document.holder_amount is None:
            return
        self._move_balance(self._lock_holder(holder), -document.holder_amount, actor_id)
        document.holder_amount = None

    def _cash_code(
        self, method: PaymentMethod, bank: BankAccountModel | None, currency: str
    ) -> str:
        if bank is not None:
            return self._postings.cash_account_code(
                bank_currency=bank.currency, bank_ledger_code=bank.ledger_account_code
            )
        if method is PaymentMethod.CASH:
            return self._postings.cash_account_code()
        return self._postings.cash_account_code(bank_currency=currency)

    def _undo_journal(self, row, actor_id: UUID, reason: str) -> None:
        entry_id = row.journal_entry_id
        if entry_id is None:
            return
        row.journal_entry_id = None
        self.session.flush()
        self._postings.undo_entry(entry_id, actor_id, reason)

    # ------------------------------------------------------------------
    # Invoice / booking status
    # ------------------------------------------------------------------

    def recompute_invoice_status(self, invoice_id: UUID, actor_id: UUID) -> InvoiceInfo:
        """
        Re-derive an invoice's status from its receipts and propagate the
        result to the booking.  Idempotent.

        Raises:
            InvoiceNotFoundError: If the invoice does not exist.
        """
        with self.atomic():
            invoice = self.lock_row(InvoiceModel, invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(str(invoice_id))
            if invoice.status == InvoiceStatus.CANCELLED:
                return invoice.to_dto()

            previous = InvoiceStatus(invoice.status)
            paid = total_paid(self.session, invoice_id)
            status = derive_invoice_status(invoice.total_amount, paid, self._epsilon)
            if status is not previous:
                invoice.status = status
                invoice.paid_date = self._clock.today() if status is InvoiceStatus.PAID else None
                invoice.updated_by_id = actor_id
            self._propagate_to_booking(invoice, status, actor_id)
            self.session.flush()

        if status is not previous:
            logger.info(
                "invoice_status_changed",
                extra={
                    "invoice_id": str(invoice_id),
                    "from_status": previous.value,
                    "to_status": status.value,
                    "total_paid": str(paid),
                },
            )
        return invoice.to_dto()

    def _propagate_to_booking(
        self, invoice: InvoiceModel, status: InvoiceStatus, actor_id: UUID
    ) -> None:
        booking = self.lock_row(BookingModel, invoice.booking_id)
        if booking is None:
            return
        current = BookingStatus(booking.status)
        if current.is_terminal:
            return
        if status is InvoiceStatus.PAID and current is not BookingStatus.COMPLETE:
            target = BookingStatus.COMPLETE
        elif status is not InvoiceStatus.PAID and current is BookingStatus.COMPLETE:
            target = BookingStatus.CONFIRMED
        else:
            return
        booking.status = target
        booking.updated_by_id = actor_id
        logger.info(
            "booking_status_propagated",
            extra={
                "booking_id": str(booking.id),
                "from_status": current.value,
                "to_status": target.value,
                "invoice_status": status.value,
            },
        )

    # ------------------------------------------------------------------
    # Receipts
    # ------------------------------------------------------------------

    def _lock_invoice_for_receipt(
        self,
        invoice_id: UUID,
        customer_id: UUID,
        amount_in_base: Decimal,
        exclude_receipt_id: UUID | None = None,
    ) -> InvoiceModel:
        invoice = self.lock_row(InvoiceModel, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        if invoice.status == InvoiceStatus.CANCELLED:
            raise InvoiceCancelledError(str(invoice_id))
        if invoice.customer_id != customer_id:
            raise ReceiptCustomerMismatchError(str(invoice_id), str(customer_id))

        stmt = select(func.coalesce(func.sum(ReceiptModel.amount_in_base), 0)).where(
            ReceiptModel.invoice_id == invoice_id,
            ReceiptModel.status != ReceiptStatus.CANCELLED.value,
        )
        if exclude_receipt_id is not None:
            stmt = stmt.where(ReceiptModel.id != exclude_receipt_id)
        paid = round_money(Decimal(str(self.session.scalar(stmt))))
        remaining = invoice.total_amount - paid

        if exclude_receipt_id is None and remaining <= self._epsilon:
            raise InvoiceAlreadyPaidError(str(invoice_id))
        if amount_in_base > remaining + self._epsilon:
            raise OverpaymentError(str(invoice_id), str(amount_in_base), str(remaining))
        return invoice

    @staticmethod
    def _receipt_holder(receipt: ReceiptModel) -> CashHolder | None:
        """Completed receipts go into their bank account, else their register."""
        if receipt.status != ReceiptStatus.COMPLETED:
            return None
        if receipt.bank_account_id is not None:
            return BankAccountModel, receipt.bank_account_id
        if receipt.cash_register_id is not None:
            return CashRegisterModel, receipt.cash_register_id
        return None

    def _post_receipt(self, receipt: ReceiptModel, actor_id: UUID) -> None:
        if receipt.status != ReceiptStatus.COMPLETED:
            return
        bank = self._check_bank_account(receipt.bank_account_id)
        booking_id = None
        if receipt.invoice_id is not None:
            booking_id = self.session.get(InvoiceModel, receipt.invoice_id).booking_id
        entry = self._postings.post_receipt(
            receipt,
            self._cash_code(PaymentMethod(receipt.payment_method), bank, receipt.currency),
            actor_id,
            booking_id=booking_id,
        )
        receipt.journal_entry_id = entry.id if entry is not None else None

    @staticmethod
    def _set_matching(receipt: ReceiptModel) -> None:
        if receipt.invoice_id is None:
            receipt.matching_status = MatchingStatus.NOT_MATCHED
            receipt.matched_amount = Decimal("0")
        else:
            receipt.matching_status = MatchingStatus.MATCHED
            receipt.matched_amount = receipt.amount_in_base

    def record_receipt(self, request: ReceiptRequest, actor_id: UUID) -> ReceiptInfo:
        """
        Record money received from a customer.

        Validates against the invoice, increments the bank account or cash
        register, posts Dr cash/bank / Cr receivables and recomputes the
        invoice status.

        Raises:
            InvalidAmountError: If the amount is not positive.
            PartyTypeMismatchError: If ``customer_id`` is not a customer.
            InvoiceCancelledError / InvoiceAlreadyPaidError: For an invoice
                that cannot take money.
            OverpaymentError: If the amount exceeds what is still owed.
            ReceiptCustomerMismatchError: If the invoice is someone else's.
        """
        amount = self._positive_amount(request.amount)
        method = PaymentMethod.parse(request.payment_method)
        currency = normalize_code(request.currency)
        self._parties.get_model(request.customer_id, PartyType.CUSTOMER)
        self._check_bank_account(request.bank_account_id)
        self._check_cash_register(request.cash_register_id)
        receipt_date = request.receipt_date or self._clock.today()

        with self.atomic():
            rates = self._currency.rate_table()
            amount_in_base = round_money(rates.to_base(amount, currency))
            if request.invoice_id is not None:
                self._lock_invoice_for_receipt(
                    request.invoice_id, request.customer_id, amount_in_base
                )

            receipt = ReceiptModel(
                receipt_number=self._sequences.next_number(
                    self._config.numbering.receipt_prefix, width=4, year=receipt_date.year
                ),
                customer_id=request.customer_id,
                invoice_id=request.invoice_id,
                amount=amount,
                currency=currency,
                amount_in_base=amount_in_base,
                payment_method=method,
                bank_account_id=request.bank_account_id,
                cash_register_id=request.cash_register_id,
                reference=request.reference,
                receipt_date=receipt_date,
                status=ReceiptStatus.COMPLETED,
                notes=request.notes,
                created_by_id=actor_id,
            )
            self._set_matching(receipt)
            self.session.add(receipt)
            self.session.flush()

            self._apply_cash(receipt, self._receipt_holder(receipt), +1, rates, actor_id)
            self._post_receipt(receipt, actor_id)
            self.session.flush()
            if receipt.invoice_id is not None:
                self.recompute_invoice_status(receipt.invoice_id, actor_id)

        with LogContext.bind(
            invoice_id=str(receipt.invoice_id) if receipt.invoice_id else None
        ):
            logger.info(
                "receipt_recorded",
                extra={
                    "receipt_id": str(receipt.id),
                    "receipt_number": receipt.receipt_number,
                    "amount": str(amount),
                    "currency": currency,
                    "amount_in_base": str(amount_in_base),
                },
            )
        return receipt.to_dto()

    def update_receipt(
        self, receipt_id: UUID, patch: ReceiptPatch, actor_id: UUID
    ) -> ReceiptInfo:
        """
        Edit a receipt: undo its old effects, apply the patch, reapply.

        The receipt's own amount is excluded when checking the invoice's
        remaining balance.  Both the old and the new invoice (when the
        receipt moves) are recomputed.

        Raises:
            ReceiptNotFoundError: If the receipt does not exist.
            Otherwise as for ``record_receipt``.
        """
        changes = patch.changes()
        with self.atomic():
            receipt = self.lock_row(ReceiptModel, receipt_id)
            if receipt is None:
                raise ReceiptNotFoundError(str(receipt_id))
            old_invoice_id = receipt.invoice_id
            rates = self._currency.rate_table()

            self._undo_cash(receipt, self._receipt_holder(receipt), actor_id)
            self._undo_journal(receipt, actor_id, "receipt amended")

            if "amount" in changes:
                receipt.amount = self._positive_amount(changes["amount"])
            if "currency" in changes:
                receipt.currency = normalize_code(changes["currency"])
            if "payment_method" in changes:
                receipt.payment_method = PaymentMethod.parse(changes["payment_method"])
            if "bank_account_id" in changes:
                self._check_bank_account(changes["bank_account_id"])
                receipt.bank_account_id = changes["bank_account_id"]
            if "cash_register_id" in changes:
                self._check_cash_register(changes["cash_register_id"])
                receipt.cash_register_id = changes["cash_register_id"]
            if "status" in changes:
                receipt.status = ReceiptStatus(changes["status"])
            for name in ("invoice_id", "reference", "receipt_date", "notes"):
                if name in changes:
                    setattr(receipt, name, changes[name])
            receipt.amount_in_base = round_money(rates.to_base(receipt.amount, receipt.currency))

            if receipt.invoice_id is not None and receipt.status != ReceiptStatus.CANCELLED:
                self._lock_invoice_for_receipt(
                    receipt.invoice_id,
                    receipt.customer_id,
                    receipt.amount_in_base,
                    exclude_receipt_id=receipt.id,
                )
            self._set_matching(receipt)
            receipt.updated_by_id = actor_id
            self.session.flush()

            self._apply_cash(receipt, self._receipt_holder(receipt), +1, rates, actor_id)
            self._post_receipt(receipt, actor_id)
            self.session.flush()
            for invoice_id in {old_invoice_id, receipt.invoice_id} - {None}:
                self.recompute_invoice_status(invoice_id, actor_id)

        logger.info(
            "receipt_updated",
            extra={
                "receipt_id": str(receipt_id),
                "fields": sorted(changes),
                "amount_in_base": str(receipt.amount_in_base),
            },
        )
        return receipt.to_dto()

    def delete_receipt(self, receipt_id: UUID, actor_id: UUID) -> InvoiceInfo | None:
        """
        Remove a receipt, reversing its cash effect and journal entry.

        Returns:
            The recomputed invoice the receipt was matched to, if any.
        """
        with self.atomic():
            receipt = self.lock_row(ReceiptModel, receipt_id)
            if receipt is None:
                raise ReceiptNotFoundError(str(receipt_id))
            invoice_id = receipt.invoice_id
            number = receipt.receipt_number

            self._undo_cash(receipt, self._receipt_holder(receipt), actor_id)
            self._undo_journal(receipt, actor_id, f"receipt {number} deleted")
            self.session.delete(receipt)
            self.session.flush()
            invoice = (
                self.recompute_invoice_status(invoice_id, actor_id) if invoice_id else None
            )

        logger.info(
            "receipt_deleted",
            extra={"receipt_id": str(receipt_id), "receipt_number": number},
        )
        return invoice

    def get_receipt(self, receipt_id: UUID) -> ReceiptInfo:
        receipt = self.session.get(ReceiptModel, receipt_id)
        if receipt is None:
            raise ReceiptNotFoundError(str(receipt_id))
        return receipt.to_dto()

    def list_receipts(
        self,
        *,
        invoice_id: UUID | None = None,
        customer_id: UUID | None = None,
    ) -> list[ReceiptInfo]:
        stmt = select(ReceiptModel).order_by(ReceiptModel.receipt_number)
        if invoice_id is not None:
            stmt = stmt.where(ReceiptModel.invoice_id == invoice_id)
        if customer_id is not None:
            stmt = stmt.where(ReceiptModel.customer_id == customer_id)
        return [r.to_dto() for r in self.session.scalars(stmt)]

    # ------------------------------------------------------------------
    # Supplier payments
    # ------------------------------------------------------------------

    @staticmethod
    def _payment_holder(payment: PaymentModel) -> CashHolder | None:
        """BANK payments draw on their bank account, CASH on their register."""
        if payment.status == PaymentStatus.CANCELLED:
            return None
        method = PaymentMethod(payment.payment_method)
        if method is PaymentMethod.BANK and payment.bank_account_id is not None:
            return BankAccountModel, payment.bank_account_id
        if method is PaymentMethod.CASH and payment.cash_register_id is not None:
            return CashRegisterModel, payment.cash_register_id
        return None

    def _post_payment(self, payment: PaymentModel, actor_id: UUID) -> None:
        if payment.status == PaymentStatus.CANCELLED:
            return
        bank = self._check_bank_account(payment.bank_account_id)
        entry = self._postings.post_supplier_payment(
            payment,
            self._cash_code(PaymentMethod(payment.payment_method), bank, payment.currency),
            actor_id,
        )
        payment.journal_entry_id = entry.id if entry is not None else None

    def record_payment(self, request: PaymentRequest, actor_id: UUID) -> PaymentInfo:
        """
        Record a payment to a supplier.

        Raises:
            InvalidAmountError: If the amount is not positive.
            PartyTypeMismatchError: If ``supplier_id`` is not a supplier.
            BankAccountNotFoundError / CashRegisterNotFoundError /
                BookingNotFoundError: For dangling references.
        """
        amount = self._positive_amount(request.amount)
        method = PaymentMethod.parse(request.payment_method)
        currency = normalize_code(request.currency)
        self._parties.get_model(request.supplier_id, PartyType.SUPPLIER)
        self._check_bank_account(request.bank_account_id)
        self._check_cash_register(request.cash_register_id)
        if request.booking_id is not None and self.session.get(BookingModel, request.booking_id) is None:
            raise BookingNotFoundError(str(request.booking_id))
        payment_date = request.payment_date or self._clock.today()

        with self.atomic():
            rates = self._currency.rate_table()
            payment = PaymentModel(
                payment_number=self._sequences.next_number(
                    self._config.numbering.payment_prefix, width=4, year=payment_date.year
                ),
                supplier_id=request.supplier_id,
                amount=amount,
                currency=currency,
                amount_in_base=round_money(rates.to_base(amount, currency)),
                payment_method=method,
                bank_account_id=request.bank_account_id,
                cash_register_id=request.cash_register_id,
                booking_id=request.booking_id,
                reference=request.reference,
                payment_date=payment_date,
                status=PaymentStatus(request.status),
                notes=request.notes,
                created_by_id=actor_id,
            )
            self.session.add(payment)
            self.session.flush()
            self._apply_cash(payment, self._payment_holder(payment), -1, rates, actor_id)
            self._post_payment(payment, actor_id)
            self.session.flush()

        logger.info(
            "payment_recorded",
            extra={
                "payment_id": str(payment.id),
                "payment_number": payment.payment_number,
                "amount": str(amount),
                "currency": currency,
                "payment_method": method.value,
            },
        )
        return payment.to_dto()

    def update_payment(
        self, payment_id: UUID, patch: PaymentPatch, actor_id: UUID
    ) -> PaymentInfo:
        """Reverse the payment's old effects, apply the patch, reapply."""
        changes = patch.changes()
        with self.atomic():
            payment = self.lock_row(PaymentModel, payment_id)
            if payment is None:
                raise PaymentNotFoundError(str(payment_id))
            rates = self._currency.rate_table()

            self._undo_cash(payment, self._payment_holder(payment), actor_id)
            self._undo_journal(payment, actor_id, "payment amended")

            if "amount" in changes:
                payment.amount = self._positive_amount(changes["amount"])
            if "currency" in changes:
                payment.currency = normalize_code(changes["currency"])
            if "payment_method" in changes:
                payment.payment_method = PaymentMethod.parse(changes["payment_method"])
            if "bank_account_id" in changes:
                self._check_bank_account(changes["bank_account_id"])
                payment.bank_account_id = changes["bank_account_id"]
            if "cash_register_id" in changes:
                self._check_cash_register(changes["cash_register_id"])
                payment.cash_register_id = changes["cash_register_id"]
            if "status" in changes:
                payment.status = PaymentStatus(changes["status"])
            for name in ("reference", "payment_date", "notes"):
                if name in changes:
                    setattr(payment, name, changes[name])
            payment.amount_in_base = round_money(rates.to_base(payment.amount, payment.currency))
            payment.updated_by_id = actor_id
            self.session.flush()

            self._apply_cash(payment, self._payment_holder(payment), -1, rates, actor_id)
            self._post_payment(payment, actor_id)
            self.session.flush()

        logger.info(
            "payment_updated",
            extra={"payment_id": str(payment_id), "fields": sorted(changes)},
        )
        return payment.to_dto()

    def delete_payment(self, payment_id: UUID, actor_id: UUID) -> None:
        """Remove a payment, giving its amount back to the bank or register."""
        with self.atomic():
            payment = self.lock_row(PaymentModel, payment_id)
            if payment is None:
                raise PaymentNotFoundError(str(payment_id))
            number = payment.payment_number
            self._undo_cash(payment, self._payment_holder(payment), actor_id)
            self._undo_journal(payment, actor_id, f"payment {number} deleted")
            self.session.delete(payment)
            self.session.flush()

        logger.info(
            "payment_deleted",
            extra={"payment_id": str(payment_id), "payment_number": number},
        )

    # ------------------------------------------------------------------
    # Cancellation with refund
    # ------------------------------------------------------------------

    def cancel_booking(
        self, booking_id: UUID, actor_id: UUID, reason: str | None = None
    ) -> CancellationResult:
        """
        Cancel a booking and book the refund.

        Raises:
            BookingNotFoundError: If the booking does not exist.
            BookingAlreadyCancelledError: If it is already cancelled.
            BookingNotEditableError: If it is itself a refund booking.
        """
        with self.atomic():
            original = self.lock_row(BookingModel, booking_id)
            if original is None:
                raise BookingNotFoundError(str(booking_id))
            status = BookingStatus(original.status)
            if status is BookingStatus.CANCELLED:
                raise BookingAlreadyCancelledError(str(booking_id))
            if status is BookingStatus.REFUND:
                raise BookingNotEditableError(str(booking_id), status.value)

            today = self._clock.today()
            note = f"Cancelled: booking {original.booking_number}"
            if reason:
                note = f"{note} ({reason})"

            invoice = self.session.execute(
                select(InvoiceModel).where(InvoiceModel.booking_id == booking_id)
            ).scalar_one_or_none()
            credit_note_number = None
            credit_note_amount = None
            if invoice is not None:
                invoice = self.lock_row(InvoiceModel, invoice.id)
                if invoice.status != InvoiceStatus.CANCELLED:
                    if invoice.status == InvoiceStatus.PAID:
                        credit_note_number = self._sequences.next_number(
                            self._config.numbering.credit_note_prefix, year=today.year
                        )
                        credit_note_amount = invoice.total_amount
                        invoice.credit_note_number = credit_note_number
                        invoice.credit_note_amount = credit_note_amount
                    invoice.status = InvoiceStatus.CANCELLED
                    invoice.notes = "\n".join(filter(None, [invoice.notes, note]))
                    invoice.updated_by_id = actor_id

            reversals = self._postings.reverse_booking_entries(
                booking_id, actor_id, reason=note
            )

            refund = BookingModel(
                booking_number=self._sequences.next_number(
                    self._config.numbering.refund_prefix, year=today.year
                ),
                status=BookingStatus.REFUND,
                service_type=original.service_type,
                customer_id=original.customer_id,
                supplier_id=original.supplier_id,
                booking_agent_id=original.booking_agent_id,
                customer_service_id=original.customer_service_id,
                sale_amount=-original.sale_amount,
                sale_currency=original.sale_currency,
                cost_amount=-original.cost_amount,
                cost_currency=original.cost_currency,
                is_local_tax_zone=original.is_local_tax_zone,
                vat_applicable=original.vat_applicable,
                agent_commission_rate=original.agent_commission_rate,
                cs_commission_rate=original.cs_commission_rate,
                sale_in_base=-original.sale_in_base,
                cost_in_base=-original.cost_in_base,
                net_before_vat=-original.net_before_vat,
                vat_amount=-original.vat_amount,
                total_with_vat=-original.total_with_vat,
                gross_profit=-original.gross_profit,
                agent_commission_amount=-original.agent_commission_amount,
                cs_commission_amount=-original.cs_commission_amount,
                total_commission=-original.total_commission,
                net_profit=-original.net_profit,
                service_details=dict(original.service_details),
                travel_date=original.travel_date,
                return_date=original.return_date,
                notes=f"Refund for cancelled booking {original.booking_number}",
                refund_of_id=original.id,
                created_by_id=actor_id,
            )
            self.session.add(refund)
            self.session.flush()
            lines = self.session.scalars(
                select(BookingSupplierLineModel)
                .where(BookingSupplierLineModel.booking_id == booking_id)
                .order_by(BookingSupplierLineModel.position)
            ).all()
            for line in lines:
                self.session.add(
                    BookingSupplierLineModel(
                        booking_id=refund.id,
                        supplier_id=line.supplier_id,
                        position=line.position,
                        service_type=line.service_type,
                        cost_amount=-line.cost_amount,
                        cost_currency=line.cost_currency,
                        cost_in_base=-line.cost_in_base,
                        sale_amount=-line.sale_amount,
                        sale_currency=line.sale_currency,
                        sale_in_base=-line.sale_in_base,
                        description=f"REFUND: {line.description or original.booking_number}",
                        created_by_id=actor_id,
                    )
                )

            original.status = BookingStatus.CANCELLED
            original.updated_by_id = actor_id
            self.session.flush()

        with LogContext.bind(booking_id=str(booking_id)):
            logger.info(
                "booking_cancelled",
                extra={
                    "booking_number": original.booking_number,
                    "refund_booking_number": refund.booking_number,
                    "invoice_id": str(invoice.id) if invoice is not None else None,
                    "credit_note_number": credit_note_number,
                    "reversal_count": len(reversals),
                    "supplier_line_count": len(lines),
                },
            )
        return CancellationResult(
            booking=original.to_dto(),
            refund_booking=refund.to_dto(),
            invoice=invoice.to_dto() if invoice is not None else None,
            credit_note_number=credit_note_number,
            credit_note_amount=credit_note_amount,
            reversals=tuple(reversals),
        )
