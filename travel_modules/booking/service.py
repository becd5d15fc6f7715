"""
BookingService -- the booking lifecycle up to cancellation.

Responsibility:
    Creates, confirms, edits, reads and deletes bookings.  Every computed
    money field comes from ``calculate_booking_financials``; nothing else
    writes them.  Cancellation with refund belongs to the ledger
    propagation engine because it also touches invoices.

Architecture position:
    Modules layer.  Commission overrides from customer assignments come in
    through an injected ``commission_lookup`` callable so this module does
    not import the services layer.

Invariants enforced:
    - Bookings are created CONFIRMED unless requested as drafts.  DRAFT
      bookings post nothing; confirming posts cost and commission entries.
    - Commission rate resolution order: explicit rate, then the active
      assignment override for the employee's user, then the employee's
      default rate, then zero.
    - CANCELLED and REFUND bookings are read-only.
    - A financial edit re-posts the cost and commission entries (reverse
      then post) and re-prices an unpaid invoice.  Once money was received
      against the invoice the financials are frozen.
    - A booking's cost_in_base is the main supplier's cost plus every
      additional supplier line's cost_in_base; each line posts its own
      cost entry.
    - Only DRAFT bookings with no invoice or payment can be deleted.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from travel_config.schema import BackOfficeConfig
from travel_kernel.domain.access import AccessScope
from travel_kernel.domain.clock import Clock, SystemClock
from travel_kernel.domain.currency import RateTable, normalize_code
from travel_kernel.domain.money import ZERO, round_money, to_decimal
from travel_kernel.exceptions import (
    AccessDeniedError,
    BookingHasDependentsError,
    BookingNotEditableError,
    BookingNotFoundError,
    InvalidAmountError,
    ValidationError,
)
from travel_kernel.logging_config import LogContext, get_logger
from travel_kernel.models.party import Party, PartyType
from travel_kernel.services.base import BaseService
from travel_kernel.services.currency_service import CurrencyService
from travel_kernel.services.party_service import PartyService
from travel_kernel.services.sequence_service import SequenceService
from travel_modules.accounting.postings import COST_TRANSACTION_TYPES, LedgerPostings
from travel_modules.booking.calculator import (
    BookingFinancialInput,
    BookingFinancials,
    FinancialSummary,
    calculate_booking_financials,
    summarize_financials,
)
from travel_modules.booking.details import ServiceType, parse_service_details
from travel_modules.booking.models import (
    BookingFilter,
    BookingInfo,
    BookingPatch,
    BookingStatus,
    CreateBookingRequest,
    SupplierLineInfo,
    SupplierLineRequest,
)
from travel_modules.booking.orm import BookingModel, BookingSupplierLineModel
from travel_modules.cash.orm import PaymentModel
from travel_modules.invoicing.models import InvoiceStatus
from travel_modules.invoicing.service import InvoiceService, total_paid

logger = get_logger("modules.booking.service")

# (customer_id, user_id, service_type) -> override rate or None
CommissionLookup = Callable[[UUID, UUID, ServiceType], Decimal | None]


def _check_dates(travel_date: date | None, return_date: date | None) -> None:
    if travel_date and return_date and return_date < travel_date:
        raise ValidationError("return_date must not be before travel_date")


class BookingService(BaseService[BookingModel]):
    """Booking creation, editing and lookups."""

    def __init__(
        self,
        session: Session,
        config: BackOfficeConfig,
        currency: CurrencyService,
        postings: LedgerPostings,
        invoices: InvoiceService,
        clock: Clock | None = None,
        sequences: SequenceService | None = None,
        commission_lookup: CommissionLookup | None = None,
    ):
        super().__init__(session)
        self._config = config
        self._currency = currency
        self._postings = postings
        self._invoices = invoices
        self._clock = clock or SystemClock()
        self._sequences = sequences or SequenceService(session)
        self._commission_lookup = commission_lookup
        self._parties = PartyService(session)

    # -- helpers -------------------------------------------------------------

    def _employee(self, party_id: UUID | None) -> Party | None:
        if party_id is None:
            return None
        return self._parties.get_model(party_id, PartyType.EMPLOYEE)

    def _resolve_rate(
        self,
        explicit: object,
        employee: Party | None,
        customer_id: UUID,
        service_type: ServiceType,
    ) -> object:
        if employee is None:
            return ZERO
        if explicit is not None:
            return explicit
        if self._commission_lookup is not None and employee.user_id is not None:
            override = self._commission_lookup(customer_id, employee.user_id, service_type)
            if override is not None:
                return override
        if employee.default_commission_rate is not None:
            return employee.default_commission_rate
        return ZERO

    def _build_lines(
        self,
        requests: tuple[SupplierLineRequest, ...] | list[SupplierLineRequest],
        service_type: ServiceType,
        rates: RateTable,
        actor_id: UUID,
    ) -> list[BookingSupplierLineModel]:
        lines = []
        for position, line in enumerate(requests, start=1):
            self._parties.get_model(line.supplier_id, PartyType.SUPPLIER)
            cost = to_decimal(line.cost_amount, "cost_amount")
            sale = ZERO if line.sale_amount is None else to_decimal(line.sale_amount, "sale_amount")
            for name, amount, raw in (
                ("cost_amount", cost, line.cost_amount),
                ("sale_amount", sale, line.sale_amount),
            ):
                if amount < 0:
                    raise InvalidAmountError(name, raw, "must not be negative")
            cost_currency = normalize_code(line.cost_currency)
            sale_currency = normalize_code(line.sale_currency) if line.sale_currency else None
            lines.append(
                BookingSupplierLineModel(
                    supplier_id=line.supplier_id,
                    position=position,
                    service_type=(
                        ServiceType.parse(line.service_type)
                        if line.service_type is not None
                        else service_type
                    ),
                    cost_amount=cost,
                    cost_currency=cost_currency,
                    cost_in_base=round_money(rates.to_base(cost, cost_currency)),
                    sale_amount=sale,
                    sale_currency=sale_currency,
                    sale_in_base=(
                        round_money(rates.to_base(sale, sale_currency)) if sale_currency else ZERO
                    ),
                    description=line.description,
                    created_by_id=actor_id,
                )
            )
        return lines

    def _line_models(self, booking_id: UUID) -> list[BookingSupplierLineModel]:
        return list(
            self.session.scalars(
                select(BookingSupplierLineModel)
                .where(BookingSupplierLineModel.booking_id == booking_id)
                .order_by(BookingSupplierLineModel.position)
            )
        )

    def _calculate(self, booking: BookingModel) -> BookingFinancials:
        extra_cost = sum((line.cost_in_base for line in self._line_models(booking.id)), ZERO)
        return calculate_booking_financials(
            BookingFinancialInput(
                service_type=ServiceType(booking.service_type),
                sale_amount=booking.sale_amount,
                sale_currency=booking.sale_currency,
                cost_amount=booking.cost_amount,
                cost_currency=booking.cost_currency,
                is_local_tax_zone=booking.is_local_tax_zone,
                vat_applicable=booking.vat_applicable,
                agent_commission_rate=booking.agent_commission_rate,
                cs_commission_rate=booking.cs_commission_rate,
                extra_cost_in_base=extra_cost,
            ),
            self._currency.rate_table(),
            vat_rate=self._config.tax.vat_rate,
        )

    def get_model(self, booking_id: UUID) -> BookingModel:
        booking = self.session.get(BookingModel, booking_id)
        if booking is None:
            raise BookingNotFoundError(str(booking_id))
        return booking

    def _lock_editable(self, booking_id: UUID) -> BookingModel:
        booking = self.lock_row(BookingModel, booking_id)
        if booking is None:
            raise BookingNotFoundError(str(booking_id))
        status = BookingStatus(booking.status)
        if status.is_terminal:
            raise BookingNotEditableError(str(booking_id), status.value)
        return booking

    # -- create / confirm ----------------------------------------------------

    def create_booking(self, request: CreateBookingRequest, actor_id: UUID) -> BookingInfo:
        """
        Create a booking and, unless it is a draft, post its cost and
        commission entries.

        Raises:
            PartyNotFoundError / PartyTypeMismatchError: For a wrong customer,
                supplier or employee reference.
            InvalidEnumValueError: For an unknown service type.
            InvalidServiceDetailsError: For details of the wrong shape.
            InvalidAmountError: For missing or negative amounts, or
                commission rates outside [0, 100].
        """
        service_type = ServiceType.parse(request.service_type)
        self._parties.get_model(request.customer_id, PartyType.CUSTOMER)
        self._parties.get_model(request.supplier_id, PartyType.SUPPLIER)
        agent = self._employee(request.booking_agent_id)
        cs = self._employee(request.customer_service_id)
        details = parse_service_details(service_type, request.service_details)
        _check_dates(request.travel_date, request.return_date)
        rates = self._currency.rate_table()
        lines = self._build_lines(request.supplier_lines, service_type, rates, actor_id)

        agent_rate = self._resolve_rate(
            request.agent_commission_rate, agent, request.customer_id, service_type
        )
        cs_rate = self._resolve_rate(
            request.cs_commission_rate, cs, request.customer_id, service_type
        )
        financials = calculate_booking_financials(
            BookingFinancialInput(
                service_type=service_type,
                sale_amount=request.sale_amount,
                sale_currency=request.sale_currency,
                cost_amount=request.cost_amount,
                cost_currency=request.cost_currency,
                is_local_tax_zone=request.is_local_tax_zone,
                vat_applicable=request.vat_applicable,
                agent_commission_rate=agent_rate,
                cs_commission_rate=cs_rate,
                extra_cost_in_base=sum((line.cost_in_base for line in lines), ZERO),
            ),
            rates,
            vat_rate=self._config.tax.vat_rate,
        )
        status = BookingStatus.DRAFT if request.as_draft else BookingStatus.CONFIRMED

        with self.atomic():
            booking = BookingModel(
                booking_number=self._sequences.next_number(
                    self._config.numbering.booking_prefix, year=self._clock.today().year
                ),
                status=status,
                service_type=service_type,
                customer_id=request.customer_id,
                supplier_id=request.supplier_id,
                booking_agent_id=request.booking_agent_id,
                customer_service_id=request.customer_service_id,
                sale_amount=to_decimal(request.sale_amount, "sale_amount"),
                sale_currency=normalize_code(request.sale_currency),
                cost_amount=to_decimal(request.cost_amount, "cost_amount"),
                cost_currency=normalize_code(request.cost_currency),
                is_local_tax_zone=request.is_local_tax_zone,
                vat_applicable=request.vat_applicable,
                agent_commission_rate=to_decimal(agent_rate, "agent_commission_rate"),
                cs_commission_rate=to_decimal(cs_rate, "cs_commission_rate"),
                travel_date=request.travel_date,
                return_date=request.return_date,
                notes=request.notes,
                created_by_id=actor_id,
            )
            booking.apply_financials(financials)
            booking.set_details(details)
            self.session.add(booking)
            self.session.flush()
            for line in lines:
                line.booking_id = booking.id
                self.session.add(line)
            if lines:
                self.session.flush()
            if status is BookingStatus.CONFIRMED:
                self._postings.post_booking(booking, actor_id)

        with LogContext.bind(booking_id=str(booking.id)):
            logger.info(
                "booking_created",
                extra={
                    "booking_number": booking.booking_number,
                    "service_type": service_type.value,
                    "status": status.value,
                    "supplier_lines": len(lines),
                    "sale_in_base": str(financials.sale_in_base),
                    "net_profit": str(financials.net_profit),
                },
            )
        return booking.to_dto()

    def confirm_booking(self, booking_id: UUID, actor_id: UUID) -> BookingInfo:
        """
        Move a DRAFT booking to CONFIRMED and post its entries.  Bookings
        that are already confirmed or complete are returned unchanged.

        Raises:
            BookingNotEditableError: If the booking is cancelled or refunded.
        """
        with self.atomic():
            booking = self._lock_editable(booking_id)
            if booking.status != BookingStatus.DRAFT:
                return booking.to_dto()
            booking.status = BookingStatus.CONFIRMED
            booking.updated_by_id = actor_id
            self.session.flush()
            self._postings.post_booking(booking, actor_id)

        logger.info(
            "booking_confirmed",
            extra={"booking_id": str(booking_id), "booking_number": booking.booking_number},
        )
        return booking.to_dto()

    # -- update --------------------------------------------------------------

    def update_booking(
        self, booking_id: UUID, patch: BookingPatch, actor_id: UUID
    ) -> BookingInfo:
        """
        Apply an explicit patch.  Financial inputs trigger a full recompute.

        Raises:
            BookingNotEditableError: If the booking is cancelled or refunded.
            BookingHasDependentsError: If the financials would change while
                receipts are held against the booking's invoice.
            ValidationError subclasses: As for ``create_booking``.
        """
        changes = patch.changes()
        with self.atomic():
            booking = self._lock_editable(booking_id)
            service_type = ServiceType(booking.service_type)

            if "supplier_id" in changes:
                self._parties.get_model(changes["supplier_id"], PartyType.SUPPLIER)
            agent_changed = "booking_agent_id" in changes
            cs_changed = "customer_service_id" in changes
            if "service_details" in changes:
                booking.set_details(
                    parse_service_details(service_type, changes.pop("service_details"))
                )
            for currency_field in ("sale_currency", "cost_currency"):
                if currency_field in changes:
                    changes[currency_field] = normalize_code(changes[currency_field])
            for amount_field in ("sale_amount", "cost_amount"):
                if amount_field in changes and changes[amount_field] is not None:
                    changes[amount_field] = to_decimal(changes[amount_field], amount_field)

            agent_rate = changes.pop("agent_commission_rate", BookingPatch.UNSET)
            cs_rate = changes.pop("cs_commission_rate", BookingPatch.UNSET)
            for name, value in changes.items():
                setattr(booking, name, value)
            _check_dates(booking.travel_date, booking.return_date)

            if agent_rate is not BookingPatch.UNSET or agent_changed:
                explicit = None if agent_rate is BookingPatch.UNSET else agent_rate
                booking.agent_commission_rate = to_decimal(
                    self._resolve_rate(
                        explicit,
                        self._employee(booking.booking_agent_id),
                        booking.customer_id,
                        service_type,
                    ),
                    "agent_commission_rate",
                )
            if cs_rate is not BookingPatch.UNSET or cs_changed:
                explicit = None if cs_rate is BookingPatch.UNSET else cs_rate
                booking.cs_commission_rate = to_decimal(
                    self._resolve_rate(
                        explicit,
                        self._employee(booking.customer_service_id),
                        booking.customer_id,
                        service_type,
                    ),
                    "cs_commission_rate",
                )

            if patch.touches_financials:
                self._recompute(booking, actor_id, reassigned=agent_changed or cs_changed)
            booking.updated_by_id = actor_id
            self.session.flush()

        logger.info(
            "booking_updated",
            extra={
                "booking_id": str(booking_id),
                "fields": sorted(patch.changes()),
                "net_profit": str(booking.net_profit),
            },
        )
        return booking.to_dto()

    def replace_supplier_lines(
        self,
        booking_id: UUID,
        lines: tuple[SupplierLineRequest, ...] | list[SupplierLineRequest],
        actor_id: UUID,
    ) -> list[SupplierLineInfo]:
        """
        Replace the additional supplier lines of a booking and re-post its
        cost entries.  An empty ``lines`` leaves only the main supplier.

        Raises:
            BookingNotEditableError: If the booking is cancelled or refunded.
            BookingHasDependentsError: If receipts are held against the
                booking's invoice.
            PartyNotFoundError / PartyTypeMismatchError: For a line supplier
                that is not a supplier.
            InvalidAmountError: For missing or negative line amounts.
        """
        with self.atomic():
            booking = self._lock_editable(booking_id)
            built = self._build_lines(
                lines, ServiceType(booking.service_type), self._currency.rate_table(), actor_id
            )
            for old in self._line_models(booking_id):
                self.session.delete(old)
            self.session.flush()
            for line in built:
                line.booking_id = booking_id
                self.session.add(line)
            booking.updated_by_id = actor_id
            self.session.flush()
            self._recompute(booking, actor_id, reassigned=True)

        logger.info(
            "booking_supplier_lines_replaced",
            extra={
                "booking_id": str(booking_id),
                "line_count": len(built),
                "cost_in_base": str(booking.cost_in_base),
            },
        )
        return [line.to_dto() for line in built]

    def _recompute(self, booking: BookingModel, actor_id: UUID, *, reassigned: bool) -> None:
        financials = self._calculate(booking)
        before = booking.snapshot()
        if financials == before and not reassigned:
            return

        invoice = self._invoices.find_for_booking(booking.id)
        if (
            invoice is not None
            and invoice.status != InvoiceStatus.CANCELLED
            and total_paid(self.session, invoice.id) > ZERO
        ):
            raise BookingHasDependentsError(
                str(booking.id), "receipts are held against the booking's invoice"
            )

        booking.apply_financials(financials)
        self.session.flush()
        if booking.status != BookingStatus.DRAFT:
            self._postings.reverse_booking_entries(
                booking.id,
                actor_id,
                reason="booking amended",
                transaction_types=COST_TRANSACTION_TYPES,
            )
            self._postings.post_booking(booking, actor_id)
        self._invoices.refresh_from_booking(booking, actor_id)
        logger.info(
            "booking_financials_recomputed",
            extra={
                "booking_id": str(booking.id),
                "previous_net_profit": str(before.net_profit),
                "net_profit": str(financials.net_profit),
            },
        )

    # -- reads ---------------------------------------------------------------

    def get_booking(self, booking_id: UUID, scope: AccessScope | None = None) -> BookingInfo:
        """
        Raises:
            BookingNotFoundError: If the booking does not exist.
            AccessDeniedError: If ``scope`` excludes it.
        """
        booking = self.get_model(booking_id)
        if scope is not None and not scope.allows(booking.id):
            raise AccessDeniedError("booking", str(booking_id), "not assigned to this customer")
        return booking.to_dto()

    def list_supplier_lines(self, booking_id: UUID) -> list[SupplierLineInfo]:
        """Additional supplier lines of a booking in entry order."""
        self.get_model(booking_id)
        return [line.to_dto() for line in self._line_models(booking_id)]

    def _filtered(self, filters: BookingFilter | None, scope: AccessScope | None):
        stmt = select(BookingModel).order_by(BookingModel.booking_number)
        if scope is not None:
            stmt = scope.apply(stmt, BookingModel.id)
        if filters is None:
            return stmt
        if filters.status is not None:
            stmt = stmt.where(BookingModel.status == filters.status.value)
        if filters.service_type is not None:
            stmt = stmt.where(BookingModel.service_type == filters.service_type.value)
        if filters.customer_id is not None:
            stmt = stmt.where(BookingModel.customer_id == filters.customer_id)
        if filters.supplier_id is not None:
            stmt = stmt.where(BookingModel.supplier_id == filters.supplier_id)
        if filters.travel_from is not None:
            stmt = stmt.where(BookingModel.travel_date >= filters.travel_from)
        if filters.travel_to is not None:
            stmt = stmt.where(BookingModel.travel_date <= filters.travel_to)
        return stmt

    def list_bookings(
        self,
        filters: BookingFilter | None = None,
        scope: AccessScope | None = None,
    ) -> list[BookingInfo]:
        return [b.to_dto() for b in self.session.scalars(self._filtered(filters, scope))]

    def summarize(
        self,
        filters: BookingFilter | None = None,
        scope: AccessScope | None = None,
    ) -> FinancialSummary:
        """Base-currency totals over the matching bookings."""
        return summarize_financials(
            b.snapshot() for b in self.session.scalars(self._filtered(filters, scope))
        )

    # -- delete --------------------------------------------------------------

    def delete_booking(self, booking_id: UUID, actor_id: UUID) -> None:
        """
        Delete a DRAFT booking that nothing refers to.

        Raises:
            BookingNotEditableError: If the booking is not a draft.
            BookingHasDependentsError: If it has an invoice or payments.
        """
        with self.atomic():
            booking = self.lock_row(BookingModel, booking_id)
            if booking is None:
                raise BookingNotFoundError(str(booking_id))
            if booking.status != BookingStatus.DRAFT:
                raise BookingNotEditableError(
                    str(booking_id), BookingStatus(booking.status).value
                )
            if self._invoices.find_for_booking(booking_id) is not None:
                raise BookingHasDependentsError(str(booking_id), "booking has an invoice")
            payments = self.session.scalar(
                select(func.count())
                .select_from(PaymentModel)
                .where(PaymentModel.booking_id == booking_id)
            )
            if payments:
                raise BookingHasDependentsError(str(booking_id), "booking has payments")
            number = booking.booking_number
            for line in self._line_models(booking_id):
                self.session.delete(line)
            self.session.flush()
            self.session.delete(booking)
            self.session.flush()

        logger.info(
            "booking_deleted",
            extra={"booking_id": str(booking_id), "booking_number": number, "actor_id": str(actor_id)},
        )
