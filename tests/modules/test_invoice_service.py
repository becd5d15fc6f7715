"""Tests for issuing invoices from bookings."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from travel_kernel.exceptions import (
    BookingNotEditableError,
    BookingNotFoundError,
    InvoiceAlreadyExistsError,
    InvoiceNotFoundError,
)
from travel_kernel.models.journal import TransactionType
from travel_modules.booking.details import ServiceType
from travel_modules.booking.models import BookingStatus
from travel_modules.invoicing.models import InvoiceStatus, PaymentMethod, ReceiptRequest


class TestCreateInvoice:
    def test_amounts_follow_booking(self, invoiced_booking):
        booking, invoice = invoiced_booking()
        assert invoice.subtotal == booking.net_before_vat
        assert invoice.vat_amount == Decimal("50.00")
        assert invoice.total_amount == booking.total_with_vat
        assert invoice.subtotal + invoice.vat_amount == invoice.total_amount
        assert invoice.currency == "AED"
        assert invoice.status == InvoiceStatus.UNPAID

    def test_numbering_and_dates(self, invoiced_booking):
        _, invoice = invoiced_booking()
        assert invoice.invoice_number == "INV-2024-000001"
        assert invoice.issue_date == date(2024, 3, 15)
        assert invoice.due_date == date(2024, 4, 14)

    def test_explicit_dates(self, uow, create_booking, test_actor_id):
        booking = create_booking()
        invoice = uow.invoices.create_invoice(
            booking.id, test_actor_id,
            issue_date=date(2024, 3, 1), due_date=date(2024, 3, 10), notes="Net 10",
        )
        assert invoice.due_date == date(2024, 3, 10)
        assert invoice.notes == "Net 10"

    def test_posts_revenue_and_vat(self, uow, invoiced_booking, account_balance):
        booking, invoice = invoiced_booking()
        types = {
            e.transaction_type
            for e in uow.journal.list_entries(source_id=invoice.id)
        }
        assert types == {TransactionType.INVOICE_REVENUE, TransactionType.INVOICE_VAT}
        assert account_balance("1121") == Decimal("1050.00")
        assert account_balance("4120") == Decimal("-1000.00")
        assert account_balance("2121") == Decimal("-50.00")

    def test_flight_invoice_has_no_vat_entry(self, uow, invoiced_booking, account_balance):
        _, invoice = invoiced_booking(service_type=ServiceType.FLIGHT)
        assert invoice.vat_amount == Decimal("0.00")
        types = [e.transaction_type for e in uow.journal.list_entries(source_id=invoice.id)]
        assert types == [TransactionType.INVOICE_REVENUE]
        assert account_balance("4110") == Decimal("-1050.00")

    def test_non_local_vat_on_profit(self, invoiced_booking):
        _, invoice = invoiced_booking(
            sale_amount=Decimal("1000"), cost_amount=Decimal("600"), is_local_tax_zone=False
        )
        assert invoice.subtotal == Decimal("1000.00")
        assert invoice.vat_amount == Decimal("20.00")
        assert invoice.total_amount == Decimal("1020.00")

    def test_invoicing_draft_confirms_it(self, uow, create_booking, test_actor_id,
                                         account_balance):
        draft = create_booking(as_draft=True)
        uow.invoices.create_invoice(draft.id, test_actor_id)
        assert uow.bookings.get_booking(draft.id).status == BookingStatus.CONFIRMED
        assert account_balance("5120") == Decimal("800.00")

    def test_one_invoice_per_booking(self, uow, invoiced_booking, test_actor_id):
        booking, _ = invoiced_booking()
        with pytest.raises(InvoiceAlreadyExistsError):
            uow.invoices.create_invoice(booking.id, test_actor_id)

    def test_cancelled_booking_not_invoiced(self, uow, create_booking, test_actor_id):
        booking = create_booking()
        uow.propagation.cancel_booking(booking.id, test_actor_id)
        with pytest.raises(BookingNotEditableError):
            uow.invoices.create_invoice(booking.id, test_actor_id)

    def test_missing_booking(self, uow, test_actor_id):
        with pytest.raises(BookingNotFoundError):
            uow.invoices.create_invoice(uuid4(), test_actor_id)


class TestReads:
    def test_get_missing(self, uow):
        with pytest.raises(InvoiceNotFoundError):
            uow.invoices.get_invoice(uuid4())

    def test_find_for_booking(self, uow, invoiced_booking, create_booking):
        booking, invoice = invoiced_booking()
        assert uow.invoices.find_for_booking(booking.id).id == invoice.id
        assert uow.invoices.find_for_booking(create_booking().id) is None

    def test_list_by_status_and_customer(self, uow, invoiced_booking, customer):
        invoiced_booking()
        invoiced_booking()
        assert len(uow.invoices.list_invoices(status=InvoiceStatus.UNPAID)) == 2
        assert uow.invoices.list_invoices(status=InvoiceStatus.PAID) == []
        assert len(uow.invoices.list_invoices(customer_id=customer.id)) == 2

    def test_outstanding_balance(self, uow, invoiced_booking, customer, test_actor_id):
        _, invoice = invoiced_booking()
        uow.propagation.record_receipt(
            ReceiptRequest(
                customer_id=customer.id, amount=Decimal("300"), currency="AED",
                payment_method=PaymentMethod.CASH, invoice_id=invoice.id,
            ),
            test_actor_id,
        )
        assert uow.invoices.total_paid(invoice.id) == Decimal("300.00")
        assert uow.invoices.outstanding_balance(invoice.id) == Decimal("750.00")


class TestMarkOverdue:
    def test_flags_past_due(self, uow, invoiced_booking, test_actor_id):
        _, invoice = invoiced_booking()
        flagged = uow.invoices.mark_overdue(test_actor_id, as_of=date(2024, 5, 1))
        assert [i.id for i in flagged] == [invoice.id]
        assert uow.invoices.get_invoice(invoice.id).status == InvoiceStatus.OVERDUE

    def test_not_yet_due(self, uow, invoiced_booking, test_actor_id):
        invoiced_booking()
        assert uow.invoices.mark_overdue(test_actor_id) == []

    def test_receipt_clears_overdue(self, uow, invoiced_booking, customer, test_actor_id):
        _, invoice = invoiced_booking()
        uow.invoices.mark_overdue(test_actor_id, as_of=date(2024, 5, 1))
        uow.propagation.record_receipt(
            ReceiptRequest(
                customer_id=customer.id, amount=Decimal("100"), currency="AED",
                payment_method=PaymentMethod.CASH, invoice_id=invoice.id,
            ),
            test_actor_id,
        )
        assert uow.invoices.get_invoice(invoice.id).status == InvoiceStatus.PARTIALLY_PAID
