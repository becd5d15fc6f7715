"""
Tests for assignment-based data scoping.

Non-admin users see only customers they are actively assigned to, and the
bookings, suppliers and invoices hanging off those customers.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from travel_kernel.domain.access import AccessScope
from travel_kernel.exceptions import AccessDeniedError, UserNotFoundError
from travel_kernel.models.party import PartyType
from travel_kernel.models.user import UserRole
from travel_modules.booking.models import SupplierLineRequest


@pytest.fixture
def agent(create_user):
    return create_user(UserRole.BOOKING_AGENT)


@pytest.fixture
def other_customer(create_party):
    return create_party(PartyType.CUSTOMER, "Someone Else Ltd")


@pytest.fixture
def other_supplier(create_party):
    return create_party(PartyType.SUPPLIER, "Desert Airways")


class TestRoles:
    @pytest.mark.parametrize(
        "role",
        [UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.ACCOUNTANT, UserRole.FINANCIAL_CONTROLLER],
    )
    def test_unrestricted_roles(self, uow, create_user, role):
        user = create_user(role)
        assert uow.scopes.is_unrestricted(user.id)
        assert uow.scopes.assigned_customer_ids(user.id) is AccessScope.UNRESTRICTED
        assert uow.scopes.accessible_booking_ids(user.id).is_unrestricted

    @pytest.mark.parametrize(
        "role",
        [UserRole.MANAGER, UserRole.BOOKING_AGENT, UserRole.SALES_AGENT, UserRole.CUSTOMER_SERVICE],
    )
    def test_restricted_roles(self, uow, create_user, role):
        assert not uow.scopes.is_unrestricted(create_user(role).id)

    def test_unknown_user_propagates(self, uow):
        with pytest.raises(UserNotFoundError):
            uow.scopes.assigned_customer_ids(uuid4())


class TestScopes:
    def test_no_assignments_is_empty_not_error(self, uow, agent, create_booking):
        create_booking()
        assert uow.scopes.assigned_customer_ids(agent.id).is_empty
        assert uow.scopes.accessible_booking_ids(agent.id).is_empty
        assert uow.bookings.list_bookings(scope=uow.scopes.accessible_booking_ids(agent.id)) == []

    def test_scopes_follow_assignments(
        self, uow, agent, customer, supplier, other_customer, other_supplier,
        invoiced_booking, test_actor_id,
    ):
        mine, my_invoice = invoiced_booking()
        theirs, their_invoice = invoiced_booking(
            customer_id=other_customer.id, supplier_id=other_supplier.id
        )
        uow.assignments.assign(customer.id, agent.id, test_actor_id)

        assert uow.scopes.assigned_customer_ids(agent.id).ids == frozenset({customer.id})
        assert uow.scopes.accessible_booking_ids(agent.id).ids == frozenset({mine.id})
        assert uow.scopes.accessible_supplier_ids(agent.id).ids == frozenset({supplier.id})
        assert uow.scopes.accessible_invoice_ids(agent.id).ids == frozenset({my_invoice.id})

    def test_line_suppliers_in_supplier_scope(
        self, uow, agent, customer, supplier, other_supplier, create_booking, test_actor_id,
    ):
        create_booking(
            supplier_lines=(SupplierLineRequest(other_supplier.id, Decimal("50"), "AED"),)
        )
        uow.assignments.assign(customer.id, agent.id, test_actor_id)

        scope = uow.scopes.accessible_supplier_ids(agent.id)
        assert scope.ids == frozenset({supplier.id, other_supplier.id})

    def test_scoped_listings(self, uow, agent, customer, other_customer, create_booking,
                             invoiced_booking, test_actor_id):
        mine, _ = invoiced_booking()
        invoiced_booking(customer_id=other_customer.id)
        uow.assignments.assign(customer.id, agent.id, test_actor_id)

        bookings = uow.bookings.list_bookings(scope=uow.scopes.accessible_booking_ids(agent.id))
        invoices = uow.invoices.list_invoices(scope=uow.scopes.accessible_invoice_ids(agent.id))
        assert [b.id for b in bookings] == [mine.id]
        assert [i.booking_id for i in invoices] == [mine.id]
        assert len(uow.bookings.list_bookings()) == 2

    def test_admin_listing_unfiltered(self, uow, create_user, create_booking, other_customer):
        create_booking()
        create_booking(customer_id=other_customer.id)
        admin = create_user(UserRole.ADMIN)
        scope = uow.scopes.accessible_booking_ids(admin.id)
        assert len(uow.bookings.list_bookings(scope=scope)) == 2

    def test_unassign_revokes_access(self, uow, agent, customer, create_booking, test_actor_id):
        booking = create_booking()
        uow.assignments.assign(customer.id, agent.id, test_actor_id)
        assert uow.scopes.accessible_booking_ids(agent.id).allows(booking.id)

        uow.assignments.unassign(customer.id, agent.id, test_actor_id)
        assert not uow.scopes.accessible_booking_ids(agent.id).allows(booking.id)


class TestChecks:
    def test_denied_customer(self, uow, agent, customer, captured_logs):
        with pytest.raises(AccessDeniedError) as exc_info:
            uow.scopes.check_customer_access(agent.id, customer.id)
        assert exc_info.value.reason == "not assigned to this customer"
        assert exc_info.value.http_status == 403
        assert any(r["message"] == "access_denied" for r in captured_logs())

    def test_allowed_customer(self, uow, agent, customer, test_actor_id):
        uow.assignments.assign(customer.id, agent.id, test_actor_id)
        uow.scopes.check_customer_access(agent.id, customer.id)

    def test_booking_and_invoice_checks(self, uow, agent, customer, invoiced_booking, test_actor_id):
        booking, invoice = invoiced_booking()
        with pytest.raises(AccessDeniedError):
            uow.scopes.check_booking_access(agent.id, booking.id)
        with pytest.raises(AccessDeniedError):
            uow.scopes.check_invoice_access(agent.id, invoice.id)

        uow.assignments.assign(customer.id, agent.id, test_actor_id)
        uow.scopes.check_booking_access(agent.id, booking.id)
        uow.scopes.check_invoice_access(agent.id, invoice.id)

    def test_supplier_check(self, uow, agent, customer, supplier, other_supplier,
                            create_booking, test_actor_id):
        create_booking()
        uow.assignments.assign(customer.id, agent.id, test_actor_id)
        uow.scopes.check_supplier_access(agent.id, supplier.id)
        with pytest.raises(AccessDeniedError):
            uow.scopes.check_supplier_access(agent.id, other_supplier.id)

    def test_scoped_get_booking(self, uow, agent, create_booking):
        booking = create_booking()
        scope = uow.scopes.accessible_booking_ids(agent.id)
        with pytest.raises(AccessDeniedError):
            uow.bookings.get_booking(booking.id, scope)
        assert uow.bookings.get_booking(booking.id).id == booking.id
