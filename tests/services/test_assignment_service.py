"""Tests for customer assignments and their commission overrides."""

from decimal import Decimal
from uuid import uuid4

import pytest

from travel_kernel.exceptions import (
    AssignmentNotFoundError,
    InvalidAmountError,
    PartyTypeMismatchError,
    UserNotFoundError,
)
from travel_modules.booking.details import ServiceType
from travel_services.assignment_service import CommissionRates


@pytest.fixture
def agent(create_user):
    return create_user()


class TestAssign:
    def test_assign_creates_active_row(self, uow, customer, agent, test_actor_id):
        assignment = uow.assignments.assign(customer.id, agent.id, test_actor_id)
        assert assignment.is_active
        assert assignment.assigned_role == "SALES"
        assert [a.id for a in uow.assignments.list_for_user(agent.id)] == [assignment.id]

    def test_reassign_updates_same_row(self, uow, customer, agent, test_actor_id):
        first = uow.assignments.assign(customer.id, agent.id, test_actor_id)
        second = uow.assignments.assign(
            customer.id, agent.id, test_actor_id,
            rates=CommissionRates(commission_rate=Decimal("7.5")),
        )
        assert second.id == first.id
        assert second.rates.commission_rate == Decimal("7.5")
        assert len(uow.assignments.list_for_customer(customer.id)) == 1

    def test_second_role_is_separate(self, uow, customer, agent, test_actor_id):
        uow.assignments.assign(customer.id, agent.id, test_actor_id)
        uow.assignments.assign(customer.id, agent.id, test_actor_id, assigned_role="SUPPORT")
        roles = [a.assigned_role for a in uow.assignments.list_for_customer(customer.id)]
        assert roles == ["SALES", "SUPPORT"]

    def test_supplier_cannot_be_assigned(self, uow, supplier, agent, test_actor_id):
        with pytest.raises(PartyTypeMismatchError):
            uow.assignments.assign(supplier.id, agent.id, test_actor_id)

    def test_unknown_user(self, uow, customer, test_actor_id):
        with pytest.raises(UserNotFoundError):
            uow.assignments.assign(customer.id, uuid4(), test_actor_id)


class TestUnassign:
    def test_soft_delete(self, uow, customer, agent, test_actor_id):
        uow.assignments.assign(customer.id, agent.id, test_actor_id)
        removed = uow.assignments.unassign(customer.id, agent.id, test_actor_id)

        assert not removed.is_active
        assert uow.assignments.list_for_user(agent.id) == []
        history = uow.assignments.list_for_user(agent.id, active_only=False)
        assert [a.id for a in history] == [removed.id]

    def test_reassign_reactivates(self, uow, customer, agent, test_actor_id):
        first = uow.assignments.assign(customer.id, agent.id, test_actor_id)
        uow.assignments.unassign(customer.id, agent.id, test_actor_id)
        again = uow.assignments.assign(customer.id, agent.id, test_actor_id)
        assert again.id == first.id
        assert again.is_active

    def test_unknown_assignment(self, uow, customer, agent, test_actor_id):
        with pytest.raises(AssignmentNotFoundError):
            uow.assignments.unassign(customer.id, agent.id, test_actor_id)


class TestCommissionRates:
    def test_specific_rate_wins(self):
        rates = CommissionRates(commission_rate=Decimal("5"), flight_commission=Decimal("2"))
        assert rates.for_service(ServiceType.FLIGHT) == Decimal("2")
        assert rates.for_service(ServiceType.HOTEL) == Decimal("5")
        assert rates.for_service(ServiceType.CRUISE) == Decimal("5")

    def test_no_rates(self):
        assert CommissionRates().for_service(ServiceType.VISA) is None

    @pytest.mark.parametrize("value", [Decimal("-0.01"), Decimal("101"), "x"])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(InvalidAmountError):
            CommissionRates(hotel_commission=value)

    def test_coerces_strings(self):
        assert CommissionRates(visa_commission="12").visa_commission == Decimal("12")

    def test_lookup_through_assignment(self, uow, customer, agent, test_actor_id):
        uow.assignments.assign(
            customer.id, agent.id, test_actor_id,
            rates=CommissionRates(hotel_commission=Decimal("15")),
        )
        assert uow.assignments.commission_rate_for(
            customer.id, agent.id, ServiceType.HOTEL
        ) == Decimal("15")
        assert uow.assignments.commission_rate_for(
            customer.id, agent.id, ServiceType.FLIGHT
        ) is None

    def test_inactive_assignment_gives_no_override(self, uow, customer, agent, test_actor_id):
        uow.assignments.assign(
            customer.id, agent.id, test_actor_id,
            rates=CommissionRates(commission_rate=Decimal("9")),
        )
        uow.assignments.unassign(customer.id, agent.id, test_actor_id)
        assert uow.assignments.commission_rate_for(
            customer.id, agent.id, ServiceType.HOTEL
        ) is None
