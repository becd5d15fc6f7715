"""Tests for customer, supplier and employee parties."""

from decimal import Decimal
from uuid import uuid4

import pytest

from travel_kernel.exceptions import PartyNotFoundError, PartyTypeMismatchError
from travel_kernel.models.party import PartyType
from travel_kernel.models.user import UserRole


class TestCreateParty:
    def test_create_customer(self, uow, test_actor_id):
        party = uow.parties.create_party(
            "CUST-001", PartyType.CUSTOMER, "Al Noor Trading", test_actor_id,
            email="accounts@alnoor.test", payment_terms_days=15,
        )
        assert party.party_type == PartyType.CUSTOMER
        assert party.is_active
        assert uow.parties.find_by_code("CUST-001") == party

    def test_create_employee_with_login(self, uow, create_user, test_actor_id):
        user = create_user(UserRole.BOOKING_AGENT)
        employee = uow.parties.create_party(
            "EMP-001", PartyType.EMPLOYEE, "Sara Agent", test_actor_id,
            user_id=user.id, default_commission_rate=Decimal("10"),
        )
        assert employee.default_commission_rate == Decimal("10")
        assert uow.parties.employee_for_user(user.id) == employee

    def test_employee_for_user_without_party(self, uow, create_user):
        assert uow.parties.employee_for_user(create_user().id) is None


class TestLookups:
    def test_get_model_checks_type(self, uow, customer):
        assert uow.parties.get_model(customer.id, PartyType.CUSTOMER).name == customer.name
        with pytest.raises(PartyTypeMismatchError) as exc_info:
            uow.parties.get_model(customer.id, PartyType.SUPPLIER)
        assert exc_info.value.expected == "supplier"
        assert exc_info.value.actual == "customer"

    def test_missing_party(self, uow):
        with pytest.raises(PartyNotFoundError):
            uow.parties.get_by_id(uuid4())

    def test_find_by_unknown_code(self, uow):
        assert uow.parties.find_by_code("NOPE") is None

    def test_list_by_type(self, uow, customer, supplier):
        customers = uow.parties.list_parties(PartyType.CUSTOMER)
        assert [p.id for p in customers] == [customer.id]
        assert {p.id for p in uow.parties.list_parties()} == {customer.id, supplier.id}
