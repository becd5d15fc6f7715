"""Tests for bank accounts, cash registers and payment lookups."""

from decimal import Decimal
from uuid import uuid4

import pytest

from travel_kernel.exceptions import (
    BankAccountNotFoundError,
    CashRegisterNotFoundError,
    DuplicateCashRegisterError,
    InvalidAmountError,
    InvalidEnumValueError,
    PaymentNotFoundError,
)
from travel_modules.cash.models import PaymentMethod, PaymentRequest


class TestBankAccounts:
    def test_create(self, aed_bank):
        assert aed_bank.currency == "AED"
        assert aed_bank.balance == Decimal("10000.00")
        assert aed_bank.is_active

    def test_lookup(self, uow, aed_bank, usd_bank):
        assert uow.cash.get_bank_account(usd_bank.id).currency == "USD"
        names = [a.name for a in uow.cash.list_bank_accounts()]
        assert names == ["Operating AED", "Operating USD"]

    def test_missing(self, uow):
        with pytest.raises(BankAccountNotFoundError):
            uow.cash.get_bank_account(uuid4())

    def test_bad_opening_balance(self, uow, test_actor_id):
        with pytest.raises(InvalidAmountError):
            uow.cash.create_bank_account("Broken", "AED", test_actor_id, opening_balance="lots")


class TestCashRegisters:
    def test_create(self, cash_register):
        assert cash_register.balance == Decimal("2000.00")
        assert cash_register.location == "Dubai office"

    def test_duplicate_name_per_currency(self, uow, cash_register, test_actor_id):
        with pytest.raises(DuplicateCashRegisterError):
            uow.cash.create_cash_register("Front desk", "aed", test_actor_id)

    def test_same_name_other_currency(self, uow, cash_register, test_actor_id):
        usd = uow.cash.create_cash_register("Front desk", "USD", test_actor_id)
        assert usd.currency == "USD"

    def test_missing(self, uow):
        with pytest.raises(CashRegisterNotFoundError):
            uow.cash.get_cash_register(uuid4())


class TestPaymentMethod:
    @pytest.mark.parametrize("raw", ["bank", "BANK", " Bank ", PaymentMethod.BANK])
    def test_parse(self, raw):
        assert PaymentMethod.parse(raw) is PaymentMethod.BANK

    def test_unknown(self):
        with pytest.raises(InvalidEnumValueError):
            PaymentMethod.parse("barter")


class TestPaymentLookups:
    def test_list_filters(self, uow, supplier, aed_bank, cash_register, test_actor_id):
        by_bank = uow.propagation.record_payment(
            PaymentRequest(
                supplier_id=supplier.id, amount=Decimal("100"), currency="AED",
                payment_method=PaymentMethod.BANK, bank_account_id=aed_bank.id,
            ),
            test_actor_id,
        )
        uow.propagation.record_payment(
            PaymentRequest(
                supplier_id=supplier.id, amount=Decimal("50"), currency="AED",
                payment_method=PaymentMethod.CASH, cash_register_id=cash_register.id,
            ),
            test_actor_id,
        )
        assert [p.id for p in uow.cash.list_payments(bank_account_id=aed_bank.id)] == [by_bank.id]
        assert len(uow.cash.list_payments(supplier_ids={supplier.id})) == 2
        assert uow.cash.list_payments(supplier_ids=set()) == []
        assert uow.cash.get_payment(by_bank.id).payment_number == "PAY-2024-0001"

    def test_missing_payment(self, uow):
        with pytest.raises(PaymentNotFoundError):
            uow.cash.get_payment(uuid4())
