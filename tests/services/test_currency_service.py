"""Tests for persisted currency rates and the manual-only update policy."""

from decimal import Decimal

import pytest

from travel_kernel.exceptions import ConflictError, InvalidAmountError, ValidationError
from travel_kernel.services.currency_service import CurrencyService


class TestRateTable:
    def test_defaults_from_config(self, uow):
        table = uow.currency.rate_table()
        assert uow.currency.base_currency == "AED"
        assert table.rate_for("AED") == Decimal("1")
        assert table.rate_for("USD") == Decimal("3.67")
        assert table.rate_for("SAR") == Decimal("0.98")

    def test_manual_rate_overrides_default(self, uow, test_actor_id):
        uow.currency.set_rate("usd", Decimal("3.6725"), test_actor_id, name="US Dollar")
        assert uow.currency.rate_table().rate_for("USD") == Decimal("3.6725")

    def test_set_rate_twice_updates_row(self, uow, test_actor_id):
        uow.currency.set_rate("INR", "0.044", test_actor_id)
        uow.currency.set_rate("INR", "0.045", test_actor_id)
        assert uow.currency.rate_table().rate_for("INR") == Decimal("0.045")

    def test_conversion_uses_persisted_rate(self, uow, test_actor_id):
        uow.currency.set_rate("EUR", "4", test_actor_id)
        assert uow.currency.rate_table().to_base(Decimal("100"), "EUR") == Decimal("400.00")


class TestSetRateValidation:
    def test_base_currency_rejected(self, uow, test_actor_id):
        with pytest.raises(ValidationError, match="always has rate 1"):
            uow.currency.set_rate("AED", "2", test_actor_id)

    @pytest.mark.parametrize("rate", ["0", "-3.67", "abc"])
    def test_bad_rate_rejected(self, uow, test_actor_id, rate):
        with pytest.raises(InvalidAmountError):
            uow.currency.set_rate("USD", rate, test_actor_id)

    def test_logs_update(self, uow, test_actor_id, captured_logs):
        uow.currency.set_rate("GBP", "4.70", test_actor_id)
        records = [r for r in captured_logs() if r["message"] == "currency_rate_updated"]
        assert records and records[0]["currency"] == "GBP"


class TestApplyRates:
    def test_manual_batch_skips_base(self, uow, test_actor_id):
        updated = uow.currency.apply_rates(
            {"AED": "1", "USD": "3.68", "EUR": "4.05"}, test_actor_id
        )
        assert updated == 2
        table = uow.currency.rate_table()
        assert table.rate_for("USD") == Decimal("3.68")
        assert table.rate_for("EUR") == Decimal("4.05")

    def test_scheduled_update_refused_while_disabled(self, uow, test_actor_id, captured_logs):
        with pytest.raises(ConflictError):
            uow.currency.apply_rates({"USD": "9"}, test_actor_id, scheduled=True)
        assert uow.currency.rate_table().rate_for("USD") == Decimal("3.67")
        assert any(
            r["message"] == "scheduled_rate_update_rejected" for r in captured_logs()
        )

    def test_scheduled_update_allowed_when_enabled(self, session, test_actor_id):
        service = CurrencyService(
            session, "AED", {"USD": Decimal("3.67")}, auto_update_enabled=True
        )
        assert service.apply_rates({"USD": "3.70"}, test_actor_id, scheduled=True) == 1
        assert service.rate_table().rate_for("USD") == Decimal("3.70")

    def test_failed_batch_applies_nothing(self, uow, test_actor_id):
        with pytest.raises(InvalidAmountError):
            uow.currency.apply_rates({"USD": "3.70", "EUR": "-1"}, test_actor_id)
        assert uow.currency.rate_table().rate_for("USD") == Decimal("3.67")
