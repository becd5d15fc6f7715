"""
Tests for YAML configuration loading and schema validation.
"""

from decimal import Decimal

import pytest
import yaml

from travel_config import get_active_config, load_config
from travel_config.loader import DEFAULT_CONFIG_PATH, compute_checksum, load_yaml_file
from travel_config.schema import (
    AccessConfig,
    AccountingConfig,
    ChartAccountDef,
    CurrencyConfig,
    TaxConfig,
)

ROLES = {
    "receivables": "1121",
    "supplier_payables": "2111",
    "vat_payable": "2121",
    "commission_payable": "2132",
    "commission_expense": "6120",
    "cash_on_hand": "1111",
    "bank_default": "1114",
    "default_revenue": "4180",
    "default_cost": "5180",
}


def _write(tmp_path, data) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestDefaults:
    def test_base_currency(self, config):
        assert config.base_currency == "AED"

    def test_rates_are_decimals(self, config):
        assert config.currency.rates["USD"] == Decimal("3.67")
        assert all(isinstance(rate, Decimal) for rate in config.currency.rates.values())

    def test_auto_update_disabled(self, config):
        assert config.currency.auto_update_enabled is False

    def test_vat_rate(self, config):
        assert config.tax.vat_rate == Decimal("0.05")

    def test_numbering_prefixes(self, config):
        assert config.numbering.booking_prefix == "BKG"
        assert config.numbering.refund_prefix == "REFUND"
        assert config.numbering.journal_prefix == "JE"

    def test_unrestricted_roles(self, config):
        assert config.access.unrestricted_roles == frozenset(
            {"SUPER_ADMIN", "ADMIN", "ACCOUNTANT", "FINANCIAL_CONTROLLER"}
        )

    def test_account_mappings(self, config):
        accounting = config.accounting
        assert accounting.revenue_account("HOTEL") == "4120"
        assert accounting.cost_account("FLIGHT") == "5110"
        assert accounting.bank_account("USD") == "1115"
        # unmapped currency falls back to the default bank
        assert accounting.bank_account("EUR") == "1114"

    def test_chart_parents_declared_first(self, config):
        seen = set()
        for account in config.accounting.chart:
            if account.parent_code:
                assert account.parent_code in seen
            seen.add(account.code)

    def test_checksum_stable(self):
        data = load_yaml_file(DEFAULT_CONFIG_PATH)
        assert compute_checksum(data) == load_config().checksum
        assert len(load_config().checksum) == 64

    def test_active_config_is_cached(self):
        assert get_active_config() is get_active_config()


class TestLoaderFailures:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_missing_required_key(self, tmp_path):
        with pytest.raises(KeyError):
            load_config(_write(tmp_path, {"base_currency": "AED"}))

    def test_bad_decimal(self, tmp_path):
        path = _write(
            tmp_path,
            {
                "base_currency": "AED",
                "currency": {"rates": {"USD": "three"}},
                "accounting": {"roles": ROLES},
            },
        )
        with pytest.raises(ValueError, match="currency.rates.USD"):
            load_config(path)

    def test_minimal_file_gets_defaults(self, tmp_path):
        config = load_config(
            _write(tmp_path, {"base_currency": "usd", "accounting": {"roles": ROLES}})
        )
        assert config.base_currency == "USD"
        assert config.tax == TaxConfig()
        assert config.access == AccessConfig()
        assert config.invoice_due_days == 30
        assert config.accounting.auto_post is True


class TestSchemaValidation:
    def test_negative_rate(self):
        with pytest.raises(ValueError, match="must be positive"):
            CurrencyConfig("AED", {"USD": Decimal("-1")})

    def test_base_rate_must_be_one(self):
        with pytest.raises(ValueError, match="must have rate 1"):
            CurrencyConfig("AED", {"AED": Decimal("2")})

    def test_vat_rate_range(self):
        with pytest.raises(ValueError, match="vat_rate"):
            TaxConfig(vat_rate=Decimal("1.5"))

    def test_missing_role(self):
        roles = dict(ROLES)
        del roles["vat_payable"]
        with pytest.raises(ValueError, match="vat_payable"):
            AccountingConfig(roles=roles)

    def test_unknown_account_type(self):
        with pytest.raises(ValueError, match="type must be one of"):
            ChartAccountDef(code="9", name="Odd", account_type="mystery")

    def test_child_before_parent(self):
        chart = (
            ChartAccountDef(code="1100", name="Child", account_type="asset", parent_code="1000"),
            ChartAccountDef(code="1000", name="Parent", account_type="asset"),
        )
        with pytest.raises(ValueError, match="declared before"):
            AccountingConfig(roles=ROLES, chart=chart)

    def test_roles_must_exist_in_chart(self):
        chart = (ChartAccountDef(code="1121", name="AR", account_type="asset"),)
        with pytest.raises(ValueError, match="missing from the chart"):
            AccountingConfig(roles=ROLES, chart=chart)
