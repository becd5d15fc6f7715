"""
Back-office configuration schema.

Frozen dataclasses parsed from YAML by ``travel_config.loader``.  Each
section validates itself in ``__post_init__`` and raises ``ValueError``
with a message naming the offending key.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

REQUIRED_ACCOUNT_ROLES = (
    "receivables",
    "supplier_payables",
    "vat_payable",
    "commission_payable",
    "commission_expense",
    "cash_on_hand",
    "bank_default",
    "default_revenue",
    "default_cost",
)

ACCOUNT_TYPES = ("asset", "liability", "equity", "revenue", "expense")


@dataclass(frozen=True)
class CurrencyConfig:
    """Base currency and default conversion rates."""

    base_currency: str
    rates: Mapping[str, Decimal]
    auto_update_enabled: bool = False

    def __post_init__(self) -> None:
        for code, rate in self.rates.items():
            if rate <= 0:
                raise ValueError(f"currency.rates.{code} must be positive, got {rate}")
        if self.rates.get(self.base_currency, Decimal("1")) != Decimal("1"):
            raise ValueError(f"Base currency {self.base_currency} must have rate 1")
        object.__setattr__(self, "rates", MappingProxyType(dict(self.rates)))


@dataclass(frozen=True)
class TaxConfig:
    vat_rate: Decimal = Decimal("0.05")
    money_epsilon: Decimal = Decimal("0.01")

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.vat_rate < Decimal("1"):
            raise ValueError(f"tax.vat_rate must be in [0, 1), got {self.vat_rate}")
        if self.money_epsilon <= 0:
            raise ValueError(f"tax.money_epsilon must be positive, got {self.money_epsilon}")


@dataclass(frozen=True)
class AccessConfig:
    """Roles that see every customer without assignment scoping."""

    unrestricted_roles: frozenset[str] = frozenset(
        {"SUPER_ADMIN", "ADMIN", "ACCOUNTANT", "FINANCIAL_CONTROLLER"}
    )


@dataclass(frozen=True)
class NumberingConfig:
    booking_prefix: str = "BKG"
    refund_prefix: str = "REFUND"
    invoice_prefix: str = "INV"
    receipt_prefix: str = "REC"
    payment_prefix: str = "PAY"
    credit_note_prefix: str = "CN"
    journal_prefix: str = "JE"


@dataclass(frozen=True)
class ChartAccountDef:
    code: str
    name: str
    account_type: str
    parent_code: str | None = None
    currency: str | None = None

    def __post_init__(self) -> None:
        if self.account_type not in ACCOUNT_TYPES:
            raise ValueError(
                f"Account {self.code}: type must be one of {ACCOUNT_TYPES}, "
                f"got {self.account_type!r}"
            )


@dataclass(frozen=True)
class AccountingConfig:
    """Account codes the automatic postings use, plus the default chart."""

    roles: Mapping[str, str]
    revenue_by_service: Mapping[str, str] = field(default_factory=dict)
    cost_by_service: Mapping[str, str] = field(default_factory=dict)
    bank_by_currency: Mapping[str, str] = field(default_factory=dict)
    chart: tuple[ChartAccountDef, ...] = ()
    auto_post: bool = True

    def __post_init__(self) -> None:
        missing = [role for role in REQUIRED_ACCOUNT_ROLES if role not in self.roles]
        if missing:
            raise ValueError(f"accounting.roles is missing: {', '.join(missing)}")
        if self.chart:
            seen: set[str] = set()
            for account in self.chart:
                if account.parent_code is not None and account.parent_code not in seen:
                    raise ValueError(
                        f"Account {account.code}: parent {account.parent_code} "
                        "must be declared before its children"
                    )
                seen.add(account.code)
            referenced = (
                set(self.roles.values())
                | set(self.revenue_by_service.values())
                | set(self.cost_by_service.values())
                | set(self.bank_by_currency.values())
            )
            unknown = sorted(referenced - seen)
            if unknown:
                raise ValueError(f"accounting maps to codes missing from the chart: {unknown}")
        for name in ("roles", "revenue_by_service", "cost_by_service", "bank_by_currency"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def account_for_role(self, role: str) -> str:
        return self.roles[role]

    def revenue_account(self, service_type: str) -> str:
        return self.revenue_by_service.get(service_type, self.roles["default_revenue"])

    def cost_account(self, service_type: str) -> str:
        return self.cost_by_service.get(service_type, self.roles["default_cost"])

    def bank_account(self, currency: str) -> str:
        return self.bank_by_currency.get(currency, self.roles["bank_default"])


@dataclass(frozen=True)
class BackOfficeConfig:
    """Complete configuration for one back-office deployment."""

    currency: CurrencyConfig
    tax: TaxConfig
    access: AccessConfig
    numbering: NumberingConfig
    accounting: AccountingConfig
    invoice_due_days: int = 30
    checksum: str = ""

    @property
    def base_currency(self) -> str:
        return self.currency.base_currency
