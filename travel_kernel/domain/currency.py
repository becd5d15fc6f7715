"""
Currency conversion through a base-currency rate table.

Each rate is "units of base currency per 1 unit of the currency", so
``to_base(100, "USD")`` with USD at 3.67 is 367 AED.  Cross-currency
conversion is chained through the base currency.

Unknown currency codes convert at a rate of 1.  Conversion fails open so a
booking in a currency nobody configured yet can still be saved; every such
conversion is logged as ``unknown_currency_rate_defaulted`` so the gap is
visible.  Invalid amounts, in contrast, raise ``ValidationError``.

Everything here is pure: no database access and no rounding.  Callers
round with ``round_money`` where an amount is persisted.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from travel_kernel.domain.money import to_decimal
from travel_kernel.exceptions import InvalidAmountError
from travel_kernel.logging_config import get_logger

logger = get_logger("domain.currency")

_UNKNOWN_RATE = Decimal("1")


def normalize_code(code: str) -> str:
    """Upper-case and strip an ISO 4217 code."""
    return (code or "").strip().upper()


@dataclass(frozen=True)
class RateTable:
    """Immutable base-currency rate table."""

    base_currency: str
    rates: Mapping[str, Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        base = normalize_code(self.base_currency)
        normalized: dict[str, Decimal] = {}
        for code, rate in self.rates.items():
            value = to_decimal(rate, f"rate for {code}")
            if value <= 0:
                raise InvalidAmountError(f"rate for {code}", rate, "must be positive")
            normalized[normalize_code(code)] = value
        normalized[base] = Decimal("1")
        object.__setattr__(self, "base_currency", base)
        object.__setattr__(self, "rates", MappingProxyType(normalized))

    def known(self, currency: str) -> bool:
        return normalize_code(currency) in self.rates

    def rate_for(self, currency: str) -> Decimal:
        """Base units per one unit of ``currency``; 1 when unknown."""
        code = normalize_code(currency)
        rate = self.rates.get(code)
        if rate is None:
            logger.warning(
                "unknown_currency_rate_defaulted",
                extra={"currency": code, "base_currency": self.base_currency},
            )
            return _UNKNOWN_RATE
        return rate

    def to_base(self, amount: object, currency: str) -> Decimal:
        value = to_decimal(amount)
        if normalize_code(currency) == self.base_currency:
            return value
        return value * self.rate_for(currency)

    def from_base(self, amount_in_base: object, currency: str) -> Decimal:
        value = to_decimal(amount_in_base)
        if normalize_code(currency) == self.base_currency:
            return value
        return value / self.rate_for(currency)

    def convert(self, amount: object, from_currency: str, to_currency: str) -> Decimal:
        """Convert via the base currency; identical codes return ``amount`` unchanged."""
        value = to_decimal(amount)
        if normalize_code(from_currency) == normalize_code(to_currency):
            return value
        return self.from_base(self.to_base(value, from_currency), to_currency)

    def with_rates(self, rates: Mapping[str, object]) -> "RateTable":
        """Return a new table with ``rates`` overlaid on this one."""
        merged: dict[str, object] = dict(self.rates)
        merged.update({normalize_code(code): rate for code, rate in rates.items()})
        return RateTable(self.base_currency, merged)
