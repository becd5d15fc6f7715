"""
Booking Financial Calculator (``travel_modules.booking.calculator``).

Responsibility
--------------
Derives every computed money field of a booking from its raw inputs:
net-before-VAT, VAT, total-with-VAT, gross profit, commissions and net
profit.  Pure: no I/O, the rate table is passed in.

Jurisdiction regimes
--------------------
* FLIGHT bookings never carry VAT, whatever the flags say.
* Local tax zone, VAT applicable: the sale is VAT-inclusive.
  ``net = sale / (1 + rate)``, ``vat = sale - net``, ``total = sale``,
  ``gross = net - cost``.
* Outside the local zone, VAT applicable: VAT is charged on the profit
  left after commission.  ``gross = sale - cost``,
  ``vat = (gross - commission) * rate``, ``total = sale + vat``.
* VAT not applicable: ``net = total = sale``, ``gross = sale - cost``.

``net_profit`` is ``gross - commission - vat`` when VAT applies and
``gross - commission`` otherwise.  Commissions are percentages of gross
profit.  Sale and cost are converted to the base currency first, and the
cost of additional supplier lines is added to the cost; outputs are
rounded to cents at the end so no intermediate rounding drifts.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from travel_kernel.domain.currency import RateTable
from travel_kernel.domain.money import ZERO, round_money, to_decimal
from travel_kernel.exceptions import InvalidAmountError
from travel_modules.booking.details import ServiceType

VAT_RATE = Decimal("0.05")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class BookingFinancialInput:
    service_type: ServiceType
    sale_amount: object
    sale_currency: str
    cost_amount: object
    cost_currency: str
    is_local_tax_zone: bool
    vat_applicable: bool
    agent_commission_rate: object = ZERO
    cs_commission_rate: object = ZERO
    # Base-currency cost of additional supplier lines
    extra_cost_in_base: object = ZERO


@dataclass(frozen=True)
class BookingFinancials:
    """Computed money fields, all in base currency and rounded to cents."""

    sale_in_base: Decimal
    cost_in_base: Decimal
    net_before_vat: Decimal
    vat_amount: Decimal
    total_with_vat: Decimal
    gross_profit: Decimal
    agent_commission_amount: Decimal
    cs_commission_amount: Decimal
    total_commission: Decimal
    profit_after_commission: Decimal
    net_profit: Decimal
    vat_charged: bool


def _amount(value: object, field: str) -> Decimal:
    amount = to_decimal(value, field)
    if amount < 0:
        raise InvalidAmountError(field, value, "must not be negative")
    return amount


def _rate(value: object, field: str) -> Decimal:
    if value is None:
        return ZERO
    rate = to_decimal(value, field)
    if not ZERO <= rate <= _HUNDRED:
        raise InvalidAmountError(field, value, "must be between 0 and 100")
    return rate


def calculate_booking_financials(
    data: BookingFinancialInput,
    rates: RateTable,
    vat_rate: Decimal = VAT_RATE,
) -> BookingFinancials:
    """
    Compute a booking's financial snapshot.

    Raises:
        InvalidAmountError: If sale or cost is missing, non-numeric or
            negative, or a commission rate is outside [0, 100].
    """
    sale = rates.to_base(_amount(data.sale_amount, "sale_amount"), data.sale_currency)
    cost = rates.to_base(_amount(data.cost_amount, "cost_amount"), data.cost_currency)
    cost += _amount(data.extra_cost_in_base, "extra_cost_in_base")
    agent_rate = _rate(data.agent_commission_rate, "agent_commission_rate")
    cs_rate = _rate(data.cs_commission_rate, "cs_commission_rate")

    vat_charged = data.vat_applicable and data.service_type is not ServiceType.FLIGHT

    if vat_charged and data.is_local_tax_zone:
        net_before_vat = sale / (1 + vat_rate)
        vat_amount = sale - net_before_vat
        gross_profit = net_before_vat - cost
    else:
        net_before_vat = sale
        vat_amount = ZERO
        gross_profit = sale - cost

    agent_commission = gross_profit * agent_rate / _HUNDRED
    cs_commission = gross_profit * cs_rate / _HUNDRED
    total_commission = agent_commission + cs_commission
    profit_after_commission = gross_profit - total_commission

    if vat_charged and not data.is_local_tax_zone:
        vat_amount = profit_after_commission * vat_rate
        total_with_vat = sale + vat_amount
    else:
        total_with_vat = sale

    net_profit = profit_after_commission - vat_amount if vat_charged else profit_after_commission

    return BookingFinancials(
        sale_in_base=round_money(sale),
        cost_in_base=round_money(cost),
        net_before_vat=round_money(net_before_vat),
        vat_amount=round_money(vat_amount),
        total_with_vat=round_money(total_with_vat),
        gross_profit=round_money(gross_profit),
        agent_commission_amount=round_money(agent_commission),
        cs_commission_amount=round_money(cs_commission),
        total_commission=round_money(total_commission),
        profit_after_commission=round_money(profit_after_commission),
        net_profit=round_money(net_profit),
        vat_charged=vat_charged,
    )


@dataclass(frozen=True)
class FinancialSummary:
    count: int
    sale: Decimal
    cost: Decimal
    vat: Decimal
    gross_profit: Decimal
    total_commission: Decimal
    net_profit: Decimal


def summarize_financials(items: Iterable[BookingFinancials]) -> FinancialSummary:
    """Sum base-currency snapshots of bookings in any mix of currencies."""
    count = 0
    sale = cost = vat = gross = commission = net = ZERO
    for item in items:
        count += 1
        sale += item.sale_in_base
        cost += item.cost_in_base
        vat += item.vat_amount
        gross += item.gross_profit
        commission += item.total_commission
        net += item.net_profit
    return FinancialSummary(
        count=count,
        sale=round_money(sale),
        cost=round_money(cost),
        vat=round_money(vat),
        gross_profit=round_money(gross),
        total_commission=round_money(commission),
        net_profit=round_money(net),
    )
