"""
CurrencyService -- the rate table the conversion unit reads.

Responsibility:
    Builds a ``RateTable`` from the configured default rates overlaid with
    persisted ``CurrencyRate`` rows, and records manual rate updates.

    Rates change only when an operator calls ``set_rate`` or feeds a batch
    from the online rate updater into ``apply_rates``.  There is no
    scheduled refresh; ``auto_update_enabled`` in configuration stays off
    and ``apply_rates`` refuses scheduled callers while it is off.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from travel_kernel.domain.clock import Clock, SystemClock
from travel_kernel.domain.currency import RateTable, normalize_code
from travel_kernel.domain.money import to_decimal
from travel_kernel.exceptions import ConflictError, InvalidAmountError, ValidationError
from travel_kernel.logging_config import get_logger
from travel_kernel.models.currency import CurrencyRate
from travel_kernel.services.base import BaseService

logger = get_logger("services.currency")


class CurrencyService(BaseService[CurrencyRate]):
    """Rate table assembly and manual rate maintenance."""

    def __init__(
        self,
        session: Session,
        base_currency: str,
        default_rates: Mapping[str, Decimal],
        clock: Clock | None = None,
        auto_update_enabled: bool = False,
    ):
        super().__init__(session)
        self._defaults = RateTable(base_currency, default_rates)
        self._clock = clock or SystemClock()
        self._auto_update_enabled = auto_update_enabled

    @property
    def base_currency(self) -> str:
        return self._defaults.base_currency

    def rate_table(self) -> RateTable:
        """Configured defaults overlaid with active persisted rates."""
        rows = self.session.scalars(
            select(CurrencyRate).where(CurrencyRate.is_active.is_(True))
        )
        overrides = {
            row.code: row.rate_to_base
            for row in rows
            if normalize_code(row.code) != self.base_currency
        }
        return self._defaults.with_rates(overrides)

    def set_rate(
        self,
        code: str,
        rate_to_base: object,
        actor_id: UUID,
        name: str | None = None,
    ) -> Decimal:
        """
        Record a manual rate for ``code``.

        Raises:
            ValidationError: If ``code`` is the base currency.
            InvalidAmountError: If the rate is not a positive number.
        """
        currency = normalize_code(code)
        if currency == self.base_currency:
            raise ValidationError(f"The base currency {currency} always has rate 1")
        rate = to_decimal(rate_to_base, f"rate for {currency}")
        if rate <= 0:
            raise InvalidAmountError(f"rate for {currency}", rate_to_base, "must be positive")

        row = self.session.execute(
            select(CurrencyRate).where(CurrencyRate.code == currency).with_for_update()
        ).scalar_one_or_none()
        if row is None:
            row = CurrencyRate(
                code=currency,
                name=name,
                rate_to_base=rate,
                last_updated=self._clock.now(),
                created_by_id=actor_id,
            )
            self.session.add(row)
        else:
            row.rate_to_base = rate
            row.last_updated = self._clock.now()
            row.is_active = True
            row.updated_by_id = actor_id
            if name is not None:
                row.name = name
        self.session.flush()
        logger.info(
            "currency_rate_updated",
            extra={"currency": currency, "rate_to_base": str(rate)},
        )
        return rate

    def apply_rates(
        self,
        rates: Mapping[str, object],
        actor_id: UUID,
        *,
        scheduled: bool = False,
    ) -> int:
        """
        Apply a batch of rates from the online updater.

        Args:
            rates: Currency code -> units of base currency per unit.
            scheduled: True when called by a scheduler rather than an
                operator.

        Raises:
            ConflictError: If ``scheduled`` while automatic updates are disabled.
        """
        if scheduled and not self._auto_update_enabled:
            logger.warning("scheduled_rate_update_rejected", extra={"currencies": len(rates)})
            raise ConflictError("Automatic currency rate updates are disabled")
        with self.atomic():
            updated = 0
            for code, rate in rates.items():
                if normalize_code(code) == self.base_currency:
                    continue
                self.set_rate(code, rate, actor_id)
                updated += 1
        logger.info("currency_rates_applied", extra={"updated": updated})
        return updated
