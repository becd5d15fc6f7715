"""
Module: travel_kernel.models.currency
Responsibility: Persisted conversion rates.  A row overrides the configured
    default rate for its currency.  Rows are written only by an explicit
    manual update; nothing refreshes them on a schedule.
Architecture position: Kernel > Models.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from travel_kernel.db.base import TrackedBase


class CurrencyRate(TrackedBase):
    """Units of base currency per one unit of ``code``."""

    __tablename__ = "currency_rates"
    __table_args__ = (
        UniqueConstraint("code", name="uq_currency_rate_code"),
        CheckConstraint("rate_to_base > 0", name="ck_currency_rate_positive"),
    )

    code: Mapped[str] = mapped_column(String(3), nullable=False)

    name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    rate_to_base: Mapped[Decimal] = mapped_column(nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    last_updated: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<CurrencyRate {self.code}={self.rate_to_base}>"
