"""
Booking ORM Models (``travel_modules.booking.orm``).

Responsibility
--------------
SQLAlchemy persistence for bookings and their additional supplier
lines.  Raw inputs and the computed financial snapshot live side by side
on one row; the snapshot is written only from
``calculate_booking_financials``.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``travel_kernel.db.base``
and sibling modules.  MUST NOT be imported by ``travel_kernel``.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from travel_kernel.db.base import TrackedBase
from travel_modules.booking.calculator import BookingFinancials
from travel_modules.booking.details import ServiceType, details_from_dict, details_to_dict
from travel_modules.booking.models import BookingInfo, BookingStatus, SupplierLineInfo


class BookingModel(TrackedBase):
    """
    ORM model for bookings.

    Guarantees:
        - booking_number is unique (uq_bookings_booking_number).
        - Refund bookings point at the cancelled original via refund_of_id
          and carry negated amounts.
    """

    __tablename__ = "bookings"

    __table_args__ = (
        UniqueConstraint("booking_number", name="uq_bookings_booking_number"),
        Index("idx_bookings_customer_id", "customer_id"),
        Index("idx_bookings_supplier_id", "supplier_id"),
        Index("idx_bookings_status", "status"),
    )

    booking_number: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(String(20), nullable=False)
    service_type: Mapped[ServiceType] = mapped_column(String(20), nullable=False)

    customer_id: Mapped[UUID] = mapped_column(ForeignKey("parties.id"), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("parties.id"), nullable=False)
    booking_agent_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("parties.id"), nullable=True
    )
    customer_service_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("parties.id"), nullable=True
    )

    # Raw inputs
    sale_amount: Mapped[Decimal] = mapped_column(nullable=False)
    sale_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    cost_amount: Mapped[Decimal] = mapped_column(nullable=False)
    cost_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    is_local_tax_zone: Mapped[bool] = mapped_column(Boolean, nullable=False)
    vat_applicable: Mapped[bool] = mapped_column(Boolean, nullable=False)
    agent_commission_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    cs_commission_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    # Computed snapshot (base currency)
    sale_in_base: Mapped[Decimal] = mapped_column(nullable=False)
    cost_in_base: Mapped[Decimal] = mapped_column(nullable=False)
    net_before_vat: Mapped[Decimal] = mapped_column(nullable=False)
    vat_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_with_vat: Mapped[Decimal] = mapped_column(nullable=False)
    gross_profit: Mapped[Decimal] = mapped_column(nullable=False)
    agent_commission_amount: Mapped[Decimal] = mapped_column(nullable=False)
    cs_commission_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_commission: Mapped[Decimal] = mapped_column(nullable=False)
    net_profit: Mapped[Decimal] = mapped_column(nullable=False)

    service_details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    travel_date: Mapped[date | None] = mapped_column(nullable=True)
    return_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    refund_of_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("bookings.id"), nullable=True
    )

    def apply_financials(self, financials: BookingFinancials) -> None:
        """Overwrite the computed snapshot."""
        self.sale_in_base = financials.sale_in_base
        self.cost_in_base = financials.cost_in_base
        self.net_before_vat = financials.net_before_vat
        self.vat_amount = financials.vat_amount
        self.total_with_vat = financials.total_with_vat
        self.gross_profit = financials.gross_profit
        self.agent_commission_amount = financials.agent_commission_amount
        self.cs_commission_amount = financials.cs_commission_amount
        self.total_commission = financials.total_commission
        self.net_profit = financials.net_profit

    def snapshot(self) -> BookingFinancials:
        """The persisted computed fields as a ``BookingFinancials``."""
        return BookingFinancials(
            sale_in_base=self.sale_in_base,
            cost_in_base=self.cost_in_base,
            net_before_vat=self.net_before_vat,
            vat_amount=self.vat_amount,
            total_with_vat=self.total_with_vat,
            gross_profit=self.gross_profit,
            agent_commission_amount=self.agent_commission_amount,
            cs_commission_amount=self.cs_commission_amount,
            total_commission=self.total_commission,
            profit_after_commission=self.gross_profit - self.total_commission,
            net_profit=self.net_profit,
            vat_charged=self.vat_amount != 0,
        )

    def to_dto(self) -> BookingInfo:
        """Convert ORM model to frozen dataclass."""
        return BookingInfo(
            id=self.id,
            booking_number=self.booking_number,
            status=BookingStatus(self.status),
            service_type=ServiceType(self.service_type),
            customer_id=self.customer_id,
            supplier_id=self.supplier_id,
            sale_amount=self.sale_amount,
            sale_currency=self.sale_currency,
            sale_in_base=self.sale_in_base,
            cost_amount=self.cost_amount,
            cost_currency=self.cost_currency,
            cost_in_base=self.cost_in_base,
            is_local_tax_zone=self.is_local_tax_zone,
            vat_applicable=self.vat_applicable,
            net_before_vat=self.net_before_vat,
            vat_amount=self.vat_amount,
            total_with_vat=self.total_with_vat,
            gross_profit=self.gross_profit,
            booking_agent_id=self.booking_agent_id,
            customer_service_id=self.customer_service_id,
            agent_commission_rate=self.agent_commission_rate,
            cs_commission_rate=self.cs_commission_rate,
            agent_commission_amount=self.agent_commission_amount,
            cs_commission_amount=self.cs_commission_amount,
            total_commission=self.total_commission,
            net_profit=self.net_profit,
            service_details=details_from_dict(self.service_details),
            travel_date=self.travel_date,
            return_date=self.return_date,
            notes=self.notes,
            refund_of_id=self.refund_of_id,
        )

    def set_details(self, details) -> None:
        self.service_details = details_to_dict(details)

    def __repr__(self) -> str:
        return f"<BookingModel {self.booking_number} ({self.status})>"


class BookingSupplierLineModel(TrackedBase):
    """
    An additional supplier on a booking.

    The booking's own ``cost_in_base`` already includes every line's
    ``cost_in_base``; each line posts its own cost entry.
    """

    __tablename__ = "booking_suppliers"

    __table_args__ = (
        Index("idx_booking_suppliers_booking_id", "booking_id"),
        Index("idx_booking_suppliers_supplier_id", "supplier_id"),
    )

    booking_id: Mapped[UUID] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(ForeignKey("parties.id"), nullable=False)
    position: Mapped[int] = mapped_column(nullable=False)
    service_type: Mapped[ServiceType] = mapped_column(String(20), nullable=False)
    cost_amount: Mapped[Decimal] = mapped_column(nullable=False)
    cost_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    cost_in_base: Mapped[Decimal] = mapped_column(nullable=False)
    sale_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    sale_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    sale_in_base: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> SupplierLineInfo:
        return SupplierLineInfo(
            id=self.id,
            booking_id=self.booking_id,
            supplier_id=self.supplier_id,
            service_type=ServiceType(self.service_type),
            cost_amount=self.cost_amount,
            cost_currency=self.cost_currency,
            cost_in_base=self.cost_in_base,
            sale_amount=self.sale_amount,
            sale_currency=self.sale_currency,
            sale_in_base=self.sale_in_base,
            description=self.description,
        )

    def __repr__(self) -> str:
        return f"<BookingSupplierLineModel {self.booking_id}#{self.position}>"
