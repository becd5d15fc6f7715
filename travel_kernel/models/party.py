"""
Module: travel_kernel.models.party
Responsibility: ORM persistence for the people and companies the agency
    deals with: customers (billed on invoices), suppliers (airlines, hotels,
    visa agents paid through supplier payments) and employees (booking
    agents and customer-service staff who earn commission).
Architecture position: Kernel > Models.  May import from db/base.py only.
Invariants enforced:
    - party_code is unique.
    - party_type is set at creation and never changes.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from travel_kernel.db.base import TrackedBase, UUIDString


class PartyType(str, Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    EMPLOYEE = "employee"


class Party(TrackedBase):
    """Customer, supplier or employee."""

    __tablename__ = "parties"
    __table_args__ = (
        UniqueConstraint("party_code", name="uq_party_code"),
        Index("idx_party_type", "party_type"),
    )

    party_code: Mapped[str] = mapped_column(String(50), nullable=False)

    party_type: Mapped[PartyType] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    tax_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    payment_terms_days: Mapped[int | None] = mapped_column(nullable=True)

    # Employees only: commission percentage used when a booking has no
    # explicit rate and the customer assignment has no override.
    default_commission_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Employees only: login account of the employee
    user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Party {self.party_code}: {self.name} ({self.party_type})>"
