"""
Module: travel_kernel.models.user
Responsibility: ORM persistence for back-office users.  A user's role
    decides whether the RBAC scope resolver restricts them to their
    assigned customers.
Architecture position: Kernel > Models.
"""

from enum import Enum

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from travel_kernel.db.base import TrackedBase


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    ACCOUNTANT = "ACCOUNTANT"
    FINANCIAL_CONTROLLER = "FINANCIAL_CONTROLLER"
    MANAGER = "MANAGER"
    BOOKING_AGENT = "BOOKING_AGENT"
    CUSTOMER_SERVICE = "CUSTOMER_SERVICE"
    SALES_AGENT = "SALES_AGENT"
    AGENT = "AGENT"


class User(TrackedBase):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_user_email"),)

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(String(40), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
