"""
AssignmentService -- which staff user looks after which customer.

Responsibility:
    Maintains customer assignments, the single source of the RBAC scope
    for non-admin users and of per-customer commission overrides.

Invariants enforced:
    - At most one row per (customer, user, role); enforced by
      uq_customer_assignment and honoured by ``assign()`` as an upsert.
    - Removal is a soft delete (``is_active = False``).  Re-assigning
      reactivates the same row.  Rows are never hard-deleted.
    - Only active rows grant access or provide commission overrides.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from travel_kernel.db.base import TrackedBase
from travel_kernel.domain.money import to_decimal
from travel_kernel.exceptions import (
    AssignmentNotFoundError,
    InvalidAmountError,
    UserNotFoundError,
)
from travel_kernel.logging_config import get_logger
from travel_kernel.models.party import PartyType
from travel_kernel.models.user import User
from travel_kernel.services.base import BaseService
from travel_kernel.services.party_service import PartyService
from travel_modules.booking.details import ServiceType

logger = get_logger("services.assignment")

DEFAULT_ASSIGNED_ROLE = "SALES"


class CustomerAssignmentModel(TrackedBase):
    """Link between a customer party and a staff user."""

    __tablename__ = "customer_assignments"

    __table_args__ = (
        UniqueConstraint(
            "customer_id", "user_id", "assigned_role", name="uq_customer_assignment"
        ),
        Index("idx_customer_assignments_user_active", "user_id", "is_active"),
    )

    customer_id: Mapped[UUID] = mapped_column(ForeignKey("parties.id"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    assigned_role: Mapped[str] = mapped_column(
        String(30), nullable=False, default=DEFAULT_ASSIGNED_ROLE
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Percentages of gross profit; None means "no override"
    commission_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    flight_commission: Mapped[Decimal | None] = mapped_column(nullable=True)
    hotel_commission: Mapped[Decimal | None] = mapped_column(nullable=True)
    visa_commission: Mapped[Decimal | None] = mapped_column(nullable=True)


@dataclass(frozen=True)
class CommissionRates:
    """Commission overrides carried by an assignment."""

    commission_rate: Decimal | None = None
    flight_commission: Decimal | None = None
    hotel_commission: Decimal | None = None
    visa_commission: Decimal | None = None

    def __post_init__(self) -> None:
        for name in ("commission_rate", "flight_commission", "hotel_commission", "visa_commission"):
            value = getattr(self, name)
            if value is None:
                continue
            rate = to_decimal(value, name)
            if not Decimal("0") <= rate <= Decimal("100"):
                raise InvalidAmountError(name, value, "must be between 0 and 100")
            object.__setattr__(self, name, rate)

    def for_service(self, service_type: ServiceType) -> Decimal | None:
        specific = {
            ServiceType.FLIGHT: self.flight_commission,
            ServiceType.HOTEL: self.hotel_commission,
            ServiceType.VISA: self.visa_commission,
        }.get(service_type)
        return specific if specific is not None else self.commission_rate


@dataclass(frozen=True)
class AssignmentInfo:
    id: UUID
    customer_id: UUID
    user_id: UUID
    assigned_role: str
    is_active: bool
    rates: CommissionRates


class AssignmentService(BaseService[CustomerAssignmentModel]):
    """Assign and unassign customers to staff users."""

    def __init__(self, session: Session):
        super().__init__(session)
        self._parties = PartyService(session)

    @staticmethod
    def to_dto(row: CustomerAssignmentModel) -> AssignmentInfo:
        return AssignmentInfo(
            id=row.id,
            customer_id=row.customer_id,
            user_id=row.user_id,
            assigned_role=row.assigned_role,
            is_active=row.is_active,
            rates=CommissionRates(
                commission_rate=row.commission_rate,
                flight_commission=row.flight_commission,
                hotel_commission=row.hotel_commission,
                visa_commission=row.visa_commission,
            ),
        )

    def _find(self, customer_id: UUID, user_id: UUID, role: str) -> CustomerAssignmentModel | None:
        return self.session.execute(
            select(CustomerAssignmentModel)
            .where(
                CustomerAssignmentModel.customer_id == customer_id,
                CustomerAssignmentModel.user_id == user_id,
                CustomerAssignmentModel.assigned_role == role,
            )
            .with_for_update()
        ).scalar_one_or_none()

    def assign(
        self,
        customer_id: UUID,
        user_id: UUID,
        actor_id: UUID,
        *,
        assigned_role: str = DEFAULT_ASSIGNED_ROLE,
        rates: CommissionRates | None = None,
    ) -> AssignmentInfo:
        """
        Create or reactivate the assignment of a customer to a user.

        Re-assigning an existing (customer, user, role) updates the row in
        place: it becomes active again and takes the new rates.

        Raises:
            PartyNotFoundError / PartyTypeMismatchError: If ``customer_id``
                is not a customer.
            UserNotFoundError: If the user does not exist.
        """
        self._parties.get_model(customer_id, PartyType.CUSTOMER)
        if self.session.get(User, user_id) is None:
            raise UserNotFoundError(str(user_id))
        rates = rates or CommissionRates()

        with self.atomic():
            row = self._find(customer_id, user_id, assigned_role)
            if row is None:
                row = CustomerAssignmentModel(
                    customer_id=customer_id,
                    user_id=user_id,
                    assigned_role=assigned_role,
                    created_by_id=actor_id,
                )
                self.session.add(row)
                event = "customer_assigned"
            else:
                row.updated_by_id = actor_id
                event = "customer_reassigned"
            row.is_active = True
            row.commission_rate = rates.commission_rate
            row.flight_commission = rates.flight_commission
            row.hotel_commission = rates.hotel_commission
            row.visa_commission = rates.visa_commission
            self.session.flush()

        logger.info(
            event,
            extra={
                "customer_id": str(customer_id),
                "user_id": str(user_id),
                "assigned_role": assigned_role,
            },
        )
        return self.to_dto(row)

    def unassign(
        self,
        customer_id: UUID,
        user_id: UUID,
        actor_id: UUID,
        *,
        assigned_role: str = DEFAULT_ASSIGNED_ROLE,
    ) -> AssignmentInfo:
        """
        Deactivate an assignment.

        Raises:
            AssignmentNotFoundError: If no such assignment was ever made.
        """
        row = self._find(customer_id, user_id, assigned_role)
        if row is None:
            raise AssignmentNotFoundError(f"{customer_id}/{user_id}/{assigned_role}")
        row.is_active = False
        row.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "customer_unassigned",
            extra={"customer_id": str(customer_id), "user_id": str(user_id)},
        )
        return self.to_dto(row)

    def list_for_user(self, user_id: UUID, *, active_only: bool = True) -> list[AssignmentInfo]:
        stmt = select(CustomerAssignmentModel).where(CustomerAssignmentModel.user_id == user_id)
        if active_only:
            stmt = stmt.where(CustomerAssignmentModel.is_active.is_(True))
        return [self.to_dto(r) for r in self.session.scalars(stmt)]

    def list_for_customer(
        self, customer_id: UUID, *, active_only: bool = True
    ) -> list[AssignmentInfo]:
        stmt = select(CustomerAssignmentModel).where(
            CustomerAssignmentModel.customer_id == customer_id
        ).order_by(CustomerAssignmentModel.assigned_role)
        if active_only:
            stmt = stmt.where(CustomerAssignmentModel.is_active.is_(True))
        return [self.to_dto(r) for r in self.session.scalars(stmt)]

    def commission_rate_for(
        self,
        customer_id: UUID,
        user_id: UUID,
        service_type: ServiceType,
    ) -> Decimal | None:
        """
        Commission override for a user's work on a customer's booking.

        The service-specific rate wins over the general rate.  Returns None
        when no active assignment carries an override.
        """
        for assignment in self.list_for_customer(customer_id):
            if assignment.user_id != user_id:
                continue
            rate = assignment.rates.for_service(service_type)
            if rate is not None:
                return rate
        return None
