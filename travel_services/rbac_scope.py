"""
ScopeResolver -- what a user may see, derived from customer assignments.

Responsibility:
    Turns a user id into an ``AccessScope`` over customers, suppliers,
    bookings or invoices, and applies that scope to queries.

Invariants enforced:
    - Unrestricted roles (admins, accountants, financial controllers by
      default; configurable) get ``AccessScope.UNRESTRICTED`` and queries
      carry no filter at all.
    - Any other user sees only what hangs off their *active* assignments:
      customers -> bookings -> suppliers / invoices.
    - A user with no assignments gets an empty scope that matches nothing.
      This is a valid answer, never an error.
    - Lookup failures propagate; they are never turned into an empty scope.

Failure modes:
    - UserNotFoundError for an unknown user id.
    - AccessDeniedError from the ``check_*`` helpers.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, union
from sqlalchemy.orm import Session

from travel_config.schema import AccessConfig
from travel_kernel.domain.access import AccessScope
from travel_kernel.exceptions import AccessDeniedError, UserNotFoundError
from travel_kernel.logging_config import get_logger
from travel_kernel.models.user import User, UserRole
from travel_modules.booking.orm import BookingModel, BookingSupplierLineModel
from travel_modules.invoicing.orm import InvoiceModel
from travel_services.assignment_service import CustomerAssignmentModel

logger = get_logger("services.rbac")

NOT_ASSIGNED = "not assigned to this customer"

__all__ = ["AccessScope", "ScopeResolver"]


class ScopeResolver:
    """Resolves access scopes for users from their customer assignments."""

    def __init__(self, session: Session, config: AccessConfig | None = None):
        self.session = session
        self._config = config or AccessConfig()

    def _user(self, user_id: UUID) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user

    def is_unrestricted(self, user_id: UUID) -> bool:
        """True when the user's role bypasses assignment scoping."""
        role = UserRole(self._user(user_id).role)
        return role.value in self._config.unrestricted_roles

    def _customer_subquery(self, user_id: UUID):
        return select(CustomerAssignmentModel.customer_id).where(
            CustomerAssignmentModel.user_id == user_id,
            CustomerAssignmentModel.is_active.is_(True),
        )

    # -- scopes --------------------------------------------------------------

    def assigned_customer_ids(self, user_id: UUID) -> AccessScope:
        if self.is_unrestricted(user_id):
            return AccessScope.UNRESTRICTED
        scope = AccessScope.of(self.session.scalars(self._customer_subquery(user_id)))
        logger.debug(
            "customer_scope_resolved",
            extra={"user_id": str(user_id), "customer_count": len(scope.ids)},
        )
        return scope

    def accessible_booking_ids(self, user_id: UUID) -> AccessScope:
        if self.is_unrestricted(user_id):
            return AccessScope.UNRESTRICTED
        stmt = select(BookingModel.id).where(
            BookingModel.customer_id.in_(self._customer_subquery(user_id))
        )
        return AccessScope.of(self.session.scalars(stmt))

    def accessible_supplier_ids(self, user_id: UUID) -> AccessScope:
        """
        Suppliers on bookings of the user's customers, as the main supplier
        or on an additional supplier line.
        """
        if self.is_unrestricted(user_id):
            return AccessScope.UNRESTRICTED
        customers = self._customer_subquery(user_id)
        stmt = union(
            select(BookingModel.supplier_id).where(BookingModel.customer_id.in_(customers)),
            select(BookingSupplierLineModel.supplier_id)
            .join(BookingModel, BookingSupplierLineModel.booking_id == BookingModel.id)
            .where(BookingModel.customer_id.in_(customers)),
        )
        return AccessScope.of(self.session.scalars(stmt))

    def accessible_invoice_ids(self, user_id: UUID) -> AccessScope:
        """Invoices raised on bookings of the user's customers."""
        if self.is_unrestricted(user_id):
            return AccessScope.UNRESTRICTED
        stmt = (
            select(InvoiceModel.id)
            .join(BookingModel, InvoiceModel.booking_id == BookingModel.id)
            .where(BookingModel.customer_id.in_(self._customer_subquery(user_id)))
        )
        return AccessScope.of(self.session.scalars(stmt))

    # -- guards --------------------------------------------------------------

    def _deny(self, user_id: UUID, entity_type: str, entity_id: UUID) -> None:
        logger.warning(
            "access_denied",
            extra={
                "user_id": str(user_id),
                "entity_type": entity_type,
                "entity_id": str(entity_id),
            },
        )
        raise AccessDeniedError(entity_type, str(entity_id), NOT_ASSIGNED)

    def check_customer_access(self, user_id: UUID, customer_id: UUID) -> None:
        """
        Raises:
            AccessDeniedError: If the user may not see this customer.
        """
        if not self.assigned_customer_ids(user_id).allows(customer_id):
            self._deny(user_id, "customer", customer_id)

    def check_booking_access(self, user_id: UUID, booking_id: UUID) -> None:
        if not self.accessible_booking_ids(user_id).allows(booking_id):
            self._deny(user_id, "booking", booking_id)

    def check_invoice_access(self, user_id: UUID, invoice_id: UUID) -> None:
        if not self.accessible_invoice_ids(user_id).allows(invoice_id):
            self._deny(user_id, "invoice", invoice_id)

    def check_supplier_access(self, user_id: UUID, supplier_id: UUID) -> None:
        if not self.accessible_supplier_ids(user_id).allows(supplier_id):
            self._deny(user_id, "supplier", supplier_id)
