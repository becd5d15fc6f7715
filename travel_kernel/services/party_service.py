"""
Service layer for parties: customers, suppliers and employees.

Returns PartyInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from travel_kernel.exceptions import PartyNotFoundError, PartyTypeMismatchError
from travel_kernel.logging_config import get_logger
from travel_kernel.models.party import Party, PartyType
from travel_kernel.services.base import BaseService

logger = get_logger("services.party")


@dataclass(frozen=True)
class PartyInfo:
    """Immutable DTO for party data."""

    id: UUID
    party_code: str
    party_type: PartyType
    name: str
    email: str | None
    is_active: bool
    default_commission_rate: Decimal | None
    user_id: UUID | None


class PartyService(BaseService[Party]):
    """Create and look up parties."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _to_dto(self, party: Party) -> PartyInfo:
        return PartyInfo(
            id=party.id,
            party_code=party.party_code,
            party_type=PartyType(party.party_type),
            name=party.name,
            email=party.email,
            is_active=party.is_active,
            default_commission_rate=party.default_commission_rate,
            user_id=party.user_id,
        )

    def get_model(self, party_id: UUID, expected_type: PartyType | None = None) -> Party:
        """
        Load a party row, optionally checking its type.

        Raises:
            PartyNotFoundError: If the party does not exist.
            PartyTypeMismatchError: If the party is not of ``expected_type``.
        """
        party = self.session.get(Party, party_id)
        if party is None:
            raise PartyNotFoundError(str(party_id))
        if expected_type is not None and party.party_type != expected_type:
            raise PartyTypeMismatchError(
                str(party_id), expected_type.value, PartyType(party.party_type).value
            )
        return party

    def get_by_id(self, party_id: UUID) -> PartyInfo:
        return self._to_dto(self.get_model(party_id))

    def find_by_code(self, party_code: str) -> PartyInfo | None:
        party = self.session.execute(
            select(Party).where(Party.party_code == party_code)
        ).scalar_one_or_none()
        return self._to_dto(party) if party else None

    def list_parties(self, party_type: PartyType | None = None) -> list[PartyInfo]:
        stmt = select(Party).order_by(Party.party_code)
        if party_type is not None:
            stmt = stmt.where(Party.party_type == party_type)
        return [self._to_dto(p) for p in self.session.scalars(stmt)]

    def create_party(
        self,
        party_code: str,
        party_type: PartyType,
        name: str,
        actor_id: UUID,
        *,
        email: str | None = None,
        phone: str | None = None,
        tax_id: str | None = None,
        payment_terms_days: int | None = None,
        default_commission_rate: Decimal | None = None,
        user_id: UUID | None = None,
    ) -> PartyInfo:
        """
        Create a party.

        Args:
            party_code: Unique business code (e.g. ``CUST-001``).
            party_type: CUSTOMER, SUPPLIER or EMPLOYEE.
            name: Display name.
            actor_id: User performing the operation.
            default_commission_rate: Employees only, percentage of gross profit.
            user_id: Employees only, their login account.

        Returns:
            PartyInfo for the new party.
        """
        party = Party(
            party_code=party_code,
            party_type=party_type,
            name=name,
            email=email,
            phone=phone,
            tax_id=tax_id,
            payment_terms_days=payment_terms_days,
            default_commission_rate=default_commission_rate,
            user_id=user_id,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(party)
        self.session.flush()
        logger.info(
            "party_created",
            extra={"party_id": str(party.id), "party_type": party_type.value},
        )
        return self._to_dto(party)

    def employee_for_user(self, user_id: UUID) -> PartyInfo | None:
        """The employee party linked to a login account, if any."""
        party = self.session.execute(
            select(Party).where(
                Party.party_type == PartyType.EMPLOYEE,
                Party.user_id == user_id,
            )
        ).scalars().first()
        return self._to_dto(party) if party else None
