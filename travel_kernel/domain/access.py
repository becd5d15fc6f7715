"""
AccessScope -- a set of permitted ids, or no restriction at all.

Produced by ``travel_services.rbac_scope.ScopeResolver`` and consumed by
any read that must honour it.  ``ids is None`` is the unrestricted
sentinel; an empty frozenset permits nothing.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import Select, false


@dataclass(frozen=True)
class AccessScope:
    ids: frozenset[UUID] | None

    @classmethod
    def of(cls, ids: Iterable[UUID]) -> "AccessScope":
        return cls(frozenset(ids))

    @property
    def is_unrestricted(self) -> bool:
        return self.ids is None

    @property
    def is_empty(self) -> bool:
        return self.ids is not None and not self.ids

    def allows(self, entity_id: UUID | None) -> bool:
        if self.ids is None:
            return True
        return entity_id in self.ids

    def apply(self, stmt: Select, column) -> Select:
        """Restrict ``stmt`` to rows whose ``column`` is in scope."""
        if self.ids is None:
            return stmt
        if not self.ids:
            return stmt.where(false())
        return stmt.where(column.in_(list(self.ids)))


AccessScope.UNRESTRICTED = AccessScope(None)
AccessScope.EMPTY = AccessScope(frozenset())
