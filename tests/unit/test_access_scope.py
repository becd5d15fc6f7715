"""Tests for AccessScope, the value RBAC hands to every scoped read."""

from uuid import uuid4

from sqlalchemy import Column, MetaData, String, Table, select

from travel_kernel.domain.access import AccessScope

_things = Table("things", MetaData(), Column("id", String(36), primary_key=True))


class TestAccessScope:
    def test_unrestricted_allows_everything(self):
        scope = AccessScope.UNRESTRICTED
        assert scope.is_unrestricted
        assert not scope.is_empty
        assert scope.allows(uuid4())

    def test_empty_allows_nothing(self):
        scope = AccessScope.EMPTY
        assert scope.is_empty
        assert not scope.is_unrestricted
        assert not scope.allows(uuid4())

    def test_of_ids(self):
        a, b = uuid4(), uuid4()
        scope = AccessScope.of([a, a])
        assert scope.ids == frozenset({a})
        assert scope.allows(a)
        assert not scope.allows(b)
        assert not scope.allows(None)

    def test_apply_unrestricted_leaves_statement_alone(self):
        stmt = select(_things.c.id)
        assert AccessScope.UNRESTRICTED.apply(stmt, _things.c.id) is stmt

    def test_apply_empty_matches_nothing(self):
        stmt = AccessScope.EMPTY.apply(select(_things.c.id), _things.c.id)
        assert stmt.whereclause is not None
        assert "IN" not in str(stmt)

    def test_apply_ids_filters_with_in(self):
        scope = AccessScope.of([uuid4(), uuid4()])
        stmt = scope.apply(select(_things.c.id), _things.c.id)
        assert " IN " in str(stmt)
