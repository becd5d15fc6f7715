"""
BaseService -- common constructor and transaction helpers.

Services flush within the caller's transaction and never commit or roll
back the session themselves.  Multi-row operations run inside
``atomic()``, a savepoint that is released on success and rolled back on
any exception, so a failed step leaves nothing behind even when the caller
keeps using the session.
"""

from abc import ABC
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from travel_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Abstract base class for services that read and write ORM rows."""

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def atomic(self) -> Iterator[Session]:
        """Run a block inside a SAVEPOINT; roll the block back on error."""
        with self.session.begin_nested():
            yield self.session

    def lock_row(self, model: type[Base], row_id: UUID):
        """``SELECT ... FOR UPDATE`` a row by id and refresh it; None if missing."""
        return self.session.execute(
            select(model)
            .where(model.id == row_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
