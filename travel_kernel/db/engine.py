"""
Module: travel_kernel.db.engine
Responsibility: Database lifecycle.  ``DatabaseContext`` owns the SQLAlchemy
    engine and session factory for one process (or one test session) and is
    passed explicitly to whoever needs a session.  Nothing is initialised at
    import time and there is no module-level engine.
Architecture position: Kernel > DB.

Invariants enforced:
    - PostgreSQL runs with READ COMMITTED isolation; services take explicit
      row locks (SELECT ... FOR UPDATE) on balances and statuses they
      read-then-write.
    - SQLite (tests, local tooling) runs with SAVEPOINT support enabled so
      that ``Session.begin_nested()`` gives every propagation an atomic
      block.  Foreign keys are enforced.
    - ``session_scope()`` commits on success and rolls back on any error,
      re-raising the original exception.

Failure modes:
    - RuntimeError if the context is used before ``open()`` or after
      ``close()``.
"""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from travel_kernel.db.immutability import register_immutability_listeners
from travel_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy, not pysqlite, emit BEGIN so SAVEPOINT works."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an engine configured for the target backend.

    Args:
        database_url: SQLAlchemy URL, e.g. ``postgresql+psycopg2://...`` or
            ``sqlite+pysqlite:///:memory:``.
        echo: If True, log all SQL statements.
        pool_size: Number of pooled connections (PostgreSQL).
        max_overflow: Max connections beyond pool_size (PostgreSQL).
        pool_pre_ping: Test connections before use (PostgreSQL).
        pool_timeout: Seconds to wait for a pooled connection (PostgreSQL).
        pool_recycle: Seconds before a connection is recycled (PostgreSQL).

    Returns:
        SQLAlchemy Engine instance.
    """
    if database_url.startswith("sqlite"):
        options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            options["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **options)
        _enable_sqlite_savepoints(engine)
        return engine

    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


class DatabaseContext:
    """
    Explicit owner of the engine and session factory.

    Usage:
        db = DatabaseContext("postgresql+psycopg2://app@localhost/travel").open()
        db.create_tables()
        with db.session_scope() as session:
            ...
        db.close()
    """

    def __init__(self, database_url: str, *, echo: bool = False, **engine_options: Any):
        self.database_url = database_url
        self._echo = echo
        self._engine_options = engine_options
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    def open(self) -> "DatabaseContext":
        """Create the engine and session factory.  Idempotent."""
        if self._engine is not None:
            return self
        self._engine = build_engine(self.database_url, echo=self._echo, **self._engine_options)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        register_immutability_listeners()
        logger.info(
            "engine_initialized",
            extra={"dialect": self._engine.dialect.name, "echo": self._echo},
        )
        return self

    def close(self) -> None:
        """Dispose pooled connections.  The context can be reopened."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("engine_disposed", extra={"dialect": self._engine.dialect.name})
        self._engine = None
        self._session_factory = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("DatabaseContext is not open. Call open() first.")
        return self._engine

    def session(self) -> Session:
        """Return a new session; the caller owns commit and close."""
        if self._session_factory is None:
            raise RuntimeError("DatabaseContext is not open. Call open() first.")
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Transactional scope around a series of operations.

        Commits on normal exit.  On exception the session is rolled back,
        the rollback is logged and the exception is re-raised.
        """
        session = self.session()
        logger.debug("transaction_started")
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except Exception:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create every kernel and module table."""
        from travel_kernel.db.base import Base
        from travel_modules._orm_registry import import_all_orm_models

        import_all_orm_models()
        Base.metadata.create_all(self.engine)
        logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})

    def drop_tables(self) -> None:
        """Drop all tables. Use with caution - primarily for testing."""
        from travel_kernel.db.base import Base

        Base.metadata.drop_all(self.engine)

    def __enter__(self) -> "DatabaseContext":
        return self.open()

    def __exit__(self, *exc: Any) -> None:
        self.close()
