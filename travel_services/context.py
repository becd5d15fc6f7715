"""
travel_services.context -- explicit back-office context and unit of work.

Responsibility:
    ``BackOfficeContext`` owns the ``DatabaseContext``, the configuration
    and the clock for one process.  ``unit_of_work()`` opens a session,
    wires every service over it exactly once and owns the transaction
    boundary: commit on success, rollback and re-raise on error.

Architecture position:
    Services -- the single place where kernel and module services are
    constructed and composed.  No service constructs its collaborators
    when they are handed in here.

Invariants enforced:
    - No module-level engine, session or configuration.  Everything hangs
      off an explicitly opened context.
    - One SequenceService per unit of work, shared by every service that
      numbers documents.

Usage:
    ctx = BackOfficeContext.from_url("sqlite:///travel.db").open()
    ctx.create_schema(actor_id)
    with ctx.unit_of_work() as uow:
        booking = uow.bookings.create_booking(request, actor_id)
        uow.invoices.create_invoice(booking.id, actor_id)
    ctx.close()
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from travel_config import get_active_config
from travel_config.schema import BackOfficeConfig
from travel_kernel.db.engine import DatabaseContext
from travel_kernel.domain.clock import Clock, SystemClock
from travel_kernel.logging_config import LogContext, get_logger
from travel_kernel.services.chart_service import ChartService
from travel_kernel.services.currency_service import CurrencyService
from travel_kernel.services.journal_ledger import JournalLedger
from travel_kernel.services.party_service import PartyService
from travel_kernel.services.sequence_service import SequenceService
from travel_modules.accounting.chart import chart_seeds
from travel_modules.accounting.postings import LedgerPostings
from travel_modules.booking.service import BookingService
from travel_modules.cash.service import CashService
from travel_modules.invoicing.service import InvoiceService
from travel_services.assignment_service import AssignmentService
from travel_services.ledger_propagation import LedgerPropagationEngine
from travel_services.rbac_scope import ScopeResolver

logger = get_logger("services.context")


class UnitOfWork:
    """Every back-office service wired over one session."""

    def __init__(self, session: Session, config: BackOfficeConfig, clock: Clock):
        self.session = session
        self.config = config
        self.clock = clock

        self.sequences = SequenceService(session)
        self.parties = PartyService(session)
        self.chart = ChartService(session)
        self.currency = CurrencyService(
            session,
            config.currency.base_currency,
            config.currency.rates,
            clock=clock,
            auto_update_enabled=config.currency.auto_update_enabled,
        )
        self.journal = JournalLedger(
            session,
            clock=clock,
            sequences=self.sequences,
            number_prefix=config.numbering.journal_prefix,
        )
        self.postings = LedgerPostings(session, self.journal, self.chart, config.accounting)
        self.assignments = AssignmentService(session)
        self.scopes = ScopeResolver(session, config.access)
        self.cash = CashService(session)
        self.invoices = InvoiceService(
            session, config, self.postings, clock=clock, sequences=self.sequences
        )
        self.bookings = BookingService(
            session,
            config,
            self.currency,
            self.postings,
            self.invoices,
            clock=clock,
            sequences=self.sequences,
            commission_lookup=self.assignments.commission_rate_for,
        )
        self.propagation = LedgerPropagationEngine(
            session,
            config,
            self.currency,
            self.postings,
            clock=clock,
            sequences=self.sequences,
        )

    def seed_chart(self, actor_id: UUID) -> int:
        """Create the configured default chart of accounts.  Idempotent."""
        return self.chart.seed_chart(chart_seeds(self.config.accounting), actor_id)


class BackOfficeContext:
    """Process-level owner of database, configuration and clock."""

    def __init__(
        self,
        database: DatabaseContext,
        config: BackOfficeConfig | None = None,
        clock: Clock | None = None,
    ):
        self.database = database
        self.config = config or get_active_config()
        self.clock = clock or SystemClock()

    @classmethod
    def from_url(
        cls,
        database_url: str,
        *,
        config: BackOfficeConfig | None = None,
        clock: Clock | None = None,
        **engine_options: Any,
    ) -> "BackOfficeContext":
        return cls(DatabaseContext(database_url, **engine_options), config=config, clock=clock)

    def open(self) -> "BackOfficeContext":
        self.database.open()
        return self

    def close(self) -> None:
        self.database.close()

    def __enter__(self) -> "BackOfficeContext":
        return self.open()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def create_schema(self, actor_id: UUID) -> int:
        """Create all tables and seed the chart of accounts."""
        self.database.create_tables()
        with self.unit_of_work(actor_id=actor_id) as uow:
            return uow.seed_chart(actor_id)

    @contextmanager
    def unit_of_work(
        self,
        *,
        actor_id: UUID | None = None,
        correlation_id: str | None = None,
    ) -> Iterator[UnitOfWork]:
        """
        Yield a ``UnitOfWork``; commit when the block exits normally.

        On an exception the transaction is rolled back and the exception
        re-raised unchanged.
        """
        with LogContext.bind(actor_id=actor_id, correlation_id=correlation_id):
            with self.database.session_scope() as session:
                yield UnitOfWork(session, self.config, self.clock)
