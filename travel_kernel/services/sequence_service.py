"""
SequenceService -- human-readable document numbers via locked counter rows.

Responsibility:
    Allocates strictly increasing integers per named sequence and formats
    them into document numbers (``BKG-2024-000001``, ``JE-000042``).  The
    counter table is the sole source of truth; the aggregate-max-plus-one
    pattern is never used.

Invariants enforced:
    - Monotonic per sequence name: ``SELECT ... FOR UPDATE`` on the counter
      row serialises concurrent allocations.
    - Transactional: a rolled-back transaction gives its value back.

Failure modes:
    - IntegrityError on a concurrent first use of a sequence is absorbed
      by a savepoint rollback and a locked re-read.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from travel_kernel.db.base import Base
from travel_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """One row per named sequence holding the last issued value."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """
    Transactional sequence numbers.

    Does NOT commit; the caller's transaction decides whether a value is
    consumed.
    """

    JOURNAL_ENTRY = "journal_entry"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row (creating it on first use), increment it and
        return the new value (always > 0).
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_number(
        self,
        prefix: str,
        *,
        width: int = 6,
        year: int | None = None,
    ) -> str:
        """
        Allocate and format a document number.

        With ``year`` the sequence restarts every year and the number reads
        ``{prefix}-{year}-{n}``; without it the number is ``{prefix}-{n}``.
        """
        if year is None:
            value = self.next_value(prefix)
            return f"{prefix}-{value:0{width}d}"
        value = self.next_value(f"{prefix}:{year}")
        return f"{prefix}-{year}-{value:0{width}d}"

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing, or None if never used."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
