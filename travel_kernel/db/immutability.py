"""
ORM-level immutability enforcement for posted journal entries.

The journal ledger service refuses to edit or delete posted entries; these
listeners are the second layer and catch any code path that bypasses it:

    session.flush()
         |
         v
    [before_update] --> _check_journal_entry_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_journal_entry_delete()       --> ImmutabilityViolationError

The DRAFT -> POSTED transition is allowed: the check looks at whether the
entry *was* posted before this flush, using SQLAlchemy attribute history.
updated_at / updated_by_id are audit metadata and may change at any time.

Listeners are registered by ``DatabaseContext.open()``.
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from travel_kernel.exceptions import ImmutabilityViolationError
from travel_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_POSTED = "posted"
_AUDIT_FIELDS = ("updated_at", "updated_by_id")


def _was_posted_before(target) -> bool:
    status_history = get_history(target, "status")
    if status_history.deleted:
        return status_history.deleted[0] == _POSTED
    if not status_history.added:
        return target.status == _POSTED
    return False


def _check_journal_entry_immutability(mapper, connection, target):
    """Block any change to an entry that was already posted."""
    if not _was_posted_before(target):
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "JournalEntry",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": attr.key,
                },
            )
            raise ImmutabilityViolationError(
                entity_type="JournalEntry",
                entity_id=str(target.id),
                reason=f"Cannot modify field '{attr.key}' on posted journal entry",
            )


def _check_journal_entry_delete(mapper, connection, target):
    """Block deletion of posted entries."""
    if target.status == _POSTED:
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "JournalEntry",
                "entity_id": str(target.id),
                "operation": "DELETE",
            },
        )
        raise ImmutabilityViolationError(
            entity_type="JournalEntry",
            entity_id=str(target.id),
            reason="Posted journal entries cannot be deleted",
        )


_LISTENERS = (
    ("before_update", _check_journal_entry_immutability),
    ("before_delete", _check_journal_entry_delete),
)


def register_immutability_listeners() -> None:
    """Register the journal entry listeners. Safe to call repeatedly."""
    from travel_kernel.models.journal import JournalEntry

    for event_name, listener_fn in _LISTENERS:
        if not event.contains(JournalEntry, event_name, listener_fn):
            event.listen(JournalEntry, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """Remove the journal entry listeners. FOR TESTING ONLY."""
    from travel_kernel.models.journal import JournalEntry

    for event_name, listener_fn in _LISTENERS:
        if event.contains(JournalEntry, event_name, listener_fn):
            event.remove(JournalEntry, event_name, listener_fn)
