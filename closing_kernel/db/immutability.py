"""
ORM-Level Append-Only Enforcement for the Ledger Store.

Posted journal entries are the ledger of record.  Closing computations read
them concurrently and assume they never change, so once an entry is POSTED:

Entity        | Blocked operations
--------------|------------------------------------------------------------
JournalEntry  | UPDATE of any non-audit field, DELETE
JournalLine   | INSERT into, UPDATE of, or DELETE from a posted entry

SQLAlchemy fires mapper events before the SQL reaches the database; the
listeners below raise ImmutabilityViolationError and the flush is aborted.

The DRAFT -> POSTED transition itself is allowed: we inspect attribute
history to tell "being posted now" from "was already posted".

Usage:

    from closing_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from closing_kernel.exceptions import ImmutabilityViolationError
from closing_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _is_posted(status) -> bool:
    from closing_kernel.models.journal import JournalEntryStatus

    return status == JournalEntryStatus.POSTED or status == JournalEntryStatus.POSTED.value


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _entry_was_posted(entry) -> bool:
    """True if the entry was POSTED before the current flush began."""
    status_history = get_history(entry, "status")
    if status_history.deleted:
        return _is_posted(status_history.deleted[0])
    if status_history.added:
        # Status changing from an unloaded/new value: this is the posting.
        return False
    return _is_posted(entry.status)


def _check_journal_entry_update(mapper, connection, target):
    if not _entry_was_posted(target):
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS or attr.key == "lines":
            continue
        if attr.history.has_changes():
            _blocked(
                "JournalEntry",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on posted journal entry",
            )


def _check_journal_entry_delete(mapper, connection, target):
    if _is_posted(target.status):
        _blocked("JournalEntry", target.id, "DELETE", "Posted journal entries cannot be deleted")


def _check_journal_line_insert(mapper, connection, target):
    entry = target.entry
    if entry is None:
        return
    # A persistent entry that is already posted must not gain lines.
    if inspect(entry).persistent and _entry_was_posted(entry):
        _blocked(
            "JournalLine",
            target.id,
            "INSERT",
            "Lines cannot be added to a posted journal entry",
        )


def _check_journal_line_update(mapper, connection, target):
    if target.entry is not None and _is_posted(target.entry.status):
        _blocked(
            "JournalLine",
            target.id,
            "UPDATE",
            "Journal lines cannot be modified after the entry is posted",
        )


def _check_journal_line_delete(mapper, connection, target):
    if target.entry is not None and _is_posted(target.entry.status):
        _blocked(
            "JournalLine",
            target.id,
            "DELETE",
            "Journal lines cannot be deleted after the entry is posted",
        )


_LISTENERS = (
    ("JournalEntry", "before_update", _check_journal_entry_update),
    ("JournalEntry", "before_delete", _check_journal_entry_delete),
    ("JournalLine", "before_insert", _check_journal_line_insert),
    ("JournalLine", "before_update", _check_journal_line_update),
    ("JournalLine", "before_delete", _check_journal_line_delete),
)


def _targets() -> dict:
    from closing_kernel.models.journal import JournalEntry, JournalLine

    return {"JournalEntry": JournalEntry, "JournalLine": JournalLine}


def register_immutability_listeners() -> None:
    """Register all append-only listeners (idempotent)."""
    targets = _targets()
    for name, event_name, fn in _LISTENERS:
        if not event.contains(targets[name], event_name, fn):
            event.listen(targets[name], event_name, fn)


def unregister_immutability_listeners() -> None:
    """Remove all append-only listeners.  FOR TESTING ONLY."""
    targets = _targets()
    for name, event_name, fn in _LISTENERS:
        if event.contains(targets[name], event_name, fn):
            event.remove(targets[name], event_name, fn)
