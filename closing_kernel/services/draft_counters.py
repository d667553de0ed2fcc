"""
Draft counters -- registered collaborators that count unfinished documents.

Responsibility:
    Each DraftCounter represents one external document category (journal
    entries, sales invoices, expense claims, purchase orders, ...) and
    answers a single question: how many documents of this category dated
    inside [start, end] are still in a non-final workflow state?

Architecture position:
    Kernel > Services.  The PeriodValidator iterates the registry and never
    names a document type itself, so adding a category is a configuration
    change, not a validator change.

Invariants enforced:
    - Counters are read-only.
    - Table and column names come from validated configuration and are
      bound as SQL identifiers, never as raw SQL text.
"""

from collections.abc import Iterable
from datetime import date
from typing import Protocol, runtime_checkable

from sqlalchemy import Date, String, column, func, select, table
from sqlalchemy.orm import Session

from closing_kernel.logging_config import get_logger
from closing_kernel.models.journal import JournalEntry, JournalEntryStatus

logger = get_logger("services.draft_counters")


@runtime_checkable
class DraftCounter(Protocol):
    """Counts drafts of one document category inside a date range."""

    category: str
    description: str

    def count_drafts_in_range(self, session: Session, start: date, end: date) -> int:
        ...


class JournalDraftCounter:
    """DRAFT journal entries of the in-core ledger."""

    def __init__(
        self,
        category: str = "ledgers",
        description: str = "Post or discard draft journal entries dated in the period",
    ):
        self.category = category
        self.description = description

    def count_drafts_in_range(self, session: Session, start: date, end: date) -> int:
        return int(
            session.execute(
                select(func.count(JournalEntry.id)).where(
                    JournalEntry.status == JournalEntryStatus.DRAFT.value,
                    JournalEntry.transaction_date >= start,
                    JournalEntry.transaction_date <= end,
                )
            ).scalar_one()
        )

    def __repr__(self) -> str:
        return f"<JournalDraftCounter {self.category}>"


class TableDraftCounter:
    """
    Drafts in an external document table.

    The table belongs to another subsystem; it is addressed with a
    lightweight ``table()`` construct so the closing kernel carries no ORM
    mapping for it.
    """

    def __init__(
        self,
        category: str,
        table_name: str,
        date_column: str = "transaction_date",
        status_column: str = "status",
        draft_statuses: Iterable[str] = ("DRAFT",),
        description: str = "",
    ):
        self.category = category
        self.table_name = table_name
        self.date_column = date_column
        self.status_column = status_column
        self.draft_statuses = tuple(draft_statuses)
        self.description = description or f"Finalize draft {category} dated in the period"
        self._table = table(table_name, column(date_column, Date), column(status_column, String))

    def count_drafts_in_range(self, session: Session, start: date, end: date) -> int:
        date_col = self._table.c[self.date_column]
        status_col = self._table.c[self.status_column]
        return int(
            session.execute(
                select(func.count())
                .select_from(self._table)
                .where(
                    status_col.in_(self.draft_statuses),
                    date_col >= start,
                    date_col <= end,
                )
            ).scalar_one()
        )

    def __repr__(self) -> str:
        return f"<TableDraftCounter {self.category}:{self.table_name}>"


class DraftCounterRegistry:
    """
    Ordered set of DraftCounters grouped by category.

    Several counters may share a category (operational and project
    expenses are both "expenses"); the validator sums them into one check.
    """

    def __init__(self, counters: Iterable[DraftCounter] = ()):
        self._counters: list[DraftCounter] = []
        for counter in counters:
            self.register(counter)

    def register(self, counter: DraftCounter) -> None:
        if not isinstance(counter, DraftCounter):
            raise TypeError(f"{counter!r} does not implement DraftCounter")
        self._counters.append(counter)
        logger.debug(
            "draft_counter_registered",
            extra={"category": counter.category, "counter": repr(counter)},
        )

    @property
    def categories(self) -> list[str]:
        seen: list[str] = []
        for counter in self._counters:
            if counter.category not in seen:
                seen.append(counter.category)
        return seen

    def counters_for(self, category: str) -> list[DraftCounter]:
        return [c for c in self._counters if c.category == category]

    def __iter__(self):
        return iter(self._counters)

    def __len__(self) -> int:
        return len(self._counters)

    @classmethod
    def from_sources(cls, sources) -> "DraftCounterRegistry":
        """
        Build a registry from draft source definitions.

        Each source exposes ``category``, ``kind`` ("journal" or "table"),
        ``table``, ``date_column``, ``status_column``, ``draft_statuses``
        and ``description``.
        """
        registry = cls()
        for source in sources:
            if source.kind == "journal":
                registry.register(
                    JournalDraftCounter(
                        category=source.category,
                        description=source.description or JournalDraftCounter().description,
                    )
                )
            else:
                registry.register(
                    TableDraftCounter(
                        category=source.category,
                        table_name=source.table,
                        date_column=source.date_column,
                        status_column=source.status_column,
                        draft_statuses=source.draft_statuses,
                        description=source.description,
                    )
                )
        return registry
