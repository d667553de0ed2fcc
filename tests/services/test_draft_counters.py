"""Tests for the draft counter registry and its counters."""

from datetime import date

import pytest

from closing_config import get_active_config
from closing_kernel.services.draft_counters import (
    DraftCounter,
    DraftCounterRegistry,
    JournalDraftCounter,
    TableDraftCounter,
)

JAN_START = date(2025, 1, 1)
JAN_END = date(2025, 1, 31)


class _FixedCounter:
    """A counter for another subsystem, stubbed to a constant."""

    def __init__(self, category, count):
        self.category = category
        self.description = f"Resolve {category}"
        self._count = count

    def count_drafts_in_range(self, session, start, end):
        return self._count


class TestRegistry:

    def test_rejects_non_counters(self):
        with pytest.raises(TypeError):
            DraftCounterRegistry().register(object())

    def test_protocol_is_structural(self):
        assert isinstance(_FixedCounter("payroll", 0), DraftCounter)

    def test_categories_keep_first_seen_order(self):
        registry = DraftCounterRegistry([
            _FixedCounter("ledgers", 0),
            _FixedCounter("expenses", 1),
            _FixedCounter("invoices", 0),
            _FixedCounter("expenses", 2),
        ])
        assert registry.categories == ["ledgers", "expenses", "invoices"]
        assert len(registry.counters_for("expenses")) == 2
        assert len(registry) == 4

    def test_from_default_sources(self):
        registry = DraftCounterRegistry.from_sources(get_active_config().draft_sources)
        kinds = {type(c).__name__ for c in registry}
        assert kinds == {"JournalDraftCounter", "TableDraftCounter"}
        assert [c.table_name for c in registry.counters_for("expenses")] == [
            "operational_expenses",
            "project_expenses",
        ]


class TestTableDraftCounter:

    def test_counts_only_draft_statuses_in_range(self, session, add_document):
        add_document("operational_expenses", date(2025, 1, 3), "DRAFT")
        add_document("operational_expenses", date(2025, 1, 31), "PENDING_APPROVAL")
        add_document("operational_expenses", date(2025, 1, 15), "APPROVED")
        add_document("operational_expenses", date(2025, 2, 1), "DRAFT")
        add_document("operational_expenses", date(2024, 12, 31), "DRAFT")

        counter = TableDraftCounter(
            category="expenses",
            table_name="operational_expenses",
            date_column="expense_date",
            draft_statuses=("DRAFT", "PENDING_APPROVAL"),
        )
        assert counter.count_drafts_in_range(session, JAN_START, JAN_END) == 2

    def test_default_description(self):
        counter = TableDraftCounter("invoices", "sales_invoices")
        assert counter.description == "Finalize draft invoices dated in the period"


class TestJournalDraftCounter:

    def test_counts_draft_entries(self, session, standard_accounts, january, post_entry):
        post_entry(date(2025, 1, 5), [("1100", "10", 0), ("4100", 0, "10")], post=False)
        post_entry(date(2025, 1, 6), [("1100", "10", 0), ("4100", 0, "10")])

        counter = JournalDraftCounter()
        assert counter.category == "ledgers"
        assert counter.count_drafts_in_range(session, JAN_START, JAN_END) == 1
