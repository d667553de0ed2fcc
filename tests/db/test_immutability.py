"""
Append-only ledger enforcement.

Posted entries and their lines are read concurrently by closing runs and
must never change underneath them.  DRAFT entries stay editable, and the
DRAFT -> POSTED transition itself is allowed.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import event

from closing_kernel.db.immutability import (
    _check_journal_entry_update,
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from closing_kernel.domain.dtos import LineSpec
from closing_kernel.exceptions import ImmutabilityViolationError
from closing_kernel.models.journal import JournalEntry, JournalLine
from closing_kernel.services.ledger_service import LedgerService

LINES = [
    LineSpec(account_code="1100", debit=Decimal("100"), credit=Decimal("0")),
    LineSpec(account_code="4100", debit=Decimal("0"), credit=Decimal("100")),
]


@pytest.fixture
def ledger(session, deterministic_clock):
    return LedgerService(session, deterministic_clock)


@pytest.fixture
def posted_entry(session, ledger, standard_accounts, january, test_actor_id):
    info = ledger.record_entry("JE-1", date(2025, 1, 10), LINES, test_actor_id, "IDR")
    return session.get(JournalEntry, info.id)


class TestPostedEntryImmutability:

    def test_field_update_blocked(self, session, posted_entry):
        posted_entry.description = "rewritten history"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "JournalEntry"

    def test_delete_blocked(self, session, posted_entry):
        session.delete(posted_entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_line_amount_update_blocked(self, session, posted_entry):
        posted_entry.lines[0].debit_amount = Decimal("999")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "JournalLine"

    def test_line_insert_blocked(self, session, posted_entry, standard_accounts, test_actor_id):
        posted_entry.lines.append(
            JournalLine(
                account_id=standard_accounts["6100"].id,
                line_number=3,
                debit_amount=Decimal("1"),
                credit_amount=Decimal("0"),
                created_by_id=test_actor_id,
            )
        )
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestDraftEntries:

    def test_draft_is_editable_and_postable(
        self, session, ledger, standard_accounts, january, test_actor_id
    ):
        info = ledger.record_entry(
            "JE-2", date(2025, 1, 11), LINES, test_actor_id, "IDR", post=False
        )
        entry = session.get(JournalEntry, info.id)
        entry.description = "corrected before posting"
        entry.lines[0].description = "cash sale"
        session.flush()

        posted = ledger.post_entry(info.id, test_actor_id)
        assert posted.is_posted


class TestListenerRegistration:

    def test_unregistered_listeners_stop_enforcing(self, session, posted_entry):
        unregister_immutability_listeners()
        try:
            posted_entry.description = "migration backfill"
            session.flush()
        finally:
            register_immutability_listeners()

        posted_entry.reference = "after re-registration"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_register_is_idempotent(self):
        register_immutability_listeners()
        register_immutability_listeners()
        assert event.contains(JournalEntry, "before_update", _check_journal_entry_update)
