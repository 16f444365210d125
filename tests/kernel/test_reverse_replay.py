"""
Reverse & Replay editor tests.

Every correction is a visible, balanced REVERSAL entry.  After an update
the ledger carries exactly the new lines' effect; after a delete it
carries nothing, and the original entry is soft-marked.
"""

from datetime import date
from uuid import uuid4

import pytest

from ledger_kernel.domain.ledger_events import JournalEntryType, LineSpec, net_by_account
from ledger_kernel.exceptions import (
    EntryAlreadyDeletedError,
    EntryAlreadyReversedError,
    EntryNotFoundError,
    PeriodLockedError,
    ReversalOfReversalError,
)


@pytest.fixture
def rent_entry(ledger, chart, actor_id):
    return ledger.post(
        date(2024, 6, 1),
        "June rent",
        [LineSpec.dr("6000", 100, "Rent"), LineSpec.cr("1110", 100, "Bank")],
        actor_id,
    )


def _balances(ledger, codes):
    return {code: ledger.account_balance(code) for code in codes}


class TestUpdate:
    """update() reverses the old lines and replays the new ones in place."""

    def test_net_effect_equals_new_lines(self, ledger, editor, rent_entry, actor_id):
        new_lines = [LineSpec.dr("6000", 250, "Rent"), LineSpec.cr("3000", 250, "Owner paid")]
        result = editor.update(rent_entry.id, date(2024, 6, 5), "June rent (owner)", new_lines, actor_id)

        assert result.entry_id == rent_entry.id
        expected = net_by_account(new_lines)
        assert _balances(ledger, ("6000", "1110", "3000")) == {
            "6000": expected["6000"],
            "1110": 0,
            "3000": expected["3000"],
        }
        assert ledger.trial_balance().is_balanced

    def test_entry_keeps_id_and_takes_new_content(self, ledger, editor, rent_entry, actor_id):
        editor.update(
            rent_entry.id,
            date(2024, 6, 5),
            "Corrected",
            [LineSpec.dr("6000", 120), LineSpec.cr("1110", 120)],
            actor_id,
        )
        entry = ledger.get_entry(rent_entry.id)
        assert entry.entry_date == date(2024, 6, 5)
        assert entry.description == "Corrected"
        assert [(l.account_code, l.debit, l.credit) for l in entry.lines] == [
            ("6000", 120, 0),
            ("1110", 0, 120),
        ]
        assert entry.updated_by_id == actor_id

    def test_reversal_mirrors_pre_update_lines(self, ledger, editor, rent_entry, actor_id, clock):
        result = editor.update(
            rent_entry.id,
            date(2024, 6, 5),
            "Corrected",
            [LineSpec.dr("6000", 120), LineSpec.cr("1110", 120)],
            actor_id,
        )
        reversal = ledger.get_entry(result.reversal_entry_id)

        assert reversal.entry_type == JournalEntryType.REVERSAL.value
        assert reversal.entry_date == clock.today()
        assert reversal.reference == f"REV-JE{rent_entry.id}"
        assert reversal.correlation_id == f"je-{rent_entry.id}-reversal"
        assert reversal.description.startswith(f"Reversal: Edited JE #{rent_entry.id} -")
        assert [(l.account_code, l.debit, l.credit) for l in reversal.lines] == [
            ("6000", 0, 100),
            ("1110", 100, 0),
        ]

    def test_update_into_locked_period_rejected(self, ledger, editor, rent_entry, actor_id):
        ledger.close_period(date(2024, 6, 3), actor_id)
        with pytest.raises(PeriodLockedError):
            editor.update(
                rent_entry.id,
                date(2024, 6, 2),
                "Back-dated",
                [LineSpec.dr("6000", 1), LineSpec.cr("1110", 1)],
                actor_id,
            )

    def test_reversal_entries_are_not_editable(self, ledger, editor, rent_entry, actor_id):
        reversal = ledger.reverse(rent_entry.id, date(2024, 6, 2), actor_id)
        with pytest.raises(ReversalOfReversalError):
            editor.update(
                reversal.id,
                date(2024, 6, 2),
                "Nope",
                [LineSpec.dr("6000", 1), LineSpec.cr("1110", 1)],
                actor_id,
            )

    def test_unknown_entry(self, editor, chart, actor_id):
        with pytest.raises(EntryNotFoundError):
            editor.delete(uuid4(), actor_id)


class TestDelete:
    """delete() neutralizes and soft-marks an entry."""

    def test_delete_neutralizes_and_marks(self, ledger, editor, rent_entry, actor_id):
        result = editor.delete(rent_entry.id, actor_id)

        assert _balances(ledger, ("6000", "1110")) == {"6000": 0, "1110": 0}
        entry = ledger.get_entry(rent_entry.id)
        assert entry.is_deleted
        assert entry.description.startswith("[DELETED]")
        assert entry.lines, "deleted entries keep their lines"

        reversal = ledger.get_entry(result.reversal_entry_id)
        assert reversal.reference == f"DEL-JE{rent_entry.id}"
        assert reversal.correlation_id == f"je-{rent_entry.id}-deleted"
        assert all(line.description.startswith("Deleted:") for line in reversal.lines)

    def test_second_delete_rejected(self, editor, rent_entry, actor_id):
        editor.delete(rent_entry.id, actor_id)
        with pytest.raises(EntryAlreadyDeletedError):
            editor.delete(rent_entry.id, actor_id)

    def test_deleted_entry_cannot_be_updated(self, editor, rent_entry, actor_id):
        editor.delete(rent_entry.id, actor_id)
        with pytest.raises(EntryAlreadyDeletedError):
            editor.update(
                rent_entry.id,
                date(2024, 6, 5),
                "Revive",
                [LineSpec.dr("6000", 1), LineSpec.cr("1110", 1)],
                actor_id,
            )

    def test_delete_in_locked_period_rejected(self, ledger, editor, rent_entry, actor_id):
        ledger.close_period(date(2024, 6, 1), actor_id)
        with pytest.raises(PeriodLockedError):
            editor.delete(rent_entry.id, actor_id)
        assert ledger.account_balance("6000") == 100


class TestCorrelation:
    """Corrections of a document's entry stay traceable to that document."""

    @pytest.fixture
    def invoice_entry(self, ledger, chart, actor_id):
        return ledger.post(
            date(2024, 6, 1),
            "Invoice INV-9",
            [LineSpec.dr("1200", 300), LineSpec.cr("4100", 300)],
            actor_id,
            correlation_id="invoice-9",
        )

    def test_update_reversal_follows_document_correlation(
        self, ledger, editor, selector, invoice_entry, actor_id
    ):
        result = editor.update(
            invoice_entry.id,
            date(2024, 6, 2),
            "Invoice INV-9 (revised)",
            [LineSpec.dr("1200", 350), LineSpec.cr("4100", 350)],
            actor_id,
        )

        reversal = ledger.get_entry(result.reversal_entry_id)
        assert reversal.correlation_id == "invoice-9-reversal"
        impact = selector.entries_for_correlation("invoice-9")
        assert {line.entry_id for line in impact} == {invoice_entry.id, reversal.id}
        assert sum(line.debit for line in impact if line.account_code == "1200") == 350
        assert sum(line.credit for line in impact if line.account_code == "1200") == 300

    def test_delete_reversal_follows_document_correlation(
        self, ledger, editor, selector, invoice_entry, actor_id
    ):
        result = editor.delete(invoice_entry.id, actor_id)

        assert ledger.get_entry(result.reversal_entry_id).correlation_id == "invoice-9-deleted"
        impact = selector.entries_for_correlation("invoice-9")
        assert sum(line.debit for line in impact) == sum(line.credit for line in impact) == 600

    def test_reversed_entry_cannot_be_edited(self, ledger, editor, invoice_entry, actor_id):
        ledger.reverse(invoice_entry.id, date(2024, 6, 2), actor_id)
        with pytest.raises(EntryAlreadyReversedError):
            editor.update(
                invoice_entry.id,
                date(2024, 6, 3),
                "Too late",
                [LineSpec.dr("1200", 1), LineSpec.cr("4100", 1)],
                actor_id,
            )
        assert ledger.account_balance("1200") == 0
