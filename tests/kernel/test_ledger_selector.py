"""LedgerSelector tests: account register and document GL impact."""

from datetime import date

import pytest

from ledger_kernel.domain.ledger_events import JournalEntryType, LineSpec
from ledger_kernel.exceptions import AccountNotFoundError


@pytest.fixture
def funded(ledger, chart, actor_id):
    """Capital on 1 June, rent on 2 June."""
    capital = ledger.post(
        date(2024, 6, 1),
        "Capital",
        [LineSpec.dr("1110", 1000), LineSpec.cr("3000", 1000)],
        actor_id,
    )
    rent = ledger.post(
        date(2024, 6, 2),
        "Rent",
        [LineSpec.dr("6000", 100), LineSpec.cr("1110", 100)],
        actor_id,
        correlation_id="rent-june",
    )
    return capital, rent


class TestAccountRegister:
    def test_debit_normal_running_balance(self, selector, funded):
        register = selector.account_register("1110")
        assert [line.running_balance for line in register.lines] == [1000, 900]
        assert register.total_debit == 1000
        assert register.total_credit == 100
        assert register.current_balance == 900

    def test_credit_normal_running_balance(self, selector, funded):
        register = selector.account_register("3000")
        assert register.account_type == "Equity"
        assert register.current_balance == 1000

    def test_reversals_can_be_hidden(self, selector, editor, funded, actor_id):
        _, rent = funded
        editor.delete(rent.id, actor_id)

        with_reversals = selector.account_register("6000")
        assert [line.entry_type for line in with_reversals.lines] == [
            JournalEntryType.TRANSACTION.value,
            JournalEntryType.REVERSAL.value,
        ]
        assert with_reversals.current_balance == 0

        without = selector.account_register("6000", include_reversals=False)
        assert without.lines == ()

    def test_unknown_account(self, selector, chart):
        with pytest.raises(AccountNotFoundError):
            selector.account_register("9999")


class TestCorrelation:
    def test_gl_impact_includes_reversals(self, ledger, selector, funded, actor_id):
        _, rent = funded
        ledger.reverse(rent.id, date(2024, 6, 3), actor_id)
        ledger.post(
            date(2024, 6, 4),
            "Unrelated",
            [LineSpec.dr("6000", 5), LineSpec.cr("1110", 5)],
            actor_id,
            correlation_id="rent-june0",
        )

        impact = selector.entries_for_correlation("rent-june")
        assert len(impact) == 4
        assert sum(line.debit for line in impact) == sum(line.credit for line in impact) == 200
        assert {line.entry_type for line in impact} == {
            JournalEntryType.TRANSACTION.value,
            JournalEntryType.REVERSAL.value,
        }

    def test_posted_entry_for_correlation(self, selector, editor, funded, actor_id):
        _, rent = funded
        assert selector.posted_entry_for_correlation("rent-june").id == rent.id
        editor.delete(rent.id, actor_id)
        assert selector.posted_entry_for_correlation("rent-june") is None
