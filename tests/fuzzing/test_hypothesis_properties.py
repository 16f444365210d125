"""
Property-based tests with Hypothesis.

Properties:
- Any accepted entry balances, and its mirror nets every account to zero
- FIFO plans consume exactly the requested quantity, oldest layers first
- Layer quantities never drift: remaining + consumed == received
- Half-up rounding lands within half a unit of the exact quotient
- Posting any sequence of balanced entries keeps the trial balance at zero
"""

from datetime import date, timedelta
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from ledger_kernel.db.types import round_half_up
from ledger_kernel.domain.inventory import (
    LayerSnapshot,
    fifo_order,
    plan_fifo_depletion,
    weighted_average_cost,
)
from ledger_kernel.domain.ledger_events import (
    LineSpec,
    net_by_account,
    swap_lines,
    validate_balanced,
)
from ledger_kernel.exceptions import InsufficientInventoryError, UnbalancedEntryError

pytestmark = pytest.mark.slow

ACCOUNTS = ("1110", "1200", "1310", "4100", "5100", "6000")
amounts = st.integers(min_value=1, max_value=10**12)


@st.composite
def balanced_lines(draw):
    debits = draw(st.lists(st.tuples(st.sampled_from(ACCOUNTS), amounts), min_size=1, max_size=8))
    credit_account = draw(st.sampled_from(ACCOUNTS))
    lines = [LineSpec.dr(code, amount) for code, amount in debits]
    lines.append(LineSpec.cr(credit_account, sum(amount for _, amount in debits)))
    return lines


@st.composite
def layer_snapshots(draw):
    count = draw(st.integers(min_value=1, max_value=8))
    start = date(2024, 1, 1)
    return [
        LayerSnapshot(
            layer_id=uuid4(),
            batch_number=f"B-{n}",
            remaining_qty=draw(st.integers(min_value=1, max_value=1000)),
            unit_cost=draw(st.integers(min_value=0, max_value=100_000)),
            receive_date=start + timedelta(days=draw(st.integers(min_value=0, max_value=180))),
        )
        for n in range(count)
    ]


class TestEntryProperties:
    @given(lines=balanced_lines())
    def test_balanced_entries_validate(self, lines):
        debits, credits = validate_balanced(lines)
        assert debits == credits

    @given(lines=balanced_lines(), delta=st.integers(min_value=1, max_value=1000))
    def test_any_imbalance_rejected(self, lines, delta):
        skewed = lines[:-1] + [LineSpec.cr(lines[-1].account_code, lines[-1].credit + delta)]
        with pytest.raises(UnbalancedEntryError):
            validate_balanced(skewed)

    @given(lines=balanced_lines())
    def test_mirror_nets_to_zero(self, lines):
        mirrored = swap_lines(lines, "Reversal:")
        validate_balanced(mirrored)
        assert all(value == 0 for value in net_by_account(list(lines) + list(mirrored)).values())


class TestFifoProperties:
    @given(layers=layer_snapshots(), data=st.data())
    def test_plan_consumes_exact_quantity_oldest_first(self, layers, data):
        available = sum(layer.remaining_qty for layer in layers)
        quantity = data.draw(st.integers(min_value=1, max_value=available))

        plan = plan_fifo_depletion(uuid4(), layers, quantity)

        assert sum(c.quantity for c in plan.consumptions) == quantity
        ordered = [layer.layer_id for layer in fifo_order(layers)]
        used = [c.layer_id for c in plan.consumptions]
        assert used == ordered[: len(used)]
        by_id = {layer.layer_id: layer for layer in layers}
        for consumption in plan.consumptions[:-1]:
            assert consumption.quantity == by_id[consumption.layer_id].remaining_qty

    @given(layers=layer_snapshots(), excess=st.integers(min_value=1, max_value=100))
    def test_plan_beyond_stock_rejected(self, layers, excess):
        available = sum(layer.remaining_qty for layer in layers)
        with pytest.raises(InsufficientInventoryError):
            plan_fifo_depletion(uuid4(), layers, available + excess)

    @given(layers=layer_snapshots())
    def test_weighted_average_within_cost_range(self, layers):
        cost = weighted_average_cost(layers)
        assert min(l.unit_cost for l in layers) <= cost <= max(l.unit_cost for l in layers)


class TestRounding:
    @given(
        numerator=st.integers(min_value=0, max_value=10**15),
        denominator=st.integers(min_value=1, max_value=10**6),
    )
    def test_within_half_unit(self, numerator, denominator):
        result = round_half_up(numerator, denominator)
        assert (2 * result - 1) * denominator <= 2 * numerator < (2 * result + 1) * denominator


DB_SETTINGS = settings(
    max_examples=20,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
)


class TestLedgerProperties:
    @DB_SETTINGS
    @given(entries=st.lists(balanced_lines(), min_size=1, max_size=5))
    def test_trial_balance_stays_zero(self, ledger, chart, session, actor_id, entries):
        for lines in entries:
            ledger.post(date(2024, 6, 1), "Generated", lines, actor_id)
        session.flush()
        assert ledger.trial_balance().difference == 0
        assert sum(account.balance for account in ledger.chart_of_accounts()) == 0

    @DB_SETTINGS
    @given(
        receipts=st.lists(st.integers(min_value=1, max_value=50), min_size=1, max_size=5),
        draws=st.lists(st.integers(min_value=1, max_value=60), min_size=1, max_size=6),
    )
    def test_layers_never_drift(self, layers, make_item, actor_id, receipts, draws):
        item = make_item()
        for n, quantity in enumerate(receipts):
            layers.create_layer(
                item.id,
                f"P-{uuid4().hex[:10]}",
                quantity,
                100 + n,
                date(2024, 6, 1) + timedelta(days=n),
                actor_id,
            )
        received = sum(receipts)

        sources = []
        consumed = 0
        for quantity in draws:
            if consumed + quantity > received:
                with pytest.raises(InsufficientInventoryError):
                    layers.deplete(item.id, quantity, actor_id, "fuzz", uuid4(), date(2024, 6, 30))
                continue
            source_id = uuid4()
            layers.deplete(item.id, quantity, actor_id, "fuzz", source_id, date(2024, 6, 30))
            sources.append(source_id)
            consumed += quantity
            assert layers.availability(item.id) == received - consumed

        for source_id in sources:
            layers.restore("fuzz", source_id, actor_id)
        assert layers.availability(item.id) == received
