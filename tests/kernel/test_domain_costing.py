"""
Pure-domain tests: integer rounding, line validation, FIFO planning and
cost formulas.  No database.
"""

from datetime import date
from uuid import uuid4

import pytest

from ledger_kernel.db.types import round_half_up, scale_half_up
from ledger_kernel.domain.inventory import (
    LayerSnapshot,
    fifo_current_cost,
    plan_fifo_depletion,
    weighted_average_cost,
)
from ledger_kernel.domain.ledger_events import (
    LineSpec,
    drop_zero_lines,
    net_by_account,
    swap_lines,
    validate_balanced,
)
from ledger_kernel.exceptions import (
    InsufficientInventoryError,
    InvalidLineError,
    UnbalancedEntryError,
    ValidationError,
)


def _layer(qty, cost, received, layer_id=None, batch=None):
    layer_id = layer_id or uuid4()
    return LayerSnapshot(
        layer_id=layer_id,
        batch_number=batch or f"B-{layer_id}",
        remaining_qty=qty,
        unit_cost=cost,
        receive_date=received,
    )


class TestRounding:
    """round_half_up / scale_half_up on integers."""

    @pytest.mark.parametrize(
        "numerator, denominator, expected",
        [
            (160_000, 150, 1067),
            (205_000, 180, 1139),
            (5, 2, 3),
            (4, 2, 2),
            (7, 3, 2),
            (0, 9, 0),
        ],
    )
    def test_round_half_up(self, numerator, denominator, expected):
        assert round_half_up(numerator, denominator) == expected

    def test_non_positive_denominator_rejected(self):
        with pytest.raises(ZeroDivisionError):
            round_half_up(1, 0)

    def test_scale_half_up(self):
        # 12% of 1234 = 148.08
        assert scale_half_up(1234, 1200, 10_000) == 148
        # 90 minutes at 2000/hour
        assert scale_half_up(2000, 90, 60) == 3000
        # 5% of 10 = 0.5 rounds up
        assert scale_half_up(10, 500, 10_000) == 1


class TestLineValidation:
    """Balanced-entry and single-sided line rules."""

    def test_balanced_entry_returns_totals(self):
        lines = [LineSpec.dr("6000", 150), LineSpec.cr("1110", 100), LineSpec.cr("2100", 50)]
        assert validate_balanced(lines) == (150, 150)

    def test_unbalanced_entry_rejected(self):
        with pytest.raises(UnbalancedEntryError):
            validate_balanced([LineSpec.dr("6000", 100), LineSpec.cr("1110", 99)])

    def test_empty_entry_rejected(self):
        with pytest.raises(UnbalancedEntryError):
            validate_balanced([])

    def test_both_sides_rejected(self):
        with pytest.raises(InvalidLineError):
            validate_balanced([LineSpec("6000", debit=10, credit=10)])

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidLineError):
            validate_balanced([LineSpec.dr("6000", -5), LineSpec.cr("1110", -5)])

    def test_zero_line_rejected(self):
        with pytest.raises(InvalidLineError):
            validate_balanced([LineSpec.dr("6000", 0), LineSpec.cr("1110", 0)])

    def test_swap_lines_is_exact_mirror(self):
        lines = (LineSpec.dr("6000", 100, "Rent"), LineSpec.cr("1110", 100, "Bank"))
        swapped = swap_lines(lines, "Reversal:")
        assert [(l.account_code, l.debit, l.credit) for l in swapped] == [
            ("6000", 0, 100),
            ("1110", 100, 0),
        ]
        assert swapped[0].description == "Reversal: Rent"
        assert net_by_account(lines + swapped) == {}

    def test_drop_zero_lines(self):
        lines = [LineSpec.dr("4200", 0), LineSpec.dr("1200", 10), LineSpec.cr("4100", 10)]
        assert [l.account_code for l in drop_zero_lines(lines)] == ["1200", "4100"]


class TestFifoPlanning:
    """plan_fifo_depletion over snapshots."""

    def test_oldest_layer_exhausted_first(self):
        item_id = uuid4()
        newer = _layer(10, 200, date(2024, 6, 5))
        older = _layer(10, 100, date(2024, 6, 1))
        plan = plan_fifo_depletion(item_id, [newer, older], 15)

        assert [c.layer_id for c in plan.consumptions] == [older.layer_id, newer.layer_id]
        assert [c.quantity for c in plan.consumptions] == [10, 5]
        assert plan.total_cost == 10 * 100 + 5 * 200

    def test_same_date_tie_broken_by_layer_id(self):
        item_id = uuid4()
        a = _layer(5, 100, date(2024, 6, 1))
        b = _layer(5, 200, date(2024, 6, 1))
        first = min((a, b), key=lambda layer: str(layer.layer_id))
        plan = plan_fifo_depletion(item_id, [a, b], 3)
        assert plan.consumptions[0].layer_id == first.layer_id

    def test_insufficient_stock_raises(self):
        with pytest.raises(InsufficientInventoryError) as exc_info:
            plan_fifo_depletion(uuid4(), [_layer(4, 100, date(2024, 6, 1))], 5)
        assert exc_info.value.code == "INSUFFICIENT_INVENTORY"

    def test_non_positive_quantity_rejected(self):
        with pytest.raises(ValidationError):
            plan_fifo_depletion(uuid4(), [_layer(4, 100, date(2024, 6, 1))], 0)


class TestCostFormulas:
    """Weighted average and FIFO current cost."""

    def test_weighted_average_examples(self):
        layers = [_layer(100, 1000, date(2024, 6, 1)), _layer(50, 1200, date(2024, 6, 2))]
        assert weighted_average_cost(layers) == 1067

        layers.append(_layer(30, 1500, date(2024, 6, 3)))
        assert weighted_average_cost(layers) == 1139

    def test_weighted_average_of_nothing_is_zero(self):
        assert weighted_average_cost([]) == 0
        assert weighted_average_cost([_layer(0, 500, date(2024, 6, 1))]) == 0

    def test_fifo_current_cost_is_oldest_with_stock(self):
        layers = [
            _layer(0, 900, date(2024, 5, 1)),
            _layer(5, 1100, date(2024, 6, 2)),
            _layer(5, 1000, date(2024, 6, 1)),
        ]
        assert fifo_current_cost(layers) == 1000
        assert fifo_current_cost([]) == 0
