"""Step placement and step-cost arithmetic (no database)."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest

from ledger_config.schema import AccountCodes
from ledger_kernel.exceptions import ValidationError
from ledger_modules.manufacturing.positions import (
    StepCosts,
    StepPosition,
    classify_step,
    duration_minutes,
    fg_batch_number,
    overhead_cost,
    step_journal_lines,
    unit_cost_after_yield,
    wip_batch_number,
    yield_bps,
)

ACCOUNTS = AccountCodes()
T0 = datetime(2024, 6, 30, 8, 0, tzinfo=timezone.utc)


def _shape(lines):
    return [(line.account_code, line.debit, line.credit) for line in lines]


class TestClassifyStep:
    @pytest.mark.parametrize(
        "step_order, total, position",
        [
            (1, 3, StepPosition.FIRST),
            (2, 3, StepPosition.MIDDLE),
            (3, 3, StepPosition.FINAL),
            (2, 2, StepPosition.FINAL),
        ],
    )
    def test_positions(self, step_order, total, position):
        assert classify_step(step_order, total).position == position

    def test_single_step_routing_is_first_and_last(self):
        placement = classify_step(1, 1)
        assert placement.is_first
        assert placement.produces_finished_goods

    def test_receiving_stage(self):
        assert classify_step(1, 3, "Receiving inspection").is_receiving
        assert not classify_step(1, 3, "Cutting").is_receiving
        assert not classify_step(2, 3, "Receiving").is_receiving

    def test_outside_routing(self):
        with pytest.raises(ValidationError):
            classify_step(4, 3)
        with pytest.raises(ValidationError):
            classify_step(0, 3)


class TestCostArithmetic:
    def test_duration_rounds_half_up(self):
        assert duration_minutes(T0, T0 + timedelta(minutes=90, seconds=30)) == 91
        assert duration_minutes(T0, T0 + timedelta(seconds=29)) == 0

    def test_duration_without_times(self):
        assert duration_minutes(None, T0) == 0
        assert duration_minutes(T0, T0 - timedelta(minutes=5)) == 0

    @pytest.mark.parametrize(
        "rate, minutes, expected",
        [(6000, 90, 9000), (1000, 1, 17), (None, 60, 0), (0, 60, 0), (6000, 0, 0)],
    )
    def test_overhead(self, rate, minutes, expected):
        assert overhead_cost(rate, minutes) == expected

    def test_yield(self):
        assert yield_bps(1000, 950) == 9500
        assert yield_bps(3, 2) == 6667
        assert yield_bps(10, 0) == 0
        with pytest.raises(ValidationError):
            yield_bps(0, 1)

    def test_unit_cost_after_yield(self):
        assert unit_cost_after_yield(1000, 3) == 333
        assert unit_cost_after_yield(5, 2) == 3
        assert unit_cost_after_yield(1000, 0) == 0

    def test_step_costs_total(self):
        costs = StepCosts(previous_step_cost=600, material_cost=50, overhead_cost=25, input_qty=10, output_qty=9)
        assert costs.total_cost == 675
        assert costs.yield_bps == 9000
        assert costs.unit_cost_after_yield == 75

    def test_batch_numbers(self):
        wo = UUID("00000000-0000-0000-0000-000000000001")
        assert wip_batch_number(wo, 2) == f"WO-{wo}-STEP-2"
        assert fg_batch_number(wo) == f"WO-{wo}-FG"


class TestStepJournalLines:
    def test_first_step_moves_material_and_overhead_to_wip(self):
        costs = StepCosts(0, 500, 100, 10, 10)
        lines = step_journal_lines(classify_step(1, 3), costs, ACCOUNTS, {"1310": 500}, "WO-1")
        assert _shape(lines) == [
            ("1330", 500, 0),
            ("1310", 0, 500),
            ("1330", 100, 0),
            ("5000", 0, 100),
        ]

    def test_zero_overhead_lines_dropped(self):
        costs = StepCosts(300, 0, 0, 10, 10)
        assert step_journal_lines(classify_step(2, 3), costs, ACCOUNTS, {}, "WO-1") == ()

    def test_final_step_credits_wip_and_overhead(self):
        costs = StepCosts(600, 50, 25, 10, 9)
        lines = step_journal_lines(classify_step(3, 3), costs, ACCOUNTS, {"1310": 50}, "WO-1")
        assert _shape(lines) == [
            ("1340", 675, 0),
            ("1330", 0, 600),
            ("5000", 0, 75),
        ]

    def test_single_step_routing_bypasses_wip(self):
        costs = StepCosts(0, 400, 60, 4, 4)
        lines = step_journal_lines(classify_step(1, 1), costs, ACCOUNTS, {"1310": 400}, "WO-1")
        assert _shape(lines) == [
            ("1340", 460, 0),
            ("1310", 0, 400),
            ("5000", 0, 60),
        ]

    def test_receiving_stage_posts_nothing(self):
        costs = StepCosts(0, 500, 0, 10, 10)
        placement = classify_step(1, 2, "Receive lumber")
        assert step_journal_lines(placement, costs, ACCOUNTS, {"1310": 500}, "WO-1") == ()
