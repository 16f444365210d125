"""
ManufacturingService tests.

Verifies:
- Costs roll forward step by step through WIP layers
- Journal entries follow the step's position in the routing
- The last step produces a finished-goods layer and completes the order
- Failed submissions leave the step, layers and ledger untouched
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from ledger_kernel.domain.inventory import ItemClass, LayerKind
from ledger_kernel.domain.ledger_events import LineSpec
from ledger_kernel.domain.results import OperationStatus
from ledger_modules.manufacturing import (
    MaterialInput,
    RoutingStepInput,
    StepStatus,
    StepSubmission,
    WorkOrder,
    WorkOrderStatus,
    WorkOrderStep,
)

T0 = datetime(2024, 6, 30, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def shop(manufacturing, make_item, add_layer, actor_id):
    """Raw stock 100 @ 50, a 6000/hour center, a two-step routing for a finished good."""
    raw = make_item(sku="RAW")
    add_layer(raw, 100, 50)
    product = make_item(sku="PRODUCT", item_class=ItemClass.FINISHED_GOODS)
    center = manufacturing.create_work_center("WC-1", "Assembly", 6000, actor_id).document_id
    return raw, product, center


def _work_order(manufacturing, steps, product, actor_id, qty=10):
    routing_id = manufacturing.create_routing("Two step", steps, actor_id).document_id
    wo_id = manufacturing.create_work_order(
        f"WO-{uuid4().hex[:6]}", product.id, routing_id, qty, actor_id
    ).document_id
    released = manufacturing.release_work_order(wo_id, actor_id)
    return wo_id, released.data["step_ids"]


@pytest.fixture
def released(manufacturing, shop, actor_id):
    raw, product, center = shop
    steps = [
        RoutingStepInput(1, "Cut", work_center_id=center, material_item_id=raw.id),
        RoutingStepInput(2, "Assemble", work_center_id=center),
    ]
    return _work_order(manufacturing, steps, product, actor_id)


class TestStepFlow:
    def test_first_step_builds_wip(self, manufacturing, ledger, layers, released, actor_id):
        wo_id, (step_1, _) = released
        result = manufacturing.submit_step(
            step_1,
            StepSubmission(10, 10, start_time=T0, end_time=T0 + timedelta(minutes=30)),
            actor_id,
        )

        assert result.status == OperationStatus.SUCCESS
        assert result.data["position"] == "first"
        assert result.data["material_cost"] == 500
        assert result.data["overhead_cost"] == 3000
        assert result.data["total_cost"] == 3500
        assert result.data["unit_cost_after_yield"] == 350
        assert result.data["output_batch_number"] == f"WO-{wo_id}-STEP-1"

        wip = layers.find_by_batch(f"WO-{wo_id}-STEP-1")
        assert wip.layer_kind == LayerKind.WIP.value
        assert (wip.remaining_qty, wip.unit_cost) == (10, 350)
        assert ledger.account_balance("1330") == 3500
        assert ledger.account_balance("5000") == -3000

    def test_final_step_produces_finished_goods(self, session, manufacturing, ledger, layers, released, actor_id):
        wo_id, (step_1, step_2) = released
        manufacturing.submit_step(
            step_1, StepSubmission(10, 10, start_time=T0, end_time=T0 + timedelta(minutes=30)), actor_id
        )
        result = manufacturing.submit_step(step_2, StepSubmission(10, 9), actor_id)

        assert result.data["is_final_step"]
        assert result.data["previous_step_cost"] == 3500
        assert result.data["yield_bps"] == 9000
        assert result.data["unit_cost_after_yield"] == 389

        assert layers.find_by_batch(f"WO-{wo_id}-STEP-1").is_depleted
        fg = layers.find_by_batch(f"WO-{wo_id}-FG")
        assert (fg.remaining_qty, fg.unit_cost) == (9, 389)
        assert layers.availability(fg.item_id) == 9

        assert ledger.account_balance("1330") == 0
        assert ledger.account_balance("1340") == 3500
        assert ledger.trial_balance().is_balanced

        work_order = session.get(WorkOrder, wo_id)
        assert work_order.status == WorkOrderStatus.COMPLETED.value
        assert work_order.qty_produced == 9
        assert session.get(WorkOrderStep, step_2).waste_qty == 1

    def test_additional_materials_credit_their_accounts(self, manufacturing, ledger, make_item, add_layer, released, actor_id):
        _, (step_1, _) = released
        glue = make_item(sku="GLUE", item_class=ItemClass.FINISHED_GOODS)
        add_layer(glue, 5, 20)
        result = manufacturing.submit_step(
            step_1, StepSubmission(10, 10, additional_materials=(MaterialInput(glue.id, 5),)), actor_id
        )
        assert result.data["material_cost"] == 600
        assert ledger.account_balance("1310") == -500
        assert ledger.account_balance("1340") == -100

    def test_missing_prior_wip_contributes_nothing(self, manufacturing, released, actor_id):
        _, (_, step_2) = released
        result = manufacturing.submit_step(step_2, StepSubmission(10, 10), actor_id)
        assert result.is_success
        assert result.data["previous_step_cost"] == 0
        assert result.data["total_cost"] == 0

    def test_zero_output_creates_no_layer(self, manufacturing, layers, released, actor_id):
        wo_id, (step_1, _) = released
        result = manufacturing.submit_step(step_1, StepSubmission(10, 0), actor_id)
        assert result.data["output_batch_number"] is None
        assert result.data["unit_cost_after_yield"] == 0
        assert layers.find_by_batch(f"WO-{wo_id}-STEP-1") is None

    def test_cost_breakdown(self, manufacturing, released, actor_id):
        wo_id, (step_1, _) = released
        manufacturing.submit_step(step_1, StepSubmission(10, 8), actor_id)

        first, second = manufacturing.step_cost_breakdown(wo_id)
        assert (first.status, first.total_cost, first.actual_yield_bps) == ("completed", 500, 8000)
        assert (first.material_cost, first.overhead_cost, first.unit_cost_after_yield) == (500, 0, 63)
        assert (second.status, second.total_cost) == ("pending", 0)

    def test_cost_breakdown_after_both_steps(self, manufacturing, released, actor_id):
        wo_id, (step_1, step_2) = released
        manufacturing.submit_step(
            step_1, StepSubmission(10, 10, start_time=T0, end_time=T0 + timedelta(minutes=30)), actor_id
        )
        manufacturing.submit_step(step_2, StepSubmission(10, 9), actor_id)

        first, second = manufacturing.step_cost_breakdown(wo_id)
        assert (first.material_cost, first.overhead_cost, first.total_cost) == (500, 3000, 3500)
        assert first.unit_cost_after_yield == 350
        assert (second.previous_step_cost, second.total_cost, second.unit_cost_after_yield) == (3500, 3500, 389)


class TestSingleStepAndReceiving:
    def test_single_step_routing_posts_straight_to_finished_goods(self, manufacturing, ledger, layers, shop, actor_id):
        raw, product, center = shop
        wo_id, (only,) = _work_order(
            manufacturing,
            [RoutingStepInput(1, "Pack", work_center_id=center, material_item_id=raw.id)],
            product,
            actor_id,
        )
        result = manufacturing.submit_step(
            only, StepSubmission(4, 4, start_time=T0, end_time=T0 + timedelta(minutes=1)), actor_id
        )

        assert result.data["is_final_step"]
        assert result.data["total_cost"] == 200 + 100
        entry = ledger.get_entry(result.journal_entry_ids[0])
        assert {(l.account_code, l.debit, l.credit) for l in entry.lines} == {
            ("1340", 300, 0),
            ("1310", 0, 200),
            ("5000", 0, 100),
        }
        assert layers.find_by_batch(f"WO-{wo_id}-FG").remaining_qty == 4
        assert ledger.account_balance("1330") == 0

    def test_receiving_stage_posts_no_entry(self, manufacturing, ledger, layers, shop, actor_id):
        raw, product, _ = shop
        wo_id, (receive, _) = _work_order(
            manufacturing,
            [
                RoutingStepInput(1, "Receiving", material_item_id=raw.id),
                RoutingStepInput(2, "Finish"),
            ],
            product,
            actor_id,
        )
        result = manufacturing.submit_step(receive, StepSubmission(10, 10), actor_id)

        assert result.journal_entry_ids == ()
        assert layers.find_by_batch(f"WO-{wo_id}-STEP-1").remaining_qty == 10
        assert ledger.account_balance("1330") == 0


class TestRejections:
    def test_step_state_machine(self, manufacturing, released, actor_id):
        _, (step_1, _) = released
        started = manufacturing.start_step(step_1, actor_id)
        assert started.data["status_value"] == StepStatus.IN_PROGRESS.value
        assert manufacturing.start_step(step_1, actor_id).error_code == "STEP_STATE_INVALID"

        assert manufacturing.submit_step(step_1, StepSubmission(10, 10), actor_id).is_success
        again = manufacturing.submit_step(step_1, StepSubmission(10, 10), actor_id)
        assert again.error_code == "STEP_STATE_INVALID"

    def test_insufficient_material_leaves_step_pending(self, session, manufacturing, ledger, layers, released, actor_id):
        wo_id, (step_1, _) = released
        result = manufacturing.submit_step(step_1, StepSubmission(101, 100), actor_id)

        assert result.error_code == "INSUFFICIENT_INVENTORY"
        assert session.get(WorkOrderStep, step_1).status == StepStatus.PENDING.value
        assert layers.find_by_batch(f"WO-{wo_id}-STEP-1") is None
        assert ledger.account_balance("1330") == 0

    def test_short_wip_rejected(self, manufacturing, released, actor_id):
        _, (step_1, step_2) = released
        manufacturing.submit_step(step_1, StepSubmission(10, 10), actor_id)
        result = manufacturing.submit_step(step_2, StepSubmission(11, 11), actor_id)
        assert result.error_code == "INSUFFICIENT_WIP"

    def test_locked_period(self, session, manufacturing, ledger, released, actor_id):
        _, (step_1, _) = released
        ledger.close_period(T0.date(), actor_id)
        session.commit()
        result = manufacturing.submit_step(step_1, StepSubmission(10, 10, end_time=T0), actor_id)
        assert result.error_code == "PERIOD_LOCKED"

    def test_unknown_step(self, manufacturing, actor_id):
        assert manufacturing.submit_step(uuid4(), StepSubmission(1, 1), actor_id).error_code == "STEP_NOT_FOUND"

    def test_invalid_quantities(self, manufacturing, released, actor_id):
        _, (step_1, _) = released
        assert manufacturing.submit_step(step_1, StepSubmission(0, 0), actor_id).error_code == "INVALID_INPUT"

    def test_routing_orders_must_be_contiguous(self, manufacturing, actor_id):
        result = manufacturing.create_routing("Gappy", [RoutingStepInput(1, "A"), RoutingStepInput(3, "C")], actor_id)
        assert result.error_code == "INVALID_INPUT"

    def test_release_twice(self, manufacturing, released, actor_id):
        wo_id, _ = released
        assert manufacturing.release_work_order(wo_id, actor_id).error_code == "INVALID_INPUT"


class TestReconciliationMidProduction:
    def test_wip_layers_reconcile_against_wip_account(
        self, session, manufacturing, ledger, selector, ledger_config, released, actor_id
    ):
        ledger.post(
            T0.date(),
            "Opening raw stock",
            [LineSpec.dr("1310", 5000), LineSpec.cr("3000", 5000)],
            actor_id,
        )
        session.commit()
        _, (step_1, _) = released
        manufacturing.submit_step(
            step_1, StepSubmission(10, 10, start_time=T0, end_time=T0 + timedelta(minutes=30)), actor_id
        )

        rows = {
            row.account_code: row
            for row in selector.inventory_reconciliation(ledger_config.item_class_accounts.as_mapping())
        }
        assert (rows["1330"].layer_value, rows["1330"].gl_balance) == (3500, 3500)
        assert (rows["1310"].layer_value, rows["1310"].gl_balance) == (4500, 4500)
        assert (rows["1340"].layer_value, rows["1340"].gl_balance) == (0, 0)
        assert all(row.is_reconciled for row in rows.values())
