"""
Manufacturing Module Service (``ledger_modules.manufacturing.service``).

Responsibility
--------------
Step-by-step WIP cost accumulation.  Each submitted step draws the prior
step's WIP layer and any materials, adds work-center overhead, computes
yield and unit cost, posts a position-dependent journal entry and leaves
a WIP layer (or, at the last step, a finished-goods layer) for what comes
next.

Architecture position
---------------------
**Modules layer** -- pipeline over the kernel's LedgerService,
InventoryLayerStore and CostingPolicyResolver.  Pure cost math lives in
``positions``.

Invariants enforced
-------------------
* A submission is one transaction: depletion, layer creation, journal
  entry, cost row and the status change land together or not at all.
* pending -> in_progress -> completed; completed is terminal.
* A missing prior WIP layer contributes 0; a short one is an error.
* A receiving first stage posts no journal entry.

Failure modes
-------------
* StepNotFoundError, WorkOrderNotFoundError, StepStateError,
  InsufficientInventoryError, InsufficientWipError, PeriodLockedError,
  ValidationError  -> REJECTED result.
* IntegrityViolation  -> rollback, re-raised.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.inventory import LayerKind, QcStatus
from ledger_kernel.domain.results import OperationResult
from ledger_kernel.exceptions import (
    StepNotFoundError,
    StepStateError,
    ValidationError,
    WorkOrderNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.inventory_layers import TransferReason
from ledger_modules._posting_helpers import KernelServices, run_in_transaction
from ledger_modules.manufacturing.config import ManufacturingConfig
from ledger_modules.manufacturing.models import (
    MaterialInput,
    RoutingStepInput,
    StepCostView,
    StepStatus,
    StepSubmission,
    WorkOrderStatus,
)
from ledger_modules.manufacturing.orm import (
    Routing,
    RoutingStep,
    WorkCenter,
    WorkOrder,
    WorkOrderStep,
    WorkOrderStepCost,
)
from ledger_modules.manufacturing.positions import (
    StepCosts,
    StepPlacement,
    classify_step,
    duration_minutes,
    fg_batch_number,
    overhead_cost,
    step_journal_lines,
    wip_batch_number,
)

logger = get_logger("modules.manufacturing.service")

STEP_SOURCE = "work_order_step"


class ManufacturingService:
    """
    Work centers, routings, work orders and step submission.

    Contract
    --------
    * Every mutating method takes an explicit ``actor_id`` and returns an
      ``OperationResult``.

    Non-goals
    ---------
    * Does NOT schedule work centers or track equipment hours.
    * Does NOT reverse a completed step.
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfig,
        clock: Clock | None = None,
        module_config: ManufacturingConfig | None = None,
    ):
        self._session = session
        self._config = config
        self._module_config = module_config or ManufacturingConfig()
        self._kernel = KernelServices.build(session, config, clock)
        self._clock = self._kernel.clock

    # =========================================================================
    # Master data
    # =========================================================================

    def create_work_center(
        self, code: str, name: str, cost_per_hour: int, actor_id: UUID
    ) -> OperationResult:
        def body() -> OperationResult:
            if cost_per_hour < 0:
                raise ValidationError("cost_per_hour", "must not be negative")
            center = WorkCenter(
                code=code, name=name, cost_per_hour=cost_per_hour, created_by_id=actor_id
            )
            self._session.add(center)
            self._session.flush()
            logger.info("work_center_created", extra={"code": code, "cost_per_hour": cost_per_hour})
            return OperationResult.ok(document_id=center.id)

        return run_in_transaction(self._session, "work_center_create", body)

    def create_routing(
        self,
        name: str,
        steps: Sequence[RoutingStepInput],
        actor_id: UUID,
        description: str | None = None,
    ) -> OperationResult:
        """Create a routing.  Step orders must run 1..n without gaps."""

        def body() -> OperationResult:
            orders = sorted(step.step_order for step in steps)
            if not orders or orders != list(range(1, len(orders) + 1)):
                raise ValidationError("steps", "step orders must be 1..n without gaps")
            routing = Routing(name=name, description=description, created_by_id=actor_id)
            for step in sorted(steps, key=lambda s: s.step_order):
                if step.material_item_id is not None:
                    self._kernel.costing.get_item(step.material_item_id)
                if step.work_center_id is not None and (
                    self._session.get(WorkCenter, step.work_center_id) is None
                ):
                    raise ValidationError("work_center_id", f"unknown work center {step.work_center_id}")
                routing.steps.append(
                    RoutingStep(
                        step_order=step.step_order,
                        description=step.description,
                        work_center_id=step.work_center_id,
                        material_item_id=step.material_item_id,
                        expected_yield_bps=step.expected_yield_bps,
                        created_by_id=actor_id,
                    )
                )
            self._session.add(routing)
            self._session.flush()
            logger.info("routing_created", extra={"routing_id": str(routing.id), "steps": len(steps)})
            return OperationResult.ok(document_id=routing.id)

        return run_in_transaction(self._session, "routing_create", body)

    def create_work_order(
        self,
        order_number: str,
        item_id: UUID,
        routing_id: UUID,
        qty_planned: int,
        actor_id: UUID,
        start_date: date | None = None,
    ) -> OperationResult:
        def body() -> OperationResult:
            if qty_planned <= 0:
                raise ValidationError("qty_planned", "must be positive")
            self._kernel.costing.get_item(item_id)
            if self._session.get(Routing, routing_id) is None:
                raise ValidationError("routing_id", f"unknown routing {routing_id}")
            work_order = WorkOrder(
                order_number=order_number,
                item_id=item_id,
                routing_id=routing_id,
                qty_planned=qty_planned,
                qty_produced=0,
                status=WorkOrderStatus.PLANNED.value,
                start_date=start_date,
                created_by_id=actor_id,
            )
            self._session.add(work_order)
            self._session.flush()
            logger.info(
                "work_order_created",
                extra={"work_order_id": str(work_order.id), "order_number": order_number},
            )
            return OperationResult.ok(document_id=work_order.id)

        return run_in_transaction(self._session, "work_order_create", body)

    def release_work_order(self, work_order_id: UUID, actor_id: UUID) -> OperationResult:
        """Materialize one pending step per routing step."""

        def body() -> OperationResult:
            work_order = self._load_work_order(work_order_id)
            if work_order.status != WorkOrderStatus.PLANNED.value:
                raise ValidationError("status", f"work order is already {work_order.status}")
            routing = self._session.get(Routing, work_order.routing_id)
            for routing_step in routing.steps:
                work_order.steps.append(
                    WorkOrderStep(
                        routing_step_id=routing_step.id,
                        step_order=routing_step.step_order,
                        status=StepStatus.PENDING.value,
                        created_by_id=actor_id,
                    )
                )
            work_order.status = WorkOrderStatus.RELEASED.value
            work_order.updated_by_id = actor_id
            self._session.flush()
            logger.info(
                "work_order_released",
                extra={"work_order_id": str(work_order_id), "steps": len(routing.steps)},
            )
            return OperationResult.ok(
                document_id=work_order.id,
                step_ids=tuple(step.id for step in work_order.steps),
            )

        return run_in_transaction(self._session, "work_order_release", body, work_order_id)

    # =========================================================================
    # Step execution
    # =========================================================================

    def start_step(
        self, step_id: UUID, actor_id: UUID, operator_id: UUID | None = None
    ) -> OperationResult:
        def body() -> OperationResult:
            step = self._load_step(step_id)
            if step.status != StepStatus.PENDING.value:
                raise StepStateError(str(step_id), step.status, "start")
            step.status = StepStatus.IN_PROGRESS.value
            step.start_time = self._clock.now()
            step.operator_id = operator_id
            step.updated_by_id = actor_id
            self._session.flush()
            logger.info("work_order_step_started", extra={"step_id": str(step_id)})
            return OperationResult.ok(document_id=step.id, status_value=step.status)

        return run_in_transaction(self._session, "work_order_step_start", body, step_id)

    def submit_step(
        self, step_id: UUID, submission: StepSubmission, actor_id: UUID
    ) -> OperationResult:
        """
        Complete a step and book its cost.

        Postconditions
        --------------
        * Step is completed with quantities, yield and overhead recorded.
        * One WorkOrderStepCost row.
        * A WIP layer ``WO-<id>-STEP-<n>`` (not last step, output > 0) or
          a finished-goods layer ``WO-<id>-FG`` (last step).
        * A journal entry referenced ``WO-<id>-STEP-<n>`` unless the step
          is a receiving stage or carries no cost.
        """

        def body() -> OperationResult:
            step = self._load_step(step_id)
            if step.status == StepStatus.COMPLETED.value:
                raise StepStateError(str(step_id), step.status, "submit")
            self._validate_submission(submission)
            work_order = self._load_work_order(step.work_order_id)
            routing_step = step.routing_step
            placement = self._placement(work_order, routing_step)

            step_date = submission.end_time.date() if submission.end_time else self._clock.today()
            self._kernel.ledger.lock_guard.check(step_date)

            with LogContext.bind(document_type="work_order", document_id=work_order.id, actor_id=actor_id):
                return self._complete_step(
                    work_order, step, routing_step, placement, submission, step_date, actor_id
                )

        return run_in_transaction(self._session, "work_order_step_submit", body, step_id)

    def _complete_step(
        self,
        work_order: WorkOrder,
        step: WorkOrderStep,
        routing_step: RoutingStep,
        placement: StepPlacement,
        submission: StepSubmission,
        step_date: date,
        actor_id: UUID,
    ) -> OperationResult:
        transfer_reason = (
            TransferReason.PRODUCTION_CONSUMPTION if self._module_config.record_transfers else None
        )

        previous_step_cost = 0
        if not placement.is_first:
            consumed = self._kernel.layers.consume_batch(
                wip_batch_number(work_order.id, placement.step_order - 1),
                submission.input_qty,
                actor_id=actor_id,
                source_type=STEP_SOURCE,
                source_id=step.id,
                consumed_on=step_date,
                transfer_reason=transfer_reason,
            )
            previous_step_cost = consumed.total_cost if consumed is not None else 0

        materials: list[MaterialInput] = []
        if placement.is_first and routing_step.material_item_id is not None:
            materials.append(MaterialInput(routing_step.material_item_id, submission.input_qty))
        materials.extend(submission.additional_materials)

        material_credits: dict[str, int] = defaultdict(int)
        for material in materials:
            item = self._kernel.costing.get_item(material.item_id)
            depletion = self._kernel.layers.deplete(
                item_id=item.id,
                quantity=material.quantity,
                actor_id=actor_id,
                source_type=STEP_SOURCE,
                source_id=step.id,
                consumed_on=step_date,
                warehouse_code=submission.source_warehouse_code,
                location_code=submission.source_location_code,
                transfer_reason=transfer_reason,
            )
            if depletion.total_cost:
                material_credits[self._kernel.costing.resolve_costing_account(item)] += (
                    depletion.total_cost
                )

        minutes = duration_minutes(submission.start_time, submission.end_time)
        rate = None
        if routing_step.work_center_id is not None:
            center = self._session.get(WorkCenter, routing_step.work_center_id)
            rate = center.cost_per_hour if center is not None else None

        costs = StepCosts(
            previous_step_cost=previous_step_cost,
            material_cost=sum(material_credits.values()),
            overhead_cost=overhead_cost(rate, minutes),
            input_qty=submission.input_qty,
            output_qty=submission.output_qty,
        )

        label = f"WO-{work_order.id}"
        reference = wip_batch_number(work_order.id, placement.step_order)
        entry_id = None
        gl_lines = step_journal_lines(
            placement, costs, self._config.account_codes, material_credits, label
        )
        if gl_lines:
            entry = self._kernel.ledger.post(
                entry_date=step_date,
                description=f"{label} Step {placement.step_order}",
                lines=gl_lines,
                actor_id=actor_id,
                reference=reference,
                correlation_id=f"wo-{work_order.id}-step-{placement.step_order}",
            )
            entry_id = entry.id

        output_batch = self._create_output_layer(
            work_order, step, placement, costs, submission, step_date, actor_id
        )

        step.status = StepStatus.COMPLETED.value
        step.qty_in = submission.input_qty
        step.qty_out = submission.output_qty
        step.waste_qty = (
            submission.waste_qty
            if submission.waste_qty is not None
            else submission.input_qty - submission.output_qty
        )
        step.actual_yield_bps = costs.yield_bps
        step.start_time = submission.start_time or step.start_time
        step.end_time = submission.end_time
        step.actual_duration_minutes = minutes
        step.overhead_applied = costs.overhead_cost
        step.wip_batch_number = None if placement.produces_finished_goods else output_batch
        step.journal_entry_id = entry_id
        step.operator_id = submission.operator_id or step.operator_id
        step.updated_by_id = actor_id
        step.cost = WorkOrderStepCost(
            work_order_step_id=step.id,
            material_cost=costs.material_cost,
            overhead_cost=costs.overhead_cost,
            previous_step_cost=costs.previous_step_cost,
            total_cost=costs.total_cost,
            unit_cost_after_yield=costs.unit_cost_after_yield,
            created_by_id=actor_id,
        )

        if placement.produces_finished_goods:
            work_order.status = WorkOrderStatus.COMPLETED.value
            work_order.qty_produced = submission.output_qty
            work_order.completed_at = self._clock.now()
        else:
            work_order.status = WorkOrderStatus.IN_PROGRESS.value
        work_order.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "work_order_step_completed",
            extra={
                "step_order": placement.step_order,
                "position": placement.position.value,
                "receiving": placement.is_receiving,
                "total_cost": costs.total_cost,
                "unit_cost_after_yield": costs.unit_cost_after_yield,
                "yield_bps": costs.yield_bps,
            },
        )
        return OperationResult.ok(
            document_id=step.id,
            journal_entry_ids=(entry_id,) if entry_id else (),
            position=placement.position.value,
            is_final_step=placement.produces_finished_goods,
            material_cost=costs.material_cost,
            overhead_cost=costs.overhead_cost,
            previous_step_cost=costs.previous_step_cost,
            total_cost=costs.total_cost,
            unit_cost_after_yield=costs.unit_cost_after_yield,
            yield_bps=costs.yield_bps,
            output_batch_number=output_batch,
        )

    def _create_output_layer(
        self,
        work_order: WorkOrder,
        step: WorkOrderStep,
        placement: StepPlacement,
        costs: StepCosts,
        submission: StepSubmission,
        step_date: date,
        actor_id: UUID,
    ) -> str | None:
        if submission.output_qty <= 0:
            return None
        if placement.produces_finished_goods:
            batch = fg_batch_number(work_order.id)
            kind = LayerKind.FINISHED_GOODS
        else:
            batch = wip_batch_number(work_order.id, placement.step_order)
            kind = LayerKind.WIP
        self._kernel.layers.create_layer(
            item_id=work_order.item_id,
            batch_number=batch,
            quantity=submission.output_qty,
            unit_cost=costs.unit_cost_after_yield,
            receive_date=step_date,
            actor_id=actor_id,
            warehouse_code=submission.output_warehouse_code,
            location_code=submission.output_location_code,
            qc_status=QcStatus.NOT_REQUIRED,
            layer_kind=kind,
            source_type=STEP_SOURCE,
            source_id=step.id,
        )
        if self._module_config.record_transfers and submission.output_warehouse_code:
            self._kernel.layers.record_transfer(
                item_id=work_order.item_id,
                batch_number=batch,
                quantity=submission.output_qty,
                transfer_reason=TransferReason.PRODUCTION_CREATE,
                transfer_date=step_date,
                actor_id=actor_id,
                to_warehouse_code=submission.output_warehouse_code,
                to_location_code=submission.output_location_code,
                source_type=STEP_SOURCE,
                source_id=step.id,
            )
        return batch

    # =========================================================================
    # Queries
    # =========================================================================

    def step_cost_breakdown(self, work_order_id: UUID) -> list[StepCostView]:
        """Per-step cost build-up in routing order; pending steps show zeros."""
        work_order = self._session.get(WorkOrder, work_order_id)
        if work_order is None:
            raise WorkOrderNotFoundError(str(work_order_id))
        views = []
        for step in work_order.steps:
            cost = step.cost
            views.append(
                StepCostView(
                    step_id=step.id,
                    step_order=step.step_order,
                    status=step.status,
                    qty_in=step.qty_in,
                    qty_out=step.qty_out,
                    actual_yield_bps=step.actual_yield_bps,
                    material_cost=cost.material_cost if cost else 0,
                    overhead_cost=cost.overhead_cost if cost else 0,
                    previous_step_cost=cost.previous_step_cost if cost else 0,
                    total_cost=cost.total_cost if cost else 0,
                    unit_cost_after_yield=cost.unit_cost_after_yield if cost else 0,
                )
            )
        return views

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _validate_submission(submission: StepSubmission) -> None:
        if submission.input_qty <= 0:
            raise ValidationError("input_qty", "must be positive")
        if submission.output_qty < 0:
            raise ValidationError("output_qty", "must not be negative")
        if submission.waste_qty is not None and submission.waste_qty < 0:
            raise ValidationError("waste_qty", "must not be negative")
        for material in submission.additional_materials:
            if material.quantity <= 0:
                raise ValidationError("additional_materials", "quantities must be positive")

    def _placement(self, work_order: WorkOrder, routing_step: RoutingStep) -> StepPlacement:
        total_steps = self._session.scalar(
            select(func.count(RoutingStep.id)).where(RoutingStep.routing_id == work_order.routing_id)
        )
        return classify_step(
            routing_step.step_order,
            int(total_steps or 0),
            routing_step.description,
            self._module_config.receiving_keyword,
        )

    def _load_step(self, step_id: UUID) -> WorkOrderStep:
        step = self._session.scalars(
            select(WorkOrderStep).where(WorkOrderStep.id == step_id).with_for_update()
        ).one_or_none()
        if step is None:
            raise StepNotFoundError(str(step_id))
        return step

    def _load_work_order(self, work_order_id: UUID) -> WorkOrder:
        work_order = self._session.scalars(
            select(WorkOrder).where(WorkOrder.id == work_order_id).with_for_update()
        ).one_or_none()
        if work_order is None:
            raise WorkOrderNotFoundError(str(work_order_id))
        return work_order
