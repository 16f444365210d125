"""Manufacturing Domain Models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class WorkOrderStatus(str, Enum):
    PLANNED = "PLANNED"
    RELEASED = "RELEASED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class StepStatus(str, Enum):
    """Per-step state machine: pending -> in_progress -> completed."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class RoutingStepInput:
    step_order: int
    description: str
    work_center_id: UUID | None = None
    material_item_id: UUID | None = None
    expected_yield_bps: int = 10000


@dataclass(frozen=True)
class MaterialInput:
    """Ad-hoc material drawn FIFO during a step."""

    item_id: UUID
    quantity: int


@dataclass(frozen=True)
class StepSubmission:
    """
    What the shop floor reports for one step.

    ``waste_qty`` defaults to input minus output.  Overhead is only
    charged when both times are given and the work center has a rate.
    """

    input_qty: int
    output_qty: int
    waste_qty: int | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    additional_materials: tuple[MaterialInput, ...] = ()
    operator_id: UUID | None = None
    source_warehouse_code: str | None = None
    source_location_code: str | None = None
    output_warehouse_code: str | None = None
    output_location_code: str | None = None


@dataclass(frozen=True)
class StepCostView:
    """Read model of one step's cost breakdown."""

    step_id: UUID
    step_order: int
    status: str
    qty_in: int | None
    qty_out: int | None
    actual_yield_bps: int | None
    material_cost: int
    overhead_cost: int
    previous_step_cost: int
    total_cost: int
    unit_cost_after_yield: int
