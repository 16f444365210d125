"""
Step position classification and step-cost arithmetic.

Pure functions: no session, no clock.  The service loads rows, calls
these, and persists the outcome.

Position rules
--------------
* FIRST  -- routing step_order == 1.
* FINAL  -- step_order equals the routing's step count (and is not 1).
* MIDDLE -- anything else.

A one-step routing is FIRST by these rules; ``StepPlacement.is_last``
tells the engine it must still produce finished goods.

Cost rules
----------
* overhead   = round(cost_per_hour x minutes / 60)
* total      = previous step cost + material + overhead
* yield      = round(output x 10000 / input)          (basis points)
* unit cost  = round(total / output), 0 when output is 0
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from ledger_config.schema import AccountCodes
from ledger_kernel.db.types import BASIS_POINTS, round_half_up, scale_half_up
from ledger_kernel.domain.ledger_events import LineSpec, drop_zero_lines
from ledger_kernel.exceptions import ValidationError


class StepPosition(str, Enum):
    FIRST = "first"
    MIDDLE = "middle"
    FINAL = "final"


@dataclass(frozen=True)
class StepPlacement:
    position: StepPosition
    step_order: int
    total_steps: int
    is_receiving: bool = False

    @property
    def is_first(self) -> bool:
        return self.position == StepPosition.FIRST

    @property
    def is_last(self) -> bool:
        return self.step_order == self.total_steps

    @property
    def produces_finished_goods(self) -> bool:
        return self.is_last


def classify_step(
    step_order: int,
    total_steps: int,
    description: str | None = None,
    receiving_keyword: str = "receiv",
) -> StepPlacement:
    """Place a step within its routing."""
    if step_order < 1 or total_steps < step_order:
        raise ValidationError(
            "step_order", f"step {step_order} is outside a routing of {total_steps} steps"
        )
    if step_order == 1:
        position = StepPosition.FIRST
    elif step_order == total_steps:
        position = StepPosition.FINAL
    else:
        position = StepPosition.MIDDLE
    receiving = (
        position == StepPosition.FIRST
        and bool(description)
        and receiving_keyword.lower() in description.lower()
    )
    return StepPlacement(
        position=position,
        step_order=step_order,
        total_steps=total_steps,
        is_receiving=receiving,
    )


def duration_minutes(start: datetime | None, end: datetime | None) -> int:
    """Whole minutes between two instants, half-up; 0 when either is missing."""
    if start is None or end is None:
        return 0
    millis = (end - start) // timedelta(milliseconds=1)
    if millis <= 0:
        return 0
    return round_half_up(millis, 60_000)


def overhead_cost(cost_per_hour: int | None, minutes: int) -> int:
    if not cost_per_hour or minutes <= 0:
        return 0
    return scale_half_up(cost_per_hour, minutes, 60)


def yield_bps(input_qty: int, output_qty: int) -> int:
    if input_qty <= 0:
        raise ValidationError("input_qty", "must be positive")
    return scale_half_up(output_qty, BASIS_POINTS, input_qty)


def unit_cost_after_yield(total_cost: int, output_qty: int) -> int:
    if output_qty <= 0:
        return 0
    return round_half_up(total_cost, output_qty)


def wip_batch_number(work_order_id: UUID, step_order: int) -> str:
    return f"WO-{work_order_id}-STEP-{step_order}"


def fg_batch_number(work_order_id: UUID) -> str:
    return f"WO-{work_order_id}-FG"


@dataclass(frozen=True)
class StepCosts:
    """Cost build-up of one submitted step."""

    previous_step_cost: int
    material_cost: int
    overhead_cost: int
    input_qty: int
    output_qty: int

    @property
    def total_cost(self) -> int:
        return self.previous_step_cost + self.material_cost + self.overhead_cost

    @property
    def yield_bps(self) -> int:
        return yield_bps(self.input_qty, self.output_qty)

    @property
    def unit_cost_after_yield(self) -> int:
        return unit_cost_after_yield(self.total_cost, self.output_qty)


def step_journal_lines(
    placement: StepPlacement,
    costs: StepCosts,
    accounts: AccountCodes,
    material_credits: Mapping[str, int],
    label: str,
) -> tuple[LineSpec, ...]:
    """
    Journal lines for a submitted step; empty for a receiving stage.

    ``material_credits`` maps each consumed material's inventory account
    to the cost drawn from it.

    * First / middle step: Dr WIP / Cr inventory for material,
      Dr WIP / Cr overhead for overhead.
    * Final step: Dr finished goods (total) / Cr WIP (previous step cost)
      / Cr overhead (material + overhead).
    * One-step routing: Dr finished goods (total) / Cr inventory
      (material) / Cr overhead (overhead).
    """
    if placement.is_receiving:
        return ()

    wip = accounts.work_in_progress
    overhead = accounts.manufacturing_overhead

    if not placement.produces_finished_goods:
        lines = []
        for code, amount in sorted(material_credits.items()):
            lines.append(LineSpec.dr(wip, amount, f"Materials to WIP for {label}"))
            lines.append(LineSpec.cr(code, amount, f"Materials consumed for {label}"))
        lines.append(LineSpec.dr(wip, costs.overhead_cost, "Overhead applied"))
        lines.append(LineSpec.cr(overhead, costs.overhead_cost, f"Overhead absorbed for {label}"))
        return drop_zero_lines(lines)

    lines = [LineSpec.dr(accounts.finished_goods, costs.total_cost, f"FG from WIP for {label}")]
    if placement.is_first:
        lines.extend(
            LineSpec.cr(code, amount, f"Materials consumed for {label}")
            for code, amount in sorted(material_credits.items())
        )
        lines.append(LineSpec.cr(overhead, costs.overhead_cost, f"Overhead absorbed for {label}"))
    else:
        lines.append(LineSpec.cr(wip, costs.previous_step_cost, "WIP consumed"))
        lines.append(
            LineSpec.cr(
                overhead,
                costs.material_cost + costs.overhead_cost,
                "Materials and overhead to FG",
            )
        )
    return drop_zero_lines(lines)
