"""
Three-way match -- pure validation of bill lines against a purchase order.

A bill line may only bill what has been received and not yet billed:
``quantity <= qty_received - qty_billed``.  The unit price is compared
with the PO unit cost; a variance beyond the tolerance is reported as a
warning and does not block the bill.

Pure functions over frozen snapshots; no session, no clock.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from uuid import UUID

from ledger_kernel.db.types import BASIS_POINTS
from ledger_kernel.exceptions import ThreeWayMatchError, ValidationError
from ledger_modules.purchasing.models import BillLineInput


@dataclass(frozen=True)
class PoLineSnapshot:
    item_id: UUID
    qty_ordered: int
    qty_received: int
    qty_billed: int
    unit_cost: int

    @property
    def billable_qty(self) -> int:
        return self.qty_received - self.qty_billed


def price_variance_bps(unit_price: int, po_unit_cost: int) -> int | None:
    """Absolute variance in basis points of the PO cost, truncated.  None if the PO cost is 0."""
    if po_unit_cost == 0:
        return None
    return abs(unit_price - po_unit_cost) * BASIS_POINTS // po_unit_cost


def within_tolerance(unit_price: int, po_unit_cost: int, tolerance_bps: int) -> bool:
    if po_unit_cost == 0:
        return unit_price == 0
    return abs(unit_price - po_unit_cost) * BASIS_POINTS <= tolerance_bps * po_unit_cost


def validate_bill_lines(lines: Sequence[BillLineInput]) -> None:
    """Reject empty bills, non-positive quantities, negative prices and repeated items."""
    if not lines:
        raise ValidationError("lines", "a bill needs at least one line")
    seen: set[UUID] = set()
    for number, line in enumerate(lines, start=1):
        if line.quantity <= 0:
            raise ValidationError(f"lines[{number}].quantity", "must be positive")
        if line.unit_price < 0:
            raise ValidationError(f"lines[{number}].unit_price", "must not be negative")
        if line.item_id in seen:
            raise ValidationError(f"lines[{number}].item_id", "item appears twice on the bill")
        seen.add(line.item_id)


def match_bill_lines(
    po_id: UUID,
    po_lines: Mapping[UUID, PoLineSnapshot],
    bill_lines: Sequence[BillLineInput],
    tolerance_bps: int,
) -> tuple[str, ...]:
    """
    Three-way match every bill line.

    Returns:
        Price-variance warnings (possibly empty).

    Raises:
        ThreeWayMatchError: item missing from the PO, or quantity exceeds
            received-minus-billed.
    """
    warnings: list[str] = []
    for line in bill_lines:
        po_line = po_lines.get(line.item_id)
        if po_line is None:
            raise ThreeWayMatchError(str(po_id), str(line.item_id), "item is not on the purchase order")
        if line.quantity > po_line.billable_qty:
            raise ThreeWayMatchError(
                str(po_id),
                str(line.item_id),
                "billed quantity exceeds received and unbilled quantity",
                requested=line.quantity,
                available=po_line.billable_qty,
            )
        if not within_tolerance(line.unit_price, po_line.unit_cost, tolerance_bps):
            variance = price_variance_bps(line.unit_price, po_line.unit_cost)
            warnings.append(
                f"Price variance on item {line.item_id}: billed {line.unit_price} vs PO "
                f"{po_line.unit_cost}"
                + (f" ({variance} bps)" if variance is not None else "")
            )
    return tuple(warnings)
