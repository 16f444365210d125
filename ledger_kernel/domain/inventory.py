"""
ledger_kernel.domain.inventory -- Inventory cost-layer value objects and pure costing.

Responsibility:
    Enumerations that describe items and layers (valuation method, item
    class, QC status, layer kind), immutable snapshots of layers, and the
    pure calculations on top of them: FIFO depletion planning, weighted
    average cost, and FIFO current cost.

Architecture position:
    Kernel > Domain -- pure calculation layer, zero I/O.  The stateful
    ``InventoryLayerStore`` in ``ledger_kernel.services`` loads snapshots,
    asks this module for a plan, and writes the plan back.

Invariants enforced:
    - FIFO order is receive date ascending, tie-broken by layer id.
    - A plan either covers the full requested quantity or raises; there is
      no partial plan (all-or-nothing depletion).
    - Consumed cost is exact: sum of quantity x unit cost, integers only.
    - Weighted average is round-half-up of total value / total quantity,
      0 when nothing is on hand.

Failure modes:
    - InsufficientInventoryError from ``plan_fifo_depletion`` when the
      eligible layers hold less than the requested quantity.
    - ValidationError for a non-positive requested quantity.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import round_half_up
from ledger_kernel.exceptions import InsufficientInventoryError, ValidationError


class ValuationMethod(str, Enum):
    """Per-item valuation method."""

    FIFO = "FIFO"
    WEIGHTED_AVG = "WEIGHTED_AVG"
    STANDARD = "STANDARD"


class ItemClass(str, Enum):
    """Item classification used to pick a default asset account."""

    RAW_MATERIAL = "RAW_MATERIAL"
    WIP = "WIP"
    FINISHED_GOODS = "FINISHED_GOODS"
    SERVICE = "SERVICE"


class QcStatus(str, Enum):
    """Quality-control state of a layer.  Only released layers are depletable."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NOT_REQUIRED = "NOT_REQUIRED"

    @property
    def is_released(self) -> bool:
        return self in (QcStatus.APPROVED, QcStatus.NOT_REQUIRED)


RELEASED_QC_STATUSES: tuple[str, ...] = (QcStatus.APPROVED.value, QcStatus.NOT_REQUIRED.value)


class LayerKind(str, Enum):
    """Origin of a layer.  WIP layers are only consumed by batch number."""

    PURCHASE = "PURCHASE"
    WIP = "WIP"
    FINISHED_GOODS = "FINISHED_GOODS"
    ADJUSTMENT = "ADJUSTMENT"


@dataclass(frozen=True)
class LayerSnapshot:
    """Read-only view of an inventory layer at plan time."""

    layer_id: UUID
    batch_number: str
    remaining_qty: int
    unit_cost: int
    receive_date: date
    warehouse_code: str | None = None
    location_code: str | None = None

    @property
    def value(self) -> int:
        return self.remaining_qty * self.unit_cost


@dataclass(frozen=True)
class LayerConsumption:
    """Quantity taken from one layer."""

    layer_id: UUID
    batch_number: str
    quantity: int
    unit_cost: int
    warehouse_code: str | None = None
    location_code: str | None = None

    @property
    def cost(self) -> int:
        return self.quantity * self.unit_cost


@dataclass(frozen=True)
class DepletionResult:
    """Outcome of one depletion: the consumptions and their total cost."""

    item_id: UUID
    quantity: int
    consumptions: tuple[LayerConsumption, ...]

    @property
    def total_cost(self) -> int:
        return sum(c.cost for c in self.consumptions)

    @classmethod
    def empty(cls, item_id: UUID) -> DepletionResult:
        return cls(item_id=item_id, quantity=0, consumptions=())


def fifo_order(layers: Iterable[LayerSnapshot]) -> list[LayerSnapshot]:
    """Oldest receive date first, then layer id."""
    return sorted(layers, key=lambda layer: (layer.receive_date, str(layer.layer_id)))


def plan_fifo_depletion(
    item_id: UUID,
    layers: Sequence[LayerSnapshot],
    quantity: int,
) -> DepletionResult:
    """
    Plan a FIFO depletion over eligible layers.

    Preconditions:
        ``layers`` are already filtered to eligible (non-depleted, released,
        matching location) layers of ``item_id``.
    Postconditions:
        The returned consumptions sum exactly to ``quantity`` and are listed
        in FIFO order.  Nothing is mutated.

    Raises:
        ValidationError: quantity <= 0.
        InsufficientInventoryError: eligible stock < quantity.
    """
    if quantity <= 0:
        raise ValidationError("quantity", f"must be positive, got {quantity}")

    available = sum(layer.remaining_qty for layer in layers)
    if available < quantity:
        raise InsufficientInventoryError(str(item_id), quantity, available)

    consumptions: list[LayerConsumption] = []
    outstanding = quantity
    for layer in fifo_order(layers):
        if outstanding <= 0:
            break
        take = min(outstanding, layer.remaining_qty)
        if take <= 0:
            continue
        consumptions.append(
            LayerConsumption(
                layer_id=layer.layer_id,
                batch_number=layer.batch_number,
                quantity=take,
                unit_cost=layer.unit_cost,
                warehouse_code=layer.warehouse_code,
                location_code=layer.location_code,
            )
        )
        outstanding -= take

    return DepletionResult(item_id=item_id, quantity=quantity, consumptions=tuple(consumptions))


def weighted_average_cost(layers: Iterable[LayerSnapshot]) -> int:
    """round(sum(remaining x unit cost) / sum(remaining)); 0 when nothing is on hand."""
    total_qty = 0
    total_value = 0
    for layer in layers:
        if layer.remaining_qty <= 0:
            continue
        total_qty += layer.remaining_qty
        total_value += layer.value
    if total_qty == 0:
        return 0
    return round_half_up(total_value, total_qty)


def fifo_current_cost(layers: Iterable[LayerSnapshot]) -> int:
    """Unit cost of the oldest layer with stock; 0 when nothing is on hand."""
    on_hand = [layer for layer in layers if layer.remaining_qty > 0]
    if not on_hand:
        return 0
    return fifo_order(on_hand)[0].unit_cost
