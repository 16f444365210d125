"""
InventoryLayerStore -- cost layer lifecycle: create, deplete, restore.

Responsibility:
    Persists inventory cost layers and performs every quantity mutation on
    them.  Depletion is planned by the pure ``plan_fifo_depletion`` over
    rows loaded FOR UPDATE, then written layer by layer together with one
    ``LayerDepletion`` row per layer touched.  Restoration replays those
    rows in reverse, so a reversed sale or step puts back exactly what it
    took, onto the layers it took it from.

Architecture position:
    Kernel > Services.  Below the Costing Policy Resolver and the three
    pipelines; above the models and the pure inventory domain.

Invariants enforced:
    - 0 <= remaining_qty <= initial_qty on every write.
    - FIFO: oldest receive date first, then layer id.
    - Only non-depleted layers with a released QC status are depletable.
      WIP layers are excluded from item-level FIFO and consumed by batch
      number instead.
    - All-or-nothing: the full plan is computed and validated before the
      first layer is touched.  Insufficient stock raises with no mutation.
    - Every layer write goes through the ORM so the optimistic version
      counter is checked; a lost race raises OptimisticLockError.

Failure modes:
    - ValidationError: non-positive quantity, negative unit cost.
    - ItemNotFoundError: unknown item on create.
    - DuplicateBatchError: batch number already used.
    - InsufficientInventoryError / InsufficientWipError.
    - UnrestorableDepletionError: a layer has vanished or lacks headroom.
    - OptimisticLockError: concurrent modification of a layer.

Audit relevance:
    Depletion rows and location-transfer rows are never deleted.  Layers
    are hard-deleted only by document reversal, and only when untouched.
"""

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.inventory import (
    RELEASED_QC_STATUSES,
    DepletionResult,
    LayerConsumption,
    LayerKind,
    QcStatus,
    plan_fifo_depletion,
)
from ledger_kernel.exceptions import (
    DuplicateBatchError,
    InsufficientWipError,
    ItemNotFoundError,
    LayerNotFoundError,
    OptimisticLockError,
    UnrestorableDepletionError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.inventory import (
    InventoryLayer,
    InventoryLocationTransfer,
    LayerDepletion,
)
from ledger_kernel.models.item import Item
from ledger_kernel.services.base import BaseService

logger = get_logger("services.inventory_layers")


class TransferReason:
    """Reasons recorded on location-transfer rows."""

    SALE = "sale"
    PRODUCTION_CONSUMPTION = "production_consumption"
    PRODUCTION_CREATE = "production_create"


class InventoryLayerStore(BaseService):
    """
    Layer persistence and quantity mutation.

    Contract:
        Every method flushes within the caller's transaction.  Callers
        pass a ``source_type``/``source_id`` on depletion so the
        consumption can later be restored exactly.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # =========================================================================
    # Creation
    # =========================================================================

    def create_layer(
        self,
        item_id: UUID,
        batch_number: str,
        quantity: int,
        unit_cost: int,
        receive_date: date,
        actor_id: UUID,
        warehouse_code: str | None = None,
        location_code: str | None = None,
        qc_status: QcStatus = QcStatus.NOT_REQUIRED,
        layer_kind: LayerKind = LayerKind.PURCHASE,
        source_type: str | None = None,
        source_id: UUID | None = None,
    ) -> InventoryLayer:
        """
        Create a cost layer with remaining == initial quantity.

        Batch number conventions: "BILL-<bill>-<item>" for purchases,
        "WO-<wo>-STEP-<n>" for WIP, "WO-<wo>-FG" for finished goods.
        """
        if quantity <= 0:
            raise ValidationError("quantity", f"must be positive, got {quantity}")
        if unit_cost < 0:
            raise ValidationError("unit_cost", f"must not be negative, got {unit_cost}")
        if self.session.get(Item, item_id) is None:
            raise ItemNotFoundError(str(item_id))
        if self.find_by_batch(batch_number) is not None:
            raise DuplicateBatchError(batch_number)

        layer = InventoryLayer(
            item_id=item_id,
            batch_number=batch_number,
            layer_kind=LayerKind(layer_kind).value,
            initial_qty=quantity,
            remaining_qty=quantity,
            unit_cost=unit_cost,
            receive_date=receive_date,
            is_depleted=False,
            warehouse_code=warehouse_code,
            location_code=location_code,
            qc_status=QcStatus(qc_status).value,
            source_type=source_type,
            source_id=source_id,
            created_by_id=actor_id,
        )
        self.session.add(layer)
        self.session.flush()

        logger.info(
            "layer_created",
            extra={
                "item_id": str(item_id),
                "batch_number": batch_number,
                "layer_kind": layer.layer_kind,
                "quantity": quantity,
                "unit_cost": unit_cost,
                "qc_status": layer.qc_status,
            },
        )
        return layer

    # =========================================================================
    # Depletion
    # =========================================================================

    @staticmethod
    def _eligible_filters(
        item_id: UUID,
        warehouse_code: str | None,
        location_code: str | None,
    ) -> list:
        filters = [
            InventoryLayer.item_id == item_id,
            InventoryLayer.is_depleted.is_(False),
            InventoryLayer.remaining_qty > 0,
            InventoryLayer.qc_status.in_(RELEASED_QC_STATUSES),
            InventoryLayer.layer_kind != LayerKind.WIP.value,
        ]
        if warehouse_code is not None:
            filters.append(InventoryLayer.warehouse_code == warehouse_code)
        if location_code is not None:
            filters.append(InventoryLayer.location_code == location_code)
        return filters

    def eligible_layers(
        self,
        item_id: UUID,
        warehouse_code: str | None = None,
        location_code: str | None = None,
        for_update: bool = False,
    ) -> list[InventoryLayer]:
        stmt = (
            select(InventoryLayer)
            .where(*self._eligible_filters(item_id, warehouse_code, location_code))
            .order_by(InventoryLayer.receive_date, InventoryLayer.id)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return list(self.session.scalars(stmt).all())

    def deplete(
        self,
        item_id: UUID,
        quantity: int,
        actor_id: UUID,
        source_type: str,
        source_id: UUID,
        consumed_on: date,
        warehouse_code: str | None = None,
        location_code: str | None = None,
        transfer_reason: str | None = None,
    ) -> DepletionResult:
        """
        FIFO-deplete ``quantity`` of ``item_id``.

        Postconditions:
            - Consumed layers are decremented oldest first and flagged
              depleted at zero.
            - One LayerDepletion row per layer, keyed by the source.
            - One transfer row per layer when ``transfer_reason`` is given.

        Raises:
            InsufficientInventoryError: eligible stock < quantity.  No layer
                has been changed.
        """
        layers = self.eligible_layers(item_id, warehouse_code, location_code, for_update=True)
        plan = plan_fifo_depletion(item_id, [layer.to_snapshot() for layer in layers], quantity)

        by_id = {layer.id: layer for layer in layers}
        for consumption in plan.consumptions:
            self._consume(
                by_id[consumption.layer_id],
                consumption,
                actor_id,
                source_type,
                source_id,
                consumed_on,
                transfer_reason,
            )
        self._flush_layers(plan.consumptions)

        logger.info(
            "layer_depleted",
            extra={
                "item_id": str(item_id),
                "quantity": quantity,
                "total_cost": plan.total_cost,
                "layers_touched": len(plan.consumptions),
                "source_type": source_type,
                "source_id": str(source_id),
            },
        )
        return plan

    def consume_batch(
        self,
        batch_number: str,
        quantity: int,
        actor_id: UUID,
        source_type: str,
        source_id: UUID,
        consumed_on: date,
        transfer_reason: str | None = None,
    ) -> DepletionResult | None:
        """
        Consume ``quantity`` from one named layer (typically WIP).

        Returns None when no layer carries ``batch_number``.

        Raises:
            InsufficientWipError: the layer holds less than ``quantity``.
        """
        if quantity <= 0:
            raise ValidationError("quantity", f"must be positive, got {quantity}")
        layer = self.find_by_batch(batch_number, for_update=True)
        if layer is None:
            logger.info("batch_not_found", extra={"batch_number": batch_number})
            return None
        if layer.remaining_qty < quantity:
            raise InsufficientWipError(batch_number, quantity, layer.remaining_qty)

        consumption = LayerConsumption(
            layer_id=layer.id,
            batch_number=layer.batch_number,
            quantity=quantity,
            unit_cost=layer.unit_cost,
            warehouse_code=layer.warehouse_code,
            location_code=layer.location_code,
        )
        self._consume(
            layer, consumption, actor_id, source_type, source_id, consumed_on, transfer_reason
        )
        self._flush_layers((consumption,))

        logger.info(
            "batch_consumed",
            extra={
                "batch_number": batch_number,
                "quantity": quantity,
                "total_cost": consumption.cost,
                "remaining_qty": layer.remaining_qty,
            },
        )
        return DepletionResult(item_id=layer.item_id, quantity=quantity, consumptions=(consumption,))

    def _consume(
        self,
        layer: InventoryLayer,
        consumption: LayerConsumption,
        actor_id: UUID,
        source_type: str,
        source_id: UUID,
        consumed_on: date,
        transfer_reason: str | None,
    ) -> None:
        new_remaining = layer.remaining_qty - consumption.quantity
        if new_remaining < 0:
            raise InsufficientWipError(
                layer.batch_number, consumption.quantity, layer.remaining_qty
            )
        layer.remaining_qty = new_remaining
        layer.is_depleted = new_remaining == 0
        layer.updated_by_id = actor_id

        self.session.add(
            LayerDepletion(
                layer_id=layer.id,
                item_id=layer.item_id,
                batch_number=layer.batch_number,
                quantity=consumption.quantity,
                unit_cost=consumption.unit_cost,
                source_type=source_type,
                source_id=source_id,
                consumed_on=consumed_on,
                is_restored=False,
                created_by_id=actor_id,
            )
        )
        if transfer_reason is not None:
            self.record_transfer(
                item_id=layer.item_id,
                batch_number=layer.batch_number,
                quantity=consumption.quantity,
                transfer_reason=transfer_reason,
                transfer_date=consumed_on,
                actor_id=actor_id,
                from_warehouse_code=layer.warehouse_code,
                from_location_code=layer.location_code,
                source_type=source_type,
                source_id=source_id,
            )

    def _flush_layers(self, consumptions: Sequence[LayerConsumption]) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            ids = ",".join(str(c.layer_id) for c in consumptions)
            logger.error("layer_version_conflict", extra={"layer_ids": ids})
            raise OptimisticLockError("InventoryLayer", ids) from exc

    # =========================================================================
    # Restoration and document reversal
    # =========================================================================

    def depletions_for_source(
        self,
        source_type: str,
        source_id: UUID,
        include_restored: bool = False,
    ) -> list[LayerDepletion]:
        stmt = select(LayerDepletion).where(
            LayerDepletion.source_type == source_type,
            LayerDepletion.source_id == source_id,
        )
        if not include_restored:
            stmt = stmt.where(LayerDepletion.is_restored.is_(False))
        return list(self.session.scalars(stmt.order_by(LayerDepletion.created_at)).all())

    def restore(self, source_type: str, source_id: UUID, actor_id: UUID) -> int:
        """
        Put back every unrestored consumption made by a source document.

        Returns:
            Total quantity restored (0 when the source consumed nothing).

        Raises:
            UnrestorableDepletionError: a consumed layer no longer exists or
                lacks headroom.  Nothing has been restored.
        """
        rows = self.depletions_for_source(source_type, source_id)
        if not rows:
            return 0

        layer_ids = sorted({row.layer_id for row in rows}, key=str)
        layers = {
            layer.id: layer
            for layer in self.session.scalars(
                select(InventoryLayer)
                .where(InventoryLayer.id.in_(layer_ids))
                .with_for_update()
            ).all()
        }

        headroom_needed: dict[UUID, int] = {}
        for row in rows:
            headroom_needed[row.layer_id] = headroom_needed.get(row.layer_id, 0) + row.quantity
        for layer_id, needed in headroom_needed.items():
            layer = layers.get(layer_id)
            if layer is None or layer.remaining_qty + needed > layer.initial_qty:
                raise UnrestorableDepletionError(source_type, str(source_id), str(layer_id))

        now = self.clock.now()
        total = 0
        for row in rows:
            layer = layers[row.layer_id]
            layer.remaining_qty += row.quantity
            layer.is_depleted = layer.remaining_qty == 0
            layer.updated_by_id = actor_id
            row.is_restored = True
            row.restored_at = now
            row.updated_by_id = actor_id
            total += row.quantity

        for transfer in self.session.scalars(
            select(InventoryLocationTransfer).where(
                InventoryLocationTransfer.source_type == source_type,
                InventoryLocationTransfer.source_id == source_id,
                InventoryLocationTransfer.status == "completed",
            )
        ).all():
            transfer.status = "reversed"
            transfer.updated_by_id = actor_id

        try:
            self.session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError("InventoryLayer", ",".join(map(str, layer_ids))) from exc

        logger.info(
            "layers_restored",
            extra={
                "source_type": source_type,
                "source_id": str(source_id),
                "quantity": total,
                "layers_touched": len(layer_ids),
            },
        )
        return total

    def layers_for_source(self, source_type: str, source_id: UUID) -> list[InventoryLayer]:
        return list(
            self.session.scalars(
                select(InventoryLayer)
                .where(
                    InventoryLayer.source_type == source_type,
                    InventoryLayer.source_id == source_id,
                )
                .order_by(InventoryLayer.batch_number)
                .with_for_update()
            ).all()
        )

    def consumed_batches(self, source_type: str, source_id: UUID) -> tuple[str, ...]:
        """Batch numbers of a source's layers that have been partly consumed."""
        return tuple(
            layer.batch_number
            for layer in self.layers_for_source(source_type, source_id)
            if layer.remaining_qty < layer.initial_qty
        )

    def delete_source_layers(self, source_type: str, source_id: UUID) -> int:
        """
        Hard-delete the untouched layers created by a source document.

        Only document reversal (bill edit or delete) calls this, after
        ``consumed_batches`` has come back empty.
        """
        layers = self.layers_for_source(source_type, source_id)
        for layer in layers:
            if layer.remaining_qty < layer.initial_qty:
                raise UnrestorableDepletionError(source_type, str(source_id), str(layer.id))
        for layer in layers:
            self.session.delete(layer)
        self._flush_layers(())
        logger.info(
            "source_layers_deleted",
            extra={"source_type": source_type, "source_id": str(source_id), "count": len(layers)},
        )
        return len(layers)

    # =========================================================================
    # Transfers, QC, queries
    # =========================================================================

    def record_transfer(
        self,
        item_id: UUID,
        batch_number: str,
        quantity: int,
        transfer_reason: str,
        transfer_date: date,
        actor_id: UUID,
        from_warehouse_code: str | None = None,
        from_location_code: str | None = None,
        to_warehouse_code: str | None = None,
        to_location_code: str | None = None,
        source_type: str | None = None,
        source_id: UUID | None = None,
    ) -> InventoryLocationTransfer:
        transfer = InventoryLocationTransfer(
            item_id=item_id,
            batch_number=batch_number,
            from_warehouse_code=from_warehouse_code,
            from_location_code=from_location_code,
            to_warehouse_code=to_warehouse_code,
            to_location_code=to_location_code,
            quantity=quantity,
            transfer_reason=transfer_reason,
            status="completed",
            transfer_date=transfer_date,
            source_type=source_type,
            source_id=source_id,
            created_by_id=actor_id,
        )
        self.session.add(transfer)
        return transfer

    def set_qc_status(self, layer_id: UUID, status: QcStatus, actor_id: UUID) -> InventoryLayer:
        layer = self.session.scalars(
            select(InventoryLayer).where(InventoryLayer.id == layer_id).with_for_update()
        ).one_or_none()
        if layer is None:
            raise LayerNotFoundError(str(layer_id))
        previous = layer.qc_status
        layer.qc_status = QcStatus(status).value
        layer.updated_by_id = actor_id
        self._flush_layers(())
        logger.info(
            "layer_qc_status_changed",
            extra={"batch_number": layer.batch_number, "from": previous, "to": layer.qc_status},
        )
        return layer

    def find_by_batch(self, batch_number: str, for_update: bool = False) -> InventoryLayer | None:
        stmt = select(InventoryLayer).where(InventoryLayer.batch_number == batch_number)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).one_or_none()

    def layers_for_item(self, item_id: UUID, include_depleted: bool = False) -> list[InventoryLayer]:
        stmt = select(InventoryLayer).where(InventoryLayer.item_id == item_id)
        if not include_depleted:
            stmt = stmt.where(InventoryLayer.is_depleted.is_(False))
        return list(
            self.session.scalars(stmt.order_by(InventoryLayer.receive_date, InventoryLayer.id)).all()
        )

    def availability(
        self,
        item_id: UUID,
        warehouse_code: str | None = None,
        location_code: str | None = None,
    ) -> int:
        """Depletable quantity: non-depleted, released, non-WIP layers."""
        total = self.session.scalar(
            select(func.coalesce(func.sum(InventoryLayer.remaining_qty), 0)).where(
                *self._eligible_filters(item_id, warehouse_code, location_code)
            )
        )
        return int(total or 0)
