"""
Module: ledger_kernel.models.inventory
Responsibility: ORM persistence for inventory cost layers, the
    per-consumption depletion ledger, and location-transfer audit rows.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - 0 <= remaining_qty <= initial_qty (CHECK constraint, plus service
      validation before every write).
    - batch_number is unique.
    - ``version`` is an optimistic version counter: every UPDATE issued by
      the ORM carries ``WHERE version = :old`` and bumps it, so a concurrent
      writer that read a stale row fails with StaleDataError instead of
      over-depleting.
    - Every depletion writes one LayerDepletion row per layer touched; the
      row records the exact quantity so that a reversal can put it back on
      the same layer.

Failure modes:
    - IntegrityError on duplicate batch_number (the store checks first and
      raises DuplicateBatchError).
    - StaleDataError on a concurrent layer write (translated to
      OptimisticLockError by the store).

Audit relevance:
    Layers are never hard-deleted outside document reversal.  Depletion rows
    are never deleted; restoration flips ``is_restored``.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.inventory import LayerKind, LayerSnapshot, QcStatus


class InventoryLayer(TrackedBase):
    """A discrete, cost-stamped batch of on-hand quantity for an item."""

    __tablename__ = "inventory_layers"

    __table_args__ = (
        UniqueConstraint("batch_number", name="uq_inventory_layer_batch"),
        CheckConstraint("remaining_qty >= 0", name="ck_layer_remaining_non_negative"),
        CheckConstraint("remaining_qty <= initial_qty", name="ck_layer_remaining_le_initial"),
        CheckConstraint("unit_cost >= 0", name="ck_layer_unit_cost_non_negative"),
        Index("idx_layer_item_fifo", "item_id", "is_depleted", "receive_date"),
        Index("idx_layer_source", "source_type", "source_id"),
    )

    item_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("items.id"), nullable=False)
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False)
    layer_kind: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LayerKind.PURCHASE.value
    )
    initial_qty: Mapped[int] = mapped_column(BigInteger, nullable=False)
    remaining_qty: Mapped[int] = mapped_column(BigInteger, nullable=False)
    unit_cost: Mapped[int] = mapped_column(BigInteger, nullable=False)
    receive_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_depleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    warehouse_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    location_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    qc_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QcStatus.NOT_REQUIRED.value
    )
    source_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<InventoryLayer {self.batch_number} {self.remaining_qty}/{self.initial_qty}"
            f" @ {self.unit_cost}>"
        )

    @property
    def value(self) -> int:
        return self.remaining_qty * self.unit_cost

    def to_snapshot(self) -> LayerSnapshot:
        return LayerSnapshot(
            layer_id=self.id,
            batch_number=self.batch_number,
            remaining_qty=self.remaining_qty,
            unit_cost=self.unit_cost,
            receive_date=self.receive_date,
            warehouse_code=self.warehouse_code,
            location_code=self.location_code,
        )


class LayerDepletion(TrackedBase):
    """
    One consumption of one layer by one source document.

    ``source_type``/``source_id`` identify the consumer (invoice, work order
    step, ...).  Restoring a source flips ``is_restored`` on all of its rows
    and adds each ``quantity`` back to its own layer.
    """

    __tablename__ = "inventory_layer_depletions"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_depletion_quantity_positive"),
        Index("idx_depletion_source", "source_type", "source_id"),
        Index("idx_depletion_layer", "layer_id"),
    )

    layer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_layers.id"), nullable=False
    )
    item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    unit_cost: Mapped[int] = mapped_column(BigInteger, nullable=False)
    source_type: Mapped[str] = mapped_column(String(30), nullable=False)
    source_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    consumed_on: Mapped[date] = mapped_column(Date, nullable=False)
    is_restored: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    restored_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<LayerDepletion {self.batch_number} x{self.quantity} "
            f"by {self.source_type}:{self.source_id}>"
        )

    @property
    def cost(self) -> int:
        return self.quantity * self.unit_cost


class InventoryLocationTransfer(TrackedBase):
    """Audit row for stock leaving or entering a location."""

    __tablename__ = "inventory_location_transfers"

    __table_args__ = (
        Index("idx_transfer_item", "item_id"),
        Index("idx_transfer_source", "source_type", "source_id"),
        Index("idx_transfer_date", "transfer_date"),
    )

    item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False)
    from_warehouse_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    from_location_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_warehouse_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_location_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    transfer_reason: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")
    transfer_date: Mapped[date] = mapped_column(Date, nullable=False)
    source_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<InventoryLocationTransfer {self.batch_number} x{self.quantity} {self.transfer_reason}>"
