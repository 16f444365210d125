"""
Module: ledger_modules.manufacturing.orm
Responsibility: ORM persistence for work centers, routings, work orders,
    work order steps and the per-step cost breakdown.
Architecture position: Modules > Manufacturing > ORM.  Inherits TrackedBase.

Invariants enforced:
    - step_order is unique within a routing and starts at 1.
    - One WorkOrderStep per routing step per work order.
    - One WorkOrderStepCost per completed step (unique step id).
    - Money is BigInteger minor units; yield is basis points
      (10000 = 100%).

Audit relevance:
    The step's journal entry carries reference ``WO-<id>-STEP-<n>``; the
    cost row records how the step cost was built up.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString


class WorkCenter(TrackedBase):
    """A machine or station with an hourly overhead rate."""

    __tablename__ = "work_centers"

    __table_args__ = (
        UniqueConstraint("code", name="uq_work_center_code"),
        CheckConstraint("cost_per_hour >= 0", name="ck_work_center_rate_non_negative"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cost_per_hour: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<WorkCenter {self.code} @{self.cost_per_hour}/h>"


class Routing(TrackedBase):
    __tablename__ = "routings"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    steps: Mapped[list["RoutingStep"]] = relationship(
        back_populates="routing",
        cascade="all, delete-orphan",
        order_by="RoutingStep.step_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Routing {self.name} ({len(self.steps)} steps)>"


class RoutingStep(TrackedBase):
    """
    One operation of a routing.

    ``material_item_id`` is the raw material the first step draws for its
    input quantity; later steps normally leave it empty.
    """

    __tablename__ = "routing_steps"

    __table_args__ = (
        UniqueConstraint("routing_id", "step_order", name="uq_routing_step_order"),
        CheckConstraint("step_order >= 1", name="ck_routing_step_order_positive"),
    )

    routing_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("routings.id"), nullable=False
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    work_center_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("work_centers.id"), nullable=True
    )
    material_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("items.id"), nullable=True
    )
    expected_yield_bps: Mapped[int] = mapped_column(Integer, nullable=False, default=10000)

    routing: Mapped[Routing] = relationship(back_populates="steps")

    def __repr__(self) -> str:
        return f"<RoutingStep {self.step_order}: {self.description}>"


class WorkOrder(TrackedBase):
    """Production run of one item through one routing."""

    __tablename__ = "work_orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_work_order_number"),
        CheckConstraint("qty_planned > 0", name="ck_work_order_qty_positive"),
        Index("idx_work_order_status", "status"),
    )

    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    item_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("items.id"), nullable=False)
    routing_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("routings.id"), nullable=False
    )
    qty_planned: Mapped[int] = mapped_column(BigInteger, nullable=False)
    qty_produced: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PLANNED")
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    steps: Mapped[list["WorkOrderStep"]] = relationship(
        back_populates="work_order",
        cascade="all, delete-orphan",
        order_by="WorkOrderStep.step_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<WorkOrder {self.order_number} [{self.status}]>"


class WorkOrderStep(TrackedBase):
    """Execution record of one routing step for one work order."""

    __tablename__ = "work_order_steps"

    __table_args__ = (
        UniqueConstraint("work_order_id", "routing_step_id", name="uq_work_order_step"),
        Index("idx_work_order_step_status", "status"),
    )

    work_order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("work_orders.id"), nullable=False
    )
    routing_step_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("routing_steps.id"), nullable=False
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    qty_in: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    qty_out: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    waste_qty: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    actual_yield_bps: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    overhead_applied: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    wip_batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )
    operator_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    work_order: Mapped[WorkOrder] = relationship(back_populates="steps")
    routing_step: Mapped[RoutingStep] = relationship(lazy="joined", innerjoin=True)
    cost: Mapped["WorkOrderStepCost | None"] = relationship(
        back_populates="step", uselist=False, lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<WorkOrderStep {self.step_order} [{self.status}]>"


class WorkOrderStepCost(TrackedBase):
    """How a completed step's cost was accumulated."""

    __tablename__ = "work_order_step_costs"

    __table_args__ = (
        UniqueConstraint("work_order_step_id", name="uq_step_cost_step"),
    )

    work_order_step_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("work_order_steps.id"), nullable=False
    )
    material_cost: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    overhead_cost: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    previous_step_cost: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_cost: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    unit_cost_after_yield: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    step: Mapped[WorkOrderStep] = relationship(back_populates="cost")
