"""
Module: ledger_modules.purchasing.orm
Responsibility: ORM persistence for purchase orders, vendor bills and
    vendor payments.
Architecture position: Modules > Purchasing > ORM.  Inherits TrackedBase.
    Vendors are external master data referenced by UUID with no FK.

Invariants enforced:
    - Money and quantities are BigInteger minor units / base units.
    - qty_received, qty_billed >= 0 (CHECK).
    - One bill line per item per bill, so "BILL-<bill>-<item>" batch
      numbers are unique.

Audit relevance:
    The vendor bill's journal entry carries correlation id ``bill-<id>``.
    Voided bills keep their lines; only their layers (when untouched) are
    removed, after the GL entry has been reversed.
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


class PurchaseOrder(TrackedBase):
    """Purchase order header."""

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_purchase_order_number"),
        Index("idx_po_vendor", "vendor_id"),
        Index("idx_po_status", "status"),
    )

    vendor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN")
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    lines: Mapped[list["PurchaseOrderLine"]] = relationship(
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.order_number} [{self.status}]>"

    @property
    def is_fully_received(self) -> bool:
        return bool(self.lines) and all(
            line.qty_received >= line.qty_ordered for line in self.lines
        )

    def line_for_item(self, item_id: UUID) -> "PurchaseOrderLine | None":
        for line in self.lines:
            if line.item_id == item_id:
                return line
        return None


class PurchaseOrderLine(TrackedBase):
    """One ordered item with its receipt and billing counters."""

    __tablename__ = "purchase_order_lines"

    __table_args__ = (
        UniqueConstraint("po_id", "item_id", name="uq_po_line_item"),
        CheckConstraint("qty_ordered > 0", name="ck_po_line_qty_ordered_positive"),
        CheckConstraint("qty_received >= 0", name="ck_po_line_qty_received_non_negative"),
        CheckConstraint("qty_billed >= 0", name="ck_po_line_qty_billed_non_negative"),
        Index("idx_po_line_po", "po_id"),
    )

    po_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("purchase_orders.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("items.id"), nullable=False)
    qty_ordered: Mapped[int] = mapped_column(BigInteger, nullable=False)
    qty_received: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    qty_billed: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    unit_cost: Mapped[int] = mapped_column(BigInteger, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    purchase_order: Mapped[PurchaseOrder] = relationship(back_populates="lines")

    @property
    def billable_qty(self) -> int:
        return self.qty_received - self.qty_billed


class VendorBill(TrackedBase):
    """Vendor invoice, optionally linked to a purchase order."""

    __tablename__ = "vendor_bills"

    __table_args__ = (
        CheckConstraint("amount_paid >= 0", name="ck_bill_amount_paid_non_negative"),
        Index("idx_bill_vendor", "vendor_id"),
        Index("idx_bill_po", "po_id"),
        Index("idx_bill_approval_status", "approval_status"),
    )

    vendor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    po_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("purchase_orders.id"), nullable=True
    )
    bill_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bill_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount_paid: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN")
    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="NOT_REQUIRED"
    )
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    warehouse_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    location_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )

    lines: Mapped[list["VendorBillLine"]] = relationship(
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="VendorBillLine.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<VendorBill {self.bill_number or self.id} {self.total_amount} [{self.approval_status}]>"

    @property
    def correlation_id(self) -> str:
        return f"bill-{self.id}"

    @property
    def outstanding(self) -> int:
        return self.total_amount - self.amount_paid


class VendorBillLine(TrackedBase):
    """Billed item quantity and price."""

    __tablename__ = "vendor_bill_lines"

    __table_args__ = (
        UniqueConstraint("bill_id", "item_id", name="uq_bill_line_item"),
        CheckConstraint("quantity > 0", name="ck_bill_line_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_bill_line_unit_price_non_negative"),
        Index("idx_bill_line_bill", "bill_id"),
    )

    bill_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("vendor_bills.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("items.id"), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    unit_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    bill: Mapped[VendorBill] = relationship(back_populates="lines")


class VendorPayment(TrackedBase):
    """Outgoing payment applied to one or more open bills."""

    __tablename__ = "vendor_payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_vendor_payment_amount_positive"),
        Index("idx_vendor_payment_vendor", "vendor_id"),
    )

    vendor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount_applied: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )

    applications: Mapped[list["VendorPaymentApplication"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class VendorPaymentApplication(TrackedBase):
    """Portion of a payment applied to one bill."""

    __tablename__ = "vendor_payment_applications"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_application_amount_positive"),
        Index("idx_payment_application_bill", "bill_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("vendor_payments.id"), nullable=False
    )
    bill_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("vendor_bills.id"), nullable=False
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    payment: Mapped[VendorPayment] = relationship(back_populates="applications")
