"""
Module: ledger_modules.sales.orm
Responsibility: ORM persistence for tax rates, invoices and invoice lines.
Architecture position: Modules > Sales > ORM.  Customers are external master
    data referenced by UUID with no FK.

Invariants enforced:
    - Money is BigInteger minor units; tax rate multipliers are basis points.
    - invoice_number is unique.

Audit relevance:
    The invoice journal entry carries correlation id ``invoice-<id>``.
    Voided invoices keep their lines.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString


class TaxRate(TrackedBase):
    """Flat tax rate posting to a liability account."""

    __tablename__ = "tax_rates"

    __table_args__ = (
        CheckConstraint("rate_multiplier >= 0", name="ck_tax_rate_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    rate_multiplier: Mapped[int] = mapped_column(Integer, nullable=False)
    gl_account_code: Mapped[str | None] = mapped_column(
        String(20), ForeignKey("gl_accounts.code"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<TaxRate {self.name} {self.rate_multiplier}bps -> {self.gl_account_code}>"


class Invoice(TrackedBase):
    """Customer invoice."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
        Index("idx_invoice_customer", "customer_id"),
        Index("idx_invoice_date", "invoice_date"),
    )

    customer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    gross_total: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    discount_total: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    tax_total: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    cogs_total: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN")
    warehouse_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    location_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )

    lines: Mapped[list["InvoiceLine"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} {self.total_amount} [{self.status}]>"

    @property
    def correlation_id(self) -> str:
        return f"invoice-{self.id}"


class InvoiceLine(TrackedBase):
    __tablename__ = "invoice_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_invoice_line_quantity_positive"),
        Index("idx_invoice_line_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[UUID] = mapped_column(UUIDString(), ForeignKey("items.id"), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    rate: Mapped[int] = mapped_column(BigInteger, nullable=False)
    discount_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    tax_rate_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("tax_rates.id"), nullable=True
    )
    tax_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    cost_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    invoice: Mapped[Invoice] = relationship(back_populates="lines")
