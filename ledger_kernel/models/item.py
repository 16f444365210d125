"""
Module: ledger_kernel.models.item
Responsibility: The slice of item master data the costing engine reads.

Item CRUD belongs to master-data tooling; only valuation method, standard
cost, optional asset account override and item class matter here.
"""

from sqlalchemy import BigInteger, Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.domain.inventory import ItemClass, ValuationMethod


class Item(TrackedBase):
    """Stock-keeping item."""

    __tablename__ = "items"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_item_sku"),
        Index("idx_item_class", "item_class"),
    )

    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_class: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ItemClass.RAW_MATERIAL.value
    )
    valuation_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ValuationMethod.FIFO.value
    )
    standard_cost: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    asset_account_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Item {self.sku}: {self.name} [{self.item_class}/{self.valuation_method}]>"
