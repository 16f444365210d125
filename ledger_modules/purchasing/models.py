"""
Purchasing Domain Models.

Input DTOs and status enums for purchase orders, goods receipts, vendor
bills and payments.  Amounts are integer minor units; quantities are
integers in the item's base unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class PurchaseOrderStatus(str, Enum):
    OPEN = "OPEN"
    PARTIAL = "PARTIAL"
    RECEIVED = "RECEIVED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class BillApprovalStatus(str, Enum):
    NOT_REQUIRED = "NOT_REQUIRED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def has_effects(self) -> bool:
        """Layers and GL exist for bills in these states."""
        return self in (BillApprovalStatus.NOT_REQUIRED, BillApprovalStatus.APPROVED)


class BillStatus(str, Enum):
    OPEN = "OPEN"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    VOID = "VOID"


@dataclass(frozen=True)
class PurchaseOrderLineInput:
    item_id: UUID
    qty_ordered: int
    unit_cost: int
    description: str | None = None


@dataclass(frozen=True)
class ReceiptLineInput:
    item_id: UUID
    quantity: int


@dataclass(frozen=True)
class BillLineInput:
    item_id: UUID
    quantity: int
    unit_price: int
    description: str | None = None

    @property
    def amount(self) -> int:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class PaymentApplication:
    bill_id: UUID
    amount: int
