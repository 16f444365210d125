"""
Purchasing module: purchase orders, goods receipts, vendor bills with
three-way match and approval, vendor payments.
"""

from ledger_modules.purchasing.config import PurchasingConfig
from ledger_modules.purchasing.models import (
    BillApprovalStatus,
    BillLineInput,
    BillStatus,
    PurchaseOrderLineInput,
    PurchaseOrderStatus,
    ReceiptLineInput,
)
from ledger_modules.purchasing.service import PurchasingService

__all__ = [
    "PurchasingConfig",
    "BillApprovalStatus",
    "BillLineInput",
    "BillStatus",
    "PurchaseOrderLineInput",
    "PurchaseOrderStatus",
    "ReceiptLineInput",
    "PurchasingService",
]
