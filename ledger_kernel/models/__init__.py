"""SQLAlchemy ORM models for the ledger kernel."""

from ledger_kernel.models.account import AccountType, GLAccount
from ledger_kernel.models.idempotency import RecurringPostingKey
from ledger_kernel.models.inventory import (
    InventoryLayer,
    InventoryLocationTransfer,
    LayerDepletion,
)
from ledger_kernel.models.item import Item
from ledger_kernel.models.journal import DELETED_PREFIX, JournalEntry, JournalEntryLine
from ledger_kernel.models.settings import FINANCIAL_SETTINGS_KEY, SystemSetting

__all__ = [
    "AccountType",
    "GLAccount",
    "RecurringPostingKey",
    "InventoryLayer",
    "InventoryLocationTransfer",
    "LayerDepletion",
    "Item",
    "DELETED_PREFIX",
    "JournalEntry",
    "JournalEntryLine",
    "FINANCIAL_SETTINGS_KEY",
    "SystemSetting",
]
