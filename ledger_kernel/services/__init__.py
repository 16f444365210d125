"""Kernel services.  All of them flush within the caller's transaction."""

from ledger_kernel.services.costing_policy import CostingPolicyResolver
from ledger_kernel.services.idempotency import RecurringPostingGuard
from ledger_kernel.services.inventory_layers import InventoryLayerStore, TransferReason
from ledger_kernel.services.ledger_service import AccountBalance, LedgerService, TrialBalance
from ledger_kernel.services.period_lock import PeriodLockGuard
from ledger_kernel.services.reverse_replay import CorrectionResult, ReverseReplayEditor

__all__ = [
    "CostingPolicyResolver",
    "RecurringPostingGuard",
    "InventoryLayerStore",
    "TransferReason",
    "AccountBalance",
    "LedgerService",
    "TrialBalance",
    "PeriodLockGuard",
    "CorrectionResult",
    "ReverseReplayEditor",
]
