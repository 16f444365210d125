"""
Pure domain layer.

Data transfer objects and calculations with NO dependencies on the ORM,
the database, the clock, or any other I/O.  All domain objects are
immutable and deterministic.
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.inventory import (
    DepletionResult,
    ItemClass,
    LayerConsumption,
    LayerKind,
    LayerSnapshot,
    QcStatus,
    ValuationMethod,
    fifo_current_cost,
    plan_fifo_depletion,
    weighted_average_cost,
)
from ledger_kernel.domain.ledger_events import (
    JournalEntryType,
    LedgerEvent,
    LineSpec,
    Reversal,
    Transaction,
    net_by_account,
    swap_lines,
    validate_balanced,
)
from ledger_kernel.domain.results import OperationResult, OperationStatus

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "DepletionResult",
    "ItemClass",
    "LayerConsumption",
    "LayerKind",
    "LayerSnapshot",
    "QcStatus",
    "ValuationMethod",
    "fifo_current_cost",
    "plan_fifo_depletion",
    "weighted_average_cost",
    "JournalEntryType",
    "LedgerEvent",
    "LineSpec",
    "Reversal",
    "Transaction",
    "net_by_account",
    "swap_lines",
    "validate_balanced",
    "OperationResult",
    "OperationStatus",
]
