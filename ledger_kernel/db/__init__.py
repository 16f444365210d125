"""Database layer - engine, base classes, and column types."""

from ledger_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from ledger_kernel.db.types import (
    BASIS_POINTS,
    AccountCode,
    BatchNumber,
    MinorUnits,
    Quantity,
    round_half_up,
    scale_half_up,
)

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "MinorUnits",
    "Quantity",
    "AccountCode",
    "BatchNumber",
    "BASIS_POINTS",
    "round_half_up",
    "scale_half_up",
]
