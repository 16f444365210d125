"""Read-only selectors."""

from ledger_kernel.selectors.ledger_selector import (
    AccountRegister,
    GLImpactLine,
    LedgerSelector,
    ReconciliationRow,
    RegisterLine,
)

__all__ = [
    "AccountRegister",
    "GLImpactLine",
    "LedgerSelector",
    "ReconciliationRow",
    "RegisterLine",
]
