"""
Module: ledger_kernel.db.types
Responsibility: Annotated type aliases and the integer rounding helpers used by
    every costing calculation.  Centralizes column widths and rounding so that
    every model and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    CRITICAL: No floats anywhere.  Money is an ``int`` count of minor currency
    units; quantities are ``int`` counts of an item's base unit of measure.
    ``round_half_up`` and ``scale_half_up`` are the ONLY sanctioned ways to
    divide money (weighted averages, unit costs, tax, overhead, yields).

Failure modes:
    - ZeroDivisionError from the rounding helpers when the denominator is 0.
      Callers guard the empty cases explicitly (no layers, zero output).
"""

from typing import Annotated

from sqlalchemy import BigInteger, String


# Minor currency units (e.g. cents); signed for balances
MinorUnits = Annotated[int, BigInteger]

# Quantity in the item's base unit of measure
Quantity = Annotated[int, BigInteger]

# Chart-of-accounts code ("1310", "2100", ...)
AccountCode = Annotated[str, String(20)]

# Inventory batch identifier ("BILL-<bill>-<item>", "WO-<wo>-STEP-<n>", ...)
BatchNumber = Annotated[str, String(100)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Long text for descriptions
LongText = Annotated[str, String(4000)]

# Basis points denominator (10000 bps == 100%)
BASIS_POINTS = 10_000


def round_half_up(numerator: int, denominator: int) -> int:
    """
    Divide two integers and round the quotient half-up.

    Preconditions: denominator > 0.
    Postconditions: Returns the nearest integer to numerator/denominator;
        exact halves round towards positive infinity.

    Examples:
        >>> round_half_up(160_000, 150)
        1067
        >>> round_half_up(5, 2)
        3
    """
    if denominator <= 0:
        raise ZeroDivisionError("round_half_up requires a positive denominator")
    quotient, remainder = divmod(numerator, denominator)
    if 2 * remainder >= denominator:
        quotient += 1
    return quotient


def scale_half_up(value: int, multiplier: int, divisor: int) -> int:
    """Compute round(value * multiplier / divisor) without intermediate floats."""
    return round_half_up(value * multiplier, divisor)
