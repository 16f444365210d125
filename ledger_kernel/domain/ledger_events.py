"""
Ledger Events -- pure description of what the ledger is asked to record.

Responsibility:
    Defines the immutable values that flow into ``LedgerService``:
    ``LineSpec`` (one debit-or-credit line), and the ``LedgerEvent`` sum type
    with its two variants, ``Transaction`` (a new balanced entry) and
    ``Reversal`` (a debit/credit swap of an existing entry).  Every
    correction path (manual edit, manual delete, bill edit, invoice delete,
    ...) is expressed as a ``Reversal`` value applied by one function instead
    of re-implementing swap-and-repost at each call site.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - A line carries non-negative integer amounts and never both a debit and
      a credit (``validate_line``).
    - An entry balances: sum of debits == sum of credits (``validate_balanced``).
    - ``swap_lines`` is an exact mirror: every line keeps its account and
      amounts with the sides exchanged.

Failure modes:
    - InvalidLineError for a negative amount, both sides nonzero, or a
      zero-amount line.
    - UnbalancedEntryError when debits != credits or the entry has no lines.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID

from ledger_kernel.exceptions import InvalidLineError, UnbalancedEntryError


class JournalEntryType(str, Enum):
    """Journal entry kind."""

    TRANSACTION = "TRANSACTION"
    REVERSAL = "REVERSAL"


@dataclass(frozen=True)
class LineSpec:
    """
    Specification for a journal line.

    Contract:
        Exactly one of ``debit`` / ``credit`` is positive; the other is zero.
        Amounts are integer minor currency units.
    """

    account_code: str
    debit: int = 0
    credit: int = 0
    description: str | None = None

    @classmethod
    def dr(cls, account_code: str, amount: int, description: str | None = None) -> LineSpec:
        return cls(account_code=account_code, debit=amount, credit=0, description=description)

    @classmethod
    def cr(cls, account_code: str, amount: int, description: str | None = None) -> LineSpec:
        return cls(account_code=account_code, debit=0, credit=amount, description=description)

    @property
    def net(self) -> int:
        """Debit-minus-credit effect on the account's cached balance."""
        return self.debit - self.credit


@dataclass(frozen=True)
class Transaction:
    """A new balanced journal entry."""

    entry_date: date
    description: str
    lines: tuple[LineSpec, ...]
    reference: str | None = None
    correlation_id: str | None = None


@dataclass(frozen=True)
class Reversal:
    """
    Mirror an existing entry with debit and credit swapped.

    ``description_prefix`` is prepended to the original description and
    ``line_prefix`` to every line description ("Reversal:", "Deleted:", ...).
    When ``correlation_id`` is None the original's correlation id with a
    ``-reversal`` suffix is used.
    """

    original_entry_id: UUID
    effective_date: date
    description_prefix: str = "Reversal:"
    line_prefix: str = "Reversal:"
    reference: str | None = None
    correlation_id: str | None = None


LedgerEvent = Transaction | Reversal


# =============================================================================
# Pure validation and transformation
# =============================================================================


def validate_line(line: LineSpec) -> None:
    """Raise InvalidLineError unless the line has exactly one positive side."""
    if line.debit < 0 or line.credit < 0:
        raise InvalidLineError(line.account_code, line.debit, line.credit, "negative amount")
    if line.debit and line.credit:
        raise InvalidLineError(
            line.account_code, line.debit, line.credit, "both debit and credit are nonzero"
        )
    if not line.debit and not line.credit:
        raise InvalidLineError(line.account_code, line.debit, line.credit, "zero amount")


def validate_balanced(lines: Sequence[LineSpec]) -> tuple[int, int]:
    """
    Validate every line and the entry balance.

    Returns:
        (total_debits, total_credits), which are equal.

    Raises:
        InvalidLineError: a line is malformed.
        UnbalancedEntryError: totals differ or there are no lines.
    """
    for line in lines:
        validate_line(line)
    total_debits = sum(line.debit for line in lines)
    total_credits = sum(line.credit for line in lines)
    if not lines or total_debits != total_credits:
        raise UnbalancedEntryError(total_debits, total_credits)
    return total_debits, total_credits


def swap_lines(lines: Iterable[LineSpec], prefix: str) -> tuple[LineSpec, ...]:
    """Mirror lines: debit <-> credit, description prefixed."""
    return tuple(
        LineSpec(
            account_code=line.account_code,
            debit=line.credit,
            credit=line.debit,
            description=f"{prefix} {line.description or ''}".rstrip(),
        )
        for line in lines
    )


def net_by_account(lines: Iterable[LineSpec]) -> dict[str, int]:
    """Debit-minus-credit per account code, zero entries dropped."""
    totals: dict[str, int] = defaultdict(int)
    for line in lines:
        totals[line.account_code] += line.net
    return {code: amount for code, amount in totals.items() if amount}


def drop_zero_lines(lines: Iterable[LineSpec]) -> tuple[LineSpec, ...]:
    """Remove lines whose debit and credit are both zero."""
    return tuple(line for line in lines if line.debit or line.credit)
