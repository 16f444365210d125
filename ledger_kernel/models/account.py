"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every journal line -- including the cached running balance.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - code is unique.
    - balance is the signed Debit-minus-Credit sum of every balance effect
      LedgerService has applied to the account, changed only in the same
      transaction that inserts the lines.  An in-place edit replaces the
      original lines after a reversal has neutralized them, so the cached
      balance reflects the replacement lines plus every reversal.

Failure modes:
    - AccountNotFoundError (raised by services) when a line references a
      code that has no row here.

Audit relevance:
    The trial balance check in LedgerService.close_period verifies that
    global debits and credits agree before the lock date moves.
"""

from enum import Enum

from sqlalchemy import BigInteger, Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSE = "Expense"

    @property
    def is_debit_normal(self) -> bool:
        return self in (AccountType.ASSET, AccountType.EXPENSE)


class GLAccount(TrackedBase):
    """
    Chart of accounts entry with a cached balance.

    Contract:
        ``balance`` follows the Debit-minus-Credit convention regardless of
        account type; ``natural_balance`` flips the sign for credit-normal
        accounts when a human-facing figure is needed.
    """

    __tablename__ = "gl_accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_gl_account_code"),
        Index("idx_gl_account_type", "account_type"),
        Index("idx_gl_account_parent", "parent_code"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    parent_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<GLAccount {self.code}: {self.name} ({self.balance})>"

    @property
    def type(self) -> AccountType:
        return AccountType(self.account_type)

    @property
    def natural_balance(self) -> int:
        """Balance signed in the account's normal direction."""
        return self.balance if self.type.is_debit_normal else -self.balance
