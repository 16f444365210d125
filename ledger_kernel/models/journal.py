"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and their lines.
Architecture position: Kernel > Models.  May import from db/ and sibling models.

Invariants enforced:
    - Each line has non-negative debit and credit, never both nonzero
      (CHECK constraints, plus LineSpec validation upstream).
    - Per entry, sum(debit) == sum(credit) (LedgerService refuses to insert
      anything else; ``is_balanced`` lets auditors re-check).
    - Entries are never hard-deleted.  A deleted entry keeps its lines and
      is soft-marked ("[DELETED]" prefix, is_posted=False) after a
      balancing reversal has been posted.

Audit relevance:
    ``correlation_id`` ties an entry to the document that produced it
    (``bill-<id>``, ``invoice-<id>``, ``je-<id>-reversal``, ...) and drives
    the GL-impact query.  ``reverses_entry_id`` links a REVERSAL to the
    entry it mirrors; ``reversed_by_entry_id`` marks a TRANSACTION that
    ``LedgerService.reverse`` has already neutralized.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.ledger_events import JournalEntryType, LineSpec

DELETED_PREFIX = "[DELETED]"


class JournalEntry(TrackedBase):
    """
    A balanced financial event composed of ordered lines.

    Contract:
        Rows are created by LedgerService only.  Header fields may be
        overwritten by the Reverse & Replay editor, always after a balancing
        reversal has been posted.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        Index("idx_journal_entry_date", "entry_date"),
        Index("idx_journal_entry_correlation", "correlation_id"),
        Index("idx_journal_entry_type", "entry_type"),
    )

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    correlation_id: Mapped[str | None] = mapped_column(String(150), nullable=True)
    is_posted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    entry_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=JournalEntryType.TRANSACTION.value
    )
    reverses_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )
    reversed_by_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )

    lines: Mapped[list["JournalEntryLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.id} {self.entry_date} {self.entry_type}: {self.description}>"

    @property
    def is_reversal(self) -> bool:
        return self.entry_type == JournalEntryType.REVERSAL.value

    @property
    def is_deleted(self) -> bool:
        return not self.is_posted and self.description.startswith(DELETED_PREFIX)

    @property
    def is_reversed(self) -> bool:
        return self.reversed_by_entry_id is not None

    @property
    def total_debits(self) -> int:
        return sum(line.debit for line in self.lines)

    @property
    def total_credits(self) -> int:
        return sum(line.credit for line in self.lines)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    def line_specs(self) -> tuple[LineSpec, ...]:
        return tuple(line.to_spec() for line in self.lines)


class JournalEntryLine(TrackedBase):
    """One debit or credit against a GL account."""

    __tablename__ = "journal_entry_lines"

    __table_args__ = (
        CheckConstraint("debit >= 0", name="ck_jel_debit_non_negative"),
        CheckConstraint("credit >= 0", name="ck_jel_credit_non_negative"),
        CheckConstraint("debit = 0 OR credit = 0", name="ck_jel_single_side"),
        Index("idx_jel_entry", "journal_entry_id"),
        Index("idx_jel_account", "account_code"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_code: Mapped[str] = mapped_column(
        String(20), ForeignKey("gl_accounts.code"), nullable=False
    )
    debit: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    credit: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<JournalEntryLine {self.account_code} Dr {self.debit} Cr {self.credit}>"

    def to_spec(self) -> LineSpec:
        return LineSpec(
            account_code=self.account_code,
            debit=self.debit,
            credit=self.credit,
            description=self.description,
        )
