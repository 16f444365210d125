"""
Module: ledger_kernel.models.idempotency
Responsibility: Idempotency keys for recurring postings.

Invariants enforced:
    - (contract_ref, cycle_key) is unique.  The key row is inserted in the
      same transaction as the journal entry it guards, so two concurrent
      runs of the same billing cycle cannot both commit.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class RecurringPostingKey(TrackedBase):
    """Marks one billing cycle of one contract as posted."""

    __tablename__ = "recurring_posting_keys"

    __table_args__ = (
        UniqueConstraint("contract_ref", "cycle_key", name="uq_recurring_posting_cycle"),
    )

    contract_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    cycle_key: Mapped[str] = mapped_column(String(50), nullable=False)
    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=False
    )

    def __repr__(self) -> str:
        return f"<RecurringPostingKey {self.contract_ref}/{self.cycle_key}>"
