"""
ReverseReplayEditor -- edit and delete posted journal entries without
rewriting history.

Responsibility:
    ``update`` neutralizes an entry with a reversal dated today, then
    overwrites the entry's header and lines in place and applies the new
    lines.  ``delete`` posts the same kind of reversal and soft-marks the
    original.  Both corrections are ``Reversal`` events applied by
    ``LedgerService.apply``.

Architecture position:
    Kernel > Services.  Used by manual journal CRUD and by the document
    pipelines when a bill or invoice is edited or deleted.

Invariants enforced:
    - The reversal is dated today, never on the original date, so closed
      history is not touched.
    - After ``update`` the net balance effect on every account equals the
      new lines' effect; the original id is preserved.
    - After ``delete`` the original lines remain for audit; the header is
      prefixed "[DELETED]" and ``is_posted`` is False.

Failure modes:
    - PeriodLockedError: the new date (update) or the original date
      (delete) is on or before the lock date.
    - EntryNotFoundError, EntryAlreadyDeletedError, EntryAlreadyReversedError.
    - ReversalOfReversalError: reversal entries cannot be edited or deleted.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.ledger_events import LineSpec, Reversal, validate_balanced
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import DELETED_PREFIX, JournalEntry
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.ledger_service import LedgerService

logger = get_logger("services.reverse_replay")


@dataclass(frozen=True)
class CorrectionResult:
    """The corrected entry and the reversal that neutralized its old lines."""

    entry_id: UUID
    reversal_entry_id: UUID


class ReverseReplayEditor(BaseService):
    """
    Correction primitive over LedgerService.

    Contract:
        Every correction is an additional balanced, visible REVERSAL entry.
        Nothing is hard-deleted.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: LedgerService | None = None,
    ):
        super().__init__(session, clock)
        self._ledger = ledger or LedgerService(session, self.clock)

    def _load_editable(self, entry_id: UUID) -> JournalEntry:
        return self._ledger.get_correctable_entry(entry_id)

    def update(
        self,
        entry_id: UUID,
        new_date: date,
        new_description: str,
        new_lines: Sequence[LineSpec],
        actor_id: UUID,
    ) -> CorrectionResult:
        """
        Replace an entry's content through reverse-and-replay.

        Postconditions:
            - A REVERSAL "Reversal: Edited JE #<id> - <old description>"
              dated today mirrors the old lines.
            - The entry keeps its id and now carries the new date,
              description and lines.
        """
        self._ledger.lock_guard.check(new_date)
        validate_balanced(new_lines)
        entry = self._load_editable(entry_id)

        with LogContext.bind(entry_id=entry.id, actor_id=actor_id):
            reversal = self._ledger.apply(
                Reversal(
                    original_entry_id=entry.id,
                    effective_date=self.clock.today(),
                    description_prefix=f"Reversal: Edited JE #{entry.id} -",
                    line_prefix="Reversal:",
                    reference=f"REV-JE{entry.id}",
                ),
                actor_id,
            )
            self._ledger.replace_lines(entry, new_date, new_description, new_lines, actor_id)
            logger.info(
                "journal_entry_updated",
                extra={
                    "reversal_entry_id": reversal.id,
                    "new_date": new_date,
                    "line_count": len(new_lines),
                },
            )
        return CorrectionResult(entry_id=entry.id, reversal_entry_id=reversal.id)

    def delete(self, entry_id: UUID, actor_id: UUID) -> CorrectionResult:
        """
        Neutralize an entry and soft-mark it deleted.

        The lock check runs against the original entry date.
        """
        entry = self._load_editable(entry_id)
        self._ledger.lock_guard.check(entry.entry_date)
        correlation_root = entry.correlation_id or f"je-{entry.id}"

        with LogContext.bind(entry_id=entry.id, actor_id=actor_id):
            reversal = self._ledger.apply(
                Reversal(
                    original_entry_id=entry.id,
                    effective_date=self.clock.today(),
                    description_prefix="Deletion:",
                    line_prefix="Deleted:",
                    reference=f"DEL-JE{entry.id}",
                    correlation_id=f"{correlation_root}-deleted",
                ),
                actor_id,
            )
            entry.description = f"{DELETED_PREFIX} {entry.description}"
            entry.is_posted = False
            entry.updated_by_id = actor_id
            self.session.flush()
            logger.info("journal_entry_deleted", extra={"reversal_entry_id": reversal.id})
        return CorrectionResult(entry_id=entry.id, reversal_entry_id=reversal.id)

    def reverse_document(
        self,
        entry_id: UUID,
        actor_id: UUID,
        description_prefix: str = "Reversal:",
    ) -> JournalEntry:
        """
        Reverse a document-generated entry (bill, invoice) dated today and
        soft-mark it so it is not reversed twice.
        """
        entry = self._load_editable(entry_id)
        reversal = self._ledger.apply(
            Reversal(
                original_entry_id=entry.id,
                effective_date=self.clock.today(),
                description_prefix=description_prefix,
                line_prefix="Reversal:",
            ),
            actor_id,
        )
        entry.description = f"{DELETED_PREFIX} {entry.description}"
        entry.is_posted = False
        entry.updated_by_id = actor_id
        self.session.flush()
        return reversal
