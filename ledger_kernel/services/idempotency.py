"""
RecurringPostingGuard -- one journal entry per (contract, billing cycle).

Responsibility:
    Checks and claims the idempotency key for a recurring posting inside
    the caller's transaction.  The claim is an INSERT against a unique
    constraint, so two concurrent runs of the same cycle cannot both
    commit: the loser fails at flush or commit and rolls back its entry.

Failure modes:
    - DuplicatePostingError when the key is already claimed.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.exceptions import DuplicatePostingError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.idempotency import RecurringPostingKey
from ledger_kernel.services.base import BaseService

logger = get_logger("services.idempotency")


class RecurringPostingGuard(BaseService):
    """Claims (contract_ref, cycle_key) pairs."""

    def existing(self, contract_ref: str, cycle_key: str) -> RecurringPostingKey | None:
        return self.session.scalars(
            select(RecurringPostingKey).where(
                RecurringPostingKey.contract_ref == contract_ref,
                RecurringPostingKey.cycle_key == cycle_key,
            )
        ).one_or_none()

    def ensure_unclaimed(self, contract_ref: str, cycle_key: str) -> None:
        key = self.existing(contract_ref, cycle_key)
        if key is not None:
            raise DuplicatePostingError(contract_ref, cycle_key, str(key.journal_entry_id))

    def claim(
        self,
        contract_ref: str,
        cycle_key: str,
        journal_entry_id: UUID,
        actor_id: UUID,
    ) -> RecurringPostingKey:
        """
        Insert the key for a cycle.

        Raises:
            DuplicatePostingError: another transaction claimed it first.
        """
        key = RecurringPostingKey(
            contract_ref=contract_ref,
            cycle_key=cycle_key,
            journal_entry_id=journal_entry_id,
            created_by_id=actor_id,
        )
        self.session.add(key)
        try:
            self.session.flush()
        except IntegrityError:
            # The session must be rolled back by the caller after this.
            logger.warning(
                "recurring_posting_race_lost",
                extra={"contract_ref": contract_ref, "cycle_key": cycle_key},
            )
            raise DuplicatePostingError(contract_ref, cycle_key, "") from None
        return key
