"""
Recurring Posting Service (``ledger_modules.recurring.service``).

Responsibility
--------------
Posts the journal entry for one billing cycle of a recurring contract
(service retainers, scheduled refills, rent) exactly once.

Invariants enforced
-------------------
* The idempotency key ``(contract_ref, cycle_key)`` is inserted in the
  same transaction as the journal entry.  A re-run finds the key and
  reports ALREADY_POSTED without touching the ledger; a concurrent
  double-run loses on the unique constraint and rolls back.
* A cycle is only posted once its due date has arrived.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.ledger_events import LineSpec
from ledger_kernel.domain.results import OperationResult, OperationStatus
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.idempotency import RecurringPostingGuard
from ledger_modules._posting_helpers import KernelServices, run_in_transaction

logger = get_logger("modules.recurring.service")


class RecurringPostingService:
    """Idempotent per-cycle posting over LedgerService."""

    def __init__(self, session: Session, config: LedgerConfig, clock: Clock | None = None):
        self._session = session
        self._kernel = KernelServices.build(session, config, clock)
        self._guard = RecurringPostingGuard(session, self._kernel.clock)

    def post_cycle(
        self,
        contract_ref: str,
        cycle_key: str,
        due_date: date,
        description: str,
        lines: Sequence[LineSpec],
        actor_id: UUID,
    ) -> OperationResult:
        """
        Post one cycle dated ``due_date``.

        Returns ALREADY_POSTED (with the original entry id) when the cycle
        has been posted before.
        """

        def body() -> OperationResult:
            existing = self._guard.existing(contract_ref, cycle_key)
            if existing is not None:
                logger.info(
                    "recurring_cycle_already_posted",
                    extra={"contract_ref": contract_ref, "cycle_key": cycle_key},
                )
                return OperationResult.ok(
                    journal_entry_ids=(existing.journal_entry_id,),
                    status=OperationStatus.ALREADY_POSTED,
                    contract_ref=contract_ref,
                    cycle_key=cycle_key,
                )
            if due_date > self._kernel.clock.today():
                raise ValidationError("due_date", f"cycle {cycle_key} is not due until {due_date}")

            correlation_id = f"recurring-{contract_ref}-{cycle_key}"
            with LogContext.bind(
                document_type="recurring_cycle", correlation_id=correlation_id, actor_id=actor_id
            ):
                entry = self._kernel.ledger.post(
                    entry_date=due_date,
                    description=description,
                    lines=lines,
                    actor_id=actor_id,
                    reference=f"{contract_ref}/{cycle_key}",
                    correlation_id=correlation_id,
                )
                self._guard.claim(contract_ref, cycle_key, entry.id, actor_id)
                logger.info("recurring_cycle_posted", extra={"journal_entry_id": str(entry.id)})
            return OperationResult.ok(
                document_id=entry.id,
                journal_entry_ids=(entry.id,),
                contract_ref=contract_ref,
                cycle_key=cycle_key,
            )

        return run_in_transaction(self._session, "recurring_cycle_post", body)
