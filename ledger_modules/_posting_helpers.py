"""
Shared helpers for module services.

Bundles the kernel services a document pipeline needs over one session and
owns the transaction boundary: commit when the operation succeeds, roll back
and return a failed ``OperationResult`` for an expected business error, roll
back and re-raise for an integrity violation or anything unexpected.

Architecture: Modules layer.  Imports only from ledger_kernel and
ledger_config.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.results import OperationResult
from ledger_kernel.exceptions import IntegrityViolation, LedgerKernelError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.costing_policy import CostingPolicyResolver
from ledger_kernel.services.inventory_layers import InventoryLayerStore
from ledger_kernel.services.ledger_service import LedgerService
from ledger_kernel.services.reverse_replay import ReverseReplayEditor

logger = get_logger("modules.transaction")


@dataclass
class KernelServices:
    """Kernel services sharing one session, clock and configuration."""

    session: Session
    config: LedgerConfig
    clock: Clock
    ledger: LedgerService
    layers: InventoryLayerStore
    costing: CostingPolicyResolver
    editor: ReverseReplayEditor
    selector: LedgerSelector

    @classmethod
    def build(
        cls,
        session: Session,
        config: LedgerConfig,
        clock: Clock | None = None,
    ) -> KernelServices:
        clock = clock or SystemClock()
        ledger = LedgerService(session, clock)
        layers = InventoryLayerStore(session, clock)
        return cls(
            session=session,
            config=config,
            clock=clock,
            ledger=ledger,
            layers=layers,
            costing=CostingPolicyResolver(
                session, config.item_class_accounts.as_mapping(), clock, layers
            ),
            editor=ReverseReplayEditor(session, clock, ledger),
            selector=LedgerSelector(session),
        )


def run_in_transaction(
    session: Session,
    operation: str,
    body: Callable[[], OperationResult],
    document_id: UUID | None = None,
) -> OperationResult:
    """
    Run ``body`` as one all-or-nothing unit.

    Business errors (LedgerKernelError other than IntegrityViolation) become
    a REJECTED result.  IntegrityViolation and unexpected exceptions are
    re-raised after rollback.
    """
    try:
        result = body()
    except IntegrityViolation:
        session.rollback()
        logger.error(f"{operation}_integrity_violation", exc_info=True)
        raise
    except LedgerKernelError as exc:
        session.rollback()
        logger.warning(
            f"{operation}_rejected",
            extra={
                "error_code": exc.code,
                "reason": str(exc),
                "document_id": str(document_id) if document_id else None,
            },
        )
        return OperationResult.failed(exc, document_id)
    except Exception:
        session.rollback()
        raise

    if result.is_success:
        session.commit()
        logger.info(
            f"{operation}_committed",
            extra={"status": result.status.value, "document_id": str(result.document_id)},
        )
    else:
        session.rollback()
    return result
