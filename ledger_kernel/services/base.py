"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session contract for every kernel service.
    Services receive a SQLAlchemy ``Session`` and persist through
    ``session.flush()`` only.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries belong to the caller (a module service,
      ``session_scope()`` or a test).  Kernel services never commit or
      roll back, so a bill, invoice or step submission that touches the
      ledger, the layer store and module tables is one atomic unit.
"""

from abc import ABC

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a caller-owned ``Session`` and an optional ``Clock``.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    @property
    def clock(self) -> Clock:
        return self._clock
