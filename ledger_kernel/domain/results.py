"""
Operation results returned by module services.

Expected business failures (locked period, three-way match, insufficient
stock, ...) come back as a failed ``OperationResult`` carrying the
exception's ``code``.  Integrity violations never become results; they
propagate to the caller.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

from ledger_kernel.exceptions import LedgerKernelError


class OperationStatus(str, Enum):
    """Outcome of a document operation."""

    SUCCESS = "SUCCESS"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ALREADY_POSTED = "ALREADY_POSTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class OperationResult:
    """Result of a module operation."""

    status: OperationStatus
    document_id: UUID | None = None
    journal_entry_ids: tuple[UUID, ...] = ()
    message: str | None = None
    error_code: str | None = None
    warnings: tuple[str, ...] = ()
    data: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not isinstance(self.data, MappingProxyType):
            object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    @property
    def is_success(self) -> bool:
        return self.status in (
            OperationStatus.SUCCESS,
            OperationStatus.PENDING_APPROVAL,
            OperationStatus.ALREADY_POSTED,
        )

    @classmethod
    def ok(
        cls,
        document_id: UUID | None = None,
        journal_entry_ids: tuple[UUID, ...] = (),
        message: str | None = None,
        warnings: tuple[str, ...] = (),
        status: OperationStatus = OperationStatus.SUCCESS,
        **data: Any,
    ) -> OperationResult:
        return cls(
            status=status,
            document_id=document_id,
            journal_entry_ids=journal_entry_ids,
            message=message,
            warnings=warnings,
            data=data,
        )

    @classmethod
    def failed(cls, error: LedgerKernelError, document_id: UUID | None = None) -> OperationResult:
        return cls(
            status=OperationStatus.REJECTED,
            document_id=document_id,
            message=str(error),
            error_code=error.code,
        )
