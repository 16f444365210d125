"""
PeriodLockGuard -- the single lock date checked before every mutation.

Responsibility:
    Reads the financial lock date from ``system_settings`` and rejects any
    posting, edit or deletion whose target date is on or before it.

Architecture position:
    Kernel > Services.  Called by LedgerService before every insert and by
    the module pipelines before touching layers, so a locked period fails
    before any state changes.

Invariants enforced:
    - No mutation targets a date <= lock date.
    - With no lock date configured every date is open.

Failure modes:
    - PeriodLockedError for a locked target date.
"""

from datetime import date

from sqlalchemy import select

from ledger_kernel.exceptions import PeriodLockedError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.settings import FINANCIAL_SETTINGS_KEY, SystemSetting
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period_lock")


class PeriodLockGuard(BaseService):
    """Reads and enforces the period lock date."""

    def settings_row(self, for_update: bool = False) -> SystemSetting | None:
        stmt = select(SystemSetting).where(SystemSetting.key == FINANCIAL_SETTINGS_KEY)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).one_or_none()

    def lock_date(self) -> date | None:
        row = self.settings_row()
        return row.lock_date if row is not None else None

    def is_locked(self, target_date: date) -> bool:
        current = self.lock_date()
        return current is not None and target_date <= current

    def check(self, target_date: date) -> None:
        """
        Raise PeriodLockedError if ``target_date`` falls in a closed period.

        Args:
            target_date: Date of the entry being created, edited or deleted.
        """
        current = self.lock_date()
        if current is not None and target_date <= current:
            logger.warning(
                "period_locked_rejection",
                extra={"target_date": target_date, "lock_date": current},
            )
            raise PeriodLockedError(target_date, current)
