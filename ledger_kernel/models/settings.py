"""
Module: ledger_kernel.models.settings
Responsibility: Singleton system settings row holding the period lock date.

Invariants enforced:
    - One row per ``key``; the financial lock date lives under
      ``FINANCIAL_SETTINGS_KEY``.
    - lock_date only moves forward (enforced by LedgerService.close_period).
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Date, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString

FINANCIAL_SETTINGS_KEY = "financials"


class SystemSetting(TrackedBase):
    """Keyed settings row; the financial one carries the lock date."""

    __tablename__ = "system_settings"

    __table_args__ = (
        UniqueConstraint("key", name="uq_system_setting_key"),
    )

    key: Mapped[str] = mapped_column(String(50), nullable=False)
    lock_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<SystemSetting {self.key} lock_date={self.lock_date}>"
