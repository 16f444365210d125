"""
Recurring postings: one journal entry per (contract, billing cycle).
"""

from ledger_modules.recurring.service import RecurringPostingService

__all__ = ["RecurringPostingService"]
