"""
LedgerService -- the Ledger Store: post, reverse, balances, period close.

Responsibility:
    Persists journal entries and their lines and keeps the cached
    ``GLAccount.balance`` of every touched account in step with them.
    Every ledger mutation is expressed as a ``LedgerEvent``
    (``Transaction`` | ``Reversal``) and applied by ``apply()``; ``post`` and
    ``reverse`` are thin constructors over it.

Architecture position:
    Kernel > Services -- imperative shell.  Consumed by the Reverse & Replay
    editor, the purchasing, sales and manufacturing pipelines, recurring
    postings, and any external poster (payroll, maintenance).

Invariants enforced:
    - Every inserted entry balances (validate_balanced) before any row is
      written.
    - No entry is dated on or before the lock date (PeriodLockGuard).
    - Each touched account's balance moves by exactly that account's
      debit-minus-credit within the entry, in the same transaction as the
      line inserts.  Accounts are loaded FOR UPDATE.
    - The lock date only moves forward and only after the global trial
      balance has been verified.

Failure modes:
    - UnbalancedEntryError / InvalidLineError: malformed lines.
    - PeriodLockedError: entry date on or before the lock date.
    - AccountNotFoundError: a line references an unknown account code.
    - EntryNotFoundError: reversal of an unknown entry.
    - ReversalOfReversalError / EntryAlreadyDeletedError /
      EntryAlreadyReversedError: the entry is not correctable.
    - LockDateRegressionError: close_period with a date not after the
      current lock date.
    - CorruptLedgerError: global debits != credits at close.  Fatal; the
      close is aborted and nothing is repaired automatically.

Audit relevance:
    Entries are never hard-deleted.  Reversals link back through
    ``reverses_entry_id`` and carry a ``-reversal`` correlation suffix.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.ledger_events import (
    JournalEntryType,
    LedgerEvent,
    LineSpec,
    Reversal,
    Transaction,
    net_by_account,
    swap_lines,
    validate_balanced,
)
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    CorruptLedgerError,
    EntryAlreadyDeletedError,
    EntryAlreadyReversedError,
    EntryNotFoundError,
    LockDateRegressionError,
    ReversalOfReversalError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import AccountType, GLAccount
from ledger_kernel.models.journal import JournalEntry, JournalEntryLine
from ledger_kernel.models.settings import FINANCIAL_SETTINGS_KEY, SystemSetting
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.period_lock import PeriodLockGuard

logger = get_logger("services.ledger")


@dataclass(frozen=True)
class AccountBalance:
    """Chart-of-accounts row with its cached balance."""

    code: str
    name: str
    account_type: AccountType
    balance: int
    parent_code: str | None = None

    @property
    def natural_balance(self) -> int:
        return self.balance if self.account_type.is_debit_normal else -self.balance


@dataclass(frozen=True)
class TrialBalance:
    """Global debit and credit totals over every journal line."""

    total_debits: int
    total_credits: int

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @property
    def difference(self) -> int:
        return self.total_debits - self.total_credits


class LedgerService(BaseService):
    """
    Journal entry persistence and cached balance maintenance.

    Contract:
        ``apply(event, actor_id)`` inserts exactly one journal entry and
        updates balances, or raises without having written anything the
        caller's rollback would not discard.

    Guarantees:
        - Balanced entries only.
        - Period lock checked before any insert.
        - Flush-only; the caller owns commit/rollback.

    Non-goals:
        - Does NOT decide which accounts a business document hits; the
          pipelines build the lines.
        - Does NOT hard-delete entries (see ReverseReplayEditor).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        lock_guard: PeriodLockGuard | None = None,
    ):
        super().__init__(session, clock)
        self._lock_guard = lock_guard or PeriodLockGuard(session, self.clock)

    @property
    def lock_guard(self) -> PeriodLockGuard:
        return self._lock_guard

    # =========================================================================
    # Posting
    # =========================================================================

    def post(
        self,
        entry_date: date,
        description: str,
        lines: Sequence[LineSpec],
        actor_id: UUID,
        reference: str | None = None,
        correlation_id: str | None = None,
    ) -> JournalEntry:
        """Post a new balanced TRANSACTION entry."""
        return self.apply(
            Transaction(
                entry_date=entry_date,
                description=description,
                lines=tuple(lines),
                reference=reference,
                correlation_id=correlation_id,
            ),
            actor_id,
        )

    def reverse(
        self,
        entry_id: UUID,
        effective_date: date,
        actor_id: UUID,
        description_prefix: str = "Reversal:",
        line_prefix: str = "Reversal:",
        reference: str | None = None,
        correlation_id: str | None = None,
    ) -> JournalEntry:
        """
        Post a REVERSAL mirroring ``entry_id`` with debit and credit swapped.

        The original is marked reversed, so a second call is rejected.
        """
        original = self.get_correctable_entry(entry_id)
        reversal = self.apply(
            Reversal(
                original_entry_id=entry_id,
                effective_date=effective_date,
                description_prefix=description_prefix,
                line_prefix=line_prefix,
                reference=reference,
                correlation_id=correlation_id,
            ),
            actor_id,
        )
        original.reversed_by_entry_id = reversal.id
        original.updated_by_id = actor_id
        self.session.flush()
        return reversal

    def apply(self, event: LedgerEvent, actor_id: UUID) -> JournalEntry:
        """
        Apply one ledger event.

        Preconditions:
            - ``actor_id`` identifies the user or process making the change.
        Postconditions:
            - One new JournalEntry (TRANSACTION or REVERSAL) is flushed and
              every touched account balance has moved by its net amount.

        Raises:
            PeriodLockedError, UnbalancedEntryError, InvalidLineError,
            AccountNotFoundError, EntryNotFoundError.
        """
        if isinstance(event, Reversal):
            original = self.get_entry(event.original_entry_id)
            lines = swap_lines(original.line_specs(), event.line_prefix)
            correlation_id = event.correlation_id or (
                f"{original.correlation_id}-reversal"
                if original.correlation_id
                else f"je-{original.id}-reversal"
            )
            return self._insert(
                entry_date=event.effective_date,
                description=f"{event.description_prefix} {original.description}",
                lines=lines,
                actor_id=actor_id,
                reference=event.reference,
                correlation_id=correlation_id,
                entry_type=JournalEntryType.REVERSAL,
                reverses_entry_id=original.id,
            )

        return self._insert(
            entry_date=event.entry_date,
            description=event.description,
            lines=event.lines,
            actor_id=actor_id,
            reference=event.reference,
            correlation_id=event.correlation_id,
            entry_type=JournalEntryType.TRANSACTION,
        )

    def replace_lines(
        self,
        entry: JournalEntry,
        entry_date: date,
        description: str,
        lines: Sequence[LineSpec],
        actor_id: UUID,
    ) -> JournalEntry:
        """
        Overwrite an entry's header and lines in place and apply the new
        lines' balance effects.

        Only the Reverse & Replay editor calls this, and only after it has
        posted a reversal neutralizing the old lines.
        """
        self._lock_guard.check(entry_date)
        validate_balanced(lines)
        accounts = self._load_accounts({line.account_code for line in lines})

        entry.lines.clear()
        self.session.flush()

        entry.entry_date = entry_date
        entry.description = description
        entry.updated_by_id = actor_id
        self._add_lines(entry, lines, actor_id)
        self._apply_balances(accounts, lines, actor_id)
        self.session.flush()
        return entry

    def _insert(
        self,
        entry_date: date,
        description: str,
        lines: Sequence[LineSpec],
        actor_id: UUID,
        reference: str | None,
        correlation_id: str | None,
        entry_type: JournalEntryType,
        reverses_entry_id: UUID | None = None,
    ) -> JournalEntry:
        self._lock_guard.check(entry_date)
        total_debits, _ = validate_balanced(lines)
        accounts = self._load_accounts({line.account_code for line in lines})

        entry = JournalEntry(
            entry_date=entry_date,
            description=description,
            reference=reference,
            correlation_id=correlation_id,
            is_posted=True,
            entry_type=entry_type.value,
            reverses_entry_id=reverses_entry_id,
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self._add_lines(entry, lines, actor_id)
        self._apply_balances(accounts, lines, actor_id)
        self.session.flush()

        with LogContext.bind(entry_id=entry.id, correlation_id=correlation_id):
            logger.info(
                "journal_entry_posted",
                extra={
                    "entry_type": entry_type.value,
                    "entry_date": entry_date,
                    "line_count": len(lines),
                    "total_amount": total_debits,
                    "reference": reference,
                    "reverses_entry_id": reverses_entry_id,
                },
            )
        return entry

    def _add_lines(self, entry: JournalEntry, lines: Sequence[LineSpec], actor_id: UUID) -> None:
        for number, line in enumerate(lines, start=1):
            entry.lines.append(
                JournalEntryLine(
                    line_number=number,
                    account_code=line.account_code,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                    created_by_id=actor_id,
                )
            )

    def _load_accounts(self, codes: set[str]) -> dict[str, GLAccount]:
        rows = self.session.scalars(
            select(GLAccount)
            .where(GLAccount.code.in_(sorted(codes)))
            .order_by(GLAccount.code)
            .with_for_update()
        ).all()
        found = {row.code: row for row in rows}
        for code in sorted(codes):
            if code not in found:
                raise AccountNotFoundError(code)
        return found

    def _apply_balances(
        self,
        accounts: dict[str, GLAccount],
        lines: Sequence[LineSpec],
        actor_id: UUID,
    ) -> None:
        for code, net in net_by_account(lines).items():
            account = accounts[code]
            account.balance += net
            account.updated_by_id = actor_id

    # =========================================================================
    # Queries
    # =========================================================================

    def get_correctable_entry(self, entry_id: UUID) -> JournalEntry:
        """
        Load a TRANSACTION entry that may still be reversed or edited.

        Raises:
            EntryNotFoundError, ReversalOfReversalError,
            EntryAlreadyDeletedError, EntryAlreadyReversedError.
        """
        entry = self.get_entry(entry_id, for_update=True)
        if entry.is_reversal:
            raise ReversalOfReversalError(str(entry_id))
        if entry.is_deleted:
            raise EntryAlreadyDeletedError(str(entry_id))
        if entry.is_reversed:
            raise EntryAlreadyReversedError(str(entry_id), str(entry.reversed_by_entry_id))
        return entry

    def get_entry(self, entry_id: UUID, for_update: bool = False) -> JournalEntry:
        stmt = select(JournalEntry).where(JournalEntry.id == entry_id)
        if for_update:
            stmt = stmt.with_for_update()
        entry = self.session.scalars(stmt).one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def account_balance(self, code: str) -> int:
        """Cached Debit-minus-Credit balance of one account."""
        account = self.session.scalars(
            select(GLAccount).where(GLAccount.code == code)
        ).one_or_none()
        if account is None:
            raise AccountNotFoundError(code)
        return account.balance

    def chart_of_accounts(self) -> list[AccountBalance]:
        accounts = self.session.scalars(select(GLAccount).order_by(GLAccount.code)).all()
        return [
            AccountBalance(
                code=a.code,
                name=a.name,
                account_type=a.type,
                balance=a.balance,
                parent_code=a.parent_code,
            )
            for a in accounts
        ]

    def trial_balance(self) -> TrialBalance:
        debits, credits = self.session.execute(
            select(
                func.coalesce(func.sum(JournalEntryLine.debit), 0),
                func.coalesce(func.sum(JournalEntryLine.credit), 0),
            )
        ).one()
        return TrialBalance(total_debits=int(debits), total_credits=int(credits))

    # =========================================================================
    # Chart of accounts and period close
    # =========================================================================

    def open_account(
        self,
        code: str,
        name: str,
        account_type: AccountType,
        actor_id: UUID,
        parent_code: str | None = None,
        description: str | None = None,
    ) -> GLAccount:
        """Create a GL account with a zero balance."""
        existing = self.session.scalars(
            select(GLAccount).where(GLAccount.code == code)
        ).one_or_none()
        if existing is not None:
            raise ValidationError("code", f"account {code} already exists")
        if parent_code is not None:
            self._load_accounts({parent_code})

        account = GLAccount(
            code=code,
            name=name,
            account_type=AccountType(account_type).value,
            balance=0,
            parent_code=parent_code,
            description=description,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()
        logger.info(
            "account_opened",
            extra={"account_code": code, "account_type": account.account_type},
        )
        return account

    def close_period(self, closing_date: date, actor_id: UUID) -> SystemSetting:
        """
        Verify the trial balance and advance the lock date.

        Raises:
            CorruptLedgerError: global debits != credits.  Nothing changes.
            LockDateRegressionError: closing_date is not after the
                current lock date.
        """
        trial = self.trial_balance()
        if not trial.is_balanced:
            logger.critical(
                "trial_balance_mismatch",
                extra={
                    "total_debits": trial.total_debits,
                    "total_credits": trial.total_credits,
                    "difference": trial.difference,
                },
            )
            raise CorruptLedgerError(trial.total_debits, trial.total_credits)

        settings = self._lock_guard.settings_row(for_update=True)
        if settings is None:
            settings = SystemSetting(key=FINANCIAL_SETTINGS_KEY, created_by_id=actor_id)
            self.session.add(settings)
        elif settings.lock_date is not None and closing_date <= settings.lock_date:
            raise LockDateRegressionError(settings.lock_date, closing_date)

        previous = settings.lock_date
        settings.lock_date = closing_date
        settings.closed_at = self.clock.now()
        settings.closed_by_id = actor_id
        settings.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_closed",
            extra={
                "previous_lock_date": previous,
                "lock_date": closing_date,
                "actor_id": str(actor_id),
                "total_debits": trial.total_debits,
            },
        )
        return settings
