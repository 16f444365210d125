"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read models over the journal and the inventory layers:
    account register with running balance, the GL impact of a document,
    and the inventory-to-GL reconciliation per asset account.
Architecture position: Kernel > Selectors.  Read-only.

Audit relevance:
    ``inventory_reconciliation`` compares the value of non-depleted layers
    with the cached balance of the asset account that carries them.  A
    nonzero difference is the first thing an auditor looks at.
"""

from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.inventory import ItemClass, LayerKind
from ledger_kernel.domain.ledger_events import JournalEntryType
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import GLAccount
from ledger_kernel.models.inventory import InventoryLayer
from ledger_kernel.models.item import Item
from ledger_kernel.models.journal import JournalEntry, JournalEntryLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class RegisterLine:
    """One journal line in an account register."""

    entry_id: UUID
    entry_date: date
    description: str
    reference: str | None
    correlation_id: str | None
    entry_type: str
    debit: int
    credit: int
    running_balance: int


@dataclass(frozen=True)
class AccountRegister:
    account_code: str
    account_name: str
    account_type: str
    lines: tuple[RegisterLine, ...]
    total_debit: int
    total_credit: int

    @property
    def current_balance(self) -> int:
        return self.lines[-1].running_balance if self.lines else 0


@dataclass(frozen=True)
class GLImpactLine:
    entry_id: UUID
    entry_date: date
    entry_type: str
    account_code: str
    debit: int
    credit: int
    description: str | None


@dataclass(frozen=True)
class ReconciliationRow:
    """Layer value against GL balance for one inventory asset account."""

    account_code: str
    layer_value: int
    gl_balance: int

    @property
    def difference(self) -> int:
        return self.gl_balance - self.layer_value

    @property
    def is_reconciled(self) -> bool:
        return self.difference == 0


class LedgerSelector(BaseSelector):
    """Queries over journal lines and layers."""

    def account_register(self, account_code: str, include_reversals: bool = True) -> AccountRegister:
        """
        Lines posted to an account in date order with a running balance in
        the account's normal direction (debit-normal for Asset and Expense,
        credit-normal otherwise).

        With ``include_reversals=False`` REVERSAL entries and the deleted
        entries they neutralized are left out.
        """
        account = self.session.scalars(
            select(GLAccount).where(GLAccount.code == account_code)
        ).one_or_none()
        if account is None:
            raise AccountNotFoundError(account_code)

        stmt = (
            select(JournalEntryLine, JournalEntry)
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntryLine.account_code == account_code)
            .order_by(JournalEntry.entry_date, JournalEntry.created_at, JournalEntryLine.line_number)
        )
        debit_normal = account.type.is_debit_normal

        running = 0
        total_debit = 0
        total_credit = 0
        lines: list[RegisterLine] = []
        for line, entry in self.session.execute(stmt).all():
            if not include_reversals and (entry.is_reversal or entry.is_deleted):
                continue
            running += (line.debit - line.credit) if debit_normal else (line.credit - line.debit)
            total_debit += line.debit
            total_credit += line.credit
            lines.append(
                RegisterLine(
                    entry_id=entry.id,
                    entry_date=entry.entry_date,
                    description=entry.description,
                    reference=entry.reference,
                    correlation_id=entry.correlation_id,
                    entry_type=entry.entry_type,
                    debit=line.debit,
                    credit=line.credit,
                    running_balance=running,
                )
            )

        return AccountRegister(
            account_code=account.code,
            account_name=account.name,
            account_type=account.account_type,
            lines=tuple(lines),
            total_debit=total_debit,
            total_credit=total_credit,
        )

    def entries_for_correlation(self, correlation_id: str) -> list[GLImpactLine]:
        """
        GL impact of a document: every line of entries whose correlation id
        is ``correlation_id`` or starts with ``correlation_id-`` (its
        reversals).
        """
        stmt = (
            select(JournalEntryLine, JournalEntry)
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(
                (JournalEntry.correlation_id == correlation_id)
                | JournalEntry.correlation_id.startswith(f"{correlation_id}-")
            )
            .order_by(JournalEntry.created_at, JournalEntryLine.line_number)
        )
        return [
            GLImpactLine(
                entry_id=entry.id,
                entry_date=entry.entry_date,
                entry_type=entry.entry_type,
                account_code=line.account_code,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
            )
            for line, entry in self.session.execute(stmt).all()
        ]

    def posted_entry_for_correlation(self, correlation_id: str) -> JournalEntry | None:
        """The live (not deleted) TRANSACTION entry of a document, if any."""
        return self.session.scalars(
            select(JournalEntry)
            .where(
                JournalEntry.correlation_id == correlation_id,
                JournalEntry.entry_type == JournalEntryType.TRANSACTION.value,
                JournalEntry.is_posted.is_(True),
            )
            .order_by(JournalEntry.created_at.desc())
        ).first()

    def inventory_reconciliation(
        self,
        class_accounts: Mapping[str, str],
        wip_account: str | None = None,
    ) -> list[ReconciliationRow]:
        """
        Layer value per resolved asset account against the GL balance.

        WIP layers are counted under the work-in-progress account whatever
        the item's own class.
        """
        wip_code = wip_account or class_accounts.get(ItemClass.WIP.value)
        value_by_account: dict[str, int] = defaultdict(int)
        rows = self.session.execute(
            select(InventoryLayer, Item)
            .join(Item, InventoryLayer.item_id == Item.id)
            .where(InventoryLayer.is_depleted.is_(False))
        ).all()
        for layer, item in rows:
            if layer.layer_kind == LayerKind.WIP.value and wip_code is not None:
                code = wip_code
            else:
                code = item.asset_account_code or class_accounts.get(item.item_class)
            if code is None:
                continue
            value_by_account[code] += layer.value

        codes = sorted(set(value_by_account) | set(class_accounts.values()))
        balances = {
            a.code: a.balance
            for a in self.session.scalars(select(GLAccount).where(GLAccount.code.in_(codes))).all()
        }
        return [
            ReconciliationRow(
                account_code=code,
                layer_value=value_by_account.get(code, 0),
                gl_balance=balances.get(code, 0),
            )
            for code in codes
        ]
