"""
Sales Module Service (``ledger_modules.sales.service``).

Responsibility
--------------
Customer invoices and flat tax rates.  Creating an invoice prices every
line, FIFO-depletes stock for each inventory line and posts one journal
entry carrying both the revenue side and the cost side:

    Dr Accounts Receivable      net + tax
    Dr Sales Discounts          discounts          (if any)
        Cr Sales Income         gross
        Cr <tax account>        tax, per mapped account
    Dr Cost of Goods Sold       FIFO cost
        Cr <inventory asset>    FIFO cost, per resolved costing account

Architecture position
---------------------
**Modules layer** -- document pipeline over the kernel's LedgerService,
InventoryLayerStore, CostingPolicyResolver and ReverseReplayEditor.

Invariants enforced
-------------------
* One transaction per invoice operation (``run_in_transaction``).
* Depletion is all-or-nothing: insufficient stock on any line rejects the
  whole invoice with no layer touched.
* Update and delete restore the invoice's depletions exactly (through the
  depletion ledger) and reverse the prior journal entry before anything is
  re-derived.

Failure modes
-------------
* InsufficientInventoryError, PeriodLockedError, ValidationError,
  ItemNotFoundError, TaxRateNotFoundError, DiscountExceedsGrossError,
  InvoiceNotFoundError, InvoiceStateError  -> REJECTED result.
* IntegrityViolation  -> rollback, re-raised.

Audit relevance
---------------
Invoice entries carry correlation id ``invoice-<id>``.  Each consumed layer
gets a location-transfer row with reason ``sale``.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_config.schema import LedgerConfig
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.inventory import ItemClass
from ledger_kernel.domain.ledger_events import LineSpec, drop_zero_lines
from ledger_kernel.domain.results import OperationResult
from ledger_kernel.exceptions import (
    InvoiceNotFoundError,
    InvoiceStateError,
    TaxRateNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.inventory_layers import TransferReason
from ledger_modules._posting_helpers import KernelServices, run_in_transaction
from ledger_modules.sales.config import SalesConfig
from ledger_modules.sales.models import InvoiceLineInput, InvoiceStatus
from ledger_modules.sales.orm import Invoice, InvoiceLine, TaxRate
from ledger_modules.sales.pricing import PricedLine, price_line, summarize

logger = get_logger("modules.sales.service")

INVOICE_SOURCE = "invoice"


class SalesService:
    """
    Orchestrates invoices and their inventory depletion.

    Contract
    --------
    * Every mutating method takes an explicit ``actor_id`` and returns an
      ``OperationResult``.

    Non-goals
    ---------
    * Does NOT manage customers or receipts against invoices.
    * Does NOT compute jurisdictional tax; rates are flat.
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfig,
        clock: Clock | None = None,
        module_config: SalesConfig | None = None,
    ):
        self._session = session
        self._config = config
        self._module_config = module_config or SalesConfig()
        self._kernel = KernelServices.build(session, config, clock)

    # =========================================================================
    # Tax rates
    # =========================================================================

    def create_tax_rate(
        self,
        name: str,
        rate_multiplier: int,
        actor_id: UUID,
        gl_account_code: str | None = None,
    ) -> OperationResult:
        """Register a flat tax rate (basis points, 1200 = 12%)."""

        def body() -> OperationResult:
            if rate_multiplier < 0:
                raise ValidationError("rate_multiplier", "must not be negative")
            if gl_account_code is not None:
                self._kernel.ledger.account_balance(gl_account_code)
            rate = TaxRate(
                name=name,
                rate_multiplier=rate_multiplier,
                gl_account_code=gl_account_code,
                is_active=True,
                created_by_id=actor_id,
            )
            self._session.add(rate)
            self._session.flush()
            logger.info(
                "tax_rate_created",
                extra={"tax_rate_id": str(rate.id), "rate_multiplier": rate_multiplier},
            )
            return OperationResult.ok(document_id=rate.id)

        return run_in_transaction(self._session, "tax_rate_create", body)

    # =========================================================================
    # Invoices
    # =========================================================================

    def create_invoice(
        self,
        customer_id: UUID,
        invoice_number: str,
        invoice_date: date,
        lines: Sequence[InvoiceLineInput],
        actor_id: UUID,
        due_date: date | None = None,
        warehouse_code: str | None = None,
        location_code: str | None = None,
    ) -> OperationResult:
        """
        Create and post an invoice.

        Postconditions
        --------------
        * Stock for every inventory line is depleted FIFO from released
          layers (optionally restricted to the warehouse/location).
        * One balanced journal entry with revenue and COGS lines.
        """

        def body() -> OperationResult:
            self._kernel.ledger.lock_guard.check(invoice_date)
            priced = self._price_lines(lines)
            invoice = Invoice(
                customer_id=customer_id,
                invoice_number=invoice_number,
                invoice_date=invoice_date,
                due_date=due_date,
                status=InvoiceStatus.OPEN.value,
                warehouse_code=warehouse_code,
                location_code=location_code,
                created_by_id=actor_id,
            )
            self._session.add(invoice)
            self._session.flush()

            with LogContext.bind(document_type="invoice", document_id=invoice.id, actor_id=actor_id):
                entry_id = self._apply_invoice(invoice, lines, priced, actor_id)
            return OperationResult.ok(
                document_id=invoice.id,
                journal_entry_ids=(entry_id,) if entry_id else (),
                total_amount=invoice.total_amount,
                cogs_total=invoice.cogs_total,
            )

        return run_in_transaction(self._session, "invoice_create", body)

    def update_invoice(
        self,
        invoice_id: UUID,
        lines: Sequence[InvoiceLineInput],
        actor_id: UUID,
        invoice_date: date | None = None,
    ) -> OperationResult:
        """
        Replace an invoice's lines.

        The prior depletions are restored and the prior entry reversed,
        then the new lines are priced, depleted and posted.
        """

        def body() -> OperationResult:
            invoice = self._load_invoice(invoice_id)
            self._ensure_editable(invoice, "update")
            new_date = invoice_date or invoice.invoice_date
            self._kernel.ledger.lock_guard.check(invoice.invoice_date)
            self._kernel.ledger.lock_guard.check(new_date)
            priced = self._price_lines(lines)

            with LogContext.bind(document_type="invoice", document_id=invoice.id, actor_id=actor_id):
                reversal_id = self._reverse_invoice(invoice, actor_id)
                invoice.lines.clear()
                self._session.flush()
                invoice.invoice_date = new_date
                invoice.updated_by_id = actor_id
                entry_id = self._apply_invoice(invoice, lines, priced, actor_id)

            entry_ids = tuple(i for i in (reversal_id, entry_id) if i is not None)
            logger.info("invoice_updated", extra={"invoice_id": str(invoice_id)})
            return OperationResult.ok(
                document_id=invoice.id,
                journal_entry_ids=entry_ids,
                total_amount=invoice.total_amount,
                cogs_total=invoice.cogs_total,
            )

        return run_in_transaction(self._session, "invoice_update", body, invoice_id)

    def delete_invoice(self, invoice_id: UUID, actor_id: UUID) -> OperationResult:
        """Void an invoice: restore its stock and reverse its entry.  Lines are kept."""

        def body() -> OperationResult:
            invoice = self._load_invoice(invoice_id)
            self._ensure_editable(invoice, "delete")
            self._kernel.ledger.lock_guard.check(invoice.invoice_date)

            with LogContext.bind(document_type="invoice", document_id=invoice.id, actor_id=actor_id):
                reversal_id = self._reverse_invoice(invoice, actor_id)
            invoice.status = InvoiceStatus.VOID.value
            invoice.updated_by_id = actor_id
            self._session.flush()
            logger.info("invoice_deleted", extra={"invoice_id": str(invoice_id)})
            return OperationResult.ok(
                document_id=invoice.id,
                journal_entry_ids=(reversal_id,) if reversal_id else (),
            )

        return run_in_transaction(self._session, "invoice_delete", body, invoice_id)

    # =========================================================================
    # Internals
    # =========================================================================

    def _price_lines(self, lines: Sequence[InvoiceLineInput]) -> list[PricedLine]:
        if not lines:
            raise ValidationError("lines", "an invoice needs at least one line")
        fallback_tax_account = self._config.account_codes.sales_tax
        priced = []
        for number, line in enumerate(lines, start=1):
            self._kernel.costing.get_item(line.item_id)
            multiplier = None
            tax_account = None
            if line.tax_rate_id is not None:
                rate = self._session.get(TaxRate, line.tax_rate_id)
                if rate is None:
                    raise TaxRateNotFoundError(str(line.tax_rate_id))
                if not rate.is_active:
                    raise ValidationError(f"lines[{number}].tax_rate_id", "tax rate is inactive")
                multiplier = rate.rate_multiplier
                tax_account = rate.gl_account_code or fallback_tax_account
            priced.append(
                price_line(
                    line_number=number,
                    quantity=line.quantity,
                    rate=line.rate,
                    discount_percent_bps=line.discount_percent,
                    discount_amount=line.discount_amount,
                    tax_rate_multiplier=multiplier,
                    tax_account=tax_account,
                )
            )
        return priced

    def _apply_invoice(
        self,
        invoice: Invoice,
        lines: Sequence[InvoiceLineInput],
        priced: Sequence[PricedLine],
        actor_id: UUID,
    ) -> UUID | None:
        """Deplete stock, write lines and totals, post the entry."""
        cost_by_account: dict[str, int] = defaultdict(int)
        transfer_reason = TransferReason.SALE if self._module_config.record_transfers else None

        for line, price in zip(lines, priced):
            item = self._kernel.costing.get_item(line.item_id)
            cost = 0
            if item.item_class != ItemClass.SERVICE.value or self._module_config.deplete_service_items:
                depletion = self._kernel.layers.deplete(
                    item_id=item.id,
                    quantity=line.quantity,
                    actor_id=actor_id,
                    source_type=INVOICE_SOURCE,
                    source_id=invoice.id,
                    consumed_on=invoice.invoice_date,
                    warehouse_code=invoice.warehouse_code,
                    location_code=invoice.location_code,
                    transfer_reason=transfer_reason,
                )
                cost = depletion.total_cost
                if cost:
                    cost_by_account[self._kernel.costing.resolve_costing_account(item)] += cost

            invoice.lines.append(
                InvoiceLine(
                    line_number=price.line_number,
                    item_id=line.item_id,
                    description=line.description,
                    quantity=line.quantity,
                    rate=line.rate,
                    discount_percent=line.discount_percent,
                    discount_amount=price.discount,
                    tax_rate_id=line.tax_rate_id,
                    tax_amount=price.tax,
                    amount=price.net,
                    cost_amount=cost,
                    created_by_id=actor_id,
                )
            )

        totals = summarize(priced)
        invoice.gross_total = totals.gross_total
        invoice.discount_total = totals.discount_total
        invoice.tax_total = totals.tax_total
        invoice.total_amount = totals.grand_total
        invoice.cogs_total = sum(cost_by_account.values())
        self._session.flush()

        accounts = self._config.account_codes
        label = f"Invoice {invoice.invoice_number}"
        gl_lines = [
            LineSpec.dr(accounts.accounts_receivable, totals.grand_total, label),
            LineSpec.dr(accounts.sales_discounts, totals.discount_total, f"{label} discounts"),
            LineSpec.cr(accounts.sales_income, totals.gross_total, label),
        ]
        gl_lines.extend(
            LineSpec.cr(code, amount, f"{label} tax") for code, amount in totals.tax_by_account
        )
        gl_lines.append(LineSpec.dr(accounts.cost_of_goods_sold, invoice.cogs_total, f"{label} COGS"))
        gl_lines.extend(
            LineSpec.cr(code, amount, f"{label} COGS")
            for code, amount in sorted(cost_by_account.items())
        )
        gl_lines = list(drop_zero_lines(gl_lines))
        if not gl_lines:
            return None

        entry = self._kernel.ledger.post(
            entry_date=invoice.invoice_date,
            description=f"Customer invoice {invoice.invoice_number}",
            lines=gl_lines,
            actor_id=actor_id,
            reference=invoice.invoice_number,
            correlation_id=invoice.correlation_id,
        )
        invoice.journal_entry_id = entry.id
        self._session.flush()
        logger.info(
            "invoice_posted",
            extra={
                "invoice_id": str(invoice.id),
                "journal_entry_id": str(entry.id),
                "total_amount": invoice.total_amount,
                "cogs_total": invoice.cogs_total,
            },
        )
        return entry.id

    def _reverse_invoice(self, invoice: Invoice, actor_id: UUID) -> UUID | None:
        restored = self._kernel.layers.restore(INVOICE_SOURCE, invoice.id, actor_id)
        reversal_id = None
        if invoice.journal_entry_id is not None:
            reversal = self._kernel.editor.reverse_document(
                invoice.journal_entry_id, actor_id, description_prefix="Reversal:"
            )
            reversal_id = reversal.id
            invoice.journal_entry_id = None
        self._session.flush()
        logger.info(
            "invoice_reversed",
            extra={"invoice_id": str(invoice.id), "restored_qty": restored},
        )
        return reversal_id

    def _load_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self._session.scalars(
            select(Invoice).where(Invoice.id == invoice_id).with_for_update()
        ).one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def _ensure_editable(self, invoice: Invoice, action: str) -> None:
        if invoice.status != InvoiceStatus.OPEN.value:
            raise InvoiceStateError(str(invoice.id), invoice.status, action)
