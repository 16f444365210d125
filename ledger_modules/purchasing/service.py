"""
Purchasing Module Service (``ledger_modules.purchasing.service``).

Responsibility
--------------
Purchase orders, goods receipts, vendor bills with three-way match and an
approval gate, and vendor payments.  A bill that clears the match creates
one inventory layer per line and one journal entry: a debit per resolved
costing account and a credit to Accounts Payable for the bill total.

Architecture position
---------------------
**Modules layer** -- document pipeline over the kernel's LedgerService,
InventoryLayerStore, CostingPolicyResolver and ReverseReplayEditor.

Invariants enforced
-------------------
* Each public method owns the transaction boundary: commit on success,
  rollback on any failure (``run_in_transaction``).
* Billed quantity never exceeds received quantity on a PO line.
* A PENDING bill has no layers and no GL; APPROVE applies both, REJECT
  discards them and releases the billed quantity.
* Editing or deleting a bill reverses its prior layers and GL in full
  before anything new is applied.  A bill whose layers have been
  consumed cannot be edited or deleted.
* Goods receipts change PO counters only; bills are the source of
  inventory layers and GL.

Failure modes
-------------
* ThreeWayMatchError, PeriodLockedError, ValidationError,
  ItemNotFoundError, BillStateError, BillLayersConsumedError,
  ApprovalNotPermittedError, PurchaseOrderLockedError  -> REJECTED result.
* IntegrityViolation  -> rollback, re-raised.

Audit relevance
---------------
Bill journal entries carry correlation id ``bill-<id>``; their reversals
``bill-<id>-reversal``.  Price variance beyond tolerance is logged as
``price_variance_warning`` and returned in ``result.warnings``.
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
from ledger_kernel.domain.inventory import ItemClass, LayerKind, QcStatus
from ledger_kernel.domain.ledger_events import LineSpec
from ledger_kernel.domain.results import OperationResult, OperationStatus
from ledger_kernel.exceptions import (
    ApprovalNotPermittedError,
    BillLayersConsumedError,
    BillNotFoundError,
    BillStateError,
    PurchaseOrderLockedError,
    PurchaseOrderNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_modules._posting_helpers import KernelServices, run_in_transaction
from ledger_modules.purchasing.config import PurchasingConfig
from ledger_modules.purchasing.matching import (
    PoLineSnapshot,
    match_bill_lines,
    validate_bill_lines,
)
from ledger_modules.purchasing.models import (
    BillApprovalStatus,
    BillLineInput,
    BillStatus,
    PaymentApplication,
    PurchaseOrderLineInput,
    PurchaseOrderStatus,
    ReceiptLineInput,
)
from ledger_modules.purchasing.orm import (
    PurchaseOrder,
    PurchaseOrderLine,
    VendorBill,
    VendorBillLine,
    VendorPayment,
    VendorPaymentApplication,
)

logger = get_logger("modules.purchasing.service")

BILL_SOURCE = "vendor_bill"


class PurchasingService:
    """
    Orchestrates purchase orders, receipts, vendor bills and payments.

    Contract
    --------
    * Every mutating method takes an explicit ``actor_id`` and returns an
      ``OperationResult``.  Bill approval actions also take
      ``actor_elevated`` (the caller's authorization decision).

    Non-goals
    ---------
    * Does NOT manage vendors or items (external master data).
    * Does NOT allocate landed costs.
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfig,
        clock: Clock | None = None,
        module_config: PurchasingConfig | None = None,
    ):
        self._session = session
        self._config = config
        self._module_config = module_config or PurchasingConfig()
        self._kernel = KernelServices.build(session, config, clock)
        self._clock = self._kernel.clock

    # =========================================================================
    # Purchase orders
    # =========================================================================

    def create_purchase_order(
        self,
        vendor_id: UUID,
        order_number: str,
        order_date: date,
        lines: Sequence[PurchaseOrderLineInput],
        actor_id: UUID,
        expected_date: date | None = None,
        notes: str | None = None,
    ) -> OperationResult:
        def body() -> OperationResult:
            self._validate_po_lines(lines)
            po = PurchaseOrder(
                vendor_id=vendor_id,
                order_number=order_number,
                order_date=order_date,
                expected_date=expected_date,
                status=PurchaseOrderStatus.OPEN.value,
                notes=notes,
                total_amount=sum(line.qty_ordered * line.unit_cost for line in lines),
                created_by_id=actor_id,
            )
            self._set_po_lines(po, lines, actor_id)
            self._session.add(po)
            self._session.flush()
            logger.info(
                "purchase_order_created",
                extra={
                    "po_id": str(po.id),
                    "order_number": order_number,
                    "line_count": len(lines),
                    "total_amount": po.total_amount,
                },
            )
            return OperationResult.ok(document_id=po.id, total_amount=po.total_amount)

        return run_in_transaction(self._session, "purchase_order_create", body)

    def update_purchase_order(
        self,
        po_id: UUID,
        lines: Sequence[PurchaseOrderLineInput],
        actor_id: UUID,
        expected_date: date | None = None,
        notes: str | None = None,
    ) -> OperationResult:
        """Replace a PO's lines.  Only while not CLOSED and before any receipt."""

        def body() -> OperationResult:
            po = self._load_po(po_id)
            if po.status == PurchaseOrderStatus.CLOSED.value:
                raise PurchaseOrderLockedError(str(po_id), "purchase order is closed")
            if any(line.qty_received > 0 for line in po.lines):
                raise PurchaseOrderLockedError(str(po_id), "goods have already been received")
            self._validate_po_lines(lines)

            po.lines.clear()
            self._session.flush()
            self._set_po_lines(po, lines, actor_id)
            po.total_amount = sum(line.qty_ordered * line.unit_cost for line in lines)
            po.expected_date = expected_date
            po.notes = notes
            po.updated_by_id = actor_id
            self._session.flush()
            logger.info("purchase_order_updated", extra={"po_id": str(po_id)})
            return OperationResult.ok(document_id=po.id, total_amount=po.total_amount)

        return run_in_transaction(self._session, "purchase_order_update", body, po_id)

    def delete_purchase_order(self, po_id: UUID, actor_id: UUID) -> OperationResult:
        """Delete a PO nothing has been billed against."""

        def body() -> OperationResult:
            po = self._load_po(po_id)
            if any(line.qty_billed > 0 for line in po.lines):
                raise PurchaseOrderLockedError(str(po_id), "purchase order has been billed")
            bill_count = len(
                self._session.scalars(select(VendorBill.id).where(VendorBill.po_id == po_id)).all()
            )
            if bill_count:
                raise PurchaseOrderLockedError(str(po_id), "purchase order is referenced by bills")
            self._session.delete(po)
            self._session.flush()
            logger.info(
                "purchase_order_deleted", extra={"po_id": str(po_id), "actor_id": str(actor_id)}
            )
            return OperationResult.ok(document_id=po_id)

        return run_in_transaction(self._session, "purchase_order_delete", body, po_id)

    def receive_goods(
        self,
        po_id: UUID,
        lines: Sequence[ReceiptLineInput],
        received_date: date,
        actor_id: UUID,
    ) -> OperationResult:
        """
        Record a goods receipt against a PO.

        Increments ``qty_received`` and moves the PO to PARTIAL or
        RECEIVED.  No layer and no GL: the vendor bill creates both.
        """

        def body() -> OperationResult:
            self._kernel.ledger.lock_guard.check(received_date)
            po = self._load_po(po_id)
            if po.status in (PurchaseOrderStatus.CLOSED.value, PurchaseOrderStatus.CANCELLED.value):
                raise PurchaseOrderLockedError(str(po_id), f"purchase order is {po.status}")
            if not lines:
                raise ValidationError("lines", "a receipt needs at least one line")

            for receipt in lines:
                if receipt.quantity <= 0:
                    raise ValidationError("quantity", "received quantity must be positive")
                po_line = po.line_for_item(receipt.item_id)
                if po_line is None:
                    raise ValidationError("item_id", f"item {receipt.item_id} is not on the order")
                new_received = po_line.qty_received + receipt.quantity
                if new_received > po_line.qty_ordered and not self._module_config.allow_over_receipt:
                    raise ValidationError(
                        "quantity",
                        f"receipt of {receipt.quantity} exceeds open quantity "
                        f"{po_line.qty_ordered - po_line.qty_received}",
                    )
                po_line.qty_received = new_received
                po_line.updated_by_id = actor_id

            po.status = (
                PurchaseOrderStatus.RECEIVED.value
                if po.is_fully_received
                else PurchaseOrderStatus.PARTIAL.value
            )
            po.updated_by_id = actor_id
            self._session.flush()
            logger.info(
                "goods_received",
                extra={"po_id": str(po_id), "status": po.status, "line_count": len(lines)},
            )
            return OperationResult.ok(document_id=po.id, po_status=po.status)

        return run_in_transaction(self._session, "goods_receipt", body, po_id)

    # =========================================================================
    # Vendor bills
    # =========================================================================

    def create_bill(
        self,
        vendor_id: UUID,
        bill_date: date,
        lines: Sequence[BillLineInput],
        actor_id: UUID,
        po_id: UUID | None = None,
        bill_number: str | None = None,
        due_date: date | None = None,
        actor_elevated: bool = False,
        warehouse_code: str | None = None,
        location_code: str | None = None,
    ) -> OperationResult:
        """
        Create a vendor bill.

        Postconditions
        --------------
        * PO-linked lines are three-way matched and ``qty_billed`` is
          incremented.
        * Above the approval threshold (non-elevated actor) the bill is
          PENDING with no layers and no GL; otherwise layers and GL exist.
        """

        def body() -> OperationResult:
            self._kernel.ledger.lock_guard.check(bill_date)
            validate_bill_lines(lines)
            for line in lines:
                self._kernel.costing.get_item(line.item_id)

            warnings: tuple[str, ...] = ()
            if po_id is not None:
                warnings = self._match_and_bill(po_id, lines, actor_id)

            total = sum(line.amount for line in lines)
            bill = VendorBill(
                vendor_id=vendor_id,
                po_id=po_id,
                bill_number=bill_number,
                bill_date=bill_date,
                due_date=due_date,
                total_amount=total,
                amount_paid=0,
                status=BillStatus.OPEN.value,
                warehouse_code=warehouse_code,
                location_code=location_code,
                created_by_id=actor_id,
            )
            self._set_bill_lines(bill, lines, actor_id)
            self._session.add(bill)
            self._session.flush()

            with LogContext.bind(document_type="vendor_bill", document_id=bill.id, actor_id=actor_id):
                return self._settle_approval(bill, actor_id, actor_elevated, warnings)

        return run_in_transaction(self._session, "vendor_bill_create", body)

    def approve_bill(self, bill_id: UUID, actor_id: UUID, actor_elevated: bool) -> OperationResult:
        """Apply a PENDING bill's deferred layers and GL."""

        def body() -> OperationResult:
            bill = self._load_bill(bill_id)
            if not actor_elevated:
                raise ApprovalNotPermittedError(str(actor_id), str(bill_id))
            if bill.approval_status != BillApprovalStatus.PENDING.value:
                raise BillStateError(str(bill_id), bill.approval_status, "approve")
            self._kernel.ledger.lock_guard.check(bill.bill_date)

            entry_id = self._apply_bill_effects(bill, actor_id)
            bill.approval_status = BillApprovalStatus.APPROVED.value
            bill.approved_by_id = actor_id
            bill.approved_at = self._clock.now()
            bill.updated_by_id = actor_id
            self._session.flush()
            logger.info("vendor_bill_approved", extra={"bill_id": str(bill_id)})
            return OperationResult.ok(
                document_id=bill.id,
                journal_entry_ids=(entry_id,) if entry_id else (),
                approval_status=bill.approval_status,
            )

        return run_in_transaction(self._session, "vendor_bill_approve", body, bill_id)

    def reject_bill(self, bill_id: UUID, actor_id: UUID, actor_elevated: bool) -> OperationResult:
        """Discard a PENDING bill's deferred effects; no GL is ever written."""

        def body() -> OperationResult:
            bill = self._load_bill(bill_id)
            if not actor_elevated:
                raise ApprovalNotPermittedError(str(actor_id), str(bill_id))
            if bill.approval_status != BillApprovalStatus.PENDING.value:
                raise BillStateError(str(bill_id), bill.approval_status, "reject")

            self._release_billed_qty(bill, actor_id)
            bill.approval_status = BillApprovalStatus.REJECTED.value
            bill.approved_by_id = actor_id
            bill.approved_at = self._clock.now()
            bill.updated_by_id = actor_id
            self._session.flush()
            logger.info("vendor_bill_rejected", extra={"bill_id": str(bill_id)})
            return OperationResult.ok(document_id=bill.id, approval_status=bill.approval_status)

        return run_in_transaction(self._session, "vendor_bill_reject", body, bill_id)

    def update_bill(
        self,
        bill_id: UUID,
        lines: Sequence[BillLineInput],
        actor_id: UUID,
        bill_date: date | None = None,
        actor_elevated: bool = False,
    ) -> OperationResult:
        """
        Replace a bill's lines by delete-and-recreate.

        Prior layers are removed and the prior GL entry reversed before the
        new lines are matched and applied.
        """

        def body() -> OperationResult:
            bill = self._load_bill(bill_id)
            self._ensure_editable(bill, "update")
            new_date = bill_date or bill.bill_date
            self._kernel.ledger.lock_guard.check(bill.bill_date)
            self._kernel.ledger.lock_guard.check(new_date)
            validate_bill_lines(lines)
            for line in lines:
                self._kernel.costing.get_item(line.item_id)

            reversal_id = self._reverse_bill_effects(bill, actor_id)
            self._release_billed_qty(bill, actor_id)

            warnings: tuple[str, ...] = ()
            if bill.po_id is not None:
                warnings = self._match_and_bill(bill.po_id, lines, actor_id)

            bill.lines.clear()
            self._session.flush()
            self._set_bill_lines(bill, lines, actor_id)
            bill.bill_date = new_date
            bill.total_amount = sum(line.amount for line in lines)
            bill.approval_status = BillApprovalStatus.NOT_REQUIRED.value
            bill.approved_by_id = None
            bill.approved_at = None
            bill.updated_by_id = actor_id
            self._session.flush()

            with LogContext.bind(document_type="vendor_bill", document_id=bill.id, actor_id=actor_id):
                result = self._settle_approval(bill, actor_id, actor_elevated, warnings)
            if reversal_id is None:
                return result
            return OperationResult.ok(
                document_id=result.document_id,
                journal_entry_ids=(reversal_id,) + result.journal_entry_ids,
                warnings=result.warnings,
                status=result.status,
                **dict(result.data),
            )

        return run_in_transaction(self._session, "vendor_bill_update", body, bill_id)

    def delete_bill(self, bill_id: UUID, actor_id: UUID) -> OperationResult:
        """Void a bill: remove its layers, reverse its GL, release billed quantities."""

        def body() -> OperationResult:
            bill = self._load_bill(bill_id)
            self._ensure_editable(bill, "delete")
            self._kernel.ledger.lock_guard.check(bill.bill_date)

            reversal_id = self._reverse_bill_effects(bill, actor_id)
            if bill.approval_status != BillApprovalStatus.REJECTED.value:
                self._release_billed_qty(bill, actor_id)
            bill.status = BillStatus.VOID.value
            bill.updated_by_id = actor_id
            self._session.flush()
            logger.info("vendor_bill_deleted", extra={"bill_id": str(bill_id)})
            return OperationResult.ok(
                document_id=bill.id,
                journal_entry_ids=(reversal_id,) if reversal_id else (),
            )

        return run_in_transaction(self._session, "vendor_bill_delete", body, bill_id)

    # =========================================================================
    # Vendor payments
    # =========================================================================

    def pay_vendor(
        self,
        vendor_id: UUID,
        amount: int,
        payment_date: date,
        actor_id: UUID,
        reference: str | None = None,
    ) -> OperationResult:
        """
        Apply a payment to the vendor's open bills, oldest first.

        Bills still awaiting approval, and bills whose purchase order is not
        fully received, are skipped.  Posts Dr Accounts Payable / Cr Bank
        for the applied amount.
        """

        def body() -> OperationResult:
            if amount <= 0:
                raise ValidationError("amount", "payment amount must be positive")
            self._kernel.ledger.lock_guard.check(payment_date)

            bills = self._session.scalars(
                select(VendorBill)
                .where(
                    VendorBill.vendor_id == vendor_id,
                    VendorBill.status.in_((BillStatus.OPEN.value, BillStatus.PARTIAL.value)),
                    VendorBill.approval_status.in_(
                        (BillApprovalStatus.NOT_REQUIRED.value, BillApprovalStatus.APPROVED.value)
                    ),
                )
                .order_by(VendorBill.bill_date, VendorBill.created_at)
                .with_for_update()
            ).all()

            remaining = amount
            applications: list[PaymentApplication] = []
            skipped: list[str] = []
            for bill in bills:
                if remaining == 0:
                    break
                if self._module_config.pay_only_fully_received and bill.po_id is not None:
                    po = self._session.get(PurchaseOrder, bill.po_id)
                    if po is not None and not po.is_fully_received:
                        skipped.append(str(bill.id))
                        continue
                applied = min(remaining, bill.outstanding)
                if applied <= 0:
                    continue
                bill.amount_paid += applied
                bill.status = (
                    BillStatus.PAID.value if bill.outstanding == 0 else BillStatus.PARTIAL.value
                )
                bill.updated_by_id = actor_id
                applications.append(PaymentApplication(bill_id=bill.id, amount=applied))
                remaining -= applied

            applied_total = amount - remaining
            if applied_total == 0:
                raise ValidationError("vendor_id", "vendor has no payable bills")

            accounts = self._config.account_codes
            payment = VendorPayment(
                vendor_id=vendor_id,
                payment_date=payment_date,
                amount=amount,
                amount_applied=applied_total,
                reference=reference,
                created_by_id=actor_id,
            )
            for application in applications:
                payment.applications.append(
                    VendorPaymentApplication(
                        bill_id=application.bill_id,
                        amount=application.amount,
                        created_by_id=actor_id,
                    )
                )
            self._session.add(payment)
            self._session.flush()

            entry = self._kernel.ledger.post(
                entry_date=payment_date,
                description=f"Vendor payment {reference or payment.id}",
                lines=(
                    LineSpec.dr(accounts.accounts_payable, applied_total, "Accounts payable"),
                    LineSpec.cr(accounts.bank, applied_total, "Bank"),
                ),
                actor_id=actor_id,
                reference=reference,
                correlation_id=f"payment-{payment.id}",
            )
            payment.journal_entry_id = entry.id
            self._session.flush()

            warnings = ()
            if remaining:
                warnings = (f"{remaining} could not be applied to open bills",)
            logger.info(
                "vendor_payment_applied",
                extra={
                    "payment_id": str(payment.id),
                    "applied": applied_total,
                    "unapplied": remaining,
                    "bills_paid": len(applications),
                    "bills_skipped": len(skipped),
                },
            )
            return OperationResult.ok(
                document_id=payment.id,
                journal_entry_ids=(entry.id,),
                warnings=warnings,
                applied=applied_total,
                unapplied=remaining,
                applications=tuple(applications),
                skipped_bill_ids=tuple(skipped),
            )

        return run_in_transaction(self._session, "vendor_payment", body)

    # =========================================================================
    # Internals
    # =========================================================================

    def _validate_po_lines(self, lines: Sequence[PurchaseOrderLineInput]) -> None:
        if not lines:
            raise ValidationError("lines", "a purchase order needs at least one line")
        seen: set[UUID] = set()
        for line in lines:
            if line.qty_ordered <= 0:
                raise ValidationError("qty_ordered", "must be positive")
            if line.unit_cost < 0:
                raise ValidationError("unit_cost", "must not be negative")
            if line.item_id in seen:
                raise ValidationError("item_id", f"item {line.item_id} appears twice")
            seen.add(line.item_id)
            self._kernel.costing.get_item(line.item_id)

    def _set_po_lines(
        self, po: PurchaseOrder, lines: Sequence[PurchaseOrderLineInput], actor_id: UUID
    ) -> None:
        for number, line in enumerate(lines, start=1):
            po.lines.append(
                PurchaseOrderLine(
                    line_number=number,
                    item_id=line.item_id,
                    qty_ordered=line.qty_ordered,
                    qty_received=0,
                    qty_billed=0,
                    unit_cost=line.unit_cost,
                    description=line.description,
                    created_by_id=actor_id,
                )
            )

    def _set_bill_lines(
        self, bill: VendorBill, lines: Sequence[BillLineInput], actor_id: UUID
    ) -> None:
        for number, line in enumerate(lines, start=1):
            bill.lines.append(
                VendorBillLine(
                    line_number=number,
                    item_id=line.item_id,
                    description=line.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    amount=line.amount,
                    created_by_id=actor_id,
                )
            )

    def _load_po(self, po_id: UUID) -> PurchaseOrder:
        po = self._session.scalars(
            select(PurchaseOrder).where(PurchaseOrder.id == po_id).with_for_update()
        ).one_or_none()
        if po is None:
            raise PurchaseOrderNotFoundError(str(po_id))
        return po

    def _load_bill(self, bill_id: UUID) -> VendorBill:
        bill = self._session.scalars(
            select(VendorBill).where(VendorBill.id == bill_id).with_for_update()
        ).one_or_none()
        if bill is None:
            raise BillNotFoundError(str(bill_id))
        return bill

    def _ensure_editable(self, bill: VendorBill, action: str) -> None:
        if bill.status == BillStatus.VOID.value:
            raise BillStateError(str(bill.id), bill.status, action)
        if bill.amount_paid > 0:
            raise BillStateError(str(bill.id), bill.status, action)
        if action == "update" and bill.approval_status == BillApprovalStatus.REJECTED.value:
            raise BillStateError(str(bill.id), bill.approval_status, action)

    def _match_and_bill(
        self, po_id: UUID, lines: Sequence[BillLineInput], actor_id: UUID
    ) -> tuple[str, ...]:
        po = self._load_po(po_id)
        snapshots = {
            line.item_id: PoLineSnapshot(
                item_id=line.item_id,
                qty_ordered=line.qty_ordered,
                qty_received=line.qty_received,
                qty_billed=line.qty_billed,
                unit_cost=line.unit_cost,
            )
            for line in po.lines
        }
        warnings = match_bill_lines(po_id, snapshots, lines, self._config.match.price_tolerance_bps)
        for warning in warnings:
            logger.warning("price_variance_warning", extra={"po_id": str(po_id), "detail": warning})

        for line in lines:
            po_line = po.line_for_item(line.item_id)
            po_line.qty_billed += line.quantity
            po_line.updated_by_id = actor_id
        self._session.flush()
        return warnings

    def _release_billed_qty(self, bill: VendorBill, actor_id: UUID) -> None:
        if bill.po_id is None:
            return
        po = self._load_po(bill.po_id)
        for line in bill.lines:
            po_line = po.line_for_item(line.item_id)
            if po_line is None:
                continue
            po_line.qty_billed = max(0, po_line.qty_billed - line.quantity)
            po_line.updated_by_id = actor_id
        self._session.flush()

    def _settle_approval(
        self,
        bill: VendorBill,
        actor_id: UUID,
        actor_elevated: bool,
        warnings: tuple[str, ...],
    ) -> OperationResult:
        if self._config.approval.requires_approval(bill.total_amount, actor_elevated):
            bill.approval_status = BillApprovalStatus.PENDING.value
            self._session.flush()
            logger.info(
                "vendor_bill_pending_approval",
                extra={
                    "total_amount": bill.total_amount,
                    "threshold": self._config.approval.threshold,
                },
            )
            return OperationResult.ok(
                document_id=bill.id,
                warnings=warnings,
                status=OperationStatus.PENDING_APPROVAL,
                approval_status=bill.approval_status,
                total_amount=bill.total_amount,
            )

        entry_id = self._apply_bill_effects(bill, actor_id)
        return OperationResult.ok(
            document_id=bill.id,
            journal_entry_ids=(entry_id,) if entry_id else (),
            warnings=warnings,
            approval_status=bill.approval_status,
            total_amount=bill.total_amount,
        )

    def _apply_bill_effects(self, bill: VendorBill, actor_id: UUID) -> UUID | None:
        """Create the bill's layers and post its journal entry."""
        accounts = self._config.account_codes
        qc_status = QcStatus(self._config.bill_layer_qc_status)
        by_account: dict[str, int] = defaultdict(int)

        for line in bill.lines:
            item = self._kernel.costing.get_item(line.item_id)
            by_account[self._kernel.costing.resolve_costing_account(item)] += line.amount
            if (
                item.item_class == ItemClass.SERVICE.value
                and not self._module_config.create_layers_for_service_items
            ):
                continue
            self._kernel.layers.create_layer(
                item_id=item.id,
                batch_number=f"{self._module_config.batch_prefix}-{bill.id}-{item.id}",
                quantity=line.quantity,
                unit_cost=line.unit_price,
                receive_date=bill.bill_date,
                actor_id=actor_id,
                warehouse_code=bill.warehouse_code,
                location_code=bill.location_code,
                qc_status=qc_status,
                layer_kind=LayerKind.PURCHASE,
                source_type=BILL_SOURCE,
                source_id=bill.id,
            )

        if bill.total_amount == 0:
            return None

        label = bill.bill_number or str(bill.id)
        gl_lines = [
            LineSpec.dr(code, amount, f"Bill {label}")
            for code, amount in sorted(by_account.items())
            if amount
        ]
        gl_lines.append(
            LineSpec.cr(accounts.accounts_payable, bill.total_amount, f"Bill {label}")
        )
        entry = self._kernel.ledger.post(
            entry_date=bill.bill_date,
            description=f"Vendor bill {label}",
            lines=gl_lines,
            actor_id=actor_id,
            reference=bill.bill_number,
            correlation_id=bill.correlation_id,
        )
        bill.journal_entry_id = entry.id
        self._session.flush()
        logger.info(
            "vendor_bill_posted",
            extra={
                "bill_id": str(bill.id),
                "journal_entry_id": str(entry.id),
                "total_amount": bill.total_amount,
                "debit_accounts": sorted(by_account),
            },
        )
        return entry.id

    def _reverse_bill_effects(self, bill: VendorBill, actor_id: UUID) -> UUID | None:
        """Remove untouched layers and reverse the GL entry.  Returns the reversal id."""
        consumed = self._kernel.layers.consumed_batches(BILL_SOURCE, bill.id)
        if consumed:
            raise BillLayersConsumedError(str(bill.id), consumed)
        self._kernel.layers.delete_source_layers(BILL_SOURCE, bill.id)

        if bill.journal_entry_id is None:
            return None
        reversal = self._kernel.editor.reverse_document(
            bill.journal_entry_id, actor_id, description_prefix="Reversal:"
        )
        bill.journal_entry_id = None
        self._session.flush()
        return reversal.id
