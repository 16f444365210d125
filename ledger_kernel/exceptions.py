"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerKernelError:

    LedgerKernelError (base)
    |
    +-- ValidationError
    |
    +-- PostingError
    |   +-- UnbalancedEntryError
    |   +-- InvalidLineError
    |
    +-- PeriodError
    |   +-- PeriodLockedError
    |   +-- LockDateRegressionError
    |
    +-- ReversalError
    |   +-- EntryNotFoundError
    |   +-- EntryAlreadyDeletedError
    |   +-- EntryAlreadyReversedError
    |   +-- ReversalOfReversalError
    |
    +-- InventoryError
    |   +-- InsufficientInventoryError
    |   +-- InsufficientWipError
    |   +-- LayerNotFoundError
    |   +-- DuplicateBatchError
    |   +-- UnrestorableDepletionError
    |
    +-- MasterDataError
    |   +-- ItemNotFoundError
    |   +-- AccountNotFoundError
    |   +-- UnknownItemClassError
    |   +-- TaxRateNotFoundError
    |
    +-- PurchasingError
    |   +-- ThreeWayMatchError
    |   +-- PurchaseOrderNotFoundError
    |   +-- PurchaseOrderLockedError
    |   +-- BillNotFoundError
    |   +-- BillStateError
    |   +-- BillLayersConsumedError
    |   +-- ApprovalNotPermittedError
    |
    +-- SalesError
    |   +-- InvoiceNotFoundError
    |   +-- InvoiceStateError
    |   +-- DiscountExceedsGrossError
    |
    +-- ManufacturingError
    |   +-- WorkOrderNotFoundError
    |   +-- StepNotFoundError
    |   +-- StepStateError
    |
    +-- IdempotencyError
    |   +-- DuplicatePostingError
    |
    +-- IntegrityViolation            (hard failure, never a business result)
        +-- CorruptLedgerError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_INPUT               | Malformed request (negative qty, ...)
----------------|-----------------------------|-----------------------------------------
Posting         | UNBALANCED_ENTRY            | Sum of debits != sum of credits
                | INVALID_LINE                | Line with both sides or negative amount
----------------|-----------------------------|-----------------------------------------
Period          | PERIOD_LOCKED               | Target date <= lock date
                | LOCK_DATE_REGRESSION        | New lock date not after current one
----------------|-----------------------------|-----------------------------------------
Reversal        | ENTRY_NOT_FOUND             | Journal entry id doesn't exist
                | ENTRY_ALREADY_DELETED       | Soft-deleted entry targeted again
                | ENTRY_ALREADY_REVERSED      | Entry already neutralized by reverse()
                | REVERSAL_NOT_EDITABLE       | Edit/delete aimed at a reversal entry
----------------|-----------------------------|-----------------------------------------
Inventory       | INSUFFICIENT_INVENTORY      | Depletion exceeds available quantity
                | INSUFFICIENT_WIP            | WIP batch smaller than step input
                | LAYER_NOT_FOUND             | Layer id / batch number unknown
                | DUPLICATE_BATCH             | Batch number already exists
                | UNRESTORABLE_DEPLETION      | Restoration would overflow a layer
----------------|-----------------------------|-----------------------------------------
Master data     | ITEM_NOT_FOUND              | Item id doesn't exist
                | ACCOUNT_NOT_FOUND           | GL account code doesn't exist
                | UNKNOWN_ITEM_CLASS          | Item class missing from account table
                | TAX_RATE_NOT_FOUND          | Tax rate id doesn't exist
----------------|-----------------------------|-----------------------------------------
Purchasing      | THREE_WAY_MATCH_FAILED      | Bill line not covered by receipts
                | PURCHASE_ORDER_NOT_FOUND    | PO id doesn't exist
                | PURCHASE_ORDER_LOCKED       | PO closed, received or billed
                | BILL_NOT_FOUND              | Bill id doesn't exist
                | BILL_STATE_INVALID          | Action not allowed in bill's state
                | BILL_LAYERS_CONSUMED        | Bill stock already partly consumed
                | APPROVAL_NOT_PERMITTED      | Non-elevated actor approving
----------------|-----------------------------|-----------------------------------------
Sales           | INVOICE_NOT_FOUND           | Invoice id doesn't exist
                | INVOICE_STATE_INVALID       | Invoice void or paid
                | DISCOUNT_EXCEEDS_GROSS      | Line discount larger than line gross
----------------|-----------------------------|-----------------------------------------
Manufacturing   | WORK_ORDER_NOT_FOUND        | Work order id doesn't exist
                | STEP_NOT_FOUND              | Work order step id doesn't exist
                | STEP_STATE_INVALID          | Illegal step transition
----------------|-----------------------------|-----------------------------------------
Idempotency     | DUPLICATE_POSTING           | (contract, cycle) already posted
----------------|-----------------------------|-----------------------------------------
Integrity       | CORRUPT_LEDGER              | Global trial balance mismatch (fatal)
                | OPTIMISTIC_LOCK_CONFLICT    | Layer changed by another transaction

Every exception carries its context as attributes so that logs and result
objects never have to parse message strings.  Only ``IntegrityViolation``
subclasses are allowed to escape a module service; everything else is
converted to a failed ``OperationResult``.
"""

from datetime import date


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


class ValidationError(LedgerKernelError):
    """Request payload failed validation."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Posting-related exceptions


class PostingError(LedgerKernelError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class UnbalancedEntryError(PostingError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: int, credits: int):
        self.debits = debits
        self.credits = credits
        super().__init__(f"Unbalanced entry: debits={debits}, credits={credits}")


class InvalidLineError(PostingError):
    """A single journal line is malformed."""

    code: str = "INVALID_LINE"

    def __init__(self, account_code: str, debit: int, credit: int, reason: str):
        self.account_code = account_code
        self.debit = debit
        self.credit = credit
        self.reason = reason
        super().__init__(
            f"Invalid line on account {account_code} "
            f"(debit={debit}, credit={credit}): {reason}"
        )


# Period-related exceptions


class PeriodError(LedgerKernelError):
    """Base exception for period lock errors."""

    code: str = "PERIOD_ERROR"


class PeriodLockedError(PeriodError):
    """Mutation targets a date on or before the lock date."""

    code: str = "PERIOD_LOCKED"

    def __init__(self, target_date: date, lock_date: date):
        self.target_date = target_date
        self.lock_date = lock_date
        super().__init__(
            f"Cannot post to {target_date.isoformat()}: "
            f"books are locked through {lock_date.isoformat()}"
        )


class LockDateRegressionError(PeriodError):
    """Closing date does not move the lock date forward."""

    code: str = "LOCK_DATE_REGRESSION"

    def __init__(self, current_lock_date: date, requested_date: date):
        self.current_lock_date = current_lock_date
        self.requested_date = requested_date
        super().__init__(
            f"Lock date may only move forward: current "
            f"{current_lock_date.isoformat()}, requested {requested_date.isoformat()}"
        )


# Reversal-related exceptions


class ReversalError(LedgerKernelError):
    """Base exception for correction errors."""

    code: str = "REVERSAL_ERROR"


class EntryNotFoundError(ReversalError):
    """Journal entry with given ID was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class EntryAlreadyDeletedError(ReversalError):
    """Journal entry was already soft-deleted."""

    code: str = "ENTRY_ALREADY_DELETED"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry {entry_id} is already deleted")


class EntryAlreadyReversedError(ReversalError):
    """Journal entry already has a posted reversal."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversal_entry_id: str):
        self.entry_id = entry_id
        self.reversal_entry_id = reversal_entry_id
        super().__init__(
            f"Journal entry {entry_id} was already reversed by {reversal_entry_id}"
        )


class ReversalOfReversalError(ReversalError):
    """Reversal entries are system-generated and cannot be edited or deleted."""

    code: str = "REVERSAL_NOT_EDITABLE"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry {entry_id} is a reversal and cannot be changed")


# Inventory-related exceptions


class InventoryError(LedgerKernelError):
    """Base exception for inventory layer errors."""

    code: str = "INVENTORY_ERROR"


class InsufficientInventoryError(InventoryError):
    """Not enough non-depleted, eligible stock to cover a depletion."""

    code: str = "INSUFFICIENT_INVENTORY"

    def __init__(self, item_id: str, requested: int, available: int):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient inventory for item {item_id}: "
            f"requested {requested}, available {available}"
        )


class InsufficientWipError(InventoryError):
    """WIP batch from the previous step holds less than the step input."""

    code: str = "INSUFFICIENT_WIP"

    def __init__(self, batch_number: str, requested: int, available: int):
        self.batch_number = batch_number
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient WIP in batch {batch_number}: "
            f"need {requested}, have {available}"
        )


class LayerNotFoundError(InventoryError):
    """Inventory layer not found by id or batch number."""

    code: str = "LAYER_NOT_FOUND"

    def __init__(self, layer_ref: str):
        self.layer_ref = layer_ref
        super().__init__(f"Inventory layer not found: {layer_ref}")


class DuplicateBatchError(InventoryError):
    """Batch number is already used by another layer."""

    code: str = "DUPLICATE_BATCH"

    def __init__(self, batch_number: str):
        self.batch_number = batch_number
        super().__init__(f"Batch number already exists: {batch_number}")


class UnrestorableDepletionError(InventoryError):
    """Restoring a recorded depletion would push a layer past its initial quantity."""

    code: str = "UNRESTORABLE_DEPLETION"

    def __init__(self, source_type: str, source_id: str, layer_id: str):
        self.source_type = source_type
        self.source_id = source_id
        self.layer_id = layer_id
        super().__init__(
            f"Cannot restore depletion of layer {layer_id} "
            f"recorded for {source_type} {source_id}"
        )


# Master data exceptions


class MasterDataError(LedgerKernelError):
    """Base exception for referential-integrity rejections."""

    code: str = "MASTER_DATA_ERROR"


class ItemNotFoundError(MasterDataError):
    """Item with given ID was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class AccountNotFoundError(MasterDataError):
    """GL account with given code was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"GL account not found: {account_code}")


class UnknownItemClassError(MasterDataError):
    """Item class has no entry in the class-to-account table."""

    code: str = "UNKNOWN_ITEM_CLASS"

    def __init__(self, item_class: str, known_classes: tuple[str, ...] = ()):
        self.item_class = item_class
        self.known_classes = known_classes
        super().__init__(
            f"No default asset account for item class {item_class!r}; "
            f"known classes: {', '.join(known_classes) or '(none)'}"
        )


class TaxRateNotFoundError(MasterDataError):
    """Tax rate with given ID was not found."""

    code: str = "TAX_RATE_NOT_FOUND"

    def __init__(self, tax_rate_id: str):
        self.tax_rate_id = tax_rate_id
        super().__init__(f"Tax rate not found: {tax_rate_id}")


# Purchasing exceptions


class PurchasingError(LedgerKernelError):
    """Base exception for purchasing pipeline errors."""

    code: str = "PURCHASING_ERROR"


class ThreeWayMatchError(PurchasingError):
    """Bill line is not covered by the purchase order and its receipts."""

    code: str = "THREE_WAY_MATCH_FAILED"

    def __init__(
        self,
        po_id: str,
        item_id: str,
        reason: str,
        requested: int | None = None,
        available: int | None = None,
    ):
        self.po_id = po_id
        self.item_id = item_id
        self.reason = reason
        self.requested = requested
        self.available = available
        super().__init__(
            f"Three-way match failed for item {item_id} on PO {po_id}: {reason}"
        )


class PurchaseOrderNotFoundError(PurchasingError):
    """Purchase order with given ID was not found."""

    code: str = "PURCHASE_ORDER_NOT_FOUND"

    def __init__(self, po_id: str):
        self.po_id = po_id
        super().__init__(f"Purchase order not found: {po_id}")


class PurchaseOrderLockedError(PurchasingError):
    """Purchase order can no longer be edited or deleted."""

    code: str = "PURCHASE_ORDER_LOCKED"

    def __init__(self, po_id: str, reason: str):
        self.po_id = po_id
        self.reason = reason
        super().__init__(f"Purchase order {po_id} is locked: {reason}")


class BillNotFoundError(PurchasingError):
    """Vendor bill with given ID was not found."""

    code: str = "BILL_NOT_FOUND"

    def __init__(self, bill_id: str):
        self.bill_id = bill_id
        super().__init__(f"Vendor bill not found: {bill_id}")


class BillStateError(PurchasingError):
    """Requested action is not allowed for the bill's current state."""

    code: str = "BILL_STATE_INVALID"

    def __init__(self, bill_id: str, state: str, action: str):
        self.bill_id = bill_id
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} bill {bill_id} in state {state}")


class BillLayersConsumedError(PurchasingError):
    """Stock received on the bill has already been consumed."""

    code: str = "BILL_LAYERS_CONSUMED"

    def __init__(self, bill_id: str, batch_numbers: tuple[str, ...]):
        self.bill_id = bill_id
        self.batch_numbers = batch_numbers
        super().__init__(
            f"Bill {bill_id} cannot be reversed: layers already consumed "
            f"({', '.join(batch_numbers)})"
        )


class ApprovalNotPermittedError(PurchasingError):
    """Actor lacks the elevated role required to approve or reject bills."""

    code: str = "APPROVAL_NOT_PERMITTED"

    def __init__(self, actor_id: str, bill_id: str):
        self.actor_id = actor_id
        self.bill_id = bill_id
        super().__init__(f"Actor {actor_id} may not approve or reject bill {bill_id}")


# Sales exceptions


class SalesError(LedgerKernelError):
    """Base exception for sales pipeline errors."""

    code: str = "SALES_ERROR"


class InvoiceNotFoundError(SalesError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class InvoiceStateError(SalesError):
    """Action not allowed in the invoice's current status."""

    code: str = "INVOICE_STATE_INVALID"

    def __init__(self, invoice_id: str, status: str, action: str):
        self.invoice_id = invoice_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} invoice {invoice_id} in status {status}")


class DiscountExceedsGrossError(SalesError):
    """Line discount is larger than the line's gross amount."""

    code: str = "DISCOUNT_EXCEEDS_GROSS"

    def __init__(self, line_number: int, discount: int, gross: int):
        self.line_number = line_number
        self.discount = discount
        self.gross = gross
        super().__init__(
            f"Line {line_number}: discount {discount} exceeds gross amount {gross}"
        )


# Manufacturing exceptions


class ManufacturingError(LedgerKernelError):
    """Base exception for manufacturing step errors."""

    code: str = "MANUFACTURING_ERROR"


class WorkOrderNotFoundError(ManufacturingError):
    """Work order with given ID was not found."""

    code: str = "WORK_ORDER_NOT_FOUND"

    def __init__(self, work_order_id: str):
        self.work_order_id = work_order_id
        super().__init__(f"Work order not found: {work_order_id}")


class StepNotFoundError(ManufacturingError):
    """Work order step with given ID was not found."""

    code: str = "STEP_NOT_FOUND"

    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Work order step not found: {step_id}")


class StepStateError(ManufacturingError):
    """Illegal work order step transition."""

    code: str = "STEP_STATE_INVALID"

    def __init__(self, step_id: str, status: str, action: str):
        self.step_id = step_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} step {step_id} in status {status}")


# Idempotency exceptions


class IdempotencyError(LedgerKernelError):
    """Base exception for idempotency guard errors."""

    code: str = "IDEMPOTENCY_ERROR"


class DuplicatePostingError(IdempotencyError):
    """A recurring posting for this contract and cycle already exists."""

    code: str = "DUPLICATE_POSTING"

    def __init__(self, contract_ref: str, cycle_key: str, journal_entry_id: str):
        self.contract_ref = contract_ref
        self.cycle_key = cycle_key
        self.journal_entry_id = journal_entry_id
        super().__init__(
            f"Cycle {cycle_key} of contract {contract_ref} already posted "
            f"as journal entry {journal_entry_id}"
        )


# Integrity violations


class IntegrityViolation(LedgerKernelError):
    """
    Base exception for hard failures.

    These signal a prior bug or a lost race and are never converted into a
    business result.  Callers must let them propagate.
    """

    code: str = "INTEGRITY_VIOLATION"


class CorruptLedgerError(IntegrityViolation):
    """Global trial balance does not hold."""

    code: str = "CORRUPT_LEDGER"

    def __init__(self, total_debits: int, total_credits: int):
        self.total_debits = total_debits
        self.total_credits = total_credits
        super().__init__(
            f"Trial balance mismatch: debits={total_debits}, credits={total_credits}"
        )


class OptimisticLockError(IntegrityViolation):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
