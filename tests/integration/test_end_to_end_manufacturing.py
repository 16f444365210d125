"""
End-to-end: purchase -> manufacture -> sell.

Flow:
- Two raw materials are ordered, received and billed
- A two-step routing turns 1000 A + 1000 B into 2000 finished units
- 1000 finished units are invoiced
- The vendor is paid in full

After every stage the trial balance holds, and at the end the layer value
of raw materials and finished goods reconciles with the general ledger.
"""

from datetime import date
from uuid import uuid4

import pytest

from ledger_kernel.domain.inventory import ItemClass
from ledger_kernel.domain.results import OperationStatus
from ledger_modules.manufacturing import MaterialInput, RoutingStepInput, StepSubmission
from ledger_modules.purchasing import (
    BillLineInput,
    PurchaseOrderLineInput,
    ReceiptLineInput,
)
from ledger_modules.sales import InvoiceLineInput

pytestmark = pytest.mark.integration

VENDOR = uuid4()
CUSTOMER = uuid4()


@pytest.fixture
def materials(make_item):
    a = make_item(sku="MAT-A", item_class=ItemClass.RAW_MATERIAL)
    b = make_item(sku="MAT-B", item_class=ItemClass.RAW_MATERIAL)
    c = make_item(sku="PRODUCT-C", item_class=ItemClass.FINISHED_GOODS)
    return a, b, c


def _assert_balanced(ledger):
    trial = ledger.trial_balance()
    assert trial.is_balanced, f"trial balance off by {trial.difference}"


def test_purchase_manufacture_sell(
    purchasing, manufacturing, sales, ledger, layers, selector, ledger_config, materials, actor_id
):
    a, b, c = materials

    # Purchasing
    po = purchasing.create_purchase_order(
        VENDOR,
        "PO-100",
        date(2024, 6, 1),
        [PurchaseOrderLineInput(a.id, 1000, 5000), PurchaseOrderLineInput(b.id, 2000, 1000)],
        actor_id,
    )
    receipt = purchasing.receive_goods(
        po.document_id,
        [ReceiptLineInput(a.id, 1000), ReceiptLineInput(b.id, 2000)],
        date(2024, 6, 3),
        actor_id,
    )
    assert receipt.data["po_status"] == "RECEIVED"

    bill = purchasing.create_bill(
        VENDOR,
        date(2024, 6, 4),
        [BillLineInput(a.id, 1000, 5000), BillLineInput(b.id, 2000, 1000)],
        actor_id,
        po_id=po.document_id,
        bill_number="V-100",
    )
    assert bill.status == OperationStatus.SUCCESS
    assert bill.data["total_amount"] == 7_000_000
    assert ledger.account_balance("1310") == 7_000_000
    assert ledger.account_balance("2100") == -7_000_000
    _assert_balanced(ledger)

    # Manufacturing
    routing = manufacturing.create_routing(
        "C from A and B",
        [
            RoutingStepInput(1, "Mix", material_item_id=a.id),
            RoutingStepInput(2, "Finish"),
        ],
        actor_id,
    )
    wo = manufacturing.create_work_order("WO-100", c.id, routing.document_id, 2000, actor_id)
    step_1, step_2 = manufacturing.release_work_order(wo.document_id, actor_id).data["step_ids"]

    mixed = manufacturing.submit_step(
        step_1,
        StepSubmission(1000, 2000, additional_materials=(MaterialInput(b.id, 1000),)),
        actor_id,
    )
    assert mixed.data["material_cost"] == 6_000_000
    assert mixed.data["unit_cost_after_yield"] == 3000
    wip = layers.find_by_batch(f"WO-{wo.document_id}-STEP-1")
    assert (wip.remaining_qty, wip.unit_cost) == (2000, 3000)
    assert ledger.account_balance("1330") == 6_000_000
    assert ledger.account_balance("1310") == 1_000_000
    _assert_balanced(ledger)

    finished = manufacturing.submit_step(step_2, StepSubmission(2000, 2000), actor_id)
    assert finished.data["is_final_step"]
    fg = layers.find_by_batch(f"WO-{wo.document_id}-FG")
    assert (fg.remaining_qty, fg.unit_cost) == (2000, 3000)
    assert ledger.account_balance("1330") == 0
    assert ledger.account_balance("1340") == 6_000_000
    _assert_balanced(ledger)

    # Sales
    invoice = sales.create_invoice(
        CUSTOMER, "INV-100", date(2024, 6, 20), [InvoiceLineInput(c.id, 1000, 5000)], actor_id
    )
    assert invoice.data["cogs_total"] == 3_000_000
    assert ledger.account_balance("5100") == 3_000_000
    assert ledger.account_balance("1340") == 3_000_000
    assert ledger.account_balance("4100") == -5_000_000
    assert fg.remaining_qty == 1000
    _assert_balanced(ledger)

    # Payment
    payment = purchasing.pay_vendor(VENDOR, 7_000_000, date(2024, 6, 25), actor_id)
    assert payment.data["applied"] == 7_000_000
    assert ledger.account_balance("2100") == 0
    _assert_balanced(ledger)

    # Reconciliation
    rows = {
        row.account_code: row
        for row in selector.inventory_reconciliation(ledger_config.item_class_accounts.as_mapping())
    }
    assert rows["1310"].layer_value == 1_000_000
    assert rows["1340"].layer_value == 3_000_000
    assert rows["1310"].is_reconciled
    assert rows["1340"].is_reconciled

    # GL impact of the invoice, traced by correlation id
    impact = selector.entries_for_correlation(f"invoice-{invoice.document_id}")
    assert sum(line.debit for line in impact) == sum(line.credit for line in impact) == 8_000_000


def test_invoice_delete_after_production_restores_finished_goods(
    manufacturing, sales, ledger, layers, materials, add_layer, actor_id
):
    a, _, c = materials
    add_layer(a, 10, 100)
    routing = manufacturing.create_routing(
        "One step", [RoutingStepInput(1, "Pack", material_item_id=a.id)], actor_id
    )
    wo = manufacturing.create_work_order("WO-200", c.id, routing.document_id, 10, actor_id)
    (only,) = manufacturing.release_work_order(wo.document_id, actor_id).data["step_ids"]
    manufacturing.submit_step(only, StepSubmission(10, 10), actor_id)

    invoice = sales.create_invoice(
        CUSTOMER, "INV-200", date(2024, 6, 20), [InvoiceLineInput(c.id, 4, 500)], actor_id
    )
    assert invoice.data["cogs_total"] == 400
    assert sales.delete_invoice(invoice.document_id, actor_id).is_success

    assert layers.find_by_batch(f"WO-{wo.document_id}-FG").remaining_qty == 10
    assert ledger.account_balance("1340") == 1000
    assert ledger.account_balance("5100") == 0
    _assert_balanced(ledger)
