"""
SalesService tests.

An invoice depletes stock FIFO and posts revenue, discounts, tax and COGS
in one balanced entry.  Edits and deletes restore the exact layers the
invoice consumed.
"""

from datetime import date
from uuid import uuid4

import pytest

from ledger_kernel.domain.inventory import ItemClass
from ledger_kernel.domain.results import OperationStatus
from ledger_modules.sales import Invoice, InvoiceLineInput, InvoiceStatus, TaxRate

CUSTOMER = uuid4()
INVOICE_DATE = date(2024, 6, 20)


@pytest.fixture
def stocked(make_item, add_layer):
    """10 @ 100 received 1 June, 10 @ 200 received 2 June."""
    item = make_item(sku="GOODS", item_class=ItemClass.FINISHED_GOODS)
    old = add_layer(item, 10, 100, receive_date=date(2024, 6, 1))
    new = add_layer(item, 10, 200, receive_date=date(2024, 6, 2))
    return item, old, new


@pytest.fixture
def vat(sales, actor_id):
    return sales.create_tax_rate("VAT 12%", 1200, actor_id, gl_account_code="2200").document_id


class TestCreateInvoice:
    def test_posts_revenue_tax_and_cogs(self, sales, ledger, stocked, vat, actor_id):
        item, old, new = stocked
        result = sales.create_invoice(
            CUSTOMER,
            "INV-1",
            INVOICE_DATE,
            [InvoiceLineInput(item.id, 15, 500, discount_percent=1000, tax_rate_id=vat)],
            actor_id,
        )

        assert result.status == OperationStatus.SUCCESS
        assert result.data["total_amount"] == 7500 - 750 + 810
        assert result.data["cogs_total"] == 10 * 100 + 5 * 200
        assert ledger.account_balance("1200") == 7560
        assert ledger.account_balance("4200") == 750
        assert ledger.account_balance("4100") == -7500
        assert ledger.account_balance("2200") == -810
        assert ledger.account_balance("5100") == 2000
        assert ledger.account_balance("1340") == -2000
        assert (old.remaining_qty, new.remaining_qty) == (0, 5)
        assert ledger.trial_balance().is_balanced

    def test_entry_correlated_to_invoice(self, sales, ledger, stocked, actor_id):
        item, _, _ = stocked
        result = sales.create_invoice(CUSTOMER, "INV-1", INVOICE_DATE, [InvoiceLineInput(item.id, 1, 500)], actor_id)
        entry = ledger.get_entry(result.journal_entry_ids[0])
        assert entry.correlation_id == f"invoice-{result.document_id}"
        assert "4200" not in {line.account_code for line in entry.lines}

    def test_insufficient_stock_rejects_whole_invoice(self, sales, ledger, layers, stocked, actor_id):
        item, _, _ = stocked
        result = sales.create_invoice(
            CUSTOMER, "INV-1", INVOICE_DATE, [InvoiceLineInput(item.id, 21, 500)], actor_id
        )
        assert result.error_code == "INSUFFICIENT_INVENTORY"
        assert layers.availability(item.id) == 20
        assert [l.remaining_qty for l in layers.layers_for_item(item.id)] == [10, 10]
        assert ledger.account_balance("1200") == 0

    def test_service_items_are_not_depleted(self, sales, ledger, make_item, actor_id):
        consulting = make_item(item_class=ItemClass.SERVICE)
        result = sales.create_invoice(
            CUSTOMER, "INV-1", INVOICE_DATE, [InvoiceLineInput(consulting.id, 2, 5000)], actor_id
        )
        assert result.data["cogs_total"] == 0
        assert ledger.account_balance("4100") == -10_000
        assert ledger.account_balance("5100") == 0

    def test_discount_above_gross(self, sales, stocked, actor_id):
        item, _, _ = stocked
        result = sales.create_invoice(
            CUSTOMER, "INV-1", INVOICE_DATE, [InvoiceLineInput(item.id, 1, 100, discount_amount=101)], actor_id
        )
        assert result.error_code == "DISCOUNT_EXCEEDS_GROSS"

    def test_unknown_tax_rate(self, sales, stocked, actor_id):
        item, _, _ = stocked
        result = sales.create_invoice(
            CUSTOMER, "INV-1", INVOICE_DATE, [InvoiceLineInput(item.id, 1, 100, tax_rate_id=uuid4())], actor_id
        )
        assert result.error_code == "TAX_RATE_NOT_FOUND"

    def test_inactive_tax_rate(self, session, sales, stocked, vat, actor_id):
        item, _, _ = stocked
        session.get(TaxRate, vat).is_active = False
        session.commit()
        result = sales.create_invoice(
            CUSTOMER, "INV-1", INVOICE_DATE, [InvoiceLineInput(item.id, 1, 100, tax_rate_id=vat)], actor_id
        )
        assert result.error_code == "INVALID_INPUT"

    def test_tax_rate_account_must_exist(self, sales, actor_id):
        result = sales.create_tax_rate("Bogus", 500, actor_id, gl_account_code="9999")
        assert result.error_code == "ACCOUNT_NOT_FOUND"


class TestEditInvoice:
    @pytest.fixture
    def invoice_id(self, sales, stocked, actor_id):
        item, _, _ = stocked
        return sales.create_invoice(
            CUSTOMER, "INV-1", INVOICE_DATE, [InvoiceLineInput(item.id, 12, 500)], actor_id
        ).document_id

    def test_update_restores_then_redepletes(self, sales, ledger, stocked, invoice_id, actor_id):
        item, old, new = stocked
        result = sales.update_invoice(invoice_id, [InvoiceLineInput(item.id, 3, 600)], actor_id)

        assert result.is_success
        assert len(result.journal_entry_ids) == 2
        assert result.data["cogs_total"] == 300
        assert (old.remaining_qty, new.remaining_qty) == (7, 10)
        assert ledger.account_balance("4100") == -1800
        assert ledger.account_balance("5100") == 300

    def test_delete_restores_stock_and_voids(self, session, sales, ledger, stocked, invoice_id, actor_id):
        item, old, new = stocked
        result = sales.delete_invoice(invoice_id, actor_id)

        assert result.is_success
        assert (old.remaining_qty, new.remaining_qty) == (10, 10)
        invoice = session.get(Invoice, invoice_id)
        assert invoice.status == InvoiceStatus.VOID.value
        assert invoice.lines
        for code in ("1200", "4100", "5100", "1340"):
            assert ledger.account_balance(code) == 0

    def test_void_invoice_not_editable(self, sales, stocked, invoice_id, actor_id):
        item, _, _ = stocked
        sales.delete_invoice(invoice_id, actor_id)
        result = sales.update_invoice(invoice_id, [InvoiceLineInput(item.id, 1, 1)], actor_id)
        assert result.error_code == "INVOICE_STATE_INVALID"

    def test_unknown_invoice(self, sales, actor_id):
        assert sales.delete_invoice(uuid4(), actor_id).error_code == "INVOICE_NOT_FOUND"
