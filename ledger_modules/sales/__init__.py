"""
Sales module: customer invoices with FIFO depletion and COGS posting.
"""

from ledger_modules.sales.config import SalesConfig
from ledger_modules.sales.models import InvoiceLineInput, InvoiceStatus
from ledger_modules.sales.orm import Invoice, InvoiceLine, TaxRate
from ledger_modules.sales.pricing import InvoiceTotals, PricedLine, price_line, summarize
from ledger_modules.sales.service import SalesService

__all__ = [
    "Invoice",
    "InvoiceLine",
    "InvoiceLineInput",
    "InvoiceStatus",
    "InvoiceTotals",
    "PricedLine",
    "SalesConfig",
    "SalesService",
    "TaxRate",
    "price_line",
    "summarize",
]
