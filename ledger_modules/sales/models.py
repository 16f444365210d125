"""Sales Domain Models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class InvoiceStatus(str, Enum):
    OPEN = "OPEN"
    PAID = "PAID"
    VOID = "VOID"


@dataclass(frozen=True)
class InvoiceLineInput:
    """
    One invoice line.  ``discount_amount`` (minor units) takes precedence
    over ``discount_percent`` (basis points, 1250 = 12.5%).
    """

    item_id: UUID
    quantity: int
    rate: int
    discount_percent: int = 0
    discount_amount: int = 0
    tax_rate_id: UUID | None = None
    description: str | None = None
