"""
Invoice line pricing -- pure integer arithmetic.

    gross    = quantity x rate
    discount = discount_amount if given, else round(gross x discount_bps / 10000)
    net      = gross - discount            (discount may not exceed gross)
    tax      = round(net x rate_multiplier / 10000)

All rounding is half-up on integers.  No floats.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass

from ledger_kernel.db.types import BASIS_POINTS, scale_half_up
from ledger_kernel.exceptions import DiscountExceedsGrossError, ValidationError


@dataclass(frozen=True)
class PricedLine:
    line_number: int
    gross: int
    discount: int
    tax: int
    tax_account: str | None

    @property
    def net(self) -> int:
        return self.gross - self.discount

    @property
    def total(self) -> int:
        return self.net + self.tax


@dataclass(frozen=True)
class InvoiceTotals:
    gross_total: int
    discount_total: int
    tax_by_account: tuple[tuple[str, int], ...]

    @property
    def tax_total(self) -> int:
        return sum(amount for _, amount in self.tax_by_account)

    @property
    def subtotal(self) -> int:
        return self.gross_total - self.discount_total

    @property
    def grand_total(self) -> int:
        return self.subtotal + self.tax_total


def price_line(
    line_number: int,
    quantity: int,
    rate: int,
    discount_percent_bps: int = 0,
    discount_amount: int = 0,
    tax_rate_multiplier: int | None = None,
    tax_account: str | None = None,
) -> PricedLine:
    """
    Price one invoice line.

    Raises:
        ValidationError: non-positive quantity, negative rate or discount.
        DiscountExceedsGrossError: discount greater than gross.
    """
    if quantity <= 0:
        raise ValidationError(f"lines[{line_number}].quantity", "must be positive")
    if rate < 0:
        raise ValidationError(f"lines[{line_number}].rate", "must not be negative")
    if discount_amount < 0 or discount_percent_bps < 0:
        raise ValidationError(f"lines[{line_number}].discount", "must not be negative")

    gross = quantity * rate
    if discount_amount:
        discount = discount_amount
    elif discount_percent_bps:
        discount = scale_half_up(gross, discount_percent_bps, BASIS_POINTS)
    else:
        discount = 0
    if discount > gross:
        raise DiscountExceedsGrossError(line_number, discount, gross)

    tax = 0
    if tax_rate_multiplier:
        tax = scale_half_up(gross - discount, tax_rate_multiplier, BASIS_POINTS)

    return PricedLine(
        line_number=line_number,
        gross=gross,
        discount=discount,
        tax=tax,
        tax_account=tax_account if tax else None,
    )


def summarize(lines: Sequence[PricedLine]) -> InvoiceTotals:
    tax_by_account: dict[str, int] = defaultdict(int)
    for line in lines:
        if line.tax and line.tax_account:
            tax_by_account[line.tax_account] += line.tax
    return InvoiceTotals(
        gross_total=sum(line.gross for line in lines),
        discount_total=sum(line.discount for line in lines),
        tax_by_account=tuple(sorted(tax_by_account.items())),
    )
