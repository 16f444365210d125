"""Three-way match rules over PO line snapshots (no database)."""

from uuid import uuid4

import pytest

from ledger_kernel.exceptions import ThreeWayMatchError, ValidationError
from ledger_modules.purchasing.matching import (
    PoLineSnapshot,
    match_bill_lines,
    price_variance_bps,
    validate_bill_lines,
    within_tolerance,
)
from ledger_modules.purchasing.models import BillLineInput

ITEM = uuid4()
PO = uuid4()


def _po_line(qty_ordered=10, qty_received=10, qty_billed=0, unit_cost=1000):
    return {ITEM: PoLineSnapshot(ITEM, qty_ordered, qty_received, qty_billed, unit_cost)}


class TestQuantityMatch:
    def test_bill_up_to_received(self):
        assert match_bill_lines(PO, _po_line(), [BillLineInput(ITEM, 10, 1000)], 500) == ()

    def test_bill_beyond_received_rejected(self):
        with pytest.raises(ThreeWayMatchError) as exc_info:
            match_bill_lines(PO, _po_line(qty_received=4), [BillLineInput(ITEM, 5, 1000)], 500)
        assert exc_info.value.code == "THREE_WAY_MATCH_FAILED"

    def test_previously_billed_quantity_counts(self):
        lines = _po_line(qty_received=10, qty_billed=8)
        with pytest.raises(ThreeWayMatchError):
            match_bill_lines(PO, lines, [BillLineInput(ITEM, 3, 1000)], 500)

    def test_item_not_on_order(self):
        with pytest.raises(ThreeWayMatchError):
            match_bill_lines(PO, _po_line(), [BillLineInput(uuid4(), 1, 1000)], 500)


class TestPriceTolerance:
    @pytest.mark.parametrize(
        "unit_price, expected",
        [(1050, True), (950, True), (1051, False), (949, False)],
    )
    def test_five_percent_boundary(self, unit_price, expected):
        assert within_tolerance(unit_price, 1000, 500) is expected

    def test_variance_is_a_warning_not_an_error(self):
        warnings = match_bill_lines(PO, _po_line(), [BillLineInput(ITEM, 1, 1200)], 500)
        assert len(warnings) == 1
        assert "2000 bps" in warnings[0]

    def test_zero_po_cost(self):
        assert price_variance_bps(100, 0) is None
        assert within_tolerance(0, 0, 500)
        assert not within_tolerance(1, 0, 500)


class TestLineValidation:
    def test_empty_bill(self):
        with pytest.raises(ValidationError):
            validate_bill_lines([])

    def test_repeated_item(self):
        with pytest.raises(ValidationError):
            validate_bill_lines([BillLineInput(ITEM, 1, 10), BillLineInput(ITEM, 2, 10)])

    @pytest.mark.parametrize("quantity, unit_price", [(0, 10), (-1, 10), (1, -1)])
    def test_bad_quantity_or_price(self, quantity, unit_price):
        with pytest.raises(ValidationError):
            validate_bill_lines([BillLineInput(ITEM, quantity, unit_price)])
