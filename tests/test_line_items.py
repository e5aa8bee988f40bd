"""Tests for the line normalizer: sanitizing, packaging, quantity and warnings per line."""

import pytest

from invoice_normalizer.line_items import (
    NET_COST_MISSING,
    NET_COST_NEGATIVE,
    NET_COST_ZERO,
    QTY_CORRECTED,
    QTY_FROM_RAW_LINE,
    QTY_MISSING,
    QTY_OUT_OF_RANGE,
    QTY_ZERO,
    UNITS_PER_CASE_RESET,
    UPC_MISSING,
    UPC_SHORT,
    estimate_margin,
    margin_out_of_range,
    normalize_line,
    normalize_lines,
)
from invoice_normalizer.models import RawLineItem
from invoice_normalizer.vendor_rules import BEVERAGE_RULES, DEFAULT_RULES


def _line(**fields) -> RawLineItem:
    base = {"upc": "012345678905", "description": "SPRING WATER", "netCost": "12.00", "qtyOrdered": "3"}
    base.update(fields)
    return RawLineItem.model_validate(base)


# ---------------------------------------------------------------------------
# A clean line
# ---------------------------------------------------------------------------

class TestCleanLine:
    @pytest.fixture(autouse=True)
    def normalize(self):
        raw = _line(
            description="COKE 24/12OZ CAN",
            sku="A-100",
            lineAmount="36.00",
            rawLine="012345678905 COKE 24/12OZ CS000024 +0003 12.00 36.00",
        )
        self.item = normalize_line(raw, DEFAULT_RULES)

    def test_upc(self):
        assert self.item.upc == "012345678905"
        assert self.item.upc_normalized == "01234567890"

    def test_sku(self):
        assert self.item.sku == "A-100"
        assert self.item.sku_normalized == "100"

    def test_units_per_case(self):
        assert self.item.units_per_case == 24

    def test_master_case_size(self):
        assert self.item.master_case_size == 24

    def test_quantity(self):
        assert self.item.qty_ordered == 3

    def test_line_total(self):
        assert self.item.line_total == pytest.approx(36.00)

    def test_no_margin_warning(self):
        assert self.item.margin_warning is False

    def test_no_warnings(self):
        assert self.item.warnings == []


# ---------------------------------------------------------------------------
# Quantity handling
# ---------------------------------------------------------------------------

def test_explicit_zero_quantity_preserved():
    item = normalize_line(_line(qtyOrdered=0, netCost="10.00"), DEFAULT_RULES)
    assert item.qty_ordered == 0
    assert item.line_total == 0.0
    assert QTY_ZERO in item.warnings


def test_explicit_zero_not_raised_by_line_amount():
    item = normalize_line(_line(qtyOrdered="0", netCost="5.00", lineAmount="25.00"), DEFAULT_RULES)
    assert item.qty_ordered == 0
    assert QTY_CORRECTED not in item.warnings


def test_zero_line_amount_overrides_quantity():
    item = normalize_line(_line(qtyOrdered="4", netCost="10.00", lineAmount="0.00"), DEFAULT_RULES)
    assert item.qty_ordered == 0
    assert QTY_CORRECTED in item.warnings
    assert QTY_ZERO in item.warnings


def test_quantity_corrected_from_line_amount():
    item = normalize_line(_line(qtyOrdered="4", netCost="5.00", lineAmount="24.90"), DEFAULT_RULES)
    assert item.qty_ordered == 5
    assert item.line_total == pytest.approx(25.00)
    assert item.warnings == [QTY_CORRECTED]


def test_missing_quantity_uses_raw_line_hint():
    item = normalize_line(_line(qtyOrdered=None, rawLine="WATER CS000001 +0002 12.00"), DEFAULT_RULES)
    assert item.qty_ordered == 2
    assert QTY_FROM_RAW_LINE in item.warnings


def test_missing_quantity_without_hint():
    item = normalize_line(_line(qtyOrdered=None), DEFAULT_RULES)
    assert item.qty_ordered == 0
    assert QTY_MISSING in item.warnings
    assert QTY_ZERO in item.warnings


def test_missing_quantity_inferred_from_line_amount():
    item = normalize_line(_line(qtyOrdered=None, netCost="6.00", lineAmount="18.00"), DEFAULT_RULES)
    assert item.qty_ordered == 3
    assert QTY_CORRECTED in item.warnings


# ---------------------------------------------------------------------------
# Net cost and UPC warnings
# ---------------------------------------------------------------------------

def test_net_cost_missing():
    item = normalize_line(_line(netCost=None), DEFAULT_RULES)
    assert item.net_cost == 0.0
    assert NET_COST_MISSING in item.warnings
    assert item.margin_warning is True


def test_net_cost_zero():
    item = normalize_line(_line(netCost="0.00"), DEFAULT_RULES)
    assert NET_COST_ZERO in item.warnings


def test_net_cost_negative():
    item = normalize_line(_line(netCost="-3.00"), DEFAULT_RULES)
    assert item.net_cost == 0.0
    assert NET_COST_NEGATIVE in item.warnings


def test_net_cost_ocr_noise():
    item = normalize_line(_line(netCost="$l2.O0"), DEFAULT_RULES)
    assert item.net_cost == pytest.approx(12.00)


def test_upc_missing():
    item = normalize_line(_line(upc=None), DEFAULT_RULES)
    assert item.upc_normalized == ""
    assert UPC_MISSING in item.warnings


def test_upc_short():
    item = normalize_line(_line(upc="12345"), DEFAULT_RULES)
    assert UPC_SHORT in item.warnings


# ---------------------------------------------------------------------------
# Packaging
# ---------------------------------------------------------------------------

def test_units_reset_warns():
    item = normalize_line(_line(description="250/1 CUPS"), DEFAULT_RULES)
    assert item.units_per_case == 1
    assert UNITS_PER_CASE_RESET in item.warnings


def test_vendor_pack_token_applies_only_with_vendor_rules():
    raw = _line(description="BUD LIGHT 6PK 12OZ", rawLine="BUD LIGHT CS000001 +0003")
    assert normalize_line(raw, BEVERAGE_RULES).units_per_case == 4
    assert normalize_line(raw, DEFAULT_RULES).units_per_case == 1


def test_units_per_case_always_in_range():
    descriptions = ["0/6 MIX", "999/1 BULK", "COKE 24/12OZ", None, "WATER"]
    raw_lines = ["CS999999", "CS000000", None, "CS000012", "junk"]
    for desc in descriptions:
        for raw_line in raw_lines:
            item = normalize_line(_line(description=desc, rawLine=raw_line), BEVERAGE_RULES)
            assert 0 < item.units_per_case <= 200


# ---------------------------------------------------------------------------
# Margin
# ---------------------------------------------------------------------------

def test_estimate_margin():
    assert estimate_margin(12.00, 24) == pytest.approx(25.926, abs=0.01)


def test_estimate_margin_zero_cost():
    assert estimate_margin(0.0, 1) == 0.0


def test_margin_out_of_range():
    assert margin_out_of_range(5.0) is True
    assert margin_out_of_range(50.0) is False
    assert margin_out_of_range(85.0) is True


# ---------------------------------------------------------------------------
# normalize_lines
# ---------------------------------------------------------------------------

def test_normalize_lines_preserves_order():
    raws = [_line(description="A"), _line(description="B"), _line(description="C")]
    items = normalize_lines(raws, DEFAULT_RULES)
    assert [i.description for i in items] == ["A", "B", "C"]


def test_malformed_types_never_raise():
    raw = RawLineItem.model_validate({
        "upc": 12345678901234,
        "description": ["not", "a", "string"],
        "sku": {"x": 1},
        "netCost": "n/a",
        "lineAmount": True,
        "qtyOrdered": [3],
        "rawLine": 42,
    })
    item = normalize_line(raw, DEFAULT_RULES)
    assert item.qty_ordered == 3
    assert item.line_amount is None
    assert item.net_cost == 0.0


# ---------------------------------------------------------------------------
# Oversized numbers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("qty, code", [
    ("9" * 400, QTY_MISSING),
    (10 ** 400, QTY_OUT_OF_RANGE),
    (1e300, QTY_OUT_OF_RANGE),
    ("100000", QTY_OUT_OF_RANGE),
])
def test_oversized_quantity_flagged(qty, code):
    item = normalize_line(_line(qtyOrdered=qty), DEFAULT_RULES)
    assert item.qty_ordered == 0
    assert item.line_total == 0.0
    assert code in item.warnings
    assert QTY_ZERO in item.warnings


def test_oversized_quantity_falls_back_to_raw_line_hint():
    item = normalize_line(_line(qtyOrdered="100000", rawLine="WATER +0004 12.00"), DEFAULT_RULES)
    assert item.qty_ordered == 4
    assert item.warnings == [QTY_OUT_OF_RANGE, QTY_FROM_RAW_LINE]


def test_largest_quantity_kept():
    assert normalize_line(_line(qtyOrdered="99999"), DEFAULT_RULES).qty_ordered == 99999


def test_oversized_line_amount_keeps_quantity():
    item = normalize_line(_line(netCost="1.00", qtyOrdered="2", lineAmount="1" + "0" * 30), DEFAULT_RULES)
    assert item.qty_ordered == 2
    assert item.line_amount == 1e30
    assert item.line_total == 2.0
    assert QTY_CORRECTED not in item.warnings


def test_oversized_net_cost_keeps_line_total():
    item = normalize_line(_line(netCost="1" + "0" * 27, qtyOrdered="1"), DEFAULT_RULES)
    assert item.net_cost == 1e27
    assert item.line_total == 1e27


def test_net_cost_past_float_range_is_missing():
    item = normalize_line(_line(netCost="9" * 400), DEFAULT_RULES)
    assert item.net_cost == 0.0
    assert NET_COST_MISSING in item.warnings
