"""
Line normalizer: raw extracted line -> validated NormalizedLineItem plus warning codes.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from .models import NormalizedLineItem, RawLineItem
from .quantity import correct_quantity
from .sanitize import clean_text, round2, sanitize_money
from .uom import extract_master_case, extract_qty_hint
from .vendor_rules import NEGATIVE, OUT_OF_RANGE, UPC_MAX_DIGITS, VendorRuleSet

logger = logging.getLogger(__name__)

# Line warning codes
UPC_MISSING = "UPC_MISSING"
UPC_SHORT = "UPC_SHORT"
QTY_MISSING = "QTY_MISSING"
QTY_OUT_OF_RANGE = "QTY_OUT_OF_RANGE"
QTY_FROM_RAW_LINE = "QTY_FROM_RAW_LINE"
QTY_ZERO = "QTY_ZERO"
QTY_CORRECTED = "QTY_CORRECTED"
NET_COST_MISSING = "NET_COST_MISSING"
NET_COST_ZERO = "NET_COST_ZERO"
NET_COST_NEGATIVE = "NET_COST_NEGATIVE"
UNITS_PER_CASE_RESET = "UNITS_PER_CASE_RESET"

RETAIL_MARKUP = 1.35
MARGIN_LOW_PCT = 10.0
MARGIN_HIGH_PCT = 80.0


def estimate_margin(net_cost: float, units_per_case: int, markup: float = RETAIL_MARKUP) -> float:
    """Rough margin % assuming retail = unit cost x markup. Plausibility check only."""
    unit_cost = net_cost / units_per_case if units_per_case > 0 else 0.0
    retail = unit_cost * markup
    if retail <= 0:
        return 0.0
    return (retail - unit_cost) / retail * 100


def margin_out_of_range(margin: float) -> bool:
    return margin < MARGIN_LOW_PCT or margin > MARGIN_HIGH_PCT


def normalize_line(raw: RawLineItem, rules: VendorRuleSet) -> NormalizedLineItem:
    warnings: list[str] = []

    def warn(code: str) -> None:
        if code not in warnings:
            warnings.append(code)

    raw_line = clean_text(raw.raw_line)
    description = clean_text(raw.description)

    upc_normalized = rules.normalize_upc(raw.upc)
    if not upc_normalized:
        warn(UPC_MISSING)
    elif len(upc_normalized) < UPC_MAX_DIGITS:
        warn(UPC_SHORT)

    sku_normalized = rules.normalize_sku(raw.sku)

    net_cost_result = rules.normalize_net_cost(raw.net_cost)
    net_cost = float(net_cost_result.value or 0.0)
    if net_cost_result.reason == NEGATIVE:
        warn(NET_COST_NEGATIVE)
    elif not net_cost_result.ok:
        warn(NET_COST_MISSING)
    elif net_cost == 0:
        warn(NET_COST_ZERO)

    line_amount: Optional[float] = sanitize_money(raw.line_amount, fallback=None).value

    units = rules.normalize_units_per_case(description, raw_line)
    if units.reset:
        warn(UNITS_PER_CASE_RESET)
        logger.debug("Units per case reset to 1 (source %s) for %r", units.source, description)

    qty_result = rules.normalize_qty(raw.qty_ordered)
    qty = int(qty_result.value or 0)
    explicit_zero = qty_result.ok and qty == 0
    if qty_result.reason == OUT_OF_RANGE:
        warn(QTY_OUT_OF_RANGE)
    if not qty_result.ok:
        hint = extract_qty_hint(raw_line)
        if hint is not None:
            qty = hint
            warn(QTY_FROM_RAW_LINE)
        elif qty_result.reason != OUT_OF_RANGE:
            warn(QTY_MISSING)

    correction = correct_quantity(qty, net_cost, line_amount, explicit_zero=explicit_zero)
    if correction.corrected:
        qty = correction.qty
        warn(QTY_CORRECTED)

    if qty == 0:
        warn(QTY_ZERO)

    margin = estimate_margin(net_cost, units.value)

    return NormalizedLineItem(
        upc=clean_text(raw.upc),
        upc_normalized=upc_normalized,
        description=description,
        sku=clean_text(raw.sku),
        sku_normalized=sku_normalized,
        net_cost=net_cost,
        line_amount=line_amount,
        raw_line=raw_line,
        master_case_size=extract_master_case(raw_line),
        units_per_case=units.value,
        qty_ordered=qty,
        line_total=round2(net_cost * qty),
        margin_warning=margin_out_of_range(margin),
        warnings=warnings,
    )


def normalize_lines(items: Iterable[RawLineItem], rules: VendorRuleSet) -> list[NormalizedLineItem]:
    return [normalize_line(raw, rules) for raw in items]
