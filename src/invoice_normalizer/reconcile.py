"""
Total reconciliation with a single corrective extraction.

    UNVERIFIED --match or no printed total--> FINAL (VERIFIED when matched)
    UNVERIFIED --mismatch--> RETRY_PENDING --one corrective call--> FINAL

The corrective call happens at most once; there is no loop to bound.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional

from dateutil import parser as date_parser

from .exceptions import ExtractionError
from .line_items import normalize_lines
from .models import InvoiceResult, RawInvoice
from .sanitize import clean_text, round2, sanitize_money
from .vendor_rules import VendorRuleRegistry, default_registry

logger = logging.getLogger(__name__)

TOTAL_TOLERANCE = Decimal("0.05")

# Invoice warning codes
INVOICE_TOTAL_MISSING = "INVOICE_TOTAL_MISSING"
TOTAL_MISMATCH_NEEDS_REVIEW = "TOTAL_MISMATCH_NEEDS_REVIEW"
RETRY_FAILED = "RETRY_FAILED"
NO_LINE_ITEMS = "NO_LINE_ITEMS"
INVOICE_DATE_UNPARSEABLE = "INVOICE_DATE_UNPARSEABLE"

_DATE_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))

# (printed_total, computed_total) -> corrected extraction payload
Corrector = Callable[[float, float], Any]


class ReconcileState(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    RETRY_PENDING = "retry_pending"
    FINAL = "final"


def totals_match(grand_total: float, printed_total: Optional[float]) -> bool:
    if printed_total is None or not math.isfinite(grand_total) or not math.isfinite(printed_total):
        return False
    diff = Decimal(str(round2(grand_total))) - Decimal(str(round2(printed_total)))
    return abs(diff) <= TOTAL_TOLERANCE


def normalize_invoice_date(value: Any) -> tuple[Optional[str], bool]:
    """ISO date string when parseable; otherwise the cleaned original. Second item: parsed ok."""
    text = clean_text(value)
    if text is None:
        return None, True
    try:
        # US invoices: month first. Two different defaults expose any part the text left out.
        first = date_parser.parse(text, dayfirst=False, default=_DATE_DEFAULTS[0])
        second = date_parser.parse(text, dayfirst=False, default=_DATE_DEFAULTS[1])
    except (ValueError, TypeError, OverflowError):
        return text, False
    if first.date() != second.date():
        return text, False
    return first.date().isoformat(), True


def normalize_invoice(
    payload: Any,
    registry: Optional[VendorRuleRegistry] = None,
) -> InvoiceResult:
    """Run every line of one extraction payload through the normalizer. Never raises on bad content."""
    registry = registry or default_registry()
    raw = RawInvoice.from_payload(payload)

    vendor_name = clean_text(raw.vendor_name)
    key, rules = registry.resolve(vendor_name)
    items = normalize_lines(raw.line_items(), rules)
    invoice_date, date_ok = normalize_invoice_date(raw.invoice_date)

    result = InvoiceResult(
        vendor_name=vendor_name,
        vendor_key=key,
        invoice_date=invoice_date,
        invoice_total=sanitize_money(raw.invoice_total, fallback=None).value,
        grand_total=round2(sum(item.line_total for item in items)),
        items=items,
    )
    if not items:
        result.add_warning(NO_LINE_ITEMS)
    if not date_ok:
        result.add_warning(INVOICE_DATE_UNPARSEABLE)
    return result


def _finalize_first_pass(result: InvoiceResult) -> tuple[ReconcileState, InvoiceResult]:
    if result.invoice_total is None:
        result.total_matches = False
        result.add_warning(INVOICE_TOTAL_MISSING)
        return ReconcileState.FINAL, result
    if totals_match(result.grand_total, result.invoice_total):
        result.total_matches = True
        return ReconcileState.VERIFIED, result
    return ReconcileState.RETRY_PENDING, result


def _retry(
    first: InvoiceResult,
    corrector: Corrector,
    registry: VendorRuleRegistry,
) -> InvoiceResult:
    printed_total = first.invoice_total
    logger.info(
        "Total mismatch for %s: computed %.2f vs printed %.2f; requesting correction",
        first.vendor_key or "unknown vendor",
        first.grand_total,
        printed_total,
    )
    try:
        payload = corrector(printed_total, first.grand_total)
        if not isinstance(payload, Mapping):
            raise ExtractionError("Corrective extraction is not an object", stage="correct")
        second = normalize_invoice(payload, registry)
    except Exception:
        logger.warning("Corrective extraction failed; keeping first pass", exc_info=True)
        first.total_matches = False
        first.retry_attempted = True
        first.add_warning(TOTAL_MISMATCH_NEEDS_REVIEW)
        first.add_warning(RETRY_FAILED)
        return first

    second.retry_attempted = True
    if second.invoice_total is None:
        # The corrected response may omit the header; the printed total has not changed
        second.invoice_total = printed_total

    second.total_matches = totals_match(second.grand_total, second.invoice_total)
    if second.total_matches:
        logger.info("Corrected extraction matches printed total %.2f", second.invoice_total)
    else:
        logger.warning(
            "Total still mismatched after correction: computed %.2f vs printed %.2f",
            second.grand_total,
            second.invoice_total,
        )
        second.add_warning(TOTAL_MISMATCH_NEEDS_REVIEW)
    return second


def reconcile(
    first_payload: Any,
    corrector: Optional[Corrector] = None,
    registry: Optional[VendorRuleRegistry] = None,
) -> InvoiceResult:
    """
    Normalize the first extraction and reconcile its total against the printed total.
    On mismatch, call corrector once and return the corrected pass as final.
    Without a corrector a mismatch is reported for review.
    """
    registry = registry or default_registry()
    first = normalize_invoice(first_payload, registry)

    state, result = _finalize_first_pass(first)
    if state is not ReconcileState.RETRY_PENDING:
        logger.debug("Reconciled %s: %s", result.vendor_key, state.value)
        return result

    if corrector is None:
        result.add_warning(TOTAL_MISMATCH_NEEDS_REVIEW)
        return result

    return _retry(first, corrector, registry)
