"""
Scalar sanitizers for OCR-extracted invoice fields.

Each sanitizer returns a Sanitized(value, reason) pair: reason is None when the
value was parsed from the input, otherwise it names why the fallback was used.
Warnings are derived from the reason downstream.
"""
from __future__ import annotations

import math
import re
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, NamedTuple, Optional

MISSING = "missing"
UNPARSEABLE = "unparseable"

# Common OCR confusions in numeric columns: O/o read for 0, l/I read for 1
_OCR_DIGIT_MAP = str.maketrans({"O": "0", "o": "0", "l": "1", "I": "1"})

_MONEY_STRIP_RE = re.compile(r"[^\d.\-]")
_INT_STRIP_RE = re.compile(r"[^\d\-]")
_INT_RE = re.compile(r"^-?\d+")
_DEGENERATE = frozenset({"", "-", ".", "-.", ".-"})

_CENT = Decimal("0.01")
# Enough digits to quantize any finite float to cents
_DECIMAL_PREC = 400
# No real quantity runs past this many digits
_MAX_INT_DIGITS = 18


class Sanitized(NamedTuple):
    """A sanitized scalar, or the fallback plus the reason it was used."""
    value: Any
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _ocr_correct(text: str) -> str:
    return text.translate(_OCR_DIGIT_MAP)


def sanitize_money(value: Any, fallback: Optional[float] = 0.0) -> Sanitized:
    """Parse a money amount such as "$1,2O4.5O" -> 1204.5."""
    if _is_blank(value):
        return Sanitized(fallback, MISSING)
    if isinstance(value, bool):
        return Sanitized(fallback, UNPARSEABLE)
    if isinstance(value, (int, float)):
        if math.isfinite(value):
            return Sanitized(float(value))
        return Sanitized(fallback, UNPARSEABLE)

    cleaned = _MONEY_STRIP_RE.sub("", _ocr_correct(str(value)))
    if cleaned in _DEGENERATE:
        return Sanitized(fallback, UNPARSEABLE)
    try:
        number = float(cleaned)
    except ValueError:
        return Sanitized(fallback, UNPARSEABLE)
    if not math.isfinite(number):
        return Sanitized(fallback, UNPARSEABLE)
    return Sanitized(number)


def sanitize_int(value: Any, fallback: Optional[int] = 0) -> Sanitized:
    """
    Parse an integer quantity. A parsed 0 is kept as 0: an explicit zero quantity
    means the item was billed as not shipped and must never become the fallback.
    """
    if _is_blank(value):
        return Sanitized(fallback, MISSING)
    if isinstance(value, bool):
        return Sanitized(fallback, UNPARSEABLE)
    if isinstance(value, int):
        return Sanitized(value)
    if isinstance(value, float):
        if math.isfinite(value):
            return Sanitized(int(value))
        return Sanitized(fallback, UNPARSEABLE)

    text = _ocr_correct(str(value)).strip()
    # "3.00" is three, not three hundred
    text = text.split(".", 1)[0]
    cleaned = _INT_STRIP_RE.sub("", text)
    match = _INT_RE.match(cleaned)
    if not match or len(match.group(0).lstrip("-")) > _MAX_INT_DIGITS:
        return Sanitized(fallback, UNPARSEABLE)
    return Sanitized(int(match.group(0)))


def to_money(value: Any, fallback: Optional[float] = 0.0) -> Optional[float]:
    return sanitize_money(value, fallback).value


def to_int_preserve_zero(value: Any, fallback: Optional[int] = 0) -> Optional[int]:
    return sanitize_int(value, fallback).value


def round2(value: float) -> float:
    """Round half-up to cents (0.125 -> 0.13, unlike the built-in round). Non-finite values pass through."""
    if not math.isfinite(value):
        return float(value)
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PREC
        return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def round_half_up(value: float) -> int:
    """Round a finite value half-up to an integer. Raises ValueError for inf/nan."""
    if not math.isfinite(value):
        raise ValueError(f"cannot round {value!r} to an integer")
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PREC
        return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def digits_only(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    return re.sub(r"\D", "", str(value))


def clean_text(value: Any) -> Optional[str]:
    """Stringify a free-text field, collapsing whitespace. None/blank -> None."""
    if value is None:
        return None
    text = re.sub(r"\s+", " ", str(value)).strip()
    return text or None
