"""
Case-pack signals from invoice text and the units-per-case decision procedure.

Signals:
- Case code in the raw OCR line: "CS" + 6 digits (CS000024 -> 24)
- Quantity hint in the raw OCR line: "+" + 4 digits (+0003 -> 3)
- Pack fraction in the description: "X/Y" (24/12OZ -> 24 sub-units per case)

Units per case, first match wins:
1. Pack fraction in the description
2. Vendor pack token (e.g. 6PK) while the case code is 1 -> vendor multiplier
3. Case code greater than 1
4. Default 1
Anything outside 1..200 is reset to 1. Packaging ambiguity never blocks a line.
"""
from __future__ import annotations

import re
from typing import NamedTuple, Optional, Sequence

MAX_UNITS_PER_CASE = 200

MASTER_CASE_RE = re.compile(r"CS(\d{6})")
QTY_HINT_RE = re.compile(r"\+(\d{4})")
PACK_FRACTION_RE = re.compile(r"(\d+)\s*/\s*(\d+)", re.IGNORECASE)

PackTokens = Sequence[tuple[str, int]]


class UnitsPerCase(NamedTuple):
    value: int
    source: str
    reset: bool = False


def extract_master_case(raw_line: str | None) -> Optional[int]:
    """Case-code value from the raw line, or None. Informational unless used for units per case."""
    if not raw_line:
        return None
    m = MASTER_CASE_RE.search(str(raw_line))
    return int(m.group(1)) if m else None


def extract_qty_hint(raw_line: str | None) -> Optional[int]:
    """Quantity hint from the raw line. A secondary signal only."""
    if not raw_line:
        return None
    m = QTY_HINT_RE.search(str(raw_line))
    return int(m.group(1)) if m else None


def extract_pack_fraction(description: str | None) -> Optional[int]:
    """X from the first X/Y pair in the description (X sub-units per shipped unit)."""
    if not description:
        return None
    m = PACK_FRACTION_RE.search(str(description).upper())
    return int(m.group(1)) if m else None


def validate_units_per_case(units) -> bool:
    if isinstance(units, bool) or not isinstance(units, int):
        return False
    return 0 < units <= MAX_UNITS_PER_CASE


def _candidate_units(
    description: str | None,
    raw_line: str | None,
    pack_token_multipliers: PackTokens,
) -> tuple[int, str]:
    desc = str(description).upper() if description else ""

    fraction = extract_pack_fraction(desc)
    if fraction is not None:
        return fraction, "pack_fraction"

    case_code = extract_master_case(raw_line)
    case_value = case_code if case_code is not None else 1

    if case_value == 1:
        for token, multiplier in pack_token_multipliers:
            if token.upper() in desc:
                return multiplier, f"pack_token:{token}"

    if case_value > 1:
        return case_value, "case_code"

    return 1, "default"


def resolve_units_per_case_detail(
    description: str | None,
    raw_line: str | None,
    pack_token_multipliers: PackTokens = (),
) -> UnitsPerCase:
    units, source = _candidate_units(description, raw_line, pack_token_multipliers)
    if not validate_units_per_case(units):
        return UnitsPerCase(1, source, reset=True)
    return UnitsPerCase(units, source)


def resolve_units_per_case(
    description: str | None,
    raw_line: str | None,
    pack_token_multipliers: PackTokens = (),
) -> int:
    return resolve_units_per_case_detail(description, raw_line, pack_token_multipliers).value
