"""
Quantity correction from the extended line amount.

OCR quantities are unreliable; the extended amount divided by the case cost
usually is not. A near-zero extended amount means the line was not shipped.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from .sanitize import round_half_up

logger = logging.getLogger(__name__)

ZERO_AMOUNT_THRESHOLD = 0.005
MAX_INFERRED_QTY = 9999
ABS_TOLERANCE = 0.05
REL_TOLERANCE = 0.01


@dataclass(frozen=True)
class QuantityCorrection:
    qty: int
    corrected: bool
    reason: Optional[str] = None


def correct_quantity(
    qty: int,
    net_cost: float,
    line_amount: Optional[float],
    explicit_zero: bool = False,
) -> QuantityCorrection:
    """
    Best-effort quantity refinement. Never raises.
    explicit_zero: the source stated 0; only a zero line amount may confirm it, nothing raises it.
    """
    if line_amount is not None and abs(line_amount) < ZERO_AMOUNT_THRESHOLD:
        return QuantityCorrection(0, qty != 0, "zero_line_amount" if qty != 0 else None)

    if explicit_zero and qty == 0:
        return QuantityCorrection(qty, False)

    if line_amount is None or not net_cost or net_cost <= 0:
        return QuantityCorrection(qty, False)

    ratio = line_amount / net_cost
    if not math.isfinite(ratio) or ratio < 0 or ratio > MAX_INFERRED_QTY + 1:
        return QuantityCorrection(qty, False)

    inferred = round_half_up(ratio)
    if inferred > MAX_INFERRED_QTY:
        return QuantityCorrection(qty, False)

    tolerance = max(ABS_TOLERANCE, abs(line_amount) * REL_TOLERANCE)
    if abs(inferred * net_cost - line_amount) > tolerance:
        return QuantityCorrection(qty, False)

    if inferred == qty:
        return QuantityCorrection(qty, False)

    logger.debug(
        "Quantity %s -> %s (line amount %.2f / net cost %.2f)", qty, inferred, line_amount, net_cost
    )
    return QuantityCorrection(inferred, True, "inferred_from_line_amount")
