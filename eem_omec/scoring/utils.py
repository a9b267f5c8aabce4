"""
Decimal Utilities
eem_omec/scoring/utils.py

Precision-safe decimal math for scoring. Scores are summed as Decimal so
that breakdown totals add up to the overall total exactly.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def parse_number(value: Any) -> Optional[Decimal]:
    """
    Parse a rubric or answer value as a finite number.

    Returns None for anything that is not a finite float ("", "abc",
    "nan", "inf", None). Booleans are not numbers here.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return Decimal(str(number))


def clamp(
    value: Decimal,
    min_val: Decimal = ZERO,
    max_val: Decimal = HUNDRED,
) -> Decimal:
    """Clamp value to range [min_val, max_val]."""
    return max(min_val, min(max_val, value))


def percentage(score: Decimal, max_score: Decimal) -> Decimal:
    """
    score / max_score * 100, rounded half-up to 2 places.

    Returns 0.00 when max_score is not positive.
    """
    if max_score <= 0:
        return Decimal("0.00")
    pct = (score / max_score * HUNDRED).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return clamp(pct)
