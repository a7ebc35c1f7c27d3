"""Shared utility functions: rounding, rupee formatting and bracket lookups."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence, Tuple, Union

Number = Union[int, float]

# ── Rounding ──────────────────────────────────────────────────────────────
# ROUND_HALF_UP on Decimal rounds ties away from zero, for both signs.

_WHOLE = Decimal("1")
_CENTS = Decimal("0.01")


def round_rupee(value: Number) -> float:
    """Round to the nearest whole rupee, ties away from zero.

    ``round_rupee(2.5) == 3.0`` and ``round_rupee(-2.5) == -3.0``, unlike
    the built-in ``round`` which rounds ties to even.
    """
    return float(Decimal(repr(value)).quantize(_WHOLE, rounding=ROUND_HALF_UP))


def round_percent(value: Number) -> float:
    """Round a percentage to 2 decimal places, ties away from zero."""
    return float(Decimal(repr(value)).quantize(_CENTS, rounding=ROUND_HALF_UP))


def percentage_of(part: Number, whole: Number) -> float:
    """``part`` as a percentage of ``whole`` (2 dp); 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0.0
    return round_percent(part / whole * 100)



def format_inr(amount: Number) -> str:
    """Whole rupees with Indian digit grouping: ``format_inr(150000) == "₹1,50,000"``."""
    digits = str(int(round_rupee(abs(amount))))
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    sign = "-" if amount < 0 else ""
    return sign + "₹" + ",".join(groups + [tail])


# ── Bracket helpers ───────────────────────────────────────────────────────

def band_rate(amount: Number, bands: Sequence[Tuple[float, float]]) -> float:
    """Return the rate of the highest threshold *amount* strictly exceeds.

    *bands* is a sequence of ``(threshold, rate)`` sorted highest first;
    returns 0.0 when no threshold is exceeded.
    """
    for threshold, rate in bands:
        if amount > threshold:
            return rate
    return 0.0
