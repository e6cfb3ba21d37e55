"""
Rounding helpers for published percentages and averages.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float, places: int = 0) -> float:
    """
    Round halves away from zero instead of to the nearest even digit.
    """

    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def ratio(numerator: int, denominator: int, *, places: int = 2) -> float:
    if denominator <= 0:
        return 0.0
    return round_half_up(numerator / denominator, places)
