"""Rounding helpers for reported metric values."""

from __future__ import annotations

import math

DEFAULT_DECIMAL_PLACES = 4


def round_with_precision(val: float, precision: int) -> float:
    """Round ``val`` so that it has at most ``precision`` decimal places.

    A fractional part of exactly one half or more rounds up; anything
    else (including any negative fractional part) rounds down.
    """
    scale = math.pow(10, precision)
    digit = scale * val
    frac, _ = math.modf(digit)
    rounded = math.ceil(digit) if frac >= 0.5 else math.floor(digit)
    return rounded / scale


def round_metric(val: float) -> float:
    """Round ``val`` to the default four decimal places."""
    return round_with_precision(val, DEFAULT_DECIMAL_PLACES)