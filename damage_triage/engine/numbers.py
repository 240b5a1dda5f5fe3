"""Rounding and formatting helpers shared by the estimator and decision engine."""

import math
import sys


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round half away from negative infinity.

    ``round()`` uses banker's rounding; cost bands and percentages must
    round 0.5 upwards so identical inputs always land on the same integer.
    Values too large to scale, and non-finite values, are returned unchanged.
    """
    factor = 10 ** digits
    scaled = value * factor + 0.5
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled) / factor


def round_to_int(value: float) -> int:
    """Round half up to an int; infinities saturate at the float range, NaN is 0."""
    if math.isnan(value):
        return 0
    if math.isinf(value):
        value = sys.float_info.max if value > 0 else -sys.float_info.max
    return int(round_half_up(value))


def format_amount(value: float) -> str:
    """Render a configured rate or threshold without a spurious ``.0``."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_percent(fraction: float) -> str:
    return f"{round_to_int(fraction * 100)}%"
