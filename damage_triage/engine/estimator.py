"""Heuristic repair cost rollup over canonical damage records."""

import logging
from typing import Sequence, Set

from ..models.damage import DamageRecord, Zone
from ..models.decision import Estimate
from ..utils.config import RatesConfig
from .numbers import format_amount, round_to_int

logger = logging.getLogger(__name__)

PARTS_ALLOWANCE = 250
SEVERE_THRESHOLD = 4
BASE_VARIANCE = 0.15
SEVERE_VARIANCE = 0.25


def build_assumptions(rates: RatesConfig) -> tuple:
    return (
        f"Labor ${format_amount(rates.labor_rate)}/hr",
        f"Paint/material ${format_amount(rates.paint_cost)}/panel/zone",
        "Parts allowance (midpoint)",
        "Visual-only estimate; subject to teardown",
    )


def estimate_from_items(items: Sequence[DamageRecord], rates: RatesConfig) -> Estimate:
    """
    Compute a cost band from canonical damage records.

    Labor is charged per item, paint once per distinct zone, and a parts
    allowance per named part (or one unit for a severe item with none).

    Args:
        items: Canonical damage records
        rates: Configured labor rate and paint/material cost

    Returns:
        Estimate with cost_low <= cost_high
    """
    labor = 0.0
    paint = 0.0
    parts = 0.0
    painted_zones: Set[Zone] = set()

    for item in items:
        labor += item.est_labor_hours * rates.labor_rate

        if item.needs_paint and item.zone not in painted_zones:
            paint += rates.paint_cost
            painted_zones.add(item.zone)

        if item.severity >= SEVERE_THRESHOLD or item.likely_parts:
            parts += PARTS_ALLOWANCE * max(1, len(item.likely_parts))

    subtotal = labor + paint + parts
    severe = any(item.severity >= SEVERE_THRESHOLD for item in items)
    variance = SEVERE_VARIANCE if severe else BASE_VARIANCE

    estimate = Estimate(
        cost_low=round_to_int(subtotal * (1 - variance)),
        cost_high=round_to_int(subtotal * (1 + variance)),
        assumptions=build_assumptions(rates),
    )

    logger.info(
        f"Estimate: labor={labor:.2f}, paint={paint:.2f}, parts={parts:.2f}, "
        f"variance={variance}, band=${estimate.cost_low}-${estimate.cost_high}"
    )
    return estimate
