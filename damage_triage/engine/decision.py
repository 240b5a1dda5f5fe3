"""Routing decision engine: AUTO-APPROVE, SPECIALIST or INVESTIGATE."""

import logging
from typing import List, Sequence

from ..models.damage import DamageRecord
from ..models.decision import AutoApprove, Decision, Estimate, Investigate, Specialist
from ..utils.config import RoutingThresholds
from .confidence import aggregate_confidence
from .numbers import format_amount, format_percent

logger = logging.getLogger(__name__)


def max_severity(items: Sequence[DamageRecord]) -> int:
    """Highest severity in the set, 0 when there are no findings."""
    return max((item.severity for item in items), default=0)


def route_decision(
    items: Sequence[DamageRecord],
    estimate: Estimate,
    thresholds: RoutingThresholds
) -> Decision:
    """
    Route an assessment to exactly one outcome.

    AUTO-APPROVE is checked first and needs all three bounds; SPECIALIST is
    checked next and needs either bound; INVESTIGATE is the fallback.
    Threshold consistency is not checked here, precedence alone resolves
    overlapping bands.

    Args:
        items: Canonical damage records
        estimate: Estimate computed from the same records
        thresholds: Routing thresholds

    Returns:
        AutoApprove, Specialist or Investigate decision
    """
    max_sev = max_severity(items)
    agg = aggregate_confidence(items)
    cost_high = estimate.cost_high

    if (
        max_sev <= thresholds.auto_max_severity
        and cost_high <= thresholds.auto_max_cost
        and agg >= thresholds.auto_min_confidence
    ):
        decision: Decision = AutoApprove(reasons=(
            f"severity ≤ {format_amount(thresholds.auto_max_severity)}",
            f"cost_high ≤ ${format_amount(thresholds.auto_max_cost)}",
            f"agg_conf ≥ {format_percent(thresholds.auto_min_confidence)}",
        ))
    elif (
        max_sev >= thresholds.specialist_min_severity
        or cost_high >= thresholds.specialist_min_cost
    ):
        reasons: List[str] = []
        if max_sev >= thresholds.specialist_min_severity:
            reasons.append(f"severity ≥ {format_amount(thresholds.specialist_min_severity)}")
        if cost_high >= thresholds.specialist_min_cost:
            reasons.append(f"cost_high ≥ ${format_amount(thresholds.specialist_min_cost)}")
        decision = Specialist(reasons=tuple(reasons))
    else:
        decision = Investigate(reasons=(
            f"agg_conf {format_percent(agg)}",
            f"max_severity {max_sev}",
            f"cost_high ${cost_high}",
        ))

    logger.info(
        f"Decision {decision.label.value}: max_severity={max_sev}, "
        f"agg_conf={agg:.3f}, cost_high={cost_high}"
    )
    return decision
