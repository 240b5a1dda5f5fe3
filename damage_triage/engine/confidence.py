"""Severity-weighted confidence aggregation."""

from typing import Any, Sequence

from ..models.damage import DamageRecord

NEUTRAL_CONFIDENCE = 0.5
SEVERITY_WEIGHT_STEP = 0.2

CONF_HIGH = 0.85
CONF_MEDIUM = 0.6


def severity_weight(severity: int) -> float:
    return 1 + SEVERITY_WEIGHT_STEP * (severity - 1)


def aggregate_confidence(items: Sequence[DamageRecord]) -> float:
    """
    Weighted mean of per-record confidence, heavier for severe findings.

    Args:
        items: Canonical damage records

    Returns:
        Aggregate confidence in [0, 1]; 0.5 for an empty sequence
    """
    numerator = 0.0
    denominator = 0.0
    for item in items:
        weight = severity_weight(item.severity)
        numerator += item.confidence * weight
        denominator += weight
    return numerator / denominator if denominator else NEUTRAL_CONFIDENCE


def confidence_band(p: Any, high: float = CONF_HIGH, medium: float = CONF_MEDIUM) -> str:
    """Bucket a confidence value into High / Medium / Low."""
    if isinstance(p, bool) or not isinstance(p, (int, float)):
        return "Unknown"
    if p >= high:
        return "High"
    if p >= medium:
        return "Medium"
    return "Low"
