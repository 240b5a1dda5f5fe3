"""Deterministic normalization, estimation and routing engine."""

from .normalizer import normalize_items, hours_for, needs_paint_for, parse_geometry
from .estimator import estimate_from_items
from .confidence import aggregate_confidence, confidence_band
from .decision import route_decision, max_severity

__all__ = [
    'normalize_items',
    'hours_for',
    'needs_paint_for',
    'parse_geometry',
    'estimate_from_items',
    'aggregate_confidence',
    'confidence_band',
    'route_decision',
    'max_severity'
]
