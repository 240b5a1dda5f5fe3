"""
Normalization of untrusted damage observations into canonical records.

This module is the only place raw model output is inspected. Every field
of every observation has a deterministic fallback, so normalization never
fails on element data and always returns one record per input element.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence

from ..models.damage import (
    BoxGeometry,
    DamageRecord,
    DamageType,
    Geometry,
    Part,
    PolygonGeometry,
    Zone,
)
from ..utils.errors import MalformedAssessmentError
from .numbers import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_SEVERITY = 2
DEFAULT_CONFIDENCE = 0.5
MIN_POLYGON_POINTS = 3
MAX_POLYGON_POINTS = 12

BASE_LABOR_HOURS: Dict[str, float] = {
    "bumper": 1.2,
    "door": 1.5,
    "fender": 1.2,
    "hood": 1.4,
    "quarter-panel": 2.0,
    "headlight": 0.6,
    "taillight": 0.6,
    "grille": 0.8,
    "mirror": 0.5,
    "windshield": 1.2,
    "wheel": 0.7,
    "trunk": 1.4,
}
DEFAULT_BASE_HOURS = 1.0

SEVERITY_MULTIPLIER: Dict[int, float] = {1: 0.5, 2: 0.8, 3: 1.0, 4: 1.4, 5: 1.8}

# Glass and lamp assemblies are replaced, not refinished
UNPAINTED_PARTS = frozenset({"windshield", "headlight", "taillight", "mirror"})


def _is_number(value: Any) -> bool:
    """True for finite ints and floats; bools and ints beyond float range are not."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _in_unit_range(value: Any) -> bool:
    return _is_number(value) and 0.0 <= value <= 1.0


def hours_for(part: str, severity: int) -> float:
    """
    Estimate repair hours for one item from its part and severity.

    Args:
        part: Part name (enum value or free text)
        severity: Severity on the 1-5 scale

    Returns:
        Labor hours rounded to 2 decimals
    """
    base = BASE_LABOR_HOURS.get(str(part), DEFAULT_BASE_HOURS)
    if severity <= 1:
        multiplier = SEVERITY_MULTIPLIER[1]
    elif severity >= 5:
        multiplier = SEVERITY_MULTIPLIER[5]
    else:
        multiplier = SEVERITY_MULTIPLIER[int(severity)]
    return round_half_up(base * multiplier, 2)


def needs_paint_for(damage_type: str, severity: int, part: str) -> bool:
    """
    Decide whether an item implies a paint/material charge.

    Args:
        damage_type: Damage type (enum value or free text)
        severity: Severity on the 1-5 scale
        part: Part name (enum value or free text)

    Returns:
        True if the item should be refinished
    """
    if str(part) in UNPAINTED_PARTS:
        return False
    text = str(damage_type)
    if "scratch" in text or "paint" in text:
        return True
    return severity >= 2


def _parse_severity(value: Any) -> int:
    if _is_number(value) and 1 <= value <= 5:
        return int(round_half_up(value))
    return DEFAULT_SEVERITY


def _parse_confidence(value: Any) -> float:
    if not _is_number(value):
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, float(value)))


def _parse_box(value: Any) -> Optional[BoxGeometry]:
    if not isinstance(value, (list, tuple)) or len(value) != 4:
        return None
    if not all(_in_unit_range(n) for n in value):
        return None
    x, y, w, h = (float(n) for n in value)
    return BoxGeometry(x=x, y=y, w=w, h=h)


def _parse_polygon(value: Any) -> Optional[PolygonGeometry]:
    if not isinstance(value, (list, tuple)):
        return None
    if not MIN_POLYGON_POINTS <= len(value) <= MAX_POLYGON_POINTS:
        return None
    points = []
    for point in value:
        if not isinstance(point, (list, tuple)) or len(point) != 2:
            return None
        if not all(_in_unit_range(n) for n in point):
            return None
        points.append((float(point[0]), float(point[1])))
    return PolygonGeometry(points=tuple(points))


def parse_geometry(raw: Dict[str, Any]) -> Optional[Geometry]:
    """
    Pick the geometry for one observation.

    A valid ``polygon_rel`` wins over a valid ``bbox_rel``; anything that
    fails the arity or bounds check is dropped, never clamped.

    Args:
        raw: Raw observation dict

    Returns:
        PolygonGeometry, BoxGeometry, or None
    """
    polygon = _parse_polygon(raw.get("polygon_rel"))
    if polygon is not None:
        return polygon

    box = _parse_box(raw.get("bbox_rel"))
    if box is not None:
        return box

    if raw.get("polygon_rel") is not None or raw.get("bbox_rel") is not None:
        logger.debug("Dropped out-of-bounds or malformed geometry")
    return None


def normalize_item(raw: Any) -> DamageRecord:
    """
    Build one canonical DamageRecord from an arbitrary observation.

    Args:
        raw: Observation of unknown shape; non-dicts are treated as empty

    Returns:
        Fully valid DamageRecord
    """
    data: Dict[str, Any] = raw if isinstance(raw, dict) else {}

    zone = Zone.parse(data.get("zone"))
    part = Part.parse(data.get("part"))
    damage_type = DamageType.parse(data.get("damage_type"))
    severity = _parse_severity(data.get("severity"))
    confidence = _parse_confidence(data.get("confidence"))

    hours = data.get("est_labor_hours")
    if _is_number(hours) and hours >= 0:
        est_labor_hours = float(hours)
    else:
        est_labor_hours = hours_for(part.value, severity)

    paint = data.get("needs_paint")
    if isinstance(paint, bool):
        needs_paint = paint
    else:
        needs_paint = needs_paint_for(damage_type.value, severity, part.value)

    likely = data.get("likely_parts")
    likely_parts = tuple(str(p) for p in likely) if isinstance(likely, list) else ()

    return DamageRecord(
        zone=zone,
        part=part,
        damage_type=damage_type,
        severity=severity,
        confidence=confidence,
        est_labor_hours=est_labor_hours,
        needs_paint=needs_paint,
        likely_parts=likely_parts,
        geometry=parse_geometry(data),
    )


def normalize_items(raw_items: Sequence[Any]) -> List[DamageRecord]:
    """
    Normalize a sequence of candidate observations.

    Args:
        raw_items: List or tuple of observations of unknown shape

    Returns:
        One DamageRecord per input element, in the same order

    Raises:
        MalformedAssessmentError: If raw_items is not a list or tuple
    """
    if not isinstance(raw_items, (list, tuple)):
        raise MalformedAssessmentError.not_a_sequence(raw_items)

    records = [normalize_item(raw) for raw in raw_items]
    logger.debug(f"Normalized {len(records)} damage observations")
    return records
