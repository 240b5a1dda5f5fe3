"""Damage record data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class _LabelEnum(str, Enum):
    """String enum whose unrecognized inputs collapse to UNKNOWN."""

    @classmethod
    def parse(cls, value: Any):
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        return cls.UNKNOWN

    def __str__(self) -> str:
        return self.value


class Zone(_LabelEnum):
    """Coarse body-relative location of a damage observation."""
    FRONT = "front"
    FRONT_LEFT = "front-left"
    LEFT = "left"
    REAR_LEFT = "rear-left"
    REAR = "rear"
    REAR_RIGHT = "rear-right"
    RIGHT = "right"
    FRONT_RIGHT = "front-right"
    ROOF = "roof"
    UNKNOWN = "unknown"


class Part(_LabelEnum):
    """Vehicle part affected by a damage observation."""
    BUMPER = "bumper"
    FENDER = "fender"
    DOOR = "door"
    HOOD = "hood"
    TRUNK = "trunk"
    QUARTER_PANEL = "quarter-panel"
    HEADLIGHT = "headlight"
    TAILLIGHT = "taillight"
    GRILLE = "grille"
    MIRROR = "mirror"
    WINDSHIELD = "windshield"
    WHEEL = "wheel"
    UNKNOWN = "unknown"


class DamageType(_LabelEnum):
    """Kind of damage observed."""
    DENT = "dent"
    SCRATCH = "scratch"
    CRACK = "crack"
    PAINT_CHIPS = "paint-chips"
    BROKEN = "broken"
    BENT = "bent"
    MISSING = "missing"
    GLASS_CRACK = "glass-crack"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BoxGeometry:
    """
    Axis-aligned box in image-relative coordinates.

    Attributes:
        x: Left edge (0.0 to 1.0)
        y: Top edge (0.0 to 1.0)
        w: Width (0.0 to 1.0)
        h: Height (0.0 to 1.0)
    """
    x: float
    y: float
    w: float
    h: float

    def to_dict(self) -> Dict[str, Any]:
        return {"bbox_rel": [self.x, self.y, self.w, self.h]}


@dataclass(frozen=True)
class PolygonGeometry:
    """
    Outline of 3 to 12 vertices in image-relative coordinates.

    Attributes:
        points: Ordered (x, y) vertices, each coordinate in [0, 1]
    """
    points: Tuple[Tuple[float, float], ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"polygon_rel": [[x, y] for x, y in self.points]}


Geometry = Union[BoxGeometry, PolygonGeometry]


@dataclass(frozen=True)
class DamageRecord:
    """
    A single canonical damage observation.

    Every field is guaranteed valid once constructed by the normalizer;
    downstream stages never re-validate.

    Attributes:
        zone: Body zone, UNKNOWN when not recognized
        part: Vehicle part, UNKNOWN when not recognized
        damage_type: Damage kind, UNKNOWN when not recognized
        severity: Integer 1 (cosmetic) to 5 (structural)
        confidence: Model certainty for this observation (0.0 to 1.0)
        est_labor_hours: Repair time for this item alone
        needs_paint: Whether this item implies a paint/material charge
        likely_parts: Free-text replacement part candidates
        geometry: Optional box or polygon, never both
    """
    zone: Zone
    part: Part
    damage_type: DamageType
    severity: int
    confidence: float
    est_labor_hours: float
    needs_paint: bool
    likely_parts: Tuple[str, ...] = field(default_factory=tuple)
    geometry: Optional[Geometry] = None

    def describe(self) -> str:
        """One-line description used in the damage summary."""
        return f"{self.zone} {self.part} — {self.damage_type}, sev {self.severity}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "zone": self.zone.value,
            "part": self.part.value,
            "damage_type": self.damage_type.value,
            "severity": self.severity,
            "confidence": self.confidence,
            "est_labor_hours": self.est_labor_hours,
            "needs_paint": self.needs_paint,
            "likely_parts": list(self.likely_parts),
        }
        if self.geometry is not None:
            data.update(self.geometry.to_dict())
        return data


@dataclass(frozen=True)
class Vehicle:
    """
    Vehicle identification reported alongside the damage assessment.

    Attributes:
        make: Manufacturer, or None if unsure
        model: Model name, or None if unsure
        color: Body color, or None if unsure
        confidence: Recognition confidence (0.0 to 1.0)
    """
    make: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    confidence: float = 0.0

    @classmethod
    def from_raw(cls, raw: Any) -> "Vehicle":
        """Build a Vehicle from an untrusted dict, tolerating any shape."""
        if not isinstance(raw, dict):
            return cls()

        def _text(key: str) -> Optional[str]:
            value = raw.get(key)
            return value if isinstance(value, str) and value.strip() else None

        conf = raw.get("confidence")
        if isinstance(conf, bool) or not isinstance(conf, (int, float)) or conf != conf:
            conf = 0.0
        try:
            conf = float(conf)
        except OverflowError:
            # int beyond float range, clamped below like an infinity
            conf = 1.0 if conf > 0 else 0.0
        return cls(
            make=_text("make"),
            model=_text("model"),
            color=_text("color"),
            confidence=min(1.0, max(0.0, conf)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "make": self.make,
            "model": self.model,
            "color": self.color,
            "confidence": self.confidence,
        }
