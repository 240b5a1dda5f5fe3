"""Estimate, routing decision and assessment data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Tuple

from .damage import DamageRecord


class DecisionLabel(str, Enum):
    """Routing outcome for a damage assessment."""
    AUTO_APPROVE = "AUTO-APPROVE"
    INVESTIGATE = "INVESTIGATE"
    SPECIALIST = "SPECIALIST"


@dataclass(frozen=True)
class Estimate:
    """
    Heuristic repair cost band.

    Attributes:
        cost_low: Lower bound of the band, whole currency units
        cost_high: Upper bound of the band, whole currency units
        assumptions: Fixed explanatory notes about the rates used
        currency: Currency code (always "USD")
    """
    cost_low: int
    cost_high: int
    assumptions: Tuple[str, ...] = field(default_factory=tuple)
    currency: str = "USD"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency,
            "cost_low": self.cost_low,
            "cost_high": self.cost_high,
            "assumptions": list(self.assumptions),
        }


@dataclass(frozen=True)
class Decision:
    """
    Routing decision with its justification.

    Concrete subclasses fix the label, so an instance can only ever carry
    the reasons that belong to its own outcome.

    Attributes:
        reasons: Ordered human-readable justification strings
    """
    label: ClassVar[DecisionLabel]
    reasons: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label.value, "reasons": list(self.reasons)}


@dataclass(frozen=True)
class AutoApprove(Decision):
    """All auto-approval bounds satisfied."""
    label: ClassVar[DecisionLabel] = DecisionLabel.AUTO_APPROVE


@dataclass(frozen=True)
class Specialist(Decision):
    """Severity or cost crossed a specialist threshold."""
    label: ClassVar[DecisionLabel] = DecisionLabel.SPECIALIST


@dataclass(frozen=True)
class Investigate(Decision):
    """Neither auto-approval nor specialist routing applies."""
    label: ClassVar[DecisionLabel] = DecisionLabel.INVESTIGATE


@dataclass(frozen=True)
class Assessment:
    """
    Result of one pass through the triage pipeline.

    Attributes:
        items: Canonical damage records, in input order
        estimate: Cost band derived from the records
        aggregate_confidence: Severity-weighted mean confidence
        decision: Routing decision
        damage_summary: One-line-per-item summary (max 400 chars)
    """
    items: Tuple[DamageRecord, ...]
    estimate: Estimate
    aggregate_confidence: float
    decision: Decision
    damage_summary: str

    def to_dict(self) -> Dict[str, Any]:
        items: List[Dict[str, Any]] = [item.to_dict() for item in self.items]
        return {
            "damage_items": items,
            "estimate": self.estimate.to_dict(),
            "aggregate_confidence": self.aggregate_confidence,
            "decision": self.decision.to_dict(),
            "damage_summary": self.damage_summary,
        }
