"""Tests for confidence aggregation and the routing decision engine."""

import sys

import pytest

from damage_triage.engine.confidence import aggregate_confidence, confidence_band
from damage_triage.engine.decision import max_severity, route_decision
from damage_triage.engine.numbers import format_amount, round_to_int
from damage_triage.models.damage import DamageRecord, DamageType, Part, Zone
from damage_triage.models.decision import (
    AutoApprove,
    DecisionLabel,
    Estimate,
    Investigate,
    Specialist,
)
from damage_triage.utils.config import RoutingThresholds


DEFAULTS = RoutingThresholds()


def make_record(severity=2, confidence=0.8):
    return DamageRecord(
        zone=Zone.FRONT,
        part=Part.BUMPER,
        damage_type=DamageType.DENT,
        severity=severity,
        confidence=confidence,
        est_labor_hours=1.0,
        needs_paint=True,
    )


def band(cost_high):
    return Estimate(cost_low=0, cost_high=cost_high)


class TestAggregateConfidence:
    def test_empty_is_neutral(self):
        assert aggregate_confidence([]) == 0.5

    def test_single_record_is_its_confidence(self):
        assert aggregate_confidence([make_record(severity=4, confidence=0.7)]) == pytest.approx(0.7)

    def test_severity_weighting(self):
        items = [make_record(severity=1, confidence=0.2), make_record(severity=5, confidence=0.8)]
        # (0.2 * 1.0 + 0.8 * 1.8) / 2.8
        assert aggregate_confidence(items) == pytest.approx(1.64 / 2.8)

    @pytest.mark.parametrize("pairs", [
        [(1, 0.1), (5, 0.9)],
        [(3, 0.4), (3, 0.4), (2, 0.95)],
        [(5, 0.0), (1, 1.0), (4, 0.33)],
    ])
    def test_stays_within_observed_range(self, pairs):
        items = [make_record(severity=s, confidence=c) for s, c in pairs]
        confidences = [c for _, c in pairs]
        result = aggregate_confidence(items)
        assert min(confidences) - 1e-12 <= result <= max(confidences) + 1e-12


@pytest.mark.parametrize("value, expected", [
    (0.9, "High"),
    (0.85, "High"),
    (0.7, "Medium"),
    (0.3, "Low"),
    (None, "Unknown"),
    (True, "Unknown"),
])
def test_confidence_band(value, expected):
    assert confidence_band(value) == expected


def test_max_severity_of_empty_set_is_zero():
    assert max_severity([]) == 0


class TestRouteDecision:
    def test_auto_approve_reports_all_three_bounds(self):
        items = [make_record(severity=2, confidence=0.9), make_record(severity=1, confidence=0.9)]
        decision = route_decision(items, band(1000), DEFAULTS)

        assert isinstance(decision, AutoApprove)
        assert decision.label is DecisionLabel.AUTO_APPROVE
        assert decision.reasons == ("severity ≤ 2", "cost_high ≤ $1500", "agg_conf ≥ 75%")

    def test_auto_approve_bounds_are_inclusive(self):
        decision = route_decision([make_record(severity=2, confidence=0.75)], band(1500), DEFAULTS)
        assert isinstance(decision, AutoApprove)

    def test_specialist_on_severity_only(self):
        decision = route_decision([make_record(severity=5, confidence=0.9)], band(200), DEFAULTS)

        assert isinstance(decision, Specialist)
        assert decision.reasons == ("severity ≥ 4",)

    def test_specialist_on_cost_only(self):
        decision = route_decision([make_record(severity=3)], band(5000), DEFAULTS)

        assert isinstance(decision, Specialist)
        assert decision.reasons == ("cost_high ≥ $5000",)

    def test_specialist_on_both(self):
        decision = route_decision([make_record(severity=4)], band(7200), DEFAULTS)
        assert decision.reasons == ("severity ≥ 4", "cost_high ≥ $5000")

    def test_investigate_reports_observed_values(self):
        decision = route_decision([make_record(severity=3, confidence=0.5)], band(2000), DEFAULTS)

        assert isinstance(decision, Investigate)
        assert decision.reasons == ("agg_conf 50%", "max_severity 3", "cost_high $2000")

    def test_low_confidence_blocks_auto_approval(self):
        decision = route_decision([make_record(severity=1, confidence=0.6)], band(300), DEFAULTS)
        assert isinstance(decision, Investigate)
        assert decision.reasons[0] == "agg_conf 60%"

    def test_empty_findings_investigate_under_defaults(self):
        decision = route_decision([], band(0), DEFAULTS)

        assert isinstance(decision, Investigate)
        assert decision.reasons == ("agg_conf 50%", "max_severity 0", "cost_high $0")

    def test_empty_findings_auto_approve_with_lenient_confidence(self):
        thresholds = RoutingThresholds(auto_min_confidence=0.5)
        assert isinstance(route_decision([], band(0), thresholds), AutoApprove)

    def test_overlapping_thresholds_resolve_by_precedence(self):
        # Not validated here; AUTO-APPROVE is simply checked first
        thresholds = RoutingThresholds(auto_max_severity=4, specialist_min_severity=2)
        decision = route_decision([make_record(severity=3, confidence=0.9)], band(100), thresholds)
        assert isinstance(decision, AutoApprove)
        assert decision.reasons[0] == "severity ≤ 4"

    def test_percent_rounds_half_up(self):
        # 0.625 -> 63%
        decision = route_decision([make_record(severity=3, confidence=0.625)], band(2000), DEFAULTS)
        assert decision.reasons[0] == "agg_conf 63%"

    def test_to_dict(self):
        decision = route_decision([make_record(severity=5)], band(200), DEFAULTS)
        assert decision.to_dict() == {"label": "SPECIALIST", "reasons": ["severity ≥ 4"]}

    def test_decision_is_deterministic(self):
        items = [make_record(severity=3, confidence=0.66), make_record(severity=2, confidence=0.41)]
        first = route_decision(items, band(2500), DEFAULTS)
        second = route_decision(items, band(2500), DEFAULTS)
        assert first == second
        assert first.to_dict() == second.to_dict()


def test_large_fractional_threshold_is_not_abbreviated():
    thresholds = RoutingThresholds(auto_max_cost=1000000.5)
    decision = route_decision([make_record(severity=2, confidence=0.9)], band(1000), thresholds)
    assert decision.reasons[1] == "cost_high ≤ $1000000.5"


@pytest.mark.parametrize("value, expected", [
    (95, "95"),
    (95.0, "95"),
    (97.5, "97.5"),
    (1000000.5, "1000000.5"),
    (2e7, "20000000"),
])
def test_format_amount(value, expected):
    assert format_amount(value) == expected


@pytest.mark.parametrize("value, expected", [
    (2.5, 3),
    (-2.5, -2),
    (float("nan"), 0),
    (float("inf"), int(sys.float_info.max)),
])
def test_round_to_int(value, expected):
    assert round_to_int(value) == expected
