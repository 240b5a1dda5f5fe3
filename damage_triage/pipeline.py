"""
Main pipeline entry point for vehicle damage triage.

``assess`` runs the pure core (normalize, estimate, aggregate, decide).
``run_assessment`` wraps it with the detector and vision collaborators and
produces the response document returned by the HTTP layer.
``run_detection`` serves the lighter detect route: detector boxes plus
the quick image quality gate, without an estimate or decision.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .engine.confidence import aggregate_confidence, confidence_band
from .engine.decision import route_decision
from .engine.estimator import estimate_from_items
from .engine.normalizer import normalize_items
from .models.damage import Vehicle
from .models.decision import Assessment
from .plugins.damage_analyzer import DamageAnalyzerPlugin
from .plugins.detector import DetectorClient, SeedBox
from .utils.config import Config
from .utils.logging import set_context, with_context

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.2.0"
SUMMARY_MAX_CHARS = 400
MOCK_MODEL_ID = "mock"


def damage_summary(items: Sequence[Any], narrative: str = "") -> str:
    """
    One-line summary of the findings, falling back to the model narrative.

    Args:
        items: Canonical damage records
        narrative: Free-text narrative from the vision model

    Returns:
        Summary truncated to 400 characters
    """
    if items:
        text = "; ".join(item.describe() for item in items)
    else:
        text = narrative or ""
    return text[:SUMMARY_MAX_CHARS]


def assess(raw_items: Sequence[Any], config: Config, narrative: str = "") -> Assessment:
    """
    Run the deterministic triage core over raw candidate observations.

    Args:
        raw_items: Candidate observations of unknown shape
        config: Loaded configuration (rates and routing thresholds)
        narrative: Fallback text for the damage summary

    Returns:
        Assessment with records, estimate, aggregate confidence and decision

    Raises:
        MalformedAssessmentError: If raw_items is not a list or tuple
    """
    items = normalize_items(raw_items)
    estimate = estimate_from_items(items, config.rates)
    decision = route_decision(items, estimate, config.thresholds)
    return Assessment(
        items=tuple(items),
        estimate=estimate,
        aggregate_confidence=aggregate_confidence(items),
        decision=decision,
        damage_summary=damage_summary(items, narrative),
    )


def build_payload(
    analysis: Dict[str, Any],
    config: Config,
    image_sha256: str,
    model_id: str,
    run_id: str
) -> Dict[str, Any]:
    """
    Turn a raw vision-model document into the analyze response payload.

    A ``damage_items`` value that is not a list is treated as no findings,
    so structurally broken item arrays degrade instead of failing.

    Args:
        analysis: Parsed (but unvalidated) model document
        config: Loaded configuration
        image_sha256: Audit hash of the submitted image
        model_id: Vision model identifier
        run_id: Identifier for this run

    Returns:
        JSON-ready response dict
    """
    raw_items = analysis.get("damage_items")
    if not isinstance(raw_items, list):
        if raw_items is not None:
            logger.warning(f"damage_items is {type(raw_items).__name__}, treating as empty")
        raw_items = []

    narrative = analysis.get("narrative")
    narrative = narrative if isinstance(narrative, str) else ""
    notes = analysis.get("normalization_notes")
    notes = notes if isinstance(notes, str) else ""

    result = assess(raw_items, config, narrative)

    payload = {
        "schema_version": SCHEMA_VERSION,
        "model": model_id,
        "runId": run_id,
        "image_sha256": image_sha256,
        "vehicle": Vehicle.from_raw(analysis.get("vehicle")).to_dict(),
        "narrative": narrative,
        "normalization_notes": notes,
    }
    payload.update(result.to_dict())
    payload["confidence_band"] = confidence_band(result.aggregate_confidence)
    return payload


def mock_analysis() -> Dict[str, Any]:
    """Fixed demo document used when mock mode is enabled."""
    return {
        "vehicle": {"make": "Honda", "model": "Civic", "color": "Silver", "confidence": 0.9},
        "damage_items": [
            {
                "zone": "front-left",
                "part": "bumper",
                "damage_type": "dent",
                "severity": 2,
                "confidence": 0.87,
                "est_labor_hours": 1.0,
                "needs_paint": True,
                "likely_parts": [],
                "bbox_rel": [0.18, 0.62, 0.28, 0.18],
            },
            {
                "zone": "front-left",
                "part": "headlight",
                "damage_type": "crack",
                "severity": 3,
                "confidence": 0.81,
                "est_labor_hours": 0.6,
                "needs_paint": False,
                "likely_parts": ["headlight assembly"],
                "polygon_rel": [[0.44, 0.50], [0.53, 0.50], [0.56, 0.58], [0.47, 0.60]],
            },
        ],
        "narrative": (
            "Front-left impact; cosmetic bumper dent and cracked headlight. "
            "No obvious structural deformation."
        ),
        "normalization_notes": "Assumed sedan; adequate lighting; minor occlusion.",
    }


@with_context(component="pipeline")
async def run_assessment(
    image_bytes: bytes,
    image_source: str,
    image_sha256: str,
    config: Config,
    analyzer: Optional[DamageAnalyzerPlugin] = None,
    detector: Optional[DetectorClient] = None,
    image_name: str = "image",
    run_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Analyze one vehicle photo end to end.

    Args:
        image_bytes: Raw image bytes sent to the vision model
        image_source: URL or data URL sent to the detector
        image_sha256: Audit hash of the submitted image
        config: Loaded configuration
        analyzer: Vision collaborator (not needed in mock mode)
        detector: Optional detector for geometry seeds
        image_name: Name used in log lines
        run_id: Run identifier; generated when omitted

    Returns:
        Analyze response payload

    Raises:
        UpstreamResponseError: If the vision model returns no JSON object
        BedrockAPIError: If the Bedrock call fails
    """
    run_id = run_id or str(uuid.uuid4())
    set_context(run_id=run_id)
    logger.info(f"Processing run {run_id} ({image_name})")

    if config.mock_mode:
        logger.info("Mock mode enabled, returning demo assessment")
        return build_payload(mock_analysis(), config, "mock", MOCK_MODEL_ID, run_id)

    if analyzer is None:
        raise ValueError("analyzer is required when mock mode is disabled")

    seeds = await detector.detect(image_source) if detector is not None else []
    analysis = await analyzer.analyze_damage(
        image_bytes=image_bytes,
        image_name=image_name,
        seed_boxes=seeds
    )

    payload = build_payload(analysis, config, image_sha256, analyzer.model_id, run_id)
    logger.info(
        f"Run {run_id} complete: {len(payload['damage_items'])} items, "
        f"decision={payload['decision']['label']}"
    )
    return payload


def build_detection_payload(
    boxes: Sequence[SeedBox],
    quality: Dict[str, Any],
    image_sha256: str,
    model_id: str,
    run_id: str
) -> Dict[str, Any]:
    """
    Combine detector boxes and the quality gate verdict into the detect payload.

    ``has_damage`` only reflects whether the detector found anything.
    """
    issues = quality.get("issues")
    return {
        "model": model_id,
        "runId": run_id,
        "image_sha256": image_sha256,
        "yolo_boxes": [box.to_dict() for box in boxes],
        "vehicle": Vehicle.from_raw(quality.get("vehicle")).to_dict(),
        "is_vehicle": bool(quality.get("is_vehicle")),
        "has_damage": len(boxes) > 0,
        "quality_ok": bool(quality.get("quality_ok")),
        "issues": [str(issue) for issue in issues] if isinstance(issues, list) else [],
    }


def mock_detection() -> Tuple[List[SeedBox], Dict[str, Any]]:
    """Fixed detector boxes and quality verdict used when mock mode is enabled."""
    boxes = [SeedBox(bbox_rel=(0.18, 0.62, 0.28, 0.18), confidence=0.87)]
    quality = {
        "is_vehicle": True,
        "quality_ok": True,
        "issues": [],
        "vehicle": {"make": "Honda", "model": "Civic", "color": "Silver", "confidence": 0.9},
    }
    return boxes, quality


@with_context(component="detection")
async def run_detection(
    image_bytes: bytes,
    image_source: str,
    image_sha256: str,
    config: Config,
    analyzer: Optional[DamageAnalyzerPlugin] = None,
    detector: Optional[DetectorClient] = None,
    image_name: str = "image",
    run_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Run the detector and the quick quality gate on one photo.

    Takes the same arguments as ``run_assessment`` so the HTTP layer can
    serve both routes the same way.

    Returns:
        Detect response payload (boxes, vehicle guess and validation flags)

    Raises:
        BedrockAPIError: If the quality gate call fails
    """
    run_id = run_id or str(uuid.uuid4())
    set_context(run_id=run_id)
    logger.info(f"Detection run {run_id} ({image_name})")

    if config.mock_mode:
        logger.info("Mock mode enabled, returning demo detection")
        boxes, quality = mock_detection()
        return build_detection_payload(boxes, quality, "mock", MOCK_MODEL_ID, run_id)

    if analyzer is None:
        raise ValueError("analyzer is required when mock mode is disabled")

    boxes = await detector.detect(image_source) if detector is not None else []
    quality = await analyzer.check_image_quality(image_bytes=image_bytes, image_name=image_name)

    payload = build_detection_payload(boxes, quality, image_sha256, analyzer.model_id, run_id)
    logger.info(
        f"Detection run {run_id} complete: {len(boxes)} boxes, "
        f"is_vehicle={payload['is_vehicle']}, quality_ok={payload['quality_ok']}"
    )
    return payload
