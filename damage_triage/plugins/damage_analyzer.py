"""Vehicle damage analysis plugin for Semantic Kernel using AWS Bedrock Nova Pro vision."""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from semantic_kernel.functions import kernel_function

from ..models.damage import DamageType, Part, Zone
from ..utils.bedrock_client import BedrockClient
from ..utils.errors import UpstreamResponseError
from ..utils.json_extraction import extract_json_object
from .detector import MAX_SEED_BOXES, SeedBox

logger = logging.getLogger(__name__)


def _choices(enum_cls) -> str:
    return "|".join(f'"{member.value}"' for member in enum_cls)


ANALYSIS_PROMPT = f"""Return ONLY valid JSON matching EXACTLY this shape (no prose, no markdown):

{{
  "vehicle": {{ "make": string | null, "model": string | null, "color": string | null, "confidence": number }},
  "damage_items": Array<{{
    "zone": {_choices(Zone)},
    "part": {_choices(Part)},
    "damage_type": {_choices(DamageType)},
    "severity": 1|2|3|4|5,
    "confidence": number,
    "est_labor_hours": number,
    "needs_paint": boolean,
    "likely_parts": string[],
    "bbox_rel"?: [number, number, number, number],
    "polygon_rel"?: Array<[number, number]>
  }}>,
  "narrative": string,
  "normalization_notes": string
}}

Rules:
- Confidence in [0,1].
- If unsure on vehicle fields, set to null but still provide a numeric confidence.
- Severity 1..5 (1=very minor, 5=severe/structural). Be conservative.
- est_labor_hours realistic per item.
- likely_parts may be empty.
- Geometry normalized to image width/height (0..1). Prefer polygon_rel for irregular scratches; else bbox_rel.
- If detector boxes are provided below, ALIGN your geometry to those boxes where applicable (do not invent far-away regions).
- No extra keys. No markdown. JSON only."""

QUALITY_PROMPT = """Return ONLY JSON with this shape:

{
  "is_vehicle": boolean,
  "quality_ok": boolean,
  "issues": string[],
  "vehicle": { "make": string|null, "model": string|null, "color": string|null, "confidence": number }
}

Rules:
- "issues" can include: "not_vehicle", "blurry", "low_light", "heavy_occlusion", "cropped", "too_small".
- If unsure about make/model/color, set null but always provide numeric "confidence" for vehicle recognition [0..1].
- Be conservative; keep output terse and valid JSON only."""


def detect_image_format(image_bytes: bytes) -> str:
    """
    Detect image format from magic bytes.

    Args:
        image_bytes: Raw image bytes

    Returns:
        Format string ("jpeg", "png", "gif", "webp")
    """
    if image_bytes.startswith(b'\xff\xd8\xff'):
        return "jpeg"
    elif image_bytes.startswith(b'\x89PNG\r\n\x1a\n'):
        return "png"
    elif image_bytes.startswith(b'GIF87a') or image_bytes.startswith(b'GIF89a'):
        return "gif"
    elif image_bytes.startswith(b'RIFF') and b'WEBP' in image_bytes[:12]:
        return "webp"
    logger.warning("Unknown image format, defaulting to JPEG")
    return "jpeg"


def seed_context(seed_boxes: Optional[Sequence[SeedBox]]) -> str:
    """Render detector seeds as the prompt line the model aligns geometry to."""
    seeds = [box.to_dict() for box in (seed_boxes or [])[:MAX_SEED_BOXES]]
    return f"DETECTOR_SEEDS: {json.dumps(seeds)}"


class DamageAnalyzerPlugin:
    """
    Semantic Kernel plugin that asks Nova Pro for a structured damage assessment.

    The returned document is untrusted: it is handed to the normalizer as-is
    and may violate the requested schema in any way.
    """

    def __init__(self, bedrock_client: BedrockClient):
        self.bedrock = bedrock_client
        logger.info("Initialized DamageAnalyzerPlugin")

    @property
    def model_id(self) -> str:
        return self.bedrock.model_id

    def _image_message(self, image_bytes: bytes, texts: List[str]) -> List[Dict[str, Any]]:
        # boto3's converse API expects raw bytes, not base64-encoded strings
        content: List[Dict[str, Any]] = [
            {"image": {"format": detect_image_format(image_bytes), "source": {"bytes": image_bytes}}}
        ]
        content.extend({"text": text} for text in texts)
        return [{"role": "user", "content": content}]

    @kernel_function(
        name="analyze_vehicle_damage",
        description=(
            "Analyze a vehicle photo for visible damage. Returns zones, parts, damage types, "
            "severities, confidences, labor hours and normalized geometry as raw JSON."
        )
    )
    async def analyze_damage(
        self,
        image_bytes: bytes,
        image_name: str = "image",
        seed_boxes: Optional[Sequence[SeedBox]] = None
    ) -> Dict[str, Any]:
        """
        Analyze a vehicle photo using Nova Pro vision.

        Args:
            image_bytes: Raw image bytes (JPEG, PNG, etc.)
            image_name: Name/identifier for the image
            seed_boxes: Optional detector boxes the model should align to

        Returns:
            Raw analysis document (vehicle, damage_items, narrative,
            normalization_notes), not yet validated

        Raises:
            UpstreamResponseError: If the model output holds no JSON object
            BedrockAPIError: If the Bedrock call fails
        """
        start_time = time.time()
        logger.info(f"Starting damage analysis: {image_name}")
        logger.debug(f"Image size: {len(image_bytes)} bytes, seeds: {len(seed_boxes or [])}")

        messages = self._image_message(image_bytes, [
            "Analyze this car image and fill the schema. Be concise and conservative.",
            seed_context(seed_boxes),
        ])
        response = await self.bedrock.invoke_nova_pro(
            messages=messages,
            system_prompts=[{"text": ANALYSIS_PROMPT}],
            temperature=0.0,
            max_tokens=4096
        )

        response_text = response.get("text", "")
        analysis = extract_json_object(response_text)
        if analysis is None:
            logger.error(f"Nova Pro returned no JSON object for {image_name}")
            raise UpstreamResponseError.invalid_json("Nova Pro", response_text)

        items = analysis.get("damage_items")
        logger.info(
            f"Damage analysis complete for {image_name}: "
            f"{len(items) if isinstance(items, list) else 0} candidate items "
            f"in {time.time() - start_time:.3f}s"
        )
        return analysis

    @kernel_function(
        name="check_image_quality",
        description="Classify whether a photo shows a vehicle and is usable for damage assessment."
    )
    async def check_image_quality(
        self,
        image_bytes: bytes,
        image_name: str = "image"
    ) -> Dict[str, Any]:
        """
        Quick quality gate run before the full analysis.

        Args:
            image_bytes: Raw image bytes
            image_name: Name/identifier for the image

        Returns:
            Dict with is_vehicle, quality_ok, issues and a vehicle guess.
            Unparseable output falls back to a permissive default.
        """
        response = await self.bedrock.invoke_nova_pro(
            messages=self._image_message(image_bytes, [
                "Classify whether this is a usable car image for damage assessment.",
            ]),
            system_prompts=[{"text": QUALITY_PROMPT}],
            temperature=0.0,
            max_tokens=512
        )

        parsed = extract_json_object(response.get("text", ""))
        if parsed is None:
            logger.warning(f"Quality gate output unparseable for {image_name}, assuming usable")
            parsed = {
                "is_vehicle": True,
                "quality_ok": True,
                "issues": [],
                "vehicle": {"make": None, "model": None, "color": None, "confidence": 0.6},
            }

        vehicle = parsed.get("vehicle") if isinstance(parsed.get("vehicle"), dict) else {}
        confidence = vehicle.get("confidence")
        issues = parsed.get("issues")
        return {
            "is_vehicle": bool(parsed.get("is_vehicle")),
            "quality_ok": bool(parsed.get("quality_ok")),
            "issues": [str(i) for i in issues] if isinstance(issues, list) else [],
            "vehicle": {
                "make": vehicle.get("make"),
                "model": vehicle.get("model"),
                "color": vehicle.get("color"),
                "confidence": confidence if isinstance(confidence, (int, float)) else 0.6,
            },
        }
