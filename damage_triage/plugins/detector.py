"""Optional object detector that seeds damage geometry for the vision model."""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..utils.config import DetectorConfig

logger = logging.getLogger(__name__)

MAX_SEED_BOXES = 12
DEFAULT_SEED_CONFIDENCE = 0.5


@dataclass(frozen=True)
class SeedBox:
    """
    A detector box in image-relative coordinates.

    Attributes:
        bbox_rel: (x, y, w, h), each clamped into [0, 1]
        confidence: Detector confidence
    """
    bbox_rel: Tuple[float, float, float, float]
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {"bbox_rel": list(self.bbox_rel), "confidence": self.confidence}


def _num(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    return value if math.isfinite(value) else None


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def extract_predictions(payload: Any) -> List[Dict[str, Any]]:
    """Pull the prediction list out of the detector's response body."""
    if not isinstance(payload, dict):
        return []
    for key in ("predictions", "outputs"):
        if isinstance(payload.get(key), list):
            return payload[key]
    result = payload.get("result")
    if isinstance(result, dict) and isinstance(result.get("predictions"), list):
        return result["predictions"]
    return []


def prediction_to_box(prediction: Any) -> Optional[SeedBox]:
    """
    Convert one detector prediction to a normalized box.

    Accepted formats, in order: normalized corners (x_min/y_min/x_max/y_max),
    absolute centre with image dimensions, normalized centre with w/h.

    Args:
        prediction: Raw prediction dict

    Returns:
        SeedBox, or None if no known format matches
    """
    if not isinstance(prediction, dict):
        return None
    p = {key: _num(prediction.get(key)) for key in (
        "x", "y", "width", "height", "w", "h",
        "x_min", "y_min", "x_max", "y_max",
        "image_width", "image_height", "confidence", "conf",
    )}

    confidence = p["confidence"] if p["confidence"] is not None else p["conf"]
    if confidence is None:
        confidence = DEFAULT_SEED_CONFIDENCE

    if None not in (p["x_min"], p["y_min"], p["x_max"], p["y_max"]):
        box = (p["x_min"], p["y_min"], p["x_max"] - p["x_min"], p["y_max"] - p["y_min"])
    elif None not in (p["x"], p["y"], p["width"], p["height"]) and p["image_width"] and p["image_height"]:
        box = (
            (p["x"] - p["width"] / 2) / p["image_width"],
            (p["y"] - p["height"] / 2) / p["image_height"],
            p["width"] / p["image_width"],
            p["height"] / p["image_height"],
        )
    elif None not in (p["x"], p["y"], p["w"], p["h"]):
        box = (p["x"] - p["w"] / 2, p["y"] - p["h"] / 2, p["w"], p["h"])
    else:
        return None

    x, y, w, h = (_clamp(v) for v in box)
    return SeedBox(bbox_rel=(x, y, w, h), confidence=confidence)


def predictions_to_boxes(payload: Any) -> List[SeedBox]:
    boxes = []
    for prediction in extract_predictions(payload):
        box = prediction_to_box(prediction)
        if box is not None:
            boxes.append(box)
    return boxes


class DetectorClient:
    """
    HTTP client for a hosted object-detection endpoint.

    The detector is optional: when it is not configured, or when a call
    fails, it contributes no seed boxes and the vision model places
    geometry on its own.
    """

    def __init__(
        self,
        url: str = "",
        api_key: str = "",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: DetectorConfig) -> "DetectorClient":
        return cls(url=config.url, api_key=config.api_key, timeout=config.timeout)

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.api_key)

    async def detect(self, image_source: str) -> List[SeedBox]:
        """
        Run detection on an image URL or data URL.

        Args:
            image_source: http(s) URL or base64 data URL

        Returns:
            Normalized seed boxes; empty when disabled or on failure
        """
        if not self.enabled:
            return []

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    params={"api_key": self.api_key},
                    json={"image": image_source},
                )
                response.raise_for_status()
                boxes = predictions_to_boxes(response.json())
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.warning(f"Detector request failed, continuing without seeds: {str(e)}")
            return []
        except ValueError as e:
            logger.warning(f"Detector returned a non-JSON body, continuing without seeds: {str(e)}")
            return []

        logger.info(f"Detector returned {len(boxes)} seed boxes")
        return boxes
