"""Tests for the HTTP layer."""

import hashlib
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

import server
from damage_triage.pipeline import SCHEMA_VERSION, mock_analysis
from damage_triage.plugins.detector import DetectorClient
from damage_triage.utils.config import Config
from damage_triage.utils.errors import (
    BedrockAPIError,
    ErrorContext,
    ErrorType,
    UpstreamResponseError,
)


class FakeAnalyzer:
    model_id = "fake-vision-model"

    def __init__(self, analysis=None, error=None, quality=None):
        self.analysis = analysis
        self.error = error
        self.quality = quality

    async def analyze_damage(self, image_bytes, image_name="image", seed_boxes=None):
        if self.error is not None:
            raise self.error
        return self.analysis

    async def check_image_quality(self, image_bytes, image_name="image"):
        if self.error is not None:
            raise self.error
        return self.quality


def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def client():
    return TestClient(server.app)


@pytest.fixture
def use_config(monkeypatch):
    def _use(config, analyzer=None):
        monkeypatch.setattr(server, "get_config", lambda: config)
        monkeypatch.setattr(server, "get_analyzer", lambda: analyzer)
        monkeypatch.setattr(server, "get_detector", lambda: DetectorClient())
    return _use


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "schema_version": SCHEMA_VERSION}


def test_missing_input_is_rejected(client, use_config):
    use_config(Config())
    response = client.post("/api/analyze", data={})

    assert response.status_code == 400
    assert response.json() == {"error": "No file or imageUrl provided", "type": "MISSING_IMAGE"}


def test_blank_url_counts_as_missing(client, use_config):
    use_config(Config())
    response = client.post("/api/analyze", data={"imageUrl": "   "})
    assert response.status_code == 400
    assert response.json()["type"] == "MISSING_IMAGE"


@pytest.mark.parametrize("url, message", [
    ("ftp://example.com/car.jpg", "imageUrl must be http(s)"),
    ("not a url", "Invalid imageUrl"),
])
def test_bad_urls_are_rejected(client, use_config, url, message):
    use_config(Config())
    response = client.post("/api/analyze", data={"imageUrl": url})

    assert response.status_code == 400
    assert response.json()["error"] == message


def test_non_image_upload_is_rejected(client, use_config):
    use_config(Config(), analyzer=FakeAnalyzer(analysis=mock_analysis()))
    response = client.post(
        "/api/analyze",
        files={"file": ("car.jpg", b"definitely not an image", "image/jpeg")},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid image file", "type": "INVALID_IMAGE"}


def test_mock_mode_upload(client, use_config):
    use_config(Config(mock_mode=True))
    response = client.post(
        "/api/analyze",
        files={"file": ("car.jpg", b"anything", "image/jpeg")},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["model"] == "mock"
    assert payload["decision"]["label"] == "INVESTIGATE"
    assert payload["estimate"]["cost_low"] == 495


def test_mock_mode_url_is_not_fetched(client, use_config, monkeypatch):
    use_config(Config(mock_mode=True))

    async def fail_fetch(url):
        raise AssertionError("fetch should be skipped in mock mode")

    monkeypatch.setattr(server, "_fetch_image", fail_fetch)
    response = client.post("/api/analyze", data={"imageUrl": "https://example.com/car.jpg"})
    assert response.status_code == 200


def test_upload_is_analyzed(client, use_config):
    data = png_bytes()
    use_config(Config(), analyzer=FakeAnalyzer(analysis=mock_analysis()))
    response = client.post("/api/analyze", files={"file": ("car.png", data, "image/png")})

    assert response.status_code == 200
    payload = response.json()
    assert payload["model"] == "fake-vision-model"
    assert payload["image_sha256"] == hashlib.sha256(data).hexdigest()
    assert len(payload["damage_items"]) == 2


def test_url_is_hashed_as_text(client, use_config, monkeypatch):
    url = "https://example.com/car.png"
    use_config(Config(), analyzer=FakeAnalyzer(analysis={"damage_items": []}))

    async def fake_fetch(image_url):
        return png_bytes()

    monkeypatch.setattr(server, "_fetch_image", fake_fetch)
    response = client.post("/api/analyze", data={"imageUrl": url})

    assert response.status_code == 200
    assert response.json()["image_sha256"] == hashlib.sha256(url.encode("utf-8")).hexdigest()


def test_invalid_model_output_is_a_bad_gateway(client, use_config):
    error = UpstreamResponseError.invalid_json("Nova Pro", "sorry")
    use_config(Config(), analyzer=FakeAnalyzer(error=error))
    response = client.post("/api/analyze", files={"file": ("car.png", png_bytes(), "image/png")})

    assert response.status_code == 502
    assert response.json() == {"error": "Nova Pro returned invalid JSON", "type": "UPSTREAM_INVALID_JSON"}


QUALITY = {
    "is_vehicle": True,
    "quality_ok": False,
    "issues": ["blurry"],
    "vehicle": {"make": "Mazda", "model": None, "color": "Red", "confidence": 0.7},
}


def test_detect_upload(client, use_config):
    data = png_bytes()
    use_config(Config(), analyzer=FakeAnalyzer(quality=QUALITY))
    response = client.post("/api/detect", files={"file": ("car.png", data, "image/png")})

    assert response.status_code == 200
    payload = response.json()
    assert payload["image_sha256"] == hashlib.sha256(data).hexdigest()
    assert payload["yolo_boxes"] == []
    assert payload["has_damage"] is False
    assert payload["quality_ok"] is False
    assert payload["issues"] == ["blurry"]
    assert payload["vehicle"]["make"] == "Mazda"
    assert payload["model"] == "fake-vision-model"


def test_detect_requires_input(client, use_config):
    use_config(Config())
    response = client.post("/api/detect", data={})
    assert response.status_code == 400
    assert response.json()["error"] == "No file or imageUrl provided"


def test_detect_rejects_non_http_url(client, use_config):
    use_config(Config())
    response = client.post("/api/detect", data={"imageUrl": "ftp://example.com/car.jpg"})
    assert response.status_code == 400
    assert response.json()["error"] == "imageUrl must be http(s)"


def test_detect_url_is_hashed_as_text(client, use_config, monkeypatch):
    url = "https://example.com/car.png"
    use_config(Config(), analyzer=FakeAnalyzer(quality=QUALITY))

    async def fake_fetch(image_url):
        return png_bytes()

    monkeypatch.setattr(server, "_fetch_image", fake_fetch)
    response = client.post("/api/detect", data={"imageUrl": url})

    assert response.status_code == 200
    assert response.json()["image_sha256"] == hashlib.sha256(url.encode("utf-8")).hexdigest()


def test_detect_mock_mode(client, use_config):
    use_config(Config(mock_mode=True))
    response = client.post("/api/detect", files={"file": ("car.jpg", b"anything", "image/jpeg")})

    assert response.status_code == 200
    payload = response.json()
    assert payload["model"] == "mock"
    assert payload["has_damage"] is True


def test_detect_bedrock_failure_is_a_bad_gateway(client, use_config):
    error = BedrockAPIError(ErrorContext(
        error_type=ErrorType.BEDROCK_SERVICE_ERROR,
        message="Bedrock unavailable",
        recoverable=False,
    ))
    use_config(Config(), analyzer=FakeAnalyzer(error=error))
    response = client.post("/api/detect", files={"file": ("car.png", png_bytes(), "image/png")})

    assert response.status_code == 502
    assert response.json() == {"error": "Bedrock unavailable", "type": "BEDROCK_SERVICE_ERROR"}
