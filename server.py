"""FastAPI frontend for the vehicle damage triage service."""

from __future__ import annotations

import base64
import hashlib
import io
import logging
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse

import httpx
from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse
from PIL import Image, UnidentifiedImageError

from damage_triage.pipeline import SCHEMA_VERSION, run_assessment, run_detection
from damage_triage.plugins.damage_analyzer import DamageAnalyzerPlugin
from damage_triage.plugins.detector import DetectorClient
from damage_triage.utils.bedrock_client import BedrockClient
from damage_triage.utils.config import Config
from damage_triage.utils.errors import (
    AssessmentError,
    BedrockAPIError,
    ImageInputError,
    UpstreamResponseError,
)
from damage_triage.utils.logging import setup_logging


APP_TITLE = "Vehicle Damage Triage"
IMAGE_FETCH_TIMEOUT = 20.0

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Load configuration once per process."""
    config = Config.load()
    setup_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        log_file=config.logging.file,
    )
    logger.info(
        f"Configuration loaded: model={config.bedrock.model_id}, "
        f"mock_mode={config.mock_mode}, detector={config.detector.enabled}"
    )
    return config


@lru_cache(maxsize=1)
def get_analyzer() -> DamageAnalyzerPlugin:
    config = get_config()
    client = BedrockClient(
        region=config.bedrock.region,
        model_id=config.bedrock.model_id,
        timeout=config.bedrock.timeout,
        max_retries=config.bedrock.max_retries,
    )
    return DamageAnalyzerPlugin(client)


@lru_cache(maxsize=1)
def get_detector() -> DetectorClient:
    return DetectorClient.from_config(get_config().detector)


def _sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _verify_image(data: bytes, filename: str) -> None:
    """Reject uploads Pillow cannot identify as an image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise ImageInputError.invalid_image(filename, e)


def _validate_url(image_url: str) -> str:
    try:
        parsed = urlparse(image_url)
    except ValueError:
        raise ImageInputError.invalid_url(image_url)
    if not parsed.scheme or not parsed.netloc:
        raise ImageInputError.invalid_url(image_url)
    if parsed.scheme not in ("http", "https"):
        raise ImageInputError.invalid_url(image_url, "imageUrl must be http(s)")
    return image_url


async def _fetch_image(image_url: str) -> bytes:
    try:
        async with httpx.AsyncClient(timeout=IMAGE_FETCH_TIMEOUT, follow_redirects=True) as client:
            response = await client.get(image_url)
            response.raise_for_status()
            return response.content
    except (httpx.HTTPStatusError, httpx.RequestError) as e:
        raise ImageInputError.invalid_url(image_url, f"Could not fetch imageUrl: {str(e)}")


async def _resolve_image(
    file: Optional[UploadFile],
    image_url: Optional[str],
    mock_mode: bool
) -> Tuple[bytes, str, str, str]:
    """
    Turn the request into (bytes, source for detector, sha256, display name).

    File uploads are hashed by content; URLs are hashed as text.
    """
    if file is not None:
        data = await file.read()
        name = file.filename or "upload"
        if not mock_mode:
            _verify_image(data, name)
        content_type = file.content_type or "image/jpeg"
        data_url = f"data:{content_type};base64,{base64.b64encode(data).decode('utf-8')}"
        return data, data_url, _sha256(data), name

    url = _validate_url(image_url or "")
    data = b"" if mock_mode else await _fetch_image(url)
    return data, url, _sha256(url.encode("utf-8")), url


def _error_response(error: AssessmentError, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error.context.message, "type": error.context.error_type.value},
    )


app = FastAPI(title=APP_TITLE)


@app.get("/api/health")
async def health():
    return {"status": "ok", "schema_version": SCHEMA_VERSION}


async def _serve(
    runner: Callable[..., Awaitable[Dict[str, Any]]],
    file: Optional[UploadFile],
    imageUrl: Optional[str]
) -> JSONResponse:
    """Resolve the image, run one pipeline entry point and map errors to status codes."""
    config = get_config()
    image_url = (imageUrl or "").strip() or None

    try:
        if file is None and image_url is None:
            raise ImageInputError.missing()

        data, source, digest, name = await _resolve_image(file, image_url, config.mock_mode)

        payload = await runner(
            image_bytes=data,
            image_source=source,
            image_sha256=digest,
            config=config,
            analyzer=None if config.mock_mode else get_analyzer(),
            detector=None if config.mock_mode else get_detector(),
            image_name=name,
        )
        return JSONResponse(content=payload)

    except ImageInputError as e:
        logger.warning(f"Rejected image input: {e}")
        return _error_response(e, 400)
    except (UpstreamResponseError, BedrockAPIError) as e:
        logger.error(f"Upstream failure: {e}")
        return _error_response(e, 502)
    except AssessmentError as e:
        logger.error(f"Assessment failed: {e}")
        return _error_response(e, 500)


@app.post("/api/analyze")
async def analyze(
    file: Optional[UploadFile] = File(None),
    imageUrl: Optional[str] = Form(None),
):
    return await _serve(run_assessment, file, imageUrl)


@app.post("/api/detect")
async def detect(
    file: Optional[UploadFile] = File(None),
    imageUrl: Optional[str] = Form(None),
):
    return await _serve(run_detection, file, imageUrl)
