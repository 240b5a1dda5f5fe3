"""Extraction of a JSON object from free-form model output."""

import json
import logging
import re
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r'```(?:json)?\s*\n?(.*?)\n?```', re.DOTALL)


def _as_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _first_balanced_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Scan for the first brace-balanced ``{...}`` span that parses as JSON.

    Braces inside string literals are ignored.
    """
    start = text.find('{')
    while start != -1:
        depth = 0
        in_string = False
        escape_next = False

        for i in range(start, len(text)):
            char = text[i]
            if escape_next:
                escape_next = False
                continue
            if char == '\\':
                escape_next = True
                continue
            if char == '"':
                in_string = not in_string
                continue
            if in_string:
                continue
            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    parsed = _as_object(text[start:i + 1])
                    if parsed is not None:
                        return parsed
                    break

        start = text.find('{', start + 1)
    return None


def extract_json_object(response_text: str) -> Optional[Dict[str, Any]]:
    """
    Extract a JSON object from a model response.

    Tries, in order: the whole response, a fenced ```json block, then the
    first balanced object embedded in prose.

    Args:
        response_text: Raw response text that may contain JSON

    Returns:
        Parsed dict, or None if no JSON object was found
    """
    if not response_text or not response_text.strip():
        logger.warning("Empty response text provided")
        return None

    text = response_text.strip()

    data = _as_object(text)
    if data is not None:
        return data

    for match in _FENCED_BLOCK.finditer(text):
        data = _as_object(match.group(1).strip())
        if data is not None:
            logger.debug("Extracted JSON from fenced code block")
            return data

    data = _first_balanced_object(text)
    if data is not None:
        logger.debug("Extracted JSON embedded in text")
        return data

    logger.warning(f"Failed to extract JSON from response: {text[:200]}...")
    return None
