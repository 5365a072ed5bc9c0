"""
Normalization of semi-structured appraisal payloads.

Clients send assessment documents either as JSON objects or as JSON they
serialized themselves. Both forms are folded into a plain ``dict`` here so
nothing past the schema layer has to care which one arrived.
"""
import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

Document = Dict[str, Any]


def normalize_document(value: Any) -> Optional[Document]:
    """
    Return ``value`` as a structured document.

    - ``None`` and empty strings stay ``None`` (field absent)
    - ``dict`` is returned unchanged
    - ``str`` is parsed as JSON; anything that is not a JSON object is kept
      as ``{"text": <raw string>}``
    """
    if value is None:
        return None
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.debug("Payload is not JSON, keeping it as raw text")
            return {"text": value}
        if isinstance(parsed, dict):
            return parsed
        return {"text": value}
    raise ValueError(f"Expected a JSON object or string, got {type(value).__name__}")


# Lists appended to by the supervisor/reviewer workflow only
REVIEW_COMMENT_SIDES = ("supervisor", "reviewer")


def normalize_comments(value: Any) -> Document:
    """Comments bundle always carries both reviewer-side lists."""
    bundle = normalize_document(value) or {}
    normalized = dict(bundle)
    for side in REVIEW_COMMENT_SIDES:
        if not isinstance(normalized.get(side), list):
            normalized[side] = []
    return normalized


def merge_comments(stored: Any, incoming: Any) -> Document:
    """
    Fold a caller's comments into the stored bundle. Keys other than the
    review sides are overwritten; the supervisor and reviewer lists are kept
    exactly as stored.
    """
    merged = normalize_comments(stored)
    for key, value in normalize_comments(incoming).items():
        if key not in REVIEW_COMMENT_SIDES:
            merged[key] = value
    return merged
