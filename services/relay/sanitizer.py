"""Strip fenced code blocks from the model text inside each event frame.

Only the `response` field is touched. Every other payload field, and every
passthrough frame, reaches the client exactly as the model produced it.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict

from services.relay.frame_decoder import Frame

FENCE = "```"
FENCED_BLOCK_RE = re.compile(r"```[\s\S]*?```")

MARKER = "data: "
DELIMITER = "\n\n"
TEXT_FIELD = "response"


def sanitize_text(text: str) -> str:
    """Remove every fenced span, first opening fence to first closing fence."""
    if FENCE not in text:
        return text
    return FENCED_BLOCK_RE.sub("", text)


def sanitize_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of the payload with its text field sanitized."""
    cleaned = dict(payload)
    value = cleaned.get(TEXT_FIELD)
    if isinstance(value, str):
        cleaned[TEXT_FIELD] = sanitize_text(value)
    return cleaned


def encode_event(payload: Dict[str, Any]) -> bytes:
    """Serialize a payload into one `data: <json>\\n\\n` frame."""
    body = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return f"{MARKER}{body}{DELIMITER}".encode("utf-8")


def sanitize_frame(frame: Frame) -> bytes:
    """Return the outbound bytes for a decoded frame.

    Event frames are re-serialized with a clean text field; anything else
    is forwarded byte for byte.
    """
    if not frame.is_event or frame.payload is None:
        return frame.raw
    return encode_event(sanitize_payload(frame.payload))
