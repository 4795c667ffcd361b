"""Reassemble an arbitrarily chunked event stream into complete frames.

Upstream transports hand over byte spans whose boundaries have nothing to do
with the `data: {...}\\n\\n` framing. `FrameDecoder` keeps the unresolved
tail of the stream in a carry-over buffer and only ever emits whole frames:

    decoder = FrameDecoder()
    for chunk in chunks:
        for frame in decoder.feed(chunk):
            ...
    decoder.finish()

Blocks that are not a single `data:` line carrying a JSON object are
forwarded unchanged as passthrough frames. The upstream `data: [DONE]`
sentinel is reported as its own frame kind so the relay can end the turn
without forwarding it.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional, Union

from services.relay.errors import MalformedFrameError, TruncatedFrameError

LOGGER = logging.getLogger(__name__)

EVENT = "event"
PASSTHROUGH = "passthrough"
DONE = "done"

# A blank line, tolerating CRLF line endings.
_DELIMITER_RE = re.compile(rb"\r?\n\r?\n")
_EVENT_RE = re.compile(rb"data:[ \t]*(\{.*)")
_DONE_RE = re.compile(rb"data:[ \t]*\[DONE\][ \t\r]*")
_MAX_DELIMITER_LEN = 4


@dataclass(frozen=True)
class Frame:
    """One complete protocol frame, exactly as it arrived on the wire."""

    kind: str
    raw: bytes
    payload: Optional[Dict[str, Any]] = None

    @property
    def is_event(self) -> bool:
        return self.kind == EVENT

    @property
    def is_passthrough(self) -> bool:
        return self.kind == PASSTHROUGH

    @property
    def is_done(self) -> bool:
        return self.kind == DONE

    @property
    def text(self) -> str:
        """Return the model text carried by an event frame, or an empty string."""
        if not self.payload:
            return ""
        value = self.payload.get("response")
        return value if isinstance(value, str) else ""


class FrameDecoder:
    """Incremental decoder with a carry-over buffer.

    Args:
        strict: When True, an unterminated frame left at end of stream raises
            `TruncatedFrameError` instead of being discarded.
    """

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict
        self._buffer = bytearray()
        self._scan_from = 0

    @property
    def pending(self) -> int:
        """Number of carry-over bytes not yet resolved into a frame."""
        return len(self._buffer)

    def feed(self, chunk: Union[bytes, bytearray, str]) -> List[Frame]:
        """Append a chunk and return every frame it completes, in order.

        Raises:
            MalformedFrameError: If a `data:` line carries invalid JSON.
        """
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._buffer.extend(chunk)

        frames: List[Frame] = []
        while True:
            match = _DELIMITER_RE.search(self._buffer, self._scan_from)
            if match is None:
                # A delimiter completed by the next chunk must include a new byte.
                self._scan_from = max(0, len(self._buffer) - (_MAX_DELIMITER_LEN - 1))
                return frames
            block = bytes(self._buffer[: match.start()])
            raw = bytes(self._buffer[: match.end()])
            del self._buffer[: match.end()]
            self._scan_from = 0
            frame = self._classify(block, raw)
            if frame is not None:
                frames.append(frame)

    def finish(self) -> None:
        """Signal end of stream, resolving whatever is left in the buffer."""
        remainder = bytes(self._buffer)
        self._buffer.clear()
        self._scan_from = 0
        if not remainder.strip():
            return
        if self.strict:
            raise TruncatedFrameError(
                f"Stream ended inside a frame ({len(remainder)} bytes unterminated).",
                remainder=remainder,
            )
        LOGGER.warning("Discarding %d bytes of unterminated frame at end of stream", len(remainder))

    @staticmethod
    def _classify(block: bytes, raw: bytes) -> Optional[Frame]:
        # Extra blank lines between frames are legal and belong to no event.
        block = block.lstrip(b"\r\n")
        if not block.strip():
            return None
        if _DONE_RE.fullmatch(block):
            return Frame(kind=DONE, raw=raw)

        match = _EVENT_RE.fullmatch(block)
        if match is None:
            LOGGER.warning("Forwarding unrecognized frame unchanged: %r", block[:120])
            return Frame(kind=PASSTHROUGH, raw=raw)

        try:
            payload = json.loads(match.group(1).decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise MalformedFrameError(f"Frame payload is not valid JSON: {exc}", raw=raw) from exc
        return Frame(kind=EVENT, raw=raw, payload=payload)


async def decode_frames(
    chunks: AsyncIterable[Union[bytes, str]], *, strict: bool = False
) -> AsyncIterator[Frame]:
    """Lazily decode an async chunk stream into complete frames."""
    decoder = FrameDecoder(strict=strict)
    async for chunk in chunks:
        for frame in decoder.feed(chunk):
            yield frame
    decoder.finish()
