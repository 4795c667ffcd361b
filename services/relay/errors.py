"""Error taxonomy for the streaming relay.

Each error carries a stable `error_code` so the HTTP layer can report it in
an error frame without leaking internals. Unexpected (non-marker) lines and
model refusals are deliberately absent here: they are forwarded as data.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for relay failures."""

    error_code = "relay_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


class TransportError(RelayError):
    """The upstream model call or one of its chunk reads failed."""

    error_code = "transport_failed"


class MalformedFrameError(RelayError):
    """A marker-prefixed frame whose payload is not a valid JSON object."""

    error_code = "malformed_frame"

    def __init__(self, message: str, raw: bytes = b"") -> None:
        super().__init__(message)
        self.raw = raw


class TruncatedFrameError(RelayError):
    """Upstream ended with an unterminated frame (strict decoding only)."""

    error_code = "truncated_frame"

    def __init__(self, message: str, remainder: bytes = b"") -> None:
        super().__init__(message)
        self.remainder = remainder
