"""The inference capability the relay is handed at construction."""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

Message = Dict[str, Any]


class InferenceCapability(Protocol):
    """Run one model call, streaming or buffered.

    `stream` yields raw event-stream bytes shaped as `data: {"response": ...}`
    frames, with arbitrary chunk boundaries. `complete` returns the whole text.
    Implementations raise `TransportError` when the upstream call fails.
    """

    def stream(self, messages: List[Message], *, seed: Optional[int] = None) -> AsyncIterator[bytes]:
        ...

    async def complete(self, messages: List[Message], *, seed: Optional[int] = None) -> str:
        ...

    async def aclose(self) -> None:
        ...
