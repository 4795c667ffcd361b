"""Inference backend built on the OpenAI chat completions API.

Streamed deltas are re-framed as `data: {"response": ...}` events so the
relay sees the same wire shape regardless of provider.
"""

import logging
import os
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from services.relay.errors import TransportError
from services.relay.sanitizer import encode_event

LOGGER = logging.getLogger(__name__)
DEFAULT_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
UPSTREAM_DONE = b"data: [DONE]\n\n"


class OpenAIInference:
    """Stream or complete chat turns through `AsyncOpenAI`."""

    def __init__(self, client: AsyncOpenAI, model: str = DEFAULT_MODEL) -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client
        self.model = model

    def _request(self, messages: List[Dict[str, Any]], seed: Optional[int]) -> Dict[str, Any]:
        request: Dict[str, Any] = {"model": self.model, "messages": messages}
        if seed is not None:
            request["seed"] = seed
        return request

    async def stream(
        self, messages: List[Dict[str, Any]], *, seed: Optional[int] = None
    ) -> AsyncIterator[bytes]:
        """Yield one event frame per non-empty content delta, then the done sentinel."""
        try:
            stream = await self.client.chat.completions.create(**self._request(messages, seed), stream=True)
        except OpenAIError as exc:
            LOGGER.error("OpenAI streaming request failed: %s", exc)
            raise TransportError(f"OpenAI request failed: {exc}") from exc

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield encode_event({"response": delta})
        except OpenAIError as exc:
            LOGGER.error("OpenAI stream read failed: %s", exc)
            raise TransportError(f"OpenAI stream interrupted: {exc}") from exc
        finally:
            await stream.close()

        yield UPSTREAM_DONE

    async def complete(self, messages: List[Dict[str, Any]], *, seed: Optional[int] = None) -> str:
        """Return the full text of a single non-streaming call."""
        try:
            response = await self.client.chat.completions.create(**self._request(messages, seed))
        except OpenAIError as exc:
            LOGGER.error("OpenAI completion request failed: %s", exc)
            raise TransportError(f"OpenAI request failed: {exc}") from exc

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def aclose(self) -> None:
        await self.client.close()
