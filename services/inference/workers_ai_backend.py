"""Inference backend for the Cloudflare Workers AI REST API.

Workers AI already streams `data: {"response": "..."}` frames, so the raw
response bytes are relayed untouched for the decoder to reassemble.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from services.relay.errors import TransportError

LOGGER = logging.getLogger(__name__)
DEFAULT_MODEL = "@cf/meta/llama-4-scout-17b-16e-instruct"
API_URL = "https://api.cloudflare.com/client/v4/accounts/{account_id}/ai/run/{model}"


class WorkersAIInference:
    """Run chat turns against a Workers AI text-generation model."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        account_id: str,
        api_token: str,
        model: str = DEFAULT_MODEL,
    ) -> None:
        if client is None:
            raise ValueError("httpx.AsyncClient is required.")
        if not account_id or not api_token:
            raise ValueError("Workers AI needs both an account id and an API token.")
        self.client = client
        self.model = model
        self.url = API_URL.format(account_id=account_id, model=model)
        self._headers = {"Authorization": f"Bearer {api_token}"}

    def _payload(self, messages: List[Dict[str, Any]], seed: Optional[int], stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"messages": messages, "stream": stream}
        if seed is not None:
            payload["seed"] = seed
        return payload

    async def stream(
        self, messages: List[Dict[str, Any]], *, seed: Optional[int] = None
    ) -> AsyncIterator[bytes]:
        """Yield the upstream event-stream body as it arrives."""
        try:
            async with self.client.stream(
                "POST", self.url, json=self._payload(messages, seed, True), headers=self._headers
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    LOGGER.error("Workers AI stream rejected with HTTP %s: %r", response.status_code, body[:200])
                    raise TransportError(
                        f"Workers AI returned HTTP {response.status_code}: {body[:200]!r}"
                    )
                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as exc:
            LOGGER.error("Workers AI stream failed: %s", exc)
            raise TransportError(f"Workers AI stream failed: {exc}") from exc

    async def complete(self, messages: List[Dict[str, Any]], *, seed: Optional[int] = None) -> str:
        """Return the `result.response` text of a non-streaming call."""
        try:
            response = await self.client.post(
                self.url, json=self._payload(messages, seed, False), headers=self._headers
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.error("Workers AI request failed: %s", exc)
            raise TransportError(f"Workers AI request failed: {exc}") from exc

        if not body.get("success", True):
            raise TransportError(f"Workers AI reported errors: {body.get('errors')}")
        result = body.get("result") or {}
        return result.get("response") or ""

    async def aclose(self) -> None:
        await self.client.aclose()
