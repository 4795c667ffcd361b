"""Shared fixtures: a scripted inference capability and upstream body builders."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


def sse_body(*texts: str, done: bool = True) -> bytes:
    """Upstream body shaped like Workers AI: one frame per text, then [DONE]."""
    frames = [f"data: {json.dumps({'response': text}, ensure_ascii=False)}\n\n" for text in texts]
    if done:
        frames.append("data: [DONE]\n\n")
    return "".join(frames).encode("utf-8")


def split_chunks(body: bytes, size: Optional[int]) -> List[bytes]:
    if not size:
        return [body]
    return [body[i : i + size] for i in range(0, len(body), size)]


class FakeInference:
    """Replays one scripted upstream body (or raises one error) per call, in order."""

    def __init__(
        self,
        responses: Sequence[Union[bytes, Exception]] = (),
        *,
        completion: str = "",
        chunk_size: Optional[int] = None,
    ) -> None:
        self.responses = list(responses)
        self.completion = completion
        self.chunk_size = chunk_size
        self.calls: List[Dict[str, Any]] = []
        self.closed_streams = 0
        self.closed = False

    async def stream(self, messages, *, seed=None):
        self.calls.append({"messages": messages, "seed": seed, "stream": True})
        response = self.responses[len(self.calls) - 1]
        try:
            if isinstance(response, Exception):
                raise response
            for chunk in split_chunks(response, self.chunk_size):
                yield chunk
        finally:
            self.closed_streams += 1

    async def complete(self, messages, *, seed=None) -> str:
        self.calls.append({"messages": messages, "seed": seed, "stream": False})
        return self.completion

    async def aclose(self) -> None:
        self.closed = True


async def collect(frames) -> List[bytes]:
    return [frame async for frame in frames]


@pytest.fixture
def make_inference():
    return FakeInference


@pytest.fixture
def body():
    return sse_body


@pytest.fixture
def gather():
    return collect


@pytest_asyncio.fixture
async def relay_app():
    from main import create_app

    app = create_app()
    return app


@pytest_asyncio.fixture
async def async_client(relay_app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=relay_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
