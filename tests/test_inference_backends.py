"""Tests for the OpenAI and Workers AI inference backends."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError

from services.inference.openai_backend import OpenAIInference
from services.inference.workers_ai_backend import WorkersAIInference
from services.relay.errors import TransportError
from services.relay.frame_decoder import FrameDecoder


def _chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class _FakeStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk

    async def close(self):
        self.closed = True


def _openai_client(create):
    client = MagicMock()
    client.chat.completions.create = create
    client.close = AsyncMock()
    return client


class TestOpenAIInference:
    @pytest.mark.asyncio
    async def test_stream_reframes_deltas(self):
        stream = _FakeStream([_chunk("R1"), _chunk(None), SimpleNamespace(choices=[]), _chunk("Ω")])
        create = AsyncMock(return_value=stream)
        backend = OpenAIInference(_openai_client(create), model="m")

        raw = b"".join([chunk async for chunk in backend.stream([{"role": "user", "content": "x"}], seed=4)])

        frames = FrameDecoder().feed(raw)
        assert [f.text for f in frames if f.is_event] == ["R1", "Ω"]
        assert frames[-1].is_done
        assert stream.closed
        kwargs = create.await_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["seed"] == 4
        assert kwargs["model"] == "m"

    @pytest.mark.asyncio
    async def test_request_failure_is_transport_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        create = AsyncMock(side_effect=APIConnectionError(request=request))
        backend = OpenAIInference(_openai_client(create))

        with pytest.raises(TransportError):
            async for _ in backend.stream([]):
                pass

    @pytest.mark.asyncio
    async def test_complete_returns_message_text(self):
        response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="done"))])
        create = AsyncMock(return_value=response)
        backend = OpenAIInference(_openai_client(create))

        assert await backend.complete([], seed=1) == "done"
        assert "stream" not in create.await_args.kwargs

    @pytest.mark.asyncio
    async def test_aclose_closes_client(self):
        client = _openai_client(AsyncMock())
        await OpenAIInference(client).aclose()
        client.close.assert_awaited_once()

    def test_client_is_required(self):
        with pytest.raises(ValueError):
            OpenAIInference(None)


def _workers(handler) -> WorkersAIInference:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WorkersAIInference(client, account_id="acct", api_token="tok", model="@cf/test/model")


class TestWorkersAIInference:
    @pytest.mark.asyncio
    async def test_stream_relays_raw_bytes(self):
        upstream = b'data: {"response":"a"}\n\ndata: [DONE]\n\n'
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=upstream, headers={"content-type": "text/event-stream"})

        backend = _workers(handler)
        raw = b"".join([chunk async for chunk in backend.stream([{"role": "user", "content": "x"}], seed=9)])

        assert raw == upstream
        assert seen["url"].endswith("/accounts/acct/ai/run/@cf/test/model")
        assert seen["auth"] == "Bearer tok"
        assert seen["body"] == {"messages": [{"role": "user", "content": "x"}], "stream": True, "seed": 9}
        await backend.aclose()

    @pytest.mark.asyncio
    async def test_http_error_status_is_transport_error(self, caplog):
        backend = _workers(lambda request: httpx.Response(500, content=b"boom"))

        with pytest.raises(TransportError):
            async for _ in backend.stream([]):
                pass
        assert any(r.levelname == "ERROR" and "HTTP 500" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        backend = _workers(handler)
        with pytest.raises(TransportError):
            await backend.complete([])

    @pytest.mark.asyncio
    async def test_complete_reads_result_response(self):
        backend = _workers(
            lambda request: httpx.Response(200, json={"success": True, "result": {"response": "hello"}})
        )
        assert await backend.complete([]) == "hello"

    @pytest.mark.asyncio
    async def test_unsuccessful_body_is_transport_error(self):
        backend = _workers(
            lambda request: httpx.Response(200, json={"success": False, "errors": [{"message": "bad"}]})
        )
        with pytest.raises(TransportError):
            await backend.complete([])

    def test_credentials_are_required(self):
        with pytest.raises(ValueError):
            WorkersAIInference(httpx.AsyncClient(), account_id="", api_token="tok")
