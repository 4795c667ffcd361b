import logging
from typing import Any, AsyncIterator, Dict, List, Mapping, Sequence

from fastapi import HTTPException, Request
from fastapi.responses import StreamingResponse

from models.relay_models import ChatRequest, HistoryMessage
from services.relay.errors import RelayError
from services.relay.orchestrator import TurnOrchestrator
from services.relay.prompts import get_instruction
from services.relay.sanitizer import encode_event
from services.relay.translation import TranslationAdapter, sections_from_content
from utils.media_validation import normalize_image_reference
from utils.settings import RelaySettings

LOGGER = logging.getLogger(__name__)

STREAM_HEADERS = {
    "access-control-allow-origin": "*",
    "cache-control": "no-cache",
    "x-accel-buffering": "no",
}


def _get_inference(request: Request):
    """Retrieve the shared inference capability from the app state.

    Args:
        request: Incoming FastAPI request.

    Returns:
        The inference capability created during application lifespan.

    Raises:
        HTTPException: If no capability has been initialized.
    """
    inference = getattr(request.app.state, "inference", None)
    if inference is None:
        raise HTTPException(status_code=503, detail="Inference capability not initialized.")
    return inference


def _get_settings(request: Request) -> RelaySettings:
    """Retrieve relay settings from the app state.

    Args:
        request: Incoming FastAPI request.

    Returns:
        The settings loaded at startup, or defaults when the lifespan has not run.
    """
    return getattr(request.app.state, "settings", None) or RelaySettings()


def build_chat_request(history: Sequence[Mapping[str, str]], images: Sequence[str], text: str) -> ChatRequest:
    """Validate plain request fields into a `ChatRequest`.

    Raises:
        ValueError: If a history role or image reference is invalid.
    """
    return ChatRequest(
        history=tuple(HistoryMessage(role=item["role"], content=item["content"]) for item in history),
        images=tuple(normalize_image_reference(image) for image in images),
        text=text or "",
    )


async def _guarded(frames: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Turn relay failures into a final error frame; the terminal marker is never sent."""
    try:
        async for frame in frames:
            yield frame
    except RelayError as exc:
        LOGGER.error("Relay aborted: %s", exc)
        yield encode_event({"response": "", "error": exc.message, "error_code": exc.error_code})
    except Exception:  # pylint: disable=broad-exception-caught
        LOGGER.exception("Unexpected relay failure")
        yield encode_event({"response": "", "error": "Unexpected relay failure.", "error_code": "internal"})


def _event_stream(frames: AsyncIterator[bytes]) -> StreamingResponse:
    """Wrap relay frames in a `text/event-stream` response with the relay headers."""
    return StreamingResponse(_guarded(frames), media_type="text/event-stream", headers=STREAM_HEADERS)


async def stream_chat(
    request: Request, history: List[Dict[str, str]], images: List[str], text: str
) -> StreamingResponse:
    """Relay one turn per image (or one text turn) as a single event stream.

    Args:
        request: Incoming FastAPI request, used for app state and disconnect checks.
        history: Prior conversation messages as `{role, content}` mappings.
        images: Image references (data URL, http(s) URL, or raw base64).
        text: User instruction for this request.

    Returns:
        A streaming response ending in `data: [DONE]` when every turn completes.

    Raises:
        HTTPException: If no inference capability is configured.
        ValueError: If a history role or image reference is invalid.
    """
    inference = _get_inference(request)
    settings = _get_settings(request)
    chat_request = build_chat_request(history, images, text)

    orchestrator = TurnOrchestrator(
        inference,
        get_instruction(settings.prompt_variant),
        seed=settings.seed,
        default_prompt=settings.default_prompt,
    )
    LOGGER.info(
        "Relaying chat: %d history message(s), %d image(s)", len(chat_request.history), len(chat_request.images)
    )
    return _event_stream(orchestrator.relay(chat_request, is_disconnected=request.is_disconnected))


async def translate(
    request: Request, language: str, content: Mapping[str, str], stream: bool = True
) -> Any:
    """Translate schematic, PCB, and BOM bodies, streamed or as one JSON object.

    Args:
        request: Incoming FastAPI request.
        language: Target language name.
        content: Mapping with optional `schematic`, `pcb`, and `bom` bodies.
        stream: Return an event stream when True, otherwise a JSON dictionary.

    Returns:
        A streaming response, or the translation result as a dictionary.

    Raises:
        HTTPException: 503 without an inference capability, 502 when a buffered call fails.
        ValueError: If the language is blank.
    """
    inference = _get_inference(request)
    settings = _get_settings(request)
    adapter = TranslationAdapter(inference, seed=settings.seed)
    sections = sections_from_content(content)

    if stream:
        adapter.resolve(sections, language)
        return _event_stream(adapter.stream(sections, language, is_disconnected=request.is_disconnected))

    try:
        result = await adapter.translate(sections, language)
    except RelayError as exc:
        LOGGER.error("Buffered translation failed: %s", exc)
        raise HTTPException(status_code=502, detail=exc.message) from exc
    return result.as_dict()
