"""Sequence model turns into one well-formed outbound event stream.

A chat request is resolved once into a request mode. Image requests run one
turn per image, in order, each followed by a newline separator frame. Text
requests run a single turn with no separator. Every stream that completes
ends with exactly one `data: [DONE]` frame; a failed or abandoned stream
never gets one.
"""

from __future__ import annotations

import logging
import time
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

from models.relay_models import (
    ChatRequest,
    HistoryMessage,
    ImageTurnsMode,
    TextTurnMode,
    Turn,
    resolve_mode,
)
from services.inference.capability import InferenceCapability
from services.relay.frame_decoder import decode_frames
from services.relay.prompts import DEFAULT_PROMPT, SystemInstruction
from services.relay.sanitizer import encode_event, sanitize_frame

LOGGER = logging.getLogger(__name__)

SEPARATOR_FRAME = encode_event({"response": "\n"})
TERMINAL_FRAME = b"data: [DONE]\n\n"

DisconnectProbe = Callable[[], Awaitable[bool]]


def text_part(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def image_part(url: str) -> Dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": url}}


def build_turn(
    history: Sequence[HistoryMessage], user_content: Any, instruction: SystemInstruction
) -> Turn:
    """History, then the user message, then the trailing system instruction."""
    messages = [message.as_message() for message in history]
    messages.append({"role": "user", "content": user_content})
    messages.append(instruction.as_message())
    return Turn(messages=tuple(messages))


@dataclass(frozen=True)
class PlannedTurn:
    turn: Turn
    separator: bool = False


class TurnOrchestrator:
    """Run planned turns strictly one after another and frame their output.

    Args:
        inference: Capability used for every model call.
        instruction: Prompt variant appended as the last message of each turn.
        seed: Fixed sampling seed passed to every call.
        default_prompt: Text used for image turns whose request text is blank.
        strict: Raise on an unterminated trailing frame instead of discarding it.
    """

    def __init__(
        self,
        inference: InferenceCapability,
        instruction: SystemInstruction,
        *,
        seed: Optional[int] = None,
        default_prompt: str = DEFAULT_PROMPT,
        strict: bool = False,
    ) -> None:
        if inference is None:
            raise ValueError("An inference capability is required.")
        self.inference = inference
        self.instruction = instruction
        self.seed = seed
        self.default_prompt = default_prompt
        self.strict = strict

    def plan(self, request: ChatRequest) -> List[PlannedTurn]:
        """Return the ordered turns for a chat request."""
        mode = resolve_mode(request)
        if isinstance(mode, ImageTurnsMode):
            prompt = request.text if request.text.strip() else self.default_prompt
            return [
                PlannedTurn(
                    build_turn(request.history, [image_part(url), text_part(prompt)], self.instruction),
                    separator=True,
                )
                for url in mode.images
            ]
        if isinstance(mode, TextTurnMode):
            return [PlannedTurn(build_turn(request.history, [text_part(request.text)], self.instruction))]
        raise ValueError(f"Unsupported request mode: {mode!r}")

    async def relay(
        self, request: ChatRequest, *, is_disconnected: Optional[DisconnectProbe] = None
    ) -> AsyncIterator[bytes]:
        """Yield the complete outbound byte stream for a chat request."""
        async with aclosing(self.run(self.plan(request), is_disconnected=is_disconnected)) as frames:
            async for frame in frames:
                yield frame

    async def run(
        self, plan: Sequence[PlannedTurn], *, is_disconnected: Optional[DisconnectProbe] = None
    ) -> AsyncIterator[bytes]:
        """Run each planned turn in order, then emit the terminal marker."""
        for index, step in enumerate(plan):
            if is_disconnected is not None and await is_disconnected():
                LOGGER.info("Client disconnected; %d turn(s) not started", len(plan) - index)
                return
            async with aclosing(self.run_turn(step.turn)) as frames:
                async for frame in frames:
                    yield frame
            if step.separator:
                yield SEPARATOR_FRAME
        yield TERMINAL_FRAME

    async def run_turn(self, turn: Turn) -> AsyncIterator[bytes]:
        """Stream one model call through the decoder and sanitizer."""
        start = time.time()
        count = 0
        upstream = self.inference.stream(turn.as_list(), seed=self.seed)
        async with aclosing(upstream), aclosing(decode_frames(upstream, strict=self.strict)) as frames:
            async for frame in frames:
                if frame.is_done:
                    break
                count += 1
                yield sanitize_frame(frame)

        LOGGER.info("Turn relayed %d frame(s) in %.3fs", count, time.time() - start)
