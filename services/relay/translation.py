"""Translate a SCHEMATIC/PCB/BOM document through the same relay machinery."""

from __future__ import annotations

import logging
import time
from contextlib import aclosing
from typing import AsyncIterator, List, Mapping, Optional, Sequence

from models.relay_models import Section, TranslationMode, TranslationResult
from services.inference.capability import InferenceCapability
from services.relay.orchestrator import (
    DisconnectProbe,
    PlannedTurn,
    TurnOrchestrator,
    build_turn,
    text_part,
)
from services.relay.prompts import TRANSLATION_LABELS, translation_instruction
from services.relay.sanitizer import sanitize_text
from services.relay.section_parser import parse_sections, render_sections

LOGGER = logging.getLogger(__name__)


def sections_from_content(content: Mapping[str, str]) -> List[Section]:
    """Build ordered sections from a `{schematic, pcb, bom}` mapping."""
    return [Section(label=label, body=content.get(label.lower(), "") or "") for label in TRANSLATION_LABELS]


class TranslationAdapter:
    """Build and run a translation turn, streaming or buffered."""

    def __init__(self, inference: InferenceCapability, *, seed: Optional[int] = None) -> None:
        if inference is None:
            raise ValueError("An inference capability is required.")
        self.inference = inference
        self.seed = seed

    @staticmethod
    def resolve(sections: Sequence[Section], language: str) -> TranslationMode:
        language = (language or "").strip()
        if not language:
            raise ValueError("A target language is required.")
        if not sections:
            raise ValueError("At least one section is required for translation.")
        return TranslationMode(sections=tuple(sections), language=language)

    def build_turn(self, mode: TranslationMode) -> PlannedTurn:
        """Embed every section body verbatim under its own delimiter."""
        document = render_sections(mode.sections)
        request_text = (
            f"Translate the following document into {mode.language}. "
            "Keep every === LABEL === line exactly as written.\n\n"
            f"{document}"
        )
        instruction = translation_instruction(mode.language)
        return PlannedTurn(build_turn((), [text_part(request_text)], instruction))

    def _orchestrator(self, mode: TranslationMode) -> TurnOrchestrator:
        return TurnOrchestrator(self.inference, translation_instruction(mode.language), seed=self.seed)

    async def stream(
        self,
        sections: Sequence[Section],
        language: str,
        *,
        is_disconnected: Optional[DisconnectProbe] = None,
    ) -> AsyncIterator[bytes]:
        """Yield translated event frames followed by the terminal marker."""
        mode = self.resolve(sections, language)
        orchestrator = self._orchestrator(mode)
        async with aclosing(orchestrator.run([self.build_turn(mode)], is_disconnected=is_disconnected)) as frames:
            async for frame in frames:
                yield frame

    async def translate(self, sections: Sequence[Section], language: str) -> TranslationResult:
        """Run a single blocking call and return the whole translation."""
        mode = self.resolve(sections, language)
        planned = self.build_turn(mode)
        start = time.time()
        text = await self.inference.complete(planned.turn.as_list(), seed=self.seed)
        LOGGER.info("Buffered translation into %s took %.3fs", mode.language, time.time() - start)

        cleaned = sanitize_text(text)
        return TranslationResult(
            language=mode.language,
            response=cleaned,
            sections=parse_sections(cleaned, TRANSLATION_LABELS),
        )
