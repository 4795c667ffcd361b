"""Tests for the translation adapter in streaming and buffered modes."""

from __future__ import annotations

import json

import pytest

from models.relay_models import Section
from services.relay.orchestrator import SEPARATOR_FRAME, TERMINAL_FRAME
from services.relay.prompts import TRANSLATION_LABELS
from services.relay.section_parser import parse_sections
from services.relay.transcript import read_transcript
from services.relay.translation import TranslationAdapter, sections_from_content

CONTENT = {
    "schematic": "+--[R1 1k]--+",
    "pcb": "| U1 |",
    "bom": "R1 - 1 - resistor - 1k",
}

TRANSLATED = "=== SCHEMATIC ===\n+--[R1 1k]--+\n\n=== PCB ===\n| U1 |\n\n=== BOM ===\nR1 - 1 - Widerstand - 1k\n"


def test_sections_from_content_keep_fixed_order():
    sections = sections_from_content({"bom": "b", "schematic": "s"})
    assert [s.label for s in sections] == list(TRANSLATION_LABELS)
    assert [s.body for s in sections] == ["s", "", "b"]


def test_translation_turn_embeds_bodies_verbatim(make_inference):
    adapter = TranslationAdapter(make_inference())
    mode = adapter.resolve(sections_from_content(CONTENT), "German")
    messages = adapter.build_turn(mode).turn.as_list()

    assert [m["role"] for m in messages] == ["user", "system"]
    user_text = messages[0]["content"][0]["text"]
    for label in TRANSLATION_LABELS:
        assert f"=== {label} ===" in user_text
    for body in CONTENT.values():
        assert body in user_text
    instruction = messages[1]["content"]
    assert "German" in instruction
    assert "no preamble" in instruction


def test_missing_language_is_rejected(make_inference):
    adapter = TranslationAdapter(make_inference())
    with pytest.raises(ValueError):
        adapter.resolve(sections_from_content(CONTENT), "  ")


@pytest.mark.asyncio
async def test_streaming_translation_uses_relay_framing(make_inference, body, gather):
    half = len(TRANSLATED) // 2
    inference = make_inference([body(TRANSLATED[:half], TRANSLATED[half:])], chunk_size=5)
    adapter = TranslationAdapter(inference, seed=3)

    frames = await gather(adapter.stream(sections_from_content(CONTENT), "German"))

    assert frames[-1] == TERMINAL_FRAME
    assert SEPARATOR_FRAME not in frames
    assert inference.calls[0]["seed"] == 3
    transcript = read_transcript(frames)
    assert transcript.completed
    sections = transcript.sections(TRANSLATION_LABELS)
    assert [s.label for s in sections] == list(TRANSLATION_LABELS)


@pytest.mark.asyncio
async def test_buffered_translation_round_trips_structure(make_inference):
    inference = make_inference(completion="```\nnote\n```" + TRANSLATED)
    adapter = TranslationAdapter(inference)
    source = sections_from_content(CONTENT)

    result = await adapter.translate(source, "German")

    assert inference.calls[0]["stream"] is False
    assert "```" not in result.response
    assert [s.label for s in result.sections] == [s.label for s in source]
    payload = result.as_dict()
    assert payload["language"] == "German"
    assert json.loads(json.dumps(payload))["sections"][2]["body"] == "R1 - 1 - Widerstand - 1k"


def test_round_trip_of_parsed_sections():
    parsed = parse_sections(TRANSLATED, TRANSLATION_LABELS)
    assert parsed == [
        Section(label="SCHEMATIC", body="+--[R1 1k]--+"),
        Section(label="PCB", body="| U1 |"),
        Section(label="BOM", body="R1 - 1 - Widerstand - 1k"),
    ]
