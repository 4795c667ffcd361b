"""System instruction variants appended as the last message of every turn."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple

REFUSAL_SENTINEL = "ERROR"

DEFAULT_PROMPT = "Describe the circuit shown in this image."

# Ordered labels for the block-structured prompt variants.
CIRCUIT_LABELS: Tuple[str, ...] = ("SUMMARY", "SCHEMATIC", "PCB", "BOM")
TRANSLATION_LABELS: Tuple[str, ...] = ("SCHEMATIC", "PCB", "BOM")
SUMMARY_LABELS: Tuple[str, ...] = ("SUMMARY",)


def block_delimiter(label: str) -> str:
    return f"=== {label} ==="


@dataclass(frozen=True)
class SystemInstruction:
    """Output-format contract plus behavioral rules for one prompt variant."""

    name: str
    persona: str
    output_format: Tuple[str, ...] = ()
    rules: Tuple[str, ...] = ()
    labels: Tuple[str, ...] = field(default=())

    def render(self) -> str:
        lines = [self.persona, ""]
        lines.extend(f"⚠️ {line}" for line in self.output_format)
        lines.extend(f"⚠️ {line}" for line in self.rules)
        return "\n".join(lines).rstrip()

    def as_message(self) -> Dict[str, str]:
        return {"role": "system", "content": self.render()}


def _block_format(labels: Tuple[str, ...]) -> Tuple[str, ...]:
    order = ", ".join(block_delimiter(label) for label in labels)
    return (
        f"ALWAYS structure the reply as these blocks, in this exact order: {order}.",
        "Put each delimiter alone on its own line and never rename, translate, or repeat a delimiter.",
    )


ASCII_ART = SystemInstruction(
    name="ascii",
    persona="You are a helpful electrical engineer.",
    output_format=(
        "ALWAYS reply with *only* ASCII art representing a complete, functional electronic circuit "
        "using standard components (e.g., resistors, capacitors, ICs, transistors, diodes, etc.).",
        "Label each component with its **type and value** (e.g., R1 1kΩ, C1 10µF, 555 Timer, etc.).",
        "Show **connections with lines**, and **nest or box components** when appropriate (e.g., for ICs).",
    ),
    rules=(
        "If the request is vague fill in the gaps always assume simplified assumptions",
        "Do NOT reply with explanations, text, captions, or code fences. Just ASCII art.",
        f"If you must refuse, reply with exactly: {REFUSAL_SENTINEL}",
    ),
)

CIRCUIT_BLOCKS = SystemInstruction(
    name="blocks",
    persona="You are a helpful electrical engineer who designs small, buildable circuits.",
    output_format=_block_format(CIRCUIT_LABELS)
    + (
        "SUMMARY: two or three sentences describing what the circuit does.",
        "SCHEMATIC: ASCII art of the complete circuit, each component labeled with type and value.",
        "PCB: ASCII art of a single-layer board layout placing the same components.",
        "BOM: one line per part as `REF - qty - description - value`.",
    ),
    rules=(
        "If the request is vague fill in the gaps always assume simplified assumptions",
        "Do NOT use code fences or add text outside the blocks.",
        f"If you must refuse, reply with exactly: {REFUSAL_SENTINEL}",
    ),
    labels=CIRCUIT_LABELS,
)

SUMMARY_ONLY = SystemInstruction(
    name="summary",
    persona="You are a helpful electrical engineer answering questions about circuits.",
    output_format=_block_format(SUMMARY_LABELS)
    + ("SUMMARY: a short, direct answer to the question in plain text.",),
    rules=(
        "Do NOT draw diagrams or use code fences.",
        f"If you must refuse, reply with exactly: {REFUSAL_SENTINEL}",
    ),
    labels=SUMMARY_LABELS,
)

VARIANTS: Dict[str, SystemInstruction] = {
    variant.name: variant for variant in (ASCII_ART, CIRCUIT_BLOCKS, SUMMARY_ONLY)
}


def get_instruction(name: str) -> SystemInstruction:
    """Return a registered prompt variant by name."""
    try:
        return VARIANTS[name]
    except KeyError as exc:
        raise ValueError(
            f"Unknown prompt variant '{name}'. Supported: {', '.join(VARIANTS)}"
        ) from exc


def translation_instruction(language: str) -> SystemInstruction:
    """Return the instruction for translating a block-structured document."""
    return SystemInstruction(
        name="translation",
        persona=f"You are a professional technical translator working into {language}.",
        output_format=_block_format(TRANSLATION_LABELS),
        rules=(
            "Preserve the technical meaning exactly, including component references, values, and units.",
            f"Use natural {language} phrasing rather than a word-for-word rendering.",
            "Keep ASCII art line structure intact; translate only the words inside it.",
            "Reply with ONLY the translated document: no preamble, no notes, no postscript.",
        ),
        labels=TRANSLATION_LABELS,
    )
