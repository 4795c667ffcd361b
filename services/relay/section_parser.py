"""Split accumulated response text into labeled sections.

Sections are introduced by delimiter lines such as `=== SCHEMATIC ===`.
Text without any delimiter (free-form ASCII art, a bare answer) becomes a
single `unlabeled` section.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from models.relay_models import UNLABELED, Section
from services.relay.prompts import CIRCUIT_LABELS, REFUSAL_SENTINEL

DELIMITER_RE = re.compile(r"^[ \t]*===[ \t]*(\S(?:.*?\S)?)[ \t]*===[ \t]*$", re.MULTILINE)


def _trim_blank_lines(text: str) -> str:
    """Drop leading and trailing blank lines, keeping indentation of the rest."""
    lines = text.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def parse_sections(text: str, labels: Optional[Sequence[str]] = CIRCUIT_LABELS) -> List[Section]:
    """Return the ordered sections found in `text`.

    Args:
        text: Concatenated response text of one turn or translation call.
        labels: Labels expected for the active mode. Matching is
            case-sensitive; other labels are kept with `known=False`.
            Pass None to accept every label.
    """
    text = text.replace("\r\n", "\n")
    matches = list(DELIMITER_RE.finditer(text))
    if not matches:
        return [Section(label=UNLABELED, body=_trim_blank_lines(text))]

    sections: List[Section] = []
    preamble = _trim_blank_lines(text[: matches[0].start()])
    if preamble:
        sections.append(Section(label=UNLABELED, body=preamble))

    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        label = match.group(1)
        sections.append(
            Section(
                label=label,
                body=_trim_blank_lines(text[match.end() : end]),
                known=labels is None or label in labels,
            )
        )
    return sections


def is_refusal(text: str) -> bool:
    """True when the whole response is the refusal sentinel."""
    return text.strip() == REFUSAL_SENTINEL


def render_sections(sections: Sequence[Section]) -> str:
    """Join sections back into delimiter form (unlabeled bodies stay bare)."""
    blocks = []
    for section in sections:
        if section.is_unlabeled:
            blocks.append(section.body)
        else:
            blocks.append(f"=== {section.label} ===\n{section.body}")
    return "\n\n".join(blocks)
