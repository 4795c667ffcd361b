"""Domain models for the streaming relay."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

HISTORY_ROLES = ("user", "assistant", "system")

UNLABELED = "unlabeled"


@dataclass(frozen=True)
class HistoryMessage:
    """One prior chat message copied verbatim into every turn."""

    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in HISTORY_ROLES:
            raise ValueError(f"Unsupported history role '{self.role}'.")

    def as_message(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatRequest:
    """Incoming chat call: prior history, attached images, and the instruction text."""

    history: Tuple[HistoryMessage, ...] = ()
    images: Tuple[str, ...] = ()
    text: str = ""


@dataclass(frozen=True)
class Turn:
    """A single model call: the full ordered message list sent upstream."""

    messages: Tuple[Dict[str, Any], ...]

    def as_list(self) -> List[Dict[str, Any]]:
        return list(self.messages)


@dataclass(frozen=True)
class Section:
    """A labeled, delimiter-bounded part of an accumulated response."""

    label: str
    body: str
    known: bool = True

    @property
    def is_unlabeled(self) -> bool:
        return self.label == UNLABELED


@dataclass(frozen=True)
class ImageTurnsMode:
    """One turn per image, each followed by a separator."""

    images: Tuple[str, ...]


@dataclass(frozen=True)
class TextTurnMode:
    """A single text-only turn, no separators."""


@dataclass(frozen=True)
class TranslationMode:
    """A single translation turn over already parsed sections."""

    sections: Tuple[Section, ...]
    language: str


RequestMode = Union[ImageTurnsMode, TextTurnMode, TranslationMode]


def resolve_mode(request: ChatRequest) -> RequestMode:
    """Pick the turn plan for a chat request once, at entry."""
    if request.images:
        return ImageTurnsMode(images=tuple(request.images))
    return TextTurnMode()


@dataclass
class TranslationResult:
    """Buffered translation output returned as a single JSON object."""

    language: str
    response: str
    sections: List[Section] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "response": self.response,
            "sections": [
                {"label": s.label, "body": s.body, "known": s.known} for s in self.sections
            ],
        }
