"""Client-side view of a relayed stream.

Consumers fold the outbound frames into a transcript: the concatenated text
of every event, whether the terminal marker arrived, and any error frame.
A stream without the terminal marker is incomplete no matter how much text
it carried.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from models.relay_models import Section
from services.relay.frame_decoder import FrameDecoder
from services.relay.section_parser import is_refusal, parse_sections


@dataclass
class StreamTranscript:
    text: str = ""
    completed: bool = False
    error: Optional[str] = None
    passthrough: List[bytes] = field(default_factory=list)

    @property
    def refused(self) -> bool:
        return self.completed and is_refusal(self.text)

    def sections(self, labels: Optional[Sequence[str]] = None) -> List[Section]:
        if labels is None:
            return parse_sections(self.text)
        return parse_sections(self.text, labels)


def read_transcript(chunks: Iterable[bytes]) -> StreamTranscript:
    """Fold relayed byte chunks into a transcript."""
    decoder = FrameDecoder()
    parts: List[str] = []
    transcript = StreamTranscript()
    for chunk in chunks:
        for frame in decoder.feed(chunk):
            if frame.is_done:
                transcript.completed = True
            elif frame.is_passthrough:
                transcript.passthrough.append(frame.raw)
            elif frame.payload and "error" in frame.payload:
                transcript.error = str(frame.payload["error"])
            else:
                parts.append(frame.text)
    decoder.finish()
    transcript.text = "".join(parts)
    return transcript
