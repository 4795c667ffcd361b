"""FastAPI routes for the streaming chat relay and translation."""

from typing import List, Literal

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from controllers.relay_controller import stream_chat, translate

router = APIRouter()


class HistoryItem(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatPayload(BaseModel):
    history: List[HistoryItem] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    text: str = ""


class TranslationContent(BaseModel):
    schematic: str = ""
    pcb: str = ""
    bom: str = ""


class TranslatePayload(BaseModel):
    language: str
    content: TranslationContent
    stream: bool = True


@router.post("/chat")
async def chat_route(request: Request, payload: ChatPayload):
    """Stream the model reply for each attached image, or for the text alone."""
    try:
        return await stream_chat(
            request,
            [item.model_dump() for item in payload.history],
            payload.images,
            payload.text,
        )
    except HTTPException:
        raise
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/translate")
async def translate_route(request: Request, payload: TranslatePayload):
    """Translate a schematic/PCB/BOM document into the requested language."""
    try:
        return await translate(request, payload.language, payload.content.model_dump(), payload.stream)
    except HTTPException:
        raise
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
