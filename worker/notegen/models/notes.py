from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from .registry import Template


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str

    class Config:
        frozen = True


class GenerationRequest(BaseModel):
    """One backend call. Built fresh per call, never shared."""

    messages: List[ChatMessage]
    max_tokens: int = 2000
    temperature: float = 0.7
    json_mode: bool = False
    # Log label only (chunk, pass1, pass2, ask, ...); not sent to the backend.
    purpose: str = "chat"

    def messages_payload(self) -> List[dict]:
        return [m.dict() for m in self.messages]


class ChunkRole(str, Enum):
    OPENING = "opening"
    MIDDLE = "middle"
    CLOSING = "closing"


@dataclass(frozen=True)
class TranscriptChunk:
    index: int
    total: int
    role: ChunkRole
    source_range: Tuple[int, int]
    text: str

    @property
    def is_last(self) -> bool:
        return self.index == self.total - 1


@dataclass(frozen=True)
class ChunkSummary:
    index: int
    label: str
    text: str


class MeetingInfo(BaseModel):
    title: Optional[str] = None
    start_time: Optional[str] = Field(None, description="ISO timestamp of the scheduled start")
    provider: Optional[str] = Field(None, description="e.g. zoom, meet, teams")


class NoteResult(BaseModel):
    summary: str
    enhanced_notes: str
    template_id: Optional[str] = None


class EnhanceNotesRequest(BaseModel):
    transcript: str
    raw_notes: str = ""
    title: str = "Untitled"
    meeting_info: Optional[MeetingInfo] = None
    output_language: str = "en"
    template_id: Optional[str] = None
    template: Optional[Template] = None


class AskQuestionRequest(BaseModel):
    question: str = Field(..., min_length=1)
    transcript: str = ""
    notes: str = ""
    title: str = "Untitled"


class AskQuestionResponse(BaseModel):
    ok: bool = True
    answer: Optional[str] = None


class TitleRequest(BaseModel):
    transcript: Union[List[str], str]
    output_language: str = "en"


class TitleResponse(BaseModel):
    ok: bool = True
    title: Optional[str] = None
