from __future__ import annotations

from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class TemplateSection(BaseModel):
    id: str
    title: str
    instructions: str = ""


class Template(BaseModel):
    id: str
    name: str
    description: str = ""
    sections: List[TemplateSection] = []


class Folder(BaseModel):
    id: str
    name: str
    description: str = Field("", description="Free text used for matching")


class Suggestion(BaseModel):
    id: str
    confidence: Literal["high", "medium", "low"]
    reason: str = ""


class SuggestFolderRequest(BaseModel):
    content: str
    title: str = "Untitled"
    folders: List[Folder] = []


class SuggestTemplateRequest(BaseModel):
    title: str = "Untitled"
    raw_notes: str = ""
    transcript_preview: str = ""
    templates: Optional[List[Template]] = None


class SuggestionResponse(BaseModel):
    ok: bool = True
    suggestion: Optional[Suggestion] = None
