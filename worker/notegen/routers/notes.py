from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..models.notes import (
    AskQuestionRequest,
    AskQuestionResponse,
    EnhanceNotesRequest,
    NoteResult,
    TitleRequest,
    TitleResponse,
)
from ..services.engine_router import EngineRouter
from ..services.templates import get_template
from ..state import get_engine_router

router = APIRouter(tags=["notes"])


@router.post("/notes/enhance", response_model=NoteResult)
async def v1_notes_enhance(
    payload: EnhanceNotesRequest, engine: EngineRouter = Depends(get_engine_router)
) -> NoteResult:
    template = payload.template
    if template is None and payload.template_id:
        template = get_template(payload.template_id)
        if template is None:
            raise HTTPException(status_code=404, detail=f"Template {payload.template_id} not found")
    return await engine.generate_enhanced_notes(
        payload.transcript,
        raw_notes=payload.raw_notes,
        title=payload.title,
        meeting_info=payload.meeting_info,
        output_language=payload.output_language,
        template=template,
    )


@router.post("/notes/ask", response_model=AskQuestionResponse)
async def v1_notes_ask(
    payload: AskQuestionRequest, engine: EngineRouter = Depends(get_engine_router)
) -> AskQuestionResponse:
    answer = await engine.ask_question(payload.question, payload.transcript, payload.notes, payload.title)
    return AskQuestionResponse(answer=answer)


@router.post("/notes/title", response_model=TitleResponse)
async def v1_notes_title(payload: TitleRequest, engine: EngineRouter = Depends(get_engine_router)) -> TitleResponse:
    title = await engine.generate_title(payload.transcript, payload.output_language)
    return TitleResponse(title=title)
