from __future__ import annotations

from fastapi import APIRouter, Depends

from ..models.registry import SuggestFolderRequest, SuggestTemplateRequest, SuggestionResponse
from ..services.engine_router import EngineRouter
from ..services.templates import list_templates
from ..state import get_engine_router

router = APIRouter(tags=["suggest"])


@router.post("/suggest/folder", response_model=SuggestionResponse)
async def v1_suggest_folder(
    payload: SuggestFolderRequest, engine: EngineRouter = Depends(get_engine_router)
) -> SuggestionResponse:
    suggestion = await engine.suggest_folder(payload.content, payload.title, payload.folders)
    return SuggestionResponse(suggestion=suggestion)


@router.post("/suggest/template", response_model=SuggestionResponse)
async def v1_suggest_template(
    payload: SuggestTemplateRequest, engine: EngineRouter = Depends(get_engine_router)
) -> SuggestionResponse:
    templates = payload.templates if payload.templates is not None else list_templates()
    suggestion = await engine.suggest_template(
        payload.title, payload.raw_notes, payload.transcript_preview, templates
    )
    return SuggestionResponse(suggestion=suggestion)
