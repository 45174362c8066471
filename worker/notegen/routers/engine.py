from __future__ import annotations

import os
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from ..models.engine import EngineCapability, EngineConfigRequest, EngineStatusResponse, LocalLoadResponse
from ..services.backends import PROVIDER_BASES, PROVIDER_KEY_ENV
from ..state import State, get_state

router = APIRouter(tags=["engine"])


def _status(state: State) -> Dict[str, Any]:
    return {"ok": True, **state.engine_router.status()}


@router.get("/engine", response_model=EngineStatusResponse)
def v1_engine(state: State = Depends(get_state)) -> Dict[str, Any]:
    return _status(state)


@router.post("/engine_config", response_model=EngineStatusResponse)
def v1_engine_config(payload: EngineConfigRequest, state: State = Depends(get_state)) -> Dict[str, Any]:
    settings = state.settings
    if payload.engine is not None:
        engine = EngineCapability.parse(payload.engine)
        if engine is None:
            raise HTTPException(status_code=400, detail=f"Unknown engine '{payload.engine}' (expected remote|local)")
        state.engine_router.set_engine(engine)
    if payload.provider is not None:
        provider = payload.provider.strip().lower()
        if provider and provider not in PROVIDER_BASES:
            raise HTTPException(status_code=400, detail=f"Unknown provider '{payload.provider}' (expected openai|groq)")
        settings.remote_provider = provider or "openai"
    if payload.api_key is not None:
        env_name = PROVIDER_KEY_ENV[settings.remote_provider]
        key = payload.api_key.strip()
        if key:
            os.environ[env_name] = key
        else:
            os.environ.pop(env_name, None)
    if payload.model is not None:
        model = payload.model.strip()
        if model:
            settings.remote_model = model
    return _status(state)


@router.post("/engine/local/load", response_model=LocalLoadResponse)
async def v1_engine_local_load(state: State = Depends(get_state)) -> Dict[str, Any]:
    return await state.engine_router.load_local_engine()
