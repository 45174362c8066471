from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import Request

from .config import Settings
from .db import PreferenceStore
from .services.engine_router import EngineRouter


@dataclass
class State:
    """Per-app collaborators, attached to FastAPI's app.state.

    Backends are injected here instead of living in module globals, so tests
    can swap in fakes through ``create_app``.
    """

    settings: Settings
    preferences: PreferenceStore
    remote: Any
    local: Any
    engine_router: Optional[EngineRouter] = field(default=None)

    def __post_init__(self) -> None:
        if self.engine_router is None:
            self.engine_router = EngineRouter(self.remote, self.local, self.preferences, self.settings)


def get_state(request: Request) -> State:  # FastAPI dependency helper
    return request.app.state.state


def get_engine_router(request: Request) -> EngineRouter:
    return request.app.state.state.engine_router
