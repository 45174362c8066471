from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EngineCapability(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["EngineCapability"]:
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class EngineConfigRequest(BaseModel):
    engine: Optional[str] = Field(default=None, description="remote|local")
    provider: Optional[str] = Field(default=None, description="openai|groq")
    api_key: Optional[str] = Field(default=None, description="Remote credential; empty string clears it")
    model: Optional[str] = Field(default=None, description="Remote model id")


class EngineStatusResponse(BaseModel):
    ok: bool = True
    engine: EngineCapability
    remote: Dict[str, Any]
    local: Dict[str, Any]


class LocalLoadResponse(BaseModel):
    ok: bool
    ready: bool
