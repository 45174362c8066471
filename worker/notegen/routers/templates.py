from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter

from ..services.templates import list_templates

router = APIRouter(tags=["templates"])


@router.get("/templates")
def v1_templates() -> Dict[str, Any]:
    return {"ok": True, "templates": [t.dict() for t in list_templates()]}
