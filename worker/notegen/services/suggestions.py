from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..errors import EngineError
from ..models.notes import ChatMessage, GenerationRequest
from ..models.registry import Folder, Suggestion, Template
from . import prompts
from .parsing import parse_choice
from .streaming import StreamingAdapter

logger = logging.getLogger("app.suggest")

# Low-confidence picks are noise for the user; they are dropped.
SURFACED_CONFIDENCE = ("high", "medium")


async def _choose(
    adapter: StreamingAdapter, messages: List[ChatMessage], ids: Sequence[str], purpose: str
) -> Optional[Suggestion]:
    req = GenerationRequest(messages=messages, max_tokens=150, temperature=0.2, json_mode=True, purpose=purpose)
    try:
        text = await adapter.run(req)
    except EngineError as e:
        logger.warning(f"{purpose} failed: {e.message}")
        return None
    choice = parse_choice(text or "", tuple(ids))
    if choice is None:
        logger.info(f"{purpose}: no usable choice in output")
        return None
    index, confidence, reason = choice
    if confidence not in SURFACED_CONFIDENCE:
        logger.info(f"{purpose}: dropped {confidence} confidence pick {ids[index]}")
        return None
    logger.info(f"{purpose}: {ids[index]} ({confidence})")
    return Suggestion(id=ids[index], confidence=confidence, reason=reason)


async def suggest_folder(
    adapter: StreamingAdapter, content: str, title: str, folders: Sequence[Folder]
) -> Optional[Suggestion]:
    if not folders or not (content or "").strip():
        return None
    return await _choose(
        adapter, prompts.folder_messages(content, title, folders), [f.id for f in folders], "suggest_folder"
    )


async def suggest_template(
    adapter: StreamingAdapter,
    title: str,
    raw_notes: str,
    transcript_preview: str,
    templates: Sequence[Template],
) -> Optional[Suggestion]:
    if not templates:
        return None
    if not (raw_notes or "").strip() and not (transcript_preview or "").strip():
        return None
    return await _choose(
        adapter,
        prompts.template_messages(title, raw_notes, transcript_preview, templates),
        [t.id for t in templates],
        "suggest_template",
    )
