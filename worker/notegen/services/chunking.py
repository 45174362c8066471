from __future__ import annotations

import logging
from typing import List, Sequence

from ..config import Settings
from ..errors import EngineError
from ..models.notes import ChunkRole, ChunkSummary, GenerationRequest, TranscriptChunk
from . import prompts
from .streaming import StreamingAdapter

logger = logging.getLogger("app.chunking")

UNSUMMARIZED_LABEL = "[Unsummarized excerpt]"


def assign_role(index: int, total: int) -> ChunkRole:
    if index == 0:
        return ChunkRole.OPENING
    if index == total - 1:
        return ChunkRole.CLOSING
    return ChunkRole.MIDDLE


def chunk_text(text: str, window_size: int, overlap: int) -> List[TranscriptChunk]:
    """Split ``text`` into overlapping windows that cover it without gaps.

    Each start advances by ``window_size - overlap``; the last window ends
    exactly at ``len(text)``. A single window is returned when the text fits.
    """
    if window_size <= 0:
        raise ValueError("window_size must be positive")
    if overlap < 0 or overlap >= window_size:
        raise ValueError("overlap must be >= 0 and smaller than window_size")
    n = len(text)
    if n == 0:
        return []

    ranges = []
    start = 0
    while True:
        end = start + window_size
        if end >= n:
            ranges.append((start, n))
            break
        ranges.append((start, end))
        start += window_size - overlap

    total = len(ranges)
    return [
        TranscriptChunk(index=i, total=total, role=assign_role(i, total), source_range=(s, e), text=text[s:e])
        for i, (s, e) in enumerate(ranges)
    ]


def chunk_label(chunk: TranscriptChunk) -> str:
    return f"### Part {chunk.index + 1} of {chunk.total} ({chunk.role.value})"


def recombine(summaries: Sequence[ChunkSummary]) -> str:
    # Source order only; importance ordering is left to the synthesis prompt.
    ordered = sorted(summaries, key=lambda s: s.index)
    return "\n\n".join(f"{s.label}\n{s.text.strip()}" for s in ordered)


class ChunkingEngine:
    """Summarizes oversized text window by window through one adapter.

    Windows are processed sequentially. A failed window never aborts the
    run: it contributes a raw excerpt of its source text instead.
    """

    def __init__(self, adapter: StreamingAdapter, settings: Settings) -> None:
        self.adapter = adapter
        self.settings = settings

    def token_budget(self, chunk: TranscriptChunk) -> int:
        if chunk.role is ChunkRole.CLOSING or chunk.is_last:
            return self.settings.chunk_tokens_closing
        if chunk.role is ChunkRole.OPENING:
            return self.settings.chunk_tokens_opening
        return self.settings.chunk_tokens_middle

    def excerpt(self, chunk: TranscriptChunk) -> str:
        limit = self.settings.excerpt_chars_closing if chunk.is_last else self.settings.excerpt_chars
        body = chunk.text.strip()
        if len(body) > limit:
            body = body[:limit].rstrip() + " ..."
        return f"{UNSUMMARIZED_LABEL}\n{body}"

    async def extract(self, chunk: TranscriptChunk, kind: str = "transcript") -> ChunkSummary:
        req = GenerationRequest(
            messages=prompts.chunk_extraction_messages(chunk, kind=kind),
            max_tokens=self.token_budget(chunk),
            temperature=0.2,
            purpose=f"chunk_{kind}",
        )
        start, end = chunk.source_range
        timed_out = False
        try:
            outcome = await self.adapter.run_detailed(req)
            text, timed_out = outcome.text, outcome.timed_out
        except EngineError as e:
            logger.warning(
                f"{kind} part {chunk.index + 1}/{chunk.total} ({chunk.role.value}, {start}-{end}) failed: "
                f"{e.message}; using raw excerpt"
            )
            text = None
        if not text or not text.strip():
            if text is not None or timed_out:
                reason = "timed out with nothing" if timed_out else "returned nothing"
                logger.warning(f"{kind} part {chunk.index + 1}/{chunk.total} {reason}; using raw excerpt")
            return ChunkSummary(index=chunk.index, label=chunk_label(chunk), text=self.excerpt(chunk))
        outcome_label = "partial after timeout" if timed_out else "summarized"
        logger.info(
            f"{kind} part {chunk.index + 1}/{chunk.total} ({chunk.role.value}, {start}-{end}) {outcome_label}: "
            f"{len(text)} chars"
        )
        return ChunkSummary(index=chunk.index, label=chunk_label(chunk), text=text.strip())

    async def summarize(self, text: str, window_size: int, overlap: int, kind: str = "transcript") -> str:
        chunks = chunk_text(text, window_size, overlap)
        logger.info(f"chunking {kind}: {len(text)} chars into {len(chunks)} parts")
        summaries: List[ChunkSummary] = []
        for chunk in chunks:
            summaries.append(await self.extract(chunk, kind=kind))
        return recombine(summaries)
