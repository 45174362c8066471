from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from ..config import Settings
from ..errors import EngineError, MergeRejected, NoOutput
from ..models.notes import GenerationRequest, MeetingInfo, NoteResult
from ..models.registry import Template
from . import prompts
from .chunking import ChunkingEngine
from .parsing import split_summary
from .streaming import StreamingAdapter

logger = logging.getLogger("app.synthesis")


class PipelineState(str, Enum):
    IDLE = "idle"
    PASS1_RUNNING = "pass1_running"
    PASS1_DONE = "pass1_done"
    PASS1_FAILED = "pass1_failed"
    PASS2_RUNNING = "pass2_running"
    PASS2_DONE = "pass2_done"
    PASS2_SKIPPED = "pass2_skipped"
    COMPLETE = "complete"
    FAILED = "failed"


class MergeOutcome(str, Enum):
    NO_NOTES = "no_notes"
    MERGED = "merged"
    FAILED = "failed"
    REJECTED = "rejected"


def accept_merge(pass1_text: str, pass2_text: Optional[str], min_ratio: float = 0.5) -> bool:
    """Quality guard: a merge must keep at least ``min_ratio`` of pass 1's length."""
    if not pass2_text or not pass2_text.strip():
        return False
    return len(pass2_text.strip()) >= min_ratio * len(pass1_text.strip())


class SynthesisPipeline:
    """Pass 1 structures the transcript; pass 2 merges substantial user notes.

    One instance per generation request. Pass 1 failures are fatal; pass 2
    failures and rejected merges fall back to the pass 1 text.
    """

    def __init__(self, adapter: StreamingAdapter, settings: Settings) -> None:
        self.adapter = adapter
        self.settings = settings
        self.chunker = ChunkingEngine(adapter, settings)
        self.state = PipelineState.IDLE
        self.merge_outcome: Optional[MergeOutcome] = None

    def _transition(self, state: PipelineState) -> None:
        logger.debug(f"pipeline {self.state.value} -> {state.value}")
        self.state = state

    async def run(
        self,
        transcript: str,
        raw_notes: str = "",
        title: str = "Untitled",
        meeting_info: Optional[MeetingInfo] = None,
        output_language: str = "en",
        template: Optional[Template] = None,
    ) -> NoteResult:
        notes = (raw_notes or "").strip()
        self._transition(PipelineState.PASS1_RUNNING)
        try:
            pass1 = await self._pass1(transcript, notes, title, meeting_info, output_language, template)
        except EngineError:
            self._transition(PipelineState.PASS1_FAILED)
            self._transition(PipelineState.FAILED)
            raise
        self._transition(PipelineState.PASS1_DONE)

        if len(notes) > self.settings.merge_threshold_chars:
            text = await self._pass2(pass1, notes, output_language)
        else:
            self.merge_outcome = MergeOutcome.NO_NOTES
            self._transition(PipelineState.PASS2_SKIPPED)
            logger.info("pass 2 skipped: no substantial user notes")
            text = pass1

        summary, body = split_summary(text, self.settings.summary_fallback_chars)
        self._transition(PipelineState.COMPLETE)
        return NoteResult(summary=summary, enhanced_notes=body, template_id=template.id if template else None)

    async def _pass1(
        self,
        transcript: str,
        notes: str,
        title: str,
        meeting_info: Optional[MeetingInfo],
        output_language: str,
        template: Optional[Template],
    ) -> str:
        s = self.settings
        chunked = len(transcript) > s.chunk_threshold_chars
        if chunked:
            source = await self.chunker.summarize(transcript, s.chunk_window_chars, s.chunk_overlap_chars)
        else:
            source = transcript

        if not notes:
            notes_block = "(None)"
        elif len(notes) > s.merge_threshold_chars:
            notes_block = prompts.deferred_notes_placeholder(len(notes))
        else:
            notes_block = notes

        req = GenerationRequest(
            messages=prompts.pass1_messages(
                source, notes_block, title, meeting_info, output_language, template, chunked=chunked
            ),
            max_tokens=s.pass1_max_tokens,
            temperature=s.pass_temperature,
            purpose="pass1",
        )
        text = await self.adapter.run(req)
        if not text or not text.strip():
            raise NoOutput("The engine returned no notes. Try again, or switch engines in settings.")
        logger.info(f"pass 1 done: {len(transcript)} chars in, {len(text)} chars out, chunked={chunked}")
        return text.strip()

    async def _pass2(self, pass1: str, notes: str, output_language: str) -> str:
        s = self.settings
        self._transition(PipelineState.PASS2_RUNNING)
        try:
            merge_notes = notes
            if len(notes) > s.notes_chunk_threshold_chars:
                merge_notes = await self.chunker.summarize(
                    notes, s.notes_window_chars, s.notes_overlap_chars, kind="notes"
                )
            req = GenerationRequest(
                messages=prompts.pass2_messages(pass1, merge_notes, output_language),
                max_tokens=s.pass2_max_tokens,
                temperature=s.pass_temperature,
                purpose="pass2",
            )
            merged = await self.adapter.run(req)
            if not accept_merge(pass1, merged, s.merge_min_ratio):
                got = len((merged or "").strip())
                raise MergeRejected(
                    f"merge result has {got} chars, under {s.merge_min_ratio:.0%} of pass 1 ({len(pass1)} chars)"
                )
        except MergeRejected as e:
            self.merge_outcome = MergeOutcome.REJECTED
            self._transition(PipelineState.PASS2_SKIPPED)
            logger.warning(f"pass 2 merge rejected by quality guard, keeping pass 1: {e.message}")
            return pass1
        except EngineError as e:
            self.merge_outcome = MergeOutcome.FAILED
            self._transition(PipelineState.PASS2_SKIPPED)
            logger.warning(f"pass 2 merge failed, keeping pass 1: {e.message}")
            return pass1

        self.merge_outcome = MergeOutcome.MERGED
        self._transition(PipelineState.PASS2_DONE)
        logger.info(f"pass 2 merged {len(notes)} chars of user notes")
        return merged.strip()
