"""Routes capability-shaped operations to the selected inference backend.

The selection is a persisted preference (``remote`` or ``local``). Note
generation and Q&A never switch backends behind the user's back: a missing
credential or model is an error. Suggestions and titles are advisory: they
use the selected backend when it is ready and otherwise fall back to
whichever backend is ready, remote first.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from starlette.concurrency import run_in_threadpool

from ..config import Settings
from ..db import ENGINE_KEY, PreferenceStore
from ..errors import EngineError, EngineNotConfigured, EngineNotReady
from ..models.engine import EngineCapability
from ..models.notes import GenerationRequest, MeetingInfo, NoteResult
from ..models.registry import Folder, Suggestion, Template
from . import prompts, suggestions
from .streaming import StreamingAdapter
from .synthesis import SynthesisPipeline

logger = logging.getLogger("app.engine")

TITLE_SEGMENTS = 50
TITLE_MIN_INPUT_CHARS = 50
TITLE_MAX_CHARS = 100


class EngineRouter:
    def __init__(self, remote: Any, local: Any, preferences: PreferenceStore, settings: Settings) -> None:
        self.remote = remote
        self.local = local
        self.preferences = preferences
        self.settings = settings

    # ------------------------------------------------------------------ selection

    def get_engine(self) -> EngineCapability:
        stored = EngineCapability.parse(self.preferences.get(ENGINE_KEY))
        if stored is not None:
            return stored
        return EngineCapability.parse(self.settings.default_engine) or EngineCapability.REMOTE

    def set_engine(self, engine: EngineCapability) -> None:
        self.preferences.set(ENGINE_KEY, engine.value)
        logger.info(f"engine set to {engine.value}")

    def _adapter(self, backend: Any) -> StreamingAdapter:
        return StreamingAdapter(backend, timeout_s=self.settings.stream_timeout_s)

    def _require_remote(self) -> Any:
        if not self.remote.has_credential():
            raise EngineNotConfigured(
                "The remote engine is selected but no API key is configured. "
                "Add a key in settings or switch to the local engine."
            )
        return self.remote

    async def _local_state(self) -> Optional[bool]:
        """True when loaded, False when installed but not loaded, None when missing."""
        if await run_in_threadpool(self.local.is_ready):
            return True
        if await run_in_threadpool(self.local.is_downloaded):
            return False
        return None

    async def _require_local(self, retries: int = 0) -> Any:
        state = await self._local_state()
        attempt = 0
        while state is False and attempt < retries:
            attempt += 1
            logger.info(
                f"local model not ready, retry {attempt}/{retries} in {self.settings.local_ready_retry_delay_s}s"
            )
            await asyncio.sleep(self.settings.local_ready_retry_delay_s)
            state = await self._local_state()
        if state is None:
            raise EngineNotConfigured(
                "The local engine is selected but its model is not installed. "
                "Download the model in settings or switch to the remote engine."
            )
        if state is False:
            raise EngineNotReady("The local model is still loading. Wait for it to finish and try again.")
        return self.local

    async def _selected_backend(self, retries: int = 0) -> Any:
        engine = self.get_engine()
        if engine is EngineCapability.REMOTE:
            backend = self._require_remote()
        else:
            backend = await self._require_local(retries)
        logger.info(f"using {engine.value} engine")
        return backend

    async def _advisory_backend(self) -> Optional[Any]:
        """The selected backend when ready, else any ready backend, remote first."""
        if self.get_engine() is EngineCapability.LOCAL and await run_in_threadpool(self.local.is_ready):
            return self.local
        if self.remote.is_ready():
            return self.remote
        if await run_in_threadpool(self.local.is_ready):
            return self.local
        return None

    # ----------------------------------------------------------------- operations

    async def chat_completion(self, req: GenerationRequest) -> Optional[str]:
        backend = await self._selected_backend()
        return await self._adapter(backend).run(req)

    async def generate_enhanced_notes(
        self,
        transcript: str,
        raw_notes: str = "",
        title: str = "Untitled",
        meeting_info: Optional[MeetingInfo] = None,
        output_language: str = "en",
        template: Optional[Template] = None,
    ) -> NoteResult:
        backend = await self._selected_backend(retries=self.settings.local_ready_retries)
        logger.info(
            f"enhance notes: transcript {len(transcript)} chars, notes {len(raw_notes or '')} chars, "
            f"template={template.id if template else None}"
        )
        pipeline = SynthesisPipeline(self._adapter(backend), self.settings)
        return await pipeline.run(
            transcript,
            raw_notes=raw_notes,
            title=title,
            meeting_info=meeting_info,
            output_language=output_language,
            template=template,
        )

    async def ask_question(self, question: str, transcript: str, notes: str, title: str) -> Optional[str]:
        backend = await self._selected_backend()
        req = GenerationRequest(
            messages=prompts.ask_messages(question, transcript, notes, title),
            max_tokens=1000,
            temperature=0.3,
            purpose="ask",
        )
        answer = await self._adapter(backend).run(req)
        return answer.strip() if answer and answer.strip() else None

    async def suggest_folder(self, content: str, title: str, folders: Sequence[Folder]) -> Optional[Suggestion]:
        if not folders:
            return None
        backend = await self._advisory_backend()
        if backend is None:
            logger.info("suggest_folder skipped: no engine ready")
            return None
        return await suggestions.suggest_folder(self._adapter(backend), content, title, folders)

    async def suggest_template(
        self, title: str, raw_notes: str, transcript_preview: str, templates: Sequence[Template]
    ) -> Optional[Suggestion]:
        if not templates:
            return None
        backend = await self._advisory_backend()
        if backend is None:
            logger.info("suggest_template skipped: no engine ready")
            return None
        return await suggestions.suggest_template(
            self._adapter(backend), title, raw_notes, transcript_preview, templates
        )

    async def generate_title(self, transcript: Union[List[str], str], output_language: str = "en") -> Optional[str]:
        segments = transcript.splitlines() if isinstance(transcript, str) else list(transcript)
        text = "\n".join(s.strip() for s in segments[:TITLE_SEGMENTS] if s and s.strip())
        if len(text) < TITLE_MIN_INPUT_CHARS:
            return None
        backend = await self._advisory_backend()
        if backend is None:
            logger.info("generate_title skipped: no engine ready")
            return None
        req = GenerationRequest(
            messages=prompts.title_messages(text, output_language),
            max_tokens=30,
            temperature=0.5,
            purpose="title",
        )
        try:
            raw = await self._adapter(backend).run(req)
        except EngineError as e:
            logger.warning(f"generate_title failed: {e.message}")
            return None
        title = (raw or "").strip().strip("\"'").strip()
        if not title or len(title) >= TITLE_MAX_CHARS:
            return None
        return title

    # --------------------------------------------------------------------- status

    def status(self) -> Dict[str, Any]:
        return {
            "engine": self.get_engine(),
            "remote": self.remote.status(),
            "local": self.local.status(),
        }

    async def load_local_engine(self) -> Dict[str, bool]:
        accepted = await run_in_threadpool(self.local.load)
        ready = await run_in_threadpool(self.local.is_ready)
        logger.info(f"local load requested: accepted={accepted} ready={ready}")
        return {"ok": bool(accepted), "ready": bool(ready)}
