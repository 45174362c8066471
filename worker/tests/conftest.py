from __future__ import annotations

from typing import Callable, List, Optional

import pytest

from notegen.config import Settings
from notegen.db import PreferenceStore
from notegen.errors import BackendError
from notegen.models.engine import EngineCapability
from notegen.models.notes import GenerationRequest
from notegen.services.backends import DONE_MARKER, ERROR_PREFIX, ChatResult
from notegen.services.engine_router import EngineRouter

PASS1_TEXT = (
    "The team agreed to ship the beta on Friday and reviewed open risks.\n\n"
    "## Key Points\n- Beta scope is frozen\n- Load tests pass\n\n"
    "## Action Items\n- **Ana** to send release notes by Thursday\n\n"
    "## Decisions\n- Ship on Friday"
)
PASS2_TEXT = (
    "The team agreed to ship the beta on Friday and reviewed open risks.\n\n"
    "## Key Points\n- Beta scope is frozen\n- Load tests pass\n- Pricing page still in review (user note)\n\n"
    "## Action Items\n- **Ana** to send release notes by Thursday\n- Ping legal about the EULA\n\n"
    "## Decisions\n- Ship on Friday"
)


class Error:
    """Scripted outcome: the backend reports an error."""

    def __init__(self, message: str) -> None:
        self.message = message


class Hang:
    """Scripted outcome: some fragments arrive, then nothing."""

    def __init__(self, partial: str = "") -> None:
        self.partial = partial


def default_responder(req: GenerationRequest):
    if req.purpose.startswith("chunk_"):
        return f"- facts from {req.purpose}"
    if req.purpose == "pass1":
        return PASS1_TEXT
    if req.purpose == "pass2":
        return PASS2_TEXT
    if req.purpose.startswith("suggest_"):
        return '{"number": 1, "confidence": "high", "reason": "matches the topic"}'
    if req.purpose == "title":
        return '"Beta Release Planning"'
    if req.purpose == "ask":
        return "Ana owns the release notes."
    return "ok"


class FakeLocalBackend:
    """Streaming local backend with readiness toggles and a call log."""

    capability = EngineCapability.LOCAL

    def __init__(
        self,
        responder: Callable[[GenerationRequest], object] = default_responder,
        ready: bool = True,
        downloaded: bool = True,
        ready_after: Optional[int] = None,
    ) -> None:
        self.responder = responder
        self.ready = ready
        self.downloaded = downloaded
        # Becomes ready on probe number ``ready_after + 1``
        self.ready_after = ready_after
        self.probes = 0
        self.calls: List[GenerationRequest] = []
        self.load_requests = 0

    @property
    def purposes(self) -> List[str]:
        return [r.purpose for r in self.calls]

    def is_ready(self) -> bool:
        self.probes += 1
        if self.ready_after is not None:
            return self.probes > self.ready_after
        return self.ready

    def is_downloaded(self) -> bool:
        return self.downloaded

    def load(self) -> bool:
        self.load_requests += 1
        self.ready = True
        return True

    def chat(self, req: GenerationRequest) -> ChatResult:
        self.calls.append(req)
        outcome = self.responder(req)
        if isinstance(outcome, Error):
            raise BackendError(outcome.message)
        if isinstance(outcome, Hang):
            return ChatResult(text=outcome.partial)
        return ChatResult(text=str(outcome))

    def chat_stream(self, req: GenerationRequest, on_chunk: Callable[[str], None]) -> None:
        self.calls.append(req)
        outcome = self.responder(req)
        if isinstance(outcome, Error):
            on_chunk(f"{ERROR_PREFIX}{outcome.message}")
            return
        if isinstance(outcome, Hang):
            if outcome.partial:
                on_chunk(outcome.partial)
            return
        text = str(outcome)
        mid = len(text) // 2
        for piece in (text[:mid], text[mid:]):
            if piece:
                on_chunk(piece)
        on_chunk(DONE_MARKER)

    def status(self):
        return {"ready": self.ready, "downloaded": self.downloaded, "model": "fake-local"}


class FakeRemoteBackend:
    """Blocking remote backend with a credential toggle and a call log."""

    capability = EngineCapability.REMOTE

    def __init__(self, responder: Callable[[GenerationRequest], object] = default_responder, credential: bool = True):
        self.responder = responder
        self.credential = credential
        self.calls: List[GenerationRequest] = []

    @property
    def purposes(self) -> List[str]:
        return [r.purpose for r in self.calls]

    def has_credential(self) -> bool:
        return self.credential

    def is_ready(self) -> bool:
        return self.credential

    def chat(self, req: GenerationRequest) -> ChatResult:
        self.calls.append(req)
        outcome = self.responder(req)
        if isinstance(outcome, Error):
            raise BackendError(outcome.message)
        return ChatResult(text=str(outcome))

    def status(self):
        return {"ready": self.credential, "provider": "openai", "model": "fake-remote", "credential": self.credential}


@pytest.fixture
def settings() -> Settings:
    return Settings(stream_timeout_s=0.2, local_ready_retry_delay_s=0.0)


@pytest.fixture
def preferences(tmp_path) -> PreferenceStore:
    store = PreferenceStore(tmp_path / "prefs.db")
    store.initialize()
    return store


@pytest.fixture
def local() -> FakeLocalBackend:
    return FakeLocalBackend()


@pytest.fixture
def remote() -> FakeRemoteBackend:
    return FakeRemoteBackend()


@pytest.fixture
def router(remote, local, preferences, settings) -> EngineRouter:
    return EngineRouter(remote, local, preferences, settings)
