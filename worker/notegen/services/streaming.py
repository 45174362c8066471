from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from starlette.concurrency import run_in_threadpool

from ..errors import BackendError, EngineError
from ..models.notes import GenerationRequest
from .backends import DONE_MARKER, ERROR_PREFIX

logger = logging.getLogger("app.backends")


class _StreamAccumulator:
    """Collects fragments for exactly one streamed call.

    Three terminal transitions: done (resolve with the text), error (reject
    with the marker's message) and timeout (closed by the adapter, which keeps
    whatever arrived). Fragments may be delivered from any thread; anything
    arriving after a terminal transition is dropped.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._parts: List[str] = []
        self._closed = False
        self.future: asyncio.Future = loop.create_future()

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def feed(self, fragment: str) -> None:
        if self._closed:
            return
        try:
            self._loop.call_soon_threadsafe(self._on_fragment, fragment)
        except RuntimeError:
            # Loop already closed: the call was consumed and nobody is listening.
            self._closed = True

    def _on_fragment(self, fragment: str) -> None:
        if self._closed or self.future.done():
            return
        if fragment == DONE_MARKER:
            self._closed = True
            self.future.set_result(self.text)
        elif fragment.startswith(ERROR_PREFIX):
            self._closed = True
            message = fragment[len(ERROR_PREFIX):].strip() or "local engine reported an error"
            self.future.set_exception(BackendError(message))
        else:
            self._parts.append(fragment)

    def close(self) -> str:
        self._closed = True
        return self.text


@dataclass
class StreamOutcome:
    text: Optional[str]
    timed_out: bool = False


class StreamingAdapter:
    """Turns a backend call into a single awaitable result.

    Backends exposing ``chat_stream(request, on_chunk)`` are streamed under a
    wall-clock timeout; on timeout the partial text is returned (``None`` if
    nothing arrived) instead of raising. ``chat_stream`` may return a blocking
    ``cancel()`` callable; it is invoked on timeout and must not return until
    the backend request is closed, so at most one call is ever outstanding.
    Backends without incremental delivery get one blocking ``chat`` call in
    the threadpool, with no timeout.
    """

    def __init__(self, backend: Any, timeout_s: float = 300.0) -> None:
        self.backend = backend
        self.timeout_s = timeout_s

    @property
    def capability(self):
        return self.backend.capability

    async def run(self, req: GenerationRequest) -> Optional[str]:
        return (await self.run_detailed(req)).text

    async def run_detailed(self, req: GenerationRequest) -> StreamOutcome:
        stream = getattr(self.backend, "chat_stream", None)
        if stream is None:
            result = await run_in_threadpool(self.backend.chat, req)
            return StreamOutcome(text=result.text)

        acc = _StreamAccumulator(asyncio.get_running_loop())
        try:
            cancel: Optional[Callable[[], None]] = stream(req, acc.feed)
        except EngineError:
            raise
        except Exception as e:
            raise BackendError(str(e)) from e

        try:
            text = await asyncio.wait_for(acc.future, timeout=self.timeout_s)
        except asyncio.TimeoutError:
            partial = acc.close()
            if cancel is not None:
                await run_in_threadpool(cancel)
            logger.warning(
                f"stream {req.purpose} timed out after {self.timeout_s}s with {len(partial)} chars; keeping partial output"
            )
            return StreamOutcome(text=partial or None, timed_out=True)
        return StreamOutcome(text=text)
