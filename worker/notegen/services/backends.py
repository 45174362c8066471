from __future__ import annotations

import json
import logging
import os
import ssl
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from urllib import request, error

from ..config import Settings
from ..errors import BackendError, EngineNotConfigured
from ..models.engine import EngineCapability
from ..models.notes import GenerationRequest

logger = logging.getLogger("app.backends")

# Terminal fragments delivered through a chat_stream callback.
DONE_MARKER = "[DONE]"
ERROR_PREFIX = "[ERROR] "

PROVIDER_BASES = {
    "openai": "https://api.openai.com/v1",
    "groq": "https://api.groq.com/openai/v1",
}
PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "groq": "GROQ_API_KEY",
}
# Short, low-stakes prompts go to the cheaper model.
_FAST_PURPOSES = {"ask", "suggest_folder", "suggest_template", "title"}


@dataclass
class ChatResult:
    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


def _ssl_context() -> ssl.SSLContext:
    # Be tolerant of environments with custom SSL; allow opt-out verify
    if os.getenv("NOTEGEN_SSL_NO_VERIFY"):
        return ssl._create_unverified_context()  # type: ignore[attr-defined]
    return ssl.create_default_context()


def _error_message(payload: str) -> str:
    try:
        data = json.loads(payload)
    except ValueError:
        return payload
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
    return payload


def _http_post(url: str, headers: Dict[str, str], data: Dict[str, Any], timeout: float = 40) -> Dict[str, Any]:
    body = json.dumps(data).encode("utf-8")
    hdrs = {"User-Agent": "notegen-worker/1.0 python-urllib", "Content-Type": "application/json", **headers}
    req = request.Request(url, data=body, headers=hdrs, method="POST")
    try:
        with request.urlopen(req, context=_ssl_context(), timeout=timeout) as resp:
            raw = resp.read()
            return json.loads(raw.decode("utf-8"))
    except error.HTTPError as e:
        try:
            payload = e.read().decode("utf-8")
        except Exception:
            payload = str(e)
        raise BackendError(f"HTTP {e.code}: {_error_message(payload)}")
    except (error.URLError, OSError) as e:
        raise BackendError(f"request to {url} failed: {e}")
    except ValueError as e:
        raise BackendError(f"invalid JSON from {url}: {e}")


def _http_get(url: str, timeout: float) -> Dict[str, Any]:
    req = request.Request(url, headers={"User-Agent": "notegen-worker/1.0 python-urllib"}, method="GET")
    with request.urlopen(req, timeout=timeout) as resp:
        return json.loads(resp.read().decode("utf-8"))


class RemoteBackend:
    """OpenAI-compatible chat completions endpoint gated by an API key.

    The key is read from the environment on every call so that
    ``/v1/engine_config`` takes effect without a restart.
    """

    capability = EngineCapability.REMOTE

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def provider(self) -> str:
        provider = (self.settings.remote_provider or "openai").strip().lower()
        return provider if provider in PROVIDER_BASES else "openai"

    @property
    def base_url(self) -> str:
        return (self.settings.remote_base_url or PROVIDER_BASES[self.provider]).rstrip("/")

    def _api_key(self) -> Optional[str]:
        return os.getenv(PROVIDER_KEY_ENV[self.provider]) or None

    def has_credential(self) -> bool:
        return bool(self._api_key())

    def is_ready(self) -> bool:
        return self.has_credential()

    def model_for(self, purpose: str) -> str:
        if purpose in _FAST_PURPOSES:
            return self.settings.remote_fast_model
        return self.settings.remote_model

    def chat(self, req: GenerationRequest) -> ChatResult:
        api_key = self._api_key()
        if not api_key:
            raise EngineNotConfigured(
                f"No API key configured for {self.provider}. Add one in settings to use the remote engine."
            )
        payload: Dict[str, Any] = {
            "model": self.model_for(req.purpose),
            "messages": req.messages_payload(),
            "temperature": req.temperature,
            "max_tokens": req.max_tokens,
        }
        if req.json_mode:
            payload["response_format"] = {"type": "json_object"}
        res = _http_post(
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {api_key}"},
            data=payload,
            timeout=self.settings.remote_timeout_s,
        )
        content = (
            (res.get("choices") or [{}])[0]
            .get("message", {})
            .get("content")
            or ""
        )
        usage = res.get("usage") or {}
        logger.info(
            f"remote {req.purpose}: {usage.get('prompt_tokens')} prompt / {usage.get('completion_tokens')} completion tokens"
        )
        return ChatResult(
            text=content.strip(),
            prompt_tokens=int(usage.get("prompt_tokens") or 0),
            completion_tokens=int(usage.get("completion_tokens") or 0),
        )

    def status(self) -> Dict[str, Any]:
        return {
            "ready": self.is_ready(),
            "provider": self.provider,
            "model": self.settings.remote_model,
            "credential": self.has_credential(),
        }


class LocalBackend:
    """On-device model served by an Ollama-compatible runtime.

    ``is_downloaded`` means the model is installed; ``is_ready`` means it is
    loaded into memory. Both probes are synchronous and report False when the
    runtime cannot be reached.
    """

    capability = EngineCapability.LOCAL

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.base_url = settings.local_base_url.rstrip("/")
        self.model = settings.local_model

    def _listed(self, path: str) -> bool:
        try:
            data = _http_get(f"{self.base_url}{path}", timeout=self.settings.local_probe_timeout_s)
        except (error.URLError, OSError, ValueError) as e:
            logger.debug(f"local probe {path} failed: {e}")
            return False
        names = {str(m.get("name") or m.get("model") or "") for m in data.get("models") or [] if isinstance(m, dict)}
        return self.model in names

    def is_downloaded(self) -> bool:
        return self._listed("/api/tags")

    def is_ready(self) -> bool:
        return self._listed("/api/ps")

    def load(self) -> bool:
        """Ask the runtime to load the model into memory and keep it there."""
        try:
            _http_post(
                f"{self.base_url}/api/generate",
                headers={},
                data={"model": self.model, "keep_alive": "30m"},
                timeout=120,
            )
        except BackendError as e:
            logger.warning(f"local model load request failed: {e}")
            return False
        return True

    def _payload(self, req: GenerationRequest, stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": req.messages_payload(),
            "stream": stream,
            "options": {"num_predict": req.max_tokens, "temperature": req.temperature},
        }
        if req.json_mode:
            payload["format"] = "json"
        return payload

    def chat(self, req: GenerationRequest) -> ChatResult:
        # Generation on CPU can take minutes; the runtime owns the limit.
        res = _http_post(f"{self.base_url}/api/chat", headers={}, data=self._payload(req, False), timeout=900)
        if res.get("error"):
            raise BackendError(str(res["error"]))
        text = ((res.get("message") or {}).get("content") or "").strip()
        logger.info(f"local {req.purpose}: {res.get('eval_count')} tokens")
        return ChatResult(
            text=text,
            prompt_tokens=int(res.get("prompt_eval_count") or 0),
            completion_tokens=int(res.get("eval_count") or 0),
        )

    def chat_stream(self, req: GenerationRequest, on_chunk: Callable[[str], None]) -> Callable[[], None]:
        """Start a streamed generation and return its ``cancel`` callable.

        Fragments are passed to ``on_chunk`` from a background thread, followed
        by ``DONE_MARKER`` or a single ``ERROR_PREFIX`` fragment. ``cancel()``
        closes the request (the runtime stops generating when the client goes
        away) and blocks until the thread has exited.
        """
        body = json.dumps(self._payload(req, True)).encode("utf-8")
        http_req = request.Request(
            f"{self.base_url}/api/chat",
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        stop = threading.Event()
        opened: Dict[str, Any] = {}

        def _pump() -> None:
            try:
                with request.urlopen(http_req, timeout=900) as resp:
                    opened["resp"] = resp
                    for raw in resp:
                        if stop.is_set():
                            return
                        line = raw.decode("utf-8").strip()
                        if not line:
                            continue
                        event = json.loads(line)
                        if event.get("error"):
                            on_chunk(f"{ERROR_PREFIX}{event['error']}")
                            return
                        content = (event.get("message") or {}).get("content")
                        if content:
                            on_chunk(content)
                        if event.get("done"):
                            break
                on_chunk(DONE_MARKER)
            except Exception as e:
                if not stop.is_set():
                    on_chunk(f"{ERROR_PREFIX}{e}")

        worker = threading.Thread(target=_pump, name=f"local-stream-{req.purpose}", daemon=True)

        def cancel() -> None:
            stop.set()
            resp = opened.get("resp")
            if resp is not None:
                try:
                    resp.close()
                except OSError as e:
                    logger.debug(f"closing local stream {req.purpose}: {e}")
            worker.join(timeout=self.settings.local_cancel_timeout_s)
            if worker.is_alive():
                logger.warning(f"local stream {req.purpose} still open after cancel")

        worker.start()
        return cancel

    def status(self) -> Dict[str, Any]:
        ready = self.is_ready()
        return {
            "ready": ready,
            "downloaded": ready or self.is_downloaded(),
            "model": self.model,
            "base_url": self.base_url,
        }
