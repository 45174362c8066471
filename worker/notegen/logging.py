from __future__ import annotations

import json
import logging
import os
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

# Every logger the worker writes to; setup_logging gives them one level.
_APP_LOGGERS = (
    "app",
    "app.access",
    "app.engine",
    "app.chunking",
    "app.synthesis",
    "app.suggest",
    "app.backends",
)

# Set per HTTP request so that engine/chunking/synthesis lines can be
# correlated with the access line of the request that produced them.
request_id_var: ContextVar[Optional[str]] = ContextVar("notegen_request_id", default=None)


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Adds ``request_id`` when the record was emitted inside a request, and
    merges a ``fields`` dict passed through ``extra=`` into the object.
    """

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "level": record.levelname,
            "ts": int(record.created * 1000),
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = request_id_var.get()
        if request_id:
            data["request_id"] = request_id
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            data.update(fields)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def _resolve_level(default: int = logging.INFO) -> int:
    raw = (os.getenv("NOTEGEN_LOG_LEVEL") or "").strip()
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else default


def setup_logging(level: Optional[int] = None) -> None:
    resolved = level if level is not None else _resolve_level()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(resolved)
    for name in _APP_LOGGERS:
        logging.getLogger(name).setLevel(resolved)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags the request with a short id and writes one access line."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
            logging.getLogger("app.access").info(
                f"{request.method} {request.url.path} {response.status_code}",
                extra={
                    "fields": {
                        "method": request.method,
                        "path": request.url.path,
                        "status": response.status_code,
                        "duration_ms": int((time.perf_counter() - start) * 1000),
                    }
                },
            )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(token)
