from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional


class EngineError(Exception):
    """Base class for failures the caller is expected to show to a user."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class EngineNotConfigured(EngineError):
    """No credential for the remote engine, or no local model installed."""

    status_code = 412


class EngineNotReady(EngineError):
    """The local model exists but is not loaded into memory yet."""

    status_code = 503


class BackendError(EngineError):
    """The backend reported a failure; its message is passed through."""

    status_code = 502


class NoOutput(EngineError):
    status_code = 502


class MergeRejected(EngineError):
    # Internal to the synthesis pipeline; never reaches a handler.
    pass


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    code: Optional[str] = None


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(EngineError)
    async def _handle_engine_error(request: Request, exc: EngineError):  # type: ignore[unused-variable]
        logging.getLogger("app").warning(f"{type(exc).__name__}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.message, code=type(exc).__name__).dict(),
        )

    @app.exception_handler(HTTPException)
    async def _handle_http_exception(request: Request, exc: HTTPException):  # type: ignore[unused-variable]
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail)).dict(),
        )

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):  # type: ignore[unused-variable]
        logging.getLogger("app").exception("unhandled error")
        return JSONResponse(status_code=500, content=ErrorResponse(error="internal error").dict())
