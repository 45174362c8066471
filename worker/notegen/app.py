from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, load_settings
from .db import PreferenceStore
from .errors import install_error_handlers
from .logging import RequestContextMiddleware, setup_logging
from .routers.engine import router as engine_router
from .routers.notes import router as notes_router
from .routers.suggest import router as suggest_router
from .routers.templates import router as templates_router
from .services.backends import LocalBackend, RemoteBackend
from .state import State


def _load_env_file(env_path: Path) -> None:
    """Minimal .env loader: KEY=VALUE lines into os.environ if not set.
    - Ignores comments and blank lines
    - Strips surrounding quotes
    - Supports optional 'export ' prefix
    """
    if not env_path.exists():
        return
    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.lower().startswith("export "):
            line = line[7:].lstrip()
        if "=" not in line:
            continue
        k, v = line.split("=", 1)
        os.environ.setdefault(k.strip(), v.strip().strip('"').strip("'"))


def create_app(
    settings: Optional[Settings] = None,
    remote: Any = None,
    local: Any = None,
    preferences: Optional[PreferenceStore] = None,
) -> FastAPI:
    worker_dir = Path(__file__).resolve().parent.parent
    if settings is None:
        # Load environment from optional .env files (repo root and worker dir)
        for env_path in (worker_dir.parent / ".env", worker_dir / ".env"):
            try:
                _load_env_file(env_path)
            except OSError as e:
                logging.getLogger("app").warning(f"could not read {env_path}: {e}")
        settings = load_settings()
    setup_logging()

    app = FastAPI(title="Notegen Worker", version="0.1.0")

    if preferences is None:
        db_path = Path(settings.db_path)
        if not db_path.is_absolute():
            db_path = worker_dir / db_path
        preferences = PreferenceStore(db_path)
    # Ensure the preference table exists before handling requests
    try:
        preferences.initialize()
    except Exception as e:
        logging.getLogger("app").warning(f"preference store init failed: {e}")

    app.state.settings = settings
    app.state.state = State(
        settings=settings,
        preferences=preferences,
        remote=remote if remote is not None else RemoteBackend(settings),
        local=local if local is not None else LocalBackend(settings),
    )

    # CORS
    allow = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestContextMiddleware)
    install_error_handlers(app)

    # Versioned API
    app.include_router(notes_router, prefix="/v1")
    app.include_router(suggest_router, prefix="/v1")
    app.include_router(engine_router, prefix="/v1")
    app.include_router(templates_router, prefix="/v1")

    # Basic health endpoint (for the desktop app's pings)
    @app.get("/health")
    def health():  # pragma: no cover - trivial
        return {"status": "ok"}

    return app


# Convenience for `uvicorn notegen.app:app`
app = create_app()
