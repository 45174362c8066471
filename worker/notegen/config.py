from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings.

    Values may be provided via environment variables (prefix ``NOTEGEN_``).
    Thresholds were tuned empirically; keep the defaults unless there is
    evidence for new values.
    """

    # HTTP
    cors_allow_origins: str = Field("*", description="Comma-separated origins")

    # Preferences
    db_path: str = Field("notegen.db", description="SQLite file, relative to the worker dir")
    default_engine: str = Field("remote", description="remote|local")

    # Remote backend (OpenAI-compatible)
    remote_provider: str = Field("openai", description="openai|groq")
    remote_base_url: Optional[str] = Field(None, description="Override the provider base URL")
    remote_model: str = "gpt-4o"
    remote_fast_model: str = Field("gpt-4o-mini", description="Used for Q&A, titles and suggestions")
    remote_timeout_s: int = 120

    # Local backend (Ollama-compatible runtime)
    local_base_url: str = "http://127.0.0.1:11434"
    local_model: str = "qwen2.5:3b-instruct"
    local_probe_timeout_s: float = 3.0
    local_cancel_timeout_s: float = Field(10.0, description="Wait for a cancelled stream to close")

    # Streaming adapter
    stream_timeout_s: float = Field(300.0, description="Wall-clock limit per streamed call")

    # Local readiness retry (note generation only)
    local_ready_retries: int = 2
    local_ready_retry_delay_s: float = 3.0

    # Chunking
    chunk_threshold_chars: int = 8000
    chunk_window_chars: int = 6000
    chunk_overlap_chars: int = 300
    chunk_tokens_opening: int = 600
    chunk_tokens_middle: int = 600
    chunk_tokens_closing: int = 1000
    excerpt_chars: int = 1500
    excerpt_chars_closing: int = 3000

    # User notes
    merge_threshold_chars: int = Field(500, description="Notes longer than this are merged in pass 2")
    notes_chunk_threshold_chars: int = 3000
    notes_window_chars: int = 3000
    notes_overlap_chars: int = 150

    # Synthesis
    merge_min_ratio: float = Field(0.5, description="Pass 2 must keep at least this share of pass 1")
    pass1_max_tokens: int = 2500
    pass2_max_tokens: int = 3000
    pass_temperature: float = 0.3
    summary_fallback_chars: int = 200

    class Config:
        env_prefix = "NOTEGEN_"
        case_sensitive = False


def load_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
