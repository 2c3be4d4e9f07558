"""Configuration layer: load runtime settings from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _resolve_path(path_like: str) -> Path:
    candidate = Path(path_like)
    if candidate.is_absolute():
        return candidate
    if candidate.exists():
        return candidate
    project_root = Path(__file__).resolve().parents[2]
    rooted = project_root / candidate
    if rooted.exists():
        return rooted
    return candidate


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Immutable application settings used across API/timeline layers."""

    app_name: str = "Chatline Timeline API"
    app_version: str = "0.1.0"
    env: str = "dev"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    cors_allow_origins: str = "http://localhost:5173,http://127.0.0.1:5173"
    history_jsonl_path: Path = Path("data/history/chat_messages.jsonl")
    checkpoints_jsonl_path: Path = Path("data/history/chat_checkpoints.jsonl")
    session_workspaces_file: Path = Path("data/session_workspaces.yaml")
    hydration_page_size: int = 500
    hydrate_on_live: bool = False
    replay_buffer_size: int = 200
    sse_keepalive_seconds: float = 1.0
    sse_max_wait_seconds: int = 20
    scm_base_url: str = ""
    scm_timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from process env with deterministic defaults."""
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            app_version=os.getenv("APP_VERSION", cls.app_version),
            env=os.getenv("APP_ENV", cls.env),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", str(cls.port))),
            cors_allow_origins=os.getenv("CORS_ALLOW_ORIGINS", cls.cors_allow_origins),
            history_jsonl_path=_resolve_path(os.getenv("HISTORY_JSONL", str(cls.history_jsonl_path))),
            checkpoints_jsonl_path=_resolve_path(
                os.getenv("CHECKPOINTS_JSONL", str(cls.checkpoints_jsonl_path))
            ),
            session_workspaces_file=_resolve_path(
                os.getenv("SESSION_WORKSPACES_FILE", str(cls.session_workspaces_file))
            ),
            hydration_page_size=int(
                os.getenv("HYDRATION_PAGE_SIZE", str(cls.hydration_page_size))
            ),
            hydrate_on_live=_env_bool("HYDRATE_ON_LIVE", cls.hydrate_on_live),
            replay_buffer_size=int(os.getenv("REPLAY_BUFFER_SIZE", str(cls.replay_buffer_size))),
            sse_keepalive_seconds=float(
                os.getenv("SSE_KEEPALIVE_SECONDS", str(cls.sse_keepalive_seconds))
            ),
            sse_max_wait_seconds=int(
                os.getenv("SSE_MAX_WAIT_SECONDS", str(cls.sse_max_wait_seconds))
            ),
            scm_base_url=os.getenv("SCM_BASE_URL", cls.scm_base_url),
            scm_timeout_seconds=float(
                os.getenv("SCM_TIMEOUT_SECONDS", str(cls.scm_timeout_seconds))
            ),
        )
