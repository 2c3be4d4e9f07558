"""Workspace registry: map chat sessions to the project path their checkpoints live in."""

from __future__ import annotations

from pathlib import Path

import yaml

from chatline.infra.observability.logger import get_logger

logger = get_logger(__name__)


class SessionWorkspaces:
    """YAML-backed `session_id -> project_path` lookup with an optional default."""

    def __init__(self, mapping: dict[str, str] | None = None, *, default_project_path: str | None = None) -> None:
        self._mapping = dict(mapping or {})
        self._default = default_project_path

    @classmethod
    def from_yaml(cls, path: Path) -> "SessionWorkspaces":
        if not path.exists():
            return cls()
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            logger.warning("workspaces.load_failed path=%s error=%s", path, exc)
            return cls()
        if not isinstance(raw, dict):
            return cls()
        sessions = raw.get("sessions")
        mapping: dict[str, str] = {}
        if isinstance(sessions, dict):
            for session_id, project_path in sessions.items():
                if isinstance(project_path, str) and project_path.strip():
                    mapping[str(session_id)] = project_path.strip()
        default = raw.get("default_project_path")
        return cls(
            mapping,
            default_project_path=default.strip() if isinstance(default, str) and default.strip() else None,
        )

    def project_path_for(self, session_id: str) -> str | None:
        return self._mapping.get(session_id, self._default)

    def __len__(self) -> int:
        return len(self._mapping)
