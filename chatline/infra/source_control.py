"""SCM infra: JSON-over-HTTP client for the version-control sidecar."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib import error, parse, request

from chatline.infra.observability.logger import get_logger
from chatline.timeline.errors import SourceControlError

logger = get_logger(__name__)


@dataclass(frozen=True)
class HttpSourceControlConfig:
    base_url: str
    timeout_seconds: float


class HttpSourceControl:
    """Minimal sync client for `/diff` and `/base-commit` sidecar endpoints."""

    def __init__(self, config: HttpSourceControlConfig) -> None:
        self._config = config

    @property
    def enabled(self) -> bool:
        return bool(self._config.base_url.strip())

    def diff(self, project_path: str, from_commit: str, to_commit: str) -> str:
        decoded = self._get(
            "/diff",
            {"project_path": project_path, "from": from_commit, "to": to_commit},
        )
        diff = decoded.get("diff")
        if not isinstance(diff, str):
            raise SourceControlError("scm_bad_response:diff")
        return diff

    def get_base_commit(self, session_id: str, project_path: str) -> str:
        decoded = self._get(
            "/base-commit",
            {"session_id": session_id, "project_path": project_path},
        )
        commit = decoded.get("commit")
        if not isinstance(commit, str) or not commit.strip():
            raise SourceControlError("scm_bad_response:base_commit")
        return commit.strip()

    def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        if not self.enabled:
            raise SourceControlError("scm_not_configured")
        endpoint = self._config.base_url.rstrip("/") + path + "?" + parse.urlencode(params)
        req = request.Request(endpoint, headers={"Accept": "application/json"}, method="GET")
        try:
            with request.urlopen(req, timeout=self._config.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
        except (error.URLError, error.HTTPError, TimeoutError) as exc:
            logger.warning("scm.request_failed path=%s error=%s", path, exc)
            raise SourceControlError(f"scm_request_failed:{path}") from exc

        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SourceControlError(f"scm_bad_json:{path}") from exc
        if not isinstance(decoded, dict):
            raise SourceControlError(f"scm_bad_response:{path}")
        return decoded
