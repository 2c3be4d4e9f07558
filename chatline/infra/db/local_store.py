"""Data layer: local JSONL-backed history store serving message and checkpoint rows."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from chatline.infra.observability.logger import get_logger
from chatline.timeline.adapters.content_parts import parse_timestamp_ms

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoadStats:
    """Basic diagnostics collected while loading source JSONL."""

    total_lines: int
    loaded_rows: int
    bad_lines: int


def _read_jsonl(path: Path | None) -> tuple[list[dict[str, Any]], LoadStats]:
    if path is None or not path.exists():
        return [], LoadStats(total_lines=0, loaded_rows=0, bad_lines=0)

    rows: list[dict[str, Any]] = []
    bad_lines = 0
    total = 0
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            total += 1
            raw_line = line.strip()
            if not raw_line:
                bad_lines += 1
                continue
            try:
                payload = json.loads(raw_line)
            except json.JSONDecodeError:
                bad_lines += 1
                continue
            if not isinstance(payload, dict) or not payload.get("session_id"):
                bad_lines += 1
                continue
            rows.append(payload)
    return rows, LoadStats(total_lines=total, loaded_rows=len(rows), bad_lines=bad_lines)


def _group_by_session(rows: list[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = {}
    for row in rows:
        grouped.setdefault(str(row["session_id"]), []).append(row)
    for items in grouped.values():
        # Unparseable timestamps sort first; the row adapter rejects them anyway.
        items.sort(key=lambda item: parse_timestamp_ms(item.get("created_at")) or 0.0)
    return grouped


class LocalHistoryStore:
    """Read-only page source built from `chat_messages` and `chat_checkpoints` JSONL exports."""

    def __init__(
        self,
        messages: list[dict[str, Any]],
        checkpoints: list[dict[str, Any]],
        *,
        message_stats: LoadStats,
        checkpoint_stats: LoadStats,
    ) -> None:
        self._messages = _group_by_session(messages)
        self._checkpoints = _group_by_session(checkpoints)
        self._message_stats = message_stats
        self._checkpoint_stats = checkpoint_stats

    @classmethod
    def from_jsonl(cls, messages_path: Path | None, checkpoints_path: Path | None = None) -> "LocalHistoryStore":
        messages, message_stats = _read_jsonl(messages_path)
        checkpoints, checkpoint_stats = _read_jsonl(checkpoints_path)
        if messages_path is not None and not messages_path.exists():
            logger.warning("history.store.missing path=%s", messages_path)
        return cls(
            messages,
            checkpoints,
            message_stats=message_stats,
            checkpoint_stats=checkpoint_stats,
        )

    def fetch_rows(self, session_id: str, *, offset: int, limit: int) -> list[dict[str, Any]]:
        rows = self._messages.get(session_id, [])
        start = max(0, offset)
        return rows[start : start + max(0, limit)]

    def fetch_checkpoints(self, session_id: str) -> list[dict[str, Any]]:
        return list(self._checkpoints.get(session_id, []))

    def health(self) -> dict[str, int]:
        """Expose basic load/quality stats for health endpoint."""
        return {
            "total_lines": self._message_stats.total_lines + self._checkpoint_stats.total_lines,
            "loaded_rows": self._message_stats.loaded_rows,
            "loaded_checkpoints": self._checkpoint_stats.loaded_rows,
            "bad_lines": self._message_stats.bad_lines + self._checkpoint_stats.bad_lines,
        }
