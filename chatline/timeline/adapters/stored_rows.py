"""Relational-row adapter: durable message and checkpoint rows to canonical events."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from chatline.timeline.adapters.content_parts import (
    KNOWN_ROLES,
    PartContext,
    expand_content_parts,
    log_shape_mismatch,
    parse_timestamp_ms,
    unwrap_content_parts,
)
from chatline.timeline.adapters.tool_results import parse_json_like
from chatline.timeline.events.event_types import (
    CanonicalEvent,
    CheckpointData,
    CheckpointEvent,
    CheckpointStats,
    MessageEvent,
    ToolResult,
    ToolResultEvent,
)

_SOURCE = "stored"


def adapt_stored_row(row: Any) -> list[CanonicalEvent]:
    """Convert one `chat_messages` row; rich rows expand into one event per part."""
    if not isinstance(row, dict):
        log_shape_mismatch(_SOURCE, "row_not_object", row)
        return []
    row_id = row.get("id")
    session_id = row.get("session_id")
    if not row_id or not session_id:
        log_shape_mismatch(_SOURCE, "row_missing_identity", row)
        return []
    role = row.get("role")
    if role not in KNOWN_ROLES:
        log_shape_mismatch(_SOURCE, f"row_unknown_role:{role}", row)
        return []
    created_at = parse_timestamp_ms(row.get("created_at"))
    if created_at is None:
        log_shape_mismatch(_SOURCE, "row_invalid_created_at", row)
        return []

    row_id = str(row_id)
    message_id = str(row.get("message_id") or row_id)
    tool_call_id = row.get("tool_call_id")
    content = row.get("content")

    if isinstance(content, str):
        if role == "tool":
            return [
                ToolResultEvent(
                    id=f"{row_id}-tool-result",
                    session_id=str(session_id),
                    role="tool",
                    created_at=created_at,
                    source=_SOURCE,
                    message_id=message_id,
                    tool_result=ToolResult(
                        tool_call_id=str(tool_call_id or ""),
                        result=parse_json_like(content),
                        ok=True,
                    ),
                )
            ]
        return [
            MessageEvent(
                id=row_id,
                session_id=str(session_id),
                role=role,
                created_at=created_at,
                source=_SOURCE,
                message_id=message_id,
                text=content,
            )
        ]

    parts = unwrap_content_parts(content)
    if parts is None:
        log_shape_mismatch(_SOURCE, "row_unsupported_content", row)
        return []
    return expand_content_parts(
        parts,
        PartContext(
            owner_id=row_id,
            session_id=str(session_id),
            role=role,
            created_at=created_at,
            source=_SOURCE,
            message_id=message_id,
            fallback_tool_call_id=str(tool_call_id) if tool_call_id else None,
        ),
    )


def adapt_stored_rows(rows: Iterable[Any]) -> list[CanonicalEvent]:
    """Convert a page of rows; a malformed row never interrupts the rest of the page."""
    events: list[CanonicalEvent] = []
    for row in rows:
        events.extend(adapt_stored_row(row))
    return events


def adapt_checkpoint_row(row: Any) -> list[CanonicalEvent]:
    """Convert one persisted `chat_checkpoints` row."""
    if not isinstance(row, dict) or not row.get("session_id"):
        log_shape_mismatch(_SOURCE, "checkpoint_row_missing_session", row)
        return []
    phase = row.get("phase")
    if phase not in ("start", "end"):
        log_shape_mismatch(_SOURCE, f"checkpoint_row_invalid_phase:{phase}", row)
        return []
    created_at = parse_timestamp_ms(row.get("created_at"))
    if created_at is None:
        log_shape_mismatch(_SOURCE, "checkpoint_row_invalid_created_at", row)
        return []
    try:
        stats = CheckpointStats.model_validate(row.get("stats") or {})
    except ValidationError:
        log_shape_mismatch(_SOURCE, "checkpoint_row_invalid_stats", row)
        return []
    return [
        CheckpointEvent(
            id=str(row.get("id") or f"{row['session_id']}-checkpoint-{phase}-{int(created_at)}"),
            session_id=str(row["session_id"]),
            created_at=created_at,
            source=_SOURCE,
            checkpoint=CheckpointData(
                phase=phase,
                commit_hash=row.get("commit_hash") or None,
                stats=stats,
            ),
        )
    ]
