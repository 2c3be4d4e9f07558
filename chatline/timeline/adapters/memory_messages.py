"""In-memory message adapter for optimistic, possibly not-yet-persisted chat messages."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from uuid import uuid4

from chatline.timeline.adapters.content_parts import (
    KNOWN_ROLES,
    PartContext,
    expand_content_parts,
    log_shape_mismatch,
    parse_timestamp_ms,
    unwrap_content_parts,
)
from chatline.timeline.events.event_types import CanonicalEvent, now_ms

_SOURCE = "memory"


def _message_identity(message: dict[str, Any], index: int | None) -> str:
    if message.get("id"):
        return str(message["id"])
    position = index if index is not None else int(now_ms())
    return f"msg-{position}-{uuid4().hex[:9]}"


def adapt_memory_message(message: Any, index: int | None = None) -> list[CanonicalEvent]:
    """Expand one chat message into canonical events, one per content part."""
    if not isinstance(message, dict):
        log_shape_mismatch(_SOURCE, "message_not_object", message)
        return []
    session_id = message.get("session_id") or message.get("sessionId")
    if not session_id:
        log_shape_mismatch(_SOURCE, "message_missing_session", message)
        return []
    role = message.get("role")
    if role not in KNOWN_ROLES:
        log_shape_mismatch(_SOURCE, f"message_unknown_role:{role}", message)
        return []
    raw_created = message.get("created_at", message.get("createdAt"))
    created_at = parse_timestamp_ms(raw_created) if raw_created is not None else now_ms()
    if created_at is None:
        log_shape_mismatch(_SOURCE, "message_invalid_created_at", message)
        return []

    content = message.get("content")
    if isinstance(content, str):
        parts: list[Any] | None = [{"type": "text", "text": content}]
    else:
        parts = unwrap_content_parts(content)
    if parts is None:
        log_shape_mismatch(_SOURCE, "message_unsupported_content", message)
        return []

    message_id = _message_identity(message, index)
    return expand_content_parts(
        parts,
        PartContext(
            owner_id=message_id,
            session_id=str(session_id),
            role=role,
            created_at=created_at,
            source=_SOURCE,
            message_id=message_id,
            partial=bool(message.get("is_streaming") or message.get("isStreaming")),
        ),
    )


def adapt_memory_messages(messages: Iterable[Any]) -> list[CanonicalEvent]:
    """Convert a message list, using each position as the fallback identity index."""
    events: list[CanonicalEvent] = []
    for index, message in enumerate(messages):
        events.extend(adapt_memory_message(message, index))
    return events
