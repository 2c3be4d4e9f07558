"""Rich content-part expansion shared by the stored-row and in-memory adapters."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from chatline.infra.observability.logger import get_logger, short_text
from chatline.timeline.adapters.tool_results import parse_arguments, parse_json_like
from chatline.timeline.events.event_types import (
    CanonicalEvent,
    EventSource,
    MessageEvent,
    ToolCall,
    ToolCallEvent,
    ToolResult,
    ToolResultEvent,
)

logger = get_logger(__name__)

KNOWN_ROLES = frozenset({"user", "assistant", "tool"})
_TOOL_CALL_PARTS = frozenset({"tool_call", "tool_use"})
_TOOL_RESULT_PARTS = frozenset({"tool_result", "tool_output"})

# Postgres emits 1-6 fraction digits and `+HH` offsets; Python 3.10 fromisoformat does not accept them.
_ISO_TIME_TAIL = re.compile(
    r"(?P<time>\d{2}:\d{2}:\d{2})(?:\.(?P<fraction>\d+))?(?P<offset>[+-]\d{2}(?::?\d{2})?)?$"
)


@dataclass(frozen=True)
class PartContext:
    """Identity and provenance shared by every part of one row/message."""

    owner_id: str
    session_id: str
    role: str
    created_at: float
    source: EventSource
    message_id: str
    fallback_tool_call_id: str | None = None
    partial: bool = False


def _normalize_iso(text: str) -> str:
    match = _ISO_TIME_TAIL.search(text)
    if match is None:
        return text
    tail = match.group("time")
    fraction = match.group("fraction")
    if fraction:
        tail += "." + fraction[:6].ljust(6, "0")
    offset = match.group("offset")
    if offset:
        digits = offset[1:].replace(":", "")
        tail += f"{offset[0]}{digits[:2]}:{digits[2:4] or '00'}"
    return text[: match.start()] + tail


def parse_timestamp_ms(value: Any) -> float | None:
    """Accept epoch milliseconds or ISO-8601 strings; return None when unparseable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return float(text)
        except ValueError:
            pass
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(_normalize_iso(text))
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp() * 1000.0


def log_shape_mismatch(source: str, reason: str, raw: Any) -> None:
    logger.warning(
        "adapter.shape_mismatch source=%s reason=%s payload=%s",
        source,
        reason,
        short_text(raw, limit=160),
    )


def unwrap_content_parts(content: Any) -> list[Any] | None:
    """Return the part list for array or `{content: [...]}` shaped content."""
    if isinstance(content, list):
        return content
    if isinstance(content, dict) and isinstance(content.get("content"), list):
        return content["content"]
    return None


def _canonical_role(role: str) -> str:
    return role if role in KNOWN_ROLES else "assistant"


def _result_content(part: dict[str, Any]) -> Any:
    nested = part.get("content")
    if isinstance(nested, list):
        for item in nested:
            if isinstance(item, dict) and item.get("type") == "text":
                return item.get("text")
    if isinstance(nested, str):
        return nested
    if part.get("result") is not None:
        return part["result"]
    return part.get("output")


def _tool_call_from_part(part: dict[str, Any], context: PartContext, index: int) -> ToolCallEvent:
    function = part.get("function") if isinstance(part.get("function"), dict) else {}
    raw_args = None
    for candidate in (part.get("arguments"), function.get("arguments"), part.get("input"), part.get("args")):
        if candidate not in (None, ""):
            raw_args = candidate
            break
    return ToolCallEvent(
        id=f"{context.owner_id}-tool-call-{index}",
        session_id=context.session_id,
        role="assistant",
        created_at=context.created_at,
        source=context.source,
        message_id=context.message_id,
        tool_call=ToolCall(
            id=str(part.get("id") or f"{context.owner_id}-call-{index}"),
            name=str(part.get("name") or function.get("name") or "unknown"),
            arguments=parse_arguments(raw_args),
        ),
    )


def _tool_result_from_part(part: dict[str, Any], context: PartContext, index: int) -> ToolResultEvent:
    tool_call_id = (
        part.get("tool_use_id")
        or part.get("toolCallId")
        or part.get("tool_call_id")
        or context.fallback_tool_call_id
        or ""
    )
    return ToolResultEvent(
        id=f"{context.owner_id}-tool-result-{index}",
        session_id=context.session_id,
        role="assistant",
        created_at=context.created_at,
        source=context.source,
        message_id=context.message_id,
        tool_result=ToolResult(
            tool_call_id=str(tool_call_id),
            result=parse_json_like(_result_content(part)),
            ok=part.get("success") is not False and not part.get("is_error"),
            error=part.get("error"),
        ),
    )


def expand_content_parts(parts: list[Any], context: PartContext) -> list[CanonicalEvent]:
    """Turn every recognized part into its own event; ids are `{owner}-{kind}-{index}`."""
    events: list[CanonicalEvent] = []
    for index, part in enumerate(parts):
        if isinstance(part, str):
            part = {"type": "text", "text": part}
        if not isinstance(part, dict):
            log_shape_mismatch(context.source, "content_part_not_object", part)
            continue
        part_type = part.get("type")
        if part_type == "text":
            events.append(
                MessageEvent(
                    id=f"{context.owner_id}-text-{index}",
                    session_id=context.session_id,
                    role=_canonical_role(context.role),
                    created_at=context.created_at,
                    source=context.source,
                    partial=context.partial,
                    message_id=context.message_id,
                    text=str(part.get("text") or ""),
                )
            )
        elif part_type in _TOOL_CALL_PARTS:
            events.append(_tool_call_from_part(part, context, index))
        elif part_type in _TOOL_RESULT_PARTS:
            events.append(_tool_result_from_part(part, context, index))
        else:
            log_shape_mismatch(context.source, f"unknown_content_part:{part_type}", part)
    return events
