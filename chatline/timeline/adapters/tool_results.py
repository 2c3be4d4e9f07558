"""Tool result normalization as ordered extraction strategies (first match wins)."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from chatline.timeline.events.event_types import ToolResult

_MISSING = object()

Extractor = Callable[[dict[str, Any]], Any]


def _nested(raw: Any, *path: str) -> Any:
    ref = raw
    for part in path:
        if not isinstance(ref, dict):
            return _MISSING
        ref = ref.get(part, _MISSING)
        if ref is _MISSING:
            return _MISSING
    return ref


def _non_empty_str(value: Any) -> Any:
    if isinstance(value, str) and value:
        return value
    return _MISSING


def _call_id_from_result_tool_use_id(data: dict[str, Any]) -> Any:
    return _non_empty_str(_nested(data, "result", "tool_use_id"))


def _call_id_from_result_tool_call_id(data: dict[str, Any]) -> Any:
    return _non_empty_str(_nested(data, "result", "tool_call_id"))


def _call_id_from_snake_case(data: dict[str, Any]) -> Any:
    return _non_empty_str(data.get("tool_call_id"))


def _call_id_from_camel_case(data: dict[str, Any]) -> Any:
    return _non_empty_str(data.get("toolCallId"))


def _content_from_direct_output(data: dict[str, Any]) -> Any:
    output = data.get("output")
    if output is None or output == "":
        return _MISSING
    return output


def _content_from_first_text_part(data: dict[str, Any]) -> Any:
    parts = _nested(data, "result", "content")
    if not isinstance(parts, list) or not parts:
        return _MISSING
    first = parts[0]
    if isinstance(first, dict) and first.get("text"):
        return first["text"]
    return _MISSING


def _content_from_tool_use_envelope(data: dict[str, Any]) -> Any:
    result = data.get("result")
    if not isinstance(result, dict) or not result.get("tool_use_id"):
        return _MISSING
    for key in ("content", "output"):
        value = result.get(key)
        if isinstance(value, str):
            return value
    return _MISSING


def _content_from_bare_result(data: dict[str, Any]) -> Any:
    return data.get("result")


CALL_ID_STRATEGIES: list[Extractor] = [
    _call_id_from_result_tool_use_id,
    _call_id_from_result_tool_call_id,
    _call_id_from_snake_case,
    _call_id_from_camel_case,
]

CONTENT_STRATEGIES: list[Extractor] = [
    _content_from_direct_output,
    _content_from_first_text_part,
    _content_from_tool_use_envelope,
    _content_from_bare_result,
]


def first_match(data: dict[str, Any], strategies: list[Extractor], default: Any = None) -> Any:
    for strategy in strategies:
        value = strategy(data)
        if value is not _MISSING:
            return value
    return default


def parse_json_like(value: Any) -> Any:
    """Parse strings that look like object/array literals; keep the raw string otherwise."""
    if not isinstance(value, str):
        return value
    if not (value.startswith("{") or value.startswith("[")):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def parse_arguments(raw: Any) -> dict[str, Any]:
    """Tool arguments may arrive as a dict or as a JSON-encoded object."""
    if isinstance(raw, dict):
        return raw
    parsed = parse_json_like(raw)
    if isinstance(parsed, dict):
        return parsed
    if raw in (None, ""):
        return {}
    return {"value": raw}


def _success_flag(data: dict[str, Any]) -> bool:
    for key in ("success", "ok"):
        value = data.get(key)
        if value is not None:
            return bool(value)
    return True


def normalize_tool_result(data: dict[str, Any]) -> ToolResult:
    """Normalize a live tool-result payload regardless of its nesting shape."""
    return ToolResult(
        tool_call_id=str(first_match(data, CALL_ID_STRATEGIES, default="")),
        result=parse_json_like(first_match(data, CONTENT_STRATEGIES)),
        ok=_success_flag(data),
        error=data.get("error"),
    )
