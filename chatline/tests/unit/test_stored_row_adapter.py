"""Unit tests for relational-row and checkpoint-row adapters."""

from __future__ import annotations

import logging

import pytest

from chatline.timeline.adapters import adapt_checkpoint_row, adapt_stored_row, adapt_stored_rows
from chatline.timeline.adapters.content_parts import parse_timestamp_ms
from chatline.timeline.events.event_types import (
    CheckpointEvent,
    MessageEvent,
    ToolCallEvent,
    ToolResultEvent,
)


def _row(**overrides) -> dict:
    row = {
        "id": "r1",
        "session_id": "s1",
        "role": "assistant",
        "content": "hello",
        "created_at": "2026-03-01T10:00:00Z",
    }
    row.update(overrides)
    return row


def test_plain_text_row_becomes_one_message() -> None:
    events = adapt_stored_row(_row())

    assert len(events) == 1
    message = events[0]
    assert isinstance(message, MessageEvent)
    assert message.id == "r1"
    assert message.message_id == "r1"
    assert message.text == "hello"
    assert message.source == "stored"
    assert message.created_at == 1772359200000.0


def test_tool_row_with_string_content_becomes_tool_result() -> None:
    events = adapt_stored_row(_row(id="r2", role="tool", content='{"lines": 4}', tool_call_id="call-9"))

    assert len(events) == 1
    result = events[0]
    assert isinstance(result, ToolResultEvent)
    assert result.id == "r2-tool-result"
    assert result.role == "tool"
    assert result.tool_result.tool_call_id == "call-9"
    assert result.tool_result.result == {"lines": 4}


def test_rich_row_expands_one_event_per_part() -> None:
    content = [
        {"type": "text", "text": "Let me look."},
        {"type": "tool_use", "id": "call-1", "name": "grep", "input": {"pattern": "TODO"}},
        {"type": "tool_result", "tool_use_id": "call-1", "content": [{"type": "text", "text": "3 matches"}]},
    ]
    events = adapt_stored_row(_row(id="r3", content=content, message_id="turn-1", created_at=1000))

    assert [event.id for event in events] == ["r3-text-0", "r3-tool-call-1", "r3-tool-result-2"]
    assert all(event.message_id == "turn-1" for event in events)
    call = events[1]
    assert isinstance(call, ToolCallEvent)
    assert call.tool_call.id == "call-1"
    assert call.tool_call.arguments == {"pattern": "TODO"}
    result = events[2]
    assert isinstance(result, ToolResultEvent)
    assert result.tool_result.tool_call_id == "call-1"
    assert result.tool_result.result == "3 matches"


def test_rich_row_nested_under_content_key() -> None:
    events = adapt_stored_row(_row(content={"content": [{"type": "text", "text": "nested"}]}))

    assert [event.text for event in events] == ["nested"]


def test_tool_result_part_falls_back_to_row_tool_call_id() -> None:
    events = adapt_stored_row(
        _row(
            role="tool",
            tool_call_id="call-7",
            content=[{"type": "tool_output", "output": "ok", "is_error": True}],
        )
    )

    result = events[0]
    assert result.tool_result.tool_call_id == "call-7"
    assert result.tool_result.ok is False


def test_part_tool_call_without_id_gets_stable_id() -> None:
    row = _row(content=[{"type": "tool_call", "function": {"name": "ls", "arguments": "{}"}}])

    first = adapt_stored_row(row)[0]
    second = adapt_stored_row(row)[0]
    assert first.tool_call.id == second.tool_call.id == "r1-call-0"
    assert first.tool_call.name == "ls"


def test_unknown_part_is_dropped_but_siblings_survive(caplog) -> None:
    content = [{"type": "image", "url": "x.png"}, {"type": "text", "text": "caption"}]
    with caplog.at_level(logging.WARNING):
        events = adapt_stored_row(_row(content=content))

    assert [event.id for event in events] == ["r1-text-1"]
    assert "unknown_content_part:image" in caplog.text


def test_malformed_rows_are_dropped_and_batch_continues() -> None:
    rows = [
        _row(id="good-1"),
        _row(id=None),
        _row(id="bad-role", role="robot"),
        _row(id="bad-time", created_at="yesterday"),
        "not a row",
        _row(id="good-2"),
    ]

    events = adapt_stored_rows(rows)

    assert [event.id for event in events] == ["good-1", "good-2"]


def test_system_rows_are_not_message_rows() -> None:
    assert adapt_stored_row(_row(role="system")) == []


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-05-01T12:00:00.12345+00:00", 1714564800123.45),
        ("2024-05-01T12:00:00.1+00:00", 1714564800100.0),
        ("2024-05-01 12:00:00+00", 1714564800000.0),
        ("2024-05-01T14:00:00.5+0200", 1714564800500.0),
        ("2024-05-01T12:00:00.1234567Z", 1714564800123.456),
        ("2024-05-01T12:00:00", 1714564800000.0),
        ("2024-05-01", 1714521600000.0),
        (1714564800000, 1714564800000.0),
    ],
)
def test_created_at_accepts_postgres_timestamps(raw, expected) -> None:
    assert parse_timestamp_ms(raw) == pytest.approx(expected, abs=0.01)
    assert adapt_stored_row(_row(created_at=raw))[0].created_at == pytest.approx(expected, abs=0.01)


def test_checkpoint_row_is_adapted_with_stats() -> None:
    events = adapt_checkpoint_row(
        {
            "id": "cp-1",
            "session_id": "s1",
            "phase": "start",
            "commit_hash": "abc",
            "created_at": 2000,
            "stats": {"files_changed": 1, "lines_added": 2, "lines_removed": 1},
        }
    )

    checkpoint = events[0]
    assert isinstance(checkpoint, CheckpointEvent)
    assert checkpoint.checkpoint.commit_hash == "abc"
    assert checkpoint.checkpoint.stats.lines_removed == 1


def test_checkpoint_row_without_id_gets_deterministic_id() -> None:
    row = {"session_id": "s1", "phase": "end", "commit_hash": "def", "created_at": 3000}

    assert adapt_checkpoint_row(row)[0].id == adapt_checkpoint_row(row)[0].id == "s1-checkpoint-end-3000"
    assert adapt_checkpoint_row({"session_id": "s1", "phase": "later", "created_at": 1}) == []
