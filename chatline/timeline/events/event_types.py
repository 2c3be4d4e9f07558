"""Event layer: canonical timeline events shared by adapters, store and engines."""

from __future__ import annotations

import time
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

EventKind = Literal[
    "message",
    "chunk",
    "tool_call",
    "tool_result",
    "completion_signal",
    "checkpoint",
]
EventRole = Literal["user", "assistant", "tool", "system"]
EventSource = Literal["live", "stored", "memory"]
CheckpointPhase = Literal["start", "end"]


def now_ms() -> float:
    return time.time() * 1000.0


def new_event_id(prefix: str) -> str:
    """Synthesize an event id for payloads that do not carry one."""
    return f"{prefix}-{uuid4().hex}"


class _EventModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class BaseEvent(_EventModel):
    """Fields common to every canonical event."""

    id: str
    session_id: str
    kind: EventKind
    role: EventRole = "assistant"
    created_at: float
    source: EventSource
    partial: bool = False
    message_id: str | None = None
    origin_event_id: str | None = None


class MessageEvent(BaseEvent):
    kind: Literal["message"] = "message"
    text: str = ""


class ChunkEvent(BaseEvent):
    kind: Literal["chunk"] = "chunk"
    partial: bool = True
    delta: str


class ToolCall(_EventModel):
    id: str
    name: str = "unknown"
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolCallEvent(BaseEvent):
    kind: Literal["tool_call"] = "tool_call"
    tool_call: ToolCall


class ToolResult(_EventModel):
    tool_call_id: str = ""
    result: Any = None
    ok: bool = True
    error: Any = None


class ToolResultEvent(BaseEvent):
    kind: Literal["tool_result"] = "tool_result"
    tool_result: ToolResult


class CompletionSignalEvent(BaseEvent):
    kind: Literal["completion_signal"] = "completion_signal"
    agent_status: str | None = None


class _CamelTolerantModel(_EventModel):
    # Stats are written by both snake_case and camelCase producers.
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=AliasGenerator(validation_alias=to_camel),
    )


class FileStat(_CamelTolerantModel):
    path: str
    lines_added: int = 0
    lines_removed: int = 0


class CheckpointStats(_CamelTolerantModel):
    files_changed: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    file_list: list[FileStat] = Field(default_factory=list)


class CheckpointData(_EventModel):
    phase: CheckpointPhase
    commit_hash: str | None = None
    stats: CheckpointStats = Field(default_factory=CheckpointStats)


class CheckpointEvent(BaseEvent):
    """Snapshot point tied to a version-control commit (attached later)."""

    kind: Literal["checkpoint"] = "checkpoint"
    role: EventRole = "system"
    checkpoint: CheckpointData


CanonicalEvent = Annotated[
    Union[
        MessageEvent,
        ChunkEvent,
        ToolCallEvent,
        ToolResultEvent,
        CompletionSignalEvent,
        CheckpointEvent,
    ],
    Field(discriminator="kind"),
]
