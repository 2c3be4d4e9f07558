"""Live-push adapter: classify raw push envelopes and convert them to canonical events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from chatline.infra.observability.logger import get_logger, short_text
from chatline.timeline.adapters.content_parts import parse_timestamp_ms
from chatline.timeline.adapters.tool_results import normalize_tool_result, parse_arguments
from chatline.timeline.events.event_types import (
    CanonicalEvent,
    CheckpointData,
    CheckpointEvent,
    CheckpointStats,
    ChunkEvent,
    CompletionSignalEvent,
    MessageEvent,
    ToolCall,
    ToolCallEvent,
    ToolResultEvent,
    new_event_id,
    now_ms,
)

logger = get_logger(__name__)

SESSION_IDLE_STATUS = "session_idle"
UNKNOWN_SESSION = "unknown"


class LivePushEnvelope(BaseModel):
    """Discriminated envelope delivered by the push channel."""

    # Sequence ids on some channels are numeric.
    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    type: str | None = None
    event_type: str | None = None
    session_id: str | None = Field(default=None, alias="sessionId")
    message_id: str | None = Field(default=None, alias="messageId")
    event_id: str | None = None
    delta: str | None = None
    timestamp: float | None = None
    data: dict[str, Any] | None = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> float | None:
        # Unparseable values fall back to receipt time.
        return parse_timestamp_ms(value) if value is not None else None

    @property
    def tag(self) -> str | None:
        return self.type or self.event_type


@dataclass(frozen=True)
class ChunkPush:
    envelope: LivePushEnvelope


@dataclass(frozen=True)
class DonePush:
    envelope: LivePushEnvelope


@dataclass(frozen=True)
class AgentStatusPush:
    envelope: LivePushEnvelope


@dataclass(frozen=True)
class ToolCallPush:
    envelope: LivePushEnvelope


@dataclass(frozen=True)
class ToolResultPush:
    envelope: LivePushEnvelope


@dataclass(frozen=True)
class CheckpointPush:
    envelope: LivePushEnvelope


@dataclass(frozen=True)
class UnrecognizedPush:
    raw: Any
    reason: str


LivePush = Union[
    ChunkPush,
    DonePush,
    AgentStatusPush,
    ToolCallPush,
    ToolResultPush,
    CheckpointPush,
    UnrecognizedPush,
]

_VARIANTS_BY_TAG: dict[str, type] = {
    "chunk": ChunkPush,
    "message_chunk": ChunkPush,
    "done": DonePush,
    "message_done": DonePush,
    "agent_status": AgentStatusPush,
    "tool_call": ToolCallPush,
    "tool_result": ToolResultPush,
    "checkpoint": CheckpointPush,
}


def classify_live_push(payload: Any) -> LivePush:
    """Turn a raw payload into exactly one tagged variant."""
    if not isinstance(payload, dict):
        return UnrecognizedPush(raw=payload, reason="payload_not_object")
    try:
        envelope = LivePushEnvelope.model_validate(payload)
    except ValidationError as exc:
        return UnrecognizedPush(raw=payload, reason=f"invalid_envelope:{exc.error_count()}")
    tag = envelope.tag
    if not tag:
        return UnrecognizedPush(raw=payload, reason="missing_type")
    variant = _VARIANTS_BY_TAG.get(tag)
    if variant is None:
        return UnrecognizedPush(raw=payload, reason=f"unknown_type:{tag}")
    return variant(envelope)


def _shape_mismatch(reason: str, raw: Any) -> list[CanonicalEvent]:
    logger.warning(
        "adapter.shape_mismatch source=live reason=%s payload=%s",
        reason,
        short_text(raw, limit=160),
    )
    return []


def _base_fields(envelope: LivePushEnvelope) -> dict[str, Any]:
    return {
        "session_id": envelope.session_id or UNKNOWN_SESSION,
        "source": "live",
        "created_at": envelope.timestamp if envelope.timestamp is not None else now_ms(),
    }


def _from_chunk(envelope: LivePushEnvelope) -> list[CanonicalEvent]:
    data = envelope.data or {}
    content = data.get("content")
    if content:
        # Complete content mis-labelled as a chunk; never reuse the origin id here.
        return [
            MessageEvent(
                **_base_fields(envelope),
                id=new_event_id("text"),
                role="assistant",
                message_id=envelope.message_id,
                text=content if isinstance(content, str) else str(content),
                partial=False,
            )
        ]
    if not envelope.delta:
        return _shape_mismatch("chunk_missing_delta", envelope.model_dump(by_alias=True))
    return [
        ChunkEvent(
            **_base_fields(envelope),
            id=envelope.event_id or new_event_id("chunk"),
            origin_event_id=envelope.event_id,
            role="assistant",
            message_id=envelope.message_id,
            delta=envelope.delta,
        )
    ]


def _from_done(envelope: LivePushEnvelope) -> list[CanonicalEvent]:
    return [
        CompletionSignalEvent(
            **_base_fields(envelope),
            id=envelope.event_id or new_event_id("done"),
            origin_event_id=envelope.event_id,
            message_id=envelope.message_id or "session-completion",
        )
    ]


def _from_agent_status(envelope: LivePushEnvelope) -> list[CanonicalEvent]:
    status = (envelope.data or {}).get("status")
    if status != SESSION_IDLE_STATUS:
        logger.debug("adapter.live.agent_status_ignored status=%s", status)
        return []
    return [
        CompletionSignalEvent(
            **_base_fields(envelope),
            id=envelope.event_id or new_event_id("idle"),
            origin_event_id=envelope.event_id,
            message_id="session-idle",
            agent_status=status,
        )
    ]


def _from_tool_call(envelope: LivePushEnvelope) -> list[CanonicalEvent]:
    tool_call = (envelope.data or {}).get("tool_call")
    if not isinstance(tool_call, dict):
        return _shape_mismatch("tool_call_missing_payload", envelope.model_dump(by_alias=True))
    raw_args = tool_call.get("arguments")
    if raw_args is None:
        raw_args = tool_call.get("args")
    return [
        ToolCallEvent(
            **_base_fields(envelope),
            id=envelope.event_id or new_event_id("tool-call"),
            origin_event_id=envelope.event_id,
            message_id=envelope.message_id,
            tool_call=ToolCall(
                id=str(tool_call.get("id") or new_event_id("call")),
                name=str(tool_call.get("name") or "unknown"),
                arguments=parse_arguments(raw_args),
            ),
        )
    ]


def _from_tool_result(envelope: LivePushEnvelope) -> list[CanonicalEvent]:
    if not envelope.data:
        return _shape_mismatch("tool_result_missing_payload", envelope.model_dump(by_alias=True))
    return [
        ToolResultEvent(
            **_base_fields(envelope),
            id=envelope.event_id or new_event_id("tool-result"),
            origin_event_id=envelope.event_id,
            message_id=envelope.message_id,
            tool_result=normalize_tool_result(envelope.data),
        )
    ]


def _from_checkpoint(envelope: LivePushEnvelope) -> list[CanonicalEvent]:
    data = envelope.data or {}
    phase = data.get("phase")
    if phase not in ("start", "end"):
        return _shape_mismatch("checkpoint_invalid_phase", envelope.model_dump(by_alias=True))
    try:
        stats = CheckpointStats.model_validate(data.get("stats") or {})
    except ValidationError:
        return _shape_mismatch("checkpoint_invalid_stats", envelope.model_dump(by_alias=True))
    return [
        CheckpointEvent(
            **_base_fields(envelope),
            id=envelope.event_id or new_event_id("checkpoint"),
            origin_event_id=envelope.event_id,
            checkpoint=CheckpointData(
                phase=phase,
                commit_hash=data.get("commit_hash") or data.get("commitHash") or None,
                stats=stats,
            ),
        )
    ]


def adapt_live_push(payload: Any) -> list[CanonicalEvent]:
    """Convert one raw push payload into zero or one canonical events."""
    push = classify_live_push(payload)
    if isinstance(push, ChunkPush):
        return _from_chunk(push.envelope)
    if isinstance(push, DonePush):
        return _from_done(push.envelope)
    if isinstance(push, AgentStatusPush):
        return _from_agent_status(push.envelope)
    if isinstance(push, ToolCallPush):
        return _from_tool_call(push.envelope)
    if isinstance(push, ToolResultPush):
        return _from_tool_result(push.envelope)
    if isinstance(push, CheckpointPush):
        return _from_checkpoint(push.envelope)
    return _shape_mismatch(push.reason, push.raw)
