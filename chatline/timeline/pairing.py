"""Tool interaction pairing: fold tool calls and results into render-ready interactions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict

from chatline.infra.observability.logger import get_logger
from chatline.timeline.events.event_types import (
    CanonicalEvent,
    ToolCall,
    ToolCallEvent,
    ToolResultEvent,
)

logger = get_logger(__name__)

InteractionStatus = Literal["running", "completed", "failed"]


class ToolInteraction(BaseModel):
    """A tool call with its (possibly missing) result; derived, never stored."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["tool_interaction"] = "tool_interaction"
    id: str
    session_id: str
    created_at: float
    call: ToolCallEvent
    result: ToolResultEvent | None = None
    status: InteractionStatus


TimelineEntry = Union[CanonicalEvent, ToolInteraction]


def interaction_status(result: ToolResultEvent | None) -> InteractionStatus:
    if result is None:
        return "running"
    if result.tool_result.ok and result.tool_result.error in (None, ""):
        return "completed"
    return "failed"


def _stub_call(result: ToolResultEvent) -> ToolCallEvent:
    call_id = result.tool_result.tool_call_id or result.id
    return ToolCallEvent(
        id=f"stub-{call_id}",
        session_id=result.session_id,
        role="assistant",
        created_at=result.created_at,
        source=result.source,
        message_id=result.message_id,
        tool_call=ToolCall(id=call_id, name="unknown"),
    )


def _interaction(call: ToolCallEvent, result: ToolResultEvent | None) -> ToolInteraction:
    return ToolInteraction(
        id=call.tool_call.id,
        session_id=call.session_id,
        created_at=call.created_at,
        call=call,
        result=result,
        status=interaction_status(result),
    )


def pair_tool_events(events: Sequence[CanonicalEvent]) -> list[TimelineEntry]:
    """Replace tool calls/results with interactions, keeping every other event in place.

    An interaction takes the position of its call. A result whose call is
    absent from the sequence gets a stub call named ``unknown`` and keeps the
    result's position. Extra results or repeated calls for an already paired
    id are folded into the first interaction.
    """
    results_by_call: dict[str, ToolResultEvent] = {}
    call_ids: set[str] = set()
    for event in events:
        if isinstance(event, ToolCallEvent):
            call_ids.add(event.tool_call.id)
        elif isinstance(event, ToolResultEvent):
            results_by_call.setdefault(event.tool_result.tool_call_id, event)

    emitted: set[str] = set()
    entries: list[TimelineEntry] = []
    folded = 0
    for event in events:
        if isinstance(event, ToolCallEvent):
            call_id = event.tool_call.id
            if call_id in emitted:
                folded += 1
                continue
            emitted.add(call_id)
            entries.append(_interaction(event, results_by_call.get(call_id)))
        elif isinstance(event, ToolResultEvent):
            call_id = event.tool_result.tool_call_id
            if call_id and call_id in call_ids:
                if results_by_call.get(call_id) is not event:
                    folded += 1
                continue
            stub = _stub_call(event)
            stub_id = stub.tool_call.id
            if stub_id in emitted:
                folded += 1
                continue
            emitted.add(stub_id)
            logger.debug("pairing.orphan_result tool_call_id=%s event_id=%s", call_id or "-", event.id)
            entries.append(_interaction(stub, event))
        else:
            entries.append(event)
    if folded:
        logger.debug("pairing.folded_duplicates count=%s", folded)
    return entries


def summarize_interactions(entries: Sequence[TimelineEntry]) -> dict[str, int]:
    """Count interactions per status for timeline responses."""
    summary = {"running": 0, "completed": 0, "failed": 0}
    for entry in entries:
        if isinstance(entry, ToolInteraction):
            summary[entry.status] += 1
    return summary
