"""Merge/dedup engine: repair tool-result ownership, drop duplicates, order by time."""

from __future__ import annotations

from collections.abc import Iterable

from chatline.infra.observability.logger import get_logger
from chatline.timeline.events.event_types import CanonicalEvent, ToolCallEvent, ToolResultEvent

logger = get_logger(__name__)


def dedup_key(event: CanonicalEvent) -> str:
    """Origin event id, then canonical id, then `message_id:kind`, then `id:kind`."""
    if event.origin_event_id:
        return event.origin_event_id
    if event.id:
        return event.id
    if event.message_id:
        return f"{event.message_id}:{event.kind}"
    return f"{event.id}:{event.kind}"


class DedupIndex:
    """Remember seen dedup keys (with the kind that claimed them) for one event stream."""

    def __init__(self) -> None:
        self._kinds: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._kinds)

    def resolve_key(self, event: CanonicalEvent) -> str:
        key = dedup_key(event)
        claimed = self._kinds.get(key)
        if claimed is not None and claimed != event.kind:
            # Same key but a different kind is a different fact.
            key = f"{key}:{event.kind}"
        return key

    def admit(self, event: CanonicalEvent) -> bool:
        """Record the event; return False when it duplicates an already admitted one."""
        key = self.resolve_key(event)
        if key in self._kinds and event.kind != "chunk":
            return False
        self._kinds.setdefault(key, event.kind)
        return True

    def forget(self, event: CanonicalEvent) -> None:
        key = dedup_key(event)
        for candidate in (key, f"{key}:{event.kind}"):
            if self._kinds.get(candidate) == event.kind:
                del self._kinds[candidate]
                return


def tool_call_owners(events: Iterable[CanonicalEvent]) -> dict[str, str]:
    """Map tool call ids to the message id of the turn that issued them."""
    owners: dict[str, str] = {}
    for event in events:
        if isinstance(event, ToolCallEvent) and event.message_id:
            owners[event.tool_call.id] = event.message_id
    return owners


def repair_tool_result_owners(
    events: list[CanonicalEvent],
    owners: dict[str, str] | None = None,
) -> list[CanonicalEvent]:
    """Give every tool result the message id of the assistant turn that issued its call."""
    if owners is None:
        owners = tool_call_owners(events)

    repaired: list[CanonicalEvent] = []
    for event in events:
        if isinstance(event, ToolResultEvent):
            owner = owners.get(event.tool_result.tool_call_id)
            if owner and owner != event.message_id:
                event = event.model_copy(update={"message_id": owner})
        repaired.append(event)
    return repaired


def merge_events(events: Iterable[CanonicalEvent]) -> list[CanonicalEvent]:
    """Deduplicate and chronologically sort events drawn from any mix of adapters.

    Chunks are always retained because each one records streaming progress;
    every other kind keeps its first occurrence. Running the merge on its own
    output returns the same list.
    """
    repaired = repair_tool_result_owners(list(events))
    index = DedupIndex()
    retained: list[CanonicalEvent] = []
    dropped = 0
    for event in repaired:
        if index.admit(event):
            retained.append(event)
        else:
            dropped += 1
    if dropped:
        logger.debug("merge.dedup input=%s retained=%s dropped=%s", len(repaired), len(retained), dropped)
    retained.sort(key=lambda item: item.created_at)
    return retained
