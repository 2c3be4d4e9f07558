"""Event layer: timeline notifications buffered for SSE replay."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field


EventName = Literal[
    "timeline.event_added",
    "timeline.reconciled",
    "timeline.cleared",
    "checkpoint.committed",
]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class StreamEvent(BaseModel):
    """Single notification kept in memory for SSE replay."""

    id: int
    session_id: str
    event: EventName
    at: str = Field(default_factory=utc_now_iso)
    data: dict[str, Any] = Field(default_factory=dict)
