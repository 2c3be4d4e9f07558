"""Protocol layer: request/response DTOs shared by the timeline API routes."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


DiffStatusType = Literal["ready", "pending"]


class IngestResponse(BaseModel):
    """Events accepted into the canonical store by one ingestion call."""

    session_id: str
    accepted: list[str] = Field(default_factory=list)
    count: int = 0


class MemoryMessagesRequest(BaseModel):
    """Optimistic chat messages held by a client that may not be persisted yet."""

    messages: list[dict[str, Any]] = Field(default_factory=list, max_length=2000)


class HydrationResponse(BaseModel):
    session_id: str
    pages: int
    rows: int
    events_stored: int
    checkpoints_stored: int
    cancelled: bool


class InteractionSummaryDto(BaseModel):
    running: int = 0
    completed: int = 0
    failed: int = 0


class TimelineResponse(BaseModel):
    """Ordered timeline of one session, optionally paired into tool interactions."""

    session_id: str
    paired: bool
    count: int
    entries: list[dict[str, Any]] = Field(default_factory=list)
    interactions: InteractionSummaryDto | None = None


class CommitCheckpointRequest(BaseModel):
    commit_hash: str = Field(..., min_length=1, max_length=128)


class CheckpointDto(BaseModel):
    id: str
    session_id: str
    phase: Literal["start", "end"]
    commit_hash: str | None = None
    created_at: float
    stats: dict[str, Any] = Field(default_factory=dict)


class CheckpointDiffResponse(BaseModel):
    """Diff of one checkpoint against its predecessor, or the reason it is not ready."""

    session_id: str
    checkpoint_id: str
    status: DiffStatusType
    from_commit: str | None = None
    to_commit: str | None = None
    is_first: bool | None = None
    diff: str | None = None
    reason: str | None = None
