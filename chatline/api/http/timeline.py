"""HTTP API layer: timeline ingestion, hydration, rendering and checkpoint diffs."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse

from chatline.api.deps import get_container
from chatline.core.container import AppContainer
from chatline.infra.observability.logger import get_logger
from chatline.protocol.messages import (
    CheckpointDiffResponse,
    CheckpointDto,
    CommitCheckpointRequest,
    HydrationResponse,
    IngestResponse,
    InteractionSummaryDto,
    MemoryMessagesRequest,
    TimelineResponse,
)
from chatline.timeline.checkpoints import CheckpointPending
from chatline.timeline.errors import (
    CheckpointAlreadyCommittedError,
    CheckpointNotFoundError,
    SourceControlError,
    WorkspaceNotConfiguredError,
)
from chatline.timeline.events.event_types import CanonicalEvent, CheckpointEvent
from chatline.timeline.pairing import pair_tool_events, summarize_interactions

router = APIRouter(prefix="/api/v1/sessions", tags=["timeline"])
logger = get_logger(__name__)


def _ingest_response(session_id: str, events: list[CanonicalEvent]) -> IngestResponse:
    return IngestResponse(
        session_id=session_id,
        accepted=[event.id for event in events],
        count=len(events),
    )


def _to_checkpoint(event: CheckpointEvent) -> CheckpointDto:
    return CheckpointDto(
        id=event.id,
        session_id=event.session_id,
        phase=event.checkpoint.phase,
        commit_hash=event.checkpoint.commit_hash,
        created_at=event.created_at,
        stats=event.checkpoint.stats.model_dump(mode="json"),
    )


@router.post("/{session_id}/live", response_model=IngestResponse)
def ingest_live(
    session_id: str,
    payload: dict[str, Any] = Body(...),
    container: AppContainer = Depends(get_container),
) -> IngestResponse:
    pushed_session = payload.get("sessionId") or payload.get("session_id")
    if pushed_session and pushed_session != session_id:
        raise HTTPException(status_code=400, detail=f"payload session '{pushed_session}' does not match path")
    payload = {**payload, "sessionId": session_id}
    payload.pop("session_id", None)

    if container.settings.hydrate_on_live and session_id not in container.store.session_ids():
        container.ingestor.hydrate_session(session_id)
    stored = container.ingestor.ingest_live(payload)
    logger.info(
        "api.timeline.live session_id=%s tag=%s accepted=%s",
        session_id,
        payload.get("type") or payload.get("event_type") or "-",
        len(stored),
    )
    return _ingest_response(session_id, stored)


@router.post("/{session_id}/messages", response_model=IngestResponse)
def ingest_messages(
    session_id: str,
    request: MemoryMessagesRequest,
    container: AppContainer = Depends(get_container),
) -> IngestResponse:
    messages = [{**message, "session_id": session_id} for message in request.messages]
    stored = container.ingestor.ingest_memory_messages(messages)
    return _ingest_response(session_id, stored)


@router.post("/{session_id}/hydrate", response_model=HydrationResponse)
def hydrate(
    session_id: str,
    container: AppContainer = Depends(get_container),
) -> HydrationResponse:
    report = container.ingestor.hydrate_session(session_id)
    return HydrationResponse(
        session_id=report.session_id,
        pages=report.pages,
        rows=report.rows,
        events_stored=report.events_stored,
        checkpoints_stored=report.checkpoints_stored,
        cancelled=report.cancelled,
    )


@router.get("/{session_id}/timeline", response_model=TimelineResponse)
def get_timeline(
    session_id: str,
    paired: bool = Query(default=True),
    container: AppContainer = Depends(get_container),
) -> TimelineResponse:
    events = container.store.events_for_session(session_id)
    if not paired:
        return TimelineResponse(
            session_id=session_id,
            paired=False,
            count=len(events),
            entries=[event.model_dump(mode="json") for event in events],
        )
    entries = pair_tool_events(events)
    return TimelineResponse(
        session_id=session_id,
        paired=True,
        count=len(entries),
        entries=[entry.model_dump(mode="json") for entry in entries],
        interactions=InteractionSummaryDto(**summarize_interactions(entries)),
    )


@router.get("/{session_id}/checkpoints", response_model=list[CheckpointDto])
def list_checkpoints(
    session_id: str,
    container: AppContainer = Depends(get_container),
) -> list[CheckpointDto]:
    return [_to_checkpoint(event) for event in container.store.checkpoints_for_session(session_id)]


@router.put("/{session_id}/checkpoints/{checkpoint_id}/commit", response_model=CheckpointDto)
def commit_checkpoint(
    session_id: str,
    checkpoint_id: str,
    request: CommitCheckpointRequest,
    container: AppContainer = Depends(get_container),
) -> CheckpointDto:
    try:
        event = container.ingestor.commit_checkpoint(session_id, checkpoint_id, request.commit_hash)
    except CheckpointNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except CheckpointAlreadyCommittedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _to_checkpoint(event)


@router.get(
    "/{session_id}/checkpoints/{checkpoint_id}/diff",
    response_model=CheckpointDiffResponse,
    responses={202: {"model": CheckpointDiffResponse}},
)
def checkpoint_diff(
    session_id: str,
    checkpoint_id: str,
    container: AppContainer = Depends(get_container),
) -> CheckpointDiffResponse | JSONResponse:
    try:
        resolved = container.resolver.resolve_diff(session_id, checkpoint_id)
    except CheckpointNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except WorkspaceNotConfiguredError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except SourceControlError as exc:
        logger.warning(
            "api.timeline.diff_failed session_id=%s checkpoint_id=%s error=%s",
            session_id,
            checkpoint_id,
            exc,
        )
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    if isinstance(resolved, CheckpointPending):
        pending = CheckpointDiffResponse(
            session_id=session_id,
            checkpoint_id=checkpoint_id,
            status="pending",
            reason=resolved.reason,
        )
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=pending.model_dump(mode="json"))
    return CheckpointDiffResponse(
        session_id=session_id,
        checkpoint_id=checkpoint_id,
        status="ready",
        from_commit=resolved.range.from_commit,
        to_commit=resolved.range.to_commit,
        is_first=resolved.range.is_first,
        diff=resolved.diff,
    )


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def clear_session(
    session_id: str,
    container: AppContainer = Depends(get_container),
) -> Response:
    cleared = container.ingestor.clear_session(session_id)
    if not cleared:
        raise HTTPException(status_code=404, detail=f"session '{session_id}' not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
