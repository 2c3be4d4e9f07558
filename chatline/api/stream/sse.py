"""Stream API layer: SSE endpoint replaying timeline notifications with heartbeat."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import StreamingResponse

from chatline.api.deps import get_container
from chatline.core.container import AppContainer

router = APIRouter(tags=["stream"])


def _format_sse(*, event: str, data: dict, event_id: int) -> str:
    body = json.dumps(data, ensure_ascii=False)
    return f"id: {event_id}\nevent: {event}\ndata: {body}\n\n"


def _resume_cursor(last_event_id: int | None, header_value: str | None) -> int | None:
    if last_event_id is not None:
        return last_event_id
    if isinstance(header_value, str):
        try:
            return int(header_value)
        except ValueError:
            return None
    return None


@router.get("/api/stream/{session_id}")
async def stream(
    session_id: str,
    last_event_id: int | None = Query(default=None),
    last_event_id_header: str | None = Header(default=None, alias="Last-Event-ID"),
    container: AppContainer = Depends(get_container),
) -> StreamingResponse:
    async def iterator() -> AsyncIterator[str]:
        cursor = _resume_cursor(last_event_id, last_event_id_header)
        waited = 0
        while waited < container.settings.sse_max_wait_seconds:
            events = container.replay_buffer.list_events(session_id, cursor)
            if events:
                for evt in events:
                    cursor = evt.id
                    yield _format_sse(
                        event=evt.event,
                        data=evt.model_dump(mode="json"),
                        event_id=evt.id,
                    )
            else:
                yield ": keep-alive\n\n"
            waited += 1
            await asyncio.sleep(container.settings.sse_keepalive_seconds)

    return StreamingResponse(iterator(), media_type="text/event-stream")
