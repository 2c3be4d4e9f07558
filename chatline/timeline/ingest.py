"""Ingestion layer: single-writer live delivery and paged history hydration per session."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from chatline.infra.observability.logger import get_logger
from chatline.timeline.adapters import (
    adapt_checkpoint_row,
    adapt_live_push,
    adapt_memory_messages,
    adapt_stored_rows,
)
from chatline.timeline.cancellation import (
    CancellationEvent,
    OperationCancelledError,
    raise_if_cancelled,
)
from chatline.timeline.errors import CheckpointAlreadyCommittedError
from chatline.timeline.events.event_types import CanonicalEvent, CheckpointEvent
from chatline.timeline.events.replay_buffer import ReplayBuffer
from chatline.timeline.events.stream_events import EventName
from chatline.timeline.merge import merge_events, repair_tool_result_owners, tool_call_owners
from chatline.timeline.store import CanonicalStore

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 500


class RowPageSource(Protocol):
    """Durable history reachable page by page."""

    def fetch_rows(self, session_id: str, *, offset: int, limit: int) -> Sequence[dict[str, Any]]:
        ...

    def fetch_checkpoints(self, session_id: str) -> Sequence[dict[str, Any]]:
        ...


@dataclass(frozen=True)
class HydrationReport:
    session_id: str
    pages: int
    rows: int
    events_stored: int
    checkpoints_stored: int
    cancelled: bool


def select_checkpoint_rows(rows: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Skip rows without a commit hash and rows repeating the most recent hash."""
    selected: list[dict[str, Any]] = []
    last_hash: str | None = None
    for row in rows:
        commit_hash = row.get("commit_hash") if isinstance(row, dict) else None
        if not commit_hash or commit_hash == last_hash:
            continue
        last_hash = commit_hash
        selected.append(row)
    return selected


class TimelineIngestor:
    """Route adapter output into the store while holding the session's writer lock."""

    def __init__(
        self,
        *,
        store: CanonicalStore,
        page_source: RowPageSource | None = None,
        replay_buffer: ReplayBuffer | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._store = store
        self._page_source = page_source
        self._replay_buffer = replay_buffer
        self._page_size = max(1, page_size)

    def _publish(self, session_id: str, event_name: EventName, data: dict[str, Any]) -> None:
        if self._replay_buffer is not None:
            self._replay_buffer.append(session_id, event_name, data)

    def _publish_added(self, events: Iterable[CanonicalEvent]) -> None:
        for event in events:
            self._publish(
                event.session_id,
                "timeline.event_added",
                {"event": event.model_dump(mode="json")},
            )

    def ingest_live(self, payload: Any) -> list[CanonicalEvent]:
        """Adapt one live push and insert it; returns the events actually stored."""
        stored: list[CanonicalEvent] = []
        for event in adapt_live_push(payload):
            with self._store.session_lock(event.session_id):
                if self._store.insert(event):
                    stored.append(event)
                    continue
                if isinstance(event, CheckpointEvent) and event.checkpoint.commit_hash:
                    self._attach_late_commit(event)
                    continue
            logger.debug(
                "ingest.live.duplicate session_id=%s kind=%s event_id=%s",
                event.session_id,
                event.kind,
                event.id,
            )
        self._publish_added(stored)
        return stored

    def _attach_late_commit(self, event: CheckpointEvent) -> None:
        try:
            self.commit_checkpoint(event.session_id, event.id, event.checkpoint.commit_hash or "")
        except CheckpointAlreadyCommittedError as exc:
            logger.warning(
                "ingest.live.commit_conflict session_id=%s checkpoint_id=%s error=%s",
                event.session_id,
                event.id,
                exc,
            )

    def ingest_memory_messages(self, messages: Iterable[Any]) -> list[CanonicalEvent]:
        """Adapt in-memory chat messages and insert them per session."""
        by_session: dict[str, list[CanonicalEvent]] = {}
        for event in adapt_memory_messages(messages):
            by_session.setdefault(event.session_id, []).append(event)
        stored: list[CanonicalEvent] = []
        for session_id, events in by_session.items():
            with self._store.session_lock(session_id):
                stored.extend(self._store.insert_batch(events))
        self._publish_added(stored)
        return stored

    def commit_checkpoint(self, session_id: str, checkpoint_id: str, commit_hash: str) -> CheckpointEvent:
        with self._store.session_lock(session_id):
            before = self._store.get(checkpoint_id, session_id=session_id)
            updated = self._store.attach_commit_hash(session_id, checkpoint_id, commit_hash)
        if before != updated:
            logger.info(
                "ingest.checkpoint.committed session_id=%s checkpoint_id=%s commit=%s",
                session_id,
                checkpoint_id,
                commit_hash[:12],
            )
            self._publish(
                session_id,
                "checkpoint.committed",
                {"checkpoint_id": checkpoint_id, "commit_hash": commit_hash},
            )
        return updated

    def clear_session(self, session_id: str) -> bool:
        with self._store.session_lock(session_id):
            cleared = self._store.clear_session(session_id)
        if cleared:
            logger.info("ingest.session.cleared session_id=%s", session_id)
            self._publish(session_id, "timeline.cleared", {})
        return cleared

    def hydrate_session(
        self,
        session_id: str,
        cancellation: CancellationEvent | None = None,
    ) -> HydrationReport:
        """Page durable history into the store, merging after every page.

        Cancellation is honoured between pages. Pages merged before the cancel
        stay in the store, so a later run resumes from a consistent state.
        """
        if self._page_source is None:
            raise RuntimeError("hydration requires a row page source")
        pages = rows_seen = events_stored = checkpoints_stored = 0
        cancelled = False
        try:
            offset = 0
            while True:
                raise_if_cancelled(cancellation)
                rows = list(self._page_source.fetch_rows(session_id, offset=offset, limit=self._page_size))
                if rows:
                    pages += 1
                    rows_seen += len(rows)
                    events_stored += self._merge_page(session_id, rows)
                if len(rows) < self._page_size:
                    break
                offset += len(rows)

            raise_if_cancelled(cancellation)
            checkpoints_stored = self._hydrate_checkpoints(session_id)
        except OperationCancelledError:
            cancelled = True
            logger.info(
                "ingest.hydrate.cancelled session_id=%s pages=%s rows=%s",
                session_id,
                pages,
                rows_seen,
            )

        report = HydrationReport(
            session_id=session_id,
            pages=pages,
            rows=rows_seen,
            events_stored=events_stored,
            checkpoints_stored=checkpoints_stored,
            cancelled=cancelled,
        )
        logger.info(
            "ingest.hydrate.done session_id=%s pages=%s rows=%s stored=%s checkpoints=%s cancelled=%s",
            session_id,
            pages,
            rows_seen,
            events_stored,
            checkpoints_stored,
            cancelled,
        )
        self._publish(
            session_id,
            "timeline.reconciled",
            {
                "pages": pages,
                "events_stored": events_stored,
                "checkpoints_stored": checkpoints_stored,
                "cancelled": cancelled,
            },
        )
        return report

    def _merge_page(self, session_id: str, rows: list[dict[str, Any]]) -> int:
        events = []
        for event in adapt_stored_rows(rows):
            if event.session_id != session_id:
                logger.warning(
                    "ingest.hydrate.foreign_row session_id=%s row_session=%s event_id=%s",
                    session_id,
                    event.session_id,
                    event.id,
                )
                continue
            events.append(event)
        page = merge_events(events)
        with self._store.session_lock(session_id):
            existing = self._store.events_for_session(session_id)
            owners = tool_call_owners(existing)
            owners.update(tool_call_owners(page))
            # Results stored before their call arrived pick up the owner in place.
            stale = [
                repaired
                for original, repaired in zip(existing, repair_tool_result_owners(existing, owners))
                if repaired is not original
            ]
            if stale:
                self._store.update_events(session_id, stale)
            stored = self._store.insert_batch(repair_tool_result_owners(page, owners))
        return len(stored)

    def _hydrate_checkpoints(self, session_id: str) -> int:
        stored = 0
        rows = select_checkpoint_rows(self._page_source.fetch_checkpoints(session_id))
        with self._store.session_lock(session_id):
            for row in rows:
                for event in adapt_checkpoint_row(row):
                    if event.session_id == session_id and self._store.insert(event):
                        stored += 1
        return stored
