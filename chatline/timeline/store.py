"""Canonical store: injectable arena of events plus per-session chronological index."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from threading import Lock, RLock

from chatline.infra.observability.logger import get_logger
from chatline.timeline.errors import CheckpointAlreadyCommittedError, CheckpointNotFoundError
from chatline.timeline.events.event_types import CanonicalEvent, CheckpointEvent
from chatline.timeline.merge import DedupIndex

logger = get_logger(__name__)


class CanonicalStore:
    """Own every canonical event for every open session.

    Events live in an arena keyed by slot. A slot is the event id, except for
    a chunk repeating an id already in the arena, which gets an occurrence
    suffix so streaming progress is never overwritten. Each session keeps an
    ordered slot list sorted by ``created_at`` (ties keep insertion order).
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._session_locks: dict[str, RLock] = {}
        self._by_slot: dict[str, CanonicalEvent] = {}
        self._slots_by_id: dict[str, list[str]] = {}
        self._by_session: dict[str, list[str]] = {}
        self._times_by_session: dict[str, list[float]] = {}
        self._dedup: dict[str, DedupIndex] = {}
        self._occurrence = 0

    @contextmanager
    def session_lock(self, session_id: str) -> Iterator[None]:
        """Hold the single-writer lock of one session."""
        with self._lock:
            lock = self._session_locks.setdefault(session_id, RLock())
        with lock:
            yield

    def insert(self, event: CanonicalEvent) -> bool:
        """Insert one event; return False when it duplicates an event already stored."""
        with self._lock:
            return self._insert_locked(event)

    def insert_batch(self, events: Iterable[CanonicalEvent]) -> list[CanonicalEvent]:
        """Insert many events and return the ones actually stored."""
        with self._lock:
            return [event for event in events if self._insert_locked(event)]

    def _insert_locked(self, event: CanonicalEvent) -> bool:
        index = self._dedup.setdefault(event.session_id, DedupIndex())
        if not index.admit(event):
            return False
        slot = event.id
        if slot in self._by_slot:
            self._occurrence += 1
            slot = f"{event.id}#{self._occurrence}"
        self._by_slot[slot] = event
        self._slots_by_id.setdefault(event.id, []).append(slot)
        ordered = self._by_session.setdefault(event.session_id, [])
        times = self._times_by_session.setdefault(event.session_id, [])
        position = bisect_right(times, event.created_at)
        ordered.insert(position, slot)
        times.insert(position, event.created_at)
        return True

    def get(self, event_id: str, session_id: str | None = None) -> CanonicalEvent | None:
        """Return the latest stored occurrence of an event id, optionally within one session."""
        with self._lock:
            if session_id is not None:
                slot = self._find_session_slot(session_id, event_id)
                return self._by_slot[slot] if slot else None
            slots = self._slots_by_id.get(event_id)
            if not slots:
                return None
            return self._by_slot[slots[-1]]

    def events_for_session(self, session_id: str) -> list[CanonicalEvent]:
        """Snapshot of a session's events in chronological order."""
        with self._lock:
            return [self._by_slot[slot] for slot in self._by_session.get(session_id, [])]

    def checkpoints_for_session(self, session_id: str) -> list[CheckpointEvent]:
        return [
            event
            for event in self.events_for_session(session_id)
            if isinstance(event, CheckpointEvent)
        ]

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._by_session.keys())

    def replace_session(self, session_id: str, events: Iterable[CanonicalEvent]) -> int:
        """Swap a session's contents for an already merged, ordered event list."""
        with self._lock:
            self._drop_session_locked(session_id)
            stored = 0
            for event in events:
                if event.session_id != session_id:
                    logger.warning(
                        "store.replace_session.foreign_event session_id=%s event_session=%s event_id=%s",
                        session_id,
                        event.session_id,
                        event.id,
                    )
                    continue
                if self._insert_locked(event):
                    stored += 1
            return stored

    def attach_commit_hash(self, session_id: str, checkpoint_id: str, commit_hash: str) -> CheckpointEvent:
        """Attach the commit hash to a checkpoint exactly once."""
        with self._lock:
            slot = self._find_session_slot(session_id, checkpoint_id)
            event = self._by_slot.get(slot) if slot else None
            if not isinstance(event, CheckpointEvent):
                raise CheckpointNotFoundError(session_id, checkpoint_id)
            current = event.checkpoint.commit_hash
            if current == commit_hash:
                return event
            if current is not None:
                raise CheckpointAlreadyCommittedError(
                    f"checkpoint '{checkpoint_id}' already committed as {current}"
                )
            updated = event.model_copy(
                update={"checkpoint": event.checkpoint.model_copy(update={"commit_hash": commit_hash})}
            )
            self._by_slot[slot] = updated
            return updated

    def update_events(self, session_id: str, events: Iterable[CanonicalEvent]) -> int:
        """Overwrite stored events in place, matched by id within the session.

        Identity and ``created_at`` must not change; only derived fields such
        as a repaired ``message_id`` are expected to differ.
        """
        updated = 0
        with self._lock:
            for event in events:
                slot = self._find_session_slot(session_id, event.id)
                if slot is None or self._by_slot[slot].created_at != event.created_at:
                    continue
                self._by_slot[slot] = event
                updated += 1
        return updated

    def remove_event(self, session_id: str, event_id: str) -> bool:
        """Remove every occurrence of an event id from one session."""
        with self._lock:
            slots = self._slots_by_id.get(event_id, [])
            removed = [slot for slot in slots if self._by_slot[slot].session_id == session_id]
            if not removed:
                return False
            ordered = self._by_session[session_id]
            times = self._times_by_session[session_id]
            dedup = self._dedup.get(session_id)
            for slot in removed:
                slots.remove(slot)
                event = self._by_slot.pop(slot)
                position = ordered.index(slot)
                del ordered[position]
                del times[position]
                if dedup is not None:
                    dedup.forget(event)
            if not slots:
                self._slots_by_id.pop(event_id, None)
            if not ordered:
                self._by_session.pop(session_id, None)
                self._times_by_session.pop(session_id, None)
            return True

    def clear_session(self, session_id: str) -> bool:
        """Explicit history clearing; the only way checkpoints are deleted."""
        with self._lock:
            existed = session_id in self._by_session
            self._drop_session_locked(session_id)
            return existed

    def _drop_session_locked(self, session_id: str) -> None:
        self._times_by_session.pop(session_id, None)
        for slot in self._by_session.pop(session_id, []):
            event = self._by_slot.pop(slot, None)
            if event is None:
                continue
            slots = self._slots_by_id.get(event.id, [])
            if slot in slots:
                slots.remove(slot)
            if not slots:
                self._slots_by_id.pop(event.id, None)
        self._dedup.pop(session_id, None)

    def _find_session_slot(self, session_id: str, event_id: str) -> str | None:
        for slot in reversed(self._slots_by_id.get(event_id, [])):
            if self._by_slot[slot].session_id == session_id:
                return slot
        return None

    def stats(self) -> dict[str, int]:
        """Expose arena/session counts for health diagnostics."""
        with self._lock:
            return {
                "events": len(self._by_slot),
                "sessions": len(self._by_session),
            }
