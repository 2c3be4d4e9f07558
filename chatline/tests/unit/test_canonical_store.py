"""Unit tests for the canonical store arena, ordering and checkpoint mutation."""

from __future__ import annotations

import threading
import time

import pytest

from chatline.timeline.errors import CheckpointAlreadyCommittedError, CheckpointNotFoundError
from chatline.timeline.events.event_types import (
    CheckpointData,
    CheckpointEvent,
    ChunkEvent,
    MessageEvent,
)
from chatline.timeline.store import CanonicalStore


def _message(event_id: str, at: float, session_id: str = "s1") -> MessageEvent:
    return MessageEvent(id=event_id, session_id=session_id, created_at=at, source="live", text=event_id)


def _checkpoint(event_id: str, at: float, commit_hash: str | None = None) -> CheckpointEvent:
    return CheckpointEvent(
        id=event_id,
        session_id="s1",
        created_at=at,
        source="live",
        checkpoint=CheckpointData(phase="end", commit_hash=commit_hash),
    )


def test_insert_keeps_chronological_order(store: CanonicalStore) -> None:
    for event_id, at in (("b", 20), ("d", 40), ("a", 10), ("c", 30), ("c2", 30)):
        assert store.insert(_message(event_id, at)) is True

    assert [event.id for event in store.events_for_session("s1")] == ["a", "b", "c", "c2", "d"]


def test_duplicate_insert_is_rejected(store: CanonicalStore) -> None:
    assert store.insert(_message("m1", 1)) is True
    assert store.insert(_message("m1", 1)) is False

    assert len(store.events_for_session("s1")) == 1
    assert store.stats() == {"events": 1, "sessions": 1}


def test_repeated_chunks_get_distinct_slots(store: CanonicalStore) -> None:
    first = ChunkEvent(id="c1", session_id="s1", created_at=1, source="live", delta="Hel")
    second = ChunkEvent(id="c1", session_id="s1", created_at=2, source="live", delta="lo")

    assert store.insert_batch([first, second]) == [first, second]
    assert [event.delta for event in store.events_for_session("s1")] == ["Hel", "lo"]
    assert store.get("c1") == second


def test_sessions_are_isolated(store: CanonicalStore) -> None:
    store.insert(_message("m1", 1, "s1"))
    store.insert(_message("m1", 1, "s2"))

    assert sorted(store.session_ids()) == ["s1", "s2"]
    assert store.clear_session("s1") is True
    assert store.events_for_session("s1") == []
    assert [event.session_id for event in store.events_for_session("s2")] == ["s2"]
    assert store.clear_session("s1") is False


def test_attach_commit_hash_once(store: CanonicalStore) -> None:
    store.insert(_checkpoint("cp-1", 1))

    updated = store.attach_commit_hash("s1", "cp-1", "abc")
    assert updated.checkpoint.commit_hash == "abc"
    assert store.checkpoints_for_session("s1")[0].checkpoint.commit_hash == "abc"
    assert store.attach_commit_hash("s1", "cp-1", "abc") == updated
    with pytest.raises(CheckpointAlreadyCommittedError):
        store.attach_commit_hash("s1", "cp-1", "def")
    with pytest.raises(CheckpointNotFoundError):
        store.attach_commit_hash("s1", "missing", "abc")
    with pytest.raises(CheckpointNotFoundError):
        store.attach_commit_hash("other-session", "cp-1", "abc")


def test_remove_event_allows_reinsert(store: CanonicalStore) -> None:
    store.insert(_message("m1", 1))

    assert store.remove_event("s1", "m1") is True
    assert store.get("m1") is None
    assert store.session_ids() == []
    assert store.insert(_message("m1", 1)) is True


def test_remove_event_only_touches_its_session(store: CanonicalStore) -> None:
    store.insert_batch([_message("m1", 1, "s1"), _message("m2", 2, "s1"), _message("m1", 1, "s2")])

    assert store.remove_event("s2", "m2") is False
    assert store.remove_event("s1", "m1") is True

    assert [event.id for event in store.events_for_session("s1")] == ["m2"]
    assert [event.id for event in store.events_for_session("s2")] == ["m1"]
    assert store.get("m1", session_id="s2") is not None
    assert store.get("m1", session_id="s1") is None
    store.insert(_message("m0", 0, "s1"))
    assert [event.id for event in store.events_for_session("s1")] == ["m0", "m2"]


def test_get_scoped_to_session(store: CanonicalStore) -> None:
    store.insert(_checkpoint("cp-1", 1))
    store.insert(_message("cp-1", 1, "s2"))

    assert isinstance(store.get("cp-1", session_id="s1"), CheckpointEvent)
    assert isinstance(store.get("cp-1", session_id="s2"), MessageEvent)
    assert store.get("cp-1", session_id="s3") is None


def test_update_events_rewrites_in_place(store: CanonicalStore) -> None:
    store.insert_batch([_message("a", 1), _message("b", 2)])

    renamed = _message("a", 1).model_copy(update={"message_id": "turn-1"})
    moved = _message("b", 99)

    assert store.update_events("s1", [renamed, moved, _message("zz", 3)]) == 1
    assert [event.message_id for event in store.events_for_session("s1")] == ["turn-1", None]


def test_out_of_order_inserts_stay_sorted_at_scale(store: CanonicalStore) -> None:
    stamps = [(index * 7919) % 2000 for index in range(2000)]

    store.insert_batch(_message(f"m{index}", at) for index, at in enumerate(stamps))

    ordered = [event.created_at for event in store.events_for_session("s1")]
    assert ordered == sorted(ordered)
    assert len(ordered) == 2000


def test_replace_session_swaps_contents(store: CanonicalStore) -> None:
    store.insert(_message("old", 1))

    stored = store.replace_session("s1", [_message("new-a", 1), _message("new-b", 2), _message("x", 3, "s2")])

    assert stored == 2
    assert [event.id for event in store.events_for_session("s1")] == ["new-a", "new-b"]
    assert store.events_for_session("s2") == []


def test_session_lock_serializes_writers(store: CanonicalStore) -> None:
    order: list[str] = []

    def writer() -> None:
        with store.session_lock("s1"):
            order.append("writer")

    with store.session_lock("s1"):
        thread = threading.Thread(target=writer)
        thread.start()
        time.sleep(0.05)
        order.append("holder")
    thread.join(timeout=2)

    assert order == ["holder", "writer"]
