"""Unit tests for live single-writer ingestion and paged hydration."""

from __future__ import annotations

from chatline.timeline.cancellation import CancellationEvent
from chatline.timeline.events.event_types import ToolResultEvent
from chatline.timeline.events.replay_buffer import ReplayBuffer
from chatline.timeline.ingest import TimelineIngestor, select_checkpoint_rows
from chatline.timeline.store import CanonicalStore


class FakePageSource:
    def __init__(self, rows: list[dict], checkpoints: list[dict] | None = None) -> None:
        self._rows = rows
        self._checkpoints = checkpoints or []
        self.calls: list[tuple[int, int]] = []
        self.on_fetch = None

    def fetch_rows(self, session_id: str, *, offset: int, limit: int) -> list[dict]:
        self.calls.append((offset, limit))
        if self.on_fetch is not None:
            self.on_fetch(len(self.calls))
        rows = [row for row in self._rows if row["session_id"] == session_id]
        return rows[offset : offset + limit]

    def fetch_checkpoints(self, session_id: str) -> list[dict]:
        return [row for row in self._checkpoints if row["session_id"] == session_id]


def _rows(count: int) -> list[dict]:
    return [
        {"id": f"r{index}", "session_id": "s1", "role": "user", "content": f"row {index}", "created_at": 1000 + index}
        for index in range(count)
    ]


def test_hydration_pages_until_short_page(store: CanonicalStore) -> None:
    source = FakePageSource(_rows(5))
    ingestor = TimelineIngestor(store=store, page_source=source, page_size=2)

    report = ingestor.hydrate_session("s1")

    assert source.calls == [(0, 2), (2, 2), (4, 2)]
    assert report.pages == 3
    assert report.rows == 5
    assert report.events_stored == 5
    assert report.cancelled is False
    assert [event.id for event in store.events_for_session("s1")] == [f"r{i}" for i in range(5)]


def test_exact_multiple_needs_one_empty_page(store: CanonicalStore) -> None:
    source = FakePageSource(_rows(4))

    report = TimelineIngestor(store=store, page_source=source, page_size=2).hydrate_session("s1")

    assert source.calls == [(0, 2), (2, 2), (4, 2)]
    assert report.pages == 2


def test_hydrating_twice_converges(store: CanonicalStore) -> None:
    checkpoints = [
        {"id": "cp-1", "session_id": "s1", "phase": "start", "commit_hash": "h1", "created_at": 1001},
        {"id": "cp-1b", "session_id": "s1", "phase": "end", "commit_hash": "h1", "created_at": 1002},
        {"id": "cp-2", "session_id": "s1", "phase": "end", "commit_hash": None, "created_at": 1003},
    ]
    ingestor = TimelineIngestor(store=store, page_source=FakePageSource(_rows(3), checkpoints), page_size=2)

    first = ingestor.hydrate_session("s1")
    snapshot = store.events_for_session("s1")
    second = ingestor.hydrate_session("s1")

    assert first.checkpoints_stored == 1
    assert second.events_stored == 0
    assert second.checkpoints_stored == 0
    assert store.events_for_session("s1") == snapshot
    assert [event.id for event in store.checkpoints_for_session("s1")] == ["cp-1"]


def test_cancellation_between_pages_keeps_merged_pages(store: CanonicalStore) -> None:
    cancellation = CancellationEvent()
    source = FakePageSource(_rows(6))
    source.on_fetch = lambda call_number: cancellation.set() if call_number == 2 else None
    ingestor = TimelineIngestor(store=store, page_source=source, page_size=2)

    report = ingestor.hydrate_session("s1", cancellation=cancellation)

    assert report.cancelled is True
    assert report.pages == 2
    assert len(store.events_for_session("s1")) == 4

    resumed = ingestor.hydrate_session("s1")
    assert resumed.cancelled is False
    assert len(store.events_for_session("s1")) == 6


def test_hydration_repairs_tool_result_owner_against_live_call(store: CanonicalStore) -> None:
    ingestor = TimelineIngestor(
        store=store,
        page_source=FakePageSource(
            [{"id": "r1", "session_id": "s1", "role": "tool", "content": "ok", "tool_call_id": "call-1", "created_at": 50}]
        ),
    )
    ingestor.ingest_live(
        {
            "type": "tool_call",
            "sessionId": "s1",
            "messageId": "turn-7",
            "event_id": "e1",
            "timestamp": 40,
            "data": {"tool_call": {"id": "call-1", "name": "bash"}},
        }
    )

    ingestor.hydrate_session("s1")

    result = next(event for event in store.events_for_session("s1") if isinstance(event, ToolResultEvent))
    assert result.message_id == "turn-7"


def test_hydrated_call_repairs_result_stored_earlier(store: CanonicalStore) -> None:
    ingestor = TimelineIngestor(
        store=store,
        page_source=FakePageSource(
            [
                {
                    "id": "r1",
                    "session_id": "s1",
                    "role": "assistant",
                    "message_id": "turn-3",
                    "content": [{"type": "tool_use", "id": "call-9", "name": "bash"}],
                    "created_at": 10,
                }
            ]
        ),
    )
    ingestor.ingest_live(
        {
            "type": "tool_result",
            "sessionId": "s1",
            "messageId": "live-turn",
            "event_id": "e9",
            "timestamp": 20,
            "data": {"tool_call_id": "call-9", "output": "ok"},
        }
    )

    ingestor.hydrate_session("s1")

    events = store.events_for_session("s1")
    assert [event.id for event in events] == ["r1-tool-call-0", "e9"]
    assert events[1].message_id == "turn-3"


def test_many_pages_merge_in_order(store: CanonicalStore) -> None:
    rows = _rows(1200)
    rows.reverse()
    source = FakePageSource(rows)

    report = TimelineIngestor(store=store, page_source=source, page_size=100).hydrate_session("s1")

    assert report.pages == 12
    assert report.events_stored == 1200
    stamps = [event.created_at for event in store.events_for_session("s1")]
    assert stamps == sorted(stamps)


def test_commit_checkpoint_compares_within_its_session(store: CanonicalStore) -> None:
    buffer = ReplayBuffer()
    ingestor = TimelineIngestor(store=store, replay_buffer=buffer)
    for session_id, commit_hash in (("s1", "abc"), ("s2", None)):
        data = {"phase": "end", "commit_hash": commit_hash} if commit_hash else {"phase": "end"}
        ingestor.ingest_live(
            {"type": "checkpoint", "sessionId": session_id, "event_id": "cp-1", "timestamp": 9, "data": data}
        )

    ingestor.commit_checkpoint("s2", "cp-1", "abc")
    ingestor.commit_checkpoint("s1", "cp-1", "abc")

    assert [item.event for item in buffer.list_events("s2")] == ["timeline.event_added", "checkpoint.committed"]
    assert [item.event for item in buffer.list_events("s1")] == ["timeline.event_added"]


def test_live_duplicates_are_ignored_and_published_once(store: CanonicalStore) -> None:
    buffer = ReplayBuffer()
    ingestor = TimelineIngestor(store=store, replay_buffer=buffer)
    payload = {"type": "done", "sessionId": "s1", "event_id": "d1", "timestamp": 5}

    assert [event.id for event in ingestor.ingest_live(payload)] == ["d1"]
    assert ingestor.ingest_live(payload) == []
    assert [item.event for item in buffer.list_events("s1")] == ["timeline.event_added"]


def test_live_checkpoint_repeat_attaches_late_commit(store: CanonicalStore) -> None:
    buffer = ReplayBuffer()
    ingestor = TimelineIngestor(store=store, replay_buffer=buffer)
    push = {"type": "checkpoint", "sessionId": "s1", "event_id": "cp-1", "timestamp": 9, "data": {"phase": "end"}}

    ingestor.ingest_live(push)
    ingestor.ingest_live({**push, "data": {"phase": "end", "commit_hash": "abc"}})

    assert store.checkpoints_for_session("s1")[0].checkpoint.commit_hash == "abc"
    assert [item.event for item in buffer.list_events("s1")] == ["timeline.event_added", "checkpoint.committed"]


def test_memory_messages_are_inserted_per_session(store: CanonicalStore) -> None:
    ingestor = TimelineIngestor(store=store)

    stored = ingestor.ingest_memory_messages(
        [
            {"id": "a", "session_id": "s1", "role": "user", "content": "hi", "created_at": 1},
            {"id": "b", "session_id": "s2", "role": "user", "content": "yo", "created_at": 2},
        ]
    )

    assert len(stored) == 2
    assert sorted(store.session_ids()) == ["s1", "s2"]


def test_select_checkpoint_rows_skips_pending_and_repeated_hashes() -> None:
    rows = [
        {"id": "a", "commit_hash": "h1"},
        {"id": "b", "commit_hash": None},
        {"id": "c", "commit_hash": "h1"},
        {"id": "d", "commit_hash": "h2"},
        {"id": "e", "commit_hash": "h1"},
    ]

    assert [row["id"] for row in select_checkpoint_rows(rows)] == ["a", "d", "e"]
