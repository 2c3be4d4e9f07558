"""Composition layer: build and hold long-lived service objects for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass

from chatline.core.config import Settings
from chatline.infra.db.local_store import LocalHistoryStore
from chatline.infra.source_control import HttpSourceControl, HttpSourceControlConfig
from chatline.infra.workspaces import SessionWorkspaces
from chatline.timeline.checkpoints import CheckpointResolver
from chatline.timeline.events.replay_buffer import ReplayBuffer
from chatline.timeline.ingest import TimelineIngestor
from chatline.timeline.store import CanonicalStore


@dataclass
class AppContainer:
    """Container object attached to FastAPI app state."""

    settings: Settings
    history: LocalHistoryStore
    store: CanonicalStore
    replay_buffer: ReplayBuffer
    workspaces: SessionWorkspaces
    ingestor: TimelineIngestor
    resolver: CheckpointResolver


def build_container(settings: Settings) -> AppContainer:
    """Construct runtime dependencies in one place."""
    history = LocalHistoryStore.from_jsonl(settings.history_jsonl_path, settings.checkpoints_jsonl_path)
    store = CanonicalStore()
    replay_buffer = ReplayBuffer(max_events_per_session=settings.replay_buffer_size)
    workspaces = SessionWorkspaces.from_yaml(settings.session_workspaces_file)
    source_control = HttpSourceControl(
        HttpSourceControlConfig(
            base_url=settings.scm_base_url,
            timeout_seconds=settings.scm_timeout_seconds,
        )
    )
    ingestor = TimelineIngestor(
        store=store,
        page_source=history,
        replay_buffer=replay_buffer,
        page_size=settings.hydration_page_size,
    )
    resolver = CheckpointResolver(
        store=store,
        source_control=source_control,
        workspaces=workspaces,
    )
    return AppContainer(
        settings=settings,
        history=history,
        store=store,
        replay_buffer=replay_buffer,
        workspaces=workspaces,
        ingestor=ingestor,
        resolver=resolver,
    )
