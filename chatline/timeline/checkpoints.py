"""Checkpoint diff-chain resolver: derive each checkpoint's commit range and diff."""

from __future__ import annotations

from typing import Literal, Protocol

from pydantic import BaseModel, ConfigDict

from chatline.infra.observability.logger import get_logger
from chatline.timeline.errors import CheckpointNotFoundError, WorkspaceNotConfiguredError
from chatline.timeline.store import CanonicalStore

logger = get_logger(__name__)

PendingReason = Literal["commit_pending", "base_pending"]


class SourceControl(Protocol):
    """Version-control capability consumed by the resolver."""

    def diff(self, project_path: str, from_commit: str, to_commit: str) -> str:
        ...

    def get_base_commit(self, session_id: str, project_path: str) -> str:
        ...


class WorkspaceLookup(Protocol):
    def project_path_for(self, session_id: str) -> str | None:
        ...


class DiffRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    checkpoint_id: str
    from_commit: str
    to_commit: str
    is_first: bool


class CheckpointDiff(BaseModel):
    model_config = ConfigDict(frozen=True)

    range: DiffRange
    diff: str


class CheckpointPending(BaseModel):
    """Not-ready marker: a commit hash this checkpoint depends on is not attached yet."""

    model_config = ConfigDict(frozen=True)

    checkpoint_id: str
    reason: PendingReason


class CheckpointResolver:
    """Resolve checkpoints against their immediate predecessor in session order."""

    def __init__(
        self,
        *,
        store: CanonicalStore,
        source_control: SourceControl,
        workspaces: WorkspaceLookup,
    ) -> None:
        self._store = store
        self._source_control = source_control
        self._workspaces = workspaces

    def _project_path(self, session_id: str) -> str:
        project_path = self._workspaces.project_path_for(session_id)
        if not project_path:
            raise WorkspaceNotConfiguredError(f"session '{session_id}' has no workspace configured")
        return project_path

    def resolve_range(self, session_id: str, checkpoint_id: str) -> DiffRange | CheckpointPending:
        checkpoints = self._store.checkpoints_for_session(session_id)
        position = next(
            (index for index, item in enumerate(checkpoints) if item.id == checkpoint_id),
            None,
        )
        if position is None:
            raise CheckpointNotFoundError(session_id, checkpoint_id)

        target = checkpoints[position].checkpoint.commit_hash
        if not target:
            return CheckpointPending(checkpoint_id=checkpoint_id, reason="commit_pending")

        if position == 0:
            base = self._source_control.get_base_commit(session_id, self._project_path(session_id))
            return DiffRange(checkpoint_id=checkpoint_id, from_commit=base, to_commit=target, is_first=True)

        previous = checkpoints[position - 1].checkpoint.commit_hash
        if not previous:
            return CheckpointPending(checkpoint_id=checkpoint_id, reason="base_pending")
        return DiffRange(checkpoint_id=checkpoint_id, from_commit=previous, to_commit=target, is_first=False)

    def resolve_diff(self, session_id: str, checkpoint_id: str) -> CheckpointDiff | CheckpointPending:
        resolved = self.resolve_range(session_id, checkpoint_id)
        if isinstance(resolved, CheckpointPending):
            logger.info(
                "checkpoint.pending session_id=%s checkpoint_id=%s reason=%s",
                session_id,
                checkpoint_id,
                resolved.reason,
            )
            return resolved
        if resolved.from_commit == resolved.to_commit:
            return CheckpointDiff(range=resolved, diff="")
        diff = self._source_control.diff(
            self._project_path(session_id),
            resolved.from_commit,
            resolved.to_commit,
        )
        logger.info(
            "checkpoint.diff session_id=%s checkpoint_id=%s from=%s to=%s bytes=%s",
            session_id,
            checkpoint_id,
            resolved.from_commit[:12],
            resolved.to_commit[:12],
            len(diff),
        )
        return CheckpointDiff(range=resolved, diff=diff)
