"""Timeline errors raised for caller mistakes; source-shape problems are logged instead."""

from __future__ import annotations


class TimelineError(RuntimeError):
    """Base class for timeline engine errors."""


class CheckpointNotFoundError(TimelineError):
    """Raised when a checkpoint id is not part of the session timeline."""

    def __init__(self, session_id: str, checkpoint_id: str) -> None:
        super().__init__(f"checkpoint '{checkpoint_id}' not found in session '{session_id}'")
        self.session_id = session_id
        self.checkpoint_id = checkpoint_id


class CheckpointAlreadyCommittedError(TimelineError):
    """Raised when a checkpoint already carries a different commit hash."""


class WorkspaceNotConfiguredError(TimelineError):
    """Raised when a session has no project path to run source control against."""


class SourceControlError(TimelineError):
    """Raised by Source Control implementations when a request fails."""
