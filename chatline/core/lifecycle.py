"""Lifecycle hooks for startup diagnostics."""

from __future__ import annotations

from chatline.core.container import AppContainer
from chatline.infra.observability.logger import get_logger

logger = get_logger(__name__)


def on_startup(container: AppContainer) -> None:
    logger.info("History store loaded: %s", container.history.health())
    logger.info("Session workspaces configured: %s", len(container.workspaces))


def on_shutdown(container: AppContainer) -> None:
    logger.info("Chatline shutdown complete. store=%s", container.store.stats())
