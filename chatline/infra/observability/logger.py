"""Observability layer: centralized logger setup for API and timeline ingestion tracing."""

from __future__ import annotations

import logging


def setup_logging(level: str = "INFO") -> None:
    """Configure root logger once for structured single-line console output."""
    normalized = level.upper()
    logging.basicConfig(
        level=normalized,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        force=True,
    )
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.setLevel(normalized)
        logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    """Return a module-level logger instance."""
    return logging.getLogger(name)


def short_text(value: object, *, limit: int = 80) -> str:
    """Compact any value into one bounded log-friendly line."""
    text = value if isinstance(value, str) else repr(value)
    compact = " ".join(text.split())
    if len(compact) <= limit:
        return compact
    return f"{compact[: max(1, limit - 3)].rstrip()}..."
