"""Test fixtures shared by unit/integration tests."""

from __future__ import annotations

import pytest

from chatline.timeline.store import CanonicalStore


@pytest.fixture
def store() -> CanonicalStore:
    """Fresh isolated store per test; the engine never shares module-level state."""
    return CanonicalStore()
