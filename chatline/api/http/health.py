"""HTTP API layer: health and readiness endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from chatline.api.deps import get_container
from chatline.core.container import AppContainer

router = APIRouter(tags=["health"])


@router.get("/health")
def health(container: AppContainer = Depends(get_container)) -> dict:
    return {
        "status": "ok",
        "history": container.history.health(),
        "timeline": container.store.stats(),
        "env": container.settings.env,
    }
