from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness probe, exempt from rate limiting.

    Also reports whether each background sweeper thread is alive; sweepers
    only run while the app lifespan is active.
    """

    sweepers = getattr(request.app.state, "sweepers", [])
    return {
        "status": "ok",
        "sweepers": {sweeper.name: sweeper.running for sweeper in sweepers},
    }
