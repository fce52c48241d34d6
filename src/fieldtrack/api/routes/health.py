"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...persistence.journal import JournalWriteError
from ...services.runtime import TrackingRuntime
from ..dependencies import get_runtime

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/journal", status_code=status.HTTP_200_OK)
def health_journal(runtime: TrackingRuntime = Depends(get_runtime)) -> dict:
    """Check the durable event journal and report in-memory store size."""
    summary = {
        "events_in_memory": runtime.store.count(),
        "representatives": len(runtime.store.representative_ids()),
        "sweeper_running": runtime.sweeper.running,
    }
    journal = runtime.journal
    if journal is None:
        return {
            "configured": False,
            "message": "Event journal not configured. Set FT_SUPABASE_URL and FT_SUPABASE_KEY environment variables.",
            **summary,
        }

    ping = getattr(journal, "ping", None)
    if ping is None:
        return {"configured": True, "connected": None, **summary}

    try:
        ping()
    except JournalWriteError as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Journal connection error: {exc}",
            **summary,
        }
    return {"configured": True, "connected": True, "message": "Journal connected.", **summary}
