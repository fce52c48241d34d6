"""Request-scoped accessors for the tracking runtime."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Tuple

from fastapi import HTTPException, Request, status

from ..models.domain import ensure_utc
from ..services.runtime import TrackingRuntime


def get_runtime(request: Request) -> TrackingRuntime:
    return request.app.state.runtime


def resolve_period(
    runtime: TrackingRuntime,
    period_days: int,
    start: Optional[datetime],
    end: Optional[datetime],
) -> Tuple[datetime, datetime]:
    """Explicit ``from``/``to`` bounds win; a missing bound falls back to the rolling window."""

    period_end = ensure_utc(end) if end else runtime.clock()
    period_start = ensure_utc(start) if start else period_end - timedelta(days=period_days)
    if period_start > period_end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="'from' must not be later than 'to'",
        )
    return period_start, period_end
