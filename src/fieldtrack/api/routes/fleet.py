"""Fleet-wide aggregation endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query, status

from ...schemas.performance import FleetStatsModel
from ...schemas.tracking import LateVisitModel
from ...services.runtime import TrackingRuntime
from ..dependencies import get_runtime, resolve_period

router = APIRouter(prefix="/fleet", tags=["fleet"])


@router.get("/performance", response_model=FleetStatsModel, status_code=status.HTTP_200_OK)
def get_fleet_performance(
    period_days: int = Query(default=30, ge=1, le=365),
    start: datetime | None = Query(default=None, alias="from"),
    end: datetime | None = Query(default=None, alias="to"),
    timeout_seconds: float | None = Query(default=None, gt=0, le=300, description="Overrides the configured budget"),
    runtime: TrackingRuntime = Depends(get_runtime),
) -> FleetStatsModel:
    period_start, period_end = resolve_period(runtime, period_days, start, end)
    stats = runtime.queries.fleet_performance(period_start, period_end, timeout=timeout_seconds)
    return FleetStatsModel.model_validate(stats)


@router.get("/late-visits", response_model=List[LateVisitModel], status_code=status.HTTP_200_OK)
def list_late_visits(runtime: TrackingRuntime = Depends(get_runtime)) -> List[LateVisitModel]:
    return [LateVisitModel.model_validate(visit) for visit in runtime.queries.late_visits()]
