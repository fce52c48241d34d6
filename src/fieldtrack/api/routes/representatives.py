"""Representative status, movement and performance endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from fastapi import APIRouter, Depends, Query, status

from ...models.domain import ActivityType, ensure_utc
from ...schemas.performance import PerformanceWindowModel
from ...schemas.tracking import (
    MovementModel,
    MovementReportModel,
    RepresentativeIn,
    RepresentativeModel,
    StatusModel,
)
from ...services.reports import MovementFilters
from ...services.runtime import TrackingRuntime
from ..dependencies import get_runtime, resolve_period

router = APIRouter(prefix="/representatives", tags=["representatives"])


@router.post("", response_model=RepresentativeModel, status_code=status.HTTP_201_CREATED)
def register_representative(
    body: RepresentativeIn, runtime: TrackingRuntime = Depends(get_runtime)
) -> RepresentativeModel:
    representative = runtime.directory.register(body.id, name=body.name, contact=body.contact)
    return RepresentativeModel.model_validate(representative)


@router.get("/status", response_model=Dict[str, StatusModel], status_code=status.HTTP_200_OK)
def list_statuses(runtime: TrackingRuntime = Depends(get_runtime)) -> Dict[str, StatusModel]:
    return {
        representative_id: StatusModel.model_validate(snapshot)
        for representative_id, snapshot in runtime.queries.get_all_statuses().items()
    }


@router.get("/{representative_id}/status", response_model=StatusModel, status_code=status.HTTP_200_OK)
def get_status(representative_id: str, runtime: TrackingRuntime = Depends(get_runtime)) -> StatusModel:
    return StatusModel.model_validate(runtime.queries.get_status(representative_id))


@router.get("/{representative_id}/movements", response_model=List[MovementModel], status_code=status.HTTP_200_OK)
def list_movements(
    representative_id: str,
    start: datetime | None = Query(default=None, alias="from", description="Inclusive lower bound"),
    end: datetime | None = Query(default=None, alias="to", description="Inclusive upper bound"),
    activity_type: ActivityType | None = Query(default=None, description="Optional activity filter"),
    location: str | None = Query(default=None, description="Case-insensitive location name substring"),
    runtime: TrackingRuntime = Depends(get_runtime),
) -> List[MovementModel]:
    filters = MovementFilters(
        start=ensure_utc(start) if start else None,
        end=ensure_utc(end) if end else None,
        activity_type=activity_type,
        location=location,
    )
    return [MovementModel.model_validate(event) for event in runtime.queries.movements(representative_id, filters)]


@router.get(
    "/{representative_id}/movement-report", response_model=MovementReportModel, status_code=status.HTTP_200_OK
)
def get_movement_report(
    representative_id: str,
    period_days: int = Query(default=7, ge=1, le=365, description="Rolling window when no bounds are given"),
    start: datetime | None = Query(default=None, alias="from"),
    end: datetime | None = Query(default=None, alias="to"),
    runtime: TrackingRuntime = Depends(get_runtime),
) -> MovementReportModel:
    period_start, period_end = resolve_period(runtime, period_days, start, end)
    report = runtime.queries.movement_report(representative_id, period_start, period_end)
    return MovementReportModel.model_validate(report)


@router.get(
    "/{representative_id}/performance", response_model=PerformanceWindowModel, status_code=status.HTTP_200_OK
)
def get_performance(
    representative_id: str,
    period_days: int = Query(default=30, ge=1, le=365),
    start: datetime | None = Query(default=None, alias="from"),
    end: datetime | None = Query(default=None, alias="to"),
    runtime: TrackingRuntime = Depends(get_runtime),
) -> PerformanceWindowModel:
    period_start, period_end = resolve_period(runtime, period_days, start, end)
    window = runtime.queries.performance(representative_id, period_start, period_end)
    return PerformanceWindowModel.model_validate(window)
