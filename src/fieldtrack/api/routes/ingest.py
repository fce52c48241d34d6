"""Event ingest endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, status

from ...models.domain import EventKind
from ...schemas.ingest import IngestAcceptedModel
from ...services.runtime import TrackingRuntime
from ..dependencies import get_runtime

router = APIRouter(prefix="/events", tags=["ingest"])


def _accept(runtime: TrackingRuntime, payload: Dict[str, Any], kind: Optional[EventKind]) -> IngestAcceptedModel:
    event = runtime.ingest.submit(payload, kind)
    return IngestAcceptedModel(event_id=event.event_id, kind=event.kind, representative_id=event.representative_id)


@router.post("", response_model=IngestAcceptedModel, status_code=status.HTTP_202_ACCEPTED)
def ingest_event(
    payload: Dict[str, Any] = Body(..., description="Any event; the kind is inferred from its fields"),
    runtime: TrackingRuntime = Depends(get_runtime),
) -> IngestAcceptedModel:
    return _accept(runtime, payload, None)


@router.post("/location", response_model=IngestAcceptedModel, status_code=status.HTTP_202_ACCEPTED)
def ingest_location(
    payload: Dict[str, Any] = Body(...),
    runtime: TrackingRuntime = Depends(get_runtime),
) -> IngestAcceptedModel:
    return _accept(runtime, payload, EventKind.LOCATION)


@router.post("/attendance", response_model=IngestAcceptedModel, status_code=status.HTTP_202_ACCEPTED)
def ingest_attendance(
    payload: Dict[str, Any] = Body(...),
    runtime: TrackingRuntime = Depends(get_runtime),
) -> IngestAcceptedModel:
    return _accept(runtime, payload, EventKind.ATTENDANCE)


@router.post("/visit", response_model=IngestAcceptedModel, status_code=status.HTTP_202_ACCEPTED)
def ingest_visit(
    payload: Dict[str, Any] = Body(...),
    runtime: TrackingRuntime = Depends(get_runtime),
) -> IngestAcceptedModel:
    return _accept(runtime, payload, EventKind.VISIT)
