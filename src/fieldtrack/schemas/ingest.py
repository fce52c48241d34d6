"""Ingest payload schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.domain import ActivityType, AttendanceAction, EventKind, VisitAction, ensure_utc


class LocationEventIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    representative_id: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    accuracy_meters: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    activity_type: ActivityType = ActivityType.PING
    recorded_at: datetime
    location_name: Optional[str] = Field(default=None, max_length=255)


class AttendanceEventIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    representative_id: str = Field(..., min_length=1)
    action: AttendanceAction
    recorded_at: Optional[datetime] = Field(default=None, description="Defaults to the ingest time.")
    latitude: Optional[float] = Field(default=None, ge=-90, le=90, allow_inf_nan=False)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180, allow_inf_nan=False)

    @model_validator(mode="after")
    def _coordinates_come_in_pairs(self) -> "AttendanceEventIn":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        return self


class VisitEventIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    representative_id: str = Field(..., min_length=1)
    visit_id: str = Field(..., min_length=1)
    action: VisitAction
    recorded_at: Optional[datetime] = Field(default=None, description="Defaults to the ingest time.")
    customer_ref: Optional[str] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None

    @model_validator(mode="after")
    def _schedule_is_ordered(self) -> "VisitEventIn":
        if self.scheduled_start and self.scheduled_end and ensure_utc(self.scheduled_end) < ensure_utc(self.scheduled_start):
            raise ValueError("scheduled_end must not precede scheduled_start")
        return self


class IngestAcceptedModel(BaseModel):
    status: str = "accepted"
    event_id: str
    kind: EventKind
    representative_id: str
