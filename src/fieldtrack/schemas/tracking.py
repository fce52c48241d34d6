"""Status, movement and report API schemas."""

from __future__ import annotations

from datetime import date as CalendarDate, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import ActivityType, RepresentativeStatus, VisitStatus


class RepresentativeIn(BaseModel):
    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    contact: Optional[str] = None


class RepresentativeModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    contact: Optional[str] = None


class StatusModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    representative_id: str
    status: RepresentativeStatus
    as_of: datetime
    source_event_id: Optional[str] = None


class MovementModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: str
    representative_id: str
    latitude: float
    longitude: float
    accuracy_meters: float
    activity_type: ActivityType
    recorded_at: datetime
    location_name: Optional[str] = None


class VisitModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    representative_id: str
    customer_ref: Optional[str] = None
    status: VisitStatus
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None


class MovementStatsModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_movements: int
    total_distance_km: float
    total_duration_hours: float
    unique_locations: int
    most_common_activity: Optional[ActivityType] = None
    average_speed_kmh: float


class DailySummaryModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: CalendarDate
    total_distance_km: float
    total_duration_hours: float
    total_visits: int
    completed_visits: int
    total_deliveries: int
    completed_deliveries: int
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    break_duration_minutes: float


class MovementReportModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    representative_id: str
    representative_name: str
    period_start: datetime
    period_end: datetime
    movements: List[MovementModel]
    visits: List[VisitModel]
    stats: MovementStatsModel
    daily_summaries: List[DailySummaryModel]


class LateVisitModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    visit_id: str
    representative_id: str
    customer_ref: Optional[str] = None
    scheduled_start: datetime
    delay_minutes: int
    escalation_level: str
