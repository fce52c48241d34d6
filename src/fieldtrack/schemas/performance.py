"""Performance API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class PerformanceWindowModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    representative_id: str
    period_start: datetime
    period_end: datetime
    total_visits: int
    completed_visits: int
    total_deliveries: int
    completed_deliveries: int
    total_distance_km: float
    total_duration_hours: float
    average_speed_kmh: float
    visit_success_rate: float
    delivery_success_rate: float
    visit_rating: int
    delivery_rating: int
    average_visits_per_day: float
    average_deliveries_per_day: float


class FleetStatsModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    period_start: datetime
    period_end: datetime
    total_representatives: int
    average_visit_rating: float
    average_delivery_rating: float
    top_performer_id: Optional[str] = None
    top_performer_name: Optional[str] = None
    total_visits: int
    completed_visits: int
    total_deliveries: int
    completed_deliveries: int
    total_distance_km: float
    windows: List[PerformanceWindowModel]
