"""Movement history, movement statistics and per-day summaries."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence

from ...models.domain import (
    ActivityType,
    AttendanceRecord,
    DailySummary,
    LocationEvent,
    MovementStats,
    VisitRecord,
    VisitStatus,
)
from ...models.records import visit_interval
from ..geospatial import speed_kmh
from ..performance.service import count_deliveries, trajectory_totals


@dataclass(slots=True)
class MovementFilters:
    """Movement history filters; every filter that is set must match."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    activity_type: Optional[ActivityType] = None
    location: Optional[str] = None


def filter_movements(events: Iterable[LocationEvent], filters: MovementFilters) -> List[LocationEvent]:
    normalized_location = filters.location.strip().lower() if filters.location and filters.location.strip() else None

    results: List[LocationEvent] = []
    for event in events:
        if filters.start is not None and event.recorded_at < filters.start:
            continue
        if filters.end is not None and event.recorded_at > filters.end:
            continue
        if filters.activity_type is not None and event.activity_type != filters.activity_type:
            continue
        if normalized_location and normalized_location not in (event.location_name or "").lower():
            continue
        results.append(event)
    return results


def movement_stats(events: Sequence[LocationEvent], max_gap_minutes: float) -> MovementStats:
    if not events:
        return MovementStats()

    distance_km, minutes = trajectory_totals(events, max_gap_minutes)
    activity_counts = Counter(event.activity_type for event in events)
    return MovementStats(
        total_movements=len(events),
        total_distance_km=distance_km,
        total_duration_hours=minutes / 60.0,
        unique_locations=len({(event.latitude, event.longitude) for event in events}),
        most_common_activity=activity_counts.most_common(1)[0][0],
        average_speed_kmh=speed_kmh(distance_km, minutes),
    )


def daily_summaries(
    locations: Sequence[LocationEvent],
    visits: Iterable[VisitRecord],
    shifts: Iterable[AttendanceRecord],
    *,
    tz: tzinfo,
    max_gap_minutes: float,
) -> List[DailySummary]:
    """Break a period down by local calendar day."""

    locations_by_day: Dict[date, List[LocationEvent]] = defaultdict(list)
    for event in locations:
        locations_by_day[event.recorded_at.astimezone(tz).date()].append(event)

    summaries: Dict[date, DailySummary] = {}

    def summary_for(day: date) -> DailySummary:
        if day not in summaries:
            summaries[day] = DailySummary(date=day)
        return summaries[day]

    for day, events in locations_by_day.items():
        summary = summary_for(day)
        distance_km, minutes = trajectory_totals(events, max_gap_minutes)
        summary.total_distance_km = distance_km
        summary.total_duration_hours = minutes / 60.0
        summary.total_deliveries, summary.completed_deliveries = count_deliveries(events)

    for visit in visits:
        start, _ = visit_interval(visit)
        summary = summary_for(start.astimezone(tz).date())
        summary.total_visits += 1
        if visit.status == VisitStatus.COMPLETED:
            summary.completed_visits += 1

    for shift in shifts:
        summary = summary_for(shift.check_in_time.astimezone(tz).date())
        if summary.check_in_time is None or shift.check_in_time < summary.check_in_time:
            summary.check_in_time = shift.check_in_time
        if shift.check_out_time is not None and (
            summary.check_out_time is None or shift.check_out_time > summary.check_out_time
        ):
            summary.check_out_time = shift.check_out_time
        summary.break_duration_minutes += shift.break_minutes

    return [summaries[day] for day in sorted(summaries)]
