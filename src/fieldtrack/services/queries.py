"""Read-only query facade over live status, movements and performance."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from ..config import Settings
from ..errors import NotFound
from ..models.domain import (
    FleetStats,
    LateVisit,
    LocationEvent,
    MovementReport,
    PerformanceWindow,
    StatusSnapshot,
    utc_now,
)
from ..models.records import project_attendance, project_visits
from ..persistence.event_store import EventStore
from ..persistence.representatives import RepresentativeDirectory
from .performance.service import PerformanceAggregator, visits_in_period
from .reports.movements import MovementFilters, daily_summaries, filter_movements, movement_stats
from .status.late_visits import find_late_visits
from .status.resolver import StatusListener, StatusResolver


class TrackingQueries:
    """Single-entity queries raise ``NotFound`` for unknown ids; bulk queries never do."""

    def __init__(
        self,
        store: EventStore,
        directory: RepresentativeDirectory,
        resolver: StatusResolver,
        aggregator: PerformanceAggregator,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.directory = directory
        self.resolver = resolver
        self.aggregator = aggregator
        self.clock = clock
        self.tz = ZoneInfo(settings.timezone)
        self.max_gap_minutes = settings.max_gap_minutes
        self.late_grace = timedelta(minutes=settings.late_visit_grace_minutes)
        self.late_escalation = timedelta(minutes=settings.late_visit_escalation_minutes)

    def _known_ids(self) -> List[str]:
        return sorted(set(self.directory.ids()) | set(self.store.representative_ids()))

    def _require(self, representative_id: str) -> None:
        if not self.directory.is_known(representative_id) and not self.store.has_events(representative_id):
            raise NotFound("Representative", representative_id)

    def get_status(self, representative_id: str, at: Optional[datetime] = None) -> StatusSnapshot:
        self._require(representative_id)
        return self.resolver.resolve(representative_id, at)

    def get_all_statuses(self, at: Optional[datetime] = None) -> Dict[str, StatusSnapshot]:
        now = at or self.clock()
        return {representative_id: self.resolver.resolve(representative_id, now) for representative_id in self._known_ids()}

    def movements(self, representative_id: str, filters: Optional[MovementFilters] = None) -> List[LocationEvent]:
        self._require(representative_id)
        filters = filters or MovementFilters()
        events = self.store.locations(representative_id, filters.start, filters.end)
        return filter_movements(events, filters)

    def movement_report(self, representative_id: str, period_start: datetime, period_end: datetime) -> MovementReport:
        self._require(representative_id)
        locations = self.store.locations(representative_id, period_start, period_end)
        visits = visits_in_period(
            project_visits(self.store.visits(representative_id, end=period_end)).values(),
            period_start,
            period_end,
        )
        shifts = [
            shift
            for shift in project_attendance(self.store.attendance(representative_id, end=period_end))
            if shift.check_in_time >= period_start
        ]
        return MovementReport(
            representative_id=representative_id,
            representative_name=self.directory.display_name(representative_id),
            period_start=period_start,
            period_end=period_end,
            movements=locations,
            visits=visits,
            stats=movement_stats(locations, self.max_gap_minutes),
            daily_summaries=daily_summaries(
                locations, visits, shifts, tz=self.tz, max_gap_minutes=self.max_gap_minutes
            ),
        )

    def performance(self, representative_id: str, period_start: datetime, period_end: datetime) -> PerformanceWindow:
        self._require(representative_id)
        return self.aggregator.compute_window(representative_id, period_start, period_end)

    def fleet_performance(
        self,
        period_start: datetime,
        period_end: datetime,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> FleetStats:
        return self.aggregator.compute_fleet_stats(
            period_start, period_end, timeout=timeout, cancel_event=cancel_event
        )

    def late_visits(self, now: Optional[datetime] = None) -> List[LateVisit]:
        moment = now or self.clock()
        late: List[LateVisit] = []
        for representative_id in self._known_ids():
            visits = project_visits(self.store.visits(representative_id, end=moment)).values()
            late.extend(find_late_visits(visits, moment, grace=self.late_grace, escalation_after=self.late_escalation))
        return sorted(late, key=lambda item: (-item.delay_minutes, item.visit_id))

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        return self.resolver.subscribe(listener)
