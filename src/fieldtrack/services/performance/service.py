"""Performance aggregation over caller-specified periods."""

from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime
from itertools import pairwise
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ...config import Settings
from ...errors import ComputationCancelled, ComputationTimeout
from ...models.domain import (
    ActivityType,
    FleetStats,
    LocationEvent,
    PerformanceWindow,
    VisitRecord,
    VisitStatus,
    utc_now,
)
from ...models.records import project_visits, visit_interval
from ...persistence.event_store import EventStore
from ...persistence.representatives import RepresentativeDirectory
from ..geospatial import elapsed_minutes, haversine_distance_km, speed_kmh

logger = logging.getLogger(__name__)

# How often a fleet computation re-checks its deadline and cancel flag.
_POLL_SECONDS = 0.05


class RatingBands:
    """Map a success rate (0-100) to a 1-5 rating using descending floors."""

    def __init__(self, thresholds: Sequence[float]) -> None:
        self.thresholds = tuple(thresholds)

    def rate(self, success_rate: float) -> int:
        for rating, floor in zip((5, 4, 3, 2), self.thresholds):
            if success_rate >= floor:
                return rating
        return 1


def success_rate(completed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(min(100.0, max(0.0, completed / total * 100)), 1)


def period_days(period_start: datetime, period_end: datetime) -> int:
    return max(1, math.ceil((period_end - period_start).total_seconds() / 86400))


def trajectory_totals(events: Sequence[LocationEvent], max_gap_minutes: float) -> Tuple[float, float]:
    """Distance (km) and moving time (minutes) across consecutive fixes.

    Segments longer than ``max_gap_minutes`` are skipped entirely: an idle or
    teleported jump says nothing about distance actually travelled.
    """

    distance_km = 0.0
    minutes = 0.0
    for previous, current in pairwise(events):
        gap = elapsed_minutes(previous.recorded_at, current.recorded_at)
        if gap > max_gap_minutes:
            continue
        distance_km += haversine_distance_km(
            previous.latitude, previous.longitude, current.latitude, current.longitude
        )
        minutes += gap
    return distance_km, minutes


def count_deliveries(events: Iterable[LocationEvent]) -> Tuple[int, int]:
    """Return (total, completed) deliveries.

    Each ``delivery_start`` is one delivery; it completes when the next
    delivery event is a ``delivery_complete``.
    """

    total = 0
    completed = 0
    open_delivery = False
    for event in events:
        if event.activity_type == ActivityType.DELIVERY_START:
            total += 1
            open_delivery = True
        elif event.activity_type == ActivityType.DELIVERY_COMPLETE and open_delivery:
            completed += 1
            open_delivery = False
    return total, completed


def visits_in_period(
    visits: Iterable[VisitRecord], period_start: datetime, period_end: datetime
) -> List[VisitRecord]:
    selected = []
    for visit in visits:
        start, end = visit_interval(visit)
        if start <= period_end and end >= period_start:
            selected.append(visit)
    return selected


class PerformanceAggregator:
    def __init__(
        self,
        store: EventStore,
        directory: RepresentativeDirectory,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = utc_now,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.store = store
        self.directory = directory
        self.clock = clock
        self.max_gap_minutes = settings.max_gap_minutes
        self.default_timeout = settings.aggregation_timeout_seconds
        self.bands = RatingBands(settings.rating_thresholds)
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.aggregation_workers, thread_name_prefix="aggregation"
        )
        self._owns_executor = executor is None

    def compute_window(
        self, representative_id: str, period_start: datetime, period_end: datetime
    ) -> PerformanceWindow:
        locations = self.store.locations(representative_id, period_start, period_end)
        visits = visits_in_period(
            project_visits(self.store.visits(representative_id, end=period_end)).values(),
            period_start,
            period_end,
        )

        total_visits = len(visits)
        completed_visits = sum(1 for visit in visits if visit.status == VisitStatus.COMPLETED)
        total_deliveries, completed_deliveries = count_deliveries(locations)
        distance_km, minutes = trajectory_totals(locations, self.max_gap_minutes)

        visit_rate = success_rate(completed_visits, total_visits)
        delivery_rate = success_rate(completed_deliveries, total_deliveries)
        days = period_days(period_start, period_end)

        return PerformanceWindow(
            representative_id=representative_id,
            period_start=period_start,
            period_end=period_end,
            total_visits=total_visits,
            completed_visits=completed_visits,
            total_deliveries=total_deliveries,
            completed_deliveries=completed_deliveries,
            total_distance_km=distance_km,
            total_duration_hours=minutes / 60.0,
            average_speed_kmh=speed_kmh(distance_km, minutes),
            visit_success_rate=visit_rate,
            delivery_success_rate=delivery_rate,
            visit_rating=self.bands.rate(visit_rate),
            delivery_rating=self.bands.rate(delivery_rate),
            average_visits_per_day=round(total_visits / days, 1),
            average_deliveries_per_day=round(total_deliveries / days, 1),
        )

    def compute_fleet_stats(
        self,
        period_start: datetime,
        period_end: datetime,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> FleetStats:
        """Aggregate every known representative's window.

        Raises ``ComputationTimeout`` when ``timeout`` seconds pass first, or
        ``ComputationCancelled`` when ``cancel_event`` is set. Either way the
        partial windows are dropped.
        """

        budget = self.default_timeout if timeout is None else timeout
        deadline = time.monotonic() + budget
        representative_ids = sorted(set(self.directory.ids()) | set(self.store.representative_ids()))

        futures: Dict[Future, str] = {
            self._executor.submit(self.compute_window, representative_id, period_start, period_end): representative_id
            for representative_id in representative_ids
        }
        pending = set(futures)
        windows: List[PerformanceWindow] = []
        try:
            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    raise ComputationCancelled(
                        "Fleet aggregation was cancelled",
                        details={"completed": len(windows), "total": len(futures)},
                    )
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ComputationTimeout(
                        f"Fleet aggregation exceeded {budget:.1f}s",
                        details={"completed": len(windows), "total": len(futures)},
                    )
                done, pending = wait(pending, timeout=min(_POLL_SECONDS, remaining), return_when=FIRST_COMPLETED)
                for future in done:
                    windows.append(future.result())
        finally:
            for future in pending:
                future.cancel()

        return self._summarise(period_start, period_end, windows)

    def _summarise(
        self, period_start: datetime, period_end: datetime, windows: List[PerformanceWindow]
    ) -> FleetStats:
        windows.sort(key=lambda window: window.representative_id)
        stats = FleetStats(period_start=period_start, period_end=period_end, windows=windows)
        if not windows:
            return stats

        count = len(windows)
        stats.total_representatives = count
        stats.average_visit_rating = round(sum(w.visit_rating for w in windows) / count, 1)
        stats.average_delivery_rating = round(sum(w.delivery_rating for w in windows) / count, 1)
        stats.total_visits = sum(w.total_visits for w in windows)
        stats.completed_visits = sum(w.completed_visits for w in windows)
        stats.total_deliveries = sum(w.total_deliveries for w in windows)
        stats.completed_deliveries = sum(w.completed_deliveries for w in windows)
        stats.total_distance_km = sum(w.total_distance_km for w in windows)

        top = min(
            windows,
            key=lambda w: (-w.combined_rating, -w.completed_activity, w.representative_id),
        )
        stats.top_performer_id = top.representative_id
        stats.top_performer_name = self.directory.display_name(top.representative_id)
        return stats

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
