"""Status resolution for representatives.

Status is never stored as mutable state. Every resolution folds the
representative's attendance and visit events up to ``now`` and applies a fixed
precedence:

1. a non-stale ``in_progress`` visit        -> ``on_visit``
2. a non-stale open attendance record today -> ``active``
3. anything else                            -> ``offline``

Open records older than the staleness limit are ignored rather than closed;
only an explicit event closes them.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from ...config import Settings
from ...models.domain import (
    AttendanceEvent,
    RepresentativeStatus,
    StatusSnapshot,
    TrackingEvent,
    VisitEvent,
    VisitStatus,
    utc_now,
)
from ...models.records import project_attendance, project_visits
from ...persistence.event_store import EventStore

logger = logging.getLogger(__name__)

StatusListener = Callable[[StatusSnapshot, Optional[StatusSnapshot]], None]


def resolve_status(
    representative_id: str,
    attendance_events: Sequence[AttendanceEvent],
    visit_events: Sequence[VisitEvent],
    now: datetime,
    *,
    stale_after: timedelta,
    tz: tzinfo,
    latest_event: Optional[TrackingEvent] = None,
) -> StatusSnapshot:
    """Resolve one representative's status from events recorded at or before ``now``."""

    visits = project_visits(event for event in visit_events if event.recorded_at <= now)
    current_visit = None
    for visit in visits.values():
        if visit.status != VisitStatus.IN_PROGRESS:
            continue
        started = visit.actual_start or visit.first_seen_at
        if now - started > stale_after:
            continue
        if current_visit is None or started > (current_visit.actual_start or current_visit.first_seen_at):
            current_visit = visit
    if current_visit is not None:
        return StatusSnapshot(
            representative_id=representative_id,
            status=RepresentativeStatus.ON_VISIT,
            as_of=now,
            source_event_id=current_visit.start_event_id or current_visit.event_ids[0],
        )

    today = now.astimezone(tz).date()
    shift = None
    for record in project_attendance(event for event in attendance_events if event.recorded_at <= now):
        if not record.is_open:
            continue
        if record.check_in_time.astimezone(tz).date() != today:
            continue
        if now - record.check_in_time > stale_after:
            continue
        if shift is None or record.check_in_time > shift.check_in_time:
            shift = record
    if shift is not None:
        return StatusSnapshot(
            representative_id=representative_id,
            status=RepresentativeStatus.ACTIVE,
            as_of=now,
            source_event_id=shift.check_in_event_id,
        )

    return StatusSnapshot(
        representative_id=representative_id,
        status=RepresentativeStatus.OFFLINE,
        as_of=now,
        source_event_id=latest_event.event_id if latest_event else None,
    )


@dataclass
class _Flight:
    running: bool = False
    pending: bool = False


class StatusResolver:
    """Resolves statuses on demand and keeps a live, push-capable view.

    ``trigger`` schedules a background recomputation. Recomputations are
    single-flight per representative: a trigger that lands while one is running
    only marks it dirty, and the running worker does one more pass against the
    newest data before it exits.
    """

    def __init__(
        self,
        store: EventStore,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = utc_now,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.store = store
        self.stale_after = timedelta(hours=settings.stale_after_hours)
        self.tz = ZoneInfo(settings.timezone)
        self.clock = clock
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.resolver_workers, thread_name_prefix="status-resolver"
        )
        self._owns_executor = executor is None
        self._flights: Dict[str, _Flight] = {}
        self._flights_lock = threading.Condition()
        self._snapshots: Dict[str, StatusSnapshot] = {}
        self._snapshots_lock = threading.Lock()
        self._listeners: List[StatusListener] = []
        self._listeners_lock = threading.Lock()
        self.recompute_count = 0

    def resolve(self, representative_id: str, at: Optional[datetime] = None) -> StatusSnapshot:
        now = at or self.clock()
        return resolve_status(
            representative_id,
            self.store.attendance(representative_id, end=now),
            self.store.visits(representative_id, end=now),
            now,
            stale_after=self.stale_after,
            tz=self.tz,
            latest_event=self.store.latest(representative_id, now=now),
        )

    def trigger(self, representative_id: str) -> Optional[Future]:
        """Schedule a recomputation; returns None when it folded into a running one."""

        with self._flights_lock:
            flight = self._flights.setdefault(representative_id, _Flight())
            if flight.running:
                flight.pending = True
                return None
            flight.running = True
        try:
            return self._executor.submit(self._drain, representative_id)
        except RuntimeError:
            # Executor already shut down.
            with self._flights_lock:
                flight.running = False
                flight.pending = False
                self._flights_lock.notify_all()
            raise

    def _drain(self, representative_id: str) -> StatusSnapshot:
        flight = self._flights[representative_id]
        try:
            while True:
                snapshot = self.resolve(representative_id)
                self._publish(snapshot)
                with self._flights_lock:
                    self.recompute_count += 1
                    if flight.pending:
                        flight.pending = False
                        continue
                    flight.running = False
                    self._flights_lock.notify_all()
                    return snapshot
        except Exception:
            logger.exception(f"Status recomputation failed for {representative_id}")
            with self._flights_lock:
                flight.running = False
                flight.pending = False
                self._flights_lock.notify_all()
            raise

    def _publish(self, snapshot: StatusSnapshot) -> None:
        with self._snapshots_lock:
            previous = self._snapshots.get(snapshot.representative_id)
            self._snapshots[snapshot.representative_id] = snapshot
        if previous is not None and previous.status == snapshot.status:
            return
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot, previous)
            except Exception:
                logger.exception(f"Status listener {listener!r} failed")

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a callback for status changes; returns an unsubscribe function."""

        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def last_snapshot(self, representative_id: str) -> Optional[StatusSnapshot]:
        with self._snapshots_lock:
            return self._snapshots.get(representative_id)

    def sweep(self, representative_ids: Sequence[str]) -> int:
        """Trigger recomputation for every given representative (staleness sweep)."""

        scheduled = 0
        for representative_id in representative_ids:
            if self.trigger(representative_id) is not None:
                scheduled += 1
        logger.debug(f"Staleness sweep scheduled {scheduled}/{len(representative_ids)} recomputations")
        return scheduled

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until no recomputation is running; False if ``timeout`` expired."""

        with self._flights_lock:
            return self._flights_lock.wait_for(
                lambda: not any(flight.running for flight in self._flights.values()),
                timeout=timeout,
            )

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True, cancel_futures=True)
