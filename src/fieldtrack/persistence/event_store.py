"""Append-only, per-representative event log with time-range indices."""

from __future__ import annotations

import heapq
import logging
import threading
import time
from bisect import bisect_left, bisect_right
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

from ..errors import IngestUnavailable
from ..models.domain import (
    ActivityType,
    AttendanceEvent,
    EventKind,
    LocationEvent,
    TrackingEvent,
    VisitEvent,
    VisitStatus,
    utc_now,
)
from ..models.records import project_attendance, project_visits
from .journal import EventJournal, JournalWriteError

logger = logging.getLogger(__name__)

EventSelector = Union[EventKind, ActivityType]


class _KindIndex:
    """Events of one kind kept sorted by ``recorded_at``; ties keep arrival order."""

    __slots__ = ("times", "events")

    def __init__(self) -> None:
        self.times: List[datetime] = []
        self.events: List[TrackingEvent] = []

    def insert(self, event: TrackingEvent) -> None:
        recorded_at = event.recorded_at
        if not self.times or recorded_at >= self.times[-1]:
            self.times.append(recorded_at)
            self.events.append(event)
            return
        position = bisect_right(self.times, recorded_at)
        self.times.insert(position, recorded_at)
        self.events.insert(position, event)

    def between(self, start: Optional[datetime], end: Optional[datetime]) -> List[TrackingEvent]:
        lo = bisect_left(self.times, start) if start is not None else 0
        hi = bisect_right(self.times, end) if end is not None else len(self.times)
        if hi <= lo:
            return []
        return self.events[lo:hi]

    def upto(self, moment: datetime) -> int:
        return bisect_right(self.times, moment)

    def discard(self, event_ids: Set[str]) -> int:
        keep = [index for index, event in enumerate(self.events) if event.event_id not in event_ids]
        removed = len(self.events) - len(keep)
        if removed:
            self.times = [self.times[index] for index in keep]
            self.events = [self.events[index] for index in keep]
        return removed

    def __len__(self) -> int:
        return len(self.events)


class _RepresentativeLog:
    __slots__ = ("lock", "indices")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.indices: Dict[EventKind, _KindIndex] = {kind: _KindIndex() for kind in EventKind}


class EventStore:
    """In-memory event log, optionally mirrored to a durable journal.

    Appends for one representative are serialised by that representative's lock;
    appends for different representatives never contend. The journal write and
    its retries happen before the lock is taken, so a journal outage delays the
    appending caller but not readers. Reads copy the matching slice under the
    lock and return plain lists, so callers work on a snapshot.
    """

    def __init__(
        self,
        journal: Optional[EventJournal] = None,
        *,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.journal = journal
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._logs: Dict[str, _RepresentativeLog] = {}
        self._registry_lock = threading.Lock()

    def _log_for(self, representative_id: str, *, create: bool = False) -> Optional[_RepresentativeLog]:
        log = self._logs.get(representative_id)
        if log is not None or not create:
            return log
        with self._registry_lock:
            return self._logs.setdefault(representative_id, _RepresentativeLog())

    def append(self, event: TrackingEvent) -> None:
        if self.journal is not None:
            self._write_through(event)
        log = self._log_for(event.representative_id, create=True)
        with log.lock:
            log.indices[event.kind].insert(event)

    def load(self, events: Iterable[TrackingEvent]) -> int:
        """Insert events that are already durable (journal replay), without re-journaling."""

        loaded = 0
        for event in events:
            log = self._log_for(event.representative_id, create=True)
            with log.lock:
                log.indices[event.kind].insert(event)
            loaded += 1
        return loaded

    def _write_through(self, event: TrackingEvent) -> None:
        attempt = 0
        while True:
            try:
                self.journal.write(event)
                return
            except JournalWriteError as exc:
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(
                        f"Journal write for {event.event_id} failed after {self.max_retries} retries: {exc}"
                    )
                    raise IngestUnavailable(
                        "Event store is temporarily unavailable; resubmit the event later",
                        details={"event_id": event.event_id, "attempts": attempt},
                    ) from exc
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.debug(
                    f"Journal write failed, retrying in {wait_time:.2f}s (attempt {attempt}/{self.max_retries}): {exc}"
                )
                self._sleep(wait_time)

    def range(
        self,
        representative_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        kinds: Optional[Sequence[EventKind]] = None,
    ) -> List[TrackingEvent]:
        """Events with ``start <= recorded_at <= end``, ascending by ``recorded_at``."""

        log = self._log_for(representative_id)
        if log is None:
            return []
        selected = tuple(kinds) if kinds else tuple(EventKind)
        with log.lock:
            slices = [log.indices[kind].between(start, end) for kind in selected]
        slices = [chunk for chunk in slices if chunk]
        if len(slices) == 1:
            return list(slices[0])
        return list(heapq.merge(*slices, key=lambda event: event.recorded_at))

    def locations(
        self, representative_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[LocationEvent]:
        return self.range(representative_id, start, end, kinds=(EventKind.LOCATION,))  # type: ignore[return-value]

    def attendance(self, representative_id: str, end: Optional[datetime] = None) -> List[AttendanceEvent]:
        return self.range(representative_id, None, end, kinds=(EventKind.ATTENDANCE,))  # type: ignore[return-value]

    def visits(self, representative_id: str, end: Optional[datetime] = None) -> List[VisitEvent]:
        return self.range(representative_id, None, end, kinds=(EventKind.VISIT,))  # type: ignore[return-value]

    def latest(
        self,
        representative_id: str,
        kinds: Sequence[EventSelector] = tuple(EventKind),
        now: Optional[datetime] = None,
    ) -> Optional[TrackingEvent]:
        """Most recent event at or before ``now`` matching any of ``kinds``.

        ``kinds`` may mix event kinds with location activity types.
        """

        log = self._log_for(representative_id)
        if log is None:
            return None
        moment = now or utc_now()
        event_kinds = {kind for kind in kinds if isinstance(kind, EventKind)}
        activities = {kind for kind in kinds if isinstance(kind, ActivityType)}
        if activities:
            event_kinds_to_scan = event_kinds | {EventKind.LOCATION}
        else:
            event_kinds_to_scan = event_kinds

        best: Optional[TrackingEvent] = None
        with log.lock:
            for kind in event_kinds_to_scan:
                index = log.indices[kind]
                position = index.upto(moment)
                for event in reversed(index.events[:position]):
                    if kind == EventKind.LOCATION and kind not in event_kinds:
                        if event.activity_type not in activities:
                            continue
                    if best is None or event.recorded_at > best.recorded_at:
                        best = event
                    break
        return best

    def representative_ids(self) -> List[str]:
        with self._registry_lock:
            return sorted(self._logs)

    def has_events(self, representative_id: str) -> bool:
        log = self._log_for(representative_id)
        if log is None:
            return False
        with log.lock:
            return any(len(index) for index in log.indices.values())

    def count(self, representative_id: Optional[str] = None) -> int:
        ids = [representative_id] if representative_id else self.representative_ids()
        total = 0
        for rep_id in ids:
            log = self._log_for(rep_id)
            if log is None:
                continue
            with log.lock:
                total += sum(len(index) for index in log.indices.values())
        return total

    def evict_expired(self, cutoff: datetime) -> int:
        """Drop events older than ``cutoff`` that no open record still needs.

        Attendance and visit records are evicted as a unit, and only once every
        one of their events is older than the cutoff and the record is closed.
        """

        evicted = 0
        for representative_id in self.representative_ids():
            log = self._log_for(representative_id)
            if log is None:
                continue
            with log.lock:
                expired: Set[str] = set()
                for index in log.indices.values():
                    position = bisect_left(index.times, cutoff)
                    expired.update(event.event_id for event in index.events[:position])
                if not expired:
                    continue
                expired -= self._protected_ids(log, cutoff)
                if not expired:
                    continue
                for index in log.indices.values():
                    evicted += index.discard(expired)
        if evicted:
            logger.info(f"Evicted {evicted} events recorded before {cutoff.isoformat()}")
        return evicted

    @staticmethod
    def _protected_ids(log: _RepresentativeLog, cutoff: datetime) -> Set[str]:
        protected: Set[str] = set()
        attendance_events = log.indices[EventKind.ATTENDANCE].events
        visit_events = log.indices[EventKind.VISIT].events
        recorded = {event.event_id: event.recorded_at for event in attendance_events}
        recorded.update((event.event_id, event.recorded_at) for event in visit_events)

        for record in project_attendance(attendance_events):
            if record.is_open or max(recorded[event_id] for event_id in record.event_ids) >= cutoff:
                protected.update(record.event_ids)
        for visit in project_visits(visit_events).values():
            if visit.status == VisitStatus.IN_PROGRESS or max(recorded[e] for e in visit.event_ids) >= cutoff:
                protected.update(visit.event_ids)
        return protected
