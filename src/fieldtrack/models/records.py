"""Fold attendance and visit events into their record projections."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from .domain import (
    AttendanceAction,
    AttendanceEvent,
    AttendanceRecord,
    AttendanceStatus,
    VisitAction,
    VisitEvent,
    VisitRecord,
    VisitStatus,
)

logger = logging.getLogger(__name__)

TERMINAL_VISIT_STATUSES = frozenset({VisitStatus.COMPLETED, VisitStatus.CANCELLED, VisitStatus.NO_SHOW})

_VISIT_TRANSITIONS: Dict[VisitStatus, Dict[VisitAction, VisitStatus]] = {
    VisitStatus.SCHEDULED: {
        VisitAction.START: VisitStatus.IN_PROGRESS,
        VisitAction.COMPLETE: VisitStatus.COMPLETED,
        VisitAction.CANCEL: VisitStatus.CANCELLED,
        VisitAction.NO_SHOW: VisitStatus.NO_SHOW,
    },
    VisitStatus.IN_PROGRESS: {
        VisitAction.COMPLETE: VisitStatus.COMPLETED,
        VisitAction.CANCEL: VisitStatus.CANCELLED,
    },
}

_INITIAL_VISIT_STATUS: Dict[VisitAction, VisitStatus] = {
    VisitAction.SCHEDULE: VisitStatus.SCHEDULED,
    VisitAction.START: VisitStatus.IN_PROGRESS,
    VisitAction.COMPLETE: VisitStatus.COMPLETED,
    VisitAction.CANCEL: VisitStatus.CANCELLED,
    VisitAction.NO_SHOW: VisitStatus.NO_SHOW,
}


def project_attendance(events: Iterable[AttendanceEvent]) -> List[AttendanceRecord]:
    """Build attendance records from events already sorted by ``recorded_at``.

    Only one record can be open at a time: a second check-in while open is a
    duplicate and a check-out without an open record is an orphan. Both are skipped.
    """

    records: List[AttendanceRecord] = []
    current: Optional[AttendanceRecord] = None
    break_started: Optional[datetime] = None

    for event in events:
        if event.action == AttendanceAction.CHECK_IN:
            if current is not None and current.is_open:
                logger.debug(f"Ignoring duplicate check-in {event.event_id} for {event.representative_id}")
                continue
            current = AttendanceRecord(
                representative_id=event.representative_id,
                check_in_time=event.recorded_at,
                check_in_event_id=event.event_id,
                event_ids=[event.event_id],
            )
            records.append(current)
            break_started = None
            continue

        if current is None or not current.is_open:
            logger.debug(f"Ignoring {event.action.value} without an open attendance record ({event.event_id})")
            continue

        if event.action == AttendanceAction.BREAK_START:
            if current.status == AttendanceStatus.CHECKED_IN:
                current.status = AttendanceStatus.BREAK
                break_started = event.recorded_at
                current.event_ids.append(event.event_id)
        elif event.action == AttendanceAction.BREAK_END:
            if current.status == AttendanceStatus.BREAK and break_started is not None:
                current.break_minutes += (event.recorded_at - break_started).total_seconds() / 60.0
                current.status = AttendanceStatus.CHECKED_IN
                break_started = None
                current.event_ids.append(event.event_id)
        elif event.action == AttendanceAction.CHECK_OUT:
            if current.status == AttendanceStatus.BREAK and break_started is not None:
                current.break_minutes += (event.recorded_at - break_started).total_seconds() / 60.0
                break_started = None
            current.check_out_time = event.recorded_at
            current.status = AttendanceStatus.CHECKED_OUT
            current.event_ids.append(event.event_id)

    return records


def project_visits(events: Iterable[VisitEvent]) -> Dict[str, VisitRecord]:
    """Build visit records keyed by visit id from events sorted by ``recorded_at``."""

    visits: Dict[str, VisitRecord] = {}
    for event in events:
        visit = visits.get(event.visit_id)
        if visit is None:
            visit = VisitRecord(
                id=event.visit_id,
                representative_id=event.representative_id,
                customer_ref=event.customer_ref,
                status=_INITIAL_VISIT_STATUS[event.action],
                scheduled_start=event.scheduled_start,
                scheduled_end=event.scheduled_end,
                first_seen_at=event.recorded_at,
                event_ids=[event.event_id],
            )
            _stamp_transition(visit, event)
            visits[event.visit_id] = visit
            continue

        visit.event_ids.append(event.event_id)
        if visit.customer_ref is None and event.customer_ref is not None:
            visit.customer_ref = event.customer_ref

        if event.action == VisitAction.SCHEDULE:
            if visit.status not in TERMINAL_VISIT_STATUSES:
                visit.scheduled_start = event.scheduled_start or visit.scheduled_start
                visit.scheduled_end = event.scheduled_end or visit.scheduled_end
            continue

        target = _VISIT_TRANSITIONS.get(visit.status, {}).get(event.action)
        if target is None:
            logger.debug(f"Ignoring visit action {event.action.value} on {visit.status.value} visit {visit.id}")
            continue
        visit.status = target
        _stamp_transition(visit, event)

    return visits


def _stamp_transition(visit: VisitRecord, event: VisitEvent) -> None:
    if event.action == VisitAction.START:
        visit.actual_start = event.recorded_at
        visit.start_event_id = event.event_id
    elif event.action == VisitAction.COMPLETE:
        visit.actual_end = event.recorded_at
    elif event.action == VisitAction.CANCEL and visit.actual_start is not None:
        visit.actual_end = event.recorded_at


def visit_interval(visit: VisitRecord) -> Tuple[datetime, datetime]:
    """Return the time span a visit occupies for period-overlap checks."""

    start = visit.actual_start or visit.scheduled_start or visit.first_seen_at
    end = visit.actual_end or visit.scheduled_end or start
    if end < start:
        end = start
    return start, end
