"""Late visit detection."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List

from ...models.domain import LateVisit, VisitRecord, VisitStatus


def escalation_level(delay: timedelta, escalation_after: timedelta) -> str:
    if delay >= escalation_after * 2:
        return "critical"
    if delay >= escalation_after:
        return "escalated"
    return "initial"


def find_late_visits(
    visits: Iterable[VisitRecord],
    now: datetime,
    *,
    grace: timedelta,
    escalation_after: timedelta,
) -> List[LateVisit]:
    """Scheduled visits whose start time passed more than ``grace`` ago without a start event."""

    late: List[LateVisit] = []
    for visit in visits:
        if visit.status != VisitStatus.SCHEDULED or visit.scheduled_start is None:
            continue
        if visit.actual_start is not None:
            continue
        delay = now - visit.scheduled_start
        if delay <= grace:
            continue
        late.append(
            LateVisit(
                visit_id=visit.id,
                representative_id=visit.representative_id,
                customer_ref=visit.customer_ref,
                scheduled_start=visit.scheduled_start,
                delay_minutes=int(delay.total_seconds() // 60),
                escalation_level=escalation_level(delay, escalation_after),
            )
        )
    return sorted(late, key=lambda item: (-item.delay_minutes, item.visit_id))
