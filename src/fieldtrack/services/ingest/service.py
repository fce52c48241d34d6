"""Event ingest: validate, timestamp, store and notify."""

from __future__ import annotations

import dataclasses
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError

from ...config import Settings
from ...errors import InvalidEvent
from ...models.domain import (
    AttendanceEvent,
    EventKind,
    LocationEvent,
    TrackingEvent,
    VisitEvent,
    ensure_utc,
    utc_now,
)
from ...persistence.event_store import EventStore
from ...persistence.representatives import RepresentativeDirectory
from ...schemas.ingest import AttendanceEventIn, LocationEventIn, VisitEventIn
from ..status.resolver import StatusResolver

logger = logging.getLogger(__name__)

Payload = Union[Mapping[str, Any], TrackingEvent]

_SCHEMAS = {
    EventKind.LOCATION: LocationEventIn,
    EventKind.ATTENDANCE: AttendanceEventIn,
    EventKind.VISIT: VisitEventIn,
}


def infer_kind(payload: Mapping[str, Any]) -> EventKind:
    """Visit payloads carry ``visit_id``, attendance payloads an ``action``; the rest are pings."""

    if "visit_id" in payload:
        return EventKind.VISIT
    if "action" in payload:
        return EventKind.ATTENDANCE
    return EventKind.LOCATION


class IngestService:
    def __init__(
        self,
        store: EventStore,
        directory: RepresentativeDirectory,
        resolver: Optional[StatusResolver],
        settings: Settings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.directory = directory
        self.resolver = resolver
        self.clock = clock
        self.max_clock_skew = timedelta(seconds=settings.max_clock_skew_seconds)
        self.retention = timedelta(days=settings.retention_days)

    def submit(self, payload: Payload, kind: Optional[EventKind] = None) -> TrackingEvent:
        """Validate and store one event, then schedule a status recomputation.

        Raises ``InvalidEvent`` before anything is stored, or
        ``IngestUnavailable`` when the store cannot persist the event.
        """

        now = self.clock()
        if isinstance(payload, (LocationEvent, AttendanceEvent, VisitEvent)):
            if kind is not None and payload.kind != kind:
                raise InvalidEvent(f"Expected a {kind.value} event, got {payload.kind.value}")
            event = self._normalise(payload, now)
        elif isinstance(payload, Mapping):
            event = self._parse(payload, kind or infer_kind(payload), now)
        else:
            raise InvalidEvent(f"Unsupported event payload of type {type(payload).__name__}")

        self._check_timing(event, now)
        self.store.append(event)
        self.directory.ensure(event.representative_id)
        self._notify(event.representative_id)
        return event

    def _parse(self, payload: Mapping[str, Any], kind: EventKind, now: datetime) -> TrackingEvent:
        schema = _SCHEMAS[kind]
        try:
            data = schema.model_validate(payload)
        except ValidationError as exc:
            errors = [
                {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                for error in exc.errors()
            ]
            logger.info(f"Rejected {kind.value} event: {len(errors)} validation error(s)")
            raise InvalidEvent(f"Invalid {kind.value} event", details={"errors": errors}) from exc

        recorded_at = ensure_utc(data.recorded_at) if data.recorded_at else now
        if isinstance(data, LocationEventIn):
            return LocationEvent(
                representative_id=data.representative_id,
                latitude=data.latitude,
                longitude=data.longitude,
                accuracy_meters=data.accuracy_meters,
                recorded_at=recorded_at,
                activity_type=data.activity_type,
                location_name=data.location_name,
                received_at=now,
            )
        if isinstance(data, AttendanceEventIn):
            return AttendanceEvent(
                representative_id=data.representative_id,
                action=data.action,
                recorded_at=recorded_at,
                latitude=data.latitude,
                longitude=data.longitude,
                received_at=now,
            )
        return VisitEvent(
            representative_id=data.representative_id,
            visit_id=data.visit_id,
            action=data.action,
            recorded_at=recorded_at,
            customer_ref=data.customer_ref,
            scheduled_start=ensure_utc(data.scheduled_start) if data.scheduled_start else None,
            scheduled_end=ensure_utc(data.scheduled_end) if data.scheduled_end else None,
            received_at=now,
        )

    def _normalise(self, event: TrackingEvent, now: datetime) -> TrackingEvent:
        if not event.representative_id:
            raise InvalidEvent("representative_id is required")
        if isinstance(event, LocationEvent):
            _check_coordinates(event.latitude, event.longitude)
            if not math.isfinite(event.accuracy_meters) or event.accuracy_meters < 0:
                raise InvalidEvent("accuracy_meters must be a non-negative number")
        elif isinstance(event, AttendanceEvent):
            if (event.latitude is None) != (event.longitude is None):
                raise InvalidEvent("latitude and longitude must be provided together")
            if event.latitude is not None:
                _check_coordinates(event.latitude, event.longitude)
        else:
            if not event.visit_id:
                raise InvalidEvent("visit_id is required")
            scheduled_start = ensure_utc(event.scheduled_start) if event.scheduled_start else None
            scheduled_end = ensure_utc(event.scheduled_end) if event.scheduled_end else None
            if scheduled_start and scheduled_end and scheduled_end < scheduled_start:
                raise InvalidEvent(
                    "scheduled_end must not precede scheduled_start",
                    details={"scheduled_start": scheduled_start.isoformat(), "scheduled_end": scheduled_end.isoformat()},
                )
            event = dataclasses.replace(event, scheduled_start=scheduled_start, scheduled_end=scheduled_end)
        return dataclasses.replace(event, recorded_at=ensure_utc(event.recorded_at), received_at=now)

    def _check_timing(self, event: TrackingEvent, now: datetime) -> None:
        if event.recorded_at > now + self.max_clock_skew:
            raise InvalidEvent(
                "recorded_at is in the future",
                details={"recorded_at": event.recorded_at.isoformat(), "received_at": now.isoformat()},
            )
        if event.recorded_at < now - self.retention:
            raise InvalidEvent(
                "recorded_at is outside the retention window",
                details={"recorded_at": event.recorded_at.isoformat(), "retention_days": self.retention.days},
            )

    def _notify(self, representative_id: str) -> None:
        if self.resolver is None:
            return
        try:
            self.resolver.trigger(representative_id)
        except RuntimeError as exc:
            logger.warning(f"Status recomputation not scheduled for {representative_id}: {exc}")


def _check_coordinates(latitude: float, longitude: float) -> None:
    if not (math.isfinite(latitude) and -90 <= latitude <= 90):
        raise InvalidEvent("latitude must be within [-90, 90]", details={"latitude": latitude})
    if not (math.isfinite(longitude) and -180 <= longitude <= 180):
        raise InvalidEvent("longitude must be within [-180, 180]", details={"longitude": longitude})
