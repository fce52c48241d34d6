"""Durable write-through journal for accepted tracking events."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterator, Optional, Protocol

import httpx
from supabase import Client, PostgrestAPIError

from ..models.domain import (
    ActivityType,
    AttendanceAction,
    AttendanceEvent,
    EventKind,
    LocationEvent,
    TrackingEvent,
    VisitAction,
    VisitEvent,
    ensure_utc,
)

logger = logging.getLogger(__name__)

REPLAY_PAGE_SIZE = 1000


class JournalWriteError(Exception):
    """A journal write failed in a way that may succeed on retry."""


class EventJournal(Protocol):
    def write(self, event: TrackingEvent) -> None: ...

    def replay(self, since: datetime) -> Iterator[TrackingEvent]: ...


class SupabaseJournal:
    """Mirror events into a Supabase table, one row per event."""

    def __init__(self, client: Client, table: str) -> None:
        self.client = client
        self.table = table

    def write(self, event: TrackingEvent) -> None:
        try:
            self.client.table(self.table).insert(event_to_row(event)).execute()
        except (PostgrestAPIError, httpx.HTTPError, OSError) as exc:
            raise JournalWriteError(f"Failed to journal event {event.event_id}: {exc}") from exc

    def ping(self) -> None:
        """Run a one-row read; raises ``JournalWriteError`` when the table is unreachable."""
        try:
            self.client.table(self.table).select("event_id").limit(1).execute()
        except (PostgrestAPIError, httpx.HTTPError, OSError) as exc:
            raise JournalWriteError(f"Journal table '{self.table}' is unreachable: {exc}") from exc

    def replay(self, since: datetime) -> Iterator[TrackingEvent]:
        offset = 0
        while True:
            response = (
                self.client.table(self.table)
                .select("*")
                .gte("recorded_at", since.isoformat())
                .order("recorded_at")
                .range(offset, offset + REPLAY_PAGE_SIZE - 1)
                .execute()
            )
            rows = response.data or []
            for row in rows:
                try:
                    yield row_to_event(row)
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning(f"Skipping unreadable journal row {row.get('event_id')}: {exc}")
            if len(rows) < REPLAY_PAGE_SIZE:
                return
            offset += REPLAY_PAGE_SIZE


def event_to_row(event: TrackingEvent) -> dict[str, Any]:
    row: dict[str, Any] = {
        "event_id": event.event_id,
        "kind": event.kind.value,
        "representative_id": event.representative_id,
        "recorded_at": event.recorded_at.isoformat(),
        "received_at": event.received_at.isoformat() if event.received_at else None,
    }
    if isinstance(event, LocationEvent):
        row["payload"] = {
            "latitude": event.latitude,
            "longitude": event.longitude,
            "accuracy_meters": event.accuracy_meters,
            "activity_type": event.activity_type.value,
            "location_name": event.location_name,
        }
    elif isinstance(event, AttendanceEvent):
        row["payload"] = {
            "action": event.action.value,
            "latitude": event.latitude,
            "longitude": event.longitude,
        }
    else:
        row["payload"] = {
            "visit_id": event.visit_id,
            "action": event.action.value,
            "customer_ref": event.customer_ref,
            "scheduled_start": _iso(event.scheduled_start),
            "scheduled_end": _iso(event.scheduled_end),
        }
    return row


def row_to_event(row: dict[str, Any]) -> TrackingEvent:
    kind = EventKind(row["kind"])
    payload = row.get("payload") or {}
    common = {
        "representative_id": row["representative_id"],
        "recorded_at": _parse(row["recorded_at"]),
        "event_id": row["event_id"],
        "received_at": _parse(row.get("received_at")),
    }
    if kind == EventKind.LOCATION:
        return LocationEvent(
            latitude=float(payload["latitude"]),
            longitude=float(payload["longitude"]),
            accuracy_meters=float(payload.get("accuracy_meters") or 0.0),
            activity_type=ActivityType(payload.get("activity_type", ActivityType.PING.value)),
            location_name=payload.get("location_name"),
            **common,
        )
    if kind == EventKind.ATTENDANCE:
        return AttendanceEvent(
            action=AttendanceAction(payload["action"]),
            latitude=payload.get("latitude"),
            longitude=payload.get("longitude"),
            **common,
        )
    return VisitEvent(
        visit_id=payload["visit_id"],
        action=VisitAction(payload["action"]),
        customer_ref=payload.get("customer_ref"),
        scheduled_start=_parse(payload.get("scheduled_start")),
        scheduled_end=_parse(payload.get("scheduled_end")),
        **common,
    )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
