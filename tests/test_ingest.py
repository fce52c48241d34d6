from datetime import datetime, timedelta

import pytest

from fieldtrack.errors import IngestUnavailable, InvalidEvent
from fieldtrack.models.domain import (
    AttendanceAction,
    EventKind,
    LocationEvent,
    RepresentativeStatus,
    VisitAction,
    VisitEvent,
)
from fieldtrack.persistence.event_store import EventStore
from fieldtrack.persistence.journal import JournalWriteError
from fieldtrack.persistence.representatives import RepresentativeDirectory
from fieldtrack.services.ingest import IngestService, infer_kind

from factories import BASE, at, attendance, ping, visit


def _location_payload(**overrides) -> dict:
    payload = {
        "representative_id": "rep-1",
        "latitude": 33.3152,
        "longitude": 44.3661,
        "accuracy_meters": 8.5,
        "recorded_at": BASE.isoformat(),
        "activity_type": "ping",
        "location_name": "Karrada Warehouse",
    }
    payload.update(overrides)
    return payload


class DownJournal:
    def write(self, event) -> None:
        raise JournalWriteError("database unreachable")

    def replay(self, since):
        return iter(())


def test_infer_kind() -> None:
    assert infer_kind({"visit_id": "v1", "action": "start"}) == EventKind.VISIT
    assert infer_kind({"action": "check_in"}) == EventKind.ATTENDANCE
    assert infer_kind({"latitude": 1, "longitude": 2}) == EventKind.LOCATION


def test_location_payload_is_stored_and_registers_representative(runtime) -> None:
    event = runtime.ingest.submit(_location_payload())

    assert isinstance(event, LocationEvent)
    assert event.received_at == BASE
    assert event.location_name == "Karrada Warehouse"
    assert runtime.store.locations("rep-1") == [event]
    assert runtime.directory.is_known("rep-1")


@pytest.mark.parametrize(
    "overrides",
    [
        {"latitude": 91.0},
        {"longitude": -180.5},
        {"latitude": "north"},
        {"latitude": float("nan")},
        {"accuracy_meters": -1},
        {"representative_id": ""},
        {"activity_type": "teleport"},
        {"recorded_at": "yesterday"},
    ],
)
def test_malformed_location_is_rejected_and_not_stored(runtime, overrides) -> None:
    with pytest.raises(InvalidEvent) as excinfo:
        runtime.ingest.submit(_location_payload(**overrides))

    assert excinfo.value.details["errors"]
    assert runtime.store.count() == 0
    assert not runtime.directory.is_known("rep-1")


def test_missing_coordinates_are_rejected(runtime) -> None:
    payload = _location_payload()
    del payload["latitude"]

    with pytest.raises(InvalidEvent):
        runtime.ingest.submit(payload, EventKind.LOCATION)


def test_future_timestamps_beyond_skew_are_rejected(runtime) -> None:
    skew = runtime.settings.max_clock_skew_seconds
    accepted = runtime.ingest.submit(_location_payload(recorded_at=(BASE + timedelta(seconds=skew)).isoformat()))
    assert accepted.recorded_at == BASE + timedelta(seconds=skew)

    with pytest.raises(InvalidEvent, match="future"):
        runtime.ingest.submit(_location_payload(recorded_at=(BASE + timedelta(seconds=skew + 1)).isoformat()))


def test_events_older_than_retention_are_rejected(runtime) -> None:
    too_old = BASE - timedelta(days=runtime.settings.retention_days, minutes=1)

    with pytest.raises(InvalidEvent, match="retention"):
        runtime.ingest.submit(_location_payload(recorded_at=too_old.isoformat()))


def test_naive_timestamps_are_treated_as_utc(runtime) -> None:
    event = runtime.ingest.submit(_location_payload(recorded_at="2025-03-10T07:30:00"))

    assert event.recorded_at == at(-30)


def test_attendance_without_timestamp_uses_ingest_time(runtime) -> None:
    event = runtime.ingest.submit({"representative_id": "rep-1", "action": "check_in"})

    assert event.kind == EventKind.ATTENDANCE
    assert event.action == AttendanceAction.CHECK_IN
    assert event.recorded_at == BASE


def test_attendance_coordinates_must_come_in_pairs(runtime) -> None:
    with pytest.raises(InvalidEvent):
        runtime.ingest.submit({"representative_id": "rep-1", "action": "check_in", "latitude": 33.3})


def test_visit_schedule_must_be_ordered(runtime) -> None:
    with pytest.raises(InvalidEvent):
        runtime.ingest.submit(
            {
                "representative_id": "rep-1",
                "visit_id": "v1",
                "action": "schedule",
                "scheduled_start": at(60).isoformat(),
                "scheduled_end": at(30).isoformat(),
            }
        )

    event = runtime.ingest.submit(
        {
            "representative_id": "rep-1",
            "visit_id": "v1",
            "action": "schedule",
            "customer_ref": "C-17",
            "scheduled_start": at(60).isoformat(),
            "scheduled_end": at(90).isoformat(),
        }
    )
    assert isinstance(event, VisitEvent)
    assert event.scheduled_start == at(60)


def test_typed_events_are_validated_too(runtime) -> None:
    with pytest.raises(InvalidEvent):
        runtime.ingest.submit(ping("rep-1", 0, lat=120.0))

    with pytest.raises(InvalidEvent, match="Expected a visit event"):
        runtime.ingest.submit(ping("rep-1", 0), EventKind.VISIT)


def test_typed_visit_schedule_is_normalised_to_utc(runtime, clock) -> None:
    event = runtime.ingest.submit(
        VisitEvent(
            representative_id="rep-1",
            visit_id="v1",
            action=VisitAction.SCHEDULE,
            recorded_at=at(0),
            scheduled_start=datetime(2025, 3, 10, 7, 0),
            scheduled_end=datetime(2025, 3, 10, 7, 45),
        )
    )
    assert event.scheduled_start == at(-60)
    assert event.scheduled_end.tzinfo is not None

    clock.advance(minutes=30)
    late = runtime.queries.late_visits()
    assert [(item.visit_id, item.delay_minutes) for item in late] == [("v1", 90)]

    stats = runtime.queries.fleet_performance(BASE - timedelta(days=1), BASE + timedelta(days=1))
    assert stats.total_visits == 1


def test_typed_visit_schedule_must_be_ordered(runtime) -> None:
    with pytest.raises(InvalidEvent, match="scheduled_end"):
        runtime.ingest.submit(
            visit("rep-1", "v1", VisitAction.SCHEDULE, 0, scheduled_start=at(60), scheduled_end=at(30))
        )

    assert runtime.store.count() == 0


def test_same_event_submitted_twice_is_stored_twice(runtime) -> None:
    event = ping("rep-1", 0)

    first = runtime.ingest.submit(event)
    second = runtime.ingest.submit(event)

    assert first.event_id == second.event_id
    assert runtime.store.count() == 2
    snapshot = runtime.queries.get_status("rep-1")
    assert snapshot.status == RepresentativeStatus.OFFLINE
    assert snapshot.source_event_id == event.event_id

    assert runtime.store.evict_expired(BASE + timedelta(days=1)) == 2
    assert runtime.store.count() == 0


def test_ingest_schedules_status_recomputation(runtime) -> None:
    runtime.ingest.submit(attendance("rep-1", AttendanceAction.CHECK_IN, 0))

    assert runtime.resolver.flush(timeout=5)
    assert runtime.resolver.last_snapshot("rep-1").status == RepresentativeStatus.ACTIVE


def test_store_outage_surfaces_ingest_unavailable(settings, clock) -> None:
    store = EventStore(DownJournal(), max_retries=2, backoff_seconds=0.0, sleep=lambda _: None)
    directory = RepresentativeDirectory()
    service = IngestService(store, directory, None, settings, clock=clock)

    with pytest.raises(IngestUnavailable):
        service.submit(_location_payload())

    assert store.count() == 0
    assert not directory.is_known("rep-1")
