from datetime import timedelta, timezone

import pytest

from fieldtrack.errors import NotFound
from fieldtrack.models.domain import ActivityType, AttendanceAction, VisitAction
from fieldtrack.models.records import project_attendance
from fieldtrack.services.reports import MovementFilters, daily_summaries, filter_movements, movement_stats

from factories import BASE, at, attendance, ping, visit


def _day_of_movements():
    return [
        ping("rep-1", 0, activity_type=ActivityType.CHECK_IN, location_name="Karrada Depot"),
        ping("rep-1", 10, lat=33.3200, lon=44.3700, activity_type=ActivityType.DELIVERY_START, location_name="Al-Mansour Market"),
        ping("rep-1", 20, lat=33.3200, lon=44.3700, activity_type=ActivityType.DELIVERY_COMPLETE, location_name="al-mansour market"),
        ping("rep-1", 40, activity_type=ActivityType.PING),
    ]


def test_filters_compose_with_and() -> None:
    events = _day_of_movements()

    by_location = filter_movements(events, MovementFilters(location="MANSOUR"))
    assert [event.recorded_at for event in by_location] == [at(10), at(20)]

    both = filter_movements(events, MovementFilters(location="mansour", activity_type=ActivityType.DELIVERY_START))
    assert [event.recorded_at for event in both] == [at(10)]

    windowed = filter_movements(events, MovementFilters(start=at(15), end=at(40)))
    assert [event.recorded_at for event in windowed] == [at(20), at(40)]


def test_filters_with_no_match_return_empty_list() -> None:
    assert filter_movements(_day_of_movements(), MovementFilters(location="Basra")) == []


def test_blank_location_filter_is_ignored() -> None:
    assert len(filter_movements(_day_of_movements(), MovementFilters(location="   "))) == 4


def test_movement_stats() -> None:
    stats = movement_stats(_day_of_movements(), max_gap_minutes=120)

    assert stats.total_movements == 4
    assert stats.unique_locations == 2
    assert stats.total_duration_hours == pytest.approx(40 / 60)
    assert stats.total_distance_km == pytest.approx(2 * 0.645, abs=0.01)
    assert stats.most_common_activity in set(ActivityType)


def test_movement_stats_for_no_events() -> None:
    stats = movement_stats([], max_gap_minutes=120)
    assert stats.total_movements == 0
    assert stats.most_common_activity is None


def test_daily_summaries_split_by_calendar_day() -> None:
    next_day = 24 * 60
    locations = _day_of_movements() + [ping("rep-1", next_day), ping("rep-1", next_day + 5)]
    shifts = project_attendance(
        [
            attendance("rep-1", AttendanceAction.CHECK_IN, 0),
            attendance("rep-1", AttendanceAction.BREAK_START, 60),
            attendance("rep-1", AttendanceAction.BREAK_END, 90),
            attendance("rep-1", AttendanceAction.CHECK_OUT, 480),
        ]
    )

    summaries = daily_summaries(locations, [], shifts, tz=timezone.utc, max_gap_minutes=120)

    assert [summary.date for summary in summaries] == [BASE.date(), (BASE + timedelta(days=1)).date()]
    first, second = summaries
    assert first.total_deliveries == 1
    assert first.completed_deliveries == 1
    assert first.check_in_time == at(0)
    assert first.check_out_time == at(480)
    assert first.break_duration_minutes == 30.0
    assert second.check_in_time is None
    assert second.total_distance_km == 0.0


def test_movement_report_through_queries(runtime) -> None:
    runtime.directory.register("rep-1", name="Hassan")
    for event in _day_of_movements():
        runtime.store.append(event)
    runtime.store.append(visit("rep-1", "v1", VisitAction.START, 12))
    runtime.store.append(visit("rep-1", "v1", VisitAction.COMPLETE, 25))
    runtime.store.append(attendance("rep-1", AttendanceAction.CHECK_IN, 0))

    report = runtime.queries.movement_report("rep-1", BASE - timedelta(hours=1), BASE + timedelta(hours=2))

    assert report.representative_name == "Hassan"
    assert len(report.movements) == 4
    assert [record.id for record in report.visits] == ["v1"]
    assert report.stats.total_movements == 4
    assert len(report.daily_summaries) == 1
    assert report.daily_summaries[0].completed_visits == 1
    assert report.daily_summaries[0].check_in_time == at(0)


def test_movements_for_unknown_representative_is_not_found(runtime) -> None:
    with pytest.raises(NotFound):
        runtime.queries.movements("ghost")


def test_movements_for_known_representative_without_events_is_empty(runtime) -> None:
    runtime.directory.register("rep-2")

    assert runtime.queries.movements("rep-2", MovementFilters(activity_type=ActivityType.PING)) == []
