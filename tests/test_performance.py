import threading
import time
from datetime import timedelta

import pytest

from fieldtrack.errors import ComputationCancelled, ComputationTimeout, NotFound
from fieldtrack.models.domain import ActivityType, VisitAction
from fieldtrack.services.performance import RatingBands, count_deliveries, success_rate, trajectory_totals

from factories import BASE, at, ping, visit

PERIOD = (BASE - timedelta(days=1), BASE + timedelta(days=1))


def _seed_visits(runtime, rep: str, total: int, completed: int) -> None:
    for index in range(total):
        visit_id = f"{rep}-v{index}"
        runtime.store.append(visit(rep, visit_id, VisitAction.START, index * 30))
        if index < completed:
            runtime.store.append(visit(rep, visit_id, VisitAction.COMPLETE, index * 30 + 20))
        else:
            runtime.store.append(visit(rep, visit_id, VisitAction.CANCEL, index * 30 + 20))
    runtime.directory.ensure(rep)


def _seed_deliveries(runtime, rep: str, total: int, completed: int) -> None:
    for index in range(total):
        runtime.store.append(ping(rep, index * 30, activity_type=ActivityType.DELIVERY_START))
        if index < completed:
            runtime.store.append(ping(rep, index * 30 + 15, activity_type=ActivityType.DELIVERY_COMPLETE))
    runtime.directory.ensure(rep)


def test_rating_bands() -> None:
    bands = RatingBands((90, 80, 70, 60))
    assert bands.rate(100) == 5
    assert bands.rate(90) == 5
    assert bands.rate(89.9) == 4
    assert bands.rate(80) == 4
    assert bands.rate(70) == 3
    assert bands.rate(60) == 2
    assert bands.rate(59.9) == 1
    assert bands.rate(0) == 1


def test_success_rate_handles_empty_and_rounds() -> None:
    assert success_rate(0, 0) == 0.0
    assert success_rate(2, 3) == 66.7
    assert success_rate(5, 5) == 100.0


def test_gap_longer_than_limit_contributes_no_distance() -> None:
    far_apart = [ping("rep-1", 0), ping("rep-1", 8 * 60, lat=33.3200, lon=44.3700)]
    assert trajectory_totals(far_apart, 120) == (0.0, 0.0)

    close = [ping("rep-1", 0), ping("rep-1", 10, lat=33.3200, lon=44.3700)]
    distance, minutes = trajectory_totals(close, 120)
    assert distance == pytest.approx(0.645, abs=0.005)
    assert minutes == 10.0


def test_segments_on_both_sides_of_a_gap_still_count() -> None:
    trajectory = [
        ping("rep-1", 0),
        ping("rep-1", 10, lat=33.3200, lon=44.3700),
        ping("rep-1", 8 * 60 + 10),
        ping("rep-1", 8 * 60 + 20, lat=33.3200, lon=44.3700),
    ]

    distance, minutes = trajectory_totals(trajectory, 120)

    assert distance == pytest.approx(2 * 0.645, abs=0.01)
    assert minutes == 20.0


def test_delivery_counting_pairs_starts_with_completions() -> None:
    events = [
        ping("rep-1", 0, activity_type=ActivityType.DELIVERY_START),
        ping("rep-1", 5, activity_type=ActivityType.DELIVERY_COMPLETE),
        ping("rep-1", 10, activity_type=ActivityType.DELIVERY_COMPLETE),
        ping("rep-1", 20, activity_type=ActivityType.DELIVERY_START),
        ping("rep-1", 30, activity_type=ActivityType.DELIVERY_START),
        ping("rep-1", 40, activity_type=ActivityType.DELIVERY_COMPLETE),
    ]
    assert count_deliveries(events) == (3, 2)


def test_window_with_eight_of_ten_visits_completed(runtime) -> None:
    _seed_visits(runtime, "rep-1", total=10, completed=8)

    window = runtime.queries.performance("rep-1", *PERIOD)

    assert window.total_visits == 10
    assert window.completed_visits == 8
    assert window.visit_success_rate == 80.0
    assert window.visit_rating == 4
    assert window.delivery_success_rate == 0.0
    assert window.delivery_rating == 1
    assert window.average_visits_per_day == 5.0


def test_window_distance_and_speed(runtime) -> None:
    runtime.store.append(ping("rep-1", 0))
    runtime.store.append(ping("rep-1", 10, lat=33.3200, lon=44.3700))
    runtime.store.append(ping("rep-1", 10 + 8 * 60, lat=33.4000, lon=44.4000))

    window = runtime.queries.performance("rep-1", *PERIOD)

    assert window.total_distance_km == pytest.approx(0.645, abs=0.005)
    assert window.average_speed_kmh == pytest.approx(3.87, abs=0.03)


def test_unknown_representative_window_is_not_found(runtime) -> None:
    with pytest.raises(NotFound):
        runtime.queries.performance("ghost", *PERIOD)


def test_registered_representative_without_events_rates_one(runtime) -> None:
    runtime.directory.register("rep-9", name="Idle Rep")

    window = runtime.queries.performance("rep-9", *PERIOD)

    assert window.total_visits == 0
    assert window.visit_rating == 1
    assert window.delivery_rating == 1


def test_fleet_stats_picks_top_performer_with_tie_breaks(runtime) -> None:
    _seed_visits(runtime, "rep-a", total=4, completed=4)
    _seed_deliveries(runtime, "rep-a", total=2, completed=2)
    _seed_visits(runtime, "rep-b", total=5, completed=5)
    _seed_deliveries(runtime, "rep-b", total=2, completed=2)
    _seed_visits(runtime, "rep-c", total=5, completed=1)
    runtime.directory.register("rep-b", name="Basma")

    stats = runtime.queries.fleet_performance(*PERIOD)

    assert stats.total_representatives == 3
    assert stats.top_performer_id == "rep-b"
    assert stats.top_performer_name == "Basma"
    assert stats.total_visits == 14
    assert stats.completed_visits == 10
    assert stats.total_deliveries == 4
    assert stats.average_visit_rating == pytest.approx((5 + 5 + 1) / 3, abs=0.05)
    assert [window.representative_id for window in stats.windows] == ["rep-a", "rep-b", "rep-c"]


def test_fleet_tie_on_everything_goes_to_lower_id(runtime) -> None:
    _seed_visits(runtime, "rep-z", total=2, completed=2)
    _seed_visits(runtime, "rep-m", total=2, completed=2)

    assert runtime.queries.fleet_performance(*PERIOD).top_performer_id == "rep-m"


def test_empty_fleet(runtime) -> None:
    stats = runtime.queries.fleet_performance(*PERIOD)

    assert stats.total_representatives == 0
    assert stats.top_performer_id is None
    assert stats.windows == []


def test_fleet_timeout_discards_partial_results(runtime, monkeypatch) -> None:
    _seed_visits(runtime, "rep-1", total=1, completed=1)
    original = runtime.aggregator.compute_window

    def slow_window(representative_id, period_start, period_end):
        time.sleep(0.5)
        return original(representative_id, period_start, period_end)

    monkeypatch.setattr(runtime.aggregator, "compute_window", slow_window)

    with pytest.raises(ComputationTimeout) as excinfo:
        runtime.queries.fleet_performance(*PERIOD, timeout=0.05)

    assert not isinstance(excinfo.value, ComputationCancelled)
    assert excinfo.value.details["completed"] == 0


def test_fleet_computation_can_be_cancelled(runtime) -> None:
    _seed_visits(runtime, "rep-1", total=1, completed=1)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(ComputationCancelled):
        runtime.queries.fleet_performance(*PERIOD, cancel_event=cancel)


def test_visits_outside_period_are_excluded(runtime) -> None:
    _seed_visits(runtime, "rep-1", total=2, completed=2)

    window = runtime.queries.performance("rep-1", at(100), at(200))

    assert window.total_visits == 0
