from fieldtrack.models.domain import AttendanceAction, AttendanceStatus, VisitAction, VisitStatus
from fieldtrack.models.records import project_attendance, project_visits, visit_interval

from factories import at, attendance, visit


def test_attendance_shift_accumulates_breaks() -> None:
    records = project_attendance(
        [
            attendance("rep-1", AttendanceAction.CHECK_IN, 0),
            attendance("rep-1", AttendanceAction.BREAK_START, 120),
            attendance("rep-1", AttendanceAction.BREAK_END, 150),
            attendance("rep-1", AttendanceAction.BREAK_START, 300),
            attendance("rep-1", AttendanceAction.CHECK_OUT, 315),
        ]
    )

    assert len(records) == 1
    shift = records[0]
    assert shift.status == AttendanceStatus.CHECKED_OUT
    assert shift.check_in_time == at(0)
    assert shift.check_out_time == at(315)
    assert shift.break_minutes == 45.0
    assert not shift.is_open


def test_duplicate_check_in_and_orphan_check_out_are_ignored() -> None:
    first = attendance("rep-1", AttendanceAction.CHECK_IN, 0)
    records = project_attendance(
        [
            attendance("rep-1", AttendanceAction.CHECK_OUT, -30),
            first,
            attendance("rep-1", AttendanceAction.CHECK_IN, 10),
        ]
    )

    assert len(records) == 1
    assert records[0].check_in_event_id == first.event_id
    assert records[0].is_open


def test_second_shift_after_check_out() -> None:
    records = project_attendance(
        [
            attendance("rep-1", AttendanceAction.CHECK_IN, 0),
            attendance("rep-1", AttendanceAction.CHECK_OUT, 60),
            attendance("rep-1", AttendanceAction.CHECK_IN, 120),
        ]
    )

    assert [record.is_open for record in records] == [False, True]


def test_visit_lifecycle() -> None:
    visits = project_visits(
        [
            visit("rep-1", "v1", VisitAction.SCHEDULE, 0, customer_ref="C-9", scheduled_start=at(60), scheduled_end=at(90)),
            visit("rep-1", "v1", VisitAction.START, 65),
            visit("rep-1", "v1", VisitAction.COMPLETE, 95),
        ]
    )

    record = visits["v1"]
    assert record.status == VisitStatus.COMPLETED
    assert record.customer_ref == "C-9"
    assert record.actual_start == at(65)
    assert record.actual_end == at(95)
    assert visit_interval(record) == (at(65), at(95))


def test_terminal_visit_ignores_later_events() -> None:
    visits = project_visits(
        [
            visit("rep-1", "v1", VisitAction.START, 0),
            visit("rep-1", "v1", VisitAction.CANCEL, 10),
            visit("rep-1", "v1", VisitAction.START, 20),
        ]
    )

    assert visits["v1"].status == VisitStatus.CANCELLED
    assert visits["v1"].actual_start == at(0)
    assert visits["v1"].actual_end == at(10)


def test_visit_first_seen_as_completed() -> None:
    visits = project_visits([visit("rep-1", "v1", VisitAction.COMPLETE, 30)])

    assert visits["v1"].status == VisitStatus.COMPLETED
    assert visit_interval(visits["v1"]) == (at(30), at(30))


def test_no_show_only_from_scheduled() -> None:
    visits = project_visits(
        [
            visit("rep-1", "v1", VisitAction.SCHEDULE, 0, scheduled_start=at(60)),
            visit("rep-1", "v1", VisitAction.NO_SHOW, 120),
            visit("rep-1", "v2", VisitAction.START, 0),
            visit("rep-1", "v2", VisitAction.NO_SHOW, 30),
        ]
    )

    assert visits["v1"].status == VisitStatus.NO_SHOW
    assert visits["v2"].status == VisitStatus.IN_PROGRESS
