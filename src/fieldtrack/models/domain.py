"""Domain models for representatives, tracking events and derived views."""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import ClassVar, Optional, Union


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC and normalise aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_event_id() -> str:
    return uuid.uuid4().hex


class ActivityType(str, Enum):
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    DELIVERY_START = "delivery_start"
    DELIVERY_COMPLETE = "delivery_complete"
    VISIT_START = "visit_start"
    VISIT_END = "visit_end"
    PING = "ping"


class AttendanceAction(str, Enum):
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    BREAK_START = "break_start"
    BREAK_END = "break_end"


class AttendanceStatus(str, Enum):
    CHECKED_IN = "checked_in"
    BREAK = "break"
    CHECKED_OUT = "checked_out"


class VisitAction(str, Enum):
    SCHEDULE = "schedule"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    NO_SHOW = "no_show"


class VisitStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class RepresentativeStatus(str, Enum):
    ON_VISIT = "on_visit"
    ACTIVE = "active"
    OFFLINE = "offline"


class EventKind(str, Enum):
    LOCATION = "location"
    ATTENDANCE = "attendance"
    VISIT = "visit"


@dataclass(slots=True)
class Representative:
    """Externally owned field agent, referenced here by id."""

    id: str
    name: Optional[str] = None
    contact: Optional[str] = None


@dataclass(frozen=True, slots=True)
class LocationEvent:
    """A GPS fix, optionally tagged with the business activity it marks."""

    kind: ClassVar[EventKind] = EventKind.LOCATION

    representative_id: str
    latitude: float
    longitude: float
    accuracy_meters: float
    recorded_at: datetime
    activity_type: ActivityType = ActivityType.PING
    location_name: Optional[str] = None
    event_id: str = field(default_factory=new_event_id)
    received_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class AttendanceEvent:
    kind: ClassVar[EventKind] = EventKind.ATTENDANCE

    representative_id: str
    action: AttendanceAction
    recorded_at: datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    event_id: str = field(default_factory=new_event_id)
    received_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class VisitEvent:
    kind: ClassVar[EventKind] = EventKind.VISIT

    representative_id: str
    visit_id: str
    action: VisitAction
    recorded_at: datetime
    customer_ref: Optional[str] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    event_id: str = field(default_factory=new_event_id)
    received_at: Optional[datetime] = None


TrackingEvent = Union[LocationEvent, AttendanceEvent, VisitEvent]


@dataclass(slots=True)
class AttendanceRecord:
    """A check-in/check-out shift folded from attendance events."""

    representative_id: str
    check_in_time: datetime
    status: AttendanceStatus = AttendanceStatus.CHECKED_IN
    check_out_time: Optional[datetime] = None
    break_minutes: float = 0.0
    check_in_event_id: Optional[str] = None
    event_ids: list[str] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.check_out_time is None


@dataclass(slots=True)
class VisitRecord:
    """A customer visit folded from visit lifecycle events."""

    id: str
    representative_id: str
    customer_ref: Optional[str]
    status: VisitStatus
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    first_seen_at: Optional[datetime] = None
    start_event_id: Optional[str] = None
    event_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class StatusSnapshot:
    representative_id: str
    status: RepresentativeStatus
    as_of: datetime
    source_event_id: Optional[str] = None


@dataclass(slots=True)
class PerformanceWindow:
    representative_id: str
    period_start: datetime
    period_end: datetime
    total_visits: int = 0
    completed_visits: int = 0
    total_deliveries: int = 0
    completed_deliveries: int = 0
    total_distance_km: float = 0.0
    total_duration_hours: float = 0.0
    average_speed_kmh: float = 0.0
    visit_success_rate: float = 0.0
    delivery_success_rate: float = 0.0
    visit_rating: int = 1
    delivery_rating: int = 1
    average_visits_per_day: float = 0.0
    average_deliveries_per_day: float = 0.0

    @property
    def combined_rating(self) -> float:
        return (self.visit_rating + self.delivery_rating) / 2

    @property
    def completed_activity(self) -> int:
        return self.completed_visits + self.completed_deliveries


@dataclass(slots=True)
class FleetStats:
    period_start: datetime
    period_end: datetime
    total_representatives: int = 0
    average_visit_rating: float = 0.0
    average_delivery_rating: float = 0.0
    top_performer_id: Optional[str] = None
    top_performer_name: Optional[str] = None
    total_visits: int = 0
    completed_visits: int = 0
    total_deliveries: int = 0
    completed_deliveries: int = 0
    total_distance_km: float = 0.0
    windows: list[PerformanceWindow] = field(default_factory=list)


@dataclass(slots=True)
class DailySummary:
    date: date
    total_distance_km: float = 0.0
    total_duration_hours: float = 0.0
    total_visits: int = 0
    completed_visits: int = 0
    total_deliveries: int = 0
    completed_deliveries: int = 0
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    break_duration_minutes: float = 0.0


@dataclass(slots=True)
class MovementStats:
    total_movements: int = 0
    total_distance_km: float = 0.0
    total_duration_hours: float = 0.0
    unique_locations: int = 0
    most_common_activity: Optional[ActivityType] = None
    average_speed_kmh: float = 0.0


@dataclass(slots=True)
class MovementReport:
    representative_id: str
    representative_name: str
    period_start: datetime
    period_end: datetime
    movements: list[LocationEvent] = field(default_factory=list)
    visits: list[VisitRecord] = field(default_factory=list)
    stats: MovementStats = field(default_factory=MovementStats)
    daily_summaries: list[DailySummary] = field(default_factory=list)


@dataclass(slots=True)
class LateVisit:
    visit_id: str
    representative_id: str
    customer_ref: Optional[str]
    scheduled_start: datetime
    delay_minutes: int
    escalation_level: str
