"""
Schedule side of the workspace data model.

A schedule set is the list of schedules attached to one route. Each schedule
carries a weekly calendar, dated exceptions layered on top of it and a list of
per-stop arrival/departure times in ``HH:mm[:ss]``.

Dates are kept as ``YYYY-MM-DD`` strings and times as strings so that a
half-edited schedule can be held and inspected; the validation engine reports
malformed values instead of the model rejecting them.
"""

import re
from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from route_workspace.models.route import DirectionEnum


# =============================================================================
# Constants
# =============================================================================

MINUTES_PER_DAY = 24 * 60

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])(?::([0-5][0-9]))?$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

WEEKDAY_FIELDS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
)
WEEKDAY_ABBREVIATIONS = {
    "monday": "Mon", "tuesday": "Tue", "wednesday": "Wed", "thursday": "Thu",
    "friday": "Fri", "saturday": "Sat", "sunday": "Sun",
}


# =============================================================================
# Enums
# =============================================================================

class ScheduleTypeEnum(str, Enum):
    REGULAR = "REGULAR"
    SPECIAL = "SPECIAL"


class ScheduleStatusEnum(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    CANCELLED = "CANCELLED"


class ExceptionTypeEnum(str, Enum):
    """REMOVED suspends an operating day, ADDED activates a non-operating one."""

    ADDED = "ADDED"
    REMOVED = "REMOVED"


# =============================================================================
# Route reference (paired route as read from the directory)
# =============================================================================

class RouteStopReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    stop_id: str = ""
    stop_name: str = ""
    stop_order: int = 0
    distance_from_start_km: float = 0.0
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class RouteReference(BaseModel):
    """Read-only view of the route a schedule set belongs to."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    route_number: str = ""
    direction: Optional[DirectionEnum] = None
    distance_km: Optional[float] = None
    estimated_duration_minutes: Optional[int] = None
    route_group_id: Optional[str] = None
    route_group_name: Optional[str] = None
    route_stops: List[RouteStopReference] = Field(default_factory=list)


# =============================================================================
# Schedule models
# =============================================================================

class ScheduleStop(BaseModel):
    """Arrival/departure times of one stop within a schedule."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    stop_id: str = ""
    stop_name: Optional[str] = None
    stop_order: int = 0
    arrival_time: Optional[str] = None
    departure_time: Optional[str] = None
    distance_from_start_km: Optional[float] = None

    @field_validator("arrival_time", "departure_time", mode="before")
    @classmethod
    def empty_time_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ScheduleCalendar(BaseModel):
    """Seven independent day-of-week flags."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    monday: bool = False
    tuesday: bool = False
    wednesday: bool = False
    thursday: bool = False
    friday: bool = False
    saturday: bool = False
    sunday: bool = False

    def selected_days(self) -> List[str]:
        return [day for day in WEEKDAY_FIELDS if getattr(self, day)]

    def operates_on_weekday(self, weekday: int) -> bool:
        """``weekday`` follows ``date.weekday()``: Monday is 0."""
        return bool(getattr(self, WEEKDAY_FIELDS[weekday]))


class ScheduleException(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    exception_date: str = ""
    exception_type: ExceptionTypeEnum = ExceptionTypeEnum.REMOVED


class Schedule(BaseModel):
    """
    A named, dated, calendared timetable for one route.

    A schedule without ``id`` is client-local until a submission persists it.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: str = ""
    description: str = ""
    route_id: str = ""
    schedule_type: ScheduleTypeEnum = ScheduleTypeEnum.REGULAR
    effective_start_date: str = ""
    effective_end_date: Optional[str] = None
    status: ScheduleStatusEnum = ScheduleStatusEnum.PENDING
    calendar: ScheduleCalendar = Field(default_factory=ScheduleCalendar)
    exceptions: List[ScheduleException] = Field(default_factory=list)
    schedule_stops: List[ScheduleStop] = Field(default_factory=list)

    @property
    def is_new(self) -> bool:
        return self.id is None


class ScheduleWorkspaceData(BaseModel):
    """Snapshot held by the schedule workspace."""

    model_config = ConfigDict(frozen=True)

    route: Optional[RouteReference] = None
    schedules: List[Schedule] = Field(default_factory=list)
    active_schedule_index: int = -1


# =============================================================================
# Factories
# =============================================================================

def create_default_calendar() -> ScheduleCalendar:
    """Weekdays on, weekend off."""
    return create_weekday_calendar()


def create_weekday_calendar() -> ScheduleCalendar:
    return ScheduleCalendar(monday=True, tuesday=True, wednesday=True, thursday=True, friday=True)


def create_weekend_calendar() -> ScheduleCalendar:
    return ScheduleCalendar(saturday=True, sunday=True)


def create_all_days_calendar() -> ScheduleCalendar:
    return ScheduleCalendar(**{day: True for day in WEEKDAY_FIELDS})


def create_empty_schedule(route_id: str = "", today: Optional[date] = None) -> Schedule:
    today = today or date.today()
    return Schedule(
        route_id=route_id,
        effective_start_date=today.isoformat(),
        calendar=create_default_calendar(),
    )


def create_schedule_from_route(
    route: RouteReference,
    name: Optional[str] = None,
    today: Optional[date] = None,
) -> Schedule:
    """Create a new schedule with one untimed stop per route stop."""
    today = today or date.today()
    schedule_stops = [
        ScheduleStop(
            stop_id=route_stop.stop_id,
            stop_name=route_stop.stop_name or None,
            stop_order=route_stop.stop_order,
            distance_from_start_km=route_stop.distance_from_start_km,
        )
        for route_stop in route.route_stops
    ]
    return Schedule(
        name=name or f"{route.name} Schedule",
        route_id=route.id,
        effective_start_date=today.isoformat(),
        calendar=create_default_calendar(),
        schedule_stops=schedule_stops,
    )


def create_empty_schedule_workspace_data() -> ScheduleWorkspaceData:
    return ScheduleWorkspaceData()


# =============================================================================
# Time helpers
# =============================================================================

def is_valid_time_format(value: Optional[str]) -> bool:
    """Check ``HH:mm`` or ``HH:mm:ss`` (24 hour clock)."""
    return isinstance(value, str) and TIME_PATTERN.match(value) is not None


def parse_time_to_seconds(value: str) -> int:
    """
    Parse ``HH:mm[:ss]`` into seconds from midnight.

    Raises:
        ValueError: If the value is not a valid time
    """
    match = TIME_PATTERN.match(value or "")
    if match is None:
        raise ValueError(f"Invalid time format: {value!r}")
    hours, minutes, seconds = match.group(1), match.group(2), match.group(3) or "0"
    return int(hours) * 3600 + int(minutes) * 60 + int(seconds)


def parse_time_to_minutes(value: str) -> int:
    """Parse ``HH:mm[:ss]`` into whole minutes from midnight (seconds dropped)."""
    return parse_time_to_seconds(value) // 60


def format_minutes_to_time(total_minutes: int) -> str:
    """Format minutes from midnight as ``HH:mm:ss``, wrapping past midnight."""
    total_minutes = int(total_minutes) % MINUTES_PER_DAY
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}:00"


def format_minutes_to_time_short(total_minutes: int) -> str:
    total_minutes = int(total_minutes) % MINUTES_PER_DAY
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def normalize_time_input(value: Optional[str]) -> Optional[str]:
    """
    Normalize user time input to ``HH:mm:ss``.

    ``HH:mm`` gets ``:00`` appended and single-digit hours are zero padded.
    Empty input becomes None. Anything unparsable is returned unchanged so
    the validation engine can report it.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    match = TIME_PATTERN.match(value)
    if match is None:
        return value
    seconds = match.group(3) or "00"
    return f"{int(match.group(1)):02d}:{match.group(2)}:{seconds}"


def calculate_duration(start_time: str, end_time: str) -> int:
    """Minutes between two times, assuming an overnight trip when end < start."""
    start = parse_time_to_minutes(start_time)
    end = parse_time_to_minutes(end_time)
    if end < start:
        end += MINUTES_PER_DAY
    return end - start


# =============================================================================
# Date and calendar helpers
# =============================================================================

def is_valid_date_format(value: Optional[str]) -> bool:
    """Check a ``YYYY-MM-DD`` string that names a real calendar date."""
    if not isinstance(value, str) or DATE_PATTERN.match(value) is None:
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def calendar_days_string(calendar: ScheduleCalendar) -> str:
    days = calendar.selected_days()
    if len(days) == 7:
        return "Every day"
    if not days:
        return "No days selected"
    if len(days) == 5 and not calendar.saturday and not calendar.sunday:
        return "Weekdays"
    if len(days) == 2 and calendar.saturday and calendar.sunday:
        return "Weekends"
    return ", ".join(WEEKDAY_ABBREVIATIONS[day] for day in days)


def schedule_identification_tag(schedule: Schedule) -> str:
    kind = "Regular" if schedule.schedule_type == ScheduleTypeEnum.REGULAR else "Special"
    return f"{kind} - {calendar_days_string(schedule.calendar)}"


def is_operating_on(schedule: Schedule, day: date) -> bool:
    """
    Whether the schedule runs on ``day``.

    The weekly calendar and the effective range decide the default; a REMOVED
    exception suspends that day and an ADDED exception activates it.
    """
    iso_day = day.isoformat()
    for exception in schedule.exceptions:
        if exception.exception_date == iso_day:
            return exception.exception_type == ExceptionTypeEnum.ADDED

    if is_valid_date_format(schedule.effective_start_date) and iso_day < schedule.effective_start_date:
        return False
    if is_valid_date_format(schedule.effective_end_date) and iso_day > schedule.effective_end_date:
        return False
    return schedule.calendar.operates_on_weekday(day.weekday())


# =============================================================================
# Text document
# =============================================================================

class ScheduleDocument(BaseModel):
    """Content of a schedule text document: one route and its schedule set."""

    model_config = ConfigDict(frozen=True)

    route_id: str = ""
    route_name: Optional[str] = None
    route_number: Optional[str] = None
    schedules: List[Schedule] = Field(default_factory=list)
