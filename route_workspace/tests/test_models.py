"""
Tests for the workspace data model and its pure helpers.
"""
import pytest
from datetime import date

from pydantic import ValidationError

from route_workspace.models.route import (
    DirectionEnum,
    RouteStop,
    StopRole,
    create_empty_route,
    create_empty_route_workspace_data,
    move_route_stop,
    opposite_direction,
    stop_role,
    stop_role_code,
    total_distance,
)
from route_workspace.models.schedule import (
    ExceptionTypeEnum,
    ScheduleCalendar,
    ScheduleException,
    ScheduleStop,
    calculate_duration,
    calendar_days_string,
    create_all_days_calendar,
    create_empty_schedule,
    create_schedule_from_route,
    create_weekend_calendar,
    format_minutes_to_time,
    is_operating_on,
    is_valid_date_format,
    is_valid_time_format,
    normalize_time_input,
    parse_time_to_minutes,
    schedule_identification_tag,
)
from route_workspace.tests.helpers import make_schedule


# =============================================================================
# Route side
# =============================================================================

class TestStopRole:
    """Role is derived from position, never stored."""

    def test_three_stop_roles(self):
        assert stop_role(0, 3) == StopRole.ORIGIN
        assert stop_role(1, 3) == StopRole.INTERMEDIATE
        assert stop_role(2, 3) == StopRole.DESTINATION

    def test_single_stop_is_origin(self):
        assert stop_role(0, 1) == StopRole.ORIGIN

    def test_role_codes(self):
        assert [stop_role_code(i, 4) for i in range(4)] == ["S", "I", "I", "E"]

    def test_out_of_range_raises(self):
        with pytest.raises(ValueError):
            stop_role(3, 3)
        with pytest.raises(ValueError):
            stop_role(0, 0)


class TestRouteModels:

    def test_models_are_frozen(self, outbound_route):
        with pytest.raises(ValidationError):
            outbound_route.name = "Changed"

    def test_negative_distance_rejected(self):
        with pytest.raises(ValidationError):
            RouteStop(order_number=0, distance_from_start=-1.0)

    def test_empty_route_has_origin_and_destination(self):
        route = create_empty_route(DirectionEnum.INBOUND)
        assert route.direction == DirectionEnum.INBOUND
        assert [rs.order_number for rs in route.route_stops] == [0, 1]
        assert all(rs.distance_from_start is None for rs in route.route_stops)

    def test_empty_workspace_data(self):
        data = create_empty_route_workspace_data()
        assert data.active_direction == DirectionEnum.OUTBOUND
        assert len(data.route_group.routes) == 1

    def test_total_distance(self, outbound_route):
        assert total_distance(outbound_route.route_stops) == 12.0
        assert total_distance([]) == 0.0

    def test_move_route_stop_renumbers(self, outbound_route):
        moved = move_route_stop(outbound_route.route_stops, 3, 1)
        assert [rs.stop.id for rs in moved] == ["S1", "S4", "S2", "S3"]
        assert [rs.order_number for rs in moved] == [0, 1, 2, 3]
        # Source list untouched
        assert [rs.stop.id for rs in outbound_route.route_stops] == ["S1", "S2", "S3", "S4"]

    def test_move_route_stop_out_of_range_is_noop(self, outbound_route):
        moved = move_route_stop(outbound_route.route_stops, 0, 9)
        assert moved == outbound_route.route_stops

    def test_opposite_direction(self):
        assert opposite_direction(DirectionEnum.OUTBOUND) == DirectionEnum.INBOUND
        assert opposite_direction(DirectionEnum.INBOUND) == DirectionEnum.OUTBOUND


# =============================================================================
# Schedule side
# =============================================================================

class TestTimeHelpers:

    def test_valid_time_formats(self):
        assert is_valid_time_format("06:00")
        assert is_valid_time_format("23:59:59")
        assert not is_valid_time_format("24:00")
        assert not is_valid_time_format("6.30")
        assert not is_valid_time_format(None)

    def test_parse_time_to_minutes_drops_seconds(self):
        assert parse_time_to_minutes("06:24:59") == 6 * 60 + 24

    def test_format_wraps_past_midnight(self):
        assert format_minutes_to_time(25 * 60 + 5) == "01:05:00"

    def test_normalize_time_input(self):
        assert normalize_time_input("6:05") == "06:05:00"
        assert normalize_time_input("06:05:30") == "06:05:30"
        assert normalize_time_input("  ") is None
        assert normalize_time_input("later") == "later"

    def test_overnight_duration(self):
        assert calculate_duration("23:30", "00:15") == 45
        assert calculate_duration("06:00", "07:00") == 60

    def test_empty_time_becomes_unset(self):
        stop = ScheduleStop(stop_id="S1", arrival_time="", departure_time="06:00:00")
        assert stop.arrival_time is None
        assert stop.departure_time == "06:00:00"

    def test_date_format(self):
        assert is_valid_date_format("2026-02-28")
        assert not is_valid_date_format("2026-02-30")
        assert not is_valid_date_format("28/02/2026")


class TestCalendar:

    def test_days_string(self):
        assert calendar_days_string(create_all_days_calendar()) == "Every day"
        assert calendar_days_string(create_weekend_calendar()) == "Weekends"
        assert calendar_days_string(ScheduleCalendar()) == "No days selected"
        assert calendar_days_string(ScheduleCalendar(monday=True, wednesday=True)) == "Mon, Wed"

    def test_identification_tag(self, timed_schedule):
        assert schedule_identification_tag(timed_schedule) == "Regular - Weekdays"

    def test_operating_days_follow_calendar(self, timed_schedule):
        # 2026-01-05 is a Monday, 2026-01-03 a Saturday
        assert is_operating_on(timed_schedule, date(2026, 1, 5))
        assert not is_operating_on(timed_schedule, date(2026, 1, 3))

    def test_operating_days_respect_effective_range(self, timed_schedule):
        assert not is_operating_on(timed_schedule, date(2025, 12, 29))

    def test_exceptions_override_calendar(self):
        schedule = make_schedule(exceptions=[
            ScheduleException(exception_date="2026-01-05", exception_type=ExceptionTypeEnum.REMOVED),
            ScheduleException(exception_date="2026-01-03", exception_type=ExceptionTypeEnum.ADDED),
        ])
        assert not is_operating_on(schedule, date(2026, 1, 5))
        assert is_operating_on(schedule, date(2026, 1, 3))


class TestScheduleFactories:

    def test_empty_schedule_defaults(self, today):
        schedule = create_empty_schedule("R1", today)
        assert schedule.is_new
        assert schedule.route_id == "R1"
        assert schedule.effective_start_date == "2026-01-01"
        assert calendar_days_string(schedule.calendar) == "Weekdays"

    def test_schedule_from_route(self, route_reference, today):
        schedule = create_schedule_from_route(route_reference, today=today)
        assert schedule.name == "Colombo - Kandy Schedule"
        assert [s.stop_id for s in schedule.schedule_stops] == ["S1", "S2", "S3"]
        assert all(s.arrival_time is None and s.departure_time is None for s in schedule.schedule_stops)
        assert schedule.schedule_stops[1].distance_from_start_km == 10.0
