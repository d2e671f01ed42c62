"""
Timetable Generator - derive stop times from distance, speed and dwell time.

Two generators live here:
- ``generate_stop_times``: distance based. Each stop's arrival is the start
  time plus the travel time to its distance at the average speed; departure
  adds the dwell time except at the destination.
- ``generate_schedules_from_patterns``: frequency based. Builds a set of
  schedules from departure windows (e.g. every 15 minutes between 06:00 and
  09:00) with a fixed time between stops.

All functions are pure and deterministic.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

from route_workspace.models.schedule import (
    RouteReference,
    RouteStopReference,
    Schedule,
    ScheduleCalendar,
    ScheduleStop,
    ScheduleTypeEnum,
    create_default_calendar,
    format_minutes_to_time,
    format_minutes_to_time_short,
    normalize_time_input,
    parse_time_to_minutes,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

RETURN_TRIP_TURNAROUND_MINUTES = 10


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


def dwell_minutes(dwell_seconds: float) -> int:
    return int(math.ceil(dwell_seconds / 60.0))


# =============================================================================
# Distance based generation
# =============================================================================

def schedule_stops_from_route(route: RouteReference) -> List[ScheduleStop]:
    """Untimed schedule stops mirroring the route's stop sequence."""
    return [
        ScheduleStop(
            stop_id=route_stop.stop_id,
            stop_name=route_stop.stop_name or None,
            stop_order=route_stop.stop_order,
            distance_from_start_km=route_stop.distance_from_start_km,
        )
        for route_stop in route.route_stops
    ]


def generate_stop_times(
    stops: List[ScheduleStop],
    start_time: str,
    avg_speed_kmh: float,
    dwell_seconds: float,
) -> List[ScheduleStop]:
    """
    Fill arrival/departure times of ``stops`` from their distances.

    Args:
        stops: Ordered schedule stops, each with ``distance_from_start_km``
        start_time: Departure time from the origin (``HH:mm[:ss]``)
        avg_speed_kmh: Average speed in km/h, must be > 0
        dwell_seconds: Dwell time at each intermediate stop, must be >= 0

    Returns:
        New schedule stops with ``HH:mm:ss`` times. The destination's
        departure equals its arrival.

    Raises:
        ValueError: On a non-positive speed, negative dwell, unparsable start
            time or a stop without distance
    """
    if avg_speed_kmh is None or avg_speed_kmh <= 0:
        raise ValueError(f"Average speed must be greater than 0 km/h, got {avg_speed_kmh}")
    if dwell_seconds is None or dwell_seconds < 0:
        raise ValueError(f"Dwell time cannot be negative, got {dwell_seconds}")
    start_minutes = parse_time_to_minutes(start_time)
    dwell = dwell_minutes(dwell_seconds)

    last_index = len(stops) - 1
    generated: List[ScheduleStop] = []
    for index, stop in enumerate(stops):
        distance = stop.distance_from_start_km
        if index > 0 and distance is None:
            raise ValueError(f"Stop {index + 1} ({stop.stop_name or stop.stop_id}) has no distance from start")

        if index == 0 or not distance:
            arrival = start_minutes
        else:
            arrival = start_minutes + round_half_up(distance / avg_speed_kmh * 60)
        departure = arrival if index == last_index else arrival + dwell

        generated.append(stop.model_copy(update={
            "arrival_time": format_minutes_to_time(arrival),
            "departure_time": format_minutes_to_time(departure),
        }))
    return generated


def clear_all_times(stops: List[ScheduleStop]) -> List[ScheduleStop]:
    return [stop.model_copy(update={"arrival_time": None, "departure_time": None}) for stop in stops]


def copy_arrival_to_departure(stop: ScheduleStop) -> ScheduleStop:
    return stop.model_copy(update={"departure_time": normalize_time_input(stop.arrival_time)})


# =============================================================================
# Pattern based generation
# =============================================================================

@dataclass
class GenerationPattern:
    """Departures every ``frequency_minutes`` from ``start_time`` to ``end_time`` inclusive."""

    start_time: str
    end_time: str
    frequency_minutes: int


@dataclass
class StopTimingPattern:
    avg_minutes_between_stops: int
    dwell_seconds: int = 0


@dataclass
class AutoGenerationConfig:
    route_id: str
    route_name: str
    stops: List[RouteStopReference]
    patterns: List[GenerationPattern]
    stop_timing: StopTimingPattern
    calendar: Optional[ScheduleCalendar] = None
    schedule_type: ScheduleTypeEnum = ScheduleTypeEnum.REGULAR
    base_name: Optional[str] = None
    include_return_trips: bool = False
    effective_start_date: Optional[str] = None


def calculate_stop_times(
    stops: List[RouteStopReference],
    start_minutes: int,
    timing: StopTimingPattern,
) -> List[ScheduleStop]:
    """Times with a fixed travel time between consecutive stops."""
    dwell = dwell_minutes(timing.dwell_seconds)
    last_index = len(stops) - 1
    current = start_minutes
    schedule_stops = []
    for index, stop in enumerate(stops):
        if index > 0:
            current += timing.avg_minutes_between_stops
        departure = current if index == last_index else current + dwell
        schedule_stops.append(ScheduleStop(
            stop_id=stop.stop_id,
            stop_name=stop.stop_name or None,
            stop_order=stop.stop_order,
            arrival_time=format_minutes_to_time(current),
            departure_time=format_minutes_to_time(departure),
            distance_from_start_km=stop.distance_from_start_km,
        ))
        if index < last_index:
            current += dwell
    return schedule_stops


def _reverse_stops(stops: List[RouteStopReference]) -> List[RouteStopReference]:
    orders = sorted(stop.stop_order for stop in stops)
    return [
        stop.model_copy(update={"stop_order": orders[index]})
        for index, stop in enumerate(reversed(stops))
    ]


def generate_schedules_from_patterns(config: AutoGenerationConfig, today: Optional[date] = None) -> List[Schedule]:
    """
    Build one schedule per departure of every pattern.

    With ``include_return_trips`` each forward trip is followed by a return
    trip over the reversed stop list, starting a fixed turnaround after the
    forward trip's arrival.
    """
    start_date = config.effective_start_date or (today or date.today()).isoformat()
    calendar = config.calendar or create_default_calendar()
    reversed_stops = _reverse_stops(config.stops)

    schedules: List[Schedule] = []
    counter = 1

    def _schedule(name: str, stops: List[ScheduleStop]) -> Schedule:
        return Schedule(
            name=name,
            route_id=config.route_id,
            schedule_type=config.schedule_type,
            effective_start_date=start_date,
            calendar=calendar,
            schedule_stops=stops,
        )

    for pattern in config.patterns:
        start = parse_time_to_minutes(pattern.start_time)
        end = parse_time_to_minutes(pattern.end_time)
        departure = start
        while departure <= end:
            forward_stops = calculate_stop_times(config.stops, departure, config.stop_timing)
            if config.base_name:
                name = f"{config.base_name} #{counter}"
            else:
                name = f"{config.route_name} - {format_minutes_to_time_short(departure)}"
            schedules.append(_schedule(name, forward_stops))
            counter += 1

            if config.include_return_trips and forward_stops:
                forward_end = parse_time_to_minutes(forward_stops[-1].arrival_time)
                if forward_end < departure:
                    forward_end += 24 * 60
                return_start = forward_end + RETURN_TRIP_TURNAROUND_MINUTES
                if config.base_name:
                    name = f"{config.base_name} #{counter} (Return)"
                else:
                    name = f"{config.route_name} - {format_minutes_to_time_short(return_start)} (Return)"
                schedules.append(_schedule(
                    name,
                    calculate_stop_times(reversed_stops, return_start, config.stop_timing),
                ))
                counter += 1

            departure += pattern.frequency_minutes

    logger.info(f"[Timetable] Generated {len(schedules)} schedule(s) for route {config.route_id}")
    return schedules


def weekday_pattern() -> List[GenerationPattern]:
    return [
        GenerationPattern("06:00", "09:00", 15),
        GenerationPattern("09:15", "16:00", 30),
        GenerationPattern("16:00", "19:00", 15),
        GenerationPattern("19:30", "22:00", 30),
    ]


def weekend_pattern() -> List[GenerationPattern]:
    return [GenerationPattern("08:00", "22:00", 30)]


def special_event_pattern() -> List[GenerationPattern]:
    return [GenerationPattern("09:00", "18:00", 20)]


def estimate_trip_duration(stop_count: int, timing: StopTimingPattern) -> Dict[str, object]:
    """Total minutes of a trip and a short label such as ``1h 5m``."""
    legs = max(0, stop_count - 1)
    total = legs * timing.avg_minutes_between_stops + legs * dwell_minutes(timing.dwell_seconds)
    hours, minutes = divmod(total, 60)
    return {"minutes": total, "formatted": f"{hours}h {minutes}m" if hours else f"{minutes}m"}


def validate_generation_config(config: AutoGenerationConfig) -> List[str]:
    """Return the list of problems that prevent pattern generation."""
    errors = []
    if not config.route_id:
        errors.append("Route ID is required")
    if len(config.stops) < 2:
        errors.append("At least 2 stops are required")
    if not config.patterns:
        errors.append("At least one time pattern is required")
    for pattern in config.patterns:
        try:
            if parse_time_to_minutes(pattern.start_time) >= parse_time_to_minutes(pattern.end_time):
                errors.append(
                    f"Invalid pattern: start time {pattern.start_time} must be before end time {pattern.end_time}"
                )
        except ValueError as exc:
            errors.append(str(exc))
        if pattern.frequency_minutes <= 0:
            errors.append("Frequency must be greater than 0 minutes")
    if config.stop_timing.avg_minutes_between_stops <= 0:
        errors.append("Average time between stops must be greater than 0")
    if config.stop_timing.dwell_seconds < 0:
        errors.append("Dwell time cannot be negative")
    return errors


# Preset name -> (patterns, timing, include return trips)
QUICK_PRESETS = {
    "urban": (weekday_pattern, StopTimingPattern(3, 30), True),
    "suburban": (lambda: [GenerationPattern("06:00", "22:00", 30)], StopTimingPattern(5, 45), True),
    "express": (
        lambda: [GenerationPattern("06:00", "09:00", 20), GenerationPattern("16:00", "19:00", 20)],
        StopTimingPattern(8, 60),
        False,
    ),
}


def generate_quick_schedule_set(
    route: RouteReference,
    preset: str,
    today: Optional[date] = None,
) -> List[Schedule]:
    """
    Generate a full schedule set for ``route`` from a named preset.

    Raises:
        ValueError: For an unknown preset
    """
    if preset not in QUICK_PRESETS:
        raise ValueError(f"Unknown preset '{preset}', expected one of {sorted(QUICK_PRESETS)}")
    patterns, timing, include_return = QUICK_PRESETS[preset]
    config = AutoGenerationConfig(
        route_id=route.id,
        route_name=route.name,
        stops=list(route.route_stops),
        patterns=patterns(),
        stop_timing=timing,
        include_return_trips=include_return,
        base_name=f"{route.name} - {preset.capitalize()}",
    )
    return generate_schedules_from_patterns(config, today=today)
