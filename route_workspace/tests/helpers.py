"""
Builders for test data shared by several test modules.
"""
from typing import List, Optional

from route_workspace.models.route import (
    DirectionEnum,
    Location,
    Route,
    RouteStop,
    Stop,
    StopExistenceType,
)
from route_workspace.models.schedule import Schedule, ScheduleStop, create_weekday_calendar


def make_stop(stop_id: str, name: str, lat: Optional[float] = None, lon: Optional[float] = None) -> Stop:
    return Stop(
        id=stop_id,
        name=name,
        location=Location(latitude=lat, longitude=lon, city=name, country="Sri Lanka"),
        type=StopExistenceType.EXISTING if stop_id else StopExistenceType.NEW,
    )


def make_route(
    distances: List[float],
    direction: DirectionEnum = DirectionEnum.OUTBOUND,
    name: str = "Colombo to Kandy",
    with_ids: bool = True,
) -> Route:
    names = ["Colombo", "Kelaniya", "Kadawatha", "Nittambuwa", "Kegalle", "Kandy"]
    route_stops = []
    for index, distance in enumerate(distances):
        stop_name = names[index] if index < len(distances) - 1 else "Kandy"
        stop_id = f"S{index + 1}" if with_ids else ""
        route_stops.append(RouteStop(
            order_number=index,
            distance_from_start=distance,
            stop=make_stop(stop_id, stop_name, 6.9 + index * 0.05, 79.85 + index * 0.05),
        ))
    return Route(
        name=name,
        route_number="1",
        direction=direction,
        distance_km=distances[-1] if distances else None,
        estimated_duration_minutes=45,
        start_stop_id=route_stops[0].stop.id if route_stops else "",
        end_stop_id=route_stops[-1].stop.id if route_stops else "",
        route_stops=route_stops,
    )


def make_schedule(name: str = "Weekday Morning", route_id: str = "R1", **overrides) -> Schedule:
    fields = dict(
        name=name,
        route_id=route_id,
        effective_start_date="2026-01-01",
        calendar=create_weekday_calendar(),
        schedule_stops=[
            ScheduleStop(stop_id="S1", stop_name="Colombo", stop_order=0, departure_time="06:00:00"),
            ScheduleStop(
                stop_id="S2", stop_name="Kadawatha", stop_order=1,
                arrival_time="06:24:00", departure_time="06:25:00",
            ),
            ScheduleStop(stop_id="S3", stop_name="Kandy", stop_order=2, arrival_time="07:00:00"),
        ],
    )
    fields.update(overrides)
    return Schedule(**fields)
