"""
Textual projection of workspaces as YAML documents.

Two documents are supported:
- Schedule document: ``route_id``, ``route_name``, ``route_number`` and a
  ``schedules`` list (calendar, exceptions, per-stop times).
- Route group document: ``route_group`` with its ``routes``, each holding its
  ``route_stops``.

Rendering is deterministic: keys are written in a fixed order and optional
keys only when they are set, so ``parse(render(m))`` gives back ``m``.
Parsing never raises. Every structural problem is reported as a
``ParseIssue`` whose ``location`` points at the offending node
(``schedules[1].schedule_stops[0].arrival_time``); nothing is coerced.
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type

import yaml
from pydantic import ValidationError

from route_workspace.models.results import ParseIssue, RouteGroupParseResult, ScheduleParseResult
from route_workspace.models.route import (
    DirectionEnum,
    Location,
    RoadTypeEnum,
    Route,
    RouteGroup,
    RouteStop,
    Stop,
    StopExistenceType,
    stop_role_code,
)
from route_workspace.models.schedule import (
    WEEKDAY_FIELDS,
    ExceptionTypeEnum,
    Schedule,
    ScheduleCalendar,
    ScheduleDocument,
    ScheduleException,
    ScheduleStatusEnum,
    ScheduleStop,
    ScheduleTypeEnum,
    is_valid_date_format,
    is_valid_time_format,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Document keys
# =============================================================================

DOCUMENT_KEYS = {"route_id", "route_name", "route_number", "schedules"}
SCHEDULE_KEYS = {
    "id", "name", "description", "route_id", "schedule_type", "effective_start_date",
    "effective_end_date", "status", "calendar", "schedule_stops", "exceptions",
}
SCHEDULE_REQUIRED = {"name", "schedule_type", "effective_start_date", "status", "calendar"}
CALENDAR_KEYS = {"id"} | set(WEEKDAY_FIELDS)
SCHEDULE_STOP_KEYS = {
    "id", "stop_id", "stop_name", "stop_order", "arrival_time", "departure_time", "distance_from_start_km",
}
EXCEPTION_KEYS = {"id", "exception_date", "exception_type"}

ROUTE_GROUP_KEYS = {"id", "name", "name_sinhala", "name_tamil", "description", "routes"}
ROUTE_KEYS = {
    "id", "name", "name_sinhala", "name_tamil", "route_number", "description", "direction",
    "road_type", "route_through", "route_through_sinhala", "route_through_tamil", "distance_km",
    "estimated_duration_minutes", "start_stop_id", "end_stop_id", "route_stops",
}
ROUTE_STOP_KEYS = {"id", "order_number", "distance_from_start", "stop_type", "stop"}
STOP_KEYS = {"id", "name", "name_sinhala", "name_tamil", "description", "type", "is_accessible", "location"}
STOP_TYPE_CODES = {"S", "I", "E"}

# Optional string fields written only when non-empty, in output order
_ROUTE_GROUP_TEXT_FIELDS = ("name_sinhala", "name_tamil", "description")
_ROUTE_TEXT_FIELDS = (
    "name_sinhala", "name_tamil", "route_number", "description", "route_through",
    "route_through_sinhala", "route_through_tamil", "start_stop_id", "end_stop_id",
)
_STOP_TEXT_FIELDS = ("name_sinhala", "name_tamil", "description")


def _dump(data: Dict[str, Any]) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)


# =============================================================================
# Rendering: schedules
# =============================================================================

def _calendar_to_dict(calendar: ScheduleCalendar) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if calendar.id is not None:
        data["id"] = calendar.id
    for day in WEEKDAY_FIELDS:
        data[day] = getattr(calendar, day)
    return data


def _schedule_stop_to_dict(stop: ScheduleStop) -> Dict[str, Any]:
    data: Dict[str, Any] = {"stop_id": stop.stop_id, "stop_order": stop.stop_order}
    for key in ("id", "stop_name", "arrival_time", "departure_time", "distance_from_start_km"):
        value = getattr(stop, key)
        if value is not None:
            data[key] = value
    return data


def _exception_to_dict(exception: ScheduleException) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "exception_date": exception.exception_date,
        "exception_type": exception.exception_type.value,
    }
    if exception.id is not None:
        data["id"] = exception.id
    return data


def schedule_to_dict(schedule: Schedule, document_route_id: str = "") -> Dict[str, Any]:
    """Plain dict form of one schedule, in document key order."""
    data: Dict[str, Any] = {
        "name": schedule.name,
        "schedule_type": schedule.schedule_type.value,
        "effective_start_date": schedule.effective_start_date,
        "status": schedule.status.value,
    }
    if schedule.id is not None:
        data["id"] = schedule.id
    if schedule.route_id != document_route_id:
        data["route_id"] = schedule.route_id
    if schedule.description:
        data["description"] = schedule.description
    if schedule.effective_end_date is not None:
        data["effective_end_date"] = schedule.effective_end_date
    data["calendar"] = _calendar_to_dict(schedule.calendar)
    if schedule.schedule_stops:
        data["schedule_stops"] = [_schedule_stop_to_dict(stop) for stop in schedule.schedule_stops]
    if schedule.exceptions:
        data["exceptions"] = [_exception_to_dict(exception) for exception in schedule.exceptions]
    return data


def render_schedule_document(document: ScheduleDocument) -> str:
    """Render a schedule document as YAML text (pure and deterministic)."""
    data: Dict[str, Any] = {"route_id": document.route_id}
    if document.route_name is not None:
        data["route_name"] = document.route_name
    if document.route_number is not None:
        data["route_number"] = document.route_number
    data["schedules"] = [schedule_to_dict(schedule, document.route_id) for schedule in document.schedules]
    return _dump(data)


# =============================================================================
# Rendering: route groups
# =============================================================================

def _location_to_dict(location: Location) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for key in Location.model_fields:
        value = getattr(location, key)
        if value is not None and value != "":
            data[key] = value
    return data


def _stop_to_dict(stop: Stop) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if stop.id:
        data["id"] = stop.id
    data["name"] = stop.name
    for key in _STOP_TEXT_FIELDS:
        if getattr(stop, key):
            data[key] = getattr(stop, key)
    data["type"] = stop.type.value
    data["is_accessible"] = stop.is_accessible
    location = _location_to_dict(stop.location)
    if location:
        data["location"] = location
    return data


def _route_to_dict(route: Route) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if route.id is not None:
        data["id"] = route.id
    data["name"] = route.name
    data["direction"] = route.direction.value
    data["road_type"] = route.road_type.value
    for key in _ROUTE_TEXT_FIELDS:
        if getattr(route, key):
            data[key] = getattr(route, key)
    if route.distance_km is not None:
        data["distance_km"] = route.distance_km
    if route.estimated_duration_minutes is not None:
        data["estimated_duration_minutes"] = route.estimated_duration_minutes

    total = len(route.route_stops)
    route_stops = []
    for index, route_stop in enumerate(route.route_stops):
        item: Dict[str, Any] = {}
        if route_stop.id is not None:
            item["id"] = route_stop.id
        item["order_number"] = route_stop.order_number
        if route_stop.distance_from_start is not None:
            item["distance_from_start"] = route_stop.distance_from_start
        item["stop_type"] = stop_role_code(index, total)
        item["stop"] = _stop_to_dict(route_stop.stop)
        route_stops.append({"route_stop": item})
    data["route_stops"] = route_stops
    return data


def render_route_group_document(group: RouteGroup) -> str:
    """Render a route group as YAML text (pure and deterministic)."""
    data: Dict[str, Any] = {}
    if group.id is not None:
        data["id"] = group.id
    data["name"] = group.name
    for key in _ROUTE_GROUP_TEXT_FIELDS:
        if getattr(group, key):
            data[key] = getattr(group, key)
    data["routes"] = [{"route": _route_to_dict(route)} for route in group.routes]
    return _dump({"route_group": data})


# =============================================================================
# Parsing helpers
# =============================================================================

def _join(location: str, key: Any) -> str:
    if isinstance(key, int):
        return f"{location}[{key}]"
    return f"{location}.{key}" if location else str(key)


class _DocumentReader:
    """Typed accessors over loaded YAML that record errors instead of raising."""

    def __init__(self) -> None:
        self.errors: List[ParseIssue] = []

    def error(self, location: str, message: str) -> None:
        self.errors.append(ParseIssue(location=location or "(root)", message=message))

    def mapping(self, value: Any, location: str, allowed: Iterable[str], required: Iterable[str] = ()) -> bool:
        if not isinstance(value, dict):
            self.error(location, f"Expected a mapping, got {_type_name(value)}")
            return False
        ok = True
        for key in value:
            if key not in allowed:
                self.error(_join(location, str(key)), f"Unknown key '{key}'")
                ok = False
        for key in sorted(required):
            if key not in value:
                self.error(_join(location, key), f"Missing required key '{key}'")
                ok = False
        return ok

    def sequence(self, data: Dict[str, Any], key: str, location: str) -> List[Any]:
        value = data.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            self.error(_join(location, key), f"Expected a list, got {_type_name(value)}")
            return []
        return value

    def text(
        self, data: Dict[str, Any], key: str, location: str,
        default: Optional[str] = "", required: bool = False,
    ) -> Optional[str]:
        if key not in data:
            return default
        value = data[key]
        if value is None and not required:
            return default
        if not isinstance(value, str):
            self.error(_join(location, key), f"Expected a string, got {_type_name(value)}")
            return default
        return value

    def integer(
        self, data: Dict[str, Any], key: str, location: str,
        default: Optional[int] = 0, required: bool = False,
    ) -> Optional[int]:
        if key not in data:
            return default
        value = data[key]
        if value is None and not required:
            return default
        if isinstance(value, bool) or not isinstance(value, int):
            self.error(_join(location, key), f"Expected an integer, got {_type_name(value)}")
            return default
        if value < 0:
            self.error(_join(location, key), f"Expected a non-negative integer, got {value}")
            return default
        return value

    def number(self, data: Dict[str, Any], key: str, location: str) -> Optional[float]:
        if key not in data or data[key] is None:
            return None
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            self.error(_join(location, key), f"Expected a number, got {_type_name(value)}")
            return None
        return float(value)

    def boolean(self, data: Dict[str, Any], key: str, location: str, default: bool = False) -> bool:
        if key not in data:
            return default
        value = data[key]
        if not isinstance(value, bool):
            self.error(_join(location, key), f"Expected true or false, got {value!r}")
            return default
        return value

    def enum(self, data: Dict[str, Any], key: str, location: str, enum_cls: Type[Enum], default: Enum) -> Enum:
        if key not in data:
            return default
        value = data[key]
        allowed = [member.value for member in enum_cls]
        if not isinstance(value, str) or value not in allowed:
            self.error(_join(location, key), f"Invalid value {value!r}, expected one of {', '.join(allowed)}")
            return default
        return enum_cls(value)

    def date_text(self, data: Dict[str, Any], key: str, location: str) -> Optional[str]:
        """
        Dates as ``YYYY-MM-DD``; unquoted YAML dates are accepted as-is.

        A blank string is a date not entered yet and is kept as written; the
        validation engine reports it.
        """
        if key not in data or data[key] is None:
            return None
        value = data[key]
        if isinstance(value, date) and not isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, str) and not value.strip():
            return value
        if not is_valid_date_format(value):
            self.error(_join(location, key), f"Invalid date {value!r}, expected YYYY-MM-DD")
            return None
        return value

    def time_text(self, data: Dict[str, Any], key: str, location: str) -> Optional[str]:
        if key not in data or data[key] is None:
            return None
        value = data[key]
        if isinstance(value, int) and not isinstance(value, bool):
            self.error(
                _join(location, key),
                f"Time was read as the number {value}; quote it, e.g. '{key}: \"16:30:00\"'",
            )
            return None
        if isinstance(value, str) and not value.strip():
            return None
        if not is_valid_time_format(value):
            self.error(_join(location, key), f"Invalid time {value!r}, expected HH:mm or HH:mm:ss")
            return None
        return value

    def build(self, model_cls, location: str, **fields):
        try:
            return model_cls(**fields)
        except ValidationError as exc:
            for detail in exc.errors():
                path = ".".join(str(part) for part in detail.get("loc", ()))
                self.error(_join(location, path) if path else location, detail.get("msg", "Invalid value"))
            return None


def _type_name(value: Any) -> str:
    if value is None:
        return "nothing"
    if isinstance(value, dict):
        return "a mapping"
    if isinstance(value, list):
        return "a list"
    return type(value).__name__


def _load_yaml(text: str, reader: _DocumentReader) -> Any:
    if text is None or not str(text).strip():
        reader.error("", "Document is empty")
        return None
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f"line {mark.line + 1}, column {mark.column + 1}" if mark is not None else ""
        problem = getattr(exc, "problem", None) or str(exc)
        reader.error(where, f"YAML syntax error: {problem}")
        return None


# =============================================================================
# Parsing: schedules
# =============================================================================

def _read_calendar(reader: _DocumentReader, data: Any, location: str) -> Optional[ScheduleCalendar]:
    before = len(reader.errors)
    if not reader.mapping(data, location, CALENDAR_KEYS, WEEKDAY_FIELDS):
        return None
    fields: Dict[str, Any] = {"id": reader.text(data, "id", location, default=None)}
    for day in WEEKDAY_FIELDS:
        fields[day] = reader.boolean(data, day, location)
    if len(reader.errors) > before:
        return None
    return ScheduleCalendar(**fields)


def _read_schedule_stop(reader: _DocumentReader, data: Any, location: str) -> Optional[ScheduleStop]:
    before = len(reader.errors)
    if not reader.mapping(data, location, SCHEDULE_STOP_KEYS, ("stop_id", "stop_order")):
        return None
    fields = {
        "id": reader.text(data, "id", location, default=None),
        "stop_id": reader.text(data, "stop_id", location, required=True),
        "stop_name": reader.text(data, "stop_name", location, default=None),
        "stop_order": reader.integer(data, "stop_order", location, required=True),
        "arrival_time": reader.time_text(data, "arrival_time", location),
        "departure_time": reader.time_text(data, "departure_time", location),
        "distance_from_start_km": reader.number(data, "distance_from_start_km", location),
    }
    if len(reader.errors) > before:
        return None
    return reader.build(ScheduleStop, location, **fields)


def _read_exception(reader: _DocumentReader, data: Any, location: str) -> Optional[ScheduleException]:
    before = len(reader.errors)
    if not reader.mapping(data, location, EXCEPTION_KEYS, ("exception_date", "exception_type")):
        return None
    fields = {
        "id": reader.text(data, "id", location, default=None),
        "exception_date": reader.date_text(data, "exception_date", location),
        "exception_type": reader.enum(
            data, "exception_type", location, ExceptionTypeEnum, ExceptionTypeEnum.REMOVED
        ),
    }
    if "exception_date" in data and data["exception_date"] is None:
        reader.error(_join(location, "exception_date"), "Exception date is required")
    if len(reader.errors) > before:
        return None
    return ScheduleException(**fields)


def _read_schedule(reader: _DocumentReader, data: Any, location: str, document_route_id: str) -> Optional[Schedule]:
    before = len(reader.errors)
    if not reader.mapping(data, location, SCHEDULE_KEYS, SCHEDULE_REQUIRED):
        return None

    start_date = reader.date_text(data, "effective_start_date", location)
    if "effective_start_date" in data and data["effective_start_date"] is None:
        reader.error(_join(location, "effective_start_date"), "Effective start date is required")

    calendar = _read_calendar(reader, data.get("calendar"), _join(location, "calendar"))

    stops_location = _join(location, "schedule_stops")
    schedule_stops = [
        _read_schedule_stop(reader, item, _join(stops_location, index))
        for index, item in enumerate(reader.sequence(data, "schedule_stops", location))
    ]
    exceptions_location = _join(location, "exceptions")
    exceptions = [
        _read_exception(reader, item, _join(exceptions_location, index))
        for index, item in enumerate(reader.sequence(data, "exceptions", location))
    ]

    fields = {
        "id": reader.text(data, "id", location, default=None),
        "name": reader.text(data, "name", location, required=True),
        "description": reader.text(data, "description", location),
        "route_id": reader.text(data, "route_id", location, default=document_route_id),
        "schedule_type": reader.enum(
            data, "schedule_type", location, ScheduleTypeEnum, ScheduleTypeEnum.REGULAR
        ),
        "effective_start_date": start_date,
        "effective_end_date": reader.date_text(data, "effective_end_date", location),
        "status": reader.enum(data, "status", location, ScheduleStatusEnum, ScheduleStatusEnum.PENDING),
        "calendar": calendar,
        "schedule_stops": schedule_stops,
        "exceptions": exceptions,
    }
    if len(reader.errors) > before:
        return None
    return Schedule(**fields)


def parse_schedule_document(text: str) -> ScheduleParseResult:
    """
    Parse a schedule document.

    Never raises. On any problem ``valid`` is False, ``errors`` lists every
    issue found and ``document`` is None.
    """
    reader = _DocumentReader()
    data = _load_yaml(text, reader)
    if reader.errors:
        return ScheduleParseResult(valid=False, errors=reader.errors)

    if not reader.mapping(data, "", DOCUMENT_KEYS, ("route_id", "schedules")):
        return ScheduleParseResult(valid=False, errors=reader.errors)

    route_id = reader.text(data, "route_id", "")
    route_name = reader.text(data, "route_name", "", default=None)
    route_number = reader.text(data, "route_number", "", default=None)
    schedules = [
        _read_schedule(reader, item, _join("schedules", index), route_id)
        for index, item in enumerate(reader.sequence(data, "schedules", ""))
    ]

    if reader.errors:
        logger.debug(f"[Serializer] Schedule document rejected with {len(reader.errors)} error(s)")
        return ScheduleParseResult(valid=False, errors=reader.errors)

    document = ScheduleDocument(
        route_id=route_id,
        route_name=route_name,
        route_number=route_number,
        schedules=schedules,
    )
    return ScheduleParseResult(valid=True, document=document)


# =============================================================================
# Parsing: route groups
# =============================================================================

def _read_location(reader: _DocumentReader, data: Any, location: str) -> Optional[Location]:
    if data is None:
        return Location()
    before = len(reader.errors)
    if not reader.mapping(data, location, set(Location.model_fields)):
        return None
    fields: Dict[str, Any] = {
        "latitude": reader.number(data, "latitude", location),
        "longitude": reader.number(data, "longitude", location),
    }
    for key in Location.model_fields:
        if key not in ("latitude", "longitude"):
            fields[key] = reader.text(data, key, location)
    if len(reader.errors) > before:
        return None
    return reader.build(Location, location, **fields)


def _read_stop(reader: _DocumentReader, data: Any, location: str) -> Optional[Stop]:
    before = len(reader.errors)
    if not reader.mapping(data, location, STOP_KEYS, ("name",)):
        return None
    fields: Dict[str, Any] = {
        "id": reader.text(data, "id", location),
        "type": reader.enum(data, "type", location, StopExistenceType, StopExistenceType.NEW),
        "is_accessible": reader.boolean(data, "is_accessible", location),
        "location": _read_location(reader, data.get("location"), _join(location, "location")),
    }
    for key in ("name",) + _STOP_TEXT_FIELDS:
        fields[key] = reader.text(data, key, location)
    if len(reader.errors) > before:
        return None
    return Stop(**fields)


def _read_route_stop(reader: _DocumentReader, data: Any, location: str) -> Optional[RouteStop]:
    # Each list item is wrapped as {route_stop: {...}}
    if not reader.mapping(data, location, {"route_stop"}, ("route_stop",)):
        return None
    location = _join(location, "route_stop")
    data = data["route_stop"]
    before = len(reader.errors)
    if not reader.mapping(data, location, ROUTE_STOP_KEYS, ("order_number", "stop")):
        return None
    stop_type = data.get("stop_type")
    if stop_type is not None and stop_type not in STOP_TYPE_CODES:
        reader.error(_join(location, "stop_type"), f"Invalid value {stop_type!r}, expected one of S, I, E")
    fields = {
        "id": reader.text(data, "id", location, default=None),
        "order_number": reader.integer(data, "order_number", location, required=True),
        "distance_from_start": reader.number(data, "distance_from_start", location),
        "stop": _read_stop(reader, data.get("stop"), _join(location, "stop")),
    }
    if len(reader.errors) > before:
        return None
    return reader.build(RouteStop, location, **fields)


def _read_route(reader: _DocumentReader, data: Any, location: str) -> Optional[Route]:
    if not reader.mapping(data, location, {"route"}, ("route",)):
        return None
    location = _join(location, "route")
    data = data["route"]
    before = len(reader.errors)
    if not reader.mapping(data, location, ROUTE_KEYS, ("name", "direction", "route_stops")):
        return None

    stops_location = _join(location, "route_stops")
    route_stops = [
        _read_route_stop(reader, item, _join(stops_location, index))
        for index, item in enumerate(reader.sequence(data, "route_stops", location))
    ]
    fields: Dict[str, Any] = {
        "id": reader.text(data, "id", location, default=None),
        "direction": reader.enum(data, "direction", location, DirectionEnum, DirectionEnum.OUTBOUND),
        "road_type": reader.enum(data, "road_type", location, RoadTypeEnum, RoadTypeEnum.NORMALWAY),
        "distance_km": reader.number(data, "distance_km", location),
        "estimated_duration_minutes": reader.integer(data, "estimated_duration_minutes", location, default=None),
        "route_stops": route_stops,
    }
    for key in ("name",) + _ROUTE_TEXT_FIELDS:
        fields[key] = reader.text(data, key, location)
    if len(reader.errors) > before:
        return None
    return reader.build(Route, location, **fields)


def parse_route_group_document(text: str) -> RouteGroupParseResult:
    """
    Parse a route group document.

    Never raises. Besides structural checks, a document holding two routes
    for the same direction is rejected.
    """
    reader = _DocumentReader()
    data = _load_yaml(text, reader)
    if reader.errors:
        return RouteGroupParseResult(valid=False, errors=reader.errors)

    if not reader.mapping(data, "", {"route_group"}, ("route_group",)):
        return RouteGroupParseResult(valid=False, errors=reader.errors)
    data = data["route_group"]
    location = "route_group"
    if not reader.mapping(data, location, ROUTE_GROUP_KEYS, ("name", "routes")):
        return RouteGroupParseResult(valid=False, errors=reader.errors)

    routes_location = _join(location, "routes")
    routes = [
        _read_route(reader, item, _join(routes_location, index))
        for index, item in enumerate(reader.sequence(data, "routes", location))
    ]

    seen: Dict[DirectionEnum, int] = {}
    for index, route in enumerate(routes):
        if route is None:
            continue
        if route.direction in seen:
            reader.error(
                _join(_join(routes_location, index), "route.direction"),
                f"Duplicate {route.direction.value} route (already defined at routes[{seen[route.direction]}])",
            )
        else:
            seen[route.direction] = index

    fields: Dict[str, Any] = {"id": reader.text(data, "id", location, default=None), "routes": routes}
    for key in ("name",) + _ROUTE_GROUP_TEXT_FIELDS:
        fields[key] = reader.text(data, key, location)

    if reader.errors:
        logger.debug(f"[Serializer] Route group document rejected with {len(reader.errors)} error(s)")
        return RouteGroupParseResult(valid=False, errors=reader.errors)
    return RouteGroupParseResult(valid=True, route_group=RouteGroup(**fields))


# =============================================================================
# Templates
# =============================================================================

def schedule_document_template(route_id: str = "", route_name: str = "") -> str:
    """Starter text for a schedule document with one example schedule."""
    example = Schedule(
        name="Weekday Service",
        route_id=route_id,
        effective_start_date=date.today().isoformat(),
        calendar=ScheduleCalendar(monday=True, tuesday=True, wednesday=True, thursday=True, friday=True),
    )
    document = ScheduleDocument(route_id=route_id, route_name=route_name or None, schedules=[example])
    return render_schedule_document(document)
