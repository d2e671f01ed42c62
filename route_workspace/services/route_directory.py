"""
External route/stop/schedule directory.

The workspace engine never persists data itself. It reads and writes through a
``RouteDirectory``:
- ``InMemoryRouteDirectory``: dict backed, for tests and offline sessions
- ``HttpRouteDirectory``: REST client (httpx) for the route management API,
  mapping snake_case models to the API's camelCase payloads

Directory failures raise ``DirectoryError``; callers in the workspace and the
submission orchestrator turn them into status records.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx

from route_workspace.config import config
from route_workspace.models.route import (
    DirectionEnum,
    Location,
    RoadTypeEnum,
    Route,
    RouteGroup,
    RouteStop,
    Stop,
    StopExistenceType,
)
from route_workspace.models.schedule import (
    WEEKDAY_FIELDS,
    ExceptionTypeEnum,
    RouteReference,
    RouteStopReference,
    Schedule,
    ScheduleCalendar,
    ScheduleException,
    ScheduleStatusEnum,
    ScheduleStop,
    ScheduleTypeEnum,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DirectoryError(Exception):
    """Raised when the external directory rejects or fails a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# =============================================================================
# Interface
# =============================================================================

class RouteDirectory(ABC):
    """Abstract route/stop/schedule store used by the workspaces."""

    @abstractmethod
    async def list_stops(self, query: str) -> List[Stop]:
        """Stops whose name matches ``query``."""

    @abstractmethod
    async def find_stop(self, stop_id: Optional[str] = None, name: Optional[str] = None) -> Optional[Stop]:
        """Single stop by id (preferred) or by name, None when absent."""

    @abstractmethod
    async def create_stop(self, stop: Stop) -> Stop:
        ...

    @abstractmethod
    async def update_stop(self, stop_id: str, stop: Stop) -> Stop:
        ...

    @abstractmethod
    async def get_route(self, route_id: str) -> RouteReference:
        ...

    @abstractmethod
    async def list_routes_by_group(self, group_id: str) -> List[Route]:
        ...

    @abstractmethod
    async def save_route_group(self, group: RouteGroup) -> RouteGroup:
        """Create the group when it has no id, update it otherwise."""

    @abstractmethod
    async def get_schedule(self, schedule_id: str) -> Schedule:
        ...

    @abstractmethod
    async def save_schedule(self, route_id: str, schedule: Schedule) -> Schedule:
        """Create the schedule when it has no id, update it otherwise."""

    async def get_route_group(self, group_id: str) -> RouteGroup:
        routes = await self.list_routes_by_group(group_id)
        return RouteGroup(id=group_id, routes=routes)

    async def close(self) -> None:
        return None


# =============================================================================
# In-memory implementation
# =============================================================================

class InMemoryRouteDirectory(RouteDirectory):
    """
    Dict backed directory.

    ``fail_on`` maps an operation name (``save_schedule``, ``create_stop``,
    ...) to a predicate over its main argument; when the predicate returns
    True the call raises ``DirectoryError``. Useful to exercise partial
    failures.
    """

    def __init__(self, stops: Optional[List[Stop]] = None, fail_on: Optional[Dict[str, Any]] = None):
        self.stops: Dict[str, Stop] = {}
        self.routes: Dict[str, RouteReference] = {}
        self.route_groups: Dict[str, RouteGroup] = {}
        self.schedules: Dict[str, Schedule] = {}
        self.fail_on: Dict[str, Any] = dict(fail_on or {})
        self.calls: List[str] = []
        for stop in stops or []:
            stop_id = stop.id or str(uuid.uuid4())
            self.stops[stop_id] = stop.model_copy(update={"id": stop_id, "type": StopExistenceType.EXISTING})

    def _check(self, operation: str, subject: Any) -> None:
        self.calls.append(operation)
        predicate = self.fail_on.get(operation)
        if predicate is not None and predicate(subject):
            raise DirectoryError(f"{operation} rejected by directory", status_code=400)

    async def list_stops(self, query: str) -> List[Stop]:
        self._check("list_stops", query)
        needle = (query or "").strip().lower()
        return [
            stop for stop in self.stops.values()
            if needle in stop.name.lower()
            or needle in stop.name_sinhala.lower()
            or needle in stop.name_tamil.lower()
        ]

    async def find_stop(self, stop_id: Optional[str] = None, name: Optional[str] = None) -> Optional[Stop]:
        self._check("find_stop", stop_id or name)
        if stop_id:
            return self.stops.get(stop_id)
        needle = (name or "").strip().lower()
        if not needle:
            return None
        for stop in self.stops.values():
            if needle in (stop.name.lower(), stop.name_sinhala.lower(), stop.name_tamil.lower()):
                return stop
        return None

    async def create_stop(self, stop: Stop) -> Stop:
        self._check("create_stop", stop)
        stop_id = str(uuid.uuid4())
        created = stop.model_copy(update={"id": stop_id, "type": StopExistenceType.EXISTING})
        self.stops[stop_id] = created
        return created

    async def update_stop(self, stop_id: str, stop: Stop) -> Stop:
        self._check("update_stop", stop)
        if stop_id not in self.stops:
            raise DirectoryError(f"Stop {stop_id} not found", status_code=404)
        updated = stop.model_copy(update={"id": stop_id, "type": StopExistenceType.EXISTING})
        self.stops[stop_id] = updated
        return updated

    async def get_route(self, route_id: str) -> RouteReference:
        self._check("get_route", route_id)
        if route_id not in self.routes:
            raise DirectoryError(f"Route {route_id} not found", status_code=404)
        return self.routes[route_id]

    async def list_routes_by_group(self, group_id: str) -> List[Route]:
        self._check("list_routes_by_group", group_id)
        if group_id not in self.route_groups:
            raise DirectoryError(f"Route group {group_id} not found", status_code=404)
        return list(self.route_groups[group_id].routes)

    async def get_route_group(self, group_id: str) -> RouteGroup:
        self._check("get_route_group", group_id)
        if group_id not in self.route_groups:
            raise DirectoryError(f"Route group {group_id} not found", status_code=404)
        return self.route_groups[group_id]

    async def save_route_group(self, group: RouteGroup) -> RouteGroup:
        self._check("save_route_group", group)
        group_id = group.id or str(uuid.uuid4())
        routes = []
        for route in group.routes:
            route_id = route.id or str(uuid.uuid4())
            route_stops = [
                rs.model_copy(update={"id": rs.id or str(uuid.uuid4())}) for rs in route.route_stops
            ]
            saved_route = route.model_copy(update={"id": route_id, "route_stops": route_stops})
            routes.append(saved_route)
            self.routes[route_id] = route_to_reference(saved_route, group_id, group.name)
        saved = group.model_copy(update={"id": group_id, "routes": routes})
        self.route_groups[group_id] = saved
        return saved

    async def get_schedule(self, schedule_id: str) -> Schedule:
        self._check("get_schedule", schedule_id)
        if schedule_id not in self.schedules:
            raise DirectoryError(f"Schedule {schedule_id} not found", status_code=404)
        return self.schedules[schedule_id]

    async def save_schedule(self, route_id: str, schedule: Schedule) -> Schedule:
        self._check("save_schedule", schedule)
        if schedule.id is not None and schedule.id not in self.schedules:
            raise DirectoryError(f"Schedule {schedule.id} not found", status_code=404)
        schedule_id = schedule.id or str(uuid.uuid4())
        saved = schedule.model_copy(update={"id": schedule_id, "route_id": route_id})
        self.schedules[schedule_id] = saved
        return saved


def route_to_reference(route: Route, group_id: Optional[str] = None, group_name: Optional[str] = None) -> RouteReference:
    """Read-only reference of a route, as the schedule workspace sees it."""
    return RouteReference(
        id=route.id or "",
        name=route.name,
        route_number=route.route_number,
        direction=route.direction,
        distance_km=route.distance_km,
        estimated_duration_minutes=route.estimated_duration_minutes,
        route_group_id=group_id,
        route_group_name=group_name,
        route_stops=[
            RouteStopReference(
                id=rs.id or "",
                stop_id=rs.stop.id,
                stop_name=rs.stop.name,
                stop_order=rs.order_number,
                distance_from_start_km=rs.distance_from_start or 0.0,
                latitude=rs.stop.location.latitude,
                longitude=rs.stop.location.longitude,
            )
            for rs in route.route_stops
        ],
    )


# =============================================================================
# Wire mapping (camelCase API payloads)
# =============================================================================

_LOCATION_WIRE_KEYS = {
    "latitude": "latitude",
    "longitude": "longitude",
    "address": "address",
    "address_sinhala": "addressSinhala",
    "address_tamil": "addressTamil",
    "city": "city",
    "city_sinhala": "citySinhala",
    "city_tamil": "cityTamil",
    "state": "state",
    "state_sinhala": "stateSinhala",
    "state_tamil": "stateTamil",
    "zip_code": "zipCode",
    "country": "country",
    "country_sinhala": "countrySinhala",
    "country_tamil": "countryTamil",
}


def location_to_request(location: Location) -> Dict[str, Any]:
    data = {}
    for field, wire in _LOCATION_WIRE_KEYS.items():
        value = getattr(location, field)
        if value is not None and value != "":
            data[wire] = value
    return data


def location_from_response(data: Optional[Dict[str, Any]]) -> Location:
    data = data or {}
    fields: Dict[str, Any] = {}
    for field, wire in _LOCATION_WIRE_KEYS.items():
        value = data.get(wire)
        if value is None:
            continue
        fields[field] = value if field in ("latitude", "longitude") else str(value)
    return Location(**fields)


def stop_to_request(stop: Stop) -> Dict[str, Any]:
    return {
        "name": stop.name,
        "nameSinhala": stop.name_sinhala or None,
        "nameTamil": stop.name_tamil or None,
        "description": stop.description or None,
        "isAccessible": stop.is_accessible,
        "location": location_to_request(stop.location),
    }


def stop_from_response(data: Dict[str, Any]) -> Stop:
    return Stop(
        id=data.get("id") or "",
        name=data.get("name") or "",
        name_sinhala=data.get("nameSinhala") or "",
        name_tamil=data.get("nameTamil") or "",
        description=data.get("description") or "",
        location=location_from_response(data.get("location")),
        is_accessible=bool(data.get("isAccessible", False)),
        type=StopExistenceType.EXISTING,
    )


def route_group_to_request(group: RouteGroup) -> Dict[str, Any]:
    return {
        "name": group.name,
        "nameSinhala": group.name_sinhala or None,
        "nameTamil": group.name_tamil or None,
        "description": group.description or None,
        "routes": [
            {
                "id": route.id,
                "name": route.name,
                "nameSinhala": route.name_sinhala or None,
                "nameTamil": route.name_tamil or None,
                "routeNumber": route.route_number or None,
                "description": route.description or None,
                "direction": route.direction.value,
                "roadType": route.road_type.value,
                "routeThrough": route.route_through or None,
                "routeThroughSinhala": route.route_through_sinhala or None,
                "routeThroughTamil": route.route_through_tamil or None,
                "distanceKm": route.distance_km,
                "estimatedDurationMinutes": route.estimated_duration_minutes,
                "startStopId": route.start_stop_id or (route.route_stops[0].stop.id if route.route_stops else None),
                "endStopId": route.end_stop_id or (route.route_stops[-1].stop.id if route.route_stops else None),
                "routeStops": [
                    {
                        "id": rs.id,
                        "stopId": rs.stop.id,
                        "stopOrder": rs.order_number,
                        "distanceFromStartKm": rs.distance_from_start,
                    }
                    for rs in route.route_stops
                ],
            }
            for route in group.routes
        ],
    }


def _route_stop_from_response(data: Dict[str, Any]) -> RouteStop:
    stop = Stop(
        id=data.get("stopId") or "",
        name=data.get("stopName") or "",
        name_sinhala=data.get("stopNameSinhala") or "",
        name_tamil=data.get("stopNameTamil") or "",
        description=data.get("stopDescription") or "",
        location=location_from_response(data.get("location")),
        is_accessible=bool(data.get("isAccessible", False)),
        type=StopExistenceType.EXISTING,
    )
    return RouteStop(
        id=data.get("routeStopId") or data.get("id"),
        order_number=data.get("stopOrder") or 0,
        distance_from_start=data.get("distanceFromStartKm"),
        stop=stop,
    )


def route_from_response(data: Dict[str, Any]) -> Route:
    route_stops = sorted(
        (_route_stop_from_response(item) for item in data.get("routeStops") or []),
        key=lambda rs: rs.order_number,
    )
    return Route(
        id=data.get("id"),
        name=data.get("name") or "",
        name_sinhala=data.get("nameSinhala") or "",
        name_tamil=data.get("nameTamil") or "",
        route_number=data.get("routeNumber") or "",
        description=data.get("description") or "",
        direction=DirectionEnum(data.get("direction") or DirectionEnum.OUTBOUND.value),
        road_type=RoadTypeEnum(data.get("roadType") or RoadTypeEnum.NORMALWAY.value),
        route_through=data.get("routeThrough") or "",
        route_through_sinhala=data.get("routeThroughSinhala") or "",
        route_through_tamil=data.get("routeThroughTamil") or "",
        distance_km=data.get("distanceKm"),
        estimated_duration_minutes=data.get("estimatedDurationMinutes"),
        start_stop_id=data.get("startStopId") or "",
        end_stop_id=data.get("endStopId") or "",
        route_stops=route_stops,
    )


def route_group_from_response(data: Dict[str, Any]) -> RouteGroup:
    return RouteGroup(
        id=data.get("id"),
        name=data.get("name") or "",
        name_sinhala=data.get("nameSinhala") or "",
        name_tamil=data.get("nameTamil") or "",
        description=data.get("description") or "",
        routes=[route_from_response(item) for item in data.get("routes") or []],
    )


def route_reference_from_response(data: Dict[str, Any]) -> RouteReference:
    route = route_from_response(data)
    return route_to_reference(route, data.get("routeGroupId"), data.get("routeGroupName"))


def schedule_to_request(route_id: str, schedule: Schedule) -> Dict[str, Any]:
    return {
        "name": schedule.name,
        "routeId": route_id,
        "scheduleType": schedule.schedule_type.value,
        "effectiveStartDate": schedule.effective_start_date,
        "effectiveEndDate": schedule.effective_end_date,
        "status": schedule.status.value,
        "description": schedule.description or None,
        "generateTrips": True,
        "scheduleStops": [
            {
                "id": stop.id,
                "stopId": stop.stop_id,
                "stopOrder": stop.stop_order,
                "arrivalTime": stop.arrival_time,
                "departureTime": stop.departure_time,
            }
            for stop in schedule.schedule_stops
        ],
        "calendar": {day: getattr(schedule.calendar, day) for day in WEEKDAY_FIELDS},
        "exceptions": [
            {"exceptionDate": exc.exception_date, "exceptionType": exc.exception_type.value}
            for exc in schedule.exceptions
        ],
    }


def schedule_from_response(data: Dict[str, Any]) -> Schedule:
    calendars = data.get("scheduleCalendars") or []
    if calendars:
        calendar = ScheduleCalendar(
            id=calendars[0].get("id"),
            **{day: bool(calendars[0].get(day, False)) for day in WEEKDAY_FIELDS},
        )
    else:
        calendar = ScheduleCalendar()
    return Schedule(
        id=data.get("id"),
        name=data.get("name") or "",
        description=data.get("description") or "",
        route_id=data.get("routeId") or "",
        schedule_type=ScheduleTypeEnum(data.get("scheduleType") or ScheduleTypeEnum.REGULAR.value),
        effective_start_date=data.get("effectiveStartDate") or "",
        effective_end_date=data.get("effectiveEndDate"),
        status=ScheduleStatusEnum(data.get("status") or ScheduleStatusEnum.PENDING.value),
        calendar=calendar,
        schedule_stops=[
            ScheduleStop(
                id=stop.get("id"),
                stop_id=stop.get("stopId") or "",
                stop_name=stop.get("stopName"),
                stop_order=stop.get("stopOrder") or 0,
                arrival_time=stop.get("arrivalTime"),
                departure_time=stop.get("departureTime"),
            )
            for stop in data.get("scheduleStops") or []
        ],
        exceptions=[
            ScheduleException(
                id=exc.get("id"),
                exception_date=exc.get("exceptionDate") or "",
                exception_type=ExceptionTypeEnum(exc.get("exceptionType") or ExceptionTypeEnum.REMOVED.value),
            )
            for exc in data.get("scheduleExceptions") or []
        ],
    )


# =============================================================================
# HTTP implementation
# =============================================================================

class HttpRouteDirectory(RouteDirectory):
    """Route management REST API client."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or config.DIRECTORY_BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds or config.DIRECTORY_TIMEOUT_SECONDS
        self._http_client: Optional[httpx.AsyncClient] = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                headers={"Accept": "application/json"},
            )
        return self._http_client

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.warning(f"[Directory] {method} {path} -> {e.response.status_code}: {detail}")
            raise DirectoryError(detail, status_code=e.response.status_code) from e
        except httpx.TimeoutException as e:
            logger.warning(f"[Directory] {method} {path} timed out after {self.timeout_seconds}s")
            raise DirectoryError(f"Request to {path} timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"[Directory] {method} {path} failed: {e}")
            raise DirectoryError(f"Request to {path} failed: {e}") from e

        logger.debug(f"[Directory] {method} {path} -> {response.status_code}")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"[Directory] {method} {path} returned a body that is not JSON")
            raise DirectoryError(
                f"Invalid response from {path}: body is not JSON", status_code=response.status_code
            ) from e

    def _read(self, path: str, mapper: Callable[[Any], T], data: Any) -> T:
        """Map a decoded response body; malformed bodies become DirectoryError."""
        try:
            return mapper(data)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.error(f"[Directory] Unexpected response from {path}: {e}")
            raise DirectoryError(f"Invalid response from {path}: {e}") from e

    async def list_stops(self, query: str) -> List[Stop]:
        path = "/api/stops"
        data = await self._request("GET", path, params={"search": query, "size": 100})
        items = data.get("content", []) if isinstance(data, dict) else (data or [])
        return self._read(path, lambda body: [stop_from_response(item) for item in body], items)

    async def find_stop(self, stop_id: Optional[str] = None, name: Optional[str] = None) -> Optional[Stop]:
        params = {"id": stop_id} if stop_id else {"name": name}
        path = "/api/stops/exists"
        data = await self._request("GET", path, params=params)
        if not data:
            return None
        return self._read(path, _existing_stop_from_response, data)

    async def create_stop(self, stop: Stop) -> Stop:
        data = await self._request("POST", "/api/stops", json=stop_to_request(stop))
        return self._read("/api/stops", stop_from_response, data)

    async def update_stop(self, stop_id: str, stop: Stop) -> Stop:
        path = f"/api/stops/{stop_id}"
        data = await self._request("PUT", path, json=stop_to_request(stop))
        return self._read(path, stop_from_response, data)

    async def get_route(self, route_id: str) -> RouteReference:
        path = f"/api/routes/{route_id}"
        data = await self._request("GET", path)
        return self._read(path, route_reference_from_response, data)

    async def list_routes_by_group(self, group_id: str) -> List[Route]:
        group = await self.get_route_group(group_id)
        return list(group.routes)

    async def get_route_group(self, group_id: str) -> RouteGroup:
        path = f"/api/route-groups/{group_id}"
        data = await self._request("GET", path)
        return self._read(path, route_group_from_response, data)

    async def save_route_group(self, group: RouteGroup) -> RouteGroup:
        payload = route_group_to_request(group)
        path = f"/api/route-groups/{group.id}" if group.id else "/api/route-groups"
        data = await self._request("PUT" if group.id else "POST", path, json=payload)
        return self._read(path, route_group_from_response, data)

    async def get_schedule(self, schedule_id: str) -> Schedule:
        path = f"/api/schedules/{schedule_id}"
        data = await self._request("GET", path)
        return self._read(path, schedule_from_response, data)

    async def save_schedule(self, route_id: str, schedule: Schedule) -> Schedule:
        payload = schedule_to_request(route_id, schedule)
        path = f"/api/schedules/{schedule.id}" if schedule.id else "/api/schedules"
        data = await self._request("PUT" if schedule.id else "POST", path, json=payload)
        return self._read(path, schedule_from_response, data)

    async def close(self) -> None:
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()


def _existing_stop_from_response(data: Dict[str, Any]) -> Optional[Stop]:
    if not data.get("exists"):
        return None
    return stop_from_response(data.get("stop") or data.get("stopDetails") or {})


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body.get("error") or body)
    return str(body)
