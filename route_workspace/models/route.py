"""
Route side of the workspace data model.

A route group pairs at most one OUTBOUND and one INBOUND route. Each route is
an ordered list of route stops, and each route stop binds a stop to a distance
from the start of the route. Stop roles (origin, intermediate, destination)
are positional and computed on demand with ``stop_role``.

All models are frozen: mutators in the workspace services build new values
with ``model_copy`` instead of editing in place.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class DirectionEnum(str, Enum):
    """Travel direction of a route inside its group."""

    OUTBOUND = "OUTBOUND"
    INBOUND = "INBOUND"


class RoadTypeEnum(str, Enum):
    NORMALWAY = "NORMALWAY"
    EXPRESSWAY = "EXPRESSWAY"


class StopExistenceType(str, Enum):
    """Whether a stop already exists in the external directory."""

    EXISTING = "existing"
    NEW = "new"


class StopRole(str, Enum):
    """Positional role of a stop within a route."""

    ORIGIN = "origin"
    INTERMEDIATE = "intermediate"
    DESTINATION = "destination"


# Short codes used in the text document (S = start, I = intermediate, E = end)
STOP_ROLE_CODES = {
    StopRole.ORIGIN: "S",
    StopRole.INTERMEDIATE: "I",
    StopRole.DESTINATION: "E",
}


# =============================================================================
# Models
# =============================================================================

class Location(BaseModel):
    """Geographic position and postal address of a stop, with translations."""

    model_config = ConfigDict(frozen=True)

    latitude: Optional[float] = Field(None, ge=-90, le=90, description="Latitude (unset while pending)")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="Longitude (unset while pending)")
    address: str = ""
    address_sinhala: str = ""
    address_tamil: str = ""
    city: str = ""
    city_sinhala: str = ""
    city_tamil: str = ""
    state: str = ""
    state_sinhala: str = ""
    state_tamil: str = ""
    zip_code: str = ""
    country: str = ""
    country_sinhala: str = ""
    country_tamil: str = ""


class Stop(BaseModel):
    """
    A point of interest served by routes.

    An empty ``id`` means the stop has not been created in the directory yet.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field("", description="Directory id, empty when not yet created")
    name: str = ""
    name_sinhala: str = ""
    name_tamil: str = ""
    description: str = ""
    location: Location = Field(default_factory=Location)
    is_accessible: bool = False
    type: StopExistenceType = StopExistenceType.NEW


class RouteStop(BaseModel):
    """A stop placed at an ordered position and distance within one route."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(None, description="Route-stop id assigned by the directory")
    order_number: int = Field(0, ge=0)
    distance_from_start: Optional[float] = Field(None, ge=0, description="Distance in km, None when not entered")
    stop: Stop = Field(default_factory=Stop)


class Route(BaseModel):
    """One directional route of a route group."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: str = ""
    name_sinhala: str = ""
    name_tamil: str = ""
    route_number: str = ""
    description: str = ""
    direction: DirectionEnum = DirectionEnum.OUTBOUND
    road_type: RoadTypeEnum = RoadTypeEnum.NORMALWAY
    route_through: str = ""
    route_through_sinhala: str = ""
    route_through_tamil: str = ""
    distance_km: Optional[float] = Field(None, ge=0)
    estimated_duration_minutes: Optional[int] = Field(None, ge=0)
    start_stop_id: str = ""
    end_stop_id: str = ""
    route_stops: List[RouteStop] = Field(default_factory=list)


class RouteGroup(BaseModel):
    """Paired OUTBOUND/INBOUND routes sharing a name."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: str = ""
    name_sinhala: str = ""
    name_tamil: str = ""
    description: str = ""
    routes: List[Route] = Field(default_factory=list)


class RouteWorkspaceData(BaseModel):
    """Snapshot held by the route workspace."""

    model_config = ConfigDict(frozen=True)

    route_group: RouteGroup = Field(default_factory=RouteGroup)
    active_direction: DirectionEnum = DirectionEnum.OUTBOUND


# =============================================================================
# Factories
# =============================================================================

def create_empty_location() -> Location:
    return Location()


def create_empty_stop() -> Stop:
    return Stop(location=create_empty_location(), type=StopExistenceType.NEW)


def create_empty_route_stop(order_number: int = 0) -> RouteStop:
    return RouteStop(order_number=order_number, stop=create_empty_stop())


def create_empty_route(direction: DirectionEnum = DirectionEnum.OUTBOUND) -> Route:
    """Create a route with an empty origin and destination."""
    return Route(
        direction=direction,
        route_stops=[create_empty_route_stop(0), create_empty_route_stop(1)],
    )


def create_empty_route_group() -> RouteGroup:
    return RouteGroup(routes=[create_empty_route(DirectionEnum.OUTBOUND)])


def create_empty_route_workspace_data() -> RouteWorkspaceData:
    return RouteWorkspaceData(route_group=create_empty_route_group())


# =============================================================================
# Positional helpers
# =============================================================================

def stop_role(index: int, total: int) -> StopRole:
    """
    Derive the role of the stop at ``index`` in a sequence of ``total`` stops.

    Args:
        index: Zero-based position of the stop
        total: Number of stops in the sequence

    Returns:
        ORIGIN for the first stop, DESTINATION for the last one and
        INTERMEDIATE otherwise. A single-stop sequence has only an origin.

    Raises:
        ValueError: If ``index`` is outside ``[0, total)``
    """
    if total <= 0 or index < 0 or index >= total:
        raise ValueError(f"Stop index {index} out of range for {total} stops")
    if index == 0:
        return StopRole.ORIGIN
    if index == total - 1:
        return StopRole.DESTINATION
    return StopRole.INTERMEDIATE


def stop_role_code(index: int, total: int) -> str:
    return STOP_ROLE_CODES[stop_role(index, total)]


def total_distance(route_stops: List[RouteStop]) -> float:
    """Largest entered distance of the sequence, 0.0 when none is set."""
    distances = [rs.distance_from_start for rs in route_stops if rs.distance_from_start is not None]
    return max(distances) if distances else 0.0


def reorder_route_stops(route_stops: List[RouteStop]) -> List[RouteStop]:
    """Renumber ``order_number`` densely from 0 following list order."""
    return [rs.model_copy(update={"order_number": index}) for index, rs in enumerate(route_stops)]


def move_route_stop(route_stops: List[RouteStop], from_index: int, to_index: int) -> List[RouteStop]:
    """Return a new list with one stop moved, renumbered from 0."""
    if not (0 <= from_index < len(route_stops)) or not (0 <= to_index < len(route_stops)):
        return list(route_stops)
    moved = list(route_stops)
    item = moved.pop(from_index)
    moved.insert(to_index, item)
    return reorder_route_stops(moved)


def is_existing_stop(stop: Stop) -> bool:
    return stop.type == StopExistenceType.EXISTING and bool(stop.id)


def is_new_stop(stop: Stop) -> bool:
    return not is_existing_stop(stop)


def stop_has_coordinates(stop: Stop) -> bool:
    return stop.location.latitude is not None and stop.location.longitude is not None


def opposite_direction(direction: DirectionEnum) -> DirectionEnum:
    if direction == DirectionEnum.OUTBOUND:
        return DirectionEnum.INBOUND
    return DirectionEnum.OUTBOUND


def find_route_by_direction(group: RouteGroup, direction: DirectionEnum) -> Optional[Route]:
    for route in group.routes:
        if route.direction == direction:
            return route
    return None


def find_route_index_by_direction(group: RouteGroup, direction: DirectionEnum) -> int:
    for index, route in enumerate(group.routes):
        if route.direction == direction:
            return index
    return -1
