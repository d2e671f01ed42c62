"""
Route and route group invariant checks.

A route needs an origin and a destination, distances starting at 0 and never
decreasing, interior stops strictly before the route's total distance and a
destination exactly at it. A route group holds at most one route per
direction.
"""

import logging
from typing import List, Optional

from route_workspace.models.results import (
    BulkValidationResult,
    ScheduleValidationResult,
    ValidationIssue,
    ValidationSeverity,
)
from route_workspace.models.route import Route, RouteGroup, stop_has_coordinates

logger = logging.getLogger(__name__)

DISTANCE_TOLERANCE_KM = 1e-6


def _result(issues: List[ValidationIssue]) -> ScheduleValidationResult:
    is_valid = not any(issue.severity == ValidationSeverity.ERROR for issue in issues)
    return ScheduleValidationResult(is_valid=is_valid, issues=issues)


def validate_route(route: Route, route_index: int = 0) -> ScheduleValidationResult:
    """
    Check the stop sequence invariants of one route.

    ``schedule_index`` of every issue carries ``route_index``.
    """
    issues: List[ValidationIssue] = []

    def add(field: str, message: str, severity=ValidationSeverity.ERROR, stop_index: Optional[int] = None):
        issues.append(ValidationIssue(
            severity=severity, field=field, message=message,
            schedule_index=route_index, stop_index=stop_index,
        ))

    label = f"{route.direction.value} route"
    if not route.name.strip():
        add("name", f"{label}: Route name is required")

    stops = route.route_stops
    if len(stops) < 2:
        add("route_stops", f"{label}: At least an origin and a destination stop are required")

    for index, route_stop in enumerate(stops):
        prefix = f"route_stops[{index}]"
        if not route_stop.stop.name.strip():
            add(f"{prefix}.stop.name", f"{label}: Stop {index + 1} needs a name", stop_index=index)
        if route_stop.distance_from_start is None:
            add(f"{prefix}.distance_from_start", f"{label}: Stop {index + 1} has no distance from start",
                stop_index=index)
        if not stop_has_coordinates(route_stop.stop):
            add(f"{prefix}.stop.location", f"{label}: Stop {index + 1} has no coordinates",
                ValidationSeverity.WARNING, stop_index=index)

    distances = [rs.distance_from_start for rs in stops]
    if stops and distances[0] is not None and distances[0] != 0:
        add("route_stops[0].distance_from_start", f"{label}: Origin stop must be at distance 0", stop_index=0)

    previous: Optional[float] = None
    for index, distance in enumerate(distances):
        if distance is None:
            continue
        if previous is not None and distance < previous:
            add(
                f"route_stops[{index}].distance_from_start",
                f"{label}: Stop {index + 1} distance {distance} km is less than the previous stop ({previous} km)",
                stop_index=index,
            )
        previous = distance

    total = route.distance_km
    if total is not None and len(stops) >= 2:
        for index, distance in enumerate(distances[:-1]):
            if index > 0 and distance is not None and distance >= total:
                add(
                    f"route_stops[{index}].distance_from_start",
                    f"{label}: Stop {index + 1} distance must be less than the route distance ({total} km)",
                    stop_index=index,
                )
        last = distances[-1]
        if last is not None and abs(last - total) > DISTANCE_TOLERANCE_KM:
            add(
                f"route_stops[{len(stops) - 1}].distance_from_start",
                f"{label}: Destination distance {last} km must equal the route distance ({total} km)",
                stop_index=len(stops) - 1,
            )

    start_id = route.start_stop_id or (stops[0].stop.id if stops else "")
    end_id = route.end_stop_id or (stops[-1].stop.id if stops else "")
    if start_id and end_id and start_id == end_id:
        add("end_stop_id", f"{label}: Start and end stops must be different")

    return _result(issues)


def validate_route_group(group: RouteGroup) -> BulkValidationResult:
    """Validate every route of the group plus the one-route-per-direction rule."""
    results = [validate_route(route, index) for index, route in enumerate(group.routes)]
    cross: List[ValidationIssue] = []

    if not group.name.strip():
        cross.append(ValidationIssue(field="name", message="Route group name is required"))
    if not group.routes:
        cross.append(ValidationIssue(field="routes", message="Route group has no routes"))

    seen = set()
    for index, route in enumerate(group.routes):
        if route.direction in seen:
            cross.append(ValidationIssue(
                field=f"routes[{index}].direction",
                message=f"Route group already has a {route.direction.value} route",
                schedule_index=index,
            ))
        seen.add(route.direction)

    total_errors = sum(len(r.errors) for r in results)
    total_errors += sum(1 for issue in cross if issue.severity == ValidationSeverity.ERROR)
    total_warnings = sum(len(r.warnings) for r in results)
    logger.info(f"[Validation] Route group '{group.name}': {total_errors} error(s), {total_warnings} warning(s)")
    return BulkValidationResult(
        is_valid=total_errors == 0,
        schedule_results=results,
        cross_schedule_issues=cross,
        total_errors=total_errors,
        total_warnings=total_warnings,
    )
