"""
Route Reversal - derive one direction of a route group from the other.

Given a populated source route (e.g. OUTBOUND), builds the full route for the
opposite direction:
- Stops are reversed (former destination becomes the new origin)
- Distances are re-derived as ``total - original``
- Order numbers are renumbered densely from 0
- Start/end stop ids are swapped and the name is relabelled
- Distance and duration are copied unchanged (symmetric geometry assumed)

The function is pure. Writing the result into a workspace is done by
``RouteWorkspace.generate_route``, which only writes on success.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from route_workspace.models.results import RouteGenerationResult
from route_workspace.models.route import (
    DirectionEnum,
    Route,
    RouteStop,
    opposite_direction,
    reorder_route_stops,
    stop_has_coordinates,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

DISTANCE_DECIMALS = 3  # metre precision on km values
REVERSE_SUFFIX = " (Reverse)"

DIRECTION_WORD_PAIRS: Dict[str, List[Tuple[str, str]]] = {
    "en": [
        ("to", "from"),
        ("To", "From"),
        ("TO", "FROM"),
        ("North", "South"),
        ("north", "south"),
        ("East", "West"),
        ("east", "west"),
        ("Up", "Down"),
        ("up", "down"),
        ("Outbound", "Inbound"),
        ("outbound", "inbound"),
    ],
    # from / to, up / down, north / south
    "si": [
        ("සිට", "දක්වා"),
        ("උඩු", "යටි"),
        ("උතුරු", "දකුණු"),
    ],
    "ta": [
        ("இருந்து", "வரை"),
        ("மேல்", "கீழ்"),
        ("வடக்கு", "தெற்கு"),
    ],
}


@dataclass
class ReversalOptions:
    """Options for reverse route generation."""

    swap_direction_words: bool = True
    preserve_metadata: bool = True
    name_suffix: Optional[str] = None


# =============================================================================
# Helpers
# =============================================================================

def swap_direction(direction: DirectionEnum) -> DirectionEnum:
    return opposite_direction(direction)


def swap_direction_words(text: str, language: str = "en") -> str:
    """
    Swap direction words ("to" <-> "from", "North" <-> "South", ...) in ``text``.

    English words are matched on word boundaries; Sinhala and Tamil terms are
    matched as substrings. Both words of a pair are swapped in a single pass so
    a word is never swapped twice.
    """
    if not text:
        return text
    pairs = DIRECTION_WORD_PAIRS.get(language, DIRECTION_WORD_PAIRS["en"])
    for first, second in pairs:
        if language == "en":
            pattern = re.compile(rf"\b({re.escape(first)}|{re.escape(second)})\b")
        else:
            pattern = re.compile(f"({re.escape(first)}|{re.escape(second)})")
        text = pattern.sub(lambda m, a=first, b=second: b if m.group(1) == a else a, text)
    return text


def _generate_route_name(source: Route, target_direction: DirectionEnum, swap_words: bool) -> str:
    if not source.name:
        return "Outbound Route" if target_direction == DirectionEnum.OUTBOUND else "Inbound Route"
    name = swap_direction_words(source.name, "en") if swap_words else source.name
    if name == source.name:
        name = f"{source.name}{REVERSE_SUFFIX}"
    return name


def _generate_description(source: Route) -> str:
    label = f"'{source.name}'" if source.name else "the source route"
    return f"Reverse of {label} ({source.direction.value}), generated from its stop sequence."


def check_reversal_preconditions(source: Optional[Route]) -> List[str]:
    """
    List everything the source route is missing for a reversal.

    Returns:
        Human readable missing items; empty when the route can be reversed
    """
    if source is None:
        return ["Source route is required"]

    missing = []
    stop_count = len(source.route_stops)
    if stop_count < 2:
        missing.append(f"Source route needs at least 2 stops (origin and destination), found {stop_count}")

    for index, route_stop in enumerate(source.route_stops):
        label = route_stop.stop.name or f"#{index + 1}"
        if route_stop.distance_from_start is None:
            missing.append(f"Stop {index + 1} ({label}) has no distance from start")
        if not route_stop.stop.id:
            missing.append(f"Stop {index + 1} ({label}) has no stop id")
    return missing


def can_generate_reverse_route(source: Optional[Route]) -> bool:
    return not check_reversal_preconditions(source)


def _is_non_decreasing(values: List[float]) -> bool:
    return all(later >= earlier for earlier, later in zip(values, values[1:]))


# =============================================================================
# Main function
# =============================================================================

def generate_reverse_route(
    source: Optional[Route],
    target_direction: Optional[DirectionEnum] = None,
    options: Optional[ReversalOptions] = None,
) -> RouteGenerationResult:
    """
    Build the route for ``target_direction`` by reversing ``source``.

    Args:
        source: Populated route of the opposite direction
        target_direction: Direction to build, defaults to the opposite of the source
        options: Name/metadata options

    Returns:
        RouteGenerationResult with ``route`` set on success. On a precondition
        failure ``success`` is False and ``missing_preconditions`` lists every
        missing item; nothing is guessed.
    """
    options = options or ReversalOptions()

    missing = check_reversal_preconditions(source)
    if source is not None:
        target_direction = target_direction or swap_direction(source.direction)
        if target_direction == source.direction:
            missing.append(f"Target direction must differ from the source direction ({source.direction.value})")

    if missing:
        logger.info(f"[Route Reversal] Cannot generate route: {len(missing)} missing precondition(s)")
        return RouteGenerationResult(
            success=False,
            message="Cannot generate route: " + "; ".join(missing),
            missing_preconditions=missing,
        )

    warnings: List[str] = []
    distances = [rs.distance_from_start for rs in source.route_stops]
    largest = max(distances)
    total = source.distance_km if source.distance_km else largest

    if not _is_non_decreasing(distances):
        warnings.append("Source stop distances are not in increasing order; reversed distances may be inconsistent.")
    if largest > total:
        warnings.append(
            f"Route distance {total} km is shorter than the farthest stop ({largest} km); "
            "reversed distances were clamped at 0."
        )
    destination_distance = distances[-1]
    if total > destination_distance:
        origin_distance = round(total - destination_distance, DISTANCE_DECIMALS)
        warnings.append(
            f"Route distance {total} km is longer than the destination's distance ({destination_distance} km); "
            f"the reversed route starts at {origin_distance} km instead of 0."
        )

    reversed_stops: List[RouteStop] = []
    for route_stop in reversed(source.route_stops):
        new_distance = max(0.0, round(total - route_stop.distance_from_start, DISTANCE_DECIMALS))
        reversed_stops.append(route_stop.model_copy(update={"id": None, "distance_from_start": new_distance}))
    reversed_stops = reorder_route_stops(reversed_stops)

    first_stop_id = source.route_stops[0].stop.id
    last_stop_id = source.route_stops[-1].stop.id
    swap_words = options.swap_direction_words

    name = _generate_route_name(source, target_direction, swap_words)
    if options.name_suffix:
        name = f"{name} {options.name_suffix}"

    def _words(text: str, language: str) -> str:
        return swap_direction_words(text, language) if swap_words else text

    route = Route(
        id=None,
        name=name,
        name_sinhala=_words(source.name_sinhala, "si"),
        name_tamil=_words(source.name_tamil, "ta"),
        route_number=source.route_number if options.preserve_metadata else "",
        description=_generate_description(source),
        direction=target_direction,
        road_type=source.road_type,
        route_through=_words(source.route_through, "en"),
        route_through_sinhala=_words(source.route_through_sinhala, "si"),
        route_through_tamil=_words(source.route_through_tamil, "ta"),
        distance_km=source.distance_km,
        estimated_duration_minutes=source.estimated_duration_minutes,
        start_stop_id=source.end_stop_id or last_stop_id,
        end_stop_id=source.start_stop_id or first_stop_id,
        route_stops=reversed_stops,
    )

    without_coordinates = sum(1 for rs in reversed_stops if not stop_has_coordinates(rs.stop))
    if without_coordinates:
        warnings.append(f"{without_coordinates} stop(s) are missing coordinates.")

    message = (
        f"Successfully generated {target_direction.value.lower()} route from "
        f"{source.direction.value.lower()} route with {len(reversed_stops)} stops."
    )
    logger.info(f"[Route Reversal] {message} Warnings: {len(warnings)}")
    return RouteGenerationResult(success=True, message=message, warnings=warnings, route=route)
