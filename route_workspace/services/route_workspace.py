"""
Route workspace - model store for one route group.

Holds a ``RouteWorkspaceData`` snapshot and exposes narrow mutators. Every
entry path (form edits, applied YAML text, reverse route generation, directory
loads) ends up in the same mutators, and none of them validate: invalid
intermediate states are allowed while editing.
"""

import logging
from typing import List, Optional

from route_workspace.models.patches import StopPatch, apply_stop_patch
from route_workspace.models.results import ApplyTextResult, RouteGenerationResult
from route_workspace.models.route import (
    DirectionEnum,
    Route,
    RouteGroup,
    RouteWorkspaceData,
    create_empty_route_stop,
    create_empty_route_workspace_data,
    find_route_by_direction,
    find_route_index_by_direction,
    move_route_stop as _move_route_stop,
    opposite_direction,
    reorder_route_stops,
)
from route_workspace.services.route_directory import DirectoryError, RouteDirectory
from route_workspace.services.route_reversal import ReversalOptions, generate_reverse_route
from route_workspace.services.stop_resolution import (
    BulkStopSearchResult,
    ProgressCallback,
    apply_bulk_search_results,
    search_all_stops_existence,
)
from route_workspace.services.workspace_serializer import (
    parse_route_group_document,
    render_route_group_document,
)
from route_workspace.services.workspace_store import WorkspaceStore, in_range, replace_at, validated_copy

logger = logging.getLogger(__name__)

ROUTE_GROUP_FIELDS = {"id", "name", "name_sinhala", "name_tamil", "description"}


def _check_fields(fields: dict, allowed: set, owner: str) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown {owner} field(s): {sorted(unknown)}")


class RouteWorkspace(WorkspaceStore[RouteWorkspaceData]):
    """Editing context for one route group (OUTBOUND and INBOUND routes)."""

    def __init__(self, initial: Optional[RouteWorkspaceData] = None):
        super().__init__(initial or create_empty_route_workspace_data())
        self.load_error: Optional[str] = None

    # =========================================================================
    # Readers
    # =========================================================================

    @property
    def route_group(self) -> RouteGroup:
        return self.state.route_group

    def route_for(self, direction: DirectionEnum) -> Optional[Route]:
        return find_route_by_direction(self.state.route_group, direction)

    def route_index_for(self, direction: DirectionEnum) -> int:
        return find_route_index_by_direction(self.state.route_group, direction)

    # =========================================================================
    # Mutators
    # =========================================================================

    def _set_group(self, group: RouteGroup, reason: str) -> RouteWorkspaceData:
        return self._commit(self.state.model_copy(update={"route_group": group}), reason)

    def _set_routes(self, routes: List[Route], reason: str) -> RouteWorkspaceData:
        return self._set_group(self.state.route_group.model_copy(update={"routes": routes}), reason)

    def update_route_group(self, **fields) -> RouteWorkspaceData:
        _check_fields(fields, ROUTE_GROUP_FIELDS, "route group")
        return self._set_group(validated_copy(self.state.route_group, **fields), "update_route_group")

    def add_route(self, route: Route) -> RouteWorkspaceData:
        """Add a route; an existing route with the same direction is replaced."""
        return self.replace_route(route.direction, route)

    def replace_route(self, direction: DirectionEnum, route: Route) -> RouteWorkspaceData:
        """Fully replace (or add) the route for ``direction``."""
        route = route.model_copy(update={"direction": direction})
        routes = list(self.state.route_group.routes)
        index = self.route_index_for(direction)
        if index >= 0:
            routes[index] = route
        else:
            routes.append(route)
        return self._set_routes(routes, f"replace_route {direction.value}")

    def remove_route(self, direction: DirectionEnum) -> RouteWorkspaceData:
        routes = [route for route in self.state.route_group.routes if route.direction != direction]
        return self._set_routes(routes, f"remove_route {direction.value}")

    def update_route(self, route_index: int, **fields) -> RouteWorkspaceData:
        _check_fields(fields, set(Route.model_fields), "route")
        routes = self.state.route_group.routes
        if not in_range(routes, route_index):
            logger.debug(f"[Workspace] update_route ignored: no route at index {route_index}")
            return self.state
        updated = validated_copy(routes[route_index], **fields)
        return self._set_routes(replace_at(routes, route_index, updated), f"update_route {route_index}")

    def _set_route_stops(self, route_index: int, route_stops, reason: str) -> RouteWorkspaceData:
        routes = self.state.route_group.routes
        updated = routes[route_index].model_copy(update={"route_stops": route_stops})
        return self._set_routes(replace_at(routes, route_index, updated), reason)

    def update_route_stop(self, route_index: int, stop_index: int, patch: StopPatch) -> RouteWorkspaceData:
        routes = self.state.route_group.routes
        if not in_range(routes, route_index) or not in_range(routes[route_index].route_stops, stop_index):
            logger.debug(f"[Workspace] update_route_stop ignored: no stop {stop_index} on route {route_index}")
            return self.state
        route_stops = routes[route_index].route_stops
        updated = apply_stop_patch(route_stops[stop_index], patch)
        return self._set_route_stops(
            route_index,
            replace_at(route_stops, stop_index, updated),
            f"update_route_stop {route_index}/{stop_index} {patch.kind}",
        )

    def add_route_stop(self, route_index: int, position: Optional[int] = None) -> RouteWorkspaceData:
        """Insert an empty stop (default: before the destination) and renumber."""
        routes = self.state.route_group.routes
        if not in_range(routes, route_index):
            return self.state
        route_stops = list(routes[route_index].route_stops)
        if position is None:
            position = max(len(route_stops) - 1, 0)
        position = min(max(position, 0), len(route_stops))
        route_stops.insert(position, create_empty_route_stop(position))
        return self._set_route_stops(
            route_index, reorder_route_stops(route_stops), f"add_route_stop {route_index}@{position}"
        )

    def remove_route_stop(self, route_index: int, stop_index: int) -> RouteWorkspaceData:
        routes = self.state.route_group.routes
        if not in_range(routes, route_index) or not in_range(routes[route_index].route_stops, stop_index):
            return self.state
        route_stops = list(routes[route_index].route_stops)
        del route_stops[stop_index]
        return self._set_route_stops(
            route_index, reorder_route_stops(route_stops), f"remove_route_stop {route_index}/{stop_index}"
        )

    def move_route_stop(self, route_index: int, from_index: int, to_index: int) -> RouteWorkspaceData:
        routes = self.state.route_group.routes
        if not in_range(routes, route_index):
            return self.state
        route_stops = routes[route_index].route_stops
        if not in_range(route_stops, from_index) or not in_range(route_stops, to_index):
            return self.state
        moved = _move_route_stop(routes[route_index].route_stops, from_index, to_index)
        return self._set_route_stops(route_index, moved, f"move_route_stop {route_index}: {from_index}->{to_index}")

    def set_active_direction(self, direction: DirectionEnum) -> RouteWorkspaceData:
        return self._commit(self.state.model_copy(update={"active_direction": direction}), "set_active_direction")

    def reset(self) -> RouteWorkspaceData:
        self.load_error = None
        return self._commit(create_empty_route_workspace_data(), "reset")

    # =========================================================================
    # Derivation
    # =========================================================================

    def generate_route(
        self,
        target_direction: DirectionEnum,
        options: Optional[ReversalOptions] = None,
    ) -> RouteGenerationResult:
        """
        Build the ``target_direction`` route by reversing the opposite one.

        Writes only on success, fully replacing the target route.
        """
        source = self.route_for(opposite_direction(target_direction))
        result = generate_reverse_route(source, target_direction, options)
        if result.success and result.route is not None:
            self.replace_route(target_direction, result.route)
        return result

    # =========================================================================
    # Text projection
    # =========================================================================

    def get_text(self) -> str:
        return render_route_group_document(self.state.route_group)

    def apply_text(self, text: str) -> ApplyTextResult:
        """
        Parse ``text`` and apply it through the ordinary mutators.

        Nothing is changed when the text does not parse.
        """
        parsed = parse_route_group_document(text)
        if not parsed.valid:
            return ApplyTextResult(
                success=False,
                errors=parsed.errors,
                message=f"Text has {len(parsed.errors)} error(s); workspace unchanged",
            )

        group = parsed.route_group
        self.update_route_group(
            id=group.id,
            name=group.name,
            name_sinhala=group.name_sinhala,
            name_tamil=group.name_tamil,
            description=group.description,
        )
        parsed_directions = {route.direction for route in group.routes}
        for route in self.state.route_group.routes:
            if route.direction not in parsed_directions:
                self.remove_route(route.direction)
        for route in group.routes:
            self.replace_route(route.direction, route)
        logger.info(f"[Workspace] Applied route group text ({len(group.routes)} route(s))")
        return ApplyTextResult(success=True, message="Route group updated from text")

    # =========================================================================
    # Directory
    # =========================================================================

    async def load_route_group(self, directory: RouteDirectory, group_id: str) -> bool:
        try:
            group = await directory.get_route_group(group_id)
        except DirectoryError as e:
            self.load_error = e.message
            logger.warning(f"[Workspace] Failed to load route group {group_id}: {e.message}")
            return False
        self.load_error = None
        self._commit(RouteWorkspaceData(route_group=group), f"load_route_group {group_id}")
        return True

    async def resolve_stops(
        self,
        directory: RouteDirectory,
        direction: DirectionEnum,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BulkStopSearchResult:
        """Look every stop of one route up in the directory and apply the outcome."""
        index = self.route_index_for(direction)
        if index < 0:
            return BulkStopSearchResult()
        route_stops = self.state.route_group.routes[index].route_stops
        bulk = await search_all_stops_existence(directory, route_stops, on_progress)
        current = self.state.route_group.routes[index].route_stops
        self.update_route(index, route_stops=apply_bulk_search_results(current, bulk))
        return bulk
