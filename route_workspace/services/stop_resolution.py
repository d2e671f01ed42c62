"""
Stop existence resolution against the external directory.

Before a route group is submitted, each route stop is looked up in the
directory (by id first, otherwise by name). Found stops are replaced with the
directory's copy and marked EXISTING; stops searched by id and not found get
their id cleared and are marked NEW so the submission creates them.

Lookups run one at a time; the directory is not asked for concurrent reads.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from route_workspace.models.route import RouteStop, Stop, StopExistenceType
from route_workspace.services.route_directory import DirectoryError, RouteDirectory

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class StopSearchResult:
    found: bool
    searched_by: str  # "id" or "name"
    search_value: str
    stop: Optional[Stop] = None
    error: Optional[str] = None


@dataclass
class StopSearchEntry:
    stop_index: int
    order_number: int
    original_stop: Stop
    result: StopSearchResult


@dataclass
class BulkStopSearchResult:
    results: List[StopSearchEntry] = field(default_factory=list)
    found_count: int = 0
    not_found_count: int = 0
    error_count: int = 0

    @property
    def total_processed(self) -> int:
        return self.found_count + self.not_found_count + self.error_count


def can_search_stop(stop: Stop) -> bool:
    return bool(stop.id.strip()) or bool(stop.name.strip())


async def search_stop_existence(directory: RouteDirectory, stop: Stop) -> StopSearchResult:
    """Look a stop up by id, or by name when it has no id. Never raises."""
    search_id = stop.id.strip() or None
    search_name = None if search_id else (stop.name.strip() or None)
    searched_by = "id" if search_id else "name"
    search_value = search_id or search_name or ""

    if not search_value:
        return StopSearchResult(
            found=False, searched_by="name", search_value="",
            error="No valid search criteria (ID or name) provided",
        )

    try:
        found = await directory.find_stop(stop_id=search_id, name=search_name)
    except DirectoryError as e:
        logger.warning(f"[Stop Resolution] Lookup of {searched_by} '{search_value}' failed: {e.message}")
        return StopSearchResult(found=False, searched_by=searched_by, search_value=search_value, error=e.message)

    if found is None:
        return StopSearchResult(found=False, searched_by=searched_by, search_value=search_value)
    return StopSearchResult(
        found=True,
        searched_by=searched_by,
        search_value=search_value,
        stop=found.model_copy(update={"type": StopExistenceType.EXISTING}),
    )


def process_stop_existence_result(original: Stop, result: StopSearchResult) -> Stop:
    """Stop to keep in the workspace after a lookup."""
    if result.found and result.stop is not None:
        return result.stop
    if result.error:
        return original
    clear_id = result.searched_by == "id"
    return original.model_copy(update={
        "id": "" if clear_id else original.id,
        "type": StopExistenceType.NEW,
    })


async def search_all_stops_existence(
    directory: RouteDirectory,
    route_stops: List[RouteStop],
    on_progress: Optional[ProgressCallback] = None,
) -> BulkStopSearchResult:
    """
    Look up every route stop, sequentially.

    Args:
        directory: Directory to query
        route_stops: Stops of one route
        on_progress: Called before each lookup with (current, total, stop name)

    Returns:
        BulkStopSearchResult with one entry per route stop, in stop order
    """
    bulk = BulkStopSearchResult()
    searchable = []
    for index, route_stop in enumerate(route_stops):
        if can_search_stop(route_stop.stop):
            searchable.append((index, route_stop))
            continue
        bulk.results.append(StopSearchEntry(
            stop_index=index,
            order_number=route_stop.order_number,
            original_stop=route_stop.stop,
            result=StopSearchResult(
                found=False, searched_by="name", search_value="", error="Stop has no ID or name to search",
            ),
        ))
        bulk.error_count += 1

    total = len(searchable)
    for position, (index, route_stop) in enumerate(searchable, start=1):
        if on_progress is not None:
            on_progress(position, total, route_stop.stop.name or f"Stop {route_stop.order_number}")
        result = await search_stop_existence(directory, route_stop.stop)
        bulk.results.append(StopSearchEntry(
            stop_index=index,
            order_number=route_stop.order_number,
            original_stop=route_stop.stop,
            result=result,
        ))
        if result.error:
            bulk.error_count += 1
        elif result.found:
            bulk.found_count += 1
        else:
            bulk.not_found_count += 1

    bulk.results.sort(key=lambda entry: entry.stop_index)
    logger.info(
        f"[Stop Resolution] {bulk.total_processed} stop(s): {bulk.found_count} found, "
        f"{bulk.not_found_count} not found, {bulk.error_count} error(s)"
    )
    return bulk


def apply_bulk_search_results(route_stops: List[RouteStop], bulk: BulkStopSearchResult) -> List[RouteStop]:
    """Return new route stops with every looked-up stop replaced."""
    by_index = {entry.stop_index: entry for entry in bulk.results}
    updated = []
    for index, route_stop in enumerate(route_stops):
        entry = by_index.get(index)
        if entry is None:
            updated.append(route_stop)
            continue
        stop = process_stop_existence_result(route_stop.stop, entry.result)
        updated.append(route_stop.model_copy(update={"stop": stop}))
    return updated
