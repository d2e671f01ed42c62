"""
Tests for stop existence resolution against the directory.
"""
import pytest

from route_workspace.models.route import RouteStop, Stop, StopExistenceType
from route_workspace.services.route_directory import InMemoryRouteDirectory
from route_workspace.services.stop_resolution import (
    StopSearchResult,
    apply_bulk_search_results,
    can_search_stop,
    process_stop_existence_result,
    search_all_stops_existence,
    search_stop_existence,
)
from route_workspace.tests.helpers import make_stop


class TestSearchStopExistence:

    @pytest.mark.asyncio
    async def test_found_by_id(self, directory):
        result = await search_stop_existence(directory, make_stop("S2", "Old name"))
        assert result.found
        assert result.searched_by == "id"
        assert result.stop.name == "Kadawatha"
        assert result.stop.type == StopExistenceType.EXISTING

    @pytest.mark.asyncio
    async def test_found_by_name_is_case_insensitive(self, directory):
        result = await search_stop_existence(directory, make_stop("", " kandy "))
        assert result.found
        assert (result.searched_by, result.search_value) == ("name", "kandy")
        assert result.stop.id == "S3"

    @pytest.mark.asyncio
    async def test_not_found(self, directory):
        result = await search_stop_existence(directory, make_stop("S99", "Galle"))
        assert not result.found
        assert result.error is None
        assert directory.calls == ["find_stop"]

    @pytest.mark.asyncio
    async def test_nothing_to_search(self, directory):
        result = await search_stop_existence(directory, Stop())
        assert not result.found
        assert result.error == "No valid search criteria (ID or name) provided"
        assert directory.calls == []

    @pytest.mark.asyncio
    async def test_directory_error_is_captured(self):
        directory = InMemoryRouteDirectory(fail_on={"find_stop": lambda value: True})
        result = await search_stop_existence(directory, make_stop("S1", "Colombo"))
        assert not result.found
        assert result.error == "find_stop rejected by directory"


class TestProcessResult:

    def test_found_stop_replaces_original(self):
        found = make_stop("S1", "Colombo", 6.93, 79.85)
        result = StopSearchResult(found=True, searched_by="name", search_value="Colombo", stop=found)
        assert process_stop_existence_result(make_stop("", "Colombo"), result) == found

    def test_missing_id_is_cleared(self):
        result = StopSearchResult(found=False, searched_by="id", search_value="S99")
        stop = process_stop_existence_result(make_stop("S99", "Galle"), result)
        assert stop.id == ""
        assert stop.type == StopExistenceType.NEW
        assert stop.name == "Galle"

    def test_missing_name_becomes_new(self):
        original = make_stop("", "Galle").model_copy(update={"type": StopExistenceType.EXISTING})
        result = StopSearchResult(found=False, searched_by="name", search_value="Galle")
        assert process_stop_existence_result(original, result).type == StopExistenceType.NEW

    def test_error_keeps_original(self):
        original = make_stop("S1", "Colombo")
        result = StopSearchResult(found=False, searched_by="id", search_value="S1", error="timeout")
        assert process_stop_existence_result(original, result) is original

    def test_can_search_stop(self):
        assert can_search_stop(make_stop("S1", ""))
        assert can_search_stop(make_stop("", "Galle"))
        assert not can_search_stop(Stop(name="  "))


class TestBulkSearch:

    @pytest.mark.asyncio
    async def test_results_follow_stop_order(self, directory):
        route_stops = [
            RouteStop(order_number=0, stop=Stop()),
            RouteStop(order_number=1, stop=make_stop("", "Colombo")),
            RouteStop(order_number=2, stop=make_stop("S3", "Kandy")),
        ]
        bulk = await search_all_stops_existence(directory, route_stops)
        assert [entry.stop_index for entry in bulk.results] == [0, 1, 2]
        assert (bulk.found_count, bulk.not_found_count, bulk.error_count) == (2, 0, 1)
        assert bulk.total_processed == 3

        updated = apply_bulk_search_results(route_stops, bulk)
        assert [rs.stop.id for rs in updated] == ["", "S1", "S3"]
        assert [rs.order_number for rs in updated] == [0, 1, 2]
        assert route_stops[1].stop.id == ""

    @pytest.mark.asyncio
    async def test_lookups_are_sequential(self, directory):
        route_stops = [RouteStop(order_number=i, stop=make_stop(f"S{i + 1}", "")) for i in range(3)]
        await search_all_stops_existence(directory, route_stops)
        assert directory.calls == ["find_stop", "find_stop", "find_stop"]
