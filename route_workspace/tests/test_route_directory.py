"""
Tests for the directory implementations (in-memory and HTTP).

The HTTP client is exercised against ``httpx.MockTransport`` handlers.
"""
import json

import httpx
import pytest

from route_workspace.models.route import DirectionEnum, StopExistenceType
from route_workspace.models.schedule import ExceptionTypeEnum, ScheduleException
from route_workspace.services.route_directory import (
    DirectoryError,
    HttpRouteDirectory,
    InMemoryRouteDirectory,
    route_group_to_request,
    route_to_reference,
    schedule_to_request,
)
from route_workspace.services.schedule_workspace import ScheduleWorkspace
from route_workspace.tests.helpers import make_schedule, make_stop

BASE_URL = "http://directory.test"


def http_directory(handler) -> HttpRouteDirectory:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    return HttpRouteDirectory(base_url=BASE_URL, client=client)


# =============================================================================
# In-memory directory
# =============================================================================

class TestInMemoryDirectory:

    @pytest.mark.asyncio
    async def test_list_stops_matches_names(self, directory):
        stops = await directory.list_stops("kan")
        assert [stop.id for stop in stops] == ["S3"]

    @pytest.mark.asyncio
    async def test_create_stop_assigns_id(self, directory):
        created = await directory.create_stop(make_stop("", "Kiribathgoda"))
        assert created.id
        assert created.type == StopExistenceType.EXISTING
        assert (await directory.find_stop(stop_id=created.id)) == created

    @pytest.mark.asyncio
    async def test_update_unknown_stop(self, directory):
        with pytest.raises(DirectoryError) as exc_info:
            await directory.update_stop("S99", make_stop("S99", "Galle"))
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_save_schedule_create_then_update(self, directory, timed_schedule):
        created = await directory.save_schedule("R1", timed_schedule)
        updated = await directory.save_schedule("R1", created.model_copy(update={"name": "Renamed"}))
        assert updated.id == created.id
        assert (await directory.get_schedule(created.id)).name == "Renamed"

    @pytest.mark.asyncio
    async def test_save_schedule_with_unknown_id(self, directory):
        with pytest.raises(DirectoryError) as exc_info:
            await directory.save_schedule("R1", make_schedule(id="SC404"))
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_saved_group_routes_are_readable(self, directory, route_group):
        saved = await directory.save_route_group(route_group)
        route = await directory.get_route(saved.routes[0].id)
        assert route.route_group_id == saved.id
        assert [rs.stop_id for rs in route.route_stops] == ["S1", "S2", "S3", "S4"]
        assert all(rs.id for rs in saved.routes[0].route_stops)
        assert await directory.list_routes_by_group(saved.id) == saved.routes

    @pytest.mark.asyncio
    async def test_fail_on_predicate(self, timed_schedule):
        directory = InMemoryRouteDirectory(fail_on={"save_schedule": lambda s: s.name == "Weekday Morning"})
        with pytest.raises(DirectoryError) as exc_info:
            await directory.save_schedule("R1", timed_schedule)
        assert exc_info.value.message == "save_schedule rejected by directory"
        assert directory.calls == ["save_schedule"]

    def test_route_to_reference(self, outbound_route):
        reference = route_to_reference(outbound_route, "G1", "Colombo - Kandy")
        assert reference.direction == DirectionEnum.OUTBOUND
        assert [rs.distance_from_start_km for rs in reference.route_stops] == [0.0, 3.0, 7.5, 12.0]
        assert reference.route_stops[0].latitude == outbound_route.route_stops[0].stop.location.latitude


# =============================================================================
# Wire mapping
# =============================================================================

class TestWireMapping:

    def test_schedule_payload(self, timed_schedule):
        schedule = timed_schedule.model_copy(update={
            "exceptions": [ScheduleException(exception_date="2026-04-14", exception_type=ExceptionTypeEnum.ADDED)],
        })
        payload = schedule_to_request("R1", schedule)
        assert payload["routeId"] == "R1"
        assert payload["calendar"]["monday"] is True
        assert payload["calendar"]["sunday"] is False
        assert payload["scheduleStops"][0] == {
            "id": None, "stopId": "S1", "stopOrder": 0, "arrivalTime": None, "departureTime": "06:00:00",
        }
        assert payload["exceptions"] == [{"exceptionDate": "2026-04-14", "exceptionType": "ADDED"}]

    def test_route_group_payload(self, route_group):
        payload = route_group_to_request(route_group)
        route = payload["routes"][0]
        assert route["direction"] == "OUTBOUND"
        assert route["startStopId"] == "S1"
        assert [rs["distanceFromStartKm"] for rs in route["routeStops"]] == [0.0, 3.0, 7.5, 12.0]


# =============================================================================
# HTTP directory
# =============================================================================

@pytest.mark.integration
class TestHttpDirectory:

    @pytest.mark.asyncio
    async def test_find_stop_by_id(self):
        def handler(request):
            assert request.url.path == "/api/stops/exists"
            assert request.url.params["id"] == "S1"
            return httpx.Response(200, json={
                "exists": True,
                "stop": {
                    "id": "S1",
                    "name": "Colombo Fort",
                    "nameSinhala": "කොටුව",
                    "location": {"latitude": 6.93, "longitude": 79.85, "city": "Colombo", "zipCode": "00100"},
                },
            })

        stop = await http_directory(handler).find_stop(stop_id="S1")
        assert stop.name == "Colombo Fort"
        assert stop.name_sinhala == "කොටුව"
        assert stop.location.zip_code == "00100"
        assert stop.type == StopExistenceType.EXISTING

    @pytest.mark.asyncio
    async def test_find_stop_by_name_missing(self):
        def handler(request):
            assert request.url.params["name"] == "Galle"
            return httpx.Response(200, json={"exists": False})

        assert await http_directory(handler).find_stop(name="Galle") is None

    @pytest.mark.asyncio
    async def test_list_stops_reads_page_content(self):
        def handler(request):
            return httpx.Response(200, json={"content": [{"id": "S1", "name": "Colombo"}, {"id": "S2", "name": "Kandy"}]})

        stops = await http_directory(handler).list_stops("o")
        assert [stop.id for stop in stops] == ["S1", "S2"]

    @pytest.mark.asyncio
    async def test_create_stop_sends_camel_case(self):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "NEW-1", **captured["body"]})

        stop = make_stop("", "Kiribathgoda", 6.97, 79.92).model_copy(update={"name_tamil": "கிரிபத்கொடை"})
        created = await http_directory(handler).create_stop(stop)
        assert captured["method"] == "POST"
        assert captured["body"]["nameTamil"] == "கிரிபத்கொடை"
        assert captured["body"]["location"]["latitude"] == 6.97
        assert created.id == "NEW-1"

    @pytest.mark.asyncio
    async def test_save_schedule_posts_then_puts(self, timed_schedule):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "id": "SC1",
                "name": body["name"],
                "routeId": body["routeId"],
                "effectiveStartDate": body["effectiveStartDate"],
                "scheduleCalendars": [{"id": "C1", **body["calendar"]}],
                "scheduleStops": [{**stop, "id": f"SS{i}"} for i, stop in enumerate(body["scheduleStops"])],
            })

        directory = http_directory(handler)
        created = await directory.save_schedule("R1", timed_schedule)
        await directory.save_schedule("R1", created)
        assert seen == [("POST", "/api/schedules"), ("PUT", "/api/schedules/SC1")]
        assert created.calendar.id == "C1"
        assert created.calendar.friday and not created.calendar.saturday
        assert created.schedule_stops[1].arrival_time == "06:24:00"
        assert created.schedule_stops[1].id == "SS1"

    @pytest.mark.asyncio
    async def test_get_route_sorts_stops(self):
        def handler(request):
            assert request.url.path == "/api/routes/R1"
            return httpx.Response(200, json={
                "id": "R1",
                "name": "Colombo - Kandy",
                "direction": "OUTBOUND",
                "routeGroupId": "G1",
                "routeStops": [
                    {"stopId": "S3", "stopName": "Kandy", "stopOrder": 2, "distanceFromStartKm": 25.0},
                    {"stopId": "S1", "stopName": "Colombo", "stopOrder": 0, "distanceFromStartKm": 0.0},
                    {"stopId": "S2", "stopName": "Kadawatha", "stopOrder": 1, "distanceFromStartKm": 10.0},
                ],
            })

        route = await http_directory(handler).get_route("R1")
        assert [rs.stop_id for rs in route.route_stops] == ["S1", "S2", "S3"]
        assert route.route_group_id == "G1"

    @pytest.mark.asyncio
    async def test_save_route_group(self, route_group):
        def handler(request):
            assert (request.method, request.url.path) == ("POST", "/api/route-groups")
            body = json.loads(request.content)
            return httpx.Response(200, json={"id": "G1", **body, "routes": [{"id": "R1", "name": "Colombo to Kandy"}]})

        saved = await http_directory(handler).save_route_group(route_group)
        assert saved.id == "G1"
        assert saved.routes[0].direction == DirectionEnum.OUTBOUND

    @pytest.mark.asyncio
    async def test_error_status_becomes_directory_error(self):
        def handler(request):
            return httpx.Response(404, json={"message": "Route not found"})

        with pytest.raises(DirectoryError) as exc_info:
            await http_directory(handler).get_route("R404")
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Route not found"

    @pytest.mark.asyncio
    async def test_timeout_becomes_directory_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(DirectoryError) as exc_info:
            await http_directory(handler).get_schedule("SC1")
        assert exc_info.value.message == "Request to /api/schedules/SC1 timed out"
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_unexpected_value_becomes_directory_error(self):
        def handler(request):
            return httpx.Response(200, json={"id": "R1", "name": "Colombo - Kandy", "direction": "BOTH"})

        with pytest.raises(DirectoryError) as exc_info:
            await http_directory(handler).get_route("R1")
        assert exc_info.value.message.startswith("Invalid response from /api/routes/R1")

    @pytest.mark.asyncio
    async def test_non_json_body_becomes_directory_error(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        with pytest.raises(DirectoryError) as exc_info:
            await http_directory(handler).get_schedule("SC1")
        assert exc_info.value.message == "Invalid response from /api/schedules/SC1: body is not JSON"
        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_workspace_load_reports_bad_response(self):
        def handler(request):
            return httpx.Response(200, json={"id": "R1", "direction": "BOTH"})

        workspace = ScheduleWorkspace()
        assert not await workspace.load_route(http_directory(handler), "R1")
        assert workspace.load_error.startswith("Invalid response from /api/routes/R1")
        assert workspace.route is None

    @pytest.mark.asyncio
    async def test_close(self):
        directory = http_directory(lambda request: httpx.Response(200, json={}))
        client = await directory._get_client()
        await directory.close()
        assert client.is_closed
