"""
Pytest configuration and shared fixtures for route workspace tests.
"""
import pytest
from datetime import date

from route_workspace.models.route import DirectionEnum, Route, RouteGroup
from route_workspace.models.schedule import RouteReference, RouteStopReference, Schedule
from route_workspace.services.route_directory import InMemoryRouteDirectory
from route_workspace.tests.helpers import make_route, make_schedule, make_stop


# ============================================================
# FIXTURES FOR ROUTES
# ============================================================

@pytest.fixture
def outbound_route() -> Route:
    """Four-stop outbound route, distances [0, 3, 7.5, 12]."""
    return make_route([0.0, 3.0, 7.5, 12.0])


@pytest.fixture
def route_group(outbound_route) -> RouteGroup:
    return RouteGroup(name="Colombo - Kandy", routes=[outbound_route])


# ============================================================
# FIXTURES FOR SCHEDULES
# ============================================================

@pytest.fixture
def today() -> date:
    return date(2026, 1, 1)


@pytest.fixture
def route_reference() -> RouteReference:
    """Paired route with stops at 0, 10 and 25 km."""
    return RouteReference(
        id="R1",
        name="Colombo - Kandy",
        route_number="1",
        direction=DirectionEnum.OUTBOUND,
        distance_km=25.0,
        route_stops=[
            RouteStopReference(id="RS1", stop_id="S1", stop_name="Colombo", stop_order=0, distance_from_start_km=0.0),
            RouteStopReference(id="RS2", stop_id="S2", stop_name="Kadawatha", stop_order=1, distance_from_start_km=10.0),
            RouteStopReference(id="RS3", stop_id="S3", stop_name="Kandy", stop_order=2, distance_from_start_km=25.0),
        ],
    )


@pytest.fixture
def timed_schedule() -> Schedule:
    """Weekday schedule on R1: 06:00 from Colombo, 07:00 at Kandy."""
    return make_schedule()


# ============================================================
# FIXTURES FOR THE DIRECTORY
# ============================================================

@pytest.fixture
def directory() -> InMemoryRouteDirectory:
    return InMemoryRouteDirectory(stops=[
        make_stop("S1", "Colombo", 6.93, 79.85),
        make_stop("S2", "Kadawatha", 7.0, 79.95),
        make_stop("S3", "Kandy", 7.29, 80.63),
    ])


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that combine several components")
    config.addinivalue_line("markers", "api: marks HTTP surface tests")
