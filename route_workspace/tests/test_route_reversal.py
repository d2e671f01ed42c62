"""
Tests for reverse route generation.
"""
import pytest

from route_workspace.models.route import DirectionEnum, RouteStop
from route_workspace.services.route_reversal import (
    ReversalOptions,
    can_generate_reverse_route,
    check_reversal_preconditions,
    generate_reverse_route,
    swap_direction_words,
)
from route_workspace.tests.helpers import make_route, make_stop


# =============================================================================
# Direction words
# =============================================================================

class TestSwapDirectionWords:

    def test_english_pairs_swap_once(self):
        assert swap_direction_words("Colombo to Kandy") == "Colombo from Kandy"
        assert swap_direction_words("North Express") == "South Express"

    def test_word_boundaries(self):
        # "Toronto" and "upper" must not be touched
        assert swap_direction_words("Toronto upper road") == "Toronto upper road"

    def test_sinhala_and_tamil(self):
        assert swap_direction_words("කොළඹ සිට මහනුවර දක්වා", "si") == "කොළඹ දක්වා මහනුවර සිට"
        assert swap_direction_words("வடக்கு", "ta") == "தெற்கு"

    def test_empty_text(self):
        assert swap_direction_words("") == ""


# =============================================================================
# Preconditions
# =============================================================================

class TestPreconditions:

    def test_single_stop_fails_and_lists_reason(self):
        source = make_route([0.0])
        result = generate_reverse_route(source)
        assert not result.success
        assert result.route is None
        assert any("at least 2 stops" in item for item in result.missing_preconditions)

    def test_missing_distance_is_never_guessed(self, outbound_route):
        stops = list(outbound_route.route_stops)
        stops[2] = stops[2].model_copy(update={"distance_from_start": None})
        source = outbound_route.model_copy(update={"route_stops": stops})
        result = generate_reverse_route(source)
        assert not result.success
        assert any("no distance" in item for item in result.missing_preconditions)

    def test_missing_stop_ids(self):
        source = make_route([0.0, 5.0], with_ids=False)
        missing = check_reversal_preconditions(source)
        assert len([item for item in missing if "no stop id" in item]) == 2
        assert not can_generate_reverse_route(source)

    def test_same_direction_rejected(self, outbound_route):
        result = generate_reverse_route(outbound_route, DirectionEnum.OUTBOUND)
        assert not result.success

    def test_no_source(self):
        assert check_reversal_preconditions(None) == ["Source route is required"]


# =============================================================================
# Generation
# =============================================================================

class TestGenerateReverseRoute:

    def test_distances_are_mirrored(self, outbound_route):
        result = generate_reverse_route(outbound_route, DirectionEnum.INBOUND)
        assert result.success
        route = result.route
        assert [rs.distance_from_start for rs in route.route_stops] == [0.0, 4.5, 9.0, 12.0]
        assert [rs.stop.id for rs in route.route_stops] == ["S4", "S3", "S2", "S1"]
        assert [rs.order_number for rs in route.route_stops] == [0, 1, 2, 3]

    def test_route_metadata(self, outbound_route):
        route = generate_reverse_route(outbound_route).route
        assert route.direction == DirectionEnum.INBOUND
        assert route.name == "Colombo from Kandy"
        assert route.start_stop_id == "S4"
        assert route.end_stop_id == "S1"
        assert route.distance_km == outbound_route.distance_km
        assert route.estimated_duration_minutes == 45
        assert route.route_number == "1"
        assert route.id is None
        assert all(rs.id is None for rs in route.route_stops)
        assert "Colombo to Kandy" in route.description

    def test_success_message(self, outbound_route):
        result = generate_reverse_route(outbound_route)
        assert result.message == "Successfully generated inbound route from outbound route with 4 stops."
        assert result.warnings == []

    def test_name_without_direction_words_gets_suffix(self, outbound_route):
        source = outbound_route.model_copy(update={"name": "Colombo - Kandy"})
        assert generate_reverse_route(source).route.name == "Colombo - Kandy (Reverse)"

    def test_options(self, outbound_route):
        options = ReversalOptions(swap_direction_words=False, preserve_metadata=False, name_suffix="B")
        route = generate_reverse_route(outbound_route, options=options).route
        assert route.name == "Colombo to Kandy (Reverse) B"
        assert route.route_number == ""

    def test_missing_coordinates_warns(self, outbound_route):
        stops = list(outbound_route.route_stops)
        stops[1] = stops[1].model_copy(update={"stop": make_stop("S2", "Kelaniya")})
        source = outbound_route.model_copy(update={"route_stops": stops})
        result = generate_reverse_route(source)
        assert result.success
        assert "1 stop(s) are missing coordinates." in result.warnings

    def test_non_monotonic_distances_warn(self):
        source = make_route([0.0, 6.0, 4.0, 10.0])
        result = generate_reverse_route(source)
        assert result.success
        assert any("not in increasing order" in warning for warning in result.warnings)

    def test_total_falls_back_to_largest_distance(self):
        source = make_route([0.0, 2.0, 5.0]).model_copy(update={"distance_km": None})
        route = generate_reverse_route(source).route
        assert [rs.distance_from_start for rs in route.route_stops] == [0.0, 3.0, 5.0]

    def test_route_longer_than_destination_warns(self):
        source = make_route([0.0, 2.0, 5.0]).model_copy(update={"distance_km": 6.0})
        result = generate_reverse_route(source)
        assert result.success
        assert [rs.distance_from_start for rs in result.route.route_stops] == [1.0, 4.0, 6.0]
        assert result.warnings == [
            "Route distance 6.0 km is longer than the destination's distance (5.0 km); "
            "the reversed route starts at 1.0 km instead of 0."
        ]

    def test_source_is_not_modified(self, outbound_route):
        before = outbound_route.model_dump()
        generate_reverse_route(outbound_route)
        assert outbound_route.model_dump() == before

    def test_two_stop_route(self):
        source = make_route([0.0, 8.25])
        route = generate_reverse_route(source).route
        assert [rs.distance_from_start for rs in route.route_stops] == [0.0, 8.25]
