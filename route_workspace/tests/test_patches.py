"""
Tests for tagged stop patches.
"""
import pytest

from pydantic import ValidationError

from route_workspace.models.patches import (
    ReplaceStop,
    SetStopAccessibility,
    SetStopDescription,
    SetStopDistance,
    SetStopIdentity,
    SetStopLocation,
    SetStopName,
    SetStopTranslations,
    StopPatch,
    _PATCH_HANDLERS,
    apply_stop_patch,
)
from route_workspace.models.route import StopExistenceType
from route_workspace.tests.helpers import make_stop


@pytest.fixture
def route_stop(outbound_route):
    return outbound_route.route_stops[1]


class TestApplyStopPatch:

    def test_set_name_returns_new_value(self, route_stop):
        updated = apply_stop_patch(route_stop, SetStopName(value="Peliyagoda"))
        assert updated.stop.name == "Peliyagoda"
        assert route_stop.stop.name == "Kelaniya"

    def test_translations_only_touch_given_fields(self, route_stop):
        first = apply_stop_patch(route_stop, SetStopTranslations(name_sinhala="කැලණිය", name_tamil="களனி"))
        second = apply_stop_patch(first, SetStopTranslations(name_tamil="கெலனிய"))
        assert second.stop.name_sinhala == "කැලණිය"
        assert second.stop.name_tamil == "கெலனிய"

    def test_description_and_accessibility(self, route_stop):
        updated = apply_stop_patch(route_stop, SetStopDescription(value="Near the temple"))
        updated = apply_stop_patch(updated, SetStopAccessibility(value=True))
        assert updated.stop.description == "Near the temple"
        assert updated.stop.is_accessible is True

    def test_partial_location_update(self, route_stop):
        longitude = route_stop.stop.location.longitude
        updated = apply_stop_patch(route_stop, SetStopLocation(patch={"latitude": 6.95, "address": "Main St"}))
        assert updated.stop.location.latitude == 6.95
        assert updated.stop.location.address == "Main St"
        assert updated.stop.location.longitude == longitude

    def test_unknown_location_field_rejected(self, route_stop):
        with pytest.raises(ValueError):
            apply_stop_patch(route_stop, SetStopLocation(patch={"altitude": 12}))

    def test_distance(self, route_stop):
        assert apply_stop_patch(route_stop, SetStopDistance(value=4.2)).distance_from_start == 4.2
        assert apply_stop_patch(route_stop, SetStopDistance(value=None)).distance_from_start is None

    def test_negative_distance_patch_rejected(self):
        with pytest.raises(ValidationError):
            SetStopDistance(value=-0.5)

    def test_identity_binds_directory_stop(self, route_stop):
        updated = apply_stop_patch(
            route_stop, SetStopIdentity(stop_id="NEW-1", existence=StopExistenceType.EXISTING)
        )
        assert updated.stop.id == "NEW-1"
        assert updated.stop.type == StopExistenceType.EXISTING
        assert updated.stop.name == route_stop.stop.name

    def test_replace_stop_keeps_position(self, route_stop):
        replacement = make_stop("S9", "Kiribathgoda")
        updated = apply_stop_patch(route_stop, ReplaceStop(stop=replacement))
        assert updated.stop == replacement
        assert updated.order_number == route_stop.order_number
        assert updated.distance_from_start == route_stop.distance_from_start

    def test_unknown_patch_rejected(self, route_stop):
        with pytest.raises(ValueError):
            apply_stop_patch(route_stop, {"kind": "set_name", "value": "x"})

    def test_location_strings_are_coerced(self, route_stop):
        updated = apply_stop_patch(route_stop, SetStopLocation(patch={"latitude": "6.95"}))
        assert updated.stop.location.latitude == 6.95
        assert updated.stop.location.longitude == route_stop.stop.location.longitude

    def test_every_patch_kind_has_a_handler(self):
        kinds = {variant.model_fields["kind"].default for variant in StopPatch.__args__}
        assert kinds == set(_PATCH_HANDLERS)
