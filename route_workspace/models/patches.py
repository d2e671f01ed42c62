"""
Tagged stop patches.

Form edits on a route stop are expressed as one of the patch variants below
and applied with ``apply_stop_patch``. Each variant carries a ``kind`` literal;
dispatch goes through ``_PATCH_HANDLERS``, which must cover every variant.
"""

from typing import Any, Callable, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from route_workspace.models.route import Location, RouteStop, Stop, StopExistenceType


class _StopPatch(BaseModel):
    model_config = ConfigDict(frozen=True)


class SetStopName(_StopPatch):
    kind: Literal["set_name"] = "set_name"
    value: str


class SetStopTranslations(_StopPatch):
    kind: Literal["set_translations"] = "set_translations"
    name_sinhala: Optional[str] = None
    name_tamil: Optional[str] = None


class SetStopDescription(_StopPatch):
    kind: Literal["set_description"] = "set_description"
    value: str


class SetStopLocation(_StopPatch):
    """Partial location update; only the keys present are changed."""

    kind: Literal["set_location"] = "set_location"
    patch: Dict[str, Any] = Field(default_factory=dict)


class SetStopAccessibility(_StopPatch):
    kind: Literal["set_accessibility"] = "set_accessibility"
    value: bool


class SetStopDistance(_StopPatch):
    kind: Literal["set_distance"] = "set_distance"
    value: Optional[float] = Field(None, ge=0)


class SetStopIdentity(_StopPatch):
    """Bind the route stop to a directory stop id (or clear it)."""

    kind: Literal["set_identity"] = "set_identity"
    stop_id: str = ""
    existence: StopExistenceType = StopExistenceType.NEW


class ReplaceStop(_StopPatch):
    kind: Literal["replace_stop"] = "replace_stop"
    stop: Stop


StopPatch = Union[
    SetStopName,
    SetStopTranslations,
    SetStopDescription,
    SetStopLocation,
    SetStopAccessibility,
    SetStopDistance,
    SetStopIdentity,
    ReplaceStop,
]


# =============================================================================
# Handlers
# =============================================================================

def _with_stop(route_stop: RouteStop, **fields) -> RouteStop:
    return route_stop.model_copy(update={"stop": route_stop.stop.model_copy(update=fields)})


def _set_name(route_stop: RouteStop, patch: SetStopName) -> RouteStop:
    return _with_stop(route_stop, name=patch.value)


def _set_translations(route_stop: RouteStop, patch: SetStopTranslations) -> RouteStop:
    fields = {}
    if patch.name_sinhala is not None:
        fields["name_sinhala"] = patch.name_sinhala
    if patch.name_tamil is not None:
        fields["name_tamil"] = patch.name_tamil
    return _with_stop(route_stop, **fields)


def _set_description(route_stop: RouteStop, patch: SetStopDescription) -> RouteStop:
    return _with_stop(route_stop, description=patch.value)


def _set_location(route_stop: RouteStop, patch: SetStopLocation) -> RouteStop:
    unknown = set(patch.patch) - set(Location.model_fields)
    if unknown:
        raise ValueError(f"Unknown location fields: {sorted(unknown)}")
    location = Location.model_validate({**dict(route_stop.stop.location), **patch.patch})
    return _with_stop(route_stop, location=location)


def _set_accessibility(route_stop: RouteStop, patch: SetStopAccessibility) -> RouteStop:
    return _with_stop(route_stop, is_accessible=patch.value)


def _set_distance(route_stop: RouteStop, patch: SetStopDistance) -> RouteStop:
    return route_stop.model_copy(update={"distance_from_start": patch.value})


def _set_identity(route_stop: RouteStop, patch: SetStopIdentity) -> RouteStop:
    return _with_stop(route_stop, id=patch.stop_id, type=patch.existence)


def _replace_stop(route_stop: RouteStop, patch: ReplaceStop) -> RouteStop:
    return route_stop.model_copy(update={"stop": patch.stop})


_PATCH_HANDLERS: Dict[str, Callable[[RouteStop, Any], RouteStop]] = {
    "set_name": _set_name,
    "set_translations": _set_translations,
    "set_description": _set_description,
    "set_location": _set_location,
    "set_accessibility": _set_accessibility,
    "set_distance": _set_distance,
    "set_identity": _set_identity,
    "replace_stop": _replace_stop,
}

_PATCH_KINDS = {variant.model_fields["kind"].default for variant in StopPatch.__args__}
if _PATCH_KINDS != set(_PATCH_HANDLERS):
    raise RuntimeError(f"Stop patch handlers out of sync: {sorted(_PATCH_KINDS ^ set(_PATCH_HANDLERS))}")


def apply_stop_patch(route_stop: RouteStop, patch: StopPatch) -> RouteStop:
    """
    Apply one patch to a route stop and return the new route stop.

    Raises:
        ValueError: For an unknown patch kind or unknown location fields
    """
    handler = _PATCH_HANDLERS.get(getattr(patch, "kind", None))
    if handler is None:
        raise ValueError(f"Unsupported stop patch: {patch!r}")
    return handler(route_stop, patch)
