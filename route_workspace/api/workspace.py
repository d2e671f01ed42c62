"""
Workspace API - stateless endpoints over the workspace engine.

This module provides REST API endpoints for:
- Validating a schedule set (POST /api/schedules/validate)
- Generating stop times from distances (POST /api/schedules/timetable)
- Rendering and parsing schedule text (POST /api/schedules/text[/parse])
- Generating a reverse route (POST /api/routes/reverse)
- Validating a route group (POST /api/routes/validate)
- Rendering and parsing route group text (POST /api/routes/text[/parse])
- Reading UI defaults (GET /api/workspace/config)

No state is kept between requests; the client owns its workspace.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from route_workspace.config import config
from route_workspace.models.route import DirectionEnum, Route, RouteGroup
from route_workspace.models.schedule import RouteReference, Schedule, ScheduleDocument, ScheduleStop
from route_workspace.services.route_reversal import ReversalOptions, generate_reverse_route
from route_workspace.services.route_validation import validate_route_group
from route_workspace.services.schedule_validation import validate_all_schedules, validation_summary
from route_workspace.services.timetable_generator import generate_stop_times
from route_workspace.services.workspace_serializer import (
    parse_route_group_document,
    parse_schedule_document,
    render_route_group_document,
    render_schedule_document,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["workspace"])


# =============================================================================
# Request bodies
# =============================================================================

class ScheduleSetRequest(BaseModel):
    route: Optional[RouteReference] = None
    schedules: List[Schedule] = Field(default_factory=list)


class TimetableRequest(BaseModel):
    route_stops: List[ScheduleStop] = Field(..., min_length=1)
    start_time: str = Field(default_factory=lambda: config.DEFAULT_START_TIME)
    avg_speed_kmh: float = Field(default_factory=lambda: config.DEFAULT_AVG_SPEED_KMH)
    dwell_seconds: float = Field(default_factory=lambda: config.DEFAULT_DWELL_SECONDS)


class TextRequest(BaseModel):
    text: str


class ReverseRouteRequest(BaseModel):
    source: Route
    target_direction: Optional[DirectionEnum] = None
    swap_direction_words: bool = True
    preserve_metadata: bool = True
    name_suffix: Optional[str] = None


# =============================================================================
# Schedule endpoints
# =============================================================================

@router.post(
    "/schedules/validate",
    summary="Validate schedule set",
    description="Validate every schedule of a route plus the cross-schedule rules"
)
async def validate_schedules(request: ScheduleSetRequest) -> Dict[str, Any]:
    result = validate_all_schedules(request.route, request.schedules)
    payload = result.to_dict()
    payload["summary"] = validation_summary(result)
    return payload


@router.post(
    "/schedules/timetable",
    summary="Generate stop times",
    description="Fill arrival/departure times from stop distances, average speed and dwell time"
)
async def generate_timetable(request: TimetableRequest) -> Dict[str, Any]:
    try:
        stops = generate_stop_times(
            request.route_stops,
            request.start_time,
            request.avg_speed_kmh,
            request.dwell_seconds,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "success": False,
                "message": str(e)
            }
        )
    return {
        "success": True,
        "schedule_stops": [stop.model_dump(mode="json") for stop in stops],
    }


@router.post(
    "/schedules/text",
    summary="Render schedule text",
    description="Render a schedule document as YAML"
)
async def render_schedule_text(document: ScheduleDocument) -> Dict[str, str]:
    return {"text": render_schedule_document(document)}


@router.post(
    "/schedules/text/parse",
    summary="Parse schedule text",
    description="Parse YAML schedule text; errors are returned, never raised"
)
async def parse_schedule_text(request: TextRequest) -> Dict[str, Any]:
    return parse_schedule_document(request.text).model_dump(mode="json")


# =============================================================================
# Route endpoints
# =============================================================================

@router.post(
    "/routes/reverse",
    summary="Generate reverse route",
    description="Build the opposite-direction route from a populated source route"
)
async def reverse_route(request: ReverseRouteRequest) -> Dict[str, Any]:
    options = ReversalOptions(
        swap_direction_words=request.swap_direction_words,
        preserve_metadata=request.preserve_metadata,
        name_suffix=request.name_suffix,
    )
    result = generate_reverse_route(request.source, request.target_direction, options)
    if not result.success:
        logger.info(f"[Route Reversal] Request rejected: {result.message}")
    return result.model_dump(mode="json")


@router.post(
    "/routes/validate",
    summary="Validate route group",
    description="Check distances, stop order and the one-route-per-direction rule"
)
async def validate_routes(group: RouteGroup) -> Dict[str, Any]:
    return validate_route_group(group).to_dict()


@router.post(
    "/routes/text",
    summary="Render route group text",
    description="Render a route group as YAML"
)
async def render_route_group_text(group: RouteGroup) -> Dict[str, str]:
    return {"text": render_route_group_document(group)}


@router.post(
    "/routes/text/parse",
    summary="Parse route group text",
    description="Parse YAML route group text; errors are returned, never raised"
)
async def parse_route_group_text(request: TextRequest) -> Dict[str, Any]:
    return parse_route_group_document(request.text).model_dump(mode="json")


# =============================================================================
# Configuration
# =============================================================================

@router.get(
    "/workspace/config",
    summary="Get workspace defaults",
    description="Defaults used by the timetable generator and new stops"
)
async def get_workspace_config() -> Dict[str, Any]:
    return {
        "default_start_time": config.DEFAULT_START_TIME,
        "default_avg_speed_kmh": config.DEFAULT_AVG_SPEED_KMH,
        "default_dwell_seconds": config.DEFAULT_DWELL_SECONDS,
        "default_country": config.DEFAULT_COUNTRY,
        "directions": [direction.value for direction in DirectionEnum],
    }
