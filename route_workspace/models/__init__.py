"""
Data models for the route workspace engine.
"""

from route_workspace.models.route import (
    DirectionEnum,
    RoadTypeEnum,
    StopExistenceType,
    StopRole,
    Location,
    Stop,
    RouteStop,
    Route,
    RouteGroup,
    RouteWorkspaceData,
    stop_role,
)
from route_workspace.models.schedule import (
    ScheduleTypeEnum,
    ScheduleStatusEnum,
    ExceptionTypeEnum,
    RouteStopReference,
    RouteReference,
    ScheduleStop,
    ScheduleCalendar,
    ScheduleException,
    Schedule,
    ScheduleWorkspaceData,
    ScheduleDocument,
)
from route_workspace.models.results import (
    ValidationSeverity,
    ValidationIssue,
    ScheduleValidationResult,
    BulkValidationResult,
    ParseIssue,
    ScheduleParseResult,
    RouteGroupParseResult,
    ApplyTextResult,
    RouteGenerationResult,
    TimetableGenerationResult,
    SubmissionStatus,
    SubmissionItemState,
    SubmissionReport,
)

__all__ = [
    # Route side
    'DirectionEnum', 'RoadTypeEnum', 'StopExistenceType', 'StopRole',
    'Location', 'Stop', 'RouteStop', 'Route', 'RouteGroup', 'RouteWorkspaceData',
    'stop_role',
    # Schedule side
    'ScheduleTypeEnum', 'ScheduleStatusEnum', 'ExceptionTypeEnum',
    'RouteStopReference', 'RouteReference', 'ScheduleStop', 'ScheduleCalendar',
    'ScheduleException', 'Schedule', 'ScheduleWorkspaceData', 'ScheduleDocument',
    # Results
    'ValidationSeverity', 'ValidationIssue', 'ScheduleValidationResult',
    'BulkValidationResult', 'ParseIssue', 'ScheduleParseResult',
    'RouteGroupParseResult', 'ApplyTextResult', 'RouteGenerationResult',
    'TimetableGenerationResult', 'SubmissionStatus', 'SubmissionItemState',
    'SubmissionReport',
]
