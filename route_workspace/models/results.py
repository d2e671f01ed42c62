"""
Result records returned by the workspace engine.

Every failure mode of the engine is returned as one of these records:
validation issues, parse issues, derivation results and submission reports.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from route_workspace.models.route import Route, RouteGroup
from route_workspace.models.schedule import ScheduleDocument, ScheduleStop


# =============================================================================
# Validation
# =============================================================================

class ValidationSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidationIssue(BaseModel):
    """
    One violation found by the validation engine.
    """

    severity: ValidationSeverity = Field(ValidationSeverity.ERROR, description="error, warning or info")
    field: str = Field(..., description="Offending field, e.g. schedule_stops[0].departure_time")
    message: str = Field(..., description="Human readable message")
    schedule_index: Optional[int] = Field(None, description="Index of the schedule in its set")
    stop_index: Optional[int] = Field(None, description="Index of the stop in its list")


class ScheduleValidationResult(BaseModel):
    """Result of validating one schedule (or one route)."""

    is_valid: bool = True
    issues: List[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == ValidationSeverity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == ValidationSeverity.WARNING]

    def first_error_message(self) -> Optional[str]:
        errors = self.errors
        return errors[0].message if errors else None

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors_count": len(self.errors),
            "warnings_count": len(self.warnings),
            "issues": [issue.model_dump(mode="json") for issue in self.issues],
        }


class BulkValidationResult(BaseModel):
    """Result of validating a whole schedule set (or route group)."""

    is_valid: bool = True
    schedule_results: List[ScheduleValidationResult] = Field(default_factory=list)
    cross_schedule_issues: List[ValidationIssue] = Field(default_factory=list)
    total_errors: int = 0
    total_warnings: int = 0

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "total_errors": self.total_errors,
            "total_warnings": self.total_warnings,
            "schedule_results": [result.to_dict() for result in self.schedule_results],
            "cross_schedule_issues": [issue.model_dump(mode="json") for issue in self.cross_schedule_issues],
        }


# =============================================================================
# Text parsing
# =============================================================================

class ParseIssue(BaseModel):
    location: str = Field(..., description="Path of the offending node, e.g. schedules[1].calendar")
    message: str


class ScheduleParseResult(BaseModel):
    valid: bool
    errors: List[ParseIssue] = Field(default_factory=list)
    document: Optional[ScheduleDocument] = None


class RouteGroupParseResult(BaseModel):
    valid: bool
    errors: List[ParseIssue] = Field(default_factory=list)
    route_group: Optional[RouteGroup] = None


class ApplyTextResult(BaseModel):
    """Outcome of applying edited text to a workspace."""

    success: bool
    errors: List[ParseIssue] = Field(default_factory=list)
    message: str = ""


# =============================================================================
# Derivations
# =============================================================================

class RouteGenerationResult(BaseModel):
    success: bool
    message: str
    warnings: List[str] = Field(default_factory=list)
    missing_preconditions: List[str] = Field(default_factory=list)
    route: Optional[Route] = None


class TimetableGenerationResult(BaseModel):
    success: bool
    message: str
    schedule_stops: List[ScheduleStop] = Field(default_factory=list)


# =============================================================================
# Submission
# =============================================================================

class SubmissionStatus(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    SAVING = "saving"
    SUCCESS = "success"
    ERROR = "error"


TERMINAL_SUBMISSION_STATUSES = {SubmissionStatus.SUCCESS, SubmissionStatus.ERROR}


class SubmissionItemState(BaseModel):
    index: int
    label: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    message: Optional[str] = None
    saved_id: Optional[str] = None


class SubmissionReport(BaseModel):
    status: SubmissionStatus = SubmissionStatus.PENDING
    items: List[SubmissionItemState] = Field(default_factory=list)
    success_count: int = 0
    error_count: int = 0
    pending_count: int = 0
    progress: float = Field(0.0, ge=0, le=100, description="Completed items in percent")
    incomplete: bool = False
    warnings: List[str] = Field(default_factory=list)
