"""
Schedule Validation Engine.

Pure, read-only checks of one schedule or of a whole schedule set against the
paired route. Results list ``ValidationIssue`` records carrying the schedule
index, stop index, field path and severity. Errors make a result invalid;
warnings are advisory.

Origin and destination are taken from the paired route's stop ordering, not
from the schedule's own stop list: the origin stop must have a departure time
and the destination stop an arrival time.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from route_workspace.models.results import (
    BulkValidationResult,
    ScheduleValidationResult,
    ValidationIssue,
    ValidationSeverity,
)
from route_workspace.models.schedule import (
    WEEKDAY_FIELDS,
    ExceptionTypeEnum,
    RouteReference,
    Schedule,
    ScheduleStop,
    is_valid_date_format,
    is_valid_time_format,
    parse_time_to_seconds,
)

logger = logging.getLogger(__name__)

NO_END_DATE = "9999-12-31"


# =============================================================================
# Helpers
# =============================================================================

def _seconds(value: Optional[str]) -> Optional[int]:
    if not is_valid_time_format(value):
        return None
    return parse_time_to_seconds(value)


def _stop_label(index: int, stop: ScheduleStop) -> str:
    name = stop.stop_name or stop.stop_id
    return f"Stop {index + 1} ({name})" if name else f"Stop {index + 1}"


def _endpoint_stop_ids(schedule: Schedule, route: Optional[RouteReference]):
    """Stop ids of the origin and destination, from the route when available."""
    if route is not None and route.route_stops:
        ordered = sorted(route.route_stops, key=lambda rs: rs.stop_order)
        return ordered[0].stop_id, ordered[-1].stop_id
    if schedule.schedule_stops:
        ordered = sorted(schedule.schedule_stops, key=lambda s: s.stop_order)
        return ordered[0].stop_id, ordered[-1].stop_id
    return None, None


def _result(issues: List[ValidationIssue]) -> ScheduleValidationResult:
    is_valid = not any(issue.severity == ValidationSeverity.ERROR for issue in issues)
    return ScheduleValidationResult(is_valid=is_valid, issues=issues)


# =============================================================================
# Single schedule
# =============================================================================

def validate_schedule(
    schedule: Schedule,
    route: Optional[RouteReference] = None,
    schedule_index: int = 0,
) -> ScheduleValidationResult:
    """
    Validate one schedule.

    Args:
        schedule: Schedule to check
        route: Paired route, used to locate the origin/destination stops
        schedule_index: Index reported in every issue

    Returns:
        ScheduleValidationResult; ``is_valid`` is False when any error exists
    """
    issues: List[ValidationIssue] = []

    def add(field: str, message: str, severity=ValidationSeverity.ERROR, stop_index: Optional[int] = None):
        issues.append(ValidationIssue(
            severity=severity,
            field=field,
            message=message,
            schedule_index=schedule_index,
            stop_index=stop_index,
        ))

    # Basic fields
    if not schedule.name.strip():
        add("name", "Schedule name is required")
    if not schedule.route_id:
        add("route_id", "Route is required")

    start_ok = False
    if not schedule.effective_start_date:
        add("effective_start_date", "Effective start date is required")
    elif not is_valid_date_format(schedule.effective_start_date):
        add("effective_start_date", f"Invalid start date '{schedule.effective_start_date}', expected YYYY-MM-DD")
    else:
        start_ok = True

    end_date = schedule.effective_end_date
    if end_date:
        if not is_valid_date_format(end_date):
            add("effective_end_date", f"Invalid end date '{end_date}', expected YYYY-MM-DD")
        elif start_ok and end_date <= schedule.effective_start_date:
            add("effective_end_date", "End date must be after start date")

    if not schedule.calendar.selected_days():
        add("calendar", "At least one day must be selected in the calendar")

    _check_stops(schedule, route, add)
    _check_exceptions(schedule, add)

    result = _result(issues)
    logger.debug(
        f"[Validation] Schedule {schedule_index} '{schedule.name}': "
        f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)"
    )
    return result


def _check_stops(schedule: Schedule, route: Optional[RouteReference], add) -> None:
    stops = schedule.schedule_stops
    if not stops:
        add("schedule_stops", "Schedule has no stops defined", ValidationSeverity.WARNING)
        return

    seen_ids: Dict[str, int] = {}
    for index, stop in enumerate(stops):
        label = _stop_label(index, stop)
        prefix = f"schedule_stops[{index}]"

        if not stop.stop_id:
            add(f"{prefix}.stop_id", f"Stop {index + 1}: Missing stop ID", stop_index=index)
        elif stop.stop_id in seen_ids:
            add(
                f"{prefix}.stop_id",
                f"{label}: Duplicate stop ID (also used by stop {seen_ids[stop.stop_id] + 1})",
                stop_index=index,
            )
        else:
            seen_ids[stop.stop_id] = index

        if stop.arrival_time is not None and not is_valid_time_format(stop.arrival_time):
            add(f"{prefix}.arrival_time", f"{label}: Invalid arrival time format", stop_index=index)
        if stop.departure_time is not None and not is_valid_time_format(stop.departure_time):
            add(f"{prefix}.departure_time", f"{label}: Invalid departure time format", stop_index=index)

        arrival, departure = _seconds(stop.arrival_time), _seconds(stop.departure_time)
        if arrival is not None and departure is not None and departure < arrival:
            add(f"{prefix}.departure_time", f"{label}: Departure time must be >= arrival time", stop_index=index)

    orders = [stop.stop_order for stop in stops]
    if len(set(orders)) != len(orders):
        add("schedule_stops", "Duplicate stop order values found")

    origin_id, destination_id = _endpoint_stop_ids(schedule, route)
    for index, stop in enumerate(stops):
        prefix = f"schedule_stops[{index}]"
        label = _stop_label(index, stop)
        if origin_id and stop.stop_id == origin_id and stop.departure_time is None:
            add(f"{prefix}.departure_time", f"{label}: Origin stop requires a departure time", stop_index=index)
        if destination_id and stop.stop_id == destination_id and stop.arrival_time is None:
            add(f"{prefix}.arrival_time", f"{label}: Destination stop requires an arrival time", stop_index=index)

    if route is not None and route.route_stops:
        route_stop_ids = {route_stop.stop_id for route_stop in route.route_stops}
        for index, stop in enumerate(stops):
            if stop.stop_id and stop.stop_id not in route_stop_ids:
                add(
                    f"schedule_stops[{index}].stop_id",
                    f"{_stop_label(index, stop)}: Stop is not part of route '{route.name or route.id}'",
                    ValidationSeverity.WARNING,
                    stop_index=index,
                )

    # Sequence check in stop order: arrival should not precede the previous departure
    ordered = sorted(enumerate(stops), key=lambda item: item[1].stop_order)
    previous_time: Optional[int] = None
    for index, stop in ordered:
        arrival = _seconds(stop.arrival_time)
        current = arrival if arrival is not None else _seconds(stop.departure_time)
        if current is not None and previous_time is not None and current < previous_time:
            add(
                f"schedule_stops[{index}].arrival_time",
                f"{_stop_label(index, stop)}: Arrival time is earlier than previous stop's departure. "
                "Is this an overnight schedule?",
                ValidationSeverity.WARNING,
                stop_index=index,
            )
        departure = _seconds(stop.departure_time)
        latest = departure if departure is not None else arrival
        if latest is not None:
            previous_time = latest


def _check_exceptions(schedule: Schedule, add) -> None:
    start = schedule.effective_start_date if is_valid_date_format(schedule.effective_start_date) else None
    end = schedule.effective_end_date if is_valid_date_format(schedule.effective_end_date) else None

    seen: Dict[str, int] = {}
    for index, exception in enumerate(schedule.exceptions):
        field = f"exceptions[{index}].exception_date"
        value = exception.exception_date
        if not is_valid_date_format(value):
            add(field, f"Exception {index + 1}: Invalid date '{value}', expected YYYY-MM-DD")
            continue
        if value in seen:
            add(field, f"Exception {index + 1}: Duplicate exception date {value} (also exception {seen[value] + 1})")
            continue
        seen[value] = index

        if (start and value < start) or (end and value > end):
            add(
                field,
                f"Exception {index + 1}: {value} is outside the effective date range",
                ValidationSeverity.WARNING,
            )

        operating = schedule.calendar.operates_on_weekday(date.fromisoformat(value).weekday())
        weekday = WEEKDAY_FIELDS[date.fromisoformat(value).weekday()].capitalize()
        if exception.exception_type == ExceptionTypeEnum.ADDED and operating:
            add(
                f"exceptions[{index}].exception_type",
                f"Exception {index + 1}: {value} is a {weekday}, which already operates",
                ValidationSeverity.WARNING,
            )
        elif exception.exception_type == ExceptionTypeEnum.REMOVED and not operating:
            add(
                f"exceptions[{index}].exception_type",
                f"Exception {index + 1}: {value} is a {weekday}, which does not operate",
                ValidationSeverity.WARNING,
            )


# =============================================================================
# Schedule set
# =============================================================================

def _schedules_overlap(first: Schedule, second: Schedule) -> bool:
    if not (is_valid_date_format(first.effective_start_date) and is_valid_date_format(second.effective_start_date)):
        return False
    first_end = first.effective_end_date if is_valid_date_format(first.effective_end_date) else NO_END_DATE
    second_end = second.effective_end_date if is_valid_date_format(second.effective_end_date) else NO_END_DATE
    if not (first.effective_start_date <= second_end and second.effective_start_date <= first_end):
        return False
    return any(getattr(first.calendar, day) and getattr(second.calendar, day) for day in WEEKDAY_FIELDS)


def validate_all_schedules(route: Optional[RouteReference], schedules: List[Schedule]) -> BulkValidationResult:
    """
    Validate a schedule set for one route.

    Runs ``validate_schedule`` on every schedule, then the cross-schedule
    checks. Duplicate names and route mismatches are attributed to the
    schedules involved; set-level problems go to ``cross_schedule_issues``.
    """
    results = [validate_schedule(schedule, route, index) for index, schedule in enumerate(schedules)]
    extra: Dict[int, List[ValidationIssue]] = defaultdict(list)
    cross: List[ValidationIssue] = []

    if route is None:
        cross.append(ValidationIssue(field="route", message="No route selected. Please select a route first."))
    if not schedules:
        cross.append(ValidationIssue(
            field="schedules",
            message="No schedules to validate. Please add at least one schedule.",
        ))

    by_name: Dict[str, List[int]] = defaultdict(list)
    for index, schedule in enumerate(schedules):
        key = schedule.name.strip().lower()
        if key:
            by_name[key].append(index)
    for indices in by_name.values():
        if len(indices) < 2:
            continue
        name = schedules[indices[0]].name.strip()
        listed = ", ".join(str(i + 1) for i in indices)
        for index in indices:
            extra[index].append(ValidationIssue(
                field="name",
                message=f'Duplicate schedule name "{name}" found in schedules {listed}',
                schedule_index=index,
            ))

    if route is not None:
        for index, schedule in enumerate(schedules):
            if schedule.route_id and schedule.route_id != route.id:
                extra[index].append(ValidationIssue(
                    field="route_id",
                    message=f"Schedule references route '{schedule.route_id}' but the selected route is '{route.id}'",
                    schedule_index=index,
                ))
    else:
        route_ids = sorted({schedule.route_id for schedule in schedules if schedule.route_id})
        if len(route_ids) > 1:
            cross.append(ValidationIssue(
                field="route_id",
                message=f"Schedules reference different routes: {', '.join(route_ids)}",
            ))

    for i in range(len(schedules)):
        for j in range(i + 1, len(schedules)):
            if _schedules_overlap(schedules[i], schedules[j]):
                cross.append(ValidationIssue(
                    severity=ValidationSeverity.WARNING,
                    field="effective_dates",
                    message=(
                        f'Schedules "{schedules[i].name}" and "{schedules[j].name}" have '
                        "overlapping effective dates and operating days"
                    ),
                ))

    schedule_results = [
        _result(result.issues + extra[index]) if extra.get(index) else result
        for index, result in enumerate(results)
    ]
    total_errors = sum(len(r.errors) for r in schedule_results)
    total_errors += sum(1 for issue in cross if issue.severity == ValidationSeverity.ERROR)
    total_warnings = sum(len(r.warnings) for r in schedule_results)
    total_warnings += sum(1 for issue in cross if issue.severity == ValidationSeverity.WARNING)

    logger.info(
        f"[Validation] {len(schedules)} schedule(s): {total_errors} error(s), {total_warnings} warning(s)"
    )
    return BulkValidationResult(
        is_valid=total_errors == 0,
        schedule_results=schedule_results,
        cross_schedule_issues=cross,
        total_errors=total_errors,
        total_warnings=total_warnings,
    )


# =============================================================================
# Quick helpers
# =============================================================================

def is_schedule_ready_for_submission(schedule: Schedule, route: Optional[RouteReference] = None) -> bool:
    return validate_schedule(schedule, route).is_valid


def count_validation_issues(result: BulkValidationResult) -> Dict[str, int]:
    info = sum(1 for issue in result.cross_schedule_issues if issue.severity == ValidationSeverity.INFO)
    info += sum(
        1
        for schedule_result in result.schedule_results
        for issue in schedule_result.issues
        if issue.severity == ValidationSeverity.INFO
    )
    return {"errors": result.total_errors, "warnings": result.total_warnings, "info": info}


def validation_summary(result: BulkValidationResult) -> str:
    counts = count_validation_issues(result)
    errors, warnings = counts["errors"], counts["warnings"]
    if not errors and not warnings:
        return "All schedules are valid and ready for submission."
    parts = []
    if errors:
        parts.append(f"{errors} error{'s' if errors > 1 else ''}")
    if warnings:
        parts.append(f"{warnings} warning{'s' if warnings > 1 else ''}")
    return f"Validation found {' and '.join(parts)}."
