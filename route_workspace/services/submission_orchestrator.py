"""
Submission Orchestrator - validate, then persist workspace items one by one.

An item is anything the directory stores in one call (a schedule, a new
stop, a route group). Each item and the run as a whole move through
``pending -> validating -> saving -> success | error``.

Items are persisted sequentially: each directory call is awaited and its
outcome recorded before the next item starts. A failing item never stops the
run. There is no rollback: items already committed stay committed, and an
abandoned run is reported as incomplete.
"""

import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from route_workspace.models.results import (
    TERMINAL_SUBMISSION_STATUSES,
    BulkValidationResult,
    SubmissionItemState,
    SubmissionReport,
    SubmissionStatus,
    ValidationSeverity,
)
from route_workspace.models.route import Stop, StopExistenceType, is_new_stop
from route_workspace.models.patches import SetStopIdentity
from route_workspace.services.route_directory import RouteDirectory
from route_workspace.services.route_validation import validate_route_group
from route_workspace.services.route_workspace import RouteWorkspace
from route_workspace.services.schedule_workspace import ScheduleWorkspace

logger = logging.getLogger(__name__)

# Returns one list of error messages per item, in item order
Validator = Callable[[], Sequence[List[str]]]
# Persists the item at the given index; returns the id the directory assigned
Persister = Callable[[int], Awaitable[Optional[str]]]
UpdateCallback = Callable[[SubmissionReport], None]


class SubmissionOrchestrator:
    """Runs one submission over a fixed list of items."""

    def __init__(
        self,
        items: List[str],
        validator: Validator,
        persister: Persister,
        on_update: Optional[UpdateCallback] = None,
    ):
        self._items = [SubmissionItemState(index=i, label=label) for i, label in enumerate(items)]
        self._validator = validator
        self._persister = persister
        self._on_update = on_update
        self._status = SubmissionStatus.PENDING
        self._validated = False
        self._validation_failed = False
        self._started = False
        self._abandoned = False
        self._warnings: List[str] = []

    # =========================================================================
    # Status bookkeeping
    # =========================================================================

    def _set_item(self, index: int, status: SubmissionStatus, message: Optional[str] = None,
                  saved_id: Optional[str] = None) -> None:
        self._items[index] = self._items[index].model_copy(update={
            "status": status,
            "message": message,
            "saved_id": saved_id,
        })

    def _notify(self) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(self.report())
        except Exception as e:
            logger.error(f"[Submission] Update callback failed: {e}")

    def report(self) -> SubmissionReport:
        total = len(self._items)
        success = sum(1 for item in self._items if item.status == SubmissionStatus.SUCCESS)
        errors = sum(1 for item in self._items if item.status == SubmissionStatus.ERROR)
        pending = total - success - errors
        completed = success + errors if self._started else 0
        progress = (completed / total * 100.0) if total else 0.0
        incomplete = self._abandoned and pending > 0

        warnings = list(self._warnings)
        if incomplete:
            warnings.append(
                f"Submission abandoned with {pending} item(s) unsaved; "
                f"{success} item(s) already committed are not rolled back"
            )
        return SubmissionReport(
            status=self._status,
            items=list(self._items),
            success_count=success,
            error_count=errors,
            pending_count=pending,
            progress=min(progress, 100.0),
            incomplete=incomplete,
            warnings=warnings,
        )

    # =========================================================================
    # Phases
    # =========================================================================

    def validate(self) -> SubmissionReport:
        """Run the validator; failing items go to ``error`` with their first message."""
        self._status = SubmissionStatus.VALIDATING
        for item in self._items:
            self._set_item(item.index, SubmissionStatus.VALIDATING)
        self._notify()

        if not self._items:
            self._validated = True
            self._validation_failed = True
            self._status = SubmissionStatus.ERROR
            self._warnings.append("Nothing to submit")
            self._notify()
            return self.report()

        messages = list(self._validator())
        failed = 0
        for item in self._items:
            item_messages = messages[item.index] if item.index < len(messages) else []
            if item_messages:
                failed += 1
                self._set_item(item.index, SubmissionStatus.ERROR, message=item_messages[0])
            else:
                self._set_item(item.index, SubmissionStatus.PENDING)

        self._validated = True
        self._validation_failed = failed > 0
        self._status = SubmissionStatus.ERROR if failed else SubmissionStatus.PENDING
        logger.info(f"[Submission] Validation: {failed} of {len(self._items)} item(s) failed")
        self._notify()
        return self.report()

    async def submit(self) -> SubmissionReport:
        """
        Persist every pending item, one at a time.

        Refuses to run unless the last ``validate()`` passed. Never raises:
        persistence failures become item errors.

        Returns:
            The final SubmissionReport
        """
        if not self._validated or self._validation_failed:
            reason = "validation has not run" if not self._validated else "validation failed"
            self._status = SubmissionStatus.ERROR
            self._warnings.append(f"Submission refused: {reason}")
            logger.warning(f"[Submission] Refused: {reason}")
            self._notify()
            return self.report()

        self._status = SubmissionStatus.SAVING
        self._started = True
        self._notify()

        for item in list(self._items):
            if self._abandoned:
                logger.warning(f"[Submission] Abandoned before item {item.index} ({item.label})")
                break
            if item.status in TERMINAL_SUBMISSION_STATUSES:
                continue

            self._set_item(item.index, SubmissionStatus.SAVING)
            self._notify()
            try:
                saved_id = await self._persister(item.index)
            except Exception as e:
                logger.error(f"[Submission] Failed to save {item.label}: {e}")
                self._set_item(item.index, SubmissionStatus.ERROR, message=str(e) or type(e).__name__)
            else:
                logger.info(f"[Submission] Saved {item.label} ({saved_id})")
                self._set_item(item.index, SubmissionStatus.SUCCESS, message="Saved", saved_id=saved_id)
            self._notify()

        all_saved = all(item.status == SubmissionStatus.SUCCESS for item in self._items)
        self._status = SubmissionStatus.SUCCESS if all_saved else SubmissionStatus.ERROR
        report = self.report()
        logger.info(
            f"[Submission] Finished: {report.success_count} saved, {report.error_count} failed, "
            f"{report.pending_count} pending"
        )
        self._notify()
        return report

    def abandon(self) -> SubmissionReport:
        """
        Stop after the item in flight. Committed items are kept as they are.
        """
        self._abandoned = True
        return self.report()


# =============================================================================
# Factories
# =============================================================================

def _error_messages(result: BulkValidationResult, index: int) -> List[str]:
    messages = [issue.message for issue in result.cross_schedule_issues if issue.severity == ValidationSeverity.ERROR]
    if index < len(result.schedule_results):
        messages.extend(issue.message for issue in result.schedule_results[index].errors)
    return messages


def schedule_submission(
    workspace: ScheduleWorkspace,
    directory: RouteDirectory,
    on_update: Optional[UpdateCallback] = None,
) -> SubmissionOrchestrator:
    """One item per schedule; saved schedules are written back to the workspace."""
    labels = [
        schedule.name.strip() or f"Schedule {index + 1}"
        for index, schedule in enumerate(workspace.schedules)
    ]

    def validator() -> List[List[str]]:
        result = workspace.validate()
        return [_error_messages(result, index) for index in range(len(labels))]

    async def persister(index: int) -> Optional[str]:
        schedule = workspace.schedules[index]
        route_id = workspace.route_id or schedule.route_id
        saved = await directory.save_schedule(route_id, schedule)
        workspace.mark_schedule_saved(index, saved)
        return saved.id

    return SubmissionOrchestrator(labels, validator, persister, on_update)


def _stop_key(stop: Stop) -> Tuple[str, Optional[float], Optional[float]]:
    return (stop.name.strip().lower(), stop.location.latitude, stop.location.longitude)


def route_group_submission(
    workspace: RouteWorkspace,
    directory: RouteDirectory,
    on_update: Optional[UpdateCallback] = None,
) -> SubmissionOrchestrator:
    """
    Create every new stop, then save the route group with the resolved ids.

    One item per distinct new stop (same name and coordinates count as one),
    followed by a final item for the group itself. The group item fails when
    any stop could not be created.
    """
    new_stops: List[Stop] = []
    seen = set()
    for route in workspace.route_group.routes:
        for route_stop in route.route_stops:
            stop = route_stop.stop
            if stop.id or not is_new_stop(stop):
                continue
            key = _stop_key(stop)
            if key not in seen:
                seen.add(key)
                new_stops.append(stop)

    group_index = len(new_stops)
    labels = [f"Stop '{stop.name or 'unnamed'}'" for stop in new_stops]
    labels.append(f"Route group '{workspace.route_group.name or 'unnamed'}'")
    failed_stops: List[str] = []

    def validator() -> List[List[str]]:
        messages: List[List[str]] = [
            [] if stop.name.strip() else ["Stop name is required"] for stop in new_stops
        ]
        result = validate_route_group(workspace.route_group)
        errors = [issue.message for issue in result.cross_schedule_issues if issue.severity == ValidationSeverity.ERROR]
        for route_result in result.schedule_results:
            errors.extend(issue.message for issue in route_result.errors)
        messages.append(errors)
        return messages

    async def persist_stop(index: int) -> Optional[str]:
        stop = new_stops[index]
        try:
            created = await directory.create_stop(stop)
        except Exception:
            failed_stops.append(stop.name)
            raise
        key = _stop_key(stop)
        identity = SetStopIdentity(stop_id=created.id, existence=StopExistenceType.EXISTING)
        for route_index, route in enumerate(workspace.route_group.routes):
            for stop_index, route_stop in enumerate(route.route_stops):
                if not route_stop.stop.id and _stop_key(route_stop.stop) == key:
                    workspace.update_route_stop(route_index, stop_index, identity)
        return created.id

    async def persist_group() -> Optional[str]:
        if failed_stops:
            raise RuntimeError(
                f"Route group not saved: {len(failed_stops)} stop(s) could not be created "
                f"({', '.join(failed_stops)})"
            )
        saved = await directory.save_route_group(workspace.route_group)
        workspace.update_route_group(id=saved.id)
        for route in saved.routes:
            workspace.replace_route(route.direction, route)
        return saved.id

    async def persister(index: int) -> Optional[str]:
        if index == group_index:
            return await persist_group()
        return await persist_stop(index)

    return SubmissionOrchestrator(labels, validator, persister, on_update)
