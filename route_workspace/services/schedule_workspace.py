"""
Schedule workspace - model store for the schedule set of one route.

Form edits, applied YAML text, timetable generation and directory loads all
funnel into the mutators below. Mutators never validate; ``validate()`` runs
the validation engine over the current snapshot on demand.
"""

import logging
from datetime import date
from typing import List, Optional

from route_workspace.config import config
from route_workspace.models.results import (
    ApplyTextResult,
    BulkValidationResult,
    TimetableGenerationResult,
)
from route_workspace.models.schedule import (
    RouteReference,
    Schedule,
    ScheduleDocument,
    ScheduleException,
    ScheduleStop,
    ScheduleWorkspaceData,
    WEEKDAY_FIELDS,
    create_empty_schedule,
    create_empty_schedule_workspace_data,
    create_schedule_from_route,
    normalize_time_input,
)
from route_workspace.services import timetable_generator
from route_workspace.services.route_directory import DirectoryError, RouteDirectory
from route_workspace.services.schedule_validation import validate_all_schedules
from route_workspace.services.workspace_serializer import (
    parse_schedule_document,
    render_schedule_document,
)
from route_workspace.services.workspace_store import WorkspaceStore, in_range, replace_at, validated_copy

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = set(Schedule.model_fields) - {"calendar", "exceptions", "schedule_stops"}
SCHEDULE_STOP_FIELDS = set(ScheduleStop.model_fields)
EXCEPTION_FIELDS = {"exception_date", "exception_type"}
COPY_SUFFIX = " (Copy)"


def _check_fields(fields: dict, allowed: set, owner: str) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown {owner} field(s): {sorted(unknown)}")


class ScheduleWorkspace(WorkspaceStore[ScheduleWorkspaceData]):
    """Editing context for the schedules of one route."""

    def __init__(self, initial: Optional[ScheduleWorkspaceData] = None):
        super().__init__(initial or create_empty_schedule_workspace_data())
        self.load_error: Optional[str] = None

    @property
    def route(self) -> Optional[RouteReference]:
        return self.state.route

    @property
    def schedules(self) -> List[Schedule]:
        return self.state.schedules

    @property
    def route_id(self) -> str:
        return self.state.route.id if self.state.route else ""

    # =========================================================================
    # Mutators
    # =========================================================================

    def _set_schedules(
        self,
        schedules: List[Schedule],
        reason: str,
        active_index: Optional[int] = None,
    ) -> ScheduleWorkspaceData:
        if active_index is None:
            active_index = self.state.active_schedule_index
        if not schedules:
            active_index = -1
        else:
            active_index = min(max(active_index, 0), len(schedules) - 1)
        return self._commit(
            self.state.model_copy(update={"schedules": schedules, "active_schedule_index": active_index}),
            reason,
        )

    def _update_at(self, schedule_index: int, reason: str, **fields) -> ScheduleWorkspaceData:
        schedules = self.state.schedules
        if not in_range(schedules, schedule_index):
            logger.debug(f"[Workspace] {reason} ignored: no schedule at index {schedule_index}")
            return self.state
        updated = validated_copy(schedules[schedule_index], **fields)
        return self._set_schedules(replace_at(schedules, schedule_index, updated), reason)

    def set_route(self, route: Optional[RouteReference]) -> ScheduleWorkspaceData:
        return self._commit(self.state.model_copy(update={"route": route}), "set_route")

    def add_schedule(self, schedule: Optional[Schedule] = None, today: Optional[date] = None) -> ScheduleWorkspaceData:
        """
        Append a schedule and make it active.

        Without an explicit schedule, one is created from the selected route
        (one untimed stop per route stop) or left empty when no route is set.
        """
        if schedule is None:
            if self.state.route is not None:
                schedule = create_schedule_from_route(self.state.route, today=today)
            else:
                schedule = create_empty_schedule(today=today)
        schedules = list(self.state.schedules) + [schedule]
        return self._set_schedules(schedules, "add_schedule", active_index=len(schedules) - 1)

    def remove_schedule(self, schedule_index: int) -> ScheduleWorkspaceData:
        schedules = self.state.schedules
        if not in_range(schedules, schedule_index):
            return self.state
        remaining = [s for i, s in enumerate(schedules) if i != schedule_index]
        active = self.state.active_schedule_index
        if active > schedule_index or active == len(remaining):
            active -= 1
        return self._set_schedules(remaining, f"remove_schedule {schedule_index}", active_index=active)

    def duplicate_schedule(self, schedule_index: int) -> ScheduleWorkspaceData:
        """Append an unsaved copy of a schedule (ids cleared, name suffixed)."""
        schedules = self.state.schedules
        if not in_range(schedules, schedule_index):
            return self.state
        source = schedules[schedule_index]
        copy = source.model_copy(update={
            "id": None,
            "name": f"{source.name}{COPY_SUFFIX}",
            "calendar": source.calendar.model_copy(update={"id": None}),
            "exceptions": [exc.model_copy(update={"id": None}) for exc in source.exceptions],
            "schedule_stops": [stop.model_copy(update={"id": None}) for stop in source.schedule_stops],
        })
        updated = list(schedules) + [copy]
        return self._set_schedules(updated, f"duplicate_schedule {schedule_index}", active_index=len(updated) - 1)

    def update_schedule(self, schedule_index: int, **fields) -> ScheduleWorkspaceData:
        _check_fields(fields, SCHEDULE_FIELDS, "schedule")
        if "effective_end_date" in fields and not fields["effective_end_date"]:
            fields["effective_end_date"] = None
        return self._update_at(schedule_index, f"update_schedule {schedule_index}", **fields)

    def set_active_schedule(self, schedule_index: int) -> ScheduleWorkspaceData:
        if not in_range(self.state.schedules, schedule_index):
            return self.state
        return self._commit(
            self.state.model_copy(update={"active_schedule_index": schedule_index}), "set_active_schedule"
        )

    def update_schedule_stop(self, schedule_index: int, stop_index: int, **fields) -> ScheduleWorkspaceData:
        _check_fields(fields, SCHEDULE_STOP_FIELDS, "schedule stop")
        schedules = self.state.schedules
        if not in_range(schedules, schedule_index) or not in_range(schedules[schedule_index].schedule_stops, stop_index):
            logger.debug(f"[Workspace] update_schedule_stop ignored: no stop {stop_index} in schedule {schedule_index}")
            return self.state
        for key in ("arrival_time", "departure_time"):
            if key in fields:
                fields[key] = normalize_time_input(fields[key])
        stops = schedules[schedule_index].schedule_stops
        updated = validated_copy(stops[stop_index], **fields)
        return self._update_at(
            schedule_index,
            f"update_schedule_stop {schedule_index}/{stop_index}",
            schedule_stops=replace_at(stops, stop_index, updated),
        )

    def update_all_schedule_stops(self, schedule_index: int, stops: List[ScheduleStop]) -> ScheduleWorkspaceData:
        return self._update_at(
            schedule_index, f"update_all_schedule_stops {schedule_index}", schedule_stops=list(stops)
        )

    def update_schedule_calendar(self, schedule_index: int, **days) -> ScheduleWorkspaceData:
        _check_fields(days, set(WEEKDAY_FIELDS), "calendar")
        schedules = self.state.schedules
        if not in_range(schedules, schedule_index):
            return self.state
        calendar = validated_copy(schedules[schedule_index].calendar, **days)
        return self._update_at(schedule_index, f"update_schedule_calendar {schedule_index}", calendar=calendar)

    def add_schedule_exception(
        self,
        schedule_index: int,
        exception: Optional[ScheduleException] = None,
    ) -> ScheduleWorkspaceData:
        schedules = self.state.schedules
        if not in_range(schedules, schedule_index):
            return self.state
        if exception is None:
            exception = ScheduleException(exception_date=date.today().isoformat())
        exceptions = list(schedules[schedule_index].exceptions) + [exception]
        return self._update_at(schedule_index, f"add_schedule_exception {schedule_index}", exceptions=exceptions)

    def remove_schedule_exception(self, schedule_index: int, exception_index: int) -> ScheduleWorkspaceData:
        schedules = self.state.schedules
        if not in_range(schedules, schedule_index) or not in_range(schedules[schedule_index].exceptions, exception_index):
            return self.state
        exceptions = [e for i, e in enumerate(schedules[schedule_index].exceptions) if i != exception_index]
        return self._update_at(
            schedule_index, f"remove_schedule_exception {schedule_index}/{exception_index}", exceptions=exceptions
        )

    def update_schedule_exception(self, schedule_index: int, exception_index: int, **fields) -> ScheduleWorkspaceData:
        _check_fields(fields, EXCEPTION_FIELDS, "schedule exception")
        schedules = self.state.schedules
        if not in_range(schedules, schedule_index) or not in_range(schedules[schedule_index].exceptions, exception_index):
            return self.state
        exceptions = schedules[schedule_index].exceptions
        updated = validated_copy(exceptions[exception_index], **fields)
        return self._update_at(
            schedule_index,
            f"update_schedule_exception {schedule_index}/{exception_index}",
            exceptions=replace_at(exceptions, exception_index, updated),
        )

    def mark_schedule_saved(self, schedule_index: int, saved: Schedule) -> ScheduleWorkspaceData:
        """Write back a schedule returned by the directory (ids now assigned)."""
        schedules = self.state.schedules
        if not in_range(schedules, schedule_index):
            return self.state
        return self._set_schedules(replace_at(schedules, schedule_index, saved), f"mark_schedule_saved {schedule_index}")

    def reset(self) -> ScheduleWorkspaceData:
        self.load_error = None
        return self._commit(create_empty_schedule_workspace_data(), "reset")

    # =========================================================================
    # Derivation helpers
    # =========================================================================

    def generate_timetable(
        self,
        schedule_index: int,
        start_time: Optional[str] = None,
        avg_speed_kmh: Optional[float] = None,
        dwell_seconds: Optional[float] = None,
    ) -> TimetableGenerationResult:
        """
        Fill the stop times of one schedule from the route's stop distances.

        With a route selected the route's ordered stops are timed; schedule
        stop ids are kept for stops the schedule already has.
        Nothing is written when the parameters are rejected.
        """
        start_time = start_time or config.DEFAULT_START_TIME
        avg_speed_kmh = config.DEFAULT_AVG_SPEED_KMH if avg_speed_kmh is None else avg_speed_kmh
        dwell_seconds = config.DEFAULT_DWELL_SECONDS if dwell_seconds is None else dwell_seconds

        schedules = self.state.schedules
        if not in_range(schedules, schedule_index):
            return TimetableGenerationResult(success=False, message=f"No schedule at index {schedule_index}")

        stops = self._timetable_stops(schedules[schedule_index])
        if not stops:
            return TimetableGenerationResult(success=False, message="Schedule has no stops to time")

        try:
            generated = timetable_generator.generate_stop_times(stops, start_time, avg_speed_kmh, dwell_seconds)
        except ValueError as e:
            logger.warning(f"[Timetable] Generation rejected for schedule {schedule_index}: {e}")
            return TimetableGenerationResult(success=False, message=str(e))

        self.update_all_schedule_stops(schedule_index, generated)
        logger.info(
            f"[Timetable] Generated {len(generated)} stop time(s) for schedule {schedule_index} "
            f"starting {start_time} at {avg_speed_kmh} km/h"
        )
        return TimetableGenerationResult(
            success=True,
            message=f"Generated times for {len(generated)} stops",
            schedule_stops=generated,
        )

    def _timetable_stops(self, schedule: Schedule) -> List[ScheduleStop]:
        """Stops to time, in stop order: the route's when a route is selected."""
        route = self.state.route
        if route is None:
            return sorted(schedule.schedule_stops, key=lambda stop: stop.stop_order)
        existing = {stop.stop_id: stop for stop in schedule.schedule_stops}
        stops = []
        for stop in sorted(timetable_generator.schedule_stops_from_route(route), key=lambda s: s.stop_order):
            current = existing.get(stop.stop_id)
            stops.append(stop if current is None else stop.model_copy(update={"id": current.id}))
        return stops

    def clear_all_times(self, schedule_index: int) -> ScheduleWorkspaceData:
        schedules = self.state.schedules
        if not in_range(schedules, schedule_index):
            return self.state
        return self.update_all_schedule_stops(
            schedule_index, timetable_generator.clear_all_times(schedules[schedule_index].schedule_stops)
        )

    def copy_arrival_to_departure(self, schedule_index: int, stop_index: int) -> ScheduleWorkspaceData:
        schedules = self.state.schedules
        if not in_range(schedules, schedule_index) or not in_range(schedules[schedule_index].schedule_stops, stop_index):
            return self.state
        stop = timetable_generator.copy_arrival_to_departure(schedules[schedule_index].schedule_stops[stop_index])
        return self.update_schedule_stop(schedule_index, stop_index, departure_time=stop.departure_time)

    # =========================================================================
    # Text projection
    # =========================================================================

    def document(self) -> ScheduleDocument:
        route = self.state.route
        return ScheduleDocument(
            route_id=route.id if route else "",
            route_name=route.name or None if route else None,
            route_number=route.route_number or None if route else None,
            schedules=self.state.schedules,
        )

    def get_text(self) -> str:
        return render_schedule_document(self.document())

    def apply_text(self, text: str) -> ApplyTextResult:
        """
        Parse ``text`` and apply it schedule by schedule.

        Existing schedules are updated in place, extra ones appended and
        surplus ones removed. Nothing changes when the text does not parse.
        """
        parsed = parse_schedule_document(text)
        if not parsed.valid:
            return ApplyTextResult(
                success=False,
                errors=parsed.errors,
                message=f"Text has {len(parsed.errors)} error(s); workspace unchanged",
            )

        incoming = parsed.document.schedules
        for index, schedule in enumerate(incoming):
            if index < len(self.state.schedules):
                self._replace_schedule(index, schedule)
            else:
                self.add_schedule(schedule)
        while len(self.state.schedules) > len(incoming):
            self.remove_schedule(len(self.state.schedules) - 1)

        logger.info(f"[Workspace] Applied schedule text ({len(incoming)} schedule(s))")
        return ApplyTextResult(success=True, message=f"Applied {len(incoming)} schedule(s) from text")

    def _replace_schedule(self, schedule_index: int, schedule: Schedule) -> ScheduleWorkspaceData:
        fields = {name: getattr(schedule, name) for name in Schedule.model_fields}
        return self._update_at(schedule_index, f"replace_schedule {schedule_index}", **fields)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self) -> BulkValidationResult:
        return validate_all_schedules(self.state.route, self.state.schedules)

    # =========================================================================
    # Directory
    # =========================================================================

    async def load_route(self, directory: RouteDirectory, route_id: str) -> bool:
        try:
            route = await directory.get_route(route_id)
        except DirectoryError as e:
            self.load_error = e.message
            logger.warning(f"[Workspace] Failed to load route {route_id}: {e.message}")
            return False
        self.load_error = None
        self.set_route(route)
        return True

    async def load_schedules(self, directory: RouteDirectory, schedule_ids: List[str]) -> bool:
        """
        Replace the schedule set with the given directory schedules.

        Loads are sequential; on the first failure nothing is written.
        """
        loaded = []
        for schedule_id in schedule_ids:
            try:
                loaded.append(await directory.get_schedule(schedule_id))
            except DirectoryError as e:
                self.load_error = e.message
                logger.warning(f"[Workspace] Failed to load schedule {schedule_id}: {e.message}")
                return False
        self.load_error = None
        self._set_schedules(loaded, f"load_schedules ({len(loaded)})", active_index=0)
        return True
