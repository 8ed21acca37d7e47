"""Week reconciliation between a Monday.com board and its Google Calendar.

This service handles:
- Resolving each board group to the weekday it is named after
- Fetching the calendar's events for every day of the current week
- Planning the adds, removals and updates needed per day
- Applying the plan in a fixed order: adds, then removals, then updates

A run fails fast. The first error while planning aborts before anything
is written; the first error while applying aborts the remaining calls and
reports the ones that already went through. Nothing is rolled back.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Callable, Dict, List, Optional, Protocol, Union

from ..board import Board
from ..calendar.types import CanonicalEvent, ExistingEvent, format_timestamp
from ..config import Settings
from ..errors import CollaboratorError, ParseError, ValidationError
from .detector import (
    DayChanges,
    DayTask,
    EventUpdate,
    detect_day_changes,
    parse_event_time,
)
from .week import (
    WEEKDAY_NAMES,
    UnrecognizedTitle,
    WeekdayDateMap,
    end_of_day,
    week_dates,
    weekday_for_title,
)


logger = logging.getLogger(__name__)


class CalendarBackend(Protocol):
    """The event operations a sync needs from a calendar client."""

    def list_events(
        self, calendar_id: str, time_min: datetime, time_max: datetime
    ) -> List[ExistingEvent]: ...

    def insert_event(self, calendar_id: str, event: CanonicalEvent) -> None: ...

    def delete_event(self, calendar_id: str, event_id: str) -> None: ...

    def update_event(self, calendar_id: str, event_id: str, event: CanonicalEvent) -> None: ...


@dataclass(slots=True)
class SyncPlan:
    """Changes computed for one run, grouped by weekday."""

    calendar_id: str
    week: WeekdayDateMap
    days: List[DayChanges] = field(default_factory=list)

    @property
    def to_add(self) -> List[CanonicalEvent]:
        return [event for day in self.days for event in day.to_add]

    @property
    def to_remove(self) -> List[ExistingEvent]:
        seen = set()
        removals: List[ExistingEvent] = []
        for day in self.days:
            for event in day.to_remove:
                if event.id not in seen:
                    seen.add(event.id)
                    removals.append(event)
        return removals

    @property
    def to_update(self) -> List[EventUpdate]:
        return [update for day in self.days for update in day.to_update]

    @property
    def is_empty(self) -> bool:
        return all(day.is_empty for day in self.days)


@dataclass(slots=True)
class ApplyReport:
    """Calendar writes that completed during an apply."""

    inserted: List[CanonicalEvent] = field(default_factory=list)
    deleted: List[ExistingEvent] = field(default_factory=list)
    updated: List[EventUpdate] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.inserted) + len(self.deleted) + len(self.updated)

    def summary(self) -> str:
        return (
            f"{len(self.inserted)} added, {len(self.deleted)} removed, "
            f"{len(self.updated)} updated"
        )


class ApplyError(CollaboratorError):
    """Raised when a calendar write fails part way through an apply."""

    def __init__(
        self,
        message: str,
        *,
        report: ApplyReport,
        phase: str,
        failed: Union[CanonicalEvent, ExistingEvent, EventUpdate],
    ) -> None:
        super().__init__(message)
        self.report = report
        self.phase = phase
        self.failed = failed


class SyncService:
    """Reconciles the current week of a board with its calendar.

    Design Principles:
    - The board is the source of truth; the calendar only mirrors it
    - Tasks and events are matched by name within a day
    - Every run recomputes the week from scratch; nothing is cached
    """

    def __init__(
        self,
        settings: Settings,
        calendar: CalendarBackend,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the sync service.

        Args:
            settings: Application settings (time zone, due date format)
            calendar: Client used to read and write events
            clock: Returns the current instant; defaults to ``datetime.now``
        """
        self.settings = settings
        self.calendar = calendar
        self._tz = settings.timezone
        self._clock = clock or (lambda: datetime.now(self._tz))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def plan(self, board: Board, calendar_id: str) -> SyncPlan:
        """Compute the changes for every day of the current week.

        Raises:
            ValidationError: for a group title that is not a weekday, or a
                task whose due date is on another weekday than its group.
            ParseError: for malformed estimates, due dates or event times.
            CollaboratorError: if listing events fails.
        """
        tasks_by_day = self._tasks_by_weekday(board)
        week = week_dates(self._clock(), self._tz)
        plan = SyncPlan(calendar_id=calendar_id, week=week)

        # an event overlapping two day windows is listed by both
        fetched: Dict[str, ExistingEvent] = {}
        listed_on: Dict[str, List[int]] = {}
        for weekday in range(len(WEEKDAY_NAMES)):
            midnight = week[weekday]
            for event in self.calendar.list_events(calendar_id, midnight, end_of_day(midnight)):
                fetched.setdefault(event.id, event)
                listed_on.setdefault(event.id, []).append(weekday)

        owned: Dict[int, List[ExistingEvent]] = {weekday: [] for weekday in week}
        for event in fetched.values():
            owner = self._owning_day(event, listed_on[event.id], week, tasks_by_day)
            owned[owner].append(event)

        for weekday in range(len(WEEKDAY_NAMES)):
            midnight = week[weekday]
            existing = owned[weekday]
            if weekday not in tasks_by_day:
                logger.info(
                    f"{WEEKDAY_NAMES[weekday]} {midnight:%Y-%m-%d}: no group on the board, "
                    f"leaving {len(existing)} events as they are"
                )
                plan.days.append(DayChanges(weekday=weekday, date=midnight, grouped=False))
                continue

            day = detect_day_changes(
                weekday,
                midnight,
                existing,
                tasks_by_day[weekday],
                tz=self._tz,
                due_date_format=self.settings.due_date_format,
            )
            logger.info(
                f"{WEEKDAY_NAMES[weekday]} {midnight:%Y-%m-%d}: {len(existing)} existing, "
                f"{len(day.to_add)} to add, {len(day.to_remove)} to remove, "
                f"{len(day.to_update)} to update"
            )
            plan.days.append(day)

        return plan

    def apply(self, plan: SyncPlan) -> ApplyReport:
        """Write a plan to the calendar: adds, then removals, then updates.

        Raises:
            ApplyError: on the first failed write, carrying the writes that
                completed before it.
        """
        report = ApplyReport()
        calendar_id = plan.calendar_id

        for event in plan.to_add:
            self._attempt(
                lambda: self.calendar.insert_event(calendar_id, event),
                report=report,
                phase="add",
                item=event,
                label=f"{event.summary} {format_timestamp(event.start)}",
            )
            logger.info(
                f"Added '{event.summary}' {format_timestamp(event.start)} - "
                f"{format_timestamp(event.end)}"
            )
            report.inserted.append(event)

        for existing in plan.to_remove:
            self._attempt(
                lambda: self.calendar.delete_event(calendar_id, existing.id),
                report=report,
                phase="remove",
                item=existing,
                label=existing.summary,
            )
            logger.info(f"Removed '{existing.summary}' ({existing.id})")
            report.deleted.append(existing)

        for update in plan.to_update:
            self._attempt(
                lambda: self.calendar.update_event(calendar_id, update.event_id, update.event),
                report=report,
                phase="update",
                item=update,
                label=update.event.summary,
            )
            logger.info(
                f"Updated '{update.event.summary}' to {format_timestamp(update.event.start)} - "
                f"{format_timestamp(update.event.end)}"
            )
            report.updated.append(update)

        logger.info(f"Sync applied: {report.summary()}")
        return report

    def sync(self, board: Board, calendar_id: str) -> ApplyReport:
        """Plan and apply in one step."""
        return self.apply(self.plan(board, calendar_id))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _tasks_by_weekday(self, board: Board) -> Dict[int, List[DayTask]]:
        tasks_by_day: Dict[int, List[DayTask]] = {}
        for group in board.groups:
            lookup = weekday_for_title(group.title)
            if isinstance(lookup, UnrecognizedTitle):
                if self.settings.skip_unrecognized_groups:
                    logger.warning(
                        f"Skipping group '{lookup.title}' with {len(group.tasks)} tasks: "
                        "title is not a weekday name"
                    )
                    continue
                raise ValidationError(
                    f"The group '{lookup.title}' on board '{board.name}' is not named after "
                    f"a weekday. Group titles must be one of: {', '.join(WEEKDAY_NAMES)}."
                )
            tasks_by_day.setdefault(lookup.index, []).extend(
                DayTask(task=task, group_title=group.title) for task in group.tasks
            )
        return tasks_by_day

    def _owning_day(
        self,
        event: ExistingEvent,
        listed_on: List[int],
        week: WeekdayDateMap,
        tasks_by_day: Dict[int, List[DayTask]],
    ) -> int:
        """Pick the one weekday whose detection sees ``event``.

        Candidates are the days whose window the event touches, end points
        included, plus the days whose listing returned it. A candidate with
        a task of the same name wins, then the day the event starts on,
        then the earliest candidate.
        """
        candidates = set(listed_on)
        start_day: Optional[int] = None
        try:
            start = parse_event_time(event.start, self._tz)
            end = parse_event_time(event.end, self._tz)
        except ParseError:
            # all-day or malformed; the detector reports it if a task claims it
            start = end = None
        if start is not None and end is not None:
            for weekday, midnight in week.items():
                if start <= end_of_day(midnight) and end >= midnight:
                    candidates.add(weekday)
                if start.date() == midnight.date():
                    start_day = weekday

        ordered = sorted(candidates)
        for weekday in ordered:
            names = {day_task.task.name for day_task in tasks_by_day.get(weekday, [])}
            if event.summary in names:
                return weekday
        if start_day in candidates:
            return start_day
        return ordered[0]

    def _attempt(
        self,
        call: Callable[[], None],
        *,
        report: ApplyReport,
        phase: str,
        item: Union[CanonicalEvent, ExistingEvent, EventUpdate],
        label: str,
    ) -> None:
        try:
            call()
        except CollaboratorError as exc:
            raise ApplyError(
                f"Sync aborted during {phase} of '{label}' after {report.summary()}: {exc}",
                report=report,
                phase=phase,
                failed=item,
            ) from exc


def format_plan(plan: SyncPlan) -> str:
    """Return a human-friendly listing of a plan."""
    lines: List[str] = []
    for day in plan.days:
        header = f"{WEEKDAY_NAMES[day.weekday]} {day.date:%Y-%m-%d}"
        if not day.grouped:
            lines.append(f"{header}: no group, events left as they are")
            continue
        lines.append(f"{header}: no changes" if day.is_empty else f"{header}:")
        for event in day.to_add:
            lines.append(
                f"  add {event.summary} {event.start:%H:%M}-{event.end:%H:%M} ({event.status})"
            )
        for existing in day.to_remove:
            lines.append(f"  remove {existing.summary} ({existing.id})")
        for update in day.to_update:
            event = update.event
            lines.append(f"  update {event.summary} -> {event.start:%H:%M}-{event.end:%H:%M}")
        for name in day.duplicate_tasks:
            lines.append(f"  warning: more than one task named {name}")
        for match in day.duplicate_events:
            lines.append(f"  warning: {len(match.events)} events named {match.name}")
    return "\n".join(lines)
