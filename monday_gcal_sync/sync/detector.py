"""Per-day change detection between board tasks and calendar events.

Tasks and events are matched by the literal task name / event summary.
There is no stable id linking the two, so a renamed task looks like one
removal plus one addition, and two tasks sharing a name on the same day
collapse onto a single event. Both collisions are reported on the
``DayChanges`` result instead of being resolved silently.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
import logging
from typing import Dict, List, Sequence, Tuple
from zoneinfo import ZoneInfo

from ..board import Task
from ..calendar.types import CanonicalEvent, ExistingEvent
from ..config import DEFAULT_DUE_DATE_FORMAT
from ..errors import ParseError
from .mapper import elapsed, resolve_task_timing, task_to_event


logger = logging.getLogger(__name__)


class MatchKind(Enum):
    """How many existing events share a task's name."""
    NONE = "none"
    UNIQUE = "unique"
    DUPLICATE = "duplicate"


@dataclass(frozen=True, slots=True)
class NameMatch:
    name: str
    events: Tuple[ExistingEvent, ...] = ()

    @property
    def kind(self) -> MatchKind:
        if not self.events:
            return MatchKind.NONE
        if len(self.events) == 1:
            return MatchKind.UNIQUE
        return MatchKind.DUPLICATE


@dataclass(frozen=True, slots=True)
class DayTask:
    """A task together with the title of the group it came from."""

    task: Task
    group_title: str


@dataclass(frozen=True, slots=True)
class EventUpdate:
    event_id: str
    event: CanonicalEvent


@dataclass(slots=True)
class DayChanges:
    """Changes needed to bring one day of the calendar in line with the board."""

    weekday: int
    date: datetime
    to_add: List[CanonicalEvent] = field(default_factory=list)
    to_remove: List[ExistingEvent] = field(default_factory=list)
    to_update: List[EventUpdate] = field(default_factory=list)
    duplicate_events: List[NameMatch] = field(default_factory=list)
    duplicate_tasks: List[str] = field(default_factory=list)
    # False for a weekday with no group on the board; such days are never changed
    grouped: bool = True

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_remove or self.to_update)


def match_name(name: str, events: Sequence[ExistingEvent]) -> NameMatch:
    return NameMatch(name=name, events=tuple(e for e in events if e.summary == name))


def parse_event_time(value: str, tz: ZoneInfo) -> datetime:
    """Parse an RFC 3339 event timestamp into ``tz``."""
    if not value:
        raise ParseError("Event has no dateTime (all-day events are not supported)")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ParseError(f"Issue parsing event datetime '{value}': {exc}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def event_needs_update(
    task: Task,
    event: ExistingEvent,
    anchor: datetime,
    *,
    group_title: str,
    tz: ZoneInfo,
    due_date_format: str = DEFAULT_DUE_DATE_FORMAT,
) -> bool:
    """Return True when the event's timing no longer matches the task.

    Only the duration and, for tasks with a due date, the end time are
    compared. Both comparisons are exact: a one-second drift counts as a
    difference.
    """
    timing = resolve_task_timing(
        task,
        anchor,
        group_title=group_title,
        tz=tz,
        due_date_format=due_date_format,
    )

    try:
        event_start = parse_event_time(event.start, tz)
        event_end = parse_event_time(event.end, tz)
    except ParseError as exc:
        raise ParseError(f"Issue parsing times of event '{event.summary}': {exc}") from exc

    event_duration = elapsed(event_start, event_end)

    if timing.due is None:
        return event_duration != timing.duration

    same_end = elapsed(timing.due, event_end) == timedelta(0)
    return not (same_end and event_duration == timing.duration)


def detect_day_changes(
    weekday: int,
    anchor: datetime,
    existing: Sequence[ExistingEvent],
    tasks: Sequence[DayTask],
    *,
    tz: ZoneInfo,
    due_date_format: str = DEFAULT_DUE_DATE_FORMAT,
) -> DayChanges:
    """Compute the add, remove and update sets for one day.

    Raises:
        ParseError, ValidationError: from the first task that cannot be
            mapped; nothing is returned for the day in that case.
    """
    changes = DayChanges(weekday=weekday, date=anchor)

    # first task wins when names collide
    by_name: Dict[str, DayTask] = {}
    for day_task in tasks:
        event = task_to_event(
            day_task.task,
            anchor,
            group_title=day_task.group_title,
            tz=tz,
            due_date_format=due_date_format,
        )
        name = day_task.task.name
        if name in by_name:
            changes.duplicate_tasks.append(name)
            logger.warning(
                f"Tasks named '{name}' appear more than once on {anchor:%A %Y-%m-%d}; "
                "only one calendar event is kept for them"
            )
            continue
        by_name[name] = day_task

        match = match_name(name, existing)
        if match.kind is MatchKind.NONE:
            changes.to_add.append(event)
        elif match.kind is MatchKind.DUPLICATE:
            changes.duplicate_events.append(match)
            logger.warning(
                f"{len(match.events)} events named '{name}' exist on {anchor:%A %Y-%m-%d}"
            )

    for existing_event in existing:
        day_task = by_name.get(existing_event.summary)
        if day_task is None:
            changes.to_remove.append(existing_event)
            continue

        if event_needs_update(
            day_task.task,
            existing_event,
            anchor,
            group_title=day_task.group_title,
            tz=tz,
            due_date_format=due_date_format,
        ):
            fresh = task_to_event(
                day_task.task,
                anchor,
                group_title=day_task.group_title,
                tz=tz,
                due_date_format=due_date_format,
            )
            changes.to_update.append(EventUpdate(event_id=existing_event.id, event=fresh))

    return changes
