"""Conversion of board tasks into canonical calendar events."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import math
from typing import Optional
from zoneinfo import ZoneInfo

from ..board import DUE_DATE_AND_TIME, ESTIMATE_HOURS, Task
from ..calendar.types import CanonicalEvent
from ..config import DEFAULT_DUE_DATE_FORMAT
from ..errors import ParseError, ValidationError
from .week import weekday_name


DEFAULT_EVENT_DURATION = timedelta(minutes=30)


@dataclass(frozen=True, slots=True)
class TaskTiming:
    """Duration and optional due date implied by a task's columns."""

    duration: timedelta
    due: Optional[datetime] = None


def parse_estimate_hours(text: str) -> timedelta:
    """Parse decimal hours text such as ``"1.5"`` into a duration."""
    try:
        hours = float(text.strip())
    except ValueError as exc:
        raise ParseError(f"Issue converting {ESTIMATE_HOURS} '{text}': not a number") from exc
    if not math.isfinite(hours) or hours < 0:
        raise ParseError(
            f"Issue converting {ESTIMATE_HOURS} '{text}': must be a non-negative number"
        )
    try:
        # calendar timestamps carry whole seconds
        return timedelta(seconds=round(hours * 3600))
    except OverflowError as exc:
        raise ParseError(f"Issue converting {ESTIMATE_HOURS} '{text}': too large") from exc


def parse_due_date(text: str, tz: ZoneInfo, fmt: str = DEFAULT_DUE_DATE_FORMAT) -> datetime:
    """Parse due date text; naive values are read as wall time in ``tz``."""
    try:
        parsed = datetime.strptime(text.strip(), fmt)
    except ValueError as exc:
        raise ParseError(
            f"Issue parsing {DUE_DATE_AND_TIME} '{text}' with format '{fmt}': {exc}"
        ) from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def shift(value: datetime, delta: timedelta, tz: ZoneInfo) -> datetime:
    """Move ``value`` by elapsed time, so DST changes keep real durations."""
    try:
        return (value.astimezone(timezone.utc) + delta).astimezone(tz)
    except OverflowError as exc:
        raise ParseError(f"Duration {delta} moves {value.isoformat()} out of range") from exc


def elapsed(start: datetime, end: datetime) -> timedelta:
    """Return the real time between two aware datetimes."""
    return end.astimezone(timezone.utc) - start.astimezone(timezone.utc)


def resolve_task_timing(
    task: Task,
    anchor: datetime,
    *,
    group_title: str,
    tz: ZoneInfo,
    due_date_format: str = DEFAULT_DUE_DATE_FORMAT,
) -> TaskTiming:
    """Read the duration and due date from a task's columns.

    Raises:
        ParseError: if the estimate or due date text is malformed.
        ValidationError: if the due date falls on a different weekday than
            the anchor of the task's group.
    """
    duration = DEFAULT_EVENT_DURATION
    due: Optional[datetime] = None

    estimate_text = (task.column_text(ESTIMATE_HOURS) or "").strip()
    if estimate_text:
        duration = parse_estimate_hours(estimate_text)

    due_text = (task.column_text(DUE_DATE_AND_TIME) or "").strip()
    if due_text:
        due = parse_due_date(due_text, tz, due_date_format)
        due_day = weekday_name(due)
        anchor_day = weekday_name(anchor.astimezone(tz))
        if due_day != anchor_day:
            raise ValidationError(
                f"The task '{task.name}' has a due date in Monday.com on the weekday "
                f"'{due_day}' instead of '{anchor_day}'. A task in the group "
                f"'{group_title}', if it has a due date, should be set to the same day "
                "as the group name. Please fix in Monday.com by removing the due date "
                "or changing the date and time."
            )

    return TaskTiming(duration=duration, due=due)


def task_to_event(
    task: Task,
    anchor: datetime,
    *,
    group_title: str,
    tz: ZoneInfo,
    due_date_format: str = DEFAULT_DUE_DATE_FORMAT,
) -> CanonicalEvent:
    """Map a task onto the event it should appear as.

    Without a due date the event starts at the anchor midnight and is
    tentative. With one, the event ends at the due date and is confirmed.
    """
    timing = resolve_task_timing(
        task,
        anchor,
        group_title=group_title,
        tz=tz,
        due_date_format=due_date_format,
    )

    if timing.due is None:
        start = anchor
        end = shift(start, timing.duration, tz)
        status = "tentative"
    else:
        end = timing.due
        start = shift(end, -timing.duration, tz)
        status = "confirmed"

    return CanonicalEvent(
        summary=task.name,
        start=start,
        end=end,
        status=status,
        timezone=tz.key,
    )
