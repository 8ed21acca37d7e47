"""Sync module for reconciling a Monday.com board with Google Calendar."""
from __future__ import annotations

from .detector import (
    DayChanges,
    DayTask,
    EventUpdate,
    MatchKind,
    NameMatch,
    detect_day_changes,
    event_needs_update,
    match_name,
)
from .mapper import TaskTiming, resolve_task_timing, task_to_event
from .service import (
    ApplyError,
    ApplyReport,
    SyncPlan,
    SyncService,
    format_plan,
)
from .week import (
    WEEKDAY_NAMES,
    RecognizedWeekday,
    UnrecognizedTitle,
    week_dates,
    weekday_for_title,
)

__all__ = [
    "DayChanges",
    "DayTask",
    "EventUpdate",
    "MatchKind",
    "NameMatch",
    "detect_day_changes",
    "event_needs_update",
    "match_name",
    "TaskTiming",
    "resolve_task_timing",
    "task_to_event",
    "ApplyError",
    "ApplyReport",
    "SyncPlan",
    "SyncService",
    "format_plan",
    "WEEKDAY_NAMES",
    "RecognizedWeekday",
    "UnrecognizedTitle",
    "week_dates",
    "weekday_for_title",
]
