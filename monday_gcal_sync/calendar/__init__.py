"""Google Calendar integration.

This module provides the calendar side of a board sync:
- Calendar list, create and get operations
- Event list, insert, update and delete operations
- Selection of the calendar that belongs to a board
"""
from __future__ import annotations

from .types import (
    CalendarInfo,
    CanonicalEvent,
    EventStatus,
    ExistingEvent,
    format_timestamp,
)

from .google_calendar import (
    CalendarAccountConfig,
    CalendarError,
    GoogleCalendarClient,
    account_from_settings,
    find_or_create_board_calendar,
)

__all__ = [
    "CalendarInfo",
    "CanonicalEvent",
    "EventStatus",
    "ExistingEvent",
    "format_timestamp",
    "CalendarAccountConfig",
    "CalendarError",
    "GoogleCalendarClient",
    "account_from_settings",
    "find_or_create_board_calendar",
]
