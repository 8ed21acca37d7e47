"""Shared fixtures: settings, board builders and an in-memory calendar."""
from __future__ import annotations

from datetime import datetime
from itertools import count
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

import pytest

from monday_gcal_sync.board import (
    DUE_DATE_AND_TIME,
    ESTIMATE_HOURS,
    Board,
    ColumnValue,
    Group,
    Task,
)
from monday_gcal_sync.calendar.google_calendar import CalendarError
from monday_gcal_sync.calendar.types import CanonicalEvent, ExistingEvent, format_timestamp
from monday_gcal_sync.config import Settings


NEW_YORK = ZoneInfo("America/New_York")

# Wednesday of the week that starts Sunday 2023-12-31
WEDNESDAY_MORNING = datetime(2024, 1, 3, 10, 0, tzinfo=NEW_YORK)


def make_task(name: str, *, estimate: Optional[str] = None, due: Optional[str] = None) -> Task:
    columns: List[ColumnValue] = [ColumnValue(title="Status", text="Working on it")]
    if estimate is not None:
        columns.append(ColumnValue(title=ESTIMATE_HOURS, text=estimate))
    if due is not None:
        columns.append(ColumnValue(title=DUE_DATE_AND_TIME, text=due))
    return Task(name=name, column_values=columns)


def make_board(groups: Dict[str, List[Task]], *, board_id: str = "123456") -> Board:
    return Board(
        id=board_id,
        name="Weekly Plan",
        groups=[Group(title=title, tasks=list(tasks)) for title, tasks in groups.items()],
    )


def existing_from(event: CanonicalEvent, event_id: str = "evt-1") -> ExistingEvent:
    """Build the event Google would return after inserting ``event``."""
    return ExistingEvent(
        id=event_id,
        summary=event.summary,
        start=format_timestamp(event.start),
        end=format_timestamp(event.end),
        timezone=event.timezone,
        status=event.status,
    )


class FakeCalendar:
    """In-memory stand-in for GoogleCalendarClient's event operations."""

    def __init__(self) -> None:
        self.events: Dict[str, ExistingEvent] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_on: Optional[Tuple[str, str]] = None
        self._ids = count(1)

    def add_existing(self, summary: str, start: str, end: str) -> ExistingEvent:
        event = ExistingEvent(id=f"evt-{next(self._ids)}", summary=summary, start=start, end=end)
        self.events[event.id] = event
        return event

    def list_events(
        self, calendar_id: str, time_min: datetime, time_max: datetime
    ) -> List[ExistingEvent]:
        self.calls.append(("list", format_timestamp(time_min)))
        found = []
        for event in self.events.values():
            start = datetime.fromisoformat(event.start)
            end = datetime.fromisoformat(event.end)
            if end > time_min and start < time_max:
                found.append(event)
        return found

    def insert_event(self, calendar_id: str, event: CanonicalEvent) -> None:
        self._record("insert", event.summary)
        stored = existing_from(event, f"evt-{next(self._ids)}")
        self.events[stored.id] = stored

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._record("delete", self.events[event_id].summary)
        del self.events[event_id]

    def update_event(self, calendar_id: str, event_id: str, event: CanonicalEvent) -> None:
        self._record("update", event.summary)
        self.events[event_id] = existing_from(event, event_id)

    def _record(self, operation: str, summary: str) -> None:
        if self.fail_on == (operation, summary):
            raise CalendarError(f"Calendar API request failed (500): {operation} {summary}")
        self.calls.append((operation, summary))

    def writes(self) -> List[Tuple[str, str]]:
        return [call for call in self.calls if call[0] != "list"]


@pytest.fixture
def tz() -> ZoneInfo:
    return NEW_YORK


@pytest.fixture
def settings() -> Settings:
    return Settings(
        monday_api_key="monday-key-123",
        google_client_id="client-id",
        google_client_secret="client-secret",
        google_refresh_token="refresh-token",
        timezone=NEW_YORK,
    )


@pytest.fixture
def fake_calendar() -> FakeCalendar:
    return FakeCalendar()
