"""Calendar data types."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Literal, Optional


EventStatus = Literal["tentative", "confirmed"]

EVENT_DESCRIPTION = "Created by mgint"


@dataclass(slots=True)
class CalendarInfo:
    """Google Calendar metadata."""

    id: str
    summary: str  # Display name
    description: Optional[str] = None
    timezone: Optional[str] = None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "CalendarInfo":
        return cls(
            id=item["id"],
            summary=item.get("summary", item["id"]),
            description=item.get("description"),
            timezone=item.get("timeZone"),
        )


@dataclass(slots=True)
class ExistingEvent:
    """An event as currently stored in Google Calendar.

    Start and end are kept as the raw RFC 3339 text returned by the API;
    they are parsed only when an update check needs them.
    """

    id: str
    summary: str
    start: str
    end: str
    timezone: Optional[str] = None
    status: str = "confirmed"

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "ExistingEvent":
        start_data = item.get("start") or {}
        end_data = item.get("end") or {}
        return cls(
            id=item["id"],
            summary=item.get("summary", ""),
            start=start_data.get("dateTime", ""),
            end=end_data.get("dateTime", ""),
            timezone=start_data.get("timeZone"),
            status=item.get("status", "confirmed"),
        )


@dataclass(frozen=True, slots=True)
class CanonicalEvent:
    """The event a task should map to. Recomputed every run, never mutated."""

    summary: str
    start: datetime
    end: datetime
    status: EventStatus
    timezone: str

    def to_api_body(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "description": EVENT_DESCRIPTION,
            "start": {
                "dateTime": format_timestamp(self.start),
                "timeZone": self.timezone,
            },
            "end": {
                "dateTime": format_timestamp(self.end),
                "timeZone": self.timezone,
            },
            "status": self.status,
        }


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as RFC 3339 with offset and whole seconds."""
    return value.isoformat(timespec="seconds")
