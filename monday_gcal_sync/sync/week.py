"""Current-week date window and weekday group titles."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from types import MappingProxyType
from typing import Mapping, Union
from zoneinfo import ZoneInfo


# Index order follows the board convention: Sunday = 0 ... Saturday = 6.
WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

WeekdayDateMap = Mapping[int, datetime]


@dataclass(frozen=True, slots=True)
class RecognizedWeekday:
    index: int

    @property
    def name(self) -> str:
        return WEEKDAY_NAMES[self.index]


@dataclass(frozen=True, slots=True)
class UnrecognizedTitle:
    title: str


WeekdayLookup = Union[RecognizedWeekday, UnrecognizedTitle]


def weekday_index(value: datetime) -> int:
    """Return the Sunday-based weekday index of ``value``."""
    return (value.weekday() + 1) % 7


def weekday_name(value: datetime) -> str:
    return WEEKDAY_NAMES[weekday_index(value)]


def weekday_for_title(title: str) -> WeekdayLookup:
    """Look up a group title; only exact English weekday names are recognized."""
    if title in WEEKDAY_NAMES:
        return RecognizedWeekday(WEEKDAY_NAMES.index(title))
    return UnrecognizedTitle(title)


def week_dates(now: datetime, tz: ZoneInfo) -> WeekdayDateMap:
    """Map every weekday index to its midnight in the week containing ``now``.

    The week is anchored on today: today's midnight sits at today's index
    and the other days are whole calendar days before or after it, so a
    mid-week run maps Sunday into the past.
    """
    today = now.astimezone(tz).date()
    today_index = weekday_index(now.astimezone(tz))

    dates = {}
    for index in range(len(WEEKDAY_NAMES)):
        day = today + timedelta(days=index - today_index)
        dates[index] = datetime.combine(day, time.min, tzinfo=tz)
    return MappingProxyType(dates)


def end_of_day(midnight: datetime) -> datetime:
    """Return the upper bound of the event window for a day."""
    return midnight + timedelta(hours=23, minutes=59)
