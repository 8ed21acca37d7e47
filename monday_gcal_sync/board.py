"""Monday.com board data as consumed by the sync engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


ESTIMATE_HOURS = "EstimateHours"
DUE_DATE_AND_TIME = "DueDateAndTime"


@dataclass(frozen=True, slots=True)
class ColumnValue:
    """One cell of a board item, keyed by its column title."""

    title: str
    text: Optional[str] = None


@dataclass(slots=True)
class Task:
    """A board item; its name is the key matched against event summaries."""

    name: str
    column_values: List[ColumnValue] = field(default_factory=list)
    item_id: Optional[str] = None

    def column_text(self, title: str) -> Optional[str]:
        """Return the text of the last column titled ``title``, or None if absent."""
        found: Optional[str] = None
        for column in self.column_values:
            if column.title == title:
                found = column.text
        return found


@dataclass(slots=True)
class Group:
    """A board group; its title is expected to be a weekday name."""

    title: str
    tasks: List[Task] = field(default_factory=list)
    group_id: Optional[str] = None


@dataclass(slots=True)
class Board:
    id: str
    name: str
    groups: List[Group] = field(default_factory=list)

    @property
    def task_count(self) -> int:
        return sum(len(group.tasks) for group in self.groups)
