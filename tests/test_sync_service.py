"""Tests for the SyncService - board to calendar week reconciliation.

These tests drive the service against an in-memory calendar with a fixed
clock (Wednesday 2024-01-03, New York), so the week runs from Sunday
2023-12-31 to Saturday 2024-01-06.

Test Categories:
1. Planning (per-day fetch, group resolution)
2. Applying (order, fail-fast reporting)
3. Idempotence and round trips
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime

import pytest

from monday_gcal_sync.errors import ValidationError
from monday_gcal_sync.sync.service import ApplyError, SyncService, format_plan

from conftest import NEW_YORK, WEDNESDAY_MORNING, make_board, make_task


CALENDAR_ID = "board-cal@group.calendar.google.com"


@pytest.fixture
def service(settings, fake_calendar):
    return SyncService(settings, fake_calendar, clock=lambda: WEDNESDAY_MORNING)


# =============================================================================
# Planning
# =============================================================================

class TestPlan:
    """Tests for SyncService.plan()."""

    def test_fetches_each_day_of_the_week(self, service, fake_calendar):
        service.plan(make_board({}), CALENDAR_ID)
        listed = [call[1] for call in fake_calendar.calls if call[0] == "list"]
        assert listed == [
            "2023-12-31T00:00:00-05:00",
            "2024-01-01T00:00:00-05:00",
            "2024-01-02T00:00:00-05:00",
            "2024-01-03T00:00:00-05:00",
            "2024-01-04T00:00:00-05:00",
            "2024-01-05T00:00:00-05:00",
            "2024-01-06T00:00:00-05:00",
        ]

    def test_tasks_land_on_their_group_day(self, service):
        board = make_board({
            "Monday": [make_task("Gym")],
            "Friday": [make_task("Groceries", estimate="1")],
        })
        plan = service.plan(board, CALENDAR_ID)
        added = {event.summary: event for event in plan.to_add}
        assert added["Gym"].start.isoformat() == "2024-01-01T00:00:00-05:00"
        assert added["Groceries"].start.isoformat() == "2024-01-05T00:00:00-05:00"
        assert added["Groceries"].end.isoformat() == "2024-01-05T01:00:00-05:00"

    def test_plan_does_not_write(self, service, fake_calendar):
        service.plan(make_board({"Monday": [make_task("Gym")]}), CALENDAR_ID)
        assert fake_calendar.writes() == []

    def test_groups_with_same_weekday_are_merged(self, service):
        board = make_board({"Monday": [make_task("Gym")]})
        board.groups.append(replace(board.groups[0], tasks=[make_task("Laundry")]))
        plan = service.plan(board, CALENDAR_ID)
        assert [e.summary for e in plan.days[1].to_add] == ["Gym", "Laundry"]

    def test_days_without_group_are_left_alone(self, service, fake_calendar):
        fake_calendar.add_existing(
            "Personal", "2024-01-06T09:00:00-05:00", "2024-01-06T09:30:00-05:00"
        )
        plan = service.plan(make_board({"Monday": []}), CALENDAR_ID)
        assert plan.to_remove == []
        assert plan.days[6].grouped is False

    def test_empty_group_removes_its_events(self, service, fake_calendar):
        stray = fake_calendar.add_existing(
            "Old task", "2024-01-06T09:00:00-05:00", "2024-01-06T09:30:00-05:00"
        )
        plan = service.plan(make_board({"Saturday": []}), CALENDAR_ID)
        assert plan.to_remove == [stray]

    def test_event_across_midnight_is_removed_once(self, service, fake_calendar):
        stray = fake_calendar.add_existing(
            "Late shift", "2024-01-01T23:00:00-05:00", "2024-01-02T01:00:00-05:00"
        )
        board = make_board({"Monday": [], "Tuesday": []})
        assert service.plan(board, CALENDAR_ID).to_remove == [stray]

        service.sync(board, CALENDAR_ID)
        assert fake_calendar.writes() == [("delete", "Late shift")]

    def test_event_across_midnight_belongs_to_its_task_day(self, service, fake_calendar):
        """A Tuesday task due 00:30 starts on Monday evening."""
        fake_calendar.add_existing(
            "Early", "2024-01-01T23:30:00-05:00", "2024-01-02T00:30:00-05:00"
        )
        board = make_board({
            "Monday": [],
            "Tuesday": [make_task("Early", estimate="1", due="2024-01-02 00:30 -0500")],
        })
        assert service.plan(board, CALENDAR_ID).is_empty

    def test_unrecognized_group_fails_before_fetching(self, service, fake_calendar):
        board = make_board({"Monday": [make_task("Gym")], "Backlog": [make_task("Someday")]})
        with pytest.raises(ValidationError, match="Backlog"):
            service.plan(board, CALENDAR_ID)
        assert fake_calendar.calls == []

    def test_unrecognized_group_can_be_skipped(self, settings, fake_calendar):
        settings.skip_unrecognized_groups = True
        service = SyncService(settings, fake_calendar, clock=lambda: WEDNESDAY_MORNING)
        board = make_board({"Monday": [make_task("Gym")], "Backlog": [make_task("Someday")]})
        plan = service.plan(board, CALENDAR_ID)
        assert [e.summary for e in plan.to_add] == ["Gym"]

    def test_invalid_task_aborts_plan(self, service):
        board = make_board({"Tuesday": [make_task("Call", due="2024-01-03 10:00 -0500")]})
        with pytest.raises(ValidationError, match="'Wednesday'"):
            service.plan(board, CALENDAR_ID)

    def test_format_plan_lists_changes(self, service, fake_calendar):
        fake_calendar.add_existing(
            "Old task", "2024-01-02T09:00:00-05:00", "2024-01-02T09:30:00-05:00"
        )
        board = make_board({"Monday": [make_task("Gym")], "Tuesday": []})
        text = format_plan(service.plan(board, CALENDAR_ID))
        assert "Monday 2024-01-01:" in text
        assert "add Gym 00:00-00:30 (tentative)" in text
        assert "remove Old task" in text
        assert "Sunday 2023-12-31: no group, events left as they are" in text


# =============================================================================
# Applying
# =============================================================================

class TestApply:
    """Tests for SyncService.apply()."""

    def _mixed_calendar(self, fake_calendar):
        fake_calendar.add_existing(
            "Old task", "2024-01-01T00:00:00-05:00", "2024-01-01T00:30:00-05:00"
        )
        fake_calendar.add_existing(
            "Changed", "2024-01-01T00:00:00-05:00", "2024-01-01T00:30:00-05:00"
        )
        return make_board({"Monday": [make_task("Changed", estimate="2"), make_task("New")]})

    def test_applies_adds_then_removals_then_updates(self, service, fake_calendar):
        board = self._mixed_calendar(fake_calendar)
        report = service.sync(board, CALENDAR_ID)
        assert fake_calendar.writes() == [
            ("insert", "New"),
            ("delete", "Old task"),
            ("update", "Changed"),
        ]
        assert report.summary() == "1 added, 1 removed, 1 updated"

    def test_update_rewrites_timing(self, service, fake_calendar):
        board = self._mixed_calendar(fake_calendar)
        service.sync(board, CALENDAR_ID)
        changed = next(e for e in fake_calendar.events.values() if e.summary == "Changed")
        assert changed.end == "2024-01-01T02:00:00-05:00"

    def test_failure_stops_and_reports_completed_writes(self, service, fake_calendar):
        board = make_board({"Monday": [make_task("First"), make_task("Second")]})
        fake_calendar.add_existing(
            "Old task", "2024-01-01T00:00:00-05:00", "2024-01-01T00:30:00-05:00"
        )
        fake_calendar.fail_on = ("insert", "Second")
        plan = service.plan(board, CALENDAR_ID)

        with pytest.raises(ApplyError) as excinfo:
            service.apply(plan)

        error = excinfo.value
        assert error.phase == "add"
        assert error.failed.summary == "Second"
        assert [e.summary for e in error.report.inserted] == ["First"]
        assert error.report.deleted == []
        assert fake_calendar.writes() == [("insert", "First")]
        assert "Second" in str(error)

    def test_failed_removal_keeps_earlier_adds(self, service, fake_calendar):
        board = make_board({"Monday": [make_task("New")]})
        fake_calendar.add_existing(
            "Old task", "2024-01-01T00:00:00-05:00", "2024-01-01T00:30:00-05:00"
        )
        fake_calendar.fail_on = ("delete", "Old task")

        with pytest.raises(ApplyError) as excinfo:
            service.sync(board, CALENDAR_ID)

        assert excinfo.value.phase == "remove"
        assert [e.summary for e in excinfo.value.report.inserted] == ["New"]
        assert any(e.summary == "New" for e in fake_calendar.events.values())

    def test_empty_plan_writes_nothing(self, service, fake_calendar):
        report = service.sync(make_board({}), CALENDAR_ID)
        assert report.total == 0
        assert fake_calendar.writes() == []


# =============================================================================
# Idempotence
# =============================================================================

class TestIdempotence:
    """Running twice without changes leaves nothing to do the second time."""

    def test_second_run_is_empty(self, service):
        board = make_board({
            "Sunday": [make_task("Meal prep", estimate="2")],
            "Monday": [make_task("Gym"), make_task("Dentist", due="2024-01-01 15:00 -0500")],
            "Wednesday": [make_task("Report", estimate="1.5", due="2024-01-03 17:00 -0500")],
            "Saturday": [make_task("Hike", estimate="4")],
        })
        service.sync(board, CALENDAR_ID)

        second = service.plan(board, CALENDAR_ID)
        assert second.to_add == []
        assert second.to_remove == []
        assert second.to_update == []
        assert second.is_empty

    def test_duplicate_names_stay_stable(self, service, fake_calendar):
        board = make_board({"Monday": [make_task("Standup"), make_task("Standup")]})
        first = service.sync(board, CALENDAR_ID)
        assert len(first.inserted) == 1
        assert service.plan(board, CALENDAR_ID).is_empty
        assert len(fake_calendar.events) == 1

    def test_board_change_is_picked_up(self, service):
        board = make_board({"Monday": [make_task("Gym")]})
        service.sync(board, CALENDAR_ID)

        board.groups[0].tasks[0] = make_task("Gym", estimate="1")
        plan = service.plan(board, CALENDAR_ID)
        assert [u.event.summary for u in plan.to_update] == ["Gym"]
        assert plan.to_add == []

    def test_task_ending_before_midnight_is_stable(self, service, fake_calendar):
        board = make_board({
            "Monday": [],
            "Tuesday": [make_task("Early", estimate="1", due="2024-01-02 00:30 -0500")],
        })
        service.sync(board, CALENDAR_ID)
        assert service.plan(board, CALENDAR_ID).is_empty
        assert len(fake_calendar.events) == 1

    def test_due_exactly_at_midnight_is_stable(self, service, fake_calendar):
        """The event ends on the window start, so only Monday's listing returns it."""
        board = make_board({
            "Monday": [],
            "Tuesday": [make_task("Deadline", due="2024-01-02 00:00 -0500")],
        })
        service.sync(board, CALENDAR_ID)
        assert service.plan(board, CALENDAR_ID).is_empty
        assert len(fake_calendar.events) == 1

    def test_fractional_estimate_is_stable(self, service):
        board = make_board({"Monday": [make_task("Review", estimate="0.333")]})
        service.sync(board, CALENDAR_ID)
        assert service.plan(board, CALENDAR_ID).to_update == []

    def test_dst_day_is_stable(self, settings, fake_calendar):
        # clocks spring forward on Sunday 2024-03-10
        wednesday = datetime(2024, 3, 13, 9, 0, tzinfo=NEW_YORK)
        service = SyncService(settings, fake_calendar, clock=lambda: wednesday)
        board = make_board({"Sunday": [make_task("Meal prep", estimate="3")]})

        service.sync(board, CALENDAR_ID)

        (stored,) = fake_calendar.events.values()
        assert stored.start == "2024-03-10T00:00:00-05:00"
        assert stored.end == "2024-03-10T04:00:00-04:00"
        assert service.plan(board, CALENDAR_ID).is_empty
