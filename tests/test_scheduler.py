"""
Tests for cron parsing and the CycleScheduler.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from mirrorsite.engine.scheduler import (
    CYCLE_JOB_ID,
    STARTUP_JOB_ID,
    CycleScheduler,
    build_trigger,
    parse_schedule,
    translate_day_of_week,
)
from mirrorsite.errors import ScheduleError


class TestDayOfWeek:

    @pytest.mark.parametrize("value,expected", [
        ("*", "*"),
        ("?", "*"),
        ("*/2", "sun,tue,thu,sat"),
        ("*/3", "sun,wed,sat"),
        ("0", "sun"),
        ("7", "sun"),
        ("1", "mon"),
        ("6,0", "sat,sun"),
        ("1-5", "mon,tue,wed,thu,fri"),
        ("5-1", "fri,sat,sun,mon"),
        ("0-7", "sun,mon,tue,wed,thu,fri,sat"),
        ("1-5/2", "mon,wed,fri"),
        ("MON", "mon"),
    ])
    def test_translation(self, value, expected):
        assert translate_day_of_week(value) == expected

    @pytest.mark.parametrize("value", ["8", "funday", "1/2", "1-5/0", "*/0"])
    def test_invalid(self, value):
        with pytest.raises(ScheduleError):
            translate_day_of_week(value)


class TestParseSchedule:

    def test_six_fields(self):
        assert parse_schedule("0 0 2 * * *") == {
            "second": "0",
            "minute": "0",
            "hour": "2",
            "day": "*",
            "month": "*",
            "day_of_week": "*",
        }

    def test_five_fields_default_second(self):
        fields = parse_schedule("30 4 * * 1")
        assert fields["second"] == "0"
        assert fields["minute"] == "30"
        assert fields["day_of_week"] == "mon"

    def test_wrong_field_count(self):
        with pytest.raises(ScheduleError, match="6 fields"):
            parse_schedule("0 2 *")


class TestBuildTrigger:

    def test_daily_at_two(self):
        trigger = build_trigger("0 0 2 * * *", timezone=timezone.utc)

        fire = trigger.get_next_fire_time(None, datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))

        assert (fire.day, fire.hour, fire.minute, fire.second) == (2, 2, 0, 0)

    def test_cron_sunday_is_sunday(self):
        # 2026-01-01 is a Thursday
        trigger = build_trigger("0 0 2 * * 0", timezone=timezone.utc)

        fire = trigger.get_next_fire_time(None, datetime(2026, 1, 1, tzinfo=timezone.utc))

        assert fire.date().isoformat() == "2026-01-04"
        assert fire.weekday() == 6

    def test_cron_monday_is_monday(self):
        trigger = build_trigger("0 0 2 * * 1", timezone=timezone.utc)

        fire = trigger.get_next_fire_time(None, datetime(2026, 1, 1, tzinfo=timezone.utc))

        assert fire.weekday() == 0

    def test_every_other_day_counts_from_sunday(self):
        # 2026-03-01 is a Sunday
        trigger = build_trigger("0 0 2 * * */2", timezone=timezone.utc)

        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        days = []
        fire = None
        for _ in range(4):
            fire = trigger.get_next_fire_time(fire, now)
            days.append(fire.strftime("%a"))
            now = fire + timedelta(seconds=1)

        assert days == ["Sun", "Tue", "Thu", "Sat"]

    @pytest.mark.parametrize("expression", ["0 0 25 * * *", "0 61 2 * * *", "0 0 two * * *"])
    def test_out_of_range_values(self, expression):
        with pytest.raises(ScheduleError):
            build_trigger(expression)


class TestCycleScheduler:

    @pytest.fixture
    def backend(self):
        return MagicMock()

    def test_start_registers_single_instance_job(self, backend):
        scheduler = CycleScheduler(MagicMock(), "0 0 2 * * *", scheduler_factory=lambda: backend)

        scheduler.start()

        backend.add_job.assert_called_once()
        kwargs = backend.add_job.call_args.kwargs
        assert kwargs["id"] == CYCLE_JOB_ID
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True
        backend.start.assert_called_once()
        assert scheduler.running

    def test_run_on_start_queues_startup_cycle_first(self, backend):
        scheduler = CycleScheduler(MagicMock(), "0 0 2 * * *", scheduler_factory=lambda: backend)

        scheduler.start(run_on_start=True)

        ids = [c.kwargs["id"] for c in backend.add_job.call_args_list]
        assert ids == [STARTUP_JOB_ID, CYCLE_JOB_ID]
        assert "trigger" not in backend.add_job.call_args_list[0].kwargs

    def test_start_twice_is_noop(self, backend):
        scheduler = CycleScheduler(MagicMock(), "0 0 2 * * *", scheduler_factory=lambda: backend)

        scheduler.start()
        scheduler.start()

        backend.start.assert_called_once()

    def test_stop_shuts_down_without_waiting(self, backend):
        scheduler = CycleScheduler(MagicMock(), "0 0 2 * * *", scheduler_factory=lambda: backend)
        scheduler.start()

        scheduler.stop()

        backend.shutdown.assert_called_once_with(wait=False)
        assert not scheduler.running

    def test_job_exceptions_are_contained(self, caplog):
        job = MagicMock(side_effect=RuntimeError("cycle blew up"))
        scheduler = CycleScheduler(job, "0 0 2 * * *", scheduler_factory=MagicMock)

        scheduler._run_job()

        job.assert_called_once()
        assert "Scheduled cycle raised" in caplog.text

    def test_invalid_schedule_rejected_at_construction(self):
        with pytest.raises(ScheduleError):
            CycleScheduler(MagicMock(), "every night")

    def test_next_run_time_before_start(self):
        scheduler = CycleScheduler(MagicMock(), "0 0 2 * * *", scheduler_factory=MagicMock)
        assert scheduler.next_run_time() is None
