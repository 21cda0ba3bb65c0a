"""
Cycle Scheduler - Trigger cycles on a cron schedule.

Schedules are six-field cron expressions:

    second minute hour day-of-month month day-of-week
    0      0      2    *            *     *            → daily at 02:00:00

Five-field expressions get second=0. Day-of-week follows cron
numbering (0 or 7 = Sunday, 1 = Monday); it is translated to day names
before reaching APScheduler, which numbers Monday as 0.

## Usage

    from mirrorsite.engine.scheduler import CycleScheduler

    scheduler = CycleScheduler(orchestrator.run_cycle, "0 0 2 * * *")
    scheduler.start(run_on_start=True)
    ...
    scheduler.stop()
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..errors import ScheduleError

logger = logging.getLogger(__name__)

CRON_FIELDS = ("second", "minute", "hour", "day", "month", "day_of_week")

DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

CYCLE_JOB_ID = "mirror_cycle"
STARTUP_JOB_ID = "startup_cycle"


def _day_name(token: str, expression: str) -> str:
    if token.isdigit():
        value = int(token)
        if value > 7:
            raise ScheduleError(f"Day-of-week {value} out of range in '{expression}'")
        return DAY_NAMES[value % 7]
    return token.lower()


def _day_index(token: str, expression: str) -> int:
    name = _day_name(token, expression)
    if name not in DAY_NAMES:
        raise ScheduleError(f"Unknown day-of-week '{token}' in '{expression}'")
    return DAY_NAMES.index(name)


def translate_day_of_week(value: str, expression: str = "") -> str:
    """
    Convert a cron day-of-week field to APScheduler day names.

    "*" passes through. Ranges and "*/n" are expanded to explicit lists
    so that cron numbering (0 = sunday) holds and wrap-arounds such as
    "5-1" (fri through mon) work.

        "0"      → "sun"
        "1-5"    → "mon,tue,wed,thu,fri"
        "6,0"    → "sat,sun"
        "*/2"    → "sun,tue,thu,sat"
    """
    expression = expression or value
    if value in ("*", "?"):
        return "*"

    names: List[str] = []
    for part in value.split(","):
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            if not step_text.isdigit() or int(step_text) < 1:
                raise ScheduleError(f"Invalid step '{step_text}' in '{expression}'")
            step = int(step_text)

        if part == "*":
            part = "0-6"

        if "-" in part:
            first_text, last_text = part.split("-", 1)
            first = _day_index(first_text, expression)
            last = _day_index(last_text, expression)
            # "0-7" / "sun-sun" style spans cover the whole week
            span = (last - first) % 7
            if span == 0 and first_text != last_text:
                span = 6
            days = [DAY_NAMES[(first + offset) % 7] for offset in range(0, span + 1, step)]
        else:
            if step != 1:
                raise ScheduleError(f"Step without range in '{expression}'")
            days = [DAY_NAMES[_day_index(part, expression)]]

        for day in days:
            if day not in names:
                names.append(day)

    return ",".join(names)


def parse_schedule(expression: str) -> Dict[str, str]:
    """
    Split a cron expression into CronTrigger keyword arguments.

    Raises:
        ScheduleError: wrong field count or invalid day-of-week
    """
    fields = expression.split()
    if len(fields) == 5:
        fields = ["0"] + fields
    if len(fields) != 6:
        raise ScheduleError(
            f"Schedule '{expression}' must have 6 fields "
            f"(second minute hour day month day-of-week), got {len(fields)}"
        )

    parsed = dict(zip(CRON_FIELDS, fields))
    parsed["day_of_week"] = translate_day_of_week(parsed["day_of_week"], expression)
    return parsed


def build_trigger(expression: str, timezone: Optional[Any] = None) -> CronTrigger:
    """
    Build a CronTrigger from a cron expression.

    Raises:
        ScheduleError: the expression is malformed
    """
    fields = parse_schedule(expression)
    try:
        return CronTrigger(timezone=timezone, **fields)
    except ValueError as e:
        raise ScheduleError(f"Invalid schedule '{expression}': {e}") from e


class CycleScheduler:
    """
    Runs a cycle job on a cron trigger in a background thread.

    The job is registered with max_instances=1 and coalesce=True, and
    any exception it raises is logged here, so the scheduler never
    sees a failing job.
    """

    def __init__(
        self,
        job: Callable[[], Any],
        schedule: str,
        logger: Optional[logging.Logger] = None,
        scheduler_factory: Callable[[], BackgroundScheduler] = BackgroundScheduler,
    ):
        self.job = job
        self.schedule = schedule
        self.trigger = build_trigger(schedule)
        self.log = logger or logging.getLogger(__name__)
        self._factory = scheduler_factory
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def _run_job(self) -> None:
        try:
            self.job()
        except Exception:
            self.log.exception("Scheduled cycle raised")

    def start(self, run_on_start: bool = False) -> None:
        """
        Start the scheduler.

        With ``run_on_start``, one cycle is queued to run immediately,
        ahead of the cron job.
        """
        if self._scheduler is not None:
            return

        self._scheduler = self._factory()

        if run_on_start:
            self.log.info("Queueing startup cycle")
            self._scheduler.add_job(
                self._run_job,
                id=STARTUP_JOB_ID,
                name="Startup cycle",
                replace_existing=True,
            )

        self._scheduler.add_job(
            self._run_job,
            trigger=self.trigger,
            id=CYCLE_JOB_ID,
            name="Mirror sync and build",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self.log.info(f"Cycle scheduler started (schedule: {self.schedule})")

    def stop(self) -> None:
        """Stop the scheduler without waiting for a running cycle."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            self.log.info("Cycle scheduler stopped")

    def next_run_time(self) -> Optional[str]:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(CYCLE_JOB_ID)
        if job is None or job.next_run_time is None:
            return None
        return job.next_run_time.isoformat()
