"""
Cron expression handling for the scheduler.
"""

from datetime import datetime, timedelta, timezone, tzinfo

from apscheduler.triggers.cron import CronTrigger


class CronSchedule:
    """
    Cron-style cadence backed by an APScheduler ``CronTrigger``.

    Accepts five fields (``minute hour day month day_of_week``) or six with a
    leading seconds field. Numeric day-of-week values follow APScheduler,
    where 0 is Monday; names (``mon``-``sun``) are unambiguous.
    """

    def __init__(self, expression: str, tz: tzinfo = timezone.utc):
        fields = expression.split()
        if len(fields) == 5:
            fields = ["0", *fields]
        if len(fields) != 6:
            raise ValueError(
                f"Invalid cron expression {expression!r}: expected 5 or 6 fields, got {len(fields)}"
            )

        second, minute, hour, day, month, day_of_week = fields
        try:
            self._trigger = CronTrigger(
                second=second,
                minute=minute,
                hour=hour,
                day=day,
                month=month,
                day_of_week=day_of_week,
                timezone=tz,
            )
        except ValueError as e:
            raise ValueError(f"Invalid cron expression {expression!r}: {e}") from e

        self.expression = expression

    def next_fire_time(
        self,
        now: datetime,
        previous: datetime | None = None,
    ) -> datetime | None:
        """
        Next tick at or after ``now`` and strictly after ``previous``.

        Ticks missed while a pass was running are collapsed into the next one
        rather than replayed.
        """
        start = now
        if previous is not None:
            start = max(now, previous + timedelta(microseconds=1))
        return self._trigger.get_next_fire_time(None, start)

    def __repr__(self) -> str:
        return f"CronSchedule({self.expression!r})"
