"""Periodic triggers deciding when each report cycle fires.

A trigger only answers "when is the next firing after ``now``?"; the
orchestrator owns the waiting. Two kinds are provided: a fixed interval
and a cron-like list of wall-clock times in a timezone.
"""

from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo


class Trigger(ABC):
    """Computes the next firing time strictly after ``now``."""

    @abstractmethod
    def next_fire(self, now: datetime) -> datetime:
        ...


class IntervalTrigger(Trigger):
    """Fires every ``seconds`` seconds, measured from the previous check."""

    def __init__(self, seconds: float) -> None:
        if seconds <= 0:
            raise ValueError(f"Interval must be positive, got {seconds}")
        self._interval = timedelta(seconds=seconds)

    def next_fire(self, now: datetime) -> datetime:
        return now + self._interval

    def __repr__(self) -> str:
        return f"IntervalTrigger({self._interval.total_seconds():g}s)"


class DailyTrigger(Trigger):
    """Fires at fixed wall-clock times every day, e.g. 03:55 and 07:55.

    Args:
        times: Times of day, any order.
        tz: Timezone the times are expressed in.
    """

    def __init__(self, times: list[time], tz: ZoneInfo) -> None:
        if not times:
            raise ValueError("DailyTrigger needs at least one time")
        self._times = sorted(set(times))
        self._tz = tz

    @classmethod
    def parse(cls, schedule: str, tz_name: str = "UTC") -> "DailyTrigger":
        """Build from a comma-separated "HH:MM" list, e.g. "03:55,07:55"."""
        times = []
        for part in schedule.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                hour, minute = (int(x) for x in part.split(":"))
                times.append(time(hour=hour, minute=minute))
            except ValueError as e:
                raise ValueError(f"Invalid time {part!r} in schedule {schedule!r}") from e
        return cls(times, ZoneInfo(tz_name))

    @property
    def times(self) -> list[time]:
        return list(self._times)

    def next_fire(self, now: datetime) -> datetime:
        local_now = now.astimezone(self._tz)
        for day_offset in (0, 1):
            day = local_now.date() + timedelta(days=day_offset)
            for t in self._times:
                candidate = datetime.combine(day, t, tzinfo=self._tz)
                if candidate > local_now:
                    return candidate
        # unreachable: tomorrow always has a candidate
        raise RuntimeError("No next firing time found")

    def __repr__(self) -> str:
        times = ",".join(t.strftime("%H:%M") for t in self._times)
        return f"DailyTrigger({times} {self._tz.key})"
