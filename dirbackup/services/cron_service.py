"""Cron expressions: parsing and next-fire-time computation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

# (name, min, max) for each field of a six-field expression
_FIELDS = (
    ("second", 0, 59),
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day of month", 1, 31),
    ("month", 1, 12),
    ("day of week", 0, 7),
)

# Upper bound on the search; covers leap-day-only schedules.
_MAX_SEARCH_DAYS = 366 * 5


def _parse_value(token: str, name: str, low: int, high: int) -> int:
    try:
        value = int(token)
    except ValueError:
        msg = f"invalid {name} value {token!r}"
        raise ValueError(msg) from None
    if not low <= value <= high:
        msg = f"{name} value {value} out of range {low}-{high}"
        raise ValueError(msg)
    return value


def _parse_field(field_text: str, name: str, low: int, high: int) -> frozenset[int]:
    """Expand one cron field (``*``, ``a``, ``a-b``, ``*/n``, ``a-b/n``, lists) into values."""
    values: set[int] = set()
    for part in field_text.split(","):
        if not part:
            msg = f"empty item in {name} field {field_text!r}"
            raise ValueError(msg)
        range_part, _, step_part = part.partition("/")
        step = 1
        if step_part:
            step = _parse_value(step_part, f"{name} step", 1, high - low + 1)

        if range_part in ("*", "?"):
            start, end = low, high
        elif "-" in range_part:
            first, _, last = range_part.partition("-")
            start = _parse_value(first, name, low, high)
            end = _parse_value(last, name, low, high)
            if start > end:
                msg = f"{name} range {range_part!r} is reversed"
                raise ValueError(msg)
        else:
            start = _parse_value(range_part, name, low, high)
            end = high if step_part else start

        values.update(range(start, end + 1, step))
    return frozenset(values)


@dataclass(frozen=True)
class CronSchedule:
    """A parsed cron schedule.

    Accepts the classic five fields (minute hour day-of-month month
    day-of-week) or six fields with a leading seconds field, e.g.
    ``0 15 * * * *`` fires at second 0 of minute 15 of every hour.
    """

    expression: str
    seconds: frozenset[int]
    minutes: frozenset[int]
    hours: frozenset[int]
    days_of_month: frozenset[int]
    months: frozenset[int]
    days_of_week: frozenset[int]
    dom_restricted: bool
    dow_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> CronSchedule:
        """Parse a cron expression, raising ValueError when it is invalid."""
        fields = expression.split()
        if len(fields) == 5:
            fields = ["0", *fields]
        if len(fields) != 6:
            msg = f"expected 5 or 6 fields, got {len(fields)} in {expression!r}"
            raise ValueError(msg)

        parsed = [
            _parse_field(field_text, name, low, high)
            for field_text, (name, low, high) in zip(fields, _FIELDS, strict=True)
        ]
        # cron allows both 0 and 7 for Sunday
        days_of_week = frozenset(0 if d == 7 else d for d in parsed[5])
        return cls(
            expression=expression,
            seconds=parsed[0],
            minutes=parsed[1],
            hours=parsed[2],
            days_of_month=parsed[3],
            months=parsed[4],
            days_of_week=days_of_week,
            dom_restricted=fields[3] not in ("*", "?"),
            dow_restricted=fields[5] not in ("*", "?"),
        )

    def _day_matches(self, dt: datetime) -> bool:
        if dt.month not in self.months:
            return False
        dom_ok = dt.day in self.days_of_month
        # Python: Monday=0; cron: Sunday=0
        dow_ok = (dt.weekday() + 1) % 7 in self.days_of_week
        if self.dom_restricted and self.dow_restricted:
            return dom_ok or dow_ok
        return dom_ok and dow_ok

    def matches(self, dt: datetime) -> bool:
        """Return True when dt (to the second) is a firing instant."""
        return (
            self._day_matches(dt)
            and dt.hour in self.hours
            and dt.minute in self.minutes
            and dt.second in self.seconds
        )

    def next_after(self, dt: datetime) -> datetime:
        """Return the first firing instant strictly after dt, in dt's timezone."""
        candidate = dt.replace(microsecond=0) + timedelta(seconds=1)
        tz = candidate.tzinfo
        limit = candidate + timedelta(days=_MAX_SEARCH_DAYS)

        while candidate < limit:
            if not self._day_matches(candidate):
                candidate = datetime(
                    candidate.year, candidate.month, candidate.day, tzinfo=tz
                ) + timedelta(days=1)
                continue
            if candidate.hour not in self.hours:
                candidate = datetime(
                    candidate.year, candidate.month, candidate.day, candidate.hour, tzinfo=tz
                ) + timedelta(hours=1)
                continue
            if candidate.minute not in self.minutes:
                candidate = datetime(
                    candidate.year,
                    candidate.month,
                    candidate.day,
                    candidate.hour,
                    candidate.minute,
                    tzinfo=tz,
                ) + timedelta(minutes=1)
                continue
            later = [s for s in sorted(self.seconds) if s >= candidate.second]
            if not later:
                candidate = candidate.replace(second=0) + timedelta(minutes=1)
                continue
            return candidate.replace(second=later[0])

        msg = f"cron expression {self.expression!r} never fires"
        raise ValueError(msg)
