from __future__ import annotations

import calendar
import datetime
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional


logger = logging.getLogger(__name__)

WEEK = datetime.timedelta(days=7)
OVERTIME_THRESHOLDS = {
    "daily": 8,
    "weekly": 40,
    "biweekly": 80,
    "semimonthly": 80,
    "monthly": 160,
    "quarterly": 480,
    "annually": 2080,
}


class Preset(Enum):
    """Named period-length policies for deriving a date range."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    SEMIMONTHLY = "semimonthly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value) -> Optional["Preset"]:
        if isinstance(value, Preset):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return None


class Direction(Enum):
    PREV = "prev"
    NEXT = "next"


@dataclass(frozen=True)
class Period:
    preset: str
    start: datetime.date
    end: datetime.date

    @property
    def day_count(self) -> int:
        return (self.end - self.start).days + 1

    def days(self) -> Iterator[datetime.date]:
        for offset in range(self.day_count):
            yield self.start + datetime.timedelta(days=offset)

    def contains(self, value: datetime.date | datetime.datetime) -> bool:
        if isinstance(value, datetime.datetime):
            value = value.date()
        return self.start <= value <= self.end

    @property
    def label(self) -> str:
        return format_range_label(self.start, self.end, self.preset)

    def to_dict(self) -> dict:
        return {
            "preset": self.preset,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "label": self.label,
        }


def _as_date(value: datetime.date | datetime.datetime) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    return value


def _month_end(year: int, month: int) -> datetime.date:
    return datetime.date(year, month, calendar.monthrange(year, month)[1])


def _add_months(value: datetime.date, months: int) -> datetime.date:
    """Shift by whole months, clamping to the last day of the target month."""
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return datetime.date(year, month, day)


def _week_start(value: datetime.date) -> datetime.date:
    return value - datetime.timedelta(days=value.weekday())


def range_for(preset, reference_date: datetime.date | datetime.datetime) -> Period:
    """Return the period of ``preset`` containing ``reference_date``.

    Unknown presets (and ``custom``, whose dates are never derived) fall back to
    a single-day range on the reference date.
    """
    ref = _as_date(reference_date)
    resolved = Preset.parse(preset)
    name = resolved.value if resolved else str(preset)
    if resolved is Preset.DAILY:
        return Period(name, ref, ref)
    if resolved is Preset.WEEKLY:
        start = _week_start(ref)
        return Period(name, start, start + datetime.timedelta(days=6))
    if resolved is Preset.BIWEEKLY:
        start = _week_start(ref)
        return Period(name, start - WEEK, start + datetime.timedelta(days=6))
    if resolved is Preset.SEMIMONTHLY:
        if ref.day <= 15:
            return Period(name, ref.replace(day=1), ref.replace(day=15))
        return Period(name, ref.replace(day=16), _month_end(ref.year, ref.month))
    if resolved is Preset.MONTHLY:
        return Period(name, ref.replace(day=1), _month_end(ref.year, ref.month))
    if resolved is Preset.QUARTERLY:
        first_month = ref.month - (ref.month - 1) % 3
        return Period(
            name,
            datetime.date(ref.year, first_month, 1),
            _month_end(ref.year, first_month + 2),
        )
    if resolved is Preset.ANNUALLY:
        return Period(name, datetime.date(ref.year, 1, 1), datetime.date(ref.year, 12, 31))
    if resolved is not Preset.CUSTOM:
        logger.warning("Unknown period preset %r; using single-day range", preset)
    return Period(name, ref, ref)


def custom_period(start: datetime.date | datetime.datetime, end: datetime.date | datetime.datetime) -> Period:
    start_date, end_date = _as_date(start), _as_date(end)
    if end_date < start_date:
        start_date, end_date = end_date, start_date
    return Period(Preset.CUSTOM.value, start_date, end_date)


def step(preset, reference_date: datetime.date | datetime.datetime, direction) -> datetime.date:
    """Move ``reference_date`` by one period unit in ``direction``."""
    ref = _as_date(reference_date)
    resolved = Preset.parse(preset)
    forward = (direction.value if isinstance(direction, Direction) else str(direction)).lower() == "next"
    sign = 1 if forward else -1
    if resolved is Preset.DAILY:
        return ref + datetime.timedelta(days=sign)
    if resolved is Preset.WEEKLY:
        return ref + sign * WEEK
    if resolved is Preset.BIWEEKLY:
        return ref + sign * 2 * WEEK
    if resolved is Preset.SEMIMONTHLY:
        first_half = ref.day <= 15
        if forward:
            return ref.replace(day=16) if first_half else _add_months(ref.replace(day=1), 1)
        return _add_months(ref.replace(day=16), -1) if first_half else ref.replace(day=1)
    if resolved is Preset.MONTHLY:
        return _add_months(ref, sign)
    if resolved is Preset.QUARTERLY:
        return _add_months(ref, 3 * sign)
    if resolved is Preset.ANNUALLY:
        return _add_months(ref, 12 * sign)
    if resolved is not Preset.CUSTOM:
        logger.warning("Unknown period preset %r; reference date left unchanged", preset)
    return ref


def previous_periods(period: Period, count: int) -> List[Period]:
    """Return the ``count`` periods strictly before ``period``, most recent first."""
    periods: List[Period] = []
    resolved = Preset.parse(period.preset)
    if resolved is None or resolved is Preset.CUSTOM:
        length = datetime.timedelta(days=period.day_count)
        start, end = period.start, period.end
        for _ in range(max(0, count)):
            start, end = start - length, end - length
            periods.append(Period(period.preset, start, end))
        return periods
    ref = period.start
    for _ in range(max(0, count)):
        ref = step(resolved, ref, Direction.PREV)
        current = range_for(resolved, ref)
        periods.append(current)
        ref = current.start
    return periods


def overtime_threshold(period: Period) -> int:
    """Hours worked in ``period`` before overtime applies."""
    threshold = OVERTIME_THRESHOLDS.get(period.preset)
    if threshold is not None:
        return threshold
    return round(period.day_count / 7 * 40)


def format_range_label(start: datetime.date, end: datetime.date, preset=None) -> str:
    resolved = Preset.parse(preset)
    if resolved is Preset.DAILY:
        return f"{start.strftime('%a, %b')} {start.day}, {start.year}"
    if resolved is Preset.ANNUALLY:
        return str(start.year)
    if start.year == end.year and start.month == end.month:
        return f"{start.strftime('%b')} {start.day} - {end.day}, {end.year}"
    if start.year == end.year:
        return f"{start.strftime('%b')} {start.day} - {end.strftime('%b')} {end.day}, {end.year}"
    return f"{start.strftime('%b')} {start.day}, {start.year} - {end.strftime('%b')} {end.day}, {end.year}"
