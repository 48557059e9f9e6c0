from __future__ import annotations

import datetime
import math
from collections import defaultdict
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .periods import Period, custom_period


LOOKBACK_WEEKS = 8
LAST_WEEK_OFFSET = datetime.timedelta(days=7)
LAST_YEAR_OFFSET = datetime.timedelta(weeks=52)
ADJUSTED_SUFFIX = "_adj"


class ProjectionRule(Enum):
    HISTORICAL_AVERAGE = "historical_average"
    LAST_WEEK = "last_week"
    LAST_YEAR = "last_year"

    @classmethod
    def parse(cls, value) -> "ProjectionRule":
        if isinstance(value, ProjectionRule):
            return value
        rule, _adjusted = parse_rule_key(value)
        return rule


def parse_rule_key(key) -> Tuple[ProjectionRule, bool]:
    """Map a legacy key such as ``last_week_adj`` to ``(rule, adjusted)``."""
    text = str(key or "").strip().lower()
    adjusted = text.endswith(ADJUSTED_SUFFIX)
    if adjusted:
        text = text[: -len(ADJUSTED_SUFFIX)]
    try:
        return ProjectionRule(text), adjusted
    except ValueError:
        raise ValueError(f"Unknown projection rule '{key}'.") from None


def lookback_window(period: Period) -> Period:
    """The weeks of history feeding the weekday averages for ``period``."""
    return custom_period(
        period.start - datetime.timedelta(weeks=LOOKBACK_WEEKS),
        period.start - datetime.timedelta(days=1),
    )


def history_windows(rule, period: Period) -> List[Period]:
    """Date ranges whose actual sales ``autofill`` reads for ``rule``."""
    rule = ProjectionRule.parse(rule)
    windows = [lookback_window(period)]
    if rule is ProjectionRule.LAST_WEEK:
        windows.append(custom_period(period.start - LAST_WEEK_OFFSET, period.end - LAST_WEEK_OFFSET))
    elif rule is ProjectionRule.LAST_YEAR:
        windows.append(custom_period(period.start - LAST_YEAR_OFFSET, period.end - LAST_YEAR_OFFSET))
    return windows


def round_currency(value: float) -> float:
    return float(math.floor(value + 0.5))


def _kind(entry) -> str:
    kind = getattr(entry, "kind", "actual")
    return getattr(kind, "value", kind)


def _actual_by_date(history: Iterable[Any]) -> Dict[datetime.date, float]:
    actual: Dict[datetime.date, float] = {}
    for entry in history or []:
        if _kind(entry) != "actual":
            continue
        actual[entry.date] = actual.get(entry.date, 0.0) + float(entry.amount or 0.0)
    return actual


class _WeekdayAverages:
    """Weekday means over the lookback window, with a flat daily fallback."""

    def __init__(self, actual: Dict[datetime.date, float], window: Period) -> None:
        buckets: Dict[int, List[float]] = defaultdict(list)
        weekly_totals = [0.0] * LOOKBACK_WEEKS
        for day, amount in actual.items():
            if not window.contains(day):
                continue
            buckets[day.weekday()].append(amount)
            weekly_totals[min((day - window.start).days // 7, LOOKBACK_WEEKS - 1)] += amount
        self.by_weekday = {weekday: sum(values) / len(values) for weekday, values in buckets.items()}
        selling_weeks = [total for total in weekly_totals if total > 0]
        self.daily_fallback: Optional[float] = (
            sum(selling_weeks) / len(selling_weeks) / 7 if selling_weeks else None
        )

    def estimate(self, day: datetime.date) -> float:
        value = self.by_weekday.get(day.weekday())
        if value is not None:
            return value
        if self.daily_fallback is not None:
            return self.daily_fallback
        return 0.0


def autofill(rule, adjustment_percent: float, period: Period, history: Iterable[Any]) -> Dict[datetime.date, float]:
    """Estimate projected sales for every day of ``period``.

    ``history`` holds ledger entries (only actual ones are read). The result is
    a preview; committing it to the ledger is left to the caller.
    """
    rule = ProjectionRule.parse(rule)
    factor = 1.0 + float(adjustment_percent or 0.0) / 100.0
    actual = _actual_by_date(history)
    averages = _WeekdayAverages(actual, lookback_window(period))

    projected: Dict[datetime.date, float] = {}
    for day in period.days():
        if rule is ProjectionRule.LAST_WEEK and day - LAST_WEEK_OFFSET in actual:
            base = actual[day - LAST_WEEK_OFFSET]
        elif rule is ProjectionRule.LAST_YEAR and day - LAST_YEAR_OFFSET in actual:
            base = actual[day - LAST_YEAR_OFFSET]
        else:
            base = averages.estimate(day)
        projected[day] = max(0.0, round_currency(base * factor))
    return projected


def autofill_entries(location_id: int, projected: Dict[datetime.date, float]) -> List[Dict[str, Any]]:
    """Shape an autofill result for ``SalesLedger.bulk_upsert``."""
    return [
        {"location_id": location_id, "date": day, "kind": "projected", "amount": amount}
        for day, amount in sorted(projected.items())
    ]
