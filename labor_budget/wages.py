from __future__ import annotations

import datetime
from typing import Any, Dict, Iterable, Optional


def _as_date(value: datetime.date | datetime.datetime) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    return value


def _coerce_rate(value: Any) -> float:
    try:
        return round(max(0.0, float(value or 0.0)), 2)
    except (TypeError, ValueError):
        return 0.0


def _wage_history(employee) -> Iterable[Any]:
    return getattr(employee, "wage_history", None) or []


def base_rate(employee) -> float:
    return _coerce_rate(getattr(employee, "base_hourly_rate", 0.0))


def effective_rate(employee, position: Optional[str], on_date: datetime.date | datetime.datetime) -> float:
    """Return the hourly rate that applies to ``employee`` working ``position`` on ``on_date``.

    The most recent wage-history entry for the position that took effect on or
    before ``on_date`` wins; entries without an effective date apply from the
    start. Without a matching entry the employee's base rate applies.
    """
    day = _as_date(on_date)
    best = None
    best_date: Optional[datetime.date] = None
    for entry in _wage_history(employee):
        if getattr(entry, "position", None) != position:
            continue
        effective = getattr(entry, "effective_date", None) or datetime.date.min
        if effective > day:
            continue
        if best is None or effective >= best_date:
            best = entry
            best_date = effective
    if best is None:
        return base_rate(employee)
    return _coerce_rate(best.rate)


def rate_table(employee, on_date: datetime.date | datetime.datetime) -> Dict[str, float]:
    """Return position -> effective rate for every position with a wage entry."""
    positions = sorted({entry.position for entry in _wage_history(employee) if getattr(entry, "position", None)})
    return {position: effective_rate(employee, position, on_date) for position in positions}
