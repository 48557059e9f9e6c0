from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .budget import LocationBudgetConfig, evaluate
from .labor import aggregate
from .periods import Period, previous_periods
from .projection import round_currency


@dataclass(frozen=True)
class PeriodTrend:
    period_start: datetime.date
    period_end: datetime.date
    actual_total: float
    projected_total: float
    labor_cost: float
    labor_percent: float
    accuracy: Optional[int]
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "actual_total": round(self.actual_total, 2),
            "projected_total": round(self.projected_total, 2),
            "labor_cost": round(self.labor_cost, 2),
            "labor_percent": round(self.labor_percent, 2),
            "accuracy": self.accuracy,
            "status": self.status,
        }


def forecast_accuracy(actual_total: float, projected_total: float) -> Optional[int]:
    """Actual as a percentage of projected; ``None`` when either side is missing."""
    if actual_total <= 0 or projected_total <= 0:
        return None
    return int(round_currency(100.0 * actual_total / projected_total))


def _sales_totals(sales_entries: Iterable[Any], period: Period) -> Dict[str, float]:
    totals = {"actual": 0.0, "projected": 0.0}
    for entry in sales_entries:
        if not period.contains(entry.date):
            continue
        kind = getattr(entry.kind, "value", entry.kind)
        if kind in totals:
            totals[kind] += float(entry.amount or 0.0)
    return totals


def history(
    periods_back: int,
    period: Period,
    sales_entries: Iterable[Any],
    shifts: Iterable[Any],
    employees,
    config: Optional[LocationBudgetConfig] = None,
) -> List[PeriodTrend]:
    """Summarize the ``periods_back`` periods before ``period``, most recent first."""
    sales_entries = list(sales_entries)
    shifts = list(shifts)
    employees = list(employees.values()) if isinstance(employees, dict) else list(employees)
    trend: List[PeriodTrend] = []
    for past in previous_periods(period, periods_back):
        sales = _sales_totals(sales_entries, past)
        labor = aggregate(shifts, employees, past)
        evaluation = evaluate(labor.total_cost, sales["actual"], sales["projected"], config)
        trend.append(
            PeriodTrend(
                period_start=past.start,
                period_end=past.end,
                actual_total=sales["actual"],
                projected_total=sales["projected"],
                labor_cost=labor.total_cost,
                labor_percent=evaluation.labor_percent,
                accuracy=forecast_accuracy(sales["actual"], sales["projected"]),
                status=evaluation.status.value,
            )
        )
    return trend


def trend_window(period: Period, periods_back: int) -> Optional[Period]:
    """The span covered by ``history`` for loading sales and shifts in one query."""
    past = previous_periods(period, periods_back)
    if not past:
        return None
    return Period("custom", past[-1].start, past[0].end)


def average_actual_sales(trend: Iterable[PeriodTrend]) -> float:
    selling = [item.actual_total for item in trend if item.actual_total > 0]
    if not selling:
        return 0.0
    return sum(selling) / len(selling)
