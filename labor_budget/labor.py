from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from .periods import Period, overtime_threshold
from .wages import effective_rate


logger = logging.getLogger(__name__)


@dataclass
class EmployeeLabor:
    hours: float = 0.0
    cost: float = 0.0


@dataclass
class LaborSummary:
    total_hours: float = 0.0
    total_cost: float = 0.0
    shift_count: int = 0
    per_employee: Dict[Any, EmployeeLabor] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_hours": round(self.total_hours, 2),
            "total_cost": round(self.total_cost, 2),
            "shift_count": self.shift_count,
            "per_employee": {
                str(employee_id): {"hours": round(entry.hours, 2), "cost": round(entry.cost, 2)}
                for employee_id, entry in self.per_employee.items()
            },
        }


@dataclass
class DayLabor:
    date: datetime.date
    hours: float = 0.0
    cost: float = 0.0
    shift_count: int = 0


@dataclass
class EmployeePayroll:
    employee_id: Any
    shift_count: int
    total_hours: float
    regular_hours: float
    overtime_hours: float
    regular_pay: float
    overtime_pay: float

    @property
    def total_pay(self) -> float:
        return self.regular_pay + self.overtime_pay


def shift_hours(shift) -> float:
    return max(0.0, (shift.end - shift.start).total_seconds() / 3600)


def _employee_index(employees: Iterable[Any] | Mapping[Any, Any]) -> Dict[Any, Any]:
    if isinstance(employees, Mapping):
        return dict(employees)
    return {employee.id: employee for employee in employees}


def _counted_shifts(shifts: Iterable[Any], index: Dict[Any, Any], period: Period):
    """Yield (shift, employee, hours, cost) for shifts counted toward ``period``."""
    for shift in shifts:
        if not period.contains(shift.start):
            continue
        employee = index.get(shift.employee_id)
        if employee is None:
            logger.debug("Skipping shift %s with unknown employee %s", getattr(shift, "id", None), shift.employee_id)
            continue
        hours = shift_hours(shift)
        rate = effective_rate(employee, shift.position, shift.start)
        yield shift, employee, hours, hours * rate


def aggregate(shifts: Iterable[Any], employees, period: Period) -> LaborSummary:
    """Sum scheduled hours and cost for ``employees`` over ``period``.

    Shifts count when their start falls on any day of the period and their
    employee is part of ``employees``; everything else is ignored.
    """
    summary = LaborSummary()
    index = _employee_index(employees)
    for shift, _employee, hours, cost in _counted_shifts(shifts, index, period):
        entry = summary.per_employee.setdefault(shift.employee_id, EmployeeLabor())
        entry.hours += hours
        entry.cost += cost
        summary.total_hours += hours
        summary.total_cost += cost
        summary.shift_count += 1
    return summary


def daily_breakdown(shifts: Iterable[Any], employees, period: Period) -> List[DayLabor]:
    days = {day: DayLabor(date=day) for day in period.days()}
    index = _employee_index(employees)
    for shift, _employee, hours, cost in _counted_shifts(shifts, index, period):
        start = shift.start.date() if isinstance(shift.start, datetime.datetime) else shift.start
        info = days[start]
        info.hours += hours
        info.cost += cost
        info.shift_count += 1
    return [days[day] for day in sorted(days)]


def payroll_breakdown(shifts: Iterable[Any], employees, period: Period) -> List[EmployeePayroll]:
    """Split each employee's hours at the period's overtime threshold."""
    threshold = float(overtime_threshold(period))
    index = _employee_index(employees)
    totals: Dict[Any, Dict[str, float]] = {}
    for shift, _employee, hours, cost in _counted_shifts(shifts, index, period):
        info = totals.setdefault(shift.employee_id, {"hours": 0.0, "cost": 0.0, "count": 0})
        info["hours"] += hours
        info["cost"] += cost
        info["count"] += 1

    payroll: List[EmployeePayroll] = []
    for employee_id, info in totals.items():
        employee = index[employee_id]
        hours = info["hours"]
        regular_hours = min(hours, threshold)
        overtime_hours = max(0.0, hours - regular_hours)
        # blended across every position worked in the period
        rate = info["cost"] / hours if hours > 0 else 0.0
        multiplier = max(1.0, float(getattr(employee, "overtime_multiplier", 1.5) or 1.0))
        payroll.append(
            EmployeePayroll(
                employee_id=employee_id,
                shift_count=int(info["count"]),
                total_hours=hours,
                regular_hours=regular_hours,
                overtime_hours=overtime_hours,
                regular_pay=regular_hours * rate,
                overtime_pay=overtime_hours * rate * multiplier,
            )
        )
    payroll.sort(key=lambda item: item.total_pay, reverse=True)
    return payroll


def top_employees(summary: LaborSummary, limit: int = 5) -> List[tuple]:
    ranked = sorted(summary.per_employee.items(), key=lambda item: item[1].cost, reverse=True)
    return ranked[: max(0, limit)]
