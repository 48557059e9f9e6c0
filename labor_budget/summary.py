from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import select

from . import trends
from .budget import budget_config_for, evaluate
from .database import (
    SalesEntry,
    coerce_session,
    get_location,
    get_shifts_between,
    list_location_employees,
)
from .labor import aggregate, daily_breakdown, payroll_breakdown, top_employees
from .periods import Period
from .wages import rate_table


DEFAULT_TREND_PERIODS = 4
TOP_EMPLOYEE_LIMIT = 5


def _load_sales(session, location_id: int, start, end):
    stmt = (
        select(SalesEntry)
        .where(
            SalesEntry.location_id == location_id,
            SalesEntry.date >= start,
            SalesEntry.date <= end,
        )
        .order_by(SalesEntry.date, SalesEntry.kind)
    )
    return list(session.scalars(stmt))


def get_period_summary(
    session,
    location_id: int,
    period: Period,
    *,
    trend_periods: int = DEFAULT_TREND_PERIODS,
) -> Dict[str, Any]:
    """Assemble labor, sales, budget and trend figures for a location and period."""
    session, close_session = coerce_session(session)
    try:
        location = get_location(session, location_id)
        if location is None:
            raise ValueError(f"Location with id {location_id} was not found.")
        config = budget_config_for(location)
        employees = list_location_employees(session, location_id)
        employee_ids = [employee.id for employee in employees]

        window = trends.trend_window(period, trend_periods)
        load_start = window.start if window else period.start
        shifts = get_shifts_between(session, load_start, period.end, employee_ids=employee_ids)
        sales = _load_sales(session, location_id, load_start, period.end)
    finally:
        if close_session:
            session.close()

    labor = aggregate(shifts, employees, period)
    current_sales = [entry for entry in sales if period.contains(entry.date)]
    actual_total = sum(entry.amount for entry in current_sales if entry.kind == "actual")
    projected_total = sum(entry.amount for entry in current_sales if entry.kind == "projected")
    evaluation = evaluate(labor.total_cost, actual_total, projected_total, config)

    actual_by_day = {day: 0.0 for day in period.days()}
    projected_by_day = {day: 0.0 for day in period.days()}
    for entry in current_sales:
        target = actual_by_day if entry.kind == "actual" else projected_by_day
        target[entry.date] += float(entry.amount or 0.0)
    days_payload = [
        {
            "date": day.date.isoformat(),
            "hours": round(day.hours, 2),
            "cost": round(day.cost, 2),
            "shift_count": day.shift_count,
            "sales_actual": round(actual_by_day[day.date], 2),
            "sales_projected": round(projected_by_day[day.date], 2),
        }
        for day in daily_breakdown(shifts, employees, period)
    ]

    names = {employee.id: employee.full_name for employee in employees}
    by_id = {employee.id: employee for employee in employees}
    top_payload = [
        {
            "employee_id": employee_id,
            "name": names.get(employee_id),
            "hours": round(entry.hours, 2),
            "cost": round(entry.cost, 2),
        }
        for employee_id, entry in top_employees(labor, TOP_EMPLOYEE_LIMIT)
    ]
    payroll_payload = [
        {
            "employee_id": item.employee_id,
            "name": names.get(item.employee_id),
            "regular_hours": round(item.regular_hours, 2),
            "overtime_hours": round(item.overtime_hours, 2),
            "total_pay": round(item.total_pay, 2),
            "rates": rate_table(by_id[item.employee_id], period.end),
        }
        for item in payroll_breakdown(shifts, employees, period)
    ]

    trend = trends.history(trend_periods, period, sales, shifts, employees, config)
    average_sales = trends.average_actual_sales(trend)
    required = evaluation.required_revenue
    return {
        "location_id": location_id,
        "period": period.to_dict(),
        "budget_config": config.to_dict(),
        "labor": labor.to_dict(),
        "days": days_payload,
        "top_employees": top_payload,
        "payroll": payroll_payload,
        "sales_actual_total": round(actual_total, 2),
        "sales_projected_total": round(projected_total, 2),
        "daily_average_sales": round(actual_total / period.day_count, 2),
        "budget": evaluation.to_dict(),
        "historical_average_sales": round(average_sales, 2),
        "revenue_gap": round(average_sales - required, 2) if required is not None else None,
        "trend": [item.to_dict() for item in trend],
    }
