from __future__ import annotations

import datetime
from types import SimpleNamespace

from labor_budget.periods import range_for
from labor_budget.trends import average_actual_sales, forecast_accuracy, history, trend_window


D = datetime.date
WEEK = range_for("weekly", D(2024, 3, 6))


def _sale(day, amount, kind="actual"):
    return SimpleNamespace(date=day, amount=amount, kind=kind)


def test_forecast_accuracy():
    assert forecast_accuracy(900, 1000) == 90
    assert forecast_accuracy(1000, 800) == 125
    assert forecast_accuracy(185, 200) == 93
    assert forecast_accuracy(165, 200) == 83
    assert forecast_accuracy(100, 0) is None
    assert forecast_accuracy(0, 100) is None


def test_history_most_recent_first():
    employee = SimpleNamespace(id=1, base_hourly_rate=20.0, overtime_multiplier=1.5, wage_history=[])
    shift = SimpleNamespace(
        id=1,
        employee_id=1,
        position="Cook",
        start=datetime.datetime(2024, 2, 27, 9),
        end=datetime.datetime(2024, 2, 27, 17),
    )
    sales = [
        _sale(D(2024, 2, 27), 800.0),
        _sale(D(2024, 2, 27), 1000.0, "projected"),
        _sale(D(2024, 2, 20), 500.0, "projected"),
        _sale(D(2024, 3, 5), 9999.0),
    ]
    trend = history(3, WEEK, sales, [shift], [employee])
    assert [item.period_start for item in trend] == [D(2024, 2, 26), D(2024, 2, 19), D(2024, 2, 12)]
    latest, middle, oldest = trend
    assert latest.actual_total == 800 and latest.projected_total == 1000
    assert latest.labor_cost == 160
    assert latest.labor_percent == 20
    assert latest.accuracy == 80
    assert latest.status == "underTarget"
    assert middle.accuracy is None
    assert middle.labor_percent == 0
    assert oldest.status == "indeterminate"
    assert latest.to_dict()["period_start"] == "2024-02-26"
    assert average_actual_sales(trend) == 800


def test_trend_window_spans_history():
    window = trend_window(WEEK, 4)
    assert (window.start, window.end) == (D(2024, 2, 5), D(2024, 3, 3))
    assert trend_window(WEEK, 0) is None
    assert average_actual_sales([]) == 0
