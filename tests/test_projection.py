from __future__ import annotations

import datetime
from types import SimpleNamespace

import pytest

from labor_budget.periods import range_for
from labor_budget.projection import (
    ProjectionRule,
    autofill,
    autofill_entries,
    history_windows,
    lookback_window,
    parse_rule_key,
    round_currency,
)


D = datetime.date
WEEK = range_for("weekly", D(2024, 3, 6))
MONDAYS = [D(2024, 3, 4) - datetime.timedelta(weeks=weeks) for weeks in range(1, 9)]


def _sale(day, amount, kind="actual"):
    return SimpleNamespace(date=day, amount=amount, kind=kind)


def test_lookback_covers_eight_weeks_before_period():
    window = lookback_window(WEEK)
    assert window.start == D(2024, 1, 8)
    assert window.end == D(2024, 3, 3)
    assert min(MONDAYS) == window.start


def test_historical_average_by_weekday_with_weekly_fallback():
    history = [_sale(day, 100.0) for day in MONDAYS]
    projected = autofill("historical_average", 0, WEEK, history)
    assert list(projected) == list(WEEK.days())
    assert projected[D(2024, 3, 4)] == 100
    # 100 per selling week spread over seven days
    assert projected[D(2024, 3, 5)] == 14
    assert projected[D(2024, 3, 10)] == 14


def test_weekday_mean_uses_recorded_days_only():
    history = [_sale(MONDAYS[0], 300.0), _sale(MONDAYS[1], 100.0)]
    assert autofill(ProjectionRule.HISTORICAL_AVERAGE, 0, WEEK, history)[D(2024, 3, 4)] == 200


def test_projected_history_is_ignored():
    history = [_sale(day, 500.0, kind="projected") for day in MONDAYS]
    assert set(autofill("historical_average", 0, WEEK, history).values()) == {0.0}


def test_last_week_uses_offset_day_then_average():
    history = [_sale(day, 100.0) for day in MONDAYS] + [_sale(D(2024, 2, 27), 250.0)]
    projected = autofill("last_week", 0, WEEK, history)
    assert projected[D(2024, 3, 5)] == 250
    assert projected[D(2024, 3, 4)] == 100
    assert projected[D(2024, 3, 6)] == round_currency((100.0 * 8 + 250.0) / 8 / 7)


def test_no_history_projects_zero():
    for rule in ProjectionRule:
        assert set(autofill(rule, 25, WEEK, []).values()) == {0.0}


def test_last_year_uses_same_weekday():
    history = [_sale(D(2023, 3, 6), 500.0)]
    projected = autofill("last_year", 0, WEEK, history)
    assert projected[D(2024, 3, 4)] == 500
    assert projected[D(2024, 3, 5)] == 0


def test_adjustment_and_rounding():
    history = [_sale(MONDAYS[0], 12.0), _sale(MONDAYS[1], 13.0)]
    assert autofill("historical_average", 0, WEEK, history)[D(2024, 3, 4)] == 13
    boosted = autofill("historical_average", 10, WEEK, [_sale(day, 100.0) for day in MONDAYS])
    assert boosted[D(2024, 3, 4)] == 110
    cut = autofill("historical_average", -150, WEEK, [_sale(day, 100.0) for day in MONDAYS])
    assert set(cut.values()) == {0.0}


def test_round_currency_half_up():
    assert round_currency(2.5) == 3
    assert round_currency(3.5) == 4
    assert round_currency(0.49) == 0


def test_parse_rule_keys():
    assert parse_rule_key("last_week_adj") == (ProjectionRule.LAST_WEEK, True)
    assert parse_rule_key("historical_average") == (ProjectionRule.HISTORICAL_AVERAGE, False)
    with pytest.raises(ValueError):
        parse_rule_key("gut_feeling")


def test_history_windows_per_rule():
    assert len(history_windows("historical_average", WEEK)) == 1
    last_week = history_windows("last_week", WEEK)[1]
    assert (last_week.start, last_week.end) == (D(2024, 2, 26), D(2024, 3, 3))
    last_year = history_windows("last_year", WEEK)[1]
    assert last_year.start == D(2023, 3, 6)


def test_autofill_entries_shape():
    entries = autofill_entries(3, {D(2024, 3, 5): 20.0, D(2024, 3, 4): 10.0})
    assert entries == [
        {"location_id": 3, "date": D(2024, 3, 4), "kind": "projected", "amount": 10.0},
        {"location_id": 3, "date": D(2024, 3, 5), "kind": "projected", "amount": 20.0},
    ]
