from __future__ import annotations

from types import SimpleNamespace

import pytest

from labor_budget.budget import (
    BudgetStatus,
    LocationBudgetConfig,
    budget_config_for,
    evaluate,
    labor_percent,
    normalize_budget_config,
    required_revenue,
)


def test_actual_sales_over_target():
    config = LocationBudgetConfig(25.0, 25.0, 35.0)
    result = evaluate(300, 1000, 0, config)
    assert result.labor_percent == pytest.approx(30.0)
    assert result.diff == pytest.approx(5.0)
    assert result.over_target and not result.over_budget_max
    assert result.status is BudgetStatus.OVER_TARGET
    assert result.warning
    assert result.required_revenue == pytest.approx(1200.0)


def test_default_max_is_treated_as_configured():
    config = normalize_budget_config({"target_labor_percent": 25})
    assert config.labor_budget_max_percent == 30
    assert evaluate(300, 1000, 0, config).status is BudgetStatus.OVER_BUDGET_MAX


def test_projected_sales_stand_in_when_no_actuals():
    result = evaluate(300, 0, 1000)
    assert result.using_projected
    assert result.effective_sales == 1000
    assert result.labor_percent == pytest.approx(30.0)
    assert result.labor_percent_actual == 0
    assert result.status is BudgetStatus.ON_TARGET


def test_actual_sales_take_precedence():
    result = evaluate(300, 1500, 500)
    assert not result.using_projected
    assert result.labor_percent == pytest.approx(20.0)
    assert result.labor_percent_projected == pytest.approx(60.0)


@pytest.mark.parametrize(
    "cost, sales, status",
    [
        (400, 1000, BudgetStatus.OVER_BUDGET_MAX),
        (330, 1000, BudgetStatus.OVER_TARGET),
        (320, 1000, BudgetStatus.ON_TARGET),
        (250, 1000, BudgetStatus.ON_TARGET),
        (240, 1000, BudgetStatus.UNDER_TARGET),
    ],
)
def test_status_thresholds(cost, sales, status):
    result = evaluate(cost, sales, 0)
    assert result.status is status
    flags = [result.over_target, result.under_target, result.on_target]
    assert sum(flags) == 1


def test_no_sales_is_indeterminate():
    result = evaluate(300, 0, 0)
    assert result.labor_percent == 0
    assert result.status is BudgetStatus.INDETERMINATE
    assert not (result.over_target or result.under_target or result.on_target or result.warning)
    assert result.to_dict()["status"] == "indeterminate"


def test_percent_helpers():
    assert labor_percent(100, 0) == 0
    assert labor_percent(100, 400) == 25
    assert required_revenue(300, 0) is None


def test_config_defaults():
    assert normalize_budget_config(None) == LocationBudgetConfig(30.0, 30.0, 35.0)
    assert normalize_budget_config({"target_labor_percent": 0}).target_labor_percent == 30.0
    config = normalize_budget_config(
        {"target_labor_percent": "28", "labor_budget_warning_percent": 26, "labor_budget_max_percent": ""}
    )
    assert config == LocationBudgetConfig(28.0, 26.0, 33.0)


def test_config_from_location():
    location = SimpleNamespace(target_labor_percent=22.0, labor_budget_warning_percent=None, labor_budget_max_percent=40.0)
    assert budget_config_for(location) == LocationBudgetConfig(22.0, 22.0, 40.0)
    assert budget_config_for(None) == LocationBudgetConfig()
