from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


DEFAULT_TARGET_LABOR_PERCENT = 30.0
DEFAULT_MAX_OFFSET_PERCENT = 5.0
OVER_TARGET_MARGIN = 2.0
UNDER_TARGET_MARGIN = 5.0


class BudgetStatus(Enum):
    OVER_BUDGET_MAX = "overBudgetMax"
    OVER_TARGET = "overTarget"
    UNDER_TARGET = "underTarget"
    ON_TARGET = "onTarget"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class LocationBudgetConfig:
    target_labor_percent: float = DEFAULT_TARGET_LABOR_PERCENT
    labor_budget_warning_percent: float = DEFAULT_TARGET_LABOR_PERCENT
    labor_budget_max_percent: float = DEFAULT_TARGET_LABOR_PERCENT + DEFAULT_MAX_OFFSET_PERCENT

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_budget_config(payload: Optional[Dict[str, Any]]) -> LocationBudgetConfig:
    """Apply threshold defaults: warning = target, max = target + 5."""
    payload = payload if isinstance(payload, dict) else {}
    target = _optional_float(payload.get("target_labor_percent"))
    if not target:
        target = DEFAULT_TARGET_LABOR_PERCENT
    warning = _optional_float(payload.get("labor_budget_warning_percent"))
    maximum = _optional_float(payload.get("labor_budget_max_percent"))
    return LocationBudgetConfig(
        target_labor_percent=target,
        labor_budget_warning_percent=target if warning is None else warning,
        labor_budget_max_percent=target + DEFAULT_MAX_OFFSET_PERCENT if maximum is None else maximum,
    )


def budget_config_for(location) -> LocationBudgetConfig:
    if location is None:
        return normalize_budget_config({})
    return normalize_budget_config(
        {
            "target_labor_percent": getattr(location, "target_labor_percent", None),
            "labor_budget_warning_percent": getattr(location, "labor_budget_warning_percent", None),
            "labor_budget_max_percent": getattr(location, "labor_budget_max_percent", None),
        }
    )


def labor_percent(labor_cost: float, sales: float) -> float:
    if sales <= 0:
        return 0.0
    return 100.0 * labor_cost / sales


def required_revenue(labor_cost: float, target_percent: float) -> Optional[float]:
    if target_percent <= 0:
        return None
    return labor_cost * 100.0 / target_percent


@dataclass(frozen=True)
class BudgetEvaluation:
    labor_cost: float
    sales_actual: float
    sales_projected: float
    effective_sales: float
    using_projected: bool
    labor_percent_actual: float
    labor_percent_projected: float
    labor_percent: float
    target_percent: float
    diff: float
    over_budget_max: bool
    over_target: bool
    under_target: bool
    on_target: bool
    warning: bool
    status: BudgetStatus
    required_revenue: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload


def evaluate(
    labor_cost: float,
    sales_actual: float,
    sales_projected: float,
    config: Optional[LocationBudgetConfig] = None,
) -> BudgetEvaluation:
    """Compare labor cost against sales and classify it against the location thresholds.

    Actual sales are the denominator whenever any were recorded; otherwise the
    projection stands in. Labor percentages for all three bases are returned so
    callers can show them side by side.
    """
    config = config or LocationBudgetConfig()
    labor_cost = float(labor_cost or 0.0)
    sales_actual = float(sales_actual or 0.0)
    sales_projected = float(sales_projected or 0.0)
    target = float(config.target_labor_percent)

    effective_sales = sales_actual if sales_actual > 0 else sales_projected
    using_projected = sales_actual == 0 and sales_projected > 0
    effective_percent = labor_percent(labor_cost, effective_sales)
    diff = effective_percent - target

    # no sales on either basis -> indeterminate
    has_sales = effective_sales > 0
    over_budget_max = has_sales and effective_percent >= config.labor_budget_max_percent
    over_target = over_budget_max or (has_sales and diff > OVER_TARGET_MARGIN)
    under_target = has_sales and not over_target and diff < -UNDER_TARGET_MARGIN
    on_target = has_sales and not over_target and not under_target
    if over_budget_max:
        status = BudgetStatus.OVER_BUDGET_MAX
    elif over_target:
        status = BudgetStatus.OVER_TARGET
    elif under_target:
        status = BudgetStatus.UNDER_TARGET
    elif on_target:
        status = BudgetStatus.ON_TARGET
    else:
        status = BudgetStatus.INDETERMINATE

    return BudgetEvaluation(
        labor_cost=labor_cost,
        sales_actual=sales_actual,
        sales_projected=sales_projected,
        effective_sales=effective_sales,
        using_projected=using_projected,
        labor_percent_actual=labor_percent(labor_cost, sales_actual),
        labor_percent_projected=labor_percent(labor_cost, sales_projected),
        labor_percent=effective_percent,
        target_percent=target,
        diff=diff,
        over_budget_max=over_budget_max,
        over_target=over_target,
        under_target=under_target,
        on_target=on_target,
        warning=has_sales and effective_percent >= config.labor_budget_warning_percent,
        status=status,
        required_revenue=required_revenue(labor_cost, target),
    )
