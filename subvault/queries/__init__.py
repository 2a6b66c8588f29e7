"""Query package: renewal selection and cost analytics."""

from subvault.queries.costs import (
    CostAnalytics,
    MonthlyCost,
    UpcomingCost,
    average_monthly_cost,
    cost_savings,
    cost_trend,
    costs_by_billing_period,
    costs_by_category,
    projected_annual_cost,
    total_monthly_cost,
    total_yearly_cost,
    upcoming_costs,
)
from subvault.queries.selection import (
    select_ending_trials,
    select_upcoming_renewals,
    validate_window,
)

__all__ = [
    "CostAnalytics",
    "MonthlyCost",
    "UpcomingCost",
    "average_monthly_cost",
    "cost_savings",
    "cost_trend",
    "costs_by_billing_period",
    "costs_by_category",
    "projected_annual_cost",
    "select_ending_trials",
    "select_upcoming_renewals",
    "validate_window",
    "total_monthly_cost",
    "total_yearly_cost",
    "upcoming_costs",
]
