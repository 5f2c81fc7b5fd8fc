"""Bi-monthly cutoff periods: boundary math, aggregation, settlement and tracking."""

from money_mates.periods.calculator import (
    format_period_id,
    get_cutoff_period,
    last_day_of_month,
    resolve_cutoff_days,
)
from money_mates.periods.aggregator import (
    average_monthly,
    compute_current_period_stats,
    compute_total_owed,
    contribution_shares,
    monthly_totals,
    period_label_totals,
    user_totals,
)
from money_mates.periods.settlement import SettlementEngine, apply_repayment, build_closed_period
from money_mates.periods.tracker import SavingsTracker

__all__ = [
    "SavingsTracker",
    "SettlementEngine",
    "apply_repayment",
    "average_monthly",
    "build_closed_period",
    "compute_current_period_stats",
    "compute_total_owed",
    "contribution_shares",
    "format_period_id",
    "get_cutoff_period",
    "last_day_of_month",
    "monthly_totals",
    "period_label_totals",
    "resolve_cutoff_days",
    "user_totals",
]
