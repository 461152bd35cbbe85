"""Analytics queries package."""

from zapntap.queries.analytics import (
    sessions_in_month,
    summarize,
    total_cost_this_month,
    total_kwh_this_month,
    total_unpaid_amount,
    usage_series,
)

__all__ = [
    "sessions_in_month",
    "summarize",
    "total_cost_this_month",
    "total_kwh_this_month",
    "total_unpaid_amount",
    "usage_series",
]
