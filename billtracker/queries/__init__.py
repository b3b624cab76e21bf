"""Deterministic summaries over stored bills."""

from billtracker.queries.summary import (
    DashboardOverview,
    MonthlyTotal,
    SummaryService,
    bills_by_date,
    current_month_bills,
    dashboard_overview,
    leftover_funds,
    paid_by_month,
    spending_by_category,
    upcoming_bills,
)

__all__ = [
    "DashboardOverview",
    "MonthlyTotal",
    "SummaryService",
    "bills_by_date",
    "current_month_bills",
    "dashboard_overview",
    "leftover_funds",
    "paid_by_month",
    "spending_by_category",
    "upcoming_bills",
]
