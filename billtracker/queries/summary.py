"""
Bill Summaries

DESIGN DECISION: Summaries are DETERMINISTIC.
Every number on the overview, reports and calendar pages is computed
here from stored bills. Nothing is estimated.

The module-level functions are pure; "today" is always passed in.
SummaryService loads a user's bills and profile and applies them.
"""

import calendar
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from billtracker.models.bill import Bill, UserProfile
from billtracker.services.storage import BillStore, ProfileStore


ZERO = Decimal("0")


class DashboardOverview(BaseModel):
    """Numbers shown at the top of the overview page."""

    total_upcoming: Decimal = ZERO
    upcoming_count: int = 0
    next_due: Optional[Bill] = None
    total_paid: Decimal = ZERO
    funds_after_bills: Decimal = ZERO
    savings_progress: float = Field(default=0.0, ge=0, le=100)


class MonthlyTotal(BaseModel):
    month: int = Field(..., ge=1, le=12)
    label: str
    total: Decimal = ZERO


def _total(bills: Iterable[Bill]) -> Decimal:
    return sum((b.amount for b in bills), ZERO)


def upcoming_bills(bills: list[Bill], today: date) -> list[Bill]:
    """Unpaid bills due today or later, soonest first."""
    upcoming = [b for b in bills if not b.is_paid and b.due_date >= today]
    upcoming.sort(key=lambda b: (b.due_date, b.name.lower()))
    return upcoming


def dashboard_overview(
    bills: list[Bill],
    profile: UserProfile,
    today: date,
) -> DashboardOverview:
    upcoming = upcoming_bills(bills, today)
    total_upcoming = _total(upcoming)
    funds_after = profile.income - total_upcoming

    if profile.income > 0:
        progress = float(funds_after / profile.income * 100)
        progress = min(max(progress, 0.0), 100.0)
    else:
        progress = 0.0

    return DashboardOverview(
        total_upcoming=total_upcoming,
        upcoming_count=len(upcoming),
        next_due=upcoming[0] if upcoming else None,
        total_paid=_total(b for b in bills if b.is_paid),
        funds_after_bills=funds_after,
        savings_progress=progress,
    )


def leftover_funds(bills: list[Bill], profile: UserProfile) -> Decimal:
    """Income left after every unpaid bill and the savings goal. Can be negative."""
    unpaid = _total(b for b in bills if not b.is_paid)
    return profile.income - unpaid - profile.savings_goal


def spending_by_category(bills: list[Bill]) -> dict[str, Decimal]:
    """Paid totals per category, largest first."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for bill in bills:
        if bill.is_paid:
            totals[bill.category] += bill.amount
    return dict(sorted(totals.items(), key=lambda item: item[1], reverse=True))


def paid_by_month(bills: list[Bill], year: int) -> list[MonthlyTotal]:
    """Twelve entries, January to December, of bills paid in that year."""
    totals = [ZERO] * 12
    for bill in bills:
        if bill.is_paid and bill.due_date.year == year:
            totals[bill.due_date.month - 1] += bill.amount

    return [
        MonthlyTotal(month=i + 1, label=calendar.month_abbr[i + 1], total=total)
        for i, total in enumerate(totals)
    ]


def bills_by_date(bills: list[Bill]) -> dict[str, list[Bill]]:
    """Bills grouped under their YYYY-MM-DD due date, for the calendar."""
    grouped: dict[str, list[Bill]] = defaultdict(list)
    for bill in sorted(bills, key=lambda b: (b.due_date, b.name.lower())):
        grouped[bill.due_date.isoformat()].append(bill)
    return dict(grouped)


def current_month_bills(bills: list[Bill], today: date) -> list[Bill]:
    return sorted(
        (b for b in bills
         if b.due_date.year == today.year and b.due_date.month == today.month),
        key=lambda b: (b.due_date, b.name.lower()),
    )


class SummaryService:
    """Loads a user's data and builds summaries from it."""

    def __init__(self, bill_store: BillStore, profile_store: ProfileStore):
        self._bills = bill_store
        self._profiles = profile_store

    async def overview(self, user_id: str, today: Optional[date] = None) -> DashboardOverview:
        bills = await self._bills.list_bills(user_id)
        profile = await self._profiles.get_profile(user_id)
        return dashboard_overview(bills, profile, today or date.today())

    async def leftover(self, user_id: str) -> Decimal:
        bills = await self._bills.list_bills(user_id)
        profile = await self._profiles.get_profile(user_id)
        return leftover_funds(bills, profile)

    async def yearly_report(
        self,
        user_id: str,
        year: int,
    ) -> tuple[list[MonthlyTotal], dict[str, Decimal]]:
        """Paid totals by month for the year, and paid totals by category overall."""
        bills = await self._bills.list_bills(user_id)
        return paid_by_month(bills, year), spending_by_category(bills)
