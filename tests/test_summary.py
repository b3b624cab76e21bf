"""Tests for deterministic bill summaries."""

from datetime import date
from decimal import Decimal

import pytest

from billtracker.models.bill import BillInput, UserProfile
from billtracker.queries import (
    SummaryService,
    bills_by_date,
    current_month_bills,
    dashboard_overview,
    leftover_funds,
    paid_by_month,
    spending_by_category,
    upcoming_bills,
)

from conftest import TODAY, make_bill


@pytest.fixture
def bills():
    return [
        make_bill("Rent", "8500", date(2024, 12, 1), paid=True, category="Housing"),
        make_bill("Power", "900", date(2024, 12, 10)),
        make_bill("Netflix", "199", date(2024, 12, 5), paid=True, category="Subscriptions"),
        make_bill("Gym", "450", date(2024, 12, 20)),
        make_bill("Water", "300", date(2024, 12, 3)),
        make_bill("Insurance", "1200", date(2025, 1, 15)),
        make_bill("Old", "100", date(2023, 12, 1), paid=True, category="Housing"),
    ]


class TestDashboard:

    def test_upcoming_excludes_paid_and_overdue(self, bills):
        upcoming = upcoming_bills(bills, TODAY)
        assert [b.name for b in upcoming] == ["Power", "Gym", "Insurance"]

    def test_overview(self, bills):
        overview = dashboard_overview(bills, UserProfile(), TODAY)

        assert overview.total_upcoming == Decimal("2550")
        assert overview.upcoming_count == 3
        assert overview.next_due.name == "Power"
        assert overview.total_paid == Decimal("8799")
        assert overview.funds_after_bills == Decimal("22450")
        assert overview.savings_progress == pytest.approx(89.8)

    def test_overview_without_bills(self):
        overview = dashboard_overview([], UserProfile(), TODAY)

        assert overview.next_due is None
        assert overview.total_upcoming == 0
        assert overview.savings_progress == 100.0

    def test_savings_progress_is_clamped(self, bills):
        overview = dashboard_overview(bills, UserProfile(income=Decimal("1000")), TODAY)

        assert overview.funds_after_bills == Decimal("-1550")
        assert overview.savings_progress == 0.0

    def test_zero_income(self, bills):
        overview = dashboard_overview(bills, UserProfile(income=Decimal("0")), TODAY)
        assert overview.savings_progress == 0.0

    def test_leftover_funds(self, bills):
        # 25000 - (900 + 450 + 300 + 1200) - 2500
        assert leftover_funds(bills, UserProfile()) == Decimal("19650")


class TestReports:

    def test_spending_by_category(self, bills):
        assert spending_by_category(bills) == {
            "Housing": Decimal("8600"),
            "Subscriptions": Decimal("199"),
        }

    def test_paid_by_month(self, bills):
        months = paid_by_month(bills, 2024)

        assert len(months) == 12
        assert months[0].label == "Jan"
        assert months[11].total == Decimal("8699")
        assert sum(m.total for m in months[:11]) == 0

    def test_paid_by_month_other_year(self, bills):
        assert paid_by_month(bills, 2023)[11].total == Decimal("100")


class TestCalendar:

    def test_bills_by_date(self, bills):
        grouped = bills_by_date(bills)

        assert list(grouped)[0] == "2023-12-01"
        assert [b.name for b in grouped["2024-12-05"]] == ["Netflix"]

    def test_same_day_bills_grouped(self):
        day = date(2024, 12, 5)
        grouped = bills_by_date([make_bill("B", "1", day), make_bill("A", "1", day)])
        assert [b.name for b in grouped["2024-12-05"]] == ["A", "B"]

    def test_current_month(self, bills):
        names = [b.name for b in current_month_bills(bills, TODAY)]
        assert names == ["Rent", "Water", "Netflix", "Power", "Gym"]


class TestSummaryService:

    async def test_overview_reads_stores(self, bill_store, profile_store):
        await bill_store.create("user-1", BillInput(
            name="Power",
            amount=Decimal("900"),
            due_date=date(2024, 12, 20),
            category="Utilities",
        ))
        await profile_store.update_profile("user-1", {"income": Decimal("10000")})
        service = SummaryService(bill_store, profile_store)

        overview = await service.overview("user-1", TODAY)

        assert overview.total_upcoming == Decimal("900")
        assert overview.funds_after_bills == Decimal("9100")
        assert await service.leftover("user-1") == Decimal("6600")

    async def test_other_users_are_invisible(self, bill_store, profile_store):
        await bill_store.create("user-2", BillInput(
            name="Power",
            amount=Decimal("900"),
            due_date=date(2024, 12, 20),
            category="Utilities",
        ))
        service = SummaryService(bill_store, profile_store)

        monthly, by_category = await service.yearly_report("user-1", 2024)

        assert by_category == {}
        assert all(m.total == 0 for m in monthly)
