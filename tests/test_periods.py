"""
Tests for the cutoff period calculator and aggregator.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from money_mates.models.ledger import CutoffPeriod, PerProfileAmounts, ProfileId, SavingsTarget
from money_mates.periods import aggregator
from money_mates.periods.calculator import (
    format_period_id,
    get_cutoff_period,
    last_day_of_month,
    resolve_cutoff_days,
    validate_cutoff_days,
)

from tests.conftest import at, make_transaction


class TestCutoffCalculator:
    """Tests for mapping a date to its cutoff period."""

    def test_second_half_of_thirty_day_month(self):
        """[15, last day] on the 20th of April is the 16th to the 30th."""
        period = get_cutoff_period(date(2025, 4, 20), [15, 0])
        assert period.start == date(2025, 4, 16)
        assert period.end == date(2025, 4, 30)

    def test_first_half_includes_cutoff_day(self):
        """The cutoff day itself belongs to the period it ends."""
        period = get_cutoff_period(date(2025, 4, 15), [15, 0])
        assert period.start == date(2025, 4, 1)
        assert period.end == date(2025, 4, 15)

    def test_cutoff_order_does_not_matter(self):
        assert get_cutoff_period(date(2025, 4, 20), [0, 15]) == get_cutoff_period(date(2025, 4, 20), [15, 0])

    def test_leap_february(self):
        """The last-day cutoff follows the real month length."""
        period = get_cutoff_period(date(2024, 2, 20), [15, 0])
        assert period.end == date(2024, 2, 29)

    def test_rollover_ends_on_first_cutoff_of_next_month(self):
        """After the later cutoff, the period runs to the earlier cutoff next month."""
        period = get_cutoff_period(date(2025, 3, 25), [15, 20])
        assert period.start == date(2025, 3, 21)
        assert period.end == date(2025, 4, 15)

    def test_rollover_across_year_end(self):
        period = get_cutoff_period(date(2025, 12, 28), [10, 20])
        assert period.start == date(2025, 12, 21)
        assert period.end == date(2026, 1, 10)

    def test_coinciding_cutoffs_in_february(self):
        """[28, last day] resolve to the same day in February: one period."""
        period = get_cutoff_period(date(2025, 2, 20), [28, 0])
        assert period.start == date(2025, 2, 1)
        assert period.end == date(2025, 2, 28)

    def test_twenty_eighth_and_last_day_in_long_month(self):
        period = get_cutoff_period(date(2025, 3, 30), [28, 0])
        assert period.start == date(2025, 3, 29)
        assert period.end == date(2025, 3, 31)

    @pytest.mark.parametrize("cutoff_days", [[15, 0], [10, 20], [1, 28], [5, 0]])
    def test_periods_are_contiguous(self, cutoff_days):
        """The day after each period's end starts the next period."""
        day = date(2025, 1, 1)
        period = get_cutoff_period(day, cutoff_days)
        while day < date(2026, 1, 1):
            assert period.contains(day)
            following = get_cutoff_period(period.end + timedelta(days=1), cutoff_days)
            assert following.start == period.end + timedelta(days=1)
            day = following.start
            period = following

    @pytest.mark.parametrize("cutoff_days", [[15, 15], [29, 0], [15], [0, 0], [15, 20, 0]])
    def test_invalid_cutoff_days(self, cutoff_days):
        """Test that invalid cutoff days raise ValueError."""
        with pytest.raises(ValueError):
            validate_cutoff_days(cutoff_days)
        with pytest.raises(ValueError):
            get_cutoff_period(date(2025, 4, 20), cutoff_days)

    def test_resolve_cutoff_days(self):
        assert resolve_cutoff_days(2025, 2, [0, 15]) == (15, 28)
        assert resolve_cutoff_days(2025, 1, [20, 10]) == (10, 20)

    def test_last_day_of_month(self):
        assert last_day_of_month(2025, 2) == 28
        assert last_day_of_month(2024, 2) == 29
        assert last_day_of_month(2025, 12) == 31

    def test_period_id_is_end_date(self):
        assert format_period_id(date(2025, 4, 30)) == "2025-04-30"


@pytest.fixture
def target():
    return SavingsTarget(target_amount=Decimal("5000"), cutoff_days=[15, 0])


@pytest.fixture
def april_transactions():
    return [
        make_transaction(ProfileId.PEA, "3000", date(2025, 4, 16)),
        make_transaction(ProfileId.CAM, "5000", date(2025, 4, 18)),
        # previous period
        make_transaction(ProfileId.PEA, "1000", date(2025, 4, 10)),
    ]


class TestCurrentPeriodStats:
    """Tests for the current period aggregation."""

    def test_contributions_progress_and_remaining(self, target, april_transactions):
        stats = aggregator.compute_current_period_stats(target, april_transactions, at(2025, 4, 20, 12))
        assert stats.start_date == date(2025, 4, 16)
        assert stats.end_date == date(2025, 4, 30)
        assert stats.contributions == PerProfileAmounts(pea=Decimal("3000"), cam=Decimal("5000"))
        assert stats.progress.pea == 60.0
        assert stats.progress.cam == 100.0
        assert stats.remaining == PerProfileAmounts(pea=Decimal("2000"), cam=Decimal("0"))
        assert stats.days_remaining == 10
        assert stats.total_days == 14
        assert not stats.is_urgent
        assert not stats.is_overdue
        assert stats.period_id == "2025-04-30"

    def test_over_contribution_is_capped(self, target):
        transactions = [make_transaction(ProfileId.PEA, "8000", date(2025, 4, 17))]
        stats = aggregator.compute_current_period_stats(target, transactions, at(2025, 4, 20))
        assert stats.progress.pea == 100.0
        assert stats.remaining.pea == Decimal("0")

    @pytest.mark.parametrize("amount", ["0.01", "2500", "4999.99", "5000", "7500"])
    def test_full_progress_iff_nothing_remaining(self, target, amount):
        transactions = [make_transaction(ProfileId.CAM, amount, date(2025, 4, 17))]
        stats = aggregator.compute_current_period_stats(target, transactions, at(2025, 4, 20))
        assert (stats.progress.cam == 100.0) == (stats.remaining.cam == 0)

    def test_urgent_within_three_days(self, target):
        stats = aggregator.compute_current_period_stats(target, [], at(2025, 4, 28))
        assert stats.days_remaining == 2
        assert stats.is_urgent
        assert not stats.is_overdue

    def test_overdue_on_end_date(self, target):
        """On the end date itself no days remain and the period is overdue."""
        stats = aggregator.compute_current_period_stats(target, [], at(2025, 4, 30, 9))
        assert stats.days_remaining == 0
        assert stats.is_overdue
        assert not stats.is_urgent

    def test_no_target_disables_tracking(self, april_transactions):
        assert aggregator.compute_current_period_stats(None, april_transactions, at(2025, 4, 20)) is None

    def test_inactive_target_disables_tracking(self, target, april_transactions):
        inactive = target.model_copy(update={"is_active": False})
        assert aggregator.compute_current_period_stats(inactive, april_transactions, at(2025, 4, 20)) is None

    def test_total_owed(self):
        periods = [
            CutoffPeriod(
                id="2025-04-15",
                start_date=date(2025, 4, 1),
                end_date=date(2025, 4, 15),
                target_amount=Decimal("5000"),
                owed_amounts=PerProfileAmounts(pea=Decimal("2000")),
            ),
            CutoffPeriod(
                id="2025-04-30",
                start_date=date(2025, 4, 16),
                end_date=date(2025, 4, 30),
                target_amount=Decimal("5000"),
                owed_amounts=PerProfileAmounts(pea=Decimal("500"), cam=Decimal("1000")),
            ),
        ]
        owed = aggregator.compute_total_owed(periods)
        assert owed == PerProfileAmounts(pea=Decimal("2500"), cam=Decimal("1000"))
        assert aggregator.compute_total_owed([]) == PerProfileAmounts()


class TestAnalytics:
    """Tests for the analytics series."""

    def test_user_totals(self, april_transactions):
        totals = aggregator.user_totals(april_transactions)
        assert totals.pea == Decimal("4000")
        assert totals.cam == Decimal("5000")
        assert totals.total == Decimal("9000")

    def test_monthly_totals_are_cumulative(self):
        transactions = [
            make_transaction(ProfileId.PEA, "200", date(2025, 2, 3)),
            make_transaction(ProfileId.PEA, "100", date(2025, 1, 5)),
            make_transaction(ProfileId.CAM, "300", date(2025, 1, 20)),
        ]
        months = aggregator.monthly_totals(transactions)
        assert [m.month for m in months] == ["2025-01", "2025-02"]
        assert months[0].label == "Jan 25"
        assert months[0].total == Decimal("400")
        assert (months[0].pea, months[0].cam) == (Decimal("100"), Decimal("300"))
        assert months[1].cumulative == Decimal("600")
        assert aggregator.average_monthly(transactions) == Decimal("300")

    def test_average_monthly_without_savings(self):
        assert aggregator.average_monthly([]) == Decimal("0")

    def test_period_label_totals(self):
        transactions = [
            make_transaction(ProfileId.PEA, "100", date(2025, 1, 20)),
            make_transaction(ProfileId.CAM, "50", date(2025, 1, 2)),
            make_transaction(ProfileId.CAM, "25", date(2025, 1, 16)),
        ]
        assert aggregator.period_label_totals(transactions) == [
            ("Jan 1-15", Decimal("50")),
            ("Jan 16-End", Decimal("125")),
        ]

    def test_period_label_totals_limit(self):
        transactions = [
            make_transaction(ProfileId.PEA, "100", date(2025, month, 1)) for month in range(1, 11)
        ]
        labels = aggregator.period_label_totals(transactions, limit=3)
        assert [label for label, _ in labels] == ["Aug 1-15", "Sep 1-15", "Oct 1-15"]

    def test_contribution_shares(self):
        transactions = [
            make_transaction(ProfileId.PEA, "3000", date(2025, 4, 1)),
            make_transaction(ProfileId.CAM, "1000", date(2025, 4, 2)),
        ]
        pea, cam = aggregator.contribution_shares(transactions)
        assert pea.profile_id is ProfileId.PEA
        assert pea.percent == 75.0
        assert cam.percent == 25.0

    def test_contribution_shares_before_any_savings(self):
        """Test the even split when nothing has been saved."""
        pea, cam = aggregator.contribution_shares([])
        assert pea.percent == cam.percent == 50.0
