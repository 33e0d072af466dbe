"""Tests for the membership status engine."""

from datetime import date, datetime, timedelta

import pytest

from models import MemberStatus, PaymentStatus, StatusModel, SubscriptionType
from status import (
    add_months,
    can_check_in,
    check_in_block_reason,
    days_until,
    derive_status,
    next_renewal_date,
)

NOW = datetime(2024, 3, 15)


def renewal_in(days: int) -> date:
    return NOW.date() + timedelta(days=days)


class TestDaysUntil:
    """Tests for days_until."""

    def test_whole_days(self):
        assert days_until(date(2024, 2, 1), datetime(2024, 1, 28)) == 4
        assert days_until(date(2024, 2, 1), datetime(2024, 2, 10)) == -9

    def test_partial_day_rounds_up(self):
        """Time already elapsed today still counts the day as remaining."""
        assert days_until(date(2024, 2, 1), datetime(2024, 1, 28, 10, 30)) == 4
        assert days_until(date(2024, 2, 1), datetime(2024, 2, 1, 18, 0)) == 0


class TestDeriveStatus:
    """Tests for derive_status boundaries under both models."""

    @pytest.mark.parametrize(
        "days,expected",
        [
            (-8, MemberStatus.EXPIRED),
            (-7, MemberStatus.EXPIRED),
            (-1, MemberStatus.EXPIRED),
            (0, MemberStatus.EXPIRING_SOON),
            (1, MemberStatus.EXPIRING_SOON),
            (7, MemberStatus.EXPIRING_SOON),
            (8, MemberStatus.ACTIVE),
        ],
    )
    def test_expiry_model(self, days, expected):
        assert derive_status(renewal_in(days), NOW, StatusModel.EXPIRY) is expected

    @pytest.mark.parametrize(
        "days,expected",
        [
            (-8, MemberStatus.OVERDUE),
            (-7, MemberStatus.DUE),
            (-1, MemberStatus.DUE),
            (0, MemberStatus.DUE),
            (1, MemberStatus.ACTIVE),
            (7, MemberStatus.ACTIVE),
            (8, MemberStatus.ACTIVE),
        ],
    )
    def test_dues_model(self, days, expected):
        assert derive_status(renewal_in(days), NOW, StatusModel.DUES) is expected

    def test_pure(self):
        """Same inputs always give the same status."""
        for days in range(-20, 20):
            for model in StatusModel:
                first = derive_status(renewal_in(days), NOW, model)
                assert derive_status(renewal_in(days), NOW, model) is first

    def test_default_model_from_config(self):
        assert derive_status(renewal_in(-3), NOW) is MemberStatus.DUE

    def test_model_accepts_string(self):
        assert derive_status(renewal_in(-3), NOW, "expiry") is MemberStatus.EXPIRED


class TestNextRenewalDate:
    """Tests for renewal date projection."""

    @pytest.mark.parametrize(
        "start",
        [date(2024, 1, 31), date(2023, 12, 28), date(2024, 2, 26), date(2023, 2, 25), date(2024, 12, 31)],
    )
    def test_weekly_is_seven_days(self, start):
        assert next_renewal_date(start, "weekly") == start + timedelta(days=7)

    def test_daily(self):
        assert next_renewal_date(date(2024, 12, 31), SubscriptionType.DAILY) == date(2025, 1, 1)

    def test_monthly_simple(self):
        assert next_renewal_date(date(2024, 1, 1), "monthly") == date(2024, 2, 1)
        assert next_renewal_date(date(2024, 2, 10), "monthly") == date(2024, 3, 10)

    def test_monthly_from_jan_31_clamps(self):
        """Month-end start dates clamp to the last day of the shorter month."""
        first = next_renewal_date(date(2024, 1, 31), "monthly")
        second = next_renewal_date(first, "monthly")
        assert first == date(2024, 2, 29)
        assert second == date(2024, 3, 29)

    def test_monthly_from_jan_31_non_leap(self):
        first = next_renewal_date(date(2023, 1, 31), "monthly")
        assert first == date(2023, 2, 28)
        assert next_renewal_date(first, "monthly") == date(2023, 3, 28)

    def test_quarterly_and_annual(self):
        assert next_renewal_date(date(2024, 11, 30), "quarterly") == date(2025, 2, 28)
        assert next_renewal_date(date(2024, 2, 29), "annual") == date(2025, 2, 28)

    def test_accepts_datetime(self):
        assert next_renewal_date(datetime(2024, 1, 1, 15, 0), "monthly") == date(2024, 2, 1)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            next_renewal_date(date(2024, 1, 1), "fortnightly")


class TestAddMonths:
    """Tests for add_months."""

    def test_year_rollover(self):
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_negative(self):
        assert add_months(date(2024, 3, 1), -3) == date(2023, 12, 1)


class TestCheckInGate:
    """Tests for check-in eligibility."""

    def test_active_paid_member_can_check_in(self, make_member):
        member = make_member(renewal_in(10))
        assert can_check_in(member, NOW)
        assert check_in_block_reason(member, NOW) is None

    def test_overdue_blocked(self, make_member):
        member = make_member(renewal_in(-10))
        assert not can_check_in(member, NOW)
        assert check_in_block_reason(member, NOW) == "Overdue subscription"

    def test_due_blocked(self, make_member):
        assert check_in_block_reason(make_member(renewal_in(0)), NOW) == "Subscription renewal pending"

    def test_incomplete_payment_blocked(self, make_member):
        member = make_member(renewal_in(10), payment_status=PaymentStatus.INCOMPLETE)
        assert check_in_block_reason(member, NOW) == "Incomplete payment"

    def test_expired_blocked_under_expiry_model(self, make_member):
        member = make_member(renewal_in(-1))
        assert check_in_block_reason(member, NOW, StatusModel.EXPIRY) == "Expired subscription"

    def test_stale_stored_status_ignored(self, make_member):
        """A stored 'active' status doesn't override an elapsed renewal date."""
        member = make_member(renewal_in(-30), status=MemberStatus.ACTIVE)
        assert not can_check_in(member, NOW)
