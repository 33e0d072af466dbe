"""Tests for revenue and usage reports."""

from datetime import date, datetime

import pytest

import reports
from models import (
    CheckIn,
    Gender,
    Member,
    MemberStatus,
    Payment,
    PaymentMethod,
    SubscriptionType,
)


def payment(day, amount, method="cash", sub="monthly"):
    return Payment(
        id=None,
        member_id=1,
        amount=amount,
        payment_method=PaymentMethod(method),
        payment_date=day,
        renewal_period="",
        subscription_type=SubscriptionType(sub),
    )


def member(name, renewal, status, sub="monthly"):
    return Member(
        id=None,
        full_name=name,
        phone="0700000000",
        email=None,
        gender=Gender.OTHER,
        start_date=date(2024, 1, 1),
        subscription_type=SubscriptionType(sub),
        subscription_fee=2000.0,
        renewal_date=renewal,
        status=status,
    )


@pytest.fixture
def payments():
    return [
        payment(date(2024, 1, 31), 500, "cash", "weekly"),
        payment(date(2024, 2, 1), 2000, "mobile-money", "monthly"),
        payment(date(2024, 2, 15), 1000, "card", "weekly"),
        payment(date(2024, 2, 29), 2000, "mobile-money", "monthly"),
        payment(date(2024, 3, 1), 200, "cash", "daily"),
    ]


class TestRevenue:
    """Tests for revenue reducers."""

    def test_revenue_between_is_inclusive(self, payments):
        assert reports.revenue_between(payments, date(2024, 2, 1), date(2024, 2, 29)) == 5000.0
        assert reports.revenue_between(payments, date(2024, 2, 29), date(2024, 2, 29)) == 2000.0

    def test_revenue_between_empty(self):
        assert reports.revenue_between([], date(2024, 1, 1), date(2024, 12, 31)) == 0.0

    def test_by_subscription_type(self, payments):
        df = reports.revenue_by_subscription_type(payments, date(2024, 2, 1), date(2024, 2, 29))
        totals = dict(zip(df["subscription_type"], df["revenue"]))
        assert totals == {"daily": 0.0, "weekly": 1000.0, "monthly": 4000.0, "quarterly": 0.0, "annual": 0.0}

    def test_by_method(self, payments):
        df = reports.revenue_by_method(payments)
        totals = dict(zip(df["payment_method"], df["revenue"]))
        assert totals == {"cash": 700.0, "mobile-money": 4000.0, "card": 1000.0, "bank-transfer": 0.0}

    def test_by_method_no_payments(self):
        df = reports.revenue_by_method([])
        assert list(df["revenue"]) == [0.0, 0.0, 0.0, 0.0]

    def test_method_counts(self, payments):
        df = reports.payment_method_counts(payments)
        assert dict(zip(df["payment_method"], df["count"])) == {
            "cash": 2, "mobile-money": 2, "card": 1, "bank-transfer": 0,
        }

    def test_monthly_revenue(self, payments):
        df = reports.monthly_revenue(payments, months=3, today=date(2024, 3, 10))
        assert list(df["month"]) == ["Jan 2024", "Feb 2024", "Mar 2024"]
        assert list(df["revenue"]) == [500.0, 5000.0, 200.0]

    def test_monthly_revenue_crosses_year(self):
        df = reports.monthly_revenue([payment(date(2023, 12, 31), 300)], months=2, today=date(2024, 1, 5))
        assert list(df["month"]) == ["Dec 2023", "Jan 2024"]
        assert list(df["revenue"]) == [300.0, 0.0]


class TestUsage:
    """Tests for member and check-in summaries."""

    def test_check_ins_per_day(self):
        check_ins = [
            CheckIn(id=1, member_id=1, check_in_date=datetime(2024, 3, 10, 6, 0)),
            CheckIn(id=2, member_id=2, check_in_date=datetime(2024, 3, 10, 23, 59)),
            CheckIn(id=3, member_id=1, check_in_date=datetime(2024, 3, 8, 12, 0)),
            CheckIn(id=4, member_id=1, check_in_date=datetime(2024, 3, 1, 12, 0)),
        ]
        df = reports.check_ins_per_day(check_ins, days=7, today=date(2024, 3, 10))
        assert list(df["day"]) == [date(2024, 3, d) for d in range(4, 11)]
        assert list(df["check_ins"]) == [0, 0, 0, 0, 1, 0, 2]

    def test_membership_type_counts(self):
        members = [
            member("A", date(2024, 2, 1), MemberStatus.ACTIVE, "monthly"),
            member("B", date(2024, 2, 1), MemberStatus.ACTIVE, "monthly"),
            member("C", date(2024, 2, 1), MemberStatus.ACTIVE, "daily"),
        ]
        df = reports.membership_type_counts(members)
        assert dict(zip(df["subscription_type"], df["count"]))["monthly"] == 2
        assert dict(zip(df["subscription_type"], df["count"]))["weekly"] == 0

    def test_status_counts(self):
        members = [
            member("A", date(2024, 2, 1), MemberStatus.ACTIVE),
            member("B", date(2024, 2, 1), MemberStatus.DUE),
            member("C", date(2024, 2, 1), MemberStatus.OVERDUE),
            member("D", date(2024, 2, 1), MemberStatus.OVERDUE),
        ]
        counts = reports.status_counts(members)
        assert counts["active"] == 1
        assert counts["due"] == 1
        assert counts["overdue"] == 2
        assert counts["expired"] == 0

    def test_upcoming_renewals(self):
        today = date(2024, 3, 1)
        members = [
            member("Late", date(2024, 2, 1), MemberStatus.OVERDUE),
            member("Soon", date(2024, 3, 5), MemberStatus.ACTIVE),
            member("Today", date(2024, 3, 1), MemberStatus.DUE),
            member("Later", date(2024, 4, 15), MemberStatus.ACTIVE),
        ]
        upcoming = reports.upcoming_renewals(members, days=30, today=today)
        assert [m.full_name for m in upcoming] == ["Today", "Soon"]
        assert len(reports.upcoming_renewals(members, days=30, today=today, limit=1)) == 1

    def test_dashboard_stats(self, payments):
        today = date(2024, 2, 28)
        members = [
            member("A", date(2024, 3, 2), MemberStatus.ACTIVE),
            member("B", date(2024, 2, 27), MemberStatus.DUE),
            member("C", date(2024, 1, 1), MemberStatus.OVERDUE),
        ]
        check_ins = [CheckIn(id=1, member_id=1, check_in_date=datetime(2024, 2, 28, 7, 0))]
        stats = reports.dashboard_stats(members, payments, check_ins, today=today)
        assert stats["total_members"] == 3
        assert stats["active"] == 1
        assert stats["due"] == 1
        assert stats["lapsed"] == 1
        assert stats["monthly_revenue"] == 5000.0
        assert stats["check_ins_today"] == 1
        assert [m.full_name for m in stats["upcoming_renewals"]] == ["B", "A"]
