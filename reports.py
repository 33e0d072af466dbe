"""
reports.py
Revenue and usage summaries. Pure reducers over already-fetched records;
date ranges are inclusive of both end days.
"""

from __future__ import annotations

from datetime import date, timedelta

import pandas as pd

import config
from models import (
    CheckIn,
    Member,
    MemberStatus,
    Payment,
    PaymentMethod,
    SubscriptionType,
)
from status import add_months

PAYMENT_COLUMNS = ["payment_date", "amount", "payment_method", "subscription_type"]


def payments_frame(payments: list[Payment]) -> pd.DataFrame:
    df = pd.DataFrame(
        [
            {
                "payment_date": p.payment_date,
                "amount": p.amount,
                "payment_method": p.payment_method.value,
                "subscription_type": p.subscription_type.value,
            }
            for p in payments
        ],
        columns=PAYMENT_COLUMNS,
    )
    return df.astype({"amount": float})


def _in_range(df: pd.DataFrame, start: date | None, end: date | None) -> pd.DataFrame:
    if start is not None:
        df = df[df["payment_date"] >= start]
    if end is not None:
        df = df[df["payment_date"] <= end]
    return df


def revenue_between(payments: list[Payment], start: date, end: date) -> float:
    df = _in_range(payments_frame(payments), start, end)
    return float(df["amount"].sum())


def _revenue_by(payments: list[Payment], column: str, keys: list[str],
                start: date | None, end: date | None) -> pd.DataFrame:
    df = _in_range(payments_frame(payments), start, end)
    totals = df.groupby(column)["amount"].sum().reindex(keys, fill_value=0.0)
    return pd.DataFrame({column: keys, "revenue": [float(v) for v in totals.values]})


def revenue_by_subscription_type(payments: list[Payment], start: date | None = None,
                                 end: date | None = None) -> pd.DataFrame:
    return _revenue_by(payments, "subscription_type", [t.value for t in SubscriptionType], start, end)


def revenue_by_method(payments: list[Payment], start: date | None = None,
                      end: date | None = None) -> pd.DataFrame:
    return _revenue_by(payments, "payment_method", [m.value for m in PaymentMethod], start, end)


def payment_method_counts(payments: list[Payment]) -> pd.DataFrame:
    keys = [m.value for m in PaymentMethod]
    counts = pd.Series([p.payment_method.value for p in payments], dtype=object).value_counts()
    return pd.DataFrame({"payment_method": keys, "count": [int(counts.get(k, 0)) for k in keys]})


def membership_type_counts(members: list[Member]) -> pd.DataFrame:
    keys = [t.value for t in SubscriptionType]
    counts = pd.Series([m.subscription_type.value for m in members], dtype=object).value_counts()
    return pd.DataFrame({"subscription_type": keys, "count": [int(counts.get(k, 0)) for k in keys]})


def status_counts(members: list[Member]) -> dict[str, int]:
    counts = {s.value: 0 for s in MemberStatus}
    for m in members:
        counts[m.status.value] += 1
    return counts


def monthly_revenue(payments: list[Payment], months: int = 12, today: date | None = None) -> pd.DataFrame:
    """Revenue per calendar month for the trailing ``months`` months, oldest first."""
    today = today or date.today()
    first = today.replace(day=1)
    rows = []
    for i in range(months - 1, -1, -1):
        month_start = add_months(first, -i)
        month_end = add_months(month_start, 1) - timedelta(days=1)
        rows.append({
            "month": month_start.strftime("%b %Y"),
            "revenue": revenue_between(payments, month_start, month_end),
        })
    return pd.DataFrame(rows, columns=["month", "revenue"])


def check_ins_per_day(check_ins: list[CheckIn], days: int = 7, today: date | None = None) -> pd.DataFrame:
    today = today or date.today()
    window = [today - timedelta(days=n) for n in range(days - 1, -1, -1)]
    counts = pd.Series([c.check_in_date.date() for c in check_ins], dtype=object).value_counts()
    return pd.DataFrame({"day": window, "check_ins": [int(counts.get(d, 0)) for d in window]})


def upcoming_renewals(members: list[Member], days: int | None = None, today: date | None = None,
                      limit: int | None = None) -> list[Member]:
    """Members renewing within ``days`` days who are not already overdue/expired."""
    today = today or date.today()
    days = config.UPCOMING_RENEWALS_DAYS if days is None else days
    horizon = today + timedelta(days=days)
    lapsed = (MemberStatus.OVERDUE, MemberStatus.EXPIRED)
    due = sorted(
        (m for m in members if m.renewal_date <= horizon and m.status not in lapsed),
        key=lambda m: (m.renewal_date, m.full_name),
    )
    return due[:limit] if limit else due


def dashboard_stats(members: list[Member], payments: list[Payment], check_ins: list[CheckIn],
                    today: date | None = None) -> dict:
    today = today or date.today()
    month_start = today.replace(day=1)
    month_end = add_months(month_start, 1) - timedelta(days=1)
    counts = status_counts(members)
    return {
        "total_members": len(members),
        "active": counts[MemberStatus.ACTIVE.value],
        "due": counts[MemberStatus.DUE.value] + counts[MemberStatus.EXPIRING_SOON.value],
        "lapsed": counts[MemberStatus.OVERDUE.value] + counts[MemberStatus.EXPIRED.value],
        "monthly_revenue": revenue_between(payments, month_start, month_end),
        "check_ins_today": sum(1 for c in check_ins if c.check_in_date.date() == today),
        "upcoming_renewals": upcoming_renewals(
            members, days=config.DUE_WINDOW_DAYS, today=today, limit=5
        ),
    }
