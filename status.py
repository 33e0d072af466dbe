"""
status.py
Membership status engine: status derivation, renewal dates, check-in gate.
Pure functions, no database access.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta

import config
from models import (
    SUBSCRIPTION_INCREMENTS,
    Member,
    MemberStatus,
    PaymentStatus,
    StatusModel,
    SubscriptionType,
)

SECONDS_PER_DAY = 24 * 60 * 60


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def next_renewal_date(start: date, subscription_type: SubscriptionType | str) -> date:
    """Renewal date one subscription period after ``start`` (registration or payment date)."""
    if isinstance(start, datetime):
        start = start.date()
    days, months = SUBSCRIPTION_INCREMENTS[SubscriptionType(subscription_type)]
    if months:
        return add_months(start, months)
    return start + timedelta(days=days)


def days_until(renewal_date: date, now: datetime) -> int:
    """Whole days (rounded up) from ``now`` until the start of the renewal day."""
    if isinstance(renewal_date, datetime):
        renewal_at = renewal_date
    else:
        renewal_at = datetime.combine(renewal_date, time.min)
    if not isinstance(now, datetime):
        now = datetime.combine(now, time.min)
    return math.ceil((renewal_at - now).total_seconds() / SECONDS_PER_DAY)


def status_for_days(days: int, model: StatusModel | str | None = None,
                    window: int | None = None) -> MemberStatus:
    model = StatusModel(model or config.STATUS_MODEL)
    window = config.DUE_WINDOW_DAYS if window is None else window

    if model is StatusModel.EXPIRY:
        if days < 0:
            return MemberStatus.EXPIRED
        if days <= window:
            return MemberStatus.EXPIRING_SOON
        return MemberStatus.ACTIVE

    if days < -window:
        return MemberStatus.OVERDUE
    if days <= 0:
        return MemberStatus.DUE
    return MemberStatus.ACTIVE


def derive_status(renewal_date: date, now: datetime | None = None,
                  model: StatusModel | str | None = None) -> MemberStatus:
    now = now or datetime.now()
    return status_for_days(days_until(renewal_date, now), model)


def check_in_block_reason(member: Member, now: datetime | None = None,
                          model: StatusModel | str | None = None) -> str | None:
    """
    Why ``member`` may not check in right now, or None when eligible.
    Status is re-derived from the renewal date, not read from the stored column.
    """
    status = derive_status(member.renewal_date, now, model)
    if status in (MemberStatus.OVERDUE, MemberStatus.EXPIRED):
        return f"{status.value.capitalize()} subscription"
    if status is not MemberStatus.ACTIVE:
        return "Subscription renewal pending" if status is MemberStatus.DUE else "Subscription expiring soon"
    if member.payment_status is not PaymentStatus.PAID:
        return "Incomplete payment"
    return None


def can_check_in(member: Member, now: datetime | None = None,
                 model: StatusModel | str | None = None) -> bool:
    return check_in_block_reason(member, now, model) is None
