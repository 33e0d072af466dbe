"""
models.py
Lightweight domain helpers (subscription types, statuses, dataclasses).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from enum import Enum


class SubscriptionType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


# Renewal increments: (days, months)
SUBSCRIPTION_INCREMENTS = {
    SubscriptionType.DAILY: (1, 0),
    SubscriptionType.WEEKLY: (7, 0),
    SubscriptionType.MONTHLY: (0, 1),
    SubscriptionType.QUARTERLY: (0, 3),
    SubscriptionType.ANNUAL: (0, 12),
}


class StatusModel(str, Enum):
    """Which status vocabulary the engine derives."""

    EXPIRY = "expiry"  # active / expiring-soon / expired
    DUES = "dues"  # active / due / overdue


class MemberStatus(str, Enum):
    ACTIVE = "active"
    DUE = "due"
    OVERDUE = "overdue"
    EXPIRING_SOON = "expiring-soon"
    EXPIRED = "expired"


STATUS_LABELS = {
    MemberStatus.ACTIVE: "Active",
    MemberStatus.DUE: "Due",
    MemberStatus.OVERDUE: "Overdue",
    MemberStatus.EXPIRING_SOON: "Expiring soon",
    MemberStatus.EXPIRED: "Expired",
}


class PaymentStatus(str, Enum):
    PAID = "paid"
    INCOMPLETE = "incomplete"


class PaymentMethod(str, Enum):
    CASH = "cash"
    MOBILE_MONEY = "mobile-money"
    CARD = "card"
    BANK_TRANSFER = "bank-transfer"


PAYMENT_METHOD_LABELS = {
    PaymentMethod.CASH: "Cash",
    PaymentMethod.MOBILE_MONEY: "Mobile money",
    PaymentMethod.CARD: "Card",
    PaymentMethod.BANK_TRANSFER: "Bank transfer",
}


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


def _date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _datetime(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _serialize(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class Member:
    id: int | None
    full_name: str
    phone: str
    email: str | None
    gender: Gender
    start_date: date
    subscription_type: SubscriptionType
    subscription_fee: float
    renewal_date: date
    status: MemberStatus  # derived, never set by callers
    payment_status: PaymentStatus = PaymentStatus.PAID
    last_check_in: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "Member":
        r = dict(row)
        return cls(
            id=r["id"],
            full_name=r["full_name"],
            phone=r["phone"],
            email=r.get("email"),
            gender=Gender(r["gender"]),
            start_date=_date(r["start_date"]),
            subscription_type=SubscriptionType(r["subscription_type"]),
            subscription_fee=float(r["subscription_fee"]),
            renewal_date=_date(r["renewal_date"]),
            status=MemberStatus(r["status"]),
            payment_status=PaymentStatus(r.get("payment_status") or PaymentStatus.PAID.value),
            last_check_in=_datetime(r.get("last_check_in")),
            created_at=_datetime(r.get("created_at")),
            updated_at=_datetime(r.get("updated_at")),
        )

    def to_dict(self) -> dict:
        return {k: _serialize(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class Payment:
    id: int | None
    member_id: int
    amount: float
    payment_method: PaymentMethod
    payment_date: date
    renewal_period: str
    subscription_type: SubscriptionType
    notes: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "Payment":
        r = dict(row)
        return cls(
            id=r["id"],
            member_id=r["member_id"],
            amount=float(r["amount"]),
            payment_method=PaymentMethod(r["payment_method"]),
            payment_date=_date(r["payment_date"]),
            renewal_period=r["renewal_period"],
            subscription_type=SubscriptionType(r["subscription_type"]),
            notes=r.get("notes"),
            created_at=_datetime(r.get("created_at")),
        )

    def to_dict(self) -> dict:
        return {k: _serialize(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class CheckIn:
    id: int | None
    member_id: int
    check_in_date: datetime
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "CheckIn":
        r = dict(row)
        return cls(
            id=r["id"],
            member_id=r["member_id"],
            check_in_date=_datetime(r["check_in_date"]),
            created_at=_datetime(r.get("created_at")),
        )

    def to_dict(self) -> dict:
        return {k: _serialize(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class GymSettings:
    id: int | None
    gym_name: str
    logo: str | None = None  # data URL
    contact_phone: str | None = None
    contact_email: str | None = None
    address: str | None = None
    default_daily_fee: float = 200.0
    default_weekly_fee: float = 1000.0
    default_monthly_fee: float = 2000.0
    default_quarterly_fee: float = 5500.0
    default_annual_fee: float = 20000.0
    pin_code: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "GymSettings":
        r = dict(row)
        r["created_at"] = _datetime(r.get("created_at"))
        r["updated_at"] = _datetime(r.get("updated_at"))
        return cls(**r)

    def default_fee(self, subscription_type: SubscriptionType | str) -> float:
        st_value = SubscriptionType(subscription_type).value
        return float(getattr(self, f"default_{st_value}_fee"))

    def to_dict(self) -> dict:
        return {k: _serialize(v) for k, v in asdict(self).items()}
