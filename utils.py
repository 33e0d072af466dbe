"""
utils.py
Validation, dates, renewal-period labels, exports.
"""

from __future__ import annotations

import base64
import binascii
import csv
import json
import math
import re
from datetime import date, datetime

import pandas as pd

from models import (
    CheckIn,
    Gender,
    GymSettings,
    Member,
    Payment,
    PaymentMethod,
    PaymentStatus,
    SubscriptionType,
)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
LOGO_RE = re.compile(r"^data:image/[\w.+-]+;base64,(?P<data>[A-Za-z0-9+/]+={0,2})$")
PIN_MIN_LENGTH = 4


def today_iso() -> str:
    return date.today().isoformat()


def parse_iso(d) -> date:
    if isinstance(d, datetime):
        return d.date()
    if isinstance(d, date):
        return d
    return date.fromisoformat(d)


def parse_number(value) -> float:
    """float(value), rejecting inf and nan."""
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def _is_choice(value, enum_cls) -> bool:
    try:
        enum_cls(value)
    except ValueError:
        return False
    return True


def validate_member_inputs(full_name: str, phone: str, subscription_fee, start_date,
                           subscription_type="monthly", gender="other", email: str | None = None,
                           payment_status="paid") -> list[str]:
    errors: list[str] = []
    if not (full_name or "").strip():
        errors.append("Full name is required.")
    if not (phone or "").strip():
        errors.append("Phone is required.")
    if email and not EMAIL_RE.match(email.strip()):
        errors.append("Email address is not valid.")
    try:
        if parse_number(subscription_fee) < 0:
            errors.append("Subscription fee cannot be negative.")
    except (TypeError, ValueError):
        errors.append("Subscription fee must be numeric.")
    try:
        parse_iso(start_date)
    except (TypeError, ValueError):
        errors.append("Start date must be a valid ISO date (YYYY-MM-DD).")
    if not _is_choice(subscription_type, SubscriptionType):
        errors.append(f"Unknown subscription type: {subscription_type}.")
    if not _is_choice(gender, Gender):
        errors.append(f"Unknown gender: {gender}.")
    if not _is_choice(payment_status, PaymentStatus):
        errors.append(f"Unknown payment status: {payment_status}.")
    return errors


def validate_payment_inputs(amount, payment_method, payment_date) -> list[str]:
    errors: list[str] = []
    try:
        if parse_number(amount) <= 0:
            errors.append("Amount must be > 0.")
    except (TypeError, ValueError):
        errors.append("Amount must be numeric.")
    if not _is_choice(payment_method, PaymentMethod):
        errors.append(f"Unknown payment method: {payment_method}.")
    try:
        parse_iso(payment_date)
    except (TypeError, ValueError):
        errors.append("Payment date must be a valid ISO date (YYYY-MM-DD).")
    return errors


def decode_logo(data_url: str | None) -> bytes | None:
    """Image bytes of a base64 data URL, or None when it is not one."""
    match = LOGO_RE.match(data_url or "")
    if not match:
        return None
    try:
        return base64.b64decode(match.group("data"), validate=True)
    except binascii.Error:
        return None


def validate_settings_inputs(fields: dict) -> list[str]:
    errors: list[str] = []
    if "gym_name" in fields and not (fields["gym_name"] or "").strip():
        errors.append("Gym name is required.")
    for name in sorted(fields):
        if name.endswith("_fee"):
            label = name.replace("_", " ").capitalize()
            try:
                if parse_number(fields[name]) < 0:
                    errors.append(f"{label} cannot be negative.")
            except (TypeError, ValueError):
                errors.append(f"{label} must be numeric.")
    if fields.get("logo") and decode_logo(fields["logo"]) is None:
        errors.append("Logo must be a base64 image data URL.")
    if fields.get("pin_code") and len(fields["pin_code"]) < PIN_MIN_LENGTH:
        errors.append(f"PIN must be at least {PIN_MIN_LENGTH} characters.")
    return errors


def renewal_period_label(payment_date: date, subscription_type: SubscriptionType | str) -> str:
    """
    Default free-text period for a payment, e.g. "Feb 2024", "Q1 2024", "2024".
    """
    sub = SubscriptionType(subscription_type)
    if sub is SubscriptionType.DAILY:
        return payment_date.strftime("%d %b %Y")
    if sub is SubscriptionType.WEEKLY:
        year, week, _ = payment_date.isocalendar()
        return f"Week {week:02d} {year}"
    if sub is SubscriptionType.QUARTERLY:
        return f"Q{(payment_date.month - 1) // 3 + 1} {payment_date.year}"
    if sub is SubscriptionType.ANNUAL:
        return str(payment_date.year)
    return payment_date.strftime("%b %Y")


# ---------- Exports ----------

MEMBER_EXPORT_COLUMNS = [
    "Member Name", "Phone", "Email", "Status", "Subscription Type", "Start Date", "Renewal Date", "Fee",
]
PAYMENT_EXPORT_COLUMNS = ["Member", "Amount", "Method", "Date", "Period", "Notes"]


def _to_csv(df: pd.DataFrame) -> str:
    return df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def members_frame(members: list[Member]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            [
                m.full_name,
                m.phone,
                m.email or "",
                m.status.value,
                m.subscription_type.value,
                m.start_date.isoformat(),
                m.renewal_date.isoformat(),
                m.subscription_fee,
            ]
            for m in members
        ],
        columns=MEMBER_EXPORT_COLUMNS,
    )


def payments_frame(payments: list[Payment], members: list[Member]) -> pd.DataFrame:
    names = {m.id: m.full_name for m in members}
    return pd.DataFrame(
        [
            [
                names.get(p.member_id, "Unknown"),
                p.amount,
                p.payment_method.value,
                p.payment_date.isoformat(),
                p.renewal_period,
                p.notes or "",
            ]
            for p in payments
        ],
        columns=PAYMENT_EXPORT_COLUMNS,
    )


def report_to_csv_bytes(members: list[Member], payments: list[Payment]) -> bytes:
    """Members section, a blank line, then the payment history section."""
    text = _to_csv(members_frame(members))
    text += "\nPayment History\n"
    text += _to_csv(payments_frame(payments, members))
    return text.encode("utf-8")


def report_file_name(day: date | None = None) -> str:
    return f"gym-report-{(day or date.today()).isoformat()}.csv"


def backup_to_json_bytes(members: list[Member], payments: list[Payment], check_ins: list[CheckIn],
                         settings: list[GymSettings], exported_at: datetime | None = None) -> bytes:
    data = {
        "members": [m.to_dict() for m in members],
        "payments": [p.to_dict() for p in payments],
        "check_ins": [c.to_dict() for c in check_ins],
        "settings": [s.to_dict() for s in settings],
        "export_date": (exported_at or datetime.now()).isoformat(timespec="seconds"),
    }
    return json.dumps(data, indent=2).encode("utf-8")


def backup_file_name(day: date | None = None) -> str:
    return f"gym-backup-{(day or date.today()).isoformat()}.json"
