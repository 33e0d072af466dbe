"""
store.py
Record repository for members, payments, check-ins and settings.

Member status is a cache of status.derive_status(renewal_date, now): it is recomputed
on every member write, on single-member reads and by refresh_member_statuses(), which
pages call on load. Callers can never set it directly.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, time, timedelta

import db
import status as status_engine
import utils
from errors import CheckInBlocked, NotFoundError, ValidationError
from models import (
    CheckIn,
    Gender,
    GymSettings,
    Member,
    MemberStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    StatusModel,
    SubscriptionType,
)

logger = logging.getLogger(__name__)

MEMBER_EDITABLE_FIELDS = {
    "full_name", "phone", "email", "gender", "start_date",
    "subscription_type", "subscription_fee", "payment_status",
}
SETTINGS_EDITABLE_FIELDS = {
    "gym_name", "logo", "contact_phone", "contact_email", "address",
    "default_daily_fee", "default_weekly_fee", "default_monthly_fee",
    "default_quarterly_fee", "default_annual_fee", "pin_code",
}


def _now(now: datetime | None) -> datetime:
    return now or datetime.now()


def _like(text: str) -> str:
    """Case-folded LIKE pattern matching ``text`` literally anywhere; pair with ESCAPE '\\'."""
    escaped = text.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _day_bounds(start: date, end: date) -> tuple[str, str]:
    """Inclusive range covering start 00:00:00 through end 23:59:59."""
    lo = datetime.combine(utils.parse_iso(start), time.min)
    hi = datetime.combine(utils.parse_iso(end), time.max)
    return lo.isoformat(timespec="seconds"), hi.isoformat(timespec="seconds")


# ---------- Members ----------

def add_member(full_name: str, phone: str, gender: str, start_date, subscription_type: str,
               subscription_fee, email: str | None = None, payment_status: str = "paid",
               now: datetime | None = None, model: StatusModel | str | None = None) -> Member:
    errors = utils.validate_member_inputs(
        full_name, phone, subscription_fee, start_date,
        subscription_type=subscription_type, gender=gender, email=email,
        payment_status=payment_status,
    )
    if errors:
        raise ValidationError(errors)

    start = utils.parse_iso(start_date)
    renewal = status_engine.next_renewal_date(start, subscription_type)
    now = _now(now)
    stamp = now.isoformat(timespec="seconds")
    member_id = db.execute(
        """
        INSERT INTO members(full_name, phone, email, gender, start_date, subscription_type,
            subscription_fee, renewal_date, status, payment_status, created_at, updated_at)
        VALUES(?,?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            full_name.strip(),
            phone.strip(),
            (email or "").strip() or None,
            Gender(gender).value,
            start.isoformat(),
            SubscriptionType(subscription_type).value,
            float(subscription_fee),
            renewal.isoformat(),
            status_engine.derive_status(renewal, now, model).value,
            PaymentStatus(payment_status).value,
            stamp,
            stamp,
        ),
    )
    logger.info("Registered member %s (renewal %s)", member_id, renewal)
    return get_member(member_id, now=now, model=model)


def update_member(member_id: int, now: datetime | None = None,
                  model: StatusModel | str | None = None, **fields) -> Member:
    """
    Update editable member fields. ``status`` is derived and ``renewal_date`` only moves
    when a payment is recorded, so both are rejected here.
    """
    forbidden = set(fields) - MEMBER_EDITABLE_FIELDS
    if forbidden:
        raise ValidationError([f"Field cannot be edited: {name}" for name in sorted(forbidden)])

    current = get_member(member_id, now=now, model=model)
    merged = {**current.to_dict(), **fields}
    errors = utils.validate_member_inputs(
        merged["full_name"], merged["phone"], merged["subscription_fee"], merged["start_date"],
        subscription_type=merged["subscription_type"], gender=merged["gender"],
        email=merged["email"], payment_status=merged["payment_status"],
    )
    if errors:
        raise ValidationError(errors)

    now = _now(now)
    db.execute(
        """
        UPDATE members SET full_name=?, phone=?, email=?, gender=?, start_date=?,
            subscription_type=?, subscription_fee=?, payment_status=?, status=?, updated_at=?
        WHERE id=?
        """,
        (
            merged["full_name"].strip(),
            merged["phone"].strip(),
            (merged["email"] or "").strip() or None,
            Gender(merged["gender"]).value,
            utils.parse_iso(merged["start_date"]).isoformat(),
            SubscriptionType(merged["subscription_type"]).value,
            float(merged["subscription_fee"]),
            PaymentStatus(merged["payment_status"]).value,
            status_engine.derive_status(current.renewal_date, now, model).value,
            now.isoformat(timespec="seconds"),
            member_id,
        ),
    )
    return get_member(member_id, now=now, model=model)


def delete_member(member_id: int) -> None:
    """Delete a member together with its payments and check-ins."""
    with db.get_conn() as conn:
        conn.execute("DELETE FROM payments WHERE member_id = ?", (member_id,))
        conn.execute("DELETE FROM check_ins WHERE member_id = ?", (member_id,))
        cur = conn.execute("DELETE FROM members WHERE id = ?", (member_id,))
        if cur.rowcount == 0:
            raise NotFoundError(f"Member {member_id} not found.")
    logger.info("Deleted member %s", member_id)


def _fresh(member: Member, now: datetime, model) -> tuple[Member, bool]:
    derived = status_engine.derive_status(member.renewal_date, now, model)
    if derived is member.status:
        return member, False
    return replace(member, status=derived), True


def get_member(member_id: int, now: datetime | None = None,
               model: StatusModel | str | None = None) -> Member:
    row = db.fetch_one("SELECT * FROM members WHERE id = ?", (member_id,))
    if not row:
        raise NotFoundError(f"Member {member_id} not found.")
    member, stale = _fresh(Member.from_row(row), _now(now), model)
    if stale:
        db.execute("UPDATE members SET status = ? WHERE id = ?", (member.status.value, member_id))
    return member


def refresh_member_statuses(now: datetime | None = None,
                            model: StatusModel | str | None = None) -> int:
    """Keep stored statuses consistent with renewal dates. Returns the number changed."""
    now = _now(now)
    rows = db.fetch_all("SELECT id, renewal_date, status FROM members")
    changes = []
    for r in rows:
        derived = status_engine.derive_status(utils.parse_iso(r["renewal_date"]), now, model).value
        if derived != r["status"]:
            changes.append((derived, r["id"]))
    if changes:
        db.executemany("UPDATE members SET status = ? WHERE id = ?", changes)
        logger.info("Refreshed status of %d member(s)", len(changes))
    return len(changes)


def list_members(search: str = "", status_filter: str = "all", order_by: str = "full_name") -> list[Member]:
    sql = "SELECT * FROM members WHERE 1=1"
    params = []

    if search.strip():
        sql += (
            " AND (LOWER(full_name) LIKE ? ESCAPE '\\' OR phone LIKE ? ESCAPE '\\'"
            " OR LOWER(COALESCE(email, '')) LIKE ? ESCAPE '\\')"
        )
        like = _like(search)
        params.extend([like, like, like])

    if status_filter and status_filter != "all":
        sql += " AND status = ?"
        params.append(MemberStatus(status_filter).value)

    if order_by == "renewal_date":
        sql += " ORDER BY renewal_date ASC, id ASC"
    elif order_by == "newest":
        sql += " ORDER BY id DESC"
    else:
        sql += " ORDER BY full_name COLLATE NOCASE ASC, id ASC"

    return [Member.from_row(r) for r in db.fetch_all(sql, tuple(params))]


def search_members(query: str) -> list[Member]:
    return list_members(search=query)


def get_members_by_status(status: MemberStatus | str) -> list[Member]:
    return list_members(status_filter=MemberStatus(status).value)


# ---------- Payments ----------

def record_payment(member_id: int, amount, payment_method: str, payment_date,
                   renewal_period: str | None = None, notes: str | None = None,
                   now: datetime | None = None, model: StatusModel | str | None = None) -> Payment:
    """
    Record a payment and advance the member's renewal date from the payment date.
    Both writes share one transaction.
    """
    errors = utils.validate_payment_inputs(amount, payment_method, payment_date)
    if errors:
        raise ValidationError(errors)

    now = _now(now)
    stamp = now.isoformat(timespec="seconds")
    paid_on = utils.parse_iso(payment_date)

    with db.get_conn() as conn:
        row = conn.execute("SELECT * FROM members WHERE id = ?", (member_id,)).fetchone()
        if not row:
            raise NotFoundError(f"Member {member_id} not found.")
        member = Member.from_row(row)
        renewal = status_engine.next_renewal_date(paid_on, member.subscription_type)
        period = (renewal_period or "").strip() or utils.renewal_period_label(paid_on, member.subscription_type)

        cur = conn.execute(
            """
            INSERT INTO payments(member_id, amount, payment_method, payment_date, renewal_period,
                subscription_type, notes, created_at)
            VALUES(?,?,?,?,?,?,?,?)
            """,
            (
                member_id,
                float(amount),
                PaymentMethod(payment_method).value,
                paid_on.isoformat(),
                period,
                member.subscription_type.value,
                (notes or "").strip() or None,
                stamp,
            ),
        )
        payment_id = cur.lastrowid
        conn.execute(
            """
            UPDATE members SET renewal_date=?, status=?, payment_status=?, updated_at=?
            WHERE id=?
            """,
            (
                renewal.isoformat(),
                status_engine.derive_status(renewal, now, model).value,
                PaymentStatus.PAID.value,
                stamp,
                member_id,
            ),
        )
        payment = Payment.from_row(conn.execute("SELECT * FROM payments WHERE id = ?", (payment_id,)).fetchone())

    logger.info("Recorded payment %s for member %s; renewal now %s", payment_id, member_id, renewal)
    return payment


def list_payments(search: str = "", member_id: int | None = None) -> list[Payment]:
    sql = "SELECT p.* FROM payments p LEFT JOIN members m ON m.id = p.member_id WHERE 1=1"
    params = []
    if member_id is not None:
        sql += " AND p.member_id = ?"
        params.append(member_id)
    if search.strip():
        sql += (
            " AND (LOWER(COALESCE(m.full_name, '')) LIKE ? ESCAPE '\\'"
            " OR LOWER(p.renewal_period) LIKE ? ESCAPE '\\')"
        )
        like = _like(search)
        params.extend([like, like])
    sql += " ORDER BY p.payment_date DESC, p.id DESC"
    return [Payment.from_row(r) for r in db.fetch_all(sql, tuple(params))]


def get_member_payments(member_id: int) -> list[Payment]:
    return list_payments(member_id=member_id)


def get_payments_between(start: date, end: date) -> list[Payment]:
    # payment_date is stored as a plain date, so whole-day bounds are the dates themselves
    rows = db.fetch_all(
        "SELECT * FROM payments WHERE payment_date BETWEEN ? AND ? ORDER BY payment_date ASC, id ASC",
        (utils.parse_iso(start).isoformat(), utils.parse_iso(end).isoformat()),
    )
    return [Payment.from_row(r) for r in rows]


def get_monthly_revenue(year: int, month: int) -> float:
    start = date(year, month, 1)
    end = status_engine.add_months(start, 1) - timedelta(days=1)
    row = db.fetch_one(
        "SELECT COALESCE(SUM(amount), 0) AS s FROM payments WHERE payment_date BETWEEN ? AND ?",
        (start.isoformat(), end.isoformat()),
    )
    return float(row["s"])


# ---------- Check-ins ----------

def check_in(member_id: int, now: datetime | None = None,
             model: StatusModel | str | None = None) -> CheckIn:
    """
    Check a member in. The eligibility gate, the log entry and the member's
    last_check_in pointer all run in one transaction; the log entry is written first.
    """
    now = _now(now)
    stamp = now.isoformat(timespec="seconds")

    with db.get_conn() as conn:
        row = conn.execute("SELECT * FROM members WHERE id = ?", (member_id,)).fetchone()
        if not row:
            raise NotFoundError(f"Member {member_id} not found.")
        member = Member.from_row(row)
        reason = status_engine.check_in_block_reason(member, now, model)
        if reason:
            logger.info("Check-in blocked for member %s: %s", member_id, reason)
            raise CheckInBlocked(member.full_name, reason)

        cur = conn.execute(
            "INSERT INTO check_ins(member_id, check_in_date, created_at) VALUES(?,?,?)",
            (member_id, stamp, stamp),
        )
        conn.execute(
            "UPDATE members SET last_check_in=?, status=?, updated_at=? WHERE id=?",
            (stamp, MemberStatus.ACTIVE.value, stamp, member_id),
        )
        record = CheckIn.from_row(conn.execute("SELECT * FROM check_ins WHERE id = ?", (cur.lastrowid,)).fetchone())

    logger.info("Member %s checked in at %s", member_id, stamp)
    return record


def list_check_ins(member_id: int | None = None) -> list[CheckIn]:
    if member_id is None:
        rows = db.fetch_all("SELECT * FROM check_ins ORDER BY check_in_date DESC, id DESC")
    else:
        rows = db.fetch_all(
            "SELECT * FROM check_ins WHERE member_id = ? ORDER BY check_in_date DESC, id DESC",
            (member_id,),
        )
    return [CheckIn.from_row(r) for r in rows]


def get_check_ins_between(start: date, end: date) -> list[CheckIn]:
    lo, hi = _day_bounds(start, end)
    rows = db.fetch_all(
        "SELECT * FROM check_ins WHERE check_in_date BETWEEN ? AND ? ORDER BY check_in_date ASC, id ASC",
        (lo, hi),
    )
    return [CheckIn.from_row(r) for r in rows]


def get_recent_check_ins(limit: int = 5) -> list[dict]:
    rows = db.fetch_all(
        """
        SELECT c.id, c.member_id, c.check_in_date, COALESCE(m.full_name, 'Unknown') AS member_name
        FROM check_ins c
        LEFT JOIN members m ON m.id = c.member_id
        ORDER BY c.check_in_date DESC, c.id DESC
        LIMIT ?
        """,
        (limit,),
    )
    return [dict(r) for r in rows]


# ---------- Settings ----------

def get_settings() -> GymSettings:
    """The current settings record, created with defaults if missing."""
    row = db.fetch_one("SELECT * FROM settings ORDER BY id DESC LIMIT 1")
    if not row:
        db.insert_default_settings()
        row = db.fetch_one("SELECT * FROM settings ORDER BY id DESC LIMIT 1")
    return GymSettings.from_row(row)


def save_settings(**fields) -> GymSettings:
    unknown = set(fields) - SETTINGS_EDITABLE_FIELDS
    if unknown:
        raise ValidationError([f"Unknown setting: {name}" for name in sorted(unknown)])

    errors = utils.validate_settings_inputs(fields)
    if errors:
        raise ValidationError(errors)

    current = get_settings()
    if not fields:
        return current
    assignments = ", ".join(f"{name}=?" for name in sorted(fields))
    params = [fields[name] for name in sorted(fields)]
    db.execute(
        f"UPDATE settings SET {assignments}, updated_at=? WHERE id=?",
        (*params, db.now_iso(), current.id),
    )
    logger.info("Settings updated: %s", ", ".join(sorted(fields)))
    return get_settings()


def set_logo(data_url: str) -> GymSettings:
    return save_settings(logo=data_url)


def verify_pin(settings: GymSettings, entered: str) -> bool:
    """
    Plain string comparison; this is access friction for the settings page,
    not authentication. No PIN configured means the page is open.
    """
    if not settings.pin_code:
        return True
    return entered == settings.pin_code


# ---------- Maintenance ----------

def clear_all_data() -> None:
    with db.get_conn() as conn:
        conn.execute("DELETE FROM check_ins")
        conn.execute("DELETE FROM payments")
        conn.execute("DELETE FROM members")
    logger.warning("All members, payments and check-ins cleared")


def export_collections() -> dict:
    return {
        "members": list_members(order_by="newest"),
        "payments": list_payments(),
        "check_ins": list_check_ins(),
        "settings": [GymSettings.from_row(r) for r in db.fetch_all("SELECT * FROM settings ORDER BY id")],
    }


def restore_backup(data: dict, now: datetime | None = None,
                   model: StatusModel | str | None = None) -> dict:
    """
    Replace members, payments, check-ins (and settings, when present) with the
    contents of a JSON backup. Stored statuses are re-derived, not trusted.
    """
    missing = [key for key in ("members", "payments") if key not in data]
    if missing:
        raise ValidationError([f"Backup is missing '{key}'." for key in missing])

    now = _now(now)
    try:
        members = [Member.from_row({**m, "status": MemberStatus.ACTIVE.value}) for m in data["members"]]
        payments = [Payment.from_row(p) for p in data["payments"]]
        check_ins = [CheckIn.from_row(c) for c in data.get("check_ins", [])]
        settings = [GymSettings.from_row(s) for s in data.get("settings", [])]
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError([f"Backup is malformed: {exc}"]) from exc
    if settings:
        restored = settings[-1]
        errors = utils.validate_settings_inputs({"logo": restored.logo, "pin_code": restored.pin_code})
        if errors:
            raise ValidationError([f"Backup settings are invalid: {e}" for e in errors])

    stamp = now.isoformat(timespec="seconds")
    with db.get_conn() as conn:
        conn.execute("DELETE FROM check_ins")
        conn.execute("DELETE FROM payments")
        conn.execute("DELETE FROM members")
        for m in members:
            conn.execute(
                """
                INSERT INTO members(id, full_name, phone, email, gender, start_date, subscription_type,
                    subscription_fee, renewal_date, status, payment_status, last_check_in, created_at, updated_at)
                VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    m.id, m.full_name, m.phone, m.email, m.gender.value, m.start_date.isoformat(),
                    m.subscription_type.value, m.subscription_fee, m.renewal_date.isoformat(),
                    status_engine.derive_status(m.renewal_date, now, model).value,
                    m.payment_status.value,
                    m.last_check_in.isoformat(timespec="seconds") if m.last_check_in else None,
                    (m.created_at or now).isoformat(timespec="seconds"),
                    (m.updated_at or now).isoformat(timespec="seconds"),
                ),
            )
        for p in payments:
            conn.execute(
                """
                INSERT INTO payments(id, member_id, amount, payment_method, payment_date, renewal_period,
                    subscription_type, notes, created_at)
                VALUES(?,?,?,?,?,?,?,?,?)
                """,
                (
                    p.id, p.member_id, p.amount, p.payment_method.value, p.payment_date.isoformat(),
                    p.renewal_period, p.subscription_type.value, p.notes,
                    (p.created_at or now).isoformat(timespec="seconds"),
                ),
            )
        for c in check_ins:
            conn.execute(
                "INSERT INTO check_ins(id, member_id, check_in_date, created_at) VALUES(?,?,?,?)",
                (
                    c.id, c.member_id, c.check_in_date.isoformat(timespec="seconds"),
                    (c.created_at or c.check_in_date).isoformat(timespec="seconds"),
                ),
            )
        if settings:
            latest = settings[-1].to_dict()
            latest.pop("id")
            latest["created_at"] = latest["created_at"] or stamp
            latest["updated_at"] = stamp
            conn.execute("DELETE FROM settings")
            columns = sorted(latest)
            conn.execute(
                f"INSERT INTO settings({', '.join(columns)}) VALUES({', '.join('?' for _ in columns)})",
                tuple(latest[c] for c in columns),
            )

    counts = {"members": len(members), "payments": len(payments), "check_ins": len(check_ins)}
    logger.info("Restored backup: %s", counts)
    return counts


# ---------- Sample data ----------

def insert_sample_data(today: date | None = None) -> None:
    """
    Insert 3 members and a few payments (safe to run multiple times: adds new rows each time).
    """
    today = today or date.today()
    now = datetime.combine(today, time(9, 0))

    # Member 1: paid up, monthly
    m1 = add_member("Amina Njeri", "0712000001", "female", today - timedelta(days=25), "monthly", 2000,
                    email="amina@example.com", now=now)
    record_payment(m1.id, 2000, "mobile-money", today - timedelta(days=2), now=now)

    # Member 2: weekly, renewal due now
    add_member("Brian Otieno", "0712000002", "male", today - timedelta(days=7), "weekly", 1000, now=now)

    # Member 3: long overdue, payment incomplete
    add_member("Carol Wanjiku", "0712000003", "female", today - timedelta(days=60), "monthly", 2000,
               payment_status="incomplete", now=now)
