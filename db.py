"""
db.py
SQLite helpers + initialization (creates DB/tables, inserts default settings, etc.)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime

import config
from errors import StorageError

logger = logging.getLogger(__name__)

DB_FILE = config.DB_FILE


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


@contextmanager
def get_conn():
    """
    One connection per unit of work: everything done inside the block is committed
    together, or rolled back if anything raises.
    """
    try:
        conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    except sqlite3.Error as exc:
        logger.exception("Could not open database %s", DB_FILE)
        raise StorageError("Could not open the database.") from exc
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        logger.exception("Database operation failed")
        raise StorageError("Database operation failed.") from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def executemany(sql: str, seq_of_params: list[tuple]) -> None:
    with get_conn() as conn:
        conn.executemany(sql, seq_of_params)


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def _create_tables() -> None:
    with get_conn() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS members (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                full_name TEXT NOT NULL,
                phone TEXT NOT NULL,
                email TEXT,
                gender TEXT NOT NULL CHECK(gender IN ('male','female','other')),
                start_date TEXT NOT NULL,
                subscription_type TEXT NOT NULL
                    CHECK(subscription_type IN ('daily','weekly','monthly','quarterly','annual')),
                subscription_fee REAL NOT NULL,
                renewal_date TEXT NOT NULL,
                status TEXT NOT NULL
                    CHECK(status IN ('active','due','overdue','expiring-soon','expired')),
                payment_status TEXT NOT NULL DEFAULT 'paid'
                    CHECK(payment_status IN ('paid','incomplete')),
                last_check_in TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_members_status ON members(status)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_members_renewal ON members(renewal_date)")

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS payments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                member_id INTEGER NOT NULL,
                amount REAL NOT NULL,
                payment_method TEXT NOT NULL
                    CHECK(payment_method IN ('cash','mobile-money','card','bank-transfer')),
                payment_date TEXT NOT NULL,
                renewal_period TEXT NOT NULL,
                subscription_type TEXT NOT NULL,
                notes TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY(member_id) REFERENCES members(id) ON DELETE CASCADE
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_payments_member ON payments(member_id)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_payments_date ON payments(payment_date)")

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS check_ins (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                member_id INTEGER NOT NULL,
                check_in_date TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(member_id) REFERENCES members(id) ON DELETE CASCADE
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_check_ins_member ON check_ins(member_id)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_check_ins_date ON check_ins(check_in_date)")

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS settings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                gym_name TEXT NOT NULL,
                logo TEXT,
                contact_phone TEXT,
                contact_email TEXT,
                address TEXT,
                default_daily_fee REAL NOT NULL,
                default_weekly_fee REAL NOT NULL,
                default_monthly_fee REAL NOT NULL,
                default_quarterly_fee REAL NOT NULL,
                default_annual_fee REAL NOT NULL,
                pin_code TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )


def init_db() -> None:
    """
    Initialize the database.
    - Create tables and indexes
    - Insert default settings if none exist
    """
    _create_tables()

    row = fetch_one("SELECT id FROM settings LIMIT 1")
    if not row:
        insert_default_settings()


def insert_default_settings() -> int:
    now = now_iso()
    settings_id = execute(
        """
        INSERT INTO settings(gym_name, default_daily_fee, default_weekly_fee, default_monthly_fee,
            default_quarterly_fee, default_annual_fee, created_at, updated_at)
        VALUES(?,?,?,?,?,?,?,?)
        """,
        ("My Gym", 200.0, 1000.0, 2000.0, 5500.0, 20000.0, now, now),
    )
    logger.info("Created default settings (id=%s)", settings_id)
    return settings_id
