"""Pytest configuration and fixtures."""

import tempfile
from datetime import date, datetime
from pathlib import Path

import pytest

import config
import db
import store
from models import Gender, Member, MemberStatus, PaymentStatus, StatusModel, SubscriptionType


@pytest.fixture(autouse=True)
def dues_model(monkeypatch):
    """Pin the default status model so tests don't depend on the environment."""
    monkeypatch.setattr(config, "STATUS_MODEL", StatusModel.DUES)


@pytest.fixture
def temp_db_path():
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def gym_db(temp_db_path, monkeypatch):
    """Point the app at a fresh, initialized database."""
    monkeypatch.setattr(db, "DB_FILE", temp_db_path)
    db.init_db()
    return temp_db_path


@pytest.fixture
def registered_at():
    return datetime(2024, 1, 1, 9, 0)


@pytest.fixture
def monthly_member(gym_db, registered_at):
    """Member registered on 2024-01-01 with a monthly subscription."""
    return store.add_member(
        "Amina Njeri", "0712000001", "female", date(2024, 1, 1), "monthly", 2000,
        email="amina@example.com", now=registered_at,
    )


@pytest.fixture
def weekly_member(gym_db, registered_at):
    return store.add_member(
        "Brian Otieno", "0712000002", "male", date(2024, 1, 1), "weekly", 1000, now=registered_at,
    )


@pytest.fixture
def make_member():
    """Build an in-memory member for status engine tests."""

    def _make(renewal_date, status=MemberStatus.ACTIVE, payment_status=PaymentStatus.PAID):
        return Member(
            id=1,
            full_name="Test Member",
            phone="0700000000",
            email=None,
            gender=Gender.OTHER,
            start_date=date(2024, 1, 1),
            subscription_type=SubscriptionType.MONTHLY,
            subscription_fee=2000.0,
            renewal_date=renewal_date,
            status=status,
            payment_status=payment_status,
        )

    return _make
