"""
errors.py
Exceptions surfaced to the UI (validation, business rules, storage).
"""

from __future__ import annotations


class GymError(Exception):
    """Base class; pages catch this and show the message."""


class ValidationError(GymError):
    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class NotFoundError(GymError):
    pass


class CheckInBlocked(GymError):
    """Check-in refused by the status/payment gate."""

    def __init__(self, member_name: str, reason: str):
        self.member_name = member_name
        self.reason = reason
        super().__init__(f"Cannot check in {member_name}: {reason}")


class StorageError(GymError):
    pass
