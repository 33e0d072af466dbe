"""
config.py
App configuration (read once from the environment) and logging setup.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from models import StatusModel

BASE_DIR = Path(__file__).resolve().parent

DB_FILE = Path(os.environ.get("GYM_DB_FILE", BASE_DIR / "gym.db"))
STATUS_MODEL = StatusModel(os.environ.get("GYM_STATUS_MODEL", StatusModel.DUES.value))

# Width of the due / expiring-soon window, in days
DUE_WINDOW_DAYS = 7
UPCOMING_RENEWALS_DAYS = 30

LOG_FILE = os.environ.get("GYM_LOG_FILE", str(BASE_DIR / "gym.log"))
LOG_LEVEL = os.environ.get("GYM_LOG_LEVEL", "INFO").upper()


def configure_logging() -> None:
    logging.basicConfig(
        filename=LOG_FILE,
        level=LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
