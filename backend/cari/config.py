# backend/cari/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cari.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cari.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Upcoming checks window: overdue visibility back, upcoming visibility forward
    UPCOMING_CHECKS_PAST_DAYS = int(os.environ.get("UPCOMING_CHECKS_PAST_DAYS", "30"))
    UPCOMING_CHECKS_FUTURE_DAYS = int(os.environ.get("UPCOMING_CHECKS_FUTURE_DAYS", "30"))

    # Prefix stamped on correction (reversal) descriptions
    CORRECTION_PREFIX = os.environ.get("CORRECTION_PREFIX", "Düzeltme:")

    # KDV applied to itemised totals for invoiced counterparties
    INVOICE_VAT_RATE = os.environ.get("INVOICE_VAT_RATE", "0.01")

    # Transactions may not be dated after today + grace
    FUTURE_DATE_GRACE_DAYS = int(os.environ.get("FUTURE_DATE_GRACE_DAYS", "0"))
