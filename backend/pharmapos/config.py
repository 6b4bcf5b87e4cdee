# backend/pharmapos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pharmapos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pharmapos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Terminal this process serves when a request does not name one
    TERMINAL_CODE = os.environ.get("TERMINAL_CODE", "MAIN")

    # Refund ceilings (currency units)
    CASHIER_INVOICE_REFUND_LIMIT = os.environ.get("CASHIER_INVOICE_REFUND_LIMIT", "500")
    PHARMACIST_INVOICE_REFUND_LIMIT = os.environ.get("PHARMACIST_INVOICE_REFUND_LIMIT", "1000")
    PHARMACIST_DAILY_REFUND_LIMIT = os.environ.get("PHARMACIST_DAILY_REFUND_LIMIT", "2000")

    DEFAULT_MAX_DISCOUNT_PERCENT = os.environ.get("DEFAULT_MAX_DISCOUNT_PERCENT", "10")

    CONCURRENCY_RETRY_ATTEMPTS = int(os.environ.get("CONCURRENCY_RETRY_ATTEMPTS", "3"))
