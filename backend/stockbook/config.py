# backend/stockbook/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockbook.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockbook.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Document numbering (long = PREFIX-YYYY-NNNN, short = PREFIX-NNNN, custom = template)
    SALE_NUMBER_PREFIX = os.environ.get("SALE_NUMBER_PREFIX", "INV")
    PURCHASE_NUMBER_PREFIX = os.environ.get("PURCHASE_NUMBER_PREFIX", "PUR")
    DOCUMENT_NUMBER_FORMAT = os.environ.get("DOCUMENT_NUMBER_FORMAT", "long")
    DOCUMENT_NUMBER_TEMPLATE = os.environ.get("DOCUMENT_NUMBER_TEMPLATE", "")

    # Optimistic stock updates: read-modify-write attempts before giving up
    STOCK_RETRY_ATTEMPTS = int(os.environ.get("STOCK_RETRY_ATTEMPTS", "3"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
