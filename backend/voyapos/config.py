# backend/voyapos/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/voyapos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///voyapos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Session tokens
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    # Invoice numbers look like MALLVOYA0001
    INVOICE_BRAND_TAG = os.environ.get("INVOICE_BRAND_TAG", "VOYA")

    # Inventory summary: 0 < qty < threshold counts as low stock
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))

    # External commerce platform (Shopify-compatible Admin REST API)
    COMMERCE_SHOP_DOMAIN = os.environ.get("COMMERCE_SHOP_DOMAIN", "")
    COMMERCE_ACCESS_TOKEN = os.environ.get("COMMERCE_ACCESS_TOKEN", "")
    COMMERCE_API_VERSION = os.environ.get("COMMERCE_API_VERSION", "2024-01")
    COMMERCE_TIMEOUT = float(os.environ.get("COMMERCE_TIMEOUT", "15"))
    COMMERCE_PAGE_DELAY = float(os.environ.get("COMMERCE_PAGE_DELAY", "0.5"))

    # Reconciliation
    INVENTORY_SYNC_BATCH_SIZE = int(os.environ.get("INVENTORY_SYNC_BATCH_SIZE", "50"))
    INVENTORY_SYNC_BATCH_DELAY = float(os.environ.get("INVENTORY_SYNC_BATCH_DELAY", "0.3"))
    SYNC_MIN_INTERVAL_SECONDS = int(os.environ.get("SYNC_MIN_INTERVAL_SECONDS", "3600"))
    SYNC_ON_LOGIN = _env_bool("SYNC_ON_LOGIN", True)
    # Interval for the in-process APScheduler job; 0 disables it
    SYNC_SCHEDULE_MINUTES = int(os.environ.get("SYNC_SCHEDULE_MINUTES", "0"))
