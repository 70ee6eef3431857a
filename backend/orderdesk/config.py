# backend/orderdesk/config.py
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

    # SQLite DB stored in backend/instance/orderdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///orderdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Lock-wait budget for inventory rows. SQLite uses it as the busy timeout,
    # PostgreSQL as SET LOCAL lock_timeout.
    STOCK_LOCK_TIMEOUT_SECONDS = float(os.environ.get("STOCK_LOCK_TIMEOUT_SECONDS", "5"))
    REQUEST_TIMEOUT_SECONDS = float(os.environ.get("REQUEST_TIMEOUT_SECONDS", "5"))

    # SQLite busy timeout is added by create_app() once the final URI is known
    SQLALCHEMY_ENGINE_OPTIONS: dict = {}

    CONCURRENCY_RETRY_ATTEMPTS = int(os.environ.get("CONCURRENCY_RETRY_ATTEMPTS", "3"))
    CONCURRENCY_BACKOFF_BASE = float(os.environ.get("CONCURRENCY_BACKOFF_BASE", "0.1"))

    # False: OUT entries are written when the order completes.
    # True: OUT entries are written when stock is reserved at creation time.
    LEDGER_AT_RESERVATION = _env_bool("LEDGER_AT_RESERVATION", False)

    # Header carrying the authenticated user id (set by the auth gateway)
    USER_ID_HEADER = os.environ.get("USER_ID_HEADER", "X-User-Id")

    # Read-side caches are polled every second by the dashboard
    CACHE_DEFAULT_TTL_SECONDS = int(os.environ.get("CACHE_DEFAULT_TTL_SECONDS", "1"))

    # Mutation topic -> cache keys and key groups to evict.
    # "include" pulls in another topic's subscriptions.
    CACHE_INVALIDATION_TOPICS = {
        "dashboard": {
            "keys": ["dashboard_realtime", "dashboard_data"],
            "groups": [],
        },
        "product": {
            "keys": ["products_all", "inventories_all"],
            "groups": ["products"],
            "include": ["dashboard"],
        },
        "category": {
            "keys": ["categories_all"],
            "groups": [],
            "include": ["dashboard"],
        },
        "order": {
            "keys": ["orders_active", "sales_overview"],
            "groups": ["orders_search", "orders", "reports", "sales_analytics"],
            "include": ["dashboard"],
        },
        "inventory": {
            "keys": ["inventories_all"],
            "groups": ["inventory"],
            "include": ["dashboard"],
        },
        "rental": {
            "keys": [],
            "groups": ["rental"],
        },
        "toga": {
            "keys": ["toga_stats", "toga_departments"],
            "groups": ["toga"],
        },
    }
