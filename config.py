"""
Runtime configuration, read once from the environment.
Uses Postgres when DATABASE_URL is set, SQLite otherwise.
"""
import os
import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _int_env(name, default):
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name, default):
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _bool_env(name, default):
    raw = (os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "no", "off"}


# ── Database ───────────────────────────────────────────────
DATABASE_URL = os.environ.get("DATABASE_URL")
DB_PATH = os.environ.get("DB_PATH", "stocks.db")

# ── Price update job ───────────────────────────────────────
UPDATE_INTERVAL_SECONDS = _int_env("UPDATE_INTERVAL_SECONDS", 5 * 60)
UPDATE_COMPANY_DELAY = _float_env("UPDATE_COMPANY_DELAY", 0.1)
ENABLE_PRICE_UPDATES = _bool_env("ENABLE_PRICE_UPDATES", True)

# ── Caches ─────────────────────────────────────────────────
QUERY_CACHE_TTL = _int_env("QUERY_CACHE_TTL", 5 * 60)
ANALYTICS_CACHE_TTL = _int_env("ANALYTICS_CACHE_TTL", 10 * 60)

# ── Web app ────────────────────────────────────────────────
APP_ENV = os.environ.get("APP_ENV", "production").strip().lower()
DEFAULT_USER_ID = os.environ.get("DEFAULT_USER_ID", "default_user")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
PORT = _int_env("PORT", 5000)
FLASK_DEBUG = _bool_env("FLASK_DEBUG", False)


def as_dict():
    """Current settings as a plain dict; create_app() layers overrides on top."""
    return {
        "DATABASE_URL": DATABASE_URL,
        "DB_PATH": DB_PATH,
        "UPDATE_INTERVAL_SECONDS": UPDATE_INTERVAL_SECONDS,
        "UPDATE_COMPANY_DELAY": UPDATE_COMPANY_DELAY,
        "ENABLE_PRICE_UPDATES": ENABLE_PRICE_UPDATES,
        "QUERY_CACHE_TTL": QUERY_CACHE_TTL,
        "ANALYTICS_CACHE_TTL": ANALYTICS_CACHE_TTL,
        "APP_ENV": APP_ENV,
        "DEFAULT_USER_ID": DEFAULT_USER_ID,
    }


def configure_logging(level=LOG_LEVEL):
    """Install a single stdout handler on the root logger. Call once at startup."""
    root = logging.getLogger()
    if root.handlers:
        root.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    # APScheduler logs every job run at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
