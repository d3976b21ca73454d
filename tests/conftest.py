import os
import sys
from datetime import date, datetime, timedelta

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from app import create_app
from cache import QueryCache
from setup_database import create_database
from stock_service import StockService
from store import Store
from watchlist import WatchlistService


class FakeTimer:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FixedRandom:
    """uniform(-1, 1) -> 0.5 (price move), anything else -> 1.0 (volume multiplier)."""

    def __init__(self, price_factor=0.5, volume_factor=1.0):
        self.price_factor = price_factor
        self.volume_factor = volume_factor

    def uniform(self, a, b):
        if (a, b) == (-1, 1):
            return self.price_factor
        return self.volume_factor


def add_company(store, symbol, name=None, sector="Technology", market_cap=1_000_000_000, description=None):
    result = store.run(
        "INSERT INTO companies (symbol, name, sector, market_cap, description) VALUES (?, ?, ?, ?, ?)",
        (symbol, name or f"{symbol} Ltd", sector, market_cap, description),
    )
    return result.inserted_id


def add_bars(store, company_id, closes, volume=1000, end=None):
    """One daily bar per close, oldest first, the last one dated `end` (default today)."""
    end = end or date.today()
    for i, close in enumerate(closes):
        day = end - timedelta(days=len(closes) - 1 - i)
        store.run(
            """INSERT INTO stock_prices
               (company_id, date, open_price, high_price, low_price, close_price, volume)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (company_id, day.isoformat(), close, close, close, close, volume),
        )


def add_snapshot(store, company_id, price, change_pct, volume=1000, change_amount=None):
    store.run(
        """INSERT INTO current_stock_data
           (company_id, current_price, change_amount, change_percentage, high_52w, low_52w, volume, last_updated)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (company_id, price, change_amount if change_amount is not None else round(price * change_pct / 100, 2),
         change_pct, price, price, volume, datetime.now().isoformat()),
    )


@pytest.fixture()
def store(tmp_path):
    store = Store(None, str(tmp_path / "test.db"))
    create_database(store)
    yield store
    store.close()


@pytest.fixture()
def timer():
    return FakeTimer()


@pytest.fixture()
def query_cache(timer):
    return QueryCache(300, timer=timer, name="test cache")


@pytest.fixture()
def stocks(store, query_cache):
    return StockService(store, query_cache)


@pytest.fixture()
def watchlist(store, query_cache):
    return WatchlistService(store, query_cache)


@pytest.fixture()
def app(tmp_path):
    app = create_app({
        "DB_PATH": str(tmp_path / "app.db"),
        "DATABASE_URL": None,
        "ENABLE_PRICE_UPDATES": False,
        "APP_ENV": "production",
    })
    app.config["TESTING"] = True
    yield app
    app.extensions["dashboard"].store.close()


@pytest.fixture()
def dash(app):
    return app.extensions["dashboard"]


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client
