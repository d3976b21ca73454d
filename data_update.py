"""
Simulated market movement.

Every cycle walks all companies, nudges the last stored close with a random
walk plus a slow shared drift, rewrites the company's current snapshot and,
near the top of each hour during market hours, extends today's daily bar.
This is a best-effort batch job: one company failing never stops the cycle.
"""
import math
import time
import random
import logging
import threading
from datetime import datetime, time as dtime, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

VOLATILITY = 0.02           # 2% max random move per cycle
TREND_AMPLITUDE = 0.001     # shared daily drift
MIN_PRICE = 0.01
MARKET_OPEN = dtime(9, 15)
MARKET_CLOSE = dtime(15, 30)
HISTORY_WINDOW_MINUTES = 5  # bars are only touched in the first minutes of each hour

UPSERT_SNAPSHOT = """
    INSERT INTO current_stock_data
        (company_id, current_price, change_amount, change_percentage,
         high_52w, low_52w, volume, last_updated)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (company_id) DO UPDATE SET
        current_price = excluded.current_price,
        change_amount = excluded.change_amount,
        change_percentage = excluded.change_percentage,
        high_52w = excluded.high_52w,
        low_52w = excluded.low_52w,
        volume = excluded.volume,
        last_updated = excluded.last_updated
"""


def market_trend(now):
    """Slow sinusoid of wall-clock time, one full period every 2*pi days."""
    return math.sin(now.timestamp() * 1000 / (1000 * 60 * 60 * 24)) * TREND_AMPLITUDE


def in_history_window(now):
    """True during market hours and within the first few minutes of the hour."""
    return MARKET_OPEN <= now.time() <= MARKET_CLOSE and now.minute < HISTORY_WINDOW_MINUTES


class DataUpdateService:

    def __init__(self, store, interval=300, company_delay=0.1, rng=None,
                 clock=datetime.now, sleep=time.sleep):
        self.store = store
        self.interval = interval
        self.company_delay = company_delay
        self.rng = rng or random.Random()
        self.clock = clock
        self.sleep = sleep

        self.is_updating = False
        self.last_update_time = None
        self._flag_lock = threading.Lock()
        self._scheduler = None

    # ── One cycle ──────────────────────────────────────────

    def run_update_cycle(self):
        """
        Update every company once. Returns counts of updated/skipped/failed
        companies, or None if another cycle was already running (the request
        is dropped, not queued) or the cycle aborted.
        """
        with self._flag_lock:
            if self.is_updating:
                logger.info("Update already in progress, skipping")
                return None
            self.is_updating = True

        try:
            logger.info("Starting stock price update")
            now = self.clock()
            drift = market_trend(now)
            companies = self.store.query("SELECT id, symbol FROM companies ORDER BY id")

            counts = {"updated": 0, "skipped": 0, "failed": 0}
            for i, company in enumerate(companies):
                outcome = self.update_single_stock(company["id"], company["symbol"], drift, now)
                counts[outcome] += 1
                if self.company_delay and i < len(companies) - 1:
                    self.sleep(self.company_delay)

            self.last_update_time = self.clock()
            logger.info(
                f"Stock prices updated at {self.last_update_time.isoformat()}: "
                f"{counts['updated']} updated, {counts['skipped']} skipped, {counts['failed']} failed"
            )
            return counts
        except Exception as e:
            logger.error(f"Error updating stock prices: {e}")
            return None
        finally:
            self.store.close()
            self.is_updating = False

    def update_single_stock(self, company_id, symbol, drift, now):
        try:
            latest = self.store.query_one(
                """SELECT close_price, volume FROM stock_prices
                   WHERE company_id = ? ORDER BY date DESC LIMIT 1""",
                (company_id,),
            )
            if latest is None:
                logger.debug(f"No historical data found for {symbol}")
                return "skipped"

            last_price = latest["close_price"]
            last_volume = latest["volume"] or 0

            new_price = max(MIN_PRICE, last_price + self.simulate_price_movement(last_price, drift))
            change_amount = new_price - last_price
            change_pct = (change_amount / last_price) * 100 if last_price else 0.0
            new_volume = math.floor(last_volume * self.rng.uniform(0.8, 1.2))

            high_52w, low_52w = self._range_52w(company_id, now, new_price)

            self.store.run(UPSERT_SNAPSHOT, (
                company_id,
                round(new_price, 2),
                round(change_amount, 2),
                round(change_pct, 2),
                round(high_52w, 2),
                round(low_52w, 2),
                new_volume,
                now.isoformat(),
            ))

            if in_history_window(now):
                self.add_historical_data_point(company_id, round(new_price, 2), new_volume, now.date())
            return "updated"
        except Exception as e:
            logger.error(f"Error updating stock {symbol}: {e}")
            return "failed"

    def simulate_price_movement(self, current_price, drift):
        random_factor = self.rng.uniform(-1, 1)
        return current_price * (VOLATILITY * random_factor + drift)

    def _range_52w(self, company_id, now, new_price):
        since = (now.date() - timedelta(days=365)).isoformat()
        row = self.store.query_one(
            """SELECT MAX(COALESCE(high_price, close_price)) AS high,
                      MIN(COALESCE(low_price, close_price)) AS low
               FROM stock_prices WHERE company_id = ? AND date >= ?""",
            (company_id, since),
        )
        high = row["high"] if row and row["high"] is not None else new_price
        low = row["low"] if row and row["low"] is not None else new_price
        return max(high, new_price), min(low, new_price)

    def add_historical_data_point(self, company_id, price, volume, today):
        """Extend today's bar in place, or open it. Earlier days are never touched."""
        today = today.isoformat()
        existing = self.store.query_one(
            "SELECT id, high_price, low_price FROM stock_prices WHERE company_id = ? AND date = ?",
            (company_id, today),
        )
        if existing:
            high = max(existing["high_price"] if existing["high_price"] is not None else price, price)
            low = min(existing["low_price"] if existing["low_price"] is not None else price, price)
            self.store.run(
                """UPDATE stock_prices
                   SET close_price = ?, high_price = ?, low_price = ?, volume = ?
                   WHERE id = ?""",
                (price, high, low, volume, existing["id"]),
            )
        else:
            self.store.run(
                """INSERT INTO stock_prices
                   (company_id, date, open_price, high_price, low_price, close_price, volume)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (company_id, today, price, price, price, price, volume),
            )

    # ── Scheduling ─────────────────────────────────────────

    def start_periodic_updates(self):
        """Run one cycle now, then every `interval` seconds until stopped."""
        if self._scheduler is not None:
            logger.warning("Periodic updates already running")
            return

        logger.info(f"Starting periodic stock price updates every {self.interval}s")
        self.run_update_cycle()

        self._scheduler = BackgroundScheduler(job_defaults={"coalesce": True, "max_instances": 1})
        self._scheduler.add_job(
            self.run_update_cycle,
            trigger=IntervalTrigger(seconds=self.interval),
            id="price_update",
            name="Simulated price update",
            replace_existing=True,
        )
        self._scheduler.start()

    def stop_periodic_updates(self):
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Stopped periodic stock price updates")

    def get_status(self):
        time_until_next = 0
        if self.last_update_time is not None:
            elapsed = (self.clock() - self.last_update_time).total_seconds()
            time_until_next = max(0, self.interval - elapsed)
        return {
            "is_updating": self.is_updating,
            "is_running": self._scheduler is not None,
            "last_update_time": self.last_update_time.isoformat() if self.last_update_time else None,
            "interval": self.interval,
            "time_until_next": time_until_next,
        }
