"""
Read-side queries for the dashboard and admin pages.

Each read is answered from the query cache when a fresh entry exists,
otherwise from SQL aggregates over companies + current_stock_data +
stock_prices, enriched with formatted fields. Company writes clear the cache
and any dependent caches (the market report).
"""
import logging
from datetime import date, datetime, timedelta

import analytics
from errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_SYMBOL_LENGTH = 10
MIN_SEARCH_LENGTH = 2

# period token -> (days back, max rows)
HISTORY_PERIODS = {
    "1D": (1, 24),
    "1W": (7, 7),
    "1M": (30, 30),
    "3M": (90, 90),
    "6M": (180, 180),
    "1Y": (365, 365),
    "5Y": (1825, 1825),
}
DEFAULT_PERIOD = "1M"
DETAIL_HISTORY_ROWS = 30

SNAPSHOT_JOIN = "FROM companies c LEFT JOIN current_stock_data csd ON c.id = csd.company_id"

MOVER_COLUMNS = """
    c.symbol,
    c.name,
    c.sector,
    COALESCE(csd.current_price, 0) AS price,
    COALESCE(csd.change_amount, 0) AS change_amount,
    COALESCE(csd.change_percentage, 0) AS change,
    COALESCE(csd.volume, 0) AS volume,
    COALESCE(csd.high_52w, 0) AS high_52w,
    COALESCE(csd.low_52w, 0) AS low_52w
"""


# ── Formatting ─────────────────────────────────────────────

def format_volume(volume):
    """Indian-style suffixes: 1.5Cr, 2.3L, 4.0K."""
    if not volume:
        return "0"
    if volume >= 10_000_000:
        return f"{volume / 10_000_000:.1f}Cr"
    if volume >= 100_000:
        return f"{volume / 100_000:.1f}L"
    if volume >= 1_000:
        return f"{volume / 1_000:.1f}K"
    return str(int(volume))


def format_market_cap(market_cap):
    if not market_cap:
        return "₹0"
    if market_cap >= 1_000_000_000_000:
        return f"₹{market_cap / 1_000_000_000_000:.1f}T"
    if market_cap >= 1_000_000_000:
        return f"₹{market_cap / 1_000_000_000:.1f}B"
    if market_cap >= 1_000_000:
        return f"₹{market_cap / 1_000_000:.1f}M"
    return f"₹{market_cap:g}"


def _round(value, digits=2):
    return round(value, digits) if value is not None else None


def normalize_symbol(symbol):
    symbol = (symbol or "").strip()
    if not symbol or len(symbol) > MAX_SYMBOL_LENGTH:
        raise ValidationError(
            f"Invalid symbol parameter: symbol is required and must be at most {MAX_SYMBOL_LENGTH} characters"
        )
    return symbol.upper()


def escape_like(term):
    """Make % and _ in user input match literally in a LIKE ... ESCAPE '\\' pattern."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def normalize_period(period):
    period = (period or DEFAULT_PERIOD).strip().upper()
    if period not in HISTORY_PERIODS:
        raise ValidationError(f"Invalid period parameter: must be one of {', '.join(HISTORY_PERIODS)}")
    return period


class StockService:

    def __init__(self, store, cache, dependent_caches=()):
        self.store = store
        self.cache = cache
        # caches holding reports derived from company rows, cleared with ours
        self.dependent_caches = list(dependent_caches)

    # ── Lookups ────────────────────────────────────────────

    def _company_id(self, symbol):
        row = self.store.query_one("SELECT id FROM companies WHERE UPPER(symbol) = UPPER(?)", (symbol,))
        if row is None:
            raise NotFoundError(f"Company with symbol {symbol} not found")
        return row["id"]

    def get_all_companies(self):
        return self.store.query(f"""
            SELECT
                c.id,
                c.symbol,
                c.name,
                c.sector,
                c.market_cap,
                COALESCE(csd.current_price, 0) AS price,
                COALESCE(csd.change_percentage, 0) AS change,
                COALESCE(csd.volume, 0) AS volume,
                csd.last_updated
            {SNAPSHOT_JOIN}
            ORDER BY c.name
        """)

    def _company_row(self, where, params):
        return self.store.query_one(f"""
            SELECT
                c.id,
                c.symbol,
                c.name,
                c.sector,
                c.market_cap,
                c.description,
                COALESCE(csd.current_price, 0) AS current_price,
                COALESCE(csd.change_percentage, 0) AS change_percentage,
                COALESCE(csd.volume, 0) AS volume
            {SNAPSHOT_JOIN}
            WHERE {where}
        """, params)

    def get_company_details(self, symbol):
        symbol = normalize_symbol(symbol)
        row = self._company_row("UPPER(c.symbol) = UPPER(?)", (symbol,))
        if row is None:
            raise NotFoundError(f"Company with symbol {symbol} not found")
        return row

    def get_company_by_id(self, company_id):
        row = self._company_row("c.id = ?", (company_id,))
        if row is None:
            raise NotFoundError(f"Company with ID {company_id} not found")
        return row

    def get_stock_data(self, symbol):
        symbol = normalize_symbol(symbol)
        return self.cache.cached("getStockData", [symbol], lambda: self._load_stock_data(symbol))

    def _load_stock_data(self, symbol):
        stock = self.store.query_one(f"""
            SELECT
                c.id,
                c.symbol,
                c.name,
                c.sector,
                c.market_cap,
                c.description,
                COALESCE(csd.current_price, 0) AS current_price,
                COALESCE(csd.change_amount, 0) AS change_amount,
                COALESCE(csd.change_percentage, 0) AS change,
                COALESCE(csd.high_52w, 0) AS high_52w,
                COALESCE(csd.low_52w, 0) AS low_52w,
                COALESCE(csd.volume, 0) AS volume,
                csd.last_updated
            {SNAPSHOT_JOIN}
            WHERE UPPER(c.symbol) = UPPER(?)
        """, (symbol,))
        if stock is None:
            raise NotFoundError(f"Company with symbol {symbol} not found")

        historical = self.store.query("""
            SELECT
                date,
                open_price AS open,
                high_price AS high,
                low_price AS low,
                close_price AS close,
                volume
            FROM stock_prices
            WHERE company_id = ?
            ORDER BY date DESC
            LIMIT ?
        """, (stock["id"], DETAIL_HISTORY_ROWS))
        historical.reverse()

        stock.update({
            "historical": historical,
            "market_cap_formatted": format_market_cap(stock["market_cap"]),
            "volume_formatted": format_volume(stock["volume"]),
            "price_change_24h": stock["change_amount"],
            "percent_change_24h": stock["change"],
            "last_updated": stock["last_updated"] or datetime.now().isoformat(),
        })
        return stock

    def get_historical_data(self, symbol, period=DEFAULT_PERIOD):
        symbol = normalize_symbol(symbol)
        period = normalize_period(period)
        return self.cache.cached(
            "getHistoricalData", [symbol, period],
            lambda: self._load_historical_data(symbol, period),
        )

    def _load_historical_data(self, symbol, period):
        company_id = self._company_id(symbol)
        days, limit = HISTORY_PERIODS[period]
        since = (date.today() - timedelta(days=days)).isoformat()

        # prev_close is taken over the full history so the first row of a short
        # window still gets its daily change.
        rows = self.store.query("""
            SELECT date, open, high, low, close, volume, prev_close FROM (
                SELECT
                    date,
                    open_price AS open,
                    high_price AS high,
                    low_price AS low,
                    close_price AS close,
                    volume,
                    LAG(close_price) OVER (ORDER BY date) AS prev_close
                FROM stock_prices
                WHERE company_id = ?
            ) bars
            WHERE date >= ?
            ORDER BY date DESC
            LIMIT ?
        """, (company_id, since, limit))
        rows.reverse()

        for row in rows:
            prev_close = row.pop("prev_close")
            if prev_close:
                change = row["close"] - prev_close
                row["daily_change"] = _round(change, 4)
                row["daily_change_percent"] = _round(change / prev_close * 100, 4)
            else:
                row["daily_change"] = None
                row["daily_change_percent"] = None
        return rows

    # ── Market-wide views ──────────────────────────────────

    def get_market_summary(self):
        return self.cache.cached("getMarketSummary", [], self._load_market_summary)

    def _load_market_summary(self):
        row = self.store.query_one(f"""
            SELECT
                COUNT(*) AS total_companies,
                AVG(COALESCE(csd.change_percentage, 0)) AS avg_change,
                SUM(CASE WHEN COALESCE(csd.change_percentage, 0) > 0 THEN 1 ELSE 0 END) AS gainers,
                SUM(CASE WHEN COALESCE(csd.change_percentage, 0) < 0 THEN 1 ELSE 0 END) AS losers,
                SUM(CASE WHEN COALESCE(csd.change_percentage, 0) = 0 THEN 1 ELSE 0 END) AS unchanged,
                MAX(COALESCE(csd.change_percentage, 0)) AS max_gain,
                MIN(COALESCE(csd.change_percentage, 0)) AS max_loss,
                SUM(COALESCE(csd.volume, 0)) AS total_volume,
                AVG(COALESCE(csd.current_price, 0)) AS avg_price
            {SNAPSHOT_JOIN}
        """)
        gainers = int(row["gainers"] or 0)
        losers = int(row["losers"] or 0)
        total_volume = int(row["total_volume"] or 0)
        return {
            "total_companies": int(row["total_companies"] or 0),
            "avg_change": _round(row["avg_change"] or 0),
            "gainers": gainers,
            "losers": losers,
            "unchanged": int(row["unchanged"] or 0),
            "max_gain": row["max_gain"] or 0,
            "max_loss": row["max_loss"] or 0,
            "total_volume": total_volume,
            "total_volume_formatted": format_volume(total_volume),
            "avg_price": _round(row["avg_price"] or 0),
            "market_trend": "bullish" if gainers > losers else "bearish",
            "last_updated": datetime.now().isoformat(),
        }

    def _movers(self, order, limit):
        return self.store.query(f"""
            SELECT {MOVER_COLUMNS}
            {SNAPSHOT_JOIN}
            WHERE COALESCE(csd.current_price, 0) > 0
            ORDER BY COALESCE(csd.change_percentage, 0) {order}, c.symbol
            LIMIT ?
        """, (limit,))

    def get_top_gainers(self, limit=5):
        return self.cache.cached("getTopGainers", [limit], lambda: self._movers("DESC", limit))

    def get_top_losers(self, limit=5):
        return self.cache.cached("getTopLosers", [limit], lambda: self._movers("ASC", limit))

    def search_companies(self, term, limit=10):
        term = (term or "").strip()
        if len(term) < MIN_SEARCH_LENGTH:
            raise ValidationError(f"Search term must be at least {MIN_SEARCH_LENGTH} characters long")
        return self.cache.cached("searchCompanies", [term, limit], lambda: self._search(term, limit))

    def _search(self, term, limit):
        literal = escape_like(term)
        contains = f"%{literal}%"
        prefix = f"{literal}%"
        return self.store.query(f"""
            SELECT
                c.symbol,
                c.name,
                c.sector,
                COALESCE(csd.current_price, 0) AS price,
                COALESCE(csd.change_percentage, 0) AS change,
                COALESCE(csd.volume, 0) AS volume
            {SNAPSHOT_JOIN}
            WHERE UPPER(c.name) LIKE UPPER(?) ESCAPE '\\'
               OR UPPER(c.symbol) LIKE UPPER(?) ESCAPE '\\'
            ORDER BY
                CASE
                    WHEN UPPER(c.symbol) = UPPER(?) THEN 1
                    WHEN UPPER(c.symbol) LIKE UPPER(?) ESCAPE '\\' THEN 2
                    WHEN UPPER(c.name) LIKE UPPER(?) ESCAPE '\\' THEN 3
                    ELSE 4
                END,
                c.name
            LIMIT ?
        """, (contains, contains, term, prefix, prefix, limit))

    def get_sector_performance(self):
        return self.cache.cached("getSectorPerformance", [], self._load_sector_performance)

    def _load_sector_performance(self):
        rows = self.store.query(f"""
            SELECT
                c.sector AS sector,
                COUNT(*) AS company_count,
                AVG(COALESCE(csd.change_percentage, 0)) AS avg_change,
                SUM(COALESCE(csd.volume, 0)) AS total_volume,
                AVG(COALESCE(csd.current_price, 0)) AS avg_price,
                MAX(COALESCE(csd.change_percentage, 0)) AS best_performer,
                MIN(COALESCE(csd.change_percentage, 0)) AS worst_performer,
                SUM(CASE WHEN COALESCE(csd.change_percentage, 0) > 0 THEN 1 ELSE 0 END) AS gainers_count,
                SUM(CASE WHEN COALESCE(csd.change_percentage, 0) < 0 THEN 1 ELSE 0 END) AS losers_count
            {SNAPSHOT_JOIN}
            WHERE c.sector IS NOT NULL AND c.sector != ''
            GROUP BY c.sector
        """)

        result = []
        for row in rows:
            avg_change = _round(row["avg_change"] or 0)
            count = int(row["company_count"])
            gainers = int(row["gainers_count"] or 0)
            total_volume = int(row["total_volume"] or 0)
            result.append({
                **row,
                "company_count": count,
                "avg_change": avg_change,
                "avg_price": _round(row["avg_price"] or 0),
                "total_volume": total_volume,
                "total_volume_formatted": format_volume(total_volume),
                "gainers_count": gainers,
                "losers_count": int(row["losers_count"] or 0),
                "performance_rating": analytics.rate_sector_performance(avg_change),
                "gainers_ratio": round(gainers / count * 100, 1) if count else 0.0,
            })
        result.sort(key=lambda s: s["avg_change"], reverse=True)
        return result

    # ── Derived analytics ──────────────────────────────────

    def get_stock_analytics(self, symbol):
        stock = self.get_stock_data(symbol)
        history = self.get_historical_data(symbol, "1Y")
        if len(history) < 2:
            raise ValidationError(f"Insufficient data for analytics on {stock['symbol']}")

        prices = [bar["close"] for bar in history]
        volumes = [bar["volume"] or 0 for bar in history]
        recent = prices[-30:]

        return {
            "symbol": stock["symbol"],
            "current_price": stock["current_price"],
            "sma_20": _round(analytics.moving_average(prices[-20:])),
            "sma_50": _round(analytics.moving_average(prices[-50:])),
            "sma_200": _round(analytics.moving_average(prices[-200:])),
            "volatility": _round(analytics.volatility(recent), 4),
            "avg_volume": _round(analytics.calculate_average(volumes[-30:])),
            "volume_trend": (
                "increasing"
                if volumes[-1] > analytics.calculate_average(volumes[-10:])
                else "decreasing"
            ),
            "trend_short": analytics.trend(prices[-5:]),
            "trend_medium": analytics.trend(prices[-20:]),
            "trend_long": analytics.trend(prices[-50:]),
            "support_level": min(recent),
            "resistance_level": max(recent),
            "last_updated": datetime.now().isoformat(),
        }

    def get_market_momentum(self):
        return self.cache.cached("getMarketMomentum", [], self._load_market_momentum)

    def _load_market_momentum(self):
        rows = self.store.query("""
            SELECT
                c.symbol,
                c.name,
                csd.change_percentage,
                csd.volume,
                csd.current_price
            FROM companies c
            JOIN current_stock_data csd ON c.id = csd.company_id
            WHERE csd.change_percentage IS NOT NULL
            ORDER BY ABS(csd.change_percentage) DESC, csd.volume DESC
            LIMIT 20
        """)
        return {
            "high_momentum_stocks": rows,
            "market_sentiment": analytics.market_sentiment(r["change_percentage"] for r in rows),
            "last_updated": datetime.now().isoformat(),
        }

    # ── Company writes ─────────────────────────────────────

    def _check_symbol_free(self, symbol, exclude_id=None):
        if exclude_id is None:
            taken = self.store.query("SELECT id FROM companies WHERE UPPER(symbol) = UPPER(?)", (symbol,))
        else:
            taken = self.store.query(
                "SELECT id FROM companies WHERE UPPER(symbol) = UPPER(?) AND id != ?",
                (symbol, exclude_id),
            )
        if taken:
            raise ConflictError(f"Company with symbol {symbol} already exists")

    def add_company(self, data):
        symbol = normalize_symbol(data.get("symbol"))
        self._check_symbol_free(symbol)
        result = self.store.run(
            """INSERT INTO companies (symbol, name, sector, market_cap, description)
               VALUES (?, ?, ?, ?, ?)""",
            (symbol, data.get("name"), data.get("sector"),
             data.get("market_cap") or 0, data.get("description")),
        )
        self.clear_cache()
        logger.info(f"Added company {symbol} (id={result.inserted_id})")
        return {**data, "id": result.inserted_id, "symbol": symbol}

    def update_company(self, company_id, data):
        if not self.store.query("SELECT id FROM companies WHERE id = ?", (company_id,)):
            raise NotFoundError(f"Company with ID {company_id} not found")
        symbol = normalize_symbol(data.get("symbol"))
        self._check_symbol_free(symbol, exclude_id=company_id)
        self.store.run(
            """UPDATE companies
               SET symbol = ?, name = ?, sector = ?, market_cap = ?, description = ?
               WHERE id = ?""",
            (symbol, data.get("name"), data.get("sector"),
             data.get("market_cap") or 0, data.get("description"), company_id),
        )
        self.clear_cache()
        logger.info(f"Updated company {symbol} (id={company_id})")
        return {**data, "id": company_id, "symbol": symbol}

    def delete_company(self, company_id):
        existing = self.store.query_one("SELECT id, symbol FROM companies WHERE id = ?", (company_id,))
        if existing is None:
            raise NotFoundError(f"Company with ID {company_id} not found")

        # Explicit deletes so SQLite files created without foreign keys behave the same.
        self.store.run("DELETE FROM current_stock_data WHERE company_id = ?", (company_id,))
        self.store.run("DELETE FROM stock_prices WHERE company_id = ?", (company_id,))
        self.store.run("DELETE FROM watchlist WHERE company_id = ?", (company_id,))
        self.store.run("DELETE FROM companies WHERE id = ?", (company_id,))

        self.clear_cache()
        logger.info(f"Deleted company {existing['symbol']} (id={company_id})")
        return {"success": True, "deleted_company": existing}

    # ── Cache management ───────────────────────────────────

    def clear_cache(self):
        self.cache.clear()
        for cache in self.dependent_caches:
            cache.clear()

    def get_cache_stats(self):
        return self.cache.stats()
