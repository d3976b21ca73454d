"""Per-user watchlist. Shares the query cache with StockService."""
import logging
from datetime import datetime

from cache import make_key
from errors import NotFoundError
from stock_service import normalize_symbol

logger = logging.getLogger(__name__)

WATCHLIST_METHOD = "getWatchlist"


class WatchlistService:

    def __init__(self, store, cache):
        self.store = store
        self.cache = cache

    def _company_id(self, symbol):
        row = self.store.query_one("SELECT id FROM companies WHERE UPPER(symbol) = UPPER(?)", (symbol,))
        if row is None:
            raise NotFoundError(f"Company with symbol {symbol} not found")
        return row["id"]

    def _forget(self, user_id):
        self.cache.delete(make_key(WATCHLIST_METHOD, [user_id]))

    def list(self, user_id):
        return self.cache.cached(WATCHLIST_METHOD, [user_id], lambda: self.store.query("""
            SELECT
                w.id AS watchlist_id,
                c.id,
                c.symbol,
                c.name,
                c.sector,
                COALESCE(csd.current_price, 0) AS price,
                COALESCE(csd.change_amount, 0) AS change_amount,
                COALESCE(csd.change_percentage, 0) AS change,
                COALESCE(csd.volume, 0) AS volume,
                w.added_at AS added_date
            FROM watchlist w
            JOIN companies c ON w.company_id = c.id
            LEFT JOIN current_stock_data csd ON c.id = csd.company_id
            WHERE w.user_id = ?
            ORDER BY w.added_at DESC, w.id DESC
        """, (user_id,)))

    def add(self, symbol, user_id):
        """Adding a company that is already watched is reported, not raised."""
        symbol = normalize_symbol(symbol)
        company_id = self._company_id(symbol)

        existing = self.store.query(
            "SELECT id FROM watchlist WHERE company_id = ? AND user_id = ?",
            (company_id, user_id),
        )
        if existing:
            return {
                "success": True,
                "already_exists": True,
                "message": "Company already in watchlist",
                "company_id": company_id,
                "user_id": user_id,
            }

        result = self.store.run(
            "INSERT INTO watchlist (company_id, user_id, added_at) VALUES (?, ?, ?)",
            (company_id, user_id, datetime.now().isoformat()),
        )
        self._forget(user_id)
        logger.info(f"{user_id} added {symbol} to watchlist")
        return {
            "success": True,
            "already_exists": False,
            "message": "Added to watchlist successfully",
            "id": result.inserted_id,
            "company_id": company_id,
            "user_id": user_id,
        }

    def remove(self, symbol, user_id):
        symbol = normalize_symbol(symbol)
        company_id = self._company_id(symbol)

        result = self.store.run(
            "DELETE FROM watchlist WHERE company_id = ? AND user_id = ?",
            (company_id, user_id),
        )
        if result.rows_affected == 0:
            raise NotFoundError("Watchlist item not found or access denied")

        self._forget(user_id)
        logger.info(f"{user_id} removed {symbol} from watchlist")
        return {"success": True, "message": "Removed from watchlist successfully"}
