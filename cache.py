"""
In-process result cache for the read services.

Entries are keyed by operation name + JSON-encoded arguments and expire
TTL seconds after insertion. There is no size bound: writes clear the
whole cache, watchlist mutations clear a single key.
"""
import json
import math
import time
import logging
import threading

from cachetools import TTLCache

logger = logging.getLogger(__name__)


def make_key(method, params=()):
    """make_key("getWatchlist", ["u1"]) -> 'getWatchlist_["u1"]'"""
    return f"{method}_{json.dumps(list(params), default=str)}"


class QueryCache:

    def __init__(self, ttl, timer=time.monotonic, name="cache"):
        self.ttl = ttl
        self.name = name
        self._data = TTLCache(maxsize=math.inf, ttl=ttl, timer=timer)
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            return self._data.get(key)

    def set(self, key, value):
        with self._lock:
            self._data[key] = value

    def delete(self, key):
        with self._lock:
            self._data.pop(key, None)

    def clear(self):
        with self._lock:
            self._data.clear()
        logger.info(f"{self.name} cleared")

    def cached(self, method, params, compute):
        """Return the fresh cached value for (method, params) or compute and store it."""
        key = make_key(method, params)
        value = self.get(key)
        if value is not None:
            return value
        value = compute()
        self.set(key, value)
        return value

    def stats(self):
        with self._lock:
            self._data.expire()
            return {
                "size": len(self._data),
                "timeout": self.ttl,
                "keys": list(self._data.keys()),
            }
