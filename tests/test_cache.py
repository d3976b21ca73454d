from cache import QueryCache, make_key


def test_make_key_includes_arguments():
    assert make_key("getWatchlist", ["u1"]) == 'getWatchlist_["u1"]'
    assert make_key("getMarketSummary", []) == "getMarketSummary_[]"
    assert make_key("getTopGainers", [5]) != make_key("getTopGainers", [10])


def test_entry_expires_after_ttl(timer):
    cache = QueryCache(300, timer=timer)
    cache.set("k", {"v": 1})

    timer.advance(299)
    assert cache.get("k") == {"v": 1}

    timer.advance(2)
    assert cache.get("k") is None


def test_cached_computes_once_within_ttl(timer):
    cache = QueryCache(300, timer=timer)
    calls = []

    def compute():
        calls.append(1)
        return len(calls)

    assert cache.cached("op", [1], compute) == 1
    assert cache.cached("op", [1], compute) == 1
    assert cache.cached("op", [2], compute) == 2

    timer.advance(301)
    assert cache.cached("op", [1], compute) == 3


def test_delete_and_clear(timer):
    cache = QueryCache(300, timer=timer)
    cache.set("a", 1)
    cache.set("b", 2)

    cache.delete("a")
    cache.delete("missing")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.clear()
    assert cache.stats()["size"] == 0


def test_stats(timer):
    cache = QueryCache(600, timer=timer)
    cache.set("a", 1)
    stats = cache.stats()
    assert stats == {"size": 1, "timeout": 600, "keys": ["a"]}
