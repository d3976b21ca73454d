import pytest

from conftest import add_company, add_snapshot
from errors import NotFoundError, ValidationError


def count_rows(store):
    return store.query_one("SELECT COUNT(*) AS n FROM watchlist")["n"]


def test_add_is_idempotent(store, watchlist):
    add_company(store, "ACME")

    first = watchlist.add("acme", "u1")
    second = watchlist.add("ACME", "u1")

    assert first["already_exists"] is False
    assert first["id"] is not None
    assert second["already_exists"] is True
    assert second["message"] == "Company already in watchlist"
    assert count_rows(store) == 1


def test_same_company_for_two_users(store, watchlist):
    add_company(store, "ACME")
    watchlist.add("ACME", "u1")
    watchlist.add("ACME", "u2")
    assert count_rows(store) == 2


def test_add_unknown_symbol(watchlist):
    with pytest.raises(NotFoundError):
        watchlist.add("NOPE", "u1")


def test_add_invalid_symbol(watchlist):
    with pytest.raises(ValidationError):
        watchlist.add("", "u1")


def test_remove_missing_entry_leaves_table_unchanged(store, watchlist):
    add_company(store, "ACME")
    add_company(store, "BETA")
    watchlist.add("BETA", "u1")

    with pytest.raises(NotFoundError, match="not found or access denied"):
        watchlist.remove("ACME", "u1")
    with pytest.raises(NotFoundError):
        watchlist.remove("BETA", "someone-else")
    assert count_rows(store) == 1


def test_list_reflects_mutations_immediately(store, watchlist):
    acme = add_company(store, "ACME", "Acme Corp")
    add_snapshot(store, acme, 120.5, 1.5)
    add_company(store, "BETA")

    assert watchlist.list("u1") == []

    watchlist.add("ACME", "u1")
    watchlist.add("BETA", "u1")
    items = watchlist.list("u1")
    assert [i["symbol"] for i in items] == ["BETA", "ACME"]
    assert items[1]["price"] == 120.5
    assert items[1]["change"] == 1.5
    assert items[0]["price"] == 0

    watchlist.remove("BETA", "u1")
    assert [i["symbol"] for i in watchlist.list("u1")] == ["ACME"]


def test_mutation_only_forgets_that_users_list(store, watchlist, query_cache):
    add_company(store, "ACME")
    watchlist.list("u1")
    watchlist.list("u2")

    watchlist.add("ACME", "u1")

    keys = query_cache.stats()["keys"]
    assert 'getWatchlist_["u2"]' in keys
    assert 'getWatchlist_["u1"]' not in keys
