import pytest

from cache import QueryCache
from conftest import add_company, add_snapshot
from market_analysis import MarketAnalysisService


@pytest.fixture()
def market(store, timer):
    return MarketAnalysisService(store, QueryCache(600, timer=timer, name="analytics cache"))


def test_overview_with_no_decliners(store, market):
    add_snapshot(store, add_company(store, "AAA"), 100, 2.0)
    add_snapshot(store, add_company(store, "BBB"), 100, 0)

    overview = market.get_market_overview()

    assert overview["advancing"] == 1
    assert overview["declining"] == 0
    assert overview["advance_decline_ratio"] is None
    assert overview["market_breadth"] == 0.5
    assert overview["market_sentiment"] == "very_bullish"


def test_overview_on_empty_market(market):
    overview = market.get_market_overview()
    assert overview["total_stocks"] == 0
    assert overview["market_breadth"] == 0.0
    assert overview["market_sentiment"] == "neutral"


def test_sector_analysis(store, market):
    add_snapshot(store, add_company(store, "AAA", sector="Banking"), 100, 5.0, volume=300)
    add_snapshot(store, add_company(store, "BBB", sector="Banking"), 100, -1.0, volume=100)
    add_snapshot(store, add_company(store, "CCC", sector="Energy"), 100, -2.0, volume=600)

    sectors = market.get_sector_analysis()

    banking, energy = sectors
    assert banking["sector"] == "Banking"
    assert banking["avg_performance"] == 2.0
    assert banking["performance_rating"] == "good"
    assert banking["volatility"] == 6.0
    assert banking["volume_share"] == 40.0
    assert energy["volume_share"] == 60.0


def test_risk_assessment(store, market):
    for symbol, change in [("AAA", -6.0), ("BBB", -3.0), ("CCC", 1.0), ("DDD", 0.5)]:
        add_snapshot(store, add_company(store, symbol), 100, change)

    risk = market.get_risk_assessment()

    assert risk["risk_distribution"] == {"high": 1, "medium": 1, "low": 2}
    assert risk["overall_risk_level"] == "medium"
    assert risk["avg_price_movement"] == 2.625


def test_market_indicators(store, market):
    add_snapshot(store, add_company(store, "AAA"), 100, 2.0)
    add_snapshot(store, add_company(store, "BBB"), 300, -4.0)

    indicators = market.get_market_indicators()

    assert indicators["market_price_level"] == 200.0
    assert indicators["market_volatility"] == 3.0
    assert indicators["vix_equivalent"] == 15.0


def test_report_is_cached(store, market, timer):
    add_snapshot(store, add_company(store, "AAA"), 100, 2.0)
    report = market.generate_market_report()
    assert set(report) == {
        "timestamp", "market_overview", "sector_analysis",
        "top_performers", "market_indicators", "risk_assessment",
    }

    add_snapshot(store, add_company(store, "BBB"), 100, -2.0)
    assert market.generate_market_report() is report

    timer.advance(601)
    fresh = market.generate_market_report()
    assert fresh["market_overview"]["total_stocks"] == 2
    assert [s["symbol"] for s in fresh["top_performers"]["top_losers"]] == ["BBB"]
