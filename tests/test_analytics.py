import math

import pytest

import analytics


def test_moving_average():
    assert analytics.moving_average([]) == 0
    assert analytics.moving_average([10, 20, 30]) == 20


def test_trend_thresholds():
    assert analytics.trend([100, 103]) == "bullish"
    assert analytics.trend([100, 97]) == "bearish"
    assert analytics.trend([100, 100.5]) == "neutral"


def test_trend_needs_two_points_and_nonzero_start():
    assert analytics.trend([100]) == "neutral"
    assert analytics.trend([]) == "neutral"
    assert analytics.trend([0, 50]) == "neutral"


def test_volatility_of_flat_series_is_zero():
    assert analytics.volatility([100, 100, 100]) == 0
    assert analytics.volatility([100]) == 0


def test_volatility_annualizes_population_stdev():
    # returns +10% then -10%: mean 0, population stdev 0.1
    prices = [100, 110, 99]
    assert analytics.volatility(prices) == pytest.approx(0.1 * math.sqrt(252))


def test_market_sentiment():
    assert analytics.market_sentiment([1, 2, 3, -1]) == "bullish"
    assert analytics.market_sentiment([-1, -2, -3, 1]) == "bearish"
    assert analytics.market_sentiment([1, -1]) == "neutral"
    assert analytics.market_sentiment([0, 0, None]) == "neutral"
    assert analytics.market_sentiment([]) == "neutral"


@pytest.mark.parametrize("avg, rating", [
    (3.5, "excellent"),
    (2, "good"),
    (0, "neutral"),
    (-2, "poor"),
    (-5, "very_poor"),
])
def test_rate_sector_performance(avg, rating):
    assert analytics.rate_sector_performance(avg) == rating


def test_zero_decliners():
    assert analytics.advance_decline_ratio(5, 0) is None
    assert analytics.breadth_sentiment(5, 0) == "very_bullish"
    assert analytics.breadth_sentiment(0, 0) == "neutral"


def test_breadth_sentiment_thresholds():
    assert analytics.breadth_sentiment(16, 10) == "very_bullish"
    assert analytics.breadth_sentiment(13, 10) == "bullish"
    assert analytics.breadth_sentiment(10, 10) == "neutral"
    assert analytics.breadth_sentiment(6, 10) == "bearish"
    assert analytics.breadth_sentiment(2, 10) == "very_bearish"


def test_market_breadth():
    assert analytics.market_breadth(6, 2, 10) == pytest.approx(0.4)
    assert analytics.market_breadth(0, 0, 0) == 0.0


def test_vix_equivalent_is_clamped():
    assert analytics.vix_equivalent(None) == 0
    assert analytics.vix_equivalent(2) == 10
    assert analytics.vix_equivalent(50) == 100


def test_assess_overall_risk():
    assert analytics.assess_overall_risk(0, 0, 0) == "low"
    assert analytics.assess_overall_risk(4, 0, 6) == "high"
    assert analytics.assess_overall_risk(2, 0, 8) == "medium"
    assert analytics.assess_overall_risk(1, 1, 8) == "low"


def test_dispersion():
    assert analytics.dispersion([1]) == 0
    assert analytics.dispersion([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.138, rel=1e-3)
