"""
Pure numeric helpers behind the analytics endpoints. No database access here.
"""
import math
import statistics

TRADING_DAYS = 252
TREND_THRESHOLD = 0.02


def moving_average(values):
    """Arithmetic mean; 0 for an empty sequence."""
    values = list(values)
    if not values:
        return 0
    return sum(values) / len(values)


# Same arithmetic, used for volumes rather than prices.
calculate_average = moving_average


def daily_returns(prices):
    prices = list(prices)
    return [
        (prices[i] - prices[i - 1]) / prices[i - 1]
        for i in range(1, len(prices))
        if prices[i - 1]
    ]


def volatility(prices):
    """Annualized volatility: population stdev of simple returns x sqrt(252)."""
    prices = list(prices)
    if len(prices) < 2:
        return 0
    returns = daily_returns(prices)
    if not returns:
        return 0
    avg = moving_average(returns)
    variance = sum((r - avg) ** 2 for r in returns) / len(returns)
    return math.sqrt(variance) * math.sqrt(TRADING_DAYS)


def trend(prices):
    prices = list(prices)
    if len(prices) < 2 or not prices[0]:
        return "neutral"
    change = (prices[-1] - prices[0]) / prices[0]
    if change > TREND_THRESHOLD:
        return "bullish"
    if change < -TREND_THRESHOLD:
        return "bearish"
    return "neutral"


def market_sentiment(changes):
    changes = [c for c in changes if c is not None]
    bullish = sum(1 for c in changes if c > 0)
    bearish = sum(1 for c in changes if c < 0)
    if bullish + bearish == 0:
        return "neutral"
    ratio = bullish / (bullish + bearish)
    if ratio > 0.6:
        return "bullish"
    if ratio < 0.4:
        return "bearish"
    return "neutral"


def rate_sector_performance(avg_change):
    avg_change = avg_change or 0
    if avg_change > 3:
        return "excellent"
    if avg_change > 1:
        return "good"
    if avg_change > -1:
        return "neutral"
    if avg_change > -3:
        return "poor"
    return "very_poor"


# ── Market breadth ─────────────────────────────────────────
# A zero decliner count leaves the advance/decline ratio undefined. We report
# None (JSON null) for the ratio rather than a clamped or infinite number and
# classify the sentiment from the advancers alone.

def advance_decline_ratio(advancing, declining):
    if not declining:
        return None
    return advancing / declining


def market_breadth(advancing, declining, total):
    if not total:
        return 0.0
    return (advancing - declining) / total


def breadth_sentiment(advancing, declining):
    ratio = advance_decline_ratio(advancing, declining)
    if ratio is None:
        return "very_bullish" if advancing else "neutral"
    if ratio > 1.5:
        return "very_bullish"
    if ratio > 1.2:
        return "bullish"
    if ratio > 0.8:
        return "neutral"
    if ratio > 0.5:
        return "bearish"
    return "very_bearish"


def vix_equivalent(avg_abs_change):
    """Rough fear gauge: 5x the mean absolute move, clamped to 0..100."""
    if avg_abs_change is None:
        return 0
    return min(100, max(0, avg_abs_change * 5))


def assess_overall_risk(high, medium, low):
    total = (high or 0) + (medium or 0) + (low or 0)
    if not total:
        return "low"
    high_ratio = (high or 0) / total
    if high_ratio > 0.3:
        return "high"
    if high_ratio > 0.15:
        return "medium"
    return "low"


def dispersion(values):
    """Sample standard deviation; 0 below two values."""
    values = [v for v in values if v is not None]
    if len(values) < 2:
        return 0
    return statistics.stdev(values)
