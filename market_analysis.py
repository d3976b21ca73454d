"""
Whole-market report for the analytics page: breadth, sector ratings, top
movers, dispersion and a simple risk bucket count. Cached for ANALYTICS_CACHE_TTL.
"""
import logging
from datetime import datetime

import analytics
from stock_service import SNAPSHOT_JOIN

logger = logging.getLogger(__name__)

REPORT_KEY = "market_report"
TOP_N = 10


class MarketAnalysisService:

    def __init__(self, store, cache):
        self.store = store
        self.cache = cache

    def generate_market_report(self):
        report = self.cache.get(REPORT_KEY)
        if report is not None:
            return report

        report = {
            "timestamp": datetime.now().isoformat(),
            "market_overview": self.get_market_overview(),
            "sector_analysis": self.get_sector_analysis(),
            "top_performers": self.get_top_performers(),
            "market_indicators": self.get_market_indicators(),
            "risk_assessment": self.get_risk_assessment(),
        }
        self.cache.set(REPORT_KEY, report)
        logger.info("Market report generated")
        return report

    def get_market_overview(self):
        row = self.store.query_one(f"""
            SELECT
                COUNT(*) AS total_stocks,
                AVG(COALESCE(csd.change_percentage, 0)) AS avg_change,
                SUM(CASE WHEN COALESCE(csd.change_percentage, 0) > 0 THEN 1 ELSE 0 END) AS advancing,
                SUM(CASE WHEN COALESCE(csd.change_percentage, 0) < 0 THEN 1 ELSE 0 END) AS declining,
                SUM(CASE WHEN COALESCE(csd.change_percentage, 0) = 0 THEN 1 ELSE 0 END) AS unchanged,
                MAX(COALESCE(csd.change_percentage, 0)) AS biggest_gainer,
                MIN(COALESCE(csd.change_percentage, 0)) AS biggest_loser,
                SUM(COALESCE(csd.volume, 0)) AS total_volume
            {SNAPSHOT_JOIN}
        """)
        total = int(row["total_stocks"] or 0)
        advancing = int(row["advancing"] or 0)
        declining = int(row["declining"] or 0)
        ratio = analytics.advance_decline_ratio(advancing, declining)
        return {
            "total_stocks": total,
            "avg_change": round(row["avg_change"] or 0, 2),
            "advancing": advancing,
            "declining": declining,
            "unchanged": int(row["unchanged"] or 0),
            "biggest_gainer": row["biggest_gainer"] or 0,
            "biggest_loser": row["biggest_loser"] or 0,
            "total_volume": int(row["total_volume"] or 0),
            "advance_decline_ratio": round(ratio, 2) if ratio is not None else None,
            "market_breadth": round(analytics.market_breadth(advancing, declining, total), 4),
            "market_sentiment": analytics.breadth_sentiment(advancing, declining),
        }

    def get_sector_analysis(self):
        sectors = self.store.query(f"""
            SELECT
                c.sector AS sector,
                COUNT(*) AS stock_count,
                AVG(COALESCE(csd.change_percentage, 0)) AS avg_performance,
                MAX(COALESCE(csd.change_percentage, 0)) AS best_stock,
                MIN(COALESCE(csd.change_percentage, 0)) AS worst_stock,
                SUM(COALESCE(csd.volume, 0)) AS sector_volume,
                AVG(COALESCE(csd.current_price, 0)) AS avg_price
            {SNAPSHOT_JOIN}
            WHERE c.sector IS NOT NULL AND c.sector != ''
            GROUP BY c.sector
        """)
        market_volume = sum(int(s["sector_volume"] or 0) for s in sectors)

        result = []
        for sector in sectors:
            avg = round(sector["avg_performance"] or 0, 2)
            volume = int(sector["sector_volume"] or 0)
            result.append({
                **sector,
                "avg_performance": avg,
                "avg_price": round(sector["avg_price"] or 0, 2),
                "sector_volume": volume,
                "performance_rating": analytics.rate_sector_performance(avg),
                "volatility": round(abs((sector["best_stock"] or 0) - (sector["worst_stock"] or 0)), 2),
                "volume_share": round(volume / market_volume * 100, 2) if market_volume else 0.0,
            })
        result.sort(key=lambda s: s["avg_performance"], reverse=True)
        return result

    def get_top_performers(self):
        base = """
            SELECT c.symbol, c.name, c.sector, csd.change_percentage, csd.volume
            FROM companies c
            JOIN current_stock_data csd ON c.id = csd.company_id
        """
        return {
            "top_gainers": self.store.query(
                base + " WHERE csd.change_percentage > 0 ORDER BY csd.change_percentage DESC LIMIT ?",
                (TOP_N,)),
            "top_losers": self.store.query(
                base + " WHERE csd.change_percentage < 0 ORDER BY csd.change_percentage ASC LIMIT ?",
                (TOP_N,)),
            "high_volume": self.store.query(
                base + " ORDER BY csd.volume DESC LIMIT ?",
                (TOP_N,)),
        }

    def get_market_indicators(self):
        price = self.store.query_one(
            "SELECT AVG(current_price) AS avg_price FROM current_stock_data WHERE current_price > 0"
        )
        changes = [
            r["change_percentage"]
            for r in self.store.query(
                "SELECT change_percentage FROM current_stock_data WHERE change_percentage IS NOT NULL"
            )
        ]
        avg_abs = analytics.moving_average([abs(c) for c in changes]) if changes else None
        return {
            "market_price_level": round(price["avg_price"], 2) if price and price["avg_price"] is not None else None,
            "market_volatility": round(avg_abs, 4) if avg_abs is not None else None,
            "price_dispersion": round(analytics.dispersion(changes), 4),
            "vix_equivalent": round(analytics.vix_equivalent(avg_abs), 2),
        }

    def get_risk_assessment(self):
        row = self.store.query_one("""
            SELECT
                SUM(CASE WHEN change_percentage < -5 THEN 1 ELSE 0 END) AS high_risk_stocks,
                SUM(CASE WHEN change_percentage BETWEEN -5 AND -2 THEN 1 ELSE 0 END) AS medium_risk_stocks,
                SUM(CASE WHEN change_percentage > -2 THEN 1 ELSE 0 END) AS low_risk_stocks,
                AVG(ABS(change_percentage)) AS avg_price_movement
            FROM current_stock_data
            WHERE change_percentage IS NOT NULL
        """)
        high = int(row["high_risk_stocks"] or 0)
        medium = int(row["medium_risk_stocks"] or 0)
        low = int(row["low_risk_stocks"] or 0)
        movement = row["avg_price_movement"]
        return {
            "high_risk_stocks": high,
            "medium_risk_stocks": medium,
            "low_risk_stocks": low,
            "avg_price_movement": round(movement, 4) if movement is not None else None,
            "overall_risk_level": analytics.assess_overall_risk(high, medium, low),
            "risk_distribution": {"high": high, "medium": medium, "low": low},
        }

    def clear_cache(self):
        self.cache.clear()
