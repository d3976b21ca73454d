"""
Stock Watchlist Dashboard -- Flask Backend
Supports Postgres (DATABASE_URL) and SQLite (local dev).
"""
import atexit
import logging

from flask import Flask, jsonify, render_template, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

import config
from api import bp as api_bp
from cache import QueryCache
from dashboard import EXTENSION_KEY, Dashboard, current_dashboard
from data_update import DataUpdateService
from errors import DashboardError
from market_analysis import MarketAnalysisService
from setup_database import create_database
from stock_service import StockService
from store import Store
from views import admin, pages
from watchlist import WatchlistService

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong"


def build_dashboard(settings):
    store = Store(settings["DATABASE_URL"], settings["DB_PATH"])
    query_cache = QueryCache(settings["QUERY_CACHE_TTL"], name="query cache")
    analytics_cache = QueryCache(settings["ANALYTICS_CACHE_TTL"], name="analytics cache")
    updater = DataUpdateService(
        store,
        interval=settings["UPDATE_INTERVAL_SECONDS"],
        company_delay=settings["UPDATE_COMPANY_DELAY"],
    )
    return Dashboard(
        store=store,
        stocks=StockService(store, query_cache, dependent_caches=[analytics_cache]),
        market=MarketAnalysisService(store, analytics_cache),
        watchlist=WatchlistService(store, query_cache),
        updater=updater,
        settings=settings,
    )


def create_app(overrides=None):
    settings = {**config.as_dict(), **(overrides or {})}

    app = Flask(__name__)
    CORS(app)

    dashboard = build_dashboard(settings)
    app.extensions[EXTENSION_KEY] = dashboard

    create_database(dashboard.store)
    dashboard.store.close()
    logger.info(f"Using database {dashboard.store!r}")

    app.register_blueprint(pages)
    app.register_blueprint(admin)
    app.register_blueprint(api_bp)

    @app.teardown_appcontext
    def close_db(exc):
        dashboard.store.close()

    register_error_handlers(app)

    if settings["ENABLE_PRICE_UPDATES"]:
        dashboard.updater.start_periodic_updates()
        atexit.register(dashboard.updater.stop_periodic_updates)

    return app


# ── Errors ─────────────────────────────────────────────────

def _wants_json():
    return request.path.startswith("/api/")


def _error_response(status, label, message):
    if _wants_json():
        return jsonify({"success": False, "error": label, "message": message}), status
    return render_template("error.html", title=label, status=status, detail=message), status


def register_error_handlers(app):

    @app.errorhandler(DashboardError)
    def handle_dashboard_error(e):
        message = str(e)
        if e.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed: {e}")
            if not current_dashboard().debug_errors:
                message = GENERIC_ERROR
        return _error_response(e.status_code, e.label, message)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return _error_response(e.code, e.name, e.description)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        message = str(e) if current_dashboard().debug_errors else GENERIC_ERROR
        return _error_response(500, "Internal server error", message)


# ── Entry point ────────────────────────────────────────────

if __name__ == "__main__":
    config.configure_logging()
    app = create_app()
    app.run(host="0.0.0.0", port=config.PORT, debug=config.FLASK_DEBUG, use_reloader=False)
