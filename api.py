"""
JSON API. Every response is {"success": true, "data": ...} or, through the
error handlers in app.py, {"success": false, "error", "message"}.
"""
from datetime import datetime

from flask import Blueprint, jsonify, request

from dashboard import current_dashboard
from errors import ValidationError

bp = Blueprint("api", __name__, url_prefix="/api")

API_VERSION = "1.0.0"
MAX_LIMIT = 100


def _limit_arg(default):
    raw = request.args.get("limit")
    if raw is None or raw == "":
        return default
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError("Invalid limit parameter: must be a positive integer")
    if limit < 1:
        raise ValidationError("Invalid limit parameter: must be a positive integer")
    if limit > MAX_LIMIT:
        raise ValidationError(f"Invalid limit parameter: must be at most {MAX_LIMIT}")
    return limit


def _user_id(source=None):
    source = source if source is not None else request.args
    return source.get("user_id") or source.get("userId") or current_dashboard().default_user


def _listing(rows, **extra):
    return jsonify({"success": True, "data": rows, "count": len(rows), **extra})


# ── Companies & stocks ─────────────────────────────────────

@bp.route("/companies")
def api_companies():
    return _listing(current_dashboard().stocks.get_all_companies())


@bp.route("/companies/<symbol>")
def api_company_details(symbol):
    company = current_dashboard().stocks.get_company_details(symbol)
    return jsonify({"success": True, "data": company})


@bp.route("/stocks/<symbol>")
def api_stock_detail(symbol):
    stock = current_dashboard().stocks.get_stock_data(symbol)
    return jsonify({"success": True, "data": stock})


@bp.route("/stocks/<symbol>/historical")
def api_historical(symbol):
    period = (request.args.get("period") or "1M").upper()
    rows = current_dashboard().stocks.get_historical_data(symbol, period)
    return _listing(rows, period=period)


@bp.route("/stocks/<symbol>/analytics")
def api_stock_analytics(symbol):
    return jsonify({"success": True, "data": current_dashboard().stocks.get_stock_analytics(symbol)})


# ── Market ─────────────────────────────────────────────────

@bp.route("/market/summary")
def api_market_summary():
    return jsonify({"success": True, "data": current_dashboard().stocks.get_market_summary()})


@bp.route("/market/gainers")
def api_gainers():
    return _listing(current_dashboard().stocks.get_top_gainers(_limit_arg(5)))


@bp.route("/market/losers")
def api_losers():
    return _listing(current_dashboard().stocks.get_top_losers(_limit_arg(5)))


@bp.route("/market/momentum")
def api_momentum():
    return jsonify({"success": True, "data": current_dashboard().stocks.get_market_momentum()})


@bp.route("/market/report")
def api_market_report():
    return jsonify({"success": True, "data": current_dashboard().market.generate_market_report()})


@bp.route("/search")
def api_search():
    query = request.args.get("q", "")
    results = current_dashboard().stocks.search_companies(query, _limit_arg(10))
    return _listing(results, query=query)


@bp.route("/sectors")
def api_sectors():
    return _listing(current_dashboard().stocks.get_sector_performance())


# ── Watchlist ──────────────────────────────────────────────

@bp.route("/watchlist", methods=["GET"])
def api_watchlist_get():
    return _listing(current_dashboard().watchlist.list(_user_id()))


@bp.route("/watchlist", methods=["POST"])
def api_watchlist_add():
    body = request.get_json(silent=True) or {}
    symbol = body.get("symbol")
    if not symbol:
        raise ValidationError("Symbol is required")

    result = current_dashboard().watchlist.add(symbol, _user_id(body))
    status = 200 if result["already_exists"] else 201
    return jsonify({
        "success": True,
        "message": result["message"],
        "already_exists": result["already_exists"],
    }), status


@bp.route("/watchlist/<symbol>", methods=["DELETE"])
def api_watchlist_remove(symbol):
    result = current_dashboard().watchlist.remove(symbol, _user_id())
    return jsonify({"success": True, "message": result["message"]})


# ── Service ────────────────────────────────────────────────

@bp.route("/update/status")
def api_update_status():
    return jsonify({"success": True, "data": current_dashboard().updater.get_status()})


@bp.route("/health")
def api_health():
    return jsonify({
        "success": True,
        "message": "Stock dashboard API is running",
        "timestamp": datetime.now().isoformat(),
        "version": API_VERSION,
    })
