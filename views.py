"""Server-rendered pages: dashboard, watchlist, analytics and the company admin."""
import logging

from flask import Blueprint, redirect, render_template, request, url_for

from dashboard import current_dashboard
from errors import DashboardError, ValidationError

logger = logging.getLogger(__name__)

pages = Blueprint("pages", __name__)
admin = Blueprint("admin", __name__, url_prefix="/admin")

REQUIRED_COMPANY_FIELDS = ("symbol", "name", "sector")


@pages.route("/")
def dashboard_page():
    stocks = current_dashboard().stocks
    try:
        summary = stocks.get_market_summary()
        gainers = stocks.get_top_gainers(3)
        losers = stocks.get_top_losers(3)
    except DashboardError as e:
        logger.error(f"Error loading dashboard: {e}")
        summary, gainers, losers = None, [], []
    return render_template(
        "dashboard.html", title="Dashboard",
        market_summary=summary, top_gainers=gainers, top_losers=losers,
    )


@pages.route("/watchlist")
def watchlist_page():
    dash = current_dashboard()
    try:
        entries = dash.watchlist.list(dash.default_user)
    except DashboardError as e:
        logger.error(f"Error loading watchlist: {e}")
        entries = []
    return render_template(
        "watchlist.html", title="Watchlist", watchlist=entries,
        message=request.args.get("message"), error=request.args.get("error"),
    )


@pages.route("/watchlist", methods=["POST"])
def watchlist_add():
    dash = current_dashboard()
    try:
        result = dash.watchlist.add(request.form.get("symbol", ""), dash.default_user)
    except DashboardError as e:
        return redirect(url_for("pages.watchlist_page", error=str(e)))
    return redirect(url_for("pages.watchlist_page", message=result["message"]))


@pages.route("/watchlist/<symbol>/remove", methods=["POST"])
def watchlist_remove(symbol):
    dash = current_dashboard()
    try:
        result = dash.watchlist.remove(symbol, dash.default_user)
    except DashboardError as e:
        return redirect(url_for("pages.watchlist_page", error=str(e)))
    return redirect(url_for("pages.watchlist_page", message=result["message"]))


@pages.route("/analytics")
def analytics_page():
    stocks = current_dashboard().stocks
    try:
        sectors = stocks.get_sector_performance()
        summary = stocks.get_market_summary()
    except DashboardError as e:
        logger.error(f"Error loading analytics: {e}")
        sectors, summary = [], None
    return render_template("analytics.html", title="Analytics", sectors=sectors, market_summary=summary)


# ── Admin ──────────────────────────────────────────────────

def _company_form():
    form = request.form
    market_cap = (form.get("market_cap") or "").strip()
    try:
        market_cap = float(market_cap) if market_cap else 0
    except ValueError:
        market_cap = 0
    return {
        "symbol": (form.get("symbol") or "").strip().upper(),
        "name": (form.get("name") or "").strip(),
        "sector": (form.get("sector") or "").strip(),
        "market_cap": market_cap,
        "description": (form.get("description") or "").strip() or None,
    }


def _missing_fields(data):
    return [f for f in REQUIRED_COMPANY_FIELDS if not data.get(f)]


@admin.route("/", strict_slashes=False)
def admin_index():
    stocks = current_dashboard().stocks
    companies = stocks.get_all_companies()
    return render_template(
        "admin.html", title="Admin Dashboard",
        companies=companies, total_companies=len(companies),
        market_summary=stocks.get_market_summary(),
        success=request.args.get("success"), error=request.args.get("error"),
    )


@admin.route("/companies/add")
def add_company_form():
    return render_template("company_form.html", title="Add Company", company={}, action=url_for("admin.create_company"))


@admin.route("/companies", methods=["POST"])
def create_company():
    data = _company_form()
    action = url_for("admin.create_company")
    if _missing_fields(data):
        return render_template(
            "company_form.html", title="Add Company", company=data, action=action,
            error="Symbol, name, and sector are required",
        ), 400
    try:
        current_dashboard().stocks.add_company(data)
    except ValidationError as e:
        return render_template("company_form.html", title="Add Company", company=data, action=action, error=str(e)), 400
    except DashboardError as e:
        logger.error(f"Error adding company: {e}")
        return render_template(
            "company_form.html", title="Add Company", company=data, action=action,
            error="Failed to add company",
        ), 500
    return redirect(url_for("admin.admin_index", success="Company added successfully"))


@admin.route("/companies/<int:company_id>/edit")
def edit_company_form(company_id):
    company = current_dashboard().stocks.get_company_by_id(company_id)
    return render_template(
        "company_form.html", title="Edit Company", company=company,
        action=url_for("admin.update_company", company_id=company_id),
    )


@admin.route("/companies/<int:company_id>", methods=["POST"])
def update_company(company_id):
    data = _company_form()
    action = url_for("admin.update_company", company_id=company_id)
    if _missing_fields(data):
        return render_template(
            "company_form.html", title="Edit Company", company={**data, "id": company_id}, action=action,
            error="Symbol, name, and sector are required",
        ), 400
    try:
        current_dashboard().stocks.update_company(company_id, data)
    except ValidationError as e:
        return render_template(
            "company_form.html", title="Edit Company", company={**data, "id": company_id}, action=action,
            error=str(e),
        ), 400
    return redirect(url_for("admin.admin_index", success="Company updated successfully"))


@admin.route("/companies/<int:company_id>/delete", methods=["POST"])
def delete_company(company_id):
    try:
        current_dashboard().stocks.delete_company(company_id)
    except DashboardError as e:
        logger.error(f"Error deleting company {company_id}: {e}")
        return redirect(url_for("admin.admin_index", error="Failed to delete company"))
    return redirect(url_for("admin.admin_index", success="Company deleted successfully"))
