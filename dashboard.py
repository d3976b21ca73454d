"""The long-lived objects one app instance is built from, shared by every request."""
from flask import current_app

EXTENSION_KEY = "dashboard"


class Dashboard:

    def __init__(self, store, stocks, market, watchlist, updater, settings):
        self.store = store
        self.stocks = stocks
        self.market = market
        self.watchlist = watchlist
        self.updater = updater
        self.settings = settings

    @property
    def default_user(self):
        return self.settings["DEFAULT_USER_ID"]

    @property
    def debug_errors(self):
        return self.settings["APP_ENV"] == "development"


def current_dashboard():
    return current_app.extensions[EXTENSION_KEY]
