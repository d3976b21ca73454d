"""
Seed the dashboard: companies from a CSV, then daily bars from yfinance.

  python load_data.py companies.csv [period] [symbol_suffix]

The CSV needs symbol,name,sector columns; market_cap and description are
optional. Backfilled bars never overwrite a (company, date) that already
exists, so the script can be re-run after the simulator has written today's bar.
"""
import csv
import sys
from datetime import datetime

import yfinance as yf

import config
from setup_database import create_database
from store import Store

UPSERT_COMPANY = """
    INSERT INTO companies (symbol, name, sector, market_cap, description)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT (symbol) DO UPDATE SET
        name = excluded.name,
        sector = excluded.sector,
        market_cap = excluded.market_cap,
        description = excluded.description
"""

INSERT_BAR = """
    INSERT INTO stock_prices
        (company_id, date, open_price, high_price, low_price, close_price, volume)
    VALUES (?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (company_id, date) DO NOTHING
"""

SEED_SNAPSHOT = """
    INSERT INTO current_stock_data
        (company_id, current_price, change_amount, change_percentage,
         high_52w, low_52w, volume, last_updated)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (company_id) DO UPDATE SET
        current_price = excluded.current_price,
        change_amount = excluded.change_amount,
        change_percentage = excluded.change_percentage,
        high_52w = excluded.high_52w,
        low_52w = excluded.low_52w,
        volume = excluded.volume,
        last_updated = excluded.last_updated
"""


def clean_value(value):
    if value is None or value == '' or value == 'N/A':
        return None
    if isinstance(value, str):
        value = value.replace(',', '').strip()
        try:
            return float(value) if '.' in value else int(value)
        except ValueError:
            return value
    return value


def clean_company_name(name):
    if not name:
        return None
    name = name.replace('\r', '').replace('\n', '')
    name = ' '.join(name.split())
    return name.strip()


def read_companies(csv_file):
    companies = []
    with open(csv_file, 'r', encoding='utf-8') as f:
        for row in csv.DictReader(f):
            symbol = (row.get('symbol') or row.get('Symbol') or '').strip().upper()
            name = clean_company_name(row.get('name') or row.get('Name'))
            if not symbol or not name:
                continue
            market_cap = clean_value(row.get('market_cap'))
            companies.append({
                'symbol': symbol,
                'name': name,
                'sector': (row.get('sector') or row.get('Sector') or '').strip() or None,
                'market_cap': market_cap if isinstance(market_cap, (int, float)) else 0,
                'description': (row.get('description') or '').strip() or None,
            })
    return companies


def load_companies(store, csv_file):
    companies = read_companies(csv_file)
    print(f"Loading {len(companies)} companies from {csv_file}...")
    for c in companies:
        store.run(UPSERT_COMPANY, (c['symbol'], c['name'], c['sector'], c['market_cap'], c['description']))
    total = store.query_one("SELECT COUNT(*) AS n FROM companies")["n"]
    print(f"Complete: {total} companies in database")
    return len(companies)


def fetch_bars(symbol, period="1y"):
    """Daily OHLCV bars from yfinance as plain dicts, oldest first."""
    hist = yf.Ticker(symbol).history(period=period, interval="1d")
    if hist.empty:
        return []
    bars = []
    for idx, row in hist.iterrows():
        day = idx.date() if hasattr(idx, 'date') else idx
        bars.append({
            "date": day.isoformat(),
            "open": round(float(row["Open"]), 2),
            "high": round(float(row["High"]), 2),
            "low": round(float(row["Low"]), 2),
            "close": round(float(row["Close"]), 2),
            "volume": int(row["Volume"]) if row["Volume"] else 0,
        })
    return bars


def seed_snapshot(store, company_id, bars):
    """Current snapshot from the last two closes, so pages have data before the first update."""
    last = bars[-1]
    prev_close = bars[-2]["close"] if len(bars) > 1 else last["close"]
    change = last["close"] - prev_close
    change_pct = change / prev_close * 100 if prev_close else 0.0
    store.run(SEED_SNAPSHOT, (
        company_id,
        last["close"],
        round(change, 2),
        round(change_pct, 2),
        max(b["high"] for b in bars),
        min(b["low"] for b in bars),
        last["volume"],
        datetime.now().isoformat(),
    ))


def backfill_history(store, period="1y", suffix=""):
    """
    Download daily bars for every company. A failed download is reported and
    skipped; returns the number of companies that received bars.
    """
    companies = store.query("SELECT id, symbol FROM companies ORDER BY symbol")
    print(f"Backfilling {period} of daily bars for {len(companies)} companies...")
    loaded = 0
    for company in companies:
        try:
            bars = fetch_bars(company["symbol"] + suffix, period)
        except Exception as e:
            print(f"  Warning: could not download {company['symbol']}: {e}")
            continue
        if not bars:
            print(f"  No price data for {company['symbol']}")
            continue

        for bar in bars:
            store.run(INSERT_BAR, (
                company["id"], bar["date"], bar["open"], bar["high"],
                bar["low"], bar["close"], bar["volume"],
            ))
        seed_snapshot(store, company["id"], bars)
        loaded += 1
        print(f"  {company['symbol']}: {len(bars)} bars")
    print(f"Backfilled {loaded}/{len(companies)} companies")
    return loaded


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python load_data.py <companies.csv> [period] [symbol_suffix]")
        sys.exit(1)
    store = Store(config.DATABASE_URL, config.DB_PATH)
    create_database(store)
    load_companies(store, sys.argv[1])
    backfill_history(store,
                     sys.argv[2] if len(sys.argv) > 2 else '1y',
                     sys.argv[3] if len(sys.argv) > 3 else '')
    store.close()
