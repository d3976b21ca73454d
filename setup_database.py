import sys

import config
from store import Store

# Only the id column differs between the two backends.
ID_COLUMN = {
    "sqlite": "id INTEGER PRIMARY KEY AUTOINCREMENT",
    "postgres": "id SERIAL PRIMARY KEY",
}

TIMESTAMP_TYPE = {
    "sqlite": "TEXT",
    "postgres": "TIMESTAMP",
}


def schema_statements(dialect):
    id_col = ID_COLUMN[dialect]
    ts = TIMESTAMP_TYPE[dialect]
    return [
        f"""
        CREATE TABLE IF NOT EXISTS companies (
            {id_col},
            symbol VARCHAR(10) NOT NULL UNIQUE,
            name TEXT NOT NULL,
            sector TEXT,
            market_cap REAL DEFAULT 0,
            description TEXT,
            created_at {ts} DEFAULT CURRENT_TIMESTAMP
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS stock_prices (
            {id_col},
            company_id INTEGER NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
            date DATE NOT NULL,
            open_price REAL,
            high_price REAL,
            low_price REAL,
            close_price REAL NOT NULL,
            volume BIGINT DEFAULT 0,
            UNIQUE(company_id, date)
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS current_stock_data (
            {id_col},
            company_id INTEGER NOT NULL UNIQUE REFERENCES companies(id) ON DELETE CASCADE,
            current_price REAL,
            change_amount REAL,
            change_percentage REAL,
            high_52w REAL,
            low_52w REAL,
            volume BIGINT DEFAULT 0,
            last_updated {ts}
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS watchlist (
            {id_col},
            company_id INTEGER NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
            user_id TEXT NOT NULL,
            added_at {ts} DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(company_id, user_id)
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_companies_sector ON companies(sector)",
        "CREATE INDEX IF NOT EXISTS idx_prices_company_date ON stock_prices(company_id, date)",
        "CREATE INDEX IF NOT EXISTS idx_prices_date ON stock_prices(date)",
        "CREATE INDEX IF NOT EXISTS idx_watchlist_user ON watchlist(user_id)",
    ]


def create_database(store):
    store.execute_script(schema_statements(store.dialect))


if __name__ == "__main__":
    db_path = sys.argv[1] if len(sys.argv) > 1 else config.DB_PATH
    store = Store(config.DATABASE_URL, db_path)
    create_database(store)
    store.close()
    print(f"Database ready: {store!r}")
