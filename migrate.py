"""
Copy a local SQLite dashboard into Postgres.

  python migrate.py <postgres_url> [sqlite_db]

Rows keep their ids so foreign keys line up; rows already present in Postgres
are left alone. Id sequences are moved past the copied ids afterwards.
"""
import sqlite3
import sys

import psycopg2
from psycopg2.extras import execute_batch

from setup_database import schema_statements

BATCH_SIZE = 50

# Parents before children.
TABLES = [
    ("companies", ["id", "symbol", "name", "sector", "market_cap", "description", "created_at"]),
    ("stock_prices", ["id", "company_id", "date", "open_price", "high_price",
                      "low_price", "close_price", "volume"]),
    ("current_stock_data", ["id", "company_id", "current_price", "change_amount",
                            "change_percentage", "high_52w", "low_52w", "volume", "last_updated"]),
    ("watchlist", ["id", "company_id", "user_id", "added_at"]),
]


def clean_text(value):
    if value is None or value == '' or value == '-':
        return None
    return value


def insert_sql(table, columns):
    placeholders = ','.join(['%s'] * len(columns))
    return f"INSERT INTO {table} ({','.join(columns)}) VALUES ({placeholders}) ON CONFLICT DO NOTHING"


def copy_table(sqlite_cursor, pg_conn, pg_cursor, table, columns):
    sqlite_cursor.execute(f"SELECT {','.join(columns)} FROM {table} ORDER BY id")
    rows = [tuple(clean_text(v) for v in row) for row in sqlite_cursor.fetchall()]
    sql = insert_sql(table, columns)

    for i in range(0, len(rows), BATCH_SIZE):
        batch = rows[i:i + BATCH_SIZE]
        execute_batch(pg_cursor, sql, batch, page_size=BATCH_SIZE)
        pg_conn.commit()
        print(f"  Progress: {min(i + BATCH_SIZE, len(rows))}/{len(rows)}")
    return len(rows)


def reset_sequence(pg_cursor, table):
    pg_cursor.execute(
        f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
        f"COALESCE((SELECT MAX(id) FROM {table}), 0) + 1, false)"
    )


def migrate(sqlite_db='stocks.db', postgres_url=None):
    if not postgres_url:
        print("Error: PostgreSQL URL required")
        print("Usage: python migrate.py <postgres_url> [sqlite_db]")
        return

    print("Connecting to SQLite...")
    sqlite_conn = sqlite3.connect(sqlite_db)
    sqlite_cursor = sqlite_conn.cursor()

    print("Connecting to PostgreSQL...")
    if 'sslmode' not in postgres_url:
        postgres_url += '?sslmode=require'
    pg_conn = psycopg2.connect(postgres_url)
    pg_cursor = pg_conn.cursor()

    print("Creating schema...")
    for statement in schema_statements("postgres"):
        pg_cursor.execute(statement)
    pg_conn.commit()

    for table, columns in TABLES:
        print(f"\nMigrating {table}...")
        count = copy_table(sqlite_cursor, pg_conn, pg_cursor, table, columns)
        reset_sequence(pg_cursor, table)
        pg_conn.commit()
        print(f"Migrated {count} {table} rows")

    sqlite_conn.close()
    pg_conn.close()
    print("\nMigration complete!")


if __name__ == "__main__":
    postgres_url = sys.argv[1] if len(sys.argv) > 1 else None
    migrate(sys.argv[2] if len(sys.argv) > 2 else 'stocks.db', postgres_url)
