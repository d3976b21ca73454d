"""
Database access for the dashboard.
Supports Postgres (DATABASE_URL) and SQLite (local dev).

Every caller goes through two calls:
  query(sql, params) -> list of dict rows
  run(sql, params)   -> RunResult(inserted_id, rows_affected)

SQL is written with '?' placeholders; the Postgres path swaps them for '%s'.
"""
import os
import sqlite3
import logging
import threading
from collections import namedtuple
from datetime import date, datetime

from errors import StoreError

logger = logging.getLogger(__name__)

RunResult = namedtuple("RunResult", ["inserted_id", "rows_affected"])


def normalize_value(val):
    """Decimal -> float and date/datetime -> ISO string so rows serialize as JSON."""
    if hasattr(val, 'as_tuple'):
        return float(val)
    if isinstance(val, (datetime, date)):
        return val.isoformat()
    return val


def _short(sql):
    return " ".join(sql.split())[:160]


class Store:
    """One connection per thread; request threads and the update job never share one."""

    def __init__(self, database_url=None, db_path="stocks.db"):
        self.database_url = database_url
        self.db_path = db_path
        self.dialect = "postgres" if database_url else "sqlite"
        self._local = threading.local()

        if self.dialect == "postgres":
            import psycopg2
            import psycopg2.extras
            self._pg = psycopg2
            self._errors = (psycopg2.Error,)
        else:
            self._pg = None
            self._errors = (sqlite3.Error,)

    def __repr__(self):
        target = "postgres" if self.dialect == "postgres" else self.db_path
        return f"<Store {target}>"

    # ── Connections ────────────────────────────────────────

    def connection(self):
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._connect()
            self._local.conn = conn
        return conn

    def _connect(self):
        try:
            if self.dialect == "postgres":
                conn = self._pg.connect(self.database_url)
                conn.autocommit = True
                return conn
            folder = os.path.dirname(os.path.abspath(self.db_path))
            os.makedirs(folder, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            return conn
        except self._errors as e:
            logger.error(f"Could not open database {self!r}: {e}")
            raise StoreError(f"Could not connect to database: {e}") from e

    def close(self):
        """Close the calling thread's connection, if it has one."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            self._local.conn = None
            conn.close()

    def _sql(self, sql):
        return sql.replace("?", "%s") if self.dialect == "postgres" else sql

    def _rollback(self, conn):
        if self.dialect == "sqlite":
            conn.rollback()

    # ── Query / run ────────────────────────────────────────

    def query(self, sql, params=None):
        conn = self.connection()
        try:
            if self.dialect == "postgres":
                with conn.cursor(cursor_factory=self._pg.extras.RealDictCursor) as cur:
                    cur.execute(self._sql(sql), params or ())
                    rows = cur.fetchall()
            else:
                rows = conn.execute(sql, params or ()).fetchall()
        except self._errors as e:
            self._rollback(conn)
            logger.error(f"Query failed: {e} | {_short(sql)} | params={params}")
            raise StoreError(f"Database query failed: {e}") from e

        return [{key: normalize_value(row[key]) for key in row.keys()} for row in rows]

    def query_one(self, sql, params=None):
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def run(self, sql, params=None):
        """Execute an INSERT/UPDATE/DELETE and commit it."""
        conn = self.connection()
        try:
            if self.dialect == "postgres":
                statement = self._sql(sql)
                returning = (statement.lstrip().upper().startswith("INSERT")
                             and "RETURNING" not in statement.upper())
                if returning:
                    statement += " RETURNING id"
                with conn.cursor() as cur:
                    cur.execute(statement, params or ())
                    inserted_id = None
                    if returning:
                        row = cur.fetchone()
                        inserted_id = row[0] if row else None
                    return RunResult(inserted_id, cur.rowcount)

            cur = conn.execute(sql, params or ())
            conn.commit()
            return RunResult(cur.lastrowid, cur.rowcount)
        except self._errors as e:
            self._rollback(conn)
            logger.error(f"Write failed: {e} | {_short(sql)} | params={params}")
            raise StoreError(f"Database write failed: {e}") from e

    def execute_script(self, statements):
        """Run a list of DDL statements (schema setup)."""
        for statement in statements:
            self.run(statement)
