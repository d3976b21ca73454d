#!/usr/bin/env python3
"""
cron_update.py — Run one simulated price update and exit.

Uses Postgres if DATABASE_URL is set, otherwise SQLite.

For hosts that prefer an external cron over the in-process scheduler:
  - Schedule: */5 9-15 * * 1-5
  - Command:  ENABLE_PRICE_UPDATES=false python cron_update.py
"""
import sys
from datetime import datetime

import config
from data_update import DataUpdateService
from setup_database import create_database
from store import Store


def main():
    config.configure_logging()
    store = Store(config.DATABASE_URL, config.DB_PATH)
    db_type = "Postgres" if store.dialect == "postgres" else f"SQLite ({config.DB_PATH})"
    print(f"{'='*60}")
    print(f"  Stock Price Update — {datetime.now().isoformat()}")
    print(f"  Database: {db_type}")
    print(f"{'='*60}")

    create_database(store)
    companies = store.query("SELECT COUNT(*) AS n FROM companies")[0]["n"]
    if not companies:
        print("ERROR: No companies found!")
        store.close()
        sys.exit(1)

    print(f"Found {companies} companies to update")
    service = DataUpdateService(store, company_delay=config.UPDATE_COMPANY_DELAY)
    counts = service.run_update_cycle()
    store.close()

    if counts is None:
        print("ERROR: Update cycle did not complete")
        sys.exit(1)

    print(f"Updated {counts['updated']}, skipped {counts['skipped']}, failed {counts['failed']}")
    print(f"\n{'='*60}")
    print(f"  COMPLETE — {datetime.now().isoformat()}")
    print(f"{'='*60}")


if __name__ == "__main__":
    main()
