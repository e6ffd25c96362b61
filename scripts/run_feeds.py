from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from app.main import configure_logging, run_response
from app.settings import Settings
from ingest.feed_packs import load_feed_pack_entries
from ingest.orchestrator import FeedOrchestrator
from store.db import close_database, open_database
from store.incidents import SqliteIncidentStore


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Poll every active government feed once and print the run summary."
    )
    parser.add_argument("--db", type=Path, default=None)
    parser.add_argument("--feeds-dir", type=Path, default=None)
    args = parser.parse_args()

    settings = Settings()
    configure_logging(settings.log_level)
    db = open_database(args.db or settings.db_path)
    try:
        store = SqliteIncidentStore(db)
        for entries in load_feed_pack_entries(args.feeds_dir or settings.feeds_dir).values():
            store.ensure_feeds(entries)
        summary = asyncio.run(FeedOrchestrator(store, settings).process_all_feeds())
    finally:
        close_database(db)

    body = run_response(summary)
    print(json.dumps(body, indent=2, ensure_ascii=False))
    return 0 if body["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
