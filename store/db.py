from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Database:
    conn: sqlite3.Connection
    lock: threading.Lock


_MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
          version INTEGER NOT NULL PRIMARY KEY
        );

        CREATE TABLE IF NOT EXISTS gov_feeds (
          id TEXT NOT NULL PRIMARY KEY,
          slug TEXT NOT NULL UNIQUE,
          name TEXT NOT NULL DEFAULT '',
          url TEXT NOT NULL,
          format TEXT NULL,
          active INTEGER NOT NULL DEFAULT 1,
          last_seen_pubdate TEXT NULL,
          created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS incidents (
          id TEXT NOT NULL PRIMARY KEY,
          source_slug TEXT NOT NULL,
          title TEXT NOT NULL,
          body TEXT NULL,
          category TEXT NOT NULL,
          severity INTEGER NOT NULL,
          relevance_score INTEGER NOT NULL,
          latitude REAL NULL,
          longitude REAL NULL,
          starts_at TEXT NULL,
          source_updated_at TEXT NOT NULL,
          first_seen_at TEXT NOT NULL,

          FOREIGN KEY (source_slug) REFERENCES gov_feeds(slug) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS incidents_source_slug_idx ON incidents(source_slug);
        CREATE INDEX IF NOT EXISTS incidents_category_idx ON incidents(category);
        CREATE INDEX IF NOT EXISTS incidents_source_updated_at_idx ON incidents(source_updated_at);

        CREATE TABLE IF NOT EXISTS incidents_public (
          id TEXT NOT NULL PRIMARY KEY,
          source_slug TEXT NOT NULL,
          title TEXT NOT NULL,
          body TEXT NULL,
          category TEXT NOT NULL,
          severity INTEGER NOT NULL,
          relevance_score INTEGER NOT NULL,
          latitude REAL NULL,
          longitude REAL NULL,
          starts_at TEXT NULL,
          source_updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS incidents_public_updated_idx
          ON incidents_public(source_updated_at);

        CREATE TABLE IF NOT EXISTS app_config (
          key TEXT NOT NULL PRIMARY KEY,
          value TEXT NOT NULL
        );
        """,
    ),
    (
        2,
        """
        ALTER TABLE gov_feeds ADD COLUMN last_fetch_at TEXT NULL;
        ALTER TABLE gov_feeds ADD COLUMN last_success_at TEXT NULL;
        ALTER TABLE gov_feeds ADD COLUMN last_error_at TEXT NULL;
        ALTER TABLE gov_feeds ADD COLUMN last_error TEXT NULL;
        ALTER TABLE gov_feeds ADD COLUMN last_status_code INTEGER NULL;
        ALTER TABLE gov_feeds ADD COLUMN last_fetch_ms INTEGER NULL;
        ALTER TABLE gov_feeds ADD COLUMN consecutive_failures INTEGER NOT NULL DEFAULT 0;
        """,
    ),
]


def open_database(path: Path) -> Database:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA busy_timeout=5000;")
    _apply_migrations(conn)
    return Database(conn=conn, lock=threading.Lock())


def close_database(db: Database) -> None:
    with db.lock:
        db.conn.close()


def _apply_migrations(conn: sqlite3.Connection) -> None:
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER NOT NULL PRIMARY KEY);"
    )
    row = conn.execute(
        "SELECT COALESCE(MAX(version), 0) AS v FROM schema_migrations;"
    ).fetchone()
    current_version = int(row["v"])

    for version, sql in _MIGRATIONS:
        if version <= current_version:
            continue
        conn.executescript(sql)
        conn.execute("INSERT INTO schema_migrations(version) VALUES (?);", (version,))
        conn.commit()
