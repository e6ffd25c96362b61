from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime

from health.health import record_feed_error, record_feed_success
from ingest.errors import PersistError, RefreshError
from ingest.feed_packs import FeedPackEntry
from ingest.models import FeedConfig, FeedFormat, ParsedIncident, parse_iso, to_iso
from store.db import Database


_INCIDENT_COLUMNS = (
    "id",
    "source_slug",
    "title",
    "body",
    "category",
    "severity",
    "relevance_score",
    "latitude",
    "longitude",
    "starts_at",
    "source_updated_at",
)

# everything but the key and the timestamp, which may be a fetch-time stand-in
_CONTENT_COLUMNS = tuple(
    c for c in _INCIDENT_COLUMNS if c not in ("id", "source_updated_at")
)

_LAST_UPSERT_KEY = "incidents_last_upsert_at"
_REFRESHED_KEY = "incidents_public_refreshed_at"


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat().replace("+00:00", "Z")


def _feed_from_row(row: sqlite3.Row) -> FeedConfig:
    last_seen = row["last_seen_pubdate"]
    fmt = row["format"]
    return FeedConfig(
        id=str(row["id"]),
        slug=str(row["slug"]),
        url=str(row["url"]),
        active=bool(row["active"]),
        last_seen_pubdate=parse_iso(str(last_seen)) if last_seen else None,
        format=FeedFormat(fmt) if fmt else None,
        name=str(row["name"]),
    )


class SqliteIncidentStore:
    """Feed catalog, incident table and read model backed by SQLite."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def ensure_feeds(self, entries: Iterable[FeedPackEntry]) -> None:
        now_iso = _utc_now_iso()
        with self.db.lock:
            for entry in entries:
                self.db.conn.execute(
                    """
                    INSERT OR IGNORE INTO gov_feeds(id, slug, name, url, format, active, created_at)
                    VALUES(?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        str(uuid.uuid4()),
                        entry.slug,
                        entry.name,
                        entry.url,
                        str(entry.format) if entry.format else None,
                        1 if entry.active else 0,
                        now_iso,
                    ),
                )
                self.db.conn.execute(
                    """
                    UPDATE gov_feeds
                    SET name = ?,
                        url = ?,
                        format = ?
                    WHERE slug = ?;
                    """,
                    (
                        entry.name,
                        entry.url,
                        str(entry.format) if entry.format else None,
                        entry.slug,
                    ),
                )
            self.db.conn.commit()

    def list_active_feeds(self) -> list[FeedConfig]:
        with self.db.lock:
            rows = self.db.conn.execute(
                """
                SELECT id, slug, name, url, format, active, last_seen_pubdate
                FROM gov_feeds
                WHERE active = 1
                ORDER BY slug ASC;
                """
            ).fetchall()
        return [_feed_from_row(r) for r in rows]

    def update_last_seen(self, feed_id: str, timestamp: datetime) -> None:
        try:
            with self.db.lock:
                self.db.conn.execute(
                    "UPDATE gov_feeds SET last_seen_pubdate = ? WHERE id = ?;",
                    (to_iso(timestamp), feed_id),
                )
                self.db.conn.commit()
        except sqlite3.Error as e:
            raise PersistError(f"watermark update failed for feed {feed_id}: {e}") from e

    def upsert(self, incidents: list[ParsedIncident]) -> int:
        """Insert or overwrite incidents by id; returns the number of rows written.

        Duplicate ids within one batch collapse to the last occurrence. An
        existing row is only rewritten when its content differs or, for items
        carrying their own upstream date, when that date moved. Re-upserting
        unchanged content therefore leaves the row byte-identical, including
        undated items whose ``source_updated_at`` is only the fetch time.
        """
        unique = {i.id: i for i in incidents}
        if not unique:
            return 0
        columns = ", ".join(_INCIDENT_COLUMNS)
        placeholders = ", ".join(f":{c}" for c in _INCIDENT_COLUMNS)
        updates = ",\n".join(
            f"{c} = excluded.{c}" for c in _INCIDENT_COLUMNS if c != "id"
        )
        changed = "\n               OR ".join(
            f"incidents.{c} IS NOT excluded.{c}" for c in _CONTENT_COLUMNS
        )
        sql = f"""
            INSERT INTO incidents({columns}, first_seen_at)
            VALUES({placeholders}, :first_seen_at)
            ON CONFLICT(id) DO UPDATE SET
            {updates}
            WHERE {changed}
               OR (:source_dated = 1
                   AND incidents.source_updated_at IS NOT excluded.source_updated_at);
            """
        now_iso = _utc_now_iso()
        rows = [
            {
                **i.to_row(),
                "first_seen_at": now_iso,
                "source_dated": 1 if i.source_dated else 0,
            }
            for i in unique.values()
        ]
        try:
            with self.db.lock:
                cur = self.db.conn.executemany(sql, rows)
                written = max(cur.rowcount, 0)
                if written:
                    self.db.conn.execute(
                        """
                        INSERT INTO app_config(key, value) VALUES(?, ?)
                        ON CONFLICT(key) DO UPDATE SET value = excluded.value;
                        """,
                        (_LAST_UPSERT_KEY, now_iso),
                    )
                self.db.conn.commit()
        except sqlite3.Error as e:
            with self.db.lock:
                self.db.conn.rollback()
            raise PersistError(f"incident upsert failed: {e}") from e
        return written

    def refresh_read_model(self) -> None:
        columns = ", ".join(_INCIDENT_COLUMNS)
        try:
            with self.db.lock:
                self.db.conn.execute("DELETE FROM incidents_public;")
                self.db.conn.execute(
                    f"""
                    INSERT INTO incidents_public({columns})
                    SELECT {columns}
                    FROM incidents
                    ORDER BY source_updated_at DESC;
                    """
                )
                self.db.conn.execute(
                    """
                    INSERT INTO app_config(key, value) VALUES(?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value;
                    """,
                    (_REFRESHED_KEY, _utc_now_iso()),
                )
                self.db.conn.commit()
        except sqlite3.Error as e:
            with self.db.lock:
                self.db.conn.rollback()
            raise RefreshError(f"read model refresh failed: {e}") from e

    def read_model_is_stale(self) -> bool:
        with self.db.lock:
            rows = self.db.conn.execute(
                "SELECT key, value FROM app_config WHERE key IN (?, ?);",
                (_LAST_UPSERT_KEY, _REFRESHED_KEY),
            ).fetchall()
        values = {str(r["key"]): str(r["value"]) for r in rows}
        last_upsert = values.get(_LAST_UPSERT_KEY)
        refreshed = values.get(_REFRESHED_KEY)
        if last_upsert is None:
            return False
        if refreshed is None:
            return True
        return parse_iso(refreshed) < parse_iso(last_upsert)

    def recent_incidents(self, limit: int = 10) -> list[dict]:
        table = "incidents" if self.read_model_is_stale() else "incidents_public"
        columns = ", ".join(_INCIDENT_COLUMNS)
        with self.db.lock:
            rows = self.db.conn.execute(
                f"""
                SELECT {columns}
                FROM {table}
                ORDER BY source_updated_at DESC, id ASC
                LIMIT ?;
                """,
                (limit,),
            ).fetchall()
        return [dict(r) for r in rows]

    def record_feed_success(self, slug: str, *, fetch_ms: int) -> None:
        record_feed_success(self.db, slug=slug, fetch_ms=fetch_ms)

    def record_feed_error(
        self, slug: str, *, error: str, status_code: int | None, fetch_ms: int | None
    ) -> None:
        record_feed_error(
            self.db, slug=slug, status_code=status_code, fetch_ms=fetch_ms, error=error
        )
