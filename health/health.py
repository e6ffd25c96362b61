from __future__ import annotations

from datetime import UTC, datetime

from store.db import Database


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat().replace("+00:00", "Z")


def record_feed_success(db: Database, *, slug: str, fetch_ms: int) -> None:
    now_iso = _utc_now_iso()
    with db.lock:
        db.conn.execute(
            """
            UPDATE gov_feeds
            SET last_fetch_at = ?,
                last_success_at = ?,
                last_status_code = 200,
                last_fetch_ms = ?,
                consecutive_failures = 0,
                last_error = NULL,
                last_error_at = NULL
            WHERE slug = ?;
            """,
            (now_iso, now_iso, fetch_ms, slug),
        )
        db.conn.commit()


def record_feed_error(
    db: Database,
    *,
    slug: str,
    status_code: int | None,
    fetch_ms: int | None,
    error: str,
) -> int:
    """Store the failure on the feed row and return its consecutive failure count."""
    now_iso = _utc_now_iso()
    with db.lock:
        row = db.conn.execute(
            "SELECT consecutive_failures FROM gov_feeds WHERE slug = ?;",
            (slug,),
        ).fetchone()
        if row is None:
            return 0
        failures = int(row["consecutive_failures"]) + 1
        db.conn.execute(
            """
            UPDATE gov_feeds
            SET last_fetch_at = ?,
                last_error_at = ?,
                last_status_code = COALESCE(?, last_status_code),
                last_fetch_ms = COALESCE(?, last_fetch_ms),
                consecutive_failures = ?,
                last_error = ?
            WHERE slug = ?;
            """,
            (now_iso, now_iso, status_code, fetch_ms, failures, error, slug),
        )
        db.conn.commit()
    return failures


def list_feed_health(db: Database) -> list[dict]:
    with db.lock:
        rows = db.conn.execute(
            """
            SELECT slug, name, url, format, active, last_seen_pubdate,
                   last_fetch_at, last_success_at, last_error_at, last_error,
                   last_status_code, last_fetch_ms, consecutive_failures
            FROM gov_feeds
            ORDER BY slug ASC;
            """
        ).fetchall()
    return [
        {**dict(r), "active": bool(r["active"])}
        for r in rows
    ]
