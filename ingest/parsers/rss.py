from __future__ import annotations

import logging
from datetime import UTC, datetime

import feedparser

from ingest.models import FeedConfig, ParsedIncident
from ingest.parsers.base import make_incident, parse_feed_datetime
from normalize.normalize import clean_text


logger = logging.getLogger(__name__)


def _entry_datetime(entry: dict) -> datetime | None:
    for key in ("published", "updated", "created"):
        dt = parse_feed_datetime(entry.get(key))
        if dt is not None:
            return dt
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            return datetime(*parsed[:6], tzinfo=UTC)
    return None


def parse_rss(
    content: str, feed: FeedConfig, *, fetched_at: datetime | None = None
) -> list[ParsedIncident]:
    fetched_at = fetched_at or datetime.now(tz=UTC)
    try:
        parsed = feedparser.parse(content)
        if parsed.bozo and not parsed.entries:
            logger.warning(
                "rss feed %s is malformed: %s",
                feed.slug,
                parsed.get("bozo_exception"),
            )
            return []

        incidents: list[ParsedIncident] = []
        for entry in parsed.entries:
            title = str(entry.get("title") or "")
            if not title.strip():
                continue
            raw_body = entry.get("summary") or entry.get("description") or ""
            if not raw_body and entry.get("content"):
                raw_body = entry["content"][0].get("value") or ""
            body = clean_text(str(raw_body))
            incidents.append(
                make_incident(
                    feed,
                    title=title,
                    body=body,
                    source_updated_at=_entry_datetime(entry),
                    fetched_at=fetched_at,
                )
            )
        return incidents
    except (ValueError, TypeError, AttributeError) as e:
        logger.error("error parsing rss feed %s: %s", feed.slug, e)
        return []
