from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from ingest.errors import ParseError
from ingest.models import FeedConfig, ParsedIncident
from ingest.parsers.base import make_incident, parse_feed_datetime, parse_float


logger = logging.getLogger(__name__)

_LIST_KEYS = ("items", "data", "records", "results")


def load_json_records(content: str) -> list:
    doc = json.loads(content)
    if isinstance(doc, list):
        return doc
    if isinstance(doc, dict):
        for key in _LIST_KEYS:
            value = doc.get(key)
            if isinstance(value, list):
                return value
    raise ParseError("unknown json structure")


def _first(record: dict, *keys: str) -> str:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return str(value)
    return ""


def parse_json_feed(
    content: str, feed: FeedConfig, *, fetched_at: datetime | None = None
) -> list[ParsedIncident]:
    fetched_at = fetched_at or datetime.now(tz=UTC)
    try:
        records = load_json_records(content)
    except ParseError:
        logger.warning("unknown json structure for %s", feed.slug)
        return []
    except json.JSONDecodeError as e:
        logger.error("error parsing json feed %s: %s", feed.slug, e)
        return []

    incidents: list[ParsedIncident] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            continue
        serialized = json.dumps(record, ensure_ascii=False, sort_keys=True)
        title = _first(record, "title", "name", "subject")
        # untitled records hash on the whole record, never on their position
        id_title, id_content = (None, None) if title else ("", serialized)
        body = _first(record, "description", "content", "summary") or serialized
        published = parse_feed_datetime(
            _first(record, "date", "timestamp", "updated", "pubDate")
        )
        incidents.append(
            make_incident(
                feed,
                title=title or f"Item {index + 1}",
                body=body,
                source_updated_at=published,
                fetched_at=fetched_at,
                id_title=id_title,
                id_content=id_content,
                latitude=parse_float(record.get("latitude")),
                longitude=parse_float(record.get("longitude")),
            )
        )
    return incidents
