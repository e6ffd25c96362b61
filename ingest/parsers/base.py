from __future__ import annotations

import math
from collections.abc import Callable
from datetime import UTC, datetime, timedelta, timezone, tzinfo
from email.utils import parsedate_to_datetime

from ingest.models import Category, FeedConfig, ParsedIncident
from normalize.identity import generate_incident_id
from normalize.normalize import (
    calculate_relevance,
    calculate_severity,
    clean_title,
    map_category,
)


ParserFn = Callable[..., list[ParsedIncident]]

HONG_KONG_TZ = timezone(timedelta(hours=8), "HKT")

_LOCAL_FORMATS = (
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y %I:%M%p",
    "%d/%m/%Y %I:%M %p",
)


def parse_feed_datetime(
    value: object, *, naive_tz: tzinfo = UTC
) -> datetime | None:
    """Parse the timestamp formats seen across government feeds.

    Accepts RFC 2822 (RSS pubDate), ISO 8601 and a few local day/month
    layouts. Naive values are read in ``naive_tz``. Returns None when the
    value is empty or unrecognised.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None

    dt: datetime | None = None
    try:
        dt = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        dt = None

    if dt is None:
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            dt = None

    if dt is None:
        for fmt in _LOCAL_FORMATS:
            try:
                dt = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=naive_tz)
    return dt.astimezone(tz=UTC)


def parse_float(value: object) -> float | None:
    """Read a finite number; NaN, infinities and junk read as None."""
    if value is None or value == "":
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def make_incident(
    feed: FeedConfig,
    *,
    title: str,
    body: str | None,
    source_updated_at: datetime | None,
    fetched_at: datetime,
    id_title: str | None = None,
    id_content: str | None = None,
    category: Category | None = None,
    severity: int | None = None,
    relevance_score: int | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    starts_at: datetime | None = None,
) -> ParsedIncident:
    """Assemble a ParsedIncident, filling in every heuristic not supplied.

    ``id_title`` and ``id_content`` override the text hashed into the id.
    Without an upstream ``source_updated_at`` the item is stamped with
    ``fetched_at`` and flagged as undated.
    """
    return ParsedIncident(
        id=generate_incident_id(
            feed.slug,
            id_title if id_title is not None else title,
            id_content if id_content is not None else body,
        ),
        source_slug=feed.slug,
        title=clean_title(title),
        body=body or None,
        category=category or map_category(feed.slug, title, body),
        severity=severity if severity is not None else calculate_severity(title, body),
        relevance_score=relevance_score
        if relevance_score is not None
        else calculate_relevance(title, body, feed.slug),
        source_updated_at=source_updated_at or fetched_at,
        latitude=latitude,
        longitude=longitude,
        starts_at=starts_at,
        source_dated=source_updated_at is not None,
    )
