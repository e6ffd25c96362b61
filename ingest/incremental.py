from __future__ import annotations

from datetime import datetime, timedelta

from ingest.models import FeedConfig, ParsedIncident


MAX_TOLERANCE_MINUTES = 5


def filter_new(
    items: list[ParsedIncident],
    feed: FeedConfig,
    *,
    tolerance: timedelta = timedelta(0),
) -> list[ParsedIncident]:
    """Keep the items published after the feed's watermark.

    A feed without a watermark has never been ingested, so every item is new.
    ``tolerance`` moves the cutoff back to absorb publication skew between
    language variants of the same upstream. Undated items cannot be placed
    against the watermark and are always passed on; the upsert leaves them
    untouched when their content has not changed.
    """
    if feed.last_seen_pubdate is None:
        return list(items)
    cutoff = feed.last_seen_pubdate - tolerance
    return [
        item
        for item in items
        if not item.source_dated or item.source_updated_at > cutoff
    ]


def latest_source_updated_at(items: list[ParsedIncident]) -> datetime | None:
    """Newest upstream date in the batch; fetch-time stamps never count."""
    dated = [item.source_updated_at for item in items if item.source_dated]
    if not dated:
        return None
    return max(dated)
