from __future__ import annotations

import logging
from datetime import datetime

from ingest.models import FeedConfig, FeedFormat, ParsedIncident
from ingest.parsers.base import ParserFn
from ingest.parsers.hospital import parse_hospital_json
from ingest.parsers.json import parse_json_feed
from ingest.parsers.rss import parse_rss
from ingest.parsers.xml import parse_custom_xml


logger = logging.getLogger(__name__)

PARSERS: dict[FeedFormat, ParserFn] = {
    FeedFormat.RSS: parse_rss,
    FeedFormat.CUSTOM_XML: parse_custom_xml,
    FeedFormat.JSON: parse_json_feed,
    FeedFormat.HOSPITAL_JSON: parse_hospital_json,
}


def sniff_format(slug: str, content: str) -> FeedFormat:
    head = content.lstrip()[:512]
    if head.startswith(("{", "[")):
        if slug.startswith("ha_"):
            return FeedFormat.HOSPITAL_JSON
        return FeedFormat.JSON
    if "<rss" in head or "<feed" in head or "<rdf:RDF" in head:
        return FeedFormat.RSS
    if slug.startswith("td_"):
        return FeedFormat.CUSTOM_XML
    return FeedFormat.RSS


def resolve_format(feed: FeedConfig, content: str) -> FeedFormat:
    if feed.format is not None:
        return feed.format
    detected = sniff_format(feed.slug, content)
    logger.warning(
        "feed %s has no configured format, detected %s from content",
        feed.slug,
        detected,
    )
    return detected


def parse_feed(
    content: str, feed: FeedConfig, *, fetched_at: datetime | None = None
) -> list[ParsedIncident]:
    parser = PARSERS[resolve_format(feed, content)]
    return parser(content, feed, fetched_at=fetched_at)
