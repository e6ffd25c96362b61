from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from datetime import UTC, datetime

from ingest.errors import ParseError
from ingest.models import FeedConfig, ParsedIncident
from ingest.parsers.base import (
    HONG_KONG_TZ,
    make_incident,
    parse_feed_datetime,
    parse_float,
)
from normalize.normalize import clean_text


logger = logging.getLogger(__name__)

_BARE_AMP_RE = re.compile(r"&(?!(?:amp|lt|gt|quot|apos|#\d+|#x[0-9a-fA-F]+);)")

# Repeated record element, checked in order: generic <root><item> exports
# and the Transport Department <message><messages> layout.
_ITEM_TAGS = ("item", "messages")

_TITLE_FIELDS = ("title", "heading", "HEADING")
_BODY_FIELDS = ("description", "content", "CONTENT")
_DATE_FIELDS = ("pubDate", "issueDate", "ISSUE_DATE", "updateTime")


def _text(el: ET.Element, names: tuple[str, ...]) -> str:
    for name in names:
        value = el.findtext(name)
        if value is not None and value.strip():
            return value.strip()
    return ""


def _load_root(content: str) -> ET.Element:
    try:
        return ET.fromstring(content)
    except ET.ParseError:
        pass
    try:
        return ET.fromstring(_BARE_AMP_RE.sub("&amp;", content))
    except ET.ParseError as e:
        raise ParseError(f"invalid xml: {e}") from e


def _find_items(root: ET.Element) -> list[ET.Element]:
    for tag in _ITEM_TAGS:
        items = root.findall(f".//{tag}")
        if items:
            return items
    return []


def _upstream_severity(value: str) -> int | None:
    number = parse_float(value)
    if number is None:
        return None
    return max(0, min(9, int(number)))


def parse_custom_xml(
    content: str, feed: FeedConfig, *, fetched_at: datetime | None = None
) -> list[ParsedIncident]:
    fetched_at = fetched_at or datetime.now(tz=UTC)
    try:
        root = _load_root(content)
        items = _find_items(root)
        if not items:
            logger.warning("no items found in xml feed %s", feed.slug)
            return []

        incidents: list[ParsedIncident] = []
        for item in items:
            title = _text(item, _TITLE_FIELDS)
            if not title:
                continue
            body = clean_text(_text(item, _BODY_FIELDS))
            published = parse_feed_datetime(
                _text(item, _DATE_FIELDS), naive_tz=HONG_KONG_TZ
            )
            incidents.append(
                make_incident(
                    feed,
                    title=title,
                    body=body,
                    source_updated_at=published,
                    fetched_at=fetched_at,
                    severity=_upstream_severity(_text(item, ("severity",))),
                    latitude=parse_float(_text(item, ("latitude",))),
                    longitude=parse_float(_text(item, ("longitude",))),
                    starts_at=parse_feed_datetime(
                        _text(item, ("startTime",)), naive_tz=HONG_KONG_TZ
                    ),
                )
            )
        return incidents
    except (ParseError, ValueError) as e:
        logger.error("error parsing xml feed %s: %s", feed.slug, e)
        return []
