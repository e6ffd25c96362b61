from __future__ import annotations

import html
import re

from ingest.models import Category
from normalize.rules import (
    BASE_RELEVANCE,
    CATEGORY_RULES,
    DEFAULT_CATEGORY,
    DEFAULT_SEVERITY,
    RELEVANCE_ADJUSTMENTS,
    SEVERITY_TIERS,
    SHORT_WAIT_RELEVANCE,
    SHORT_WAIT_SEVERITY,
    WAIT_TIME_BREAKPOINTS,
    first_match,
    sum_matches,
)


TITLE_MAX_LEN = 200
BODY_MAX_LEN = 2000

_WS_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"<[^>]*>")
_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")
_MINUTES_RE = re.compile(r"\d+(?:\.\d+)?\s*(?:minute|min)", re.IGNORECASE)


def _combined_text(title: str | None, body: str | None) -> str:
    return f"{title or ''} {body or ''}".lower()


def clean_title(title: str | None) -> str:
    if not title:
        return ""
    return _WS_RE.sub(" ", title).strip()[:TITLE_MAX_LEN]


def clean_text(text: str | None) -> str:
    """Strip markup and entities from a feed description."""
    if not text:
        return ""
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text).replace("\xa0", " ")
    return _WS_RE.sub(" ", text).strip()[:BODY_MAX_LEN]


def map_category(slug: str, title: str | None = None, body: str | None = None) -> Category:
    return first_match(
        CATEGORY_RULES, slug, _combined_text(title, body), DEFAULT_CATEGORY
    )


def calculate_severity(title: str | None, body: str | None = None) -> int:
    return first_match(
        SEVERITY_TIERS, "", _combined_text(title, body), DEFAULT_SEVERITY
    )


def calculate_relevance(title: str | None, body: str | None, slug: str) -> int:
    score = BASE_RELEVANCE + sum_matches(
        RELEVANCE_ADJUSTMENTS, slug, _combined_text(title, body)
    )
    return max(0, min(100, score))


def extract_wait_hours(wait_text: str | None) -> float:
    """Read a wait-time string such as ``"Over 6 hours"`` as hours.

    Values written in minutes count as fractions of an hour; text without a
    number reads as zero.
    """
    if not wait_text:
        return 0.0
    match = _NUMBER_RE.search(wait_text)
    if match is None:
        return 0.0
    value = float(match.group(1))
    if _MINUTES_RE.search(wait_text):
        return value / 60.0
    return value


def calculate_wait_severity(wait_text: str | None) -> int:
    hours = extract_wait_hours(wait_text)
    for min_hours, severity, _ in WAIT_TIME_BREAKPOINTS:
        if hours >= min_hours:
            return severity
    return SHORT_WAIT_SEVERITY


def calculate_wait_relevance(wait_text: str | None) -> int:
    hours = extract_wait_hours(wait_text)
    for min_hours, _, relevance in WAIT_TIME_BREAKPOINTS:
        if hours >= min_hours:
            return relevance
    return SHORT_WAIT_RELEVANCE
