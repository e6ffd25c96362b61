from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


class FeedFormat(StrEnum):
    RSS = "rss"
    CUSTOM_XML = "custom_xml"
    JSON = "json"
    HOSPITAL_JSON = "hospital_json"


class Category(StrEnum):
    ROAD = "road"
    RAIL = "rail"
    WEATHER = "weather"
    UTILITY = "utility"
    ENVIRONMENT = "environment"
    GOV = "gov"
    TOP_SIGNALS = "top_signals"


def to_iso(dt: datetime) -> str:
    return dt.astimezone(tz=UTC).isoformat().replace("+00:00", "Z")


def parse_iso(ts: str) -> datetime:
    if ts.endswith("Z"):
        ts = ts.removesuffix("Z") + "+00:00"
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(tz=UTC)


@dataclass(frozen=True)
class FeedConfig:
    id: str
    slug: str
    url: str
    active: bool = True
    last_seen_pubdate: datetime | None = None
    format: FeedFormat | None = None
    name: str = ""


@dataclass(frozen=True)
class ParsedIncident:
    id: str
    source_slug: str
    title: str
    category: Category
    severity: int
    relevance_score: int
    source_updated_at: datetime
    body: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    starts_at: datetime | None = None
    # False when upstream gave no usable date and source_updated_at is the fetch time
    source_dated: bool = True

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "source_slug": self.source_slug,
            "title": self.title,
            "body": self.body,
            "category": str(self.category),
            "severity": self.severity,
            "relevance_score": self.relevance_score,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "starts_at": to_iso(self.starts_at) if self.starts_at else None,
            "source_updated_at": to_iso(self.source_updated_at),
        }


@dataclass
class FeedResult:
    feed: str
    incidents: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"feed": self.feed, "incidents": self.incidents, "errors": self.errors}


@dataclass
class RunSummary:
    total_incidents: int = 0
    processed_feeds: int = 0
    errors: list[str] = field(default_factory=list)
    results: list[FeedResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalIncidents": self.total_incidents,
            "processedFeeds": self.processed_feeds,
            "errors": list(self.errors),
            "results": [r.to_dict() for r in self.results],
        }
