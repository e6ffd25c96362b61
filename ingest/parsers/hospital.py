from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from geo.coords import extract_decimal_coords
from geo.hospitals import find_hospital_coords
from ingest.models import FeedConfig, ParsedIncident
from ingest.parsers.base import (
    HONG_KONG_TZ,
    make_incident,
    parse_feed_datetime,
)
from normalize.normalize import calculate_wait_relevance, calculate_wait_severity


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaitRecord:
    name: str
    code: str | None
    wait: str
    updated: str
    coord: str | None


def _records_from_wait_time(doc: dict) -> list[WaitRecord]:
    updated = str(doc.get("updateTime") or "")
    return [
        WaitRecord(
            name=str(h.get("hospName") or "Unknown Hospital"),
            code=None,
            wait=str(h.get("topWait") or "Unknown"),
            updated=updated,
            coord=None,
        )
        for h in doc["waitTime"]
        if isinstance(h, dict)
    ]


def _records_from_hosp_data(doc: dict) -> list[WaitRecord]:
    return [
        WaitRecord(
            name=str(h.get("hospNameEn") or "Unknown Hospital"),
            code=str(h.get("hospCode") or "UNKNOWN"),
            wait=str(h.get("topWait") or "Unknown"),
            updated=str(h.get("hospTimeEn") or ""),
            coord=str(h["hospCoord"]) if h.get("hospCoord") else None,
        )
        for h in doc["result"]["hospData"]
        if isinstance(h, dict)
    ]


def load_wait_records(doc: object) -> list[WaitRecord] | None:
    """Pick out per-facility wait records from either known payload shape."""
    if not isinstance(doc, dict):
        return None
    if isinstance(doc.get("waitTime"), list):
        return _records_from_wait_time(doc)
    result = doc.get("result")
    if isinstance(result, dict) and isinstance(result.get("hospData"), list):
        return _records_from_hosp_data(doc)
    return None


def _coords(record: WaitRecord) -> tuple[float | None, float | None]:
    point = extract_decimal_coords(record.coord)
    if point is not None:
        return point
    point = find_hospital_coords(record.code, record.name)
    if point is None:
        return None, None
    return point


def parse_hospital_json(
    content: str, feed: FeedConfig, *, fetched_at: datetime | None = None
) -> list[ParsedIncident]:
    fetched_at = fetched_at or datetime.now(tz=UTC)
    try:
        records = load_wait_records(json.loads(content))
    except json.JSONDecodeError as e:
        logger.error("error parsing wait-time json %s: %s", feed.slug, e)
        return []
    if records is None:
        logger.warning("unknown wait-time structure for %s", feed.slug)
        return []

    incidents: list[ParsedIncident] = []
    for record in records:
        title = f"A&E Waiting Time: {record.name}"
        body = f"Current waiting time: {record.wait}. Last updated: {record.updated or 'Unknown'}"
        if record.code:
            body = f"{body}. Hospital Code: {record.code}"
        latitude, longitude = _coords(record)
        updated = parse_feed_datetime(record.updated, naive_tz=HONG_KONG_TZ)
        incidents.append(
            make_incident(
                feed,
                title=title,
                body=body,
                id_content=f"{record.code or record.name}_{record.wait}",
                source_updated_at=updated,
                fetched_at=fetched_at,
                severity=calculate_wait_severity(record.wait),
                relevance_score=calculate_wait_relevance(record.wait),
                latitude=latitude,
                longitude=longitude,
            )
        )
    return incidents
