from __future__ import annotations

import re


_DECIMAL_PAIR_RE = re.compile(
    r"(?P<lat>-?\d{1,2}\.\d+)\s*,\s*(?P<lon>-?\d{1,3}\.\d+)",
    flags=re.UNICODE,
)


def extract_decimal_coords(text: str | None) -> tuple[float, float] | None:
    """Find the first ``lat,lon`` decimal pair in ``text``."""
    if not text:
        return None
    match = _DECIMAL_PAIR_RE.search(text)
    if match is None:
        return None
    lat, lon = float(match.group("lat")), float(match.group("lon"))
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None
    return (lat, lon)
