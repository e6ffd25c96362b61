from __future__ import annotations

import csv
from functools import lru_cache
from pathlib import Path


HOSPITALS_CSV = Path(__file__).resolve().parent / "data" / "ha_hospitals.csv"


def load_hospital_coords(path: Path) -> dict[str, tuple[float, float]]:
    """Index hospital coordinates by upper-cased code and by casefolded name."""
    coords: dict[str, tuple[float, float]] = {}
    with path.open(newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        for row in reader:
            lat = row.get("latitude")
            lon = row.get("longitude")
            if not lat or not lon:
                continue
            point = (float(lat), float(lon))
            code = (row.get("code") or "").strip().upper()
            name = (row.get("name") or "").strip().casefold()
            if code:
                coords[code] = point
            if name:
                coords[name] = point
    return coords


@lru_cache(maxsize=1)
def _default_coords() -> dict[str, tuple[float, float]]:
    return load_hospital_coords(HOSPITALS_CSV)


def find_hospital_coords(
    code: str | None = None, name: str | None = None
) -> tuple[float, float] | None:
    coords = _default_coords()
    if code:
        point = coords.get(code.strip().upper())
        if point is not None:
            return point
    if name:
        return coords.get(name.strip().casefold())
    return None
