from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from ingest.models import FeedFormat


@dataclass(frozen=True)
class FeedPackEntry:
    pack_id: str
    slug: str
    name: str
    url: str
    format: FeedFormat | None
    active: bool


def _parse_format(value: object, path: Path) -> FeedFormat | None:
    if value is None or value == "":
        return None
    try:
        return FeedFormat(str(value))
    except ValueError as e:
        raise ValueError(f"invalid feed format {value!r} in: {path}") from e


def load_feed_pack_entries(feeds_dir: Path) -> dict[str, list[FeedPackEntry]]:
    packs: dict[str, list[FeedPackEntry]] = {}
    if not feeds_dir.exists():
        return packs

    for path in sorted(feeds_dir.glob("*.yaml")):
        pack_id = path.stem
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        if raw is None:
            packs[pack_id] = []
            continue
        if not isinstance(raw, list):
            raise ValueError(f"invalid feed pack: {path}")

        entries: list[FeedPackEntry] = []
        for entry in raw:
            if not isinstance(entry, dict):
                raise ValueError(f"invalid feed entry in: {path}")
            entries.append(
                FeedPackEntry(
                    pack_id=pack_id,
                    slug=str(entry["slug"]),
                    name=str(entry.get("name") or entry["slug"]),
                    url=str(entry["url"]),
                    format=_parse_format(entry.get("format"), path),
                    active=bool(entry.get("active", True)),
                )
            )

        packs[pack_id] = entries

    return packs
