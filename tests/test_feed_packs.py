from pathlib import Path

import pytest

from ingest.feed_packs import load_feed_pack_entries
from ingest.models import FeedFormat


REPO_FEEDS = Path(__file__).resolve().parent.parent / "feeds"


def test_bundled_catalog_loads() -> None:
    packs = load_feed_pack_entries(REPO_FEEDS)
    entries = packs["hk_gov"]
    slugs = [e.slug for e in entries]
    assert len(slugs) == len(set(slugs))
    by_slug = {e.slug: e for e in entries}
    assert by_slug["td_special"].format == FeedFormat.CUSTOM_XML
    assert by_slug["ha_ae_waiting"].format == FeedFormat.HOSPITAL_JSON
    assert all(e.url.startswith("https://") for e in entries)


def test_pack_defaults(tmp_path) -> None:
    (tmp_path / "extra.yaml").write_text(
        "- slug: wsd_water\n  url: https://example.test/water.json\n",
        encoding="utf-8",
    )
    (tmp_path / "empty.yaml").write_text("", encoding="utf-8")
    packs = load_feed_pack_entries(tmp_path)
    assert packs["empty"] == []
    (entry,) = packs["extra"]
    assert entry.name == "wsd_water"
    assert entry.format is None
    assert entry.active is True


def test_missing_dir_is_empty(tmp_path) -> None:
    assert load_feed_pack_entries(tmp_path / "nope") == {}


def test_invalid_format_rejected(tmp_path) -> None:
    (tmp_path / "bad.yaml").write_text(
        "- slug: x\n  url: https://example.test/x\n  format: csv\n", encoding="utf-8"
    )
    with pytest.raises(ValueError, match="invalid feed format"):
        load_feed_pack_entries(tmp_path)


def test_non_list_pack_rejected(tmp_path) -> None:
    (tmp_path / "bad.yaml").write_text("slug: x\n", encoding="utf-8")
    with pytest.raises(ValueError, match="invalid feed pack"):
        load_feed_pack_entries(tmp_path)
