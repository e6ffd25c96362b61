from __future__ import annotations

import hashlib
import re


_WS_RE = re.compile(r"\s+")
_HASH_PREFIX_LEN = 12


def normalize_for_hash(text: str | None) -> str:
    if not text:
        return ""
    return _WS_RE.sub(" ", text.strip().lower())


def generate_incident_id(slug: str, title: str, content: str | None = None) -> str:
    """Derive a stable incident id from the feed slug and the item text.

    The id depends only on normalized content, never on upstream sequence
    numbers or fetch time, so re-polling an unchanged feed yields the same ids.
    """
    key = f"{slug}:{normalize_for_hash(title)}:{normalize_for_hash(content)}"
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return f"{slug}_{digest[:_HASH_PREFIX_LEN]}"
