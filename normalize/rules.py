from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from ingest.models import Category


T = TypeVar("T")


@dataclass(frozen=True)
class Rule(Generic[T]):
    """One row of a heuristic table.

    A rule matches when every given condition holds: the slug starts with
    ``slug_prefix``, the slug is one of ``slugs``, and the lower-cased text
    contains at least one of ``keywords``. Omitted conditions always hold.
    """

    value: T
    slug_prefix: str | None = None
    slugs: frozenset[str] = frozenset()
    keywords: tuple[str, ...] = ()

    def matches(self, slug: str, text: str) -> bool:
        if self.slug_prefix is not None and not slug.startswith(self.slug_prefix):
            return False
        if self.slugs and slug not in self.slugs:
            return False
        if self.keywords and not any(k in text for k in self.keywords):
            return False
        return True


def first_match(rules: Iterable[Rule[T]], slug: str, text: str, default: T) -> T:
    for rule in rules:
        if rule.matches(slug, text):
            return rule.value
    return default


def sum_matches(rules: Iterable[Rule[int]], slug: str, text: str) -> int:
    return sum(rule.value for rule in rules if rule.matches(slug, text))


_RAIL_WORDS = ("mtr", "railway", "train")

CATEGORY_RULES: tuple[Rule[Category], ...] = (
    # Transport Department
    Rule(Category.RAIL, slugs=frozenset({"td_notices"}), keywords=_RAIL_WORDS),
    Rule(Category.UTILITY, slugs=frozenset({"td_press"}), keywords=("fraud", "scam")),
    Rule(Category.RAIL, slugs=frozenset({"td_press"}), keywords=_RAIL_WORDS),
    Rule(
        Category.UTILITY,
        slugs=frozenset({"td_press"}),
        keywords=("regulation", "policy", "ballot", "registration"),
    ),
    Rule(Category.ROAD, slug_prefix="td_"),
    # Centre for Health Protection
    Rule(Category.WEATHER, slug_prefix="chp_", keywords=("heat", "hot weather")),
    Rule(
        Category.ENVIRONMENT,
        slugs=frozenset({"chp_disease", "chp_ncd", "chp_guidelines"}),
    ),
    Rule(
        Category.ENVIRONMENT,
        slug_prefix="chp_",
        keywords=("disease", "virus", "infection"),
    ),
    Rule(Category.UTILITY, slug_prefix="chp_", keywords=("arrest", "regulatory")),
    Rule(Category.ENVIRONMENT, slug_prefix="chp_"),
    # Monetary authority
    Rule(Category.TOP_SIGNALS, slugs=frozenset({"hkma_press", "hkma_speeches"})),
    Rule(Category.UTILITY, slug_prefix="hkma_"),
    # Observatory, rail operator, utilities, hospitals, government news
    Rule(Category.WEATHER, slug_prefix="hko_"),
    Rule(Category.RAIL, slugs=frozenset({"mtr_rail"})),
    Rule(Category.UTILITY, slug_prefix="ha_"),
    Rule(Category.UTILITY, slug_prefix="emsd_"),
    Rule(Category.TOP_SIGNALS, slugs=frozenset({"news_gov_top"})),
    Rule(Category.UTILITY, slug_prefix="news_gov_"),
    # Content keywords for feeds without a slug rule
    Rule(Category.WEATHER, keywords=("earthquake", "seismic", "typhoon", "rainstorm")),
)

DEFAULT_CATEGORY = Category.ROAD

SEVERITY_TIERS: tuple[Rule[int], ...] = (
    Rule(
        8,
        keywords=(
            "emergency",
            "urgent",
            "critical",
            "closed",
            "suspended",
            "cancelled",
        ),
    ),
    Rule(5, keywords=("delayed", "disrupted", "warning", "accident", "incident")),
    Rule(2, keywords=("notice", "update", "maintenance")),
)

DEFAULT_SEVERITY = 3

RELEVANCE_ADJUSTMENTS: tuple[Rule[int], ...] = (
    Rule(30, keywords=("emergency", "critical")),
    Rule(20, keywords=("accident", "incident")),
    Rule(15, keywords=("delayed", "disrupted")),
    Rule(10, keywords=("warning", "alert")),
    Rule(10, slugs=frozenset({"mtr_rail"})),
    Rule(5, slug_prefix="hko_"),
    Rule(15, slug_prefix="chp_"),
    Rule(10, slug_prefix="ha_"),
    Rule(-10, keywords=("routine", "scheduled")),
    Rule(-5, keywords=("maintenance",)),
)

BASE_RELEVANCE = 50

# (minimum hours, severity, relevance), checked top to bottom
WAIT_TIME_BREAKPOINTS: tuple[tuple[float, int, int], ...] = (
    (8.0, 9, 95),
    (6.0, 7, 85),
    (4.0, 5, 75),
    (2.0, 3, 65),
)

SHORT_WAIT_SEVERITY = 1
SHORT_WAIT_RELEVANCE = 55
