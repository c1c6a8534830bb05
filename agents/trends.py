"""
Trend Analysis Agent
--------------------
Keyword frequency of industry categories and business themes across a
current and a previous period of events.

  count_k   = |{ e : keyword_k ⊂ text(e) }|       (case-insensitive)
  growth_k  = (cur − prev) / prev · 100,  or +100 when prev = 0 < cur
  emerging  ⇔ growth_k > 20  ∨  (growth_k > 0 ∧ cur ≥ 3)

Categories are matched on title + description + topics, themes on title +
description only. Every category seen in the current period is reported;
themes are reported only when emerging (top 10 by growth).

Without a previous period there is no baseline: growth is 0 and nothing is
emerging. An empty previous period is a baseline of zero, so everything
seen now counts as new.

Input  : tuple(list[Event] current, list[Event] | None previous)
Output : list[FrequencyTrend]   (categories first, then themes)
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from agents.base import Agent
from agents.significance import growth_rate
from config.settings import Settings, settings as default_settings
from models.schemas import Event, FrequencyTrend

logger = logging.getLogger(__name__)


INDUSTRY_CATEGORIES = [
    "legal", "compliance", "fintech", "healthcare", "technology",
    "finance", "insurance", "banking", "regulatory", "risk management",
    "data protection", "cybersecurity", "esg", "governance",
]

EVENT_TYPES = [
    "conference", "summit", "workshop", "seminar", "webinar",
    "training", "certification", "networking", "exhibition", "forum",
]

# plain substring matching, so short keywords ("ai") also hit inside words
THEME_KEYWORDS = [
    "ai", "artificial intelligence", "machine learning",
    "digital transformation", "cloud", "cybersecurity",
    "sustainability", "esg", "compliance", "regulation",
    "innovation", "startup", "fintech", "blockchain",
    "data privacy", "gdpr", "remote work", "hybrid",
]

TextOf = Callable[[Event], str]


# ─── Counting ────────────────────────────────────────────────────────────────


def keyword_counts(events: Sequence[Event], keywords: Sequence[str], text_of: TextOf) -> Dict[str, int]:
    """Events mentioning each keyword, in keyword order; unseen keywords are left out."""
    counts: Dict[str, int] = {}
    for event in events:
        text = text_of(event)
        for keyword in keywords:
            if keyword in text:
                counts[keyword] = counts.get(keyword, 0) + 1
    return {k: counts[k] for k in keywords if k in counts}


def category_counts(events: Sequence[Event]) -> Dict[str, int]:
    return keyword_counts(events, INDUSTRY_CATEGORIES + EVENT_TYPES, lambda e: e.text)


def theme_counts(events: Sequence[Event]) -> Dict[str, int]:
    return keyword_counts(events, THEME_KEYWORDS, lambda e: e.headline_text)


def is_emerging(
    current_count: int,
    growth: float,
    threshold: float = default_settings.EMERGING_GROWTH_THRESHOLD,
    min_count: int = default_settings.EMERGING_MIN_COUNT,
) -> bool:
    return growth > threshold or (growth > 0 and current_count >= min_count)


# ─── TrendAnalyzer ───────────────────────────────────────────────────────────


class TrendAnalyzer(Agent):
    """Agent: category and emerging-theme frequency trends."""

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__(name="TrendAnalyzer", settings=settings)

    def _trends(
        self,
        kind: str,
        current: Dict[str, int],
        previous: Optional[Dict[str, int]],
        current_events: Sequence[Event],
        previous_total: int,
        text_of: TextOf,
    ) -> List[FrequencyTrend]:
        trends = []
        for name, count in current.items():
            before = previous.get(name, 0) if previous is not None else 0
            growth = growth_rate(count, before) if previous is not None else 0.0
            related = [e.key for e in current_events if name in text_of(e) and e.key]
            trends.append(
                FrequencyTrend(
                    name=name,
                    kind=kind,
                    current_count=count,
                    previous_count=before,
                    current_total=len(current_events),
                    previous_total=previous_total,
                    growth_rate=growth,
                    is_emerging=previous is not None and is_emerging(
                        count,
                        growth,
                        self.settings.EMERGING_GROWTH_THRESHOLD,
                        self.settings.EMERGING_MIN_COUNT,
                    ),
                    related_events=tuple(related[: self.settings.MAX_TREND_EVENTS]),
                )
            )
        return trends

    def analyze_categories(
        self,
        current: Sequence[Event],
        previous: Optional[Sequence[Event]] = None,
    ) -> List[FrequencyTrend]:
        trends = self._trends(
            "category",
            category_counts(current),
            category_counts(previous) if previous is not None else None,
            current,
            len(previous or ()),
            lambda e: e.text,
        )
        return sorted(trends, key=lambda t: t.current_count, reverse=True)

    def emerging_themes(
        self,
        current: Sequence[Event],
        previous: Optional[Sequence[Event]] = None,
    ) -> List[FrequencyTrend]:
        if previous is None:
            return []
        trends = self._trends(
            "theme",
            theme_counts(current),
            theme_counts(previous),
            current,
            len(previous),
            lambda e: e.headline_text,
        )
        emerging = sorted((t for t in trends if t.is_emerging), key=lambda t: t.growth_rate, reverse=True)
        return emerging[: self.settings.MAX_EMERGING_THEMES]

    # ------------------------------------------------------------------
    def run(self, payload: Tuple[Sequence[Event], Optional[Sequence[Event]]]) -> List[FrequencyTrend]:
        current, previous = payload
        if not current:
            self.logger.info("No current events; skipping trend analysis")
            return []

        baseline = f"{len(previous)} previous" if previous is not None else "no previous period"
        self.logger.info(f"Counting categories and themes over {len(current)} events ({baseline})…")

        categories = self.analyze_categories(current, previous)
        themes = self.emerging_themes(current, previous)
        emerging = [t.name for t in categories + themes if t.is_emerging]
        self.logger.info(
            f"{len(categories)} categories, {len(themes)} emerging themes"
            + (f": {', '.join(emerging)}" if emerging else "")
        )
        return categories + themes
