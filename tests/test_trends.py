"""
Category and emerging-theme trend tests.
Run with: python -m pytest tests/ -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from agents.trends import (
    TrendAnalyzer,
    category_counts,
    is_emerging,
    theme_counts,
)
from config.settings import Settings
from models.schemas import Event


def _event(key, title, description="", topics=()):
    return Event(id=key, title=title, description=description, topics=tuple(topics))


@pytest.fixture
def analyzer():
    return TrendAnalyzer()


@pytest.fixture
def current():
    return [_event(f"c{i}", f"Fintech day {i}") for i in range(4)] + [_event("c4", "Cloud workshop")]


@pytest.fixture
def previous():
    return [
        _event("p0", "Fintech meetup"),
        _event("p1", "Fintech talk"),
        _event("p2", "Cloud seminar"),
        _event("p3", "Cloud forum"),
    ]


# ─── Counting ────────────────────────────────────────────────────────────────

class TestCounting:
    def test_category_counts(self):
        events = [
            _event("e1", "Fintech Summit", "Banking compliance"),
            _event("e2", "Legal Workshop", topics=["compliance"]),
            _event("e3", "Gardening show"),
        ]
        counts = category_counts(events)
        assert counts == {"legal": 1, "compliance": 2, "fintech": 1, "banking": 1, "summit": 1, "workshop": 1}
        # industry categories first, then event types
        assert list(counts) == ["legal", "compliance", "fintech", "banking", "summit", "workshop"]

    def test_themes_ignore_topics_field(self):
        events = [
            _event("e1", "Fintech Summit", "Banking compliance"),
            _event("e2", "Legal Workshop", topics=["compliance"]),
        ]
        assert theme_counts(events) == {"compliance": 1, "fintech": 1}

    def test_short_keywords_match_inside_words(self):
        assert theme_counts([_event("e", "Maintaining ledgers")]) == {"ai": 1}

    def test_each_event_counts_once(self):
        event = _event("e", "Fintech fintech FINTECH")
        assert theme_counts([event]) == {"fintech": 1}


class TestIsEmerging:
    def test_new_keyword_is_emerging(self):
        assert is_emerging(1, 100.0)

    def test_modest_growth_needs_volume(self):
        assert is_emerging(3, 10.0)
        assert not is_emerging(2, 10.0)

    def test_threshold_is_exclusive(self):
        assert not is_emerging(1, 20.0)
        assert is_emerging(1, 20.1)

    def test_flat_or_falling_is_not_emerging(self):
        assert not is_emerging(5, 0.0)
        assert not is_emerging(5, -50.0)


# ─── TrendAnalyzer ───────────────────────────────────────────────────────────

class TestTrendAnalyzer:
    def test_categories_with_growth(self, analyzer, current, previous):
        categories = analyzer.analyze_categories(current, previous)
        assert [(t.name, t.current_count, t.previous_count) for t in categories] == [
            ("fintech", 4, 2),
            ("workshop", 1, 0),
        ]
        fintech, workshop = categories
        assert fintech.growth_rate == pytest.approx(100.0)
        assert workshop.growth_rate == pytest.approx(100.0)
        assert fintech.is_emerging and workshop.is_emerging
        assert fintech.current_total == 5
        assert fintech.previous_total == 4

    def test_only_emerging_themes_are_reported(self, analyzer, current, previous):
        themes = analyzer.emerging_themes(current, previous)
        assert [t.name for t in themes] == ["fintech"]
        assert themes[0].kind == "theme"
        assert themes[0].related_events == ("c0", "c1", "c2", "c3")

    def test_growth_up_to_threshold_with_volume(self, analyzer):
        current = [_event(f"c{i}", "Fintech day") for i in range(6)]
        previous = [_event(f"p{i}", "Fintech day") for i in range(5)]
        [theme] = analyzer.emerging_themes(current, previous)
        assert theme.growth_rate == pytest.approx(20.0)
        assert theme.is_emerging

    def test_without_previous_period(self, analyzer, current):
        trends = analyzer.run((current, None))
        assert {t.kind for t in trends} == {"category"}
        assert all(t.growth_rate == 0.0 and not t.is_emerging for t in trends)

    def test_empty_previous_period_makes_everything_new(self, analyzer, current):
        themes = analyzer.emerging_themes(current, [])
        assert {t.name for t in themes} == {"fintech", "cloud"}
        assert all(t.growth_rate == 100.0 for t in themes)

    def test_related_events_are_capped(self, analyzer):
        current = [_event(f"c{i}", "Fintech day") for i in range(7)]
        [theme] = analyzer.emerging_themes(current, [])
        assert theme.related_events == ("c0", "c1", "c2", "c3", "c4")

    def test_theme_limit_comes_from_settings(self, current):
        themes = TrendAnalyzer(Settings(MAX_EMERGING_THEMES=1)).emerging_themes(current, [])
        assert len(themes) == 1

    def test_run_orders_categories_before_themes(self, analyzer, current, previous):
        trends = analyzer.run((current, previous))
        assert [t.kind for t in trends] == ["category", "category", "theme"]
        assert trends[-1].key == "theme:fintech"

    def test_no_current_events(self, analyzer, previous):
        assert analyzer.run(([], previous)) == []

    def test_observation_and_serialization(self, analyzer, current, previous):
        [theme] = analyzer.emerging_themes(current, previous)
        obs = theme.observation()
        assert (obs.key, obs.current_count, obs.previous_count) == ("theme:fintech", 4, 2)
        assert (obs.current_total, obs.previous_total) == (5, 4)
        data = theme.to_dict()
        assert data["growth_rate"] == 100.0
        assert data["significance"] is None
