"""
Recommendation ranking tests.
Run with: python -m pytest tests/ -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json

import pytest
from agents.ranker import (
    RecommendationContext,
    RecommendationRanker,
    apply_prose,
    compare_recommendations,
    feasibility,
    priority,
    rank_recommendations,
    recommendation_id,
    trend_insight_id,
)
from models.schemas import (
    CompetitiveInsight,
    Event,
    EventIntelligence,
    OpportunityScore,
    Recommendation,
    TrendInsight,
)


def _rec(rec_id, priority_value, confidence, type_="strategic"):
    return Recommendation(
        id=rec_id,
        type=type_,
        insight_type="event",
        title=rec_id,
        description="",
        why="",
        when="",
        how=None,
        expected_outcome="",
        priority=priority_value,
        confidence=confidence,
        related_insight_id=f"event_{rec_id}",
    )


@pytest.fixture
def ranker():
    return RecommendationRanker()


@pytest.fixture
def event():
    return Event(
        id="evt-1",
        title="Fintech Summit",
        organizer="Events Ltd",
        source_url="https://example.com",
        data_completeness=0.5,
    )


@pytest.fixture
def opportunity():
    return OpportunityScore(
        icp_match_score=0.9,
        attendee_quality_score=0.7,
        roi_estimate="high",
        urgency_score=0.85,
        overall_score=0.8,
        confidence=0.84,
        urgency_level="critical",
        days_until_event=5,
        event_key="evt-1",
    )


# ─── Ordering ────────────────────────────────────────────────────────────────

class TestOrdering:
    def test_near_tie_breaks_on_confidence(self):
        a = _rec("a", 0.81, 0.90)
        b = _rec("b", 0.80, 0.95)
        assert [r.id for r in rank_recommendations([a, b])] == ["b", "a"]

    def test_clear_priority_gap_wins(self):
        a = _rec("a", 0.85, 0.50)
        b = _rec("b", 0.80, 0.99)
        assert [r.id for r in rank_recommendations([b, a])] == ["a", "b"]

    def test_true_ties_keep_input_order(self):
        recs = [_rec(str(i), 0.5, 0.7) for i in range(6)]
        assert [r.id for r in rank_recommendations(recs)] == [str(i) for i in range(6)]

    def test_tolerance_tie_is_not_transitive(self):
        high, mid, low = _rec("h", 0.800, 0.7), _rec("m", 0.792, 0.7), _rec("l", 0.784, 0.7)
        assert compare_recommendations(high, mid) == 0
        assert compare_recommendations(mid, low) == 0
        assert compare_recommendations(high, low) == -1

    def test_descending_priority(self):
        recs = [_rec("low", 0.2, 0.9), _rec("high", 0.9, 0.1), _rec("mid", 0.5, 0.5)]
        assert [r.id for r in rank_recommendations(recs)] == ["high", "mid", "low"]


# ─── Priority ────────────────────────────────────────────────────────────────

class TestPriority:
    def test_feasibility(self, event):
        # 0.5 + 0.5·0.3 + organizer + source_url
        assert feasibility(RecommendationContext(event=event)) == pytest.approx(0.85)
        intel = EventIntelligence(confidence=1.0)
        assert feasibility(RecommendationContext(event=event, intelligence=intel)) == 1.0

    def test_priority_formula(self, event, opportunity):
        context = RecommendationContext(event=event, opportunity=opportunity)
        expected = 0.85 * 0.3 + 0.8 * 0.3 + 0.85 * 0.2 + 0.9 * 0.2
        assert priority(context, "attend") == pytest.approx(expected)

    def test_research_is_halved(self, event, opportunity):
        context = RecommendationContext(event=event, opportunity=opportunity)
        assert priority(context, "research") == pytest.approx(priority(context, "attend") * 0.5)

    def test_neutral_without_opportunity(self):
        assert priority(RecommendationContext(), "attend") == pytest.approx(0.5 * 0.8 + 0.5 * 0.2)


# ─── Generation ──────────────────────────────────────────────────────────────

class TestEventRecommendations:
    def test_all_event_actions(self, ranker, event, opportunity):
        intel = EventIntelligence(confidence=0.8, discussion_themes=("AI", "regtech"))
        recs = ranker.event_recommendations(
            RecommendationContext(event=event, opportunity=opportunity, intelligence=intel)
        )
        actions = {r.metadata["action"]: r for r in recs}
        assert set(actions) == {"sponsor", "speak", "attend", "research"}
        assert actions["sponsor"].type == "immediate"
        assert actions["speak"].type == "immediate"
        assert actions["attend"].type == "immediate"
        assert actions["research"].type == "research"
        assert actions["sponsor"].metadata["roi_estimate"] == "high"
        assert "AI, regtech" in actions["speak"].description
        for rec in recs:
            assert rec.related_event_id == "evt-1"
            assert rec.related_insight_id == "event_evt-1"
            assert 0.0 <= rec.priority <= 1.0

    def test_no_actions_without_signals(self, ranker):
        event = Event(id="quiet", title="Quiet Meetup", data_completeness=0.9)
        assert ranker.event_recommendations(RecommendationContext(event=event)) == []

    def test_ids_are_deterministic(self, ranker, event, opportunity):
        context = RecommendationContext(event=event, opportunity=opportunity)
        first = ranker.event_recommendations(context)
        second = ranker.event_recommendations(context)
        assert [r.id for r in first] == [r.id for r in second]
        assert first[0].id == recommendation_id("event_evt-1", "sponsor")
        assert len({r.id for r in first}) == len(first)


class TestTrendRecommendations:
    def test_fast_growing_trend(self, ranker):
        recs = ranker.trend_recommendations(
            TrendInsight(category="AI compliance", growth_rate=0.45, momentum=0.8, event_count=3)
        )
        assert [r.metadata["action"] for r in recs] == ["capitalize", "monitor", "research"]
        assert recs[0].priority == 0.7
        assert "45% growth" in recs[0].description
        assert all(r.related_insight_id == trend_insight_id("AI compliance") for r in recs)
        assert all(r.related_trend_id == "AI compliance" for r in recs)

    def test_flat_trend_with_enough_events(self, ranker):
        trend = TrendInsight(category="payments", growth_rate=0.05, momentum=0.9, event_count=12)
        assert ranker.trend_recommendations(trend) == []


class TestCompetitiveRecommendations:
    def test_match_and_gap(self, ranker):
        insight = CompetitiveInsight(
            competitors=("Plaid", "Relativity"),
            competitor_activity=("Plaid",),
            gaps=("open banking", "regtech"),
        )
        recs = ranker.competitive_recommendations(insight)
        assert [r.metadata["action"] for r in recs] == ["match", "gap"]
        assert recs[0].type == "immediate"
        assert "open banking, regtech" in recs[1].title
        assert recs[0].related_event_id is None

    def test_event_scoped(self, ranker, event):
        insight = CompetitiveInsight(competitors=("Plaid",), competitor_activity=("Plaid",))
        [rec] = ranker.competitive_recommendations(insight, event)
        assert rec.related_insight_id == "event_evt-1"
        assert rec.related_event_id == "evt-1"


class TestRankerRun:
    def test_run_ranks_everything(self, ranker, event, opportunity):
        recs = ranker.run((
            [RecommendationContext(event=event, opportunity=opportunity)],
            [TrendInsight(category="AI", growth_rate=0.5, momentum=0.9, event_count=10)],
            [CompetitiveInsight(competitors=("Plaid",), gaps=("regtech",))],
        ))
        assert recs == rank_recommendations(recs)
        assert {r.insight_type for r in recs} == {"event", "trend", "competitive"}


# ─── Generated Prose ─────────────────────────────────────────────────────────

class TestApplyProse:
    def test_merges_text_fields(self):
        rec = _rec("a", 0.8, 0.9)
        payload = json.dumps({
            "title": "  Sponsor the summit  ",
            "expectedOutcome": "Leads",
            "timeToExecute": "3 weeks",
            "requiredResources": ["Budget"],
            "priority": 0.1,
        })
        merged = apply_prose(rec, payload)
        assert merged.title == "Sponsor the summit"
        assert merged.expected_outcome == "Leads"
        assert merged.metadata == {"time_to_execute": "3 weeks", "required_resources": ["Budget"]}
        assert merged.priority == 0.8
        assert merged.confidence == 0.9

    def test_bad_payload_costs_confidence(self):
        rec = _rec("a", 0.8, 0.9)
        merged = apply_prose(rec, "no json here")
        assert merged.title == "a"
        assert merged.confidence == pytest.approx(0.8)

    def test_confidence_floor(self):
        merged = apply_prose(_rec("a", 0.8, 0.05), "[1, 2]")
        assert merged.confidence == 0.0
