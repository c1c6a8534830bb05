"""
End-to-end pipeline tests using the sample batch.
Run with: python -m pytest tests/ -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json
from datetime import datetime, timedelta, timezone

import pytest
from agents.base import Agent
from models.errors import InvalidInputError, ScoringEngineError
from models.schemas import Event, Profile
from utils import pipeline as pipeline_module
from utils.pipeline import (
    competitive_insight,
    load_events,
    run_pipeline,
)
from utils.sample_data import (
    sample_candidate_topics,
    sample_events,
    sample_intelligence,
    sample_previous_counts,
    sample_profile,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


# ─── Fixtures ────────────────────────────────────────────────────────────────

@pytest.fixture
def result():
    return run_pipeline(
        events=sample_events(NOW),
        profile=sample_profile(),
        candidate_topics=sample_candidate_topics(),
        previous_counts=sample_previous_counts(),
        intelligence=sample_intelligence(),
        now=NOW,
    )


def _bulk_events(n, topic, offset=0):
    return [
        {"id": f"{topic}-{offset + i}", "title": f"{topic} conference {i}", "topics": [topic]}
        for i in range(n)
    ]


# ─── Loading ─────────────────────────────────────────────────────────────────

class TestLoadEvents:
    def test_malformed_records_are_skipped(self):
        events, skipped = load_events([
            {"id": "ok", "title": "Summit"},
            {"id": "empty"},
            "not a mapping",
            Event(id="obj", description="already built"),
        ])
        assert [e.key for e in events] == ["ok", "obj"]
        assert len(skipped) == 2

    def test_sponsor_variants(self):
        [event], _ = load_events([{
            "id": "s",
            "title": "Summit",
            "sponsors": ["Plain", {"name": "Tiered", "level": "gold"}, {"name": "NoLevel"}],
        }])
        assert event.sponsor_names == ("Plain", "Tiered", "NoLevel")
        assert event.sponsor_tiers == ("gold",)


# ─── End-to-End ──────────────────────────────────────────────────────────────

class TestRunPipeline:
    def test_counts(self, result):
        assert result.total_events == 6
        assert len(result.skipped) == 1
        assert len(result.run_history) == 6
        assert all(r.success for r in result.run_history)

    def test_only_supported_topics_survive(self, result):
        names = [t.topic for t in result.topics]
        assert "quantum payments" not in names
        assert "AI compliance" in names
        ai = next(t for t in result.topics if t.topic == "AI compliance")
        assert ai.mention_count == 3
        assert "evt-fintech-summit" in ai.related_events

    def test_small_periods_are_not_assessed(self, result):
        # six events in the current period, below the minimum sample size
        assert result.significance == {"AI compliance": None, "open banking": None}
        assert result.significant_topics == []

    def test_without_previous_events_nothing_is_emerging(self, result):
        assert result.frequency_trends
        assert {t.kind for t in result.frequency_trends} == {"category"}
        assert not any(t.is_emerging for t in result.frequency_trends)

    def test_scores_are_bounded(self, result):
        for opp in result.opportunities:
            assert 0.0 <= opp.overall_score <= 1.0
        for insight in result.insights:
            assert 0.0 <= insight.overall_score <= 1.0
            assert insight.weights.total == pytest.approx(1.0, abs=1e-9)

    def test_near_term_summit_is_urgent(self, result):
        summit = next(o for o in result.opportunities if o.event_key == "evt-fintech-summit")
        assert summit.days_until_event == 5
        assert summit.urgency_level == "critical"
        assert summit.icp_match_score >= 0.4

    def test_recommendations_are_ranked(self, result):
        recs = result.recommendations
        assert recs
        for a, b in zip(recs, recs[1:]):
            assert a.priority >= b.priority - 0.01 - 1e-9
        assert any(r.insight_type == "competitive" for r in recs)
        assert any(r.metadata.get("action") == "speak" for r in recs)

    def test_to_dict_is_json_serializable(self, result):
        data = json.loads(json.dumps(result.to_dict()))
        assert data["total_events"] == 6
        assert set(data["significance"]) == {"AI compliance", "open banking"}
        assert "Pipeline Summary:" in result.summary()

    def test_significance_over_large_periods(self):
        events = _bulk_events(40, "ai compliance") + _bulk_events(160, "payments")
        result = run_pipeline(
            events=events,
            candidate_topics=[{"topic": "ai compliance", "mentionCount": 40, "momentum": 0.8,
                               "relevanceScore": 0.9}],
            previous_counts={"ai compliance": {"count": 20, "total": 200}},
            now=NOW,
        )
        sig = result.significance["ai compliance"]
        assert sig is not None
        assert sig.significance.is_significant
        assert sig.recommendation == "strong"
        assert result.significant_topics == ["ai compliance"]
        # the topic result is carried into its related events
        insight = next(i for i in result.insights if i.event_key == "ai compliance-0")
        assert insight.breakdown.confidence.factors["statistical_significance"] == pytest.approx(
            sig.significance_score
        )

    def test_previous_period_drives_category_and_theme_trends(self):
        events = _bulk_events(40, "ai compliance") + _bulk_events(160, "payments")
        previous = _bulk_events(20, "ai compliance", offset=100) + _bulk_events(180, "payments", offset=100)
        result = run_pipeline(
            events=events,
            candidate_topics=[{"topic": "ai compliance", "mentionCount": 40, "momentum": 0.8,
                               "relevanceScore": 0.9}],
            previous_events=previous,
            now=NOW,
        )
        assert len(result.run_history) == 6

        # prior topic counts are recounted from the previous events
        assert result.significance["ai compliance"].significance.is_significant

        trends = {t.key: t for t in result.frequency_trends}
        ai = trends["theme:ai"]
        assert (ai.current_count, ai.previous_count) == (40, 20)
        assert ai.growth_rate == pytest.approx(100.0)
        assert ai.is_emerging
        assert ai.significance is result.significance["theme:ai"]
        assert ai.significance.recommendation == "strong"

        conference = trends["category:conference"]
        assert conference.growth_rate == 0.0
        assert not conference.is_emerging

        trend_ids = {r.related_trend_id for r in result.recommendations if r.insight_type == "trend"}
        assert {"ai", "compliance"} <= trend_ids
        assert "conference" not in trend_ids
        data = json.loads(json.dumps(result.to_dict()))
        assert any(t["name"] == "ai" and t["is_emerging"] for t in data["frequency_trends"])

    def test_keyless_events_keep_their_own_scores(self):
        soon = {"title": "Fintech summit", "starts_at": (NOW + timedelta(days=5)).isoformat(),
                "data_completeness": 0.2}
        later = {"title": "Fintech forum", "starts_at": (NOW + timedelta(days=200)).isoformat(),
                 "data_completeness": 0.2}
        result = run_pipeline(events=[soon, later], now=NOW)

        opportunities = {o.event_key: o for o in result.opportunities}
        assert list(opportunities) == ["#0", "#1"]
        assert opportunities["#0"].urgency_score == pytest.approx(1 - 5 / 30)
        assert opportunities["#1"].urgency_score == 0.0

        for insight in result.insights:
            time_sensitivity = insight.breakdown.urgency.factors["time_sensitivity"]
            assert time_sensitivity == pytest.approx(opportunities[insight.event_key].urgency_score)

        research = [r for r in result.recommendations if r.insight_type == "event"]
        assert {r.related_insight_id for r in research} == {"event_#0", "event_#1"}
        assert len({r.id for r in result.recommendations}) == len(result.recommendations)

    def test_without_profile_or_topics(self):
        result = run_pipeline(events=sample_events(NOW), now=NOW)
        assert result.topics == []
        assert len(result.opportunities) == 6

    def test_stage_failure_raises(self, monkeypatch):
        class Exploding(Agent):
            def __init__(self, settings=None):
                super().__init__(name="OpportunityScorer", settings=settings)

            def run(self, data):
                raise RuntimeError("boom")

        monkeypatch.setattr(pipeline_module, "OpportunityScorer", Exploding)
        with pytest.raises(ScoringEngineError) as exc_info:
            run_pipeline(events=sample_events(NOW), now=NOW)
        assert exc_info.value.code == "PIPELINE_STAGE_FAILED"
        assert "boom" in str(exc_info.value)


# ─── Competitive Insight ─────────────────────────────────────────────────────

class TestCompetitiveInsight:
    def test_activity_and_gaps(self):
        events, _ = load_events(sample_events(NOW))
        insight = competitive_insight(events, sample_profile())
        assert insight.competitor_activity == ("Plaid", "Relativity")
        assert insight.gaps == ("risk management",)

    def test_none_without_competitors(self):
        events, _ = load_events(sample_events(NOW))
        assert competitive_insight(events, Profile(icp_terms=("fintech",))) is None
        assert competitive_insight(events, None) is None


# ─── Agent Envelope ──────────────────────────────────────────────────────────

class TestAgentEnvelope:
    def _agent(self, error):
        class Broken(Agent):
            def __init__(self):
                super().__init__(name="Broken")

            def run(self, data):
                raise error

        return Broken()

    def test_engine_errors_keep_their_code(self):
        result = self._agent(InvalidInputError("negative count")).execute(None)
        assert not result.success
        assert result.code == "INVALID_INPUT"
        assert result.metadata["error_type"] == "InvalidInputError"
        assert result.to_dict()["error"] == "negative count"

    def test_unexpected_errors_are_coded(self):
        result = self._agent(KeyError("missing")).execute(None)
        assert not result.success
        assert result.code == "UNEXPECTED_ERROR"
        assert "Broken" in repr(result)

    def test_success(self):
        class Echo(Agent):
            def __init__(self):
                super().__init__(name="Echo")

            def run(self, data):
                return data

        result = Echo().execute([1, 2])
        assert result.success
        assert result.data == [1, 2]
        assert result.code is None
        assert result.duration_seconds >= 0
