"""
Topic validation tests.
Run with: python -m pytest tests/ -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json

import pytest
from agents.topic_validator import (
    TopicValidator,
    combined_score,
    filter_events_by_profile,
    growth_trajectory,
    industry_breakdown,
    parse_candidate_topics,
)
from models.schemas import CandidateTopic, Event, NameOnlySponsor, Profile, Speaker
from utils.payloads import parse_json_payload


def _event(key, title="", description="", country=None, topics=()):
    return Event(id=key, title=title, description=description, country=country, topics=tuple(topics))


@pytest.fixture
def corpus():
    return [
        _event("e1", "AI Compliance Summit", "Regulatory technology for banking", "UK"),
        _event("e2", "LegalTech Forum", "AI compliance for law firms", "USA"),
        _event("e3", "Fintech Week", "Payments and AI compliance", "UK"),
        _event("e4", "Health Data Day", "Healthcare analytics", "Germany"),
        _event("e5", "Open Banking Live", "", "UK", topics=["open banking"]),
        _event("e6", "Banking APIs", "Open banking standards", "France"),
    ]


@pytest.fixture
def validator():
    return TopicValidator()


# ─── Parsing ─────────────────────────────────────────────────────────────────

class TestParsing:
    def test_camel_case_payload(self):
        payload = json.dumps({
            "hotTopics": [
                {"topic": "AI compliance", "mentionCount": 3, "growthRate": 40,
                 "momentum": 0.8, "relevanceScore": 0.9, "category": "Compliance"},
            ]
        })
        [topic] = parse_candidate_topics(payload)
        assert topic.topic == "AI compliance"
        assert topic.mention_count == 3
        assert topic.growth_rate == 40.0
        assert topic.relevance_score == 0.9

    def test_snake_case_list(self):
        [topic] = parse_candidate_topics([{"topic": "x", "mention_count": 2}])
        assert topic.mention_count == 2
        assert topic.momentum == 0.0

    def test_fenced_payload(self):
        raw = "```json\n[{\"topic\": \"x\", \"mentionCount\": 2}]\n```"
        assert len(parse_candidate_topics(raw)) == 1

    def test_invalid_items_are_dropped_individually(self):
        topics = parse_candidate_topics([
            {"topic": "ok", "mentionCount": 2},
            {"topic": "no count"},
            {"mentionCount": 4},
            {"topic": "bad momentum", "mentionCount": 2, "momentum": float("nan")},
        ])
        assert [t.topic for t in topics] == ["ok"]

    def test_unparseable_payload_yields_nothing(self):
        assert parse_candidate_topics("the model refused") == []
        assert parse_candidate_topics({"hotTopics": "nope"}) == []

    def test_json_payload_tolerates_prose(self):
        assert parse_json_payload('Here you go: {"a": 1} hope it helps') == {"a": 1}
        assert parse_json_payload(b"[1, 2]") == [1, 2]
        with pytest.raises(ValueError):
            parse_json_payload("   ")


# ─── Validation ──────────────────────────────────────────────────────────────

class TestValidation:
    def test_inflated_claim_is_rejected(self, validator, corpus):
        claimed = CandidateTopic(topic="Healthcare analytics", mention_count=50, momentum=0.9)
        assert validator.validate([claimed], corpus) == []

    def test_single_match_is_rejected(self, validator, corpus):
        claimed = CandidateTopic(topic="health data", mention_count=2)
        assert validator.validate([claimed], corpus) == []

    def test_recount_replaces_claim(self, validator, corpus):
        claimed = CandidateTopic(topic="ai compliance", mention_count=4, momentum=0.8)
        [topic] = validator.validate([claimed], corpus)
        assert topic.mention_count == 3
        assert topic.validation_score == pytest.approx(0.75)

    def test_under_claim_caps_validation_at_one(self, validator, corpus):
        claimed = CandidateTopic(topic="AI Compliance", mention_count=2)
        [topic] = validator.validate([claimed], corpus)
        assert topic.mention_count == 3
        assert topic.validation_score == 1.0

    def test_low_validation_score_is_rejected(self, validator, corpus):
        # 3 found / 20 claimed = 0.15 < 0.3
        claimed = CandidateTopic(topic="ai compliance", mention_count=20)
        assert validator.validate([claimed], corpus) == []

    def test_claims_below_threshold_and_empty_names_are_dropped(self, validator, corpus):
        candidates = [
            CandidateTopic(topic="ai compliance", mention_count=1),
            CandidateTopic(topic="   ", mention_count=5),
        ]
        assert validator.validate(candidates, corpus) == []

    def test_topics_field_counts_as_text(self, validator, corpus):
        [topic] = validator.validate([CandidateTopic(topic="open banking", mention_count=2)], corpus)
        assert topic.mention_count == 2


# ─── Enrichment & Ranking ────────────────────────────────────────────────────

class TestEnrichment:
    def test_enrich_adds_geography_and_related_events(self, validator, corpus):
        validated = validator.validate(
            [CandidateTopic(topic="ai compliance", mention_count=3, momentum=0.8)], corpus
        )
        [topic] = validator.enrich(validated, corpus)
        assert topic.geographic_distribution == ("UK", "USA")
        assert topic.related_events == ("e1", "e2", "e3")
        assert topic.growth_trajectory == "rising"
        assert topic.industry_breakdown["Legal"] == 3

    def test_industry_breakdown_ignores_topics_field(self):
        event = _event("e", "Morning Meetup", "", topics=["healthcare"])
        assert industry_breakdown([event]) == {}

    def test_growth_trajectory(self):
        assert growth_trajectory(0.71) == "rising"
        assert growth_trajectory(0.7) == "stable"
        assert growth_trajectory(0.41) == "stable"
        assert growth_trajectory(0.4) == "declining"
        assert growth_trajectory(None) == "declining"

    def test_rank_orders_by_combined_score(self, validator, corpus):
        candidates = [
            CandidateTopic(topic="open banking", mention_count=2, momentum=0.5, relevance_score=0.5),
            CandidateTopic(topic="ai compliance", mention_count=3, momentum=0.9, relevance_score=0.9),
        ]
        ranked = validator.run((candidates, corpus))
        assert [t.topic for t in ranked] == ["ai compliance", "open banking"]
        assert combined_score(ranked[0]) >= combined_score(ranked[1])

    def test_run_accepts_raw_payload(self, validator, corpus):
        payload = json.dumps([
            {"topic": "ai compliance", "mentionCount": 3, "momentum": 0.6, "relevanceScore": 0.5},
            {"topic": "quantum payments", "mentionCount": 50, "momentum": 0.99},
        ])
        ranked = validator.run((payload, corpus))
        assert [t.topic for t in ranked] == ["ai compliance"]
        assert ranked[0].growth_trajectory == "stable"

    def test_rank_truncates_to_max_hot_topics(self, validator, corpus):
        many = validator.validate(
            [CandidateTopic(topic="ai compliance", mention_count=3)] * 25, corpus
        )
        assert len(validator.rank(many)) == validator.settings.MAX_HOT_TOPICS


# ─── Profile Filter ──────────────────────────────────────────────────────────

class TestProfileFilter:
    def test_keeps_everything_without_terms(self, corpus):
        assert filter_events_by_profile(corpus, None) == corpus
        assert filter_events_by_profile(corpus, Profile(competitors=("Acme",))) == corpus
        assert filter_events_by_profile(corpus, Profile(industry_terms=("",), icp_terms=("",))) == corpus

    def test_matches_industry_or_icp_terms(self, corpus):
        kept = filter_events_by_profile(corpus, Profile(industry_terms=("healthcare",)))
        assert [e.key for e in kept] == ["e4"]

    def test_matches_competitor_in_sponsors_or_speakers(self, corpus):
        sponsored = Event(id="s", title="Retail Expo", sponsors=(NameOnlySponsor("Acme Corp"),))
        spoken = Event(id="k", title="Retail Days", speakers=(Speaker("Bo", org="ACME"),))
        profile = Profile(industry_terms=("healthcare",), competitors=("acme",))
        kept = filter_events_by_profile(corpus + [sponsored, spoken], profile)
        assert [e.key for e in kept] == ["e4", "s", "k"]
