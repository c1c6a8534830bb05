"""
Topic Validation Agent
----------------------
Cross-checks hot topics proposed by the text-generation step against the
literal event corpus before anything downstream trusts them.

  actual_k     = |{ e : topic_k ⊂ text(e) }|          (case-insensitive)
  validation_k = min(actual_k / claimed_k, 1)   if actual_k ≥ 2 else 0
  keep_k       ⇔ validation_k ≥ 0.3 ∧ actual_k ≥ 2

The recount replaces the claimed mention count. Survivors are enriched with
geography, industry buckets and trajectory, then ordered by

  momentum · relevance · validation          (top 20)

Input  : tuple(candidate payload | list[CandidateTopic], list[Event])
Output : list[ValidatedTopic]
"""

import logging
from collections import Counter
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agents.base import Agent
from config.settings import Settings
from models.schemas import CandidateTopic, Event, Profile, ValidatedTopic
from utils.payloads import parse_json_payload
from utils.scoring import any_contains, contains_any, lowered

logger = logging.getLogger(__name__)


# keyword containment over title + description, not classification
INDUSTRY_KEYWORDS: Dict[str, List[str]] = {
    "Legal": ["legal", "law", "compliance", "regulatory", "governance"],
    "FinTech": ["fintech", "financial technology", "banking", "finance"],
    "Healthcare": ["healthcare", "medical", "health", "pharma"],
    "Technology": ["technology", "tech", "software", "digital", "ai", "artificial intelligence"],
    "Finance": ["finance", "banking", "investment", "trading"],
    "Insurance": ["insurance", "risk management", "actuarial"],
}


# ─── Untrusted Payload ───────────────────────────────────────────────────────


class CandidateTopicPayload(BaseModel):
    """One hot topic as emitted by the generator (camelCase or snake_case keys)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", allow_inf_nan=False)

    topic: str
    mention_count: int = Field(alias="mentionCount")
    growth_rate: Optional[float] = Field(None, alias="growthRate")
    momentum: Optional[float] = None
    relevance_score: Optional[float] = Field(None, alias="relevanceScore")
    category: Optional[str] = None
    business_relevance: Optional[str] = Field(None, alias="businessRelevance")
    related_events: List[str] = Field(default_factory=list, alias="relatedEvents")

    def to_candidate(self) -> CandidateTopic:
        return CandidateTopic(
            topic=self.topic,
            mention_count=self.mention_count,
            growth_rate=self.growth_rate or 0.0,
            momentum=self.momentum or 0.0,
            relevance_score=self.relevance_score or 0.0,
            category=self.category or "",
            business_relevance=self.business_relevance,
            related_events=tuple(self.related_events),
        )


def parse_candidate_topics(payload: Any) -> List[CandidateTopic]:
    """
    Accepts a JSON string, a list of topic objects, or a mapping holding a
    "hotTopics" / "topics" list. Unparseable payloads yield no topics; items
    that fail validation are dropped individually.
    """
    try:
        decoded = parse_json_payload(payload)
    except ValueError as e:
        logger.warning(f"Discarding candidate topics: {e}")
        return []

    if isinstance(decoded, Mapping):
        items = decoded.get("hotTopics") or decoded.get("topics") or []
    else:
        items = decoded

    if not isinstance(items, list):
        logger.warning(f"Discarding candidate topics: expected a list, got {type(items).__name__}")
        return []

    candidates: List[CandidateTopic] = []
    for i, item in enumerate(items):
        try:
            candidates.append(CandidateTopicPayload.model_validate(item).to_candidate())
        except ValidationError as e:
            logger.warning(f"Dropping candidate topic #{i}: {e.error_count()} validation error(s)")
    return candidates


# ─── Corpus Helpers ──────────────────────────────────────────────────────────


def mentions_competitor(event: Event, competitor: str) -> bool:
    """`competitor` must already be lowercased."""
    return (
        competitor in event.text
        or any_contains((s.org for s in event.speakers), [competitor])
        or any_contains(event.sponsor_names, [competitor])
        or any_contains(event.participating_organizations, [competitor])
    )


def filter_events_by_profile(events: Sequence[Event], profile: Optional[Profile]) -> List[Event]:
    """
    Narrow the corpus to events relevant to the profile: any industry or ICP
    term in the event text, or any competitor in the text, speaker orgs,
    sponsors or participating orgs. Without industry/ICP terms every event is kept.
    """
    if profile is None:
        return list(events)

    industry = lowered(profile.industry_terms)
    icp = lowered(profile.icp_terms)
    if not industry and not icp:
        return list(events)
    competitors = lowered(profile.competitors)

    def _relevant(event: Event) -> bool:
        text = event.text
        if contains_any(text, industry) or contains_any(text, icp):
            return True
        return any(mentions_competitor(event, c) for c in competitors)

    return [e for e in events if _relevant(e)]


def matching_events(topic: str, events: Sequence[Event]) -> List[Event]:
    needle = topic.lower()
    return [e for e in events if needle in e.text]


def industry_breakdown(events: Sequence[Event]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for event in events:
        text = event.headline_text
        for industry, keywords in INDUSTRY_KEYWORDS.items():
            if contains_any(text, keywords):
                counts[industry] = counts.get(industry, 0) + 1
    return counts


def growth_trajectory(momentum: Optional[float]) -> str:
    m = momentum or 0.0
    if m > 0.7:
        return "rising"
    if m > 0.4:
        return "stable"
    return "declining"


def combined_score(topic: ValidatedTopic) -> float:
    validation = topic.validation_score if topic.validation_score is not None else 0.5
    return (topic.momentum or 0.0) * (topic.relevance_score or 0.0) * validation


# ─── TopicValidator ──────────────────────────────────────────────────────────


class TopicValidator(Agent):
    """
    Agent: hot-topic validation against literal source data.
    """

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__(name="TopicValidator", settings=settings)

    def validate(self, candidates: Sequence[CandidateTopic], events: Sequence[Event]) -> List[ValidatedTopic]:
        threshold = self.settings.MIN_MENTION_THRESHOLD
        validated: List[ValidatedTopic] = []

        for candidate in candidates:
            name = (candidate.topic or "").strip()
            if not name:
                self.logger.warning("Dropping candidate topic with empty name")
                continue
            if candidate.mention_count < threshold:
                self.logger.debug(
                    f"Dropping {name!r}: claimed {candidate.mention_count} mentions"
                )
                continue

            actual = len(matching_events(candidate.topic, events))
            score = min(actual / candidate.mention_count, 1.0) if actual >= threshold else 0.0

            if score < self.settings.MIN_VALIDATION_SCORE or actual < threshold:
                self.logger.warning(
                    f"Rejecting {name!r}: claimed {candidate.mention_count}, "
                    f"found {actual} (validation={score:.2f})"
                )
                continue

            validated.append(
                ValidatedTopic(
                    topic=candidate.topic,
                    mention_count=actual,
                    growth_rate=candidate.growth_rate,
                    momentum=candidate.momentum,
                    relevance_score=candidate.relevance_score,
                    category=candidate.category,
                    validation_score=score,
                    business_relevance=candidate.business_relevance,
                    related_events=candidate.related_events,
                )
            )
        return validated

    def enrich(self, topics: Sequence[ValidatedTopic], events: Sequence[Event]) -> List[ValidatedTopic]:
        enriched = []
        for topic in topics:
            related = matching_events(topic.topic, events)
            countries = Counter(e.country for e in related if e.country)
            enriched.append(
                replace(
                    topic,
                    geographic_distribution=tuple(
                        c for c, _ in countries.most_common(self.settings.TOP_COUNTRIES)
                    ),
                    industry_breakdown=industry_breakdown(related),
                    growth_trajectory=growth_trajectory(topic.momentum),
                    related_events=tuple(
                        e.key for e in related if e.key
                    )[: self.settings.MAX_RELATED_EVENTS],
                )
            )
        return enriched

    def rank(self, topics: Sequence[ValidatedTopic]) -> List[ValidatedTopic]:
        ordered = sorted(topics, key=combined_score, reverse=True)
        return ordered[: self.settings.MAX_HOT_TOPICS]

    # ------------------------------------------------------------------
    def run(self, payload: Tuple[Any, Sequence[Event]]) -> List[ValidatedTopic]:
        raw_candidates, events = payload
        if isinstance(raw_candidates, (list, tuple)) and all(
            isinstance(c, CandidateTopic) for c in raw_candidates
        ):
            candidates = list(raw_candidates)
        else:
            candidates = parse_candidate_topics(raw_candidates)

        self.logger.info(f"Validating {len(candidates)} candidate topics against {len(events)} events…")
        validated = self.validate(candidates, events)
        if not validated:
            self.logger.warning("No candidate topics survived validation")
            return []

        ranked = self.rank(self.enrich(validated, events))
        self.logger.info(f"{len(ranked)} topics validated")
        return ranked
