"""
Pipeline runner: wires the six scoring agents together for one batch and
returns a PipelineResult.

Architecture:
  events + profile ─┬─ TopicValidator ──┬─ SignificanceEngine ─┐
  previous events ──┼─ TrendAnalyzer ───┘                      │
                    └─ OpportunityScorer ──────────────────────┴─ InsightScorer
                                                                 RecommendationRanker
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from agents.base import Agent, AgentResult
from agents.insight import InsightScorer, WeightsLike, filter_insights_by_score
from agents.opportunity import OpportunityScorer
from agents.ranker import RecommendationContext, RecommendationRanker
from agents.significance import SignificanceEngine
from agents.topic_validator import TopicValidator, filter_events_by_profile, matching_events, mentions_competitor
from agents.trends import TrendAnalyzer
from config.settings import Settings, settings as default_settings
from models.errors import MalformedInputError, ScoringEngineError
from models.schemas import (
    CompetitiveInsight,
    Event,
    EventIntelligence,
    FrequencyTrend,
    InsightScore,
    OpportunityScore,
    PeriodObservation,
    Profile,
    Recommendation,
    TrendInsight,
    TrendSignificance,
    ValidatedTopic,
    ensure_utc,
)
from utils.scoring import clamp

logger = logging.getLogger(__name__)

MAX_COMPETITIVE_GAPS = 5


@dataclass
class PipelineResult:
    """Everything one batch produced, plus the per-agent run history."""
    run_id: str
    executed_at: datetime
    total_events: int
    skipped: List[str]
    topics: List[ValidatedTopic]
    significance: Dict[str, Optional[TrendSignificance]]
    significant_topics: List[str]
    opportunities: List[OpportunityScore]
    insights: List[InsightScore]
    recommendations: List[Recommendation]
    frequency_trends: List[FrequencyTrend] = field(default_factory=list)
    run_history: List[AgentResult] = field(default_factory=list)

    def summary(self) -> str:
        lines = ["Pipeline Summary:"]
        for r in self.run_history:
            lines.append(f"  {r!r}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "executed_at": self.executed_at.isoformat(),
            "total_events": self.total_events,
            "skipped": list(self.skipped),
            "topics": [t.to_dict() for t in self.topics],
            "significance": {
                k: (v.to_dict() if v is not None else None) for k, v in self.significance.items()
            },
            "significant_topics": list(self.significant_topics),
            "opportunities": [o.to_dict() for o in self.opportunities],
            "insights": [i.to_dict() for i in self.insights],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "frequency_trends": [t.to_dict() for t in self.frequency_trends],
        }


# ─── Helpers ─────────────────────────────────────────────────────────────────


def load_events(raw_events: Iterable[Any]) -> tuple:
    """
    Build Event records, setting aside anything malformed instead of failing the batch.

    Records with neither id nor source_url get a "#<position>" fallback key so
    per-event scores never collide on the empty key.
    """
    events: List[Event] = []
    skipped: List[str] = []
    for i, raw in enumerate(raw_events):
        try:
            event = raw if isinstance(raw, Event) else Event.from_dict(raw)
        except MalformedInputError as e:
            logger.warning(f"Skipping record #{i}: {e}")
            skipped.append(f"#{i}: {e}")
            continue
        if event.is_malformed:
            logger.warning(f"Skipping record #{i} ({event.key or 'no key'}): no title, description or topics")
            skipped.append(f"#{i}: no title, description or topics")
            continue
        if not event.id and not event.source_url:
            event = replace(event, fallback_key=f"#{i}")
        events.append(event)
    return events, skipped


def _stage(agent: Agent, data: Any, history: List[AgentResult]) -> Any:
    result = agent.execute(data)
    history.append(result)
    if not result.success:
        raise ScoringEngineError(
            f"Pipeline stage '{agent.name}' failed: {result.error}",
            code="PIPELINE_STAGE_FAILED",
        )
    return result.data


def previous_topic_counts(
    topics: Sequence[ValidatedTopic],
    previous_counts: Mapping[str, Mapping[str, float]],
    previous_corpus: Optional[Sequence[Event]],
) -> Dict[str, Mapping[str, float]]:
    """Caller-supplied prior counts win; other topics are recounted in the previous corpus."""
    merged: Dict[str, Mapping[str, float]] = {}
    if previous_corpus is not None:
        for topic in topics:
            merged[topic.topic] = {
                "count": len(matching_events(topic.topic, previous_corpus)),
                "total": len(previous_corpus),
            }
    merged.update(previous_counts)
    return merged


def event_significance(
    topics: Sequence[ValidatedTopic],
    significance: Mapping[str, Optional[TrendSignificance]],
    frequency_trends: Sequence[FrequencyTrend] = (),
) -> Dict[str, TrendSignificance]:
    """Attach to each event the strongest tested topic, category or theme it mentions."""
    links = [(t.topic, t.related_events) for t in topics]
    links += [(t.key, t.related_events) for t in frequency_trends]

    by_event: Dict[str, TrendSignificance] = {}
    for key, related in links:
        result = significance.get(key)
        if result is None:
            continue
        for event_key in related:
            current = by_event.get(event_key)
            if current is None or result.significance_score > current.significance_score:
                by_event[event_key] = result
    return by_event


def trend_insights(
    topics: Sequence[ValidatedTopic],
    significance: Mapping[str, Optional[TrendSignificance]],
    frequency_trends: Sequence[FrequencyTrend] = (),
) -> List[TrendInsight]:
    """
    Topic growth is measured period-over-period where a test ran; otherwise
    the generator's percentage claim is used. Emerging categories and themes
    follow, with momentum taken from their growth. A name already covered by
    a topic is not repeated.
    """
    trends = []
    for topic in topics:
        result = significance.get(topic.topic)
        growth = (result.confidence_interval.mean if result is not None else topic.growth_rate) / 100
        trends.append(
            TrendInsight(
                category=topic.topic,
                growth_rate=growth,
                momentum=topic.momentum,
                event_count=topic.mention_count,
                significance=result,
            )
        )

    seen = {t.category.lower() for t in trends}
    for trend in frequency_trends:
        if not trend.is_emerging or trend.name.lower() in seen:
            continue
        seen.add(trend.name.lower())
        trends.append(
            TrendInsight(
                category=trend.name,
                growth_rate=trend.growth_rate / 100,
                momentum=clamp(trend.growth_rate / 100),
                event_count=trend.current_count,
                significance=trend.significance,
            )
        )
    return trends


def competitive_insight(events: Sequence[Event], profile: Optional[Profile]) -> Optional[CompetitiveInsight]:
    """
    Competitor activity = profile competitors seen in the batch. Gaps = event
    topics that never appear alongside a competitor.
    """
    if profile is None or not profile.competitors:
        return None

    pairs = [(n, n.strip().lower()) for n in profile.competitors if n.strip()]
    if not pairs:
        return None
    names = [n for n, _ in pairs]
    needles = [needle for _, needle in pairs]
    active = [n for n, needle in pairs if any(mentions_competitor(e, needle) for e in events)]

    contested = set()
    for event in events:
        if any(mentions_competitor(event, needle) for needle in needles):
            contested.update(t.lower() for t in event.topics)

    gaps: List[str] = []
    for event in events:
        for topic in event.topics:
            if topic.lower() not in contested and topic not in gaps:
                gaps.append(topic)

    if not active and not gaps:
        return None
    return CompetitiveInsight(
        competitors=tuple(names),
        competitor_activity=tuple(active),
        gaps=tuple(gaps[:MAX_COMPETITIVE_GAPS]),
    )


# ─── Runner ──────────────────────────────────────────────────────────────────


def run_pipeline(
    events: Iterable[Any],
    profile: Optional[Profile] = None,
    candidate_topics: Any = None,
    previous_counts: Optional[Mapping[str, Mapping[str, float]]] = None,
    previous_events: Optional[Iterable[Any]] = None,
    cohort: Optional[Sequence[Event]] = None,
    intelligence: Optional[Mapping[str, EventIntelligence]] = None,
    weights: Optional[WeightsLike] = None,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> PipelineResult:
    """
    End-to-end scoring of one batch.

    Parameters
    ----------
    events : iterable of Event or dict
        The current period's collected events. Malformed records are skipped.
    candidate_topics : Any
        Raw hot-topic payload from the text-generation step (JSON string,
        list, or {"hotTopics": [...]}), or a list of CandidateTopic.
    previous_counts : dict, optional
        topic → {"count", "total"} for the prior period.
    previous_events : iterable of Event or dict, optional
        The prior period's events. Enables category/theme growth and fills
        in prior topic counts that `previous_counts` does not give.
    cohort : list[Event], optional
        Comparable historical events; defaults to the batch itself.
    intelligence : dict, optional
        event key → EventIntelligence.
    """
    settings = settings or default_settings
    now = ensure_utc(now) or datetime.now(timezone.utc)
    intelligence = intelligence or {}
    history: List[AgentResult] = []

    loaded, skipped = load_events(events)
    corpus = filter_events_by_profile(loaded, profile)
    logger.info(
        f"🚀 Pipeline starting: {len(loaded)} events loaded, {len(skipped)} skipped, "
        f"{len(corpus)} match the profile"
    )

    previous_corpus: Optional[List[Event]] = None
    if previous_events is not None:
        previous_loaded, previous_skipped = load_events(previous_events)
        previous_corpus = filter_events_by_profile(previous_loaded, profile)
        logger.info(
            f"Previous period: {len(previous_loaded)} events loaded, {len(previous_skipped)} skipped, "
            f"{len(previous_corpus)} match the profile"
        )

    topics: List[ValidatedTopic] = _stage(
        TopicValidator(settings), (candidate_topics or [], corpus), history
    )
    frequency_trends: List[FrequencyTrend] = _stage(
        TrendAnalyzer(settings), (corpus, previous_corpus), history
    )

    prior = previous_topic_counts(topics, previous_counts or {}, previous_corpus)
    observations = [
        PeriodObservation(
            key=t.topic,
            current_count=t.mention_count,
            previous_count=prior[t.topic].get("count", 0),
            current_total=len(corpus),
            previous_total=prior[t.topic].get("total", 0),
        )
        for t in topics
        if t.topic in prior
    ]
    if previous_corpus is not None:
        observations += [t.observation() for t in frequency_trends]

    engine = SignificanceEngine(settings)
    significance: Dict[str, Optional[TrendSignificance]] = _stage(engine, observations, history)
    significant = engine.filter_significant_trends(
        [{"name": t.topic, "count": t.mention_count, "growth": t.growth_rate} for t in topics],
        prior,
        len(corpus),
    )
    frequency_trends = [replace(t, significance=significance.get(t.key)) for t in frequency_trends]

    opportunities: List[OpportunityScore] = _stage(
        OpportunityScorer(settings),
        (corpus, profile, list(cohort) if cohort is not None else loaded, now),
        history,
    )
    opportunity_map = {o.event_key: o for o in opportunities}

    insights: List[InsightScore] = _stage(
        InsightScorer(settings),
        (
            corpus,
            opportunity_map,
            event_significance(topics, significance, frequency_trends),
            profile,
            intelligence,
            now,
            weights,
        ),
        history,
    )

    contexts = [
        RecommendationContext(
            event=event,
            opportunity=opportunity_map.get(event.key),
            intelligence=intelligence.get(event.key),
            profile=profile,
        )
        for event in corpus
    ]
    competitive = competitive_insight(corpus, profile)
    recommendations: List[Recommendation] = _stage(
        RecommendationRanker(settings),
        (
            contexts,
            trend_insights(topics, significance, frequency_trends),
            [competitive] if competitive else [],
        ),
        history,
    )

    successes = sum(1 for r in history if r.success)
    logger.info(
        f"✅ Pipeline complete: {successes}/{len(history)} stages, "
        f"{len(filter_insights_by_score(insights, settings.MIN_INSIGHT_SCORE))} insights kept, "
        f"{len(recommendations)} recommendations"
    )

    return PipelineResult(
        run_id=str(uuid.uuid4()),
        executed_at=now,
        total_events=len(loaded),
        skipped=skipped,
        topics=topics,
        significance=significance,
        significant_topics=[t["name"] for t in significant],
        opportunities=opportunities,
        insights=insights,
        recommendations=recommendations,
        frequency_trends=frequency_trends,
        run_history=history,
    )
