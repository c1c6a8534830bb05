"""
Insight Scoring Agent
---------------------
Blends four factors into one overall score with a full breakdown:

  Relevance  = 0.5·ICP + 0.3·IndustryAlignment + 0.2·ProfileMatch
  Impact     = 0.4·BusinessValue + 0.3·ROI + 0.2·MarketSize + 0.1·CompetitiveAdv
  Urgency    = 0.5·TimeSensitivity + 0.3·DeadlineProximity + 0.2·MarketTiming
  Confidence = 0.4·DataQuality + 0.4·StatSignificance + 0.2·SourceReliability

  Overall    = Σ factor · w_factor,   Σ w = 1 after normalization

IndustryAlignment and ProfileMatch share one formula but carry distinct weights.

Input  : tuple(events, opportunity scores, significance, profile, intelligence, now, weights)
Output : list[InsightScore]
"""

import math
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from agents.base import Agent
from agents.opportunity import ROI_SCORES, days_until
from config.settings import Settings
from models.errors import InvalidInputError
from models.schemas import (
    Event,
    EventIntelligence,
    FactorScore,
    InsightScore,
    OpportunityScore,
    Profile,
    ScoreBreakdown,
    ScoringWeights,
    TrendSignificance,
    ensure_utc,
)
from utils.scoring import clamp, lowered, term_fraction

logger = logging.getLogger(__name__)

WeightsLike = Union[ScoringWeights, Mapping[str, float]]

MARKET_TIMING: Dict[str, float] = {
    "critical": 1.0,
    "high": 0.8,
    "medium": 0.6,
    "low": 0.4,
    "none": 0.5,
}

VERIFICATION_RELIABILITY: Dict[str, float] = {"verified": 0.9, "outdated": 0.3}

# (predicate, points) for events without a precomputed completeness
DATA_QUALITY_CHECKLIST = (
    (lambda e: bool(e.title), 0.1),
    (lambda e: bool(e.description) and len(e.description) > 50, 0.2),
    (lambda e: bool(e.topics), 0.15),
    (lambda e: bool(e.speakers), 0.15),
    (lambda e: bool(e.sponsors), 0.1),
    (lambda e: bool(e.city and e.country), 0.1),
    (lambda e: e.starts_at is not None, 0.1),
    (lambda e: bool(e.organizer), 0.1),
)


# ─── Weights ─────────────────────────────────────────────────────────────────


def default_weights(settings: Settings) -> ScoringWeights:
    return ScoringWeights(
        relevance=settings.RELEVANCE_WEIGHT,
        impact=settings.IMPACT_WEIGHT,
        urgency=settings.URGENCY_WEIGHT,
        confidence=settings.CONFIDENCE_WEIGHT,
    )


def normalize_weights(
    custom: Optional[WeightsLike] = None,
    defaults: Optional[ScoringWeights] = None,
) -> ScoringWeights:
    """
    Merge a (possibly partial) override into the defaults and rescale so the
    four weights sum to 1. A zero total falls back to the normalized defaults.
    """
    defaults = defaults or ScoringWeights()
    merged = defaults.as_dict()

    if custom is not None:
        overrides = custom.as_dict() if isinstance(custom, ScoringWeights) else dict(custom)
        unknown = set(overrides) - set(merged)
        if unknown:
            raise InvalidInputError(f"Unknown weight(s): {', '.join(sorted(unknown))}")
        merged.update(overrides)

    for name, value in merged.items():
        if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidInputError(f"Weight {name!r} must be a number, got {value!r}")
        if not math.isfinite(value) or value < 0:
            raise InvalidInputError(f"Weight {name!r} must be finite and non-negative, got {value!r}")

    total = sum(merged.values())
    if total == 0:
        logger.warning("All weights are zero; using defaults")
        if custom is None:
            raise InvalidInputError("Default weights sum to zero")
        return normalize_weights(None, defaults)

    return ScoringWeights(**{name: value / total for name, value in merged.items()})


# ─── Relevance ───────────────────────────────────────────────────────────────


def industry_match(event: Event, profile: Profile) -> float:
    terms = lowered(profile.industry_terms)
    if not terms:
        return 0.5
    return term_fraction(event.text, terms)


def relevance_factor(
    event: Event,
    profile: Optional[Profile],
    opportunity: Optional[OpportunityScore],
) -> FactorScore:
    if profile is None:
        return FactorScore(
            overall=0.5,
            factors={"user_profile_match": 0.5, "industry_alignment": 0.5, "icp_match": 0.5},
        )

    user_profile_match = industry_match(event, profile)
    industry_alignment = industry_match(event, profile)

    if opportunity is not None:
        icp = opportunity.icp_match_score
    elif lowered(profile.icp_terms):
        icp = term_fraction(event.text, profile.icp_terms)
    else:
        icp = 0.5

    overall = icp * 0.5 + industry_alignment * 0.3 + user_profile_match * 0.2
    return FactorScore(
        overall=clamp(overall),
        factors={
            "user_profile_match": user_profile_match,
            "industry_alignment": industry_alignment,
            "icp_match": icp,
        },
    )


# ─── Impact ──────────────────────────────────────────────────────────────────


def market_size(event: Event, intelligence: Optional[EventIntelligence]) -> float:
    score = 0.5
    tiers = intelligence.sponsor_tiers if intelligence and intelligence.sponsor_tiers else event.sponsor_tiers
    if tiers:
        score += min(0.3, len(tiers) * 0.1)
    if len(event.speakers) > 10:
        score += 0.1
    if intelligence and intelligence.strategic_significance:
        score += intelligence.strategic_significance * 0.1
    return min(1.0, score)


def competitive_advantage(event: Event, intelligence: Optional[EventIntelligence]) -> float:
    if intelligence and intelligence.strategic_significance is not None:
        return intelligence.strategic_significance
    if event.sponsors:
        return 0.6
    return 0.5


def impact_factor(
    event: Event,
    opportunity: Optional[OpportunityScore],
    intelligence: Optional[EventIntelligence],
) -> FactorScore:
    business_value = opportunity.overall_score if opportunity is not None else 0.5
    roi = ROI_SCORES.get(opportunity.roi_estimate, 0.5) if opportunity is not None else 0.5
    size = market_size(event, intelligence)
    advantage = competitive_advantage(event, intelligence)

    overall = business_value * 0.4 + roi * 0.3 + size * 0.2 + advantage * 0.1
    return FactorScore(
        overall=clamp(overall),
        factors={
            "business_value": business_value,
            "roi_estimate": roi,
            "market_size": size,
            "competitive_advantage": advantage,
        },
    )


# ─── Urgency ─────────────────────────────────────────────────────────────────


def deadline_proximity(days: Optional[int]) -> float:
    if days is None:
        return 0.5
    if days <= 7:
        return 1.0
    if days <= 30:
        return 0.8
    if days <= 90:
        return 0.6
    return 0.4


def urgency_factor(
    event: Event,
    opportunity: Optional[OpportunityScore],
    now: datetime,
) -> FactorScore:
    time_sensitivity = 0.5
    proximity = 0.5
    timing = 0.5

    if opportunity is not None:
        time_sensitivity = opportunity.urgency_score
        proximity = deadline_proximity(opportunity.days_until_event)
        timing = MARKET_TIMING.get(opportunity.urgency_level, 0.5)
    else:
        days = days_until(event.starts_at, now)
        if days is not None and 0 < days <= 30:
            time_sensitivity = proximity = 0.8
        elif days is not None and 30 < days <= 90:
            time_sensitivity = proximity = 0.6

    overall = time_sensitivity * 0.5 + proximity * 0.3 + timing * 0.2
    return FactorScore(
        overall=clamp(overall),
        factors={
            "time_sensitivity": time_sensitivity,
            "deadline_proximity": proximity,
            "market_timing": timing,
        },
    )


# ─── Confidence ──────────────────────────────────────────────────────────────


def data_quality_checklist(event: Event) -> float:
    return min(1.0, sum(points for check, points in DATA_QUALITY_CHECKLIST if check(event)))


def source_reliability(event: Event, intelligence: Optional[EventIntelligence]) -> float:
    score = VERIFICATION_RELIABILITY.get(event.verification_status or "", 0.5)
    if intelligence and intelligence.confidence is not None:
        score = (score + intelligence.confidence) / 2
    if event.source_url:
        score += 0.1
    return min(1.0, score)


def confidence_factor(
    event: Event,
    significance: Optional[TrendSignificance],
    intelligence: Optional[EventIntelligence],
) -> FactorScore:
    if event.data_completeness is not None:
        data_quality = event.data_completeness
    else:
        data_quality = data_quality_checklist(event)

    if significance is not None:
        statistical = significance.significance_score
    elif intelligence and intelligence.confidence is not None:
        statistical = intelligence.confidence
    else:
        statistical = 0.5

    reliability = source_reliability(event, intelligence)

    overall = data_quality * 0.4 + statistical * 0.4 + reliability * 0.2
    return FactorScore(
        overall=clamp(overall),
        factors={
            "data_quality": data_quality,
            "statistical_significance": statistical,
            "source_reliability": reliability,
        },
    )


# ─── Collection Helpers ──────────────────────────────────────────────────────


def _overall_of(item: Any) -> Optional[float]:
    if isinstance(item, InsightScore):
        return item.overall_score
    if isinstance(item, Mapping):
        score = item.get("insight_score")
    else:
        score = getattr(item, "insight_score", None)
    if isinstance(score, InsightScore):
        return score.overall_score
    if isinstance(score, Mapping):
        return score.get("overall_score")
    return None


def filter_insights_by_score(items: Sequence[Any], min_score: float = 0.3) -> List[Any]:
    """Keep items whose insight score reaches `min_score`. Unscored items are dropped."""
    kept = []
    for item in items:
        overall = _overall_of(item)
        if overall is not None and overall >= min_score:
            kept.append(item)
    return kept


def sort_insights_by_score(items: Sequence[Any], descending: bool = True) -> List[Any]:
    """Stable sort by overall insight score; unscored items count as 0."""
    return sorted(items, key=lambda item: _overall_of(item) or 0.0, reverse=descending)


# ─── InsightScorer ───────────────────────────────────────────────────────────


class InsightScorer(Agent):
    """
    Agent: multi-factor insight scoring with a transparent breakdown.

    Every missing input falls back to a neutral value; only invalid weights raise.
    """

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__(name="InsightScorer", settings=settings)

    def score(
        self,
        event: Event,
        opportunity: Optional[OpportunityScore] = None,
        significance: Optional[TrendSignificance] = None,
        profile: Optional[Profile] = None,
        custom_weights: Optional[WeightsLike] = None,
        intelligence: Optional[EventIntelligence] = None,
        now: Optional[datetime] = None,
    ) -> InsightScore:
        now = ensure_utc(now) or datetime.now(timezone.utc)
        weights = normalize_weights(custom_weights, default_weights(self.settings))

        breakdown = ScoreBreakdown(
            relevance=relevance_factor(event, profile, opportunity),
            impact=impact_factor(event, opportunity, intelligence),
            urgency=urgency_factor(event, opportunity, now),
            confidence=confidence_factor(event, significance, intelligence),
        )

        overall = (
            breakdown.relevance.overall * weights.relevance
            + breakdown.impact.overall * weights.impact
            + breakdown.urgency.overall * weights.urgency
            + breakdown.confidence.overall * weights.confidence
        )

        return InsightScore(
            overall_score=clamp(overall),
            breakdown=breakdown,
            weights=weights,
            calculated_at=now,
            event_key=event.key,
        )

    # ------------------------------------------------------------------
    def run(
        self,
        payload: Tuple[
            Sequence[Event],
            Mapping[str, OpportunityScore],
            Mapping[str, TrendSignificance],
            Optional[Profile],
            Mapping[str, EventIntelligence],
            Optional[datetime],
            Optional[WeightsLike],
        ],
    ) -> List[InsightScore]:
        events, opportunities, significance, profile, intelligence, now, weights = payload
        self.logger.info(f"Scoring insights for {len(events)} events…")

        scores = [
            self.score(
                event,
                opportunity=opportunities.get(event.key),
                significance=significance.get(event.key),
                profile=profile,
                custom_weights=weights,
                intelligence=intelligence.get(event.key),
                now=now,
            )
            for event in events
        ]

        passing = len(filter_insights_by_score(scores, self.settings.MIN_INSIGHT_SCORE))
        self.logger.info(
            f"{passing}/{len(scores)} insights at or above {self.settings.MIN_INSIGHT_SCORE}"
        )
        return scores
