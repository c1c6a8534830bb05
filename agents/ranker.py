"""
Recommendation Ranking Agent
----------------------------
Turns scored events, trends and competitive observations into typed
recommendations and orders them for presentation.

  Priority    = 0.3·Urgency + 0.3·Impact + 0.2·Feasibility + 0.2·Relevance
                (× 0.5 for research actions)
  Feasibility = 0.5 + 0.3·completeness + 0.2·intel_confidence
                + 0.1·[organizer] + 0.1·[source_url]          (≤ 1)

Ordering: priority descending; priorities within 0.01 of each other are
tied and broken by confidence descending; remaining ties keep input order.

Input  : tuple(list[RecommendationContext], list[TrendInsight], list[CompetitiveInsight])
Output : list[Recommendation]   (ranked)
"""

import hashlib
import logging
from dataclasses import dataclass, replace
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agents.base import Agent
from agents.opportunity import URGENCY_ACTIONS
from config.settings import Settings, settings as default_settings
from models.schemas import (
    CompetitiveInsight,
    Event,
    EventIntelligence,
    OpportunityScore,
    Profile,
    Recommendation,
    TrendInsight,
)
from utils.payloads import parse_json_payload
from utils.scoring import clamp

logger = logging.getLogger(__name__)

# absorbs float noise such as |0.81 − 0.80| = 0.010000000000000009
_FLOAT_EPS = 1e-9


# ─── Context ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RecommendationContext:
    event: Optional[Event] = None
    opportunity: Optional[OpportunityScore] = None
    intelligence: Optional[EventIntelligence] = None
    profile: Optional[Profile] = None


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


def recommendation_id(insight_id: str, action: str) -> str:
    return f"rec_{_digest(f'{insight_id}_{action}')}"


def event_insight_id(event: Event) -> str:
    return f"event_{event.key}"


def trend_insight_id(category: str) -> str:
    return f"trend_{_digest(category)}"


# ─── Priority ────────────────────────────────────────────────────────────────


def feasibility(context: RecommendationContext) -> float:
    score = 0.5
    event = context.event
    if event is not None and event.data_completeness is not None:
        score += event.data_completeness * 0.3
    if context.intelligence is not None and context.intelligence.confidence is not None:
        score += context.intelligence.confidence * 0.2
    if event is not None and event.organizer:
        score += 0.1
    if event is not None and event.source_url:
        score += 0.1
    return min(1.0, score)


def priority(
    context: RecommendationContext,
    action_type: str,
    research_factor: float = default_settings.RESEARCH_PRIORITY_FACTOR,
) -> float:
    opp = context.opportunity
    urgency = opp.urgency_score if opp is not None else 0.5
    impact = opp.overall_score if opp is not None else 0.5
    relevance = opp.icp_match_score if opp is not None else 0.5

    value = urgency * 0.3 + impact * 0.3 + feasibility(context) * 0.2 + relevance * 0.2
    if action_type == "research":
        value *= research_factor
    return clamp(value)


def compare_recommendations(
    a: Recommendation,
    b: Recommendation,
    tolerance: float = default_settings.PRIORITY_TIE_TOLERANCE,
) -> int:
    """
    Higher priority first; priorities within `tolerance` count as tied and
    fall through to confidence.

    The tolerance makes "tied" non-transitive: with priorities 0.800, 0.792
    and 0.784 the outer pair is ordered while each neighbour pair is tied,
    so this is not a total order and the ranked list depends on which pairs
    the sort compares. Callers should not rely on more than "roughly by
    priority, then confidence".
    """
    if abs(a.priority - b.priority) > tolerance + _FLOAT_EPS:
        return -1 if a.priority > b.priority else 1
    if a.confidence != b.confidence:
        return -1 if a.confidence > b.confidence else 1
    return 0


def rank_recommendations(
    recommendations: Sequence[Recommendation],
    tolerance: float = default_settings.PRIORITY_TIE_TOLERANCE,
) -> List[Recommendation]:
    """Stable sort; true ties keep their input order."""
    return sorted(
        recommendations,
        key=cmp_to_key(lambda a, b: compare_recommendations(a, b, tolerance)),
    )


# ─── LLM Prose ───────────────────────────────────────────────────────────────


class RecommendationProse(BaseModel):
    """Text fields the generator may rewrite. Numeric claims are never read."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    why: Optional[str] = None
    when: Optional[str] = None
    how: Optional[str] = None
    expected_outcome: Optional[str] = Field(None, alias="expectedOutcome")
    time_to_execute: Optional[str] = Field(None, alias="timeToExecute")
    required_resources: Optional[List[str]] = Field(None, alias="requiredResources")


def apply_prose(recommendation: Recommendation, payload: Any) -> Recommendation:
    """
    Merge generated prose into a template recommendation. An unusable payload
    keeps the template text and costs 0.1 confidence.
    """
    try:
        decoded = parse_json_payload(payload)
        prose = RecommendationProse.model_validate(decoded)
    except (ValueError, ValidationError) as e:
        logger.warning(f"Ignoring prose for {recommendation.id}: {e}")
        return replace(recommendation, confidence=max(0.0, recommendation.confidence - 0.1))

    updates: Dict[str, Any] = {
        name: value.strip()
        for name, value in (
            ("title", prose.title),
            ("description", prose.description),
            ("why", prose.why),
            ("when", prose.when),
            ("how", prose.how),
            ("expected_outcome", prose.expected_outcome),
        )
        if value and value.strip()
    }

    metadata = dict(recommendation.metadata)
    if prose.time_to_execute:
        metadata["time_to_execute"] = prose.time_to_execute
    if prose.required_resources:
        metadata["required_resources"] = list(prose.required_resources)

    return replace(recommendation, metadata=metadata, **updates)


# ─── RecommendationRanker ────────────────────────────────────────────────────


class RecommendationRanker(Agent):
    """
    Agent: recommendation generation and deterministic ranking.

    `type` comes from a decision table per rule; there are no transitions.
    """

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__(name="RecommendationRanker", settings=settings)

    def priority(self, context: RecommendationContext, action_type: str) -> float:
        return priority(context, action_type, self.settings.RESEARCH_PRIORITY_FACTOR)

    def rank(self, recommendations: Sequence[Recommendation]) -> List[Recommendation]:
        return rank_recommendations(recommendations, self.settings.PRIORITY_TIE_TOLERANCE)

    # ── events ─────────────────────────────────────────────────────────

    def event_recommendations(self, context: RecommendationContext) -> List[Recommendation]:
        event = context.event
        if event is None:
            return []

        opp = context.opportunity
        intel = context.intelligence
        recs: List[Recommendation] = []

        if opp is not None and opp.overall_score > 0.6:
            recs.append(self._sponsor(context))
        if intel is not None and intel.discussion_themes:
            recs.append(self._speak(context))
        if opp is not None and opp.icp_match_score > 0.5:
            recs.append(self._attend(context))
        if (
            event.data_completeness is not None
            and event.data_completeness < self.settings.RESEARCH_COMPLETENESS_THRESHOLD
        ):
            recs.append(self._research_event(context))

        self.logger.debug(f"{event.key!r}: {[r.metadata.get('action') for r in recs]}")
        return recs

    def _event_rec(self, context: RecommendationContext, action: str, **fields) -> Recommendation:
        event = context.event
        insight_id = event_insight_id(event)
        metadata = {"action": action, **fields.pop("metadata", {})}
        return Recommendation(
            id=recommendation_id(insight_id, action),
            insight_type="event",
            priority=self.priority(context, action),
            related_insight_id=insight_id,
            related_event_id=event.id,
            metadata=metadata,
            **fields,
        )

    def _sponsor(self, context: RecommendationContext) -> Recommendation:
        event, opp = context.event, context.opportunity
        days = opp.days_until_event
        when = f"Act within {max(1, days // 7)} weeks" if days else "Act within 2-4 weeks"
        return self._event_rec(
            context,
            "sponsor",
            type="immediate" if opp.urgency_score > 0.7 else "strategic",
            title=f"Sponsor {event.title or event.key}",
            description=(
                f"High-value sponsorship opportunity with strong ICP match "
                f"({opp.icp_match_score * 100:.0f}%)"
            ),
            why=(
                "This event aligns with your target audience and offers significant "
                "brand visibility and lead generation potential."
            ),
            when=when,
            how=(
                "1. Contact event organizer to discuss sponsorship packages\n"
                "2. Review available sponsorship tiers and benefits\n"
                "3. Prepare marketing materials and booth setup\n"
                "4. Coordinate with sales team for lead follow-up"
            ),
            expected_outcome=(
                "Increased brand awareness, qualified leads, and potential "
                "partnerships with attendees."
            ),
            confidence=opp.confidence or 0.7,
            metadata={"roi_estimate": opp.roi_estimate, "time_to_execute": "2-4 weeks"},
        )

    def _speak(self, context: RecommendationContext) -> Recommendation:
        event, intel, opp = context.event, context.intelligence, context.opportunity
        critical = opp is not None and opp.urgency_level == "critical"
        return self._event_rec(
            context,
            "speak",
            type="immediate" if critical else "strategic",
            title=f"Speak at {event.title or event.key}",
            description=(
                "Position yourself as a thought leader on topics: "
                + ", ".join(intel.discussion_themes[:3])
            ),
            why=(
                "Speaking at this event establishes your authority and connects you "
                "directly with your target audience."
            ),
            when="Submit speaking proposal within 2-3 weeks",
            how=(
                "1. Review event themes and identify your expertise areas\n"
                "2. Prepare a compelling speaking proposal\n"
                "3. Contact event organizer with your proposal\n"
                "4. Prepare presentation materials if accepted"
            ),
            expected_outcome=(
                "Increased brand visibility, thought leadership positioning, and "
                "networking opportunities."
            ),
            confidence=intel.confidence or 0.7,
            metadata={"time_to_execute": "2-3 weeks"},
        )

    def _attend(self, context: RecommendationContext) -> Recommendation:
        event, opp = context.event, context.opportunity
        pressing = opp.urgency_level in ("critical", "high")
        return self._event_rec(
            context,
            "attend",
            type="immediate" if pressing else "strategic",
            title=f"Attend {event.title or event.key}",
            description=(
                f"High-value networking opportunity with "
                f"{opp.icp_match_score * 100:.0f}% ICP match"
            ),
            why=(
                "This event offers excellent opportunities to connect with your "
                "target audience and learn about industry trends."
            ),
            when=URGENCY_ACTIONS.get(opp.urgency_level, "Register soon to secure your spot"),
            how=(
                "1. Review event agenda and identify key sessions\n"
                "2. Register for the event\n"
                "3. Prepare networking materials (business cards, elevator pitch)\n"
                "4. Identify key attendees to connect with"
            ),
            expected_outcome=(
                "Valuable business connections, industry insights, and potential partnerships."
            ),
            confidence=opp.confidence or 0.7,
            metadata={"time_to_execute": "1-2 weeks"},
        )

    def _research_event(self, context: RecommendationContext) -> Recommendation:
        event = context.event
        return self._event_rec(
            context,
            "research",
            type="research",
            title=f"Research {event.title or event.key}",
            description="Gather more information about this event to make an informed decision",
            why=(
                f"Limited data available ({(event.data_completeness or 0) * 100:.0f}% complete). "
                "More research needed to assess opportunity."
            ),
            when="Before making any commitment",
            how=(
                "1. Visit event website for detailed information\n"
                "2. Contact event organizer directly\n"
                "3. Research past event reviews and attendee feedback\n"
                "4. Check speaker and sponsor lists for relevance"
            ),
            expected_outcome="Complete picture of event value and alignment with business objectives",
            confidence=0.5,
            metadata={"time_to_execute": "1-2 days", "required_resources": ["Research time"]},
        )

    # ── trends ─────────────────────────────────────────────────────────

    def trend_recommendations(self, trend: TrendInsight) -> List[Recommendation]:
        insight_id = trend_insight_id(trend.category)
        recs: List[Recommendation] = []

        def _rec(action: str, **fields) -> Recommendation:
            metadata = {"action": action}
            if trend.significance is not None:
                metadata["significance"] = trend.significance.recommendation
            return Recommendation(
                id=recommendation_id(insight_id, action),
                insight_type="trend",
                related_insight_id=insight_id,
                related_trend_id=trend.category,
                metadata={**metadata, **fields.pop("metadata", {})},
                **fields,
            )

        if trend.growth_rate > 0.3 and trend.momentum > 0.5:
            recs.append(_rec(
                "capitalize",
                type="strategic",
                title=f"Capitalize on {trend.category} Trend",
                description=(
                    f"Strong growth trend ({trend.growth_rate * 100:.0f}% growth) "
                    "with high momentum - opportunity to lead"
                ),
                why=(
                    "This trend is rapidly growing and presents an opportunity to establish "
                    "thought leadership and capture market share early."
                ),
                when="Act within 1-2 months to maximize impact",
                how=(
                    "1. Identify relevant events in this category\n"
                    "2. Develop content and positioning around this trend\n"
                    "3. Engage with events and communities in this space\n"
                    "4. Monitor competitor activity"
                ),
                expected_outcome="Early market positioning and thought leadership in a growing trend",
                priority=0.7,
                confidence=0.8,
                metadata={"time_to_execute": "1-2 months"},
            ))

        if trend.growth_rate > 0.1 and trend.momentum > 0.3:
            recs.append(_rec(
                "monitor",
                type="research",
                title=f"Monitor {trend.category} Trend",
                description="Emerging trend worth tracking for future opportunities",
                why=(
                    "This trend shows early growth signals and may become significant. "
                    "Monitoring helps identify the right time to engage."
                ),
                when="Ongoing monitoring",
                how=(
                    "1. Set up alerts for events in this category\n"
                    "2. Track growth metrics monthly\n"
                    "3. Research key players and events\n"
                    "4. Assess relevance to business objectives"
                ),
                expected_outcome="Early awareness of trend evolution and optimal timing for engagement",
                priority=0.4,
                confidence=0.6,
            ))

        if trend.event_count < 5:
            recs.append(_rec(
                "research",
                type="research",
                title=f"Research {trend.category} Trend",
                description="Limited data available - more research needed to assess trend significance",
                why=(
                    f"Insufficient event data ({trend.event_count} events) to fully assess "
                    "this trend. More research needed."
                ),
                when="Before making strategic decisions",
                how=(
                    "1. Search for additional events in this category\n"
                    "2. Analyze industry reports and market research\n"
                    "3. Interview industry experts\n"
                    "4. Assess competitive landscape"
                ),
                expected_outcome="Complete understanding of trend significance and opportunities",
                priority=0.3,
                confidence=0.5,
            ))

        return recs

    # ── competitive ────────────────────────────────────────────────────

    def competitive_recommendations(
        self,
        insight: CompetitiveInsight,
        event: Optional[Event] = None,
    ) -> List[Recommendation]:
        if event is not None:
            insight_id = event_insight_id(event)
        else:
            insight_id = f"competitive_{_digest(','.join(insight.competitors))}"
        related_event_id = event.id if event is not None else None
        recs: List[Recommendation] = []

        if insight.competitor_activity:
            recs.append(Recommendation(
                id=recommendation_id(insight_id, "match"),
                type="immediate",
                insight_type="competitive",
                title=f"Match Competitor Activity: {', '.join(insight.competitors[:2])}",
                description="Competitors are active in this space - consider matching their engagement",
                why=(
                    f"Your competitors ({', '.join(insight.competitors[:3])}) are actively "
                    "participating, indicating this is a valuable market. Matching their "
                    "activity prevents competitive disadvantage."
                ),
                when="Act within 2-4 weeks",
                how=(
                    "1. Analyze competitor's approach and positioning\n"
                    "2. Identify similar events where you can engage\n"
                    "3. Develop differentiated value proposition\n"
                    "4. Execute engagement strategy"
                ),
                expected_outcome="Maintain competitive parity and prevent market share loss",
                priority=0.8,
                confidence=0.7,
                related_insight_id=insight_id,
                related_event_id=related_event_id,
                metadata={
                    "action": "match",
                    "time_to_execute": "2-4 weeks",
                    "required_resources": ["Competitive analysis", "Event participation"],
                },
            ))

        if insight.gaps:
            recs.append(Recommendation(
                id=recommendation_id(insight_id, "gap"),
                type="strategic",
                insight_type="competitive",
                title=f"Exploit Competitive Gap: {', '.join(insight.gaps[:2])}",
                description="Opportunity to gain competitive advantage in areas competitors are not active",
                why=(
                    f"Competitors are not engaging in these areas ({', '.join(insight.gaps[:3])}), "
                    "presenting an opportunity to establish first-mover advantage."
                ),
                when="Act within 1-2 months",
                how=(
                    "1. Assess opportunity value in gap areas\n"
                    "2. Develop engagement strategy\n"
                    "3. Execute before competitors enter\n"
                    "4. Establish market presence"
                ),
                expected_outcome="First-mover advantage and competitive differentiation",
                priority=0.7,
                confidence=0.6,
                related_insight_id=insight_id,
                related_event_id=related_event_id,
                metadata={"action": "gap"},
            ))

        return recs

    # ------------------------------------------------------------------
    def run(
        self,
        payload: Tuple[
            Sequence[RecommendationContext],
            Sequence[TrendInsight],
            Sequence[CompetitiveInsight],
        ],
    ) -> List[Recommendation]:
        contexts, trends, competitive = payload
        recs: List[Recommendation] = []
        for context in contexts:
            recs.extend(self.event_recommendations(context))
        for trend in trends:
            recs.extend(self.trend_recommendations(trend))
        for insight in competitive:
            recs.extend(self.competitive_recommendations(insight))

        ranked = self.rank(recs)
        self.logger.info(
            f"Ranked {len(ranked)} recommendations "
            f"({sum(1 for r in ranked if r.type == 'immediate')} immediate)"
        )
        return ranked
