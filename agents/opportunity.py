"""
Opportunity Scoring Agent
-------------------------
Scores a single event for a requester's profile:

  ICP_match      = matched_fields / present_fields + min(term_ratio, 0.3)
  Quality        = 0.5·P(speakers) + 0.3·P(sponsors) + 0.2·P(orgs)
                   P = mid-rank percentile against a cohort of similar events
  ROI            = class of  0.3·ICP + 0.3·Quality + 0.2·min(size/20, 1)
                             + 0.1·type_bonus + 0.1·completeness
  Urgency        = mean of deadline factors
  Overall        = 0.3·ICP + 0.25·Quality + 0.25·ROI + 0.2·Urgency

Input  : tuple(list[Event], Profile | None, list[Event] cohort candidates, now)
Output : list[OpportunityScore]
"""

import math
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from agents.base import Agent
from config.settings import Settings, settings as default_settings
from models.schemas import Event, OpportunityScore, Profile, UrgencyIndicators, ensure_utc
from utils.scoring import any_contains, clamp, contains_any, lowered

logger = logging.getLogger(__name__)


COHORT_CATEGORIES = ["conference", "summit", "workshop", "seminar", "webinar"]
HIGH_VALUE_TYPES = ["conference", "summit", "forum"]
EARLY_BIRD_MARKERS = ["early bird", "early-bird", "early registration"]
DEADLINE_MARKERS = ["deadline", "register by"]

# heuristic cutoffs, in days before the event
EARLY_BIRD_LEAD_DAYS = 30
REGISTRATION_LEAD_DAYS = 14

ROI_SCORES: Dict[str, float] = {"high": 0.9, "medium": 0.6, "low": 0.3, "unknown": 0.5}

URGENCY_ACTIONS: Dict[str, str] = {
    "critical": "Act immediately - deadlines approaching",
    "high": "Act soon - time-sensitive opportunity",
    "medium": "Plan action within next 2 weeks",
    "low": "Add to consideration list",
    "none": "Consider this event for future planning",
}


# ─── Percentiles ─────────────────────────────────────────────────────────────


def percentile_rank(value: float, values: Sequence[float]) -> float:
    """
    Mid-rank percentile: (count_below + count_equal / 2) / n.
    Ties split evenly; 0.5 for an empty comparison set.
    """
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.5
    below = np.count_nonzero(arr < value)
    equal = np.count_nonzero(arr == value)
    return float((below + equal / 2.0) / arr.size)


# ─── ICP Match ───────────────────────────────────────────────────────────────


def icp_match(event: Event, profile: Optional[Profile]) -> float:
    terms = lowered(profile.icp_terms) if profile is not None else []
    if not terms:
        return 0.5

    checks: List[bool] = []

    if event.title:
        checks.append(contains_any(event.title.lower(), terms))
    if event.description:
        checks.append(contains_any(event.description.lower(), terms))
    if event.topics:
        checks.append(any_contains(event.topics, terms))
    if event.speakers:
        checks.append(any_contains((s.org for s in event.speakers), terms))
    if event.sponsors:
        checks.append(any_contains(event.sponsor_names, terms))
    if event.participating_organizations:
        checks.append(any_contains(event.participating_organizations, terms))

    base = sum(checks) / len(checks) if checks else 0.0

    text = event.text
    found = sum(1 for term in terms if term in text)
    boost = min(found / len(terms), 0.3)

    return min(1.0, base + boost)


# ─── Attendee Quality & ROI ──────────────────────────────────────────────────


def cohort_category(event: Event) -> str:
    text = event.headline_text
    for category in COHORT_CATEGORIES:
        if category in text:
            return category
    return COHORT_CATEGORIES[0]


def select_cohort(
    event: Event,
    candidates: Sequence[Event],
    now: Optional[datetime] = None,
    window_days: int = default_settings.COHORT_WINDOW_DAYS,
    limit: int = default_settings.COHORT_LIMIT,
) -> List[Event]:
    """Comparable events: same category keyword, starting within the trailing window."""
    now = ensure_utc(now) or datetime.now(timezone.utc)
    since = now - timedelta(days=window_days)
    category = cohort_category(event)

    cohort = [
        c for c in candidates
        if c.starts_at is not None
        and c.starts_at >= since
        and category in c.headline_text
    ]
    return cohort[:limit]


def attendee_quality(event: Event, cohort: Sequence[Event]) -> float:
    if not cohort:
        return 0.5

    speakers = percentile_rank(len(event.speakers), [len(c.speakers) for c in cohort])
    sponsors = percentile_rank(len(event.sponsors), [len(c.sponsors) for c in cohort])
    orgs = percentile_rank(
        len(event.participating_organizations),
        [len(c.participating_organizations) for c in cohort],
    )
    return speakers * 0.5 + sponsors * 0.3 + orgs * 0.2


def event_size(event: Event) -> int:
    """Sponsors weigh double."""
    return len(event.speakers) + 2 * len(event.sponsors)


def classify_roi(composite: float) -> str:
    if composite >= 0.7:
        return "high"
    if composite >= 0.4:
        return "medium"
    if composite >= 0.2:
        return "low"
    return "unknown"


def estimate_roi(
    event: Event,
    profile: Optional[Profile],
    cohort: Sequence[Event],
    large_event_size: float = default_settings.LARGE_EVENT_SIZE,
) -> str:
    type_bonus = 1.0 if contains_any(event.headline_text, HIGH_VALUE_TYPES) else 0.5
    completeness = event.data_completeness if event.data_completeness is not None else 0.5

    composite = (
        icp_match(event, profile) * 0.3
        + attendee_quality(event, cohort) * 0.3
        + min(event_size(event) / large_event_size, 1.0) * 0.2
        + type_bonus * 0.1
        + completeness * 0.1
    )
    return classify_roi(composite)


# ─── Urgency ─────────────────────────────────────────────────────────────────


def days_until(starts_at: Optional[datetime], now: datetime) -> Optional[int]:
    if starts_at is None:
        return None
    return math.ceil((ensure_utc(starts_at) - now).total_seconds() / 86400)


def urgency_level(score: float) -> str:
    if score >= 0.8:
        return "critical"
    if score >= 0.6:
        return "high"
    if score >= 0.4:
        return "medium"
    if score >= 0.2:
        return "low"
    return "none"


def urgency_indicators(event: Event, now: Optional[datetime] = None) -> UrgencyIndicators:
    now = ensure_utc(now) or datetime.now(timezone.utc)
    factors: List[float] = []
    days_to_early_bird: Optional[int] = None
    days_to_deadline: Optional[int] = None

    days = days_until(event.starts_at, now)
    if days is not None:
        if 0 < days <= 30:
            factors.append(1 - days / 30)
        elif 30 < days <= 90:
            factors.append(0.5 - (days - 30) / 120)

    description = (event.description or "").lower()
    has_early_bird = contains_any(description, EARLY_BIRD_MARKERS)

    if has_early_bird and days is not None and days > EARLY_BIRD_LEAD_DAYS:
        days_to_early_bird = days - EARLY_BIRD_LEAD_DAYS
        if days_to_early_bird <= 7:
            factors.append(0.8)
        elif days_to_early_bird <= 14:
            factors.append(0.5)

    if contains_any(description, DEADLINE_MARKERS) and days is not None and days > REGISTRATION_LEAD_DAYS:
        days_to_deadline = days - REGISTRATION_LEAD_DAYS
        if days_to_deadline <= 3:
            factors.append(1.0)
        elif days_to_deadline <= 7:
            factors.append(0.7)

    score = min(1.0, sum(factors) / len(factors)) if factors else 0.0
    level = urgency_level(score)

    return UrgencyIndicators(
        urgency_score=score,
        urgency_level=level,
        recommended_action=URGENCY_ACTIONS[level],
        has_early_bird_pricing=has_early_bird,
        days_until_event=days,
        days_until_early_bird=days_to_early_bird,
        days_until_registration_deadline=days_to_deadline,
    )


# ─── OpportunityScorer ───────────────────────────────────────────────────────


class OpportunityScorer(Agent):
    """
    Agent: per-event opportunity score.

    Cohort candidates are supplied by the caller (typically recent events
    from the store); the scorer narrows them with `select_cohort`.
    """

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__(name="OpportunityScorer", settings=settings)

    def score(
        self,
        event: Event,
        profile: Optional[Profile] = None,
        cohort: Sequence[Event] = (),
        now: Optional[datetime] = None,
    ) -> OpportunityScore:
        now = ensure_utc(now) or datetime.now(timezone.utc)
        similar = select_cohort(
            event, cohort, now,
            window_days=self.settings.COHORT_WINDOW_DAYS,
            limit=self.settings.COHORT_LIMIT,
        )

        icp = icp_match(event, profile)
        quality = attendee_quality(event, similar)
        roi = estimate_roi(event, profile, similar, self.settings.LARGE_EVENT_SIZE)
        urgency = urgency_indicators(event, now)

        overall = (
            icp * 0.3
            + quality * 0.25
            + ROI_SCORES[roi] * 0.25
            + urgency.urgency_score * 0.2
        )

        completeness = event.data_completeness if event.data_completeness is not None else 0.5
        if event.title and event.description and event.starts_at:
            confidence = min(1.0, completeness * 0.8 + 0.2)
        else:
            confidence = completeness * 0.5

        self.logger.debug(
            f"{event.key or event.title!r}: icp={icp:.2f} quality={quality:.2f} "
            f"roi={roi} urgency={urgency.urgency_level} cohort={len(similar)}"
        )

        return OpportunityScore(
            icp_match_score=clamp(icp),
            attendee_quality_score=clamp(quality),
            roi_estimate=roi,
            urgency_score=clamp(urgency.urgency_score),
            overall_score=clamp(overall),
            confidence=clamp(confidence),
            urgency_level=urgency.urgency_level,
            days_until_event=urgency.days_until_event,
            event_key=event.key,
        )

    # ------------------------------------------------------------------
    def run(
        self,
        payload: Tuple[Sequence[Event], Optional[Profile], Sequence[Event], Optional[datetime]],
    ) -> List[OpportunityScore]:
        events, profile, cohort, now = payload
        self.logger.info(f"Scoring {len(events)} events against {len(cohort)} cohort candidates…")
        scores = [self.score(e, profile, cohort, now) for e in events]
        if scores:
            best = max(s.overall_score for s in scores)
            self.logger.info(f"Scored {len(scores)} events (best overall={best:.3f})")
        return scores
