"""
Core data models / schemas for the Event Intelligence Scoring Engine.

Every record here is an immutable value object. Inputs (events, profiles,
candidate topics) are supplied by callers; outputs are recomputed per call and
expose ``to_dict()`` for the presentation layer.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import MalformedInputError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are treated as UTC; aware ones are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def _str_tuple(values: Any) -> Tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        return (values,)
    return tuple(str(v) for v in values if v)


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Raw inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Speaker:
    name: str
    org: Optional[str] = None
    title: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["Speaker"]:
        if isinstance(raw, Speaker):
            return raw
        if isinstance(raw, str):
            return cls(name=raw) if raw else None
        if isinstance(raw, Mapping):
            return cls(
                name=str(raw.get("name") or ""),
                org=raw.get("org") or None,
                title=raw.get("title") or None,
            )
        return None


@dataclass(frozen=True)
class NameOnlySponsor:
    name: str


@dataclass(frozen=True)
class TieredSponsor:
    name: str
    level: str


Sponsor = Union[NameOnlySponsor, TieredSponsor]


def parse_sponsor(raw: Any) -> Optional[Sponsor]:
    """Convert the raw ``str | {name, level}`` sponsor union into a tagged variant."""
    if isinstance(raw, (NameOnlySponsor, TieredSponsor)):
        return raw
    if isinstance(raw, str):
        return NameOnlySponsor(name=raw) if raw else None
    if isinstance(raw, Mapping):
        name = str(raw.get("name") or "")
        level = raw.get("level") or raw.get("tier")
        if level:
            return TieredSponsor(name=name, level=str(level))
        return NameOnlySponsor(name=name)
    return None


@dataclass(frozen=True)
class Event:
    """A collected event record. Owned by an external store; read-only here."""
    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    starts_at: Optional[datetime] = None
    city: Optional[str] = None
    country: Optional[str] = None
    organizer: Optional[str] = None
    source_url: Optional[str] = None
    topics: Tuple[str, ...] = ()
    speakers: Tuple[Speaker, ...] = ()
    sponsors: Tuple[Sponsor, ...] = ()
    participating_organizations: Tuple[str, ...] = ()
    data_completeness: Optional[float] = None      # 0-1
    confidence: Optional[float] = None             # 0-1
    verification_status: Optional[str] = None      # "verified" | "outdated" | ...
    # batch-position key, set by the loader when there is neither id nor source_url
    fallback_key: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Event":
        if not isinstance(payload, Mapping):
            raise MalformedInputError(
                f"Event payload must be a mapping, got {type(payload).__name__}"
            )
        speakers = tuple(
            s for s in (Speaker.from_raw(r) for r in payload.get("speakers") or []) if s
        )
        sponsors = tuple(
            s for s in (parse_sponsor(r) for r in payload.get("sponsors") or []) if s
        )
        return cls(
            id=payload.get("id"),
            title=payload.get("title"),
            description=payload.get("description"),
            starts_at=parse_datetime(payload.get("starts_at")),
            city=payload.get("city"),
            country=payload.get("country"),
            organizer=payload.get("organizer"),
            source_url=payload.get("source_url"),
            topics=_str_tuple(payload.get("topics")),
            speakers=speakers,
            sponsors=sponsors,
            participating_organizations=_str_tuple(payload.get("participating_organizations")),
            data_completeness=_optional_float(payload.get("data_completeness")),
            confidence=_optional_float(payload.get("confidence")),
            verification_status=payload.get("verification_status"),
        )

    @property
    def key(self) -> str:
        return self.id or self.source_url or self.fallback_key or ""

    @property
    def text(self) -> str:
        """Lowercased title + description + topics, the corpus used for term matching."""
        return f"{self.title or ''} {self.description or ''} {' '.join(self.topics)}".lower()

    @property
    def headline_text(self) -> str:
        """Lowercased title + description only."""
        return f"{self.title or ''} {self.description or ''}".lower()

    @property
    def sponsor_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.sponsors if s.name)

    @property
    def sponsor_tiers(self) -> Tuple[str, ...]:
        levels = []
        for s in self.sponsors:
            if isinstance(s, TieredSponsor) and s.level not in levels:
                levels.append(s.level)
        return tuple(levels)

    @property
    def is_malformed(self) -> bool:
        return not self.title and not self.description and not self.topics


@dataclass(frozen=True)
class Profile:
    """A requester's interest profile. Terms are matched case-insensitively by containment."""
    industry_terms: Tuple[str, ...] = ()
    icp_terms: Tuple[str, ...] = ()
    competitors: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Profile":
        return cls(
            industry_terms=_str_tuple(payload.get("industry_terms")),
            icp_terms=_str_tuple(payload.get("icp_terms")),
            competitors=_str_tuple(payload.get("competitors")),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.industry_terms or self.icp_terms or self.competitors)


@dataclass(frozen=True)
class EventIntelligence:
    """Analysis of a single event produced upstream (sponsor tiers, themes, confidence)."""
    confidence: Optional[float] = None
    sponsor_tiers: Tuple[str, ...] = ()
    strategic_significance: Optional[float] = None
    discussion_themes: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Topics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CandidateTopic:
    """A hot topic proposed by the text-generation step. Untrusted."""
    topic: str
    mention_count: int
    growth_rate: float = 0.0
    momentum: float = 0.0
    relevance_score: float = 0.0
    category: str = ""
    business_relevance: Optional[str] = None
    related_events: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ValidatedTopic:
    """A candidate topic confirmed against the literal event corpus."""
    topic: str
    mention_count: int                   # literal recount, not the claimed value
    growth_rate: float
    momentum: float
    relevance_score: float
    category: str
    validation_score: Optional[float]
    geographic_distribution: Tuple[str, ...] = ()
    industry_breakdown: Dict[str, int] = field(default_factory=dict)
    growth_trajectory: str = "declining"  # rising | stable | declining
    business_relevance: Optional[str] = None
    related_events: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "mention_count": self.mention_count,
            "growth_rate": self.growth_rate,
            "momentum": self.momentum,
            "relevance_score": self.relevance_score,
            "category": self.category,
            "validation_score": self.validation_score,
            "geographic_distribution": list(self.geographic_distribution),
            "industry_breakdown": dict(self.industry_breakdown),
            "growth_trajectory": self.growth_trajectory,
            "business_relevance": self.business_relevance,
            "related_events": list(self.related_events),
        }


# ---------------------------------------------------------------------------
# Significance
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SignificanceResult:
    p_value: float                  # [0, 1]
    is_significant: bool
    confidence_level: float         # 0.90 | 0.95 | 0.99
    test_type: str                  # "chi-square" | "proportion"
    degrees_of_freedom: Optional[int] = 1
    chi_square: Optional[float] = None


@dataclass(frozen=True)
class ConfidenceInterval:
    lower: float                    # percent
    upper: float                    # percent
    mean: float                     # percent
    confidence_level: float


@dataclass(frozen=True)
class TrendSignificance:
    significance: SignificanceResult
    confidence_interval: ConfidenceInterval
    significance_score: float       # 1 - p_value
    recommendation: str             # strong | moderate | weak | insufficient-data

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PeriodObservation:
    """Aggregate counts for one key (topic, category or event) across two periods."""
    key: str
    current_count: int
    previous_count: int
    current_total: int
    previous_total: int


@dataclass(frozen=True)
class FrequencyTrend:
    """Keyword frequency of an industry category or business theme across two periods."""
    name: str
    kind: str                       # "category" | "theme"
    current_count: int
    previous_count: int
    current_total: int
    previous_total: int
    growth_rate: float              # percent; 0 without a previous period
    is_emerging: bool = False
    related_events: Tuple[str, ...] = ()
    significance: Optional[TrendSignificance] = None

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.name}"

    def observation(self) -> PeriodObservation:
        return PeriodObservation(
            key=self.key,
            current_count=self.current_count,
            previous_count=self.previous_count,
            current_total=self.current_total,
            previous_total=self.previous_total,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "current_count": self.current_count,
            "previous_count": self.previous_count,
            "growth_rate": round(self.growth_rate, 2),
            "is_emerging": self.is_emerging,
            "related_events": list(self.related_events),
            "significance": self.significance.to_dict() if self.significance else None,
        }


# ---------------------------------------------------------------------------
# Opportunity scoring
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UrgencyIndicators:
    urgency_score: float
    urgency_level: str              # critical | high | medium | low | none
    recommended_action: str
    has_early_bird_pricing: bool = False
    days_until_event: Optional[int] = None
    days_until_early_bird: Optional[int] = None
    days_until_registration_deadline: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OpportunityScore:
    icp_match_score: float
    attendee_quality_score: float
    roi_estimate: str               # high | medium | low | unknown
    urgency_score: float
    overall_score: float
    confidence: float
    urgency_level: str = "none"
    days_until_event: Optional[int] = None
    event_key: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_key": self.event_key,
            "icp_match_score": round(self.icp_match_score, 4),
            "attendee_quality_score": round(self.attendee_quality_score, 4),
            "roi_estimate": self.roi_estimate,
            "urgency_score": round(self.urgency_score, 4),
            "urgency_level": self.urgency_level,
            "days_until_event": self.days_until_event,
            "overall_score": round(self.overall_score, 4),
            "confidence": round(self.confidence, 4),
        }


# ---------------------------------------------------------------------------
# Insight scoring
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoringWeights:
    relevance: float = 0.3
    impact: float = 0.3
    urgency: float = 0.2
    confidence: float = 0.2

    @property
    def total(self) -> float:
        return self.relevance + self.impact + self.urgency + self.confidence

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class FactorScore:
    """One top-level insight factor and the sub-factors it was computed from."""
    overall: float
    factors: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ScoreBreakdown:
    relevance: FactorScore
    impact: FactorScore
    urgency: FactorScore
    confidence: FactorScore


@dataclass(frozen=True)
class InsightScore:
    overall_score: float
    breakdown: ScoreBreakdown
    weights: ScoringWeights
    calculated_at: datetime
    event_key: str = ""

    def to_dict(self) -> Dict[str, Any]:
        b = self.breakdown
        return {
            "event_key": self.event_key,
            "overall_score": round(self.overall_score, 4),
            "breakdown": {
                name: {
                    "overall": round(fs.overall, 4),
                    "factors": {k: round(v, 4) for k, v in fs.factors.items()},
                }
                for name, fs in (
                    ("relevance", b.relevance),
                    ("impact", b.impact),
                    ("urgency", b.urgency),
                    ("confidence", b.confidence),
                )
            },
            "weights": self.weights.as_dict(),
            "calculated_at": self.calculated_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrendInsight:
    """A category or topic whose frequency is moving across the corpus."""
    category: str
    growth_rate: float              # fraction: 0.3 means +30%
    momentum: float                 # 0-1
    event_count: int = 0
    significance: Optional[TrendSignificance] = None


@dataclass(frozen=True)
class CompetitiveInsight:
    competitors: Tuple[str, ...] = ()
    competitor_activity: Tuple[str, ...] = ()
    gaps: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Recommendation:
    id: str
    type: str                       # immediate | strategic | research
    insight_type: str               # event | trend | account | competitive
    title: str
    description: str
    why: str
    when: str
    how: Optional[str]
    expected_outcome: str
    priority: float                 # 0-1
    confidence: float               # 0-1
    related_insight_id: str
    related_event_id: Optional[str] = None
    related_trend_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["priority"] = round(self.priority, 4)
        data["confidence"] = round(self.confidence, 4)
        return data
