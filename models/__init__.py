"""
Core data models for the Event Intelligence Scoring Engine.
"""

from .errors import InvalidInputError, MalformedInputError, ScoringEngineError
from .schemas import (
    CandidateTopic,
    CompetitiveInsight,
    ConfidenceInterval,
    Event,
    EventIntelligence,
    FactorScore,
    FrequencyTrend,
    InsightScore,
    NameOnlySponsor,
    OpportunityScore,
    PeriodObservation,
    Profile,
    Recommendation,
    ScoreBreakdown,
    ScoringWeights,
    SignificanceResult,
    Speaker,
    Sponsor,
    TieredSponsor,
    TrendInsight,
    TrendSignificance,
    UrgencyIndicators,
    ValidatedTopic,
    parse_sponsor,
)

__all__ = [
    "InvalidInputError",
    "MalformedInputError",
    "ScoringEngineError",
    "CandidateTopic",
    "CompetitiveInsight",
    "ConfidenceInterval",
    "Event",
    "EventIntelligence",
    "FactorScore",
    "FrequencyTrend",
    "InsightScore",
    "NameOnlySponsor",
    "OpportunityScore",
    "PeriodObservation",
    "Profile",
    "Recommendation",
    "ScoreBreakdown",
    "ScoringWeights",
    "SignificanceResult",
    "Speaker",
    "Sponsor",
    "TieredSponsor",
    "TrendInsight",
    "TrendSignificance",
    "UrgencyIndicators",
    "ValidatedTopic",
    "parse_sponsor",
]
