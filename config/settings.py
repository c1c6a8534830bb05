"""
Configuration & Settings
Event Intelligence Scoring Engine
"""

from pydantic import BaseModel, ConfigDict, Field


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # App
    APP_NAME: str = "Event Intelligence Scoring Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Significance testing
    # Both periods need at least this many observations before a test is run.
    MIN_SAMPLE_SIZE: int = Field(10, ge=1)
    DEFAULT_CONFIDENCE_LEVEL: float = 0.95
    SIGNIFICANCE_THRESHOLD: float = Field(0.05, gt=0, lt=1)
    NEW_TREND_MIN_COUNT: int = 3

    # Topic validation
    MIN_MENTION_THRESHOLD: int = 2
    MIN_VALIDATION_SCORE: float = Field(0.3, ge=0, le=1)
    MAX_HOT_TOPICS: int = 20
    TOP_COUNTRIES: int = 5
    MAX_RELATED_EVENTS: int = 10

    # Category / theme frequency trends
    # Emerging: growth above the threshold (percent), or any growth with enough events.
    EMERGING_GROWTH_THRESHOLD: float = 20.0
    EMERGING_MIN_COUNT: int = 3
    MAX_EMERGING_THEMES: int = 10
    MAX_TREND_EVENTS: int = 5

    # Opportunity scoring
    COHORT_WINDOW_DAYS: int = 365
    COHORT_LIMIT: int = 100
    LARGE_EVENT_SIZE: float = 20.0

    # Insight scoring weights (renormalized on every call)
    RELEVANCE_WEIGHT: float = Field(0.3, ge=0)
    IMPACT_WEIGHT: float = Field(0.3, ge=0)
    URGENCY_WEIGHT: float = Field(0.2, ge=0)
    CONFIDENCE_WEIGHT: float = Field(0.2, ge=0)
    MIN_INSIGHT_SCORE: float = Field(0.3, ge=0, le=1)

    # Recommendation ranking
    PRIORITY_TIE_TOLERANCE: float = 0.01
    RESEARCH_PRIORITY_FACTOR: float = 0.5
    RESEARCH_COMPLETENESS_THRESHOLD: float = 0.6


settings = Settings()
