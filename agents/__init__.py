from .base import Agent, AgentResult
from .significance import SignificanceEngine
from .topic_validator import TopicValidator
from .trends import TrendAnalyzer
from .opportunity import OpportunityScorer
from .insight import InsightScorer
from .ranker import RecommendationRanker, RecommendationContext

__all__ = [
    "Agent", "AgentResult",
    "SignificanceEngine", "TopicValidator", "TrendAnalyzer", "OpportunityScorer",
    "InsightScorer", "RecommendationRanker", "RecommendationContext",
]
