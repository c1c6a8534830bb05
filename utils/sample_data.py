"""
Built-in sample batch used by `python main.py demo`.

Dates are relative to `now` so the urgency ramps always land in the same
buckets regardless of when the demo runs.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from models.schemas import EventIntelligence, Profile


def _iso(now: datetime, days: float) -> str:
    return (now + timedelta(days=days)).isoformat()


def sample_events(now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    now = now or datetime.now(timezone.utc)
    return [
        {
            "id": "evt-fintech-summit",
            "title": "Fintech Summit 2025",
            "description": (
                "Europe's largest fintech summit on open banking, AI compliance and "
                "regulatory technology. Early bird tickets available - register by the deadline."
            ),
            "starts_at": _iso(now, 5),
            "city": "London",
            "country": "UK",
            "organizer": "Money20 Events",
            "source_url": "https://example.com/fintech-summit",
            "topics": ["open banking", "AI compliance", "payments"],
            "speakers": [
                {"name": "A. Patel", "org": "Revolut", "title": "CTO"},
                {"name": "J. Moreau", "org": "BNP Paribas", "title": "Head of Innovation"},
                {"name": "K. Osei", "org": "Stripe", "title": "Product Lead"},
            ],
            "sponsors": [
                {"name": "Stripe", "level": "platinum"},
                {"name": "Adyen", "level": "gold"},
                "Plaid",
            ],
            "participating_organizations": ["Revolut", "BNP Paribas", "Stripe", "Monzo"],
            "data_completeness": 0.9,
            "verification_status": "verified",
        },
        {
            "id": "evt-legaltech-conf",
            "title": "LegalTech Conference",
            "description": "AI compliance in legal practice, contract automation and e-discovery.",
            "starts_at": _iso(now, 45),
            "city": "New York",
            "country": "USA",
            "organizer": "ALM",
            "source_url": "https://example.com/legaltech",
            "topics": ["AI compliance", "contract automation"],
            "speakers": [{"name": "M. Chen", "org": "Clifford Chance"}],
            "sponsors": ["Relativity"],
            "participating_organizations": ["Clifford Chance"],
            "data_completeness": 0.7,
        },
        {
            "id": "evt-open-banking-forum",
            "title": "Open Banking Forum",
            "description": "Open banking APIs and payments infrastructure for banks and fintech.",
            "starts_at": _iso(now, 120),
            "city": "Berlin",
            "country": "Germany",
            "source_url": "https://example.com/ob-forum",
            "topics": ["open banking", "payments"],
            "speakers": [{"name": "L. Weber", "org": "Deutsche Bank"}],
            "sponsors": [],
            "data_completeness": 0.5,
        },
        {
            "id": "evt-insurtech-webinar",
            "title": "InsurTech Webinar",
            "description": "Risk management and AI compliance for insurance carriers.",
            "starts_at": _iso(now, 20),
            "country": "UK",
            "topics": ["AI compliance", "risk management"],
            "data_completeness": 0.4,
        },
        # no title, description or topics: skipped by the pipeline
        {"id": "evt-empty", "source_url": "https://example.com/empty"},
        # historical events, used as the attendee-quality cohort
        {
            "id": "evt-fintech-summit-2024",
            "title": "Fintech Summit 2024",
            "description": "Annual fintech summit.",
            "starts_at": _iso(now, -200),
            "speakers": [{"name": "S1"}, {"name": "S2"}],
            "sponsors": ["Visa"],
            "participating_organizations": ["Visa"],
        },
        {
            "id": "evt-payments-summit",
            "title": "Payments Summit",
            "description": "Cross-border payments summit.",
            "starts_at": _iso(now, -90),
            "speakers": [{"name": "S1"}],
            "sponsors": [],
        },
    ]


def sample_previous_events(now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """The prior period's batch, the baseline for category and theme growth."""
    now = now or datetime.now(timezone.utc)
    return [
        {
            "id": "prev-banking-seminar",
            "title": "Banking Compliance Seminar",
            "description": "Regulatory reporting for retail banks.",
            "starts_at": _iso(now, -60),
            "topics": ["regulatory reporting"],
        },
        {
            "id": "prev-payments-conference",
            "title": "Payments Conference",
            "description": "Card payments and fintech partnerships.",
            "starts_at": _iso(now, -75),
            "topics": ["payments"],
        },
        {
            "id": "prev-fintech-networking",
            "title": "Fintech Networking Evening",
            "description": "Meet founders from the local fintech scene.",
            "starts_at": _iso(now, -40),
        },
    ]


def sample_profile() -> Profile:
    return Profile(
        industry_terms=("fintech", "banking", "compliance"),
        icp_terms=("fintech", "bank", "payments"),
        competitors=("Plaid", "Relativity"),
    )


def sample_candidate_topics() -> str:
    """Raw generator output, including one unsupported and one invalid claim."""
    return json.dumps({
        "hotTopics": [
            {
                "topic": "AI compliance",
                "mentionCount": 4,
                "growthRate": 45,
                "momentum": 0.8,
                "relevanceScore": 0.9,
                "category": "Compliance",
                "businessRelevance": "high",
            },
            {
                "topic": "open banking",
                "mentionCount": 3,
                "growthRate": 20,
                "momentum": 0.45,
                "relevanceScore": 0.7,
                "category": "Technology",
            },
            {
                "topic": "quantum payments",
                "mentionCount": 50,
                "growthRate": 300,
                "momentum": 0.95,
                "relevanceScore": 0.9,
            },
            {"topic": "missing count"},
        ]
    })


def sample_previous_counts() -> Dict[str, Dict[str, int]]:
    return {
        "AI compliance": {"count": 1, "total": 40},
        "open banking": {"count": 2, "total": 40},
    }


def sample_intelligence() -> Dict[str, EventIntelligence]:
    return {
        "evt-fintech-summit": EventIntelligence(
            confidence=0.85,
            sponsor_tiers=("platinum", "gold"),
            strategic_significance=0.8,
            discussion_themes=("AI regulation", "embedded finance", "fraud"),
        ),
    }
