"""
Entry point for the Event Intelligence Scoring Engine.

Usage:
  # Score the built-in sample batch and print a report:
  python main.py demo

  # Print the same run as JSON:
  python main.py json

  # Run tests:
  python main.py test
"""

from __future__ import annotations

import os
import sys
import json
import logging

from config.settings import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("main")


def _sample_run():
    from datetime import datetime, timezone

    from utils.pipeline import run_pipeline
    from utils.sample_data import (
        sample_candidate_topics,
        sample_events,
        sample_intelligence,
        sample_previous_counts,
        sample_previous_events,
        sample_profile,
    )

    now = datetime.now(timezone.utc)
    return run_pipeline(
        events=sample_events(now),
        profile=sample_profile(),
        candidate_topics=sample_candidate_topics(),
        previous_counts=sample_previous_counts(),
        previous_events=sample_previous_events(now),
        intelligence=sample_intelligence(),
        now=now,
    )


def demo():
    """
    End-to-end demo run over the sample batch.
    Prints a formatted report to stdout.
    """
    logger.info("=== Event Intelligence — Demo Run ===")
    result = _sample_run()

    # ── Print report ──────────────────────────────────────────────────────
    print("\n" + "=" * 70)
    print("  EVENT INTELLIGENCE REPORT")
    print("=" * 70)
    print(f"  Run ID       : {result.run_id}")
    print(f"  Events       : {result.total_events}")
    print(f"  Skipped      : {len(result.skipped)}")
    print(f"  Topics       : {len(result.topics)}")
    print(f"  Recommended  : {len(result.recommendations)}")
    print(f"  Timestamp    : {result.executed_at.isoformat()}")
    print("=" * 70)

    print("\n🔥 VALIDATED TOPICS")
    print("-" * 70)
    if result.topics:
        for t in result.topics:
            sig = result.significance.get(t.topic)
            verdict = sig.recommendation if sig is not None else "not tested"
            print(
                f"  {t.topic:<28} mentions={t.mention_count:>3}  "
                f"validation={t.validation_score:.2f}  {t.growth_trajectory:<9} {verdict}"
            )
            if t.geographic_distribution:
                print(f"       Countries: {', '.join(t.geographic_distribution)}")
    else:
        print("  No candidate topics survived validation.")

    print("\n📈 CATEGORY & THEME TRENDS")
    print("-" * 70)
    if result.frequency_trends:
        for t in result.frequency_trends:
            flag = "emerging" if t.is_emerging else ""
            print(
                f"  {t.kind:<9} {t.name:<24} now={t.current_count:>3}  "
                f"before={t.previous_count:>3}  growth={t.growth_rate:+7.1f}%  {flag}"
            )
    else:
        print("  No categories or themes found.")

    print("\n🎯 EVENT SCORES")
    print("-" * 70)
    insight_by_key = {i.event_key: i for i in result.insights}
    for opp in sorted(result.opportunities, key=lambda o: o.overall_score, reverse=True):
        insight = insight_by_key.get(opp.event_key)
        print(
            f"  {opp.event_key:<28} opp={opp.overall_score:.3f}  "
            f"icp={opp.icp_match_score:.2f}  roi={opp.roi_estimate:<7} "
            f"urgency={opp.urgency_level}"
        )
        if insight is not None:
            b = insight.breakdown
            print(
                f"      insight={insight.overall_score:.3f}  "
                f"rel={b.relevance.overall:.2f}  imp={b.impact.overall:.2f}  "
                f"urg={b.urgency.overall:.2f}  conf={b.confidence.overall:.2f}"
            )

    print("\n💡 RECOMMENDATIONS")
    print("-" * 70)
    for i, rec in enumerate(result.recommendations[:10], 1):
        print(
            f"  #{i:<2} [{rec.type:<9}] {rec.title:<44} "
            f"priority={rec.priority:.3f}  conf={rec.confidence:.2f}"
        )
        print(f"      → {rec.when}")
    print("=" * 70)

    return result


def dump_json():
    """Print the sample run as JSON."""
    result = _sample_run()
    print(json.dumps(result.to_dict(), indent=2, default=str))


def run_tests():
    """Run pytest."""
    import subprocess
    result = subprocess.run(
        ["pytest", "tests/", "-v", "--tb=short"],
        cwd=os.path.dirname(os.path.abspath(__file__)),
    )
    sys.exit(result.returncode)


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else "demo"

    if command == "demo":
        demo()
    elif command == "json":
        dump_json()
    elif command == "test":
        run_tests()
    else:
        print(f"Unknown command: {command}")
        print("Usage: python main.py [demo|json|test]")
        sys.exit(1)
