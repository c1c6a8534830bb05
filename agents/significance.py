"""
Significance Engine
-------------------
Tests whether a period-over-period change in how often a topic (or category)
appears is a real shift or noise.

  2×2 table:   [cur_count,           prev_count          ]
               [cur_total−cur_count, prev_total−prev_count]

  χ²  = Σ (O − E)² / E      df = 1
  p   = 2 · (1 − Φ(√χ²))    Φ via Abramowitz–Stegun 7.1.26

The p-value deliberately stays on the normal approximation; the
strong/moderate/weak buckets are calibrated against it.

Input  : list[PeriodObservation]
Output : dict[key, TrendSignificance | None]   (None = cannot assess)
"""

import math
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from agents.base import Agent
from config.settings import Settings
from models.errors import InvalidInputError
from models.schemas import (
    ConfidenceInterval,
    PeriodObservation,
    SignificanceResult,
    TrendSignificance,
)
from utils.scoring import require_count, require_finite

logger = logging.getLogger(__name__)


# ─── Lookup Tables ───────────────────────────────────────────────────────────

# χ² critical values for df = 1
CRITICAL_VALUES: Dict[float, float] = {0.90: 2.706, 0.95: 3.841, 0.99: 6.635}

# two-tailed z for the same confidence levels
Z_SCORES: Dict[float, float] = {0.90: 1.645, 0.95: 1.96, 0.99: 2.576}

DEFAULT_LEVEL = 0.95

# Abramowitz & Stegun 7.1.26
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911


def _level_key(confidence_level: float) -> float:
    for level in CRITICAL_VALUES:
        if abs(level - confidence_level) < 1e-9:
            return level
    logger.info(
        f"Unsupported confidence level {confidence_level!r}; "
        f"using {DEFAULT_LEVEL} constants"
    )
    return DEFAULT_LEVEL


def critical_value(confidence_level: float = DEFAULT_LEVEL) -> float:
    return CRITICAL_VALUES[_level_key(confidence_level)]


def z_score_for(confidence_level: float = DEFAULT_LEVEL) -> float:
    return Z_SCORES[_level_key(confidence_level)]


# ─── Distribution Approximations ─────────────────────────────────────────────


def normal_cdf(x: float) -> float:
    """Standard normal CDF, Abramowitz–Stegun rational approximation of erf."""
    sign = -1.0 if x < 0 else 1.0
    x = abs(x) / math.sqrt(2.0)
    t = 1.0 / (1.0 + _P * x)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * math.exp(-x * x)
    return 0.5 * (1.0 + sign * y)


def chi_square_p_value(chi_square: float, degrees_of_freedom: int = 1) -> float:
    """
    Two-tailed p-value for a χ² statistic.

    df = 1 uses √χ² ~ N(0, 1). Other df fall back to the standardized
    (χ² − df) / √(2·df) on the same normal curve.
    """
    if degrees_of_freedom == 1:
        z = math.sqrt(max(chi_square, 0.0))
    else:
        z = (chi_square - degrees_of_freedom) / math.sqrt(2 * degrees_of_freedom)
    p = 2.0 * (1.0 - normal_cdf(abs(z)))
    # the approximation overshoots 1 by ~1e-9 at z = 0
    return min(1.0, max(0.0, p))


# ─── Tests & Intervals ───────────────────────────────────────────────────────


def chi_square_test(
    observed_current: float,
    observed_previous: float,
    not_observed_current: float,
    not_observed_previous: float,
    confidence_level: float = DEFAULT_LEVEL,
) -> SignificanceResult:
    """Pearson χ² test of independence on a 2×2 contingency table."""
    total_current = observed_current + not_observed_current
    total_previous = observed_previous + not_observed_previous
    grand_total = total_current + total_previous

    if grand_total == 0:
        return SignificanceResult(
            p_value=1.0,
            is_significant=False,
            confidence_level=confidence_level,
            test_type="chi-square",
            degrees_of_freedom=1,
            chi_square=0.0,
        )

    observed_all = observed_current + observed_previous
    not_observed_all = not_observed_current + not_observed_previous
    cells = [
        (observed_current, total_current * observed_all / grand_total),
        (observed_previous, total_previous * observed_all / grand_total),
        (not_observed_current, total_current * not_observed_all / grand_total),
        (not_observed_previous, total_previous * not_observed_all / grand_total),
    ]

    # a zero marginal leaves nothing to compare
    if any(expected == 0 for _, expected in cells):
        chi_square = 0.0
    else:
        chi_square = sum((o - e) ** 2 / e for o, e in cells)

    p_value = chi_square_p_value(chi_square, 1)
    return SignificanceResult(
        p_value=p_value,
        is_significant=chi_square > critical_value(confidence_level),
        confidence_level=confidence_level,
        test_type="chi-square",
        degrees_of_freedom=1,
        chi_square=chi_square,
    )


def proportion_confidence_interval(
    proportion: float,
    sample_size: float,
    confidence_level: float = DEFAULT_LEVEL,
) -> ConfidenceInterval:
    """Wald interval for a proportion, clamped to [0, 1]. Values are fractions."""
    if sample_size == 0:
        return ConfidenceInterval(lower=0.0, upper=0.0, mean=0.0, confidence_level=confidence_level)

    z = z_score_for(confidence_level)
    margin = z * math.sqrt(proportion * (1 - proportion) / sample_size)
    return ConfidenceInterval(
        lower=max(0.0, proportion - margin),
        upper=min(1.0, proportion + margin),
        mean=proportion,
        confidence_level=confidence_level,
    )


def growth_rate(current_count: float, previous_count: float) -> float:
    """Percent change; a topic appearing from nothing counts as +100%."""
    if previous_count > 0:
        return (current_count - previous_count) / previous_count * 100
    return 100.0 if current_count > 0 else 0.0


def growth_rate_confidence_interval(
    current_count: float,
    previous_count: float,
    confidence_level: float = DEFAULT_LEVEL,
) -> Optional[ConfidenceInterval]:
    """
    Interval around the growth percentage, with standard error
    √(1/cur + 1/prev) from the log-ratio of two Poisson counts.
    None when either count is zero.
    """
    current_count = require_count("current_count", current_count)
    previous_count = require_count("previous_count", previous_count)
    if current_count == 0 or previous_count == 0:
        return None

    rate = growth_rate(current_count, previous_count)
    margin = z_score_for(confidence_level) * math.sqrt(1 / current_count + 1 / previous_count) * 100
    return ConfidenceInterval(
        lower=rate - margin,
        upper=rate + margin,
        mean=rate,
        confidence_level=confidence_level,
    )


def recommendation_for(p_value: float) -> str:
    if p_value < 0.01:
        return "strong"
    if p_value < 0.05:
        return "moderate"
    if p_value < 0.10:
        return "weak"
    return "insufficient-data"


def required_sample_size(
    expected_proportion: float,
    margin_of_error: float,
    confidence_level: float = DEFAULT_LEVEL,
) -> int:
    """n = z² · p(1 − p) / E², rounded up."""
    p = require_finite("expected_proportion", expected_proportion)
    e = require_finite("margin_of_error", margin_of_error)
    if not 0 <= p <= 1:
        raise InvalidInputError(f"expected_proportion must be in [0, 1], got {expected_proportion!r}")
    if e <= 0:
        raise InvalidInputError(f"margin_of_error must be positive, got {margin_of_error!r}")
    z = z_score_for(confidence_level)
    return int(math.ceil(z * z * p * (1 - p) / (e * e)))


# ─── SignificanceEngine ──────────────────────────────────────────────────────


class SignificanceEngine(Agent):
    """
    Agent: period-over-period significance testing.

    `test_period_change` returns None when either period holds fewer than
    MIN_SAMPLE_SIZE observations. Callers must treat that as "cannot assess",
    never as "not significant".
    """

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__(name="SignificanceEngine", settings=settings)

    def test_period_change(
        self,
        current_count: float,
        previous_count: float,
        current_total: float,
        previous_total: float,
        confidence_level: Optional[float] = None,
    ) -> Optional[TrendSignificance]:
        level = confidence_level if confidence_level is not None else self.settings.DEFAULT_CONFIDENCE_LEVEL

        current_count = require_count("current_count", current_count)
        previous_count = require_count("previous_count", previous_count)
        current_total = require_count("current_total", current_total)
        previous_total = require_count("previous_total", previous_total)

        if min(current_total, previous_total) < self.settings.MIN_SAMPLE_SIZE:
            self.logger.debug(
                f"Cannot assess: totals {current_total:g}/{previous_total:g} "
                f"below {self.settings.MIN_SAMPLE_SIZE}"
            )
            return None

        if current_count > current_total or previous_count > previous_total:
            raise InvalidInputError(
                f"Counts exceed totals: {current_count:g}/{current_total:g}, "
                f"{previous_count:g}/{previous_total:g}"
            )

        significance = chi_square_test(
            current_count,
            previous_count,
            current_total - current_count,
            previous_total - previous_count,
            level,
        )
        proportion_ci = proportion_confidence_interval(
            current_count / current_total, current_total, level
        )

        return TrendSignificance(
            significance=significance,
            confidence_interval=ConfidenceInterval(
                lower=proportion_ci.lower * 100,
                upper=proportion_ci.upper * 100,
                mean=growth_rate(current_count, previous_count),
                confidence_level=level,
            ),
            significance_score=max(0.0, 1.0 - significance.p_value),
            recommendation=recommendation_for(significance.p_value),
        )

    def required_sample_size(
        self,
        expected_proportion: float,
        margin_of_error: float,
        confidence_level: Optional[float] = None,
    ) -> int:
        level = confidence_level if confidence_level is not None else self.settings.DEFAULT_CONFIDENCE_LEVEL
        return required_sample_size(expected_proportion, margin_of_error, level)

    def filter_significant_trends(
        self,
        trends: Iterable[Mapping[str, Any]],
        previous: Mapping[str, Mapping[str, float]],
        current_total: float,
        threshold: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """
        Keep trends whose change is significant.

        Each trend is a mapping with "name", "count" and "growth". `previous`
        maps a trend name to {"count", "total"} from the prior period. A trend
        with no prior record is new: it is kept when its count reaches
        NEW_TREND_MIN_COUNT, with a fixed "strong" result.
        """
        threshold = self.settings.SIGNIFICANCE_THRESHOLD if threshold is None else threshold
        kept: List[Dict[str, Any]] = []

        for trend in trends:
            name = trend.get("name") or ""
            count = require_count(f"count of {name!r}", trend.get("count", 0))
            prior = previous.get(name)

            if prior is None:
                if count >= self.settings.NEW_TREND_MIN_COUNT:
                    kept.append({**trend, "significance": self._new_trend_significance(trend)})
                else:
                    self.logger.debug(f"New trend {name!r} has only {count:g} mentions")
                continue

            result = self.test_period_change(
                count, prior.get("count", 0), current_total, prior.get("total", 0)
            )
            if result is not None and result.significance.p_value <= threshold:
                kept.append({**trend, "significance": result})

        return kept

    @staticmethod
    def _new_trend_significance(trend: Mapping[str, Any]) -> TrendSignificance:
        growth = float(trend.get("growth") or 0.0)
        return TrendSignificance(
            significance=SignificanceResult(
                p_value=0.01,
                is_significant=True,
                confidence_level=DEFAULT_LEVEL,
                test_type="proportion",
                degrees_of_freedom=None,
            ),
            confidence_interval=ConfidenceInterval(
                lower=growth, upper=growth, mean=growth, confidence_level=DEFAULT_LEVEL
            ),
            significance_score=0.9,
            recommendation="strong",
        )

    # ------------------------------------------------------------------
    def run(self, observations: Sequence[PeriodObservation]) -> Dict[str, Optional[TrendSignificance]]:
        self.logger.info(f"Testing {len(observations)} period observations…")
        results: Dict[str, Optional[TrendSignificance]] = {}
        for obs in observations:
            results[obs.key] = self.test_period_change(
                obs.current_count, obs.previous_count, obs.current_total, obs.previous_total
            )

        assessed = [r for r in results.values() if r is not None]
        significant = sum(1 for r in assessed if r.significance.is_significant)
        self.logger.info(
            f"{len(assessed)}/{len(results)} assessable, {significant} significant"
        )
        return results
