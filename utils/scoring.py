"""
Small numeric and term-matching helpers shared by the scoring agents.
"""

from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

from models.errors import InvalidInputError


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def require_finite(name: str, value: float) -> float:
    """Reject NaN/inf; those only reach the scoring math through a caller bug."""
    if value is None or isinstance(value, bool):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(number):
        raise InvalidInputError(f"{name} must be finite, got {value!r}")
    return number


def require_count(name: str, value: float) -> float:
    number = require_finite(name, value)
    if number < 0:
        raise InvalidInputError(f"{name} must be non-negative, got {value!r}")
    return number


def lowered(terms: Iterable[str]) -> list:
    return [t.lower() for t in terms if t]


def contains_any(text: str, terms: Sequence[str]) -> bool:
    return any(term in text for term in terms)


def any_contains(values: Iterable[Optional[str]], terms: Sequence[str]) -> bool:
    """True if any term is a substring of any (lowercased) value."""
    lowered_values = [v.lower() for v in values if v]
    return any(term in value for term in terms for value in lowered_values)


def term_fraction(text: str, terms: Sequence[str]) -> float:
    """Fraction of terms found in `text`. Callers handle the empty-terms default."""
    terms = lowered(terms)
    if not terms:
        return 0.0
    matched = sum(1 for term in terms if term in text)
    return min(1.0, matched / len(terms))
