"""Shared error classes for the scoring agents and the pipeline."""

from __future__ import annotations


class ScoringEngineError(RuntimeError):
    """Base exception raised by the scoring agents and the pipeline."""

    def __init__(self, message: str, code: str = "SCORING_ENGINE_ERROR") -> None:
        super().__init__(message)
        self.code = code


class InvalidInputError(ScoringEngineError, ValueError):
    """Raised for numeric inputs that can only come from a caller bug (negative counts, NaN)."""

    def __init__(self, message: str, code: str = "INVALID_INPUT") -> None:
        super().__init__(message, code=code)


class MalformedInputError(ScoringEngineError):
    """Raised when a record cannot be read as an event at all."""

    def __init__(self, message: str, code: str = "MALFORMED_INPUT") -> None:
        super().__init__(message, code=code)
