"""
Custom exceptions for the statistics engine.
"""
from __future__ import annotations


class CourtStatsError(RuntimeError):
    """
    Generic courtstats error.
    """


class RatingConfigError(CourtStatsError):
    """
    Raised when the rating weight table is missing or incomplete.
    """

    def __init__(self, message: str, *, missing: tuple[str, ...] = ()):
        super().__init__(message)
        self.missing = missing


class MatchNotFoundError(CourtStatsError):
    """
    Raised when a requested match record is not found.
    """

    def __init__(self, message: str, *, match_id: str | None = None):
        super().__init__(message)
        self.match_id = match_id
