# errors.py – Taxonomie des erreurs du pipeline wiki → cache

from __future__ import annotations

from typing import List, Optional


class WikiDataError(Exception):
    """Base exception for the wiki acquisition pipeline."""
    pass


class ExtractionError(WikiDataError):
    """Raised when no Lua table literal can be found in the fetched page."""
    pass


class ParseError(WikiDataError):
    """Raised when a table literal was found but yielded zero valid records."""
    pass


class FetchError(WikiDataError):
    """
    Raised when a fetch tier fails, or when every tier of the chain failed.

    Attributes:
        tier: Name of the strategy that produced the error
        status: HTTP status code when the failure was a non-2xx response
        attempts: For the aggregate error, one FetchError per tier tried
    """

    def __init__(
        self,
        message: str,
        *,
        tier: Optional[str] = None,
        status: Optional[int] = None,
        attempts: Optional[List["FetchError"]] = None,
    ):
        super().__init__(message)
        self.tier = tier
        self.status = status
        self.attempts = attempts or []

    def __str__(self) -> str:
        msg = super().__str__()
        details = []
        if self.tier:
            details.append(f"tier={self.tier}")
        if self.status is not None:
            details.append(f"status={self.status}")
        return f"{msg} ({', '.join(details)})" if details else msg


class CacheStoreError(WikiDataError):
    """Raised when the durable record store is unreachable or rejects a request."""

    def __init__(self, message: str, *, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
