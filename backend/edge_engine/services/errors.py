"""Error taxonomy shared by the fetcher, ingestor and job layer."""
from __future__ import annotations
from typing import Optional


class EdgeEngineError(Exception):
    """Base class for pipeline errors."""


class TransientNetworkError(EdgeEngineError):
    """Timeout, connection failure or 5xx that survived the retry budget."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(EdgeEngineError):
    """Provider signalled a rate limit (HTTP 429 or a quota message). Never retried."""

    def __init__(self, provider: str, message: str = "rate limited"):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class MalformedRecordError(EdgeEngineError):
    """A single provider record could not be parsed."""


class PersistenceError(EdgeEngineError):
    """A store write failed for one record."""

    def __init__(self, contract: str, cause: Exception):
        super().__init__(f"persist {contract} failed: {cause}")
        self.contract = contract
        self.cause = cause


class UpstreamExhausted(EdgeEngineError):
    """Every provider in the fallback chain came back empty or failed."""
