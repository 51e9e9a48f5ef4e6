"""Exception types shared by adapters, resolvers and the HTTP layer."""

from __future__ import annotations

from typing import Optional


class AggregatorError(Exception):
    """Base class for every error raised by the aggregator."""


class NotFoundError(AggregatorError):
    """A handle, domain or account could not be resolved to an address."""


class UpstreamUnavailable(AggregatorError):
    """A provider call failed: network error, non-2xx status or bad payload."""

    def __init__(self, provider: str, reason: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason
        self.status_code = status_code


class UnsupportedChainError(AggregatorError):
    """The requested chain or asset kind is not served."""


__all__ = [
    "AggregatorError",
    "NotFoundError",
    "UpstreamUnavailable",
    "UnsupportedChainError",
]
