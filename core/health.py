"""Endpoint pool bookkeeping for raw RPC fan-out."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, Iterable, List


@dataclass(slots=True)
class Endpoint:
    """Runtime state of a single RPC endpoint."""

    name: str
    url: str
    priority: int = 0
    last_checked: float = 0.0
    consecutive_failures: int = 0
    latency_ms: float = 0.0
    healthy: bool = True
    failure_reason: str = ""


class EndpointPool:
    """Priority-ordered endpoints with failure counters."""

    def __init__(self, endpoints: Iterable[Endpoint]) -> None:
        self._endpoints: List[Endpoint] = sorted(list(endpoints), key=lambda e: e.priority)

    @classmethod
    def from_urls(cls, urls: Iterable[str]) -> "EndpointPool":
        return cls(Endpoint(name=f"rpc{i}", url=url, priority=i) for i, url in enumerate(urls))

    @property
    def endpoints(self) -> List[Endpoint]:
        return list(self._endpoints)

    def candidates(self) -> List[Endpoint]:
        """All endpoints in try-order: healthy first, each group by priority."""

        healthy = [ep for ep in self._endpoints if ep.healthy]
        unhealthy = [ep for ep in self._endpoints if not ep.healthy]
        return healthy + unhealthy

    def mark_success(self, endpoint: Endpoint, latency_ms: float) -> None:
        endpoint.latency_ms = latency_ms
        endpoint.last_checked = time.time()
        endpoint.consecutive_failures = 0
        endpoint.healthy = True
        endpoint.failure_reason = ""

    def mark_failure(self, endpoint: Endpoint, reason: str) -> None:
        endpoint.consecutive_failures += 1
        endpoint.last_checked = time.time()
        endpoint.healthy = False
        endpoint.latency_ms = 0.0
        endpoint.failure_reason = reason

    def snapshot(self) -> List[Dict[str, object]]:
        """Serializable view for logs and the health endpoint."""

        return [
            {
                "name": ep.name,
                "url": ep.url,
                "healthy": ep.healthy,
                "latency_ms": ep.latency_ms,
                "failures": ep.consecutive_failures,
                "last_checked": ep.last_checked,
                "reason": ep.failure_reason,
            }
            for ep in self._endpoints
        ]


__all__ = ["Endpoint", "EndpointPool"]
