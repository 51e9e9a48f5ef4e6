"""JSON-RPC client that walks an ordered endpoint list.

Each call tries the endpoints of its :class:`core.health.EndpointPool` in turn,
advancing on any transport error, non-2xx status, undecodable body or
JSON-RPC ``error`` member. Failure is raised only once every endpoint has been
tried.
"""

from __future__ import annotations

import itertools
import logging
import time
from typing import Any, Iterable, List, Optional

import httpx

from core.errors import UpstreamUnavailable
from core.health import EndpointPool

LOGGER = logging.getLogger(__name__)

_REQUEST_IDS = itertools.count(1)


class JsonRpcClient:
    """Minimal JSON-RPC 2.0 caller over a pool of HTTP endpoints."""

    def __init__(self, client: httpx.AsyncClient, urls: Iterable[str], name: str = "rpc") -> None:
        self._client = client
        self._pool = EndpointPool.from_urls(urls)
        self.name = name

    @property
    def pool(self) -> EndpointPool:
        return self._pool

    async def call(self, method: str, params: Optional[Any] = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(_REQUEST_IDS),
            "method": method,
            "params": [] if params is None else params,
        }
        errors: List[str] = []
        for endpoint in self._pool.candidates():
            started = time.perf_counter()
            try:
                resp = await self._client.post(endpoint.url, json=payload)
            except httpx.HTTPError as exc:
                reason = f"network error: {exc}"
                self._pool.mark_failure(endpoint, reason)
                errors.append(f"{endpoint.name}:{reason}")
                continue
            if not resp.is_success:
                reason = f"status {resp.status_code}"
                self._pool.mark_failure(endpoint, reason)
                errors.append(f"{endpoint.name}:{reason}")
                continue
            try:
                data = resp.json()
            except ValueError:
                self._pool.mark_failure(endpoint, "malformed JSON")
                errors.append(f"{endpoint.name}:malformed JSON")
                continue
            if isinstance(data, dict) and "result" in data and not data.get("error"):
                self._pool.mark_success(endpoint, (time.perf_counter() - started) * 1000)
                return data["result"]
            error = data.get("error") if isinstance(data, dict) else None
            reason = _error_message(error)
            self._pool.mark_failure(endpoint, reason)
            errors.append(f"{endpoint.name}:{reason}")
        LOGGER.debug("%s %s exhausted all endpoints: %s", self.name, method, errors)
        raise UpstreamUnavailable(self.name, ";".join(errors) or "no endpoints configured")


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return f"rpc error {error.get('code')}: {error.get('message', '')}".strip()
    if error:
        return f"rpc error: {error}"
    return "missing result"


__all__ = ["JsonRpcClient"]
