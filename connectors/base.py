"""HTTP helpers shared by the provider connectors.

Every helper turns transport errors, non-2xx statuses and undecodable bodies
into :class:`core.errors.UpstreamUnavailable` so that callers deal with a
single failure type.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from core.errors import UpstreamUnavailable

LOGGER = logging.getLogger(__name__)


@dataclass
class HttpClients:
    """Factory for the shared :class:`httpx.AsyncClient`, injectable in tests."""

    timeout: float = 10.0
    http_factory: Optional[Callable[[float], httpx.AsyncClient]] = None

    def create(self) -> httpx.AsyncClient:
        if self.http_factory is not None:
            return self.http_factory(self.timeout)
        return httpx.AsyncClient(timeout=self.timeout, headers={"Accept": "application/json"})


async def request_json(
    client: httpx.AsyncClient,
    provider: str,
    method: str,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    json: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    """Perform one request and decode its JSON body."""

    try:
        resp = await client.request(method, url, params=params, json=json, headers=headers)
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable(provider, f"network error: {exc}") from exc
    if not resp.is_success:
        raise UpstreamUnavailable(provider, f"status {resp.status_code}", status_code=resp.status_code)
    try:
        return resp.json()
    except ValueError as exc:
        raise UpstreamUnavailable(provider, "malformed JSON", status_code=resp.status_code) from exc


async def get_json(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    return await request_json(client, provider, "GET", url, params=params, headers=headers)


async def post_json(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    payload: Any,
    *,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    return await request_json(client, provider, "POST", url, json=payload, headers=headers)


async def get_json_with_backoff(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    retries: int = 3,
    backoff: float = 0.5,
) -> Any:
    """GET with exponential back-off, applied to HTTP 429 responses only."""

    attempt = 0
    while True:
        try:
            return await get_json(client, provider, url, params=params)
        except UpstreamUnavailable as exc:
            if exc.status_code != 429 or attempt >= retries:
                raise
            delay = backoff * (2 ** attempt)
            attempt += 1
            LOGGER.info("%s rate limited, retry %s in %.2fs", provider, attempt, delay)
            await asyncio.sleep(delay)


__all__ = [
    "HttpClients",
    "get_json",
    "get_json_with_backoff",
    "post_json",
    "request_json",
]
