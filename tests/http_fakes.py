"""Scripted upstream for ``httpx.MockTransport``.

Routes are matched in registration order on a URL substring and, for JSON-RPC
posts, on the RPC method (plus an optional predicate over its params).
"""

from __future__ import annotations

import json
from typing import Any, Callable, List, Optional

import httpx


class FakeUpstream:
    def __init__(self) -> None:
        self._routes: List[tuple] = []
        self.calls: List[httpx.Request] = []
        self.unmatched: List[str] = []

    def get(self, url_part: str, body: Any = None, status: int = 200) -> "FakeUpstream":
        self._routes.append((url_part, None, None, _static(body, status)))
        return self

    def fail(self, url_part: str, exc: Optional[Exception] = None) -> "FakeUpstream":
        def _raise(request: httpx.Request) -> httpx.Response:
            raise exc or httpx.ConnectError("connection refused", request=request)

        self._routes.append((url_part, None, None, _raise))
        return self

    def rpc(
        self,
        url_part: str,
        method: str,
        result: Any = None,
        error: Any = None,
        status: int = 200,
        when: Optional[Callable[[Any], bool]] = None,
    ) -> "FakeUpstream":
        def _respond(request: httpx.Request) -> httpx.Response:
            payload = json.loads(request.content)
            if status != 200:
                return httpx.Response(status)
            body = {"jsonrpc": "2.0", "id": payload.get("id")}
            if error is not None:
                body["error"] = error
            else:
                body["result"] = result
            return httpx.Response(200, json=body)

        self._routes.append((url_part, method, when, _respond))
        return self

    def count(self, url_part: str, method: Optional[str] = None) -> int:
        total = 0
        for request in self.calls:
            if url_part not in str(request.url):
                continue
            if method is not None and _rpc_method(request)[0] != method:
                continue
            total += 1
        return total

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        url = str(request.url)
        rpc_method, rpc_params = _rpc_method(request)
        for url_part, method, when, respond in self._routes:
            if url_part not in url:
                continue
            if method is not None and method != rpc_method:
                continue
            if when is not None and not when(rpc_params):
                continue
            return respond(request)
        self.unmatched.append(f"{request.method} {url} {rpc_method or ''}".strip())
        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def factory(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), timeout=timeout)


def _static(body: Any, status: int) -> Callable[[httpx.Request], httpx.Response]:
    def _respond(request: httpx.Request) -> httpx.Response:
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    return _respond


def _rpc_method(request: httpx.Request) -> tuple:
    if request.method != "POST" or not request.content:
        return None, None
    try:
        payload = json.loads(request.content)
    except ValueError:
        return None, None
    if not isinstance(payload, dict):
        return None, None
    return payload.get("method"), payload.get("params")
