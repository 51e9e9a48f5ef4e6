"""Human-readable name to address lookups.

Supported schemes: ``unstoppable``, ``ens``, ``handle`` (ADA Handle) and
``sns``. Every lookup either returns one address or raises
:class:`core.errors.NotFoundError`; provider failures surface as
:class:`core.errors.UpstreamUnavailable`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from connectors.base import get_json
from connectors.jsonrpc import JsonRpcClient
from connectors.schemas import as_str, dig
from core.errors import NotFoundError, UnsupportedChainError, UpstreamUnavailable
from core.fallback import first_success

LOGGER = logging.getLogger(__name__)

UNSTOPPABLE_BASE = "https://api.unstoppabledomains.com/resolve/domains"
HANDLE_API_BASE = "https://api.handle.me/handles"
BLOCKFROST_BASE = "https://cardano-mainnet.blockfrost.io/api/v0"
SNS_PROXY_BASE = "https://sns-sdk-proxy.bonfida.workers.dev/resolve"
ENS_RPC_URL = "https://eth-mainnet.g.alchemy.com/v2/{key}"

ADA_HANDLE_POLICY = "f0ff48bbb7bbe9d59a40f1ce90e9e9d0ff5002ec48f232b49ca0fb9a"

_HANDLE_SHAPE = re.compile(r"^[a-z0-9_-]+$")

SCHEMES = ("unstoppable", "ens", "handle", "sns")


def is_ada_handle(value: str) -> bool:
    """``$name``, or a bare string that cannot be a Cardano address."""

    value = (value or "").strip()
    if value.startswith("$"):
        return True
    if value.startswith(("addr", "stake")):
        return False
    return bool(_HANDLE_SHAPE.match(value.lower()))


def _reraise_unless_404(exc: UpstreamUnavailable) -> None:
    if exc.status_code != 404:
        raise exc


@dataclass
class NameResolver:
    client: httpx.AsyncClient
    alchemy_key: str = ""
    blockfrost_key: str = ""
    unstoppable_key: str = ""
    blockfrost_base: str = BLOCKFROST_BASE

    async def resolve(self, scheme: str, name: str) -> str:
        handlers: Dict[str, Callable[[str], Awaitable[str]]] = {
            "unstoppable": self.resolve_unstoppable,
            "ens": self.resolve_ens,
            "handle": self.resolve_ada_handle,
            "sns": self.resolve_sns,
        }
        handler = handlers.get((scheme or "").lower())
        if handler is None:
            raise UnsupportedChainError(f"unknown naming scheme: {scheme}")
        name = (name or "").strip()
        if not name:
            raise NotFoundError("empty name")
        address = await handler(name)
        LOGGER.info("Resolved %s name %s", scheme, name)
        return address

    async def resolve_unstoppable(self, domain: str) -> str:
        if not self.unstoppable_key:
            raise UpstreamUnavailable("unstoppable", "API key not configured")
        try:
            data = await get_json(
                self.client,
                "unstoppable",
                f"{UNSTOPPABLE_BASE}/{domain.lower()}",
                headers={"Authorization": f"Bearer {self.unstoppable_key}"},
            )
        except UpstreamUnavailable as exc:
            _reraise_unless_404(exc)
            data = None
        address = as_str(dig(data, "records", "crypto.ETH.address")) or as_str(dig(data, "meta", "owner"))
        if not address:
            raise NotFoundError(f"Domain not found: {domain}")
        return address

    async def resolve_ens(self, name: str) -> str:
        if not self.alchemy_key:
            raise UpstreamUnavailable("ens", "Alchemy key not configured")
        rpc = JsonRpcClient(self.client, [ENS_RPC_URL.format(key=self.alchemy_key)], name="ens")
        address = as_str(await rpc.call("eth_resolveName", [name.lower()]))
        if not address:
            raise NotFoundError(f"ENS name not found: {name}")
        return address

    async def resolve_sns(self, name: str) -> str:
        label = name.lower().removesuffix(".sol")
        try:
            data = await get_json(self.client, "sns", f"{SNS_PROXY_BASE}/{label}")
        except UpstreamUnavailable as exc:
            _reraise_unless_404(exc)
            data = None
        if not isinstance(data, dict) or data.get("s") != "ok" or not data.get("result"):
            raise NotFoundError(f"SNS name not found: {name}")
        return as_str(data["result"])

    async def resolve_ada_handle(self, handle: str) -> str:
        """Handle API first, then the current holder of the handle token."""

        name = handle.strip().lstrip("$").lower()
        if not name:
            raise NotFoundError("empty handle")
        attempts = [("handle.me", lambda: self._handle_api(name))]
        if self.blockfrost_key:
            attempts.append(("blockfrost", lambda: self._handle_holder(name)))
        failures: List[str] = []
        address = await first_success(attempts, failures=failures)
        if address:
            return address
        if len(failures) == len(attempts):
            raise UpstreamUnavailable("adahandle", f"every lookup failed for ${name}")
        raise NotFoundError(f"Handle not found: ${name}")

    async def _handle_api(self, name: str) -> Optional[str]:
        try:
            data: Any = await get_json(self.client, "handle.me", f"{HANDLE_API_BASE}/{name}")
        except UpstreamUnavailable as exc:
            _reraise_unless_404(exc)
            return None
        return as_str(dig(data, "resolved_addresses", "ada")) or None

    async def _handle_holder(self, name: str) -> Optional[str]:
        unit = ADA_HANDLE_POLICY + name.encode("utf-8").hex()
        try:
            holders = await get_json(
                self.client,
                "blockfrost",
                f"{self.blockfrost_base}/assets/{unit}/addresses",
                headers={"project_id": self.blockfrost_key},
            )
        except UpstreamUnavailable as exc:
            _reraise_unless_404(exc)
            return None
        if not isinstance(holders, list) or not holders:
            return None
        return as_str(dig(holders, 0, "address")) or None


__all__ = ["ADA_HANDLE_POLICY", "NameResolver", "SCHEMES", "is_ada_handle"]
