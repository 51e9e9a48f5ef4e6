"""Direct contract probing for tokens an indexer has not picked up yet.

Two discovery passes are offered: probing a static list of contracts, and
scanning recent ``Transfer`` logs addressed to the wallet for contracts that
are not known at all. Both are best effort; a probe that fails or reports a
zero balance is skipped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from connectors.abi import (
    DECIMALS,
    NAME,
    SYMBOL,
    TRANSFER_TOPIC,
    address_topic,
    balance_of_call,
    decode_abi_string,
    decode_uint,
)
from connectors.jsonrpc import JsonRpcClient
from core.errors import UpstreamUnavailable

LOGGER = logging.getLogger(__name__)

UNKNOWN_PROBE_SYMBOL = "UNKNOWN"
DEFAULT_DECIMALS = 18


@dataclass(slots=True)
class ProbedToken:
    """Balance and metadata read straight from an ERC20 contract."""

    contract_address: str
    symbol: str
    name: str
    decimals: int
    raw_balance: int

    @property
    def balance(self) -> float:
        return self.raw_balance / (10 ** self.decimals)


class EvmRpcScanner:
    def __init__(self, rpc: JsonRpcClient) -> None:
        self._rpc = rpc

    async def _eth_call(self, contract: str, data: str) -> Optional[str]:
        try:
            return await self._rpc.call("eth_call", [{"to": contract, "data": data}, "latest"])
        except UpstreamUnavailable as exc:
            LOGGER.debug("eth_call %s on %s failed: %s", data[:10], contract, exc)
            return None

    async def probe(self, contract: str, owner: str) -> Optional[ProbedToken]:
        """Read balance, decimals, symbol and name; ``None`` if nothing is held."""

        contract = contract.lower()
        balance_hex, decimals_hex, symbol_hex, name_hex = await asyncio.gather(
            self._eth_call(contract, balance_of_call(owner)),
            self._eth_call(contract, DECIMALS),
            self._eth_call(contract, SYMBOL),
            self._eth_call(contract, NAME),
        )
        raw_balance = decode_uint(balance_hex)
        if not raw_balance:
            return None
        decimals = decode_uint(decimals_hex)
        if decimals is None or decimals > 36:
            decimals = DEFAULT_DECIMALS
        symbol = decode_abi_string(symbol_hex) or UNKNOWN_PROBE_SYMBOL
        name = decode_abi_string(name_hex) or symbol
        return ProbedToken(
            contract_address=contract,
            symbol=symbol,
            name=name,
            decimals=decimals,
            raw_balance=raw_balance,
        )

    async def scan_known(self, contracts: Iterable[str], owner: str, exclude: Set[str]) -> List[ProbedToken]:
        """Probe every contract in ``contracts`` that is not in ``exclude``."""

        targets = [c.lower() for c in contracts if c.lower() not in exclude]
        if not targets:
            return []
        results = await asyncio.gather(*(self.probe(c, owner) for c in targets), return_exceptions=True)
        found = [r for r in results if isinstance(r, ProbedToken)]
        LOGGER.info("Known-contract probe found %s/%s holdings", len(found), len(targets))
        return found

    async def discover_contracts(self, owner: str, blocks: int) -> List[str]:
        """Contracts that emitted a ``Transfer`` to ``owner`` in the last ``blocks`` blocks."""

        latest = decode_uint(await self._rpc.call("eth_blockNumber", []))
        if latest is None:
            return []
        from_block = max(latest - blocks, 0)
        logs = await self._rpc.call(
            "eth_getLogs",
            [
                {
                    "fromBlock": hex(from_block),
                    "toBlock": "latest",
                    "topics": [TRANSFER_TOPIC, None, address_topic(owner)],
                }
            ],
        )
        seen: List[str] = []
        for entry in logs or []:
            address = str((entry or {}).get("address") or "").lower()
            if address and address not in seen:
                seen.append(address)
        return seen

    async def scan_logs(self, owner: str, exclude: Set[str], blocks: int = 500_000, limit: int = 15) -> List[ProbedToken]:
        """Probe up to ``limit`` contracts discovered from inbound transfers."""

        try:
            discovered = await self.discover_contracts(owner, blocks)
        except UpstreamUnavailable as exc:
            LOGGER.warning("Transfer log scan failed: %s", exc)
            return []
        fresh = [c for c in discovered if c not in exclude][:limit]
        if not fresh:
            return []
        results = await asyncio.gather(*(self.probe(c, owner) for c in fresh), return_exceptions=True)
        found = [r for r in results if isinstance(r, ProbedToken)]
        LOGGER.info("Log scan discovered %s new holdings from %s contracts", len(found), len(fresh))
        return found


__all__ = ["EvmRpcScanner", "ProbedToken", "UNKNOWN_PROBE_SYMBOL"]
