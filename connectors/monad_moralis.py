"""Monad adapter: Moralis index first, direct RPC probing for what it misses.

Moralis under-reports young Monad tokens, so after the indexed listing two
best-effort passes run over raw RPC: a probe of well-known contracts, then a
bounded scan of inbound ``Transfer`` logs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

import httpx

from connectors.base import get_json
from connectors.evm_alchemy import DEFAULT_COLLECTION, erc20_asset, native_asset
from connectors.jsonrpc import JsonRpcClient
from connectors.rpc_scanner import EvmRpcScanner, ProbedToken
from connectors.schemas import MoralisNft, MoralisToken, as_int
from core.chains import ChainConfig
from core.config_loader import LimitsConfig
from core.models import Asset, AssetKind, parse_traits

LOGGER = logging.getLogger(__name__)

MORALIS_BASE = "https://deep-index.moralis.io/api/v2.2"


@dataclass
class MonadAdapter:
    client: httpx.AsyncClient
    api_key: str
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    name: str = "moralis"
    base_url: str = MORALIS_BASE
    _rpc_clients: Dict[str, JsonRpcClient] = field(default_factory=dict, init=False, repr=False)

    def rpc(self, chain: ChainConfig) -> JsonRpcClient:
        """Endpoint pool for ``chain``, kept across requests so health survives."""

        client = self._rpc_clients.get(chain.id)
        if client is None:
            client = JsonRpcClient(self.client, chain.rpc_urls, name=f"{chain.id}-rpc")
            self._rpc_clients[chain.id] = client
        return client

    def rpc_health(self) -> Dict[str, List[Dict[str, object]]]:
        return {chain_id: rpc.pool.snapshot() for chain_id, rpc in self._rpc_clients.items()}

    async def _moralis(self, chain: ChainConfig, address: str, endpoint: str, **params: Any) -> Any:
        return await get_json(
            self.client,
            self.name,
            f"{self.base_url}/{address}/{endpoint}",
            params={"chain": chain.moralis_chain, **params},
            headers={"X-API-Key": self.api_key},
        )

    async def list_tokens(self, chain: ChainConfig, address: str) -> List[Asset]:
        if not self.api_key:
            LOGGER.warning("Moralis key missing; no tokens for %s", chain.id)
            return []
        try:
            native_raw, erc20_raw = await asyncio.gather(
                self._moralis(chain, address, "balance"),
                self._moralis(chain, address, "erc20"),
            )
        except Exception as exc:
            # Never build totals from half of the native/token pair.
            LOGGER.warning("Moralis token listing failed on %s for %s: %s", chain.id, address, exc)
            return []

        assets: List[Asset] = []
        raw_native = native_raw.get("balance") if isinstance(native_raw, dict) else None
        native = native_asset(chain, as_int(raw_native), self.limits.dust_threshold)
        if native is not None:
            assets.append(native)

        rows = erc20_raw.get("result") if isinstance(erc20_raw, dict) else erc20_raw
        for row in rows or []:
            if not isinstance(row, dict):
                continue
            token = MoralisToken.from_dict(row)
            if not token.token_address or token.balance <= 0:
                continue
            assets.append(
                erc20_asset(
                    chain,
                    token.token_address,
                    token.balance,
                    symbol=token.symbol,
                    name=token.name,
                    logo=token.logo,
                )
            )
        LOGGER.info("Moralis indexed %s fungible holdings on %s", len(assets), chain.id)

        assets.extend(await self._rpc_fallback(chain, address, assets))
        return assets

    async def _rpc_fallback(self, chain: ChainConfig, address: str, indexed: List[Asset]) -> List[Asset]:
        scanner = EvmRpcScanner(self.rpc(chain))
        exclude: Set[str] = {a.contract_address for a in indexed if a.contract_address}
        found: List[ProbedToken] = []
        try:
            found.extend(await scanner.scan_known(chain.known_tokens, address, exclude))
            exclude |= {c.lower() for c in chain.known_tokens}
            exclude |= {p.contract_address for p in found}
            found.extend(
                await scanner.scan_logs(
                    address,
                    exclude,
                    blocks=self.limits.log_scan_blocks,
                    limit=self.limits.log_scan_limit,
                )
            )
        except Exception as exc:
            LOGGER.warning("RPC fallback on %s for %s stopped early: %s", chain.id, address, exc)
        return [
            erc20_asset(chain, p.contract_address, p.balance, symbol=p.symbol, name=p.name)
            for p in found
        ]

    async def list_nfts(self, chain: ChainConfig, address: str) -> List[Asset]:
        if not self.api_key:
            LOGGER.warning("Moralis key missing; no NFTs for %s", chain.id)
            return []
        try:
            data = await self._moralis(chain, address, "nft", format="decimal", media_items="true")
        except Exception as exc:
            LOGGER.warning("Moralis NFT listing failed on %s for %s: %s", chain.id, address, exc)
            return []
        assets: List[Asset] = []
        rows = data.get("result") if isinstance(data, dict) else None
        for row in rows or []:
            if not isinstance(row, dict):
                continue
            nft = MoralisNft.from_dict(row)
            assets.append(
                Asset(
                    id=f"{chain.id}-{nft.token_address}-{nft.token_id}",
                    chain=chain.id,
                    kind=AssetKind.NON_FUNGIBLE,
                    name=nft.display_name,
                    image=nft.image,
                    collection=nft.name or DEFAULT_COLLECTION,
                    traits=parse_traits(nft.attributes),
                    description=nft.description,
                    contract_address=nft.token_address or None,
                    token_id=nft.token_id,
                )
            )
        return assets


__all__ = ["MORALIS_BASE", "MonadAdapter"]
