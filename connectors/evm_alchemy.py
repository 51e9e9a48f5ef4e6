"""Alchemy-backed adapter for the Ethereum-family chains."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from connectors.abi import decode_uint
from connectors.base import get_json
from connectors.jsonrpc import JsonRpcClient
from connectors.schemas import (
    UNKNOWN_SYMBOL,
    UNKNOWN_TOKEN_NAME,
    AlchemyNft,
    AlchemyTokenBalance,
    AlchemyTokenMetadata,
)
from core.chains import ChainConfig
from core.config_loader import LimitsConfig
from core.errors import UpstreamUnavailable
from core.models import Asset, AssetKind, parse_traits

LOGGER = logging.getLogger(__name__)

DEFAULT_COLLECTION = "Collection"


def native_asset(chain: ChainConfig, raw_balance: int, dust_threshold: float) -> Optional[Asset]:
    """Native-currency entry, or ``None`` when the balance is dust."""

    balance = raw_balance / (10 ** chain.native.decimals)
    if balance <= dust_threshold:
        return None
    return Asset(
        id=chain.native_id,
        chain=chain.id,
        kind=AssetKind.FUNGIBLE,
        name=chain.native.name,
        symbol=chain.native.symbol,
        image=chain.native.logo,
        balance=balance,
        is_native=True,
    )


def erc20_asset(
    chain: ChainConfig,
    contract: str,
    balance: float,
    symbol: str = "",
    name: str = "",
    logo: str = "",
    usd_price: Optional[float] = None,
) -> Asset:
    contract = contract.lower()
    return Asset(
        id=contract,
        chain=chain.id,
        kind=AssetKind.FUNGIBLE,
        name=name or UNKNOWN_TOKEN_NAME,
        symbol=symbol or UNKNOWN_SYMBOL,
        image=logo,
        balance=balance,
        usd_price=usd_price,
        contract_address=contract,
    )


@dataclass
class EvmAdapter:
    """NFTs through the Alchemy NFT API, balances through Alchemy JSON-RPC."""

    client: httpx.AsyncClient
    api_key: str
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    name: str = "alchemy"

    def _rpc_url(self, chain: ChainConfig) -> str:
        return f"https://{chain.alchemy_network}.g.alchemy.com/v2/{self.api_key}"

    def _nft_url(self, chain: ChainConfig) -> str:
        return f"https://{chain.alchemy_network}.g.alchemy.com/nft/v3/{self.api_key}/getNFTsForOwner"

    async def list_nfts(self, chain: ChainConfig, address: str) -> List[Asset]:
        if not self.api_key:
            LOGGER.warning("Alchemy key missing; no NFTs for %s", chain.id)
            return []
        try:
            return await self._fetch_nfts(chain, address)
        except Exception as exc:
            LOGGER.warning("NFT listing failed on %s for %s: %s", chain.id, address, exc)
            return []

    async def list_tokens(self, chain: ChainConfig, address: str) -> List[Asset]:
        if not self.api_key:
            LOGGER.warning("Alchemy key missing; no tokens for %s", chain.id)
            return []
        try:
            return await self._fetch_tokens(chain, address)
        except Exception as exc:
            LOGGER.warning("Token listing failed on %s for %s: %s", chain.id, address, exc)
            return []

    async def _fetch_nfts(self, chain: ChainConfig, address: str) -> List[Asset]:
        data = await get_json(
            self.client,
            self.name,
            self._nft_url(chain),
            params={"owner": address, "withMetadata": "true"},
        )
        assets: List[Asset] = []
        for raw in (data or {}).get("ownedNfts") or []:
            if not isinstance(raw, dict):
                continue
            nft = AlchemyNft.from_dict(raw)
            assets.append(
                Asset(
                    id=f"{chain.id}-{nft.contract_address}-{nft.token_id}",
                    chain=chain.id,
                    kind=AssetKind.NON_FUNGIBLE,
                    name=nft.display_name,
                    image=nft.image,
                    collection=nft.collection or DEFAULT_COLLECTION,
                    traits=parse_traits(nft.raw_traits),
                    description=nft.description,
                    contract_address=nft.contract_address or None,
                    token_id=nft.token_id,
                )
            )
        LOGGER.info("Alchemy returned %s NFTs on %s", len(assets), chain.id)
        return assets

    async def _fetch_tokens(self, chain: ChainConfig, address: str) -> List[Asset]:
        rpc = JsonRpcClient(self.client, [self._rpc_url(chain)], name=f"{self.name}:{chain.id}")
        # Native and token balances are combined into one listing: both must succeed.
        native_hex, token_balances = await asyncio.gather(
            rpc.call("eth_getBalance", [address, "latest"]),
            rpc.call("alchemy_getTokenBalances", [address, "erc20"]),
        )

        assets: List[Asset] = []
        native = native_asset(chain, decode_uint(native_hex) or 0, self.limits.dust_threshold)
        if native is not None:
            assets.append(native)

        holdings = [
            AlchemyTokenBalance.from_dict(item)
            for item in (token_balances or {}).get("tokenBalances") or []
            if isinstance(item, dict)
        ]
        holdings = [h for h in holdings if h.raw_balance > 0 and h.contract_address][: self.limits.evm_token_limit]
        results = await asyncio.gather(
            *(self._token_with_metadata(rpc, chain, holding) for holding in holdings),
            return_exceptions=True,
        )
        assets.extend(r for r in results if isinstance(r, Asset))
        LOGGER.info("Alchemy returned %s fungible holdings on %s", len(assets), chain.id)
        return assets

    async def _token_with_metadata(
        self,
        rpc: JsonRpcClient,
        chain: ChainConfig,
        holding: AlchemyTokenBalance,
    ) -> Optional[Asset]:
        try:
            raw = await rpc.call("alchemy_getTokenMetadata", [holding.contract_address])
        except UpstreamUnavailable as exc:
            LOGGER.debug("Dropping %s on %s: %s", holding.contract_address, chain.id, exc)
            return None
        meta = AlchemyTokenMetadata.from_dict(raw)
        decimals = meta.decimals if meta.decimals is not None else 18
        return erc20_asset(
            chain,
            holding.contract_address,
            holding.raw_balance / (10 ** decimals),
            symbol=meta.symbol,
            name=meta.name,
            logo=meta.logo,
        )


__all__ = ["EvmAdapter", "erc20_asset", "native_asset"]
