"""Cardano adapter over Blockfrost.

Holdings are aggregated per stake account, which spans every payment address
of a wallet. ``$handle`` input is resolved before anything else and is the
one failure that is not downgraded to an empty listing.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import httpx

from connectors.base import get_json
from connectors.evm_alchemy import DEFAULT_COLLECTION, native_asset
from connectors.name_resolvers import BLOCKFROST_BASE, NameResolver, is_ada_handle
from connectors.schemas import (
    UNKNOWN_SYMBOL,
    BlockfrostAsset,
    BlockfrostHolding,
    as_int,
)
from core.chains import ChainConfig
from core.config_loader import LimitsConfig
from core.errors import NotFoundError, UpstreamUnavailable
from core.models import Asset, AssetKind, parse_traits

LOGGER = logging.getLogger(__name__)

POLICY_ID_LENGTH = 56


@dataclass
class CardanoAdapter:
    client: httpx.AsyncClient
    api_key: str
    resolver: NameResolver
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    name: str = "blockfrost"
    base_url: str = BLOCKFROST_BASE

    async def _get(self, path: str) -> Any:
        return await get_json(
            self.client,
            self.name,
            f"{self.base_url}/{path}",
            headers={"project_id": self.api_key},
        )

    async def _get_or_none(self, path: str) -> Any:
        """GET where a 404 means "nothing there" rather than a failure."""

        try:
            return await self._get(path)
        except UpstreamUnavailable as exc:
            if exc.status_code == 404:
                return None
            raise

    async def list_nfts(self, chain: ChainConfig, address: str) -> List[Asset]:
        return await self.list_assets(chain, address, want_tokens=False)

    async def list_tokens(self, chain: ChainConfig, address: str) -> List[Asset]:
        return await self.list_assets(chain, address, want_tokens=True)

    async def list_assets(self, chain: ChainConfig, address: str, want_tokens: bool) -> List[Asset]:
        address = await self.resolve_target(address)
        if not self.api_key:
            LOGGER.warning("Blockfrost key missing; no assets for %s", address)
            return []
        try:
            return await self._list(chain, address, want_tokens)
        except Exception as exc:
            LOGGER.warning("Blockfrost listing failed for %s: %s", address, exc)
            return []

    async def resolve_target(self, address: str) -> str:
        """Turn ``$handle`` input into an address; any failure is NotFound."""

        address = (address or "").strip()
        if not is_ada_handle(address):
            return address
        try:
            return await self.resolver.resolve_ada_handle(address)
        except UpstreamUnavailable as exc:
            raise NotFoundError(f"Handle not found: {address}") from exc

    async def stake_address(self, address: str) -> Optional[str]:
        if address.startswith("stake"):
            return address
        data = await self._get_or_none(f"addresses/{address}")
        if not isinstance(data, dict):
            return None
        return data.get("stake_address") or None

    async def _list(self, chain: ChainConfig, address: str, want_tokens: bool) -> List[Asset]:
        stake = await self.stake_address(address)
        if not stake:
            LOGGER.info("No stake account for %s", address)
            return []

        assets: List[Asset] = []
        if want_tokens:
            # ADA and native-token balances form one listing: both must succeed.
            account, raw_holdings = await asyncio.gather(
                self._get_or_none(f"accounts/{stake}"),
                self._get_or_none(f"accounts/{stake}/addresses/assets"),
            )
            controlled = as_int(account.get("controlled_amount")) if isinstance(account, dict) else 0
            native = native_asset(chain, controlled, self.limits.dust_threshold)
            if native is not None:
                assets.append(native)
        else:
            raw_holdings = await self._get_or_none(f"accounts/{stake}/addresses/assets")

        holdings = [BlockfrostHolding.from_dict(h) for h in raw_holdings or [] if isinstance(h, dict)]
        selected = [h for h in holdings if h.unit and h.is_nft != want_tokens][: self.limits.cardano_asset_limit]
        metadata = await asyncio.gather(*(self._asset_metadata(h.unit) for h in selected))
        for holding, meta in zip(selected, metadata):
            if want_tokens:
                assets.append(self._token(chain, holding, meta))
            else:
                assets.append(self._nft(chain, holding, meta))
        LOGGER.info("Blockfrost returned %s assets for %s (tokens=%s)", len(assets), stake, want_tokens)
        return assets

    async def _asset_metadata(self, unit: str) -> BlockfrostAsset:
        try:
            return BlockfrostAsset.from_dict(await self._get(f"assets/{unit}"))
        except UpstreamUnavailable as exc:
            LOGGER.debug("Asset metadata for %s unavailable: %s", unit, exc)
            return BlockfrostAsset(unit=unit, asset_name_hex=unit[POLICY_ID_LENGTH:])

    def _token(self, chain: ChainConfig, holding: BlockfrostHolding, meta: BlockfrostAsset) -> Asset:
        images = meta.image_candidates()
        return Asset(
            id=holding.unit,
            chain=chain.id,
            kind=AssetKind.FUNGIBLE,
            name=meta.display_name,
            symbol=meta.ticker or meta.decoded_asset_name or UNKNOWN_SYMBOL,
            image=images[0] if images else "",
            balance=holding.quantity / (10 ** meta.decimals),
            contract_address=holding.unit,
        )

    def _nft(self, chain: ChainConfig, holding: BlockfrostHolding, meta: BlockfrostAsset) -> Asset:
        images = meta.image_candidates()
        return Asset(
            id=holding.unit,
            chain=chain.id,
            kind=AssetKind.NON_FUNGIBLE,
            name=meta.display_name,
            image=images[0] if images else "",
            collection=meta.collection or DEFAULT_COLLECTION,
            traits=parse_traits(meta.traits),
            description=meta.description,
            contract_address=holding.unit[:POLICY_ID_LENGTH],
        )


__all__ = ["CardanoAdapter"]
