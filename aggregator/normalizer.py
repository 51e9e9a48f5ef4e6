"""Completes adapter output into the records returned to the client.

Adapters hand over partially-filled :class:`core.models.Asset` objects. This
module resolves missing prices, drops dust, derives the native-currency price,
rewrites IPFS images to a gateway and removes duplicate ids.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Iterable, List, Set

from core.chains import ChainConfig
from core.models import ZERO_NATIVE_PRICE, Asset, ListingKind, safe_price
from pricing.resolver import PriceResolver

LOGGER = logging.getLogger(__name__)

DEFAULT_GATEWAY = "https://ipfs.io/ipfs/"

_BARE_CID = re.compile(r"^(Qm[1-9A-HJ-NP-Za-km-z]{44}|b[a-z2-7]{58,})(/.*)?$")


def normalize_image(url: str, gateway: str = DEFAULT_GATEWAY) -> str:
    """Return a directly fetchable image URL, or ``""``."""

    value = (url or "").strip()
    if not value:
        return ""
    if value.startswith(("data:", "http://", "https://")):
        return value
    if value.lower().startswith("ipfs://"):
        path = value[len("ipfs://") :]
        if path.lower().startswith("ipfs/"):
            path = path[len("ipfs/") :]
        return gateway + path
    if value.startswith("/ipfs/"):
        return gateway + value[len("/ipfs/") :]
    if _BARE_CID.match(value):
        return gateway + value
    return value


def _dedupe(assets: Iterable[Asset]) -> List[Asset]:
    seen: Set[str] = set()
    unique: List[Asset] = []
    for asset in assets:
        if asset.id in seen:
            LOGGER.debug("Dropping duplicate asset %s on %s", asset.id, asset.chain)
            continue
        seen.add(asset.id)
        unique.append(asset)
    return unique


class AssetNormalizer:
    def __init__(
        self,
        prices: PriceResolver,
        dust_threshold: float = 0.000001,
        ipfs_gateway: str = DEFAULT_GATEWAY,
    ) -> None:
        self._prices = prices
        self._dust_threshold = dust_threshold
        self._gateway = ipfs_gateway

    async def complete(self, chain: ChainConfig, kind: ListingKind, assets: List[Asset]) -> List[Asset]:
        if kind is ListingKind.TOKENS:
            return await self.complete_tokens(chain, assets)
        return self.complete_nfts(assets)

    def complete_nfts(self, assets: List[Asset]) -> List[Asset]:
        nfts = [a for a in assets if not a.is_fungible]
        for asset in nfts:
            asset.image = normalize_image(asset.image, self._gateway)
        return _dedupe(nfts)

    async def complete_tokens(self, chain: ChainConfig, assets: List[Asset]) -> List[Asset]:
        tokens = [a for a in assets if a.is_fungible and a.balance > self._dust_threshold]
        dropped = len(assets) - len(tokens)
        if dropped:
            LOGGER.debug("Filtered %s dust or non-fungible entries on %s", dropped, chain.id)
        tokens = _dedupe(tokens)

        native_usd = await self._prices.native_price(chain.native.symbol)
        for asset in tokens:
            if asset.is_native:
                if asset.usd_price is None:
                    asset.usd_price = native_usd
                elif native_usd <= 0:
                    native_usd = safe_price(asset.usd_price)

        unpriced = [a for a in tokens if a.usd_price is None]
        if unpriced:
            quotes = await asyncio.gather(
                *(self._prices.token_price(chain, a.contract_address or a.id, a.symbol) for a in unpriced)
            )
            for asset, quote in zip(unpriced, quotes):
                asset.usd_price = quote

        for asset in tokens:
            asset.usd_price = safe_price(asset.usd_price)
            asset.native_price = f"{asset.usd_price / native_usd:.4f}" if native_usd > 0 else ZERO_NATIVE_PRICE
            asset.image = normalize_image(asset.image, self._gateway)
        return tokens


__all__ = ["AssetNormalizer", "DEFAULT_GATEWAY", "normalize_image"]
