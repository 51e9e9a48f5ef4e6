"""Contract shared by every chain-family adapter."""

from __future__ import annotations

from typing import List, Protocol

from core.chains import ChainConfig
from core.models import Asset


class AssetProvider(Protocol):
    """Lists the holdings of one address on one chain.

    Implementations return partially-filled assets (``usd_price`` may be
    ``None``) and must degrade to an empty list on upstream failure. The only
    exception allowed to escape is :class:`core.errors.NotFoundError`.
    """

    name: str

    async def list_nfts(self, chain: ChainConfig, address: str) -> List[Asset]:
        """Non-fungible items owned by ``address``."""

    async def list_tokens(self, chain: ChainConfig, address: str) -> List[Asset]:
        """Native and fungible balances held by ``address``."""


__all__ = ["AssetProvider"]
