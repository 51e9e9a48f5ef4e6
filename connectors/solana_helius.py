"""Solana adapter over Helius DAS, with a raw token-account sweep.

DAS lags behind freshly minted tokens; the sweep asks the RPC for every SPL
and Token-2022 account of the owner and adds mints the index did not report.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

import httpx

from connectors.evm_alchemy import DEFAULT_COLLECTION, native_asset
from connectors.jsonrpc import JsonRpcClient
from connectors.schemas import (
    UNKNOWN_SYMBOL,
    UNKNOWN_TOKEN_NAME,
    HeliusAsset,
    HeliusNativeBalance,
    SplTokenAccount,
)
from core.chains import ChainConfig
from core.config_loader import LimitsConfig
from core.models import Asset, AssetKind, parse_traits

LOGGER = logging.getLogger(__name__)

HELIUS_URL = "https://mainnet.helius-rpc.com/?api-key={key}"

TOKEN_PROGRAMS = (
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
    "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb",
)

SCANNED_SYMBOL = "UNKNOWN"


@dataclass
class SolanaAdapter:
    client: httpx.AsyncClient
    api_key: str
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    name: str = "helius"

    def _rpc(self, chain: ChainConfig) -> JsonRpcClient:
        urls = [HELIUS_URL.format(key=self.api_key), *chain.rpc_urls]
        return JsonRpcClient(self.client, urls, name=self.name)

    async def list_nfts(self, chain: ChainConfig, address: str) -> List[Asset]:
        return await self.list_assets(chain, address, want_tokens=False)

    async def list_tokens(self, chain: ChainConfig, address: str) -> List[Asset]:
        return await self.list_assets(chain, address, want_tokens=True)

    async def list_assets(self, chain: ChainConfig, address: str, want_tokens: bool) -> List[Asset]:
        if not self.api_key:
            LOGGER.warning("Helius key missing; no assets for %s", address)
            return []
        rpc = self._rpc(chain)
        try:
            result = await rpc.call(
                "getAssetsByOwner",
                {
                    "ownerAddress": address,
                    "page": 1,
                    "limit": self.limits.solana_page_limit,
                    "options": {"showFungible": want_tokens, "showNativeBalance": want_tokens},
                },
            )
        except Exception as exc:
            LOGGER.warning("Helius DAS failed for %s: %s", address, exc)
            return []

        if not isinstance(result, dict):
            result = {}
        items = [HeliusAsset.from_dict(i) for i in result.get("items") or [] if isinstance(i, dict)]
        if not want_tokens:
            return [self._nft(chain, item) for item in items if not item.is_fungible]

        assets: List[Asset] = []
        native_raw = result.get("nativeBalance")
        if isinstance(native_raw, dict):
            native_balance = HeliusNativeBalance.from_dict(native_raw)
            native = native_asset(chain, native_balance.lamports, self.limits.dust_threshold)
            if native is not None:
                native.usd_price = native_balance.price_per_sol
                assets.append(native)
        assets.extend(self._token(chain, item) for item in items if item.is_fungible and item.id)
        LOGGER.info("Helius DAS returned %s fungible holdings for %s", len(assets), address)

        known = {a.id for a in assets}
        assets.extend(await self._sweep_token_accounts(rpc, chain, address, known))
        return assets

    def _token(self, chain: ChainConfig, item: HeliusAsset) -> Asset:
        return Asset(
            id=item.id,
            chain=chain.id,
            kind=AssetKind.FUNGIBLE,
            name=item.name or UNKNOWN_TOKEN_NAME,
            symbol=item.symbol or UNKNOWN_SYMBOL,
            image=item.image,
            balance=item.balance,
            usd_price=item.price_per_token if item.price_per_token is not None else 0.0,
            contract_address=item.id,
        )

    def _nft(self, chain: ChainConfig, item: HeliusAsset) -> Asset:
        return Asset(
            id=item.id,
            chain=chain.id,
            kind=AssetKind.NON_FUNGIBLE,
            name=item.name or "Unnamed NFT",
            image=item.image,
            collection=item.collection_name or DEFAULT_COLLECTION,
            traits=parse_traits(item.attributes),
            description=item.description,
            contract_address=item.id or None,
        )

    async def _sweep_token_accounts(
        self,
        rpc: JsonRpcClient,
        chain: ChainConfig,
        address: str,
        known: Set[str],
    ) -> List[Asset]:
        try:
            return await self._sweep(rpc, chain, address, known)
        except Exception as exc:
            LOGGER.warning("Token account sweep failed for %s: %s", address, exc)
            return []

    async def _sweep(self, rpc: JsonRpcClient, chain: ChainConfig, address: str, known: Set[str]) -> List[Asset]:
        responses = await asyncio.gather(
            *(
                rpc.call(
                    "getTokenAccountsByOwner",
                    [address, {"programId": program}, {"encoding": "jsonParsed"}],
                )
                for program in TOKEN_PROGRAMS
            ),
            return_exceptions=True,
        )
        fresh: Dict[str, SplTokenAccount] = {}
        for response in responses:
            if isinstance(response, BaseException):
                LOGGER.debug("Token program query failed: %s", response)
                continue
            for raw in (response or {}).get("value") or []:
                account = SplTokenAccount.from_dict(raw) if isinstance(raw, dict) else None
                if account is None or account.raw_amount <= 0:
                    continue
                if account.mint in known:
                    continue
                held = fresh.get(account.mint)
                if held is None:
                    fresh[account.mint] = account
                else:
                    # Several accounts can hold one mint.
                    held.raw_amount += account.raw_amount
        accounts = list(fresh.values())[: self.limits.solana_scan_limit]
        if not accounts:
            return []

        lookups = accounts[: self.limits.solana_metadata_limit]
        metadata = await asyncio.gather(*(self._asset_metadata(rpc, a.mint) for a in lookups))
        by_mint = {a.mint: meta for a, meta in zip(lookups, metadata) if meta is not None}

        assets = []
        for account in accounts:
            meta = by_mint.get(account.mint)
            assets.append(
                Asset(
                    id=account.mint,
                    chain=chain.id,
                    kind=AssetKind.FUNGIBLE,
                    name=(meta.name if meta else "") or UNKNOWN_TOKEN_NAME,
                    symbol=(meta.symbol if meta else "") or SCANNED_SYMBOL,
                    image=meta.image if meta else "",
                    balance=account.balance,
                    contract_address=account.mint,
                )
            )
        LOGGER.info("Token account sweep added %s mints for %s", len(assets), address)
        return assets

    async def _asset_metadata(self, rpc: JsonRpcClient, mint: str) -> Optional[HeliusAsset]:
        try:
            raw: Any = await rpc.call("getAsset", {"id": mint})
        except Exception as exc:
            LOGGER.debug("getAsset %s failed: %s", mint, exc)
            return None
        return HeliusAsset.from_dict(raw) if isinstance(raw, dict) else None


__all__ = ["SolanaAdapter", "TOKEN_PROGRAMS"]
