"""USD unit-price resolution with a TTL cache in front of every quote source.

Order of resolution for a token:

1. cache (fresh entries short-circuit the network),
2. DexScreener pair price by contract/mint address, on chains it covers,
3. CoinGecko by ticker, on chains without DEX coverage,
4. stablecoin heuristic (1.0), on the same chains.

Native currencies resolve through :data:`QUOTE_IDS` only. No path raises: a
failed or unknown quote is 0, and that 0 is cached like any other quote.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from connectors.abi import is_zero_address
from connectors.base import get_json
from core.cache import TTLCache
from core.chains import ChainConfig, get_chain
from core.errors import AggregatorError, UpstreamUnavailable
from core.fallback import Attempt, first_success
from core.models import safe_price

LOGGER = logging.getLogger(__name__)

COINGECKO_BASE = "https://api.coingecko.com/api/v3"
DEXSCREENER_BASE = "https://api.dexscreener.com/latest/dex"

QUOTE_IDS: Dict[str, str] = {
    "ETH": "ethereum",
    "MATIC": "matic-network",
    "POL": "matic-network",
    "AVAX": "avalanche-2",
    "RON": "ronin",
    "APE": "apecoin",
    "MON": "monad",
    "SOL": "solana",
    "ADA": "cardano",
    "BNB": "binancecoin",
    "XDAI": "xdai",
    "HYPE": "hyperliquid",
    "SNEK": "snek",
    "MIN": "minswap",
    "WMT": "world-mobile-token",
    "IAG": "iagon",
}

STABLECOIN_TICKERS = frozenset({"DJED", "USDM", "IUSD", "USDA", "USDC", "USDT", "DAI"})


def is_stablecoin(ticker: str) -> bool:
    symbol = (ticker or "").upper()
    return bool(symbol) and ("USD" in symbol or symbol in STABLECOIN_TICKERS)


class PriceResolver:
    """Resolve USD unit prices; every public coroutine returns a float >= 0."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache[float],
        coingecko_base: str = COINGECKO_BASE,
        dexscreener_base: str = DEXSCREENER_BASE,
    ) -> None:
        self._client = client
        self._cache = cache
        self._coingecko_base = coingecko_base.rstrip("/")
        self._dexscreener_base = dexscreener_base.rstrip("/")

    async def get_price(self, source: str, key: str) -> float:
        """Generic entry point: ``coingecko`` keys are quote ids,
        ``dexscreener`` keys are ``"<chain>:<address>"``."""

        if source == "coingecko":
            return await self.quote_price(key)
        if source == "dexscreener":
            chain_id, _, address = key.partition(":")
            try:
                chain = get_chain(chain_id)
            except AggregatorError:
                return 0.0
            return await self.pair_price(chain, address)
        LOGGER.debug("Unknown price source %s", source)
        return 0.0

    async def native_price(self, symbol: str) -> float:
        quote_id = QUOTE_IDS.get((symbol or "").upper())
        if not quote_id:
            return 0.0
        return await self.quote_price(quote_id)

    async def quote_price(self, quote_id: str) -> float:
        async def _fetch() -> float:
            data = await get_json(
                self._client,
                "coingecko",
                f"{self._coingecko_base}/simple/price",
                params={"ids": quote_id, "vs_currencies": "usd"},
            )
            return safe_price((data or {}).get(quote_id, {}).get("usd"))

        return await self._cached(TTLCache.key("coingecko", quote_id), _fetch)

    async def pair_price(self, chain: ChainConfig, address: str) -> float:
        if not address or is_zero_address(address) or not chain.dexscreener_id:
            return 0.0
        ds_chain = chain.dexscreener_id

        async def _fetch() -> float:
            data = await get_json(self._client, "dexscreener", f"{self._dexscreener_base}/tokens/{address}")
            pairs = [p for p in ((data or {}).get("pairs") or []) if isinstance(p, dict)]
            if not pairs:
                return 0.0
            pair = next((p for p in pairs if p.get("chainId") == ds_chain), pairs[0])
            return safe_price(pair.get("priceUsd"))

        return await self._cached(TTLCache.key("dexscreener", chain.id, address), _fetch)

    async def token_price(self, chain: ChainConfig, address: Optional[str], symbol: str = "") -> float:
        """Layered price lookup for a contract/mint/asset unit."""

        if not address or is_zero_address(address):
            return 0.0
        attempts: List[Attempt] = []
        if chain.dexscreener_id:
            attempts.append(("dexscreener", lambda: self.pair_price(chain, address)))
        elif chain.ticker_pricing and symbol:
            quote_id = QUOTE_IDS.get(symbol.upper())
            if quote_id:
                attempts.append(("coingecko", lambda: self.quote_price(quote_id)))
            if is_stablecoin(symbol):
                attempts.append(("stablecoin", _unit_price))
        price = await first_success(attempts, accept=lambda p: p > 0)
        return price or 0.0

    async def _cached(self, cache_key: str, fetch: Callable[[], Awaitable[Any]]) -> float:
        hit = self._cache.get(cache_key)
        if hit is not None:
            return hit
        try:
            price = safe_price(await fetch())
        except UpstreamUnavailable as exc:
            LOGGER.warning("Price lookup %s failed: %s", cache_key, exc)
            return self._cache.set(cache_key, 0.0)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            LOGGER.warning("Price lookup %s returned an unexpected payload: %s", cache_key, exc)
            return self._cache.set(cache_key, 0.0)
        return self._cache.set(cache_key, price)


async def _unit_price() -> float:
    return 1.0


__all__ = ["PriceResolver", "QUOTE_IDS", "STABLECOIN_TICKERS", "is_stablecoin"]
