"""Market data: top list, symbol search and 7-day hourly charts.

Search and chart lookups chain through alternate sources in a fixed order and
share a long-lived cache; 429 responses are retried with exponential back-off.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from connectors.base import get_json_with_backoff
from core.cache import TTLCache
from core.errors import NotFoundError, UpstreamUnavailable
from core.fallback import first_success

LOGGER = logging.getLogger(__name__)

COINGECKO_BASE = "https://api.coingecko.com/api/v3"
DIA_BASE = "https://api.diadata.org/v1"
BINANCE_BASE = "https://api.binance.com/api/v3"
KRAKEN_BASE = "https://api.kraken.com/0/public"
GEMINI_BASE = "https://api.gemini.com/v2"

CHART_POINTS = 168  # 7 days of hourly candles
POINTS_PER_DAY = 24

SYMBOL_TO_ID: Dict[str, str] = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "usdt": "tether",
    "bnb": "binancecoin",
    "sol": "solana",
    "usdc": "usd-coin",
    "xrp": "ripple",
    "doge": "dogecoin",
    "ton": "the-open-network",
    "ada": "cardano",
    "avax": "avalanche-2",
    "shib": "shiba-inu",
    "dot": "polkadot",
    "link": "chainlink",
    "trx": "tron",
    "matic": "matic-network",
    "pol": "matic-network",
    "dai": "dai",
    "ltc": "litecoin",
    "bch": "bitcoin-cash",
    "uni": "uniswap",
    "atom": "cosmos",
    "xlm": "stellar",
    "okb": "okb",
    "icp": "internet-computer",
    "fil": "filecoin",
    "apt": "aptos",
    "hbar": "hedera-hashgraph",
    "arb": "arbitrum",
    "vet": "vechain",
    "near": "near",
    "op": "optimism",
    "inj": "injective-protocol",
    "stx": "blockstack",
    "grt": "the-graph",
    "ftm": "fantom",
    "algo": "algorand",
    "aave": "aave",
    "etc": "ethereum-classic",
    "mon": "monad",
}

ID_TO_SYMBOL: Dict[str, str] = {coin_id: symbol for symbol, coin_id in SYMBOL_TO_ID.items()}

KRAKEN_ALIASES = {"btc": "XBT", "doge": "XDG"}


class MarketDataService:
    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: TTLCache[Any],
        retries: int = 3,
        backoff: float = 0.5,
    ) -> None:
        self._client = client
        self._cache = cache
        self._retries = retries
        self._backoff = backoff

    async def _get(self, provider: str, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await get_json_with_backoff(
            self._client,
            provider,
            url,
            params=params,
            retries=self._retries,
            backoff=self._backoff,
        )

    async def _get_optional(self, provider: str, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Like :meth:`_get` but an unknown symbol (400/404) reads as no data."""

        try:
            return await self._get(provider, url, params)
        except UpstreamUnavailable as exc:
            if exc.status_code in (400, 404):
                return None
            raise

    async def top100(self) -> List[Dict[str, Any]]:
        key = TTLCache.key("market", "top100")
        hit = self._cache.get(key)
        if hit is not None:
            return hit
        data = await self._get(
            "coingecko",
            f"{COINGECKO_BASE}/coins/markets",
            params={
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": 100,
                "page": 1,
                "sparkline": "false",
                "price_change_percentage": "24h",
            },
        )
        if not isinstance(data, list):
            raise UpstreamUnavailable("coingecko", "unexpected markets payload")
        LOGGER.info("Fetched %s coins from CoinGecko", len(data))
        return self._cache.set(key, data)

    async def search(self, query: str) -> Dict[str, Any]:
        """Quote one coin by symbol: DIA first, then CoinGecko by id."""

        symbol = query.strip().upper()
        if not symbol:
            raise NotFoundError("empty query")
        key = TTLCache.key("market", "search", symbol)
        hit = self._cache.get(key)
        if hit is not None:
            return hit

        attempts = [
            ("dia", lambda: self._search_dia(symbol)),
            ("coingecko", lambda: self._search_coingecko(symbol.lower())),
        ]
        failures: List[str] = []
        result = await first_success(attempts, failures=failures)
        if result is None:
            if len(failures) == len(attempts):
                raise UpstreamUnavailable("market", f"all search sources failed for {symbol}")
            raise NotFoundError(f"Coin not found: {symbol}")
        return self._cache.set(key, result)

    async def _search_dia(self, symbol: str) -> Optional[Dict[str, Any]]:
        data = await self._get_optional("dia", f"{DIA_BASE}/quotation/{symbol}")
        price = float((data or {}).get("Price") or 0.0)
        if price <= 0:
            return None
        return {
            "symbol": data.get("Symbol") or symbol,
            "name": data.get("Name") or symbol,
            "price": price,
            "change_24h": 0,
            "source": "DIA",
            "time": data.get("Time"),
        }

    async def _search_coingecko(self, query: str) -> Optional[Dict[str, Any]]:
        coin_id = SYMBOL_TO_ID.get(query, query)
        data = await self._get_optional(
            "coingecko",
            f"{COINGECKO_BASE}/coins/markets",
            params={"vs_currency": "usd", "ids": coin_id},
        )
        if not isinstance(data, list) or not data:
            return None
        coin = data[0]
        return {
            "symbol": str(coin.get("symbol") or query).upper(),
            "name": coin.get("name") or query,
            "price": coin.get("current_price") or 0,
            "change_24h": coin.get("price_change_percentage_24h") or 0,
            "source": "CoinGecko",
        }

    async def chart(self, coin: str) -> Dict[str, Any]:
        """Seven days of hourly closes from the first source that has them."""

        raw = coin.strip().lower()
        if not raw:
            raise NotFoundError("empty coin")
        symbol = ID_TO_SYMBOL.get(raw, raw)
        coin_id = SYMBOL_TO_ID.get(raw, raw)
        key = TTLCache.key("market", "chart", raw)
        hit = self._cache.get(key)
        if hit is not None:
            return hit

        attempts = [
            ("binance", lambda: self._chart_binance(symbol)),
            ("kraken", lambda: self._chart_kraken(symbol)),
            ("gemini", lambda: self._chart_gemini(symbol)),
            ("coingecko", lambda: self._chart_coingecko(coin_id)),
        ]
        failures: List[str] = []
        points = await first_success(attempts, failures=failures)
        if not points:
            if len(failures) == len(attempts):
                raise UpstreamUnavailable("market", f"all chart sources failed for {raw}")
            raise NotFoundError(f"No price data available for {raw}")
        return self._cache.set(key, summarize_chart(symbol.upper(), points))

    async def _chart_binance(self, symbol: str) -> List[Dict[str, float]]:
        data = await self._get_optional(
            "binance",
            f"{BINANCE_BASE}/klines",
            params={"symbol": f"{symbol.upper()}USDT", "interval": "1h", "limit": CHART_POINTS},
        )
        return [{"time": int(row[0]), "price": float(row[4])} for row in data or []]

    async def _chart_kraken(self, symbol: str) -> List[Dict[str, float]]:
        pair = f"{KRAKEN_ALIASES.get(symbol, symbol.upper())}USD"
        data = await self._get_optional("kraken", f"{KRAKEN_BASE}/OHLC", params={"pair": pair, "interval": 60})
        if not isinstance(data, dict) or data.get("error"):
            return []
        result = data.get("result") or {}
        rows = next((v for k, v in result.items() if k != "last"), [])
        points = [{"time": int(row[0]) * 1000, "price": float(row[4])} for row in rows]
        return points[-CHART_POINTS:]

    async def _chart_gemini(self, symbol: str) -> List[Dict[str, float]]:
        data = await self._get_optional("gemini", f"{GEMINI_BASE}/candles/{symbol.lower()}usd/1hr")
        if not isinstance(data, list):
            return []
        rows = sorted(data, key=lambda row: row[0])
        return [{"time": int(row[0]), "price": float(row[4])} for row in rows][-CHART_POINTS:]

    async def _chart_coingecko(self, coin_id: str) -> List[Dict[str, float]]:
        data = await self._get_optional(
            "coingecko",
            f"{COINGECKO_BASE}/coins/{coin_id}/market_chart",
            params={"vs_currency": "usd", "days": 7},
        )
        return [{"time": int(t), "price": float(p)} for t, p in (data or {}).get("prices") or []]


def summarize_chart(symbol: str, points: List[Dict[str, float]]) -> Dict[str, Any]:
    current = points[-1]["price"]
    day_ago = points[-(POINTS_PER_DAY + 1)]["price"] if len(points) > POINTS_PER_DAY else points[0]["price"]
    change = ((current - day_ago) / day_ago) * 100 if day_ago else 0.0
    return {
        "symbol": symbol,
        "name": symbol,
        "prices": points,
        "current_price": current,
        "change_24h": change,
    }


__all__ = ["MarketDataService", "SYMBOL_TO_ID", "summarize_chart"]
