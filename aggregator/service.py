"""Request orchestration: pick the adapter, bound its run time, complete the output."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

import httpx

from aggregator.normalizer import AssetNormalizer
from connectors.base import HttpClients
from connectors.cardano_blockfrost import CardanoAdapter
from connectors.evm_alchemy import EvmAdapter
from connectors.monad_moralis import MonadAdapter
from connectors.name_resolvers import NameResolver
from connectors.solana_helius import SolanaAdapter
from core.cache import TTLCache
from core.chains import CHAINS, ChainConfig, chains_in_family, get_chain, with_rpc_overrides
from core.config_loader import AppConfig
from core.errors import NotFoundError, UnsupportedChainError, UpstreamUnavailable
from core.models import Asset, ListingKind
from core.providers import AssetProvider
from pricing.market import MarketDataService
from pricing.resolver import PriceResolver

LOGGER = logging.getLogger(__name__)


def parse_kind(kind: str) -> ListingKind:
    try:
        return ListingKind((kind or "").lower())
    except ValueError as exc:
        raise UnsupportedChainError(f"unsupported asset kind: {kind}") from exc


class AggregationService:
    """Dispatches listings to the chain-family adapters and completes their output."""

    def __init__(
        self,
        config: AppConfig,
        client: httpx.AsyncClient,
        resolver: NameResolver,
        prices: PriceResolver,
        market: MarketDataService,
    ) -> None:
        self.config = config
        self.client = client
        self.resolver = resolver
        self.prices = prices
        self.market = market
        self.normalizer = AssetNormalizer(
            prices,
            dust_threshold=config.limits.dust_threshold,
            ipfs_gateway=config.ipfs_gateway,
        )
        self._adapters: Dict[str, AssetProvider] = {}

    @classmethod
    def from_config(cls, config: AppConfig, clients: Optional[HttpClients] = None) -> "AggregationService":
        if config.rpc_overrides:
            with_rpc_overrides(config.rpc_overrides)
        clients = clients or HttpClients(timeout=config.http.request_timeout_seconds)
        client = clients.create()
        keys = config.keys
        resolver = NameResolver(
            client,
            alchemy_key=keys.alchemy,
            blockfrost_key=keys.blockfrost,
            unstoppable_key=keys.unstoppable,
        )
        prices = PriceResolver(client, TTLCache(config.cache.price_ttl_seconds))
        market = MarketDataService(
            client,
            TTLCache(config.cache.search_ttl_seconds),
            retries=config.http.rate_limit_retries,
            backoff=config.http.rate_limit_backoff_seconds,
        )
        service = cls(config, client, resolver, prices, market)
        service.register_adapter("evm", EvmAdapter(client, keys.alchemy, config.limits))
        service.register_adapter("monad", MonadAdapter(client, keys.moralis, config.limits))
        service.register_adapter("solana", SolanaAdapter(client, keys.helius, config.limits))
        service.register_adapter("cardano", CardanoAdapter(client, keys.blockfrost, resolver, config.limits))
        missing = keys.missing()
        if missing:
            LOGGER.warning("Provider keys not set: %s", ", ".join(missing))
        return service

    def register_adapter(self, family: str, adapter: AssetProvider) -> None:
        """Register or override the adapter serving a chain family."""

        self._adapters[family] = adapter

    async def aclose(self) -> None:
        await self.client.aclose()

    async def resolve(self, scheme: str, name: str) -> str:
        return await self.resolver.resolve(scheme, name)

    @staticmethod
    def name_scheme(chain: ChainConfig, address: str) -> Optional[str]:
        """Naming scheme that applies to ``address`` on ``chain``, if any."""

        lowered = (address or "").strip().lower()
        if chain.is_evm and lowered.endswith(".eth"):
            return "ens"
        if chain.is_evm and "." in lowered and not lowered.startswith("0x"):
            return "unstoppable"
        if chain.family == "solana" and lowered.endswith(".sol"):
            return "sns"
        return None

    async def resolve_address(self, chain: ChainConfig, address: str) -> str:
        """Replace a domain name with its address; plain addresses pass through."""

        address = (address or "").strip()
        scheme = self.name_scheme(chain, address)
        if scheme is None:
            return address
        try:
            return await self.resolver.resolve(scheme, address)
        except UpstreamUnavailable as exc:
            raise NotFoundError(f"Could not resolve {address}: {exc.reason}") from exc

    async def list_assets(self, kind: str, chain_id: str, address: str) -> List[Asset]:
        listing = parse_kind(kind)
        chain = get_chain(chain_id)
        adapter = self._adapters.get(chain.family)
        if adapter is None:
            raise UnsupportedChainError(f"no adapter registered for {chain.family}")
        address = await self.resolve_address(chain, address)

        async def _collect() -> List[Asset]:
            if listing is ListingKind.TOKENS:
                raw = await adapter.list_tokens(chain, address)
            else:
                raw = await adapter.list_nfts(chain, address)
            return await self.normalizer.complete(chain, listing, raw)

        try:
            assets = await asyncio.wait_for(_collect(), timeout=self.config.http.chain_timeout_seconds)
        except asyncio.TimeoutError:
            LOGGER.warning("%s listing on %s timed out for %s", listing.value, chain.id, address)
            return []
        LOGGER.info("Listed %s %s on %s for %s", len(assets), listing.value, chain.id, address)
        return assets

    async def list_portfolio(
        self,
        kind: str,
        address: str,
        chain_ids: Optional[Iterable[str]] = None,
    ) -> Dict[str, List[Asset]]:
        """List one address across several chains; a failing chain yields ``[]``."""

        parse_kind(kind)
        ids = [c.strip().lower() for c in chain_ids or [] if c and c.strip()]
        chains = [get_chain(c) for c in ids] if ids else chains_in_family("evm")

        # One lookup per naming scheme, shared by every chain it applies to.
        address = (address or "").strip()
        schemes = {chain.id: self.name_scheme(chain, address) for chain in chains}
        pending = sorted({s for s in schemes.values() if s is not None})
        lookups = await asyncio.gather(
            *(self.resolve_address(next(c for c in chains if schemes[c.id] == s), address) for s in pending),
            return_exceptions=True,
        )
        resolved: Dict[Optional[str], object] = dict(zip(pending, lookups))
        resolved[None] = address

        async def _listing(chain: ChainConfig) -> List[Asset]:
            target = resolved[schemes[chain.id]]
            if isinstance(target, BaseException):
                raise target
            return await self.list_assets(kind, chain.id, str(target))

        results = await asyncio.gather(*(_listing(chain) for chain in chains), return_exceptions=True)
        portfolio: Dict[str, List[Asset]] = {}
        not_found = 0
        for chain, result in zip(chains, results):
            if isinstance(result, BaseException):
                if isinstance(result, NotFoundError):
                    not_found += 1
                LOGGER.warning("Portfolio listing on %s failed: %s", chain.id, result)
                portfolio[chain.id] = []
            else:
                portfolio[chain.id] = result
        if chains and not_found == len(chains):
            raise NotFoundError(f"Could not resolve {address}")
        return portfolio

    def health(self) -> Dict[str, object]:
        rpc: Dict[str, object] = {}
        for adapter in self._adapters.values():
            snapshot = getattr(adapter, "rpc_health", None)
            if callable(snapshot):
                rpc.update(snapshot())
        return {
            "status": "ok",
            "chains": sorted(CHAINS),
            "adapters": sorted(self._adapters),
            "missing_keys": self.config.keys.missing(),
            "rpc": rpc,
        }


__all__ = ["AggregationService", "parse_kind"]
