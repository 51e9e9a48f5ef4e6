import sys
from pathlib import Path

import asyncio

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from aggregator.service import AggregationService
from connectors.base import HttpClients
from core.config_loader import AppConfig, HttpConfig
from core.errors import NotFoundError, UnsupportedChainError
from core.models import Asset, AssetKind

from http_fakes import FakeUpstream

WALLET = "0x1234567890abcdef1234567890abcdef12345678"
TOKEN = "0x" + "1" * 40


class ScriptedAdapter:
    """Adapter double: per-chain results, exceptions or delays."""

    name = "scripted"

    def __init__(self, script):
        self.script = script
        self.seen = []

    async def list_tokens(self, chain, address):
        self.seen.append((chain.id, address))
        outcome = self.script.get(chain.id, [])
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, (int, float)):
            await asyncio.sleep(outcome)
            return []
        return list(outcome)

    async def list_nfts(self, chain, address):
        return await self.list_tokens(chain, address)


def _token(chain: str, balance: float, price: float) -> Asset:
    return Asset(
        id=TOKEN,
        chain=chain,
        kind=AssetKind.FUNGIBLE,
        name="Token",
        symbol="TKN",
        balance=balance,
        usd_price=price,
        contract_address=TOKEN,
    )


def _service(upstream: FakeUpstream, adapter, chain_timeout: float = 5.0) -> AggregationService:
    config = AppConfig(http=HttpConfig(chain_timeout_seconds=chain_timeout))
    service = AggregationService.from_config(config, HttpClients(http_factory=upstream.factory))
    service.register_adapter("evm", adapter)
    return service


def test_one_failing_chain_does_not_affect_another():
    upstream = FakeUpstream().get("simple/price", {"ethereum": {"usd": 2000.0}})
    adapter = ScriptedAdapter({"base": [_token("base", 1.5, 4.0)], "arbitrum": RuntimeError("provider down")})
    service = _service(upstream, adapter)

    portfolio = asyncio.run(service.list_portfolio("tokens", WALLET, ["base", "arbitrum"]))

    assert portfolio["arbitrum"] == []
    (token,) = portfolio["base"]
    assert token.to_dict()["totalValue"] == "6.00"
    assert token.native_price == "0.0020"


def test_slow_chain_times_out_to_empty():
    adapter = ScriptedAdapter({"ethereum": 0.5})
    service = _service(FakeUpstream(), adapter, chain_timeout=0.05)
    assert asyncio.run(service.list_assets("tokens", "ethereum", WALLET)) == []


def test_unknown_chain_and_kind_are_rejected():
    service = _service(FakeUpstream(), ScriptedAdapter({}))
    with pytest.raises(UnsupportedChainError):
        asyncio.run(service.list_assets("tokens", "dogechain", WALLET))
    with pytest.raises(UnsupportedChainError):
        asyncio.run(service.list_assets("coins", "ethereum", WALLET))


def test_ens_name_is_resolved_before_listing(monkeypatch):
    monkeypatch.setenv("ALCHEMY_KEY", "AK")
    upstream = FakeUpstream().rpc("eth-mainnet.g.alchemy.com/v2/AK", "eth_resolveName", WALLET)
    adapter = ScriptedAdapter({})
    service = _service(upstream, adapter)
    asyncio.run(service.list_assets("nfts", "base", "Alice.eth"))
    assert adapter.seen == [("base", WALLET)]


def test_unresolvable_name_is_not_found():
    upstream = FakeUpstream().get("resolve/nobody", {"s": "error", "result": "not found"})
    service = _service(upstream, ScriptedAdapter({}))
    service.register_adapter("solana", ScriptedAdapter({}))
    with pytest.raises(NotFoundError):
        asyncio.run(service.list_assets("tokens", "solana", "nobody.sol"))


def test_portfolio_defaults_to_evm_chains():
    adapter = ScriptedAdapter({})
    service = _service(FakeUpstream(), adapter)
    portfolio = asyncio.run(service.list_portfolio("nfts", WALLET))
    assert "ethereum" in portfolio and "hyperevm" in portfolio
    assert "monad" not in portfolio and "solana" not in portfolio
    assert all(items == [] for items in portfolio.values())


def test_health_reports_adapters_and_missing_keys(monkeypatch):
    for name in ("ALCHEMY_KEY", "HELIUS_KEY", "BLOCKFROST_KEY", "MORALIS_KEY", "UNSTOPPABLE_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HELIUS_KEY", "HK")
    service = _service(FakeUpstream(), ScriptedAdapter({}))
    report = service.health()
    assert report["status"] == "ok"
    assert report["adapters"] == ["cardano", "evm", "monad", "solana"]
    assert "HELIUS_KEY" not in report["missing_keys"]
    assert "ALCHEMY_KEY" in report["missing_keys"]
    assert "cardano" in report["chains"]


def test_portfolio_resolves_name_once(monkeypatch):
    monkeypatch.setenv("ALCHEMY_KEY", "AK")
    rpc = "eth-mainnet.g.alchemy.com/v2/AK"
    upstream = FakeUpstream().rpc(rpc, "eth_resolveName", WALLET)
    adapter = ScriptedAdapter({})
    service = _service(upstream, adapter)

    portfolio = asyncio.run(service.list_portfolio("nfts", "alice.eth"))

    assert len(portfolio) == len(adapter.seen) > 1
    assert {address for _, address in adapter.seen} == {WALLET}
    assert upstream.count(rpc, "eth_resolveName") == 1


def test_portfolio_with_unknown_name_is_not_found(monkeypatch):
    monkeypatch.setenv("ALCHEMY_KEY", "AK")
    rpc = "eth-mainnet.g.alchemy.com/v2/AK"
    upstream = FakeUpstream().rpc(rpc, "eth_resolveName", None)
    adapter = ScriptedAdapter({})
    service = _service(upstream, adapter)

    with pytest.raises(NotFoundError):
        asyncio.run(service.list_portfolio("tokens", "nobody.eth", ["base", "arbitrum"]))
    assert adapter.seen == []
    assert upstream.count(rpc, "eth_resolveName") == 1
