import sys
from pathlib import Path

import asyncio

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from aggregator.normalizer import AssetNormalizer
from connectors.evm_alchemy import EvmAdapter
from core.cache import TTLCache
from core.chains import get_chain
from core.models import AssetKind
from pricing.resolver import PriceResolver

from http_fakes import FakeUpstream

WALLET = "0x1234567890abcdef1234567890abcdef12345678"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
RPC = "eth-mainnet.g.alchemy.com/v2/KEY"


def _token_upstream() -> FakeUpstream:
    return (
        FakeUpstream()
        .rpc(RPC, "eth_getBalance", hex(2_500_000_000_000_000_000))
        .rpc(
            RPC,
            "alchemy_getTokenBalances",
            {
                "address": WALLET,
                "tokenBalances": [
                    {"contractAddress": USDC, "tokenBalance": hex(1_000_000)},
                    {"contractAddress": "0x" + "9" * 40, "tokenBalance": "0x0"},
                ],
            },
        )
        .rpc(RPC, "alchemy_getTokenMetadata", {"name": "USD Coin", "symbol": "USDC", "decimals": 6, "logo": None})
        .get("simple/price", {"ethereum": {"usd": 3000.0}})
        .get(f"tokens/{USDC}", {"pairs": [{"chainId": "ethereum", "priceUsd": "1.00"}]})
    )


def test_evm_tokens_end_to_end():
    upstream = _token_upstream()
    client = upstream.client()
    adapter = EvmAdapter(client, "KEY")
    normalizer = AssetNormalizer(PriceResolver(client, TTLCache(90)))
    chain = get_chain("ethereum")

    async def _run():
        raw = await adapter.list_tokens(chain, WALLET)
        return await normalizer.complete_tokens(chain, raw)

    payload = [asset.to_dict() for asset in asyncio.run(_run())]
    native, usdc = payload
    assert native["id"] == "native"
    assert native["symbol"] == "ETH"
    assert native["balance"] == "2.5000"
    assert native["usdPrice"] == 3000.0
    assert native["totalValue"] == "7500.00"
    assert usdc["id"] == USDC
    assert usdc["balance"] == "1.0000"
    assert usdc["usdPrice"] == 1.0
    assert usdc["totalValue"] == "1.00"
    assert usdc["image"] == ""
    assert usdc["isToken"] is True
    # Zero balances never reach the metadata lookup.
    assert upstream.count(RPC, "alchemy_getTokenMetadata") == 1


def test_evm_tokens_require_both_balance_calls():
    upstream = (
        FakeUpstream()
        .rpc(RPC, "eth_getBalance", hex(10**18))
        .rpc(RPC, "alchemy_getTokenBalances", error={"code": -32000, "message": "boom"})
    )
    adapter = EvmAdapter(upstream.client(), "KEY")
    assert asyncio.run(adapter.list_tokens(get_chain("ethereum"), WALLET)) == []


def test_failed_metadata_drops_only_that_token():
    other = "0x" + "7" * 40
    upstream = (
        FakeUpstream()
        .rpc(RPC, "eth_getBalance", "0x0")
        .rpc(
            RPC,
            "alchemy_getTokenBalances",
            {
                "tokenBalances": [
                    {"contractAddress": USDC, "tokenBalance": hex(5_000_000)},
                    {"contractAddress": other, "tokenBalance": hex(10**18)},
                ]
            },
        )
        .rpc(RPC, "alchemy_getTokenMetadata", error={"code": 429, "message": "limited"}, when=lambda p: p == [other])
        .rpc(RPC, "alchemy_getTokenMetadata", {"symbol": "USDC", "name": "USD Coin", "decimals": 6})
    )
    adapter = EvmAdapter(upstream.client(), "KEY")
    assets = asyncio.run(adapter.list_tokens(get_chain("ethereum"), WALLET))
    assert [a.id for a in assets] == [USDC]
    assert assets[0].balance == 5.0


def test_native_symbol_follows_chain_table():
    rpc = "polygon-mainnet.g.alchemy.com/v2/KEY"
    upstream = (
        FakeUpstream()
        .rpc(rpc, "eth_getBalance", hex(3 * 10**18))
        .rpc(rpc, "alchemy_getTokenBalances", {"tokenBalances": []})
    )
    adapter = EvmAdapter(upstream.client(), "KEY")
    assets = asyncio.run(adapter.list_tokens(get_chain("polygon"), WALLET))
    assert [(a.id, a.symbol, a.balance) for a in assets] == [("native", "POL", 3.0)]


def test_evm_nfts_mapping():
    upstream = FakeUpstream().get(
        "eth-mainnet.g.alchemy.com/nft/v3/KEY/getNFTsForOwner",
        {
            "ownedNfts": [
                {
                    "contract": {"address": "0xbc4c", "name": "Apes"},
                    "tokenId": "42",
                    "name": "",
                    "title": "Ape #42",
                    "image": {"cachedUrl": "", "thumbnailUrl": "https://img/thumb.png"},
                    "raw": {"metadata": {"attributes": [{"trait_type": "Fur", "value": "Gold"}]}},
                },
                {"contract": {"address": "0xdead"}, "tokenId": "1"},
            ]
        },
    )
    adapter = EvmAdapter(upstream.client(), "KEY")
    first, second = asyncio.run(adapter.list_nfts(get_chain("ethereum"), WALLET))
    assert first.id == "ethereum-0xbc4c-42"
    assert first.kind is AssetKind.NON_FUNGIBLE
    assert first.name == "Ape #42"
    assert first.image == "https://img/thumb.png"
    assert first.collection == "Apes"
    assert first.to_dict()["metadata"]["traits"] == [{"trait_type": "Fur", "value": "Gold"}]
    assert second.name == "Unnamed NFT"
    assert second.image == ""
    assert second.collection == "Collection"
    assert second.traits == []


def test_nft_listing_failure_is_empty():
    upstream = FakeUpstream().fail("getNFTsForOwner")
    adapter = EvmAdapter(upstream.client(), "KEY")
    assert asyncio.run(adapter.list_nfts(get_chain("base"), WALLET)) == []
