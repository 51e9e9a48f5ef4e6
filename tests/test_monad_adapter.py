import sys
from pathlib import Path

import asyncio

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from connectors.abi import BALANCE_OF, DECIMALS, NAME, SYMBOL
from connectors.monad_moralis import MonadAdapter
from core.chains import MONAD_KNOWN_TOKENS, get_chain
from core.config_loader import LimitsConfig

from http_fakes import FakeUpstream

WALLET = "0x00000000000000000000000000000000000000aa"
MORALIS = f"deep-index.moralis.io/api/v2.2/{WALLET}"
RPC = "https://rpc.monad.xyz"
WMON = "0x3bd359c1119da7da1d913d1c4d2b7c461115433a"
ZERO_WORD = "0x" + "0" * 64


def word(value: int) -> str:
    return "0x" + f"{value:064x}"


def abi_string(text: str) -> str:
    payload = text.encode("utf-8").hex().ljust(64, "0")
    return "0x" + f"{32:064x}" + f"{len(text):064x}" + payload


def eth_call(to: str, selector: str):
    return lambda params: params[0]["to"] == to and params[0]["data"].startswith(selector)


def with_contract(upstream: FakeUpstream, address: str, balance: int, symbol: str, name: str, decimals: int = 18):
    upstream.rpc(RPC, "eth_call", word(balance), when=eth_call(address, BALANCE_OF))
    upstream.rpc(RPC, "eth_call", word(decimals), when=eth_call(address, DECIMALS))
    upstream.rpc(RPC, "eth_call", symbol, when=eth_call(address, SYMBOL))
    upstream.rpc(RPC, "eth_call", name, when=eth_call(address, NAME))
    return upstream


def test_known_contract_found_when_indexer_is_empty():
    upstream = FakeUpstream().get(f"{MORALIS}/balance", {"balance": "0"}).get(f"{MORALIS}/erc20", [])
    with_contract(upstream, WMON, 5 * 10**18, abi_string("WMON"), abi_string("Wrapped MON"))
    upstream.rpc(RPC, "eth_call", ZERO_WORD)
    upstream.rpc(RPC, "eth_blockNumber", hex(2_000_000))
    upstream.rpc(RPC, "eth_getLogs", [])

    adapter = MonadAdapter(upstream.client(), "MORALIS")
    assets = asyncio.run(adapter.list_tokens(get_chain("monad"), WALLET))

    assert len(assets) == 1
    token = assets[0]
    assert token.id == WMON
    assert token.symbol == "WMON"
    assert token.name == "Wrapped MON"
    assert token.balance == 5.0
    assert token.usd_price is None
    assert upstream.count(RPC, "eth_getLogs") == 1
    log_request = [r for r in upstream.calls if b"eth_getLogs" in r.content][0]
    assert hex(2_000_000 - 500_000).encode() in log_request.content


def test_native_without_erc20_list_yields_nothing():
    upstream = (
        FakeUpstream()
        .get(f"{MORALIS}/balance", {"balance": str(7 * 10**18)})
        .get(f"{MORALIS}/erc20", {"message": "internal"}, status=500)
    )
    adapter = MonadAdapter(upstream.client(), "MORALIS")
    assert asyncio.run(adapter.list_tokens(get_chain("monad"), WALLET)) == []
    assert upstream.count("monad.xyz") == 0


def test_erc20_list_without_native_yields_nothing():
    upstream = (
        FakeUpstream()
        .fail(f"{MORALIS}/balance")
        .get(f"{MORALIS}/erc20", [{"token_address": WMON, "symbol": "WMON", "balance": "1", "decimals": 0}])
    )
    adapter = MonadAdapter(upstream.client(), "MORALIS")
    assert asyncio.run(adapter.list_tokens(get_chain("monad"), WALLET)) == []


def test_indexed_tokens_and_log_scan_discoveries():
    fresh = "0x" + "ab" * 20
    fresh_two = "0x" + "cd" * 20
    indexed = "0x" + "ef" * 20
    upstream = (
        FakeUpstream()
        .get(f"{MORALIS}/balance", {"balance": str(2 * 10**18)})
        .get(
            f"{MORALIS}/erc20",
            {
                "result": [
                    {
                        "token_address": indexed,
                        "symbol": "IDX",
                        "name": "Indexed",
                        "decimals": "6",
                        "balance": "2500000",
                        "balance_formatted": "2.5",
                        "logo": "https://logo/idx.png",
                    }
                ]
            },
        )
    )
    bytes32_symbol = "0x" + b"NEW".hex().ljust(64, "0")
    with_contract(upstream, fresh, 3 * 10**6, bytes32_symbol, "0x", decimals=6)
    upstream.rpc(RPC, "eth_call", ZERO_WORD)
    upstream.rpc(RPC, "eth_blockNumber", hex(100))
    upstream.rpc(
        RPC,
        "eth_getLogs",
        [{"address": indexed}, {"address": MONAD_KNOWN_TOKENS[0]}, {"address": fresh}, {"address": fresh_two}],
    )

    adapter = MonadAdapter(upstream.client(), "MORALIS", limits=LimitsConfig(log_scan_limit=1))
    assets = asyncio.run(adapter.list_tokens(get_chain("monad"), WALLET))

    assert [a.id for a in assets] == ["native-mon", indexed, fresh]
    native, idx, new = assets
    assert native.symbol == "MON"
    assert native.balance == 2.0
    assert idx.balance == 2.5
    assert idx.image == "https://logo/idx.png"
    assert new.symbol == "NEW"
    assert new.name == "NEW"
    assert new.balance == 3.0
    probed = {r.content for r in upstream.calls if fresh_two[2:].encode() in r.content}
    assert not probed


def test_rpc_fallback_failure_keeps_indexed_result():
    upstream = (
        FakeUpstream()
        .get(f"{MORALIS}/balance", {"balance": str(10**18)})
        .get(f"{MORALIS}/erc20", [])
        .fail("monad.xyz")
    )
    adapter = MonadAdapter(upstream.client(), "MORALIS")
    assets = asyncio.run(adapter.list_tokens(get_chain("monad"), WALLET))
    assert [a.id for a in assets] == ["native-mon"]
    assert all(not ep["healthy"] for ep in adapter.rpc_health()["monad"])


def test_monad_nfts():
    upstream = FakeUpstream().get(
        f"{MORALIS}/nft",
        {
            "result": [
                {
                    "token_address": "0xNFT",
                    "token_id": "7",
                    "name": "Monad Punks",
                    "normalized_metadata": {"name": None, "image": "ipfs://QmImage"},
                }
            ]
        },
    )
    adapter = MonadAdapter(upstream.client(), "MORALIS")
    (nft,) = asyncio.run(adapter.list_nfts(get_chain("monad"), WALLET))
    assert nft.id == "monad-0xnft-7"
    assert nft.name == "Monad Punks"
    assert nft.collection == "Monad Punks"
    assert nft.image == "ipfs://QmImage"
    request = upstream.calls[0]
    assert request.url.params["chain"] == "0x8f"
    assert request.headers["X-API-Key"] == "MORALIS"
