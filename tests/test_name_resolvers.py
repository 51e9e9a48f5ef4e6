import sys
from pathlib import Path

import asyncio

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from connectors.name_resolvers import ADA_HANDLE_POLICY, NameResolver, is_ada_handle
from core.errors import NotFoundError, UnsupportedChainError, UpstreamUnavailable

from http_fakes import FakeUpstream

CARDANO_ADDR = "addr1q9d34spgg2kdy47n82e7x9pdd6vql6d2engxmpj20jmhuc2047yqd4xnh7u6u5jp4t0q3fkxzckph4tgnzvamlu7k5psuahzcp"
SHORT_UNIT = ADA_HANDLE_POLICY + b"shortname".hex()


def test_handle_falls_back_to_asset_holder():
    upstream = (
        FakeUpstream()
        .get("api.handle.me/handles/shortname", {"message": "Handle not found"}, status=404)
        .get(f"assets/{SHORT_UNIT}/addresses", [{"address": CARDANO_ADDR, "quantity": "1"}])
    )
    resolver = NameResolver(upstream.client(), blockfrost_key="BF")
    assert asyncio.run(resolver.resolve("handle", "$shortname")) == CARDANO_ADDR
    holder_call = [r for r in upstream.calls if "blockfrost" in str(r.url)][0]
    assert holder_call.headers["project_id"] == "BF"


def test_handle_falls_back_when_primary_errors():
    upstream = (
        FakeUpstream()
        .get("api.handle.me/handles/shortname", None, status=503)
        .get(f"assets/{SHORT_UNIT}/addresses", [{"address": CARDANO_ADDR, "quantity": "1"}])
    )
    resolver = NameResolver(upstream.client(), blockfrost_key="BF")
    assert asyncio.run(resolver.resolve_ada_handle("ShortName")) == CARDANO_ADDR


def test_handle_primary_success_skips_fallback():
    upstream = FakeUpstream().get("api.handle.me/handles/alice", {"resolved_addresses": {"ada": CARDANO_ADDR}})
    resolver = NameResolver(upstream.client(), blockfrost_key="BF")
    assert asyncio.run(resolver.resolve_ada_handle("$alice")) == CARDANO_ADDR
    assert upstream.count("blockfrost") == 0


def test_handle_missing_everywhere_is_not_found():
    upstream = (
        FakeUpstream()
        .get("api.handle.me", None, status=404)
        .get("blockfrost", [], status=200)
    )
    resolver = NameResolver(upstream.client(), blockfrost_key="BF")
    with pytest.raises(NotFoundError):
        asyncio.run(resolver.resolve_ada_handle("$ghost"))


def test_handle_outage_is_upstream_failure():
    upstream = FakeUpstream().fail("api.handle.me")
    resolver = NameResolver(upstream.client())
    with pytest.raises(UpstreamUnavailable):
        asyncio.run(resolver.resolve_ada_handle("$alice"))


def test_unstoppable_reads_eth_record_then_owner():
    upstream = (
        FakeUpstream()
        .get("domains/brad.crypto", {"records": {"crypto.ETH.address": "0xabc"}, "meta": {"owner": "0xowner"}})
        .get("domains/owner.nft", {"records": {}, "meta": {"owner": "0xowner"}})
        .get("domains/missing.x", {"message": "not found"}, status=404)
    )
    resolver = NameResolver(upstream.client(), unstoppable_key="UD")

    async def _run():
        first = await resolver.resolve("unstoppable", "Brad.crypto")
        second = await resolver.resolve("unstoppable", "owner.nft")
        with pytest.raises(NotFoundError):
            await resolver.resolve("unstoppable", "missing.x")
        return first, second

    assert asyncio.run(_run()) == ("0xabc", "0xowner")
    assert upstream.calls[0].headers["Authorization"] == "Bearer UD"


def test_unstoppable_without_key_is_upstream_failure():
    resolver = NameResolver(FakeUpstream().client())
    with pytest.raises(UpstreamUnavailable):
        asyncio.run(resolver.resolve("unstoppable", "brad.crypto"))


def test_ens_resolution():
    rpc = "eth-mainnet.g.alchemy.com/v2/AK"
    upstream = (
        FakeUpstream()
        .rpc(rpc, "eth_resolveName", "0xd8da6bf26964af9d7eed9e03e53415d37aa96045", when=lambda p: p == ["vitalik.eth"])
        .rpc(rpc, "eth_resolveName", None)
    )
    resolver = NameResolver(upstream.client(), alchemy_key="AK")

    async def _run():
        address = await resolver.resolve("ens", "Vitalik.eth")
        with pytest.raises(NotFoundError):
            await resolver.resolve("ens", "nobody-here.eth")
        return address

    assert asyncio.run(_run()) == "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"


def test_sns_resolution():
    upstream = (
        FakeUpstream()
        .get("resolve/bonfida", {"s": "ok", "result": "HKKp49qGWXd639QsuH7JiLijfVW5UtCVY4s1n2HANwEA"})
        .get("resolve/nothing", {"s": "error", "result": "Domain not found"})
    )
    resolver = NameResolver(upstream.client())

    async def _run():
        found = await resolver.resolve("sns", "bonfida.sol")
        with pytest.raises(NotFoundError):
            await resolver.resolve("sns", "nothing.sol")
        return found

    assert asyncio.run(_run()) == "HKKp49qGWXd639QsuH7JiLijfVW5UtCVY4s1n2HANwEA"


def test_unknown_scheme():
    resolver = NameResolver(FakeUpstream().client())
    with pytest.raises(UnsupportedChainError):
        asyncio.run(resolver.resolve("dns", "example.com"))


def test_handle_detection():
    assert is_ada_handle("$alice")
    assert is_ada_handle("bob_99")
    assert is_ada_handle("Alice")
    assert is_ada_handle("Bob-Smith_99")
    assert not is_ada_handle(CARDANO_ADDR)
    assert not is_ada_handle("stake1u9ylzsgxaa6xctf4juup682ar3juj85n8tx3hthnljg47zctvm3rc")
    assert not is_ada_handle("DdzFFzCqrhsw3prhfMFDNFowbzUku3QmrMwarfjUbWXRisodn97R")
