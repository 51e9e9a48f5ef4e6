import sys
from dataclasses import replace
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.chains import CHAINS, MONAD_KNOWN_TOKENS, chains_in_family, get_chain, validate_chain_table, with_rpc_overrides
from core.errors import UnsupportedChainError


def test_chain_table_is_consistent():
    validate_chain_table()


def test_lookup_is_case_insensitive():
    assert get_chain(" Polygon ").native.symbol == "POL"
    assert get_chain("cardano").native.decimals == 6
    with pytest.raises(UnsupportedChainError):
        get_chain("dogechain")


def test_families():
    evm_ids = {chain.id for chain in chains_in_family("evm")}
    assert {"ethereum", "base", "polygon", "hyperevm"} <= evm_ids
    assert "monad" not in evm_ids
    assert get_chain("monad").is_evm
    assert not get_chain("solana").is_evm
    assert get_chain("monad").known_tokens == MONAD_KNOWN_TOKENS


@pytest.mark.parametrize(
    "broken",
    [
        {"base": replace(CHAINS["base"], alchemy_network=None)},
        {"base": replace(CHAINS["base"], family="cosmos")},
        {"Base": CHAINS["base"]},
        {"monad": replace(CHAINS["monad"], rpc_urls=())},
        {"monad": replace(CHAINS["monad"], known_tokens=("0xNOTHEX",))},
        {"solana": CHAINS["solana"], "cardano": replace(CHAINS["cardano"], native_id="native-sol")},
    ],
)
def test_inconsistent_table_is_rejected(broken):
    with pytest.raises(ValueError):
        validate_chain_table(broken)


def test_rpc_overrides_replace_endpoints(monkeypatch):
    monkeypatch.setitem(CHAINS, "monad", CHAINS["monad"])
    with_rpc_overrides({"monad": ["https://rpc.example/monad"]})
    assert get_chain("monad").rpc_urls == ("https://rpc.example/monad",)
