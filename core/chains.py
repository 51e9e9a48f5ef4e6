"""Central chain table: provider network slugs and native-currency profile.

Every adapter reads its per-chain constants from here instead of keeping its
own literals. :func:`validate_chain_table` runs at startup.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from core.errors import UnsupportedChainError

FAMILIES = ("evm", "monad", "solana", "cardano")

_HEX_ADDRESS = re.compile(r"0x[0-9a-f]{40}")


@dataclass(slots=True, frozen=True)
class NativeCurrency:
    symbol: str
    name: str
    logo: str
    decimals: int = 18


ETHER = NativeCurrency(
    symbol="ETH",
    name="Ether",
    logo="https://cryptologos.cc/logos/ethereum-eth-logo.png",
)


@dataclass(slots=True, frozen=True)
class ChainConfig:
    """Static description of one supported chain."""

    id: str
    family: str
    native: NativeCurrency = ETHER
    alchemy_network: Optional[str] = None
    dexscreener_id: Optional[str] = None
    moralis_chain: Optional[str] = None
    rpc_urls: Tuple[str, ...] = ()
    known_tokens: Tuple[str, ...] = ()
    # Chains without DEX coverage price tokens by ticker (quote table, then
    # the stablecoin heuristic).
    ticker_pricing: bool = False
    native_id: str = "native"

    @property
    def is_evm(self) -> bool:
        return self.family in ("evm", "monad")


def _evm(chain_id: str, network: str, native: NativeCurrency = ETHER, dexscreener_id: Optional[str] = None) -> ChainConfig:
    return ChainConfig(
        id=chain_id,
        family="evm",
        native=native,
        alchemy_network=network,
        dexscreener_id=dexscreener_id or chain_id,
    )


MONAD_KNOWN_TOKENS: Tuple[str, ...] = (
    "0x81a224f8a62f52bde942dbf23a56df77a10b7777",  # EMO
    "0x3bd359c1119da7da1d913d1c4d2b7c461115433a",  # WMON
    "0xee8c0e9f1bffb4eb878d8f15f368a02a35481242",  # WETH
    "0xe7cd86e13ac4309349f30b3435a9d337750fc82d",  # USDT0
    "0x01bff41798a0bcf287b996046ca68b395dbc1071",  # XAUt0
    "0x754704bc059f8c67012fed69bc8a327a5aafb603",  # USDC
    "0x1ad7052bb331a0529c1981c3ec2bc4663498a110",  # aprMON
    "0xcf5a6076cfa32686c0df13abada2b40dec133f1d",  # shMON
    "0x6131b5fae19ea4f9d964eac0408e4408b66337b5",  # sMON
)


CHAINS: Dict[str, ChainConfig] = {
    chain.id: chain
    for chain in (
        _evm("ethereum", "eth-mainnet"),
        _evm("base", "base-mainnet"),
        _evm(
            "polygon",
            "polygon-mainnet",
            NativeCurrency("POL", "Polygon", "https://cryptologos.cc/logos/polygon-matic-logo.png"),
        ),
        _evm(
            "avalanche",
            "avax-mainnet",
            NativeCurrency("AVAX", "Avalanche", "https://cryptologos.cc/logos/avalanche-avax-logo.png"),
        ),
        _evm("optimism", "opt-mainnet"),
        _evm("arbitrum", "arb-mainnet"),
        _evm("blast", "blast-mainnet"),
        _evm("zora", "zora-mainnet"),
        _evm("abstract", "abstract-mainnet"),
        _evm(
            "apechain",
            "apechain-mainnet",
            NativeCurrency("APE", "ApeCoin", "https://cryptologos.cc/logos/apecoin-ape-ape-logo.png"),
            dexscreener_id="apechain",
        ),
        _evm("soneium", "soneium-mainnet"),
        _evm(
            "ronin",
            "ronin-mainnet",
            NativeCurrency("RON", "Ronin", "https://cryptologos.cc/logos/ronin-ron-logo.png"),
        ),
        _evm("worldchain", "worldchain-mainnet"),
        _evm(
            "gnosis",
            "gnosis-mainnet",
            NativeCurrency("XDAI", "xDAI", "https://cryptologos.cc/logos/gnosis-gno-gno-logo.png"),
            dexscreener_id="gnosischain",
        ),
        _evm(
            "hyperevm",
            "hyperliquid-mainnet",
            NativeCurrency("HYPE", "Hyperliquid", "https://assets.coingecko.com/coins/images/50882/small/hyperliquid.jpg"),
        ),
        ChainConfig(
            id="monad",
            family="monad",
            native=NativeCurrency("MON", "Monad", "https://assets.coingecko.com/coins/images/54540/small/monad.png"),
            dexscreener_id="monad",
            moralis_chain="0x8f",
            rpc_urls=(
                "https://rpc.monad.xyz",
                "https://rpc1.monad.xyz",
                "https://rpc2.monad.xyz",
            ),
            known_tokens=MONAD_KNOWN_TOKENS,
            native_id="native-mon",
        ),
        ChainConfig(
            id="solana",
            family="solana",
            native=NativeCurrency(
                "SOL",
                "Solana",
                "https://raw.githubusercontent.com/solana-labs/token-list/main/assets/mainnet/"
                "So11111111111111111111111111111111111111112/logo.png",
                decimals=9,
            ),
            dexscreener_id="solana",
            rpc_urls=("https://api.mainnet-beta.solana.com",),
            native_id="native-sol",
        ),
        ChainConfig(
            id="cardano",
            family="cardano",
            native=NativeCurrency("ADA", "Cardano", "https://cryptologos.cc/logos/cardano-ada-logo.png", decimals=6),
            ticker_pricing=True,
            native_id="native-ada",
        ),
    )
}


def get_chain(chain_id: str) -> ChainConfig:
    """Look up a chain by identifier (case-insensitive)."""

    chain = CHAINS.get((chain_id or "").strip().lower())
    if chain is None:
        raise UnsupportedChainError(f"unsupported chain: {chain_id}")
    return chain


def chains_in_family(family: str) -> List[ChainConfig]:
    return [chain for chain in CHAINS.values() if chain.family == family]


def with_rpc_overrides(overrides: Dict[str, List[str]]) -> None:
    """Replace the RPC endpoint list of configured chains."""

    for chain_id, urls in (overrides or {}).items():
        chain = get_chain(chain_id)
        CHAINS[chain.id] = replace(chain, rpc_urls=tuple(urls))


def validate_chain_table(chains: Optional[Dict[str, ChainConfig]] = None) -> None:
    """Raise ``ValueError`` when the chain table is internally inconsistent."""

    table = CHAINS if chains is None else chains
    native_ids: Dict[str, str] = {}
    for key, chain in table.items():
        if key != chain.id or chain.id != chain.id.lower():
            raise ValueError(f"chain key mismatch: {key!r} / {chain.id!r}")
        if chain.family not in FAMILIES:
            raise ValueError(f"{chain.id}: unknown family {chain.family!r}")
        if chain.family == "evm" and not chain.alchemy_network:
            raise ValueError(f"{chain.id}: EVM chains need an Alchemy network slug")
        if chain.family == "monad" and not (chain.moralis_chain and chain.rpc_urls):
            raise ValueError(f"{chain.id}: Monad needs a Moralis chain id and RPC endpoints")
        if not 0 < chain.native.decimals <= 36:
            raise ValueError(f"{chain.id}: invalid native decimals {chain.native.decimals}")
        if not chain.native.symbol:
            raise ValueError(f"{chain.id}: missing native symbol")
        for address in chain.known_tokens:
            if not _HEX_ADDRESS.fullmatch(address):
                raise ValueError(f"{chain.id}: malformed known token address {address!r}")
        if chain.native_id in native_ids and chain.family != "evm":
            raise ValueError(f"{chain.id}: native id {chain.native_id!r} reused by {native_ids[chain.native_id]}")
        native_ids.setdefault(chain.native_id, chain.id)


__all__ = [
    "CHAINS",
    "ChainConfig",
    "ETHER",
    "FAMILIES",
    "MONAD_KNOWN_TOKENS",
    "NativeCurrency",
    "chains_in_family",
    "get_chain",
    "validate_chain_table",
    "with_rpc_overrides",
]
