"""Typed views over provider payloads.

Each schema is built with ``from_dict`` from whatever the provider sent; every
field is optional upstream and has a documented default here, so parsing never
raises on a missing or mistyped member. Fallback precedence for display fields
lives in the properties.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

UNKNOWN_SYMBOL = "???"
UNKNOWN_TOKEN_NAME = "Unknown Token"

FUNGIBLE_INTERFACES = frozenset({"FungibleToken", "FungibleAsset"})


def dig(data: Any, *path: Any, default: Any = None) -> Any:
    """Walk nested dicts/lists, returning ``default`` at the first gap."""

    current = data
    for key in path:
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, list) and isinstance(key, int):
            current = current[key] if -len(current) <= key < len(current) else None
        else:
            return default
        if current is None:
            return default
    return current


def as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, list):
        # Cardano CIP-25 splits long strings into 64-byte chunks.
        return "".join(str(v) for v in value)
    text = str(value).strip()
    return text or default


def as_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        if isinstance(value, str) and value.lower().startswith("0x"):
            return int(value, 16)
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# --------------------------------------------------------------------------
# Alchemy
# --------------------------------------------------------------------------


@dataclass(slots=True)
class AlchemyNft:
    contract_address: str = ""
    token_id: str = ""
    name: str = ""
    title: str = ""
    description: str = ""
    cached_url: str = ""
    thumbnail_url: str = ""
    original_url: str = ""
    collection: str = ""
    raw_traits: Any = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlchemyNft":
        image = dig(data, "image", default={})
        if not isinstance(image, dict):
            image = {}
        traits = dig(data, "raw", "metadata", "attributes")
        if not traits:
            traits = dig(data, "raw", "metadata", "traits")
        return cls(
            contract_address=as_str(dig(data, "contract", "address")),
            token_id=as_str(data.get("tokenId")),
            name=as_str(data.get("name")),
            title=as_str(data.get("title")),
            description=as_str(data.get("description")),
            cached_url=as_str(image.get("cachedUrl")),
            thumbnail_url=as_str(image.get("thumbnailUrl")),
            original_url=as_str(image.get("originalUrl")),
            collection=as_str(dig(data, "contract", "name")) or as_str(dig(data, "collection", "name")),
            raw_traits=traits or [],
        )

    @property
    def display_name(self) -> str:
        return self.name or self.title or "Unnamed NFT"

    @property
    def image(self) -> str:
        return self.cached_url or self.thumbnail_url or self.original_url or ""


@dataclass(slots=True)
class AlchemyTokenBalance:
    contract_address: str
    raw_balance: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlchemyTokenBalance":
        return cls(
            contract_address=as_str(data.get("contractAddress")).lower(),
            raw_balance=as_int(data.get("tokenBalance")),
        )


@dataclass(slots=True)
class AlchemyTokenMetadata:
    name: str = ""
    symbol: str = ""
    decimals: Optional[int] = None
    logo: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AlchemyTokenMetadata":
        data = data or {}
        decimals = data.get("decimals")
        return cls(
            name=as_str(data.get("name")),
            symbol=as_str(data.get("symbol")),
            decimals=as_int(decimals) if decimals is not None else None,
            logo=as_str(data.get("logo")),
        )


# --------------------------------------------------------------------------
# Helius (Solana DAS)
# --------------------------------------------------------------------------


@dataclass(slots=True)
class HeliusAsset:
    id: str = ""
    interface: str = ""
    name: str = ""
    symbol: str = ""
    description: str = ""
    image: str = ""
    attributes: Any = None
    collection_name: str = ""
    raw_balance: int = 0
    decimals: int = 0
    price_per_token: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HeliusAsset":
        token_info = data.get("token_info") or {}
        image = as_str(dig(data, "content", "links", "image"))
        if not image:
            image = as_str(dig(data, "content", "files", 0, "cdn_uri")) or as_str(dig(data, "content", "files", 0, "uri"))
        price = dig(token_info, "price_info", "price_per_token")
        collection = ""
        for group in data.get("grouping") or []:
            if isinstance(group, dict) and group.get("group_key") in (None, "collection"):
                collection = as_str(dig(group, "collection_metadata", "name"))
                if collection:
                    break
        return cls(
            id=as_str(data.get("id")),
            interface=as_str(data.get("interface")),
            name=as_str(dig(data, "content", "metadata", "name")),
            symbol=as_str(dig(data, "content", "metadata", "symbol")) or as_str(token_info.get("symbol")),
            description=as_str(dig(data, "content", "metadata", "description")),
            image=image,
            attributes=dig(data, "content", "metadata", "attributes", default=[]),
            collection_name=collection,
            raw_balance=as_int(token_info.get("balance")),
            decimals=as_int(token_info.get("decimals")),
            price_per_token=as_float(price) if price is not None else None,
        )

    @property
    def is_fungible(self) -> bool:
        return self.interface in FUNGIBLE_INTERFACES

    @property
    def balance(self) -> float:
        return self.raw_balance / (10 ** self.decimals)


@dataclass(slots=True)
class HeliusNativeBalance:
    lamports: int = 0
    price_per_sol: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "HeliusNativeBalance":
        data = data or {}
        price = data.get("price_per_sol")
        return cls(
            lamports=as_int(data.get("lamports")),
            price_per_sol=as_float(price) if price is not None else None,
        )


@dataclass(slots=True)
class SplTokenAccount:
    mint: str
    raw_amount: int
    decimals: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["SplTokenAccount"]:
        info = dig(data, "account", "data", "parsed", "info")
        if not isinstance(info, dict) or not info.get("mint"):
            return None
        amount = info.get("tokenAmount") or {}
        return cls(
            mint=as_str(info.get("mint")),
            raw_amount=as_int(amount.get("amount")),
            decimals=as_int(amount.get("decimals")),
        )

    @property
    def balance(self) -> float:
        return self.raw_amount / (10 ** self.decimals)


# --------------------------------------------------------------------------
# Blockfrost (Cardano)
# --------------------------------------------------------------------------


@dataclass(slots=True)
class BlockfrostHolding:
    unit: str
    quantity: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlockfrostHolding":
        return cls(unit=as_str(data.get("unit")), quantity=as_int(data.get("quantity")))

    @property
    def is_nft(self) -> bool:
        # Heuristic: a fungible token with supply 1 is indistinguishable.
        return self.quantity == 1


@dataclass(slots=True)
class BlockfrostAsset:
    unit: str = ""
    asset_name_hex: str = ""
    onchain: Dict[str, Any] = field(default_factory=dict)
    registry: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BlockfrostAsset":
        data = data or {}
        onchain = data.get("onchain_metadata")
        registry = data.get("metadata")
        return cls(
            unit=as_str(data.get("asset")),
            asset_name_hex=as_str(data.get("asset_name")),
            onchain=onchain if isinstance(onchain, dict) else {},
            registry=registry if isinstance(registry, dict) else {},
        )

    @property
    def decoded_asset_name(self) -> str:
        try:
            text = bytes.fromhex(self.asset_name_hex).decode("utf-8")
        except ValueError:
            return ""
        return text if text.isprintable() else ""

    @property
    def display_name(self) -> str:
        return (
            as_str(self.onchain.get("name"))
            or as_str(self.registry.get("name"))
            or self.decoded_asset_name
            or "Cardano Asset"
        )

    @property
    def ticker(self) -> str:
        return as_str(self.registry.get("ticker")) or as_str(self.onchain.get("ticker"))

    @property
    def decimals(self) -> int:
        return as_int(self.registry.get("decimals"), as_int(self.onchain.get("decimals")))

    def image_candidates(self) -> List[str]:
        """Image locations in lookup order: on-chain first, then registry."""

        candidates = [
            as_str(self.onchain.get("image")),
            as_str(self.onchain.get("logo")),
            as_str(self.onchain.get("icon")),
        ]
        logo = as_str(self.registry.get("logo"))
        if logo and not logo.startswith(("http", "ipfs", "data:")):
            # Token registry logos are bare base64 PNG.
            logo = f"data:image/png;base64,{logo}"
        candidates.append(logo)
        url = as_str(self.registry.get("url"))
        if url.lower().split("?")[0].endswith((".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp")):
            candidates.append(url)
        return [c for c in candidates if c]

    @property
    def traits(self) -> Any:
        return self.onchain.get("attributes") or self.onchain.get("traits") or []

    @property
    def description(self) -> str:
        return as_str(self.onchain.get("description")) or as_str(self.registry.get("description"))

    @property
    def collection(self) -> str:
        return as_str(self.onchain.get("collection")) or as_str(self.onchain.get("project"))


# --------------------------------------------------------------------------
# Moralis (Monad)
# --------------------------------------------------------------------------


@dataclass(slots=True)
class MoralisToken:
    token_address: str = ""
    name: str = ""
    symbol: str = ""
    logo: str = ""
    decimals: int = 18
    raw_balance: int = 0
    balance_formatted: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MoralisToken":
        formatted = data.get("balance_formatted")
        return cls(
            token_address=as_str(data.get("token_address")).lower(),
            name=as_str(data.get("name")),
            symbol=as_str(data.get("symbol")),
            logo=as_str(data.get("logo")) or as_str(data.get("thumbnail")),
            decimals=as_int(data.get("decimals"), 18),
            raw_balance=as_int(data.get("balance")),
            balance_formatted=as_float(formatted) if formatted not in (None, "") else None,
        )

    @property
    def balance(self) -> float:
        if self.balance_formatted is not None:
            return self.balance_formatted
        return self.raw_balance / (10 ** self.decimals)


@dataclass(slots=True)
class MoralisNft:
    token_address: str = ""
    token_id: str = ""
    name: str = ""
    meta_name: str = ""
    description: str = ""
    attributes: Any = None
    image: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MoralisNft":
        meta = data.get("normalized_metadata") or {}
        image = (
            as_str(dig(data, "media", "media_collection", "medium", "url"))
            or as_str(dig(data, "media", "original_media_url"))
            or as_str(meta.get("image"))
            or as_str(data.get("token_uri"))
        )
        return cls(
            token_address=as_str(data.get("token_address")).lower(),
            token_id=as_str(data.get("token_id")),
            name=as_str(data.get("name")),
            meta_name=as_str(meta.get("name")),
            description=as_str(meta.get("description")),
            attributes=meta.get("attributes") or [],
            image=image,
        )

    @property
    def display_name(self) -> str:
        return self.meta_name or self.name or f"Monad NFT #{self.token_id}"


__all__ = [
    "AlchemyNft",
    "AlchemyTokenBalance",
    "AlchemyTokenMetadata",
    "BlockfrostAsset",
    "BlockfrostHolding",
    "FUNGIBLE_INTERFACES",
    "HeliusAsset",
    "HeliusNativeBalance",
    "MoralisNft",
    "MoralisToken",
    "SplTokenAccount",
    "UNKNOWN_SYMBOL",
    "UNKNOWN_TOKEN_NAME",
    "as_float",
    "as_int",
    "as_str",
    "dig",
]
