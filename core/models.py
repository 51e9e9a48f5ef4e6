"""Canonical asset record returned to the client.

Adapters create partially-filled :class:`Asset` objects; the normalizer fills
in the price fields. Nothing here is persisted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

ZERO_NATIVE_PRICE = "0.0000"


class AssetKind(str, Enum):
    FUNGIBLE = "fungible"
    NON_FUNGIBLE = "nonFungible"


class ListingKind(str, Enum):
    """Path segment used by the asset endpoints."""

    NFTS = "nfts"
    TOKENS = "tokens"


@dataclass(slots=True)
class Trait:
    trait_type: str
    value: Any

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["Trait"]:
        if not isinstance(raw, dict):
            return None
        trait_type = raw.get("trait_type", raw.get("traitType", raw.get("name", "")))
        return cls(trait_type=str(trait_type or ""), value=raw.get("value", ""))


def parse_traits(raw: Any) -> List[Trait]:
    """Accept a list of ``{trait_type, value}`` dicts or a flat mapping."""

    if isinstance(raw, dict):
        return [Trait(trait_type=str(k), value=v) for k, v in raw.items()]
    if not isinstance(raw, list):
        return []
    return [trait for trait in (Trait.from_raw(item) for item in raw) if trait is not None]


@dataclass(slots=True)
class Asset:
    """One unit of held value: a fungible balance or a single collectible."""

    id: str
    chain: str
    kind: AssetKind
    name: str
    image: str = ""
    symbol: str = ""
    balance: float = 0.0
    # None means "not priced yet"; the normalizer resolves it.
    usd_price: Optional[float] = None
    native_price: str = ZERO_NATIVE_PRICE
    is_native: bool = False
    contract_address: Optional[str] = None
    collection: str = ""
    traits: List[Trait] = field(default_factory=list)
    description: str = ""
    token_id: Optional[str] = None

    @property
    def is_fungible(self) -> bool:
        return self.kind is AssetKind.FUNGIBLE

    @property
    def total_value(self) -> float:
        return round(self.balance * (self.usd_price or 0.0), 2)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "image": self.image,
            "chain": self.chain,
            "kind": self.kind.value,
            "isToken": self.is_fungible,
        }
        if self.is_fungible:
            payload.update(
                {
                    "symbol": self.symbol,
                    "balance": f"{self.balance:.4f}",
                    "usdPrice": self.usd_price or 0.0,
                    "nativePrice": self.native_price,
                    "totalValue": f"{self.total_value:.2f}",
                }
            )
            if self.contract_address:
                payload["address"] = self.contract_address
        else:
            payload.update(
                {
                    "collection": self.collection,
                    "metadata": {
                        "traits": [{"trait_type": t.trait_type, "value": t.value} for t in self.traits],
                        "description": self.description,
                    },
                }
            )
            if self.contract_address:
                payload["contractAddress"] = self.contract_address
            if self.token_id is not None:
                payload["tokenId"] = self.token_id
        return payload


def safe_price(value: Any) -> float:
    """Coerce a provider price into a finite, non-negative float."""

    try:
        price = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(price) or math.isinf(price) or price < 0:
        return 0.0
    return price


__all__ = [
    "Asset",
    "AssetKind",
    "ListingKind",
    "Trait",
    "ZERO_NATIVE_PRICE",
    "parse_traits",
    "safe_price",
]
