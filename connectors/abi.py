"""Just enough ABI handling for ERC20 probing.

Encodes ``balanceOf``/``decimals``/``symbol``/``name`` calls and decodes their
return data, including the legacy ``bytes32`` string encoding used by some
early tokens.
"""

from __future__ import annotations

from typing import Optional

BALANCE_OF = "0x70a08231"
DECIMALS = "0x313ce567"
SYMBOL = "0x95d89b41"
NAME = "0x06fdde03"

TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

ZERO_ADDRESS = "0x" + "0" * 40

_WORD = 64
_MAX_STRING_BYTES = 100


def pad_address(address: str) -> str:
    """Left-pad a 20-byte address to a 32-byte word (no ``0x``)."""

    return address.lower().removeprefix("0x").rjust(_WORD, "0")


def balance_of_call(owner: str) -> str:
    return BALANCE_OF + pad_address(owner)


def address_topic(address: str) -> str:
    return "0x" + pad_address(address)


def is_zero_address(address: Optional[str]) -> bool:
    if not address:
        return True
    body = address.lower().removeprefix("0x")
    return not body.strip("0")


def decode_uint(data: Optional[str]) -> Optional[int]:
    """Decode a hex quantity or uint256 word; ``None`` for empty data."""

    if not data or data == "0x":
        return None
    try:
        return int(data, 16)
    except (TypeError, ValueError):
        return None


def decode_abi_string(data: Optional[str]) -> str:
    """Decode ``string`` or ``bytes32`` return data; empty string if unusable."""

    if not data or data == "0x":
        return ""
    clean = data.removeprefix("0x")
    try:
        if len(clean) >= 2 * _WORD:
            length = int(clean[_WORD : 2 * _WORD], 16)
            if 0 < length < _MAX_STRING_BYTES:
                payload = bytes.fromhex(clean[2 * _WORD : 2 * _WORD + length * 2])
                return _clean_text(payload)
        return _clean_text(bytes.fromhex(clean[:_WORD].ljust(_WORD, "0")))
    except ValueError:
        return ""


def _clean_text(raw: bytes) -> str:
    text = raw.rstrip(b"\x00").decode("utf-8", errors="ignore")
    text = "".join(ch for ch in text if ch.isprintable())
    return text.lstrip("@").strip()


__all__ = [
    "BALANCE_OF",
    "DECIMALS",
    "NAME",
    "SYMBOL",
    "TRANSFER_TOPIC",
    "ZERO_ADDRESS",
    "address_topic",
    "balance_of_call",
    "decode_abi_string",
    "decode_uint",
    "is_zero_address",
    "pad_address",
]
