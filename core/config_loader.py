"""Configuration loader: ``config.yaml`` plus environment (``.env``) secrets."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv


@dataclass
class ProviderKeysConfig:
    """API keys, looked up through environment variable names."""

    alchemy_env: str = "ALCHEMY_KEY"
    helius_env: str = "HELIUS_KEY"
    blockfrost_env: str = "BLOCKFROST_KEY"
    moralis_env: str = "MORALIS_KEY"
    unstoppable_env: str = "UNSTOPPABLE_KEY"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "ProviderKeysConfig":
        if not data:
            return cls()
        return cls(**data)

    @staticmethod
    def _read(name: str) -> str:
        return (os.getenv(name) or "").strip()

    @property
    def alchemy(self) -> str:
        return self._read(self.alchemy_env)

    @property
    def helius(self) -> str:
        return self._read(self.helius_env)

    @property
    def blockfrost(self) -> str:
        return self._read(self.blockfrost_env)

    @property
    def moralis(self) -> str:
        return self._read(self.moralis_env)

    @property
    def unstoppable(self) -> str:
        return self._read(self.unstoppable_env)

    def missing(self) -> List[str]:
        """Environment variable names that are configured but unset."""

        names = [self.alchemy_env, self.helius_env, self.blockfrost_env, self.moralis_env, self.unstoppable_env]
        return [name for name in names if not self._read(name)]


@dataclass
class LimitsConfig:
    """Dust threshold and fan-out caps."""

    dust_threshold: float = 0.000001
    evm_token_limit: int = 15
    cardano_asset_limit: int = 30
    solana_page_limit: int = 100
    solana_scan_limit: int = 50
    solana_metadata_limit: int = 15
    log_scan_blocks: int = 500_000
    log_scan_limit: int = 15

    def __post_init__(self) -> None:
        if self.dust_threshold < 0:
            raise ValueError("dust_threshold must not be negative")
        for name in (
            "evm_token_limit",
            "cardano_asset_limit",
            "solana_page_limit",
            "solana_scan_limit",
            "solana_metadata_limit",
            "log_scan_blocks",
            "log_scan_limit",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "LimitsConfig":
        if not data:
            return cls()
        return cls(**data)


@dataclass
class CacheConfig:
    price_ttl_seconds: float = 90.0
    search_ttl_seconds: float = 600.0

    def __post_init__(self) -> None:
        if self.price_ttl_seconds <= 0 or self.search_ttl_seconds <= 0:
            raise ValueError("cache TTLs must be positive")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "CacheConfig":
        if not data:
            return cls()
        return cls(**data)


@dataclass
class HttpConfig:
    """Per-call timeout and the cap on one chain's whole listing."""

    request_timeout_seconds: float = 10.0
    chain_timeout_seconds: float = 25.0
    rate_limit_retries: int = 3
    rate_limit_backoff_seconds: float = 0.5

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "HttpConfig":
        if not data:
            return cls()
        return cls(**data)


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 10000

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "ServerConfig":
        if not data:
            return cls()
        return cls(**data)


@dataclass
class AppConfig:
    """Top level configuration model."""

    keys: ProviderKeysConfig = field(default_factory=ProviderKeysConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    ipfs_gateway: str = "https://ipfs.io/ipfs/"
    rpc_overrides: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "AppConfig":
        data = data or {}
        gateway = str(data.get("ipfs_gateway") or "https://ipfs.io/ipfs/")
        if not gateway.endswith("/"):
            gateway += "/"
        overrides = data.get("rpc_overrides") or {}
        if not isinstance(overrides, dict):
            raise ValueError("rpc_overrides must map chain ids to URL lists")
        return cls(
            keys=ProviderKeysConfig.from_dict(data.get("keys")),
            limits=LimitsConfig.from_dict(data.get("limits")),
            cache=CacheConfig.from_dict(data.get("cache")),
            http=HttpConfig.from_dict(data.get("http")),
            server=ServerConfig.from_dict(data.get("server")),
            ipfs_gateway=gateway,
            rpc_overrides={str(k): [str(u) for u in v] for k, v in overrides.items()},
        )


def load_config(
    config_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
) -> AppConfig:
    """Load application configuration from YAML and environment variables.

    A missing ``config.yaml`` yields the defaults; keys always come from the
    environment, optionally seeded from ``.env`` without overriding variables
    that are already set.
    """

    base_path = Path(__file__).resolve().parents[1]
    if config_path is None:
        config_path = base_path / "config.yaml"
    if env_path is None:
        default_env = base_path / ".env"
        if default_env.exists():
            env_path = default_env

    if env_path is not None:
        load_dotenv(dotenv_path=env_path, override=False)

    if not Path(config_path).exists():
        return AppConfig()

    with open(config_path, "r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{config_path}: top level must be a mapping")
    return AppConfig.from_dict(data)


__all__ = [
    "AppConfig",
    "CacheConfig",
    "HttpConfig",
    "LimitsConfig",
    "ProviderKeysConfig",
    "ServerConfig",
    "load_config",
]
