from __future__ import annotations

"""Command line entry point: serve the API or run one lookup."""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

import uvicorn

from aggregator.service import AggregationService
from api.app import create_app
from core.chains import validate_chain_table
from core.config_loader import AppConfig, load_config
from core.errors import AggregatorError

LOGGER = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Multi-chain wallet asset aggregator")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Start the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    fetch = sub.add_parser("fetch", help="List the assets of one address and print JSON")
    fetch.add_argument("kind", choices=["nfts", "tokens"])
    fetch.add_argument("chain")
    fetch.add_argument("address")

    resolve = sub.add_parser("resolve", help="Resolve a handle or domain to an address")
    resolve.add_argument("scheme", choices=["unstoppable", "ens", "handle", "sns"])
    resolve.add_argument("name")
    return parser.parse_args(argv)


async def _with_service(config: AppConfig, entry: Callable[[AggregationService], Awaitable[object]]) -> object:
    service = AggregationService.from_config(config)
    try:
        return await entry(service)
    finally:
        await service.aclose()


async def fetch_once(config: AppConfig, kind: str, chain: str, address: str) -> dict:
    async def _run(service: AggregationService) -> dict:
        assets = await service.list_assets(kind, chain, address)
        return {"nfts": [asset.to_dict() for asset in assets]}

    return await _with_service(config, _run)


async def resolve_once(config: AppConfig, scheme: str, name: str) -> dict:
    async def _run(service: AggregationService) -> dict:
        return {"address": await service.resolve(scheme, name)}

    return await _with_service(config, _run)


def main(argv: Optional[list] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.verbose)
    validate_chain_table()
    config = load_config(args.config)

    if args.command == "serve":
        host = args.host or config.server.host
        port = args.port or config.server.port
        LOGGER.info("Serving on %s:%s", host, port)
        uvicorn.run(create_app(config=config), host=host, port=port)
        return
    try:
        if args.command == "fetch":
            result = asyncio.run(fetch_once(config, args.kind, args.chain, args.address))
        else:
            result = asyncio.run(resolve_once(config, args.scheme, args.name))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user.")
        return
    except AggregatorError as exc:
        raise SystemExit(f"error: {exc}") from exc
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
