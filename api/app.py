"""FastAPI routes over :class:`aggregator.service.AggregationService`.

Asset listings answer 200 with a possibly empty list; only an unresolvable
name or an unknown chain/kind turns into a 404.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from aggregator.service import AggregationService
from core.config_loader import AppConfig, load_config
from core.errors import NotFoundError, UnsupportedChainError, UpstreamUnavailable

LOGGER = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(service: Optional[AggregationService] = None, config: Optional[AppConfig] = None) -> FastAPI:
    owns_service = service is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "service", None) is None:
            app.state.service = AggregationService.from_config(config or load_config())
        LOGGER.info("Aggregator ready")
        try:
            yield
        finally:
            if owns_service:
                await app.state.service.aclose()

    app = FastAPI(title="Wallet asset aggregator", lifespan=lifespan)
    app.state.service = service

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(UnsupportedChainError)
    async def _unsupported(request: Request, exc: UnsupportedChainError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(UpstreamUnavailable)
    async def _upstream(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
        LOGGER.warning("Upstream failure on %s: %s", request.url.path, exc)
        return _error(502, str(exc))

    def _service(request: Request) -> AggregationService:
        return request.app.state.service

    @app.get("/health")
    async def health(request: Request) -> Dict[str, Any]:
        return _service(request).health()

    @app.get("/assets/{kind}/{chain}/{address}")
    async def assets(kind: str, chain: str, address: str, request: Request) -> Dict[str, Any]:
        listed = await _service(request).list_assets(kind, chain, address)
        # "nfts" is the historical field name for either kind.
        return {"nfts": [asset.to_dict() for asset in listed]}

    @app.get("/portfolio/{kind}/{address}")
    async def portfolio(kind: str, address: str, request: Request, chains: str = "") -> Dict[str, Any]:
        listed = await _service(request).list_portfolio(kind, address, chains.split(","))
        return {"chains": {chain_id: [a.to_dict() for a in items] for chain_id, items in listed.items()}}

    @app.get("/resolve/{scheme}/{name}")
    async def resolve(scheme: str, name: str, request: Request):
        try:
            address = await _service(request).resolve(scheme, name)
        except (NotFoundError, UnsupportedChainError, UpstreamUnavailable):
            raise
        except Exception as exc:
            LOGGER.exception("Resolution of %s:%s failed", scheme, name)
            return _error(500, f"internal error: {exc}")
        return {"address": address}

    @app.get("/market/top100")
    async def market_top100(request: Request):
        return await _service(request).market.top100()

    @app.get("/market/search/{query}")
    async def market_search(query: str, request: Request):
        return await _service(request).market.search(query)

    @app.get("/market/chart/{coin}")
    async def market_chart(coin: str, request: Request):
        return await _service(request).market.chart(coin)

    return app


__all__ = ["create_app"]
