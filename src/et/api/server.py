"""
HTTP API for the earnings tracker.

Routes:
    GET  /api/earnings/{symbol}
    POST /api/companies/{ticker}/refresh
    GET  /api/companies/{ticker}/historical-eps
    POST /api/companies/{ticker}/historical-eps
    POST /api/companies/{ticker}/fetch-earnings
    GET  /api/health

Authentication happens upstream of this service; the authenticated user's
email arrives in the X-User-Email header.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from et import __version__
from et.config import Settings, get_settings
from et.exceptions import (
    ConfigurationError,
    ETError,
    NotFoundError,
    RateLimitError,
    TransportError,
    UpstreamUnexpectedResponse,
)
from et.logging import get_logger, log_context, setup_logging
from et.services.container import Services, build_services
from et.types import generate_id

logger = get_logger(__name__)

GUARDED_PREFIX = "/api/"


def client_identity(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer, else "unknown"."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_services(request: Request) -> Services:
    return request.app.state.services


def require_identity(x_user_email: str | None = Header(default=None)) -> str:
    if not x_user_email:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_email


def create_app(
    settings: Settings | None = None,
    services: Services | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.
        services: Pre-built services. When omitted they are built on startup
            and closed on shutdown.
        transport: Optional httpx transport for all outbound calls.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = services is None
        resolved = settings or get_settings()
        if owned:
            resolved.ensure_directories()
            app.state.services = await build_services(resolved, transport=transport)
        else:
            app.state.services = services
        try:
            yield
        finally:
            if owned:
                await app.state.services.close()

    app = FastAPI(title="Earnings Tracker API", version=__version__, lifespan=lifespan)

    @app.middleware("http")
    async def rate_guard_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        with log_context(request_id=generate_id("req")):
            path = request.url.path
            if not path.startswith(GUARDED_PREFIX):
                return await call_next(request)

            guard = request.app.state.services.rate_guard
            try:
                quota = guard.check(client_identity(request), path)
            except RateLimitError as e:
                return JSONResponse(
                    status_code=429,
                    content={"error": "Too many requests", "retry_after": e.retry_after},
                    headers={
                        "Retry-After": str(e.retry_after),
                        "X-RateLimit-Limit": str(e.limit),
                        "X-RateLimit-Remaining": "0",
                        "X-RateLimit-Reset": str(int(e.reset_at)),
                    },
                )

            response = await call_next(request)
            response.headers.update(quota.headers())
            return response

    _register_exception_handlers(app)
    _register_routes(app)
    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": exc.message})

    @app.exception_handler(ConfigurationError)
    async def configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("Configuration error", error=exc.message, kind=exc.kind.value)
        return JSONResponse(
            status_code=500,
            content={"error": exc.message, "kind": exc.kind.value},
        )

    @app.exception_handler(UpstreamUnexpectedResponse)
    async def unexpected_upstream(
        request: Request, exc: UpstreamUnexpectedResponse
    ) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={
                "error": exc.message,
                "status_code": exc.status_code,
                "details": exc.body,
            },
        )

    @app.exception_handler(TransportError)
    async def transport_error(request: Request, exc: TransportError) -> JSONResponse:
        logger.error("Upstream failure", error=str(exc))
        return JSONResponse(status_code=500, content={"error": exc.message})

    @app.exception_handler(ETError)
    async def internal_error(request: Request, exc: ETError) -> JSONResponse:
        logger.error("Unhandled error", error=str(exc))
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def _register_routes(app: FastAPI) -> None:
    @app.get("/api/earnings/{symbol}")
    async def get_earnings(
        symbol: str,
        services: Services = Depends(get_services),
    ) -> dict[str, Any]:
        lookup = await services.aggregator.get_events(symbol)
        return lookup.to_dict()

    @app.post("/api/companies/{ticker}/refresh")
    async def refresh_company(
        ticker: str,
        identity: str = Depends(require_identity),
        services: Services = Depends(get_services),
    ) -> dict[str, Any]:
        job = await services.dispatcher.dispatch(ticker, identity)
        return {
            "success": True,
            "message": (
                f"Refresh initiated for {job.ticker}. "
                "Data will be updated within 1-2 minutes."
            ),
            "status": "pending",
            "ticker": job.ticker,
        }

    @app.get("/api/companies/{ticker}/historical-eps")
    async def get_historical_eps(
        ticker: str,
        services: Services = Depends(get_services),
    ) -> dict[str, Any]:
        records = await services.reconciler.get_historical_eps(ticker)
        return {"data": [r.to_dict() for r in records]}

    @app.post("/api/companies/{ticker}/historical-eps")
    async def refresh_historical_eps(
        ticker: str,
        services: Services = Depends(get_services),
    ) -> dict[str, Any]:
        count = await services.reconciler.refresh_historical_eps(ticker)
        return {"message": "Historical EPS data refreshed", "count": count}

    @app.post("/api/companies/{ticker}/fetch-earnings")
    async def fetch_earnings(
        ticker: str,
        identity: str = Depends(require_identity),
        services: Services = Depends(get_services),
    ) -> dict[str, Any]:
        count = await services.reconciler.quick_fetch(ticker)
        return {
            "success": True,
            "message": f"Successfully fetched earnings data for {ticker.upper()}",
            "count": count,
        }

    @app.get("/api/health")
    async def health(services: Services = Depends(get_services)) -> JSONResponse:
        try:
            ok = await services.store.ping()
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            ok = False
        if not ok:
            return JSONResponse(
                status_code=503,
                content={"status": "error", "database": "unreachable"},
            )
        return JSONResponse(content={"status": "ok", "database": "connected"})


def run() -> FastAPI:
    """Factory used by uvicorn: ``uvicorn et.api.server:run --factory``."""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    return create_app(settings)
