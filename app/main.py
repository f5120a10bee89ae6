"""
FastAPI Application - Signed Exchange Gateway

Read-only HTTP front end over the exchange clients. Every response is the
normalized model (Decimal values rendered as strings, statuses from the
shared taxonomy), whichever exchange served it.

Supported Exchanges:
    - Binance
    - Bitfinex
    - Bittrex
    - Abucoins

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import settings, validate_configuration
from core.errors import ConfigurationError, ExchangeProtocolError, NormalizationError, TransportError
from core.exchange_interface import ExchangeInterface
from core.exchange_manager import ExchangeManager
from core.logging import get_logger
from core.schemas import Candle, OrderBook, Ticker, Trade

logger = get_logger(__name__)

VERSION = "1.0.0"


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build (unless injected), start and stop the exchange clients."""
    logger.info("=== Application Starting ===")
    if app.state.manager is None:
        validate_configuration()
        app.state.manager = ExchangeManager.from_settings(settings)
    await app.state.manager.initialize_all()
    logger.info("=== Started Successfully ===")

    yield

    logger.info("=== Shutting Down ===")
    await app.state.manager.shutdown_all()
    logger.info("=== Shutdown Complete ===")


# ============================================
# Error Handlers
# ============================================

def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "error": type(exc).__name__,
            "exchange": getattr(exc, "exchange", None),
        },
    )


async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return _error_response(400, exc)


async def protocol_error_handler(request: Request, exc: ExchangeProtocolError):
    logger.warning(f"Exchange error on {request.url.path}: {exc}")
    return _error_response(502, exc)


async def normalization_error_handler(request: Request, exc: NormalizationError):
    logger.error(f"Unexpected response shape on {request.url.path}: {exc}")
    return _error_response(502, exc)


async def transport_error_handler(request: Request, exc: TransportError):
    logger.error(f"Transport failure on {request.url.path}: {exc}")
    return _error_response(503, exc)


# ============================================
# Helpers
# ============================================

def _exchange(request: Request, name: str) -> ExchangeInterface:
    try:
        return request.app.state.manager.get_exchange(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _require(exchange: ExchangeInterface, feature: str) -> None:
    if not exchange.supports(feature):
        raise HTTPException(status_code=404, detail=f"{exchange.name} does not support {feature}")


# ============================================
# Application Factory
# ============================================

def create_app(manager: Optional[ExchangeManager] = None) -> FastAPI:
    """
    Build the application.

    Args:
        manager: Pre-built exchange registry; built from settings at
            startup when omitted
    """
    app = FastAPI(
        title="Signed Exchange Gateway",
        description=(
            "Normalized market data from Binance, Bitfinex, Bittrex and Abucoins.\n\n"
            "## REST Endpoints\n"
            "- `GET /{exchange}/ticker/{symbol}` - Best bid/ask and last price\n"
            "- `GET /{exchange}/orderbook/{symbol}?depth=N` - Sorted order book\n"
            "- `GET /{exchange}/trades/{symbol}?since=ISO8601` - Trade history\n"
            "- `GET /{exchange}/candles/{symbol}?interval=1h` - Candles\n"
            "- `GET /{exchange}/symbols` - Tradeable symbols\n"
            "- `GET /exchanges` - Enabled exchanges and capabilities\n"
            "- `GET /health` - Connectivity check\n"
        ),
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(ExchangeProtocolError, protocol_error_handler)
    app.add_exception_handler(NormalizationError, normalization_error_handler)
    app.add_exception_handler(TransportError, transport_error_handler)

    # ============================================
    # System Endpoints
    # ============================================

    @app.get("/", tags=["System"])
    async def root(request: Request):
        """API information and enabled exchanges."""
        return {
            "name": "Signed Exchange Gateway",
            "version": VERSION,
            "status": "operational",
            "docs": "/docs",
            "exchanges": request.app.state.manager.list_exchanges(),
        }

    @app.get("/health", tags=["System"])
    async def health_check(request: Request):
        """Health check - tests connectivity to all exchanges."""
        health = await request.app.state.manager.health_check_all()
        return {
            "status": "healthy" if all(health.values()) else "degraded",
            "exchanges": health,
        }

    @app.get("/exchanges", tags=["System"])
    async def list_exchanges(request: Request):
        """List enabled exchanges and their capabilities."""
        manager = request.app.state.manager
        return {
            name: manager.get_exchange_capabilities(name)
            for name in manager.list_exchanges()
        }

    # ============================================
    # Market Data Endpoints
    # ============================================

    @app.get("/{exchange}/ticker/{symbol}", response_model=Ticker, tags=["Market Data"])
    async def get_ticker(request: Request, exchange: str, symbol: str):
        """
        Examples:
            GET /binance/ticker/BTCUSDT
            GET /bittrex/ticker/BTC-LTC
        """
        return await _exchange(request, exchange).get_ticker(symbol)

    @app.get("/{exchange}/orderbook/{symbol}", response_model=OrderBook, tags=["Market Data"])
    async def get_order_book(
        request: Request,
        exchange: str,
        symbol: str,
        depth: int = Query(default=100, ge=1, le=1000, description="Levels per side"),
    ):
        return await _exchange(request, exchange).get_order_book(symbol, depth)

    @app.get("/{exchange}/trades/{symbol}", response_model=List[Trade], tags=["Market Data"])
    async def get_trades(
        request: Request,
        exchange: str,
        symbol: str,
        since: Optional[datetime] = Query(default=None, description="Inclusive lower bound (ISO-8601)"),
        limit: int = Query(default=1000, ge=1, le=10000, description="Maximum trades returned"),
    ):
        """
        Walk trade history from ``since`` (or return the latest page).

        The walk stops once ``limit`` trades are gathered. The gathered trades
        are returned in ascending timestamp order, cut to the oldest ``limit``.
        """
        ex = _exchange(request, exchange)
        trades: List[Trade] = []

        def collect(page: List[Trade]) -> bool:
            trades.extend(page)
            return len(trades) < limit

        await ex.get_historical_trades(symbol, collect, since=since)
        trades.sort(key=lambda trade: trade.timestamp)
        return trades[:limit]

    @app.get("/{exchange}/candles/{symbol}", response_model=List[Candle], tags=["Market Data"])
    async def get_candles(
        request: Request,
        exchange: str,
        symbol: str,
        interval: str = Query(default="1h", description="Candle interval, e.g. 1m, 1h, 1d"),
        limit: Optional[int] = Query(default=None, ge=1, le=1000),
    ):
        ex = _exchange(request, exchange)
        _require(ex, "candles")
        try:
            return await ex.get_candles(symbol, interval, limit=limit)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.get("/{exchange}/symbols", response_model=List[str], tags=["Market Data"])
    async def get_symbols(request: Request, exchange: str):
        ex = _exchange(request, exchange)
        _require(ex, "symbols")
        return await ex.get_symbols()

    return app


app = create_app()
