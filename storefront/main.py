"""
Storefront API - Main FastAPI Application

Buyer, seller and admin endpoints behind one CORS layer, one auth gate and
one response envelope.
"""

import time as _time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response as StarletteResponse

from storefront import models  # noqa: F401  (registers tables on Base)
from storefront.admin_api import router as admin_router
from storefront.auth_api import router as auth_router
from storefront.cart_api import router as cart_router
from storefront.config import get_config
from storefront.cors import CorsMiddleware
from storefront.database import Base, engine, get_db
from storefront.logger import configure_logging, get_logger
from storefront.order_api import router as order_router
from storefront.product_api import router as product_router
from storefront.responses import create_error_response, create_success_response, handle_async_error, register_error_handlers
from storefront.shipping_api import router as shipping_router
from storefront.utils_api import router as utils_router

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # Create database tables if they don't exist.
    # In production the Supabase schema already has them.
    if engine is not None:
        try:
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as e:
            logger.warning(
                "Could not run Base.metadata.create_all: %s. "
                "Tables should already exist (Supabase / remote DB).",
                e,
            )
    yield


app = FastAPI(
    title="Storefront API",
    description="Multi-role storefront backend: auth, catalog, cart, checkout, shipping and admin",
    version="1.0.0",
    lifespan=lifespan,
)


class ErrorEnvelopeMiddleware(BaseHTTPMiddleware):
    """Anything that escapes the exception handlers becomes a sanitized envelope."""

    async def dispatch(self, request: StarletteRequest, call_next) -> StarletteResponse:
        return await handle_async_error(lambda: call_next(request))


class LatencyLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: StarletteRequest, call_next) -> StarletteResponse:
        if request.method == "OPTIONS":
            return await call_next(request)
        t0 = _time.perf_counter()
        response = await call_next(request)
        duration_ms = round((_time.perf_counter() - t0) * 1000, 1)
        logger.info(
            "[LATENCY] %s %s -> %d  %.1fms",
            request.method, request.url.path, response.status_code, duration_ms,
        )
        return response


# Last added runs first: CORS wraps everything, so error envelopes get headers too
app.add_middleware(ErrorEnvelopeMiddleware)
app.add_middleware(LatencyLoggingMiddleware)
app.add_middleware(CorsMiddleware, allowed_origins=get_config().allowed_origins)

register_error_handlers(app)

app.include_router(auth_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(product_router)
app.include_router(shipping_router)
app.include_router(admin_router)
app.include_router(utils_router)


@app.get("/")
def root():
    return create_success_response({"service": "storefront", "version": app.version})


@app.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("health: database=unreachable error=%s", e)
        return create_error_response("Database unavailable", 503, {"database": "unreachable"})
    return create_success_response({"status": "healthy", "database": "connected"})


if __name__ == "__main__":
    uvicorn.run("storefront.main:app", host="0.0.0.0", port=8000, reload=get_config().is_development)
