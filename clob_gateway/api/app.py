"""FastAPI application factory for the CLOB gateway.

Every response is an envelope: ``{"success": true, ...payload}`` or
``{"success": false, "error", "code", "details"?}``.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from clob_gateway.api.routes import credentials, health, markets, orders, portfolio, whales
from clob_gateway.config import AppConfig, load_config
from clob_gateway.errors import GatewayError
from clob_gateway.services import Services, build_services

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def error_body(message: str, code: str, details=None) -> dict:
    body = {"success": False, "error": message, "code": code}
    if details is not None:
        body["details"] = details
    return body


def create_app(config: AppConfig | None = None, services: Services | None = None) -> FastAPI:
    """Build the app. Pass ``services`` to reuse pre-built components (tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        app.state.services = services or build_services(config or load_config())
        logger.info("CLOB gateway started")
        yield
        if owned:
            app.state.services.close()
        logger.info("CLOB gateway stopped")

    app = FastAPI(
        title="CLOB Gateway",
        description="Credential linking, order routing and reconciliation for the Polymarket CLOB",
        version="1.0.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    origins = list((config or (services.config if services else AppConfig())).server.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Outermost: every preflight gets an empty 200, whatever the path.
    @app.middleware("http")
    async def preflight(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)
        return await call_next(request)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: [{exc.code}] {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: [{exc.code}] {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, exc.code, exc.details),
            headers=CORS_HEADERS,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"Invalid {field}: {first.get('msg', 'malformed request')}" if field else "Malformed request"
        return JSONResponse(
            status_code=400,
            content=error_body(message, "VALIDATION_ERROR"),
            headers=CORS_HEADERS,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_body("An internal server error occurred", "INTERNAL_ERROR"),
            headers=CORS_HEADERS,
        )

    app.include_router(health.router)
    app.include_router(credentials.router)
    app.include_router(orders.router)
    app.include_router(portfolio.router)
    app.include_router(whales.router)
    app.include_router(markets.router)
    return app
