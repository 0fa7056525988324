"""FastAPI dependencies. Components live on ``app.state``, set by the app factory."""
from fastapi import Request

from clob_gateway.clients.gamma import MarketURLResolver
from clob_gateway.errors import ValidationError
from clob_gateway.gateway.credentials import CredentialManager
from clob_gateway.gateway.orders import OrderRouter
from clob_gateway.gateway.reconcile import ReconciliationEngine
from clob_gateway.pipeline.whales import WhalePipeline
from clob_gateway.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_credentials(request: Request) -> CredentialManager:
    return get_services(request).credentials


def get_order_router(request: Request) -> OrderRouter:
    return get_services(request).orders


def get_reconciler(request: Request) -> ReconciliationEngine:
    return get_services(request).reconcile


def get_whales(request: Request) -> WhalePipeline:
    return get_services(request).whales


def get_resolver(request: Request) -> MarketURLResolver:
    return get_services(request).resolver


def require_address(address: str | None) -> str:
    if not address or not address.strip():
        raise ValidationError("Missing address parameter")
    return address.strip()
