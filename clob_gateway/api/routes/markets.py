"""Market URL resolution endpoint."""
from fastapi import APIRouter, Depends

from clob_gateway.api.dependencies import get_resolver
from clob_gateway.api.schemas import ResolveUrlBody
from clob_gateway.clients.gamma import MarketURLResolver

router = APIRouter(prefix="/markets", tags=["markets"])


@router.post("/resolve-url")
def resolve_url(body: ResolveUrlBody, resolver: MarketURLResolver = Depends(get_resolver)):
    result = resolver.resolve(
        market_slug=body.market_slug,
        condition_id=body.condition_id,
        token_id=body.token_id,
    )
    return {"success": True, **result}
