"""Health check endpoint."""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from clob_gateway.api.dependencies import get_services
from clob_gateway.services import Services

router = APIRouter(tags=["health"])


@router.get("/health")
def health(services: Services = Depends(get_services)):
    config = services.config
    return {
        "success": True,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "cancelMode": config.clob.cancel_mode,
        "builderAttachDirect": config.builder.attach_to_direct,
        "activityFeedConfigured": bool(config.feed.api_key),
    }
