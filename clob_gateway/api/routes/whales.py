"""Whale trade feed endpoint."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from clob_gateway.api.dependencies import get_whales
from clob_gateway.errors import UpstreamRejected
from clob_gateway.pipeline.whales import WhalePipeline

logger = logging.getLogger(__name__)
router = APIRouter(tags=["whales"])


@router.get("/whales")
def whales(
    timeRange: str = "24h",
    minSize: float = 0,
    side: Optional[str] = None,
    refresh: bool = False,
    pipeline: WhalePipeline = Depends(get_whales),
):
    """Stored whale trades and stats; ``refresh=true`` runs the pipeline first.

    A failed refresh is reported in ``refreshError`` and the stored rows are
    still served.
    """
    refresh_error = None
    if refresh:
        try:
            run = pipeline.run(time_range=timeRange)
            logger.info(f"Refresh stored {run.stored} whale trades")
        except UpstreamRejected as e:
            logger.warning(f"Whale refresh failed: {e.message}")
            refresh_error = e.message

    view = pipeline.read(time_range=timeRange, min_size=minSize, side=side)
    return {
        "success": True,
        **view,
        "trades": [t.model_dump(mode="json") for t in view["trades"]],
        "refreshError": refresh_error,
    }
