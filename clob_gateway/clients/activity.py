"""Order-activity feed client (Dome API) used by the whale pipeline."""
from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from clob_gateway.clients.base import BaseAPIClient, error_text
from clob_gateway.config import ActivityFeedConfig
from clob_gateway.errors import UpstreamRejected

logger = logging.getLogger(__name__)


class ActivityFeedClient(BaseAPIClient):
    def __init__(
        self,
        config: ActivityFeedConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.config = config or ActivityFeedConfig()
        headers = {"Authorization": f"Bearer {self.config.api_key}"} if self.config.api_key else None
        super().__init__(
            self.config.base_url, self.config.timeout, transport=transport, headers=headers,
        )

    @property
    def configured(self) -> bool:
        return bool(self.config.api_key)

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(2),
        wait=wait_fixed(1),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _get_page(self, params: dict[str, Any]) -> httpx.Response:
        return self.client.get(self.config.orders_path, params=params)

    def get_orders_page(self, limit: int, offset: int) -> tuple[list[dict], bool]:
        """Fetch one page of order activity.

        Returns:
            (orders, has_more). has_more is the feed's pagination flag, or a
            full page when the flag is absent.

        Raises:
            UpstreamRejected: non-2xx, or transport failure after one retry.
        """
        try:
            resp = self._get_page({"limit": limit, "offset": offset})
        except httpx.TransportError as e:
            raise UpstreamRejected(
                f"Activity feed unreachable: {e}", code="UPSTREAM_UNREACHABLE",
            ) from e
        if resp.status_code >= 400:
            raise UpstreamRejected(
                f"Activity feed error ({resp.status_code})",
                upstream_status=resp.status_code,
                details={"upstream": error_text(resp)[:200], "status": resp.status_code},
            )
        data = self._json(resp)
        if isinstance(data, list):
            orders, pagination = data, {}
        else:
            orders = data.get("orders") or data.get("data") or []
            pagination = data.get("pagination") or {}
        has_more = bool(pagination.get("has_more")) or len(orders) == limit
        return orders, has_more
