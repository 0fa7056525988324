"""Data API client for public Polymarket position data."""
from __future__ import annotations

import httpx

from clob_gateway.clients.base import BaseAPIClient, error_text
from clob_gateway.config import DataAPIConfig
from clob_gateway.errors import UpstreamRejected


class DataAPIClient(BaseAPIClient):
    def __init__(
        self,
        config: DataAPIConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.config = config or DataAPIConfig()
        super().__init__(self.config.base_url, self.config.timeout, transport=transport)

    def get_positions(self, user_address: str) -> list[dict]:
        """Fetch current positions for a wallet. No auth required.

        Args:
            user_address: Wallet address (lowercased before sending).

        Returns:
            Raw position records (camelCase keys).
        """
        resp = self._send(
            "GET",
            "/positions",
            params={
                "user": user_address.lower(),
                "sizeThreshold": self.config.size_threshold,
            },
        )
        if resp.status_code >= 400:
            raise UpstreamRejected(
                f"Data API returned {resp.status_code}",
                upstream_status=resp.status_code,
                details={"upstream": error_text(resp), "status": resp.status_code},
            )
        result = self._json(resp)
        return result if isinstance(result, list) else []
