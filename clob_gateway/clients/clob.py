"""CLOB REST client: credential bootstrap, orders, fills and cancellation.

Pure transport. Callers pass already-signed headers; bodies are passed as the
exact serialized string that was signed.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from clob_gateway.clients.base import BaseAPIClient, error_text
from clob_gateway.config import CLOBConfig
from clob_gateway.errors import (
    CANCEL_FALLBACK,
    ShapeMismatch,
    UpstreamRejected,
    rejected_from_upstream,
)

logger = logging.getLogger(__name__)

SHAPE_MISMATCH_STATUSES = (401, 404, 405)


def _as_list(data: Any, *keys: str) -> list[dict]:
    """Upstream lists come bare or wrapped under one of ``keys``."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return value
    return []


class CLOBClient(BaseAPIClient):
    def __init__(
        self,
        config: CLOBConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.config = config or CLOBConfig()
        super().__init__(self.config.base_url, self.config.timeout, transport=transport)

    # -- credential bootstrap --

    def _key_request(self, method: str, path: str, headers: dict[str, str]) -> dict:
        resp = self._send(method, path, headers=headers)
        if resp.status_code >= 400:
            raise UpstreamRejected(
                f"Credential request to {path} rejected ({resp.status_code})",
                upstream_status=resp.status_code,
                details={"upstream": error_text(resp), "status": resp.status_code},
            )
        data = self._json(resp)
        api_key = data.get("apiKey") or data.get("key") if isinstance(data, dict) else None
        if not api_key or not data.get("secret") or not data.get("passphrase"):
            raise UpstreamRejected(
                f"Malformed credential response from {path}",
                upstream_status=resp.status_code,
            )
        return {"apiKey": api_key, "secret": data["secret"], "passphrase": data["passphrase"]}

    def create_api_key(self, headers: dict[str, str]) -> dict:
        """POST the L1 challenge to create a key.

        Returns:
            {"apiKey", "secret", "passphrase"}
        """
        return self._key_request("POST", self.config.create_key_path, headers)

    def derive_api_key(self, headers: dict[str, str]) -> dict:
        """GET the existing key for the same L1 challenge."""
        return self._key_request("GET", self.config.derive_key_path, headers)

    # -- reads --

    def get_orders(self, path: str, headers: dict[str, str], params: dict[str, Any]) -> list[dict]:
        """Fetch open orders from one orders endpoint.

        Raises:
            ShapeMismatch: 401/404/405, meaning this path/convention is wrong here.
            UpstreamRejected: any other failure.
        """
        resp = self._send("GET", path, headers=headers, params=params)
        if resp.status_code in SHAPE_MISMATCH_STATUSES:
            raise ShapeMismatch(
                f"{path} answered {resp.status_code}",
                upstream_status=resp.status_code,
                details={"upstream": error_text(resp)[:200], "status": resp.status_code},
            )
        if resp.status_code >= 400:
            raise UpstreamRejected(
                f"Polymarket API error: {resp.status_code}",
                upstream_status=resp.status_code,
                details={"upstream": error_text(resp), "status": resp.status_code},
            )
        return _as_list(self._json(resp), "orders", "data")

    def get_trades(self, headers: dict[str, str], params: dict[str, Any]) -> list[dict]:
        resp = self._send("GET", self.config.trades_path, headers=headers, params=params)
        if resp.status_code >= 400:
            raise UpstreamRejected(
                f"Polymarket API error: {resp.status_code}",
                upstream_status=resp.status_code,
                details={"upstream": error_text(resp), "status": resp.status_code},
            )
        return _as_list(self._json(resp), "data", "trades")

    # -- writes --

    def post_order(self, headers: dict[str, str], body: str) -> dict:
        """Submit a signed order.

        Raises:
            UpstreamRejected: non-2xx, or a 2xx body with success=false. The
                message is categorised; the raw upstream text is in details.
        """
        resp = self._send("POST", self.config.order_path, headers=headers, content=body)
        if resp.status_code >= 400:
            raise rejected_from_upstream(error_text(resp), resp.status_code)
        data = self._json(resp)
        if isinstance(data, dict) and data.get("success") is False:
            raise rejected_from_upstream(
                str(data.get("errorMsg") or data.get("error") or "Order rejected"),
                resp.status_code,
            )
        return data if isinstance(data, dict) else {"result": data}

    def cancel_order(self, path: str, headers: dict[str, str]) -> dict:
        """DELETE one order by path, no body."""
        resp = self._send("DELETE", path, headers=headers)
        if resp.status_code >= 400:
            raise rejected_from_upstream(error_text(resp), resp.status_code, CANCEL_FALLBACK)
        data = self._json(resp)
        return data if isinstance(data, dict) else {}

    def cancel_orders(self, headers: dict[str, str], body: str) -> dict:
        """DELETE a batch; upstream answers {"canceled": [...], "not_canceled": {...}}."""
        resp = self._send(
            "DELETE", self.config.cancel_orders_path, headers=headers, content=body,
        )
        if resp.status_code >= 400:
            raise rejected_from_upstream(error_text(resp), resp.status_code, CANCEL_FALLBACK)
        data = self._json(resp)
        return data if isinstance(data, dict) else {}
