"""Base HTTP client shared by the upstream API clients."""
from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from clob_gateway.errors import UpstreamRejected

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {
    "User-Agent": "clob-gateway/1.0",
    "Accept": "application/json",
}


def error_text(resp: httpx.Response) -> str:
    """Best human-readable error from an upstream response body."""
    text = resp.text
    try:
        data = json.loads(text)
    except ValueError:
        return text or f"HTTP {resp.status_code}"
    if isinstance(data, dict):
        for key in ("error", "errorMsg", "message", "detail"):
            if data.get(key):
                return str(data[key])
    return text or f"HTTP {resp.status_code}"


class BaseAPIClient:
    """Lazy ``httpx.Client`` holder.

    ``transport`` is forwarded to httpx, so tests can pass an
    ``httpx.MockTransport`` instead of touching the network.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float,
        transport: httpx.BaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.headers = {**_DEFAULT_HEADERS, **(headers or {})}
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
                transport=self.transport,
            )
        return self._client

    def _send(
        self,
        method: str,
        path: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        content: str | None = None,
    ) -> httpx.Response:
        """Issue one request; transport failures become UpstreamRejected."""
        req_headers = dict(headers or {})
        if content is not None:
            req_headers.setdefault("Content-Type", "application/json")
        try:
            return self.client.request(
                method,
                path,
                headers=req_headers,
                params=params,
                content=content.encode("utf-8") if content is not None else None,
            )
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} transport error: {e}")
            raise UpstreamRejected(
                f"Upstream unreachable: {e}",
                code="UPSTREAM_UNREACHABLE",
                details={"path": path},
            ) from e

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return {}

    def close(self) -> None:
        if self._client and not self._client.is_closed:
            self._client.close()
