"""Client for the builder-signing proxy that co-signs Safe-wallet orders."""
from __future__ import annotations

import json
import logging
from urllib.parse import urlsplit

import httpx

from clob_gateway.clients.base import BaseAPIClient, error_text
from clob_gateway.config import BuilderConfig
from clob_gateway.errors import UpstreamRejected

logger = logging.getLogger(__name__)


class BuilderSignerClient(BaseAPIClient):
    def __init__(
        self,
        config: BuilderConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.config = config or BuilderConfig()
        parts = urlsplit(self.config.url)
        self.sign_path = parts.path or "/"
        super().__init__(
            f"{parts.scheme}://{parts.netloc}", self.config.timeout, transport=transport,
        )

    def sign(self, method: str, path: str, body: str | None, timestamp: int | str) -> dict[str, str]:
        """Request builder headers for ``method path body`` at ``timestamp``.

        Returns:
            Header map (POLY_BUILDER_*), to be merged with the L2 headers.

        Raises:
            UpstreamRejected: proxy unreachable, non-2xx, or no headers returned.
        """
        payload = {"method": method.upper(), "path": path, "body": body, "timestamp": int(timestamp)}
        resp = self._send("POST", self.sign_path, content=json.dumps(payload, separators=(",", ":")))
        if resp.status_code >= 400:
            raise UpstreamRejected(
                f"Builder signer returned {resp.status_code}",
                upstream_status=resp.status_code,
                code="BUILDER_SIGN_FAILED",
                details={"upstream": error_text(resp)[:200], "status": resp.status_code},
            )
        data = self._json(resp)
        if not isinstance(data, dict) or data.get("skipped") or not data:
            raise UpstreamRejected(
                "Builder signer returned no headers",
                code="BUILDER_SIGN_FAILED",
                details=data if isinstance(data, dict) else None,
            )
        headers = {str(k): str(v) for k, v in data.items()}
        logger.debug(f"Builder headers received: {sorted(headers)}")
        return headers
