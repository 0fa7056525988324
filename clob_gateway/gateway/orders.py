"""Order router: validated placement (direct or builder-proxied) and cancellation.

Placement paths:
    eoa  - the caller's wallet signed the order; forwarded with L2 headers.
    safe - Safe wallet order; the builder-signing proxy co-signs the exact
           request before it is forwarded.

Cancellation follows the deployment's ``cancel_mode``:
    per_id - DELETE {cancel_order_path}/{id}, one signed request per id.
    bulk   - DELETE {cancel_orders_path} with {"orderIds": [...]}, body signed.
"""
from __future__ import annotations

import hashlib
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable

from clob_gateway.clients.builder import BuilderSignerClient
from clob_gateway.clients.clob import CLOBClient
from clob_gateway.config import BuilderConfig, CLOBConfig
from clob_gateway.errors import (
    CANCEL_FALLBACK,
    GatewayError,
    PartialBatchFailure,
    UpstreamRejected,
    ValidationError,
    rejected_from_upstream,
    upstream_text,
)
from clob_gateway.gateway.credentials import CredentialManager
from clob_gateway.models import ApiCredential, CancelResult, OrderStatus, OrderType, Side
from clob_gateway.signing import l2_headers, timestamp_now

logger = logging.getLogger("gateway.orders")

WALLET_TYPES = ("eoa", "safe")
MIN_PRICE = 0.01
MAX_PRICE = 0.99


def dumps(payload: Any) -> str:
    """Compact JSON; the string signed is the string sent."""
    return json.dumps(payload, separators=(",", ":"))


@dataclass
class PlaceOrderRequest:
    wallet_address: str
    token_id: str
    side: Any
    size: Any
    price: Any
    signed_order: dict = field(default_factory=dict)
    order_type: str = "GTC"
    wallet_type: str = "eoa"
    client_order_id: str | None = None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_order(req: PlaceOrderRequest) -> tuple[Side, OrderType]:
    """Check order fields before anything touches the network.

    Raises:
        ValidationError: first violated rule.
    """
    if not req.wallet_address:
        raise ValidationError("Wallet address is required", code="MISSING_WALLET")
    if not isinstance(req.token_id, str) or not req.token_id.strip():
        raise ValidationError("Invalid tokenId: must be a non-empty string")
    try:
        side = Side.parse(req.side)
    except ValueError:
        raise ValidationError("Invalid side: must be BUY or SELL") from None
    if not _is_number(req.size) or req.size <= 0:
        raise ValidationError("Invalid size: must be a positive number")
    if not _is_number(req.price) or not MIN_PRICE <= req.price <= MAX_PRICE:
        raise ValidationError("Invalid price: must be between $0.01 and $0.99")
    try:
        order_type = OrderType(str(req.order_type or "GTC").upper())
    except ValueError:
        raise ValidationError("Invalid orderType: must be GTC, FOK, FAK, or GTD") from None
    if req.wallet_type not in WALLET_TYPES:
        raise ValidationError(f"Invalid walletType: must be one of {', '.join(WALLET_TYPES)}")
    if not isinstance(req.signed_order, dict) or not req.signed_order:
        raise ValidationError("Missing signedOrder")
    order_token = req.signed_order.get("tokenId")
    if order_token is not None and str(order_token) != req.token_id:
        raise ValidationError("Invalid tokenId: does not match the signed order")
    if "side" in req.signed_order:
        try:
            order_side = Side.parse(req.signed_order["side"])
        except ValueError:
            raise ValidationError("Invalid side: must be BUY or SELL") from None
        if order_side is not side:
            raise ValidationError("Invalid side: does not match the signed order")
    return side, order_type


def normalize_signed_order(signed_order: dict, side: Side) -> dict:
    """Copy of the signed order with its side as the BUY/SELL string."""
    order = dict(signed_order)
    order["side"] = Side.parse(order["side"]).value if "side" in order else side.value
    return order


def client_order_id_for(order: dict, order_type: OrderType) -> str:
    """Deterministic idempotency key: identical signed orders share one id."""
    digest = hashlib.sha256(
        dumps({"order": order, "orderType": order_type.value}).encode("utf-8")
    ).hexdigest()
    return digest[:32]


class OrderRouter:
    def __init__(
        self,
        credentials: CredentialManager,
        clob: CLOBClient,
        builder: BuilderSignerClient | None = None,
        builder_config: BuilderConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.credentials = credentials
        self.clob = clob
        self.builder = builder
        self.builder_config = builder_config or BuilderConfig()
        self.clock = clock

    @property
    def config(self) -> CLOBConfig:
        return self.clob.config

    # -- placement --

    def place(self, req: PlaceOrderRequest) -> dict:
        """Validate, sign and submit one order.

        Raises:
            ValidationError: bad input (no network call made).
            NotLinkedError: no stored credential for the address.
            UpstreamRejected: builder proxy or CLOB refused the order.
        """
        side, order_type = validate_order(req)
        credential = self.credentials.require(req.wallet_address)

        order = normalize_signed_order(req.signed_order, side)
        client_order_id = req.client_order_id or client_order_id_for(order, order_type)
        payload = {
            "order": order,
            "owner": credential.api_key,
            "orderType": order_type.value,
        }
        if req.wallet_type == "eoa":
            payload["clientOrderId"] = client_order_id
        body = dumps(payload)

        path = self.config.order_path
        timestamp = timestamp_now(self.clock)
        headers = l2_headers(credential, "POST", path, body=body, timestamp=timestamp)

        builder_headers: dict[str, str] = {}
        if req.wallet_type == "safe":
            builder_headers = self._builder_headers(path, body, timestamp, required=True)
        elif self.builder_config.attach_to_direct:
            builder_headers = self._builder_headers(path, body, timestamp, required=False)

        logger.info(
            f"Submitting {req.wallet_type} order for {req.wallet_address[:10]}: "
            f"{side.value} {req.size} @ {req.price} on {req.token_id[:12]}"
        )
        result = self.clob.post_order({**headers, **builder_headers}, body)

        status = OrderStatus.from_upstream(result.get("status"), result.get("success", True))
        order_id = result.get("orderID") or result.get("orderId") or result.get("id")
        logger.info(f"Order {order_id} accepted with status {status.value}")
        return {
            "orderId": order_id,
            "status": status.value,
            "clientOrderId": client_order_id,
            "walletType": req.wallet_type,
            "builderAttributed": bool(builder_headers),
            "order": result,
        }

    def _builder_headers(self, path: str, body: str, timestamp: str, required: bool) -> dict[str, str]:
        if self.builder is None:
            if required:
                raise UpstreamRejected(
                    "Builder signing is not configured", code="BUILDER_SIGN_FAILED",
                )
            return {}
        try:
            return self.builder.sign("POST", path, body, timestamp)
        except UpstreamRejected as e:
            if required:
                raise
            logger.warning(f"Builder attribution skipped: {e.message}")
            return {}

    # -- cancellation --

    def cancel(self, wallet_address: str, order_ids: list[str]) -> CancelResult:
        """Cancel orders by id.

        Returns:
            CancelResult when every id was cancelled.

        Raises:
            ValidationError: empty or malformed id list.
            NotLinkedError: no stored credential for the address.
            PartialBatchFailure: some ids cancelled, some not.
            UpstreamRejected: no id cancelled; message and code come from the
                first failure, raw per-id reasons are in details.
        """
        if not wallet_address:
            raise ValidationError("Missing wallet address", code="MISSING_WALLET")
        if not isinstance(order_ids, list) or not order_ids:
            raise ValidationError("Missing or empty orderIds array")
        if any(not isinstance(i, str) or not i.strip() for i in order_ids):
            raise ValidationError("Invalid orderIds: every id must be a non-empty string")
        ids = list(dict.fromkeys(order_ids))
        credential = self.credentials.require(wallet_address)

        logger.info(f"Cancelling {len(ids)} order(s) for {wallet_address[:10]} ({self.config.cancel_mode})")
        if self.config.cancel_mode == "bulk":
            outcomes = self._cancel_bulk(credential, ids)
        else:
            outcomes = self._cancel_per_id(credential, ids)
        return self._summarize(ids, outcomes)

    def _cancel_one(self, credential: ApiCredential, order_id: str) -> None:
        path = f"{self.config.cancel_order_path}/{order_id}"
        headers = l2_headers(credential, "DELETE", path, clock=self.clock)
        result = self.clob.cancel_order(path, headers)
        not_canceled = result.get("not_canceled") or {}
        if order_id in not_canceled:
            reason = not_canceled[order_id] if isinstance(not_canceled, dict) else "not canceled"
            raise rejected_from_upstream(str(reason), fallback=CANCEL_FALLBACK)

    def _cancel_per_id(
        self, credential: ApiCredential, ids: list[str],
    ) -> dict[str, GatewayError | None]:
        workers = max(1, min(self.config.cancel_workers, len(ids)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {oid: pool.submit(self._cancel_one, credential, oid) for oid in ids}
            outcomes: dict[str, GatewayError | None] = {}
            for oid in ids:
                try:
                    futures[oid].result()
                    outcomes[oid] = None
                except GatewayError as e:
                    logger.warning(f"Cancel {oid} failed: {upstream_text(e)}")
                    outcomes[oid] = e
        return outcomes

    def _cancel_bulk(
        self, credential: ApiCredential, ids: list[str],
    ) -> dict[str, GatewayError | None]:
        path = self.config.cancel_orders_path
        body = dumps({"orderIds": ids})
        headers = l2_headers(credential, "DELETE", path, body=body, clock=self.clock)
        result = self.clob.cancel_orders(headers, body)

        canceled = result.get("canceled", result.get("cancelled"))
        not_canceled = result.get("not_canceled") or {}
        if isinstance(not_canceled, list):
            not_canceled = {oid: "not canceled" for oid in not_canceled}

        outcomes: dict[str, GatewayError | None] = {}
        for oid in ids:
            if oid in not_canceled:
                outcomes[oid] = rejected_from_upstream(str(not_canceled[oid]), fallback=CANCEL_FALLBACK)
            elif canceled is None or oid in canceled:
                outcomes[oid] = None
            else:
                outcomes[oid] = rejected_from_upstream("not reported as canceled", fallback=CANCEL_FALLBACK)
        return outcomes

    @staticmethod
    def _summarize(ids: list[str], outcomes: dict[str, GatewayError | None]) -> CancelResult:
        cancelled = [oid for oid in ids if outcomes[oid] is None]
        failed = [(oid, outcomes[oid]) for oid in ids if outcomes[oid] is not None]
        errors = [f"{oid}: {upstream_text(err)}" for oid, err in failed]
        if not failed:
            return CancelResult(cancelled=cancelled, errors=[])
        if cancelled:
            raise PartialBatchFailure(cancelled, errors)
        first = failed[0][1]
        raise UpstreamRejected(
            first.message,
            upstream_status=getattr(first, "upstream_status", None),
            code=first.code,
            details={"cancelled": [], "errors": errors, "upstream": upstream_text(first)},
        )
