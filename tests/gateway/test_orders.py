"""Tests for the order router: validation, placement paths and cancellation."""
from __future__ import annotations

import httpx
import pytest

from clob_gateway.clients.builder import BuilderSignerClient
from clob_gateway.clients.clob import CLOBClient
from clob_gateway.config import BuilderConfig, CLOBConfig
from clob_gateway.errors import (
    NotLinkedError,
    PartialBatchFailure,
    UpstreamRejected,
    ValidationError,
)
from clob_gateway.gateway.credentials import CredentialManager
from clob_gateway.gateway.orders import (
    OrderRouter,
    PlaceOrderRequest,
    client_order_id_for,
    validate_order,
)
from clob_gateway.models import OrderType
from clob_gateway.signing import build_request, sign

from conftest import SECRET, WALLET, FakeUpstream, body_of

SIGNED_ORDER = {
    "salt": 12345,
    "maker": WALLET,
    "signer": WALLET,
    "tokenId": "tok-1",
    "makerAmount": "5000000",
    "takerAmount": "10000000",
    "side": 0,
    "signatureType": 0,
    "signature": "0xdeadbeef",
}


def _request(**overrides) -> PlaceOrderRequest:
    fields = dict(
        wallet_address=WALLET, token_id="tok-1", side="BUY", size=10, price=0.5,
        signed_order=dict(SIGNED_ORDER),
    )
    fields.update(overrides)
    return PlaceOrderRequest(**fields)


def _router(linked, upstream, builder_upstream=None, cancel_mode="per_id",
            attach_to_direct=False, clock=None) -> OrderRouter:
    clob = CLOBClient(CLOBConfig(cancel_mode=cancel_mode), transport=upstream.transport)
    builder = None
    if builder_upstream is not None:
        builder = BuilderSignerClient(transport=builder_upstream.transport)
    return OrderRouter(
        CredentialManager(linked, clob),
        clob,
        builder=builder,
        builder_config=BuilderConfig(attach_to_direct=attach_to_direct),
        clock=clock or (lambda: 1700000000.0),
    )


class TestValidation:
    @pytest.mark.parametrize(
        "overrides,fragment",
        [
            ({"price": 1.5}, "price"),
            ({"price": 0.0}, "price"),
            ({"size": 0}, "size"),
            ({"size": -1}, "size"),
            ({"size": "10"}, "size"),
            ({"token_id": ""}, "tokenId"),
            ({"side": "HOLD"}, "side"),
            ({"order_type": "IOC"}, "orderType"),
            ({"wallet_type": "multisig"}, "walletType"),
            ({"signed_order": {}}, "signedOrder"),
            ({"signed_order": {**SIGNED_ORDER, "tokenId": "other"}}, "tokenId"),
            ({"signed_order": {**SIGNED_ORDER, "side": 1}}, "side"),
        ],
    )
    def test_rejects(self, overrides, fragment):
        with pytest.raises(ValidationError) as exc:
            validate_order(_request(**overrides))
        assert fragment in exc.value.message

    def test_bounds_inclusive_and_numeric_side(self):
        side, order_type = validate_order(_request(price=0.99, side=0, order_type="fok"))
        assert side.value == "BUY"
        assert order_type is OrderType.FOK
        validate_order(_request(price=0.01))

    @pytest.mark.parametrize("overrides", [{"price": 1.5}, {"size": 0}])
    def test_short_circuit_no_network(self, linked, upstream, overrides):
        router = _router(linked, upstream)
        with pytest.raises(ValidationError):
            router.place(_request(**overrides))
        assert upstream.requests == []


class TestDirectPlacement:
    def test_submits_signed_payload(self, linked, upstream, credential):
        upstream.on("POST", "/order", (200, {"success": True, "orderID": "0xorder", "status": "live"}))
        router = _router(linked, upstream)

        result = router.place(_request())

        assert result["orderId"] == "0xorder"
        assert result["status"] == "LIVE"
        assert result["builderAttributed"] is False

        sent = upstream.calls("POST", "/order")[0]
        payload = body_of(sent)
        assert payload["order"]["side"] == "BUY"
        assert payload["owner"] == credential.api_key
        assert payload["orderType"] == "GTC"
        assert payload["clientOrderId"] == result["clientOrderId"]

        expected = sign(SECRET, build_request("POST", "/order", "1700000000", sent.content.decode()))
        assert sent.headers["POLY_SIGNATURE"] == expected
        assert sent.headers["POLY_ADDRESS"] == WALLET.lower()

    def test_client_order_id_deterministic(self, linked, upstream):
        upstream.on("POST", "/order", (200, {"success": True, "orderID": "1"}))
        router = _router(linked, upstream)
        first = router.place(_request())["clientOrderId"]
        second = router.place(_request())["clientOrderId"]
        assert first == second

        other = dict(SIGNED_ORDER, salt=999)
        assert client_order_id_for(other, OrderType.GTC) != first

    def test_caller_client_order_id_kept(self, linked, upstream):
        upstream.on("POST", "/order", (200, {"success": True, "orderID": "1"}))
        result = _router(linked, upstream).place(_request(client_order_id="my-id"))
        assert result["clientOrderId"] == "my-id"
        assert body_of(upstream.requests[0])["clientOrderId"] == "my-id"

    def test_upstream_error_categorised(self, linked, upstream):
        upstream.on("POST", "/order", (400, {"error": "not enough balance / allowance"}))
        with pytest.raises(UpstreamRejected) as exc:
            _router(linked, upstream).place(_request())
        assert exc.value.code == "INSUFFICIENT_BALANCE"
        assert exc.value.status_code == 400
        assert exc.value.details["upstream"] == "not enough balance / allowance"

    def test_success_false_body_rejected(self, linked, upstream):
        upstream.on("POST", "/order", (200, {"success": False, "errorMsg": "market closed"}))
        with pytest.raises(UpstreamRejected) as exc:
            _router(linked, upstream).place(_request())
        assert exc.value.code == "MARKET_CLOSED"

    def test_unlinked_direct(self, mem_conn, upstream):
        from clob_gateway.db.credentials_repo import CredentialsRepo
        with pytest.raises(NotLinkedError):
            _router(CredentialsRepo(mem_conn), upstream).place(_request())
        assert upstream.requests == []

    def test_optional_builder_attribution_failure_is_not_fatal(self, linked, upstream):
        upstream.on("POST", "/order", (200, {"success": True, "orderID": "1"}))
        builder = FakeUpstream().on("POST", "/builder-signer/sign", (401, {"error": "nope"}))
        router = _router(linked, upstream, builder_upstream=builder, attach_to_direct=True)

        result = router.place(_request())

        assert result["builderAttributed"] is False
        assert len(builder.requests) == 1
        assert len(upstream.calls("POST", "/order")) == 1


class TestProxiedPlacement:
    def test_builder_headers_merged(self, linked, upstream):
        upstream.on("POST", "/order", (200, {"success": True, "orderID": "safe-1", "status": "matched"}))
        builder = FakeUpstream().on(
            "POST", "/builder-signer/sign",
            (200, {"POLY_BUILDER_SIGNATURE": "bsig", "POLY_BUILDER_TIMESTAMP": "1700000000"}),
        )
        router = _router(linked, upstream, builder_upstream=builder)

        result = router.place(_request(wallet_type="safe"))

        assert result["status"] == "MATCHED"
        assert result["builderAttributed"] is True
        sent = upstream.calls("POST", "/order")[0]
        assert sent.headers["POLY_BUILDER_SIGNATURE"] == "bsig"
        assert sent.headers["POLY_API_KEY"] == "key-1234567890"

        sign_req = body_of(builder.requests[0])
        assert sign_req["method"] == "POST"
        assert sign_req["path"] == "/order"
        assert sign_req["body"] == sent.content.decode()
        assert sign_req["timestamp"] == 1700000000

    def test_unlinked_safe_fails_before_network(self, mem_conn, upstream):
        from clob_gateway.db.credentials_repo import CredentialsRepo
        builder = FakeUpstream()
        router = _router(CredentialsRepo(mem_conn), upstream, builder_upstream=builder)

        with pytest.raises(NotLinkedError):
            router.place(_request(wallet_type="safe"))
        assert upstream.requests == [] and builder.requests == []

    def test_builder_failure_blocks_safe_order(self, linked, upstream):
        builder = FakeUpstream().on("POST", "/builder-signer/sign", (200, {"skipped": True}))
        router = _router(linked, upstream, builder_upstream=builder)

        with pytest.raises(UpstreamRejected) as exc:
            router.place(_request(wallet_type="safe"))
        assert exc.value.code == "BUILDER_SIGN_FAILED"
        assert upstream.calls("POST", "/order") == []


def _per_id_route(failing: dict[str, str]):
    def handle(request: httpx.Request) -> httpx.Response:
        order_id = request.url.path.rsplit("/", 1)[-1]
        if order_id in failing:
            return httpx.Response(400, json={"error": failing[order_id]})
        return httpx.Response(200, json={"canceled": [order_id], "not_canceled": {}})
    return handle


class TestCancelPerId:
    def _route_all(self, upstream, ids, failing):
        for oid in ids:
            upstream.on("DELETE", f"/order/{oid}", _per_id_route(failing))

    def test_all_succeed(self, linked, upstream):
        self._route_all(upstream, ["X", "Y"], {})
        result = _router(linked, upstream).cancel(WALLET, ["X", "Y"])
        assert result.cancelled == ["X", "Y"]
        assert result.errors == []

    def test_partial_failure(self, linked, upstream):
        self._route_all(upstream, ["X", "Y", "Z"], {"Y": "order not found"})

        with pytest.raises(PartialBatchFailure) as exc:
            _router(linked, upstream).cancel(WALLET, ["X", "Y", "Z"])

        assert exc.value.cancelled == ["X", "Z"]
        assert exc.value.errors == ["Y: order not found"]

    def test_all_fail_reports_first_error(self, linked, upstream):
        self._route_all(upstream, ["X", "Y"], {"X": "already canceled", "Y": "order not found"})

        with pytest.raises(UpstreamRejected) as exc:
            _router(linked, upstream).cancel(WALLET, ["X", "Y"])

        assert exc.value.message == "Order cancellation failed"
        assert exc.value.code == "CANCEL_FAILED"
        assert exc.value.details["upstream"] == "already canceled"
        assert exc.value.details["errors"] == ["X: already canceled", "Y: order not found"]

    def test_each_request_signed_over_its_own_path_without_body(self, linked, upstream):
        self._route_all(upstream, ["X", "Y"], {})
        _router(linked, upstream).cancel(WALLET, ["X", "Y"])

        for request in upstream.requests:
            assert request.content == b""
            expected = sign(SECRET, build_request("DELETE", request.url.path, "1700000000"))
            assert request.headers["POLY_SIGNATURE"] == expected
        sigs = {r.headers["POLY_SIGNATURE"] for r in upstream.requests}
        assert len(sigs) == 2

    def test_not_canceled_in_body_counts_as_failure(self, linked, upstream):
        upstream.on("DELETE", "/order/X", (200, {"canceled": [], "not_canceled": {"X": "matched"}}))
        upstream.on("DELETE", "/order/Y", (200, {"canceled": ["Y"]}))

        with pytest.raises(PartialBatchFailure) as exc:
            _router(linked, upstream).cancel(WALLET, ["X", "Y"])
        assert exc.value.errors == ["X: matched"]

    @pytest.mark.parametrize("ids", [[], None, [""], "X"])
    def test_bad_ids_rejected_without_network(self, linked, upstream, ids):
        with pytest.raises(ValidationError):
            _router(linked, upstream).cancel(WALLET, ids)
        assert upstream.requests == []


class TestCancelBulk:
    def test_single_signed_body_request(self, linked, upstream):
        upstream.on("DELETE", "/orders", (200, {"canceled": ["X", "Y"], "not_canceled": {}}))
        result = _router(linked, upstream, cancel_mode="bulk").cancel(WALLET, ["X", "Y"])

        assert result.cancelled == ["X", "Y"]
        assert len(upstream.requests) == 1
        sent = upstream.requests[0]
        assert sent.content == b'{"orderIds":["X","Y"]}'
        expected = sign(SECRET, build_request("DELETE", "/orders", "1700000000", sent.content.decode()))
        assert sent.headers["POLY_SIGNATURE"] == expected

    def test_partial(self, linked, upstream):
        upstream.on(
            "DELETE", "/orders",
            (200, {"canceled": ["X", "Z"], "not_canceled": {"Y": "order can't be found"}}),
        )
        with pytest.raises(PartialBatchFailure) as exc:
            _router(linked, upstream, cancel_mode="bulk").cancel(WALLET, ["X", "Y", "Z"])
        assert exc.value.cancelled == ["X", "Z"]
        assert exc.value.errors == ["Y: order can't be found"]

    def test_http_failure_fails_whole_batch(self, linked, upstream):
        upstream.on("DELETE", "/orders", (401, {"error": "Unauthorized/Invalid api key"}))
        with pytest.raises(UpstreamRejected) as exc:
            _router(linked, upstream, cancel_mode="bulk").cancel(WALLET, ["X", "Y"])
        assert exc.value.status_code == 401

    def test_body_without_lists_means_all_cancelled(self, linked, upstream):
        upstream.on("DELETE", "/orders", (200, {}))
        result = _router(linked, upstream, cancel_mode="bulk").cancel(WALLET, ["X"])
        assert result.cancelled == ["X"]
