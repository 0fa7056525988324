"""Tests for upstream error categorisation and the error taxonomy."""
import pytest

from clob_gateway.errors import (
    CANCEL_FALLBACK,
    NotLinkedError,
    PartialBatchFailure,
    ShapeMismatch,
    UpstreamRejected,
    categorize_upstream_error,
    rejected_from_upstream,
    upstream_text,
)


@pytest.mark.parametrize(
    "raw,code",
    [
        ("not enough balance / allowance", "INSUFFICIENT_BALANCE"),
        ("Insufficient funds", "INSUFFICIENT_BALANCE"),
        ("Market is closed", "MARKET_CLOSED"),
        ("invalid price (1.2)", "INVALID_PRICE"),
        ("Size lower than the minimum", "MIN_SIZE_NOT_MET"),
        ("allowance not set for exchange", "INSUFFICIENT_ALLOWANCE"),
        ("Wallet not linked", "NOT_LINKED"),
        ("bad credentials", "NOT_LINKED"),
    ],
)
def test_categories(raw, code):
    message, got = categorize_upstream_error(raw)
    assert got == code
    assert message != raw


def test_unknown_text_gets_fixed_message():
    assert categorize_upstream_error("order crossed book") == ("Order failed", "ORDER_FAILED")


def test_unknown_text_kept_only_in_details():
    err = rejected_from_upstream("weird upstream failure xyz", 400)
    assert err.message == "Order failed"
    assert err.code == "ORDER_FAILED"
    assert err.details == {"upstream": "weird upstream failure xyz", "status": 400}


def test_cancel_fallback():
    err = rejected_from_upstream("already canceled", fallback=CANCEL_FALLBACK)
    assert (err.message, err.code) == ("Order cancellation failed", "CANCEL_FAILED")
    assert upstream_text(err) == "already canceled"

    categorised = rejected_from_upstream("Insufficient funds", fallback=CANCEL_FALLBACK)
    assert categorised.code == "INSUFFICIENT_BALANCE"


def test_upstream_text_falls_back_to_message():
    assert upstream_text(UpstreamRejected("boom")) == "boom"


def test_rejected_keeps_raw_text_in_details():
    err = rejected_from_upstream("not enough balance", 400)
    assert err.code == "INSUFFICIENT_BALANCE"
    assert err.status_code == 400
    assert err.message.startswith("Insufficient USDC balance")
    assert err.details["upstream"] == "not enough balance"


def test_upstream_status_below_400_maps_to_502():
    assert UpstreamRejected("boom", upstream_status=200).status_code == 502
    assert UpstreamRejected("boom").status_code == 502


def test_shape_mismatch_is_upstream_rejected():
    err = ShapeMismatch("/data/orders answered 404", upstream_status=404)
    assert isinstance(err, UpstreamRejected)
    assert err.code == "ENDPOINT_SHAPE_MISMATCH"


def test_not_linked_and_partial():
    err = NotLinkedError("0xabc")
    assert err.status_code == 401 and err.code == "NOT_LINKED"

    partial = PartialBatchFailure(["X", "Z"], ["Y: gone"])
    assert partial.details == {"cancelled": ["X", "Z"], "errors": ["Y: gone"]}
