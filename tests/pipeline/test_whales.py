"""Tests for the whale trade pipeline."""
from __future__ import annotations

import httpx
import pytest

from clob_gateway.clients.activity import ActivityFeedClient
from clob_gateway.config import ActivityFeedConfig, WhaleConfig
from clob_gateway.db.whale_trades_repo import WhaleTradesRepo
from clob_gateway.errors import UpstreamRejected, ValidationError
from clob_gateway.models import Side
from clob_gateway.pipeline.whales import (
    WhalePipeline,
    compute_stats,
    redact_wallet,
    trade_hash,
    whale_side,
)

from conftest import FakeClock, FakeUpstream

NOW = 1_700_000_000
FEED_PATH = "/v1/polymarket/orders"


def _order(i: int, age: int, shares: float = 20000, price: float = 0.5, side: str = "BUY", **extra) -> dict:
    return {
        "order_hash": f"h{i}",
        "title": f"Market {i % 3}",
        "shares_normalized": shares,
        "price": price,
        "side": side,
        "timestamp": NOW - age,
        "user": "0x1234567890abcdef1234567890abcdef12345678",
        "market_slug": f"market-{i % 3}",
        **extra,
    }


def _paged_feed(orders: list[dict], page_size: int) -> FakeUpstream:
    def handle(request: httpx.Request) -> httpx.Response:
        offset = int(request.url.params["offset"])
        page = orders[offset:offset + page_size]
        return httpx.Response(200, json={
            "orders": page,
            "pagination": {"has_more": offset + page_size < len(orders)},
        })
    return FakeUpstream().on("GET", FEED_PATH, handle)


def _pipeline(mem_conn, feed: FakeUpstream, api_key: str = "test-feed-key", **whale_overrides) -> WhalePipeline:
    whale_config = WhaleConfig(**{"page_limit": 3, **whale_overrides})
    client = ActivityFeedClient(ActivityFeedConfig(api_key=api_key), transport=feed.transport)
    return WhalePipeline(
        client, WhaleTradesRepo(mem_conn), whale_config,
        site_url="https://polymarket.com", clock=FakeClock(float(NOW)),
    )


class TestHelpers:
    @pytest.mark.parametrize("raw,side", [
        ("BUY", "YES"), ("buy", "YES"), ("SELL", "NO"), ("no", "NO"),
        (0, "NO"), (1, "YES"), (None, "YES"),
    ])
    def test_whale_side(self, raw, side):
        assert whale_side(raw) == side

    def test_zero_side_differs_from_signed_orders(self):
        assert Side.parse(0) is Side.BUY
        assert whale_side(0) == "NO"

    def test_redact_wallet(self):
        assert redact_wallet("0x1234567890abcdef") == "0x123456...cdef"
        assert redact_wallet("0x12") == "Unknown"
        assert redact_wallet(None) == "Unknown"

    def test_trade_hash_is_stable_and_rounded(self):
        a = trade_hash("polymarket", "Q", "YES", 6000.2, 0.501, "2026-01-01T00:00:00Z")
        b = trade_hash("polymarket", "Q", "YES", 6000.4, 0.499, "2026-01-01T00:00:00Z")
        c = trade_hash("polymarket", "Q", "NO", 6000.2, 0.501, "2026-01-01T00:00:00Z")
        assert a == b
        assert a != c

    def test_compute_stats(self):
        rows = [("YES", 6000.0, "A"), ("NO", 10000.0, "A"), ("YES", 7000.0, "B")]
        stats = compute_stats(rows)
        assert stats["totalVolume"] == 23000.0
        assert stats["tradeCount"] == 3
        assert stats["netFlow"] == 3000.0
        assert stats["hotMarketsCount"] == 1


class TestNormalize:
    def test_threshold_is_inclusive(self, mem_conn):
        pipeline = _pipeline(mem_conn, FakeUpstream())
        assert pipeline.normalize(_order(1, 0, shares=10000, price=0.5)) is not None
        assert pipeline.normalize(_order(1, 0, shares=9998, price=0.5)) is None

    def test_fields(self, mem_conn):
        trade = _pipeline(mem_conn, FakeUpstream()).normalize(
            _order(1, 0, shares=20000, price=1.2, side="SELL"),
        )
        assert trade.side == "NO"
        assert trade.price == 0.99
        assert trade.amount == 24000.0
        assert trade.wallet == "0x123456...5678"
        assert trade.timestamp == "2023-11-14T22:13:20Z"
        assert trade.market_url == "https://polymarket.com/event/market-1"

    def test_millisecond_and_iso_timestamps_agree(self, mem_conn):
        pipeline = _pipeline(mem_conn, FakeUpstream())
        seconds = pipeline.normalize(_order(1, 0))
        millis = pipeline.normalize(_order(1, 0, timestamp=NOW * 1000))
        iso = pipeline.normalize(_order(1, 0, timestamp="2023-11-14T22:13:20Z"))
        assert seconds.trade_hash == millis.trade_hash == iso.trade_hash

    def test_missing_timestamp_is_dropped(self, mem_conn):
        order = _order(1, 0)
        del order["timestamp"]
        assert _pipeline(mem_conn, FakeUpstream()).normalize(order) is None


class TestRun:
    def test_overlapping_runs_do_not_duplicate(self, mem_conn):
        orders = [_order(i, age=60 * i) for i in range(5)]
        pipeline = _pipeline(mem_conn, _paged_feed(orders, 3))

        first = pipeline.run(time_range="24h")
        second = pipeline.run(time_range="24h")

        assert first.stored == 5
        assert second.stored == 5
        assert pipeline.repo.count() == 5

    def test_undated_orders_are_skipped_on_every_run(self, mem_conn):
        undated = {"title": "Q", "shares_normalized": 20000, "price": 0.5, "side": "BUY"}
        orders = [_order(0, 60), undated, _order(1, 120)]
        pipeline = _pipeline(mem_conn, _paged_feed(orders, 3))

        first = pipeline.run(time_range="24h")
        second = pipeline.run(time_range="24h")

        assert first.skipped == 1
        assert first.stored == 2
        assert first.stopped_early is False
        assert second.skipped == 1
        assert pipeline.repo.count() == 2

    def test_stops_at_cutoff_when_chronological(self, mem_conn):
        orders = [_order(0, 60), _order(1, 120), _order(2, 2 * 86400), _order(3, 180)]
        feed = _paged_feed(orders, 3)

        result = _pipeline(mem_conn, feed).run(time_range="24h")

        assert result.stopped_early is True
        assert result.stored == 2
        assert len(feed.requests) == 1

    def test_filters_without_stopping_when_unordered(self, mem_conn):
        orders = [_order(0, 60), _order(1, 120), _order(2, 2 * 86400), _order(3, 180)]
        feed = _paged_feed(orders, 3)

        result = _pipeline(mem_conn, feed, assume_chronological=False).run(time_range="24h")

        assert result.stopped_early is False
        assert result.stored == 3
        assert len(feed.requests) == 2

    def test_max_pages_bounds_paging(self, mem_conn):
        orders = [_order(i, age=i) for i in range(30)]
        feed = _paged_feed(orders, 3)

        result = _pipeline(mem_conn, feed, max_pages=2).run()

        assert result.pages == 2
        assert result.scanned == 6
        assert [int(r.url.params["offset"]) for r in feed.requests] == [0, 3]

    def test_small_trades_are_ignored(self, mem_conn):
        orders = [_order(0, 10, shares=100), _order(1, 10)]
        result = _pipeline(mem_conn, _paged_feed(orders, 3)).run()
        assert result.scanned == 2
        assert result.qualifying == 1

    def test_unconfigured_feed(self, mem_conn):
        feed = FakeUpstream()
        with pytest.raises(UpstreamRejected) as exc:
            _pipeline(mem_conn, feed, api_key="").run()
        assert exc.value.code == "CONFIG_ERROR"
        assert feed.requests == []

    def test_sends_bearer_key(self, mem_conn):
        feed = _paged_feed([], 3)
        _pipeline(mem_conn, feed).run()
        assert feed.requests[0].headers["Authorization"] == "Bearer test-feed-key"

    def test_feed_error_raises(self, mem_conn):
        feed = FakeUpstream().on("GET", FEED_PATH, (500, {"error": "down"}))
        with pytest.raises(UpstreamRejected):
            _pipeline(mem_conn, feed).run()


class TestRead:
    def test_read_returns_trades_and_stats(self, mem_conn):
        orders = [
            _order(0, 60, side="BUY"),
            _order(3, 120, side="SELL", shares=40000),
            _order(1, 3 * 3600),
        ]
        pipeline = _pipeline(mem_conn, _paged_feed(orders, 3))
        pipeline.run(time_range="24h")

        everything = pipeline.read("24h")
        assert everything["dataSource"] == "dome_api"
        assert everything["message"] is None
        assert everything["stats"]["tradeCount"] == 3
        assert everything["stats"]["hotMarketsCount"] == 1
        assert everything["trades"][0].side == "YES"

        last_hour = pipeline.read("1h")
        assert last_hour["stats"]["tradeCount"] == 2

        no_only = pipeline.read("24h", side="no")
        assert [t.side for t in no_only["trades"]] == ["NO"]

        big = pipeline.read("24h", min_size=15000)
        assert big["stats"]["totalVolume"] == 20000.0

    def test_limit_does_not_cap_stats(self, mem_conn):
        orders = [_order(i, age=i) for i in range(5)]
        pipeline = _pipeline(mem_conn, _paged_feed(orders, 3))
        pipeline.run()
        result = pipeline.read("24h", limit=2)
        assert len(result["trades"]) == 2
        assert result["stats"]["tradeCount"] == 5

    def test_empty_read_has_message(self, mem_conn):
        result = _pipeline(mem_conn, FakeUpstream()).read("7d")
        assert result["trades"] == []
        assert "7d" in result["message"]

    @pytest.mark.parametrize("kwargs", [{"time_range": "1y"}, {"side": "MAYBE"}])
    def test_bad_filters(self, mem_conn, kwargs):
        with pytest.raises(ValidationError):
            _pipeline(mem_conn, FakeUpstream()).read(**kwargs)
