"""Whale trade aggregation: page the order-activity feed, keep large trades.

Pipeline:
    1. Page the feed by offset/limit, at most ``max_pages`` pages.
    2. Normalise each order (size, price, amount, side, timestamp, market);
       orders without a timestamp are skipped.
    3. Keep orders at or after the cutoff with amount >= threshold.
    4. Upsert on trade_hash, so overlapping runs never duplicate rows.

Statistics are recomputed from stored rows on every read.
"""
from __future__ import annotations

import hashlib
import logging
import sqlite3
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable

from clob_gateway.clients.activity import ActivityFeedClient
from clob_gateway.config import GammaConfig, WhaleConfig
from clob_gateway.db.whale_trades_repo import WhaleTradesRepo
from clob_gateway.errors import UpstreamRejected, ValidationError
from clob_gateway.models import WhaleTrade
from clob_gateway.shared.time_utils import (
    TIME_RANGES,
    epoch_to_iso,
    range_cutoff,
    to_epoch,
)

logger = logging.getLogger("pipeline.whales")

WHALE_SIDES = ("YES", "NO")


def redact_wallet(wallet: str | None) -> str:
    if not wallet or len(wallet) < 10:
        return "Unknown"
    return f"{wallet[:8]}...{wallet[-4:]}"


def whale_side(raw: Any) -> str:
    """SELL, NO and 0 are the NO side; everything else is YES.

    The activity feed encodes 0 as NO, unlike signed orders where
    ``Side.parse`` reads 0 as BUY.
    """
    if raw is None or raw == "":
        return "YES"
    return "NO" if str(raw).strip().upper() in ("SELL", "NO", "0") else "YES"


def trade_hash(
    platform: str,
    market_question: str,
    side: str,
    amount: float,
    price: float,
    timestamp: str,
) -> str:
    """Stable digest over the normalised identity fields of a trade."""
    key = "-".join([
        platform,
        market_question[:50],
        side,
        f"{amount:.0f}",
        f"{price:.2f}",
        timestamp,
    ])
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _order_epoch(order: dict) -> float | None:
    return to_epoch(order.get("timestamp") or order.get("created_at"))


def market_url(order: dict, site_url: str) -> str | None:
    slug = order.get("event_slug") or order.get("slug") or order.get("market_slug")
    if slug:
        return f"{site_url}/event/{slug}"
    if order.get("condition_id"):
        return f"{site_url}/event/{order['condition_id']}"
    return None


@dataclass
class PipelineResult:
    pages: int = 0
    scanned: int = 0
    qualifying: int = 0
    stored: int = 0
    skipped: int = 0
    stopped_early: bool = False


class WhalePipeline:
    def __init__(
        self,
        feed: ActivityFeedClient,
        repo: WhaleTradesRepo,
        config: WhaleConfig | None = None,
        site_url: str = GammaConfig.site_url,
        clock: Callable[[], float] = time.time,
    ):
        self.feed = feed
        self.repo = repo
        self.config = config or WhaleConfig()
        self.site_url = site_url.rstrip("/")
        self.clock = clock

    def normalize(self, order: dict) -> WhaleTrade | None:
        """Map one feed order to a WhaleTrade.

        Returns None when below threshold or when the order carries no
        parseable timestamp.
        """
        size = _float(order.get("shares_normalized") or order.get("shares") or order.get("size"))
        raw_price = _float(order.get("price"))
        amount = _float(order["amount"]) if order.get("amount") else size * raw_price
        if amount < self.config.threshold:
            return None
        epoch = _order_epoch(order)
        if epoch is None:
            return None

        price = max(0.01, min(0.99, raw_price))
        side = whale_side(order.get("side"))
        question = order.get("question") or order.get("title") or order.get("market") or "Unknown Market"
        timestamp = epoch_to_iso(epoch)
        platform = self.config.platform
        wallet = order.get("user") or order.get("maker") or order.get("taker") or order.get("wallet")

        return WhaleTrade(
            market_question=str(question),
            side=side,
            size=size,
            price=price,
            amount=amount,
            platform=platform,
            market_url=market_url(order, self.site_url),
            wallet=redact_wallet(wallet),
            timestamp=timestamp,
            trade_hash=trade_hash(platform, str(question), side, amount, price, timestamp),
        )

    def collect(self, since: float | None = None) -> tuple[list[WhaleTrade], PipelineResult]:
        """Page the feed and return qualifying trades (no storage).

        Orders older than ``since`` are always dropped. With
        ``assume_chronological`` paging also stops at the first such order.
        """
        result = PipelineResult()
        trades: list[WhaleTrade] = []
        limit = self.config.page_limit
        offset = 0

        for page in range(self.config.max_pages):
            orders, has_more = self.feed.get_orders_page(limit=limit, offset=offset)
            result.pages = page + 1
            if not orders:
                logger.info(f"Page {page + 1}: no more orders")
                break

            for order in orders:
                result.scanned += 1
                epoch = _order_epoch(order)
                if epoch is None:
                    logger.warning(
                        f"Skipping order without timestamp: "
                        f"{order.get('order_hash') or order.get('tx_hash') or order.get('id')}"
                    )
                    result.skipped += 1
                    continue
                if since is not None and epoch < since:
                    if self.config.assume_chronological:
                        result.stopped_early = True
                        break
                    continue
                trade = self.normalize(order)
                if trade is not None:
                    trades.append(trade)

            logger.info(f"Page {page + 1} (offset {offset}): {len(orders)} orders, {len(trades)} whales so far")
            if result.stopped_early:
                logger.info("Reached orders older than cutoff, stopping pagination")
                break
            if not has_more:
                break
            offset += limit

        result.qualifying = len(trades)
        return trades, result

    def run(self, since: float | None = None, time_range: str | None = None) -> PipelineResult:
        """Collect and upsert. A failing record is logged and skipped.

        Raises:
            UpstreamRejected: feed not configured or a page request failed.
        """
        if not self.feed.configured:
            raise UpstreamRejected(
                "Activity feed API key not configured", code="CONFIG_ERROR", upstream_status=None,
            )
        if since is None and time_range is not None:
            since = self.clock() - TIME_RANGES.get(time_range, TIME_RANGES["24h"])

        trades, result = self.collect(since)
        for trade in trades:
            try:
                self.repo.upsert(trade)
                result.stored += 1
            except sqlite3.Error as e:
                logger.error(f"Error upserting trade {trade.trade_hash[:12]}: {e}")
                result.skipped += 1
        self.repo.commit()
        logger.info(
            f"Whale run: {result.pages} pages, {result.scanned} orders, "
            f"{result.qualifying} whales (>= ${self.config.threshold:,.0f}), "
            f"{result.stored} stored, {result.skipped} skipped"
        )
        return result

    def read(
        self,
        time_range: str = "24h",
        min_size: float = 0,
        side: str | None = None,
        limit: int | None = None,
    ) -> dict:
        """Stored trades for display plus stats over every matching row."""
        if time_range not in TIME_RANGES:
            raise ValidationError(f"Invalid timeRange: must be one of {', '.join(TIME_RANGES)}")
        if side is not None:
            side = side.upper()
            if side not in WHALE_SIDES:
                raise ValidationError("Invalid side: must be YES or NO")

        since = range_cutoff(time_range, self.clock())
        filters = dict(platform=self.config.platform, since=since, min_amount=min_size, side=side)
        trades = self.repo.query(limit=limit or self.config.display_limit, **filters)
        stats = compute_stats(self.repo.get_stats_rows(**filters))

        message = None
        if not trades:
            message = (
                f"No whale trades (>=${self.config.threshold:,.0f}) found in the last "
                f"{time_range}. Try refreshing or expanding the time range."
            )
        return {"trades": trades, "stats": stats, "dataSource": "dome_api", "message": message}


def compute_stats(rows: list[tuple]) -> dict:
    """Aggregate (side, amount, market_question) rows."""
    yes_volume = sum(float(amount) for side, amount, _ in rows if side == "YES")
    no_volume = sum(float(amount) for side, amount, _ in rows if side == "NO")
    market_counts = Counter(question for _, _, question in rows)
    return {
        "totalVolume": sum(float(amount) for _, amount, _ in rows),
        "tradeCount": len(rows),
        "yesVolume": yes_volume,
        "noVolume": no_volume,
        "netFlow": yes_volume - no_volume,
        "hotMarketsCount": sum(1 for c in market_counts.values() if c >= 2),
    }
