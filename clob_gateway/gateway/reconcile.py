"""Reconciliation engine: open orders, fills, positions and the portfolio view.

Merges the CLOB's authenticated views with the public data API into single
deduplicated results. No state is kept between calls.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable

from pydantic import ValidationError as PydanticValidationError

from clob_gateway.clients.clob import CLOBClient
from clob_gateway.clients.data_api import DataAPIClient
from clob_gateway.errors import GatewayError
from clob_gateway.gateway.credentials import CredentialManager
from clob_gateway.gateway.strategies import EndpointStrategy, open_order_strategies, run_strategies
from clob_gateway.models import ApiCredential, Order, Position, Trade
from clob_gateway.signing import l2_headers

logger = logging.getLogger("gateway.reconcile")


def merge_trades(*batches: Iterable[dict]) -> list[dict]:
    """Union trade batches by id (first seen wins), newest match_time first."""
    merged: dict[str, dict] = {}
    for batch in batches:
        for trade in batch:
            trade_id = trade.get("id")
            if trade_id is None or trade_id in merged:
                continue
            merged[trade_id] = trade

    def _match_time(t: dict) -> int:
        try:
            return int(float(t.get("match_time") or 0))
        except (TypeError, ValueError):
            return 0

    return sorted(merged.values(), key=_match_time, reverse=True)


def owned_by(raw: dict, wallet_address: str, api_key: str | None = None) -> bool:
    address = wallet_address.lower()
    for key in ("maker_address", "maker", "owner"):
        value = raw.get(key)
        if isinstance(value, str) and value.lower() == address:
            return True
    return bool(api_key) and raw.get("owner") == api_key


def portfolio_stats(positions: list[Position], open_orders: list[Order]) -> dict:
    return {
        "totalValue": sum(p.current_value for p in positions),
        "totalUnrealizedPnl": sum(p.cash_pnl for p in positions),
        "totalRealizedPnl": sum(p.realized_pnl for p in positions),
        "positionCount": len(positions),
        "openOrderCount": len(open_orders),
    }


class ReconciliationEngine:
    def __init__(
        self,
        credentials: CredentialManager,
        clob: CLOBClient,
        data_api: DataAPIClient,
        strategies: list[EndpointStrategy] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.credentials = credentials
        self.clob = clob
        self.data_api = data_api
        self.strategies = strategies or open_order_strategies(clob.config)
        self.clock = clock

    # -- open orders --

    def _fetch_open_orders(
        self,
        credential: ApiCredential,
        wallet_address: str,
        market: str | None,
    ) -> list[Order]:
        def attempt(strategy: EndpointStrategy) -> list[dict]:
            headers = l2_headers(credential, "GET", strategy.path, clock=self.clock)
            return self.clob.get_orders(
                strategy.path, headers, strategy.params(wallet_address, market),
            )

        raw_orders = run_strategies(self.strategies, attempt)
        orders: list[Order] = []
        for raw in raw_orders:
            if not owned_by(raw, wallet_address, credential.api_key):
                continue
            try:
                order = Order.model_validate(raw)
            except (PydanticValidationError, ValueError) as e:
                logger.warning(f"Skipping malformed order {raw.get('id')}: {e}")
                continue
            # endpoints that ignore the state filter also return settled orders
            if not order.status.is_cancelable:
                logger.debug(f"Skipping {order.status.value} order {order.id}")
                continue
            orders.append(order)
        logger.info(f"{len(orders)} open orders for {wallet_address[:10]}")
        return orders

    def open_orders(self, wallet_address: str, market: str | None = None) -> list[Order]:
        """Live orders for a linked wallet.

        Raises:
            NotLinkedError: no stored credential for the address.
            ShapeMismatch: every orders endpoint answered 401/404/405.
            UpstreamRejected: any other upstream failure.
        """
        credential = self.credentials.require(wallet_address)
        return self._fetch_open_orders(credential, wallet_address, market)

    # -- fills --

    def trades(
        self,
        wallet_address: str,
        market: str | None = None,
        before: str | None = None,
        after: str | None = None,
    ) -> list[Trade]:
        """Maker and taker fills merged by id, newest first.

        Both queries are signed over the bare trades path; filters travel
        only in the query string.
        """
        credential = self.credentials.require(wallet_address)
        address = wallet_address.lower()
        path = self.clob.config.trades_path

        def query(role: str) -> list[dict]:
            params: dict[str, Any] = {role: address}
            if market:
                params["market"] = market
            if before:
                params["before"] = before
            if after:
                params["after"] = after
            headers = l2_headers(credential, "GET", path, clock=self.clock)
            return self.clob.get_trades(headers, params)

        with ThreadPoolExecutor(max_workers=2) as pool:
            maker_future = pool.submit(query, "maker")
            taker_future = pool.submit(query, "taker")
            maker_trades = maker_future.result()
            taker_trades = taker_future.result()

        merged = merge_trades(maker_trades, taker_trades)
        logger.info(
            f"Trades for {address[:10]}: {len(maker_trades)} maker, "
            f"{len(taker_trades)} taker, {len(merged)} unique"
        )
        trades: list[Trade] = []
        for raw in merged:
            try:
                trades.append(Trade.model_validate(raw))
            except (PydanticValidationError, ValueError) as e:
                logger.warning(f"Skipping malformed trade {raw.get('id')}: {e}")
        return trades

    # -- positions --

    def positions(self, wallet_address: str) -> list[Position]:
        """Public positions; needs no credentials."""
        raw = self.data_api.get_positions(wallet_address)
        return [Position.model_validate(p) for p in raw]

    def portfolio(self, wallet_address: str) -> dict:
        """Positions plus (if linked) open orders, fetched concurrently.

        An open-orders failure is reported in ``openOrdersError``; a
        positions failure propagates.
        """
        credential = self.credentials.get(wallet_address)
        open_orders: list[Order] = []
        open_orders_error: str | None = None

        with ThreadPoolExecutor(max_workers=2) as pool:
            positions_future = pool.submit(self.positions, wallet_address)
            orders_future = (
                pool.submit(self._fetch_open_orders, credential, wallet_address, None)
                if credential is not None
                else None
            )
            if orders_future is not None:
                try:
                    open_orders = orders_future.result()
                except GatewayError as e:
                    logger.warning(f"Open orders unavailable for {wallet_address[:10]}: {e.message}")
                    open_orders_error = e.message
            positions = positions_future.result()

        if credential is None:
            logger.info(f"{wallet_address[:10]} not linked, skipping open orders")

        return {
            "positions": positions,
            "openOrders": open_orders,
            "openOrdersError": open_orders_error,
            "linked": credential is not None,
            "stats": portfolio_stats(positions, open_orders),
        }
