"""Wires configuration, storage and upstream clients into the gateway components."""
from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Callable

import httpx

from clob_gateway.cache import TTLCache
from clob_gateway.clients.activity import ActivityFeedClient
from clob_gateway.clients.builder import BuilderSignerClient
from clob_gateway.clients.clob import CLOBClient
from clob_gateway.clients.data_api import DataAPIClient
from clob_gateway.clients.gamma import GammaClient, MarketURLResolver
from clob_gateway.config import AppConfig
from clob_gateway.db.connection import get_connection
from clob_gateway.db.credentials_repo import CredentialsRepo
from clob_gateway.db.whale_trades_repo import WhaleTradesRepo
from clob_gateway.gateway.credentials import CredentialManager
from clob_gateway.gateway.orders import OrderRouter
from clob_gateway.gateway.reconcile import ReconciliationEngine
from clob_gateway.pipeline.whales import WhalePipeline

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: AppConfig
    conn: sqlite3.Connection
    credentials: CredentialManager
    orders: OrderRouter
    reconcile: ReconciliationEngine
    whales: WhalePipeline
    resolver: MarketURLResolver
    clients: list = field(default_factory=list)

    def close(self) -> None:
        for client in self.clients:
            client.close()
        self.conn.close()


def build_services(
    config: AppConfig,
    conn: sqlite3.Connection | None = None,
    transports: dict[str, httpx.BaseTransport] | None = None,
    clock: Callable[[], float] = time.time,
    cache_clock: Callable[[], float] = time.monotonic,
) -> Services:
    """Build every component from config.

    Args:
        config: Loaded application config.
        conn: Existing SQLite connection; opened from ``config.db_path`` if None.
        transports: Optional httpx transports keyed by "clob", "data_api",
            "builder", "feed" or "gamma" (tests pass MockTransports).
        clock: Wall clock for request signing and time windows.
        cache_clock: Clock for the URL-resolution cache.
    """
    transports = transports or {}
    if conn is None:
        conn = get_connection(config.db_path, thread_safe=True)

    clob = CLOBClient(config.clob, transport=transports.get("clob"))
    data_api = DataAPIClient(config.data_api, transport=transports.get("data_api"))
    builder = BuilderSignerClient(config.builder, transport=transports.get("builder"))
    feed = ActivityFeedClient(config.feed, transport=transports.get("feed"))
    gamma = GammaClient(config.gamma, transport=transports.get("gamma"))

    credentials = CredentialManager(CredentialsRepo(conn), clob)
    cache = TTLCache(config.gamma.cache_ttl, config.gamma.cache_size, clock=cache_clock)

    logger.info(
        f"Gateway services ready (clob={config.clob.base_url}, "
        f"cancel_mode={config.clob.cancel_mode}, db={config.db_path})"
    )
    return Services(
        config=config,
        conn=conn,
        credentials=credentials,
        orders=OrderRouter(credentials, clob, builder, config.builder, clock=clock),
        reconcile=ReconciliationEngine(credentials, clob, data_api, clock=clock),
        whales=WhalePipeline(
            feed, WhaleTradesRepo(conn), config.whales,
            site_url=config.gamma.site_url, clock=clock,
        ),
        resolver=MarketURLResolver(gamma, cache),
        clients=[clob, data_api, builder, feed, gamma],
    )
