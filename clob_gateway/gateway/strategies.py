"""Ordered endpoint strategies for reads whose path differs across deployments."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence, TypeVar

from clob_gateway.config import CLOBConfig
from clob_gateway.errors import ShapeMismatch

logger = logging.getLogger("gateway.strategies")

T = TypeVar("T")


@dataclass(frozen=True)
class EndpointStrategy:
    """One path + query convention for listing a wallet's live orders."""

    name: str
    path: str
    state: str = "LIVE"

    def params(self, wallet_address: str, market: str | None = None) -> dict[str, str]:
        params = {"state": self.state, "maker": wallet_address.lower()}
        if market:
            params["market"] = market
        return params


def open_order_strategies(config: CLOBConfig) -> list[EndpointStrategy]:
    return [
        EndpointStrategy(name=path.strip("/").replace("/", "_"), path=path)
        for path in config.orders_paths
    ]


def run_strategies(
    strategies: Sequence[EndpointStrategy],
    attempt: Callable[[EndpointStrategy], T],
) -> T:
    """Call ``attempt`` per strategy until one does not raise ShapeMismatch.

    ``attempt`` must build and sign its own request, so every try carries a
    fresh timestamp. Any other error propagates immediately.

    Raises:
        ShapeMismatch: every strategy answered 401/404/405 (the last one).
        ValueError: empty strategy list.
    """
    if not strategies:
        raise ValueError("No endpoint strategies configured")
    last_error: ShapeMismatch | None = None
    for strategy in strategies:
        try:
            return attempt(strategy)
        except ShapeMismatch as e:
            logger.info(f"Strategy {strategy.name} rejected ({e.upstream_status}), trying next")
            last_error = e
    raise last_error
