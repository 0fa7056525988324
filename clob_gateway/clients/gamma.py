"""Gamma API client and market URL resolver.

The resolver turns a market slug or condition id into the event page URL
(share URL and canonical market URL), detecting multi-market events. Results
are held in the ``TTLCache`` passed in by the caller.
"""
from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from clob_gateway.cache import TTLCache
from clob_gateway.clients.base import BaseAPIClient, error_text
from clob_gateway.config import GammaConfig
from clob_gateway.errors import UpstreamRejected, ValidationError

logger = logging.getLogger(__name__)


def _token_ids(market: dict) -> list[str]:
    ids = market.get("clobTokenIds")
    if isinstance(ids, str):
        try:
            ids = json.loads(ids)
        except ValueError:
            ids = []
    return list(ids or [])


class GammaClient(BaseAPIClient):
    def __init__(
        self,
        config: GammaConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.config = config or GammaConfig()
        super().__init__(self.config.base_url, self.config.timeout, transport=transport)

    def _get_list(self, path: str, params: dict[str, Any]) -> list[dict]:
        resp = self._send("GET", path, params=params)
        if resp.status_code >= 400:
            raise UpstreamRejected(
                "Failed to resolve market URL from Gamma API",
                upstream_status=resp.status_code,
                details={"upstream": error_text(resp)[:200], "status": resp.status_code},
            )
        data = self._json(resp)
        return data if isinstance(data, list) else []

    def get_markets(self, slug: str | None = None, condition_id: str | None = None) -> list[dict]:
        params = {"slug": slug} if slug else {"condition_id": condition_id}
        return self._get_list("/markets", params)

    def get_event_by_slug(self, slug: str) -> list[dict]:
        """Fetch event(s) by Polymarket slug."""
        return self._get_list("/events", {"slug": slug})

    def get_active_events(self, limit: int = 100) -> list[dict]:
        return self._get_list("/events", {"active": "true", "limit": limit})


class MarketURLResolver:
    def __init__(self, gamma: GammaClient, cache: TTLCache, site_url: str | None = None):
        self.gamma = gamma
        self.cache = cache
        self.site_url = (site_url or gamma.config.site_url).rstrip("/")

    def _event_url(self, event_slug: str, market_slug: str | None = None) -> str:
        if market_slug and market_slug != event_slug:
            return f"{self.site_url}/event/{event_slug}/{market_slug}"
        return f"{self.site_url}/event/{event_slug}"

    def resolve(
        self,
        market_slug: str | None = None,
        condition_id: str | None = None,
        token_id: str | None = None,
    ) -> dict:
        """Resolve event/market slugs and page URLs for a market.

        Raises:
            ValidationError: neither market_slug nor condition_id given.
            UpstreamRejected: Gamma markets lookup failed.
        """
        if not market_slug and not condition_id:
            raise ValidationError("Either marketSlug or conditionId is required")

        cache_key = market_slug or condition_id
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for {cache_key}")
            return {**cached, "cached": True}

        markets = self.gamma.get_markets(slug=market_slug, condition_id=condition_id)
        if not markets:
            result = self._resolve_from_event(market_slug or "")
            if result.get("warning") is None:
                self.cache.set(cache_key, result)
            return {**result, "cached": False}

        market = markets[0]
        event_slug = market.get("event_slug") or market.get("eventSlug")
        resolved_slug = market.get("slug") or market.get("market_slug") or market_slug
        market_condition = market.get("condition_id") or market.get("conditionId") or condition_id

        yes_token = next(
            (t for t in market.get("tokens") or [] if str(t.get("outcome", "")).lower() == "yes"),
            None,
        )
        ids = _token_ids(market)
        resolved_token = token_id or (yes_token or {}).get("token_id") or (ids[0] if ids else None)

        if not event_slug and market.get("events"):
            event_slug = market["events"][0].get("slug")

        market_count = 1
        if not event_slug and market_condition:
            for event in self.gamma.get_active_events():
                event_markets = event.get("markets") or []
                if any(
                    m.get("condition_id") == market_condition
                    or m.get("conditionId") == market_condition
                    or m.get("slug") == resolved_slug
                    for m in event_markets
                ):
                    event_slug = event.get("slug")
                    market_count = len(event_markets) or 1
                    break
        elif event_slug:
            try:
                events = self.gamma.get_event_by_slug(event_slug)
            except UpstreamRejected as e:
                logger.info(f"Multi-market check failed for {event_slug}: {e}")
                events = []
            if events:
                market_count = len(events[0].get("markets") or []) or 1

        is_multi = market_count > 1
        if not event_slug:
            event_slug = resolved_slug

        if is_multi and resolved_token:
            share_url = f"{self.site_url}/event/{event_slug}?tid={resolved_token}"
            canonical_url = f"{self.site_url}/event/{event_slug}/{resolved_slug}"
        else:
            share_url = self._event_url(event_slug, resolved_slug)
            canonical_url = share_url

        logger.info(f"Resolved {cache_key}: {share_url} (multi={is_multi}, markets={market_count})")
        result = {
            "eventSlug": event_slug,
            "marketSlug": resolved_slug,
            "fullUrl": share_url,
            "shareUrl": share_url,
            "canonicalMarketUrl": canonical_url,
            "tokenId": resolved_token,
            "isMultiMarket": is_multi,
        }
        self.cache.set(cache_key, result)
        return {**result, "cached": False}

    def _resolve_from_event(self, market_slug: str) -> dict:
        events: list[dict] = []
        if market_slug:
            try:
                events = self.gamma.get_event_by_slug(market_slug)
            except UpstreamRejected as e:
                logger.info(f"Event lookup failed for {market_slug}: {e}")
        if events:
            event = events[0]
            event_slug = event.get("slug") or market_slug
            event_markets = event.get("markets") or []
            resolved_slug = (event_markets[0].get("slug") if event_markets else None) or market_slug
            url = self._event_url(event_slug, resolved_slug)
            return {
                "eventSlug": event_slug,
                "marketSlug": resolved_slug,
                "fullUrl": url,
                "shareUrl": url,
                "canonicalMarketUrl": url,
                "tokenId": None,
                "isMultiMarket": len(event_markets) > 1,
                "warning": None,
            }
        url = f"{self.site_url}/event/{market_slug}"
        return {
            "eventSlug": market_slug,
            "marketSlug": market_slug,
            "fullUrl": url,
            "shareUrl": url,
            "canonicalMarketUrl": url,
            "tokenId": None,
            "isMultiMarket": False,
            "warning": "Could not verify URL, using marketSlug as eventSlug",
        }
