"""Shared test fixtures: in-memory DB, fake clock, mock upstreams."""
from __future__ import annotations

import json
import sqlite3

import httpx
import pytest

from clob_gateway.config import ActivityFeedConfig, AppConfig
from clob_gateway.db.connection import apply_schema
from clob_gateway.db.credentials_repo import CredentialsRepo
from clob_gateway.models import ApiCredential

WALLET = "0xAbCdEf0123456789aBCdef0123456789ABCDEF01"
SECRET = "c2VjcmV0"  # base64("secret")


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """Routes (method, path) to canned responses and records every request.

    A route is a callable ``request -> httpx.Response`` or a
    ``(status, json_body)`` tuple.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], object] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, response) -> "FakeUpstream":
        self.routes[(method.upper(), path)] = response
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "no route"})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str | None = None, path: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]


def body_of(request: httpx.Request) -> dict:
    return json.loads(request.content.decode("utf-8")) if request.content else {}


@pytest.fixture
def mem_conn():
    """In-memory SQLite connection with schema applied."""
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def config():
    return AppConfig(feed=ActivityFeedConfig(api_key="test-feed-key"))


@pytest.fixture
def credential() -> ApiCredential:
    return ApiCredential(
        wallet_address=WALLET,
        api_key="key-1234567890",
        api_secret=SECRET,
        api_passphrase="pass-phrase",
    )


@pytest.fixture
def linked(mem_conn, credential):
    """Credentials repo with WALLET already linked."""
    repo = CredentialsRepo(mem_conn)
    repo.upsert(WALLET, credential.api_key, credential.api_secret, credential.api_passphrase)
    return repo
