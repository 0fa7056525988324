"""L2 request signing for the CLOB REST API.

message   = timestamp + METHOD + path (+ body when the call signs its body)
key       = base64-decode(api_secret)
signature = urlsafe-base64(HMAC-SHA256(key, message))

Query strings are never part of the signed path. Everything here is pure;
the only time source is the injectable ``clock``.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import time
from typing import Callable

from clob_gateway.models import ApiCredential, SignedRequest

Clock = Callable[[], float]


def timestamp_now(clock: Clock = time.time) -> str:
    """Current Unix seconds as a string."""
    return str(int(clock()))


def path_only(path: str) -> str:
    """Strip any query string or fragment from a request path."""
    return path.split("?", 1)[0].split("#", 1)[0]


def decode_secret(secret: str) -> bytes:
    """Base64-decode an API secret; standard and urlsafe alphabets accepted."""
    normalized = secret.replace("-", "+").replace("_", "/")
    padding = -len(normalized) % 4
    return base64.b64decode(normalized + "=" * padding)


def build_request(
    method: str,
    path: str,
    timestamp: str,
    body: str | None = None,
) -> SignedRequest:
    return SignedRequest(
        method=method.upper(),
        path_only=path_only(path),
        timestamp=timestamp,
        body=body or None,
    )


def sign(secret: str, request: SignedRequest) -> str:
    """HMAC-SHA256 over the canonical message, urlsafe base64 encoded."""
    digest = hmac.new(
        decode_secret(secret),
        request.message.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii").replace("+", "-").replace("/", "_")


def l2_headers(
    credential: ApiCredential,
    method: str,
    path: str,
    body: str | None = None,
    clock: Clock = time.time,
    address: str | None = None,
    timestamp: str | None = None,
) -> dict[str, str]:
    """Build the five L2 auth headers for one request.

    Args:
        credential: Stored credential of the wallet making the call.
        method: HTTP method.
        path: Request path; any query string is dropped before signing.
        body: Exact serialized body bytes, for calls whose signature covers it.
        clock: Time source, seconds since epoch.
        address: POLY_ADDRESS override (defaults to the credential's wallet).
        timestamp: Explicit timestamp, when another signer must share it.
    """
    request = build_request(method, path, timestamp or timestamp_now(clock), body)
    return {
        "POLY_ADDRESS": (address or credential.wallet_address).lower(),
        "POLY_SIGNATURE": sign(credential.api_secret, request),
        "POLY_TIMESTAMP": request.timestamp,
        "POLY_API_KEY": credential.api_key,
        "POLY_PASSPHRASE": credential.api_passphrase,
    }


def l1_headers(wallet_address: str, signature: str, timestamp: str, nonce: int | str = 0) -> dict[str, str]:
    """Headers for the wallet-signed credential create/derive challenge."""
    return {
        "POLY_ADDRESS": wallet_address,
        "POLY_SIGNATURE": signature,
        "POLY_TIMESTAMP": str(timestamp),
        "POLY_NONCE": str(nonce),
    }
