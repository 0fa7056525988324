"""Gateway error taxonomy and upstream message categorisation."""
from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base error; carries the code and HTTP status the API layer renders."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class ValidationError(GatewayError):
    """Malformed input. Raised before any network call."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotLinkedError(GatewayError):
    status_code = 401
    code = "NOT_LINKED"

    def __init__(self, wallet_address: str):
        super().__init__(
            "Wallet not linked to Polymarket. Please link your wallet first.",
            details={"walletAddress": wallet_address},
        )
        self.wallet_address = wallet_address


class AuthDerivationError(GatewayError):
    """Upstream rejected both credential creation and derivation."""

    status_code = 502
    code = "AUTH_DERIVATION_FAILED"


class UpstreamRejected(GatewayError):
    """4xx/5xx (or an explicit failure body) from an upstream API."""

    status_code = 502
    code = "UPSTREAM_REJECTED"

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        code: str | None = None,
        details: Any = None,
    ):
        status = upstream_status if upstream_status and upstream_status >= 400 else None
        super().__init__(message, code=code, status_code=status, details=details)
        self.upstream_status = upstream_status


class ShapeMismatch(UpstreamRejected):
    """Endpoint answered 401/404/405: wrong path or body convention for this deployment.

    Triggers the next endpoint strategy; only surfaces when none is left.
    """

    code = "ENDPOINT_SHAPE_MISMATCH"


class PartialBatchFailure(GatewayError):
    """Batch cancel where some ids succeeded and some failed."""

    status_code = 200
    code = "PARTIAL_BATCH_FAILURE"

    def __init__(self, cancelled: list[str], errors: list[str]):
        super().__init__(
            f"{len(errors)} of {len(cancelled) + len(errors)} cancellations failed",
            details={"cancelled": cancelled, "errors": errors},
        )
        self.cancelled = cancelled
        self.errors = errors


# (predicate over lowercased text, user-facing message, code); first match wins
_CATEGORIES = [
    (
        lambda t: "insufficient" in t or "balance" in t,
        "Insufficient USDC balance. Please deposit funds to your wallet.",
        "INSUFFICIENT_BALANCE",
    ),
    (
        lambda t: "market" in t and "closed" in t,
        "This market is closed for trading.",
        "MARKET_CLOSED",
    ),
    (
        lambda t: "price" in t,
        "Invalid price. Price must be between $0.01 and $0.99.",
        "INVALID_PRICE",
    ),
    (
        lambda t: "min" in t and "size" in t,
        "Order too small. Minimum order size is $1.00.",
        "MIN_SIZE_NOT_MET",
    ),
    (
        lambda t: "allowance" in t,
        "USDC approval needed. Please approve USDC spending first.",
        "INSUFFICIENT_ALLOWANCE",
    ),
    (
        lambda t: "not linked" in t or "credentials" in t,
        "Wallet not linked to Polymarket. Please link your wallet first.",
        "NOT_LINKED",
    ),
]


ORDER_FALLBACK = ("Order failed", "ORDER_FAILED")
CANCEL_FALLBACK = ("Order cancellation failed", "CANCEL_FAILED")


def categorize_upstream_error(
    text: str,
    fallback: tuple[str, str] = ORDER_FALLBACK,
) -> tuple[str, str]:
    """Map raw upstream error text to (user-facing message, code).

    Unrecognised text maps to ``fallback``; the raw text never becomes the
    message.
    """
    lowered = (text or "").lower()
    for matches, message, code in _CATEGORIES:
        if matches(lowered):
            return message, code
    return fallback


def rejected_from_upstream(
    text: str,
    upstream_status: int | None = None,
    fallback: tuple[str, str] = ORDER_FALLBACK,
) -> UpstreamRejected:
    """Build a categorised UpstreamRejected; raw text goes to details."""
    message, code = categorize_upstream_error(text, fallback)
    return UpstreamRejected(
        message,
        upstream_status=upstream_status,
        code=code,
        details={"upstream": text, "status": upstream_status},
    )


def upstream_text(err: GatewayError) -> str:
    """Raw upstream text carried by an error, else its message."""
    if isinstance(err.details, dict) and err.details.get("upstream"):
        return str(err.details["upstream"])
    return err.message
