"""Domain models for credentials, orders, fills, positions and whale trades.

Upstream payloads are normalised here: numeric sides become ``Side`` values,
string numbers become floats, and the CLOB's snake_case / data-api's camelCase
keys are both accepted through field aliases.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def parse(cls, value: Any) -> "Side":
        """Accept BUY/SELL (any case) or the signed-order 0/1 encoding (0 is BUY).

        The whale activity feed uses its own side encoding; see
        ``pipeline.whales.whale_side``.
        """
        if isinstance(value, Side):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid side: {value!r}")
        if isinstance(value, int):
            if value == 0:
                return cls.BUY
            if value == 1:
                return cls.SELL
            raise ValueError(f"Invalid side: {value!r}")
        text = str(value).strip().upper()
        if text in ("0", "1"):
            return cls.parse(int(text))
        return cls(text)


class OrderType(str, Enum):
    GTC = "GTC"
    FOK = "FOK"
    FAK = "FAK"
    GTD = "GTD"


class OrderStatus(str, Enum):
    LIVE = "LIVE"
    MATCHED = "MATCHED"
    DELAYED = "DELAYED"
    UNMATCHED = "UNMATCHED"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"

    @property
    def is_cancelable(self) -> bool:
        return self is OrderStatus.LIVE

    @classmethod
    def from_upstream(cls, raw: Any, success: bool = True) -> "OrderStatus":
        """Map an upstream status string to an OrderStatus.

        ``success=False`` always maps to REJECTED.
        """
        if not success:
            return cls.REJECTED
        text = str(raw or "").strip().upper()
        if text in ("CANCELED", "CANCELLED"):
            return cls.CANCELLED
        try:
            return cls(text)
        except ValueError:
            return cls.LIVE


class ApiCredential(BaseModel):
    """Per-wallet L2 credential. ``api_secret`` is the base64 HMAC key."""

    wallet_address: str
    api_key: str
    api_secret: str
    api_passphrase: str
    updated_at: Optional[str] = None

    @field_validator("wallet_address")
    @classmethod
    def _lowercase(cls, v: str) -> str:
        return v.strip().lower()

    def redacted(self) -> str:
        return f"{self.api_key[:8]}..."


@dataclass(frozen=True)
class SignedRequest:
    """Exact inputs of one L2 signature; never persisted."""

    method: str
    path_only: str
    timestamp: str
    body: str | None = None

    @property
    def message(self) -> str:
        return f"{self.timestamp}{self.method.upper()}{self.path_only}{self.body or ''}"


def _to_float(v: Any) -> float:
    if v in (None, ""):
        return 0.0
    return float(v)


class Order(BaseModel):
    """Open order as reported by either orders endpoint."""

    id: str
    token_id: str = Field("", alias="asset_id")
    market: Optional[str] = None
    side: Side
    size: float = Field(0.0, alias="original_size")
    size_matched: float = 0.0
    price: float = 0.0
    order_type: Optional[str] = None
    status: OrderStatus = OrderStatus.LIVE
    funder_address: Optional[str] = Field(None, alias="maker_address")
    owner: Optional[str] = None
    outcome: Optional[str] = None
    created_at: Optional[int] = None

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("side", mode="before")
    @classmethod
    def _side(cls, v: Any) -> Side:
        return Side.parse(v)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> OrderStatus:
        return OrderStatus.from_upstream(v)

    @field_validator("size", "size_matched", "price", mode="before")
    @classmethod
    def _num(cls, v: Any) -> float:
        return _to_float(v)


class Trade(BaseModel):
    """A fill. ``match_time`` is Unix seconds."""

    id: str
    maker: Optional[str] = Field(None, alias="maker_address")
    taker: Optional[str] = None
    market: Optional[str] = None
    asset_id: Optional[str] = None
    side: Optional[Side] = None
    price: float = 0.0
    size: float = 0.0
    status: Optional[str] = None
    outcome: Optional[str] = None
    match_time: int = 0

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("side", mode="before")
    @classmethod
    def _side(cls, v: Any) -> Side | None:
        if v in (None, ""):
            return None
        return Side.parse(v)

    @field_validator("price", "size", mode="before")
    @classmethod
    def _num(cls, v: Any) -> float:
        return _to_float(v)

    @field_validator("match_time", mode="before")
    @classmethod
    def _time(cls, v: Any) -> int:
        if v in (None, ""):
            return 0
        return int(float(v))


class Position(BaseModel):
    """Holding from the public data API (camelCase on the wire)."""

    asset: str = ""
    condition_id: str = Field("", alias="conditionId")
    size: float = 0.0
    avg_price: float = Field(0.0, alias="avgPrice")
    cur_price: float = Field(0.0, alias="curPrice")
    current_value: float = Field(0.0, alias="currentValue")
    cash_pnl: float = Field(0.0, alias="cashPnl")
    percent_pnl: float = Field(0.0, alias="percentPnl")
    realized_pnl: float = Field(0.0, alias="realizedPnl")
    outcome: str = "YES"
    title: str = "Unknown Market"
    event_slug: str = Field("", alias="eventSlug")
    redeemable: bool = False
    mergeable: bool = False

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator(
        "size", "avg_price", "cur_price", "current_value",
        "cash_pnl", "percent_pnl", "realized_pnl",
        mode="before",
    )
    @classmethod
    def _num(cls, v: Any) -> float:
        return _to_float(v)

    @field_validator("outcome", "title", "event_slug", "asset", "condition_id", mode="before")
    @classmethod
    def _text(cls, v: Any, info) -> Any:
        if v in (None, ""):
            return cls.model_fields[info.field_name].default
        return v

    @field_validator("redeemable", "mergeable", mode="before")
    @classmethod
    def _flag(cls, v: Any) -> bool:
        return bool(v)


class WhaleTrade(BaseModel):
    """A qualifying large trade from the activity feed."""

    market_question: str
    side: str  # YES or NO
    size: float
    price: float
    amount: float
    platform: str = "polymarket"
    market_url: Optional[str] = None
    wallet: str = "Unknown"
    timestamp: str
    trade_hash: str

    class Config:
        populate_by_name = True


@dataclass
class CancelResult:
    cancelled: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
