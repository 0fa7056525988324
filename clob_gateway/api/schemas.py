"""Request bodies for the gateway HTTP API (camelCase on the wire).

Order fields are typed loosely on purpose: bounds and enums are checked by
the order router so every violation comes back as a VALIDATION_ERROR envelope.
"""
from typing import Any, Optional

from pydantic import BaseModel, Field


class LinkRequest(BaseModel):
    wallet_address: str = Field(..., alias="walletAddress")
    signature: Optional[str] = None
    timestamp: Optional[Any] = None
    nonce: Any = 0
    # client-derived credentials
    api_key: Optional[str] = Field(None, alias="apiKey")
    secret: Optional[str] = None
    passphrase: Optional[str] = None

    class Config:
        populate_by_name = True


class PlaceOrderBody(BaseModel):
    wallet_address: str = Field("", alias="walletAddress")
    token_id: Any = Field(None, alias="tokenId")
    side: Any = None
    size: Any = None
    price: Any = None
    order_type: Any = Field("GTC", alias="orderType")
    wallet_type: str = Field("eoa", alias="walletType")
    signed_order: Any = Field(None, alias="signedOrder")
    client_order_id: Optional[str] = Field(None, alias="clientOrderId")

    class Config:
        populate_by_name = True


class CancelBody(BaseModel):
    wallet_address: str = Field("", alias="walletAddress")
    order_ids: Any = Field(None, alias="orderIds")

    class Config:
        populate_by_name = True


class ResolveUrlBody(BaseModel):
    market_slug: Optional[str] = Field(None, alias="marketSlug")
    condition_id: Optional[str] = Field(None, alias="conditionId")
    token_id: Optional[str] = Field(None, alias="tokenId")

    class Config:
        populate_by_name = True
