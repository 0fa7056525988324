"""Wallet linking endpoints."""
import logging

from fastapi import APIRouter, Depends

from clob_gateway.api.dependencies import get_credentials, require_address
from clob_gateway.api.schemas import LinkRequest
from clob_gateway.gateway.credentials import CredentialManager

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/credentials", tags=["credentials"])


@router.post("/link")
def link_wallet(body: LinkRequest, credentials: CredentialManager = Depends(get_credentials)):
    """Link a wallet: derive credentials from a wallet signature, or store
    credentials the client already derived. Secrets are never echoed back.
    """
    if body.api_key or body.secret or body.passphrase:
        credential = credentials.store(
            body.wallet_address, body.api_key or "", body.secret or "", body.passphrase or "",
        )
    else:
        credential = credentials.link(
            body.wallet_address, body.signature or "", body.timestamp, body.nonce,
        )
    return {
        "success": True,
        "walletAddress": credential.wallet_address,
        "updatedAt": credential.updated_at,
    }


@router.get("/{address}")
def link_status(address: str, credentials: CredentialManager = Depends(get_credentials)):
    return {"success": True, **credentials.status(require_address(address))}
