"""Credential manager: derive, store and look up per-wallet L2 credentials."""
from __future__ import annotations

import logging

from clob_gateway.clients.clob import CLOBClient
from clob_gateway.db.credentials_repo import CredentialsRepo
from clob_gateway.errors import (
    AuthDerivationError,
    NotLinkedError,
    UpstreamRejected,
    ValidationError,
    upstream_text,
)
from clob_gateway.models import ApiCredential
from clob_gateway.signing import l1_headers

logger = logging.getLogger("gateway.credentials")


class CredentialManager:
    """Single writer of the credentials table."""

    def __init__(self, repo: CredentialsRepo, clob: CLOBClient):
        self.repo = repo
        self.clob = clob

    def link(
        self,
        wallet_address: str,
        signature: str,
        timestamp: int | str,
        nonce: int | str = 0,
    ) -> ApiCredential:
        """Create (or, if creation is refused, derive) the wallet's API key.

        ``signature`` is the wallet's signature over the CLOB auth challenge
        for ``timestamp`` and ``nonce``; the same headers serve both calls.

        Raises:
            ValidationError: missing address, signature or timestamp.
            AuthDerivationError: both create and derive rejected.
        """
        if not wallet_address or not signature or not timestamp:
            raise ValidationError(
                "Missing required fields: walletAddress, signature, timestamp",
            )
        headers = l1_headers(wallet_address, signature, timestamp, nonce)

        try:
            creds = self.clob.create_api_key(headers)
            logger.info(f"Created API key for {wallet_address[:10]}")
        except UpstreamRejected as create_err:
            logger.info(
                f"Create API key refused for {wallet_address[:10]} "
                f"({create_err.message[:100]}), deriving"
            )
            try:
                creds = self.clob.derive_api_key(headers)
                logger.info(f"Derived API key for {wallet_address[:10]}")
            except UpstreamRejected as derive_err:
                logger.error(f"Derive API key failed for {wallet_address[:10]}: {derive_err.message[:200]}")
                raise AuthDerivationError(
                    "Failed to create or derive API credentials",
                    details={
                        "create": upstream_text(create_err),
                        "derive": upstream_text(derive_err),
                        "status": derive_err.upstream_status,
                    },
                ) from derive_err

        return self.repo.upsert(
            wallet_address, creds["apiKey"], creds["secret"], creds["passphrase"],
        )

    def store(
        self,
        wallet_address: str,
        api_key: str,
        api_secret: str,
        api_passphrase: str,
    ) -> ApiCredential:
        """Persist credentials a client derived itself (linking endpoint only)."""
        if not wallet_address or not api_key or not api_secret or not api_passphrase:
            raise ValidationError("Missing API credentials (apiKey, secret, passphrase)")
        credential = self.repo.upsert(wallet_address, api_key, api_secret, api_passphrase)
        logger.info(f"Stored credentials for {wallet_address[:10]} (key {credential.redacted()})")
        return credential

    def get(self, wallet_address: str) -> ApiCredential | None:
        if not wallet_address:
            return None
        return self.repo.get(wallet_address)

    def require(self, wallet_address: str) -> ApiCredential:
        credential = self.get(wallet_address)
        if credential is None:
            raise NotLinkedError(wallet_address)
        return credential

    def status(self, wallet_address: str) -> dict:
        row = self.repo.link_status(wallet_address)
        return {
            "walletAddress": wallet_address.lower(),
            "linked": row is not None,
            "linkedAt": row[0] if row else None,
            "updatedAt": row[1] if row else None,
        }
