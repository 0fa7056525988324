"""CRUD operations for the credentials table."""
from __future__ import annotations

import sqlite3
import threading

from clob_gateway.models import ApiCredential
from clob_gateway.shared.time_utils import now_utc


class CredentialsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._lock = threading.Lock()

    def upsert(
        self,
        wallet_address: str,
        api_key: str,
        api_secret: str,
        api_passphrase: str,
    ) -> ApiCredential:
        """Insert or replace the credential for an address (keeps created_at)."""
        address = wallet_address.strip().lower()
        ts = now_utc()
        with self._lock:
            self.conn.execute(
                """INSERT INTO credentials
                   (wallet_address, api_key, api_secret, api_passphrase,
                    created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(wallet_address) DO UPDATE SET
                     api_key = excluded.api_key,
                     api_secret = excluded.api_secret,
                     api_passphrase = excluded.api_passphrase,
                     updated_at = excluded.updated_at""",
                (address, api_key, api_secret, api_passphrase, ts, ts),
            )
            self.conn.commit()
        return ApiCredential(
            wallet_address=address,
            api_key=api_key,
            api_secret=api_secret,
            api_passphrase=api_passphrase,
            updated_at=ts,
        )

    def get(self, wallet_address: str) -> ApiCredential | None:
        row = self.conn.execute(
            """SELECT wallet_address, api_key, api_secret, api_passphrase, updated_at
               FROM credentials WHERE wallet_address = ?""",
            (wallet_address.strip().lower(),),
        ).fetchone()
        if row is None:
            return None
        return ApiCredential(
            wallet_address=row[0],
            api_key=row[1],
            api_secret=row[2],
            api_passphrase=row[3],
            updated_at=row[4],
        )

    def link_status(self, wallet_address: str) -> tuple | None:
        """(created_at, updated_at) for a linked address, without secrets."""
        return self.conn.execute(
            "SELECT created_at, updated_at FROM credentials WHERE wallet_address = ?",
            (wallet_address.strip().lower(),),
        ).fetchone()

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM credentials").fetchone()[0]
