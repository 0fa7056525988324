"""CRUD operations for the whale_trades table."""
from __future__ import annotations

import sqlite3
import threading

from clob_gateway.models import WhaleTrade
from clob_gateway.shared.time_utils import now_utc

_COLUMNS = (
    "market_question, side, size, price, amount, platform, "
    "market_url, wallet, timestamp, trade_hash"
)


class WhaleTradesRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._lock = threading.Lock()

    def upsert(self, trade: WhaleTrade) -> None:
        """Insert a trade or refresh the row sharing its trade_hash."""
        with self._lock:
            self.conn.execute(
                f"""INSERT INTO whale_trades ({_COLUMNS}, inserted_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(trade_hash) DO UPDATE SET
                      market_question = excluded.market_question,
                      side = excluded.side,
                      size = excluded.size,
                      price = excluded.price,
                      amount = excluded.amount,
                      market_url = excluded.market_url,
                      wallet = excluded.wallet""",
                (
                    trade.market_question, trade.side, trade.size, trade.price,
                    trade.amount, trade.platform, trade.market_url, trade.wallet,
                    trade.timestamp, trade.trade_hash, now_utc(),
                ),
            )

    def _where(
        self,
        platform: str,
        since: str | None,
        min_amount: float,
        side: str | None,
    ) -> tuple[str, list]:
        clauses = ["platform = ?"]
        params: list = [platform]
        if since:
            clauses.append("timestamp >= ?")
            params.append(since)
        if min_amount > 0:
            clauses.append("amount >= ?")
            params.append(min_amount)
        if side:
            clauses.append("side = ?")
            params.append(side)
        return " AND ".join(clauses), params

    def query(
        self,
        platform: str = "polymarket",
        since: str | None = None,
        min_amount: float = 0,
        side: str | None = None,
        limit: int = 200,
    ) -> list[WhaleTrade]:
        """Newest-first trades matching the filters."""
        where, params = self._where(platform, since, min_amount, side)
        rows = self.conn.execute(
            f"""SELECT {_COLUMNS} FROM whale_trades
                WHERE {where}
                ORDER BY timestamp DESC, id DESC
                LIMIT ?""",
            (*params, limit),
        ).fetchall()
        return [
            WhaleTrade(
                market_question=r[0], side=r[1], size=r[2], price=r[3],
                amount=r[4], platform=r[5], market_url=r[6], wallet=r[7],
                timestamp=r[8], trade_hash=r[9],
            )
            for r in rows
        ]

    def get_stats_rows(
        self,
        platform: str = "polymarket",
        since: str | None = None,
        min_amount: float = 0,
        side: str | None = None,
    ) -> list[tuple]:
        """(side, amount, market_question) for every matching trade, unlimited."""
        where, params = self._where(platform, since, min_amount, side)
        rows = self.conn.execute(
            f"SELECT side, amount, market_question FROM whale_trades WHERE {where}",
            params,
        ).fetchall()
        return [tuple(r) for r in rows]

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM whale_trades").fetchone()[0]

    def commit(self) -> None:
        with self._lock:
            self.conn.commit()
