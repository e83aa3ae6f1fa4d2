"""SQLite implementation of the CursorStore protocol."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from evm_listener.models.records import CursorRecord

SCHEMA = """
-- Next unconfirmed block per polled contract
CREATE TABLE IF NOT EXISTS cursors (
    address TEXT PRIMARY KEY,
    confirmed_height INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteCursorStore:
    """SQLite-backed cursor storage, one row per contract address.

    Addresses are stored lowercased so checksummed and plain hex spellings
    share a row.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    async def load(self, address: str) -> int | None:
        async with self.db.execute(
            "SELECT confirmed_height FROM cursors WHERE address=?", (address.lower(),)
        ) as cur:
            row = await cur.fetchone()
            return row["confirmed_height"] if row else None

    async def save(self, address: str, height: int) -> None:
        await self.db.execute(
            "INSERT INTO cursors (address, confirmed_height, updated_at) VALUES (?, ?, ?)"
            " ON CONFLICT(address) DO UPDATE SET confirmed_height=excluded.confirmed_height,"
            " updated_at=excluded.updated_at",
            (address.lower(), height, _now()),
        )
        await self.db.commit()

    async def all_cursors(self) -> list[CursorRecord]:
        async with self.db.execute("SELECT * FROM cursors ORDER BY address") as cur:
            rows = await cur.fetchall()
            return [
                CursorRecord(
                    address=r["address"],
                    confirmed_height=r["confirmed_height"],
                    updated_at=r["updated_at"],
                )
                for r in rows
            ]
