# event_scheduler/infra/db/connection.py
from __future__ import annotations

import contextlib
from typing import Any, AsyncIterator, Optional, Sequence, Tuple

import aiosqlite

Statement = Tuple[str, Sequence[Any]]


class Database:
    """
    Thin async SQLite wrapper, one short-lived connection per call.

    Rows come back as aiosqlite.Row. Foreign keys are on for every connection;
    WAL is switched on when the schema script runs. execute_batch() is the only
    multi-statement write and is all-or-nothing.
    """

    def __init__(self, path: str) -> None:
        self._path = path

    @contextlib.asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self._path) as conn:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA foreign_keys=ON;")
            yield conn

    async def executescript(self, sql: str) -> None:
        async with self._connect() as conn:
            await conn.execute("PRAGMA journal_mode=WAL;")
            await conn.executescript(sql)
            await conn.commit()

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one write and return the affected row count."""
        async with self._connect() as conn:
            cur = await conn.execute(sql, params)
            await conn.commit()
            return cur.rowcount

    async def execute_batch(self, statements: Sequence[Statement]) -> None:
        async with self._connect() as conn:
            try:
                for sql, params in statements:
                    await conn.execute(sql, params)
            except aiosqlite.Error:
                await conn.rollback()
                raise
            await conn.commit()

    async def fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[aiosqlite.Row]:
        async with self._connect() as conn:
            cur = await conn.execute(sql, params)
            return await cur.fetchone()

    async def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[aiosqlite.Row]:
        async with self._connect() as conn:
            cur = await conn.execute(sql, params)
            return list(await cur.fetchall())
