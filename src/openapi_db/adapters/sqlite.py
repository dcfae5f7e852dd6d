"""SQLite adapter (stdlib ``sqlite3`` driven through anyio worker threads).

Placeholders are ``?``. The adapter owns a single connection; concurrent
requests are serialized with an ``anyio.Lock`` so two worker threads never
touch the connection at once.

Connection URL format::

    sqlite:///path/to/db.sqlite    # SQLite file
    sqlite:///:memory:             # In-memory SQLite

Usage::

    async with SqliteAdapter("app.db") as adapter:
        rows = await adapter.execute(adapter.interpolate(query, context, helpers))
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

import anyio

from openapi_db.adapters._sqlite import AsyncConnection
from openapi_db.adapters._sqlite import connect as sqlite_connect
from openapi_db.adapters.base import RowSet
from openapi_db.adapters.sql import SqlAdapter, write_result
from openapi_db.errors import ValidationError


class SqliteAdapter(SqlAdapter):
    """SQL adapter backed by one SQLite connection."""

    dialect = "SQLite"

    __slots__ = ("_conn", "_lock", "_path")

    def __init__(self, path: str = ":memory:", /, *, echo: bool = False) -> None:
        super().__init__(echo=echo)
        self._path = path
        self._conn: AsyncConnection | None = None
        self._lock: anyio.Lock | None = None  # Created lazily on first use

    @classmethod
    async def connect(cls, url: str, /, *, echo: bool = False) -> SqliteAdapter:
        """Open a ``sqlite://`` URL and return a connected adapter."""
        adapter = cls(_parse_sqlite_path(url), echo=echo)
        await adapter.open()
        return adapter

    # -- Lifecycle --

    async def open(self) -> None:
        """Open the connection. Called automatically on first query."""
        if self._conn is not None:
            return
        conn = await sqlite_connect(self._path)
        await conn.execute("PRAGMA foreign_keys=ON")
        if self._conn is None:
            self._conn = conn
        else:
            await conn.close()

    async def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        await conn.close()

    async def __aenter__(self) -> SqliteAdapter:
        await self.open()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    async def execute_script(self, sql: str, /) -> None:
        """Execute multiple statements at once (schema setup, seeding)."""
        await self.open()
        async with self._get_lock():
            assert self._conn is not None
            await self._conn.executescript(sql)

    # -- SQL dialect --

    def placeholder(self, index: int) -> str:
        return "?"

    async def _fetch(self, sql: str, values: Sequence[Any]) -> RowSet:
        await self.open()
        params = tuple(_adapt_value(value) for value in values)
        async with self._get_lock():
            assert self._conn is not None
            outcome = await self._conn.execute(sql, params)
        if outcome.columns is None:
            return write_result(outcome.rowcount, outcome.lastrowid)
        return [dict(zip(outcome.columns, row, strict=True)) for row in outcome.rows]

    def _get_lock(self) -> anyio.Lock:
        # Can't create in __init__ before an event loop exists.
        if self._lock is None:
            self._lock = anyio.Lock()
        return self._lock


def _adapt_value(value: Any) -> Any:
    # sqlite3's implicit datetime adapter is deprecated; bind ISO 8601 text.
    if isinstance(value, datetime | date):
        return value.isoformat()
    return value


def _parse_sqlite_path(url: str) -> str:
    """Extract the file path from a sqlite:// URL."""
    # sqlite:///path/to/db  ->  path/to/db
    # sqlite:///:memory:    ->  :memory:
    prefix = "sqlite:///"
    if url.startswith(prefix):
        return url[len(prefix) :]
    prefix_short = "sqlite://"
    if url.startswith(prefix_short):
        return url[len(prefix_short) :]
    msg = f"Invalid SQLite URL: {url!r}"
    raise ValidationError(msg)
