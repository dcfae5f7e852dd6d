"""Stdlib sqlite3 behind anyio worker threads.

Each statement runs start to finish (execute, then fetch) inside one
``anyio.to_thread.run_sync`` call and comes back as a plain ``Outcome``,
so no cursor object crosses the thread boundary.

The connection is opened with ``autocommit=True`` (3.12+) so every
statement commits on its own, and ``check_same_thread=False`` because
anyio's pool may run consecutive calls on different threads.
"""

import sqlite3
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import anyio.to_thread


def _run_sync(func: Callable[..., Any], *args: Any) -> Any:
    return anyio.to_thread.run_sync(func, *args)


@dataclass(frozen=True, slots=True)
class Outcome:
    """What one statement produced.

    ``columns`` is ``None`` for statements that return no result set
    (INSERT/UPDATE/DELETE without RETURNING, DDL).
    """

    columns: tuple[str, ...] | None
    rows: list[tuple[Any, ...]]
    rowcount: int
    lastrowid: int | None


class AsyncConnection:
    """One ``sqlite3.Connection`` driven from async code."""

    __slots__ = ("_conn",)

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _execute_blocking(self, sql: str, params: Sequence[Any]) -> Outcome:
        cursor = self._conn.execute(sql, params)
        try:
            if cursor.description is None:
                return Outcome(None, [], cursor.rowcount, cursor.lastrowid)
            columns = tuple(col[0] for col in cursor.description)
            return Outcome(columns, cursor.fetchall(), cursor.rowcount, cursor.lastrowid)
        finally:
            cursor.close()

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> Outcome:
        return await _run_sync(self._execute_blocking, sql, params)

    async def executescript(self, sql: str) -> None:
        await _run_sync(self._conn.executescript, sql)

    async def close(self) -> None:
        await _run_sync(self._conn.close)


async def connect(path: str) -> AsyncConnection:
    """Open *path* (``":memory:"`` for a private in-memory database)."""
    conn = await _run_sync(lambda: sqlite3.connect(path, autocommit=True, check_same_thread=False))
    return AsyncConnection(conn)
