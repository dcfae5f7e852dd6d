"""PostgreSQL adapter (asyncpg).

Placeholders are ``$1``, ``$2``, ... Values are bound by asyncpg, which
encodes Python lists as PostgreSQL arrays (``WHERE id = ANY($1)``).

Usage::

    adapter = await PostgresAdapter.connect("postgresql://user@host/db")
    # or with a pool you already own:
    adapter = PostgresAdapter(pool)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from openapi_db.adapters.base import DatabaseConfig, RowSet
from openapi_db.adapters.sql import SqlAdapter
from openapi_db.errors import DriverNotInstalledError


class PostgresAdapter(SqlAdapter):
    """SQL adapter backed by an asyncpg connection pool."""

    dialect = "PostgreSQL"

    __slots__ = ("_pool",)

    def __init__(self, pool: Any, *, echo: bool = False) -> None:
        super().__init__(echo=echo)
        self._pool = pool

    @classmethod
    async def connect(cls, url: str, /, *, pool_size: int = 5, echo: bool = False) -> PostgresAdapter:
        """Create an asyncpg pool for *url* and wrap it."""
        config = DatabaseConfig(url=url, pool_size=pool_size, echo=echo)
        try:
            import asyncpg
        except ImportError:
            msg = (
                "openapi_db requires 'asyncpg' for PostgreSQL databases. "
                "Install it with: pip install openapi-db[pg]"
            )
            raise DriverNotInstalledError(msg) from None

        pool = await asyncpg.create_pool(
            config.url,
            min_size=1,
            max_size=config.pool_size,
        )
        return cls(pool, echo=config.echo)

    async def close(self) -> None:
        """Close all connections in the pool."""
        await self._pool.close()

    def placeholder(self, index: int) -> str:
        return f"${index}"

    async def _fetch(self, sql: str, values: Sequence[Any]) -> RowSet:
        # asyncpg returns Records
        rows = await self._pool.fetch(sql, *values)
        return [dict(row) for row in rows]
