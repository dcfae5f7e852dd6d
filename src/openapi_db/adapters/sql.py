"""Shared interpolation and execution for flat-query (SQL) engines.

Every ``${{ ... }}`` reference becomes a positional placeholder and its
resolved value is appended to an ordered value list. Template text between
references is copied through; request data never enters the SQL text.

Subclasses pick the placeholder style and implement ``_fetch``::

    PostgreSQL   $1, $2, ...
    MySQL        %s
    SQLite       ?
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, ClassVar

from openapi_db.adapters.base import InterpolationHelpers, RowSet, ValidationResult, log_query
from openapi_db.errors import OpenApiDbError, QueryError
from openapi_db.expressions.evaluator import Context


@dataclass(frozen=True, slots=True)
class SqlQuery:
    """Interpolated SQL ready for execution.

    ``values[i]`` binds to the ``i``-th placeholder in ``sql``.
    """

    sql: str
    values: tuple[Any, ...] = ()


class SqlAdapter:
    """Base class for SQL adapters."""

    dialect: ClassVar[str] = "SQL"

    __slots__ = ("_echo",)

    def __init__(self, *, echo: bool = False) -> None:
        self._echo = echo

    # -- Adapter protocol --

    def validate_query(self, query: Any) -> ValidationResult:
        if not isinstance(query, str):
            return ValidationResult.invalid(f"{self.dialect} adapter expects a string query")
        return ValidationResult.ok()

    def interpolate(self, query: Any, context: Context, helpers: InterpolationHelpers) -> SqlQuery:
        """Replace each reference with a placeholder, in left-to-right order."""
        template: str = query
        parts: list[str] = []
        values: list[Any] = []
        pos = 0
        for ref in helpers.parse_expressions(template):
            parts.append(self.escape_text(template[pos : ref.start]))
            values.append(helpers.evaluate(ref.inner, context))
            parts.append(self.placeholder(len(values)))
            pos = ref.end
        parts.append(self.escape_text(template[pos:]))
        return SqlQuery(sql="".join(parts), values=tuple(values))

    async def execute(self, interpolated: SqlQuery) -> RowSet:
        t0 = time.perf_counter()
        try:
            return await self._fetch(interpolated.sql, interpolated.values)
        except OpenApiDbError:
            raise
        except Exception as exc:
            msg = str(exc) or f"{self.dialect} query failed"
            raise QueryError(msg, detail=exc) from exc
        finally:
            log_query(
                self._echo,
                self.dialect,
                interpolated.sql,
                interpolated.values,
                time.perf_counter() - t0,
            )

    # -- Dialect hooks --

    def placeholder(self, index: int) -> str:
        """Placeholder text for the *index*-th value (1-based)."""
        raise NotImplementedError

    def escape_text(self, text: str) -> str:
        """Escape literal template text for the driver. Identity by default."""
        return text

    async def _fetch(self, sql: str, values: Sequence[Any]) -> RowSet:
        raise NotImplementedError


def rows_from_cursor(description: Any, rows: Sequence[Sequence[Any]]) -> RowSet:
    """Zip DB-API cursor rows with their column names."""
    columns = [desc[0] for desc in description]
    return [dict(zip(columns, row, strict=True)) for row in rows]


def write_result(rowcount: int, lastrowid: Any) -> RowSet:
    """Row-set for a statement that produced no result columns."""
    return [{"affectedRows": rowcount, "insertId": lastrowid}]
