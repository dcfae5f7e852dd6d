"""Adapter protocol: the three operations every database engine implements.

An adapter validates a route's query template once at boot, interpolates it
per request into an engine-native artifact, and executes that artifact.
The Router never special-cases an engine; it only speaks this protocol.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeAlias, runtime_checkable

from openapi_db.expressions.evaluator import (
    Context,
    evaluate_expression,
    evaluate_function,
    resolve_variable,
)
from openapi_db.expressions.parser import ExpressionRef, parse_expressions

logger = logging.getLogger("openapi_db.adapters")

Row: TypeAlias = dict[str, Any]
RowSet: TypeAlias = list[Row]


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of ``Adapter.validate_query``."""

    valid: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(valid=True)

    @classmethod
    def invalid(cls, error: str) -> ValidationResult:
        return cls(valid=False, error=error)


@dataclass(frozen=True, slots=True)
class InterpolationHelpers:
    """Expression primitives handed to adapters during ``interpolate``.

    Adapters own their serialization; these only locate and evaluate
    ``${{ ... }}`` references.
    """

    resolve_variable: Callable[[str, Context], Any]
    evaluate_function: Callable[[str, Context], Any]
    parse_expressions: Callable[[str], list[ExpressionRef]]
    # Function call if the text looks like one, else a variable
    evaluate: Callable[[str, Context], Any]


def create_helpers() -> InterpolationHelpers:
    """Return the standard helper bundle."""
    return InterpolationHelpers(
        resolve_variable=resolve_variable,
        evaluate_function=evaluate_function,
        parse_expressions=parse_expressions,
        evaluate=evaluate_expression,
    )


@runtime_checkable
class Adapter(Protocol):
    """Protocol for database adapters.

    No base class required::

        class MyAdapter:
            def validate_query(self, query): ...
            def interpolate(self, query, context, helpers): ...
            async def execute(self, interpolated): ...
    """

    def validate_query(self, query: Any) -> ValidationResult:
        """Structural check of a route's template. Called once per route at boot."""
        ...

    def interpolate(self, query: Any, context: Context, helpers: InterpolationHelpers) -> Any:
        """Turn a template plus request context into an execution-ready artifact."""
        ...

    async def execute(self, interpolated: Any) -> RowSet:
        """Run the artifact and return rows. Failures raise ``QueryError``."""
        ...


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection configuration for adapters that build their own pool."""

    url: str
    pool_size: int = 5
    echo: bool = False


def log_query(echo: bool, dialect: str, text: str, params: Any, elapsed: float) -> None:
    """Log an executed query when echo is enabled."""
    if not echo:
        return
    ms = elapsed * 1000
    param_str = f"  params={params!r}" if params else ""
    logger.info("[%s] %6.1fms  %s%s", dialect, ms, text, param_str)
