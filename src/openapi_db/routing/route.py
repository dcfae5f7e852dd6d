"""Compiled route, x-db extension and parameter frozen dataclasses."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from openapi_db.errors import ValidationError

# OpenAPI operation keys that can carry an x-db extension
HTTP_METHODS: tuple[str, ...] = ("get", "post", "put", "delete", "patch")


@dataclass(frozen=True, slots=True)
class Parameter:
    """A declared OpenAPI parameter (``in: path`` or ``in: query``).

    Only the schema type matters here: it drives coercion of the raw
    string values collected from the request.
    """

    name: str
    location: str
    schema_type: str | None = None
    items_type: str | None = None

    @classmethod
    def from_openapi(cls, data: Mapping[str, Any]) -> Parameter:
        schema = data.get("schema") or {}
        items = schema.get("items") or {}
        return cls(
            name=str(data.get("name", "")),
            location=str(data.get("in", "")),
            schema_type=schema.get("type"),
            items_type=items.get("type"),
        )

    @property
    def is_array(self) -> bool:
        return self.schema_type == "array"


@dataclass(frozen=True, slots=True)
class XDb:
    """The ``x-db`` extension of one operation.

    ``query`` is the template (a string for SQL engines, a mapping for
    MongoDB). ``fields`` maps API field names to column names.
    ``returns`` is a JSON Pointer into the row-set.
    """

    query: Any
    adapter: str | None = None
    fields: Mapping[str, str] | None = None
    returns: str | None = None

    @classmethod
    def from_openapi(cls, data: Any, *, where: str = "operation") -> XDb:
        """Build from the raw extension value, rejecting malformed shapes."""
        if not isinstance(data, Mapping):
            msg = f"{where}: x-db must be an object"
            raise ValidationError(msg)
        if data.get("query") is None:
            msg = f"{where}: x-db.query is required"
            raise ValidationError(msg)

        adapter = data.get("adapter")
        if adapter is not None and not isinstance(adapter, str):
            msg = f"{where}: x-db.adapter must be a string"
            raise ValidationError(msg)

        fields = data.get("fields")
        if fields is not None:
            if not isinstance(fields, Mapping) or not all(
                isinstance(value, str) for value in fields.values()
            ):
                msg = f"{where}: x-db.fields must map field names to column names"
                raise ValidationError(msg)
            fields = dict(fields)

        returns = data.get("returns")
        if returns is not None and not (isinstance(returns, str) and (returns == "" or returns.startswith("/"))):
            msg = f"{where}: x-db.returns must be a JSON Pointer (e.g. '/0')"
            raise ValidationError(msg)

        return cls(query=data["query"], adapter=adapter, fields=fields, returns=returns)


@dataclass(frozen=True, slots=True)
class CompiledRoute:
    """A route compiled once at boot and matched per request.

    ``param_names[i]`` is the name of capture group ``i + 1`` in ``pattern``.
    """

    method: str
    pattern: re.Pattern[str]
    param_names: tuple[str, ...]
    x_db: XDb
    parameters: tuple[Parameter, ...] = ()
    uses_auth: bool = False
    original_path: str = ""

    @property
    def route_id(self) -> str:
        """``GET /users/{id}``, used in log lines and error messages."""
        return f"{self.method} {self.original_path}"

    def parameters_in(self, location: str) -> dict[str, Parameter]:
        """Declared parameters for one location, keyed by name."""
        return {p.name: p for p in self.parameters if p.location == location}


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: CompiledRoute
    path_params: dict[str, str]
