"""Request parameter coercion driven by declared OpenAPI schema types.

Path and query values arrive as strings. Parameters declared as
``integer``, ``number`` or ``boolean`` are converted; ``array`` query
parameters are split on commas. Values that don't parse stay strings, and
undeclared parameters are passed through untouched.
"""

from collections.abc import Callable, Mapping
from typing import Any

from openapi_db.http.query import QueryParams
from openapi_db.routing.route import Parameter


def _to_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("true", "1"):
        return True
    if lowered in ("false", "0"):
        return False
    raise ValueError(value)


# schema type -> converter for a single string value
CONVERTERS: dict[str, Callable[[str], Any]] = {
    "integer": int,
    "number": float,
    "boolean": _to_bool,
}


def convert_param(value: str, schema_type: str | None) -> Any:
    """Convert *value* to the Python type for *schema_type*.

    Returns *value* unchanged if the type has no converter or the value
    doesn't parse.
    """
    converter = CONVERTERS.get(schema_type or "")
    if converter is None:
        return value
    try:
        return converter(value)
    except ValueError:
        return value


def coerce_path(path_params: Mapping[str, str], declared: Mapping[str, Parameter]) -> dict[str, Any]:
    """Coerce captured path values by their declared schema types."""
    result: dict[str, Any] = {}
    for name, value in path_params.items():
        param = declared.get(name)
        result[name] = convert_param(value, param.schema_type) if param else value
    return result


def coerce_query(query: QueryParams, declared: Mapping[str, Parameter]) -> dict[str, Any]:
    """Build the ``query`` namespace from parsed query parameters.

    Array parameters collect every occurrence, each split on commas
    (``?ids=1,2&ids=3`` -> ``["1", "2", "3"]``). Everything else uses the
    first occurrence.
    """
    result: dict[str, Any] = {}
    for name in query:
        param = declared.get(name)
        if param is None:
            result[name] = query[name]
        elif param.is_array:
            items = [item for raw in query.get_list(name) for item in raw.split(",")]
            result[name] = [convert_param(item, param.items_type) for item in items]
        else:
            result[name] = convert_param(query[name], param.schema_type)
    return result
