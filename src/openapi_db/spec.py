"""OpenAPI document loading and route extraction.

``parse_spec`` accepts a parsed document, YAML or JSON text, or a file
path, and returns one ``CompiledRoute`` per operation that carries an
``x-db`` extension, in document order::

    routes = parse_spec("openapi.yaml")
    routes = parse_spec({"openapi": "3.1.0", "paths": {...}})

YAML needs ``PyYAML`` (``pip install openapi-db[yaml]``).
"""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from openapi_db.errors import DriverNotInstalledError, SpecParseError, ValidationError
from openapi_db.routing.matcher import compile_route
from openapi_db.routing.route import HTTP_METHODS, CompiledRoute, Parameter, XDb

_YAML_PREFIXES = ("openapi:", "swagger:", "---", "%YAML")


def _parse_yaml(text: str, source: str) -> Any:
    try:
        import yaml
    except ImportError:
        msg = (
            "openapi_db requires 'PyYAML' to read YAML documents. "
            "Install it with: pip install openapi-db[yaml]"
        )
        raise DriverNotInstalledError(msg) from None

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {source}: {exc}"
        raise SpecParseError(msg, detail=exc) from exc


def _parse_json(text: str, source: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON in {source}: {exc}"
        raise SpecParseError(msg, detail=exc) from exc


def load_spec(source: str | Path | Mapping[str, Any]) -> Mapping[str, Any]:
    """Load an OpenAPI document from a mapping, YAML/JSON text or a file path."""
    if isinstance(source, Mapping):
        document: Any = source
    elif isinstance(source, Path):
        document = _load_file(source)
    else:
        text = source.strip()
        if text.startswith(_YAML_PREFIXES):
            document = _parse_yaml(text, "spec content")
        elif text.startswith("{"):
            document = _parse_json(text, "spec content")
        else:
            document = _load_file(Path(source))

    if not isinstance(document, Mapping):
        msg = "OpenAPI document must be an object"
        raise SpecParseError(msg)
    return document


def _load_file(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read spec file {str(path)!r}: {exc.strerror or exc}"
        raise SpecParseError(msg, detail=exc) from exc
    if path.suffix.lower() in (".yaml", ".yml"):
        return _parse_yaml(text, str(path))
    return _parse_json(text, str(path))


def merge_parameters(
    path_level: list[Mapping[str, Any]],
    operation_level: list[Mapping[str, Any]],
) -> list[Parameter]:
    """Merge path-level and operation-level parameters.

    Operation parameters replace path parameters with the same
    ``(in, name)``; order of first appearance is kept.
    """
    merged: dict[tuple[str, str], Parameter] = {}
    for raw in (*path_level, *operation_level):
        if not isinstance(raw, Mapping):
            continue
        param = Parameter.from_openapi(raw)
        merged[(param.location, param.name)] = param
    return list(merged.values())


def extract_routes(document: Mapping[str, Any]) -> list[CompiledRoute]:
    """Compile every ``x-db`` operation in *document*."""
    paths = document.get("paths") or {}
    if not isinstance(paths, Mapping):
        msg = "OpenAPI 'paths' must be an object"
        raise ValidationError(msg)

    routes: list[CompiledRoute] = []
    for path, path_item in paths.items():
        if not isinstance(path_item, Mapping):
            continue
        path_params = path_item.get("parameters") or []
        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, Mapping) or "x-db" not in operation:
                continue
            where = f"{method.upper()} {path}"
            x_db = XDb.from_openapi(operation["x-db"], where=where)
            parameters = merge_parameters(path_params, operation.get("parameters") or [])
            routes.append(compile_route(path, method, x_db, parameters))
    return routes


def parse_spec(spec: str | Path | Mapping[str, Any]) -> list[CompiledRoute]:
    """Load *spec* and return its compiled ``x-db`` routes."""
    return extract_routes(load_spec(spec))
