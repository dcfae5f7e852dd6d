"""Route compilation and first-match lookup.

Paths use OpenAPI's ``{name}`` segments. Each one becomes a single-segment
capture group; everything else is matched literally::

    "/users/{id}/posts/{postId}"  ->  ^/users/([^/]+)/posts/([^/]+)$

Matching is a linear scan in registration order and the first route that
fits wins. Register literal paths (``/items/latest``) before the
parameterized paths they overlap with (``/items/{id}``).
"""

import re
from collections.abc import Iterable, Iterator, Mapping
from typing import Any
from urllib.parse import unquote

from openapi_db.expressions.parser import parse_expressions
from openapi_db.routing.route import CompiledRoute, Parameter, RouteMatch, XDb

_PARAM_SEGMENT = re.compile(r"\{([^}/]+)\}")

# `auth.` at the start of a reference or argument, not `body.auth.x`
_AUTH_REFERENCE = re.compile(r"(?<![\w.])auth\.\w+")


def template_strings(query: Any) -> Iterator[str]:
    """Yield every string leaf of a template (the template itself if it is one)."""
    if isinstance(query, str):
        yield query
    elif isinstance(query, Mapping):
        for value in query.values():
            yield from template_strings(value)
    elif isinstance(query, list | tuple):
        for item in query:
            yield from template_strings(item)


def uses_auth(query: Any) -> bool:
    """True if any expression in the template reads the ``auth`` namespace."""
    return any(
        _AUTH_REFERENCE.search(ref.inner)
        for text in template_strings(query)
        for ref in parse_expressions(text)
    )


def compile_route(
    path: str,
    method: str,
    x_db: XDb,
    parameters: Iterable[Parameter] = (),
) -> CompiledRoute:
    """Compile an OpenAPI path + method into a matchable route."""
    param_names: list[str] = []
    parts: list[str] = []
    pos = 0
    for m in _PARAM_SEGMENT.finditer(path):
        parts.append(re.escape(path[pos : m.start()]))
        parts.append("([^/]+)")
        param_names.append(m.group(1).strip())
        pos = m.end()
    parts.append(re.escape(path[pos:]))

    return CompiledRoute(
        method=method.upper(),
        pattern=re.compile(f"^{''.join(parts)}$"),
        param_names=tuple(param_names),
        x_db=x_db,
        parameters=tuple(parameters),
        uses_auth=uses_auth(x_db.query),
        original_path=path,
    )


def match_route(routes: Iterable[CompiledRoute], method: str, path: str) -> RouteMatch | None:
    """Return the first route matching *method* and *path*, or ``None``.

    The query string, if any, is ignored. Captured values are
    percent-decoded.
    """
    method = method.upper()
    path = path.partition("?")[0]

    for route in routes:
        if route.method != method:
            continue
        m = route.pattern.match(path)
        if m is None:
            continue
        path_params = {
            name: unquote(value) for name, value in zip(route.param_names, m.groups(), strict=True)
        }
        return RouteMatch(route=route, path_params=path_params)

    return None
