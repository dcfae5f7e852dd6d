"""The Router: OpenAPI ``x-db`` operations in, database rows out.

Boot (``Router.__init__``) compiles every ``x-db`` operation and rejects
anything that would otherwise fail per request: a missing auth resolver,
an unknown or ambiguous adapter, a template the adapter can't accept, or
an expression naming an unknown function, namespace or path parameter.

``handle`` then runs one request through a fixed sequence::

    match -> auth -> context -> adapter -> interpolate/execute -> shape -> not-found

and returns a ``RouterResponse``, or ``None`` when no route matches.
"""

import json
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from openapi_db._internal.invoke import invoke
from openapi_db.adapters.base import Adapter, InterpolationHelpers, RowSet, create_helpers
from openapi_db.config import AuthResolver, RouterConfig
from openapi_db.errors import AuthRequired, AuthResolverMissing, NotFound, ValidationError
from openapi_db.expressions.evaluator import Context, validate_expression
from openapi_db.expressions.parser import Variable, parse_expressions, walk
from openapi_db.http.request import Request
from openapi_db.http.response import RouterResponse
from openapi_db.response import pointer_tokens, shape_response
from openapi_db.routing.matcher import match_route, template_strings
from openapi_db.routing.params import coerce_path, coerce_query
from openapi_db.routing.route import CompiledRoute
from openapi_db.spec import parse_spec

logger = logging.getLogger("openapi_db.router")


def resolve_adapter_name(route: CompiledRoute, adapters: Mapping[str, Adapter]) -> str:
    """Pick the adapter for *route*.

    An explicit ``x-db.adapter`` must exist; otherwise the single configured
    adapter is used. Zero adapters, or several without a choice, is an error.
    """
    explicit = route.x_db.adapter
    if explicit:
        if explicit not in adapters:
            msg = f"Route {route.route_id} uses adapter {explicit!r} which is not configured"
            raise ValidationError(msg)
        return explicit

    if not adapters:
        msg = "No adapters configured"
        raise ValidationError(msg)
    if len(adapters) == 1:
        return next(iter(adapters))

    msg = f"Route {route.route_id} must specify x-db.adapter when multiple adapters are configured"
    raise ValidationError(msg)


def _check_expressions(route: CompiledRoute) -> None:
    """Parse every expression in the route's template and check its names."""
    captures = set(route.param_names)
    for text in template_strings(route.x_db.query):
        for ref in parse_expressions(text):
            node = validate_expression(ref.inner)
            for child in walk(node):
                if not isinstance(child, Variable) or child.namespace != "path":
                    continue
                if child.path and child.path[0] not in captures:
                    msg = (
                        f"Route {route.route_id} references path.{child.path[0]} "
                        f"but the path has no {{{child.path[0]}}} segment"
                    )
                    raise ValidationError(msg)


def is_not_found(returns: str | None, rows: RowSet, result: Any) -> bool:
    """True when a single-item pointer (``/0...``) found nothing.

    ``/0`` on an empty row-set or yielding ``None``, or any deeper ``/0/...``
    pointer into an empty row-set. A ``None`` field of an existing row is a
    legitimate value.
    """
    if returns is None:
        return False
    tokens = pointer_tokens(returns)
    if not tokens or tokens[0] != "0":
        return False
    return not rows or (returns == "/0" and result is None)


async def read_body(request: Request) -> Any:
    """Request body: pre-parsed if supplied, else JSON, else text, else ``None``."""
    if request.has_parsed_body:
        return request.parsed_body
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw.decode("utf-8", errors="replace")


class Router:
    """Dispatches requests to ``x-db`` routes.

    Routes, adapters and the adapter choice per route are fixed at boot and
    shared by all concurrent requests.
    """

    __slots__ = ("_adapter_names", "_helpers", "_routes", "config")

    def __init__(self, config: RouterConfig) -> None:
        self.config = config
        self._helpers: InterpolationHelpers = create_helpers()

        routes = parse_spec(config.spec)
        adapter_names: dict[str, str] = {}
        for route in routes:
            if route.uses_auth and config.auth is None:
                msg = f"Route {route.route_id} uses ${{{{ auth }}}} but no auth resolver provided"
                raise ValidationError(msg)

            name = resolve_adapter_name(route, config.adapters)
            result = config.adapters[name].validate_query(route.x_db.query)
            if not result.valid:
                msg = f"Route {route.route_id}: {result.error}"
                raise ValidationError(msg)

            _check_expressions(route)
            adapter_names[route.route_id] = name

        self._routes: tuple[CompiledRoute, ...] = tuple(routes)
        self._adapter_names = adapter_names
        logger.info(
            "Compiled %d x-db route(s) for %d adapter(s)",
            len(self._routes),
            len(config.adapters),
        )

    @property
    def routes(self) -> Sequence[CompiledRoute]:
        return self._routes

    def adapter_for(self, route: CompiledRoute) -> Adapter:
        """The adapter chosen for *route* at boot."""
        return self.config.adapters[self._adapter_names[route.route_id]]

    async def handle(self, request: Request) -> RouterResponse | None:
        """Run one request. ``None`` means no route matched."""
        match = match_route(self._routes, request.method, request.path)
        if match is None:
            return None

        route = match.route
        logger.debug("%s %s -> %s", request.method, request.path, route.route_id)

        auth = await self._authenticate(route, request)

        context = Context(
            path=coerce_path(match.path_params, route.parameters_in("path")),
            query=coerce_query(request.query, route.parameters_in("query")),
            body=await read_body(request),
            auth=auth,
        )

        adapter = self.adapter_for(route)
        interpolated = adapter.interpolate(route.x_db.query, context, self._helpers)
        rows = await adapter.execute(interpolated)

        body = shape_response(rows, route.x_db.fields, route.x_db.returns)
        if is_not_found(route.x_db.returns, rows, body):
            raise NotFound

        return RouterResponse(status=200, body=body)

    async def _authenticate(self, route: CompiledRoute, request: Request) -> Mapping[str, Any] | None:
        if not route.uses_auth:
            return None
        resolver = self.config.auth
        if resolver is None:
            msg = f"Route {route.route_id} uses ${{{{ auth }}}} but no auth resolver provided"
            raise AuthResolverMissing(msg)
        auth = await invoke(resolver, request)
        if auth is None:
            raise AuthRequired
        return auth


def create_router(
    spec: str | Path | Mapping[str, Any],
    *,
    adapters: Mapping[str, Adapter],
    auth: AuthResolver | None = None,
    debug: bool = False,
) -> Router:
    """Build and validate a Router in one call.

    ::

        router = create_router(
            "openapi.yaml",
            adapters={"main": SqliteAdapter("app.db")},
        )
    """
    return Router(RouterConfig(spec=spec, adapters=adapters, auth=auth, debug=debug))
