"""openapi-db: serve database queries straight from an OpenAPI document.

Annotate operations with an ``x-db`` extension, hand the document and your
adapters to a Router, and matching requests run the query::

    paths:
      /users/{id}:
        get:
          x-db:
            query: SELECT * FROM users WHERE id = ${{ path.id }}
            returns: /0

    from openapi_db import create_router
    from openapi_db.adapters import PostgresAdapter

    router = create_router(
        "openapi.yaml",
        adapters={"main": await PostgresAdapter.connect(DATABASE_URL)},
    )
    response = await router.handle(request)   # RouterResponse or None

Request data only ever reaches the database as bound parameters.

Drivers are optional extras and imported on first connect::

    pip install openapi-db[pg]      # asyncpg
    pip install openapi-db[mysql]   # aiomysql
    pip install openapi-db[mongo]   # pymongo
    pip install openapi-db[yaml]    # PyYAML, for YAML documents
"""

__version__ = "0.1.0"
__all__ = [
    "AuthRequired",
    "AuthResolverMissing",
    "Context",
    "DriverNotInstalledError",
    "InvalidVariable",
    "NotFound",
    "OpenApiDbError",
    "OpenApiDbMiddleware",
    "QueryError",
    "Request",
    "Router",
    "RouterConfig",
    "RouterResponse",
    "SpecParseError",
    "UnknownFunction",
    "ValidationError",
    "create_router",
    "parse_spec",
    "shape_response",
]

_ERRORS = frozenset(
    {
        "AuthRequired",
        "AuthResolverMissing",
        "DriverNotInstalledError",
        "InvalidVariable",
        "NotFound",
        "OpenApiDbError",
        "QueryError",
        "SpecParseError",
        "UnknownFunction",
        "ValidationError",
    }
)


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import openapi_db`` cheap; nothing here touches a driver.
    """
    if name in ("Router", "create_router"):
        from openapi_db import router

        return getattr(router, name)

    if name == "RouterConfig":
        from openapi_db.config import RouterConfig

        return RouterConfig

    if name == "Request":
        from openapi_db.http.request import Request

        return Request

    if name == "RouterResponse":
        from openapi_db.http.response import RouterResponse

        return RouterResponse

    if name == "Context":
        from openapi_db.expressions.evaluator import Context

        return Context

    if name == "OpenApiDbMiddleware":
        from openapi_db.asgi import OpenApiDbMiddleware

        return OpenApiDbMiddleware

    if name == "parse_spec":
        from openapi_db.spec import parse_spec

        return parse_spec

    if name == "shape_response":
        from openapi_db.response import shape_response

        return shape_response

    if name in _ERRORS:
        from openapi_db import errors

        return getattr(errors, name)

    msg = f"module 'openapi_db' has no attribute {name!r}"
    raise AttributeError(msg)
