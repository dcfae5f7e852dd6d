"""openapi-db exception hierarchy.

Shared across the spec loader, adapters, Router and the ASGI layer so every
module raises and catches the same types. Each error carries a stable
machine-readable ``code`` and the HTTP ``status`` it maps to.
"""

from typing import Any, ClassVar


class OpenApiDbError(Exception):
    """Base for all openapi-db errors.

    Callers branch on ``code`` (a stable string), render ``message`` to
    humans, and may inspect ``detail`` for diagnostics (for example the
    original driver exception behind a ``QueryError``).
    """

    code: ClassVar[str] = "OPENAPI_DB_ERROR"
    default_status: ClassVar[int] = 500

    def __init__(self, message: str, *, status: int | None = None, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status if status is not None else self.default_status
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self, *, include_detail: bool = False) -> dict[str, Any]:
        """Serialize to the JSON error body shape ``{"error": {...}}``."""
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if include_detail and self.detail is not None:
            error["detail"] = str(self.detail)
        return {"error": error}


class SpecParseError(OpenApiDbError):
    """The OpenAPI document could not be read or decoded."""

    code = "SPEC_PARSE_ERROR"


class ValidationError(OpenApiDbError):
    """Boot-time configuration problem.

    Bad ``x-db`` shape, adapter query-shape mismatch, or ambiguous/missing
    adapter selection. Raised while constructing the Router.
    """

    code = "VALIDATION_ERROR"


class AuthResolverMissing(OpenApiDbError):  # noqa: N818
    """A route references ``auth`` but no resolver is configured."""

    code = "AUTH_RESOLVER_MISSING"


class AuthRequired(OpenApiDbError):  # noqa: N818
    """401: the auth resolver returned nothing for this request."""

    code = "AUTH_REQUIRED"
    default_status = 401

    def __init__(self, message: str = "Authentication required", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class InvalidVariable(OpenApiDbError):  # noqa: N818
    """An expression references a namespace outside path/query/body/auth."""

    code = "INVALID_VARIABLE"


class UnknownFunction(OpenApiDbError):  # noqa: N818
    """An expression calls a function outside the built-in set."""

    code = "UNKNOWN_FUNCTION"


class QueryError(OpenApiDbError):
    """The database engine rejected or failed the query."""

    code = "QUERY_ERROR"


class NotFound(OpenApiDbError):  # noqa: N818
    """404: single-item extraction found nothing."""

    code = "NOT_FOUND"
    default_status = 404

    def __init__(self, message: str = "Resource not found", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class DriverNotInstalledError(OpenApiDbError):
    """Raised when the required database driver is not installed."""

    code = "DRIVER_NOT_INSTALLED"
