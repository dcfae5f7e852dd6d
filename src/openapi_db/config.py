"""Router configuration.

RouterConfig is a frozen dataclass: immutable after creation, checked
once when the Router boots.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from openapi_db.adapters.base import Adapter
    from openapi_db.http.request import Request

AuthContext: TypeAlias = Mapping[str, Any]
AuthResolver: TypeAlias = Callable[["Request"], AuthContext | None | Awaitable[AuthContext | None]]


@dataclass(frozen=True, slots=True)
class RouterConfig:
    """Everything a Router needs. Immutable after creation.

    ::

        config = RouterConfig(
            spec="openapi.yaml",
            adapters={"main": await PostgresAdapter.connect(DATABASE_URL)},
            auth=resolve_user,
        )
    """

    # OpenAPI document: parsed mapping, YAML/JSON text, or file path
    spec: str | Path | Mapping[str, Any]

    # Adapter name -> adapter; routes pick one with x-db.adapter
    adapters: Mapping[str, "Adapter"] = field(default_factory=dict)

    # Called with the Request for routes that reference auth.*
    auth: AuthResolver | None = None

    # Include diagnostic detail (e.g. driver errors) in error bodies
    debug: bool = False
