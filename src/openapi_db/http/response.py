"""The router's response value."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


def _json_headers() -> Mapping[str, str]:
    return {"Content-Type": "application/json"}


@dataclass(frozen=True, slots=True)
class RouterResponse:
    """A handled request: status, shaped body and headers.

    ``body`` is the shaped query result, not yet serialized. The framework
    layer (see ``openapi_db.asgi``) encodes it as JSON.
    """

    status: int = 200
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=_json_headers)
