"""Immutable HTTP request handed to the router and the auth resolver.

Metadata is frozen at creation; the body is read lazily from the ASGI
``receive`` callable and cached. A framework that has already parsed the
body can hand it over as ``parsed_body`` and the router will use it as-is.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any, Final

from openapi_db._internal.asgi import Receive, Scope
from openapi_db.http.headers import Headers
from openapi_db.http.query import QueryParams


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# Marks "no pre-parsed body" (``None`` is a legitimate parsed body)
UNSET: Final = _Unset()


async def _empty_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    ``path`` is the raw, still percent-encoded path without the query
    string; ``url`` puts the query back.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query: QueryParams = field(default_factory=QueryParams)
    path_params: dict[str, str] = field(default_factory=dict)
    client: tuple[str, int] | None = None
    parsed_body: Any = UNSET

    _receive: Receive = field(default=_empty_receive, repr=False, compare=False)

    # Body cache; the dict is mutable even though the field is frozen
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def url(self) -> str:
        """Path plus query string, as sent."""
        if self.query.raw:
            return f"{self.path}?{self.query.raw.decode('latin-1')}"
        return self.path

    @property
    def has_parsed_body(self) -> bool:
        return self.parsed_body is not UNSET

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body (consumed once, then cached)."""
        if "_body" in self._cache:
            return self._cache["_body"]
        result = b"".join([chunk async for chunk in self.stream()])
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        while True:
            message = await self._receive()
            if message.get("type") == "http.disconnect":
                break
            chunk = message.get("body", b"")
            if chunk:
                yield chunk
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        return json_module.loads(await self.body())

    async def text(self) -> str:
        return (await self.body()).decode("utf-8")

    # -- Factory --

    @classmethod
    def from_asgi(
        cls,
        scope: Scope,
        receive: Receive,
        *,
        parsed_body: Any = UNSET,
    ) -> Request:
        """Create a Request from an ASGI HTTP scope and receive callable."""
        client = scope.get("client")
        return cls(
            method=scope["method"].upper(),
            path=_raw_path(scope),
            headers=Headers(tuple(scope.get("headers", ()))),
            query=QueryParams(scope.get("query_string", b"")),
            client=tuple(client) if client else None,
            parsed_body=parsed_body,
            _receive=receive,
        )


def _raw_path(scope: Scope) -> str:
    # Servers percent-decode scope["path"]; the matcher decodes captures itself.
    raw = scope.get("raw_path")
    if not raw:
        return scope["path"]
    return raw.decode("latin-1").partition("?")[0]
