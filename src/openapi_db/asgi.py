"""ASGI integration: serve a Router in front of (or instead of) an app.

::

    router = create_router("openapi.yaml", adapters={"main": adapter})
    app = OpenApiDbMiddleware(other_app, router)

HTTP requests the router handles are answered with a JSON body. Requests it
declines fall through to the wrapped app, or get a JSON 404 when there is
none. Router errors become ``{"error": {"code", "message"}}`` bodies with
the error's status; anything else is a 500 ``INTERNAL_ERROR``.
"""

import base64
import json
import logging
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from openapi_db._internal.asgi import ASGIApp, Receive, Scope, Send
from openapi_db.errors import OpenApiDbError
from openapi_db.http.request import Request
from openapi_db.http.response import RouterResponse
from openapi_db.router import Router

logger = logging.getLogger("openapi_db.asgi")


def json_default(value: Any) -> Any:
    """``json.dumps`` fallback for values databases commonly return."""
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, Decimal):
        if not value.is_finite():
            return str(value)
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, bytes | bytearray | memoryview):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, set | frozenset | tuple):
        return list(value)
    # UUID, bson.ObjectId, asyncpg Range, ...
    return str(value)


def encode_json(body: Any) -> bytes:
    return json.dumps(body, default=json_default, separators=(",", ":")).encode("utf-8")


def error_response(exc: Exception, *, debug: bool = False) -> RouterResponse:
    """Map an exception to a JSON error response."""
    if isinstance(exc, OpenApiDbError):
        if exc.status >= 500:
            logger.error("%s", exc, exc_info=exc if debug else None)
        return RouterResponse(status=exc.status, body=exc.to_dict(include_detail=debug))

    error_id = str(uuid.uuid4())
    logger.exception("500 unhandled error (error_id=%s)", error_id, exc_info=exc)
    error: dict[str, Any] = {
        "code": "INTERNAL_ERROR",
        "message": "Internal Server Error",
        "errorId": error_id,
    }
    if debug:
        error["detail"] = f"{type(exc).__name__}: {exc}"
    return RouterResponse(status=500, body={"error": error})


async def send_json(response: RouterResponse, send: Send) -> None:
    """Translate a RouterResponse into ASGI ``send()`` calls."""
    body = b"" if response.status in (204, 304) else encode_json(response.body)
    raw_headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in response.headers.items()
    ]
    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))
    await send({"type": "http.response.start", "status": response.status, "headers": raw_headers})
    await send({"type": "http.response.body", "body": body})


_NOT_FOUND = RouterResponse(
    status=404,
    body={"error": {"code": "NOT_FOUND", "message": "Not Found"}},
)


class OpenApiDbMiddleware:
    """ASGI middleware that answers ``x-db`` routes from a Router."""

    __slots__ = ("app", "debug", "router")

    def __init__(self, app: ASGIApp | None, router: Router, *, debug: bool | None = None) -> None:
        self.app = app
        self.router = router
        self.debug = router.config.debug if debug is None else debug

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            if self.app is not None:
                await self.app(scope, receive, send)
            elif scope["type"] == "lifespan":
                await _lifespan(receive, send)
            return

        request = Request.from_asgi(scope, receive)
        try:
            response = await self.router.handle(request)
        except Exception as exc:
            response = error_response(exc, debug=self.debug)

        if response is None:
            if self.app is not None:
                await self.app(scope, receive, send)
                return
            response = _NOT_FOUND

        await send_json(response, send)


async def _lifespan(receive: Receive, send: Send) -> None:
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            await send({"type": "lifespan.shutdown.complete"})
            return
