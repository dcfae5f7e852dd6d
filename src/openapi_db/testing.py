"""Test helpers: synthetic requests and an in-process ASGI call.

::

    request = make_request("GET", "/users/7?active=true", headers={"Authorization": "Bearer t"})
    response = await router.handle(request)

    result = await call_asgi(app, "POST", "/users", json={"name": "Ada"})
    assert result.status == 200
    assert result.json() == {...}
"""

import json as json_module
from dataclasses import dataclass
from typing import Any

from openapi_db._internal.asgi import ASGIApp, Receive
from openapi_db.http.headers import Headers
from openapi_db.http.request import UNSET, Request


def make_scope(
    method: str,
    url: str,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """ASGI HTTP scope for *method* and *url* (path plus optional query string)."""
    path, _, query_string = url.partition("?")
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method.upper(),
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": query_string.encode("latin-1"),
        "root_path": "",
        "headers": list(Headers.from_mapping(headers or {}).raw),
        "server": ("testserver", 80),
        "client": ("127.0.0.1", 0),
    }


def make_receive(body: bytes = b"") -> Receive:
    """Receive callable that delivers *body* in one message."""
    sent = False

    async def receive() -> dict[str, Any]:
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return receive


def _encode_body(
    headers: dict[str, str] | None,
    body: bytes | str | None,
    json: Any,
) -> tuple[dict[str, str], bytes]:
    merged = dict(headers or {})
    if json is not None:
        merged.setdefault("Content-Type", "application/json")
        return merged, json_module.dumps(json).encode("utf-8")
    if isinstance(body, str):
        return merged, body.encode("utf-8")
    return merged, body or b""


def make_request(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    body: bytes | str | None = None,
    json: Any = None,
    parsed_body: Any = UNSET,
) -> Request:
    """Build a Request as an ASGI server would deliver it."""
    merged, raw = _encode_body(headers, body, json)
    return Request.from_asgi(make_scope(method, url, merged), make_receive(raw), parsed_body=parsed_body)


@dataclass(frozen=True, slots=True)
class ASGIResult:
    """What an ASGI app sent back."""

    status: int
    headers: Headers
    body: bytes

    def json(self) -> Any:
        return json_module.loads(self.body)


async def call_asgi(
    app: ASGIApp,
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    body: bytes | str | None = None,
    json: Any = None,
) -> ASGIResult:
    """Send one HTTP request through *app* and collect the response."""
    merged, raw = _encode_body(headers, body, json)
    status = 0
    raw_headers: list[tuple[bytes, bytes]] = []
    chunks: list[bytes] = []

    async def send(message: Any) -> None:
        nonlocal status
        if message["type"] == "http.response.start":
            status = message["status"]
            raw_headers.extend(message.get("headers", []))
        elif message["type"] == "http.response.body":
            chunks.append(message.get("body", b""))

    await app(make_scope(method, url, merged), make_receive(raw), send)
    return ASGIResult(status=status, headers=Headers(tuple(raw_headers)), body=b"".join(chunks))
