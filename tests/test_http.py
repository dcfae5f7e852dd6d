"""Tests for openapi_db.http: Headers, QueryParams and Request."""

import json

import pytest

from openapi_db.http import Headers, QueryParams, Request, RouterResponse
from openapi_db.http.request import UNSET
from openapi_db.testing import make_request, make_scope


def _h(*pairs: tuple[str, str]) -> Headers:
    return Headers(tuple((k.encode("latin-1"), v.encode("latin-1")) for k, v in pairs))


def _receive(*bodies: bytes):
    """Receive callable delivering *bodies* as separate chunks."""
    messages = [
        {"type": "http.request", "body": body, "more_body": i < len(bodies) - 1}
        for i, body in enumerate(bodies)
    ]
    it = iter(messages)

    async def receive():
        return next(it)

    return receive


class TestHeaders:
    def test_case_insensitive(self) -> None:
        h = _h(("Authorization", "Bearer t"))
        assert h["authorization"] == "Bearer t"
        assert h.get("AUTHORIZATION") == "Bearer t"

    def test_missing(self) -> None:
        h = _h()
        assert h.get("x-missing") is None
        assert "x-missing" not in h
        with pytest.raises(KeyError):
            h["x-missing"]

    def test_multi_value(self) -> None:
        h = _h(("X-Tag", "a"), ("x-tag", "b"))
        assert h["x-tag"] == "a"
        assert h.get_list("X-Tag") == ["a", "b"]
        assert len(h) == 1
        assert list(h) == ["x-tag"]

    def test_from_mapping(self) -> None:
        h = Headers.from_mapping({"Content-Type": "application/json"})
        assert h.raw == ((b"content-type", b"application/json"),)


class TestQueryParams:
    def test_first_value(self) -> None:
        q = QueryParams(b"a=1&a=2")
        assert q["a"] == "1"
        assert q.get_list("a") == ["1", "2"]

    def test_blank_values_kept(self) -> None:
        assert QueryParams("flag=")["flag"] == ""

    def test_percent_decoded(self) -> None:
        assert QueryParams(b"q=hello%20world&r=a+b")["q"] == "hello world"

    def test_missing(self) -> None:
        q = QueryParams()
        assert q.get("a") is None
        assert q.get_list("a") == []
        assert len(q) == 0

    def test_raw(self) -> None:
        assert QueryParams("a=1").raw == b"a=1"


class TestRequest:
    def test_from_asgi(self) -> None:
        scope = make_scope("get", "/users/1?expand=true", {"Accept": "application/json"})
        request = Request.from_asgi(scope, _receive(b""))
        assert request.method == "GET"
        assert request.path == "/users/1"
        assert request.query["expand"] == "true"
        assert request.headers["accept"] == "application/json"
        assert request.client == ("127.0.0.1", 0)
        assert request.url == "/users/1?expand=true"
        assert not request.has_parsed_body

    def test_url_without_query(self) -> None:
        assert make_request("GET", "/users").url == "/users"

    def test_frozen(self) -> None:
        request = make_request("GET", "/")
        with pytest.raises(AttributeError):
            request.method = "POST"  # type: ignore[misc]

    async def test_chunked_body_cached(self) -> None:
        request = Request.from_asgi(make_scope("POST", "/"), _receive(b'{"a":', b"1}"))
        assert await request.body() == b'{"a":1}'
        assert await request.body() == b'{"a":1}'
        assert await request.json() == {"a": 1}

    async def test_text(self) -> None:
        assert await make_request("POST", "/", body="héllo").text() == "héllo"

    async def test_json_helper_sets_content_type(self) -> None:
        request = make_request("POST", "/", json={"name": "Ada"})
        assert request.content_type == "application/json"
        assert json.loads(await request.body()) == {"name": "Ada"}

    async def test_empty_body(self) -> None:
        assert await Request(method="GET", path="/").body() == b""

    def test_parsed_body(self) -> None:
        request = make_request("POST", "/", parsed_body={"a": 1})
        assert request.has_parsed_body
        assert request.parsed_body == {"a": 1}

    def test_unset_is_falsy(self) -> None:
        assert not UNSET
        assert repr(UNSET) == "UNSET"


class TestRouterResponse:
    def test_defaults(self) -> None:
        response = RouterResponse()
        assert response.status == 200
        assert response.body is None
        assert response.headers == {"Content-Type": "application/json"}

    def test_headers_not_shared(self) -> None:
        assert RouterResponse().headers is not RouterResponse().headers
