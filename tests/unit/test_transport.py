from __future__ import annotations

import json
from unittest import mock
from urllib.parse import parse_qs

import httpx
import pytest

from vet_import.api.transport import ApiError, GraphQLTransport


def _transport(handler, **kwargs) -> GraphQLTransport:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GraphQLTransport("https://api.example.test/graphql", "secret-key", http_client=client, **kwargs)


def test_execute_posts_form_and_returns_data():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": {"clients": [{"id": "C-1"}]}})

    limiter = mock.Mock()
    with _transport(handler, rate_limiter=limiter) as transport:
        data = transport.execute("query { clients { id } }", {"limit": 10, "offset": 0})

    assert data == {"clients": [{"id": "C-1"}]}
    limiter.wait.assert_called_once_with()
    request = seen[0]
    assert request.method == "POST"
    assert request.headers["Authorization"] == "secret-key"
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    form = parse_qs(request.content.decode())
    assert form["query"] == ["query { clients { id } }"]
    assert json.loads(form["variables"][0]) == {"limit": 10, "offset": 0}


def test_http_error_status_raises():
    transport = _transport(lambda request: httpx.Response(500))
    with pytest.raises(ApiError, match="HTTP 500: Internal Server Error"):
        transport.execute("query { clients { id } }")


def test_graphql_errors_raise():
    body = {"errors": [{"message": "bad field"}], "data": None}
    transport = _transport(lambda request: httpx.Response(200, json=body))
    with pytest.raises(ApiError, match="GraphQL Error: .*bad field"):
        transport.execute("query { clients { id } }")


def test_timeout_raises_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ApiError, match="timed out"):
        _transport(handler).execute("query { clients { id } }")


@pytest.mark.parametrize(
    "response",
    [httpx.Response(200, text="<html>oops</html>"), httpx.Response(200, json=[1, 2])],
)
def test_malformed_body_raises(response):
    with pytest.raises(ApiError):
        _transport(lambda request: response).execute("query { clients { id } }")


def test_missing_data_is_empty():
    transport = _transport(lambda request: httpx.Response(200, json={"data": None}))
    assert transport.execute("query { clients { id } }") == {}


def test_verbose_logs_request_and_response(caplog):
    transport = _transport(lambda request: httpx.Response(200, json={"data": {}}), verbose=True)
    with caplog.at_level("DEBUG", logger="vet_import"):
        transport.execute("query {\n  clients { id }\n}", {"limit": 1})
    assert "GraphQL request query=query { clients { id } }" in caplog.text
    assert "GraphQL response" in caplog.text
