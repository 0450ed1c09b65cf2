"""
Unit tests for the GraphQL request bridge.
"""

import json

import httpx
import pytest
import pytest_asyncio
from fastapi import Request, Response
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from service_graphql.app.bridge import GraphQLRequestBridge
from service_graphql.app.caching import InMemoryRecordStore, RecordCache
from service_graphql.app.engine import GraphQLEngine, HTTPGraphQLResponse, ResponseBody
from service_graphql.app.schema import BASE_SCHEMA
from shared.base_service import BaseService
from shared.errors import TransportError

TYPE_DEFS = BASE_SCHEMA + """
type Query {
  hello: String
  search: String
  contentType: String
}
"""

RESOLVERS = {
    "Query": {
        "hello": lambda *_: "world",
        "search": lambda _, info: info.context.search,
        "contentType": lambda _, info: info.context.headers.get("content-type"),
    },
}


def make_host(bridge):
    """Host service with the bridge and a fall-through echo route."""
    service = BaseService("graphql", 8000)
    seen = {}

    @service.app.post("/echo")
    async def echo(request: Request):
        seen["method"] = request.method
        seen["headers"] = list(request.headers.raw)
        seen["body"] = await request.body()
        return {"ok": True}

    service.http(bridge)
    return service, seen


class TestGraphQLRequestBridge:
    """Test cases for GraphQLRequestBridge over a real engine."""

    @pytest_asyncio.fixture
    async def engine(self):
        engine = GraphQLEngine(TYPE_DEFS, RESOLVERS, RecordCache(InMemoryRecordStore()))
        await engine.start()
        return engine

    @pytest.fixture
    def host(self, engine):
        return make_host(GraphQLRequestBridge(engine))

    @pytest.fixture
    def client(self, host):
        service, _ = host
        return TestClient(service.app)

    def test_typename_query(self, client):
        """Test a POST to /graphql is executed and the body unwrapped."""
        response = client.post("/graphql", json={"query": "{ __typename }"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json; charset=utf-8"
        assert response.json() == {"data": {"__typename": "Query"}}

    def test_search_string_preserved(self, client):
        """Test the query string reaches execution and is ignored for routing."""
        response = client.post("/graphql?trace=1&x=y", json={"query": "{ search }"})

        assert response.status_code == 200
        assert response.json() == {"data": {"search": "?trace=1&x=y"}}

    def test_empty_search_string(self, client):
        """Test a URL without a query string yields an empty search."""
        response = client.post("/graphql", json={"query": "{ search }"})

        assert response.json() == {"data": {"search": ""}}

    def test_headers_reach_context(self, client):
        """Test request headers are available case-insensitively."""
        response = client.post(
            "/graphql",
            content=json.dumps({"query": "{ contentType }"}),
            headers={"Content-Type": "application/json"},
        )

        assert response.json() == {"data": {"contentType": "application/json"}}

    def test_get_request(self, client):
        """Test GET requests execute the query from the URL."""
        response = client.get("/graphql", params={"query": "{ hello }"})

        assert response.status_code == 200
        assert response.json() == {"data": {"hello": "world"}}

    def test_malformed_json_is_client_error(self, client):
        """Test malformed JSON yields 400 and the handler keeps serving."""
        response = client.post(
            "/graphql",
            content=b'{"query": ',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "CLIENT_REQUEST_ERROR"

        follow_up = client.post("/graphql", json={"query": "{ hello }"})
        assert follow_up.status_code == 200
        assert follow_up.json() == {"data": {"hello": "world"}}

    def test_invalid_utf8_is_client_error(self, client):
        """Test a body that is not UTF-8 is a client error."""
        response = client.post("/graphql", content=b"\xff\xfe")

        assert response.status_code == 400
        assert response.json()["code"] == "CLIENT_REQUEST_ERROR"

    def test_other_paths_fall_through(self, host, client):
        """Test non-matching requests reach the next handler untouched."""
        _, seen = host
        body = b'{"not": "graphql"}'

        response = client.post(
            "/echo?graphql=1",
            content=body,
            headers={"X-Custom-Header": "Mixed-Case", "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert seen["method"] == "POST"
        assert seen["body"] == body
        assert (b"x-custom-header", b"Mixed-Case") in seen["headers"]

    def test_subpaths_do_not_match(self, client):
        """Test only the exact GraphQL path is intercepted."""
        response = client.post("/graphql/extra", json={"query": "{ hello }"})

        assert response.status_code == 404

    def test_percent_encoded_path_does_not_match(self, client):
        """Test an escaped spelling of the path is passed on, not decoded and answered."""
        response = client.post(
            "/graph%71l",
            content=b"{bad",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 404

    def test_host_routes_still_served(self, client):
        """Test host routes behind the bridge keep working."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_requests_are_counted(self, engine):
        """Test bridged requests are recorded on the metrics collector."""
        service = BaseService("graphql", 8000)
        service.http(GraphQLRequestBridge(engine, metrics=service.metrics))
        client = TestClient(service.app)

        client.post("/graphql", json={"query": "{ hello }"})

        assert service.metrics.registry.get_sample_value(
            "graphql_requests_total", {"status_code": "200"}
        ) == 1.0


class TestBridgeWithStubEngine:
    """Bridge behavior isolated from execution."""

    @pytest.fixture
    def engine(self):
        engine = MagicMock()
        engine.execute_http_graphql_request = AsyncMock(return_value=HTTPGraphQLResponse(
            status=202,
            headers=httpx.Headers([
                ("content-type", "application/json"),
                ("x-engine", "one"),
                ("x-engine", "two"),
            ]),
            body=ResponseBody(string='{"data":{"ok":true}}'),
        ))
        return engine

    def test_engine_response_passes_through(self, engine):
        """Test status and multi-value headers are passed through unmodified."""
        service, _ = make_host(GraphQLRequestBridge(engine))
        client = TestClient(service.app)

        response = client.post("/graphql", json={"query": "{ ok }"})

        assert response.status_code == 202
        assert response.text == '{"data":{"ok":true}}'
        assert response.headers.get_list("x-engine") == ["one", "two"]

    def test_execution_request_shape(self, engine):
        """Test the engine receives the parsed body and a context returning the request."""
        service, _ = make_host(GraphQLRequestBridge(engine))
        client = TestClient(service.app)

        client.post("/graphql?a=1", json={"query": "{ ok }"}, headers={"X-Trace": "abc"})

        kwargs = engine.execute_http_graphql_request.await_args.kwargs
        request = kwargs["http_graphql_request"]
        assert request.method == "POST"
        assert request.body == {"query": "{ ok }"}
        assert request.search == "?a=1"
        assert request.headers["x-trace"] == "abc"
        assert kwargs["context"]() is request

    def test_non_matching_path_skips_engine(self, engine):
        """Test fall-through requests never reach the engine."""
        service, seen = make_host(GraphQLRequestBridge(engine))
        client = TestClient(service.app)

        client.post("/echo", content=b"payload")

        engine.execute_http_graphql_request.assert_not_awaited()
        assert seen["body"] == b"payload"

    def test_custom_path(self, engine):
        """Test the bridge answers on its configured path only."""
        service, _ = make_host(GraphQLRequestBridge(engine, path="/api/graphql"))
        client = TestClient(service.app)

        assert client.post("/api/graphql", json={"query": "{ ok }"}).status_code == 202
        assert client.post("/graphql", json={"query": "{ ok }"}).status_code == 404

    @pytest.mark.asyncio
    async def test_disconnect_while_buffering(self, engine):
        """Test a client disconnect during buffering aborts before execution."""
        bridge = GraphQLRequestBridge(engine)
        messages = [
            {"type": "http.request", "body": b'{"query": ', "more_body": True},
            {"type": "http.disconnect"},
        ]

        async def receive():
            return messages.pop(0)

        scope = {
            "type": "http",
            "method": "POST",
            "path": "/graphql",
            "raw_path": b"/graphql",
            "query_string": b"",
            "headers": [(b"content-type", b"application/json")],
        }
        call_next = AsyncMock()

        with pytest.raises(TransportError):
            await bridge(Request(scope, receive), call_next)

        engine.execute_http_graphql_request.assert_not_awaited()
        call_next.assert_not_awaited()

    def test_resolve_url_uses_configured_host(self, engine):
        """Test the request target is resolved against the configured host."""
        bridge = GraphQLRequestBridge(engine, host="api.example.com")
        scope = {
            "type": "http",
            "method": "GET",
            "path": "/graphql",
            "raw_path": b"/graphql",
            "query_string": b"query=%7Bok%7D",
            "headers": [],
        }

        url = bridge.resolve_url(Request(scope))

        assert url.host == "api.example.com"
        assert url.path == "/graphql"
        assert url.query == b"query=%7Bok%7D"

    def test_route_path_keeps_escapes(self, engine):
        """Test the matching path is taken before percent-decoding."""
        bridge = GraphQLRequestBridge(engine)
        scope = {
            "type": "http",
            "method": "POST",
            "path": "/graphql",
            "raw_path": b"/graph%71l",
            "query_string": b"a=1",
            "headers": [],
        }

        url = bridge.resolve_url(Request(scope))

        assert bridge.route_path(url) == "/graph%71l"

    @pytest.mark.asyncio
    async def test_percent_encoded_path_delegates(self, engine):
        """Test an escaped path reaches the next handler with its body unread."""
        bridge = GraphQLRequestBridge(engine)
        receive = AsyncMock()
        scope = {
            "type": "http",
            "method": "POST",
            "path": "/graphql",
            "raw_path": b"/graph%71l",
            "query_string": b"",
            "headers": [(b"content-type", b"application/json")],
        }
        request = Request(scope, receive)
        call_next = AsyncMock(return_value=Response(status_code=404))

        response = await bridge(request, call_next)

        assert response.status_code == 404
        call_next.assert_awaited_once_with(request)
        receive.assert_not_awaited()
        engine.execute_http_graphql_request.assert_not_awaited()
