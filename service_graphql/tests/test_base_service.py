"""
Unit tests for the extension host service.
"""

import pytest
from fastapi import Response
from fastapi.testclient import TestClient

from shared.base_service import BaseService
from shared.errors import ClientRequestError, StartupFailure


async def tag_response(request, call_next):
    response = await call_next(request)
    response.headers["x-tagged"] = "yes"
    return response


class TestBaseService:
    """Test cases for BaseService."""

    @pytest.fixture
    def service(self):
        service = BaseService("graphql", 8000)

        @service.app.get("/ping")
        async def ping():
            return {"pong": True}

        return service

    def test_health(self, service):
        """Test the health endpoint reports the service."""
        response = TestClient(service.app).get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["service"] == "graphql"
        assert body["status"] == "ok"
        assert body["dependencies"] == {}

    def test_metrics_endpoint(self, service):
        """Test the metrics endpoint exports the service registry."""
        client = TestClient(service.app)
        client.get("/ping")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_handlers_run_in_registration_order(self, service):
        """Test handlers form a chain ending at the routes."""
        calls = []

        async def first(request, call_next):
            calls.append("first")
            return await call_next(request)

        async def second(request, call_next):
            calls.append("second")
            return await call_next(request)

        service.http(first)
        service.http(second)
        service.http(tag_response)

        response = TestClient(service.app).get("/ping")

        assert calls == ["first", "second"]
        assert response.json() == {"pong": True}
        assert response.headers["x-tagged"] == "yes"
        assert service.handlers == [first, second, tag_response]

    def test_handler_can_answer(self, service):
        """Test a handler may answer without calling the rest of the chain."""
        async def answer(request, call_next):
            if request.url.path == "/ping":
                return Response(content="handled", status_code=202)
            return await call_next(request)

        service.http(answer)
        client = TestClient(service.app)

        assert client.get("/ping").text == "handled"
        assert client.get("/health").status_code == 200

    def test_port_bound_handler_skipped_on_other_ports(self, service):
        """Test handlers bound to a port ignore requests on other listeners."""
        service.http(tag_response, port=9926)

        response = TestClient(service.app).get("/ping")

        assert "x-tagged" not in response.headers

    def test_port_bound_handler_runs_on_its_port(self, service):
        service.http(tag_response, port=9926)

        response = TestClient(service.app, base_url="http://testserver:9926").get("/ping")

        assert response.headers["x-tagged"] == "yes"

    def test_handler_errors_become_error_responses(self, service):
        """Test service exceptions raised in handlers are rendered as JSON errors."""
        async def reject(request, call_next):
            raise ClientRequestError("bad input", {"field": "query"})

        service.http(reject)

        response = TestClient(service.app).get("/ping", headers={"X-Request-ID": "req-1"})

        assert response.status_code == 400
        assert response.json() == {
            "request_id": "req-1",
            "code": "CLIENT_REQUEST_ERROR",
            "message": "bad input",
            "details": {"field": "query"},
        }

    def test_status_code_follows_exception(self, service):
        async def fail(request, call_next):
            raise StartupFailure("not ready")

        service.http(fail)

        assert TestClient(service.app).get("/ping").status_code == 500

    def test_server_configs_per_port(self, service):
        """Test one listener is configured per registered port."""
        service.http(tag_response, port=9926, secure_port=9927)

        configs = service._server_configs()

        assert [config.port for config in configs] == [8000, 9926]
        assert all(config.lifespan == "off" for config in configs)

    def test_secure_port_with_tls(self, monkeypatch):
        monkeypatch.setenv("GRAPHQL_TLS_CERTFILE", "/certs/server.crt")
        monkeypatch.setenv("GRAPHQL_TLS_KEYFILE", "/certs/server.key")
        service = BaseService("graphql", 8000)
        service.http(tag_response, secure_port=9927)

        configs = service._server_configs()

        assert [config.port for config in configs] == [8000, 9927]
        assert configs[1].ssl_certfile == "/certs/server.crt"
