"""
HTTP bridge between the host handler chain and the GraphQL engine.
"""

import json
from typing import TYPE_CHECKING, Any, Optional

import httpx
from fastapi import Request, Response
from starlette.requests import ClientDisconnect

from shared.base_service import CallNext
from shared.errors import ClientRequestError, TransportError
from shared.logging import get_logger
from .engine import HTTPGraphQLRequest, HTTPGraphQLResponse

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .engine import GraphQLEngine
    from shared.metrics import MetricsCollector

GRAPHQL_PATH = "/graphql"


class GraphQLRequestBridge:
    """Answers requests for the GraphQL path and passes everything else on.

    The request target is resolved against ``http://{host}`` only to get a
    structured path and query string; routing looks at the path alone.
    Matching requests are buffered in full, parsed as JSON, executed, and
    the engine's string-wrapped body is unwrapped into the response.
    """

    def __init__(
        self,
        engine: "GraphQLEngine",
        *,
        path: str = GRAPHQL_PATH,
        host: str = "localhost",
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.engine = engine
        self.path = path
        self.base_url = httpx.URL(f"http://{host}")
        self.metrics = metrics
        self.logger = get_logger("graphql.bridge")

    def resolve_url(self, request: Request) -> httpx.URL:
        """Resolve the raw request target against the configured host."""
        raw_path = request.scope.get("raw_path")
        target = raw_path.decode("latin-1") if raw_path else request.scope.get("path", "/")
        query_string = request.scope.get("query_string", b"")
        if query_string:
            target = f"{target}?{query_string.decode('latin-1')}"
        return self.base_url.join(target)

    @staticmethod
    def route_path(url: httpx.URL) -> str:
        """Path used for matching, with percent-escapes left as sent."""
        # url.path is percent-decoded; raw_path is not
        return url.raw_path.split(b"?", 1)[0].decode("ascii")

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        url = self.resolve_url(request)
        if self.route_path(url) != self.path:
            return await call_next(request)

        body = await self._buffer_body(request)
        http_graphql_request = HTTPGraphQLRequest(
            method=request.method,
            headers=httpx.Headers(request.headers.raw),
            body=self._parse_body(body),
            search=f"?{url.query.decode('ascii')}" if url.query else "",
        )

        if self.metrics is not None:
            with self.metrics.time_operation("graphql_request_duration_seconds"):
                response = await self._execute(http_graphql_request)
            self.metrics.increment_counter("graphql_requests_total", status_code=str(response.status_code))
        else:
            response = await self._execute(http_graphql_request)
        return response

    async def _buffer_body(self, request: Request) -> bytes:
        """Read the whole body before anything looks at it."""
        try:
            return await request.body()
        except ClientDisconnect as e:
            self.logger.warning("Client disconnected while sending body", path=self.path)
            raise TransportError("Client disconnected before the request body was complete") from e

    def _parse_body(self, body: bytes) -> Any:
        # GET requests carry the operation in the query string
        if not body:
            return None
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ClientRequestError("Request body is not valid JSON", {"error": str(e)}) from e

    async def _execute(self, http_graphql_request: HTTPGraphQLRequest) -> Response:
        result = await self.engine.execute_http_graphql_request(
            http_graphql_request=http_graphql_request,
            context=lambda: http_graphql_request,
        )
        return self.to_response(result)

    @staticmethod
    def to_response(result: HTTPGraphQLResponse) -> Response:
        """Unwrap the engine body; status and headers pass through as produced."""
        response = Response(content=result.body.string, status_code=result.status or 200)
        for name, value in result.headers.multi_items():
            response.headers.append(name, value)
        return response
