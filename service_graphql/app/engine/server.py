"""
GraphQL engine.

Wraps Ariadne behind an HTTP-shaped contract: the caller hands over a
fully parsed ``HTTPGraphQLRequest`` and gets back status, headers and a
string-wrapped JSON body. Persisted queries go through the configured
key-value cache.
"""

import hashlib
import inspect
import json
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

import httpx
from ariadne import graphql, make_executable_schema
from graphql import GraphQLError, GraphQLSchema, build_schema

from shared.errors import StartupFailure
from shared.logging import get_logger
from .resolvers import describe, to_bindables
from .types import HTTPGraphQLRequest, HTTPGraphQLResponse, ResponseBody

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..caching import KeyValueCache

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
PERSISTED_QUERY_PREFIX = "apq:"
DEFAULT_PERSISTED_QUERY_TTL = 300


class GraphQLEngine:
    """Executes HTTP GraphQL requests against a composed schema."""

    def __init__(
        self,
        type_defs: str,
        resolvers: Any,
        cache: "KeyValueCache",
        plugins: Optional[Sequence[Any]] = None,
        *,
        debug: bool = False,
        persisted_query_ttl: Optional[int] = DEFAULT_PERSISTED_QUERY_TTL,
    ):
        self.type_defs = type_defs
        self.resolvers = resolvers
        self.cache = cache
        self.plugins: List[Any] = list(plugins or [])
        self.debug = debug
        self.persisted_query_ttl = persisted_query_ttl
        self.logger = get_logger("graphql.engine")
        self.schema: Optional[GraphQLSchema] = None

    @property
    def started(self) -> bool:
        return self.schema is not None

    async def start(self) -> None:
        """Build the executable schema. Safe to call more than once."""
        if self.schema is not None:
            return

        for plugin in self.plugins:
            if not callable(plugin):
                raise StartupFailure(
                    "Plugins must be extension classes or factories",
                    {"plugin": repr(plugin)},
                )

        try:
            bindables = to_bindables(self.resolvers, build_schema(self.type_defs))
            self.schema = make_executable_schema(self.type_defs, *bindables)
        except StartupFailure:
            raise
        except (GraphQLError, TypeError, ValueError) as e:
            raise StartupFailure(f"Executable schema could not be built: {e}") from e

        self.logger.info(
            "GraphQL engine started",
            types=len(self.schema.type_map),
            resolvers=describe(self.resolvers),
            plugins=len(self.plugins),
        )

    async def execute_http_graphql_request(
        self,
        http_graphql_request: HTTPGraphQLRequest,
        context: Any = None,
    ) -> HTTPGraphQLResponse:
        """Run one HTTP GraphQL request and serialize its result."""
        if self.schema is None:
            raise RuntimeError("GraphQL engine must be started before executing requests")

        method = http_graphql_request.method.upper()
        if method == "POST":
            data = http_graphql_request.body
        elif method == "GET":
            data, rejection = self._data_from_search(http_graphql_request.search)
            if rejection is not None:
                return rejection
        else:
            return self._error_response(
                405,
                "GraphQL only supports GET and POST requests.",
                "METHOD_NOT_ALLOWED",
                headers={"allow": "GET, POST"},
            )

        data, rejection = await self._apply_persisted_query(data)
        if rejection is not None:
            return rejection

        context_value = context() if callable(context) else context
        if inspect.isawaitable(context_value):
            context_value = await context_value

        success, result = await graphql(
            self.schema,
            data,
            context_value=context_value,
            debug=self.debug,
            extensions=self.plugins or None,
            logger="graphql.engine",
        )

        return self._json_response(200 if success else 400, result)

    def _data_from_search(self, search: str) -> Tuple[Optional[Dict[str, Any]], Optional[HTTPGraphQLResponse]]:
        params = httpx.QueryParams(search.lstrip("?"))
        data: Dict[str, Any] = {}
        if "query" in params:
            data["query"] = params["query"]
        if "operationName" in params:
            data["operationName"] = params["operationName"]

        for name in ("variables", "extensions"):
            if name not in params:
                continue
            try:
                data[name] = json.loads(params[name])
            except ValueError:
                return None, self._error_response(
                    400,
                    f"`{name}` query parameter is not valid JSON.",
                    "BAD_REQUEST",
                )
        return data, None

    async def _apply_persisted_query(self, data: Any) -> Tuple[Any, Optional[HTTPGraphQLResponse]]:
        """Swap a persisted query hash for its text, registering new queries."""
        extensions = data.get("extensions") if isinstance(data, dict) else None
        persisted = extensions.get("persistedQuery") if isinstance(extensions, dict) else None
        if not isinstance(persisted, dict):
            return data, None

        digest = persisted.get("sha256Hash")
        if persisted.get("version") != 1 or not isinstance(digest, str):
            return None, self._error_response(400, "Unsupported persisted query version", "BAD_REQUEST")

        key = PERSISTED_QUERY_PREFIX + digest
        query = data.get("query")
        if query is None:
            query = await self.cache.get(key)
            if query is None:
                return None, self._error_response(200, "PersistedQueryNotFound", "PERSISTED_QUERY_NOT_FOUND")
            return {**data, "query": query}, None

        if not isinstance(query, str) or hashlib.sha256(query.encode("utf-8")).hexdigest() != digest:
            return None, self._error_response(400, "provided sha does not match query", "BAD_REQUEST")

        options = {"ttl": self.persisted_query_ttl} if self.persisted_query_ttl else None
        await self.cache.set(key, query, options)
        self.logger.debug("Persisted query registered", sha256=digest)
        return data, None

    def _json_response(self, status: int, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> HTTPGraphQLResponse:
        response_headers = httpx.Headers({"content-type": JSON_CONTENT_TYPE})
        for name, value in (headers or {}).items():
            response_headers[name] = value
        return HTTPGraphQLResponse(
            status=status,
            headers=response_headers,
            body=ResponseBody(string=json.dumps(payload)),
        )

    def _error_response(self, status: int, message: str, code: str, headers: Optional[Dict[str, str]] = None) -> HTTPGraphQLResponse:
        return self._json_response(
            status,
            {"errors": [{"message": message, "extensions": {"code": code}}]},
            headers,
        )
