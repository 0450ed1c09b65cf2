"""
GraphQL engine package.

Ariadne executes operations; this package adapts it to an HTTP-shaped
request/response contract and turns exported resolver maps into
bindables.
"""

from .server import DEFAULT_PERSISTED_QUERY_TTL, GraphQLEngine
from .types import HTTPGraphQLRequest, HTTPGraphQLResponse, ResponseBody

__all__ = [
    "DEFAULT_PERSISTED_QUERY_TTL",
    "GraphQLEngine",
    "HTTPGraphQLRequest",
    "HTTPGraphQLResponse",
    "ResponseBody",
]
