"""
Request/response shapes exchanged with the GraphQL engine.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import httpx


@dataclass
class HTTPGraphQLRequest:
    """An HTTP request reduced to what GraphQL execution needs."""

    method: str
    headers: httpx.Headers
    body: Any = None
    search: str = ""


@dataclass
class ResponseBody:
    """Engine payload wrapper; ``string`` holds the serialized JSON."""

    string: str
    kind: str = "complete"


@dataclass
class HTTPGraphQLResponse:
    body: ResponseBody
    status: Optional[int] = None
    headers: httpx.Headers = field(default_factory=httpx.Headers)
