"""
Shared fixtures for GraphQL service tests.
"""

import textwrap
from pathlib import Path

import pytest

from service_graphql.app.caching import InMemoryRecordStore

RESOLVERS_MODULE = '''
def resolve_hello(_, info, name="world"):
    return f"Hello, {name}!"


def resolve_request_method(_, info):
    return info.context.method


def resolve_search(_, info):
    return info.context.search


default = {
    "Query": {
        "hello": resolve_hello,
        "requestMethod": resolve_request_method,
        "search": resolve_search,
    },
}
'''

SCHEMA_FILE = '''
type Query {
  hello(name: String): String
  requestMethod: String
  search: String
}
'''


def write_component(root: Path, files: dict) -> Path:
    """Write ``files`` (relative path -> text) under ``root``."""
    for relative, text in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text), encoding="utf-8")
    return root


@pytest.fixture
def component_dir(tmp_path):
    """A component with a resolver module and a single schema file."""
    return write_component(tmp_path, {
        "resolvers.py": RESOLVERS_MODULE,
        "schemas.graphql": SCHEMA_FILE,
    })


@pytest.fixture
def record_store():
    """In-memory record store."""
    return InMemoryRecordStore()
