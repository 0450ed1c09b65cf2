"""
GraphQL extension configuration.
"""

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from shared.config import BaseConfig

# Option names accepted from callers that differ from the field names
OPTION_ALIASES = {"securePort": "secure_port"}


class ExtensionConfig(BaseConfig):
    """Options recognized by the GraphQL extension.

    Module paths (``cache``, ``resolvers``, ``plugins``) and the ``schemas``
    glob are relative to the component directory being handled.
    """

    model_config = SettingsConfigDict(frozen=True)

    cache: Optional[str] = Field(default=None, description="Custom cache module; built-in record cache when unset")
    port: Optional[int] = Field(default=None)
    secure_port: Optional[int] = Field(default=None)
    resolvers: str = Field(default="resolvers.py")
    schemas: str = Field(default="schemas.graphql")
    plugins: Optional[str] = Field(default=None)

    graphql_path: str = Field(default="/graphql")
    host: str = Field(default_factory=lambda: os.getenv("HOST", "localhost"))
    persisted_query_ttl: Optional[int] = Field(default=300, ge=0)
    debug: bool = Field(default=False)


def get_extension_config(options: Optional[Mapping[str, Any]] = None) -> ExtensionConfig:
    """Build the extension configuration from caller overrides.

    Options left unset (or ``None``) fall back to environment variables and
    then to the declared defaults.
    """
    overrides: Dict[str, Any] = {}
    for key, value in (options or {}).items():
        if value is None:
            continue
        overrides[OPTION_ALIASES.get(key, key)] = value
    return ExtensionConfig(**overrides)
