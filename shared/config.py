"""
Shared configuration management for the GraphQL extension service.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="GRAPHQL_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_namespace: str = Field(default="graphql")

    # TLS (secure port listeners)
    tls_certfile: Optional[str] = Field(default=None)
    tls_keyfile: Optional[str] = Field(default=None)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
