"""
Shared utilities for the GraphQL extension service.

This package aggregates common building blocks consumed by services and
their extensions:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- loaders: Component module loading for extensions
- base_service: FastAPI host with an extension handler chain

Do not import from service_* packages into shared/.
"""
