"""
GraphQL service: hosts the GraphQL extension for one component directory.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from shared.base_service import BaseService
from shared.errors import BackingStoreError
from .caching import RecordStore
from .extension import start


class GraphQLService(BaseService):
    """GraphQL service implementation."""

    def __init__(
        self,
        component_path: Optional[Union[str, Path]] = None,
        options: Optional[Mapping[str, Any]] = None,
        *,
        store: Optional[RecordStore] = None,
    ):
        super().__init__("graphql", 8000)
        self.component_path = Path(component_path or os.getenv("GRAPHQL_COMPONENT_PATH", os.getcwd()))
        self.extension = start(options, server=self, store=store)

        self._setup_graphql_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.graphql_service = self

    async def on_startup(self):
        # StartupFailure propagates and aborts the application startup
        await self.extension.handle_directory(self.component_path)

    async def on_shutdown(self):
        await self.extension.close()

    async def _check_dependencies(self) -> Dict[str, str]:
        dependencies = {
            "engine": "ok" if self.extension.engine is not None and self.extension.engine.started else "not_started",
        }

        ping = getattr(self.extension.store, "ping", None)
        if ping is not None:
            try:
                await ping()
                dependencies["cache_store"] = "ok"
            except BackingStoreError as e:
                self.logger.warning("Cache store unavailable", error=e.message)
                dependencies["cache_store"] = "error"
        return dependencies

    def _setup_graphql_routes(self):
        """Set up GraphQL-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "graphql",
                "message": "GraphQL extension host",
                "version": "1.0.0",
                "graphql_path": self.extension.config.graphql_path,
            }


def create_app(
    component_path: Optional[Union[str, Path]] = None,
    options: Optional[Mapping[str, Any]] = None,
    *,
    store: Optional[RecordStore] = None,
):
    """Create FastAPI application."""
    service = GraphQLService(component_path, options, store=store)
    return service.app


if __name__ == "__main__":
    service = GraphQLService()
    service.run()
