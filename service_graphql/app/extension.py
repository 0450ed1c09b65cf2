"""
GraphQL extension bootstrap.

``start(options, server=...)`` resolves the configuration once; the host
then calls ``handle_directory(component_path)`` for the component, which
loads the resolver, cache and plugin modules, composes the schema, starts
the engine and registers the request bridge. ``activate`` is the same
sequence for callers that already hold the resolved objects.

Every step is fatal: a failure raises ``StartupFailure`` and nothing is
registered on the host.
"""

from collections.abc import Mapping
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Union

from shared.errors import ModuleLoadError, StartupFailure
from shared.loaders import get_export, load_module
from shared.logging import get_logger, set_component
from .bridge import GraphQLRequestBridge
from .caching import KeyValueCache, RecordCache, RecordStore, RedisRecordStore
from .config import ExtensionConfig, get_extension_config
from .engine import GraphQLEngine
from .schema import compose_schema

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.base_service import BaseService

CacheFactory = Callable[[], KeyValueCache]

CACHE_OPERATIONS = ("get", "set", "delete")

logger = get_logger("graphql.extension")


def module_resolvers(module: ModuleType) -> Any:
    """Resolver map exported by a module.

    ``default`` wins, then ``resolvers``; otherwise every public module-level
    mapping or bindable is taken as a resolver entry.
    """
    exported = get_export(module, "default", "resolvers", default=None)
    if exported is not None:
        return exported

    entries: Dict[str, Any] = {}
    for name, value in vars(module).items():
        if name.startswith("_") or isinstance(value, (ModuleType, type)):
            continue
        if isinstance(value, Mapping) or callable(getattr(value, "bind_to_schema", None)):
            entries[name] = value

    if not entries:
        raise ModuleLoadError(module.__file__ or module.__name__, "Module exports no resolvers")
    return entries


class GraphQLExtension:
    """One GraphQL endpoint activated on a host service."""

    def __init__(self, server: "BaseService", config: ExtensionConfig, *, store: Optional[RecordStore] = None):
        self.server = server
        self.config = config
        self.store = store
        self.engine: Optional[GraphQLEngine] = None
        self.bridge: Optional[GraphQLRequestBridge] = None
        self.logger = logger

    async def handle_directory(self, component_path: Union[str, Path]) -> bool:
        """Load the component's modules and schema, then activate."""
        set_component(str(component_path))
        try:
            resolvers = module_resolvers(load_module(component_path, self.config.resolvers))
            type_defs = compose_schema(component_path, self.config.schemas)
            cache_factory = self._load_cache_factory(component_path)
            plugins = self._load_plugins(component_path)
        except StartupFailure as e:
            self.logger.error("GraphQL extension failed to load", component=str(component_path), error=e.message)
            raise
        except Exception as e:
            self.logger.error("GraphQL extension failed to load", component=str(component_path), error=str(e), exc_info=True)
            raise StartupFailure(f"Component could not be loaded: {e}") from e

        return await self.activate(
            type_defs,
            resolvers=resolvers,
            cache_factory=cache_factory,
            plugins=plugins,
        )

    async def activate(
        self,
        type_defs: str,
        *,
        resolvers: Any,
        cache_factory: Optional[CacheFactory] = None,
        plugins: Optional[Sequence[Any]] = None,
    ) -> bool:
        """Start the engine over resolved pieces and register the bridge."""
        try:
            cache = self._create_cache(cache_factory or self.default_cache_factory)
            engine = GraphQLEngine(
                type_defs,
                resolvers,
                cache,
                plugins,
                debug=self.config.debug,
                persisted_query_ttl=self.config.persisted_query_ttl,
            )
            await engine.start()
        except StartupFailure as e:
            self.logger.error("GraphQL extension failed to start", error=e.message, details=e.details)
            raise
        except Exception as e:
            self.logger.error("GraphQL extension failed to start", error=str(e), exc_info=True)
            raise StartupFailure(f"GraphQL engine failed to start: {e}") from e

        bridge = GraphQLRequestBridge(
            engine,
            path=self.config.graphql_path,
            host=self.config.host,
            metrics=self.server.metrics,
        )
        self.server.http(bridge, port=self.config.port, secure_port=self.config.secure_port)
        self.engine = engine
        self.bridge = bridge

        self.logger.info(
            "GraphQL extension activated",
            path=self.config.graphql_path,
            port=self.config.port,
            secure_port=self.config.secure_port,
            custom_cache=bool(cache_factory),
            plugins=len(plugins or []),
        )
        return True

    def default_cache_factory(self) -> KeyValueCache:
        if self.store is None:
            self.store = RedisRecordStore(self.config.redis_url, namespace=self.config.redis_namespace)
        return RecordCache(self.store, metrics=self.server.metrics)

    def _create_cache(self, cache_factory: CacheFactory) -> KeyValueCache:
        try:
            cache = cache_factory()
        except Exception as e:
            raise StartupFailure(f"Cache could not be created: {e}") from e

        missing = [op for op in CACHE_OPERATIONS if not callable(getattr(cache, op, None))]
        if missing:
            raise StartupFailure(
                "Cache does not implement the cache interface",
                {"missing": missing, "type": type(cache).__name__},
            )
        return cache

    def _load_cache_factory(self, component_path: Union[str, Path]) -> Optional[CacheFactory]:
        if not self.config.cache:
            return None

        module = load_module(component_path, self.config.cache)
        factory = get_export(module, "default", "Cache")
        if not callable(factory):
            raise ModuleLoadError(module.__file__ or self.config.cache, "Cache export is not a class or factory")
        return factory

    def _load_plugins(self, component_path: Union[str, Path]) -> List[Any]:
        if not self.config.plugins:
            return []

        module = load_module(component_path, self.config.plugins)
        plugins = get_export(module, "default", "plugins")
        if not isinstance(plugins, (list, tuple)):
            raise ModuleLoadError(module.__file__ or self.config.plugins, "Plugins export must be a list")
        return list(plugins)

    async def close(self):
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()


def start(
    options: Optional[Mapping] = None,
    *,
    server: "BaseService",
    store: Optional[RecordStore] = None,
) -> GraphQLExtension:
    """Resolve configuration and return the extension ready for activation."""
    config = get_extension_config(options)
    logger.debug("GraphQL extension configuration", config=config.model_dump())
    return GraphQLExtension(server, config, store=store)
