"""
Base service class hosting HTTP extensions.
"""

import asyncio
import os
import time
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST

from shared.config import get_config
from shared.errors import AccessLayerException
from shared.logging import configure_logging, get_logger, set_request_id, clear_context
from shared.metrics import get_metrics_collector

CallNext = Callable[[Request], Awaitable[Response]]
HttpHandler = Callable[[Request, CallNext], Awaitable[Response]]


class _RegisteredHandler:
    """A chain entry with the listener ports it is bound to."""

    def __init__(self, handler: HttpHandler, ports: Set[int]):
        self.handler = handler
        self.ports = ports

    def accepts(self, request: Request) -> bool:
        if not self.ports:
            return True
        server = request.scope.get("server")
        return bool(server) and server[1] in self.ports


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, port: int):
        self.service_name = service_name
        self.port = port
        self.config = get_config(service_name, port)
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)
        self._handlers: List[_RegisteredHandler] = []
        self._ports: Set[int] = {port}
        self._secure_ports: Set[int] = set()
        self._start_time = time.time()

        configure_logging(service_name, self.config.log_level)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"{self.service_name.title()} extension host",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
            lifespan=self._lifespan,
        )

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.on_startup()
        yield
        await self.on_shutdown()

    async def on_startup(self):
        """Start extensions. Override in subclasses."""

    async def on_shutdown(self):
        """Release resources. Override in subclasses."""

    def http(self, handler: HttpHandler, *, port: Optional[int] = None, secure_port: Optional[int] = None):
        """Register an HTTP handler at the end of the chain.

        Handlers are called as ``handler(request, next)`` and either answer
        the request or pass it on with ``await next(request)``. A handler
        bound to ports only sees requests arriving on those ports.
        """
        ports = {p for p in (port, secure_port) if p is not None}
        if port is not None:
            self._ports.add(port)
        if secure_port is not None:
            self._secure_ports.add(secure_port)

        self._handlers.append(_RegisteredHandler(handler, ports))
        self.logger.info(
            "HTTP handler registered",
            handler=getattr(handler, "__name__", type(handler).__name__),
            ports=sorted(ports),
        )

    @property
    def handlers(self) -> List[HttpHandler]:
        return [entry.handler for entry in self._handlers]

    async def _dispatch(self, request: Request, call_next: CallNext) -> Response:
        """Run the request through the registered handler chain."""
        chain = [entry.handler for entry in self._handlers if entry.accepts(request)]

        async def run(index: int, current: Request) -> Response:
            if index == len(chain):
                return await call_next(current)
            return await chain[index](current, lambda nxt: run(index + 1, nxt))

        try:
            return await run(0, request)
        except AccessLayerException as exc:
            self.logger.warning(
                "Request failed",
                code=exc.code,
                message=exc.message,
                path=request.url.path,
            )
            self.metrics.record_error(exc.code)
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump()
            )

    def _setup_middleware(self):
        """Set up middleware."""

        # Registered extension handlers run ahead of the routes
        @self.app.middleware("http")
        async def run_handler_chain(request: Request, call_next):
            return await self._dispatch(request, call_next)

        # Request timing middleware
        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            set_request_id(request.headers.get("X-Request-ID"))
            start_time = time.time()
            try:
                response = await call_next(request)

                duration = time.time() - start_time
                self.metrics.record_http_request(
                    method=request.method,
                    endpoint=request.url.path,
                    status_code=response.status_code,
                    duration=duration
                )
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2)
                )
                return response
            finally:
                clear_context()

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else [],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            try:
                dependencies = await self._check_dependencies()
                self.metrics.record_health_check("ok")

                return {
                    "service": self.service_name,
                    "status": "ok",
                    "uptime_seconds": self._get_uptime(),
                    "dependencies": dependencies,
                    "version": "1.0.0",
                    "commit": os.getenv("GIT_COMMIT", "unknown")
                }
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                self.metrics.record_health_check("error")
                return JSONResponse(
                    status_code=503,
                    content={
                        "service": self.service_name,
                        "status": "error",
                        "error": str(e)
                    }
                )

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=self.metrics.export(),
                media_type=CONTENT_TYPE_LATEST
            )

        @self.app.exception_handler(AccessLayerException)
        async def access_layer_exception_handler(request: Request, exc: AccessLayerException):
            """Handle AccessLayerException raised by routes."""
            self.logger.error(
                "Access layer error",
                code=exc.code,
                message=exc.message,
                details=exc.details
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump()
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def _get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def _server_configs(self) -> List[uvicorn.Config]:
        # Lifespan runs once in serve(), not once per listener
        configs = []
        for port in sorted(self._ports):
            configs.append(uvicorn.Config(
                self.app,
                host=self.config.host,
                port=port,
                log_level=self.config.log_level.lower(),
                lifespan="off",
            ))

        for port in sorted(self._secure_ports - self._ports):
            if not (self.config.tls_certfile and self.config.tls_keyfile):
                self.logger.warning("Secure port requested without TLS files, skipping", port=port)
                continue
            configs.append(uvicorn.Config(
                self.app,
                host=self.config.host,
                port=port,
                log_level=self.config.log_level.lower(),
                lifespan="off",
                ssl_certfile=self.config.tls_certfile,
                ssl_keyfile=self.config.tls_keyfile,
            ))
        return configs

    async def serve(self):
        """Start extensions, then serve every registered listener until shutdown."""
        await self.on_startup()
        try:
            servers: List[Any] = [uvicorn.Server(config) for config in self._server_configs()]
            await asyncio.gather(*(server.serve() for server in servers))
        finally:
            await self.on_shutdown()

    def run(self):
        """Run the service."""
        asyncio.run(self.serve())
