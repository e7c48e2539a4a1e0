"""Search gateway main application."""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog

from libs.common.config import SearchGatewayConfig
from libs.common.errors import GatewayError, InternalError, InvalidQuery
from libs.common.logging import bind_request_context, clear_request_context, configure_logging
from libs.common.metrics import MetricsCollector
from libs.search_backend.base import SearchBackend
from libs.search_backend.opensearch import OpenSearchBackend

from .api.routes import router as api_router
from .federation.search_gateway import SearchGateway
from .runtime.metrics import get_metrics_collector

logger = structlog.get_logger("search_gateway")

SERVICE_NAME = "search-gateway"
API_PREFIX = "/v0"


def error_response(error: GatewayError) -> JSONResponse:
    """Render a gateway error with its stable code.

    Internal errors never expose their detail to the caller.
    """
    if isinstance(error, InternalError):
        body = {"code": error.code, "reason": "internal_error", "message": "Internal server error"}
    else:
        body = error.to_dict()

    headers = {"WWW-Authenticate": "Bearer"} if error.status_code == 401 else None
    return JSONResponse(status_code=error.status_code, content={"error": body}, headers=headers)


def endpoint_label(request: Request, request_path: str) -> str:
    """Route template for metrics labels; unmatched paths share one label.

    Routers included under ``API_PREFIX`` may report their template with or
    without the prefix depending on how they are attached, so it is restored
    from the path the request arrived on when missing.
    """
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if path is None:
        return "unmatched"
    if request_path.startswith(API_PREFIX + "/") and not path.startswith(API_PREFIX + "/"):
        return API_PREFIX + path
    return path


def validation_field(location) -> str:
    """Dotted field path of a validation error location.

    A location that is only the body plus a character offset (unparseable
    JSON) reports ``body``.
    """
    parts = [part for part in location if part != "body"]
    if not parts or all(isinstance(part, int) for part in parts):
        return "body"
    return ".".join(str(part) for part in parts)


def create_app(
    config: Optional[SearchGatewayConfig] = None,
    backend: Optional[SearchBackend] = None,
    metrics_collector: Optional[MetricsCollector] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Collaborators default to what the environment configures; tests inject
    their own config, backend and metrics collector.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        gateway_config = config or SearchGatewayConfig()
        configure_logging(SERVICE_NAME, gateway_config.search_log_level, gateway_config.search_log_format)

        logger.info("Starting search gateway", env=gateway_config.search_env)

        app.state.metrics_collector = metrics_collector or get_metrics_collector(SERVICE_NAME)
        search_backend = backend or OpenSearchBackend.from_config(gateway_config)
        try:
            app.state.search_gateway = SearchGateway.from_config(
                gateway_config,
                backend=search_backend,
                metrics=app.state.metrics_collector,
            )
        except Exception:
            await search_backend.close()
            logger.exception("Search gateway configuration is invalid")
            raise

        logger.info(
            "Search gateway started successfully",
            domains=app.state.search_gateway.registry.names(),
            backend=gateway_config.backend_hosts
        )

        yield

        # Shutdown
        logger.info("Shutting down search gateway")
        await app.state.search_gateway.close()
        logger.info("Search gateway shutdown complete")

    app = FastAPI(
        title="Search Gateway",
        description="Federated search across datasets, publishers and regions",
        version="0.1.0",
        lifespan=lifespan
    )

    app.include_router(api_router, prefix=API_PREFIX)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        """Render gateway errors with their stable error codes."""
        if isinstance(exc, InternalError):
            logger.error("Internal invariant violated", error=exc.message, reason=exc.reason)
        else:
            logger.info("Request rejected", code=exc.code, reason=exc.reason)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Report schema violations as InvalidQuery naming the first bad field.

        API routes authenticate before reporting a schema error, so an
        anonymous caller sending an unparseable body still gets a 401.
        """
        if request.url.path.startswith(API_PREFIX) and hasattr(app.state, "search_gateway"):
            try:
                app.state.search_gateway.gate.authenticate(request.headers.get("Authorization"))
            except GatewayError as e:
                logger.info("Request rejected", code=e.code, reason=e.reason)
                return error_response(e)

        errors = exc.errors()
        first = errors[0] if errors else {}
        return error_response(InvalidQuery(
            validation_field(first.get("loc", ())),
            first.get("msg", "invalid request body"),
        ))

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Collect metrics for HTTP requests and contain unexpected errors."""
        start_time = time.time()
        request_path = request.url.path

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error while serving request", path=request.url.path)
            response = error_response(InternalError("Unhandled error"))

        duration = time.time() - start_time
        response.headers["X-Process-Time"] = str(duration)

        if hasattr(app.state, 'metrics_collector'):
            app.state.metrics_collector.record_http_request(
                method=request.method,
                endpoint=endpoint_label(request, request_path),
                status=response.status_code,
                duration=duration
            )

        return response

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Bind a request id to every log line and echo it to the client."""
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        bind_request_context(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context("request_id")
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        if hasattr(app.state, 'search_gateway') and await app.state.search_gateway.health_check():
            return {"status": "healthy", "service": SERVICE_NAME}
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": SERVICE_NAME}
        )

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        if hasattr(app.state, 'metrics_collector'):
            metrics_data = app.state.metrics_collector.get_metrics()
            return Response(content=metrics_data, media_type="text/plain")
        return Response(content="# No metrics available\n", media_type="text/plain")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": SERVICE_NAME,
            "version": "0.1.0",
            "status": "running",
            "endpoints": {
                "health": "/health",
                "metrics": "/metrics",
                "search": f"{API_PREFIX}/search",
                "domains": f"{API_PREFIX}/domains"
            }
        }

    return app


app = create_app()


def run() -> None:
    """Console entrypoint: serve the gateway on the configured port."""
    config = SearchGatewayConfig()
    uvicorn.run(
        create_app(config),
        host="0.0.0.0",
        port=config.search_listen_port,
        log_level=config.search_log_level.lower()
    )


if __name__ == "__main__":
    run()
