"""FastAPI application factory and route setup for the upload proxy."""

import json
import logging
import secrets
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from uploadproxy.config import ProxyConfig
from uploadproxy.errors import FALLBACK_MESSAGE
from uploadproxy.handlers.upload import UploadHandler
from uploadproxy.upstream import create_http_client

logger = logging.getLogger(__name__)

# Module-level singleton so multiple create_app() calls (e.g. in tests)
# don't re-register the same Prometheus collectors in the global registry.
_instrumentator = None


def _get_instrumentator():
    global _instrumentator
    if _instrumentator is None:
        from prometheus_fastapi_instrumentator import Instrumentator

        _instrumentator = Instrumentator(
            should_instrument_requests_inprogress=True,
            excluded_handlers=["/metrics"],
        )
    return _instrumentator


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(config: ProxyConfig) -> FastAPI:
    """Create and configure the upload proxy FastAPI application.

    The configuration is read once here and stored on ``app.state``; handlers
    never re-read the environment.

    The lifespan context manager opens the shared outbound HTTP client on
    startup and closes it on shutdown. Tests that bypass the lifespan set
    ``app.state.http_client`` themselves.

    Args:
        config: The loaded proxy configuration.

    Returns:
        A configured FastAPI application ready to run.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan hook: open and close the outbound HTTP client."""
        app.state.http_client = create_http_client()
        if config.upstream.configured:
            logger.info("Forwarding uploads to %s", config.upstream.base_url)
        else:
            logger.warning("Upstream base URL or service key missing; uploads will fail")

        yield

        await app.state.http_client.aclose()
        logger.info("Outbound HTTP client closed")

    app = FastAPI(
        title="Upload Proxy",
        version="0.1.0",
        lifespan=lifespan,
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    app.state.config = config

    _register_exception_handlers(app)
    _register_middleware(app)

    # Wire metrics BEFORE the upload routes so /metrics is never shadowed by
    # a catch-all route prefix.
    if config.observability.metrics:
        import uploadproxy.metrics as _metrics

        _metrics.init_metrics()
        _get_instrumentator().instrument(app, metric_namespace="uploadproxy").expose(
            app, endpoint="/metrics"
        )

    _setup_routes(app, config)

    return app


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _register_exception_handlers(app: FastAPI) -> None:
    """Register the last-resort exception handler on the FastAPI app."""

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> Response:
        """Catch unexpected exceptions and return a generic 500."""
        logger.exception("Unhandled exception in request handler")
        return JSONResponse({"error": FALLBACK_MESSAGE}, status_code=500)


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


def _register_middleware(app: FastAPI) -> None:
    """Register the per-request logging middleware."""

    # Paths to suppress from per-request logging
    _QUIET_PATHS = {"/metrics", "/health"}

    @app.middleware("http")
    async def request_log_middleware(request: Request, call_next) -> Response:
        """Assign a request id and log one line per request.

        The request id is stored on ``request.state`` for handlers; it is not
        added to the response.
        """
        request_id = secrets.token_hex(8).upper()
        request.state.request_id = request_id
        start = time.monotonic()

        response = await call_next(request)

        duration_ms = round((time.monotonic() - start) * 1000, 2)

        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "%s %s %d %.2fms",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "request_id": request_id,
                },
            )

        return response


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------


def _setup_routes(app: FastAPI, config: ProxyConfig) -> None:
    """Register the health check and the upload routes.

    The upload routes are a wildcard under ``server.route_prefix`` and are
    registered last so fixed routes like /health and /metrics win.

    Args:
        app: The FastAPI application to attach routes to.
        config: The proxy configuration.
    """
    upload_handler = UploadHandler(app)

    health_check_enabled = config.observability.health_check

    @app.get("/health")
    async def health_check() -> Response:
        """Return health status.

        When health_check is enabled, report whether the upstream is
        configured (no network probe). When disabled, return a static
        ``{"status": "ok"}``.
        """
        if not health_check_enabled:
            return Response(content='{"status":"ok"}', media_type="application/json")

        upstream_ok = config.upstream.configured
        upstream_check = (
            {"status": "ok"}
            if upstream_ok
            else {"status": "error", "error": "upstream base URL or service key missing"}
        )
        body = json.dumps(
            {
                "status": "ok" if upstream_ok else "degraded",
                "checks": {"upstream": upstream_check},
            }
        )
        return Response(
            content=body,
            status_code=200 if upstream_ok else 503,
            media_type="application/json",
        )

    prefix = config.server.route_prefix.rstrip("/")

    async def handle_upload(request: Request) -> Response:
        """Handle {route_prefix}/storage/v1/object/{bucket}/{key...}.

        The bare prefix has no ``path`` parameter and always fails path
        resolution.
        """
        return await upload_handler.handle(request, request.path_params.get("path", ""))

    # Plain routes accept every method, so the method gate answers 405 with
    # the proxy's own JSON body instead of the router's.
    app.add_route(prefix or "/", handle_upload)
    app.add_route(prefix + "/{path:path}", handle_upload)
