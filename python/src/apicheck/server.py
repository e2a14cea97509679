"""FastAPI application factory and route setup for apicheck."""

import logging
import secrets
import time

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from apicheck.config import ApiCheckConfig
from apicheck.handlers import ApiHandlers
from apicheck.handlers.ping import error_body
from apicheck.router import setup_router

logger = logging.getLogger(__name__)

# Paths to suppress from per-request logging
_QUIET_PATHS = {"/metrics"}

# Module-level singleton so multiple create_app() calls (e.g. in tests)
# don't re-register the same Prometheus collectors in the global registry.
_instrumentator = None


def _get_instrumentator():
    global _instrumentator
    if _instrumentator is None:
        from prometheus_fastapi_instrumentator import Instrumentator

        _instrumentator = Instrumentator(excluded_handlers=["/metrics"])
    return _instrumentator


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(config: ApiCheckConfig, handlers: ApiHandlers | None = None) -> FastAPI:
    """Create and configure the apicheck FastAPI application.

    FastAPI's own OpenAPI generation and docs are disabled: the contract is
    the hand-written document under ``schemas/``.

    Args:
        config: The loaded apicheck configuration.
        handlers: Handler implementations. Defaults to ``init_api_handlers()``.

    Returns:
        A configured FastAPI application ready to run.
    """
    app = FastAPI(
        title="apicheck API",
        version="0.1.0",
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    app.state.config = config

    _register_exception_handlers(app)
    _register_middleware(app)

    if config.observability.metrics:
        import apicheck.metrics as _metrics

        _metrics.init_metrics()
        _get_instrumentator().instrument(app, metric_namespace="apicheck").expose(
            app, endpoint="/metrics", include_in_schema=False
        )

    app.include_router(setup_router(handlers, variant=config.server.variant))

    logger.debug("Application created (variant=%s)", config.server.variant)
    return app


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the FastAPI app."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        """Render FastAPI validation errors in the API's error body shape."""
        messages = []
        for err in exc.errors():
            loc = " -> ".join(str(p) for p in err.get("loc", []))
            msg = err.get("msg", "Invalid value")
            messages.append(f"{loc}: {msg}" if loc else msg)
        combined = "; ".join(messages) or "Invalid request parameters"
        return JSONResponse(error_body("err_invalid_request", combined), status_code=422)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> Response:
        """Catch unexpected exceptions and return a 500 error body."""
        logger.exception("Unhandled exception in request handler")
        return JSONResponse(
            error_body("err_internal", "We encountered an internal error. Please try again."),
            status_code=500,
        )


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


def _register_middleware(app: FastAPI) -> None:
    """Register the request id and access log middleware."""

    @app.middleware("http")
    async def request_log_middleware(request: Request, call_next) -> Response:
        """Tag every response with X-Request-Id and log one line per request."""
        request_id = secrets.token_hex(8).upper()
        request.state.request_id = request_id
        start = time.monotonic()

        response = await call_next(request)

        duration_ms = round((time.monotonic() - start) * 1000, 2)
        response.headers["X-Request-Id"] = request_id

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
