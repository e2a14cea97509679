"""Route registration for the apicheck API.

Two variants exist, selected by ``server.variant``:

    records: GET /api/ping, GET /api/get-record/{id}
    errors:  GET /api/ping, GET /api/not-found, POST /api/internal-server-error

Every route registered here must also be described in the matching OpenAPI
document (and vice versa); ``apicheck.openapi.consistency`` checks this.
"""

from fastapi import APIRouter

from apicheck.handlers import ApiHandlers, init_api_handlers

VARIANTS = ("records", "errors")


def setup_router(handlers: ApiHandlers | None = None, variant: str = "records") -> APIRouter:
    """Build the API router with all routes grouped under /api.

    Args:
        handlers: Handler implementations. Defaults to ``init_api_handlers()``.
        variant: Which set of endpoints to expose ('records' or 'errors').

    Returns:
        An APIRouter ready to be included in a FastAPI application.

    Raises:
        ValueError: If the variant is unknown.
    """
    if variant not in VARIANTS:
        raise ValueError(f"Unknown API variant: {variant}")
    if handlers is None:
        handlers = init_api_handlers()

    router = APIRouter(prefix="/api")
    router.add_api_route("/ping", handlers.ping.ping, methods=["GET"])

    if variant == "records":
        router.add_api_route("/get-record/{id}", handlers.ping.get_record, methods=["GET"])
    else:
        router.add_api_route("/not-found", handlers.errors.not_found, methods=["GET"])
        router.add_api_route(
            "/internal-server-error",
            handlers.errors.internal_server_error,
            methods=["POST"],
        )

    return router
