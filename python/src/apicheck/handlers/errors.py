"""Handlers for the errors variant of the API.

Both endpoints always fail; they exist to exercise error responses against
the OpenAPI document.
"""

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from apicheck.handlers.ping import error_body


class ErrorsHandler:
    """Serves endpoints that always return an error status."""

    async def not_found(self, request: Request) -> Response:
        """Handle GET /api/not-found -- always 404 with an error body."""
        return JSONResponse(
            error_body("err_not_found", "Entity not found."),
            status_code=404,
        )

    async def internal_server_error(self, request: Request) -> Response:
        """Handle POST /api/internal-server-error -- always 500, empty body."""
        return Response(status_code=500)
