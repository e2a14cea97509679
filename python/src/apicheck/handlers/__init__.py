"""API handlers for apicheck."""

from apicheck.handlers.errors import ErrorsHandler
from apicheck.handlers.ping import PingHandler
from apicheck.handlers.types import (
    ApiHandlers,
    ErrorsHandlerProtocol,
    PingHandlerProtocol,
)

__all__ = [
    "ApiHandlers",
    "ErrorsHandler",
    "ErrorsHandlerProtocol",
    "PingHandler",
    "PingHandlerProtocol",
    "init_api_handlers",
]


def init_api_handlers() -> ApiHandlers:
    """Create all API handlers in one place."""
    return ApiHandlers(ping=PingHandler(), errors=ErrorsHandler())
