"""Handler interfaces for the apicheck API.

The router only depends on these protocols, so any implementation can be
swapped in when the handlers are composed in ``init_api_handlers``.
"""

from dataclasses import dataclass
from typing import Protocol

from fastapi import Request, Response


class PingHandlerProtocol(Protocol):
    """Operations served under the records variant of the API."""

    async def ping(self, request: Request) -> Response: ...

    async def get_record(self, request: Request) -> Response: ...


class ErrorsHandlerProtocol(Protocol):
    """Operations served under the errors variant of the API."""

    async def not_found(self, request: Request) -> Response: ...

    async def internal_server_error(self, request: Request) -> Response: ...


@dataclass(frozen=True)
class ApiHandlers:
    """Holds all API handlers in one place."""

    ping: PingHandlerProtocol
    errors: ErrorsHandlerProtocol
