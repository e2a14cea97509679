"""Error definitions for apicheck.

Three families live here:

* ``StartupError`` -- fatal problems found before the server or test
  session can run (missing env file, unreadable OpenAPI document). The
  CLI maps these to exit code 1.
* ``OpenApiValidationError`` -- a request or response that does not match
  the OpenAPI document, raised by the validation harness.
* ``RouteDiscrepancyError`` -- the router and the OpenAPI document disagree
  on which paths and methods exist.

Business outcomes (invalid id, entity not found) are ordinary HTTP
responses and never raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from apicheck.openapi.consistency import Discrepancy


class ApiCheckError(Exception):
    """Base class for all apicheck errors."""


# -- Fatal startup errors ------------------------------------------------------


class StartupError(ApiCheckError):
    """A fatal error that must terminate the process.

    Attributes:
        exit_code: Process exit code the entry point should use.
    """

    exit_code: int = 1


class EnvFileError(StartupError):
    """The env file could not be found or read."""

    def __init__(self, path: str, detail: str = "file not found") -> None:
        super().__init__(f"Could not initialize env file {path}: {detail}")
        self.path = path


class SpecLoadError(StartupError):
    """The OpenAPI document is missing, malformed, or invalid."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Failed to load OpenAPI document {path}: {detail}")
        self.path = path
        self.detail = detail


class ConfigError(StartupError):
    """The YAML configuration file is unreadable or invalid."""


# -- OpenAPI request/response validation --------------------------------------


class OpenApiValidationError(ApiCheckError):
    """A request/response exchange violates the OpenAPI document.

    Attributes:
        reason: Human-readable description of the violated constraint.
        field: Optional location of the offending value (parameter name,
            ``body``, header name, ...).
    """

    stage = "validation"

    def __init__(self, reason: str, field: str | None = None) -> None:
        self.reason = reason
        self.field = field
        super().__init__(self._render())

    def _render(self) -> str:
        if self.field:
            return f"{self.stage}: {self.field}: {self.reason}"
        return f"{self.stage}: {self.reason}"


class RouteNotFoundError(OpenApiValidationError):
    """No path in the OpenAPI document matches the request."""

    stage = "find route"


class MethodNotAllowedError(RouteNotFoundError):
    """The path matches but the document defines no operation for the method."""


class SecurityRequirementsError(OpenApiValidationError):
    """None of the operation's security requirements were satisfied."""

    stage = "security requirements"


class RequestValidationFailed(OpenApiValidationError):
    """The request does not match the operation's parameters or body."""

    stage = "request validation"


class ResponseValidationFailed(OpenApiValidationError):
    """The handler's response does not match the operation's responses."""

    stage = "response validation"


class BodySubstringMismatch(OpenApiValidationError):
    """The response body does not contain the expected substring."""

    stage = "body check"


class ValidationTimeoutError(OpenApiValidationError):
    """Validation plus handler invocation exceeded the allowed time."""

    stage = "timeout"


# -- Route table consistency ---------------------------------------------------


class RouteDiscrepancyError(ApiCheckError):
    """The router and the OpenAPI document expose different routes.

    Attributes:
        discrepancies: Every discrepancy found, not just the first one.
    """

    def __init__(self, discrepancies: list[Discrepancy]) -> None:
        self.discrepancies = list(discrepancies)
        lines = "\n".join(str(d) for d in self.discrepancies)
        super().__init__(f"Route discrepancies found:\n{lines}")
