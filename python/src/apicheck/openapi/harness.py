"""OpenAPI-driven request/response test harness.

``openapi_test_request`` performs a full check of one handler call:

1. Find the operation for the request in the OpenAPI document.
2. Validate the request (control what gets checked with
   ``OpenApiTestRequestData.request_options``).
3. Run the handler against a ``ResponseRecorder`` instead of a socket.
4. Validate the recorded response; undocumented statuses always fail.
5. Check that the expected substring appears in the body.

Example::

    data = OpenApiTestRequestData(
        request=httpx.Request("GET", "https://to-be-defined.whoknows/api/ping"),
        document=openapi_doc,
        request_options=ValidationOptions(authentication_func=noop_authentication),
        response_options=ValidationOptions(),
        handler=PingHandler().ping,
        expected_body_substring="pong",
    )
    await openapi_test_request(data)
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
from starlette.requests import Request
from starlette.responses import Response

from apicheck.errors import BodySubstringMismatch, OpenApiValidationError, ValidationTimeoutError
from apicheck.openapi.loader import OpenApiDocument
from apicheck.openapi.schema_router import OpenApiRouter
from apicheck.openapi.validation import OpenApiValidator, ValidationOptions

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

Handler = Callable[[Request], Awaitable[Response]]


@dataclass
class OpenApiTestRequestData:
    """Everything needed to test one handler call against the document.

    Attributes:
        request: The request to send. Build it in the test; any host works.
        document: The OpenAPI document, loaded once by the caller.
        handler: The endpoint under test, called with a Starlette Request.
        request_options: Options for request validation.
        response_options: Options for response validation. A copy with
            ``include_response_status`` enabled is used; this object is left
            untouched.
        expected_body_substring: Must appear in the response body. Empty
            string skips the check.
        path_params: Extra path parameters for the handler's scope, merged
            over the ones matched from the document.
        timeout: Seconds allowed for validation plus handler invocation.
    """

    request: httpx.Request
    document: OpenApiDocument
    handler: Handler
    request_options: ValidationOptions = field(default_factory=ValidationOptions)
    response_options: ValidationOptions = field(default_factory=ValidationOptions)
    expected_body_substring: str = ""
    path_params: Mapping[str, str] | None = None
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class RecordedResponse:
    """A response captured by ``ResponseRecorder``."""

    status_code: int = 200
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class ResponseRecorder:
    """In-memory ASGI ``send`` target that records a handler's output."""

    def __init__(self) -> None:
        self.response = RecordedResponse()
        self._chunks: list[bytes] = []

    async def send(self, message: dict[str, Any]) -> None:
        if message["type"] == "http.response.start":
            self.response.status_code = message["status"]
            self.response.headers = httpx.Headers(list(message.get("headers", [])))
        elif message["type"] == "http.response.body":
            self._chunks.append(message.get("body", b""))
            self.response.body = b"".join(self._chunks)

    async def record(self, response: Response, scope: dict[str, Any]) -> RecordedResponse:
        """Drive ``response`` as an ASGI app and return what it sent."""

        async def receive() -> dict[str, Any]:
            return {"type": "http.disconnect"}

        await response(scope, receive, self.send)
        return self.response


def build_scope(request: httpx.Request, path_params: Mapping[str, str]) -> dict[str, Any]:
    """Build an ASGI HTTP scope for an httpx request."""
    url = request.url
    raw_path, _, query = url.raw_path.partition(b"?")
    port = url.port or (443 if url.scheme == "https" else 80)
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": request.method,
        "scheme": url.scheme,
        "path": url.path,
        "raw_path": raw_path,
        "query_string": query,
        "root_path": "",
        "headers": [(k.lower(), v) for k, v in request.headers.raw],
        "server": (url.host, port),
        "client": ("testclient", 50000),
        "path_params": dict(path_params),
    }


def _starlette_request(request: httpx.Request, scope: dict[str, Any]) -> Request:
    body = request.content
    sent = False

    async def receive() -> dict[str, Any]:
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


async def _run(data: OpenApiTestRequestData) -> RecordedResponse:
    router = OpenApiRouter(data.document)
    validator = OpenApiValidator(data.document)

    route, path_params = router.find_route(data.request)
    logger.debug("Matched %s %s", route.method, route.path)

    data.request.read()
    validator.validate_request(data.request, route, path_params, data.request_options)

    scope = build_scope(data.request, {**path_params, **(data.path_params or {})})
    response = await data.handler(_starlette_request(data.request, scope))
    recorded = await ResponseRecorder().record(response, scope)

    response_options = dataclasses.replace(data.response_options, include_response_status=True)
    validator.validate_response(route, recorded, response_options)

    if data.expected_body_substring and data.expected_body_substring not in recorded.text:
        raise BodySubstringMismatch(
            f"expected substring {data.expected_body_substring!r} not found in {recorded.text!r}",
            field="response body",
        )
    return recorded


async def openapi_test_request(data: OpenApiTestRequestData) -> RecordedResponse:
    """Validate a request, run the handler and validate its response.

    Args:
        data: Request, document, options, handler and expectations.

    Returns:
        The recorded response, for further assertions.

    Raises:
        RouteNotFoundError: No operation in the document matches the request.
        SecurityRequirementsError: The operation's security was not satisfied.
        RequestValidationFailed: The request violates the document.
        ResponseValidationFailed: The response violates the document.
        BodySubstringMismatch: The expected substring is missing.
        ValidationTimeoutError: The whole sequence took longer than
            ``data.timeout`` seconds.
    """
    task = asyncio.ensure_future(_run(data))
    try:
        done, _ = await asyncio.wait({task}, timeout=data.timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if not done:
        # Deadline only: a TimeoutError raised by the handler propagates as is
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise ValidationTimeoutError(
            f"context deadline exceeded after {data.timeout}s", field=str(data.request.url)
        )

    try:
        return task.result()
    except OpenApiValidationError as exc:
        logger.info(
            "Contract check failed for %s %s: %s",
            data.request.method,
            data.request.url,
            exc.reason,
            extra={"stage": exc.stage, "field": exc.field, "route": str(data.request.url)},
        )
        raise
