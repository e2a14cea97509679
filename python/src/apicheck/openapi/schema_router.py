"""Schema-aware routing: find the OpenAPI operation that serves a request."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote, urlsplit

import httpx

from apicheck.errors import MethodNotAllowedError, RouteNotFoundError
from apicheck.openapi.loader import HTTP_METHODS, OpenApiDocument

_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")
# Methods a path item may define besides the ones in HTTP_METHODS
_EXTRA_METHODS = ("HEAD", "OPTIONS", "TRACE")


@dataclass(frozen=True)
class Route:
    """A matched OpenAPI operation.

    Attributes:
        path: The path template as written in the document.
        method: Upper-case HTTP method.
        path_item: The resolved path item.
        operation: The operation object for ``method``.
    """

    path: str
    method: str
    path_item: dict[str, Any] = field(repr=False)
    operation: dict[str, Any] = field(repr=False)


@dataclass(frozen=True)
class _CompiledPath:
    template: str
    regex: re.Pattern[str]
    names: tuple[str, ...]
    literal_length: int


def _compile_template(template: str) -> _CompiledPath:
    pattern = ["^"]
    names: list[str] = []
    pos = 0
    for match in _PLACEHOLDER_RE.finditer(template):
        pattern.append(re.escape(template[pos:match.start()]))
        pattern.append(f"(?P<p{len(names)}>[^/]+)")
        names.append(match.group(1))
        pos = match.end()
    pattern.append(re.escape(template[pos:]))
    pattern.append("$")
    literal_length = len(_PLACEHOLDER_RE.sub("", template))
    return _CompiledPath(template, re.compile("".join(pattern)), tuple(names), literal_length)


def _server_base_path(server: dict[str, Any]) -> str:
    """Return the path component of a server URL, variables substituted."""
    url = server.get("url", "")
    for name, variable in (server.get("variables") or {}).items():
        url = url.replace("{" + name + "}", str(variable.get("default", "")))
    return urlsplit(url).path.rstrip("/")


class OpenApiRouter:
    """Matches requests against the paths of an OpenAPI document.

    Only the path component of each server URL is significant: requests are
    accepted for any host, with the server base path stripped first.
    Concrete templates win over parameterised ones, so ``/items/latest`` is
    preferred to ``/items/{id}``.
    """

    def __init__(self, document: OpenApiDocument) -> None:
        self.document = document
        bases = {_server_base_path(s) for s in document.servers()}
        self._base_paths = sorted(bases or {""}, key=len, reverse=True)
        compiled = [_compile_template(t) for t in document.paths()]
        self._paths = sorted(compiled, key=lambda c: (len(c.names), -c.literal_length))

    def find_route(self, request: httpx.Request) -> tuple[Route, dict[str, str]]:
        """Find the operation for a request.

        Args:
            request: The request to route.

        Returns:
            The matched route and the decoded path parameters.

        Raises:
            RouteNotFoundError: If no path template matches.
            MethodNotAllowedError: If a path matches but has no operation for
                the request method.
        """
        raw_path = request.url.raw_path.decode("ascii").split("?", 1)[0]
        return self.match(request.method, raw_path)

    def match(self, method: str, url_path: str) -> tuple[Route, dict[str, str]]:
        """Match a method and a percent-encoded URL path."""
        method = method.upper()
        matched_template: str | None = None
        for relative in self._candidate_paths(url_path):
            for compiled in self._paths:
                m = compiled.regex.match(relative)
                if m is None:
                    continue
                matched_template = compiled.template
                item = self.document.path_item(compiled.template) or {}
                operation = item.get(method.lower())
                if operation is None:
                    continue
                params = {
                    name: unquote(m.group(f"p{i}")) for i, name in enumerate(compiled.names)
                }
                return Route(compiled.template, method, item, operation), params

        if matched_template is not None:
            allowed = ", ".join(sorted(self.allowed_methods(matched_template)))
            raise MethodNotAllowedError(
                f"method {method} not allowed (allowed: {allowed})", field=url_path
            )
        raise RouteNotFoundError("no matching operation was found", field=url_path)

    def _candidate_paths(self, url_path: str) -> list[str]:
        candidates = []
        for base in self._base_paths:
            if not base:
                candidates.append(url_path)
            elif url_path == base or url_path.startswith(base + "/"):
                candidates.append(url_path[len(base):] or "/")
        return candidates

    def allowed_methods(self, template: str) -> set[str]:
        """Return the methods the document defines for a path template."""
        item = self.document.path_item(template) or {}
        return {m for m in HTTP_METHODS + _EXTRA_METHODS if item.get(m.lower()) is not None}
