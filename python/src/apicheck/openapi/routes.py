"""Route table extraction.

A route table (``PathMethodTable``) maps a URL path template to the set of
HTTP methods available on it.  One table is built from the OpenAPI
document, the other from the routes actually registered on the app, so the
two can be compared by ``apicheck.openapi.consistency``.

Path keys are compared verbatim: FastAPI and OpenAPI both write parameters
as ``{name}``, and no normalisation of trailing slashes or placeholder
dialects is attempted.
"""

from __future__ import annotations

from typing import Any

from starlette.routing import Mount

from apicheck.openapi.loader import HTTP_METHODS, OpenApiDocument

PathMethodTable = dict[str, set[str]]


def openapi_path_table(document: OpenApiDocument) -> PathMethodTable:
    """Build the route table described by an OpenAPI document.

    Every path appears as a key, even one that defines no operation; its
    method set is then empty.

    Args:
        document: The loaded OpenAPI document.

    Returns:
        Mapping of path -> methods with a non-null operation.
    """
    table: PathMethodTable = {}
    for path, item in document.paths().items():
        item = item or {}
        table[path] = {
            method for method in HTTP_METHODS if item.get(method.lower()) is not None
        }
    return table


def router_path_table(app: Any, include_hidden: bool = False) -> PathMethodTable:
    """Build the route table of a live FastAPI/Starlette app or APIRouter.

    Mounted sub-applications are walked recursively with their prefix.
    Routes registered with ``include_in_schema=False`` (such as
    ``/metrics``) are operational endpoints and are skipped unless
    ``include_hidden`` is set.

    Args:
        app: Anything with a ``routes`` list (FastAPI, Starlette, APIRouter).
        include_hidden: Also report routes hidden from the schema.

    Returns:
        Mapping of path -> registered methods.
    """
    table: PathMethodTable = {}
    _walk_routes(getattr(app, "routes", []), "", table, include_hidden)
    return table


def _walk_routes(routes: list[Any], prefix: str, table: PathMethodTable, include_hidden: bool) -> None:
    for route in routes:
        if isinstance(route, Mount):
            _walk_routes(route.routes, prefix + route.path, table, include_hidden)
            continue

        methods = getattr(route, "methods", None)
        if not methods:
            # WebSocket routes and bare ASGI endpoints carry no methods
            continue
        if not include_hidden and not getattr(route, "include_in_schema", True):
            continue

        path = prefix + route.path
        table.setdefault(path, set()).update(m.upper() for m in methods)
