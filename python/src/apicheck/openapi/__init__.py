"""OpenAPI document loading, route consistency checks and contract testing."""

from apicheck.openapi.consistency import (
    Discrepancy,
    RouteConsistencyReport,
    check_app_against_document,
    check_route_consistency,
)
from apicheck.openapi.harness import (
    OpenApiTestRequestData,
    RecordedResponse,
    ResponseRecorder,
    openapi_test_request,
)
from apicheck.openapi.loader import OpenApiDocument, load_openapi_document
from apicheck.openapi.routes import PathMethodTable, openapi_path_table, router_path_table
from apicheck.openapi.schema_router import OpenApiRouter, Route
from apicheck.openapi.validation import (
    AuthenticationInput,
    OpenApiValidator,
    ValidationOptions,
    noop_authentication,
)

__all__ = [
    "AuthenticationInput",
    "Discrepancy",
    "OpenApiDocument",
    "OpenApiRouter",
    "OpenApiTestRequestData",
    "OpenApiValidator",
    "PathMethodTable",
    "RecordedResponse",
    "ResponseRecorder",
    "Route",
    "RouteConsistencyReport",
    "ValidationOptions",
    "check_app_against_document",
    "check_route_consistency",
    "load_openapi_document",
    "noop_authentication",
    "openapi_path_table",
    "openapi_test_request",
    "router_path_table",
]
