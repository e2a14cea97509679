"""Tests for OpenApiRouter request matching."""

import httpx
import pytest

from apicheck.errors import MethodNotAllowedError, RouteNotFoundError
from apicheck.openapi.loader import OpenApiDocument
from apicheck.openapi.schema_router import OpenApiRouter


def _document(paths, servers=None) -> OpenApiDocument:
    spec = {"openapi": "3.0.3", "info": {"title": "t", "version": "1"}, "paths": paths}
    if servers is not None:
        spec["servers"] = servers
    return OpenApiDocument(source="<test>", spec=spec)


_OK = {"responses": {"200": {"description": "ok"}}}


class TestFindRoute:
    """Matching requests from the shipped document."""

    def test_static_path(self, openapi_doc):
        route, params = OpenApiRouter(openapi_doc).find_route(
            httpx.Request("GET", "https://to-be-defined.whoknows/api/ping")
        )
        assert route.path == "/api/ping"
        assert route.method == "GET"
        assert route.operation["operationId"] == "ping"
        assert params == {}

    def test_path_parameter(self, openapi_doc):
        route, params = OpenApiRouter(openapi_doc).find_route(
            httpx.Request("GET", "http://localhost:9200/api/get-record/5")
        )
        assert route.path == "/api/get-record/{id}"
        assert params == {"id": "5"}

    def test_query_string_ignored(self, openapi_doc):
        route, _ = OpenApiRouter(openapi_doc).find_route(
            httpx.Request("GET", "http://localhost/api/ping?verbose=1")
        )
        assert route.path == "/api/ping"

    def test_unknown_path(self, openapi_doc):
        with pytest.raises(RouteNotFoundError) as excinfo:
            OpenApiRouter(openapi_doc).find_route(
                httpx.Request("GET", "http://localhost/api/nope")
            )
        assert not isinstance(excinfo.value, MethodNotAllowedError)

    def test_wrong_method(self, openapi_doc):
        with pytest.raises(MethodNotAllowedError, match="allowed: GET"):
            OpenApiRouter(openapi_doc).find_route(
                httpx.Request("POST", "http://localhost/api/ping")
            )

    def test_empty_path_segment_does_not_match_parameter(self, openapi_doc):
        with pytest.raises(RouteNotFoundError):
            OpenApiRouter(openapi_doc).find_route(
                httpx.Request("GET", "http://localhost/api/get-record/")
            )


class TestMatch:
    """Matching rules on synthetic documents."""

    def test_concrete_path_preferred(self):
        doc = _document({"/items/{id}": {"get": _OK}, "/items/latest": {"get": _OK}})
        route, params = OpenApiRouter(doc).match("GET", "/items/latest")
        assert route.path == "/items/latest"
        assert params == {}

    def test_percent_encoded_parameter_decoded(self):
        doc = _document({"/files/{name}": {"get": _OK}})
        _, params = OpenApiRouter(doc).match("GET", "/files/a%2Fb%20c")
        assert params == {"name": "a/b c"}

    def test_multiple_parameters(self):
        doc = _document({"/a/{x}/b/{y}": {"get": _OK}})
        _, params = OpenApiRouter(doc).match("get", "/a/1/b/two")
        assert params == {"x": "1", "y": "two"}

    def test_server_base_path_stripped(self):
        doc = _document({"/ping": {"get": _OK}}, servers=[{"url": "https://api.example.com/v1"}])
        route, _ = OpenApiRouter(doc).match("GET", "/v1/ping")
        assert route.path == "/ping"
        with pytest.raises(RouteNotFoundError):
            OpenApiRouter(doc).match("GET", "/ping")

    def test_server_variables_substituted(self):
        doc = _document(
            {"/ping": {"get": _OK}},
            servers=[
                {
                    "url": "https://example.com/{version}",
                    "variables": {"version": {"default": "v2"}},
                }
            ],
        )
        route, _ = OpenApiRouter(doc).match("GET", "/v2/ping")
        assert route.path == "/ping"

    def test_path_level_ref_resolved(self):
        doc = OpenApiDocument(
            source="<test>",
            spec={
                "openapi": "3.0.3",
                "info": {"title": "t", "version": "1"},
                "paths": {"/x": {"$ref": "#/x-shared/item"}},
                "x-shared": {"item": {"get": _OK}},
            },
        )
        route, _ = OpenApiRouter(doc).match("GET", "/x")
        assert route.path == "/x"
