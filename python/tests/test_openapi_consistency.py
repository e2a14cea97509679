"""Router / OpenAPI document alignment tests."""

from fastapi import APIRouter, FastAPI

from apicheck.errors import RouteDiscrepancyError
from apicheck.openapi.consistency import (
    Discrepancy,
    check_app_against_document,
    check_route_consistency,
)
from apicheck.openapi.routes import openapi_path_table, router_path_table
from apicheck.router import setup_router
from apicheck.server import create_app

from conftest import make_config


async def _noop():
    return {}


class TestRegisteredRoutes:
    """The shipped routers must match their documents exactly."""

    def test_records_router_matches_document(self, app, openapi_doc):
        """Every documented path/method is routed and vice versa."""
        report = check_app_against_document(app, openapi_doc)
        assert report.ok, f"Route discrepancies found:\n{report.format()}"

    def test_errors_router_matches_document(self, errors_app, errors_openapi_doc):
        """The errors variant matches its own document."""
        report = check_app_against_document(errors_app, errors_openapi_doc)
        assert report.ok, f"Route discrepancies found:\n{report.format()}"

    def test_variants_do_not_match_each_others_documents(self, errors_app, openapi_doc):
        """Checking a variant against the wrong document reports both sides."""
        report = check_app_against_document(errors_app, openapi_doc)
        assert set(report.discrepancies) == {
            Discrepancy("/api/get-record/{id}", None, "router"),
            Discrepancy("/api/not-found", None, "openapi"),
            Discrepancy("/api/internal-server-error", None, "openapi"),
        }

    def test_raise_for_discrepancies_passes_when_aligned(self, app, openapi_doc):
        check_app_against_document(app, openapi_doc).raise_for_discrepancies()


class TestExtraRoutes:
    """Routes added to the app but absent from the document."""

    def test_extra_path_reported_once(self, openapi_doc):
        """A new router path yields exactly one missing-in-openapi discrepancy."""
        app = create_app(make_config())
        app.add_api_route("/api/undocumented", _noop, methods=["GET"])

        report = check_app_against_document(app, openapi_doc)

        assert not report.ok
        assert report.missing_in_openapi == [
            Discrepancy("/api/undocumented", None, "openapi")
        ]
        assert report.missing_in_router == []

    def test_extra_method_reported(self, openapi_doc):
        """A new method on a documented path is reported as missing in openapi."""
        app = create_app(make_config())
        app.add_api_route("/api/ping", _noop, methods=["DELETE"])

        report = check_app_against_document(app, openapi_doc)

        assert set(report.discrepancies) == {Discrepancy("/api/ping", "DELETE", "openapi")}

    def test_raise_lists_every_discrepancy(self, openapi_doc):
        """RouteDiscrepancyError carries all discrepancies, not just the first."""
        app = create_app(make_config())
        app.add_api_route("/api/one", _noop, methods=["GET"])
        app.add_api_route("/api/two", _noop, methods=["POST"])

        report = check_app_against_document(app, openapi_doc)
        try:
            report.raise_for_discrepancies()
        except RouteDiscrepancyError as exc:
            assert len(exc.discrepancies) == 2
            assert "Missing path [/api/one] in OpenAPI file." in str(exc)
            assert "Missing path [/api/two] in OpenAPI file." in str(exc)
        else:
            raise AssertionError("RouteDiscrepancyError not raised")


class TestMissingRoutes:
    """Documented routes the router does not serve."""

    def test_missing_path_in_router(self, openapi_doc):
        """A router without get-record misses that documented path."""
        app = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)
        router = APIRouter(prefix="/api")
        router.add_api_route("/ping", _noop, methods=["GET"])
        app.include_router(router)

        report = check_app_against_document(app, openapi_doc)

        assert set(report.discrepancies) == {
            Discrepancy("/api/get-record/{id}", None, "router")
        }

    def test_missing_method_in_router(self):
        """Path present on both sides, method only in the document."""
        report = check_route_consistency(
            {"/api/items": {"GET", "POST"}},
            {"/api/items": {"GET"}},
        )
        assert report.discrepancies == [Discrepancy("/api/items", "POST", "router")]


class TestCheckRouteConsistency:
    """Pure table comparisons."""

    def test_identical_tables(self):
        table = {"/a": {"GET"}, "/b/{id}": {"PUT", "DELETE"}}
        assert check_route_consistency(table, {k: set(v) for k, v in table.items()}).ok

    def test_empty_tables(self):
        assert check_route_consistency({}, {}).ok

    def test_both_directions_aggregated(self):
        report = check_route_consistency(
            {"/a": {"GET", "PATCH"}, "/only-spec": {"GET"}},
            {"/a": {"GET", "PUT"}, "/only-router": {"POST"}},
        )
        assert set(report.discrepancies) == {
            Discrepancy("/a", "PATCH", "router"),
            Discrepancy("/only-spec", None, "router"),
            Discrepancy("/a", "PUT", "openapi"),
            Discrepancy("/only-router", None, "openapi"),
        }

    def test_placeholder_dialects_are_not_normalised(self):
        """{id} and :id are different keys."""
        report = check_route_consistency({"/r/{id}": {"GET"}}, {"/r/:id": {"GET"}})
        assert len(report.discrepancies) == 2

    def test_trailing_slash_is_significant(self):
        report = check_route_consistency({"/a/": {"GET"}}, {"/a": {"GET"}})
        assert {d.missing_in for d in report.discrepancies} == {"router", "openapi"}

    def test_discrepancy_messages(self):
        assert str(Discrepancy("/x", None, "router")) == "Missing path [/x] in Router"
        assert (
            str(Discrepancy("/x", "GET", "openapi"))
            == "Missing method [GET] for path [/x] in OpenAPI file."
        )


class TestRouteTables:
    """Route table extraction."""

    def test_openapi_table(self, openapi_doc):
        assert openapi_path_table(openapi_doc) == {
            "/api/ping": {"GET"},
            "/api/get-record/{id}": {"GET"},
        }

    def test_errors_openapi_table(self, errors_openapi_doc):
        assert openapi_path_table(errors_openapi_doc) == {
            "/api/ping": {"GET"},
            "/api/not-found": {"GET"},
            "/api/internal-server-error": {"POST"},
        }

    def test_router_table_skips_hidden_metrics_route(self, app):
        """/metrics is registered but hidden from the contract."""
        assert "/metrics" not in router_path_table(app)
        assert router_path_table(app, include_hidden=True)["/metrics"] >= {"GET"}

    def test_router_table_from_api_router(self):
        """An APIRouter can be walked directly; its prefix is applied."""
        assert router_path_table(setup_router(variant="errors")) == {
            "/api/ping": {"GET"},
            "/api/not-found": {"GET"},
            "/api/internal-server-error": {"POST"},
        }

    def test_router_table_walks_mounts(self):
        """Mounted sub-applications are walked with their prefix."""
        inner = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)
        inner.add_api_route("/status", _noop, methods=["GET", "PUT"])
        outer = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)
        outer.mount("/v2", inner)

        assert router_path_table(outer) == {"/v2/status": {"GET", "PUT"}}
