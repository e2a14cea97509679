"""Shared pytest fixtures for apicheck tests.

A single metrics-enabled FastAPI app is created per test session to avoid
duplicate Prometheus metric registration errors (the instrumentator
registers collectors in the global prometheus_client registry).  Other
apps built in tests keep metrics disabled.

Each OpenAPI document is loaded once per session and shared read-only.  A
document that fails to load aborts the whole run.
"""

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from apicheck.config import (
    ApiCheckConfig,
    ObservabilityConfig,
    OpenApiConfig,
    ServerConfig,
)
from apicheck.errors import SpecLoadError
from apicheck.openapi.loader import OpenApiDocument, load_openapi_document
from apicheck.server import create_app

SCHEMAS_DIR = Path(__file__).resolve().parents[2] / "schemas"


def _load_or_exit(path: Path) -> OpenApiDocument:
    try:
        return load_openapi_document(path)
    except SpecLoadError as exc:
        pytest.exit(f"Failed to load OpenAPI document: {exc}", returncode=1)


def make_config(variant: str = "records", metrics: bool = False) -> ApiCheckConfig:
    """Return a test config; metrics stay off unless asked for."""
    return ApiCheckConfig(
        server=ServerConfig(host="127.0.0.1", port=9210, variant=variant),
        openapi=OpenApiConfig(spec_path=str(SCHEMAS_DIR / "openapi.yml")),
        observability=ObservabilityConfig(metrics=metrics),
    )


@pytest.fixture(scope="session")
def openapi_doc() -> OpenApiDocument:
    """The records variant document, loaded once."""
    return _load_or_exit(SCHEMAS_DIR / "openapi.yml")


@pytest.fixture(scope="session")
def errors_openapi_doc() -> OpenApiDocument:
    """The errors variant document, loaded once."""
    return _load_or_exit(SCHEMAS_DIR / "openapi-errors.yml")


@pytest.fixture(scope="session")
def config() -> ApiCheckConfig:
    """Records variant config with metrics enabled (session app only)."""
    return make_config(metrics=True)


@pytest.fixture(scope="session")
def app(config: ApiCheckConfig):
    """Create a single metrics-enabled FastAPI application for the whole session."""
    return create_app(config)


@pytest.fixture(scope="session")
def errors_app():
    """Errors variant application, metrics disabled."""
    return create_app(make_config(variant="errors"))


@pytest.fixture
async def client(app) -> AsyncClient:
    """Async test client for the session app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
async def errors_client(errors_app) -> AsyncClient:
    """Async test client for the errors variant app."""
    transport = ASGITransport(app=errors_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
