"""OpenAPI/router consistency checking.

Compares the route table of the OpenAPI document with the route table of
the live app in both directions and collects every mismatch.  Message order
follows dict iteration order and is not part of the contract; compare
reports as sets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from apicheck.errors import RouteDiscrepancyError
from apicheck.openapi.loader import OpenApiDocument
from apicheck.openapi.routes import PathMethodTable, openapi_path_table, router_path_table

logger = logging.getLogger(__name__)

MISSING_IN_ROUTER = "router"
MISSING_IN_OPENAPI = "openapi"


@dataclass(frozen=True)
class Discrepancy:
    """A path or method present in exactly one of the two route tables.

    Attributes:
        path: The path template.
        method: The HTTP method, or None when the whole path is missing.
        missing_in: Which side lacks it: ``"router"`` or ``"openapi"``.
    """

    path: str
    method: str | None
    missing_in: Literal["router", "openapi"]

    def __str__(self) -> str:
        where = "Router" if self.missing_in == MISSING_IN_ROUTER else "OpenAPI file."
        if self.method is None:
            return f"Missing path [{self.path}] in {where}"
        return f"Missing method [{self.method}] for path [{self.path}] in {where}"


@dataclass
class RouteConsistencyReport:
    """Result of a consistency check."""

    discrepancies: list[Discrepancy] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.discrepancies

    @property
    def missing_in_router(self) -> list[Discrepancy]:
        return [d for d in self.discrepancies if d.missing_in == MISSING_IN_ROUTER]

    @property
    def missing_in_openapi(self) -> list[Discrepancy]:
        return [d for d in self.discrepancies if d.missing_in == MISSING_IN_OPENAPI]

    def format(self) -> str:
        return "\n".join(str(d) for d in self.discrepancies)

    def raise_for_discrepancies(self) -> None:
        """Raise RouteDiscrepancyError listing every discrepancy, if any."""
        if self.discrepancies:
            raise RouteDiscrepancyError(self.discrepancies)


def check_route_consistency(
    openapi_table: PathMethodTable, router_table: PathMethodTable
) -> RouteConsistencyReport:
    """Compare two route tables in both directions.

    Args:
        openapi_table: Route table built from the OpenAPI document.
        router_table: Route table built from the live app.

    Returns:
        A report with one Discrepancy per missing path or method.  A missing
        path is reported once; its methods are not listed individually.
    """
    report = RouteConsistencyReport()

    # OpenAPI -> router
    for path, methods in openapi_table.items():
        router_methods = router_table.get(path)
        if router_methods is None:
            report.discrepancies.append(Discrepancy(path, None, MISSING_IN_ROUTER))
            continue
        for method in methods:
            if method not in router_methods:
                report.discrepancies.append(Discrepancy(path, method, MISSING_IN_ROUTER))

    # Router -> OpenAPI
    for path, methods in router_table.items():
        openapi_methods = openapi_table.get(path)
        if openapi_methods is None:
            report.discrepancies.append(Discrepancy(path, None, MISSING_IN_OPENAPI))
            continue
        for method in methods:
            if method not in openapi_methods:
                report.discrepancies.append(Discrepancy(path, method, MISSING_IN_OPENAPI))

    if report.discrepancies:
        logger.warning(
            "Found %d route discrepancies",
            len(report.discrepancies),
            extra={"discrepancies": [str(d) for d in report.discrepancies]},
        )
    return report


def check_app_against_document(
    app: Any, document: OpenApiDocument, include_hidden: bool = False
) -> RouteConsistencyReport:
    """Extract both route tables and compare them."""
    return check_route_consistency(
        openapi_path_table(document),
        router_path_table(app, include_hidden=include_hidden),
    )
