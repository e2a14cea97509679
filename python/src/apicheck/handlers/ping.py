"""Ping and record lookup handlers.

Implements:
    - Ping (GET /api/ping)
    - GetRecord (GET /api/get-record/{id})
"""

import logging
import re

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from apicheck.metrics import observe_record_lookup

logger = logging.getLogger(__name__)

# The only record that exists
KNOWN_RECORD_ID = 5

# Optional sign followed by ASCII digits; used with fullmatch
_INT_RE = re.compile(r"[+-]?[0-9]+")


def error_body(code: str, message: str) -> dict[str, str]:
    """Build the structured error body shared by all error responses."""
    return {"error_code": code, "error_msg": message}


def parse_record_id(raw: str) -> int | None:
    """Parse a record id path parameter.

    Args:
        raw: The raw path segment.

    Returns:
        The id as an int, or None if it is not an integer of at least 1.
    """
    if not _INT_RE.fullmatch(raw):
        return None
    value = int(raw)
    if value < 1:
        return None
    return value


class PingHandler:
    """Serves the ping and record lookup endpoints."""

    async def ping(self, request: Request) -> Response:
        """Handle GET /api/ping."""
        return JSONResponse({"ping": "pong"}, status_code=200)

    async def get_record(self, request: Request) -> Response:
        """Handle GET /api/get-record/{id}.

        Returns 422 for an invalid id, 200 for the known record and 404 for
        any other id.
        """
        raw_id = request.path_params.get("id", "")
        record_id = parse_record_id(raw_id)

        if record_id is None:
            observe_record_lookup("invalid_id")
            return JSONResponse(
                error_body("err_invalid_id", "Id must be integer greater than 0."),
                status_code=422,
            )

        if record_id == KNOWN_RECORD_ID:
            observe_record_lookup("found")
            return JSONResponse({"id": record_id}, status_code=200)

        logger.debug("Record %d not found", record_id)
        observe_record_lookup("not_found")
        return JSONResponse(
            error_body("err_not_found", "Entity not found."),
            status_code=404,
        )
