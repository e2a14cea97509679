"""apicheck - HTTP API skeleton with OpenAPI contract checks."""

__version__ = "0.1.0"
