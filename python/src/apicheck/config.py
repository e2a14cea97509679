"""Configuration loading and Pydantic models for apicheck."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from apicheck.errors import ConfigError, EnvFileError

# Repository root (python/src/apicheck/config.py -> repo root)
PROJECT_ROOT = Path(__file__).resolve().parents[3]

# Document used for each API variant when openapi.spec_path is not set
DEFAULT_SPEC_PATHS = {
    "records": "schemas/openapi.yml",
    "errors": "schemas/openapi-errors.yml",
}


class ServerConfig(BaseModel):
    """Server binding and runtime configuration."""

    host: str = "0.0.0.0"
    port: int = 9200
    shutdown_timeout: int = 5
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"
    variant: Literal["records", "errors"] = "records"


class OpenApiConfig(BaseModel):
    """Location of the OpenAPI document describing the API."""

    spec_path: str | None = None

    def resolved_path(self, variant: str = "records") -> Path:
        """Return the spec path, anchored at the project root if relative.

        Without an explicit ``spec_path`` the document shipped for
        ``variant`` is used.
        """
        path = Path(self.spec_path or DEFAULT_SPEC_PATHS[variant])
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        return path


class ObservabilityConfig(BaseModel):
    """Metrics configuration."""

    metrics: bool = True


class ApiCheckConfig(BaseModel):
    """Top-level apicheck configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    openapi: OpenApiConfig = Field(default_factory=OpenApiConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_server(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the server section from YAML data into a dict for Pydantic."""
    if data is None:
        return {}
    keys = ("host", "port", "shutdown_timeout", "log_level", "log_format", "variant")
    return {key: data[key] for key in keys if key in data}


def _parse_openapi(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the openapi section from YAML data.

    Accepts both ``openapi.spec_path`` and the shorter ``openapi.path``.
    """
    if data is None:
        return {}
    path = data.get("spec_path", data.get("path"))
    return {"spec_path": path} if path else {}


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {"metrics": data.get("metrics", True)}


def load_config(path: Path) -> ApiCheckConfig:
    """Load an ApiCheckConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated ApiCheckConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigError: If the file is not valid YAML, a section is not a
            mapping, or a value fails validation.
    """
    with open(path, "r") as fh:
        try:
            raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Invalid configuration in {path}: top level must be a mapping")
    for section in ("server", "openapi", "observability"):
        if raw.get(section) is not None and not isinstance(raw[section], dict):
            raise ConfigError(f"Invalid configuration in {path}: '{section}' must be a mapping")

    try:
        return ApiCheckConfig(
            server=ServerConfig(**_parse_server(raw.get("server"))),
            openapi=OpenApiConfig(**_parse_openapi(raw.get("openapi"))),
            observability=ObservabilityConfig(
                **_parse_observability(raw.get("observability"))
            ),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc


def load_env_file(path: Path, override: bool = False) -> None:
    """Load environment variables from an env file.

    The env file is mandatory: the server refuses to start without it.

    Args:
        path: Path to the env file.
        override: Whether values in the file replace existing variables.

    Raises:
        EnvFileError: If the file does not exist or cannot be read.
    """
    if not Path(path).is_file():
        raise EnvFileError(str(path))
    try:
        load_dotenv(path, override=override)
    except OSError as exc:
        raise EnvFileError(str(path), str(exc)) from exc


# Environment variable -> (section, field)
_ENV_OVERRIDES = {
    "APICHECK_HOST": ("server", "host"),
    "APICHECK_PORT": ("server", "port"),
    "APICHECK_SHUTDOWN_TIMEOUT": ("server", "shutdown_timeout"),
    "APICHECK_LOG_LEVEL": ("server", "log_level"),
    "APICHECK_LOG_FORMAT": ("server", "log_format"),
    "APICHECK_VARIANT": ("server", "variant"),
    "APICHECK_OPENAPI_SPEC": ("openapi", "spec_path"),
}


def apply_env_overrides(
    config: ApiCheckConfig, environ: Mapping[str, str] | None = None
) -> ApiCheckConfig:
    """Return a copy of ``config`` with ``APICHECK_*`` variables applied.

    Args:
        config: The configuration loaded from YAML (or defaults).
        environ: Environment mapping. Defaults to ``os.environ``.

    Returns:
        A new, validated ApiCheckConfig.

    Raises:
        ConfigError: If an override has an invalid value.
    """
    if environ is None:
        environ = os.environ

    data = config.model_dump()
    for var, (section, field) in _ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            data[section][field] = value

    try:
        return ApiCheckConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid APICHECK_* environment override: {exc}") from exc
