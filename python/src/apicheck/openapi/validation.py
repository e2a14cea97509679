"""Request and response validation against an OpenAPI operation.

``OpenApiValidator`` checks a request (security, parameters, body) and a
recorded response (status, headers, body) against the operation matched by
``OpenApiRouter``.  Schemas are checked with ``jsonschema``; the whole
document is registered as one ``referencing`` resource so that
``#/components/...`` references resolve from any inline schema.

OpenAPI 3.0 schemas are checked as JSON Schema draft 4 (with ``nullable``
translated to a ``null`` type), OpenAPI 3.1 schemas as draft 2020-12.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from http.cookies import SimpleCookie
from typing import Any, Protocol
from urllib.parse import parse_qsl

import httpx
from jsonschema import Draft4Validator, Draft202012Validator
from jsonschema.exceptions import best_match
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT4, DRAFT202012

from apicheck.errors import (
    OpenApiValidationError,
    RequestValidationFailed,
    ResponseValidationFailed,
    SecurityRequirementsError,
)
from apicheck.openapi.loader import OpenApiDocument
from apicheck.openapi.schema_router import Route

logger = logging.getLogger(__name__)

_DOCUMENT_URI = "urn:apicheck:openapi"

# Header parameters the OpenAPI specification says must be ignored
_IGNORED_HEADER_PARAMS = {"accept", "content-type", "authorization"}

# Plain ASCII numerals, matched with fullmatch
_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthenticationInput:
    """What an authentication function gets to decide on.

    Attributes:
        request: The request under validation.
        route: The matched operation.
        scheme_name: Name of the security scheme in ``components``.
        scheme: The resolved security scheme object.
        scopes: Scopes listed by the security requirement.
    """

    request: httpx.Request
    route: Route
    scheme_name: str
    scheme: dict[str, Any]
    scopes: list[str]


AuthenticationFunc = Callable[[AuthenticationInput], None]


def noop_authentication(auth: AuthenticationInput) -> None:
    """Accept every security requirement (for unprotected test requests)."""
    return None


@dataclass
class ValidationOptions:
    """Switches controlling what gets validated.

    Attributes:
        exclude_request_body: Skip request body validation.
        exclude_request_query_params: Skip query parameter validation.
        exclude_response_body: Skip response body validation.
        include_response_status: Fail when the response status is not
            declared by the operation (otherwise such responses pass).
        authentication_func: Called once per security scheme of a
            requirement; raise ``SecurityRequirementsError`` to reject.
            When None, operations with security requirements fail.
    """

    exclude_request_body: bool = False
    exclude_request_query_params: bool = False
    exclude_response_body: bool = False
    include_response_status: bool = False
    authentication_func: AuthenticationFunc | None = None


class RecordedResponseLike(Protocol):
    status_code: int
    headers: httpx.Headers
    body: bytes


# ---------------------------------------------------------------------------
# Schema helpers
# ---------------------------------------------------------------------------


def _translate_nullable(node: Any) -> Any:
    """Rewrite OpenAPI 3.0 ``nullable: true`` into a JSON Schema null type."""
    if isinstance(node, dict):
        out = {k: _translate_nullable(v) for k, v in node.items()}
        if out.get("nullable") is True and isinstance(out.get("type"), str):
            out["type"] = [out["type"], "null"]
        return out
    if isinstance(node, list):
        return [_translate_nullable(v) for v in node]
    return node


def _absolutize_refs(node: Any) -> Any:
    """Point local ``#/...`` references at the registered document."""
    if isinstance(node, dict):
        out = {k: _absolutize_refs(v) for k, v in node.items()}
        ref = out.get("$ref")
        if isinstance(ref, str) and ref.startswith("#"):
            out["$ref"] = _DOCUMENT_URI + ref
        return out
    if isinstance(node, list):
        return [_absolutize_refs(v) for v in node]
    return node


def _match_media_type(content: Mapping[str, Any], media_type: str) -> dict[str, Any] | None:
    """Pick the content entry for a media type (exact, ``type/*``, ``*/*``)."""
    lowered = {k.lower(): v for k, v in content.items()}
    if media_type in lowered:
        return lowered[media_type] or {}
    major = media_type.split("/", 1)[0]
    for candidate in (f"{major}/*", "*/*"):
        if candidate in lowered:
            return lowered[candidate] or {}
    return None


def _is_json(media_type: str) -> bool:
    return media_type == "application/json" or media_type.endswith("+json")


def _bare_media_type(header_value: str | None) -> str:
    return (header_value or "").split(";", 1)[0].strip().lower()


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class OpenApiValidator:
    """Validates requests and responses against one OpenAPI document."""

    def __init__(self, document: OpenApiDocument) -> None:
        self.document = document
        contents = document.spec
        if document.is_v31:
            self._validator_cls = Draft202012Validator
            specification = DRAFT202012
        else:
            self._validator_cls = Draft4Validator
            specification = DRAFT4
            contents = _translate_nullable(copy.deepcopy(contents))
        self._registry = Registry().with_resource(
            _DOCUMENT_URI, Resource(contents=contents, specification=specification)
        )

    # -- schema ------------------------------------------------------------

    def check_schema(
        self,
        schema: Any,
        value: Any,
        field: str,
        error_cls: type[OpenApiValidationError],
    ) -> None:
        """Validate ``value`` against an inline or referenced schema.

        Raises:
            error_cls: With the most relevant schema error as reason.
        """
        prepared = _absolutize_refs(schema)
        if not self.document.is_v31:
            prepared = _translate_nullable(prepared)
        validator = self._validator_cls(
            prepared,
            registry=self._registry,
            format_checker=self._validator_cls.FORMAT_CHECKER,
        )
        error = best_match(validator.iter_errors(value))
        if error is not None:
            location = field if error.json_path == "$" else f"{field} {error.json_path}"
            raise error_cls(f"doesn't match schema: {error.message}", field=location)

    def _coerce(self, raw: str, schema: Any) -> Any:
        """Convert a string parameter value to the type its schema names.

        Values that do not convert are returned unchanged so the schema check
        reports the mismatch.
        """
        schema = self.document.resolve(schema) or {}
        types = schema.get("type")
        if isinstance(types, str):
            types = [types]
        for typ in types or []:
            if typ == "integer" and _INT_RE.fullmatch(raw):
                return int(raw)
            if typ == "number" and _FLOAT_RE.fullmatch(raw):
                return int(raw) if _INT_RE.fullmatch(raw) else float(raw)
            if typ == "boolean" and raw in ("true", "false"):
                return raw == "true"
            if typ == "null" and raw == "":
                return None
            if typ == "array":
                items = schema.get("items") or {}
                return [self._coerce(part, items) for part in raw.split(",")]
            if typ == "string":
                return raw
        return raw

    # -- request -----------------------------------------------------------

    def validate_request(
        self,
        request: httpx.Request,
        route: Route,
        path_params: Mapping[str, str],
        options: ValidationOptions | None = None,
    ) -> None:
        """Validate a request against the matched operation.

        Raises:
            SecurityRequirementsError: If no security requirement is met.
            RequestValidationFailed: If a parameter or the body is invalid.
        """
        options = options or ValidationOptions()
        self._validate_security(request, route, options)
        for param in self._parameters(route):
            self._validate_parameter(request, param, path_params, options)
        if not options.exclude_request_body:
            self._validate_request_body(request, route)

    def _validate_security(
        self, request: httpx.Request, route: Route, options: ValidationOptions
    ) -> None:
        requirements = route.operation.get("security", self.document.security())
        if not requirements:
            return
        if options.authentication_func is None:
            raise SecurityRequirementsError("authentication function is missing")

        schemes = (self.document.spec.get("components") or {}).get("securitySchemes") or {}
        failures: list[str] = []
        for requirement in requirements:
            try:
                for name, scopes in requirement.items():
                    if name not in schemes:
                        raise SecurityRequirementsError(f"unknown security scheme {name!r}")
                    options.authentication_func(
                        AuthenticationInput(
                            request=request,
                            route=route,
                            scheme_name=name,
                            scheme=self.document.resolve(schemes[name]),
                            scopes=list(scopes or []),
                        )
                    )
            except SecurityRequirementsError as exc:
                failures.append(exc.reason)
                continue
            # An empty requirement ({}) makes security optional
            return
        raise SecurityRequirementsError("; ".join(failures) or "security requirements failed")

    def _parameters(self, route: Route) -> list[dict[str, Any]]:
        """Path-level parameters overridden by operation-level ones."""
        merged: dict[tuple[str, str], dict[str, Any]] = {}
        for source in (route.path_item.get("parameters"), route.operation.get("parameters")):
            for param in source or []:
                param = self.document.resolve(param)
                merged[(param["name"], param["in"])] = param
        return list(merged.values())

    def _validate_parameter(
        self,
        request: httpx.Request,
        param: dict[str, Any],
        path_params: Mapping[str, str],
        options: ValidationOptions,
    ) -> None:
        name = param["name"]
        location = param["in"]
        field = f'parameter "{name}" in {location}'
        schema = param.get("schema")

        if location == "path":
            raw = path_params.get(name)
            required = True
        elif location == "query":
            if options.exclude_request_query_params:
                return
            values = request.url.params.get_list(name)
            required = bool(param.get("required"))
            if not values:
                raw = None
            elif len(values) > 1:
                # Repeated (exploded) query parameter
                if schema is not None:
                    items = (self.document.resolve(schema) or {}).get("items") or {}
                    value = [self._coerce(v, items) for v in values]
                    self.check_schema(schema, value, field, RequestValidationFailed)
                return
            else:
                raw = values[0]
        elif location == "header":
            if name.lower() in _IGNORED_HEADER_PARAMS:
                return
            raw = request.headers.get(name)
            required = bool(param.get("required"))
        elif location == "cookie":
            cookie = SimpleCookie()
            cookie.load(request.headers.get("cookie", ""))
            morsel = cookie.get(name)
            raw = morsel.value if morsel is not None else None
            required = bool(param.get("required"))
        else:
            raise RequestValidationFailed(f"unsupported parameter location {location!r}", field=field)

        if raw is None:
            if required:
                raise RequestValidationFailed("value is required but missing", field=field)
            return
        if schema is None:
            return
        self.check_schema(schema, self._coerce(raw, schema), field, RequestValidationFailed)

    def _validate_request_body(self, request: httpx.Request, route: Route) -> None:
        body_spec = self.document.resolve(route.operation.get("requestBody"))
        if not body_spec:
            return

        content = request.content
        if not content:
            if body_spec.get("required"):
                raise RequestValidationFailed("value is required but missing", field="request body")
            return

        media_type = _bare_media_type(request.headers.get("content-type"))
        media = _match_media_type(body_spec.get("content") or {}, media_type)
        if media is None:
            raise RequestValidationFailed(
                f"header Content-Type has unexpected value: {media_type!r}",
                field="request body",
            )
        schema = media.get("schema")
        if schema is None:
            return
        decoded = self._decode_body(content, media_type, "request body", RequestValidationFailed)
        if decoded is _UNDECODED:
            return
        self.check_schema(schema, decoded, "request body", RequestValidationFailed)

    # -- response ----------------------------------------------------------

    def validate_response(
        self,
        route: Route,
        response: RecordedResponseLike,
        options: ValidationOptions | None = None,
    ) -> None:
        """Validate a recorded response against the matched operation.

        Raises:
            ResponseValidationFailed: If status, headers or body do not match.
        """
        options = options or ValidationOptions()
        status = response.status_code
        spec = self._lookup_response(route, status)
        if spec is None:
            if options.include_response_status:
                raise ResponseValidationFailed(
                    f"status code {status} not defined in responses", field="status"
                )
            logger.debug("Status %d undocumented for %s %s; skipped", status, route.method, route.path)
            return
        spec = self.document.resolve(spec)

        for name, header in (spec.get("headers") or {}).items():
            if name.lower() == "content-type":
                continue
            header = self.document.resolve(header)
            field = f'response header "{name}"'
            raw = response.headers.get(name)
            if raw is None:
                if header.get("required"):
                    raise ResponseValidationFailed("value is required but missing", field=field)
                continue
            if header.get("schema") is not None:
                schema = header["schema"]
                self.check_schema(schema, self._coerce(raw, schema), field, ResponseValidationFailed)

        if options.exclude_response_body:
            return
        content = spec.get("content")
        if not content:
            return

        media_type = _bare_media_type(response.headers.get("content-type"))
        media = _match_media_type(content, media_type)
        if media is None:
            raise ResponseValidationFailed(
                f"response header Content-Type has unexpected value: {media_type!r}",
                field="response body",
            )
        schema = media.get("schema")
        if schema is None:
            return
        if not response.body:
            raise ResponseValidationFailed("body is empty but a schema is declared", field="response body")
        decoded = self._decode_body(response.body, media_type, "response body", ResponseValidationFailed)
        if decoded is _UNDECODED:
            return
        self.check_schema(schema, decoded, "response body", ResponseValidationFailed)

    def _lookup_response(self, route: Route, status: int) -> Any:
        """Find the response object for a status: exact, ``NXX`` range, default."""
        responses = {str(k).upper(): v for k, v in (route.operation.get("responses") or {}).items()}
        for key in (str(status), f"{status // 100}XX", "DEFAULT"):
            if key in responses:
                return responses[key]
        return None

    # -- bodies ------------------------------------------------------------

    @staticmethod
    def _decode_body(
        body: bytes,
        media_type: str,
        field: str,
        error_cls: type[OpenApiValidationError],
    ) -> Any:
        """Decode a body for schema validation; ``_UNDECODED`` if unsupported."""
        try:
            if _is_json(media_type):
                return json.loads(body)
            if media_type.startswith("text/"):
                return body.decode("utf-8")
            if media_type == "application/x-www-form-urlencoded":
                return dict(parse_qsl(body.decode("utf-8"), keep_blank_values=True))
        except (ValueError, UnicodeDecodeError) as exc:
            raise error_cls(f"failed to decode {media_type}: {exc}", field=field) from exc
        return _UNDECODED


# Sentinel for bodies whose media type has no decoder
_UNDECODED = object()
