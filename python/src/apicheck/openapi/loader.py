"""OpenAPI document loading.

The document is loaded once (per test session or at server start) and then
passed around explicitly.  ``OpenApiDocument`` is frozen and nothing in
apicheck mutates the mapping it wraps, so one instance can be shared by
every test case.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from openapi_spec_validator import validate

from apicheck.errors import SpecLoadError

logger = logging.getLogger(__name__)

# Methods that can carry an operation in a path item, in the order they are
# reported.
HTTP_METHODS = ("GET", "PUT", "DELETE", "POST", "PATCH")


def _unescape_pointer_token(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


@dataclass(frozen=True)
class OpenApiDocument:
    """A parsed and validated OpenAPI document.

    Attributes:
        source: Where the document was loaded from.
        spec: The raw document tree.
    """

    source: str
    spec: dict[str, Any] = field(repr=False)

    @property
    def version(self) -> str:
        """The ``openapi`` version string, e.g. ``3.0.3``."""
        return str(self.spec.get("openapi", ""))

    @property
    def is_v31(self) -> bool:
        return self.version.startswith("3.1")

    def paths(self) -> dict[str, Any]:
        """Return the path -> path item mapping (``$ref`` items resolved)."""
        return {
            path: self.resolve(item)
            for path, item in (self.spec.get("paths") or {}).items()
        }

    def path_item(self, path: str) -> dict[str, Any] | None:
        item = (self.spec.get("paths") or {}).get(path)
        return None if item is None else self.resolve(item)

    def operation(self, path: str, method: str) -> dict[str, Any] | None:
        """Return the operation for ``method`` on ``path`` or None."""
        item = self.path_item(path)
        if item is None:
            return None
        return item.get(method.lower())

    def servers(self) -> list[dict[str, Any]]:
        return list(self.spec.get("servers") or [])

    def security(self) -> list[dict[str, Any]] | None:
        """Document-wide security requirements, if any."""
        return self.spec.get("security")

    def pointer(self, ref: str) -> Any:
        """Look up a local JSON pointer such as ``#/components/schemas/Record``.

        Raises:
            KeyError: If the reference is not local or does not exist.
        """
        if not ref.startswith("#"):
            raise KeyError(f"Only local references are supported: {ref}")
        node: Any = self.spec
        for token in ref[1:].lstrip("/").split("/"):
            if token == "":
                continue
            token = _unescape_pointer_token(token)
            if isinstance(node, list):
                node = node[int(token)]
            else:
                node = node[token]
        return node

    def resolve(self, node: Any) -> Any:
        """Follow ``$ref`` until a concrete node is reached."""
        seen: set[str] = set()
        while isinstance(node, dict) and "$ref" in node:
            ref = node["$ref"]
            if ref in seen:
                raise KeyError(f"Circular reference: {ref}")
            seen.add(ref)
            node = self.pointer(ref)
        return node


def load_openapi_document(path: str | Path) -> OpenApiDocument:
    """Load and validate an OpenAPI document from a YAML or JSON file.

    Args:
        path: Location of the document.

    Returns:
        The validated, immutable document.

    Raises:
        SpecLoadError: If the file is missing, is not valid YAML/JSON, is not
            a mapping, or fails OpenAPI schema validation.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
    except FileNotFoundError as exc:
        raise SpecLoadError(str(path), "file not found") from exc
    except (OSError, yaml.YAMLError) as exc:
        raise SpecLoadError(str(path), str(exc)) from exc

    if not isinstance(raw, dict):
        raise SpecLoadError(str(path), "document root must be a mapping")

    try:
        validate(raw, base_uri=path.resolve().as_uri())
    except Exception as exc:
        raise SpecLoadError(str(path), f"invalid OpenAPI document: {exc}") from exc

    logger.info("Loaded OpenAPI document %s (openapi %s)", path, raw.get("openapi"))
    # Detached from ``raw``
    return OpenApiDocument(source=str(path), spec=copy.deepcopy(raw))
