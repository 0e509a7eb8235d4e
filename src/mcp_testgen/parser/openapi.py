"""OpenAPI document loader and endpoint enumerator.

Loads OpenAPI 3.x / Swagger 2.0 documents (JSON or YAML, from a file or a URL)
and flattens their path/method matrix into Endpoint models.
"""

import json
import re
from pathlib import Path

import httpx
import yaml

from mcp_testgen.errors import EmptySpecError, NotFoundError, ParseError

from .base import Endpoint, SpecDocument

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

PATH_PARAM_RE = re.compile(r"\{(\w+)\}")


def load_spec(source: str | Path) -> SpecDocument:
    """Read and parse an OpenAPI document from a file path or http(s) URL."""
    text = _read_source(str(source))
    doc = _parse_document(text, source)

    if not isinstance(doc, dict):
        raise ParseError(f"Spec {source} is not a mapping")

    paths = doc.get("paths") or {}
    if not isinstance(paths, dict):
        raise ParseError(f"Spec {source} has a 'paths' value that is not a mapping")

    return SpecDocument(raw=doc, paths=paths)


def enumerate_endpoints(spec: SpecDocument) -> list[Endpoint]:
    """Flatten the spec into endpoints, paths first then methods, in document order."""
    endpoints = []
    for path, operations in spec.paths.items():
        if not isinstance(operations, dict):
            continue
        for method in operations:
            if str(method).lower() not in HTTP_METHODS:
                continue
            endpoints.append(
                Endpoint(path=normalize_path(path), method=str(method).upper())
            )
    return endpoints


def require_endpoints(spec: SpecDocument) -> list[Endpoint]:
    """Like enumerate_endpoints, but an empty result raises EmptySpecError."""
    endpoints = enumerate_endpoints(spec)
    if not endpoints:
        raise EmptySpecError()
    return endpoints


def normalize_path(path: str) -> str:
    """Rewrite ``{name}`` placeholders to ``:name``."""
    return PATH_PARAM_RE.sub(r":\1", path)


def _read_source(source: str) -> str:
    if source.startswith(("http://", "https://")):
        try:
            response = httpx.get(source, follow_redirects=True, timeout=30.0)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotFoundError(f"Could not fetch spec from {source}: {e}") from e
        return response.text

    file_path = Path(source)
    if not file_path.is_file():
        raise NotFoundError(f"Spec file not found: {file_path}")
    try:
        return file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"Spec file {file_path} is not valid UTF-8: {e}") from e


def _parse_document(text: str, source) -> object:
    # JSON first: PyYAML rejects tab indentation that JSON allows
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"Could not parse spec {source}: {e}") from e
