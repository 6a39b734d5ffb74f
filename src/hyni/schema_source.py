from __future__ import annotations

import json
import os
from importlib import resources
from typing import Any, Optional

import requests

from hyni import config
from hyni import logger as logger_mod
from hyni.context.errors import SchemaError
from hyni.context.schema import Schema, load_schema

log = logger_mod.get_logger()

BUNDLED_PACKAGE = "hyni.schemas"


def _parse_document(text: str, origin: str) -> dict[str, Any]:
    try:
        return json.loads(text)
    except ValueError as e:
        raise SchemaError(f"Schema at {origin} is not valid JSON: {e}") from e


def load_schema_document(path: str) -> dict[str, Any]:
    """Read a schema document from disk."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise SchemaError(f"Failed to read schema from {path}: {e}") from e
    return _parse_document(text, path)


def fetch_schema_document(
    url: str,
    *,
    timeout_s: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> dict[str, Any]:
    """Download a schema document over HTTP."""
    http = session or requests
    try:
        response = http.get(url, timeout=timeout_s or config.HTTP_TIMEOUT_S)
    except requests.exceptions.RequestException as e:
        raise SchemaError(f"Failed to load schema from {url}: {e}") from e
    if not response.ok:
        raise SchemaError(
            f"Failed to load schema from {url}: {response.status_code} {response.reason}"
        )
    return _parse_document(response.text, url)


class SchemaRegistry:
    """Finds provider schema documents by name.

    Looks for `<provider>.json` in `directory` (default: `HYNI_SCHEMA_DIR`)
    first, then in the schemas bundled with the package.
    """

    def __init__(self, directory: Optional[str] = None):
        self._directory = directory if directory is not None else (config.SCHEMA_DIR or None)

    @property
    def directory(self) -> Optional[str]:
        return self._directory

    def _local_path(self, provider: str) -> Optional[str]:
        if not self._directory:
            return None
        path = os.path.join(self._directory, f"{provider}.json")
        return path if os.path.isfile(path) else None

    def available(self) -> list[str]:
        names = {
            entry.name[: -len(".json")]
            for entry in resources.files(BUNDLED_PACKAGE).iterdir()
            if entry.name.endswith(".json")
        }
        if self._directory and os.path.isdir(self._directory):
            names.update(
                name[: -len(".json")]
                for name in os.listdir(self._directory)
                if name.endswith(".json")
            )
        return sorted(names)

    def document(self, provider: str) -> dict[str, Any]:
        local = self._local_path(provider)
        if local:
            log.debug(f"Loading schema for '{provider}' from {local}")
            return load_schema_document(local)

        bundled = resources.files(BUNDLED_PACKAGE).joinpath(f"{provider}.json")
        if not bundled.is_file():
            raise SchemaError(f"No schema found for provider '{provider}'")
        log.debug(f"Loading bundled schema for '{provider}'")
        return _parse_document(bundled.read_text(encoding="utf-8"), str(bundled))

    def load(self, provider: str) -> Schema:
        return load_schema(self.document(provider))
