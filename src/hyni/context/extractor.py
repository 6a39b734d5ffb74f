from __future__ import annotations

import json
from typing import Any, Optional

from .errors import ExtractionError, PathError
from .paths import format_path, resolve_path
from .schema import Schema

UNKNOWN_ERROR = "Unknown error"
PARSE_ERROR = "Failed to parse error message"
STREAM_DONE = "[DONE]"

# Known delta locations, tried in order: OpenAI/DeepSeek/Mistral, then Claude.
_DELTA_PATHS = (
    ("choices", 0, "delta", "content"),
    ("delta", "text"),
)


def _stringify(node: Any) -> str:
    if isinstance(node, str):
        return node
    if node is None or isinstance(node, (dict, list, bool)):
        return json.dumps(node)
    return str(node)


def _delta_at(payload: Any, path) -> str:
    try:
        value = resolve_path(payload, path)
    except PathError:
        return ""
    return value if isinstance(value, str) else ""


def extract_stream_delta(payload: Any) -> str:
    """Best-effort text of one decoded streaming event.

    This is a heuristic over the delta shapes seen in the wild, not driven by
    the schema. Returns "" for the end-of-stream sentinel and for events that
    carry no text (role announcements, usage frames, pings).
    """

    if payload is None or payload == STREAM_DONE:
        return ""
    for path in _DELTA_PATHS:
        text = _delta_at(payload, path)
        if text:
            return text
    return ""


class ResponseExtractor:
    """Pulls normalized values out of raw responses using schema-declared paths."""

    def __init__(self, schema: Schema):
        self._schema = schema

    def _resolve(self, response: Any, path, what: str) -> Any:
        try:
            return resolve_path(response, path)
        except PathError as e:
            raise ExtractionError(
                f"Failed to extract {what} from {self._schema.provider_name} response "
                f"(path {format_path(path)}): {e}",
                response=response,
            ) from e

    def extract_text(self, response: Any) -> str:
        return _stringify(self._resolve(response, self._schema.text_path, "text"))

    def extract_full(self, response: Any) -> Any:
        return self._resolve(response, self._schema.content_path, "full content")

    def extract_usage(self, response: Any) -> Optional[Any]:
        """Usage block, or None when the schema declares none or it is absent."""
        if not self._schema.usage_path:
            return None
        try:
            return resolve_path(response, self._schema.usage_path)
        except PathError:
            return None

    def extract_error(self, response: Any) -> str:
        # Called from failing code paths, so this never raises.
        if not self._schema.error_path:
            return UNKNOWN_ERROR
        try:
            return _stringify(resolve_path(response, self._schema.error_path))
        except PathError:
            return PARSE_ERROR

    def extract_stream_delta(self, payload: Any) -> str:
        if payload is None or payload == STREAM_DONE:
            return ""
        if self._schema.stream_delta_path:
            text = _delta_at(payload, self._schema.stream_delta_path)
            if text:
                return text
        return extract_stream_delta(payload)
