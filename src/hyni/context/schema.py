from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from .errors import SchemaError

FLAT_TEXT_SENTINEL = "<TEXT_CONTENT>"

REQUIRED_FIELDS = (
    "provider",
    "api",
    "request_template",
    "message_format",
    "response_format",
)

_PATH = {"type": "array", "items": {"type": ["string", "integer"]}}
_STRING_MAP = {"type": "object", "additionalProperties": {"type": "string"}}

# Structural shape of a provider description. Only the block types are pinned
# down here; the semantic checks live in load_schema().
DOCUMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "provider": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "display_name": {"type": "string"},
            },
        },
        "api": {
            "type": "object",
            "properties": {
                "endpoint": {"type": "string"},
                "method": {"type": "string"},
            },
        },
        "authentication": {
            "type": "object",
            "properties": {"key_placeholder": {"type": "string"}},
        },
        "headers": {
            "type": "object",
            "properties": {"required": _STRING_MAP, "optional": {"type": "object"}},
        },
        "models": {
            "type": "object",
            "properties": {
                "available": {"type": "array", "items": {"type": "string"}},
                "default": {"type": "string"},
            },
        },
        "request_template": {"type": "object"},
        "parameters": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "required": {"type": "boolean"},
                    "min": {"type": "number"},
                    "max": {"type": "number"},
                    "enum": {"type": "array"},
                    "max_length": {"type": "integer", "minimum": 0},
                    "max_items": {"type": "integer", "minimum": 0},
                },
            },
        },
        "message_roles": {"type": "array", "items": {"type": "string"}},
        "system_message": {
            "type": "object",
            "properties": {"supported": {"type": "boolean"}},
        },
        "multimodal": {
            "type": "object",
            "properties": {"supported": {"type": "boolean"}},
        },
        "message_format": {
            "type": "object",
            "properties": {"content_types": {"type": "object"}},
        },
        "response_format": {
            "type": "object",
            "properties": {
                "success": {
                    "type": "object",
                    "properties": {
                        "text_path": _PATH,
                        "content_path": _PATH,
                        "usage_path": _PATH,
                    },
                },
                "error": {
                    "type": "object",
                    "properties": {"error_path": _PATH},
                },
                "stream": {
                    "type": "object",
                    "properties": {"content_delta_path": _PATH},
                },
            },
        },
        "features": {"type": "object"},
        "validation": {"type": "object"},
    },
}

_document_validator = Draft7Validator(DOCUMENT_SCHEMA)


class ImageStyle(str, Enum):
    """How an image content block embeds its payload."""

    NONE = "none"
    CLAUDE = "claude"  # {"source": {"media_type": ..., "data": <base64>}}
    OPENAI = "openai"  # {"image_url": {"url": "data:<mime>;base64,<base64>"}}


@dataclass(frozen=True)
class ParameterSpec:
    """Constraint record for one request parameter."""

    name: str
    type: Optional[str] = None
    required: bool = False
    min: Optional[float] = None
    max: Optional[float] = None
    enum: Optional[tuple] = None
    max_length: Optional[int] = None
    max_items: Optional[int] = None
    default: Any = None

    @classmethod
    def from_document(cls, name: str, raw: Mapping[str, Any]) -> "ParameterSpec":
        enum = raw.get("enum")
        return cls(
            name=name,
            type=raw.get("type"),
            required=bool(raw.get("required", False)),
            min=raw.get("min"),
            max=raw.get("max"),
            enum=tuple(enum) if enum is not None else None,
            max_length=raw.get("max_length"),
            max_items=raw.get("max_items"),
            default=copy.deepcopy(raw.get("default")),
        )


@dataclass(frozen=True)
class Schema:
    """Validated, read-only view of one provider description.

    Templates are deep-copied at load time and handed out as fresh copies, so
    nothing a caller does to a compiled message or request can reach back into
    the schema. Header and parameter maps are read-only proxies.
    """

    provider_name: str
    display_name: str
    endpoint: str
    method: str
    key_placeholder: str
    required_headers: Mapping[str, str]
    optional_headers: Mapping[str, Any]
    available_models: tuple[str, ...]
    default_model: str
    valid_roles: frozenset[str]
    parameters: Mapping[str, ParameterSpec]
    supports_streaming: bool
    supports_multimodal: bool
    supports_system_messages: bool
    flat_content: bool
    image_style: ImageStyle
    text_path: tuple
    content_path: tuple
    usage_path: tuple
    error_path: tuple
    stream_delta_path: tuple
    last_message_role: Optional[str]
    _document: dict = field(repr=False, compare=False)
    _request_template: dict = field(repr=False, compare=False)
    _message_structure: dict = field(repr=False, compare=False)
    _text_content: Optional[dict] = field(repr=False, compare=False)
    _image_content: Optional[dict] = field(repr=False, compare=False)

    def document(self) -> dict[str, Any]:
        return copy.deepcopy(self._document)

    def request_template(self) -> dict[str, Any]:
        return copy.deepcopy(self._request_template)

    def message_template(self) -> dict[str, Any]:
        return copy.deepcopy(self._message_structure)

    def text_content_template(self) -> Optional[dict[str, Any]]:
        return copy.deepcopy(self._text_content)

    def image_content_template(self) -> Optional[dict[str, Any]]:
        return copy.deepcopy(self._image_content)


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise SchemaError(message)


def _check_structure(document: Mapping[str, Any]) -> None:
    error = best_match(_document_validator.iter_errors(document))
    if error is None:
        return
    location = ".".join(str(p) for p in error.absolute_path) or "<root>"
    raise SchemaError(f"Invalid schema field '{location}': {error.message}")


def _image_style(template: Optional[Mapping[str, Any]]) -> ImageStyle:
    if not isinstance(template, Mapping):
        return ImageStyle.NONE
    if isinstance(template.get("source"), Mapping):
        return ImageStyle.CLAUDE
    if isinstance(template.get("image_url"), Mapping):
        return ImageStyle.OPENAI
    return ImageStyle.NONE


def load_schema(document: Mapping[str, Any]) -> Schema:
    """Validate a raw provider description and return a read-only Schema.

    Raises SchemaError naming the first missing or invalid field.
    """

    _require(isinstance(document, Mapping), "Schema document must be a JSON object")
    for name in REQUIRED_FIELDS:
        _require(name in document, f"Missing required schema field: {name}")
    _check_structure(document)

    doc = copy.deepcopy(dict(document))

    api = doc["api"]
    _require(bool(api.get("endpoint")), "Missing API endpoint in schema (api.endpoint)")

    message_format = doc["message_format"]
    structure = message_format.get("structure")
    content_types = message_format.get("content_types") or {}
    _require(
        isinstance(structure, dict) and bool(structure),
        "Invalid message format in schema (message_format.structure)",
    )
    _require(
        any(template is not None for template in content_types.values()),
        "Invalid message format in schema (message_format.content_types)",
    )
    flat_content = structure.get("content") == FLAT_TEXT_SENTINEL
    text_content = content_types.get("text")
    _require(
        flat_content or isinstance(text_content, dict),
        "Invalid message format in schema (message_format.content_types.text is "
        "required when content is an array of blocks)",
    )

    response_format = doc["response_format"]
    success = response_format.get("success") or {}
    _require(
        bool(success.get("text_path")),
        "Invalid response format in schema (response_format.success.text_path)",
    )
    error_block = response_format.get("error") or {}
    stream_block = response_format.get("stream") or {}

    authentication = doc.get("authentication") or {}
    headers = doc.get("headers") or {}
    models = doc.get("models") or {}
    features = doc.get("features") or {}
    message_validation = (doc.get("validation") or {}).get("message_validation") or {}
    image_content = content_types.get("image")

    return Schema(
        provider_name=doc["provider"]["name"],
        display_name=doc["provider"].get("display_name") or doc["provider"]["name"],
        endpoint=api["endpoint"],
        method=(api.get("method") or "POST").upper(),
        key_placeholder=authentication.get("key_placeholder") or "",
        required_headers=MappingProxyType(dict(headers.get("required") or {})),
        optional_headers=MappingProxyType(dict(headers.get("optional") or {})),
        available_models=tuple(models.get("available") or ()),
        default_model=models.get("default") or "",
        valid_roles=frozenset(doc.get("message_roles") or ()),
        parameters=MappingProxyType(
            {
                name: ParameterSpec.from_document(name, raw)
                for name, raw in (doc.get("parameters") or {}).items()
            }
        ),
        supports_streaming=bool(features.get("streaming", False)),
        supports_multimodal=bool((doc.get("multimodal") or {}).get("supported", False)),
        supports_system_messages=bool(
            (doc.get("system_message") or {}).get("supported", False)
        ),
        flat_content=flat_content,
        image_style=_image_style(image_content),
        text_path=tuple(success["text_path"]),
        content_path=tuple(success.get("content_path") or ()),
        usage_path=tuple(success.get("usage_path") or ()),
        error_path=tuple(error_block.get("error_path") or ()),
        stream_delta_path=tuple(stream_block.get("content_delta_path") or ()),
        last_message_role=message_validation.get("last_message_role"),
        _document=doc,
        _request_template=copy.deepcopy(doc["request_template"]),
        _message_structure=copy.deepcopy(structure),
        _text_content=copy.deepcopy(text_content),
        _image_content=copy.deepcopy(image_content),
    )
