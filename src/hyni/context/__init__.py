"""Schema-driven context engine.

A provider is described by a JSON schema document; everything provider
specific (request shape, auth headers, message layout, response paths) is
read from it rather than coded per provider.

Public API:
- GeneralContext / ContextConfig
- Schema / load_schema
- resolve_path
- SchemaError / ValidationError / PathError / ExtractionError
"""

from .context import ContextConfig, GeneralContext, PreparedRequest
from .errors import (
    ExtractionError,
    HyniError,
    PathError,
    SchemaError,
    ValidationError,
)
from .extractor import extract_stream_delta
from .messages import create_data_uri, encode_base64, is_base64_encoded
from .paths import resolve_path
from .schema import ImageStyle, ParameterSpec, Schema, load_schema

__all__ = [
    "GeneralContext",
    "ContextConfig",
    "PreparedRequest",
    "Schema",
    "ParameterSpec",
    "ImageStyle",
    "load_schema",
    "resolve_path",
    "extract_stream_delta",
    "is_base64_encoded",
    "encode_base64",
    "create_data_uri",
    "HyniError",
    "SchemaError",
    "ValidationError",
    "PathError",
    "ExtractionError",
]
