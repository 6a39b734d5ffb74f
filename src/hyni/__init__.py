"""hyni

One object model over many LLM HTTP APIs. Provider differences live in JSON
schema documents, not in code:

    from hyni import GeneralContext

    ctx = GeneralContext.from_provider("claude").set_api_key(key)
    ctx.add_user_message("Hello")
    body = ctx.build_request()

ProviderManager wires contexts to a key resolver and an HTTP transport for
end-to-end chat.
"""

from .chat import ChatResult, ProviderManager
from .context import (
    ContextConfig,
    ExtractionError,
    GeneralContext,
    HyniError,
    PathError,
    SchemaError,
    ValidationError,
)
from .keys import KeyResolver
from .schema_source import SchemaRegistry
from .transport import HttpTransport, TransportError

__all__ = [
    "GeneralContext",
    "ContextConfig",
    "ProviderManager",
    "ChatResult",
    "KeyResolver",
    "SchemaRegistry",
    "HttpTransport",
    "TransportError",
    "HyniError",
    "SchemaError",
    "ValidationError",
    "PathError",
    "ExtractionError",
]
