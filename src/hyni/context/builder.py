from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .messages import MessageCompiler
from .schema import Schema


@dataclass(frozen=True)
class ContextState:
    """Snapshot of what a context has accumulated, as seen by the builder."""

    model: str = ""
    system_message: Optional[str] = None
    messages: tuple = ()
    parameters: Mapping[str, Any] = field(default_factory=dict)


def strip_nulls(value: Any) -> Any:
    """Return a copy of ``value`` with every null-valued object field removed.

    Lists are walked but their items are never dropped.
    """

    if isinstance(value, dict):
        return {key: strip_nulls(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [strip_nulls(item) for item in value]
    return value


class RequestBuilder:
    def __init__(self, schema: Schema, compiler: MessageCompiler):
        self._schema = schema
        self._compiler = compiler

    def build(
        self,
        state: ContextState,
        *,
        streaming: bool = False,
        default_max_tokens: Optional[int] = None,
        default_temperature: Optional[float] = None,
    ) -> dict[str, Any]:
        """Assemble one provider-shaped request body from ``state``.

        Works on a fresh template copy and a copy of the message list; the
        state itself is never touched.
        """

        schema = self._schema
        request = schema.request_template()
        messages = list(state.messages)

        if state.model:
            request["model"] = state.model

        if state.system_message and schema.supports_system_messages:
            if "system" in schema.valid_roles:
                messages.insert(0, self._compiler.compile("system", state.system_message))
            else:
                request["system"] = state.system_message

        request["messages"] = messages

        # Explicit caller parameters always win over the template.
        for key, value in state.parameters.items():
            request[key] = value

        if (
            default_max_tokens is not None
            and "max_tokens" not in state.parameters
            and request.get("max_tokens") is None
        ):
            request["max_tokens"] = default_max_tokens
        if (
            default_temperature is not None
            and "temperature" not in state.parameters
            and request.get("temperature") is None
        ):
            request["temperature"] = default_temperature

        if "stream" not in state.parameters:
            request["stream"] = bool(streaming and schema.supports_streaming)

        return strip_nulls(request)
