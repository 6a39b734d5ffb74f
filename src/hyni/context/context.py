from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from hyni import config
from hyni import logger as logger_mod

from .builder import ContextState, RequestBuilder
from .errors import ValidationError
from .extractor import ResponseExtractor
from .messages import MediaData, MessageCompiler
from .schema import Schema, load_schema
from .validator import ParameterValidator

log = logger_mod.get_logger()

_MISSING = object()


@dataclass(frozen=True)
class ContextConfig:
    """Behavior switches for a GeneralContext.

    Notes:
    - With `enable_validation` off, model, system-message, parameter, role and
      multimodal checks are skipped and bad input surfaces downstream instead.
    - `default_max_tokens` / `default_temperature` only fill keys the caller never set.
    """

    enable_validation: bool = True
    default_max_tokens: Optional[int] = None
    default_temperature: Optional[float] = None
    custom_parameters: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "ContextConfig":
        return cls(
            enable_validation=config.ENABLE_VALIDATION,
            default_max_tokens=config.DEFAULT_MAX_TOKENS,
            default_temperature=config.DEFAULT_TEMPERATURE,
        )


@dataclass(frozen=True)
class PreparedRequest:
    """Everything a transport needs to send one request."""

    endpoint: str
    method: str
    headers: dict[str, str]
    body: dict[str, Any]


class GeneralContext:
    """Stateful chat session bound to one provider schema.

    Mutators return the context so calls can be chained:

        ctx = GeneralContext(document).set_api_key(key).add_user_message("hi")
        body = ctx.build_request()

    One instance is not safe for concurrent mutation; hold one context per
    provider and serialize calls against it.
    """

    def __init__(
        self,
        schema: Union[Schema, Mapping[str, Any]],
        config: Optional[ContextConfig] = None,
    ):
        self._config = config or ContextConfig()
        self._schema = schema if isinstance(schema, Schema) else load_schema(schema)

        validate = self._config.enable_validation
        self._validator = ParameterValidator(self._schema.parameters)
        self._compiler = MessageCompiler(self._schema, validate=validate)
        self._builder = RequestBuilder(self._schema, self._compiler)
        self._extractor = ResponseExtractor(self._schema)

        self._model = ""
        self._system_message: Optional[str] = None
        self._messages: list[dict[str, Any]] = []
        self._parameters: dict[str, Any] = {}
        self._api_key = ""
        self._headers: dict[str, str] = {}

        self._apply_defaults()
        self._build_headers()
        if self._config.custom_parameters:
            self.set_parameters(self._config.custom_parameters)

        log.debug(f"Created context for provider '{self._schema.provider_name}'")

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: str, config: Optional[ContextConfig] = None) -> "GeneralContext":
        from hyni.schema_source import load_schema_document

        return cls(load_schema_document(path), config)

    @classmethod
    def from_url(cls, url: str, config: Optional[ContextConfig] = None) -> "GeneralContext":
        from hyni.schema_source import fetch_schema_document

        return cls(fetch_schema_document(url), config)

    @classmethod
    def from_provider(
        cls, provider: str, config: Optional[ContextConfig] = None
    ) -> "GeneralContext":
        from hyni.schema_source import SchemaRegistry

        return cls(SchemaRegistry().load(provider), config)

    def _apply_defaults(self) -> None:
        if self._schema.default_model:
            self._model = self._schema.default_model

    def _build_headers(self) -> None:
        # Always rebuilt from the templates so an old key can never linger.
        headers: dict[str, str] = {}
        placeholder = self._schema.key_placeholder
        for name, template in self._schema.required_headers.items():
            headers[name] = (
                template.replace(placeholder, self._api_key) if placeholder else template
            )
        for name, value in self._schema.optional_headers.items():
            if isinstance(value, str) and value:
                headers[name] = value
        self._headers = headers

    @property
    def _validating(self) -> bool:
        return self._config.enable_validation

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def set_model(self, model: str) -> "GeneralContext":
        available = self._schema.available_models
        if self._validating and available and model not in available:
            raise ValidationError(f"Model '{model}' is not supported by this provider")
        self._model = model
        return self

    def set_system_message(self, text: str) -> "GeneralContext":
        if self._validating and not self._schema.supports_system_messages:
            raise ValidationError(
                f"Provider '{self._schema.provider_name}' does not support system messages"
            )
        self._system_message = text
        return self

    def set_parameter(self, key: str, value: Any) -> "GeneralContext":
        if self._validating:
            self._validator.validate(key, value)
        self._parameters[key] = value
        return self

    def set_parameters(self, params: Mapping[str, Any]) -> "GeneralContext":
        for key, value in params.items():
            self.set_parameter(key, value)
        return self

    def set_api_key(self, api_key: str) -> "GeneralContext":
        if not api_key:
            raise ValidationError("API key cannot be empty")
        self._api_key = api_key
        self._build_headers()
        return self

    def add_user_message(
        self,
        content: str,
        media_type: Optional[str] = None,
        media_data: Optional[MediaData] = None,
    ) -> "GeneralContext":
        return self.add_message("user", content, media_type, media_data)

    def add_assistant_message(self, content: str) -> "GeneralContext":
        return self.add_message("assistant", content)

    def add_message(
        self,
        role: str,
        content: str,
        media_type: Optional[str] = None,
        media_data: Optional[MediaData] = None,
    ) -> "GeneralContext":
        message = self._compiler.compile(role, content, media_type, media_data)
        self._messages.append(message)
        return self

    def pop_message(self) -> Optional[dict[str, Any]]:
        """Remove and return the most recent message, or None when there is none."""
        if not self._messages:
            return None
        return self._messages.pop()

    # ------------------------------------------------------------------
    # Request / response
    # ------------------------------------------------------------------

    def _state(self) -> ContextState:
        return ContextState(
            model=self._model,
            system_message=self._system_message,
            messages=tuple(self._messages),
            parameters=dict(self._parameters),
        )

    def build_request(self, streaming: bool = False) -> dict[str, Any]:
        return self._builder.build(
            self._state(),
            streaming=streaming,
            default_max_tokens=self._config.default_max_tokens,
            default_temperature=self._config.default_temperature,
        )

    def prepare(self, streaming: bool = False) -> PreparedRequest:
        """Build a request ready for transmission.

        Unlike build_request, this needs a key and a complete conversation.
        """

        if not self.has_api_key():
            raise ValidationError(
                f"No API key set for provider '{self._schema.provider_name}'"
            )
        errors = self.get_validation_errors()
        if errors:
            raise ValidationError("; ".join(errors))
        return PreparedRequest(
            endpoint=self._schema.endpoint,
            method=self._schema.method,
            headers=self.headers,
            body=self.build_request(streaming),
        )

    def extract_text_response(self, response: Any) -> str:
        return self._extractor.extract_text(response)

    def extract_full_response(self, response: Any) -> Any:
        return self._extractor.extract_full(response)

    def extract_usage(self, response: Any) -> Optional[Any]:
        return self._extractor.extract_usage(response)

    def extract_error(self, response: Any) -> str:
        return self._extractor.extract_error(response)

    def extract_stream_delta(self, payload: Any) -> str:
        return self._extractor.extract_stream_delta(payload)

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset(self) -> None:
        self.clear_user_messages()
        self.clear_system_message()
        self.clear_parameters()
        self._model = ""
        self._apply_defaults()

    def clear_user_messages(self) -> None:
        self._messages = []

    def clear_system_message(self) -> None:
        self._system_message = None

    def clear_parameters(self) -> None:
        self._parameters.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_api_key(self) -> bool:
        return self._api_key != ""

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def provider_name(self) -> str:
        return self._schema.provider_name

    @property
    def endpoint(self) -> str:
        return self._schema.endpoint

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    @property
    def supported_models(self) -> list[str]:
        return list(self._schema.available_models)

    @property
    def current_model(self) -> str:
        return self._model

    @property
    def system_message(self) -> Optional[str]:
        return self._system_message

    @property
    def messages(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._messages)

    @property
    def parameters(self) -> dict[str, Any]:
        return dict(self._parameters)

    def supports_multimodal(self) -> bool:
        return self._schema.supports_multimodal

    def supports_streaming(self) -> bool:
        return self._schema.supports_streaming

    def supports_system_messages(self) -> bool:
        return self._schema.supports_system_messages

    def get_validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self._model:
            errors.append("Model name is required")
        if not self._messages:
            errors.append("At least one message is required")

        expected = self._schema.last_message_role
        if expected and self._messages:
            if self._messages[-1].get("role") != expected:
                errors.append(f"Last message must be from: {expected}")
        return errors

    def is_valid_request(self) -> bool:
        return not self.get_validation_errors()

    def has_parameter(self, key: str) -> bool:
        return key in self._parameters

    def get_parameter(self, key: str, default: Any = _MISSING) -> Any:
        if key in self._parameters:
            return self._parameters[key]
        if default is _MISSING:
            raise ValidationError(f"Parameter '{key}' not found")
        return default

    # ------------------------------------------------------------------
    # State persistence
    # ------------------------------------------------------------------

    def export_state(self, *, include_api_key: bool = False) -> dict[str, Any]:
        state: dict[str, Any] = {
            "model": self._model,
            "system_message": self._system_message,
            "messages": copy.deepcopy(self._messages),
            "parameters": copy.deepcopy(self._parameters),
        }
        if include_api_key and self._api_key:
            state["api_key"] = self._api_key
        return state

    def import_state(self, state: Mapping[str, Any]) -> None:
        """Restore a snapshot produced by export_state.

        Parameters and the key go through the normal mutators, so imported
        values are validated like any other.
        """

        if state.get("model"):
            self.set_model(state["model"])
        if state.get("system_message"):
            self.set_system_message(state["system_message"])
        if state.get("messages"):
            self._messages = copy.deepcopy(list(state["messages"]))
        if state.get("parameters"):
            self.set_parameters(state["parameters"])
        if state.get("api_key"):
            self.set_api_key(state["api_key"])
