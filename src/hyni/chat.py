from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from hyni import logger as logger_mod
from hyni.context import ContextConfig, GeneralContext, HyniError, ValidationError
from hyni.context.extractor import STREAM_DONE
from hyni.context.messages import MediaData
from hyni.keys import KeyResolver, mask_api_key
from hyni.schema_source import SchemaRegistry
from hyni.transport import HttpTransport, TransportError

log = logger_mod.get_logger()

DeltaCallback = Callable[[str, str], None]


@dataclass(frozen=True)
class ChatResult:
    """Provider-neutral outcome of one exchange."""

    provider: str
    model: str
    text: str
    usage: Optional[Any] = None


def _total_tokens(usage: Any) -> int:
    if not isinstance(usage, dict):
        return 0
    total = usage.get("total_tokens")
    if isinstance(total, int):
        return total
    # Claude reports input/output separately.
    parts = [usage.get("input_tokens"), usage.get("output_tokens")]
    return sum(p for p in parts if isinstance(p, int))


class ProviderManager:
    """Holds one GeneralContext per provider and drives request/response cycles.

    Contexts share nothing, so different providers can be used side by side;
    running them concurrently is up to the caller.
    """

    def __init__(
        self,
        *,
        registry: Optional[SchemaRegistry] = None,
        keys: Optional[KeyResolver] = None,
        transport: Optional[HttpTransport] = None,
        config: Optional[ContextConfig] = None,
    ):
        self._registry = registry or SchemaRegistry()
        self._keys = keys or KeyResolver()
        self._transport = transport or HttpTransport()
        self._config = config or ContextConfig.from_env()
        self._contexts: dict[str, GeneralContext] = {}
        self._message_count = 0
        self._token_count = 0

    def load_provider(self, provider: str) -> GeneralContext:
        if provider in self._contexts:
            return self._contexts[provider]

        context = GeneralContext(self._registry.load(provider), self._config)
        api_key = self._keys.get_key(provider)
        if api_key:
            context.set_api_key(api_key)
            log.info(f"✅ {provider} initialized with API key: {mask_api_key(api_key)}")
        else:
            log.warning(f"⚠️ No API key found for {provider}")

        self._contexts[provider] = context
        return context

    def context(self, provider: str) -> Optional[GeneralContext]:
        return self._contexts.get(provider)

    def set_api_key(self, provider: str, api_key: str, *, persistent: bool = False) -> None:
        self._keys.set_key(provider, api_key, persistent=persistent)
        self.load_provider(provider).set_api_key(api_key)

    def configured_providers(self) -> list[str]:
        return [p for p in self._keys.providers if self._keys.get_key(p)]

    def send(
        self,
        provider: str,
        text: str,
        *,
        streaming: bool = False,
        system_message: Optional[str] = None,
        media_type: Optional[str] = None,
        media_data: Optional[MediaData] = None,
        on_delta: Optional[DeltaCallback] = None,
    ) -> ChatResult:
        context = self.load_provider(provider)
        if not context.has_api_key():
            raise ValidationError(f"No API key configured for {provider}")

        if system_message and context.supports_system_messages():
            context.set_system_message(system_message)
        if not context.current_model and context.schema.default_model:
            context.set_model(context.schema.default_model)
        context.add_user_message(text, media_type, media_data)

        # A failed exchange leaves no unanswered user turn behind.
        try:
            if streaming and context.supports_streaming():
                result = self._send_streaming(provider, context, on_delta)
            else:
                result = self._send_once(provider, context)
        except Exception:
            context.pop_message()
            raise

        self._message_count += 2
        return result

    def broadcast(self, text: str, **kwargs: Any) -> dict[str, Union[ChatResult, Exception]]:
        """Send `text` to every provider with a key, one after another.

        A failing provider does not stop the others; its exception is returned
        in its slot.
        """

        providers = self.configured_providers()
        if not providers:
            raise ValidationError("No providers configured. Please set API keys first.")

        log.info(f"Broadcasting to {len(providers)} providers: {', '.join(providers)}")
        results: dict[str, Union[ChatResult, Exception]] = {}
        for provider in providers:
            try:
                results[provider] = self.send(provider, text, **kwargs)
            except HyniError as e:
                log.error(f"❌ {provider} error: {e}")
                results[provider] = e
        return results

    def _failure(self, context: GeneralContext, error: TransportError) -> TransportError:
        detail = error.body or str(error)
        if error.body:
            try:
                detail = context.extract_error(json.loads(error.body))
            except ValueError:
                pass
        return TransportError(
            f"{context.provider_name} API error ({error.status_code}): {detail}",
            status_code=error.status_code,
            body=error.body,
        )

    def _send_once(self, provider: str, context: GeneralContext) -> ChatResult:
        prepared = context.prepare(streaming=False)
        try:
            data = self._transport.send(
                prepared.endpoint, prepared.headers, prepared.body, method=prepared.method
            )
        except TransportError as e:
            raise self._failure(context, e) from e

        text = context.extract_text_response(data)
        usage = context.extract_usage(data)
        context.add_assistant_message(text)
        self._token_count += _total_tokens(usage)
        return ChatResult(
            provider=provider, model=context.current_model, text=text, usage=usage
        )

    def _send_streaming(
        self,
        provider: str,
        context: GeneralContext,
        on_delta: Optional[DeltaCallback],
    ) -> ChatResult:
        prepared = context.prepare(streaming=True)
        chunks: list[str] = []
        try:
            for data in self._transport.stream(
                prepared.endpoint, prepared.headers, prepared.body, method=prepared.method
            ):
                if data == STREAM_DONE:
                    continue
                try:
                    payload = json.loads(data)
                except ValueError:
                    log.debug(f"Skipping undecodable stream payload from {provider}")
                    continue
                chunk = context.extract_stream_delta(payload)
                if not chunk:
                    continue
                chunks.append(chunk)
                if on_delta:
                    on_delta(chunk, "".join(chunks))
        except TransportError as e:
            raise self._failure(context, e) from e

        text = "".join(chunks)
        context.add_assistant_message(text)
        return ChatResult(provider=provider, model=context.current_model, text=text)

    def clear_history(self) -> None:
        for context in self._contexts.values():
            context.clear_user_messages()
        self._message_count = 0
        self._token_count = 0

    def stats(self) -> dict[str, int]:
        return {
            "message_count": self._message_count,
            "token_count": self._token_count,
            "total_providers": len(self._contexts),
            "configured_providers": len(self.configured_providers()),
        }
