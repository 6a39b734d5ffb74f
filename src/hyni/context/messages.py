from __future__ import annotations

import base64
import re
from typing import Any, Optional, Union

from hyni import logger as logger_mod

from .errors import ValidationError
from .schema import ImageStyle, Schema

log = logger_mod.get_logger()

_BASE64_RE = re.compile(r"[A-Za-z0-9+/]*={0,2}")
_WHITESPACE_RE = re.compile(r"\s")
_DATA_URI_MARKER = ";base64,"

MediaData = Union[str, bytes]


def is_base64_encoded(data: Any) -> bool:
    """Return True when ``data`` already looks like base64 text.

    A ``data:`` URI with a ``;base64,`` marker counts; otherwise the text must
    use only the base64 alphabet and, once whitespace is removed, have a length
    that is a multiple of 4.
    """

    if not isinstance(data, str) or not data:
        return False
    if data.startswith("data:") and _DATA_URI_MARKER in data:
        return True
    clean = _WHITESPACE_RE.sub("", data)
    if not _BASE64_RE.fullmatch(clean):
        return False
    return len(clean) % 4 == 0


def encode_base64(data: MediaData) -> str:
    raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    return base64.b64encode(raw).decode("ascii")


def create_data_uri(mime_type: str, base64_data: str) -> str:
    return f"data:{mime_type};base64,{base64_data}"


def _base64_payload(data: MediaData) -> str:
    """Return bare base64 text for ``data``, encoding it when needed.

    File paths are never read here; callers hand over bytes or encoded text.
    """

    if isinstance(data, str) and is_base64_encoded(data):
        if data.startswith("data:"):
            return data.split(_DATA_URI_MARKER, 1)[1]
        return data
    if isinstance(data, (bytes, bytearray)):
        return encode_base64(data)
    if isinstance(data, str):
        raise ValidationError(
            "Media data text must be base64 or a base64 data URI; "
            "file paths are not read"
        )
    raise ValidationError(
        f"Media data must be base64 text or raw bytes, got {type(data).__name__}"
    )


class MessageCompiler:
    """Turns (role, text, optional media) into the provider's message shape."""

    def __init__(self, schema: Schema, *, validate: bool = True):
        self._schema = schema
        self._validate = validate

    def compile(
        self,
        role: str,
        text: str,
        media_type: Optional[str] = None,
        media_data: Optional[MediaData] = None,
    ) -> dict[str, Any]:
        schema = self._schema
        if self._validate and schema.valid_roles and role not in schema.valid_roles:
            raise ValidationError(f"Invalid message role: {role}")

        has_media = bool(media_type) and bool(media_data)
        if has_media and self._validate and not schema.supports_multimodal:
            raise ValidationError(
                f"Provider '{schema.provider_name}' does not support multimodal content"
            )

        message = schema.message_template()
        message["role"] = role

        if schema.flat_content:
            if has_media:
                log.warning(
                    f"⚠️ Provider '{schema.provider_name}' uses flat text content; "
                    f"dropping attached {media_type} media"
                )
            message["content"] = text
            return message

        content = [self._text_block(text)]
        if has_media:
            content.append(self._image_block(media_type, media_data))
        message["content"] = content
        return message

    def _text_block(self, text: str) -> dict[str, Any]:
        block = self._schema.text_content_template()
        block["text"] = text
        return block

    def _image_block(self, media_type: str, data: MediaData) -> dict[str, Any]:
        block = self._schema.image_content_template()
        if block is None:
            raise ValidationError(
                f"Provider '{self._schema.provider_name}' declares no image content template"
            )

        style = self._schema.image_style
        if style is ImageStyle.CLAUDE:
            block["source"]["media_type"] = media_type
            block["source"]["data"] = _base64_payload(data)
        elif style is ImageStyle.OPENAI:
            if isinstance(data, str) and data.startswith("data:") and _DATA_URI_MARKER in data:
                block["image_url"]["url"] = data
            else:
                block["image_url"]["url"] = create_data_uri(
                    media_type, _base64_payload(data)
                )
        else:
            log.warning(
                f"⚠️ Unrecognized image template for provider "
                f"'{self._schema.provider_name}'; image block left unfilled"
            )
        return block
