import json
import sys
from pathlib import Path

import pytest

# This repo uses a src/ layout, so when running tests without an editable
# install, we add <repo>/src to sys.path.
_SRC = str(Path(__file__).resolve().parents[1] / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)


def _openai_document():
    return {
        "provider": {"name": "openai", "display_name": "OpenAI"},
        "api": {"endpoint": "https://api.openai.com/v1/chat/completions", "method": "POST"},
        "authentication": {"type": "header", "key_placeholder": "<KEY>"},
        "headers": {
            "required": {"Authorization": "Bearer <KEY>", "Content-Type": "application/json"},
            "optional": {"OpenAI-Organization": ""},
        },
        "models": {"available": ["gpt-4o", "gpt-4o-mini"], "default": "gpt-4o-mini"},
        "request_template": {
            "model": "gpt-4o-mini",
            "messages": [],
            "max_tokens": None,
            "temperature": None,
            "stream": False,
        },
        "parameters": {
            "temperature": {"type": "float", "min": 0, "max": 2},
            "max_tokens": {"type": "integer", "min": 1, "max": 4096},
            "top_p": {"type": "number", "min": 0, "max": 1},
            "user": {"type": "string", "max_length": 8},
            "stop": {"type": "array", "max_items": 2},
            "stream": {"type": "boolean"},
            "response_format": {"type": "string", "enum": ["text", "json_object"]},
            "seed": {"type": "integer", "enum": [1, 2, 3]},
        },
        "message_roles": ["system", "user", "assistant"],
        "system_message": {"supported": True, "field": "messages", "role": "system"},
        "multimodal": {"supported": True, "supported_types": ["text", "image"]},
        "message_format": {
            "structure": {"role": "<ROLE>", "content": []},
            "content_types": {
                "text": {"type": "text", "text": "<TEXT_CONTENT>"},
                "image": {"type": "image_url", "image_url": {"url": "<IMAGE_URL>", "detail": None}},
            },
        },
        "response_format": {
            "success": {
                "text_path": ["choices", 0, "message", "content"],
                "content_path": ["choices", 0, "message"],
                "usage_path": ["usage"],
            },
            "error": {"error_path": ["error", "message"]},
            "stream": {"content_delta_path": ["choices", 0, "delta", "content"]},
        },
        "features": {"streaming": True, "multimodal": True, "system_messages": True},
        "validation": {"message_validation": {"last_message_role": "user"}},
    }


def _claude_document():
    return {
        "provider": {"name": "claude", "display_name": "Anthropic Claude"},
        "api": {"endpoint": "https://api.anthropic.com/v1/messages", "method": "POST"},
        "authentication": {"type": "header", "key_placeholder": "<KEY>"},
        "headers": {
            "required": {"x-api-key": "<KEY>", "anthropic-version": "2023-06-01"},
        },
        "models": {"available": ["claude-3-5-sonnet"], "default": "claude-3-5-sonnet"},
        "request_template": {
            "model": "claude-3-5-sonnet",
            "max_tokens": 1024,
            "messages": [],
            "system": None,
            "temperature": None,
            "stream": False,
        },
        "parameters": {
            "max_tokens": {"type": "integer", "required": True, "min": 1, "max": 8192},
            "temperature": {"type": "float", "min": 0, "max": 1},
        },
        "message_roles": ["user", "assistant"],
        "system_message": {"supported": True, "field": "system"},
        "multimodal": {"supported": True, "supported_types": ["text", "image"]},
        "message_format": {
            "structure": {"role": "<ROLE>", "content": []},
            "content_types": {
                "text": {"type": "text", "text": "<TEXT_CONTENT>"},
                "image": {
                    "type": "image",
                    "source": {"type": "base64", "media_type": "<MEDIA_TYPE>", "data": "<DATA>"},
                },
            },
        },
        "response_format": {
            "success": {
                "text_path": ["content", 0, "text"],
                "content_path": ["content"],
                "usage_path": ["usage"],
            },
            "error": {"error_path": ["error", "message"]},
        },
        "features": {"streaming": True, "system_messages": True},
    }


def _flat_document():
    return {
        "provider": {"name": "deepseek", "display_name": "DeepSeek"},
        "api": {"endpoint": "https://api.deepseek.com/chat/completions"},
        "authentication": {"type": "header", "key_placeholder": "<KEY>"},
        "headers": {"required": {"Authorization": "Bearer <KEY>"}},
        "models": {"available": ["deepseek-chat"], "default": "deepseek-chat"},
        "request_template": {"model": "deepseek-chat", "messages": [], "stream": False},
        "parameters": {},
        "message_roles": [],
        "system_message": {"supported": False},
        "multimodal": {"supported": False},
        "message_format": {
            "structure": {"role": "<ROLE>", "content": "<TEXT_CONTENT>"},
            "content_types": {"text": {"type": "text", "text": "<TEXT_CONTENT>"}},
        },
        "response_format": {
            "success": {"text_path": ["choices", "0", "message", "content"]},
            "error": {"error_path": []},
        },
        "features": {"streaming": False},
    }


@pytest.fixture
def openai_document():
    return _openai_document()


@pytest.fixture
def claude_document():
    return _claude_document()


@pytest.fixture
def flat_document():
    return _flat_document()


@pytest.fixture
def schema_dir(tmp_path):
    """A directory holding the test documents as <provider>.json files."""
    for doc in (_openai_document(), _claude_document(), _flat_document()):
        path = tmp_path / f"{doc['provider']['name']}.json"
        path.write_text(json.dumps(doc), encoding="utf-8")
    return tmp_path


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None, lines=None, reason="OK"):
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        self.text = text if text is not None else (json.dumps(payload) if payload is not None else "")
        self._lines = lines or []
        self.encoding = None
        self.closed = False

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload

    def iter_lines(self, decode_unicode=False):
        yield from self._lines

    def close(self):
        self.closed = True


class FakeSession:
    """Records requests and replays queued responses (or raises queued exceptions)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self):
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        return self._next()

    def get(self, url, **kwargs):
        self.calls.append({"method": "GET", "url": url, **kwargs})
        return self._next()


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession
