from hyni.context.builder import ContextState, RequestBuilder, strip_nulls
from hyni.context.messages import MessageCompiler
from hyni.context.schema import load_schema


def _builder(document):
    schema = load_schema(document)
    compiler = MessageCompiler(schema)
    return RequestBuilder(schema, compiler), compiler


def _contains_null(value):
    if value is None:
        return True
    if isinstance(value, dict):
        return any(_contains_null(v) for v in value.values())
    if isinstance(value, list):
        return any(_contains_null(v) for v in value)
    return False


# =====================================================
# strip_nulls
# =====================================================


def test_strip_nulls_removes_nested_null_fields():
    value = {"a": None, "b": {"c": None, "d": 1}, "e": [{"f": None, "g": 2}]}
    assert strip_nulls(value) == {"b": {"d": 1}, "e": [{"g": 2}]}


def test_strip_nulls_keeps_list_items_and_falsy_values():
    value = {"items": [None, 0, ""], "flag": False, "empty": {}}
    assert strip_nulls(value) == {"items": [None, 0, ""], "flag": False, "empty": {}}


def test_strip_nulls_does_not_mutate_input():
    value = {"a": None, "b": {"c": None}}
    strip_nulls(value)
    assert value == {"a": None, "b": {"c": None}}


# =====================================================
# RequestBuilder
# =====================================================


def test_build_sets_model_and_messages(openai_document):
    builder, compiler = _builder(openai_document)
    message = compiler.compile("user", "hi")
    request = builder.build(ContextState(model="gpt-4o", messages=(message,)))

    assert request["model"] == "gpt-4o"
    assert request["messages"] == [message]
    assert request["stream"] is False


def test_build_has_no_nulls(openai_document):
    builder, compiler = _builder(openai_document)
    request = builder.build(
        ContextState(model="gpt-4o", messages=(compiler.compile("user", "hi"),))
    )
    assert not _contains_null(request)
    assert "max_tokens" not in request
    assert "temperature" not in request


def test_system_message_becomes_first_message_when_role_exists(openai_document):
    builder, compiler = _builder(openai_document)
    state = ContextState(
        model="gpt-4o",
        system_message="be brief",
        messages=(compiler.compile("user", "hi"),),
    )
    request = builder.build(state)

    assert [m["role"] for m in request["messages"]] == ["system", "user"]
    assert request["messages"][0]["content"][0]["text"] == "be brief"
    assert "system" not in request
    # The state's own message tuple is untouched.
    assert len(state.messages) == 1


def test_system_message_uses_separate_field_without_system_role(claude_document):
    builder, compiler = _builder(claude_document)
    request = builder.build(
        ContextState(
            model="claude-3-5-sonnet",
            system_message="be brief",
            messages=(compiler.compile("user", "hi"),),
        )
    )
    assert request["system"] == "be brief"
    assert [m["role"] for m in request["messages"]] == ["user"]


def test_unset_system_field_is_stripped(claude_document):
    builder, compiler = _builder(claude_document)
    request = builder.build(
        ContextState(model="claude-3-5-sonnet", messages=(compiler.compile("user", "hi"),))
    )
    assert "system" not in request
    assert request["max_tokens"] == 1024


def test_parameters_override_template(claude_document):
    builder, compiler = _builder(claude_document)
    request = builder.build(
        ContextState(
            model="claude-3-5-sonnet",
            messages=(compiler.compile("user", "hi"),),
            parameters={"max_tokens": 50, "temperature": 0.3},
        )
    )
    assert request["max_tokens"] == 50
    assert request["temperature"] == 0.3


def test_defaults_fill_only_unset_keys(openai_document, claude_document):
    builder, compiler = _builder(openai_document)
    request = builder.build(
        ContextState(model="gpt-4o", messages=(compiler.compile("user", "hi"),)),
        default_max_tokens=256,
        default_temperature=0.5,
    )
    assert request["max_tokens"] == 256
    assert request["temperature"] == 0.5

    # The template already carries max_tokens for Claude.
    builder, compiler = _builder(claude_document)
    request = builder.build(
        ContextState(model="claude-3-5-sonnet", messages=(compiler.compile("user", "hi"),)),
        default_max_tokens=256,
    )
    assert request["max_tokens"] == 1024


def test_defaults_never_override_explicit_parameters(openai_document):
    builder, compiler = _builder(openai_document)
    request = builder.build(
        ContextState(
            model="gpt-4o",
            messages=(compiler.compile("user", "hi"),),
            parameters={"temperature": 1.5},
        ),
        default_temperature=0.5,
    )
    assert request["temperature"] == 1.5


def test_streaming_flag_follows_provider_support(openai_document, flat_document):
    builder, compiler = _builder(openai_document)
    state = ContextState(model="gpt-4o", messages=(compiler.compile("user", "hi"),))
    assert builder.build(state, streaming=True)["stream"] is True

    builder, compiler = _builder(flat_document)
    state = ContextState(model="deepseek-chat", messages=(compiler.compile("user", "hi"),))
    assert builder.build(state, streaming=True)["stream"] is False


def test_explicit_stream_parameter_wins(openai_document):
    builder, compiler = _builder(openai_document)
    state = ContextState(
        model="gpt-4o",
        messages=(compiler.compile("user", "hi"),),
        parameters={"stream": False},
    )
    assert builder.build(state, streaming=True)["stream"] is False


def test_build_is_repeatable(openai_document):
    builder, compiler = _builder(openai_document)
    state = ContextState(
        model="gpt-4o",
        system_message="sys",
        messages=(compiler.compile("user", "hi"),),
        parameters={"temperature": 0.2},
    )
    first = builder.build(state)
    first["messages"].append({"role": "user", "content": "extra"})
    assert builder.build(state) == builder.build(state)
    assert len(builder.build(state)["messages"]) == 2
