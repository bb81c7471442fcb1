"""Tests for message and response translation (Content <-> Ollama chat)."""

import json

import pytest

from ollama_bridge.adapters.messages import (
    content_to_message,
    contents_to_messages,
    map_role,
    response_from_ollama,
    usage_from_ollama,
)
from ollama_bridge.adapters.wire import OllamaChatResponse
from ollama_bridge.schema import Blob, Content, FinishReason, Part


def turn(role="user", *parts):
    return Content(role=role, parts=tuple(parts))


# ─────────────────────────────────────────────────────────────────────
# ROLES
# ─────────────────────────────────────────────────────────────────────


class TestRoleMapping:
    @pytest.mark.parametrize("role,expected", [
        ("model", "assistant"),
        ("user", "user"),
        ("system", "system"),
        ("assistant", "assistant"),
    ])
    def test_map_role(self, role, expected):
        assert map_role(role) == expected

    def test_model_turn_becomes_assistant_message(self):
        message = content_to_message(turn("model", Part.from_text("hi")))
        assert message.role == "assistant"


# ─────────────────────────────────────────────────────────────────────
# CONTENT -> MESSAGE
# ─────────────────────────────────────────────────────────────────────


class TestContentToMessage:
    """One Content turn becomes at most one Ollama message."""

    def test_empty_turns_dropped(self):
        contents = [
            turn("user", Part.from_text("a")),
            turn("model"),
            turn("user", Part.from_text("b")),
        ]
        messages = contents_to_messages(contents)
        assert len(messages) == len(contents) - 1
        assert [m.content for m in messages] == ["a", "b"]

    def test_text_parts_concatenated_in_order(self):
        message = content_to_message(turn("user", Part.from_text("Hello, "), Part.from_text("world")))
        assert message.content == "Hello, world"

    def test_image_inline_data_becomes_image(self):
        image = Part(inline_data=Blob(mime_type="image/png", data="aGVsbG8="))
        message = content_to_message(turn("user", Part.from_text("What is this?"), image))
        assert message.images == ["aGVsbG8="]

    def test_non_image_inline_data_dropped(self):
        pdf = Part(inline_data=Blob(mime_type="application/pdf", data="JVBERi0="))
        message = content_to_message(turn("user", Part.from_text("Read"), pdf))
        assert message.images is None
        assert message.content == "Read"

    def test_function_call_becomes_tool_call(self):
        call = Part.from_function_call("get_weather", {"city": "Paris"})
        message = content_to_message(turn("model", call))
        assert len(message.tool_calls) == 1
        assert message.tool_calls[0].function.name == "get_weather"
        assert json.loads(message.tool_calls[0].function.arguments) == {"city": "Paris"}

    def test_function_call_without_args_encodes_empty_object(self):
        message = content_to_message(turn("model", Part.from_function_call("ping")))
        assert message.tool_calls[0].function.arguments == "{}"

    def test_function_response_folded_into_text(self):
        result = Part.from_function_response("get_weather", {"temp": 21})
        message = content_to_message(turn("user", result))
        assert message.content == 'Function get_weather returned: {"temp": 21}'
        assert message.tool_calls is None

    def test_function_response_without_name(self):
        message = content_to_message(turn("user", Part.from_function_response(None, "ok")))
        assert message.content == 'Function unknown returned: "ok"'

    def test_optional_fields_omitted_on_wire(self):
        message = content_to_message(turn("user", Part.from_text("hi")))
        assert message.to_wire() == {"role": "user", "content": "hi"}


# ─────────────────────────────────────────────────────────────────────
# RESPONSE
# ─────────────────────────────────────────────────────────────────────


def wire_response(**fields) -> OllamaChatResponse:
    fields.setdefault("message", {"role": "assistant", "content": ""})
    return OllamaChatResponse.model_validate(fields)


class TestResponseFromOllama:
    """One wire response becomes one GenerateContentResponse."""

    def test_done_false_leaves_finish_reason_unset(self):
        response = response_from_ollama(wire_response(message={"content": "par"}, done=False))
        assert response.candidates[0].finish_reason is None

    def test_done_true_is_stop(self):
        response = response_from_ollama(wire_response(message={"content": "tial"}, done=True))
        assert response.candidates[0].finish_reason == FinishReason.STOP

    def test_single_candidate_model_role(self):
        response = response_from_ollama(wire_response(message={"content": "hi"}, done=True))
        assert len(response.candidates) == 1
        assert response.candidates[0].index == 0
        assert response.candidates[0].content.role == "model"
        assert response.text == "hi"

    def test_empty_content_yields_no_text_part(self):
        response = response_from_ollama(wire_response(message={"content": ""}, done=True))
        assert response.candidates[0].content.parts == ()

    def test_text_precedes_tool_calls(self):
        response = response_from_ollama(wire_response(
            message={
                "content": "Checking.",
                "tool_calls": [
                    {"function": {"name": "a", "arguments": {"x": 1}}},
                    {"function": {"name": "b", "arguments": "{\"y\": 2}"}},
                ],
            },
            done=True,
        ))
        parts = response.candidates[0].content.parts
        assert parts[0].text == "Checking."
        assert [p.function_call.name for p in parts[1:]] == ["a", "b"]
        assert [c.args for c in response.function_calls] == [{"x": 1}, {"y": 2}]

    def test_malformed_arguments_become_empty_mapping(self):
        response = response_from_ollama(wire_response(
            message={"tool_calls": [{"function": {"name": "a", "arguments": "{not json"}}]},
            done=True,
        ))
        assert response.function_calls[0].name == "a"
        assert response.function_calls[0].args == {}


class TestUsage:
    def test_usage_from_counters(self):
        usage = usage_from_ollama(wire_response(prompt_eval_count=10, eval_count=8))
        assert usage.prompt_token_count == 10
        assert usage.candidates_token_count == 8
        assert usage.total_token_count == 18

    def test_usage_omitted_without_counters(self):
        response = response_from_ollama(wire_response(message={"content": "x"}, done=False))
        assert response.usage_metadata is None

    def test_missing_prompt_count_treated_as_zero(self):
        usage = usage_from_ollama(wire_response(eval_count=5))
        assert usage.prompt_token_count == 0
        assert usage.total_token_count == 5
