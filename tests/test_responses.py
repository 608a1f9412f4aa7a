from types import SimpleNamespace

import pytest

from core.llm import ChatChoice, ChatMessage, ChatResponse
from core.responses import (
    PlainText,
    StructuredMessage,
    UnknownResponse,
    classify_response,
    extract_text,
)


def _completion(content):
    return ChatResponse(choices=[ChatChoice(message=ChatMessage(content=content))])


def test_string_is_plain_text():
    assert classify_response("hi") == PlainText("hi")
    assert extract_text("hi") == "hi"


def test_completion_with_string_content():
    assert extract_text(_completion("answer")) == "answer"


def test_completion_with_content_parts():
    raw = _completion([
        {"type": "text", "text": "Hello, "},
        {"type": "text", "text": "world"},
    ])
    assert isinstance(classify_response(raw), StructuredMessage)
    assert extract_text(raw) == "Hello, world"


def test_parts_without_text_contribute_nothing():
    raw = _completion([{"type": "image"}, {"type": "text", "text": "only this"}, "tail"])
    assert extract_text(raw) == "only thistail"


def test_anthropic_style_message_object():
    raw = SimpleNamespace(content=[SimpleNamespace(type="text", text="from claude")])
    assert extract_text(raw) == "from claude"


def test_dict_with_text_field():
    assert extract_text({"text": "plain"}) == "plain"


def test_dict_with_nested_content():
    assert extract_text({"content": {"text": "nested"}}) == "nested"


def test_none_is_empty():
    assert classify_response(None) == UnknownResponse(None)
    assert extract_text(None) == ""


def test_unknown_value_rendered_as_json():
    assert extract_text({"score": 3}) == '{"score": 3}'
    assert extract_text(42) == "42"


def test_unrenderable_value_is_empty():
    loop = []
    loop.append(loop)
    assert extract_text(loop) == ""


@pytest.mark.parametrize("raw", [_completion(""), ""])
def test_empty_reply(raw):
    assert extract_text(raw) == ""
