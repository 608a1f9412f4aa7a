"""
Normalization of whatever a model call returns into plain text.

Every raw reply is first classified into one of three variants and text is
then extracted from the variant:

    PlainText          a string, or an object that only carries a string
    StructuredMessage  an assistant message whose content is a list of parts
    UnknownResponse    anything else; rendered as JSON when possible
"""

import json
from dataclasses import dataclass
from typing import Any, List, Union


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class StructuredMessage:
    parts: List[Any]


@dataclass(frozen=True)
class UnknownResponse:
    value: Any


ModelResponse = Union[PlainText, StructuredMessage, UnknownResponse]


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def classify_response(raw: Any) -> ModelResponse:
    """Map a raw model reply onto the closed set of response variants."""
    if isinstance(raw, str):
        return PlainText(raw)
    if raw is None:
        return UnknownResponse(None)

    # OpenAI-style completion: unwrap to the first choice's message
    choices = _get(raw, "choices")
    if isinstance(choices, (list, tuple)) and choices:
        message = _get(choices[0], "message")
        if message is not None:
            return classify_response(message)

    content = _get(raw, "content")
    if isinstance(content, str):
        return PlainText(content)
    if isinstance(content, (list, tuple)):
        return StructuredMessage(list(content))

    text = _get(raw, "text")
    if isinstance(text, str):
        return PlainText(text)

    if content is not None:
        return classify_response(content)

    return UnknownResponse(raw)


def _part_text(part: Any) -> str:
    if isinstance(part, str):
        return part
    text = _get(part, "text")
    if isinstance(text, str):
        return text
    return ""


def response_text(response: ModelResponse) -> str:
    """Text carried by a classified response. Total over the three variants."""
    if isinstance(response, PlainText):
        return response.text
    if isinstance(response, StructuredMessage):
        return "".join(_part_text(part) for part in response.parts)
    if response.value is None:
        return ""
    try:
        return json.dumps(response.value, default=lambda o: getattr(o, "__dict__", str(o)))
    except (TypeError, ValueError, RecursionError):
        return ""


def extract_text(raw: Any) -> str:
    """Plain text of any model reply; empty string if nothing is extractable."""
    return response_text(classify_response(raw))
