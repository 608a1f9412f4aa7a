"""
Prompt chains: a prompt template bound to a model client and session settings.

A chain is the "structured" path of a model call. ``invoke(values)`` renders
the template with the given values and sends it to the model. The resilient
invoker wraps ``invoke`` and, when it keeps failing, talks to
``chain.llm_client`` directly with a minimal prompt instead.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .types import ModelSettings


class _TemplateValues(dict):
    """format_map mapping that renders non-string values as JSON."""

    def __getitem__(self, key: str) -> Any:
        value = super().__getitem__(key)
        if isinstance(value, (list, tuple)):
            return json.dumps(list(value), ensure_ascii=False)
        return value

    def __missing__(self, key: str) -> str:
        raise KeyError(f"Missing prompt variable: {key}")


@dataclass(frozen=True)
class PromptTemplate:
    """Ordered (role, template) pairs. Literal braces are written ``{{ }}``."""
    messages: Tuple[Tuple[str, str], ...]

    @classmethod
    def from_messages(cls, messages: Sequence[Tuple[str, str]]) -> "PromptTemplate":
        return cls(messages=tuple((role, template) for role, template in messages))

    def format_messages(self, values: Mapping[str, Any]) -> List[Dict[str, str]]:
        mapping = _TemplateValues(values)
        return [
            {"role": role, "content": template.format_map(mapping)}
            for role, template in self.messages
        ]


class LLMChain:
    """Prompt template -> model call, returning the raw model reply."""

    def __init__(self, prompt: PromptTemplate, llm_client: Any, settings: ModelSettings):
        self.prompt = prompt
        self.llm_client = llm_client
        self.settings = settings

    async def invoke(self, values: Mapping[str, Any]) -> Any:
        messages = self.prompt.format_messages(values)
        return await self.call_model(messages)

    async def call_model(self, messages: List[Dict[str, str]]) -> Any:
        """Send messages to the model with this chain's settings, no template."""
        return await self.llm_client.chat.completions.create(
            model=self.settings.model,
            messages=messages,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )
