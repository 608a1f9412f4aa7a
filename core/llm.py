"""
LLM Provider abstraction supporting Claude (Anthropic) and OpenAI.

Both clients expose the OpenAI-style ``client.chat.completions.create(...)``
coroutine so the rest of the code does not care which provider is behind it.

Usage:
    from core.llm import create_llm_client
    from core.types import ModelSettings

    client = create_llm_client(ModelSettings(provider="anthropic"))
    response = await client.chat.completions.create(messages=[...])
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .types import ModelSettings

logger = logging.getLogger(__name__)


class LLMProvider(Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


DEFAULT_MODELS = {
    LLMProvider.ANTHROPIC: "claude-sonnet-4-20250514",
    LLMProvider.OPENAI: "gpt-4o-mini",
}


@dataclass
class ChatMessage:
    """Assistant message. ``content`` is a string or a list of content parts."""
    content: Union[str, List[Dict[str, Any]]]
    role: str = "assistant"


@dataclass
class ChatChoice:
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResponse:
    choices: List[ChatChoice]
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)


class AnthropicLLMClient:
    """Wrapper for Anthropic's Claude API with OpenAI-compatible interface."""

    def __init__(self, api_key: str, default_model: str = DEFAULT_MODELS[LLMProvider.ANTHROPIC], base_url: str = None):
        from anthropic import AsyncAnthropic

        if base_url:
            self.client = AsyncAnthropic(api_key=api_key, base_url=base_url)
        else:
            self.client = AsyncAnthropic(api_key=api_key)
        logger.debug("Anthropic client using base URL: %s", base_url or os.getenv("ANTHROPIC_BASE_URL", "default"))

        self.default_model = default_model
        self.chat = self  # For compatibility with OpenAI interface
        self.completions = self

    async def create(
        self,
        model: Optional[str] = None,
        messages: List[Dict[str, str]] = None,
        max_tokens: int = 400,
        temperature: float = 0.9,
        **kwargs
    ) -> ChatResponse:
        """Create a chat completion using Claude."""
        system_content, chat_messages = self._split_messages(messages or [])

        # Claude rejects a conversation that does not start with a user turn
        if not chat_messages:
            chat_messages = [{"role": "user", "content": system_content or "Continue."}]
            system_content = ""

        request_kwargs = {
            "model": model or self.default_model,
            "max_tokens": max_tokens,
            "messages": chat_messages,
            "temperature": temperature,
        }
        if system_content:
            request_kwargs["system"] = system_content

        response = await self.client.messages.create(**request_kwargs)
        return self._convert_response(response)

    @staticmethod
    def _split_messages(messages: List[Dict[str, str]]):
        system_parts = []
        chat_messages = []
        for msg in messages:
            role = msg.get("role", "user")
            content = msg.get("content", "")
            if role == "system":
                system_parts.append(content)
            else:
                chat_messages.append({"role": role, "content": content})
        return "\n".join(system_parts).strip(), chat_messages

    @staticmethod
    def _convert_response(response: Any) -> ChatResponse:
        """Keep Claude's text blocks as ordered content parts."""
        parts = [
            {"type": "text", "text": block.text}
            for block in response.content
            if getattr(block, "type", None) == "text"
        ]
        usage = getattr(response, "usage", None)
        return ChatResponse(
            choices=[ChatChoice(message=ChatMessage(content=parts), finish_reason=response.stop_reason)],
            model=response.model,
            usage={
                "input_tokens": getattr(usage, "input_tokens", 0),
                "output_tokens": getattr(usage, "output_tokens", 0),
            },
        )


class OpenAILLMClient:
    """Wrapper for OpenAI API."""

    def __init__(self, api_key: str, default_model: str = DEFAULT_MODELS[LLMProvider.OPENAI], base_url: str = None):
        from openai import AsyncOpenAI

        if base_url:
            self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        else:
            self.client = AsyncOpenAI(api_key=api_key)
        self.default_model = default_model
        self.chat = self.client.chat
        self.completions = self.client.chat.completions


def resolve_provider(name: Optional[str] = None) -> LLMProvider:
    """Provider from a name, or auto-detected from the available API keys."""
    if name:
        try:
            return LLMProvider(name.lower())
        except ValueError:
            raise ValueError(f"Unknown provider: {name}")

    if os.getenv("ANTHROPIC_API_KEY"):
        return LLMProvider.ANTHROPIC
    if os.getenv("OPENAI_API_KEY"):
        return LLMProvider.OPENAI
    raise ValueError("No API key found. Set ANTHROPIC_API_KEY or OPENAI_API_KEY")


def create_llm_client(settings: ModelSettings) -> Any:
    """
    Create an LLM client for the given session settings.

    Args:
        settings: Session model settings. A custom ``api_key`` wins over the
            server-side key from the environment.

    Returns:
        LLM client with OpenAI-compatible interface

    Raises:
        ValueError: if no API key is available for the provider.
    """
    provider = resolve_provider(settings.provider)

    if provider == LLMProvider.ANTHROPIC:
        api_key = settings.api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY is required")
        return AnthropicLLMClient(
            api_key=api_key,
            default_model=settings.model or get_default_model(provider),
            base_url=settings.base_url,
        )

    api_key = settings.api_key or os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ValueError("OPENAI_API_KEY is required")
    return OpenAILLMClient(
        api_key=api_key,
        default_model=settings.model or get_default_model(provider),
        base_url=settings.base_url,
    )


def get_default_model(provider: LLMProvider) -> str:
    """Get the default model for a provider."""
    return DEFAULT_MODELS.get(provider, DEFAULT_MODELS[LLMProvider.ANTHROPIC])
