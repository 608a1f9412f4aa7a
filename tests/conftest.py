from datetime import datetime
from typing import Any, List

import pytest

from core.invoke import ResilientInvoker
from core.llm import ChatChoice, ChatMessage, ChatResponse
from core.types import ModelSettings
from storage.cache import ResponseCache

FIXED_NOW = datetime(2026, 10, 17, 12, 0, 0)


class FakeCompletions:
    """Returns (or raises) the queued replies in order; the last one repeats."""

    def __init__(self, replies: List[Any]):
        self.replies = list(replies)
        self.calls: List[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, str):
            return ChatResponse(choices=[ChatChoice(message=ChatMessage(content=reply))])
        return reply


class FakeLLMClient:
    def __init__(self, *replies: Any):
        self.completions = FakeCompletions(list(replies) or [""])
        self.chat = self

    @property
    def calls(self) -> List[dict]:
        return self.completions.calls


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.value = start

    def __call__(self) -> int:
        return self.value

    def advance(self, ms: int) -> None:
        self.value += ms


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def settings():
    return ModelSettings(provider="openai", model="test-model", temperature=0.5, max_tokens=200)


@pytest.fixture
def fake_llm():
    return FakeLLMClient


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def cache_paths(tmp_path):
    return {
        "db_path": str(tmp_path / "cache" / "responses.sqlite3"),
        "flag_path": str(tmp_path / "cache" / "memory-only.flag"),
    }


@pytest.fixture
def memory_cache(tmp_path, clock):
    """Cache with no persistent store configured."""
    return ResponseCache(flag_path=str(tmp_path / "memory-only.flag"), clock=clock)


@pytest.fixture
def invoker(memory_cache, recording_sleep):
    return ResilientInvoker(
        cache=memory_cache,
        max_retries=3,
        initial_delay=1.0,
        sleep=recording_sleep,
        now=lambda: FIXED_NOW,
    )
