"""
Resilient model invocation.

``ResilientInvoker.safe_invoke(chain, payload, default)`` never raises. In order
it tries the response cache, the chain with retries, a direct call to the
chain's model with a minimal prompt, and finally returns ``default``.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from .responses import extract_text
from .retry import with_retry
from .types import InvocationResult, InvocationSource

logger = logging.getLogger(__name__)

FALLBACK_SYSTEM_NOTE = "Please respond to the following:"


def time_context(now: Optional[datetime] = None) -> Dict[str, str]:
    """Current date, time (minute resolution) and timezone."""
    now = (now or datetime.now()).astimezone()
    return {
        "date": now.strftime("%A, %B %d, %Y"),
        "time": now.strftime("%H:%M"),
        "timezone": now.tzname() or "UTC",
    }


def _stringify(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False, default=str)


class ResilientInvoker:
    """Cache lookup, retry, fallback and default around every model call."""

    def __init__(
        self,
        cache: Any,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.cache = cache
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.sleep = sleep
        self.now = now

    async def safe_invoke(self, chain: Any, payload: Dict[str, Any], default_value: str = "") -> str:
        """Text of the model reply for payload, a cached reply, or default_value."""
        result = await self.invoke(chain, payload, default_value)
        return result.text

    async def invoke(self, chain: Any, payload: Dict[str, Any], default_value: str = "") -> InvocationResult:
        try:
            return await self._invoke(chain, payload, default_value)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error in safe_invoke: %r", e)
            return InvocationResult(text=default_value, source=InvocationSource.DEFAULT, cause=e)

    async def _invoke(self, chain: Any, payload: Dict[str, Any], default_value: str) -> InvocationResult:
        augmented = dict(payload)
        augmented["time_context"] = time_context(self.now())
        key = self.cache.create_key(augmented)

        cached = await self._lookup(key)
        if cached:
            logger.info("Using cached response")
            return InvocationResult(text=cached, source=InvocationSource.CACHE)

        logger.info("Cache miss, invoking chain")
        attempts = 0

        async def attempt():
            nonlocal attempts
            attempts += 1
            return await chain.invoke(augmented)

        cause = None
        source = InvocationSource.MODEL
        try:
            raw = await with_retry(attempt, self.max_retries, self.initial_delay, sleep=self.sleep)
        except asyncio.CancelledError:
            raise
        except Exception as invoke_error:
            logger.error("Error in chain invocation, trying direct model call: %r", invoke_error)
            cause = invoke_error
            try:
                raw = await self._direct_call(chain, payload)
            except asyncio.CancelledError:
                raise
            except Exception as model_error:
                logger.error("Direct model call also failed: %r", model_error)
                return InvocationResult(
                    text=default_value,
                    source=InvocationSource.DEFAULT,
                    cause=model_error,
                    attempts=attempts,
                )
            source = InvocationSource.FALLBACK

        text = extract_text(raw)
        if text:
            await self._store(key, _stringify(augmented), text)
        return InvocationResult(text=text, source=source, cause=cause, attempts=attempts)

    async def _direct_call(self, chain: Any, payload: Dict[str, Any]) -> Any:
        """Ask the chain's model directly, bypassing its prompt template."""
        call_model = getattr(chain, "call_model", None)
        if call_model is None:
            raise RuntimeError(f"{type(chain).__name__} has no model to fall back to")
        messages = [
            {"role": "system", "content": FALLBACK_SYSTEM_NOTE},
            {"role": "user", "content": _stringify(payload)},
        ]
        return await call_model(messages)

    async def _lookup(self, key: str) -> Optional[str]:
        try:
            return await self.cache.get(key)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._on_cache_error(e, "lookup")
            return None

    async def _store(self, key: str, prompt: str, text: str) -> None:
        try:
            await self.cache.set(key, prompt, text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._on_cache_error(e, "store")

    def _on_cache_error(self, error: Exception, operation: str) -> None:
        from storage.cache import is_storage_corruption_error

        logger.error("Cache %s failed: %r", operation, error)
        if is_storage_corruption_error(error):
            try:
                self.cache.force_memory_only_mode(reason=str(error))
            except Exception as e:
                logger.error("Could not switch cache to memory-only mode: %r", e)
