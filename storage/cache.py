"""
Response cache: fingerprint of a model request -> previously produced text.

Entries expire one hour after they are written. The persistent SQLite store is
opened lazily on first use; if that fails, or if any operation reports that
the storage engine's internal state is corrupt, the cache latches into
memory-only mode. The latch is written to a side flag file so a new process
starts in memory-only mode too, until ``reset_error_status()`` is called.

Every persistent operation runs in a worker thread with a hard timeout and
resolves to "not found" / "not written" instead of hanging the caller.
"""

import asyncio
import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

from core.types import CacheEntry

from .memory import MemoryCacheBackend
from .sqlite import SQLiteCacheBackend

logger = logging.getLogger(__name__)

CACHE_EXPIRY_MS = 3_600_000  # 1 hour
OPERATION_TIMEOUT_S = 3.0
KEY_PREFIX_CHARS = 100

# Substrings identifying a corrupted / undefined storage engine state
CORRUPTION_MARKERS = (
    "inTable",
    "this.data is undefined",
    "internal state is undefined",
    "database disk image is malformed",
    "file is not a database",
)


def is_storage_corruption_error(error: Optional[BaseException]) -> bool:
    """True if the error message names a corrupted storage engine."""
    if error is None:
        return False
    message = str(error)
    return any(marker in message for marker in CORRUPTION_MARKERS)


def now_ms() -> int:
    return int(time.time() * 1000)


def _utf16_units(text: str) -> Iterator[int]:
    for char in text:
        code_point = ord(char)
        if code_point > 0xFFFF:
            code_point -= 0x10000
            yield 0xD800 + (code_point >> 10)
            yield 0xDC00 + (code_point & 0x3FF)
        else:
            yield code_point


def rolling_hash(text: str) -> int:
    """32-bit ``h * 31 + c`` hash over UTF-16 code units, signed like an int32."""
    value = 0
    for unit in _utf16_units(text):
        value = ((value << 5) - value + unit) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 0x100000000
    return value


def create_cache_key(payload: Dict[str, Any], clock: Callable[[], int] = now_ms) -> str:
    """
    Deterministic fingerprint of a request.

    Keys are sorted at every level, so insertion order does not matter. Never
    raises: if the payload cannot be serialized, a time-based key is returned
    instead, which will not match a later identical request.
    """
    try:
        stable = json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
        return f"{rolling_hash(stable):x}_{stable[:KEY_PREFIX_CHARS]}"
    except Exception as e:
        logger.error("Error creating cache key: %s", e)
        names = "-".join(str(k) for k in payload.keys()) if isinstance(payload, dict) else ""
        return f"fallback_{clock()}_{names}"


def _close_backend(backend: Any) -> None:
    close = getattr(backend, "close", None)
    if close is None:
        return
    try:
        close()
    except Exception as e:
        logger.error("Error closing cache backend: %r", e)


def _close_abandoned_backend(future: "asyncio.Future") -> None:
    if future.cancelled() or future.exception() is not None:
        return
    logger.info("Closing cache backend that finished opening after the timeout")
    _close_backend(future.result())


class ResponseCache:
    """
    Cache service shared by every model call in the process.

    Inject one instance wherever it is consumed; tests build their own with a
    temporary ``db_path`` / ``flag_path`` and a fake ``clock``.
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        flag_path: Optional[str] = None,
        ttl_ms: int = CACHE_EXPIRY_MS,
        operation_timeout: float = OPERATION_TIMEOUT_S,
        clock: Callable[[], int] = now_ms,
        backend_factory: Optional[Callable[[], Any]] = None,
    ):
        self.db_path = db_path
        self.flag_path = Path(flag_path) if flag_path else None
        self.ttl_ms = ttl_ms
        self.operation_timeout = operation_timeout
        self.clock = clock
        if backend_factory is None and db_path:
            backend_factory = lambda: SQLiteCacheBackend(db_path)  # noqa: E731
        self._backend_factory = backend_factory

        self.memory = MemoryCacheBackend()
        self._backend = None
        self._init_lock = asyncio.Lock()
        self._memory_only = self._read_flag()
        if self._memory_only:
            logger.warning("Response cache starting in memory-only mode (flag %s)", self.flag_path)

    # Mode management

    @property
    def memory_only(self) -> bool:
        return self._memory_only

    def force_memory_only_mode(self, reason: str = "forced by operator") -> None:
        """Stop using the persistent store for the rest of this cache's life."""
        if not self._memory_only:
            logger.warning("Response cache switching to memory-only mode: %s", reason)
        self._memory_only = True
        self._drop_backend()
        self._write_flag(reason)

    def reset_error_status(self) -> None:
        """Clear the memory-only latch; the next call re-opens the persistent store."""
        self._memory_only = False
        self._drop_backend()
        if self.flag_path is not None:
            try:
                self.flag_path.unlink(missing_ok=True)
            except OSError as e:
                logger.error("Could not remove cache flag %s: %s", self.flag_path, e)
        logger.info("Response cache error status reset")

    def status(self) -> Dict[str, Any]:
        if self._backend is not None:
            backend = self._backend.name
        elif self._memory_only or self._backend_factory is None:
            backend = self.memory.name
        else:
            backend = "uninitialized"
        return {
            "memory_only": self._memory_only,
            "backend": backend,
            "memory_entries": len(self.memory),
            "flag_path": str(self.flag_path) if self.flag_path else None,
            "ttl_ms": self.ttl_ms,
        }

    def _read_flag(self) -> bool:
        return self.flag_path is not None and self.flag_path.exists()

    def _write_flag(self, reason: str) -> None:
        if self.flag_path is None:
            return
        try:
            self.flag_path.parent.mkdir(parents=True, exist_ok=True)
            self.flag_path.write_text(json.dumps({
                "memory_only": True,
                "reason": reason,
                "since": datetime.now().isoformat(),
            }))
        except OSError as e:
            logger.error("Could not persist cache flag %s: %s", self.flag_path, e)

    # Backend plumbing

    def _drop_backend(self) -> None:
        backend, self._backend = self._backend, None
        if backend is not None:
            _close_backend(backend)

    async def _run(self, fn: Callable, *args: Any) -> Any:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.operation_timeout)

    async def _ensure_backend(self):
        """Persistent backend, or None when the memory map should be used."""
        if self._memory_only or self._backend_factory is None:
            return None
        if self._backend is not None:
            return self._backend

        async with self._init_lock:
            if self._backend is None and not self._memory_only:
                logger.info("Initializing response cache database...")
                try:
                    backend = await self._open_backend()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error("Failed to initialize response cache database: %r", e)
                    self.force_memory_only_mode(reason=f"initialization failed: {e!r}")
                    return None
                self._backend = backend
                await self._cleanup(backend)
        return self._backend

    async def _open_backend(self) -> Any:
        """Build the backend in a worker thread; one that finishes after the timeout is closed."""
        future = asyncio.ensure_future(asyncio.to_thread(self._backend_factory))
        try:
            done, _ = await asyncio.wait({future}, timeout=self.operation_timeout)
        except asyncio.CancelledError:
            future.add_done_callback(_close_abandoned_backend)
            raise
        if not done:
            future.add_done_callback(_close_abandoned_backend)
            raise asyncio.TimeoutError(f"opening the store took over {self.operation_timeout}s")
        return future.result()

    async def _cleanup(self, backend: Any) -> None:
        try:
            removed = await self._run(backend.sweep, self.clock() - self.ttl_ms)
            if removed:
                logger.info("Deleted %d expired cache entries", removed)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._handle_storage_error(e, "cleanup")

    def _handle_storage_error(self, error: BaseException, operation: str) -> None:
        if isinstance(error, asyncio.TimeoutError):
            logger.warning("Cache %s timed out after %.1fs", operation, self.operation_timeout)
        elif is_storage_corruption_error(error):
            logger.error("Cache %s hit a corrupted store: %s", operation, error)
            self.force_memory_only_mode(reason=str(error))
        else:
            logger.error("Error during cache %s: %r", operation, error)

    def _expired(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.timestamp > self.ttl_ms

    # Public API

    def create_key(self, payload: Dict[str, Any]) -> str:
        return create_cache_key(payload, clock=self.clock)

    async def get(self, key: str) -> Optional[str]:
        """Cached response for key, or None if absent, expired or unreadable."""
        try:
            backend = await self._ensure_backend()
            if backend is None:
                return self._memory_get(key)

            try:
                entry = await self._run(backend.get, key)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._handle_storage_error(e, "read")
                return None

            if entry is None:
                return None
            if self._expired(entry):
                try:
                    await self._run(backend.delete, key)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._handle_storage_error(e, "delete")
                return None

            logger.debug("Persistent cache hit for: %.50s...", key)
            return entry.response
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error retrieving from cache: %r", e)
            return None

    def _memory_get(self, key: str) -> Optional[str]:
        self.memory.sweep(self.clock() - self.ttl_ms)
        entry = self.memory.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            self.memory.delete(key)
            return None
        logger.debug("Memory cache hit for: %.50s...", key)
        return entry.response

    async def set(self, key: str, prompt: str, response: str) -> None:
        """Store a response. Storage errors drop the write."""
        try:
            entry = CacheEntry(key=key, prompt=prompt, response=response, timestamp=self.clock())
            backend = await self._ensure_backend()
            if backend is None:
                self.memory.put(entry)
                logger.debug("Cached response in memory for: %.50s...", key)
                return

            try:
                await self._run(backend.put, entry)
                logger.debug("Cached response in %s for: %.50s...", backend.name, key)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._handle_storage_error(e, "write")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error writing to cache: %r", e)

    async def clear(self) -> None:
        self.memory.clear()
        backend = self._backend
        if backend is not None:
            try:
                await self._run(backend.clear)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._handle_storage_error(e, "clear")


_response_cache: Optional[ResponseCache] = None


def get_response_cache() -> ResponseCache:
    """Process-wide cache built from the environment configuration."""
    global _response_cache
    if _response_cache is None:
        from config import config
        _response_cache = ResponseCache(
            db_path=config.cache_db_path,
            flag_path=config.cache_flag_path,
            ttl_ms=config.cache_ttl_seconds * 1000,
            operation_timeout=config.cache_op_timeout_seconds,
        )
    return _response_cache
