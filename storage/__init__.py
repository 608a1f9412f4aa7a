from .cache import ResponseCache, create_cache_key, get_response_cache, is_storage_corruption_error
from .memory import MemoryCacheBackend
from .sqlite import SQLiteCacheBackend

__all__ = [
    "ResponseCache",
    "create_cache_key",
    "get_response_cache",
    "is_storage_corruption_error",
    "MemoryCacheBackend",
    "SQLiteCacheBackend",
]
