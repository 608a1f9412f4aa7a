from typing import Dict, List, Optional

from core.types import CacheEntry


class MemoryCacheBackend:
    """
    In-memory storage for cached model responses.

    Used when the persistent store is unavailable or has been latched off
    after a corruption error. Contents live as long as the owning cache.
    """

    name = "memory"

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        """Get an entry by key."""
        return self._entries.get(key)

    def put(self, entry: CacheEntry) -> None:
        """Save or replace an entry."""
        self._entries[entry.key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def sweep(self, cutoff: int) -> int:
        """Delete entries written before ``cutoff`` (epoch ms). Returns the count."""
        expired: List[str] = [
            key for key, entry in self._entries.items() if entry.timestamp < cutoff
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        """Clear all stored data."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
