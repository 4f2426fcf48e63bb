"""Short-lived read cache for table snapshots."""
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0


class GridCache:
    """Per-table snapshot cache with a fixed time-to-live.

    Entries expire ``ttl_seconds`` after insertion; a hit is never
    revalidated against the store. Writers call ``clear()`` which drops every
    table, not just the one they touched. No locking: last writer wins.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() > expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def clear(self) -> None:
        if self._entries:
            logger.debug("Clearing %d cached tables", len(self._entries))
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
