from __future__ import annotations

import time
from typing import Any, Dict, Hashable, Optional, Tuple


class QueryCache:
    """
    In-memory cache of successful query results.

    Keys are tuples such as ``("verify-document", token, "AUTO")``.
    Failures are never stored. Not shared across processes.
    """

    def __init__(self, ttl_seconds: Optional[float] = None) -> None:
        self._ttl = ttl_seconds
        self._entries: Dict[Tuple[Hashable, ...], Tuple[float, Any]] = {}

    def get(self, key: Tuple[Hashable, ...]) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        stored_at, value = entry
        if self._ttl is not None and time.monotonic() - stored_at > self._ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: Tuple[Hashable, ...], value: Any) -> None:
        self._entries[key] = (time.monotonic(), value)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Tuple[Hashable, ...]) -> bool:
        return self.get(key) is not None
