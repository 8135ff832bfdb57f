"""
Bounded cache for upstream responses.

Capacity- and time-bounded key/value store with least-recently-used eviction.
Reads (``get`` and ``has``) refresh both recency and age, so frequently used
entries keep sliding forward. A disabled cache answers every call as a miss,
letting callers treat "cache present" and "cache disabled" the same way.

Runs on the single asyncio thread; evict-then-insert is not atomic, so a
threaded caller would need its own lock.
"""

from __future__ import annotations

import json
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

DEFAULT_MAX_SIZE = 1000
DEFAULT_TTL_MS = 5 * 60 * 1000


def create_key(prefix: str, params: Mapping[str, Any]) -> str:
    """
    Build a deterministic cache key from a prefix and request parameters.

    Parameters are sorted by name, so insertion order never matters. ``None``
    values are skipped: an omitted optional argument and an explicit ``None``
    describe the same request.
    """
    parts = []
    for key in sorted(params):
        value = params[key]
        if value is None:
            continue
        parts.append(f"{key}={json.dumps(value, sort_keys=True, separators=(',', ':'))}")
    return f"{prefix}:{'&'.join(parts)}"


class BoundedCache:
    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_ms: float = DEFAULT_TTL_MS,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max(1, int(max_size))
        self.ttl_ms = float(ttl_ms)
        self.enabled = enabled
        self._clock = clock
        # key -> (value, expires_at)
        self._entries: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()

    create_key = staticmethod(create_key)

    def _expiry(self) -> float:
        return self._clock() + self.ttl_ms / 1000.0

    def _live_entry(self, key: str) -> Optional[Tuple[Any, float]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _touch(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._expiry())
        self._entries.move_to_end(key)

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        entry = self._live_entry(key)
        if entry is None:
            return None
        self._touch(key, entry[0])
        return entry[0]

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        self._touch(key, value)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def has(self, key: str) -> bool:
        if not self.enabled:
            return False
        entry = self._live_entry(key)
        if entry is None:
            return False
        self._touch(key, entry[0])
        return True

    def delete(self, key: str) -> bool:
        if not self.enabled:
            return False
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "ttl_ms": self.ttl_ms,
            "enabled": self.enabled,
        }
