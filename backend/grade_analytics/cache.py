"""
cache.py — Short-lived memoisation of analytics results.

Entries live for ``ttl_ms`` milliseconds and are only checked when read;
nothing sweeps them. Keys are a deterministic JSON rendering of the
operation name and its arguments.
"""

import json
import logging
import time
from dataclasses import asdict, is_dataclass
from typing import Any, Callable, Dict, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 60_000


def _encode(obj: Any) -> Any:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if is_dataclass(obj):
        return asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"cannot build a cache key from {type(obj).__name__}")


class ResultCache:
    """
    TTL cache owned by one engine. ``clock`` returns seconds (monotonic by
    default) and can be swapped for a fake in tests.
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_TTL_MS,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_ms = ttl_ms
        self.enabled = enabled
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(operation: str, *args: Any) -> str:
        return json.dumps([operation, list(args)], sort_keys=True, default=_encode)

    def get_or_compute(self, key: str, factory: Callable[[], Any]) -> Any:
        if not self.enabled:
            self.misses += 1
            return factory()

        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None:
            stored_at, value = entry
            if (now - stored_at) * 1000 < self.ttl_ms:
                self.hits += 1
                return value
            logger.debug("Cache entry expired, recomputing: %.80s", key)

        self.misses += 1
        value = factory()
        self._prune(now)
        self._entries[key] = (now, value)
        return value

    def _prune(self, now: float) -> None:
        """Drop every entry older than the TTL, read or not."""
        stale = [k for k, (stored_at, _) in self._entries.items() if (now - stored_at) * 1000 >= self.ttl_ms]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("Dropped %d expired cache entries", len(stale))

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "ttl_ms": self.ttl_ms,
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
        }

    def __len__(self) -> int:
        return len(self._entries)
