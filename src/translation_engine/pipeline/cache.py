# SPDX-License-Identifier: Apache-2.0
"""Translation cache and history log."""

from __future__ import annotations

import hashlib
import logging
from collections import deque
from collections.abc import Iterable
from typing import Any

from cachetools import FIFOCache

from translation_engine.models import CacheEntry, HistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 1000
DEFAULT_HISTORY_SIZE = 1000


def fingerprint(text: str, source_lang: str, target_lang: str, backend_type: str) -> str:
    """Cache key for a translation: sha256 of ``text|source|target|backend``."""
    content = f"{text}|{source_lang}|{target_lang}|{backend_type}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class TranslationCache:
    """Bounded map of fingerprint to CacheEntry.

    Entries are never overwritten, and once ``max_size`` is exceeded the
    oldest *inserted* entry is evicted. Reads do not refresh an entry.
    """

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._entries: FIFOCache[str, CacheEntry] = FIFOCache(maxsize=max_size)
        self._hits = 0
        self._misses = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
        else:
            self._hits += 1
        return entry

    def put(self, entry: CacheEntry) -> bool:
        """Store ``entry`` unless its fingerprint is already cached.

        Returns:
            True if the entry was stored.
        """
        if entry.fingerprint in self._entries:
            return False
        # FIFOCache evicts the oldest inserted key once maxsize is reached.
        self._entries[entry.fingerprint] = entry
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def to_list(self) -> list[dict[str, Any]]:
        """Entries in insertion order, as plain dicts."""
        return [entry.to_dict() for entry in self._entries.values()]

    def load(self, items: Iterable[dict[str, Any]]) -> None:
        """Replace the contents with serialized entries, oldest first.

        Malformed items are skipped.
        """
        self._entries.clear()
        for item in items:
            try:
                entry = CacheEntry.from_dict(item)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed cache entry: %s", exc)
                continue
            self.put(entry)

    def stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
        }


class TranslationHistory:
    """Capped log of past translations; the oldest entry is dropped first."""

    def __init__(self, max_size: int = DEFAULT_HISTORY_SIZE) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._entries: deque[HistoryEntry] = deque(maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._entries.maxlen or 0

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def get(self, limit: int | None = None) -> list[HistoryEntry]:
        """Entries newest first, at most ``limit`` of them."""
        entries = list(reversed(self._entries))
        return entries[:limit] if limit else entries

    def clear(self) -> None:
        self._entries.clear()

    def to_list(self) -> list[dict[str, Any]]:
        """Entries oldest first, as plain dicts."""
        return [entry.to_dict() for entry in self._entries]

    def load(self, items: Iterable[dict[str, Any]]) -> None:
        self._entries.clear()
        for item in items:
            try:
                self._entries.append(HistoryEntry.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed history entry: %s", exc)
