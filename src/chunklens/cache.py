"""Session-scoped analysis cache keyed by (absolute path, byte size).

Size stands in for a content hash: a change that keeps the byte length
identical is not detected.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from .models import CacheEntry, ModuleAnalysis

logger = logging.getLogger(__name__)


class AnalysisCache:
    """Memoizes ModuleAnalysis results for one analysis session.

    Each key is written by exactly one task per run, so cooperative tasks
    on one event loop need no lock.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, int], CacheEntry] = {}
        self._sizes: dict[str, int] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, path: str, size: int) -> ModuleAnalysis | None:
        entry = self._entries.get((path, size))
        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        logger.debug("Cache hit for %s (%d bytes)", path, size)
        return entry.value

    def put(self, path: str, size: int, analysis: ModuleAnalysis) -> None:
        """Store ``analysis``, evicting any entry for the same path at another size."""
        previous = self._sizes.get(path)
        if previous is not None and previous != size:
            self._entries.pop((path, previous), None)
            logger.debug("Size of %s changed %d -> %d, dropped stale entry", path, previous, size)
        self._entries[(path, size)] = CacheEntry(key=(path, size), value=analysis, created_at=time.time())
        self._sizes[path] = size

    def invalidate(self, path: str) -> bool:
        size = self._sizes.pop(path, None)
        if size is None:
            return False
        self._entries.pop((path, size), None)
        return True

    def retain(self, paths: Iterable[str]) -> int:
        """Drop entries whose path is not in ``paths``. Returns how many were dropped."""
        keep = set(paths)
        stale = [path for path in self._sizes if path not in keep]
        for path in stale:
            self.invalidate(path)
        return len(stale)

    def entries(self) -> list[CacheEntry]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()
        self._sizes.clear()
        self.hits = 0
        self.misses = 0
