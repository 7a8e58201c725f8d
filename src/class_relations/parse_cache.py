# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Per-file parse cache for cross-file traversal.

Stores the depth-less FileAnalysis of each parsed file so repeated
traversals do not re-read or re-parse unchanged files.

Key features:
- File modification time tracking for cache invalidation
- LRU-style eviction when cache size limit reached
- Thread-safe operations

Usage:
    cache = ParseCache()

    analysis = cache.get(filepath)
    if analysis is None:
        analysis = build_analysis(filepath)
        cache.set(filepath, analysis)
"""

import logging
import os
import threading
import time
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from class_relations.models import FileAnalysis

logger = logging.getLogger(__name__)


class CacheEntry:
    """Entry in the parse cache."""

    def __init__(self, analysis: FileAnalysis, file_mtime: Optional[float]):
        """Initialize cache entry.

        Args:
            analysis: The cached FileAnalysis (depth 0).
            file_mtime: File modification time when cached, None if unknown.
        """
        self.analysis = analysis
        self.file_mtime = file_mtime
        self.cached_at = time.time()
        self.access_count = 0

    def touch(self) -> None:
        """Update access statistics."""
        self.access_count += 1


class ParseCache:
    """Cache of per-file analyses with modification-time based invalidation.

    Thread Safety:
        All public methods are thread-safe using a reentrant lock.

    Cache Invalidation:
        A cache entry is invalid if:
        - File no longer exists (when mtime validation is enabled)
        - File modification time changed (when mtime validation is enabled)
        - Entry explicitly invalidated or the cache cleared

    Eviction Policy:
        When max_entries is reached, least recently used entries are evicted.
    """

    def __init__(self, max_entries: int = 5000, validate_mtime: bool = True):
        """Initialize the parse cache.

        Args:
            max_entries: Maximum number of entries to cache (default: 5000).
            validate_mtime: Whether entries are checked against the file's mtime.
        """
        self._max_entries = max_entries
        self._validate_mtime = validate_mtime
        self._lock = threading.RLock()

        # Use OrderedDict for LRU eviction
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()

        # Statistics
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    def get(self, filepath: str) -> Optional[FileAnalysis]:
        """Get the cached analysis for a file.

        Args:
            filepath: Absolute path to file.

        Returns:
            FileAnalysis if cached and valid, None otherwise.
        """
        with self._lock:
            entry = self._cache.get(filepath)
            if entry is None:
                self._misses += 1
                logger.debug(f"Parse cache miss: {filepath}")
                return None

            if not self._is_entry_valid(filepath, entry):
                self._invalidate_entry(filepath)
                self._misses += 1
                logger.debug(f"Parse cache stale: {filepath}")
                return None

            # Update access for LRU
            entry.touch()
            self._cache.move_to_end(filepath)
            self._hits += 1
            logger.debug(f"Parse cache hit: {filepath}")
            return entry.analysis

    def set(
        self, filepath: str, analysis: FileAnalysis, file_mtime: Optional[float] = None
    ) -> None:
        """Cache the analysis of a file.

        A later set for the same path replaces the earlier one.

        Args:
            filepath: Absolute path to file.
            analysis: FileAnalysis to cache.
            file_mtime: Modification time observed before the file was read;
                read from disk when None.
        """
        if file_mtime is None:
            try:
                file_mtime = os.path.getmtime(filepath)
            except OSError:
                logger.debug(f"Cannot cache {filepath}: file not accessible")
                return

        with self._lock:
            if filepath in self._cache:
                del self._cache[filepath]

            # Evict if needed
            while len(self._cache) >= self._max_entries:
                self._evict_oldest()

            self._cache[filepath] = CacheEntry(analysis=analysis, file_mtime=file_mtime)

    def invalidate(self, filepath: str) -> None:
        """Invalidate the cache entry for a file.

        Args:
            filepath: Absolute path to file.
        """
        with self._lock:
            self._invalidate_entry(filepath)

    def clear(self) -> None:
        """Drop every cache entry."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            self._invalidations += count
            logger.debug(f"Parse cache cleared ({count} entries)")

    def cached_files(self) -> List[str]:
        """Paths currently held in the cache, least recently used first."""
        with self._lock:
            return list(self._cache)

    def __contains__(self, filepath: object) -> bool:
        with self._lock:
            return filepath in self._cache

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_statistics(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache statistics.
        """
        with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = self._hits / total_requests if total_requests > 0 else 0.0

            return {
                "entries": len(self._cache),
                "max_entries": self._max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": hit_rate,
                "invalidations": self._invalidations,
            }

    def _is_entry_valid(self, filepath: str, entry: CacheEntry) -> bool:
        if not self._validate_mtime:
            return True
        try:
            return os.path.getmtime(filepath) == entry.file_mtime
        except OSError:
            return False

    def _invalidate_entry(self, filepath: str) -> None:
        if filepath in self._cache:
            del self._cache[filepath]
            self._invalidations += 1

    def _evict_oldest(self) -> None:
        """Evict the least recently used entry."""
        if self._cache:
            oldest_key = next(iter(self._cache))
            del self._cache[oldest_key]
            logger.debug(f"Evicted parse cache entry: {oldest_key}")
