# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Base class for disk-backed key/value caches with locking and persistence.

On-disk layout (one JSON file):
  {"version": <store schema>, "items": {"<key>": <json value>, ...}}

Provides:
- Thread-safe in-memory view guarded by a Lock
- Lazy loading (load on first access)
- Inter-process locking (fcntl, best-effort) around read-merge-write
- Merge on write: only keys written or removed by this instance override what is on disk
- Atomic write (tmp file + os.replace): readers see the old file or the new file, never half of one
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Set, Tuple

try:
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - non-POSIX
    fcntl = None  # type: ignore

_logger = logging.getLogger(__name__)

LOCK_TIMEOUT_S: float = 2.0
# ^ Upper bound on lock polling; cache writes run on the event loop thread.


@dataclass
class BaseCacheStats:
    """Basic cache statistics tracked automatically by BaseDiskCache."""
    hit: int = 0
    miss: int = 0
    write: int = 0
    evict: int = 0


class BaseDiskCache:
    """Thread-safe disk-backed key/value store.

    Subclasses layer entry semantics (TTL, versioning, parsing) on top of
    `_set_item` / `_remove_item` and call `_persist()` while
    holding `self._mu`.
    """

    def __init__(self, *, cache_file: Path, schema_version: int = 1):
        self._mu = Lock()
        self._cache_file = Path(cache_file)
        self._schema_version = schema_version
        self._items: Dict[str, Any] = {}
        self._written: Set[str] = set()
        self._removed: Set[str] = set()
        self._loaded = False
        self._dirty = False
        self._initial_disk_count: Optional[int] = None
        self.stats = BaseCacheStats()

    @property
    def cache_file(self) -> Path:
        return self._cache_file

    def _lock_file_path(self) -> Path:
        """Path to lock file (next to cache file)."""
        return self._cache_file.with_name(f".{self._cache_file.name}.lock")

    def _acquire_disk_lock(self, *, timeout_s: float = LOCK_TIMEOUT_S) -> Optional[Any]:
        """Best-effort inter-process lock; returns the open handle, or None on failure/timeout."""
        if fcntl is None:
            return None

        lock_path = self._lock_file_path()
        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            fh = open(lock_path, "w")
        except OSError as e:
            _logger.debug("Cache lock unavailable (%s): %s", lock_path, e)
            return None

        start = time.monotonic()
        while time.monotonic() - start < float(timeout_s):
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return fh
            except OSError:
                time.sleep(0.05)
        fh.close()
        return None

    def _release_disk_lock(self, lock_fh: Optional[Any]) -> None:
        if lock_fh is None:
            return
        try:
            if fcntl is not None:
                fcntl.flock(lock_fh.fileno(), fcntl.LOCK_UN)
        except OSError:
            pass
        finally:
            lock_fh.close()

    def _read_disk_items(self) -> Dict[str, Any]:
        """Items currently on disk; {} when the file is missing or unreadable."""
        if not self._cache_file.exists():
            return {}
        try:
            raw = json.loads(self._cache_file.read_text() or "{}")
        except (OSError, ValueError) as e:
            _logger.debug("Ignoring unreadable cache file %s: %s", self._cache_file, e)
            return {}
        if not isinstance(raw, dict):
            return {}
        items = raw.get("items")
        return dict(items) if isinstance(items, dict) else {}

    def _load_once(self) -> None:
        """Load cache from disk (once per instance)."""
        if self._loaded:
            return
        self._loaded = True
        self._items = self._read_disk_items()
        self._initial_disk_count = len(self._items)

    def _persist(self) -> None:
        """Merge with disk state and write atomically. Raises OSError/TypeError/ValueError on failure."""
        if not self._dirty:
            return

        self._cache_file.parent.mkdir(parents=True, exist_ok=True)
        lock_fh = self._acquire_disk_lock()
        try:
            # Only keys touched by this instance override the disk state.
            merged_items = {k: v for (k, v) in self._read_disk_items().items() if k not in self._removed}
            for key in self._written:
                merged_items[key] = self._items[key]
            payload = json.dumps({"version": self._schema_version, "items": merged_items}, separators=(",", ":"))

            tmp = Path(f"{self._cache_file}.tmp.{os.getpid()}")
            try:
                tmp.write_text(payload)
                os.replace(str(tmp), str(self._cache_file))
            except OSError:
                tmp.unlink(missing_ok=True)
                raise

            self._items = merged_items
            self._written = set()
            self._removed = set()
            self._dirty = False
        finally:
            self._release_disk_lock(lock_fh)

    def get_cache_sizes(self) -> Tuple[int, int]:
        """Return (mem_count, disk_count); disk_count is the count before this run's changes."""
        with self._mu:
            self._load_once()
            return (len(self._items), self._initial_disk_count or 0)

    def keys(self) -> List[str]:
        with self._mu:
            self._load_once()
            return list(self._items.keys())

    def _set_item(self, key: str, value: Any) -> None:
        self._items[key] = value
        self._written.add(key)
        self._removed.discard(key)
        self._dirty = True
        self.stats.write += 1

    def _remove_item(self, key: str) -> bool:
        existed = self._items.pop(key, None) is not None
        self._written.discard(key)
        self._removed.add(key)
        self._dirty = True
        if existed:
            self.stats.evict += 1
        return existed
