# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Versioned, TTL-bound cache for search results.

Caching strategy:
  - Key:   agent_pr_stats_cache_<version>_<sha256(owner, repo, from, to)[:16]>_<auth|noauth>
  - Value: CacheEntry.to_disk_dict()  (records, timestamp ms, rate-limit snapshot, counts, comparison sample)
  - Hit:   schema_version matches AND now - timestamp < TTL (5 min)
  - Expired / version-mismatched / malformed entries are misses and are deleted on read.
  - Keys under any other version token are deleted by sweep_stale_versions(), fresh or not.

Cache I/O never raises to the caller: a failed write degrades the request to "uncached".
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..common import CACHE_FILE_DEFAULT, CACHE_KEY_PREFIX, CACHE_SCHEMA_VERSION, DEFAULT_CACHE_TTL_S, resolve_cache_path
from ..models import AllPRCounts, CacheEntry, PullRequestRecord, RateLimitSnapshot
from .cache_base import BaseDiskCache

_logger = logging.getLogger(__name__)

AUTH_SUFFIX = "auth"
NOAUTH_SUFFIX = "noauth"


def make_cache_key(
    owner: str,
    repo: str,
    from_date: str,
    to_date: str,
    has_token: bool,
    *,
    prefix: str = CACHE_KEY_PREFIX,
    version: str = CACHE_SCHEMA_VERSION,
) -> str:
    """Deterministic key for one (owner, repo, from, to, auth presence) tuple.

    Example:
        agent_pr_stats_cache_v3_5d41402abc4b2a76_auth
    """
    ident = json.dumps([str(owner).strip(), str(repo).strip(), str(from_date), str(to_date)])
    digest = hashlib.sha256(ident.encode("utf-8")).hexdigest()[:16]
    return f"{prefix}{version}_{digest}_{AUTH_SUFFIX if has_token else NOAUTH_SUFFIX}"


class SearchResultsCache(BaseDiskCache):
    """Search results keyed by query identity and auth presence.

    Stats (hit/miss/write/evict) are tracked by BaseDiskCache.
    """

    _STORE_SCHEMA = 1

    def __init__(
        self,
        *,
        cache_file: Path,
        ttl_s: int = DEFAULT_CACHE_TTL_S,
        prefix: str = CACHE_KEY_PREFIX,
        version: str = CACHE_SCHEMA_VERSION,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(cache_file=cache_file, schema_version=self._STORE_SCHEMA)
        self.ttl_s = int(ttl_s)
        self.prefix = prefix
        self.version = version
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def make_key(self, owner: str, repo: str, from_date: str, to_date: str, has_token: bool) -> str:
        return make_cache_key(owner, repo, from_date, to_date, has_token, prefix=self.prefix, version=self.version)

    def key_version(self, key: str) -> Optional[str]:
        """Version token embedded in a namespaced key, or None for foreign keys."""
        if not key.startswith(self.prefix):
            return None
        return key[len(self.prefix):].split("_", 1)[0]

    def new_entry(
        self,
        data: Sequence[PullRequestRecord],
        *,
        rate_limit_info: Optional[RateLimitSnapshot] = None,
        all_pr_counts: Optional[AllPRCounts] = None,
        all_merged: Optional[Sequence[PullRequestRecord]] = None,
    ) -> CacheEntry:
        return CacheEntry(
            schema_version=self.version,
            data=tuple(data),
            timestamp=self._now_ms(),
            rate_limit_info=rate_limit_info,
            all_pr_counts=all_pr_counts,
            all_merged=tuple(all_merged) if all_merged is not None else None,
        )

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return entry.schema_version == self.version and (self._now_ms() - entry.timestamp) < self.ttl_s * 1000

    def _persist_quietly(self) -> bool:
        try:
            self._persist()
            return True
        except (OSError, TypeError, ValueError) as e:
            _logger.debug("Cache write to %s failed: %s", self.cache_file, e)
            return False

    def _lookup_fresh(self, key: str) -> Optional[CacheEntry]:
        """Fresh entry for key, evicting it when stale or malformed. Caller holds self._mu."""
        raw = self._items.get(key)
        if raw is None:
            return None
        try:
            entry = CacheEntry.from_disk_dict(raw)
        except (ValueError, TypeError, KeyError) as e:
            _logger.debug("Evicting malformed cache entry %s: %s", key, e)
            entry = None
        if entry is not None and self._is_fresh(entry):
            return entry
        self._remove_item(key)
        self._persist_quietly()
        return None

    def get(self, key: str) -> Optional[CacheEntry]:
        """Fresh entry or None (miss). Never raises."""
        with self._mu:
            self._load_once()
            entry = self._lookup_fresh(key)
            if entry is None:
                self.stats.miss += 1
            else:
                self.stats.hit += 1
            return entry

    def put(self, key: str, entry: CacheEntry) -> bool:
        """Overwrite key with entry. Returns False (and logs) when the write failed."""
        with self._mu:
            self._load_once()
            try:
                value = entry.to_disk_dict()
            except (TypeError, ValueError, AttributeError) as e:
                _logger.debug("Cache entry for %s not serializable: %s", key, e)
                return False
            self._set_item(key, value)
            return self._persist_quietly()

    def update_comparison(
        self,
        key: str,
        *,
        all_merged: Sequence[PullRequestRecord],
        all_pr_counts: Optional[AllPRCounts] = None,
        rate_limit_info: Optional[RateLimitSnapshot] = None,
    ) -> bool:
        """Attach a comparison sample to an existing fresh entry (timestamp unchanged)."""
        with self._mu:
            self._load_once()
            entry = self._lookup_fresh(key)
            if entry is None:
                return False
            updated = dataclasses.replace(
                entry,
                all_merged=tuple(all_merged),
                all_pr_counts=all_pr_counts if all_pr_counts is not None else entry.all_pr_counts,
                rate_limit_info=rate_limit_info if rate_limit_info is not None else entry.rate_limit_info,
            )
            self._set_item(key, updated.to_disk_dict())
            return self._persist_quietly()

    def sweep_stale_versions(self) -> int:
        """Delete namespaced keys of other versions, plus expired/unparsable ones. Returns count removed."""
        with self._mu:
            self._load_once()
            doomed = []
            for key, raw in list(self._items.items()):
                version = self.key_version(key)
                if version is None:
                    continue
                if version != self.version:
                    doomed.append(key)
                    continue
                try:
                    entry = CacheEntry.from_disk_dict(raw)
                except (ValueError, TypeError, KeyError):
                    doomed.append(key)
                    continue
                if not self._is_fresh(entry):
                    doomed.append(key)
            for key in doomed:
                self._remove_item(key)
            if doomed:
                _logger.debug("Swept %d stale cache entries from %s", len(doomed), self.cache_file)
                self._persist_quietly()
            return len(doomed)


def default_search_results_cache(cache_file: Optional[str] = None) -> SearchResultsCache:
    """Cache instance rooted in the agent-pr-stats cache directory."""
    return SearchResultsCache(cache_file=resolve_cache_path(cache_file or CACHE_FILE_DEFAULT))
