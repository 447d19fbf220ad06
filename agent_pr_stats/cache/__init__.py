# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Disk-backed caches for agent-pr-stats."""

from .cache_base import BaseCacheStats, BaseDiskCache
from .cache_search_results import SearchResultsCache, default_search_results_cache, make_cache_key

__all__ = [
    "BaseCacheStats",
    "BaseDiskCache",
    "SearchResultsCache",
    "default_search_results_cache",
    "make_cache_key",
]
