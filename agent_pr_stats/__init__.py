# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Coding-agent pull request statistics from the GitHub search API.

This package contains the fetch-cache-aggregate engine:
- query construction per slice (`query_builder`)
- paginated, rate-limit aware retrieval (`fetcher`, `rate_limit`)
- a versioned, TTL-bound results cache (`cache`)
- generation-gated search sequencing (`coordinator`)
- counts, ratios and response-time statistics (`stats`)

Public API is re-exported here; the CLI lives in `agent_pr_stats.cli`.
"""

from .cache import SearchResultsCache, make_cache_key  # noqa: F401
from .common_types import (  # noqa: F401
    AuthBand,
    ErrorKind,
    PRStatus,
    RateLimitBand,
    SearchPhase,
    SearchState,
    SliceKind,
)
from .coordinator import SearchCoordinator, SearchOutcome  # noqa: F401
from .exceptions import AgentStatsError  # noqa: F401
from .fetcher import AiohttpSearchTransport, SearchFetcher, TransportResponse  # noqa: F401
from .models import (  # noqa: F401
    AllPRCounts,
    CacheEntry,
    PullRequestRecord,
    RateLimitSnapshot,
    SearchRequest,
    SearchWarning,
)
from .probe import probe_rate_limit  # noqa: F401
from .query_builder import build_query  # noqa: F401
from .rate_limit import classify_auth, classify_band, extract_rate_limit  # noqa: F401
from .stats import (  # noqa: F401
    SearchResults,
    aggregate,
    calculate_response_times,
    classify_prs,
    compare_response_times,
    format_duration,
)

__all__ = [
    "AgentStatsError",
    "AiohttpSearchTransport",
    "AllPRCounts",
    "AuthBand",
    "CacheEntry",
    "ErrorKind",
    "PRStatus",
    "PullRequestRecord",
    "RateLimitBand",
    "RateLimitSnapshot",
    "SearchCoordinator",
    "SearchFetcher",
    "SearchOutcome",
    "SearchPhase",
    "SearchRequest",
    "SearchResults",
    "SearchResultsCache",
    "SearchState",
    "SearchWarning",
    "SliceKind",
    "TransportResponse",
    "aggregate",
    "build_query",
    "calculate_response_times",
    "classify_auth",
    "classify_band",
    "classify_prs",
    "compare_response_times",
    "extract_rate_limit",
    "format_duration",
    "make_cache_key",
    "probe_rate_limit",
]
