#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Common shared enums used by both:
- the engine modules (fetcher, cache, coordinator, stats)
- the CLI / renderers consuming search results

This module MUST NOT import any other agent_pr_stats module to avoid cycles.
"""

from __future__ import annotations

from enum import Enum


class PRStatus(str, Enum):
    """Derived display status of a pull request (merged always wins over open)."""

    MERGED = "merged"
    CLOSED = "closed"
    OPEN = "open"


class SliceKind(str, Enum):
    """One independently-fetched subset of the search results."""

    AGENT_AUTHORED = "agentAuthored"
    ALL_TOTAL = "allTotal"
    ALL_MERGED = "allMerged"
    ALL_OPEN = "allOpen"
    ALL_CLOSED = "allClosed"


class RateLimitBand(str, Enum):
    """Remaining-quota band of a rate-limit snapshot."""

    LOW = "Low"
    WARNING = "Warning"
    NORMAL = "Normal"
    UNKNOWN = "Unknown"


class AuthBand(str, Enum):
    """Which ceiling the service applied (10/min anonymous, 30/min with a token)."""

    AUTHENTICATED = "Authenticated"
    UNAUTHENTICATED = "Unauthenticated"
    UNKNOWN = "Unknown"


class SearchPhase(str, Enum):
    """Phase values handed to the phase-change callback."""

    FETCHING_PRIMARY = "fetchingPrimary"
    FETCHING_COUNTS = "fetchingCounts"
    FETCHING_COMPARISON = "fetchingComparison"
    CACHED = "cached"
    DONE = "done"


class SearchState(str, Enum):
    """Coordinator state machine, one run per generation."""

    IDLE = "idle"
    CACHE_CHECK = "cacheCheck"
    FETCHING_PRIMARY = "fetchingPrimary"
    FETCHING_COUNTS = "fetchingCounts"
    FETCHING_COMPARISON = "fetchingComparison"
    AGGREGATING = "aggregating"
    DONE = "done"
    ERROR = "error"
    SUPERSEDED = "superseded"


class ErrorKind(str, Enum):
    """Error taxonomy surfaced to renderers (see exceptions.py)."""

    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    AUTH_FAILED = "AuthFailed"
    RATE_LIMITED = "RateLimited"
    FORBIDDEN = "Forbidden"
    VALIDATION_REJECTED = "ValidationRejected"
    UPSTREAM_ERROR = "UpstreamError"
    NETWORK_FAILURE = "NetworkFailure"
    RESULTS_TRUNCATED = "ResultsTruncated"
    RESULTS_INCOMPLETE = "ResultsIncomplete"
    PARTIAL_DATA = "PartialData"
