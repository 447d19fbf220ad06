# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Rate-limit header parsing and classification.

Invoked after every individual request. Pure parse + classify: a missing or
non-numeric header yields None for that field (the "unknown" band), never an
exception, and never the "Low" band.

Headers used (GitHub REST):
  X-RateLimit-Limit: 30
  X-RateLimit-Remaining: 27
  X-RateLimit-Reset: 1766947200
  X-RateLimit-Used: 3
  X-RateLimit-Resource: search
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Mapping, Optional

from .common import UNAUTHENTICATED_SEARCH_LIMIT, _safe_int
from .common_types import AuthBand, RateLimitBand
from .models import RateLimitSnapshot

LOW_BAND_RATIO = 0.1
WARNING_BAND_RATIO = 0.5


def _header(headers: Optional[Mapping[str, Any]], name: str) -> Optional[str]:
    """Case-insensitive header lookup that works for dicts, requests and aiohttp headers."""
    if not headers:
        return None
    try:
        val = headers.get(name)
    except AttributeError:
        return None
    if val is None:
        lname = name.lower()
        for k, v in headers.items():
            if str(k).lower() == lname:
                val = v
                break
    return None if val is None else str(val)


def extract_rate_limit(headers: Optional[Mapping[str, Any]]) -> RateLimitSnapshot:
    """Build a RateLimitSnapshot from response headers."""
    limit = _safe_int(_header(headers, "X-RateLimit-Limit"))
    remaining = _safe_int(_header(headers, "X-RateLimit-Remaining"))
    reset_at = _safe_int(_header(headers, "X-RateLimit-Reset"))
    used = _safe_int(_header(headers, "X-RateLimit-Used"))
    if used is None and limit is not None and remaining is not None:
        used = max(0, limit - remaining)
    resource = _header(headers, "X-RateLimit-Resource")
    return RateLimitSnapshot(
        limit=limit,
        remaining=remaining,
        reset_at=reset_at,
        used=used,
        resource=resource.strip() if resource and resource.strip() else None,
    )


def classify_band(snapshot: Optional[RateLimitSnapshot]) -> RateLimitBand:
    if snapshot is None or snapshot.limit is None or snapshot.remaining is None or snapshot.limit <= 0:
        return RateLimitBand.UNKNOWN
    ratio = float(snapshot.remaining) / float(snapshot.limit)
    if ratio <= LOW_BAND_RATIO:
        return RateLimitBand.LOW
    if ratio < WARNING_BAND_RATIO:
        return RateLimitBand.WARNING
    return RateLimitBand.NORMAL


def classify_auth(snapshot: Optional[RateLimitSnapshot]) -> AuthBand:
    if snapshot is None or snapshot.limit is None:
        return AuthBand.UNKNOWN
    if snapshot.limit == UNAUTHENTICATED_SEARCH_LIMIT:
        return AuthBand.UNAUTHENTICATED
    return AuthBand.AUTHENTICATED


def is_exhausted(snapshot: Optional[RateLimitSnapshot]) -> bool:
    return snapshot is not None and snapshot.remaining is not None and snapshot.remaining <= 0


def usage_percent(snapshot: Optional[RateLimitSnapshot]) -> Optional[int]:
    """Percent of the window already used (0-100), None when unknown."""
    if snapshot is None or snapshot.limit is None or snapshot.limit <= 0 or snapshot.used is None:
        return None
    return max(0, min(100, int(round(100.0 * snapshot.used / snapshot.limit))))


def format_countdown(reset_at: Optional[int], now: Optional[float] = None) -> str:
    """Time until reset as "M:SS" (never negative)."""
    if reset_at is None:
        return "-:--"
    now_s = time.time() if now is None else float(now)
    secs = max(0, int(reset_at - now_s))
    return f"{secs // 60}:{secs % 60:02d}"


def format_reset_time(reset_at: Optional[int]) -> str:
    """Local wall-clock time of a reset epoch, or "unknown"."""
    if reset_at is None:
        return "unknown"
    try:
        return datetime.fromtimestamp(int(reset_at)).astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
    except (ValueError, OverflowError, OSError):
        return "unknown"
