# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Synchronous quota check (GET /rate_limit) for the search resource.

GET /rate_limit does not count against any quota. Its X-RateLimit-* headers describe
whatever resource the call was billed to (normally "core"), so they are only used
when X-RateLimit-Resource says "search"; otherwise the JSON body wins:

  {"resources": {"search": {"limit": 30, "remaining": 28, "reset": 1766947200, "used": 2}}}
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from .common import DEFAULT_HTTP_TIMEOUT_S, GITHUB_API_BASE_URL, _safe_int
from .exceptions import NetworkFailureError, UpstreamError
from .fetcher import error_for_response
from .models import RateLimitSnapshot
from .query_builder import build_api_headers
from .rate_limit import extract_rate_limit

_logger = logging.getLogger(__name__)


def _search_bucket(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        return {}
    resources = data.get("resources")
    if not isinstance(resources, dict):
        return {}
    bucket = resources.get("search")
    return bucket if isinstance(bucket, dict) else {}


def probe_rate_limit(
    token: Optional[str] = None,
    *,
    base_url: str = GITHUB_API_BASE_URL,
    timeout_s: float = DEFAULT_HTTP_TIMEOUT_S,
) -> RateLimitSnapshot:
    """Return the current search-resource quota as a RateLimitSnapshot."""
    url = f"{base_url.rstrip('/')}/rate_limit"
    try:
        resp = requests.get(url, headers=build_api_headers(token), timeout=timeout_s)
    except requests.exceptions.Timeout as e:
        raise NetworkFailureError("Request to GitHub timed out. Try again later.") from e
    except requests.exceptions.RequestException as e:
        _logger.debug("GET %s failed: %s", url, e)
        raise NetworkFailureError() from e

    header_snap = extract_rate_limit(resp.headers)
    try:
        data = resp.json()
    except ValueError:
        data = None

    err = error_for_response(int(resp.status_code), header_snap, data, slice_name="rate_limit")
    if err is not None:
        raise err

    if header_snap.resource == "search" and header_snap.limit is not None:
        return header_snap

    bucket = _search_bucket(data)
    if not bucket:
        raise UpstreamError(
            "GitHub did not report a search rate limit. Try again later.",
            status_code=int(resp.status_code),
            slice_name="rate_limit",
        )
    limit = _safe_int(bucket.get("limit"))
    remaining = _safe_int(bucket.get("remaining"))
    used = _safe_int(bucket.get("used"))
    if used is None and limit is not None and remaining is not None:
        used = max(0, limit - remaining)
    return RateLimitSnapshot(
        limit=limit,
        remaining=remaining,
        reset_at=_safe_int(bucket.get("reset")),
        used=used,
        resource="search",
    )
