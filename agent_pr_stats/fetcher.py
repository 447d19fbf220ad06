# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Paginated search fetcher (REST, async).

Endpoint:
  GET /search/issues?q=<query>&per_page=100&page=N&sort=created&order=desc

Hard limits of the search service:
  - 100 items per page
  - 10 pages per query  (=> at most 1000 records ever retrievable for one slice)

Per slice:
  - page 1 total_count > 1000      -> truncated=True (never more than 10 page fetches)
  - incomplete_results on any page -> incomplete=True (retrieval continues)
  - remaining quota hits 0 while more pages are needed -> RateLimitedError for the slice
  - any HTTP/transport failure aborts the slice; pages already fetched are discarded
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import aiohttp

from .common import (
    DEFAULT_HTTP_TIMEOUT_S,
    GITHUB_API_BASE_URL,
    SEARCH_ISSUES_PATH,
    SEARCH_MAX_PAGES,
    SEARCH_PER_PAGE,
)
from .exceptions import (
    HTTP_STATUS_ERRORS,
    AgentStatsError,
    ForbiddenError,
    NetworkFailureError,
    RateLimitedError,
    UpstreamError,
    ValidationRejectedError,
)
from .models import CountResult, RateLimitSnapshot, SearchPage, SliceResult
from .query_builder import build_api_headers, build_search_params
from .rate_limit import extract_rate_limit, is_exhausted

_logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class TransportResponse:
    """What the fetcher needs from one HTTP response."""

    status: int
    headers: Mapping[str, str]
    payload: Any = None  # parsed JSON body, None if absent/unparsable


class AiohttpSearchTransport:
    """aiohttp-backed transport. One ClientSession per transport, created lazily.

    Usage:
        async with AiohttpSearchTransport() as transport:
            fetcher = SearchFetcher(transport, token=token)
            ...
    """

    def __init__(
        self,
        *,
        base_url: str = GITHUB_API_BASE_URL,
        timeout_s: float = DEFAULT_HTTP_TIMEOUT_S,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=float(timeout_s))
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def get(self, path: str, *, params: Dict[str, str], headers: Dict[str, str]) -> TransportResponse:
        url = f"{self.base_url}{path}"
        session = await self._get_session()
        try:
            async with session.get(url, params=params, headers=headers, timeout=self._timeout) as resp:
                try:
                    payload = await resp.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError, ValueError):
                    payload = None
                return TransportResponse(status=int(resp.status), headers=dict(resp.headers), payload=payload)
        except asyncio.TimeoutError as e:
            raise NetworkFailureError("Request to GitHub timed out. Try again later.") from e
        except aiohttp.ClientError as e:
            _logger.debug("Transport error for %s: %s", url, e)
            raise NetworkFailureError() from e

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "AiohttpSearchTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


@dataclass
class FetchStats:
    """Per-fetcher REST call statistics."""

    calls_total: int = 0
    calls_by_slice: Dict[str, int] = field(default_factory=dict)
    errors_total: int = 0
    errors_by_status: Dict[int, int] = field(default_factory=dict)
    time_total_s: float = 0.0
    last_error: Dict[str, Any] = field(default_factory=dict)

    def reset(self) -> None:
        self.calls_total = 0
        self.calls_by_slice = {}
        self.errors_total = 0
        self.errors_by_status = {}
        self.time_total_s = 0.0
        self.last_error = {}


def _validation_detail(payload: Any) -> str:
    """Pull the first useful message out of a 422 body."""
    if not isinstance(payload, dict):
        return ""
    errors = payload.get("errors")
    if isinstance(errors, list):
        for err in errors:
            if isinstance(err, dict) and err.get("message"):
                return str(err["message"])
    msg = payload.get("message")
    return str(msg) if msg else ""


def error_for_response(
    status: int,
    snapshot: Optional[RateLimitSnapshot],
    payload: Any = None,
    *,
    slice_name: str = "",
) -> Optional[AgentStatsError]:
    """Map an HTTP status to the error taxonomy; None for 2xx."""
    if 200 <= status < 300:
        return None
    if status in (403, 429):
        if status == 429 or is_exhausted(snapshot):
            return RateLimitedError(
                reset_at=snapshot.reset_at if snapshot else None,
                status_code=status,
                slice_name=slice_name,
            )
        return ForbiddenError(status_code=status, slice_name=slice_name)
    if status == 422:
        return ValidationRejectedError(_validation_detail(payload), slice_name=slice_name)
    err_cls = HTTP_STATUS_ERRORS.get(status)
    if err_cls is not None:
        return err_cls(status_code=status, slice_name=slice_name)
    return UpstreamError(status_code=status, slice_name=slice_name)


class SearchFetcher:
    """Executes search slices against a transport, one page at a time."""

    def __init__(
        self,
        transport: Any,
        *,
        token: Optional[str] = None,
        per_page: int = SEARCH_PER_PAGE,
        max_pages: int = SEARCH_MAX_PAGES,
    ):
        self.transport = transport
        self.headers = build_api_headers(token)
        self.per_page = max(1, min(int(per_page), SEARCH_PER_PAGE))
        self.max_pages = max(1, min(int(max_pages), SEARCH_MAX_PAGES))
        self.stats = FetchStats()
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def result_ceiling(self) -> int:
        return self.per_page * self.max_pages

    async def _get_page(
        self, query: str, *, page: int, per_page: int, slice_name: str
    ) -> Tuple[SearchPage, RateLimitSnapshot]:
        params = build_search_params(query, per_page=per_page, page=page)
        self.stats.calls_total += 1
        self.stats.calls_by_slice[slice_name] = int(self.stats.calls_by_slice.get(slice_name, 0)) + 1
        self.logger.debug("GH REST GET [%s] page=%d q=%s", slice_name, page, query)

        t0 = time.monotonic()
        resp = await self.transport.get(SEARCH_ISSUES_PATH, params=params, headers=dict(self.headers))
        self.stats.time_total_s += max(0.0, time.monotonic() - t0)

        snapshot = extract_rate_limit(resp.headers)
        err = error_for_response(int(resp.status), snapshot, resp.payload, slice_name=slice_name)
        if err is not None:
            self.stats.errors_total += 1
            self.stats.errors_by_status[int(resp.status)] = int(self.stats.errors_by_status.get(int(resp.status), 0)) + 1
            self.stats.last_error = {"status": int(resp.status), "slice": slice_name, "kind": err.kind.value}
            self.logger.debug(
                "GH REST RESP [%s] status=%s remaining=%s -> %s",
                slice_name, resp.status, snapshot.remaining, err.kind.value,
            )
            raise err
        if not isinstance(resp.payload, dict):
            self.stats.errors_total += 1
            raise UpstreamError(
                "GitHub returned an unreadable search response. Try again later.",
                status_code=int(resp.status),
                slice_name=slice_name,
            )
        return SearchPage.from_json(resp.payload), snapshot

    async def fetch_slice(
        self,
        query: str,
        *,
        slice_name: str,
        on_progress: Optional[ProgressCallback] = None,
        stop_when_truncated: bool = False,
    ) -> SliceResult:
        """Fetch every page of one slice (bounded by the page ceiling)."""
        result = SliceResult(slice_name=slice_name)
        page = 1
        while True:
            search_page, snapshot = await self._get_page(
                query, page=page, per_page=self.per_page, slice_name=slice_name
            )
            result.pages_fetched += 1
            result.rate_limit = snapshot
            if page == 1:
                result.total_count = int(search_page.total_count)
                result.truncated = result.total_count > self.result_ceiling
            result.incomplete = result.incomplete or search_page.incomplete
            result.items.extend(search_page.items)

            if on_progress is not None:
                on_progress(len(result.items), result.total_count)

            if result.truncated and stop_when_truncated:
                break
            if (
                not search_page.items
                or len(search_page.items) < self.per_page
                or len(result.items) >= result.total_count
                or page >= self.max_pages
            ):
                break
            if is_exhausted(snapshot):
                raise RateLimitedError(reset_at=snapshot.reset_at, slice_name=slice_name)
            page += 1

        if result.truncated:
            _logger.info(
                "[%s] total_count=%d exceeds the %d-record ceiling; fetched %d",
                slice_name, result.total_count, self.result_ceiling, len(result.items),
            )
        if result.incomplete:
            _logger.info("[%s] search service reported incomplete_results", slice_name)
        return result

    async def fetch_count(self, query: str, *, slice_name: str) -> CountResult:
        """Total count of a query from a single per_page=1 request."""
        search_page, snapshot = await self._get_page(query, page=1, per_page=1, slice_name=slice_name)
        return CountResult(
            slice_name=slice_name,
            total_count=int(search_page.total_count),
            incomplete=bool(search_page.incomplete),
            rate_limit=snapshot,
        )
