# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Pytest tests for fetcher.py: pagination ceilings, flags, and HTTP error mapping.

Async code is driven with asyncio.run() against the FakeGitHub transport from conftest.py.
"""

import asyncio

import aiohttp
import pytest

from agent_pr_stats.common_types import ErrorKind
from agent_pr_stats.conftest import RESET_AT, rate_headers
from agent_pr_stats.exceptions import (
    AuthFailedError,
    ForbiddenError,
    NetworkFailureError,
    NotFoundError,
    RateLimitedError,
    UpstreamError,
    ValidationRejectedError,
)
from agent_pr_stats.fetcher import AiohttpSearchTransport, SearchFetcher, TransportResponse

AGENT_Q = "repo:octo/repo is:pr author:app/copilot-swe-agent created:2026-01-01..2026-01-31"
MERGED_Q = "repo:octo/repo is:pr is:merged created:2026-01-01..2026-01-31"


def _fetch(transport, query=AGENT_Q, **kwargs):
    fetcher = SearchFetcher(transport, token="t")
    result = asyncio.run(fetcher.fetch_slice(query, slice_name="agentAuthored", **kwargs))
    return fetcher, result


# ============================================================================
# Pagination
# ============================================================================

def test_stops_on_short_page(fake_github, item):
    gh = fake_github([item(n) for n in range(250)])
    fetcher, result = _fetch(gh)
    assert [c[1] for c in gh.calls] == [1, 2, 3]
    assert result.fetched == 250
    assert result.total_count == 250
    assert not result.truncated
    assert fetcher.stats.calls_total == 3
    assert fetcher.stats.calls_by_slice == {"agentAuthored": 3}


def test_stops_when_total_reached_on_full_page(fake_github, item):
    gh = fake_github([item(n) for n in range(200)])
    _, result = _fetch(gh)
    assert len(gh.calls) == 2
    assert result.fetched == 200


def test_items_keep_arrival_order(fake_github, item):
    gh = fake_github([item(n) for n in range(150)])
    _, result = _fetch(gh)
    assert [pr.number for pr in result.items] == list(range(150))


def test_empty_result_is_one_call(fake_github):
    gh = fake_github([])
    _, result = _fetch(gh)
    assert len(gh.calls) == 1
    assert result.fetched == 0
    assert result.total_count == 0


def test_ceiling_never_exceeds_ten_pages(fake_github, item):
    gh = fake_github([item(n) for n in range(1000)], totals={"agentAuthored": 1500})
    _, result = _fetch(gh)
    assert len(gh.calls) == 10
    assert result.truncated is True
    assert result.total_count == 1500
    assert result.fetched == 1000


def test_stop_when_truncated_fetches_only_first_page(fake_github, item):
    gh = fake_github([item(n) for n in range(1000)], totals={"agentAuthored": 1500})
    _, result = _fetch(gh, stop_when_truncated=True)
    assert len(gh.calls) == 1
    assert result.truncated is True


def test_incomplete_flag_taints_but_continues(fake_github, item):
    gh = fake_github([item(n) for n in range(150)], incomplete=("agentAuthored",))
    _, result = _fetch(gh)
    assert len(gh.calls) == 2
    assert result.incomplete is True
    assert result.fetched == 150


def test_progress_reported_after_each_page(fake_github, item):
    gh = fake_github([item(n) for n in range(250)])
    seen = []
    _fetch(gh, on_progress=lambda fetched, total: seen.append((fetched, total)))
    assert seen == [(100, 250), (200, 250), (250, 250)]


def test_exhausted_quota_mid_sequence_fails_whole_slice(fake_github, item):
    gh = fake_github([item(n) for n in range(250)], remaining=0)
    with pytest.raises(RateLimitedError) as ei:
        _fetch(gh)
    assert ei.value.reset_at == RESET_AT
    assert ei.value.kind == ErrorKind.RATE_LIMITED
    assert len(gh.calls) == 1


def test_exhausted_quota_on_last_page_is_fine(fake_github, item):
    gh = fake_github([item(n) for n in range(50)], remaining=0)
    _, result = _fetch(gh)
    assert result.fetched == 50
    assert result.rate_limit.remaining == 0


def test_fetch_count_uses_single_item_page(fake_github, item):
    gh = fake_github([], [item(n, merged="2026-01-06T10:00:00Z") for n in range(7)])
    fetcher = SearchFetcher(gh)
    res = asyncio.run(fetcher.fetch_count(MERGED_Q, slice_name="allMerged"))
    assert res.total_count == 7
    assert gh.calls == [("allMerged", 1, 1)]
    assert res.rate_limit.limit == 30


# ============================================================================
# Error mapping
# ============================================================================

def _fail_with(fake_github, response):
    gh = fake_github([], errors={"agentAuthored": response})
    fetcher = SearchFetcher(gh)
    with pytest.raises(Exception) as ei:
        asyncio.run(fetcher.fetch_slice(AGENT_Q, slice_name="agentAuthored"))
    return fetcher, ei.value


def test_401_is_auth_failed(fake_github):
    fetcher, err = _fail_with(fake_github, TransportResponse(401, {}, {"message": "Bad credentials"}))
    assert isinstance(err, AuthFailedError)
    assert "token" in err.user_message()
    assert fetcher.stats.errors_by_status == {401: 1}


def test_404_is_not_found(fake_github):
    _, err = _fail_with(fake_github, TransportResponse(404, {}, None))
    assert isinstance(err, NotFoundError)


def test_403_with_zero_remaining_is_rate_limited(fake_github):
    _, err = _fail_with(fake_github, TransportResponse(403, rate_headers(remaining=0), {}))
    assert isinstance(err, RateLimitedError)
    assert err.reset_at == RESET_AT
    assert "Reset at" in err.user_message()


def test_403_with_quota_left_is_forbidden(fake_github):
    _, err = _fail_with(fake_github, TransportResponse(403, rate_headers(remaining=12), {}))
    assert isinstance(err, ForbiddenError)


def test_422_keeps_service_detail(fake_github):
    body = {"message": "Validation Failed", "errors": [{"message": "The listed users and repositories cannot be searched"}]}
    _, err = _fail_with(fake_github, TransportResponse(422, {}, body))
    assert isinstance(err, ValidationRejectedError)
    assert "cannot be searched" in err.detail
    assert "could not be resolved" in err.user_message()


def test_5xx_is_upstream_error_with_status(fake_github):
    _, err = _fail_with(fake_github, TransportResponse(503, {}, None))
    assert isinstance(err, UpstreamError)
    assert err.status_code == 503
    assert "503" in err.user_message()


def test_unreadable_body_is_upstream_error(fake_github):
    _, err = _fail_with(fake_github, TransportResponse(200, {}, None))
    assert isinstance(err, UpstreamError)


def test_failure_on_later_page_discards_slice(fake_github, item):
    class FlakyOnPage2(fake_github):
        async def get(self, path, *, params, headers):
            if params["page"] == "2":
                return TransportResponse(502, {}, None)
            return await super().get(path, params=params, headers=headers)

    gh = FlakyOnPage2([item(n) for n in range(250)])
    with pytest.raises(UpstreamError):
        _fetch(gh)


# ============================================================================
# aiohttp transport
# ============================================================================

class _RaisingSession:
    closed = False

    def __init__(self, exc):
        self.exc = exc

    def get(self, *args, **kwargs):
        raise self.exc


def test_transport_maps_client_errors_to_network_failure():
    transport = AiohttpSearchTransport(session=_RaisingSession(aiohttp.ClientConnectionError("refused")))
    with pytest.raises(NetworkFailureError):
        asyncio.run(transport.get("/search/issues", params={}, headers={}))


def test_transport_maps_timeouts_to_network_failure():
    transport = AiohttpSearchTransport(session=_RaisingSession(asyncio.TimeoutError()))
    with pytest.raises(NetworkFailureError) as ei:
        asyncio.run(transport.get("/search/issues", params={}, headers={}))
    assert "timed out" in ei.value.user_message()
