# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Pytest tests for probe.py (GET /rate_limit via requests, monkeypatched).
"""

import pytest
import requests

from agent_pr_stats import probe
from agent_pr_stats.exceptions import AuthFailedError, NetworkFailureError


class _Resp:
    def __init__(self, status_code=200, headers=None, body=None):
        self.status_code = status_code
        self.headers = headers or {}
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


BODY = {
    "resources": {
        "core": {"limit": 5000, "remaining": 4999, "reset": 1, "used": 1},
        "search": {"limit": 30, "remaining": 28, "reset": 1767225600, "used": 2},
    }
}


def test_search_bucket_from_body(monkeypatch):
    seen = {}

    def fake_get(url, headers=None, timeout=None):
        seen["url"] = url
        seen["headers"] = headers
        # Headers describe the core bucket: must not be used for search.
        return _Resp(200, {"X-RateLimit-Limit": "5000", "X-RateLimit-Remaining": "4999", "X-RateLimit-Resource": "core"}, BODY)

    monkeypatch.setattr(probe.requests, "get", fake_get)
    snap = probe.probe_rate_limit("tok")
    assert seen["url"] == "https://api.github.com/rate_limit"
    assert seen["headers"]["Authorization"] == "Bearer tok"
    assert (snap.limit, snap.remaining, snap.reset_at, snap.used, snap.resource) == (30, 28, 1767225600, 2, "search")


def test_search_headers_preferred_when_they_describe_search(monkeypatch):
    search_headers = {"X-RateLimit-Limit": "10", "X-RateLimit-Remaining": "3", "X-RateLimit-Resource": "search"}
    monkeypatch.setattr(probe.requests, "get", lambda url, headers=None, timeout=None: _Resp(200, search_headers, BODY))
    snap = probe.probe_rate_limit(None)
    assert snap.limit == 10
    assert snap.remaining == 3


def test_http_error_is_typed(monkeypatch):
    monkeypatch.setattr(probe.requests, "get", lambda url, headers=None, timeout=None: _Resp(401, {}, {"message": "Bad credentials"}))
    with pytest.raises(AuthFailedError):
        probe.probe_rate_limit("bad")


def test_connection_error_is_network_failure(monkeypatch):
    def boom(url, headers=None, timeout=None):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(probe.requests, "get", boom)
    with pytest.raises(NetworkFailureError):
        probe.probe_rate_limit(None)
