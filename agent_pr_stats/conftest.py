# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Shared pytest fixtures: an in-memory GitHub search service and search-item builders.

The fake answers GET /search/issues the way the real service does for the four
queries the engine issues (agent-authored, all, all merged, all open), paginating
by the request's per_page/page and reporting X-RateLimit-* headers.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from agent_pr_stats.fetcher import TransportResponse

RESET_AT = 1767225600


def make_item(
    number: int,
    *,
    created: str = "2026-01-05T10:00:00Z",
    merged: Optional[str] = None,
    state: Optional[str] = None,
    login: Optional[str] = "Copilot",
    title: Optional[str] = None,
) -> Dict[str, Any]:
    """One `items[]` entry of GET /search/issues."""
    return {
        "id": 1000 + number,
        "number": number,
        "title": title if title is not None else f"PR {number}",
        "state": state or ("closed" if merged else "open"),
        "created_at": created,
        "user": {"login": login} if login is not None else None,
        "html_url": f"https://github.com/octo/repo/pull/{number}",
        "pull_request": {"merged_at": merged},
    }


def slice_of(query: str) -> str:
    if "author:" in query:
        return "agentAuthored"
    if "is:merged" in query:
        return "allMerged"
    if "is:open" in query:
        return "allOpen"
    return "allTotal"


def rate_headers(*, limit: int = 30, remaining: int = 29, reset_at: int = RESET_AT) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(reset_at),
        "X-RateLimit-Resource": "search",
    }


class FakeGitHub:
    """Transport double for SearchFetcher / SearchCoordinator."""

    def __init__(
        self,
        agent_items: List[Dict[str, Any]] = (),
        all_items: Optional[List[Dict[str, Any]]] = None,
        *,
        limit: int = 30,
        remaining: int = 29,
        totals: Optional[Dict[str, int]] = None,
        incomplete: tuple = (),
        errors: Optional[Dict[str, Any]] = None,
    ):
        everything = list(all_items) if all_items is not None else list(agent_items)
        self.items = {
            "agentAuthored": list(agent_items),
            "allTotal": everything,
            "allMerged": [it for it in everything if it["pull_request"]["merged_at"]],
            "allOpen": [it for it in everything if it["state"] == "open" and not it["pull_request"]["merged_at"]],
        }
        self.limit = limit
        self.remaining = remaining
        self.totals = dict(totals or {})
        self.incomplete = set(incomplete)
        self.errors = dict(errors or {})  # slice -> TransportResponse | Exception
        self.gates: Dict[str, asyncio.Event] = {}  # query substring -> event to wait on
        self.calls: List[tuple] = []
        self.closed = False

    async def get(self, path: str, *, params: Dict[str, str], headers: Dict[str, str]) -> TransportResponse:
        query = params["q"]
        name = slice_of(query)
        page = int(params["page"])
        per_page = int(params["per_page"])
        self.calls.append((name, page, per_page))

        for needle, gate in self.gates.items():
            if needle in query:
                await gate.wait()

        err = self.errors.get(name)
        if isinstance(err, BaseException):
            raise err
        if err is not None:
            return err

        items = self.items[name]
        chunk = items[(page - 1) * per_page: page * per_page]
        payload = {
            "total_count": self.totals.get(name, len(items)),
            "incomplete_results": name in self.incomplete,
            "items": chunk,
        }
        return TransportResponse(200, rate_headers(limit=self.limit, remaining=self.remaining), payload)

    def calls_for(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> "FakeGitHub":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


@pytest.fixture
def item():
    return make_item


@pytest.fixture
def fake_github():
    return FakeGitHub
