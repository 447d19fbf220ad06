# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Pytest tests for models.py (search item deserialization + cache entry shape).
"""

import pytest

from agent_pr_stats.common_types import PRStatus
from agent_pr_stats.models import (
    AllPRCounts,
    CacheEntry,
    PullRequestRecord,
    RateLimitSnapshot,
    SearchPage,
    safe_url,
)


def test_from_search_item_tolerates_nulls(item):
    raw = item(7, login=None)
    raw["title"] = None
    raw["pull_request"] = None
    pr = PullRequestRecord.from_search_item(raw)
    assert pr.title is None
    assert pr.author_login is None
    assert pr.merged_at is None
    assert pr.status == PRStatus.OPEN


def test_merged_wins_over_open_state(item):
    pr = PullRequestRecord.from_search_item(item(1, merged="2026-01-05T12:00:00Z", state="open"))
    assert pr.state == "open"
    assert pr.status == PRStatus.MERGED


def test_closed_without_merge(item):
    pr = PullRequestRecord.from_search_item(item(2, state="closed"))
    assert pr.status == PRStatus.CLOSED


def test_display_number():
    base = dict(id=1, title="t", author_login="Copilot", state="open", created_at="2026-01-01T00:00:00Z")
    assert PullRequestRecord(number=123, **base).display_number == "#123"
    assert PullRequestRecord(number=0, **base).display_number == ""
    assert PullRequestRecord(number=-4, **base).display_number == ""


def test_safe_url():
    assert safe_url("https://github.com/octo/repo/pull/1") == "https://github.com/octo/repo/pull/1"
    assert safe_url("javascript:alert(1)") == "#"
    assert safe_url("http://github.com/octo/repo/pull/1") == "#"
    assert safe_url("https://github.com.evil.example/x") == "#"
    assert safe_url(None) == "#"


def test_search_page_from_json(item):
    page = SearchPage.from_json({"total_count": 1500, "incomplete_results": True, "items": [item(1), "junk"]})
    assert page.total_count == 1500
    assert page.incomplete is True
    assert len(page.items) == 1


def test_all_counts_closed_is_derived_and_clamped():
    assert AllPRCounts(total=10, merged=6, open=3).closed == 1
    assert AllPRCounts(total=5, merged=6, open=3).closed == 0
    assert AllPRCounts(total=10, merged=None, open=3).closed is None
    assert not AllPRCounts(total=10, merged=None, open=3).is_complete


def test_cache_entry_disk_round_trip(item):
    records = tuple(PullRequestRecord.from_search_item(item(n)) for n in (1, 2))
    entry = CacheEntry(
        schema_version="v3",
        data=records,
        timestamp=1_700_000_000_000,
        rate_limit_info=RateLimitSnapshot(limit=30, remaining=20, reset_at=5, used=10, resource="search"),
        all_pr_counts=AllPRCounts(total=4, merged=1, open=2),
    )
    back = CacheEntry.from_disk_dict(entry.to_disk_dict())
    assert back == entry
    assert back.all_merged is None


@pytest.mark.parametrize(
    "bad",
    [
        None,
        [],
        {"data": [], "timestamp": 1},
        {"schema_version": "v3", "data": "nope", "timestamp": 1},
        {"schema_version": "v3", "data": [], "timestamp": "1"},
        {"schema_version": "v3", "data": [{"id": "x"}], "timestamp": 1},
    ],
)
def test_cache_entry_rejects_malformed(bad):
    with pytest.raises(ValueError):
        CacheEntry.from_disk_dict(bad)
