# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Pytest tests for query_builder.py.

Run from the repository root:
    pytest agent_pr_stats/test_query_builder.py -v
"""

from agent_pr_stats.common_types import SliceKind
from agent_pr_stats.query_builder import build_api_headers, build_query, build_search_params


def test_agent_slice_has_author_filter():
    q = build_query("octo", "repo", "2026-01-01", "2026-01-31", SliceKind.AGENT_AUTHORED)
    assert q == "repo:octo/repo is:pr author:app/copilot-swe-agent created:2026-01-01..2026-01-31"


def test_repository_wide_slices_have_state_qualifier_and_no_author():
    expected = {
        SliceKind.ALL_TOTAL: "repo:octo/repo is:pr created:2026-01-01..2026-01-31",
        SliceKind.ALL_MERGED: "repo:octo/repo is:pr is:merged created:2026-01-01..2026-01-31",
        SliceKind.ALL_OPEN: "repo:octo/repo is:pr is:open created:2026-01-01..2026-01-31",
        SliceKind.ALL_CLOSED: "repo:octo/repo is:pr is:closed created:2026-01-01..2026-01-31",
    }
    for kind, want in expected.items():
        q = build_query("octo", "repo", "2026-01-01", "2026-01-31", kind)
        assert q == want
        assert "author:" not in q


def test_custom_agent_author():
    q = build_query("o", "r", "2026-02-01", "2026-02-02", SliceKind.AGENT_AUTHORED, agent_author="app/other-bot")
    assert "author:app/other-bot" in q


def test_slice_kind_accepts_string_value():
    q = build_query("o", "r", "2026-02-01", "2026-02-02", "allMerged")
    assert "is:merged" in q


def test_search_params_sort_newest_first():
    params = build_search_params("repo:o/r is:pr", per_page=100, page=3)
    assert params == {
        "q": "repo:o/r is:pr",
        "per_page": "100",
        "page": "3",
        "sort": "created",
        "order": "desc",
    }


def test_api_headers_with_and_without_token():
    assert build_api_headers(None) == {"Accept": "application/vnd.github.v3+json"}
    assert build_api_headers("   ") == {"Accept": "application/vnd.github.v3+json"}
    h = build_api_headers(" ghp_abc ")
    assert h["Authorization"] == "Bearer ghp_abc"
