# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Search query construction (pure, no I/O).

Endpoint:
  GET /search/issues?q=repo:OWNER/REPO is:pr author:app/copilot-swe-agent created:FROM..TO

owner/repo are assumed already validated (see validation.py).
"""

from __future__ import annotations

from typing import Dict, Optional

from .common import DEFAULT_AGENT_AUTHOR, SEARCH_PER_PAGE
from .common_types import SliceKind

_STATE_QUALIFIER = {
    SliceKind.AGENT_AUTHORED: "",
    SliceKind.ALL_TOTAL: "",
    SliceKind.ALL_MERGED: "is:merged",
    SliceKind.ALL_OPEN: "is:open",
    SliceKind.ALL_CLOSED: "is:closed",
}


def build_query(
    owner: str,
    repo: str,
    from_date: str,
    to_date: str,
    slice_kind: SliceKind,
    *,
    agent_author: str = DEFAULT_AGENT_AUTHOR,
) -> str:
    parts = [f"repo:{owner}/{repo}", "is:pr"]
    qualifier = _STATE_QUALIFIER[SliceKind(slice_kind)]
    if qualifier:
        parts.append(qualifier)
    if slice_kind == SliceKind.AGENT_AUTHORED:
        parts.append(f"author:{agent_author}")
    parts.append(f"created:{from_date}..{to_date}")
    return " ".join(parts)


def build_search_params(query: str, *, per_page: int = SEARCH_PER_PAGE, page: int = 1) -> Dict[str, str]:
    """Query-string params for one page, newest first."""
    return {
        "q": query,
        "per_page": str(int(per_page)),
        "page": str(int(page)),
        "sort": "created",
        "order": "desc",
    }


def build_api_headers(token: Optional[str]) -> Dict[str, str]:
    headers = {"Accept": "application/vnd.github.v3+json"}
    tok = (token or "").strip()
    if tok:
        headers["Authorization"] = f"Bearer {tok}"
    return headers
