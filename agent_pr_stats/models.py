# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Data model for search results, rate-limit snapshots and cache entries.

The search service returns loosely-typed JSON (nullable `user`, nullable `title`,
missing `pull_request.merged_at`, ...). Everything is coerced into Optional-typed
frozen dataclasses once, at the deserialization boundary, so nothing downstream
has to guess about presence.
"""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .common import _safe_int
from .common_types import ErrorKind, PRStatus


def parse_github_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp ("2026-01-24T03:12:34Z") into an aware UTC datetime."""
    s = str(value or "").strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def safe_url(url: Optional[str]) -> str:
    """Return the URL only if it is an https://github.com link, otherwise "#"."""
    if url is None:
        return "#"
    try:
        parsed = urllib.parse.urlparse(str(url).strip())
    except ValueError:
        return "#"
    if parsed.scheme == "https" and parsed.hostname == "github.com":
        return parsed.geturl()
    return "#"


@dataclass(frozen=True)
class PullRequestRecord:
    """One pull request as returned by the search service."""

    id: int
    number: int
    title: Optional[str]
    author_login: Optional[str]
    state: str  # "open" | "closed"
    created_at: str
    merged_at: Optional[str] = None
    url: Optional[str] = None

    @property
    def status(self) -> PRStatus:
        # An upstream payload can say state=open and still carry merged_at: merged wins.
        if self.merged_at is not None:
            return PRStatus.MERGED
        if self.state == PRStatus.CLOSED.value:
            return PRStatus.CLOSED
        return PRStatus.OPEN

    @property
    def is_merged(self) -> bool:
        return self.merged_at is not None

    @property
    def display_number(self) -> str:
        """Display form "#123"; empty for numbers that are not positive integers."""
        return f"#{self.number}" if isinstance(self.number, int) and self.number > 0 else ""

    @property
    def safe_url(self) -> str:
        return safe_url(self.url)

    @property
    def created_dt(self) -> Optional[datetime]:
        return parse_github_timestamp(self.created_at)

    @property
    def merged_dt(self) -> Optional[datetime]:
        return parse_github_timestamp(self.merged_at)

    @classmethod
    def from_search_item(cls, item: Dict[str, Any]) -> "PullRequestRecord":
        """Build a record from one `items[]` entry of GET /search/issues.

        Example item (truncated):
          {
            "id": 2829001234, "number": 42, "title": "Fix flaky test",
            "state": "closed", "created_at": "2026-01-02T10:00:00Z",
            "user": {"login": "Copilot"},
            "html_url": "https://github.com/owner/repo/pull/42",
            "pull_request": {"merged_at": "2026-01-02T12:00:00Z"}
          }
        """
        user = item.get("user")
        login = user.get("login") if isinstance(user, dict) else None
        pr = item.get("pull_request")
        merged_at = pr.get("merged_at") if isinstance(pr, dict) else None
        state = str(item.get("state") or "").strip().lower()
        title = item.get("title")
        url = item.get("html_url")
        return cls(
            id=_safe_int(item.get("id"), 0),
            number=_safe_int(item.get("number"), 0),
            title=str(title) if title is not None else None,
            author_login=str(login) if login else None,
            state=PRStatus.CLOSED.value if state == PRStatus.CLOSED.value else PRStatus.OPEN.value,
            created_at=str(item.get("created_at") or ""),
            merged_at=str(merged_at) if merged_at else None,
            url=str(url) if url is not None else None,
        )

    def to_disk_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "title": self.title,
            "author_login": self.author_login,
            "state": self.state,
            "created_at": self.created_at,
            "merged_at": self.merged_at,
            "url": self.url,
        }

    @classmethod
    def from_disk_dict(cls, d: Any) -> "PullRequestRecord":
        if not isinstance(d, dict):
            raise ValueError(f"Invalid pull request record type: {type(d)}")
        if not isinstance(d.get("id"), int) or not isinstance(d.get("created_at"), str):
            raise ValueError(f"Invalid pull request record: {d!r}")
        return cls(
            id=int(d["id"]),
            number=int(d.get("number") or 0),
            title=d.get("title"),
            author_login=d.get("author_login"),
            state=str(d.get("state") or PRStatus.OPEN.value),
            created_at=str(d["created_at"]),
            merged_at=d.get("merged_at"),
            url=d.get("url"),
        )


@dataclass(frozen=True)
class SearchPage:
    """One page of GET /search/issues.

    `total_count` is the service's count of the *whole* result set, not len(items).
    """

    total_count: int
    incomplete: bool
    items: Tuple[PullRequestRecord, ...] = ()

    @classmethod
    def from_json(cls, data: Any) -> "SearchPage":
        if not isinstance(data, dict):
            data = {}
        raw_items = data.get("items")
        items = tuple(
            PullRequestRecord.from_search_item(it)
            for it in (raw_items if isinstance(raw_items, list) else [])
            if isinstance(it, dict)
        )
        return cls(
            total_count=_safe_int(data.get("total_count"), 0) or 0,
            incomplete=bool(data.get("incomplete_results", False)),
            items=items,
        )


@dataclass(frozen=True)
class RateLimitSnapshot:
    """Rate-limit metadata of one response. Unknown fields are None, never guessed."""

    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_at: Optional[int] = None  # epoch seconds
    used: Optional[int] = None
    resource: Optional[str] = None

    def to_disk_dict(self) -> Dict[str, Any]:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_at": self.reset_at,
            "used": self.used,
            "resource": self.resource,
        }

    @classmethod
    def from_disk_dict(cls, d: Any) -> Optional["RateLimitSnapshot"]:
        if d is None:
            return None
        if not isinstance(d, dict):
            raise ValueError(f"Invalid rate limit snapshot type: {type(d)}")
        return cls(
            limit=_safe_int(d.get("limit")),
            remaining=_safe_int(d.get("remaining")),
            reset_at=_safe_int(d.get("reset_at")),
            used=_safe_int(d.get("used")),
            resource=d.get("resource") if isinstance(d.get("resource"), str) else None,
        )


@dataclass(frozen=True)
class AllPRCounts:
    """Repository-wide counts for the date range. None = that count slice failed."""

    total: Optional[int] = None
    merged: Optional[int] = None
    open: Optional[int] = None

    @property
    def closed(self) -> Optional[int]:
        # Never fetched. Upstream counts are not guaranteed consistent, so clamp at 0.
        if self.total is None or self.merged is None or self.open is None:
            return None
        return max(0, self.total - self.merged - self.open)

    @property
    def is_complete(self) -> bool:
        return self.total is not None and self.merged is not None and self.open is not None

    def to_disk_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "merged": self.merged, "open": self.open}

    @classmethod
    def from_disk_dict(cls, d: Any) -> Optional["AllPRCounts"]:
        if d is None:
            return None
        if not isinstance(d, dict):
            raise ValueError(f"Invalid counts type: {type(d)}")
        return cls(total=_safe_int(d.get("total")), merged=_safe_int(d.get("merged")), open=_safe_int(d.get("open")))


@dataclass(frozen=True)
class CacheEntry:
    """Persisted result of one successful search."""

    schema_version: str
    data: Tuple[PullRequestRecord, ...]
    timestamp: int  # epoch millis
    rate_limit_info: Optional[RateLimitSnapshot] = None
    all_pr_counts: Optional[AllPRCounts] = None
    all_merged: Optional[Tuple[PullRequestRecord, ...]] = None

    def to_disk_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "data": [pr.to_disk_dict() for pr in self.data],
            "timestamp": int(self.timestamp),
            "rate_limit_info": self.rate_limit_info.to_disk_dict() if self.rate_limit_info else None,
            "all_pr_counts": self.all_pr_counts.to_disk_dict() if self.all_pr_counts else None,
            "all_merged": [pr.to_disk_dict() for pr in self.all_merged] if self.all_merged is not None else None,
        }

    @classmethod
    def from_disk_dict(cls, d: Any) -> "CacheEntry":
        """Strict parse; raises ValueError on any shape mismatch."""
        if not isinstance(d, dict):
            raise ValueError(f"Invalid cache entry type: {type(d)}")
        if not isinstance(d.get("schema_version"), str):
            raise ValueError("Cache entry has no schema_version")
        if not isinstance(d.get("data"), list):
            raise ValueError("Cache entry data is not a list")
        ts = d.get("timestamp")
        if not isinstance(ts, int) or isinstance(ts, bool):
            raise ValueError("Cache entry timestamp is not an int")
        all_merged_raw = d.get("all_merged")
        if all_merged_raw is not None and not isinstance(all_merged_raw, list):
            raise ValueError("Cache entry all_merged is not a list")
        return cls(
            schema_version=d["schema_version"],
            data=tuple(PullRequestRecord.from_disk_dict(x) for x in d["data"]),
            timestamp=ts,
            rate_limit_info=RateLimitSnapshot.from_disk_dict(d.get("rate_limit_info")),
            all_pr_counts=AllPRCounts.from_disk_dict(d.get("all_pr_counts")),
            all_merged=(
                tuple(PullRequestRecord.from_disk_dict(x) for x in all_merged_raw)
                if all_merged_raw is not None
                else None
            ),
        )


@dataclass(frozen=True)
class SearchRequest:
    """One user-initiated search."""

    owner: str
    repo: str
    from_date: str
    to_date: str
    token: Optional[str] = None
    compare: bool = False

    @property
    def has_token(self) -> bool:
        return bool((self.token or "").strip())


@dataclass
class SliceResult:
    """All pages of one slice, accumulated in arrival order."""

    slice_name: str
    total_count: int = 0
    items: List[PullRequestRecord] = field(default_factory=list)
    incomplete: bool = False
    truncated: bool = False
    pages_fetched: int = 0
    rate_limit: Optional[RateLimitSnapshot] = None

    @property
    def fetched(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class CountResult:
    """Outcome of a `per_page=1` count query."""

    slice_name: str
    total_count: int
    incomplete: bool = False
    rate_limit: Optional[RateLimitSnapshot] = None


@dataclass(frozen=True)
class SearchWarning:
    """A non-fatal condition attached to (not replacing) the results."""

    kind: ErrorKind
    message: str
    slice_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "slice": self.slice_name}
