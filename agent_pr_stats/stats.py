# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Statistics over pull request records (pure, no I/O).

Counts:
  merged = merged_at != null            (regardless of state)
  open   = state == open   AND not merged
  closed = state == closed AND not merged
  merged + open + closed == total

Response time (merged only): merged_at - created_at in hours.
Histogram buckets are fixed: <1h, 1-6h, 6-24h, 1-3d, 3-7d, 7d+.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .common import DEFAULT_AGENT_LOGINS
from .common_types import ErrorKind, PRStatus
from .models import AllPRCounts, PullRequestRecord, RateLimitSnapshot, SearchWarning

UNKNOWN_DENOMINATOR = "?"

# (label, lower bound hours inclusive, upper bound hours exclusive)
HISTOGRAM_BUCKETS: Tuple[Tuple[str, float, float], ...] = (
    ("<1h", 0.0, 1.0),
    ("1-6h", 1.0, 6.0),
    ("6-24h", 6.0, 24.0),
    ("1-3d", 24.0, 72.0),
    ("3-7d", 72.0, 168.0),
    ("7d+", 168.0, math.inf),
)


def merge_rate_percent(merged: int, total: int) -> int:
    """merged/total as a whole percent, rounded half-up; 0 when total is 0."""
    if total <= 0:
        return 0
    return (200 * int(merged) + int(total)) // (2 * int(total))


@dataclass(frozen=True)
class PRCounts:
    total: int = 0
    merged: int = 0
    open: int = 0
    closed: int = 0  # closed without merge
    merge_rate: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "merged": self.merged,
            "open": self.open,
            "closed": self.closed,
            "merge_rate": self.merge_rate,
        }


def classify_prs(records: Sequence[PullRequestRecord]) -> PRCounts:
    merged = open_ = closed = 0
    for pr in records:
        status = pr.status
        if status == PRStatus.MERGED:
            merged += 1
        elif status == PRStatus.CLOSED:
            closed += 1
        else:
            open_ += 1
    total = len(records)
    return PRCounts(total=total, merged=merged, open=open_, closed=closed, merge_rate=merge_rate_percent(merged, total))


@dataclass(frozen=True)
class RatioCell:
    """Agent count over the repository-wide count for one category."""

    agent: int
    all: Optional[int]  # None = unknown (count slice failed)

    @property
    def known(self) -> bool:
        return self.all is not None

    @property
    def percent(self) -> Optional[int]:
        if self.all is None or self.all <= 0:
            return None
        return merge_rate_percent(self.agent, self.all)

    @property
    def display(self) -> str:
        # Unknown denominators are never rendered as 0 or 100%.
        return f"{self.agent} / {self.all if self.all is not None else UNKNOWN_DENOMINATOR}"

    def to_dict(self) -> Dict[str, Any]:
        return {"agent": self.agent, "all": self.all, "percent": self.percent, "display": self.display}


@dataclass(frozen=True)
class RatioDisplay:
    total: RatioCell
    merged: RatioCell
    open: RatioCell
    closed: RatioCell

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total.to_dict(),
            "merged": self.merged.to_dict(),
            "open": self.open.to_dict(),
            "closed": self.closed.to_dict(),
        }


def build_ratios(agent_counts: PRCounts, all_counts: Optional[AllPRCounts]) -> RatioDisplay:
    counts = all_counts or AllPRCounts()
    return RatioDisplay(
        total=RatioCell(agent_counts.total, counts.total),
        merged=RatioCell(agent_counts.merged, counts.merged),
        open=RatioCell(agent_counts.open, counts.open),
        closed=RatioCell(agent_counts.closed, counts.closed),
    )


@dataclass(frozen=True)
class HistogramBucket:
    label: str
    count: int


@dataclass(frozen=True)
class ResponseTimeStats:
    """Created-to-merged durations (hours) over the merged records of a set."""

    average_hours: float
    median_hours: float
    fastest_hours: float
    slowest_hours: float
    histogram: Tuple[HistogramBucket, ...]
    total_merged: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average_hours": self.average_hours,
            "median_hours": self.median_hours,
            "fastest_hours": self.fastest_hours,
            "slowest_hours": self.slowest_hours,
            "average": format_duration(self.average_hours),
            "median": format_duration(self.median_hours),
            "fastest": format_duration(self.fastest_hours),
            "slowest": format_duration(self.slowest_hours),
            "histogram": [{"label": b.label, "count": b.count} for b in self.histogram],
            "total_merged": self.total_merged,
        }


def response_hours(records: Iterable[PullRequestRecord]) -> List[float]:
    """Hours from creation to merge; unparsable, negative and non-finite deltas are dropped."""
    out: List[float] = []
    for pr in records:
        if not pr.is_merged:
            continue
        created = pr.created_dt
        merged = pr.merged_dt
        if created is None or merged is None:
            continue
        hours = (merged - created).total_seconds() / 3600.0
        if math.isfinite(hours) and hours >= 0:
            out.append(hours)
    return out


def histogram(hours: Sequence[float]) -> Tuple[HistogramBucket, ...]:
    return tuple(
        HistogramBucket(label=label, count=sum(1 for h in hours if lo <= h < hi))
        for (label, lo, hi) in HISTOGRAM_BUCKETS
    )


def calculate_response_times(records: Sequence[PullRequestRecord]) -> Optional[ResponseTimeStats]:
    hours = sorted(response_hours(records))
    if not hours:
        return None
    n = len(hours)
    mid = n // 2
    median = (hours[mid - 1] + hours[mid]) / 2.0 if n % 2 == 0 else hours[mid]
    return ResponseTimeStats(
        average_hours=sum(hours) / n,
        median_hours=median,
        fastest_hours=hours[0],
        slowest_hours=hours[-1],
        histogram=histogram(hours),
        total_merged=n,
    )


def format_duration(hours: float) -> str:
    """Human duration: "N min" under an hour, "X.X hours" under a day, else "X.X days"."""
    try:
        h = float(hours)
    except (TypeError, ValueError):
        return "0 min"
    if not math.isfinite(h):
        return "0 min"
    h = max(0.0, h)

    if h < 1:
        mins = int(math.floor(h * 60 + 0.5))
        if mins >= 60:
            return "1.0 hours"
        return f"{mins} min"
    if h < 24:
        rounded = float(f"{h:.1f}")
        if rounded >= 24:
            return f"{rounded / 24:.1f} days"
        return f"{h:.1f} hours"
    return f"{h / 24:.1f} days"


@dataclass(frozen=True)
class ComparisonStats:
    """Agent vs. everyone else, over merged PRs.

    `others_count` is the authoritative population (all merged - agent merged);
    `others_sample_size` is how many non-agent records the statistics were computed from.
    """

    agent: Optional[ResponseTimeStats]
    others: Optional[ResponseTimeStats]
    agent_merged_count: int
    others_sample_size: int
    others_count: int
    is_partial: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent": self.agent.to_dict() if self.agent else None,
            "others": self.others.to_dict() if self.others else None,
            "agent_merged_count": self.agent_merged_count,
            "others_sample_size": self.others_sample_size,
            "others_count": self.others_count,
            "is_partial": self.is_partial,
        }


def is_agent_authored(
    pr: PullRequestRecord,
    *,
    agent_ids: FrozenSet[int] = frozenset(),
    agent_logins: FrozenSet[str] = DEFAULT_AGENT_LOGINS,
) -> bool:
    if pr.id in agent_ids:
        return True
    return bool(pr.author_login) and pr.author_login in agent_logins


def compare_response_times(
    agent_records: Sequence[PullRequestRecord],
    merged_sample: Sequence[PullRequestRecord],
    authoritative_merged: Optional[int],
    *,
    sample_total: Optional[int] = None,
    agent_logins: FrozenSet[str] = DEFAULT_AGENT_LOGINS,
) -> ComparisonStats:
    """Agent vs. everyone else over the merged sample.

    `sample_total` is the total_count the merged sample itself reported. It is the
    fallback population when `authoritative_merged` is unknown, and a sample shorter
    than it is always partial.
    """
    agent_ids = frozenset(pr.id for pr in agent_records)
    others = [
        pr for pr in merged_sample
        if pr.is_merged and not is_agent_authored(pr, agent_ids=agent_ids, agent_logins=agent_logins)
    ]
    agent_merged = sum(1 for pr in agent_records if pr.is_merged)

    population = authoritative_merged if authoritative_merged is not None else sample_total
    if population is not None and population > 0:
        others_count = max(0, int(population) - agent_merged)
        is_partial = len(merged_sample) < int(population)
    else:
        others_count = len(others)
        is_partial = False
    if sample_total is not None and len(merged_sample) < int(sample_total):
        is_partial = True

    return ComparisonStats(
        agent=calculate_response_times(agent_records),
        others=calculate_response_times(others),
        agent_merged_count=agent_merged,
        others_sample_size=len(others),
        others_count=others_count,
        is_partial=is_partial,
    )


def filter_prs(
    records: Sequence[PullRequestRecord],
    status: str = "all",
    text: str = "",
) -> List[PullRequestRecord]:
    """Filter by derived status ("all" | "merged" | "closed" | "open") and case-insensitive title text."""
    out = list(records)
    if status and status != "all":
        wanted = PRStatus(status)
        out = [pr for pr in out if pr.status == wanted]
    needle = (text or "").strip().lower()
    if needle:
        out = [pr for pr in out if needle in (pr.title or "").lower()]
    return out


def _sort_ts(pr: PullRequestRecord) -> float:
    dt = pr.created_dt
    return dt.timestamp() if dt is not None else float("-inf")


def sort_prs_by_date(records: Sequence[PullRequestRecord]) -> List[PullRequestRecord]:
    """Newest first; the input is not modified."""
    return sorted(records, key=_sort_ts, reverse=True)


@dataclass(frozen=True)
class DailyBreakdown:
    dates: Tuple[str, ...]
    merged: Tuple[int, ...]
    closed: Tuple[int, ...]
    open: Tuple[int, ...]

    def to_dict(self) -> Dict[str, List[Any]]:
        return {
            "dates": list(self.dates),
            "merged": list(self.merged),
            "closed": list(self.closed),
            "open": list(self.open),
        }


def _parse_day(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(str(value or "").strip()[:10])
    except ValueError:
        return None


def daily_breakdown(records: Sequence[PullRequestRecord], from_date: str = "", to_date: str = "") -> DailyBreakdown:
    """Per-day (UTC, by creation date) merged/closed/open counts.

    Every day in [from_date, to_date] is present, zero-filled. Without a valid
    range, only the days that have records are listed.
    """
    by_day: Dict[str, Dict[PRStatus, int]] = {}
    for pr in records:
        created = pr.created_dt
        if created is None:
            continue
        day = created.astimezone(timezone.utc).date().isoformat()
        bucket = by_day.setdefault(day, {PRStatus.MERGED: 0, PRStatus.CLOSED: 0, PRStatus.OPEN: 0})
        bucket[pr.status] += 1

    start = _parse_day(from_date)
    end = _parse_day(to_date)
    if start is not None and end is not None:
        days = []
        cur = start
        while cur <= end:
            days.append(cur.isoformat())
            cur += timedelta(days=1)
    else:
        days = sorted(by_day.keys())

    def _series(status: PRStatus) -> Tuple[int, ...]:
        return tuple(by_day.get(d, {}).get(status, 0) for d in days)

    return DailyBreakdown(
        dates=tuple(days),
        merged=_series(PRStatus.MERGED),
        closed=_series(PRStatus.CLOSED),
        open=_series(PRStatus.OPEN),
    )


@dataclass(frozen=True)
class SearchResults:
    """Everything a renderer needs for one search."""

    items: Tuple[PullRequestRecord, ...]
    counts: PRCounts
    all_counts: Optional[AllPRCounts]
    ratios: RatioDisplay
    response_time_stats: Optional[ResponseTimeStats]
    comparison: Optional[ComparisonStats] = None
    rate_limit_info: Optional[RateLimitSnapshot] = None
    from_cache: bool = False
    is_partial: bool = False
    warnings: Tuple[SearchWarning, ...] = field(default_factory=tuple)
    daily: Optional[DailyBreakdown] = None

    @property
    def merge_rate(self) -> int:
        return self.counts.merge_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [pr.to_disk_dict() for pr in self.items],
            "counts": self.counts.to_dict(),
            "all_counts": (
                {**self.all_counts.to_disk_dict(), "closed": self.all_counts.closed} if self.all_counts else None
            ),
            "merge_rate": self.merge_rate,
            "ratios": self.ratios.to_dict(),
            "response_time_stats": self.response_time_stats.to_dict() if self.response_time_stats else None,
            "comparison": self.comparison.to_dict() if self.comparison else None,
            "rate_limit_info": self.rate_limit_info.to_disk_dict() if self.rate_limit_info else None,
            "from_cache": self.from_cache,
            "is_partial": self.is_partial,
            "warnings": [w.to_dict() for w in self.warnings],
            "daily": self.daily.to_dict() if self.daily else None,
        }


def aggregate(
    records: Sequence[PullRequestRecord],
    *,
    all_counts: Optional[AllPRCounts] = None,
    merged_sample: Optional[Sequence[PullRequestRecord]] = None,
    merged_total: Optional[int] = None,
    rate_limit_info: Optional[RateLimitSnapshot] = None,
    from_cache: bool = False,
    warnings: Sequence[SearchWarning] = (),
    agent_logins: FrozenSet[str] = DEFAULT_AGENT_LOGINS,
    from_date: str = "",
    to_date: str = "",
) -> SearchResults:
    """Reduce raw records (+ optional repository-wide counts and merged sample) into SearchResults.

    `merged_total` is the merged sample's own total_count; it stands in for the
    authoritative merged count when the count query did not produce one.
    """
    counts = classify_prs(records)
    out_warnings = list(warnings)

    comparison = None
    if merged_sample is not None:
        authoritative = all_counts.merged if all_counts is not None else None
        if authoritative is None:
            authoritative = merged_total
        comparison = compare_response_times(
            records,
            merged_sample,
            authoritative,
            sample_total=merged_total,
            agent_logins=agent_logins,
        )
        if comparison.is_partial:
            known = [n for n in (authoritative, merged_total) if n is not None]
            out_warnings.append(
                SearchWarning(
                    kind=ErrorKind.PARTIAL_DATA,
                    message=(
                        f"Comparison statistics are based on a sample of {len(merged_sample)} merged PRs "
                        f"out of {max(known) if known else '?'}. Narrow the date range for exact figures."
                    ),
                )
            )

    return SearchResults(
        items=tuple(sort_prs_by_date(records)),
        counts=counts,
        all_counts=all_counts,
        ratios=build_ratios(counts, all_counts),
        response_time_stats=calculate_response_times(records),
        comparison=comparison,
        rate_limit_info=rate_limit_info,
        from_cache=bool(from_cache),
        is_partial=bool(comparison.is_partial) if comparison is not None else False,
        warnings=tuple(out_warnings),
        daily=daily_breakdown(records, from_date, to_date),
    )
