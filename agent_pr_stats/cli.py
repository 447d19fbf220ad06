# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
CLI wrapper for agent_pr_stats.

CLI glue lives in its own module so the engine (fetcher / cache / coordinator / stats)
stays importable without argparse or output formatting.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import FrozenSet, List, Optional, Sequence

from .cache import SearchResultsCache
from .common import CACHE_FILE_DEFAULT, DEFAULT_AGENT_AUTHOR, DEFAULT_AGENT_LOGINS, resolve_cache_path, resolve_token
from .coordinator import SearchCoordinator, SearchOutcome, summarize_counts
from .exceptions import AgentStatsError, InvalidInputError
from .fetcher import AiohttpSearchTransport
from .models import RateLimitSnapshot, SearchRequest
from .probe import probe_rate_limit
from .rate_limit import classify_auth, classify_band, format_countdown, usage_percent
from .stats import SearchResults, format_duration
from .validation import parse_repo_input, validate_date_range

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID_INPUT = 2


def agent_logins_for(agent_author: str) -> FrozenSet[str]:
    """Logins an `author:` qualifier shows up as in search items ("app/foo" -> foo, foo[bot])."""
    name = str(agent_author or "").split("/", 1)[-1].strip()
    if not name:
        return DEFAULT_AGENT_LOGINS
    return DEFAULT_AGENT_LOGINS | {name, f"{name}[bot]"}


def format_rate_limit(snapshot: Optional[RateLimitSnapshot]) -> str:
    if snapshot is None or snapshot.limit is None:
        return "Rate limit: unknown"
    pct = usage_percent(snapshot)
    return (
        f"Rate limit: {snapshot.remaining}/{snapshot.limit} remaining "
        f"({classify_band(snapshot).value}, {classify_auth(snapshot).value}"
        + (f", {pct}% used" if pct is not None else "")
        + f"), resets in {format_countdown(snapshot.reset_at)}"
    )


def format_results_text(request: SearchRequest, results: SearchResults) -> str:
    lines: List[str] = []
    lines.append(
        f"{request.owner}/{request.repo}  {request.from_date}..{request.to_date}"
        + ("  (cached)" if results.from_cache else "")
    )
    summary = summarize_counts(results)
    lines.append(f"  Agent PRs:   {summary['total']}")
    lines.append(f"  Merged:      {summary['merged']}")
    lines.append(f"  Open:        {summary['open']}")
    lines.append(f"  Closed:      {summary['closed']}")
    lines.append(f"  Merge rate:  {summary['merge_rate']}")

    rts = results.response_time_stats
    if rts is not None:
        lines.append(
            f"  Time to merge ({rts.total_merged} PRs): average {format_duration(rts.average_hours)}, "
            f"median {format_duration(rts.median_hours)}, fastest {format_duration(rts.fastest_hours)}, "
            f"slowest {format_duration(rts.slowest_hours)}"
        )
        lines.append("  Histogram:   " + "  ".join(f"{b.label}={b.count}" for b in rts.histogram))

    cmp_ = results.comparison
    if cmp_ is not None:
        others = cmp_.others
        lines.append(
            f"  Other PRs:   {cmp_.others_count} merged"
            + (f" (statistics from a sample of {cmp_.others_sample_size})" if cmp_.is_partial else "")
        )
        if others is not None:
            lines.append(
                f"  Others time to merge: average {format_duration(others.average_hours)}, "
                f"median {format_duration(others.median_hours)}"
            )

    lines.append("  " + format_rate_limit(results.rate_limit_info))
    for w in results.warnings:
        lines.append(f"  WARNING [{w.kind.value}]: {w.message}")
    return "\n".join(lines)


async def _run_search(
    request: SearchRequest,
    *,
    cache: Optional[SearchResultsCache],
    agent_author: str,
) -> SearchOutcome:
    async with AiohttpSearchTransport() as transport:
        coord = SearchCoordinator(
            transport,
            cache=cache,
            agent_author=agent_author,
            agent_logins=agent_logins_for(agent_author),
            on_phase=lambda phase: logger.debug("phase: %s", phase.value),
            on_progress=lambda fetched, total: logger.debug("progress: %d/%d", fetched, total),
        )
        return await coord.search(request)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent_pr_stats",
        description="Statistics about pull requests opened by a coding agent in a GitHub repository.",
        epilog="Examples:\n"
               "  %(prog)s octo/repo --from 2026-01-01 --to 2026-01-31\n"
               "  %(prog)s octo/repo --from 2026-01-01 --to 2026-01-31 --compare --json\n"
               "  %(prog)s --rate-limit",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("repository", nargs="?", default="", help='Repository in "owner/repo" format.')
    parser.add_argument("--from", dest="from_date", default="", help="Start date, YYYY-MM-DD (inclusive).")
    parser.add_argument("--to", dest="to_date", default="", help="End date, YYYY-MM-DD (inclusive).")
    parser.add_argument(
        "--token",
        default=None,
        help="GitHub token (default: ~/.config/github-token, then ~/.config/gh/hosts.yml).",
    )
    parser.add_argument("--compare", action="store_true", help="Compare time-to-merge against non-agent PRs.")
    parser.add_argument("--json", action="store_true", help="Print results as JSON.")
    parser.add_argument("--no-cache", action="store_true", help="Neither read nor write the results cache.")
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Cache directory (default: $AGENT_PR_STATS_CACHE_DIR or ~/.cache/agent-pr-stats).",
    )
    parser.add_argument(
        "--agent-author",
        default=DEFAULT_AGENT_AUTHOR,
        help=f"Search author qualifier of the agent (default: {DEFAULT_AGENT_AUTHOR}).",
    )
    parser.add_argument("--rate-limit", action="store_true", help="Print the current search rate limit and exit.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def _cli(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    token = resolve_token(args.token)

    if args.rate_limit:
        try:
            snap = probe_rate_limit(token)
        except AgentStatsError as e:
            logger.error(e.user_message())
            return EXIT_ERROR
        if args.json:
            print(json.dumps(snap.to_disk_dict(), indent=2))
        else:
            print(format_rate_limit(snap))
        return EXIT_OK

    try:
        owner, repo = parse_repo_input(args.repository)
        from_date, to_date = validate_date_range(args.from_date, args.to_date)
    except InvalidInputError as e:
        logger.error(e.user_message())
        return EXIT_INVALID_INPUT

    request = SearchRequest(
        owner=owner,
        repo=repo,
        from_date=from_date,
        to_date=to_date,
        token=token,
        compare=bool(args.compare),
    )

    cache = None
    if not args.no_cache:
        cache_file = (
            Path(args.cache_dir).expanduser() / CACHE_FILE_DEFAULT
            if args.cache_dir
            else resolve_cache_path(CACHE_FILE_DEFAULT)
        )
        cache = SearchResultsCache(cache_file=cache_file)

    outcome = asyncio.run(_run_search(request, cache=cache, agent_author=args.agent_author))
    if cache is not None:
        mem_count, disk_count = cache.get_cache_sizes()
        logger.debug(
            "cache %s: %d entries (%d on disk before run), stats=%s",
            cache.cache_file, mem_count, disk_count, cache.stats,
        )
    if outcome.error is not None:
        logger.error(outcome.error.user_message())
        return EXIT_ERROR
    if outcome.results is None:
        logger.error("Search finished without results.")
        return EXIT_ERROR

    if args.json:
        print(json.dumps(outcome.results.to_dict(), indent=2))
    else:
        print(format_results_text(request, outcome.results))
    return EXIT_OK
