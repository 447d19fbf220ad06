# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Search coordinator: sequences cache check, fetch phases and aggregation.

Per invocation (one generation):
  CACHE_CHECK -> FETCHING_PRIMARY -> FETCHING_COUNTS -> [FETCHING_COMPARISON] -> AGGREGATING -> DONE
  with ERROR reachable from any fetching state and SUPERSEDED once a newer generation started.

Network calls per cache miss:
  primary pages + 3 counts (total, merged, open; closed is derived) + comparison pages (if requested)

Only the current generation may touch display state (current_result / current_error),
fire sink callbacks, or write the cache. A superseded run still finishes its requests;
its output is returned tagged SUPERSEDED and otherwise dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from .cache import SearchResultsCache
from .common import DEFAULT_AGENT_AUTHOR, DEFAULT_AGENT_LOGINS
from .common_types import ErrorKind, SearchPhase, SearchState, SliceKind
from .exceptions import AgentStatsError, InvalidInputError, ResultsIncompleteError, ResultsTruncatedError
from .fetcher import SearchFetcher
from .models import AllPRCounts, RateLimitSnapshot, SearchRequest, SearchWarning, SliceResult
from .query_builder import build_query
from .stats import SearchResults, aggregate


COUNT_SLICES: Tuple[SliceKind, ...] = (SliceKind.ALL_TOTAL, SliceKind.ALL_MERGED, SliceKind.ALL_OPEN)

_COUNT_LABELS = {
    SliceKind.ALL_TOTAL: "total PR",
    SliceKind.ALL_MERGED: "merged PR",
    SliceKind.ALL_OPEN: "open PR",
}


@dataclass(frozen=True)
class SearchOutcome:
    """What one search (or comparison load) produced, tagged with its generation."""

    generation: int
    state: SearchState
    results: Optional[SearchResults] = None
    error: Optional[AgentStatsError] = None
    calls: int = 0
    cached: bool = False  # entry written to the cache

    @property
    def ok(self) -> bool:
        return self.state == SearchState.DONE

    @property
    def superseded(self) -> bool:
        return self.state == SearchState.SUPERSEDED


@dataclass
class _RunState:
    """Mutable bookkeeping of one generation (never shared across generations)."""

    generation: int
    warnings: List[SearchWarning] = field(default_factory=list)
    snapshots: List[RateLimitSnapshot] = field(default_factory=list)
    cacheable: bool = True

    def warn(self, kind: ErrorKind, message: str, slice_name: str = "") -> None:
        self.warnings.append(SearchWarning(kind=kind, message=message, slice_name=slice_name))

    def latest_snapshot(self) -> Optional[RateLimitSnapshot]:
        # Remaining only decreases within a window: the lowest known value is the newest state.
        known = [s for s in self.snapshots if s is not None and s.remaining is not None]
        if known:
            return min(known, key=lambda s: (s.remaining, -(s.reset_at or 0)))
        return self.snapshots[-1] if self.snapshots else None


def _same_search(a: Optional[SearchRequest], b: SearchRequest) -> bool:
    if a is None:
        return False
    return (
        a.owner.strip() == b.owner.strip()
        and a.repo.strip() == b.repo.strip()
        and a.from_date == b.from_date
        and a.to_date == b.to_date
        and a.has_token == b.has_token
    )


class SearchCoordinator:
    """Runs searches against one transport and owns the generation counter.

    Example:
        async with AiohttpSearchTransport() as transport:
            coord = SearchCoordinator(transport, cache=default_search_results_cache())
            outcome = await coord.search(SearchRequest("octo", "repo", "2026-01-01", "2026-01-31"))
    """

    def __init__(
        self,
        transport: Any,
        *,
        cache: Optional[SearchResultsCache] = None,
        agent_author: str = DEFAULT_AGENT_AUTHOR,
        agent_logins: FrozenSet[str] = DEFAULT_AGENT_LOGINS,
        on_phase: Optional[Callable[[SearchPhase], None]] = None,
        on_progress: Optional[Callable[[int, int], None]] = None,
        on_result: Optional[Callable[[SearchResults], None]] = None,
        on_error: Optional[Callable[[AgentStatsError], None]] = None,
    ):
        self.transport = transport
        self.cache = cache
        self.agent_author = agent_author
        self.agent_logins = frozenset(agent_logins)
        self.on_phase = on_phase
        self.on_progress = on_progress
        self.on_result = on_result
        self.on_error = on_error

        self.generation = 0
        self.state = SearchState.IDLE
        self.current_result: Optional[SearchResults] = None
        self.current_error: Optional[AgentStatsError] = None
        self.current_request: Optional[SearchRequest] = None
        self.last_fetcher: Optional[SearchFetcher] = None
        self.logger = logging.getLogger(self.__class__.__name__)

        if self.cache is not None:
            removed = self.cache.sweep_stale_versions()
            if removed:
                self.logger.debug("Removed %d stale cache entries at start", removed)

    # ------------------------------------------------------------------
    # Generation-gated side effects
    # ------------------------------------------------------------------

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def _set_state(self, g: int, state: SearchState) -> None:
        if self.is_current(g):
            self.state = state

    def _emit_phase(self, g: int, phase: SearchPhase) -> None:
        if self.is_current(g) and self.on_phase is not None:
            self.on_phase(phase)

    def _progress_for(self, g: int) -> Callable[[int, int], None]:
        def _cb(fetched: int, total: int) -> None:
            if self.is_current(g) and self.on_progress is not None:
                self.on_progress(fetched, total)
        return _cb

    def _complete(self, g: int, results: SearchResults, *, calls: int, cached: bool = False) -> SearchOutcome:
        if not self.is_current(g):
            self.logger.debug("Discarding results of superseded generation %d (current=%d)", g, self.generation)
            return SearchOutcome(generation=g, state=SearchState.SUPERSEDED, results=results, calls=calls)
        self.state = SearchState.DONE
        self.current_result = results
        self.current_error = None
        self._emit_phase(g, SearchPhase.DONE)
        if self.on_result is not None:
            self.on_result(results)
        return SearchOutcome(generation=g, state=SearchState.DONE, results=results, calls=calls, cached=cached)

    def _fail(self, g: int, err: AgentStatsError, *, calls: int) -> SearchOutcome:
        if not self.is_current(g):
            self.logger.debug("Dropping error of superseded generation %d: %s", g, err.kind.value)
            return SearchOutcome(generation=g, state=SearchState.SUPERSEDED, error=err, calls=calls)
        self.logger.debug("Search generation %d failed: %s (%s)", g, err.kind.value, err)
        self.state = SearchState.ERROR
        self.current_result = None
        self.current_error = err
        if self.on_error is not None:
            self.on_error(err)
        return SearchOutcome(generation=g, state=SearchState.ERROR, error=err, calls=calls)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _query(self, request: SearchRequest, kind: SliceKind) -> str:
        return build_query(
            request.owner.strip(),
            request.repo.strip(),
            request.from_date,
            request.to_date,
            kind,
            agent_author=self.agent_author,
        )

    async def _fetch_counts(self, fetcher: SearchFetcher, request: SearchRequest, run: _RunState) -> AllPRCounts:
        """Issue the three count slices concurrently; each failure degrades only its own figure."""
        outcomes = await asyncio.gather(
            *(fetcher.fetch_count(self._query(request, kind), slice_name=kind.value) for kind in COUNT_SLICES),
            return_exceptions=True,
        )
        values: Dict[SliceKind, Optional[int]] = {}
        for kind, res in zip(COUNT_SLICES, outcomes):
            if isinstance(res, AgentStatsError):
                values[kind] = None
                run.cacheable = False
                run.warn(res.kind, f"Could not load the {_COUNT_LABELS[kind]} count: {res.user_message()}", kind.value)
                continue
            if isinstance(res, BaseException):
                raise res
            values[kind] = res.total_count
            run.snapshots.append(res.rate_limit)
            if res.incomplete:
                run.cacheable = False
                run.warn(
                    ErrorKind.RESULTS_INCOMPLETE,
                    f"The {_COUNT_LABELS[kind]} count may be incomplete (GitHub reported a search timeout).",
                    kind.value,
                )
        return AllPRCounts(
            total=values.get(SliceKind.ALL_TOTAL),
            merged=values.get(SliceKind.ALL_MERGED),
            open=values.get(SliceKind.ALL_OPEN),
        )

    async def _fetch_merged_sample(
        self, g: int, fetcher: SearchFetcher, request: SearchRequest, run: _RunState
    ) -> Optional[SliceResult]:
        """Paginate the all-merged slice; None (plus a warning) when it fails."""
        self._set_state(g, SearchState.FETCHING_COMPARISON)
        self._emit_phase(g, SearchPhase.FETCHING_COMPARISON)
        try:
            sample: SliceResult = await fetcher.fetch_slice(
                self._query(request, SliceKind.ALL_MERGED),
                slice_name=SliceKind.ALL_MERGED.value,
                on_progress=self._progress_for(g),
            )
        except AgentStatsError as e:
            run.cacheable = False
            run.warn(e.kind, f"Could not load comparison data: {e.user_message()}", SliceKind.ALL_MERGED.value)
            return None
        run.snapshots.append(sample.rate_limit)
        if sample.incomplete:
            run.cacheable = False
            run.warn(
                ErrorKind.RESULTS_INCOMPLETE,
                "Comparison data may be incomplete (GitHub reported a search timeout).",
                SliceKind.ALL_MERGED.value,
            )
        if sample.truncated:
            run.warn(
                ErrorKind.RESULTS_TRUNCATED,
                f"Comparison data covers only the first {sample.fetched} of {sample.total_count} merged PRs "
                f"(GitHub Search returns at most {fetcher.result_ceiling}).",
                SliceKind.ALL_MERGED.value,
            )
        return sample

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search(self, request: SearchRequest) -> SearchOutcome:
        self.generation += 1
        g = self.generation
        run = _RunState(generation=g)
        self.current_request = request
        self._set_state(g, SearchState.CACHE_CHECK)

        key = None
        entry = None
        if self.cache is not None:
            key = self.cache.make_key(request.owner, request.repo, request.from_date, request.to_date, request.has_token)
            entry = self.cache.get(key)

        if entry is not None:
            self.logger.info("Using cached results for %s/%s", request.owner.strip(), request.repo.strip())
            self._emit_phase(g, SearchPhase.CACHED)
            merged_sample = entry.all_merged if request.compare else None
            merged_total = None
            calls = 0
            if request.compare and merged_sample is None:
                fetcher = self._new_fetcher(request)
                sample = await self._fetch_merged_sample(g, fetcher, request, run)
                calls = fetcher.stats.calls_total
                if sample is not None:
                    merged_sample = sample.items
                    merged_total = sample.total_count
                    if run.cacheable and self.is_current(g):
                        self.cache.update_comparison(key, all_merged=merged_sample, rate_limit_info=run.latest_snapshot())
            self._set_state(g, SearchState.AGGREGATING)
            results = aggregate(
                entry.data,
                all_counts=entry.all_pr_counts,
                merged_sample=merged_sample,
                merged_total=merged_total,
                rate_limit_info=run.latest_snapshot() or entry.rate_limit_info,
                from_cache=True,
                warnings=run.warnings,
                agent_logins=self.agent_logins,
                from_date=request.from_date,
                to_date=request.to_date,
            )
            return self._complete(g, results, calls=calls)

        fetcher = self._new_fetcher(request)

        self._set_state(g, SearchState.FETCHING_PRIMARY)
        self._emit_phase(g, SearchPhase.FETCHING_PRIMARY)
        try:
            primary = await fetcher.fetch_slice(
                self._query(request, SliceKind.AGENT_AUTHORED),
                slice_name=SliceKind.AGENT_AUTHORED.value,
                on_progress=self._progress_for(g),
                stop_when_truncated=True,
            )
        except AgentStatsError as e:
            return self._fail(g, e, calls=fetcher.stats.calls_total)
        run.snapshots.append(primary.rate_limit)

        if primary.truncated:
            err = ResultsTruncatedError(
                primary.total_count, ceiling=fetcher.result_ceiling, slice_name=SliceKind.AGENT_AUTHORED.value
            )
            return self._fail(g, err, calls=fetcher.stats.calls_total)
        if primary.incomplete:
            run.cacheable = False
            incomplete = ResultsIncompleteError(slice_name=SliceKind.AGENT_AUTHORED.value)
            run.warn(incomplete.kind, incomplete.user_message(), incomplete.slice_name)

        self._set_state(g, SearchState.FETCHING_COUNTS)
        self._emit_phase(g, SearchPhase.FETCHING_COUNTS)
        all_counts = await self._fetch_counts(fetcher, request, run)

        sample = None
        if request.compare:
            sample = await self._fetch_merged_sample(g, fetcher, request, run)
        merged_sample = sample.items if sample is not None else None

        self._set_state(g, SearchState.AGGREGATING)
        snapshot = run.latest_snapshot()
        results = aggregate(
            primary.items,
            all_counts=all_counts,
            merged_sample=merged_sample,
            merged_total=sample.total_count if sample is not None else None,
            rate_limit_info=snapshot,
            from_cache=False,
            warnings=run.warnings,
            agent_logins=self.agent_logins,
            from_date=request.from_date,
            to_date=request.to_date,
        )

        cached = False
        if self.cache is not None and key is not None and run.cacheable and self.is_current(g):
            entry = self.cache.new_entry(
                primary.items,
                rate_limit_info=snapshot,
                all_pr_counts=all_counts,
                all_merged=merged_sample,
            )
            cached = self.cache.put(key, entry)
        return self._complete(g, results, calls=fetcher.stats.calls_total, cached=cached)

    async def fetch_comparison(self, request: SearchRequest) -> SearchOutcome:
        """Load agent-vs-others data for the search currently on display.

        Runs under the current generation: a search started meanwhile supersedes it.
        """
        if self.current_result is None or not _same_search(self.current_request, request):
            raise InvalidInputError("No results for this search are displayed yet. Run the search first.")
        g = self.generation
        run = _RunState(generation=g)
        base = self.current_result

        fetcher = self._new_fetcher(request)
        sample = await self._fetch_merged_sample(g, fetcher, request, run)
        merged_sample = sample.items if sample is not None else None
        self._set_state(g, SearchState.AGGREGATING)
        results = aggregate(
            base.items,
            all_counts=base.all_counts,
            merged_sample=merged_sample,
            merged_total=sample.total_count if sample is not None else None,
            rate_limit_info=run.latest_snapshot() or base.rate_limit_info,
            from_cache=base.from_cache,
            warnings=[w for w in base.warnings if w.kind != ErrorKind.PARTIAL_DATA] + run.warnings,
            agent_logins=self.agent_logins,
            from_date=request.from_date,
            to_date=request.to_date,
        )

        cached = False
        if merged_sample is not None and run.cacheable and self.cache is not None and self.is_current(g):
            key = self.cache.make_key(request.owner, request.repo, request.from_date, request.to_date, request.has_token)
            cached = self.cache.update_comparison(
                key, all_merged=merged_sample, all_pr_counts=base.all_counts, rate_limit_info=run.latest_snapshot()
            )
        if self.is_current(g):
            self.current_request = replace(request, compare=True)
        return self._complete(g, results, calls=fetcher.stats.calls_total, cached=cached)

    def _new_fetcher(self, request: SearchRequest) -> SearchFetcher:
        fetcher = SearchFetcher(self.transport, token=request.token)
        self.last_fetcher = fetcher
        return fetcher


def summarize_counts(results: SearchResults) -> Dict[str, Any]:
    """Flat summary used by log lines and the CLI text output."""
    ratios = results.ratios
    return {
        "total": ratios.total.display,
        "merged": ratios.merged.display,
        "open": ratios.open.display,
        "closed": ratios.closed.display,
        "merge_rate": f"{results.merge_rate}%",
    }

