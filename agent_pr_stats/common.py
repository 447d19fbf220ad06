# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Shared constants and utilities for agent-pr-stats.

Everything tunable lives here as a module-level constant so call sites don't
duplicate literals (5min TTL / 100 per page / 10 pages / etc).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

_logger = logging.getLogger(__name__)

#
# Search service limits
#
GITHUB_API_BASE_URL: str = "https://api.github.com"
SEARCH_ISSUES_PATH: str = "/search/issues"
SEARCH_PER_PAGE: int = 100
# ^ Max items per page the search service returns.
SEARCH_MAX_PAGES: int = 10
# ^ The service refuses page 11+ for a single query.
SEARCH_RESULT_CEILING: int = SEARCH_PER_PAGE * SEARCH_MAX_PAGES
# ^ At most 1000 records are ever retrievable for one query.
DEFAULT_HTTP_TIMEOUT_S: int = 30

#
# Rate-limit ceilings for the search resource (requests/minute)
#
UNAUTHENTICATED_SEARCH_LIMIT: int = 10
AUTHENTICATED_SEARCH_LIMIT: int = 30

#
# Agent identity
#
DEFAULT_AGENT_AUTHOR: str = "app/copilot-swe-agent"
# ^ Search qualifier used for the agent-authored slice (`author:<value>`).
DEFAULT_AGENT_LOGINS: frozenset = frozenset({"Copilot", "copilot-swe-agent", "copilot-swe-agent[bot]"})
# ^ `user.login` values the agent shows up as inside search results.

#
# Cache policy
#
DEFAULT_CACHE_TTL_S: int = 5 * 60
# ^ Search results are reused for 5 minutes, then refetched.
CACHE_KEY_PREFIX: str = "agent_pr_stats_cache_"
CACHE_SCHEMA_VERSION: str = "v3"
# ^ Bump whenever the CacheEntry shape changes. Entries under any other version are swept.
CACHE_FILE_DEFAULT: str = "search_results.json"


# ======================================================================================
# Cache location policy
#
# All persistent caches MUST live under:
#   - $AGENT_PR_STATS_CACHE_DIR   (explicit override), else
#   - ~/.cache/agent-pr-stats     (default)
# ======================================================================================

def agent_pr_stats_cache_dir() -> Path:
    """Return the cache directory for agent-pr-stats.

    Resolution order:
    - AGENT_PR_STATS_CACHE_DIR (explicit override)
    - ~/.cache/agent-pr-stats
    """
    override = os.environ.get("AGENT_PR_STATS_CACHE_DIR")
    if override:
        return Path(override).expanduser()

    return Path.home() / ".cache" / "agent-pr-stats"


def resolve_cache_path(cache_file: str) -> Path:
    """Resolve a cache file path into the global cache directory.

    - Absolute paths are used as-is.
    - Relative paths are rooted under `agent_pr_stats_cache_dir()`.
    - A leading ".cache/" is stripped so ".cache/foo.json" lands in <cache dir>/foo.json.
    """
    p = Path(cache_file).expanduser()
    if p.is_absolute():
        return p

    rel = Path(*p.parts[1:]) if p.parts[:1] == (".",) else p

    if rel.parts[:1] == (".cache",):
        rel = Path(*rel.parts[1:])

    return agent_pr_stats_cache_dir() / rel


def _safe_int(x: Any, default: Optional[int] = None) -> Optional[int]:
    """int(x), or `default` for None / non-numeric input."""
    if x is None or isinstance(x, bool):
        return default
    try:
        return int(str(x).strip())
    except (ValueError, TypeError):
        return default


# ======================================================================================
# Token discovery
# ======================================================================================

def get_github_token_from_file() -> Optional[str]:
    """Get a GitHub token from a local config file.

    We intentionally do NOT read GH_TOKEN/GITHUB_TOKEN env vars.

    Supported locations (first match wins):
    - ~/.config/github-token   (single line token)
    - ~/.config/gh/hosts.yml   (GitHub CLI login; oauth_token)
    """
    try:
        token_file = Path.home() / ".config" / "github-token"
        if token_file.exists():
            tok = (token_file.read_text() or "").strip()
            if tok:
                return tok
    except OSError:
        pass
    return get_github_token_from_cli()


def get_github_token_from_cli() -> Optional[str]:
    """Get a GitHub token from the GitHub CLI configuration (~/.config/gh/hosts.yml)."""
    try:
        gh_config_path = Path.home() / ".config" / "gh" / "hosts.yml"
        if gh_config_path.exists():
            with open(gh_config_path, "r") as f:
                config = yaml.safe_load(f)
            if config and "github.com" in config:
                github_config = config["github.com"] or {}
                if github_config.get("oauth_token"):
                    return str(github_config["oauth_token"])
                for _user, user_config in (github_config.get("users") or {}).items():
                    if isinstance(user_config, dict) and user_config.get("oauth_token"):
                        return str(user_config["oauth_token"])
    except (OSError, yaml.YAMLError) as e:
        _logger.debug("Could not read gh hosts.yml: %s", e)
    return None


def resolve_token(explicit: Optional[str]) -> Optional[str]:
    """Token priority: explicit arg > token file > gh CLI config."""
    tok = (explicit or "").strip()
    if tok:
        return tok
    return get_github_token_from_file()
