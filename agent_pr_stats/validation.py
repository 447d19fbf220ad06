# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Input checks run before any request is made (raise InvalidInputError)."""

from __future__ import annotations

import re
from datetime import date
from typing import Tuple

from .exceptions import InvalidInputError

_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def is_valid_github_name(name: str) -> bool:
    if not name or name in (".", ".."):
        return False
    return bool(_NAME_RE.match(name))


def parse_repo_input(value: str) -> Tuple[str, str]:
    """Split "owner/repo" into (owner, repo), whitespace-trimmed."""
    parts = str(value or "").strip().split("/")
    if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
        raise InvalidInputError('Please enter the repository in "owner/repo" format.')
    owner, repo = parts[0].strip(), parts[1].strip()
    if not is_valid_github_name(owner) or not is_valid_github_name(repo):
        raise InvalidInputError(
            "Invalid repository name. Names can only contain letters, numbers, hyphens, underscores, and periods."
        )
    return owner, repo


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(str(value or "").strip())
    except ValueError as e:
        raise InvalidInputError(f"Invalid date format: {value!r} (expected YYYY-MM-DD).") from e


def validate_date_range(from_date: str, to_date: str) -> Tuple[str, str]:
    """Both dates must parse and from_date must not be after to_date. Returns normalized ISO dates."""
    start = parse_date(from_date)
    end = parse_date(to_date)
    if start > end:
        raise InvalidInputError("Start date must be on or before the end date.")
    return start.isoformat(), end.isoformat()
