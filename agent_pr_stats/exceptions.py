# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Search engine error types.

These are intentionally lightweight so the fetcher, coordinator and CLI can catch
specific error classes (e.g. 404 Not Found) without creating import cycles.

Every error maps to exactly one user-facing message naming the condition and,
where actionable, a remedy. Raw transport details stay in the log.
"""

from __future__ import annotations

from typing import Optional

from .common_types import ErrorKind
from .rate_limit import format_reset_time


class AgentStatsError(Exception):
    kind: ErrorKind = ErrorKind.UPSTREAM_ERROR

    def __init__(self, message: str = "", *, status_code: int = 0, slice_name: str = ""):
        self.status_code = int(status_code or 0)
        self.slice_name = str(slice_name or "")
        super().__init__(message or self.default_message())

    def default_message(self) -> str:
        return "Unexpected error while querying GitHub."

    def user_message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.user_message()}


class InvalidInputError(AgentStatsError):
    kind = ErrorKind.INVALID_INPUT

    def default_message(self) -> str:
        return "Invalid input."


class NotFoundError(AgentStatsError):
    kind = ErrorKind.NOT_FOUND

    def default_message(self) -> str:
        return "Repository not found. Check the owner/repo spelling."


class AuthFailedError(AgentStatsError):
    kind = ErrorKind.AUTH_FAILED

    def default_message(self) -> str:
        return "Authentication failed. Please check that your GitHub token is valid, or use a different token."


class RateLimitedError(AgentStatsError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str = "", *, reset_at: Optional[int] = None, status_code: int = 403, slice_name: str = ""):
        self.reset_at = reset_at
        super().__init__(message, status_code=status_code, slice_name=slice_name)

    def default_message(self) -> str:
        return (
            f"API rate limit reached. Reset at {format_reset_time(self.reset_at)}. "
            "Try again later or use a different token."
        )


class ForbiddenError(AgentStatsError):
    kind = ErrorKind.FORBIDDEN

    def default_message(self) -> str:
        return (
            "Access forbidden (HTTP 403). This may be due to insufficient permissions, "
            "SSO not being authorized, or temporary abuse protection on the GitHub API."
        )


class ValidationRejectedError(AgentStatsError):
    kind = ErrorKind.VALIDATION_REJECTED

    def __init__(self, detail: str = "", *, status_code: int = 422, slice_name: str = ""):
        self.detail = str(detail or "").strip()
        super().__init__("", status_code=status_code, slice_name=slice_name)

    def default_message(self) -> str:
        if "cannot be searched" in self.detail.lower():
            return (
                "Search query validation failed. The repository or author filter could not be resolved. "
                "The repository may not exist, your token may not have access to it, "
                "or the coding agent is not enabled on it. Verify the repository name and token."
            )
        return f"Search query validation failed. {self.detail or 'Please check the repository name.'}"


class UpstreamError(AgentStatsError):
    kind = ErrorKind.UPSTREAM_ERROR

    def default_message(self) -> str:
        return f"GitHub API error: HTTP {self.status_code}. Try again later."


class NetworkFailureError(AgentStatsError):
    kind = ErrorKind.NETWORK_FAILURE

    def default_message(self) -> str:
        return "Network error while contacting GitHub. Check your connection and try again."


class ResultsTruncatedError(AgentStatsError):
    kind = ErrorKind.RESULTS_TRUNCATED

    def __init__(self, total_count: int, *, ceiling: int = 1000, slice_name: str = ""):
        self.total_count = int(total_count)
        self.ceiling = int(ceiling)
        super().__init__("", slice_name=slice_name)

    def default_message(self) -> str:
        return (
            f"Results truncated: found {self.total_count} PRs, but only the first {self.ceiling} "
            "can be fetched from the GitHub Search API. Statistics are not shown for an incomplete "
            "result set. Please narrow your date range."
        )


class ResultsIncompleteError(AgentStatsError):
    kind = ErrorKind.RESULTS_INCOMPLETE

    def default_message(self) -> str:
        return (
            "Search results may be incomplete (GitHub reported a timeout while searching), "
            "so figures may be unreliable. Try again or narrow your date range."
        )


# Status-code dispatch used by the fetcher (403 is resolved separately: it depends on the quota).
HTTP_STATUS_ERRORS = {
    401: AuthFailedError,
    404: NotFoundError,
}
